"""Tests for the backend client and result model."""

from __future__ import annotations

import json

import httpx
import pytest

from kvkstats.core.backend import (
    BODY_PREVIEW_CHARS,
    BackendClient,
    BackendNotConfigured,
    HttpFailure,
    ParseFailure,
)
from kvkstats.models.backend import BackendCommand, BackendResult

URL = "https://script.google.test/exec"


def make_client(handler, calls: list[httpx.Request] | None = None) -> BackendClient:
    def _record(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return handler(request)

    return BackendClient(URL, transport=httpx.MockTransport(_record))


class TestSend:
    async def test_posts_envelope(self) -> None:
        calls: list[httpx.Request] = []
        client = make_client(
            lambda r: httpx.Response(200, json={"status": "success", "message": "ok"}),
            calls,
        )
        result = await client.send(BackendCommand.GET_MY_STATS, {"discordUserId": "42"})

        assert len(calls) == 1
        request = calls[0]
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {
            "command": "get_my_stats",
            "data": {"discordUserId": "42"},
        }
        assert result.ok
        assert result.message == "ok"

    async def test_returns_error_status_as_is(self) -> None:
        """A backend-reported error is a result, not an exception."""
        client = make_client(
            lambda r: httpx.Response(200, json={"status": "error", "message": "ID not found"})
        )
        result = await client.send("submit_death_troops", {})
        assert not result.ok
        assert result.status == "error"
        assert result.message == "ID not found"

    async def test_extra_fields_kept(self) -> None:
        client = make_client(
            lambda r: httpx.Response(200, json={"status": "success", "requestId": "abc"})
        )
        result = await client.send("fix_registration_names", {})
        assert result.model_extra == {"requestId": "abc"}

    async def test_http_failure_truncates_body(self) -> None:
        calls: list[httpx.Request] = []
        client = make_client(lambda r: httpx.Response(500, text="x" * 2000), calls)
        with pytest.raises(HttpFailure) as excinfo:
            await client.send("get_leaderboard", {"type": "Score"})

        assert len(calls) == 1  # no retries
        assert excinfo.value.status_code == 500
        assert len(excinfo.value.body) == BODY_PREVIEW_CHARS
        assert "500" in str(excinfo.value)
        assert excinfo.value.backend_message is None

    async def test_http_failure_keeps_backend_message(self) -> None:
        client = make_client(
            lambda r: httpx.Response(403, json={"status": "error", "message": "Forbidden sheet"})
        )
        with pytest.raises(HttpFailure) as excinfo:
            await client.send("get_registration_data", {})
        assert excinfo.value.backend_message == "Forbidden sheet"

    async def test_parse_failure_on_html(self) -> None:
        client = make_client(lambda r: httpx.Response(200, text="<html>Sign in</html>"))
        with pytest.raises(ParseFailure) as excinfo:
            await client.send("get_my_stats", {})
        assert "<html>" in excinfo.value.body

    async def test_parse_failure_on_non_object(self) -> None:
        client = make_client(lambda r: httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(ParseFailure):
            await client.send("get_leaderboard", {})

    async def test_not_configured(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        client = BackendClient("", transport=httpx.MockTransport(handler))
        assert not client.configured
        with pytest.raises(BackendNotConfigured):
            await client.send("register", {})
        assert calls == []


class TestBackendResult:
    def test_detail_map_for_list(self) -> None:
        result = BackendResult(status="success", details=[{"rank": 1}])
        assert result.detail_map == {}

    def test_missing_status(self) -> None:
        result = BackendResult.model_validate({"message": "weird"})
        assert result.status == ""
        assert not result.ok

    def test_unwrap_nested(self) -> None:
        result = BackendResult(
            status="success",
            message="outer",
            details={"status": "success", "message": "inner", "details": [{"rank": 1}]},
        )
        inner = result.unwrap_nested()
        assert inner.status == "success"
        assert inner.message == "inner"
        assert inner.details == [{"rank": 1}]

    def test_unwrap_nested_error(self) -> None:
        result = BackendResult(
            status="success",
            details={"status": "error", "message": "Sheet missing"},
        )
        inner = result.unwrap_nested()
        assert not inner.ok
        assert inner.message == "Sheet missing"

    def test_unwrap_plain(self) -> None:
        result = BackendResult(status="success", details=[{"rank": 1}])
        assert result.unwrap_nested() is result
