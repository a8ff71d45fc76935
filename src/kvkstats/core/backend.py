"""Backend client -- one POST per command to the Apps Script web app.

Every slash command goes through ``BackendClient.send``. The client does not
interpret ``status``; callers decide what a non-success result means for
their command. No retries, no circuit breaking.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from kvkstats.models.backend import BackendResult, CommandEnvelope

logger = logging.getLogger(__name__)

# Raw response bodies are clipped to this length in errors and logs.
BODY_PREVIEW_CHARS = 500


class BackendError(Exception):
    """Base class for transport-level backend failures."""


class BackendNotConfigured(BackendError):
    """Raised when no backend URL is configured."""


class HttpFailure(BackendError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body[:BODY_PREVIEW_CHARS]
        self.backend_message: str | None = None
        try:
            parsed = json.loads(body)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict) and parsed.get("message"):
            self.backend_message = str(parsed["message"])
        super().__init__(f"Backend returned HTTP {status_code}: {self.body}")


class ParseFailure(BackendError):
    """The backend body was not a JSON object."""

    def __init__(self, body: str) -> None:
        self.body = body[:BODY_PREVIEW_CHARS]
        super().__init__(f"Backend response is not valid JSON: {self.body}")


class BackendClient:
    """Thin async client for the single backend endpoint.

    ``transport`` lets tests plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = httpx.Timeout(timeout, connect=10.0)
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def send(self, command: str, data: dict[str, Any]) -> BackendResult:
        """POST ``{command, data}`` and decode the JSON result."""
        if not self.url:
            raise BackendNotConfigured("APPS_SCRIPT_WEB_APP_URL is not configured.")

        envelope = CommandEnvelope(command=str(command), data=data)
        logger.info("backend_request command=%s", envelope.command)
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            resp = await client.post(
                self.url,
                content=envelope.model_dump_json(),
                headers={"Content-Type": "application/json"},
            )

        text = resp.text
        logger.info(
            "backend_response command=%s status=%d length=%d",
            envelope.command,
            resp.status_code,
            len(text),
        )
        if not resp.is_success:
            logger.error(
                "backend_http_failure command=%s status=%d body=%s",
                envelope.command,
                resp.status_code,
                text[:BODY_PREVIEW_CHARS],
            )
            raise HttpFailure(resp.status_code, text)

        try:
            payload = json.loads(text)
        except ValueError as exc:
            logger.error(
                "backend_parse_failure command=%s body=%s",
                envelope.command,
                text[:BODY_PREVIEW_CHARS],
            )
            raise ParseFailure(text) from exc
        if not isinstance(payload, dict):
            raise ParseFailure(text)

        return BackendResult.model_validate(payload)
