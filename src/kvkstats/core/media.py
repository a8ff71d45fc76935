"""Media encoder -- fetch a Discord attachment and base64 it for the envelope."""

from __future__ import annotations

import asyncio
import base64
import logging

import httpx

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_FETCH_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


class FetchFailure(Exception):
    """The attachment URL did not answer with a 2xx status."""

    def __init__(self, status_code: int, reason: str, url: str) -> None:
        self.status_code = status_code
        self.reason = reason
        self.url = url
        super().__init__(f"Failed to fetch file: {status_code} {reason} (URL: {url})")


def is_image(content_type: str | None) -> bool:
    """True when the declared content type is an image."""
    return bool(content_type) and content_type.startswith("image/")


def is_spreadsheet(filename: str, content_type: str | None) -> bool:
    """True for .xlsx uploads, judged by name or declared type."""
    return filename.lower().endswith(".xlsx") or content_type == XLSX_CONTENT_TYPE


async def encode_remote_file(
    url: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Download ``url`` and return its bytes as a base64 string.

    No size cap is enforced here; the backend rejects oversized payloads.
    """
    async with httpx.AsyncClient(
        timeout=_FETCH_TIMEOUT,
        transport=transport,
        follow_redirects=True,
    ) as client:
        resp = await client.get(url)
    if not resp.is_success:
        logger.warning("media_fetch_failed status=%d url=%s", resp.status_code, url)
        raise FetchFailure(resp.status_code, resp.reason_phrase, url)
    encoded = base64.b64encode(resp.content).decode("ascii")
    logger.info("media_encoded bytes=%d", len(resp.content))
    return encoded


async def encode_many(
    urls: list[str],
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[str]:
    """Encode several attachments concurrently, preserving order."""
    return list(
        await asyncio.gather(*(encode_remote_file(u, transport=transport) for u in urls))
    )
