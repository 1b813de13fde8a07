"""SPA origin client.

Fetches the un-augmented document for a path and exposes its body as an
async chunk stream. The caller owns the returned ``OriginDocument`` and must
``close()`` it once the body has been consumed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Mapping

import aiohttp

from ..domain.errors import UpstreamError

CHUNK_SIZE = 16 * 1024

# Request headers worth forwarding to the origin.
_FORWARDED_REQUEST_HEADERS = ("accept", "accept-language", "user-agent", "cookie", "if-none-match", "if-modified-since")

# Response headers that describe the hop or the original body framing; the
# body we emit may be decompressed and rewritten.
_DROPPED_RESPONSE_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "content-length",
        "content-encoding",
    }
)


@dataclass
class OriginDocument:
    status: int
    headers: dict[str, str]
    _response: aiohttp.ClientResponse
    _session: aiohttp.ClientSession

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()

    @property
    def charset(self) -> str:
        return self._response.charset or "utf-8"

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.content.iter_chunked(CHUNK_SIZE):
                yield chunk
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            # Headers are already sent; the stream just ends early.
            raise UpstreamError("origin_stream_interrupted", detail=repr(e)) from e

    async def close(self) -> None:
        self._response.release()
        await self._session.close()


class OriginClient:
    def __init__(self, *, base_url: str, timeout_seconds: int = 15):
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=None, sock_connect=timeout_seconds, sock_read=timeout_seconds)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def fetch(
        self,
        path: str,
        *,
        query: str = "",
        headers: Mapping[str, str] | None = None,
    ) -> OriginDocument:
        url = f"{self._base_url}{path}"
        if query:
            url = f"{url}?{query}"
        forwarded = {k: v for k, v in (headers or {}).items() if k.lower() in _FORWARDED_REQUEST_HEADERS}

        session = aiohttp.ClientSession(timeout=self._timeout)
        try:
            resp = await session.get(url, headers=forwarded, allow_redirects=False)
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            await session.close()
            raise UpstreamError("origin_unreachable", detail=f"path={path} error={e!r}") from e

        kept = {k.lower(): v for k, v in resp.headers.items() if k.lower() not in _DROPPED_RESPONSE_HEADERS}
        return OriginDocument(status=resp.status, headers=kept, _response=resp, _session=session)
