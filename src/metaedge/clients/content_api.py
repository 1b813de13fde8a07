"""Content API client (read-only).

All calls share one envelope contract: ``{"status": 1, "data": ...}``.
Anything else (transport error, timeout, non-2xx, non-JSON body, status != 1)
is raised as ``UpstreamError``. Retry policy belongs to callers.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping
from urllib.parse import quote

import aiohttp

from ..domain.errors import NotFoundError, UpstreamError, UpstreamRejectedError
from ..domain.models import Article, Collection, ContentPage, CuratorProfile


_SUCCESS_STATUS = 1


def _page_items(data: Any) -> list[dict[str, Any]]:
    """Accept both ``{"data": [...]}`` and a bare list as a page payload."""
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        items = data["data"]
    elif isinstance(data, list):
        items = data
    else:
        items = []
    return [x for x in items if isinstance(x, dict)]


class ContentApiClient:
    def __init__(self, *, base_url: str, timeout_seconds: int = 10):
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=max(1, int(timeout_seconds)))

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        url = f"{self._base_url}{path}"
        query = {k: str(v) for k, v in (params or {}).items()}
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.get(
                    url, params=query, headers={"Content-Type": "application/json"}
                ) as resp:
                    if resp.status >= 400:
                        body = await resp.text()
                        raise UpstreamError(
                            "content_api_http_error",
                            detail=f"path={path} status={resp.status} body={body[:300]}",
                            status=resp.status,
                        )
                    try:
                        payload = await resp.json(content_type=None)
                    except ValueError as e:
                        raise UpstreamError("content_api_invalid_json", detail=f"path={path}") from e
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            raise UpstreamError("content_api_unreachable", detail=f"path={path} error={e!r}") from e

        if not isinstance(payload, dict) or payload.get("status") != _SUCCESS_STATUS:
            status = payload.get("status") if isinstance(payload, dict) else None
            msg = payload.get("msg") if isinstance(payload, dict) else None
            raise UpstreamRejectedError("content_api_status_not_ok", detail=f"path={path} status={status} msg={msg}")
        return payload.get("data")

    async def get_content_by_id(self, content_id: str) -> Article:
        data = await self._get("/client/reader/article/info", {"uuid": content_id})
        if not isinstance(data, dict) or not data:
            raise NotFoundError("Article not found", key_name="id", key=content_id)
        article = Article.from_payload(data)
        if not article.uuid:
            # Detail payloads sometimes omit the uuid they were looked up by.
            article = Article.from_payload({**data, "uuid": content_id})
        return article

    async def get_profile_by_namespace(self, namespace: str) -> CuratorProfile:
        data = await self._get("/client/userHome/userInfo", {"namespace": namespace})
        if not isinstance(data, dict) or not data:
            raise NotFoundError("User not found", key_name="namespace", key=namespace)
        if not data.get("namespace"):
            data = {**data, "namespace": namespace}
        return CuratorProfile.from_payload(data)

    async def get_collections_by_user_id(self, user_id: int, page: int = 1, size: int = 20) -> list[Collection]:
        data = await self._get(
            "/client/userHome/pageMySpaces",
            {"targetUserId": user_id, "pageIndex": page, "pageSize": size},
        )
        return [Collection.from_payload(item) for item in _page_items(data)]

    async def search_by_topic(self, topic: str, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        """Raw search hits; callers pick the fields they aggregate on."""
        data = await self._get("/client/search", {"q": topic, "limit": limit, "offset": offset})
        if not isinstance(data, dict):
            return []
        results = data.get("results")
        return [x for x in results if isinstance(x, dict)] if isinstance(results, list) else []

    async def list_content_page(self, page_index: int, page_size: int) -> ContentPage:
        data = await self._get("/client/home/pageArticle", {"pageIndex": page_index, "pageSize": page_size})
        total = data.get("totalCount") if isinstance(data, dict) else None
        return ContentPage(
            items=tuple(_page_items(data)),
            page_index=page_index,
            page_size=page_size,
            total_count=int(total) if isinstance(total, (int, float)) else None,
        )

    async def get_collection_by_namespace(self, namespace: str) -> Collection:
        data = await self._get(f"/client/article/space/info/{quote(namespace, safe='')}")
        if not isinstance(data, dict) or not data:
            raise NotFoundError("Treasury not found", key_name="namespace", key=namespace)
        if not data.get("namespace"):
            data = {**data, "namespace": namespace}
        return Collection.from_payload(data)

    async def list_collection_content(self, collection_id: int, page: int = 1, size: int = 20) -> list[Article]:
        data = await self._get(
            "/client/article/space/pageArticles",
            {"spaceId": collection_id, "pageIndex": page, "pageSize": size},
        )
        return [Article.from_payload(item) for item in _page_items(data)]
