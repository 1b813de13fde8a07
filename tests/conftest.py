from __future__ import annotations

from typing import Any, AsyncIterator, Optional

import pytest

from metaedge.config.environment import SiteContext
from metaedge.domain.errors import NotFoundError
from metaedge.domain.models import Article, Collection, ContentPage, CuratorProfile


class FakeContentApi:
    """In-memory stand-in for ContentApiClient.

    ``errors`` maps a method name to the exception it should raise.
    ``pages`` maps a page index to a list of item payloads or an exception.
    """

    def __init__(
        self,
        *,
        articles: Optional[dict[str, dict[str, Any]]] = None,
        profiles: Optional[dict[str, dict[str, Any]]] = None,
        collections_by_user: Optional[dict[int, list[dict[str, Any]]]] = None,
        collections: Optional[dict[str, dict[str, Any]]] = None,
        collection_content: Optional[dict[int, list[dict[str, Any]]]] = None,
        search_results: Optional[list[dict[str, Any]]] = None,
        pages: Optional[dict[int, Any]] = None,
        total_count: Optional[int] = None,
        errors: Optional[dict[str, Exception]] = None,
    ):
        self.articles = articles or {}
        self.profiles = profiles or {}
        self.collections_by_user = collections_by_user or {}
        self.collections = collections or {}
        self.collection_content = collection_content or {}
        self.search_results = search_results or []
        self.pages = pages or {}
        self.total_count = total_count
        self.errors = errors or {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.errors:
            raise self.errors[name]

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for n, args in self.calls if n == name]

    async def get_content_by_id(self, content_id: str) -> Article:
        self._record("get_content_by_id", content_id)
        if content_id not in self.articles:
            raise NotFoundError("Article not found", key_name="id", key=content_id)
        return Article.from_payload({"uuid": content_id, **self.articles[content_id]})

    async def get_profile_by_namespace(self, namespace: str) -> CuratorProfile:
        self._record("get_profile_by_namespace", namespace)
        if namespace not in self.profiles:
            raise NotFoundError("User not found", key_name="namespace", key=namespace)
        return CuratorProfile.from_payload({"namespace": namespace, **self.profiles[namespace]})

    async def get_collections_by_user_id(self, user_id: int, page: int = 1, size: int = 20) -> list[Collection]:
        self._record("get_collections_by_user_id", user_id, page, size)
        return [Collection.from_payload(c) for c in self.collections_by_user.get(user_id, [])]

    async def search_by_topic(self, topic: str, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        self._record("search_by_topic", topic, limit, offset)
        return list(self.search_results)

    async def list_content_page(self, page_index: int, page_size: int) -> ContentPage:
        self._record("list_content_page", page_index, page_size)
        items = self.pages.get(page_index, [])
        if isinstance(items, Exception):
            raise items
        return ContentPage(
            items=tuple(items),
            page_index=page_index,
            page_size=page_size,
            total_count=self.total_count,
        )

    async def get_collection_by_namespace(self, namespace: str) -> Collection:
        self._record("get_collection_by_namespace", namespace)
        if namespace not in self.collections:
            raise NotFoundError("Treasury not found", key_name="namespace", key=namespace)
        return Collection.from_payload({"namespace": namespace, **self.collections[namespace]})

    async def list_collection_content(self, collection_id: int, page: int = 1, size: int = 20) -> list[Article]:
        self._record("list_collection_content", collection_id, page, size)
        return [Article.from_payload(a) for a in self.collection_content.get(collection_id, [])]


class FakeDocument:
    def __init__(self, body: bytes, *, status: int = 200, content_type: str = "text/html; charset=utf-8", chunk: int = 7, headers: Optional[dict[str, str]] = None):
        self.status = status
        self.headers = {"content-type": content_type, **(headers or {})}
        self.charset = "utf-8"
        self._body = body
        self._chunk = chunk
        self.closed = False

    @property
    def content_type(self) -> str:
        return self.headers["content-type"]

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        for i in range(0, len(self._body), self._chunk):
            yield self._body[i : i + self._chunk]

    async def close(self) -> None:
        self.closed = True


class FakeOrigin:
    """Serves canned documents by path; unknown paths get ``default``."""

    def __init__(self, documents: Optional[dict[str, FakeDocument]] = None, default: Optional[FakeDocument] = None):
        self.documents = documents or {}
        self.default = default
        self.requests: list[str] = []

    async def fetch(self, path: str, *, query: str = "", headers: Any = None) -> FakeDocument:
        self.requests.append(path)
        if path in self.documents:
            return self.documents[path]
        if self.default is None:
            return FakeDocument(b"not found", status=404, content_type="text/plain")
        return self.default


SPA_SHELL = (
    "<!DOCTYPE html>\n"
    '<html lang="en"><head><meta charset="utf-8">'
    '<meta name="viewport" content="width=device-width, initial-scale=1">'
    "<title>Copus</title>"
    '<meta name="description" content="Default description">'
    '<meta property="og:title" content="Copus">'
    '<link rel="stylesheet" href="/assets/app.css">'
    "</head><body><div id=\"root\"></div>"
    '<script type="module" src="/assets/app.js"></script></body></html>'
)


@pytest.fixture
def site() -> SiteContext:
    return SiteContext(
        base_url="https://copus.network",
        name="Copus",
        tagline="The Internet Treasure Map",
        default_image="https://copus.network/og-image.jpg",
        logo_url="https://copus.network/logo.png",
        twitter_site="@copus_network",
    )
