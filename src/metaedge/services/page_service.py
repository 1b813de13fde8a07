"""Document route orchestration.

For an augmented route: fetch the entity, merge its metadata, then either
serialize it (``?format=json``) or stream the origin document through the
rewrite stages. Metadata failures never block the page: the document is
still delivered with a diagnostic marker in ``<head>``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Mapping

from ..clients.content_api import ContentApiClient
from ..clients.origin import OriginClient, OriginDocument
from ..config.environment import SiteContext
from ..domain.errors import NotFoundError, UpstreamError
from ..domain.models import Article, Collection, CuratorProfile, MergeContext
from ..observability.logger import get_logger
from ..routing import RouteKind, RouteMatch
from ..transform import fragments
from ..transform.stages import BodyInjector, DiagnosticMarker, HeadInjector, TagRemover, TransformStage, build_transformer
from . import structured_data
from .metadata_merger import MetadataMerger
from .response_policy import Audience, ResponseClass, ResponsePolicy

logger = get_logger(__name__)

# Origin headers that describe the origin bytes or are replaced by the
# transformed-document policy (which sets its own Vary).
_STALE_AFTER_REWRITE = ("etag", "last-modified", "cache-control", "vary")


class DocumentState(str, Enum):
    PASSTHROUGH = "PASSTHROUGH"
    REWRITING = "REWRITING"


@dataclass(frozen=True)
class PageFragments:
    head_html: str = ""
    body_html: str = ""


@dataclass
class DocumentResponse:
    state: DocumentState
    status: int
    headers: dict[str, str]
    body: AsyncIterator[bytes]
    document: OriginDocument = field(repr=False)

    async def close(self) -> None:
        await self.document.close()


class PageService:
    def __init__(
        self,
        content: ContentApiClient,
        site: SiteContext,
        *,
        merger: MetadataMerger | None = None,
        home_recent_size: int = 50,
        collection_page_size: int = 20,
    ):
        self._content = content
        self._site = site
        self._merger = merger or MetadataMerger()
        self._home_recent_size = home_recent_size
        self._collection_page_size = collection_page_size

    # --- entity loading ----------------------------------------------------

    async def _load_profile(self, namespace: str) -> tuple[CuratorProfile, list[Collection]]:
        profile = await self._content.get_profile_by_namespace(namespace)
        collections: list[Collection] = []
        if profile.user_id is not None:
            try:
                collections = await self._content.get_collections_by_user_id(
                    profile.user_id, page=1, size=self._collection_page_size
                )
            except UpstreamError as e:
                logger.warning("profile_collections_unavailable", namespace=namespace, error=str(e))
        return profile, collections

    async def _load_collection(self, namespace: str) -> Collection:
        collection = await self._content.get_collection_by_namespace(namespace)
        if collection.collection_id is None:
            return collection
        try:
            articles = await self._content.list_collection_content(
                collection.collection_id, page=1, size=self._collection_page_size
            )
        except UpstreamError as e:
            logger.warning("collection_content_unavailable", namespace=namespace, error=str(e))
            return collection
        return collection.with_articles(tuple(articles))

    async def _load_home(self) -> list[Article]:
        page = await self._content.list_content_page(1, self._home_recent_size)
        return [Article.from_payload(item) for item in page.items]

    # --- JSON --------------------------------------------------------------

    async def entity_json(self, route: RouteMatch) -> dict[str, Any]:
        """Flat JSON-LD document; raises NotFoundError / UpstreamError."""
        key = route.key or ""
        structured = MergeContext.STRUCTURED
        if route.kind == RouteKind.ARTICLE:
            article = await self._content.get_content_by_id(key)
            return structured_data.article_json(article, self._merger.merge_entity(article, structured), self._site)
        if route.kind == RouteKind.PROFILE:
            profile, collections = await self._load_profile(key)
            return structured_data.profile_json(
                profile, self._merger.merge_entity(profile, structured), collections, self._site
            )
        if route.kind == RouteKind.COLLECTION:
            collection = await self._load_collection(key)
            return structured_data.collection_json(
                collection, self._merger.merge_entity(collection, structured), self._site
            )
        raise NotFoundError("No JSON document for this route", key_name="path", key=key)

    # --- HTML --------------------------------------------------------------

    async def page_fragments(self, route: RouteMatch) -> PageFragments:
        """Head/body HTML for an augmented route; raises on fetch failure."""
        key = route.key or ""
        site = self._site
        html_ctx, sd_ctx = MergeContext.HTML, MergeContext.STRUCTURED

        if route.kind == RouteKind.ARTICLE:
            article = await self._content.get_content_by_id(key)
            bundle = self._merger.merge_entity(article, html_ctx)
            graph = structured_data.article_graph(article, self._merger.merge_entity(article, sd_ctx), site)
            return PageFragments(
                head_html=fragments.article_head(article, bundle, site),
                body_html=fragments.json_ld_script(graph) + fragments.article_summary(article, bundle, site),
            )
        if route.kind == RouteKind.PROFILE:
            profile, collections = await self._load_profile(key)
            bundle = self._merger.merge_entity(profile, html_ctx)
            graph = structured_data.profile_graph(
                profile, self._merger.merge_entity(profile, sd_ctx), collections, site
            )
            return PageFragments(
                head_html=fragments.profile_head(profile, bundle, site),
                body_html=fragments.json_ld_script(graph)
                + fragments.profile_summary(profile, bundle, collections, site),
            )
        if route.kind == RouteKind.COLLECTION:
            collection = await self._load_collection(key)
            bundle = self._merger.merge_entity(collection, html_ctx)
            graph = structured_data.collection_graph(collection, self._merger.merge_entity(collection, sd_ctx), site)
            return PageFragments(
                head_html=fragments.collection_head(collection, bundle, site),
                body_html=fragments.json_ld_script(graph) + fragments.collection_summary(collection, bundle, site),
            )
        if route.kind == RouteKind.HOME:
            return PageFragments(body_html=fragments.home_summary(await self._load_home(), site))
        return PageFragments()

    async def stages_for(self, route: RouteMatch) -> list[TransformStage]:
        try:
            parts = await self.page_fragments(route)
        except (UpstreamError, NotFoundError) as e:
            logger.warning("page_metadata_unavailable", route=route.kind.value, key=route.key, error=str(e))
            return [DiagnosticMarker()]
        except Exception:
            # Anything else: serve the origin document untouched.
            logger.exception("page_fragments_failed", route=route.kind.value, key=route.key)
            return []
        if route.kind == RouteKind.HOME:
            # Home keeps the origin's own head tags.
            return [BodyInjector(parts.body_html)]
        return [TagRemover(), HeadInjector(parts.head_html), BodyInjector(parts.body_html)]

    async def serve_document(
        self,
        route: RouteMatch,
        origin: OriginClient,
        *,
        path: str,
        query: str,
        request_headers: Mapping[str, str],
        policy: ResponsePolicy,
        audience: Audience,
    ) -> DocumentResponse:
        document = await origin.fetch(path, query=query, headers=request_headers)
        headers = dict(document.headers)

        if route.augmented and document.is_html and document.status == 200:
            try:
                stages: list[TransformStage] = await self.stages_for(route)
            except BaseException:
                await document.close()
                raise
        else:
            stages = []

        if not stages:
            headers.update(policy.cache_headers(ResponseClass.HTML_PASSTHROUGH, audience))
            return DocumentResponse(
                state=DocumentState.PASSTHROUGH,
                status=document.status,
                headers=headers,
                body=document.iter_chunks(),
                document=document,
            )

        transformer = build_transformer(stages, encoding=document.charset)
        for name in _STALE_AFTER_REWRITE:
            headers.pop(name, None)
        headers.update(policy.cache_headers(ResponseClass.HTML_TRANSFORMED, audience))
        logger.info("document_rewriting", route=route.kind.value, key=route.key, stages=len(stages))
        return DocumentResponse(
            state=DocumentState.REWRITING,
            status=document.status,
            headers=headers,
            body=transformer.transform(document.iter_chunks()),
            document=document,
        )


