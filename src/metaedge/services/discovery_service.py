"""Curator discovery (topic -> ranked curators).

Flow:
- one search call for the topic (capped result count)
- fold hits into per-curator aggregates keyed by author namespace
- stable sort by match count, truncate to the requested limit
- enrich only the retained curators, concurrently (profile, then collections)

Enrichment failures degrade a single curator; they never fail the request.
"""

from __future__ import annotations

import asyncio
import math
from typing import Any, Iterable, Optional

from ..clients.content_api import ContentApiClient
from ..config.environment import SiteContext
from ..domain.errors import NotFoundError, UpstreamError, UpstreamRejectedError, ValidationError
from ..domain.models import (
    Article,
    AuthorRef,
    Collection,
    ContentRef,
    CuratorAggregate,
    CuratorProfile,
    DiscoveryResult,
    MatchingCollection,
    RankedCurator,
)
from ..models.seo import parse_seo_payload
from ..observability.logger import get_logger
from ..utils.time import utc_now_iso

logger = get_logger(__name__)

DISCOVERY_USAGE = "/api/discover?topic=AI+tools"
DISCOVERY_EXAMPLES = (
    "/api/discover?topic=crypto",
    "/api/discover?topic=personal+growth",
    "/api/discover?topic=productivity",
    "/api/discover?topic=AI",
)

_SPACE_TYPE_LABELS = {1: "{username}'s Treasury", 2: "{username}'s Curations"}


def parse_limit(raw: Any, *, default: int = 10, maximum: int = 20) -> int:
    """Caller-supplied limit clamped to [1, maximum]; unparseable -> default."""
    try:
        value = int(str(raw).strip()) if raw is not None and str(raw).strip() else default
    except ValueError:
        value = default
    return max(1, min(value, maximum))


def relevance_score(matching: int, total: int) -> float:
    """matching / total, rounded half-up to two decimals."""
    ratio = matching / max(total, 1)
    return math.floor(ratio * 100 + 0.5) / 100


def aggregate_hits(hits: Iterable[dict[str, Any]], site: SiteContext) -> dict[str, CuratorAggregate]:
    """Fold raw search hits into aggregates in first-encountered order."""
    curators: dict[str, CuratorAggregate] = {}
    for hit in hits:
        author = AuthorRef.from_payload(hit.get("authorInfo") or hit.get("author"))
        if author is None or not author.namespace:
            continue
        article = Article.from_payload(hit)
        agg = curators.get(author.namespace)
        if agg is None:
            agg = CuratorAggregate(
                namespace=author.namespace,
                username=author.username or author.namespace,
                avatar_url=author.avatar_url,
            )
            curators[author.namespace] = agg
        agg.add(
            ContentRef(uuid=article.uuid, title=article.title, url=site.work_url(article.uuid) if article.uuid else ""),
            treasury=article.collection_namespace,
            category=article.category,
            keywords=article.keywords,
        )
    return curators


def _matches_topic(topic_l: str, *texts: str) -> bool:
    return any(topic_l in t.lower() for t in texts if t)


class DiscoveryService:
    def __init__(
        self,
        client: ContentApiClient,
        site: SiteContext,
        *,
        search_cap: int = 100,
        default_limit: int = 10,
        max_limit: int = 20,
        collections_page_size: int = 20,
        max_collections: int = 5,
    ):
        self._client = client
        self._site = site
        self._search_cap = search_cap
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._collections_page_size = collections_page_size
        self._max_collections = max_collections

    async def discover(self, topic: str | None, limit: Any = None) -> DiscoveryResult:
        topic = (topic or "").strip()
        if not topic:
            raise ValidationError(
                "Missing topic parameter",
                examples=list(DISCOVERY_EXAMPLES),
                usage=DISCOVERY_USAGE,
            )
        size = parse_limit(limit, default=self._default_limit, maximum=self._max_limit)

        try:
            hits = await self._client.search_by_topic(topic, limit=self._search_cap)
        except UpstreamRejectedError as e:
            # A refused search reads as "no matches"; transport and HTTP failures still surface.
            logger.warning("discovery_search_rejected", topic=topic, error=str(e), detail=e.info.detail)
            hits = []
        aggregates = aggregate_hits(hits, self._site)
        total_results = len(hits)

        # sorted() is stable: ties keep first-encountered order
        ranked = sorted(aggregates.values(), key=lambda a: a.matching_count, reverse=True)[:size]
        enriched = await asyncio.gather(*(self._enrich(agg, topic, total_results) for agg in ranked))

        logger.info(
            "discovery_completed",
            topic=topic,
            total_results=total_results,
            total_curators=len(aggregates),
            returned=len(enriched),
        )
        return DiscoveryResult(
            topic=topic,
            curators=tuple(enriched),
            total_curators=len(aggregates),
            total_results=total_results,
        )

    async def _enrich(self, agg: CuratorAggregate, topic: str, total_results: int) -> RankedCurator:
        score = relevance_score(agg.matching_count, total_results)
        try:
            profile = await self._client.get_profile_by_namespace(agg.namespace)
        except (UpstreamError, NotFoundError) as e:
            logger.warning("discovery_profile_unavailable", namespace=agg.namespace, error=str(e))
            return RankedCurator(aggregate=agg, relevance_score=score)

        collections: tuple[MatchingCollection, ...] = ()
        if profile.user_id is not None:
            try:
                raw = await self._client.get_collections_by_user_id(
                    profile.user_id, page=1, size=self._collections_page_size
                )
                collections = self.matching_collections(raw, profile, topic)
            except (UpstreamError, NotFoundError) as e:
                logger.warning("discovery_collections_unavailable", namespace=agg.namespace, error=str(e))
        return RankedCurator(aggregate=agg, relevance_score=score, profile=profile, collections=collections)

    def matching_collections(
        self, collections: Iterable[Collection], profile: CuratorProfile, topic: str
    ) -> tuple[MatchingCollection, ...]:
        topic_l = topic.lower()
        username = profile.display_name
        out: list[MatchingCollection] = []
        for c in collections:
            seo = parse_seo_payload(c.seo_data_by_ai)
            description = seo.description or c.description or None
            relevant = _matches_topic(topic_l, c.name, description or "", *seo.keywords, *seo.key_themes)
            if not relevant and c.article_count <= 0:
                continue
            label = _SPACE_TYPE_LABELS.get(c.space_type)
            url = self._site.collection_url(c.namespace)
            out.append(
                MatchingCollection(
                    name=label.format(username=username) if label else c.name,
                    namespace=c.namespace,
                    url=url,
                    json_url=f"{url}?format=json",
                    article_count=c.article_count,
                    description=description,
                    keywords=tuple(seo.keywords[:5]),
                    key_themes=tuple(seo.key_themes[:3]),
                    is_relevant=relevant,
                )
            )
        out.sort(key=lambda m: not m.is_relevant)
        return tuple(out[: self._max_collections])

    # --- rendering ---------------------------------------------------------

    def render(self, result: DiscoveryResult) -> dict[str, Any]:
        site = self._site
        topic = result.topic
        if result.curators:
            description = (
                f'Human curators on {site.name} with expertise in "{topic}". '
                "Each curator has treasuries containing curated content on this topic."
            )
        else:
            description = f'No curators found for "{topic}". Try a different search term.'
        return {
            "@context": "https://schema.org",
            "@type": "ItemList",
            "name": f"Curators for: {topic}",
            "description": description,
            "query": topic,
            "numberOfItems": len(result.curators),
            "totalMatches": result.total_curators,
            "itemListElement": [
                {"@type": "ListItem", "position": i, "item": self._render_curator(c)}
                for i, c in enumerate(result.curators, start=1)
            ],
            "_aiHints": {
                "usage": "These curators have demonstrated interest and expertise in this topic through their curations.",
                "nextSteps": [
                    "Visit url for the curator profile with all treasuries",
                    "Visit matchingTreasuries[].jsonUrl for curated content on this topic as JSON",
                    "Append ?format=json to any /work/{id} URL for structured content data",
                ],
                "relatedEndpoints": {"sitemap": site.url("/sitemap.xml")},
            },
            "fetchedAt": utc_now_iso(),
        }

    def _render_curator(self, curator: RankedCurator) -> dict[str, Any]:
        agg = curator.aggregate
        profile: Optional[CuratorProfile] = curator.profile
        top_categories = sorted(agg.category_counts.items(), key=lambda kv: kv[1], reverse=True)[:3]
        return {
            "@type": "Person",
            "name": (profile.display_name if profile else "") or agg.username,
            "namespace": agg.namespace,
            "url": self._site.profile_url(agg.namespace),
            "shortUrl": f"{self._site.base_url}/u/{agg.namespace}",
            "avatar": (profile.avatar_url if profile else "") or agg.avatar_url or None,
            "bio": (profile.bio if profile else "") or None,
            "stats": {
                "totalCurations": profile.article_count if profile else 0,
                "matchingCurations": agg.matching_count,
                "relevanceScore": curator.relevance_score,
            },
            "topCategories": [{"name": name, "count": count} for name, count in top_categories],
            "keywords": list(agg.keywords)[:10],
            "matchingTreasuries": [
                {
                    "name": m.name,
                    "namespace": m.namespace,
                    "url": m.url,
                    "jsonUrl": m.json_url,
                    "articleCount": m.article_count,
                    "description": m.description,
                    "keywords": list(m.keywords),
                    "keyThemes": list(m.key_themes),
                    "isRelevant": m.is_relevant,
                }
                for m in curator.collections
            ],
            "sampleCurations": [
                {"title": ref.title, "uuid": ref.uuid, "url": ref.url} for ref in agg.matching_content[:3]
            ],
        }
