"""Framework-agnostic domain models.

Entities are built once per request from content API payloads and never
mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Union


class MergeContext(str, Enum):
    """Where a bundle ends up; controls the body-derived description length."""

    HTML = "HTML"
    STRUCTURED = "STRUCTURED"


def _str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _str_list(value: Any) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(s for s in (_str(v) for v in value) if s)
    return ()


@dataclass(frozen=True)
class AuthorRef:
    namespace: str = ""
    username: str = ""
    avatar_url: str = ""
    user_id: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.username or self.namespace

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["AuthorRef"]:
        if not isinstance(payload, dict):
            return None
        user_id = payload.get("id") or payload.get("userId")
        return cls(
            namespace=_str(payload.get("namespace")),
            username=_str(payload.get("username") or payload.get("userName")),
            avatar_url=_str(payload.get("faceUrl") or payload.get("avatar")),
            user_id=_int(user_id) or None,
        )


@dataclass(frozen=True)
class Article:
    uuid: str
    title: str = ""
    content: str = ""
    description: str = ""
    cover_url: str = ""
    target_url: str = ""
    category: str = ""
    keywords: tuple[str, ...] = ()
    author: Optional[AuthorRef] = None
    collection_namespace: str = ""
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    created_at: Any = None
    updated_at: Any = None
    published_at: Any = None
    seo_data: Any = None
    seo_data_by_ai: Any = None

    @property
    def body(self) -> str:
        return self.content or self.description

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Article":
        author = AuthorRef.from_payload(payload.get("authorInfo") or payload.get("author"))
        if author is None and (payload.get("namespace") or payload.get("userName")):
            author = AuthorRef(
                namespace=_str(payload.get("namespace")),
                username=_str(payload.get("userName")),
                user_id=_int(payload.get("userId")) or None,
            )
        category_info = payload.get("categoryInfo")
        category = category_info.get("name") if isinstance(category_info, dict) else payload.get("category")
        space_info = payload.get("spaceInfo")
        return cls(
            uuid=_str(payload.get("uuid")),
            title=_str(payload.get("title")),
            content=_str(payload.get("content")),
            description=_str(payload.get("description") or payload.get("summary")),
            cover_url=_str(payload.get("coverUrl") or payload.get("coverImage")),
            target_url=_str(payload.get("targetUrl")),
            category=_str(category),
            keywords=_str_list(payload.get("keywords")),
            author=author,
            collection_namespace=_str(space_info.get("namespace")) if isinstance(space_info, dict) else "",
            view_count=_int(payload.get("viewCount")),
            like_count=_int(payload.get("treasureCount") or payload.get("likeCount")),
            comment_count=_int(payload.get("commentCount")),
            created_at=payload.get("createAt") or payload.get("createdAt"),
            updated_at=payload.get("updateAt") or payload.get("updatedAt"),
            published_at=payload.get("publishAt"),
            seo_data=payload.get("seoData"),
            seo_data_by_ai=payload.get("seoDataByAi"),
        )


@dataclass(frozen=True)
class CuratorProfile:
    namespace: str
    user_id: Optional[int] = None
    username: str = ""
    bio: str = ""
    avatar_url: str = ""
    article_count: int = 0
    liked_article_count: int = 0
    seo_data: Any = None
    seo_data_by_ai: Any = None

    @property
    def display_name(self) -> str:
        return self.username or self.namespace

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CuratorProfile":
        stats = payload.get("statistics") if isinstance(payload.get("statistics"), dict) else {}
        return cls(
            namespace=_str(payload.get("namespace")),
            user_id=_int(payload.get("id")) or None,
            username=_str(payload.get("username")),
            bio=_str(payload.get("bio")),
            avatar_url=_str(payload.get("faceUrl")),
            article_count=_int(stats.get("articleCount")),
            liked_article_count=_int(stats.get("likedArticleCount")),
            seo_data=payload.get("seoData"),
            seo_data_by_ai=payload.get("seoDataByAi"),
        )


@dataclass(frozen=True)
class Collection:
    namespace: str
    collection_id: Optional[int] = None
    name: str = ""
    description: str = ""
    cover_url: str = ""
    space_type: int = 0
    article_count: int = 0
    owner: Optional[AuthorRef] = None
    seo_data: Any = None
    seo_data_by_ai: Any = None
    articles: tuple[Article, ...] = ()

    @classmethod
    def from_payload(cls, payload: dict[str, Any], articles: tuple[Article, ...] = ()) -> "Collection":
        return cls(
            namespace=_str(payload.get("namespace")),
            collection_id=_int(payload.get("id")) or None,
            name=_str(payload.get("name")),
            description=_str(payload.get("description")),
            cover_url=_str(payload.get("coverUrl") or payload.get("faceUrl")),
            space_type=_int(payload.get("spaceType")),
            article_count=_int(payload.get("articleCount")),
            owner=AuthorRef.from_payload(payload.get("userInfo")),
            seo_data=payload.get("seoData"),
            seo_data_by_ai=payload.get("seoDataByAi"),
            articles=articles,
        )

    def with_articles(self, articles: tuple[Article, ...]) -> "Collection":
        return replace(self, articles=articles)


ContentEntity = Union[Article, CuratorProfile, Collection]


@dataclass(frozen=True)
class ContentPage:
    items: tuple[dict[str, Any], ...]
    page_index: int
    page_size: int
    total_count: Optional[int] = None


@dataclass(frozen=True)
class MetadataBundle:
    """Authoritative metadata for one entity.

    Optional fields stay ``None``/empty and are omitted by renderers.
    """

    title: str = ""
    description: str = ""
    keywords: tuple[str, ...] = ()
    image: Optional[str] = None
    schema_type: str = "Article"
    author: Optional[str] = None
    published_at: Optional[str] = None
    modified_at: Optional[str] = None
    audience: Optional[str] = None
    facts: tuple[str, ...] = ()
    key_takeaways: tuple[str, ...] = ()


@dataclass(frozen=True)
class ContentRef:
    uuid: str
    title: str
    url: str


@dataclass
class CuratorAggregate:
    """Per-request accumulator keyed by curator namespace."""

    namespace: str
    username: str
    avatar_url: str = ""
    matching_content: list[ContentRef] = field(default_factory=list)
    treasuries: set[str] = field(default_factory=set)
    category_counts: dict[str, int] = field(default_factory=dict)
    # dict keeps first-seen order; values unused
    keywords: dict[str, None] = field(default_factory=dict)
    _seen_keys: set[str] = field(default_factory=set, repr=False)

    @property
    def matching_count(self) -> int:
        return len(self.matching_content)

    def add(self, ref: ContentRef, *, treasury: str = "", category: str = "", keywords: tuple[str, ...] = ()) -> bool:
        """Fold one search hit in; returns False for a duplicate content item."""
        key = ref.uuid or f"title:{ref.title}"
        if key in self._seen_keys:
            return False
        self._seen_keys.add(key)
        self.matching_content.append(ref)
        if treasury:
            self.treasuries.add(treasury)
        if category:
            self.category_counts[category] = self.category_counts.get(category, 0) + 1
        for kw in keywords:
            self.keywords.setdefault(kw, None)
        return True


@dataclass(frozen=True)
class MatchingCollection:
    name: str
    namespace: str
    url: str
    json_url: str
    article_count: int
    description: Optional[str]
    keywords: tuple[str, ...]
    key_themes: tuple[str, ...]
    is_relevant: bool


@dataclass(frozen=True)
class RankedCurator:
    aggregate: CuratorAggregate
    relevance_score: float
    profile: Optional[CuratorProfile] = None
    collections: tuple[MatchingCollection, ...] = ()


@dataclass(frozen=True)
class DiscoveryResult:
    topic: str
    curators: tuple[RankedCurator, ...]
    total_curators: int
    total_results: int


@dataclass(frozen=True)
class SitemapEntry:
    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[str] = None
