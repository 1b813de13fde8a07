"""schema.org JSON-LD builders.

Two shapes per entity:
- ``*_graph``: list of JSON-LD nodes injected into the page body
- ``*_json``: flat document served for ``?format=json``

Inputs are merged ``MetadataBundle`` values (structured-data context), so
every builder only decides layout; absent values are dropped by ``_compact``.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from ..config.environment import SiteContext
from ..domain.models import Article, AuthorRef, Collection, CuratorProfile, MetadataBundle
from ..utils.time import to_iso_datetime, utc_now_iso

SCHEMA_CONTEXT = "https://schema.org"

_QUESTION_PATTERNS = (
    "What should I know about {title}?",
    "What are the key benefits of {title}?",
    "Why is {title} recommended?",
    "What makes {title} unique?",
)


def _compact(node: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None or an empty string/list/dict (zero stays)."""
    return {k: v for k, v in node.items() if v is not None and v != "" and v != [] and v != {}}


def _interaction(kind: str, count: int, description: str | None = None) -> dict[str, Any]:
    return _compact(
        {
            "@type": "InteractionCounter",
            "interactionType": f"{SCHEMA_CONTEXT}/{kind}",
            "userInteractionCount": count,
            "description": description,
        }
    )


def _breadcrumbs(items: Iterable[tuple[str, str]]) -> dict[str, Any]:
    return {
        "@context": SCHEMA_CONTEXT,
        "@type": "BreadcrumbList",
        "itemListElement": [
            {"@type": "ListItem", "position": i, "name": name, "item": url}
            for i, (name, url) in enumerate(items, start=1)
        ],
    }


def _publisher(site: SiteContext, *, with_logo: bool = True) -> dict[str, Any]:
    node: dict[str, Any] = {"@type": "Organization", "name": site.name, "url": site.base_url}
    if with_logo:
        node["logo"] = {"@type": "ImageObject", "url": site.logo_url}
    return node


def _author_url(author: Optional[AuthorRef], site: SiteContext) -> Optional[str]:
    if author is None or not author.namespace:
        return None
    return site.profile_url(author.namespace)


def generate_question(takeaway: str, title: str, index: int) -> str:
    """Phrase a key takeaway as the question it answers."""
    lower = takeaway.lower()
    if "best" in lower or "great for" in lower:
        return f"What is {title} best for?"
    if "feature" in lower or "include" in lower:
        return f"What features does {title} have?"
    if "free" in lower or "cost" in lower:
        return f"Is {title} free to use?"
    if "use" in lower or "work" in lower:
        return f"How does {title} work?"
    return _QUESTION_PATTERNS[index % len(_QUESTION_PATTERNS)].format(title=title)


def faq_page(title: str, takeaways: Iterable[str]) -> Optional[dict[str, Any]]:
    entries = [t for t in takeaways if t]
    if not entries:
        return None
    return {
        "@context": SCHEMA_CONTEXT,
        "@type": "FAQPage",
        "mainEntity": [
            {
                "@type": "Question",
                "name": generate_question(t, title, i),
                "acceptedAnswer": {"@type": "Answer", "text": t},
            }
            for i, t in enumerate(entries)
        ],
    }


# --- articles -------------------------------------------------------------


def article_graph(article: Article, bundle: MetadataBundle, site: SiteContext) -> list[dict[str, Any]]:
    url = site.work_url(article.uuid)
    main = _compact(
        {
            "@context": SCHEMA_CONTEXT,
            "@type": bundle.schema_type,
            "name": bundle.title,
            "headline": bundle.title,
            "description": bundle.description,
            "url": url,
            "image": bundle.image or site.default_image,
            "datePublished": bundle.published_at,
            "dateModified": bundle.modified_at,
            "keywords": ", ".join(bundle.keywords),
            "articleSection": list(bundle.key_takeaways),
            "about": bundle.audience,
            "abstract": ". ".join(bundle.facts),
            "genre": article.category,
            "isBasedOn": article.target_url,
            "author": _compact(
                {
                    "@type": "Person",
                    "name": bundle.author,
                    "url": _author_url(article.author, site),
                }
            )
            if bundle.author
            else None,
            "publisher": _publisher(site),
            "mainEntityOfPage": {"@type": "WebPage", "@id": url},
            "interactionStatistic": [
                _interaction(kind, count)
                for kind, count in (("LikeAction", article.like_count), ("CommentAction", article.comment_count))
                if count
            ],
        }
    )
    graph = [
        main,
        _breadcrumbs(
            [
                ("Home", site.base_url),
                ("Discovery", site.url("/discovery")),
                (bundle.title or article.uuid, url),
            ]
        ),
    ]
    faq = faq_page(bundle.title, bundle.key_takeaways)
    if faq is not None:
        graph.append(faq)
    return graph


def article_json(article: Article, bundle: MetadataBundle, site: SiteContext) -> dict[str, Any]:
    author = article.author
    return {
        "@context": SCHEMA_CONTEXT,
        "@type": bundle.schema_type,
        "id": article.uuid,
        "title": bundle.title,
        "url": site.work_url(article.uuid),
        "description": bundle.description or None,
        "keywords": list(bundle.keywords),
        "image": bundle.image or site.default_image,
        "originalSource": article.target_url or None,
        "curationNote": article.content or None,
        "category": article.category or None,
        "author": {
            "name": bundle.author,
            "namespace": author.namespace if author and author.namespace else None,
            "url": _author_url(author, site),
        },
        "stats": {
            "views": article.view_count,
            "treasures": article.like_count,
            "comments": article.comment_count,
        },
        "dates": {"published": bundle.published_at, "modified": bundle.modified_at},
        "targetAudience": bundle.audience,
        "facts": list(bundle.facts),
        "keyTakeaways": list(bundle.key_takeaways),
        "fetchedAt": utc_now_iso(),
    }


# --- curator profiles -----------------------------------------------------


def _collection_list_item(collection: Collection, index: int, owner_name: str, site: SiteContext) -> dict[str, Any]:
    url = site.collection_url(collection.namespace)
    return {
        "@type": "ListItem",
        "position": index,
        "item": {
            "@type": "Collection",
            "@id": url,
            "name": collection.name or "Unnamed Treasury",
            "url": url,
            "numberOfItems": collection.article_count,
            "description": (
                f"A curated collection with {collection.article_count} treasures. "
                f"Visit this treasury to see {owner_name}'s curated content and curation notes."
            ),
        },
    }


def profile_graph(
    profile: CuratorProfile,
    bundle: MetadataBundle,
    collections: Iterable[Collection],
    site: SiteContext,
) -> list[dict[str, Any]]:
    url = site.profile_url(profile.namespace)
    name = profile.display_name
    person = _compact(
        {
            "@context": SCHEMA_CONTEXT,
            "@type": bundle.schema_type,
            "@id": f"{url}#person",
            "name": name,
            "url": url,
            "identifier": profile.namespace,
            "description": bundle.description or f"{name} is a curator on {site.name}.",
            "image": bundle.image or site.default_image,
            "keywords": ", ".join(bundle.keywords),
            "sameAs": [f"{site.base_url}/u/{profile.namespace}"],
            "interactionStatistic": [
                _interaction("WriteAction", profile.article_count, "Number of curations created"),
                _interaction("LikeAction", profile.liked_article_count, "Number of items treasured"),
            ],
        }
    )
    owned = [c for c in collections if c.namespace]
    if owned:
        person["owns"] = {
            "@type": "ItemList",
            "name": f"{name}'s Treasuries",
            "numberOfItems": len(owned),
            "itemListElement": [
                _collection_list_item(c, i, name, site) for i, c in enumerate(owned, start=1)
            ],
        }
    return [person, _breadcrumbs([(site.name, site.base_url), (name, url)])]


def profile_json(
    profile: CuratorProfile,
    bundle: MetadataBundle,
    collections: Iterable[Collection],
    site: SiteContext,
) -> dict[str, Any]:
    return {
        "@context": SCHEMA_CONTEXT,
        "@type": bundle.schema_type,
        "namespace": profile.namespace,
        "name": profile.display_name,
        "url": site.profile_url(profile.namespace),
        "description": bundle.description or None,
        "keywords": list(bundle.keywords),
        "image": bundle.image or site.default_image,
        "stats": {
            "curations": profile.article_count,
            "treasured": profile.liked_article_count,
        },
        "treasuries": [
            {
                "name": c.name or None,
                "namespace": c.namespace,
                "url": site.collection_url(c.namespace),
                "jsonUrl": f"{site.collection_url(c.namespace)}?format=json",
                "articleCount": c.article_count,
            }
            for c in collections
            if c.namespace
        ],
        "fetchedAt": utc_now_iso(),
    }


# --- collections ----------------------------------------------------------


def _collection_part(article: Article, index: int, site: SiteContext) -> dict[str, Any]:
    url = site.work_url(article.uuid)
    return _compact(
        {
            "@type": "CreativeWork",
            "@id": url,
            "position": index,
            "name": article.title,
            "url": url,
            "description": article.content or None,
            "mainEntityOfPage": article.target_url or None,
            "genre": article.category or None,
            "datePublished": to_iso_datetime(article.published_at) or to_iso_datetime(article.created_at),
            "interactionStatistic": _interaction("LikeAction", article.like_count),
        }
    )


def collection_graph(collection: Collection, bundle: MetadataBundle, site: SiteContext) -> list[dict[str, Any]]:
    url = site.collection_url(collection.namespace)
    owner = collection.owner
    owner_name = owner.display_name if owner and owner.display_name else "Curator"
    owner_url = _author_url(owner, site)
    node = _compact(
        {
            "@context": SCHEMA_CONTEXT,
            "@type": bundle.schema_type,
            "@id": url,
            "name": bundle.title or "Treasury",
            "url": url,
            "description": bundle.description,
            "image": bundle.image or site.default_image,
            "keywords": ", ".join(bundle.keywords),
            "numberOfItems": collection.article_count or len(collection.articles),
            "author": _compact(
                {
                    "@type": "Person",
                    "@id": f"{owner_url}#person" if owner_url else None,
                    "name": owner_name,
                    "url": owner_url,
                    "image": owner.avatar_url if owner else None,
                }
            ),
            "publisher": _publisher(site, with_logo=False),
            "hasPart": [
                _collection_part(a, i, site) for i, a in enumerate(collection.articles, start=1) if a.uuid
            ],
        }
    )
    crumbs = [(site.name, site.base_url)]
    if owner_url:
        crumbs.append((owner_name, owner_url))
    crumbs.append((bundle.title or "Treasury", url))
    return [node, _breadcrumbs(crumbs)]


def collection_json(collection: Collection, bundle: MetadataBundle, site: SiteContext) -> dict[str, Any]:
    owner = collection.owner
    return {
        "@context": SCHEMA_CONTEXT,
        "@type": bundle.schema_type,
        "namespace": collection.namespace,
        "name": bundle.title or None,
        "url": site.collection_url(collection.namespace),
        "description": bundle.description or None,
        "keywords": list(bundle.keywords),
        "image": bundle.image or site.default_image,
        "articleCount": collection.article_count or len(collection.articles),
        "curator": {
            "name": owner.display_name if owner and owner.display_name else None,
            "namespace": owner.namespace if owner and owner.namespace else None,
            "url": _author_url(owner, site),
        },
        "articles": [
            {
                "id": a.uuid,
                "title": a.title,
                "url": site.work_url(a.uuid),
                "curationNote": a.content or None,
                "originalSource": a.target_url or None,
                "category": a.category or None,
            }
            for a in collection.articles
            if a.uuid
        ],
        "fetchedAt": utc_now_iso(),
    }
