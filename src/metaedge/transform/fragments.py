"""HTML fragments injected by the transform stages.

Tags are built with BeautifulSoup so attribute values and text are escaped
by the serializer. Missing values are skipped, never written as empty
attributes.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from bs4 import BeautifulSoup, Tag
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

from ..config.environment import SiteContext
from ..domain.models import Article, Collection, CuratorProfile, MetadataBundle
from ..utils.text import json_for_script

HIDDEN_STYLE = "position:absolute;left:-9999px;top:0;width:1px;height:1px;overflow:hidden;"


class _InjectedMarkupFormatter(HTMLFormatter):
    """Minimal escaping, attributes in the order they were set, ``<meta ...>`` void tags."""

    def __init__(self) -> None:
        super().__init__(entity_substitution=EntitySubstitution.substitute_xml, void_element_close_prefix=None)

    def attributes(self, tag: Tag):
        return list(tag.attrs.items())


_FORMATTER = _InjectedMarkupFormatter()


class _Builder:
    """Collects tags built against one throwaway soup."""

    def __init__(self) -> None:
        self._soup = BeautifulSoup("", "lxml")
        self.tags: list[Tag] = []

    def tag(self, tag_name: str, text: Optional[str] = None, attrs: Optional[dict[str, str]] = None, **kw: str) -> Tag:
        merged = dict(attrs or {})
        merged.update({k.rstrip("_").replace("_", "-"): v for k, v in kw.items()})
        el = self._soup.new_tag(tag_name, attrs=merged)
        if text:
            el.string = text
        return el

    def add(self, tag: Tag) -> Tag:
        self.tags.append(tag)
        return tag

    def meta(self, key: str, name: str, content: Optional[str]) -> None:
        if content:
            self.add(self.tag("meta", attrs={key: name, "content": content}))

    def render(self) -> str:
        return "".join(t.decode(formatter=_FORMATTER) for t in self.tags)


# --- head -----------------------------------------------------------------


def _head(
    bundle: MetadataBundle,
    site: SiteContext,
    *,
    url: str,
    og_type: str,
    title: str,
    twitter_card: str = "summary_large_image",
    extra: Iterable[tuple[str, Optional[str]]] = (),
) -> str:
    b = _Builder()
    image = bundle.image or site.default_image

    b.add(b.tag("title", title))
    b.meta("name", "description", bundle.description)
    b.meta("name", "keywords", ", ".join(bundle.keywords))
    b.add(b.tag("link", rel="canonical", href=url))

    b.meta("property", "og:type", og_type)
    b.meta("property", "og:site_name", site.name)
    b.meta("property", "og:title", bundle.title)
    b.meta("property", "og:description", bundle.description)
    b.meta("property", "og:image", image)
    b.meta("property", "og:url", url)

    b.meta("name", "twitter:card", twitter_card)
    b.meta("name", "twitter:site", site.twitter_site)
    b.meta("name", "twitter:title", bundle.title)
    b.meta("name", "twitter:description", bundle.description)
    b.meta("name", "twitter:image", image)

    for prop, value in extra:
        b.meta("property", prop, value)
    return b.render()


def _page_title(title: str, site: SiteContext) -> str:
    return f"{title} - {site.name}" if title else site.name


def article_head(article: Article, bundle: MetadataBundle, site: SiteContext) -> str:
    return _head(
        bundle,
        site,
        url=site.work_url(article.uuid),
        og_type="article",
        title=_page_title(bundle.title, site),
        extra=(
            ("article:author", bundle.author),
            ("article:published_time", bundle.published_at),
            ("article:modified_time", bundle.modified_at),
            ("article:section", article.category or None),
        ),
    )


def profile_head(profile: CuratorProfile, bundle: MetadataBundle, site: SiteContext) -> str:
    return _head(
        bundle,
        site,
        url=site.profile_url(profile.namespace),
        og_type="profile",
        title=_page_title(bundle.title, site),
        twitter_card="summary",
        extra=(("profile:username", profile.namespace),),
    )


def collection_head(collection: Collection, bundle: MetadataBundle, site: SiteContext) -> str:
    return _head(
        bundle,
        site,
        url=site.collection_url(collection.namespace),
        og_type="website",
        title=_page_title(bundle.title, site),
    )


def diagnostic_marker() -> str:
    b = _Builder()
    b.meta("name", "seo-worker", "no-data")
    return b.render()


# --- body -----------------------------------------------------------------


def json_ld_script(graph: Any) -> str:
    return f'<script type="application/ld+json">{json_for_script(graph)}</script>'


def _hidden(b: _Builder, block_id: str) -> Tag:
    return b.add(b.tag("div", id=block_id, style=HIDDEN_STYLE))


def _list(b: _Builder, heading: str, items: Iterable[str]) -> Optional[Tag]:
    entries = [i for i in items if i]
    if not entries:
        return None
    section = b.tag("section")
    section.append(b.tag("h2", heading))
    ul = b.tag("ul")
    for entry in entries:
        ul.append(b.tag("li", entry))
    section.append(ul)
    return section


def _link(b: _Builder, href: str, text: str) -> Tag:
    return b.tag("a", text or href, href=href)


def article_summary(article: Article, bundle: MetadataBundle, site: SiteContext) -> str:
    b = _Builder()
    root = _hidden(b, "ssr-article")
    node = b.tag("article")
    node.append(b.tag("h1", bundle.title))
    if bundle.description:
        node.append(b.tag("p", bundle.description))
    if bundle.author:
        by = b.tag("p", "Curated by ")
        if article.author and article.author.namespace:
            by.append(_link(b, site.profile_url(article.author.namespace), bundle.author))
        else:
            by.append(bundle.author)
        node.append(by)
    if article.target_url:
        src = b.tag("p", "Original source: ")
        src.append(_link(b, article.target_url, article.target_url))
        node.append(src)
    if article.content and article.content != bundle.description:
        node.append(b.tag("p", article.content))
    for section in (
        _list(b, "Key takeaways", bundle.key_takeaways),
        _list(b, "Facts", bundle.facts),
    ):
        if section is not None:
            node.append(section)
    if bundle.keywords:
        node.append(b.tag("p", f"Keywords: {', '.join(bundle.keywords)}"))
    root.append(node)
    return b.render()


def profile_summary(
    profile: CuratorProfile,
    bundle: MetadataBundle,
    collections: Iterable[Collection],
    site: SiteContext,
) -> str:
    b = _Builder()
    root = _hidden(b, "ssr-profile")
    root.append(b.tag("h1", f"{profile.display_name} (@{profile.namespace})"))
    if bundle.description:
        root.append(b.tag("p", bundle.description))
    root.append(
        b.tag("p", f"{profile.article_count} curations, {profile.liked_article_count} treasured items on {site.name}.")
    )
    owned = [c for c in collections if c.namespace]
    if owned:
        section = b.tag("section")
        section.append(b.tag("h2", "Treasuries"))
        ul = b.tag("ul")
        for c in owned:
            li = b.tag("li")
            li.append(_link(b, site.collection_url(c.namespace), c.name or c.namespace))
            li.append(f" ({c.article_count} treasures)")
            ul.append(li)
        section.append(ul)
        root.append(section)
    return b.render()


def collection_summary(collection: Collection, bundle: MetadataBundle, site: SiteContext) -> str:
    b = _Builder()
    root = _hidden(b, "ssr-treasury")
    root.append(b.tag("h1", bundle.title or "Treasury"))
    owner = collection.owner
    if owner and owner.display_name:
        by = b.tag("p", "Curated by ")
        if owner.namespace:
            by.append(_link(b, site.profile_url(owner.namespace), owner.display_name))
        else:
            by.append(owner.display_name)
        root.append(by)
    if bundle.description:
        root.append(b.tag("p", bundle.description))
    items = [a for a in collection.articles if a.uuid]
    if items:
        ol = b.tag("ol")
        for a in items:
            li = b.tag("li")
            li.append(_link(b, site.work_url(a.uuid), a.title))
            if a.content:
                li.append(b.tag("p", a.content))
            ol.append(li)
        root.append(ol)
    return b.render()


def home_summary(articles: Iterable[Article], site: SiteContext) -> str:
    b = _Builder()
    items = [a for a in articles if a.uuid]
    root = _hidden(b, "ssr-homepage")
    header = b.tag("header")
    header.append(b.tag("h1", f"{site.name} - {site.tagline}" if site.tagline else site.name))
    header.append(b.tag("p", f"Human-curated content discovery with {len(items)} recent recommendations."))
    root.append(header)

    main = b.tag("main")
    main.append(b.tag("h2", f"Curated content on {site.name}"))
    if not items:
        main.append(b.tag("p", "No articles available"))
    for i, a in enumerate(items, start=1):
        node = b.tag("article")
        h3 = b.tag("h3", f"{i}. ")
        h3.append(_link(b, site.work_url(a.uuid), a.title))
        node.append(h3)
        if a.category:
            node.append(b.tag("p", f"Category: {a.category}"))
        if a.description:
            node.append(b.tag("p", a.description))
        if a.keywords:
            node.append(b.tag("p", f"Keywords: {', '.join(a.keywords)}"))
        if a.author and a.author.display_name:
            node.append(b.tag("p", f"Curated by: {a.author.display_name}"))
        main.append(node)
    root.append(main)

    footer = b.tag("footer")
    footer.append(_link(b, site.url("/sitemap.xml"), "Sitemap"))
    root.append(footer)
    return b.render()
