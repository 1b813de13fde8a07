"""Sitemap generation.

Static pages first, then a sequential walk over the paginated content
listing. The walk is bounded by a page ceiling and stops early on a short
page, on reaching the upstream total, or on the first upstream failure
(entries collected so far are kept).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from lxml import etree

from ..clients.content_api import ContentApiClient
from ..config.environment import SiteContext
from ..domain.errors import UpstreamError
from ..domain.models import SitemapEntry
from ..observability.logger import get_logger
from ..utils.time import to_iso_date

logger = get_logger(__name__)

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
_NS = f"{{{SITEMAP_NS}}}"


@dataclass(frozen=True)
class StaticPage:
    path: str
    changefreq: str
    priority: str


DEFAULT_STATIC_PAGES: tuple[StaticPage, ...] = (
    StaticPage("/", "daily", "1.0"),
    StaticPage("/discovery", "hourly", "0.9"),
    StaticPage("/topics", "daily", "0.7"),
    StaticPage("/settings", "monthly", "0.3"),
)


class SitemapService:
    def __init__(
        self,
        client: ContentApiClient,
        site: SiteContext,
        *,
        page_size: int = 100,
        max_pages: int = 50,
        static_pages: Iterable[StaticPage] = DEFAULT_STATIC_PAGES,
    ):
        self._client = client
        self._site = site
        self._page_size = page_size
        self._max_pages = max_pages
        self._static_pages = tuple(static_pages)

    async def build(self) -> list[SitemapEntry]:
        entries = [
            SitemapEntry(loc=self._site.url(p.path), changefreq=p.changefreq, priority=p.priority)
            for p in self._static_pages
        ]
        seen: set[str] = set()
        fetched = 0

        for page_index in range(1, self._max_pages + 1):
            try:
                page = await self._client.list_content_page(page_index, self._page_size)
            except UpstreamError as e:
                logger.warning(
                    "sitemap_page_failed",
                    page_index=page_index,
                    entries=len(entries),
                    error=str(e),
                )
                break

            fetched += len(page.items)
            for item in page.items:
                uuid = str(item.get("uuid") or "").strip()
                if not uuid or uuid in seen:
                    continue
                seen.add(uuid)
                entries.append(
                    SitemapEntry(
                        loc=self._site.work_url(uuid),
                        lastmod=to_iso_date(item.get("publishAt") or item.get("createAt") or item.get("createdAt")),
                        changefreq="weekly",
                        priority="0.8",
                    )
                )

            if len(page.items) < self._page_size:
                break
            if page.total_count is not None and fetched >= page.total_count:
                break
        else:
            logger.info("sitemap_page_ceiling_reached", max_pages=self._max_pages)

        logger.info("sitemap_built", entries=len(entries), content_items=len(seen))
        return entries


def render_sitemap(entries: Iterable[SitemapEntry]) -> bytes:
    urlset = etree.Element(f"{_NS}urlset", nsmap={None: SITEMAP_NS})
    for entry in entries:
        url = etree.SubElement(urlset, f"{_NS}url")
        etree.SubElement(url, f"{_NS}loc").text = entry.loc
        if entry.lastmod:
            etree.SubElement(url, f"{_NS}lastmod").text = entry.lastmod
        if entry.changefreq:
            etree.SubElement(url, f"{_NS}changefreq").text = entry.changefreq
        if entry.priority:
            etree.SubElement(url, f"{_NS}priority").text = entry.priority
    return etree.tostring(urlset, xml_declaration=True, encoding="UTF-8", pretty_print=True)
