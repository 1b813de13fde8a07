"""Metadata merging (manual + AI seo data -> one MetadataBundle).

Precedence per field: AI value -> manual value -> derived from the entity ->
empty. AI data overriding manual data is a product decision; empty AI
values count as absent so they never blank out a curated field.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..domain.models import (
    Article,
    Collection,
    ContentEntity,
    CuratorProfile,
    MergeContext,
    MetadataBundle,
)
from ..models.seo import SeoPayload, parse_seo_payload
from ..utils.text import truncate
from ..utils.time import to_iso_datetime

# Types whose rich results need offers/steps/dates we cannot guarantee.
CLAMPED_SCHEMA_TYPES = frozenset(
    {
        "Product",
        "Offer",
        "AggregateOffer",
        "SoftwareApplication",
        "MobileApplication",
        "WebApplication",
        "HowTo",
        "Recipe",
        "Course",
        "Event",
        "JobPosting",
    }
)


def generic_schema_type(entity: ContentEntity) -> str:
    if isinstance(entity, CuratorProfile):
        return "Person"
    if isinstance(entity, Collection):
        return "Collection"
    return "Article"


def _first_text(*values: Optional[str]) -> Optional[str]:
    for v in values:
        if v:
            return v
    return None


def _first_list(*values: Iterable[str]) -> tuple[str, ...]:
    for v in values:
        items = tuple(v)
        if items:
            return items
    return ()


class MetadataMerger:
    def __init__(self, *, html_description_length: int = 160, structured_description_length: int = 300):
        self._html_len = int(html_description_length)
        self._structured_len = int(structured_description_length)

    def merge_entity(self, entity: ContentEntity, context: MergeContext = MergeContext.HTML) -> MetadataBundle:
        return self.merge(
            entity,
            parse_seo_payload(entity.seo_data),
            parse_seo_payload(entity.seo_data_by_ai),
            context=context,
        )

    def merge(
        self,
        entity: ContentEntity,
        manual_seo: SeoPayload | None,
        ai_seo: SeoPayload | None,
        *,
        context: MergeContext = MergeContext.HTML,
    ) -> MetadataBundle:
        manual = manual_seo or SeoPayload()
        ai = ai_seo or SeoPayload()

        title = _first_text(ai.title, manual.title, self._entity_title(entity)) or ""

        body_len = self._html_len if context == MergeContext.HTML else self._structured_len
        body = self._entity_body(entity)
        description = (
            _first_text(
                ai.description,
                manual.description,
                truncate(body, body_len) if body.strip() else None,
                title,
            )
            or ""
        )

        schema_type = _first_text(ai.schema_type, manual.schema_type) or generic_schema_type(entity)
        if schema_type in CLAMPED_SCHEMA_TYPES:
            schema_type = generic_schema_type(entity)

        keywords = _first_list(
            ai.keywords,
            manual.keywords,
            ai.tags,
            manual.tags,
            getattr(entity, "keywords", ()),
        )

        return MetadataBundle(
            title=title,
            description=description,
            keywords=keywords,
            image=_first_text(ai.image, manual.image, self._entity_image(entity)),
            schema_type=schema_type,
            author=self._entity_author(entity),
            published_at=self._published_at(entity),
            modified_at=self._modified_at(entity),
            audience=_first_text(ai.target_audience, manual.target_audience),
            facts=_first_list(ai.facts, manual.facts),
            key_takeaways=_first_list(ai.key_takeaways, manual.key_takeaways),
        )

    @staticmethod
    def _entity_title(entity: ContentEntity) -> str:
        if isinstance(entity, Article):
            return entity.title
        if isinstance(entity, CuratorProfile):
            return entity.display_name
        return entity.name

    @staticmethod
    def _entity_body(entity: ContentEntity) -> str:
        if isinstance(entity, Article):
            return entity.body
        if isinstance(entity, CuratorProfile):
            return entity.bio
        return entity.description

    @staticmethod
    def _entity_image(entity: ContentEntity) -> Optional[str]:
        if isinstance(entity, CuratorProfile):
            return entity.avatar_url or None
        return entity.cover_url or None

    @staticmethod
    def _entity_author(entity: ContentEntity) -> Optional[str]:
        if isinstance(entity, Article):
            return entity.author.display_name if entity.author and entity.author.display_name else None
        if isinstance(entity, CuratorProfile):
            return entity.display_name or None
        return entity.owner.display_name if entity.owner and entity.owner.display_name else None

    @staticmethod
    def _published_at(entity: ContentEntity) -> Optional[str]:
        if isinstance(entity, Article):
            return to_iso_datetime(entity.published_at) or to_iso_datetime(entity.created_at)
        return None

    @staticmethod
    def _modified_at(entity: ContentEntity) -> Optional[str]:
        if isinstance(entity, Article):
            return to_iso_datetime(entity.updated_at) or MetadataMerger._published_at(entity)
        return None
