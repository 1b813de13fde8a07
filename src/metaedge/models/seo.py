"""SEO payload models.

The content API stores manual (``seoData``) and AI-generated
(``seoDataByAi``) metadata as JSON strings. Both share this shape.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


def _clean_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _clean_list(v: Any, *, split_commas: bool) -> List[str]:
    if v is None:
        return []
    if isinstance(v, str):
        parts = v.split(",") if split_commas else [v]
    elif isinstance(v, (list, tuple)):
        parts = [str(x) for x in v if x is not None]
    else:
        return []
    return [p.strip() for p in parts if p and p.strip()]


class SeoPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    schema_type: Optional[str] = Field(default=None, alias="schemaType")
    category: Optional[str] = None
    target_audience: Optional[str] = Field(default=None, alias="targetAudience")
    keywords: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    facts: List[str] = Field(default_factory=list)
    key_takeaways: List[str] = Field(default_factory=list, alias="keyTakeaways")
    key_themes: List[str] = Field(default_factory=list, alias="keyThemes")

    @model_validator(mode="before")
    @classmethod
    def flatten_aeo_data(cls, data: Any) -> Any:
        # AEO fields may arrive nested under aeoData; top-level values win.
        if isinstance(data, dict) and isinstance(data.get("aeoData"), dict):
            aeo = data["aeoData"]
            data = dict(data)
            data.setdefault("targetAudience", aeo.get("targetAudience"))
            data.setdefault("facts", aeo.get("facts"))
        return data

    @field_validator("title", "description", "image", "schema_type", "category", "target_audience", mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Optional[str]:
        return _clean_text(v)

    @field_validator("keywords", "tags", mode="before")
    @classmethod
    def split_keywords(cls, v: Any) -> List[str]:
        return _clean_list(v, split_commas=True)

    @field_validator("facts", "key_takeaways", "key_themes", mode="before")
    @classmethod
    def clean_items(cls, v: Any) -> List[str]:
        return _clean_list(v, split_commas=False)

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in type(self).model_fields)


def parse_seo_payload(raw: Any) -> SeoPayload:
    """Parse a raw seo value (JSON string, bare string, or dict).

    Malformed input yields an empty payload rather than an error.
    """
    if raw is None:
        return SeoPayload()
    data: Any = raw
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return SeoPayload()
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return SeoPayload()
    if isinstance(data, str):
        data = {"description": data}
    if not isinstance(data, dict):
        return SeoPayload()
    try:
        return SeoPayload.model_validate(data)
    except ValidationError:
        return SeoPayload()
