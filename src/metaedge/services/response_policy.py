"""Crawler detection and cache headers per response class."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from ..config.settings import EdgeSettings


class ResponseClass(str, Enum):
    HTML_TRANSFORMED = "HTML_TRANSFORMED"
    HTML_PASSTHROUGH = "HTML_PASSTHROUGH"
    JSON_ENTITY = "JSON_ENTITY"
    JSON_DISCOVERY = "JSON_DISCOVERY"
    SITEMAP = "SITEMAP"
    STATIC_TEXT = "STATIC_TEXT"
    ERROR = "ERROR"


class Audience(str, Enum):
    HUMAN = "human"
    CRAWLER = "crawler"


_JSON_CLASSES = frozenset({ResponseClass.JSON_ENTITY, ResponseClass.JSON_DISCOVERY})


def is_crawler(user_agent: str | None, bot_agents: Iterable[str]) -> bool:
    ua = (user_agent or "").lower()
    if not ua:
        return False
    return any(bot.lower() in ua for bot in bot_agents if bot)


@dataclass(frozen=True)
class ResponsePolicy:
    bot_agents: tuple[str, ...]
    json_entity_max_age: int = 300
    discovery_max_age: int = 600
    sitemap_max_age: int = 3600
    sitemap_stale_while_revalidate: int = 86400
    static_text_max_age: int = 86400

    @classmethod
    def from_settings(cls, settings: EdgeSettings) -> "ResponsePolicy":
        return cls(
            bot_agents=tuple(settings.bot_user_agents),
            json_entity_max_age=settings.json_entity_max_age,
            discovery_max_age=settings.discovery_max_age,
            sitemap_max_age=settings.sitemap_max_age,
            sitemap_stale_while_revalidate=settings.sitemap_stale_while_revalidate,
            static_text_max_age=settings.static_text_max_age,
        )

    def audience(self, user_agent: str | None) -> Audience:
        return Audience.CRAWLER if is_crawler(user_agent, self.bot_agents) else Audience.HUMAN

    def cache_headers(self, response_class: ResponseClass, audience: Audience = Audience.HUMAN) -> dict[str, str]:
        """Headers to set on the outgoing response; empty means keep the origin's."""
        if response_class == ResponseClass.HTML_PASSTHROUGH:
            return {}

        headers: dict[str, str] = {}
        if response_class == ResponseClass.HTML_TRANSFORMED:
            # Injected metadata must never be served stale from a shared cache.
            headers["Cache-Control"] = (
                "no-cache, must-revalidate" if audience == Audience.CRAWLER else "private, no-cache, must-revalidate"
            )
            headers["CDN-Cache-Control"] = "no-store"
            headers["Vary"] = "User-Agent"
        elif response_class == ResponseClass.JSON_ENTITY:
            headers["Cache-Control"] = f"public, max-age={self.json_entity_max_age}"
        elif response_class == ResponseClass.JSON_DISCOVERY:
            headers["Cache-Control"] = f"public, max-age={self.discovery_max_age}"
        elif response_class == ResponseClass.SITEMAP:
            headers["Cache-Control"] = (
                f"public, max-age={self.sitemap_max_age}, stale-while-revalidate={self.sitemap_stale_while_revalidate}"
            )
        elif response_class == ResponseClass.STATIC_TEXT:
            headers["Cache-Control"] = f"public, max-age={self.static_text_max_age}"
        else:
            headers["Cache-Control"] = "no-store"

        if response_class in _JSON_CLASSES:
            headers["Access-Control-Allow-Origin"] = "*"
        return headers

