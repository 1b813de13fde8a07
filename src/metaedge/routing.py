"""Inbound request classification (augmented route vs passthrough)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional


class RouteKind(str, Enum):
    ARTICLE = "ARTICLE"
    PROFILE = "PROFILE"
    COLLECTION = "COLLECTION"
    HOME = "HOME"
    PASSTHROUGH = "PASSTHROUGH"


@dataclass(frozen=True)
class RouteMatch:
    kind: RouteKind
    key: Optional[str] = None
    wants_json: bool = False

    @property
    def augmented(self) -> bool:
        return self.kind != RouteKind.PASSTHROUGH


HOME_PATHS = frozenset({"/", "/home", "/index.html"})

_ENTITY_ROUTES: tuple[tuple[re.Pattern[str], RouteKind], ...] = (
    (re.compile(r"^/work/(?P<key>[^/]+)/?$"), RouteKind.ARTICLE),
    (re.compile(r"^/(?:user|u)/(?P<key>[^/]+)/?$"), RouteKind.PROFILE),
    (re.compile(r"^/treasury/(?P<key>[^/]+)/?$"), RouteKind.COLLECTION),
)

PASSTHROUGH = RouteMatch(kind=RouteKind.PASSTHROUGH)


def wants_json(query: Mapping[str, str], accept: str | None) -> bool:
    if (query.get("format") or "").lower() == "json":
        return True
    accept_l = (accept or "").lower()
    return "application/json" in accept_l and "text/html" not in accept_l


def classify_request(path: str, query: Mapping[str, str], accept: str | None = None) -> RouteMatch:
    json_requested = wants_json(query, accept)

    if path in HOME_PATHS:
        # The home page has no JSON document of its own.
        return RouteMatch(kind=RouteKind.HOME) if not json_requested else PASSTHROUGH

    for pattern, kind in _ENTITY_ROUTES:
        m = pattern.match(path)
        if m is None:
            continue
        key = m.group("key")
        # Static assets under an entity prefix go straight to the origin.
        if "." in key and not json_requested:
            return PASSTHROUGH
        return RouteMatch(kind=kind, key=key, wants_json=json_requested)

    return PASSTHROUGH
