"""Rewrite stages applied to augmented documents.

Stages are built per request and registered on a ``DocumentTransformer`` in
order: TagRemover, HeadInjector, BodyInjector. Each one only touches the
elements its own selectors match.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

from .document_transformer import DocumentTransformer, Element
from .fragments import diagnostic_marker

# Everything a HeadInjector may write, plus stale diagnostic markers.
MANAGED_HEAD_SELECTORS: tuple[str, ...] = (
    "title",
    'meta[name="description"]',
    'meta[name="keywords"]',
    'meta[property^="og:"], meta[name^="og:"]',
    'meta[property^="twitter:"], meta[name^="twitter:"]',
    'meta[property^="article:"], meta[name^="article:"]',
    'meta[property^="profile:"], meta[name^="profile:"]',
    'link[rel~="canonical"]',
    'script[type="application/ld+json"]',
    'meta[name="seo-worker"]',
)


class TransformStage(Protocol):
    def register(self, transformer: DocumentTransformer) -> None: ...


def _remove(element: Element) -> None:
    element.remove()


@dataclass(frozen=True)
class TagRemover:
    selectors: Sequence[str] = MANAGED_HEAD_SELECTORS

    def register(self, transformer: DocumentTransformer) -> None:
        for selector in self.selectors:
            transformer.on_element(selector, _remove)


@dataclass(frozen=True)
class HeadInjector:
    html: str

    def register(self, transformer: DocumentTransformer) -> None:
        if self.html:
            transformer.on_element("head", lambda el: el.append(self.html))


@dataclass(frozen=True)
class BodyInjector:
    html: str

    def register(self, transformer: DocumentTransformer) -> None:
        if self.html:
            transformer.on_element("body", lambda el: el.prepend(self.html))


class DiagnosticMarker(HeadInjector):
    """Marks a page whose metadata could not be fetched."""

    def __init__(self) -> None:
        super().__init__(html=diagnostic_marker())


def build_transformer(stages: Iterable[TransformStage], *, encoding: str = "utf-8") -> DocumentTransformer:
    transformer = DocumentTransformer(encoding=encoding)
    for stage in stages:
        stage.register(transformer)
    return transformer
