"""Streaming HTML rewriter.

Register element handlers with ``on_element(selector, mutator)`` and pipe a
document through ``transform(stream)``. The document is tokenized
incrementally and re-emitted after every input chunk, so memory stays bounded
by the chunk size plus whatever token is still incomplete.

Selectors are a small subset of CSS: a tag name (or ``*``) followed by any
number of attribute tests ``[a]``, ``[a="v"]``, ``[a^="v"]``, ``[a~="v"]``,
``[a*="v"]``; alternatives separated by commas. Attribute values compare
case-insensitively.

Mutators receive an ``Element`` and may:
- ``remove()``: drop the element with its contents (just the tag for void elements)
- ``prepend(html)``: emit raw HTML right after the start tag
- ``append(html)``: emit raw HTML right before the end tag

Mutators must not raise; an exception is logged and the element is emitted
unchanged.
"""

from __future__ import annotations

import codecs
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import AsyncIterable, AsyncIterator, Callable, Optional

from ..observability.logger import get_logger

logger = get_logger(__name__)

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

_COMPOUND_RE = re.compile(r"^\s*(?P<tag>[A-Za-z][A-Za-z0-9-]*|\*)?(?P<attrs>(?:\[[^\]]*\])*)\s*$")
_ATTR_RE = re.compile(
    r"""\[\s*(?P<name>[A-Za-z_:][-A-Za-z0-9_:.]*)\s*"""
    r"""(?:(?P<op>[~^*]?=)\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\]\s]+)))?\s*\]"""
)
# A character or entity reference with nothing after it yet.
_INCOMPLETE_REF = re.compile(r"&#?[A-Za-z0-9]*")


@dataclass(frozen=True)
class _AttrTest:
    name: str
    op: Optional[str]
    value: str

    def matches(self, attrs: dict[str, str]) -> bool:
        if self.name not in attrs:
            return False
        if self.op is None:
            return True
        actual = attrs[self.name].lower()
        if self.op == "=":
            return actual == self.value
        if self.op == "^=":
            return bool(self.value) and actual.startswith(self.value)
        if self.op == "*=":
            return bool(self.value) and self.value in actual
        if self.op == "~=":
            return self.value in actual.split()
        return False


@dataclass(frozen=True)
class _Compound:
    tag: Optional[str]
    tests: tuple[_AttrTest, ...]

    def matches(self, tag: str, attrs: dict[str, str]) -> bool:
        if self.tag is not None and self.tag != tag:
            return False
        return all(t.matches(attrs) for t in self.tests)


@dataclass(frozen=True)
class Selector:
    source: str
    alternatives: tuple[_Compound, ...]

    @classmethod
    def parse(cls, source: str) -> "Selector":
        alternatives: list[_Compound] = []
        for part in source.split(","):
            m = _COMPOUND_RE.match(part)
            if m is None or not part.strip():
                raise ValueError(f"unsupported selector: {source!r}")
            tag = (m.group("tag") or "*").lower()
            tests: list[_AttrTest] = []
            attrs_src = m.group("attrs") or ""
            consumed = 0
            for am in _ATTR_RE.finditer(attrs_src):
                if am.start() != consumed:
                    raise ValueError(f"unsupported selector: {source!r}")
                consumed = am.end()
                value = am.group("dq") if am.group("dq") is not None else am.group("sq")
                if value is None:
                    value = am.group("bare") or ""
                tests.append(_AttrTest(name=am.group("name").lower(), op=am.group("op"), value=value.lower()))
            if consumed != len(attrs_src):
                raise ValueError(f"unsupported selector: {source!r}")
            alternatives.append(_Compound(tag=None if tag == "*" else tag, tests=tuple(tests)))
        return cls(source=source, alternatives=tuple(alternatives))

    def matches(self, tag: str, attrs: dict[str, str]) -> bool:
        return any(c.matches(tag, attrs) for c in self.alternatives)


@dataclass
class Element:
    tag_name: str
    attributes: dict[str, str]
    removed: bool = False
    _prepend: list[str] = field(default_factory=list, repr=False)
    _append: list[str] = field(default_factory=list, repr=False)

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name.lower())

    def remove(self) -> None:
        self.removed = True

    def prepend(self, html: str) -> None:
        if html:
            # Later prepends land closer to the start tag, like a DOM prepend.
            self._prepend.insert(0, html)

    def append(self, html: str) -> None:
        if html:
            self._append.append(html)


Mutator = Callable[[Element], None]


@dataclass
class _PendingAppend:
    tag: str
    depth: int
    html: str


class _StreamRewriter(HTMLParser):
    """One-document tokenizer/re-emitter; never shared between documents."""

    def __init__(self, handlers: list[tuple[Selector, Mutator]]):
        super().__init__(convert_charrefs=False)
        self._handlers = handlers
        self._out: list[str] = []
        self._skip_tag: Optional[str] = None
        self._skip_depth = 0
        self._pending: list[_PendingAppend] = []
        self._token_start = 0

    # --- driving -------------------------------------------------------

    def push(self, text: str) -> str:
        if text:
            self.feed(text)
        return self._drain()

    def finish(self) -> str:
        if _INCOMPLETE_REF.fullmatch(self.rawdata):
            # A reference cut off by EOF is plain text.
            self._emit(self.rawdata)
            self.rawdata = ""
        self.close()
        for pending in reversed(self._pending):
            # Unclosed element at EOF: still deliver what was appended to it.
            self._out.append(pending.html)
        self._pending.clear()
        return self._drain()

    def _drain(self) -> str:
        out = "".join(self._out)
        self._out.clear()
        return out

    def _emit(self, text: str) -> None:
        if self._skip_tag is None:
            self._out.append(text)

    # --- element handling ----------------------------------------------

    def _run_handlers(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> Optional[Element]:
        if not self._handlers:
            return None
        attr_map = {name.lower(): (value or "") for name, value in attrs}
        element: Optional[Element] = None
        for selector, mutator in self._handlers:
            if not selector.matches(tag, attr_map):
                continue
            if element is None:
                element = Element(tag_name=tag, attributes=attr_map)
            try:
                mutator(element)
            except Exception:
                logger.exception("element_mutator_failed", selector=selector.source, tag=tag)
            if element.removed:
                break
        return element

    def _start(self, tag: str, attrs: list[tuple[str, Optional[str]]], *, self_closing: bool) -> None:
        raw = self.get_starttag_text() or f"<{tag}>"
        void = self_closing or tag in VOID_ELEMENTS

        if self._skip_tag is not None:
            if tag == self._skip_tag and not void:
                self._skip_depth += 1
            return

        for pending in self._pending:
            if pending.tag == tag and not void:
                pending.depth += 1

        element = self._run_handlers(tag, attrs)
        if element is not None and element.removed:
            if not void:
                self._skip_tag = tag
                self._skip_depth = 1
            return

        self._out.append(raw)
        if element is None:
            return
        self._out.extend(element._prepend)
        if element._append:
            html = "".join(element._append)
            if void:
                self._out.append(html)
            else:
                self._pending.append(_PendingAppend(tag=tag, depth=1, html=html))

    def handle_starttag(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> None:
        self._start(tag, attrs, self_closing=False)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> None:
        self._start(tag, attrs, self_closing=True)

    def handle_endtag(self, tag: str) -> None:
        if self._skip_tag is not None:
            if tag == self._skip_tag:
                self._skip_depth -= 1
                if self._skip_depth == 0:
                    self._skip_tag = None
            return

        for i in range(len(self._pending) - 1, -1, -1):
            pending = self._pending[i]
            if pending.tag != tag:
                continue
            pending.depth -= 1
            if pending.depth == 0:
                self._out.append(pending.html)
                del self._pending[i]
            break
        self._out.append(f"</{tag}>")

    # --- passthrough tokens --------------------------------------------

    def handle_data(self, data: str) -> None:
        self._emit(data)

    def updatepos(self, i: int, j: int) -> int:
        # The tokenizer moves here to the start of every token before dispatching it.
        self._token_start = j
        return super().updatepos(i, j)

    def _source_ref(self, text: str) -> str:
        """Reference as written: ``R&D`` stays ``R&D``, ``&amp;`` stays ``&amp;``."""
        if self.rawdata.startswith(";", self._token_start + len(text)):
            return text + ";"
        return text

    def handle_entityref(self, name: str) -> None:
        self._emit(self._source_ref(f"&{name}"))

    def handle_charref(self, name: str) -> None:
        self._emit(self._source_ref(f"&#{name}"))

    def handle_comment(self, data: str) -> None:
        self._emit(f"<!--{data}-->")

    def handle_decl(self, decl: str) -> None:
        self._emit(f"<!{decl}>")

    def handle_pi(self, data: str) -> None:
        self._emit(f"<?{data}>")

    def unknown_decl(self, data: str) -> None:
        self._emit(f"<![{data}]>")


class DocumentTransformer:
    """Per-request streaming HTML transformer."""

    def __init__(self, *, encoding: str = "utf-8"):
        self._handlers: list[tuple[Selector, Mutator]] = []
        self._encoding = encoding

    @property
    def encoding(self) -> str:
        return self._encoding

    def on_element(self, selector: str, mutator: Mutator) -> "DocumentTransformer":
        self._handlers.append((Selector.parse(selector), mutator))
        return self

    def rewrite(self, html: str) -> str:
        """Run the same machine over an in-memory document."""
        rewriter = _StreamRewriter(list(self._handlers))
        return rewriter.push(html) + rewriter.finish()

    async def transform(self, source: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
        rewriter = _StreamRewriter(list(self._handlers))
        decoder = codecs.getincrementaldecoder(self._encoding)(errors="replace")
        async for chunk in source:
            out = rewriter.push(decoder.decode(chunk))
            if out:
                yield out.encode(self._encoding, errors="xmlcharrefreplace")
        tail = rewriter.push(decoder.decode(b"", final=True)) + rewriter.finish()
        if tail:
            yield tail.encode(self._encoding, errors="xmlcharrefreplace")
