"""Text helpers shared by renderers."""

from __future__ import annotations

import json
from typing import Any


def truncate(text: str, length: int) -> str:
    """First ``length`` characters of ``text``, untouched otherwise."""
    return (text or "")[: max(0, int(length))]


def json_for_script(payload: Any) -> str:
    """Serialize JSON for an inline ``<script>`` without allowing it to close the tag."""
    raw = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return raw.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")
