"""Time utilities."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

# Upstream timestamps are epoch seconds; anything above this is already milliseconds.
_MAX_EPOCH_SECONDS = 9_999_999_999


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an upstream timestamp (epoch s/ms, numeric string or ISO-8601)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.lstrip("-").isdigit():
            value = int(text)
        else:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        if value <= 0:
            return None
        seconds = value / 1000 if value > _MAX_EPOCH_SECONDS else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def to_iso_datetime(value: Any) -> str | None:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.isoformat().replace("+00:00", "Z")


def to_iso_date(value: Any) -> str | None:
    parsed = parse_timestamp(value)
    return parsed.date().isoformat() if parsed else None
