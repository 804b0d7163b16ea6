from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable, List, TypeVar

T = TypeVar("T")

_EARLIEST = float("-inf")


def watch_date_key(value: Any) -> float:
    """Sort key for a watch date; missing or unparseable dates sort earliest."""
    if value is None:
        return _EARLIEST
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return _EARLIEST
        try:
            value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return _EARLIEST
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, date):
        midnight = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        return midnight.timestamp()
    return _EARLIEST


def sort_by_watch_date(items: Iterable[T]) -> List[T]:
    """Most recently watched first; ties keep their input order."""
    return sorted(
        items,
        key=lambda item: watch_date_key(getattr(item, "watch_date", None)),
        reverse=True,
    )
