from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from watchlog.core.ordering import sort_by_watch_date
from watchlog.core.schemas import WatchItemOut
from watchlog.db.models import WatchItem

MEDIA_TYPES = ("movie", "series")


def to_snapshot(row: WatchItem) -> WatchItemOut:
    return WatchItemOut.model_validate(row)


def load_watch_history(db: Session, user_id: int) -> List[WatchItemOut]:
    """All of a user's items, most recently watched first."""
    rows = db.execute(select(WatchItem).where(WatchItem.user_id == user_id))
    return sort_by_watch_date(to_snapshot(row) for row in rows.scalars().all())


def find_duplicate(
    db: Session, user_id: int, tmdb_id: int, media_type: str
) -> Optional[WatchItem]:
    stmt = (
        select(WatchItem)
        .where(
            WatchItem.user_id == user_id,
            WatchItem.tmdb_id == tmdb_id,
            WatchItem.media_type == media_type,
        )
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def get_item(db: Session, item_id: int) -> Optional[WatchItem]:
    return db.get(WatchItem, item_id)


def parse_media_types(raw: str | None) -> List[str]:
    """Parse a comma-separated ``mediaType`` query value."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def clear_history(
    db: Session, user_id: int, media_types: Iterable[str] | None = None
) -> int:
    stmt = delete(WatchItem).where(WatchItem.user_id == user_id)
    types = list(media_types or [])
    if types:
        stmt = stmt.where(WatchItem.media_type.in_(types))
    result = db.execute(stmt)
    db.commit()
    return result.rowcount or 0
