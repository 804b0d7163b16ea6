from __future__ import annotations

from datetime import datetime
from typing import Optional, List

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import (
    Boolean,
    Integer,
    String,
    Text,
    ForeignKey,
    DateTime,
    func,
    JSON,
    UniqueConstraint,
)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(
        String(320), unique=True, index=True, nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    preferences: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class WatchItem(Base):
    __tablename__ = "watch_items"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "tmdb_id", "media_type", name="uq_watch_item_user_title"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    tmdb_id: Mapped[int] = mapped_column(Integer, nullable=False)
    media_type: Mapped[str] = mapped_column(
        String(10), nullable=False
    )  # 'movie' or 'series'
    sub_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default="live_action"
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    poster_path: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    origin_country: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    release_date: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    genres: Mapped[Optional[List[dict]]] = mapped_column(JSON, nullable=True)
    rating: Mapped[int] = mapped_column(Integer, default=0)
    user_notes: Mapped[str] = mapped_column(Text, default="")
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    watch_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    watch_time_minutes: Mapped[int] = mapped_column(Integer, default=0)
    runtime: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # movies
    seasons: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # series
    episodes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    episode_duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    watched_seasons: Mapped[Optional[List[int]]] = mapped_column(JSON, nullable=True)
    # "S1E2" tokens; legacy rows may still hold {"season": 1, "episode": 2}
    watched_episodes: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
