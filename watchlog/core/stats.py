from __future__ import annotations

import re
from collections import defaultdict
from typing import Dict, Iterable, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from watchlog.core.episodes import decode_watched_episodes
from watchlog.core.schemas import WatchItemOut

UNKNOWN_YEAR = "Unknown"
TOP_GENRES = 5

_YEAR_PATTERN = re.compile(r"^\s*(\d{4})")


class _StatsModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MinutesBucket(_StatsModel):
    name: str
    minutes: int
    hours: float


class WatchStats(_StatsModel):
    total_minutes: int = 0
    movie_minutes: int = 0
    series_minutes: int = 0
    favorite_minutes: int = 0
    favorite_hours: int = 0
    movies_count: int = 0
    series_count: int = 0
    avg_rating: float = 0.0
    episodes_tracked: int = 0
    type_data: List[MinutesBucket] = Field(default_factory=list)
    genre_data: List[MinutesBucket] = Field(default_factory=list)
    year_data: List[MinutesBucket] = Field(default_factory=list)


def _bucket(name: str, minutes: int) -> MinutesBucket:
    return MinutesBucket(name=name, minutes=minutes, hours=round(minutes / 60, 1))


def release_year(release_date: str | None) -> str:
    match = _YEAR_PATTERN.match(release_date or "")
    return match.group(1) if match else UNKNOWN_YEAR


def _year_sort_key(year: str):
    return (0, "") if year == UNKNOWN_YEAR else (1, year)


def compute_stats(items: Iterable[WatchItemOut]) -> WatchStats:
    """Aggregate watch time, ratings and genre/year breakdowns for a history."""
    stats = WatchStats()
    rating_sum = 0
    rating_count = 0
    genre_minutes: Dict[str, int] = defaultdict(int)
    year_minutes: Dict[str, int] = defaultdict(int)

    for item in items:
        minutes = item.watch_time_minutes or 0
        stats.total_minutes += minutes
        if item.media_type == "movie":
            stats.movie_minutes += minutes
            stats.movies_count += 1
        else:
            stats.series_minutes += minutes
            stats.series_count += 1
        if item.is_favorite:
            stats.favorite_minutes += minutes
        if item.rating > 0:
            rating_sum += item.rating
            rating_count += 1
        for genre in item.genres:
            if genre.name:
                genre_minutes[genre.name] += minutes
        year_minutes[release_year(item.release_date)] += minutes
        stats.episodes_tracked += len(decode_watched_episodes(item.watched_episodes))

    stats.favorite_hours = stats.favorite_minutes // 60
    if rating_count:
        stats.avg_rating = round(rating_sum / rating_count, 1)

    stats.type_data = [
        _bucket(name, minutes)
        for name, minutes in (
            ("Movies", stats.movie_minutes),
            ("Series", stats.series_minutes),
        )
        if minutes > 0
    ]
    ranked_genres = sorted(genre_minutes.items(), key=lambda kv: kv[1], reverse=True)
    stats.genre_data = [
        _bucket(name, minutes) for name, minutes in ranked_genres[:TOP_GENRES]
    ]
    stats.year_data = [
        _bucket(year, year_minutes[year])
        for year in sorted(year_minutes, key=_year_sort_key)
    ]
    return stats
