from __future__ import annotations

from watchlog.core.stats import compute_stats, release_year
from tests.helpers import make_item


def test_compute_stats_aggregates_history():
    history = [
        make_item(
            1,
            "Inception",
            "movie",
            watch_time_minutes=148,
            rating=5,
            is_favorite=True,
            release_date="2010-07-16",
            genres=[{"id": 28, "name": "Action"}, {"id": 878, "name": "Sci-Fi"}],
        ),
        make_item(
            2,
            "Dark",
            "series",
            watch_time_minutes=600,
            rating=4,
            release_date="2017-12-01",
            genres=[{"id": 18, "name": "Drama"}],
            watched_episodes=["S1E1", {"season": 1, "episode": 2}],
        ),
        make_item(3, "Unrated", "movie", watch_time_minutes=90, rating=0),
    ]

    stats = compute_stats(history)

    assert stats.total_minutes == 838
    assert stats.movie_minutes == 238
    assert stats.series_minutes == 600
    assert stats.movies_count == 2
    assert stats.series_count == 1
    assert stats.favorite_minutes == 148
    assert stats.favorite_hours == 2
    assert stats.avg_rating == 4.5
    assert stats.episodes_tracked == 2
    assert [(b.name, b.minutes) for b in stats.type_data] == [
        ("Movies", 238),
        ("Series", 600),
    ]
    assert [b.name for b in stats.genre_data] == ["Drama", "Action", "Sci-Fi"]
    assert [b.name for b in stats.year_data] == ["Unknown", "2010", "2017"]
    assert stats.genre_data[0].hours == 10.0


def test_compute_stats_empty_history():
    stats = compute_stats([])

    assert stats.total_minutes == 0
    assert stats.avg_rating == 0.0
    assert stats.type_data == []
    assert stats.year_data == []


def test_genre_data_is_capped_at_five():
    genres = [{"id": i, "name": f"G{i}"} for i in range(7)]
    stats = compute_stats([make_item(1, "x", watch_time_minutes=10, genres=genres)])

    assert len(stats.genre_data) == 5


def test_release_year_parsing():
    assert release_year("1999-03-31") == "1999"
    assert release_year("2004") == "2004"
    assert release_year("") == "Unknown"
    assert release_year(None) == "Unknown"
    assert release_year("soon") == "Unknown"
