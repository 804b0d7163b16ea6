from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from watchlog.core.ordering import sort_by_watch_date
from watchlog.core.schemas import WatchItemOut

logger = logging.getLogger(__name__)

_STOP_WORDS = frozenset(
    {
        "show",
        "shows",
        "movie",
        "movies",
        "series",
        "tv",
        "the",
        "a",
        "an",
        "by",
        "from",
    }
)
# Applied after lowercasing; underscores and non-ASCII letters go too.
_DISALLOWED_CHARS = re.compile(r"[^a-z0-9\s&'-]+")

_WANTS_MOVIE = re.compile(r"\b(?:movies?|films?)\b")
_WANTS_SERIES = re.compile(r"\b(?:series|tv|shows?)\b")
_WANTS_ANIME = re.compile(r"\banime\b")
_WANTS_ANIMATION = re.compile(r"\b(?:animated|animation)\b")


@dataclass(frozen=True)
class PromptIntents:
    wants_movie: bool = False
    wants_series: bool = False
    wants_anime: bool = False
    wants_animation: bool = False


def tokenize_prompt(prompt: str) -> List[str]:
    normalized = _DISALLOWED_CHARS.sub("", (prompt or "").lower())
    return [token for token in normalized.split() if token not in _STOP_WORDS]


def detect_intents(prompt: str) -> PromptIntents:
    lowered = (prompt or "").lower()
    return PromptIntents(
        wants_movie=bool(_WANTS_MOVIE.search(lowered)),
        wants_series=bool(_WANTS_SERIES.search(lowered)),
        wants_anime=bool(_WANTS_ANIME.search(lowered)),
        wants_animation=bool(_WANTS_ANIMATION.search(lowered)),
    )


def _matches_intents(item: WatchItemOut, intents: PromptIntents) -> bool:
    # Asking for both movies and series constrains neither.
    if intents.wants_movie and not intents.wants_series:
        if item.media_type != "movie":
            return False
    if intents.wants_series and not intents.wants_movie:
        if item.media_type != "series":
            return False
    if intents.wants_anime and item.sub_type != "anime":
        return False
    if intents.wants_animation and item.sub_type not in {"animation", "anime"}:
        return False
    return True


def _searchable_fields(item: WatchItemOut) -> Sequence[str]:
    genre_names = " ".join(genre.name for genre in item.genres if genre.name)
    return (
        (item.title or "").lower(),
        genre_names.lower(),
        (item.origin_country or "").lower(),
    )


def _matches_tokens(item: WatchItemOut, tokens: Sequence[str]) -> bool:
    fields = _searchable_fields(item)
    return all(any(token in field for field in fields) for token in tokens)


def heuristic_filter(
    prompt: str, items: Iterable[WatchItemOut]
) -> List[WatchItemOut]:
    """
    Keyword filter over a user's history that never leaves the process.

    Media-type and animation intents narrow the set first; every remaining
    prompt token must then appear in the title, the genre names or the
    origin country of an item for it to survive.
    """
    intents = detect_intents(prompt)
    tokens = tokenize_prompt(prompt)

    survivors = [item for item in items if _matches_intents(item, intents)]
    if tokens:
        survivors = [item for item in survivors if _matches_tokens(item, tokens)]

    logger.debug(
        "Heuristic filter kept %d items (tokens=%s intents=%s)",
        len(survivors),
        tokens,
        intents,
    )
    return sort_by_watch_date(survivors)
