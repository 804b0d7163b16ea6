from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"^\s*S(?P<season>\d+)\s*E(?P<episode>\d+)\s*$", re.I)


@dataclass(frozen=True)
class EpisodeRef:
    """A watched episode, decoded from either storage shape.

    ``legacy`` records whether the value came from an old ``{season, episode}``
    record rather than an ``"S1E2"`` token; it never affects equality.
    """

    season: int
    episode: int
    legacy: bool = field(default=False, compare=False)

    @property
    def token(self) -> str:
        return f"S{self.season}E{self.episode}"


def parse_episode(raw: Any) -> EpisodeRef | None:
    if isinstance(raw, EpisodeRef):
        return raw
    if isinstance(raw, str):
        match = _TOKEN_PATTERN.match(raw)
        if not match:
            return None
        return EpisodeRef(int(match.group("season")), int(match.group("episode")))
    if isinstance(raw, dict):
        try:
            season = int(raw["season"])
            episode = int(raw["episode"])
        except (KeyError, TypeError, ValueError):
            return None
        return EpisodeRef(season, episode, legacy=True)
    return None


def decode_watched_episodes(raw: Iterable[Any] | None) -> List[EpisodeRef]:
    """Decode stored ``watchedEpisodes`` into unique refs, preserving order."""
    decoded: List[EpisodeRef] = []
    seen: set[EpisodeRef] = set()
    for entry in raw or []:
        ref = parse_episode(entry)
        if ref is None:
            logger.debug("Dropping unparseable watched episode entry: %r", entry)
            continue
        if ref in seen:
            continue
        seen.add(ref)
        decoded.append(ref)
    return decoded


def encode_watched_episodes(refs: Iterable[EpisodeRef]) -> List[str]:
    return [ref.token for ref in refs]


def canonical_watched_episodes(raw: Iterable[Any] | None) -> List[str]:
    return encode_watched_episodes(decode_watched_episodes(raw))
