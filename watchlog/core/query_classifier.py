from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

# Explicit phrases that always mark a production-company lookup
_COMPANY_INTENT_PATTERN = re.compile(
    r"\b(?:production\s+compan(?:y|ies)|production\s+house|produced\s+by|"
    r"distributed\s+by|studios?)\b",
    flags=re.IGNORECASE,
)

# Name that follows an explicit company phrase, e.g. "produced by HBO"
_COMPANY_CAPTURE_PATTERN = re.compile(
    r"\b(?:production\s+compan(?:y|ies)|production\s+house|produced\s+by|"
    r"distributed\s+by|studios?)\b\s*:?\s*(?P<name>.+)$",
    flags=re.IGNORECASE,
)

_MEDIA_WORDS = r"(?:tv\s+shows?|tv\s+series|movies?|films?|series|tv|shows?)"

# "<phrase> movies", "<phrase> tv shows", ...
_MEDIA_SUFFIX_PATTERN = re.compile(
    rf"^(?P<name>.+?)\s+{_MEDIA_WORDS}$", flags=re.IGNORECASE
)
_TRAILING_MEDIA_PATTERN = re.compile(rf"\s*\b{_MEDIA_WORDS}$", flags=re.IGNORECASE)

_MOVIE_TERMS = re.compile(r"\b(?:movies?|films?)\b", flags=re.IGNORECASE)
_SERIES_TERMS = re.compile(r"\b(?:series|tv|shows?)\b", flags=re.IGNORECASE)

_EXCLUDED_PHRASES = frozenset(
    {
        "action",
        "drama",
        "comedy",
        "horror",
        "thriller",
        "crime",
        "mystery",
        "adventure",
        "fantasy",
        "animation",
        "anime",
        "documentary",
        "sci-fi",
        "science fiction",
        "family",
        "history",
        "war",
        "music",
        "musical",
        "western",
        "sport",
        "sports",
        "biography",
    }
)

_MAX_CANDIDATE_WORDS = 4
_EDGE_PUNCTUATION = " \t\r\n.,;:!?\"'"


@dataclass(frozen=True)
class QueryClassification:
    is_company_query: bool
    company_name_candidate: str = ""
    media_type_hint: Optional[str] = None  # 'movie' | 'series'


def _clean(text: str) -> str:
    return " ".join(text.split()).strip(_EDGE_PUNCTUATION)


def strip_trailing_media_word(text: str) -> str:
    return _clean(_TRAILING_MEDIA_PATTERN.sub("", _clean(text)))


def media_type_hint(prompt: str) -> Optional[str]:
    """Movie terms win over series terms when a prompt mentions both."""
    if _MOVIE_TERMS.search(prompt):
        return "movie"
    if _SERIES_TERMS.search(prompt):
        return "series"
    return None


def _candidate_from_intent_phrase(prompt: str) -> str:
    match = _COMPANY_CAPTURE_PATTERN.search(prompt)
    if match:
        captured = strip_trailing_media_word(match.group("name"))
        if captured:
            return captured
    without_phrases = _COMPANY_INTENT_PATTERN.sub(" ", prompt)
    return strip_trailing_media_word(without_phrases)


def _candidate_from_media_suffix(prompt: str) -> str:
    match = _MEDIA_SUFFIX_PATTERN.match(prompt)
    if not match:
        return ""
    candidate = _clean(match.group("name"))
    if not candidate:
        return ""
    if candidate.lower() in _EXCLUDED_PHRASES:
        return ""
    if len(candidate.split()) > _MAX_CANDIDATE_WORDS:
        return ""
    return candidate


def classify_query(prompt: str) -> QueryClassification:
    """
    Decide whether a prompt asks for titles from a production company
    ("A24 movies", "produced by HBO") or is a general query.
    """
    text = _clean(prompt or "")
    hint = media_type_hint(text)
    if not text:
        return QueryClassification(False, "", hint)

    if _COMPANY_INTENT_PATTERN.search(text):
        return QueryClassification(True, _candidate_from_intent_phrase(text), hint)

    candidate = _candidate_from_media_suffix(text)
    if candidate:
        return QueryClassification(True, candidate, hint)
    return QueryClassification(False, "", hint)
