from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol, Set

from watchlog.core.company_filter import MetadataGateway, filter_by_company
from watchlog.core.errors import (
    ConfigurationError,
    MalformedResponseError,
    PromptValidationError,
    UpstreamQuotaError,
)
from watchlog.core.heuristic_matcher import heuristic_filter
from watchlog.core.ordering import sort_by_watch_date
from watchlog.core.query_classifier import classify_query
from watchlog.core.schemas import WatchItemOut

logger = logging.getLogger(__name__)

_OPENING_FENCE = re.compile(r"^\s*```(?:json)?\s*", flags=re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\s*```\s*$")


class FilterMode(str, Enum):
    AI = "ai"
    BASIC = "basic"
    COMPANY = "company"


@dataclass(frozen=True)
class FilterOutcome:
    """
    Result of one filter request.

    ``mode`` is None only when the user has no history at all. A non-empty
    ``degraded_reason`` means a fallback produced the items.
    """

    items: List[WatchItemOut] = field(default_factory=list)
    mode: Optional[FilterMode] = None
    degraded_reason: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.degraded_reason is not None


class LanguageModel(Protocol):
    @property
    def enabled(self) -> bool: ...

    async def classify(self, prompt: str, items: List[WatchItemOut]) -> str: ...


def strip_code_fences(text: str) -> str:
    stripped = _OPENING_FENCE.sub("", text or "")
    return _CLOSING_FENCE.sub("", stripped).strip()


def parse_matched_ids(raw: str) -> Set[str]:
    """Parse the model's answer into a set of item ids."""
    try:
        payload = json.loads(strip_code_fences(raw))
    except (TypeError, ValueError) as exc:
        raise MalformedResponseError(
            "Language model returned non-JSON content."
        ) from exc
    if not isinstance(payload, list):
        raise MalformedResponseError("Language model did not return a JSON array.")
    return {str(entry) for entry in payload if isinstance(entry, (str, int))}


class AIFilter:
    """
    Filters a user's watch history by a free-text prompt.

    Company prompts ("A24 movies") are answered from TMDB production
    credits. Everything else goes to the language model, with the local
    keyword matcher standing in whenever the model is unconfigured or out
    of quota.
    """

    def __init__(
        self,
        load_history: Callable[[int], List[WatchItemOut]],
        metadata: Optional[MetadataGateway] = None,
        llm: Optional[LanguageModel] = None,
    ):
        self._load_history = load_history
        self._metadata = metadata
        self._llm = llm

    async def filter(self, user_id: int, prompt: Optional[str]) -> FilterOutcome:
        if prompt is None or not prompt.strip():
            raise PromptValidationError("Prompt is required")
        prompt = prompt.strip()

        history = self._load_history(user_id)
        if not history:
            return FilterOutcome()

        classification = classify_query(prompt)
        if classification.is_company_query:
            logger.info(
                "AI filter: company query for '%s' (hint=%s)",
                classification.company_name_candidate,
                classification.media_type_hint,
            )
            return await self._company(
                classification.company_name_candidate,
                classification.media_type_hint,
                history,
            )
        return await self._general(prompt, history)

    async def _company(
        self, name: str, hint: Optional[str], history: List[WatchItemOut]
    ) -> FilterOutcome:
        if self._metadata is None:
            raise ConfigurationError("TMDB_API_KEY is not configured")
        items = await filter_by_company(self._metadata, name, hint, history)
        return FilterOutcome(items=items, mode=FilterMode.COMPANY)

    async def _general(self, prompt: str, history: List[WatchItemOut]) -> FilterOutcome:
        fallback = heuristic_filter(prompt, history)

        if self._llm is None or not self._llm.enabled:
            logger.info("AI filter: language model not configured; using basic filter.")
            return FilterOutcome(
                items=fallback, mode=FilterMode.BASIC, degraded_reason="llm_disabled"
            )

        try:
            raw = await self._llm.classify(prompt, history)
        except UpstreamQuotaError as exc:
            logger.warning("AI filter: language model quota exceeded (%s).", exc)
            return FilterOutcome(
                items=fallback, mode=FilterMode.BASIC, degraded_reason="quota_exceeded"
            )

        degraded_reason = None
        try:
            matched_ids = parse_matched_ids(raw)
        except MalformedResponseError as exc:
            logger.warning(
                "AI filter: %s Reusing basic filter matches. raw=%r",
                exc,
                (raw or "")[:200],
            )
            matched_ids = {str(item.id) for item in fallback}
            degraded_reason = "malformed_response"

        items = [item for item in history if str(item.id) in matched_ids]
        return FilterOutcome(
            items=sort_by_watch_date(items),
            mode=FilterMode.AI,
            degraded_reason=degraded_reason,
        )
