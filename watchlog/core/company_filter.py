from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

import httpx

from watchlog.config import COMPANY_LOOKUP_CONCURRENCY
from watchlog.core.errors import UpstreamUnavailableError
from watchlog.core.ordering import sort_by_watch_date
from watchlog.core.schemas import WatchItemOut

logger = logging.getLogger(__name__)

_TRAILING_SUFFIX = re.compile(r"\s*\b(?:films?|productions?|studios?)$")
_MIN_CONTAINMENT_LENGTH = 2


class MetadataGateway(Protocol):
    async def search_company(self, name: str) -> Optional[int]: ...

    async def details(self, media_type: str, tmdb_id: int) -> Dict[str, Any]: ...


def normalize_company_name(name: str) -> str:
    """Lowercase, collapse whitespace and drop trailing film/production/studio."""
    normalized = " ".join((name or "").lower().split())
    while True:
        stripped = _TRAILING_SUFFIX.sub("", normalized).strip()
        if stripped == normalized:
            return normalized
        normalized = stripped


def company_matches(
    company: Dict[str, Any], target_id: int, target_name: str
) -> bool:
    company_id = company.get("id")
    if company_id is not None:
        try:
            if int(company_id) == int(target_id):
                return True
        except (TypeError, ValueError):
            pass

    candidate = normalize_company_name(str(company.get("name") or ""))
    target = normalize_company_name(target_name)
    if not candidate or not target:
        return False
    if candidate == target:
        return True
    if (
        len(candidate) >= _MIN_CONTAINMENT_LENGTH
        and len(target) >= _MIN_CONTAINMENT_LENGTH
    ):
        return candidate in target or target in candidate
    return False


def produced_by(details: Dict[str, Any], target_id: int, target_name: str) -> bool:
    companies = details.get("production_companies") or []
    return any(
        isinstance(company, dict) and company_matches(company, target_id, target_name)
        for company in companies
    )


async def _check_items(
    gateway: MetadataGateway,
    items: Sequence[WatchItemOut],
    target_id: int,
    target_name: str,
    concurrency: int,
) -> List[Optional[WatchItemOut] | BaseException]:
    sem = asyncio.Semaphore(max(1, concurrency))

    async def _worker(item: WatchItemOut) -> Optional[WatchItemOut]:
        async with sem:
            details = await gateway.details(item.media_type, item.tmdb_id)
        if produced_by(details or {}, target_id, target_name):
            return item
        return None

    tasks = [asyncio.create_task(_worker(item)) for item in items]
    return await asyncio.gather(*tasks, return_exceptions=True)


async def filter_by_company(
    gateway: MetadataGateway,
    company_name: str,
    media_type_hint: Optional[str],
    items: Iterable[WatchItemOut],
    *,
    concurrency: int = COMPANY_LOOKUP_CONCURRENCY,
) -> List[WatchItemOut]:
    """
    Keep the history items whose TMDB production companies include
    ``company_name``.

    Detail lookups run concurrently; a failed lookup drops only its own item.
    A failed company search fails the whole request.
    """
    name = (company_name or "").strip()
    if not name:
        logger.info("Company filter skipped: no company name in prompt.")
        return []

    try:
        company_id = await gateway.search_company(name)
    except httpx.HTTPError as exc:
        logger.warning("Company search for '%s' failed: %s", name, exc)
        raise UpstreamUnavailableError(
            f"Company search failed for '{name}'"
        ) from exc
    if company_id is None:
        logger.info("No TMDB company found for '%s'.", name)
        return []

    candidates = [
        item
        for item in items
        if media_type_hint is None or item.media_type == media_type_hint
    ]
    logger.debug(
        "Checking %d items against company '%s' (id=%s)",
        len(candidates),
        name,
        company_id,
    )

    results = await _check_items(gateway, candidates, company_id, name, concurrency)
    matched: List[WatchItemOut] = []
    for item, result in zip(candidates, results):
        if isinstance(result, BaseException):
            logger.debug(
                "Skipping '%s' (tmdb_id=%s): detail lookup failed: %s",
                item.title,
                item.tmdb_id,
                result,
            )
            continue
        if result is not None:
            matched.append(result)
    return sort_by_watch_date(matched)
