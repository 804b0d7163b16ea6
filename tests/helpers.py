from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import httpx

from watchlog.core.errors import UpstreamQuotaError
from watchlog.core.schemas import WatchItemOut


def make_item(
    item_id: int,
    title: str,
    media_type: str = "movie",
    watch_date: str | None = "2023-01-01",
    **extra: Any,
) -> WatchItemOut:
    values: Dict[str, Any] = {
        "id": item_id,
        "tmdb_id": extra.pop("tmdb_id", 1000 + item_id),
        "title": title,
        "media_type": media_type,
        "watch_date": watch_date,
    }
    values.update(extra)
    return WatchItemOut(**values)


def ids(items: Sequence[WatchItemOut]) -> List[int]:
    return [item.id for item in items]


class FakeTMDB:
    """
    In-memory stand-in for TMDBClient.

    ``details`` maps (media_type, tmdb_id) to a payload, or to an exception
    instance that the lookup raises.
    """

    def __init__(
        self,
        companies: Dict[str, int] | None = None,
        details: Dict[tuple, Any] | None = None,
        search_error: Exception | None = None,
    ):
        self.companies = {k.lower(): v for k, v in (companies or {}).items()}
        self.detail_map = dict(details or {})
        self.search_error = search_error
        self.searches: List[str] = []
        self.lookups: List[tuple] = []

    async def search_company(self, name: str) -> Optional[int]:
        self.searches.append(name)
        if self.search_error is not None:
            raise self.search_error
        return self.companies.get(name.lower())

    async def details(self, media_type: str, tmdb_id: int) -> Dict[str, Any]:
        self.lookups.append((media_type, tmdb_id))
        payload = self.detail_map.get((media_type, tmdb_id))
        if isinstance(payload, Exception):
            raise payload
        if payload is None:
            request = httpx.Request("GET", f"https://example.test/{tmdb_id}")
            raise httpx.HTTPStatusError(
                "not found", request=request, response=httpx.Response(404)
            )
        return payload


class FakeLLM:
    def __init__(
        self,
        response: str = "[]",
        *,
        enabled: bool = True,
        error: Exception | None = None,
    ):
        self._response = response
        self._enabled = enabled
        self._error = error
        self.calls: List[tuple] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def classify(self, prompt: str, items: List[WatchItemOut]) -> str:
        self.calls.append((prompt, [item.id for item in items]))
        if self._error is not None:
            raise self._error
        return self._response


def quota_llm() -> FakeLLM:
    return FakeLLM(error=UpstreamQuotaError("Resource has been exhausted (quota)"))


def seed_user(session, username: str = "viewer", email: str | None = None):
    from watchlog.db.models import User

    user = User(
        username=username,
        email=email or f"{username}@example.com",
        password_hash="pbkdf2_sha256$1$c2FsdA==$ZGlnZXN0",
        preferences={"theme": "dark"},
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def seed_item(session, user_id: int, tmdb_id: int, title: str, **extra: Any):
    from watchlog.db.models import WatchItem

    values: Dict[str, Any] = {"media_type": "movie", "genres": []}
    values.update(extra)
    item = WatchItem(user_id=user_id, tmdb_id=tmdb_id, title=title, **values)
    session.add(item)
    session.commit()
    session.refresh(item)
    return item
