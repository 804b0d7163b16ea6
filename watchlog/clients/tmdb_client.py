from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

TMDB_BASE = "https://api.themoviedb.org/3"

# Watch items say "series"; TMDB paths say "tv".
_TMDB_MEDIA = {"movie": "movie", "series": "tv", "tv": "tv"}


class TMDBClient:
    def __init__(
        self, api_key: str, timeout: float = 15.0, language: str = "en-US"
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.language = language
        self._client = httpx.AsyncClient(timeout=self.timeout)

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        q = dict(params)
        q["api_key"] = self.api_key
        r = await self._client.get(f"{TMDB_BASE}{path}", params=q)
        r.raise_for_status()
        return r.json()

    async def search_company(self, name: str) -> Optional[int]:
        """Return the TMDB id of the best company match for ``name``, if any."""
        data = await self._get("/search/company", {"query": name})
        for result in data.get("results") or []:
            company_id = result.get("id")
            if company_id is not None:
                return int(company_id)
        return None

    async def details(self, media_type: str, tmdb_id: int) -> Dict[str, Any]:
        media = _TMDB_MEDIA.get(media_type)
        if media is None:
            raise ValueError(f"Unsupported media type '{media_type}'")
        return await self._get(f"/{media}/{tmdb_id}", {"language": self.language})

    async def aclose(self):
        await self._client.aclose()
