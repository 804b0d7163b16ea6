from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Iterable, List

import httpx

from watchlog.core.errors import UpstreamQuotaError, UpstreamUnavailableError
from watchlog.core.schemas import WatchItemOut

logger = logging.getLogger(__name__)

_QUOTA_MESSAGE_PATTERN = re.compile(
    r"quota|too many requests|rate limit", flags=re.IGNORECASE
)


@dataclass(frozen=True)
class LLMSettings:
    provider: str
    api_key: str | None
    model: str
    endpoint: str
    enabled: bool
    timeout: float


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    raw_provider = os.getenv("AI_FILTER_PROVIDER", "gemini").strip().lower()
    if raw_provider not in {"gemini", "openai"}:
        logger.warning(
            "Unsupported AI_FILTER_PROVIDER '%s'; falling back to 'gemini'.",
            raw_provider,
        )
        provider = "gemini"
    else:
        provider = raw_provider

    if provider == "openai":
        api_key = os.getenv("AI_FILTER_API_KEY") or os.getenv("OPENAI_API_KEY")
        default_model = "gpt-4o-mini"
        default_endpoint = "https://api.openai.com/v1/chat/completions"
    else:
        api_key = os.getenv("AI_FILTER_API_KEY") or os.getenv("GEMINI_API_KEY")
        default_model = "gemini-2.5-flash"
        default_endpoint = "https://generativelanguage.googleapis.com/v1beta/models"

    model = os.getenv("AI_FILTER_MODEL", default_model)
    endpoint = os.getenv("AI_FILTER_ENDPOINT", default_endpoint)
    enabled_value = os.getenv("AI_FILTER_ENABLED", "1").strip().lower()
    enabled = bool(api_key) and enabled_value not in {"0", "false", "no"}
    timeout = 20.0
    raw_timeout = os.getenv("AI_FILTER_TIMEOUT")
    if raw_timeout:
        try:
            timeout = max(1.0, float(raw_timeout))
        except ValueError:
            logger.warning(
                "Invalid AI_FILTER_TIMEOUT value '%s'; using default.", raw_timeout
            )
    return LLMSettings(
        provider=provider,
        api_key=api_key,
        model=model,
        endpoint=endpoint,
        enabled=enabled,
        timeout=timeout,
    )


def is_quota_failure(status_code: int | None, message: str | None) -> bool:
    if status_code == 429:
        return True
    return bool(message and _QUOTA_MESSAGE_PATTERN.search(message))


def classify_failure(
    status_code: int | None, message: str | None
) -> UpstreamQuotaError | UpstreamUnavailableError:
    """Map an upstream failure onto quota-exceeded or a plain upstream error."""
    if is_quota_failure(status_code, message):
        return UpstreamQuotaError(message or "Language model quota exceeded")
    if status_code is not None:
        return UpstreamUnavailableError(
            f"Language model responded with status {status_code}"
        )
    return UpstreamUnavailableError(message or "Language model request failed")


def candidate_payload(items: Iterable[WatchItemOut]) -> List[Dict[str, Any]]:
    # Only what the model needs to decide; keeps the request small.
    return [
        {"id": str(item.id), "title": item.title, "mediaType": item.media_type}
        for item in items
    ]


def build_filter_instruction(prompt: str, items: Iterable[WatchItemOut]) -> str:
    candidates = json.dumps(candidate_payload(items), ensure_ascii=False)
    return (
        "You filter a user's personal watch history.\n"
        f'User request: "{prompt}"\n\n'
        "Watch history (JSON array of objects with id, title and mediaType):\n"
        f"{candidates}\n\n"
        "Use your knowledge of each title (genre, cast, crew, studio, themes, "
        "country, release period) to decide which entries satisfy the request.\n"
        "Respond with ONLY a raw JSON array of the matching ids as strings, "
        'for example ["12", "40"]. Respond with [] when nothing matches. '
        "Do not use markdown, code fences or any other text."
    )


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.text


class LLMClient:
    """Single-turn completion against the configured language model."""

    def __init__(self, settings: LLMSettings | None = None):
        self.settings = settings or get_llm_settings()

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    async def classify(self, prompt: str, items: Iterable[WatchItemOut]) -> str:
        """Ask the model which history entries match ``prompt``; returns raw text."""
        instruction = build_filter_instruction(prompt, items)
        if self.settings.provider == "openai":
            return await self._complete_openai(instruction)
        return await self._complete_gemini(instruction)

    async def _post(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.settings.timeout) as client:
                response = await client.post(url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Language model request failed: %s", exc)
            raise classify_failure(None, str(exc)) from exc

        if response.status_code >= 400:
            sanitized_url = str(response.request.url.copy_with(query=None))
            message = _error_message(response)
            logger.warning(
                "Language model HTTP %s for %s: %s",
                response.status_code,
                sanitized_url,
                message,
            )
            raise classify_failure(response.status_code, message)

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamUnavailableError(
                "Language model returned a non-JSON envelope."
            ) from exc

    async def _complete_gemini(self, instruction: str) -> str:
        endpoint = self.settings.endpoint.rstrip("/")
        if endpoint.endswith(":generateContent"):
            url = endpoint
        else:
            url = f"{endpoint}/{self.settings.model}:generateContent"

        data = await self._post(
            url,
            params={"key": self.settings.api_key},
            headers={"Content-Type": "application/json"},
            json={
                "contents": [{"role": "user", "parts": [{"text": instruction}]}],
                "generationConfig": {"temperature": 0.0},
            },
        )

        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return ""
        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return ""
        texts = [
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        return "".join(texts).strip()

    async def _complete_openai(self, instruction: str) -> str:
        data = await self._post(
            self.settings.endpoint,
            headers={
                "Authorization": f"Bearer {self.settings.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": self.settings.model,
                "messages": [{"role": "user", "content": instruction}],
                "temperature": 0.0,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamUnavailableError(
                "Unexpected response structure from language model."
            ) from exc
        return (content or "").strip()
