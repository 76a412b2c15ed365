"""Integration helpers for the Gemini generative-text API."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import Recommendation
from ..utils import extract_json_array

logger = logging.getLogger(__name__)

RECOMMENDATION_COUNT = 5

RECOMMENDATION_PROMPT = """
I have seen and liked these movies/shows: {titles}.
Recommend {count} distinct, similar movies or TV shows that I might like.
For each recommendation, provide the title and a very short, punchy reason why (max 10 words).
IMPORTANT: Respond in {language_name}.
"""

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "title": {"type": "STRING"},
            "reason": {"type": "STRING"},
        },
        "required": ["title", "reason"],
    },
}

MISSING_KEY_PLACEHOLDER = Recommendation(
    title="No API Key",
    reason="Please configure GEMINI_API_KEY to use AI features.",
)


class GeminiClient:
    """Client responsible for talking to Gemini's generateContent endpoint."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    async def recommend(
        self, seen_titles: Sequence[str], language: str = "en"
    ) -> list[Recommendation]:
        """Suggest titles similar to ``seen_titles``; never raises."""

        api_key = self._settings.gemini_api_key
        if not api_key:
            logger.warning("Gemini API key not configured; returning placeholder")
            return [MISSING_KEY_PLACEHOLDER.model_copy()]

        titles = [title.strip() for title in seen_titles if title and title.strip()]
        if not titles:
            return []

        try:
            content = await self._generate(self._build_prompt(titles, language), api_key)
        except (httpx.HTTPError, RuntimeError, ValueError) as exc:
            logger.error("Gemini recommendation error: %s", exc)
            return []
        if not content:
            return []

        try:
            raw_items = extract_json_array(content)
        except ValueError as exc:
            logger.warning("Gemini returned an unreadable payload: %s", exc)
            return []

        recommendations: list[Recommendation] = []
        for entry in raw_items:
            if not isinstance(entry, dict):
                continue
            try:
                recommendations.append(Recommendation.model_validate(entry))
            except ValidationError:
                continue
        return recommendations

    @staticmethod
    def _build_prompt(titles: Sequence[str], language: str) -> str:
        return RECOMMENDATION_PROMPT.format(
            titles=", ".join(titles),
            count=RECOMMENDATION_COUNT,
            language_name="French" if language == "fr" else "English",
        ).strip()

    async def _generate(self, prompt: str, api_key: str) -> str | None:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }
        response = await self._client.post(
            f"/models/{self._settings.gemini_model}:generateContent",
            json=payload,
            headers=headers,
        )
        if response.status_code >= 400:
            raise RuntimeError(response.text)

        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected Gemini response shape")
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates:
            return None
        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise ValueError("Unexpected Gemini candidate shape")
        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise ValueError("Unexpected Gemini content shape")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise ValueError("Unexpected Gemini parts shape")
        texts = [part.get("text") for part in parts if isinstance(part, dict)]
        joined = "".join(text for text in texts if isinstance(text, str))
        return joined or None
