from typing import Optional

import httpx
from loguru import logger

from core.config import GenerationConfig
from core.errors import GenerationError
from llm.base import BaseLLM, Completion

HARM_CATEGORIES = [
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
]


class GeminiProvider(BaseLLM):
    """Google Gemini ``generateContent`` over REST."""

    def __init__(
        self,
        api_key: str,
        config: Optional[GenerationConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.config = config or GenerationConfig()
        self._client = client
        self._owns_client = client is None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url}/models/{self.config.model}:generateContent"

    def build_payload(self, prompt: str) -> dict:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_output_tokens,
                "topP": self.config.top_p,
                "topK": self.config.top_k,
            },
            "safetySettings": [
                {"category": category, "threshold": self.config.safety_threshold}
                for category in HARM_CATEGORIES
            ],
        }

    async def _post(self, payload: dict) -> httpx.Response:
        client = self._ensure_client()
        try:
            return await client.post(
                self.endpoint,
                params={"key": self.api_key},
                headers={"Accept": "application/json"},
                json=payload,
                timeout=self.config.timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise GenerationError(f"Gemini request failed: {e}") from e

    async def complete(self, prompt: str) -> Completion:
        if not self.api_key:
            raise GenerationError("Gemini API key not configured")

        response = await self._post(self.build_payload(prompt))
        if not response.is_success:
            raise GenerationError(
                f"Gemini API error: {response.status_code} - {_error_message(response)}",
                status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationError("Invalid response format from Gemini API") from e

        text = _first_candidate_text(data)
        if not text:
            raise GenerationError("Invalid response format from Gemini API")

        usage = data.get("usageMetadata") or {}
        logger.debug("Gemini reply: {} chars", len(text))
        return Completion(
            text=text,
            usage={
                "total": usage.get("totalTokenCount", 0),
                "prompt": usage.get("promptTokenCount", 0),
                "candidates": usage.get("candidatesTokenCount", 0),
            },
        )

    async def test_connection(self) -> bool:
        if not self.api_key:
            return False
        payload = {
            "contents": [{"parts": [{"text": "Hello"}]}],
            "generationConfig": {"maxOutputTokens": 10},
        }
        try:
            response = await self._post(payload)
        except GenerationError as e:
            logger.warning("Gemini connection test failed: {}", e)
            return False
        return response.is_success

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("error", {}).get("message") or "Unknown error"
    except (ValueError, AttributeError):
        return "Unknown error"


def _first_candidate_text(data: dict) -> str:
    """Text of ``candidates[0].content.parts[0]``, or "" when absent."""
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"].strip()
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
