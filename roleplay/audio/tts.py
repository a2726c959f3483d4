import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
from loguru import logger

from chat.models import Voice
from core.config import SpeechConfig
from core.errors import SynthesisError

AUDIO_MIME = "audio/mpeg"


def cache_key(voice: Voice, text: str) -> str:
    """Deterministic key for one voice + text + tuning combination."""
    settings = json.dumps(voice.settings.model_dump(), sort_keys=True)
    return f"{voice.voice_id}-{text}-{settings}"


@dataclass
class SpeechClip:
    """Synthesized audio ready for playback.

    ``release()`` drops the backing bytes and the cache entry. It is safe to
    call more than once.
    """

    key: str
    text: str
    audio: bytes
    cached: bool = False
    _release: Optional[Callable[[], None]] = field(default=None, repr=False)

    def release(self) -> None:
        if self._release is not None:
            release, self._release = self._release, None
            release()
        self.audio = b""

    @property
    def released(self) -> bool:
        return self._release is None and not self.audio


@dataclass
class SynthesisResult:
    success: bool
    clip: Optional[SpeechClip] = None
    error: str = ""


@dataclass
class UsageInfo:
    characters_used: int = 0
    character_limit: int = 10_000
    can_extend: bool = False
    next_reset: Optional[datetime] = None
    reachable: bool = True


class SpeechSynthesizer:
    """ElevenLabs text-to-speech with an in-memory clip cache.

    The cache is keyed by :func:`cache_key`. An entry lives until one of the
    clips handed out for it is released, or until :meth:`release_all`.
    """

    def __init__(
        self,
        api_key: str,
        config: Optional[SpeechConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.config = config or SpeechConfig()
        self._client = client
        self._owns_client = client is None
        self._cache: dict[str, bytes] = {}

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    def _headers(self, accept: str = "application/json") -> dict[str, str]:
        return {"Accept": accept, "xi-api-key": self.api_key}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    async def synthesize(self, text: str, voice: Voice) -> SynthesisResult:
        """Get a playable clip for ``text`` in ``voice``.

        A live cache entry is returned without touching the network.
        """
        if not text or not text.strip():
            return SynthesisResult(success=False, error="No text provided")

        key = cache_key(voice, text)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("TTS cache hit for '{}'", text[:50])
            return SynthesisResult(success=True, clip=self._clip(key, text, cached, True))

        try:
            audio = await self._request_audio(text, voice)
        except SynthesisError as e:
            logger.error("ElevenLabs TTS error: {}", e)
            return SynthesisResult(success=False, error=str(e))

        self._cache[key] = audio
        logger.debug("TTS: synthesized {} bytes for '{}'", len(audio), text[:50])
        return SynthesisResult(success=True, clip=self._clip(key, text, audio, False))

    def _clip(self, key: str, text: str, audio: bytes, cached: bool) -> SpeechClip:
        return SpeechClip(
            key=key,
            text=text,
            audio=audio,
            cached=cached,
            _release=lambda: self._release_entry(key, audio),
        )

    async def _request_audio(self, text: str, voice: Voice) -> bytes:
        if not self.api_key:
            raise SynthesisError("ElevenLabs API key not configured")

        settings = voice.settings
        payload = {
            "text": text,
            "model_id": self.config.model_id,
            "voice_settings": {
                "stability": settings.stability,
                "similarity_boost": settings.similarity_boost,
                "style": settings.style,
                "use_speaker_boost": settings.use_speaker_boost,
            },
        }
        client = self._ensure_client()
        try:
            response = await client.post(
                f"{self.config.base_url}/text-to-speech/{voice.voice_id}",
                headers=self._headers(accept=AUDIO_MIME),
                json=payload,
                timeout=self.config.timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise SynthesisError(f"ElevenLabs request failed: {e}") from e

        if not response.is_success:
            raise SynthesisError(
                f"ElevenLabs API error: {response.status_code} - {response.text or 'Unknown error'}",
                status=response.status_code,
            )
        if not response.content:
            raise SynthesisError("ElevenLabs returned an empty audio payload")
        return response.content

    def release(self, key: str) -> None:
        """Drop the cache entry for ``key``. Unknown keys are ignored."""
        if self._cache.pop(key, None) is not None:
            logger.debug("TTS cache entry released ({} left)", len(self._cache))

    def _release_entry(self, key: str, audio: bytes) -> None:
        # A newer synthesis may have replaced the entry; leave that one alone.
        if self._cache.get(key) is audio:
            self.release(key)

    def release_all(self) -> None:
        count = len(self._cache)
        self._cache.clear()
        if count:
            logger.info("Released {} cached speech clips.", count)

    async def get_voices(self) -> list[dict]:
        """Voice catalog; empty when the backend is unreachable."""
        if not self.api_key:
            logger.warning("ElevenLabs API key not configured.")
            return []
        client = self._ensure_client()
        try:
            response = await client.get(
                f"{self.config.base_url}/voices", headers=self._headers()
            )
            response.raise_for_status()
            return response.json().get("voices", [])
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error("Error fetching voices: {}", e)
            return []

    async def get_usage(self) -> UsageInfo:
        """Subscription usage; falls back to zero of the configured limit."""
        fallback = UsageInfo(character_limit=self.config.character_limit, reachable=False)
        if not self.api_key:
            return fallback
        client = self._ensure_client()
        try:
            response = await client.get(
                f"{self.config.base_url}/user/subscription", headers=self._headers()
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error fetching usage: {}", e)
            return fallback

        reset_unix = data.get("next_character_count_reset_unix")
        return UsageInfo(
            characters_used=data.get("character_count") or 0,
            character_limit=data.get("character_limit") or self.config.character_limit,
            can_extend=bool(data.get("can_extend", False)),
            next_reset=(
                datetime.fromtimestamp(reset_unix, tz=timezone.utc) if reset_unix else None
            ),
        )

    async def test_connection(self) -> bool:
        if not self.api_key:
            return False
        client = self._ensure_client()
        try:
            response = await client.get(
                f"{self.config.base_url}/voices", headers=self._headers()
            )
        except httpx.HTTPError as e:
            logger.warning("ElevenLabs connection test failed: {}", e)
            return False
        return response.is_success

    async def aclose(self) -> None:
        self.release_all()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
