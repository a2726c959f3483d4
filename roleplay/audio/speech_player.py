import asyncio
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from audio.tts import SpeechClip, SpeechSynthesizer
from chat.models import Persona
from core.config import clamp_volume
from core.errors import PlaybackError
from core.events import SPEECH_STATE_CHANGED, USAGE_CHANGED, EventBus
from core.state import SpeechState

TEST_SENTENCE = "Hello, this is a test of the text-to-speech system."


@dataclass
class UsageCounter:
    """Characters sent to speech synthesis this billing period (estimate)."""

    characters_used: int = 0
    character_limit: int = 10_000
    warning_ratio: float = 0.8

    def record(self, characters: int) -> None:
        self.characters_used += characters

    @property
    def ratio(self) -> float:
        if self.character_limit <= 0:
            return 1.0
        return self.characters_used / self.character_limit

    @property
    def near_limit(self) -> bool:
        return self.ratio > self.warning_ratio


@dataclass
class _Session:
    token: int
    clip: SpeechClip
    playback: object
    watcher: Optional[asyncio.Task] = None


class SpeechPlayer:
    """Plays synthesized speech, one session at a time.

    States move ``idle -> generating -> playing -> idle``. A new request
    stops and releases whatever is active first. Every request and every
    stop bumps a token; a synthesis that completes under an old token is
    released instead of played.
    """

    def __init__(
        self,
        synthesizer: SpeechSynthesizer,
        audio_player,
        events: Optional[EventBus] = None,
        enabled: bool = True,
        volume: float = 0.8,
        usage: Optional[UsageCounter] = None,
        poll_interval: float = 0.05,
    ):
        self.synthesizer = synthesizer
        self.audio_player = audio_player
        self.events = events or EventBus()
        self.usage = usage or UsageCounter()
        self.poll_interval = poll_interval
        self._enabled = enabled
        self._volume = clamp_volume(volume)
        self._state = SpeechState.IDLE
        self._token = 0
        self._active: Optional[_Session] = None

    @property
    def state(self) -> SpeechState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state == SpeechState.PLAYING

    @property
    def is_generating(self) -> bool:
        return self._state == SpeechState.GENERATING

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def active_text(self) -> Optional[str]:
        return self._active.clip.text if self._active else None

    @property
    def near_usage_limit(self) -> bool:
        return self.usage.near_limit

    def _set_state(self, state: SpeechState) -> None:
        if state != self._state:
            self._state = state
            self.events.emit(SPEECH_STATE_CHANGED, state)

    async def request(self, text: Optional[str], persona: Persona) -> bool:
        """Synthesize and play ``text`` in the persona's voice.

        Returns True when playback started.
        """
        if not self._enabled or not text or not text.strip():
            return False

        self.stop()
        token = self._token
        self._set_state(SpeechState.GENERATING)

        result = await self.synthesizer.synthesize(text, persona.voice)

        if token != self._token:
            # Superseded or stopped while synthesizing.
            if result.success:
                result.clip.release()
            logger.debug("Discarding stale speech for '{}'", text[:50])
            return False

        if not result.success:
            logger.warning("TTS generation failed: {}", result.error)
            self._set_state(SpeechState.IDLE)
            return False

        clip = result.clip
        try:
            sound = self.audio_player.load(clip.audio)
            playback = self.audio_player.play(sound, volume=self._volume)
        except PlaybackError as e:
            logger.error("TTS audio playback error: {}", e)
            clip.release()
            self._set_state(SpeechState.IDLE)
            return False

        session = _Session(token=token, clip=clip, playback=playback)
        self._active = session
        self._set_state(SpeechState.PLAYING)
        self.usage.record(len(text))
        self.events.emit(USAGE_CHANGED, self.usage)
        if self.usage.near_limit:
            logger.warning(
                "Speech usage at {:.0%} of {} characters",
                self.usage.ratio,
                self.usage.character_limit,
            )
        session.watcher = asyncio.create_task(self._watch(session))
        return True

    async def _watch(self, session: _Session) -> None:
        """Wait for natural end (or a playback error) and return to idle."""
        try:
            while session.playback.is_playing():
                await asyncio.sleep(self.poll_interval)
        except PlaybackError as e:
            logger.error("TTS audio playback error: {}", e)
        if self._active is session:
            self._active = None
            session.clip.release()
            self._set_state(SpeechState.IDLE)

    def stop(self) -> None:
        """Halt and release the active session. Valid from any state."""
        self._token += 1
        session, self._active = self._active, None
        if session is not None:
            if session.watcher is not None:
                session.watcher.cancel()
            try:
                session.playback.stop()
            except PlaybackError as e:
                logger.debug("Error stopping speech playback: {}", e)
            session.clip.release()
        self._set_state(SpeechState.IDLE)

    def set_volume(self, volume: float) -> float:
        self._volume = clamp_volume(volume)
        if self._active is not None:
            try:
                self._active.playback.set_volume(self._volume)
            except PlaybackError as e:
                logger.warning("Failed to apply speech volume: {}", e)
        return self._volume

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if not enabled:
            self.stop()

    async def refresh_usage(self) -> UsageCounter:
        """Replace the local estimate with the backend's figures when reachable."""
        info = await self.synthesizer.get_usage()
        if info.reachable:
            self.usage.characters_used = info.characters_used
            self.usage.character_limit = info.character_limit
        self.events.emit(USAGE_CHANGED, self.usage)
        return self.usage

    async def test_voice(self, persona: Persona) -> bool:
        return await self.request(TEST_SENTENCE, persona)

    async def shutdown(self) -> None:
        """Stop playback and free every cached clip."""
        self.stop()
        self.synthesizer.release_all()
