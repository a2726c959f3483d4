"""Shared fakes: an in-memory mixer, a scripted text backend and HTTP mocks."""
import asyncio
from pathlib import Path

import httpx
import pytest

from chat.models import Persona, PersonaSounds, Voice, VoiceSettings
from core.errors import GenerationError, PlaybackError
from llm.base import BaseLLM, Completion


class FakeSound:
    def __init__(self, source):
        self.source = source


class FakePlayback:
    def __init__(self, sound, volume, loops=0, max_seconds=0):
        self.sound = sound
        self.volume = volume
        self.loops = loops
        self.max_seconds = max_seconds
        self.playing = True
        self.stopped = False
        self.broken = False

    def is_playing(self) -> bool:
        if self.broken:
            raise PlaybackError("device lost")
        return self.playing

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def stop(self) -> None:
        self.playing = False
        self.stopped = True

    def finish(self) -> None:
        self.playing = False


class FakeAudioPlayer:
    """Stands in for the pygame mixer. ``available`` limits which files load."""

    def __init__(self, available=None):
        self.available = available
        self.loaded: list[FakeSound] = []
        self.plays: list[FakePlayback] = []
        self.fail_play = False

    def load(self, audio: bytes):
        if not audio:
            raise PlaybackError("No audio data")
        sound = FakeSound(audio)
        self.loaded.append(sound)
        return sound

    def load_file(self, path: Path):
        if self.available is not None and path.name not in self.available:
            raise PlaybackError(f"Sound file not found: {path}")
        return FakeSound(path.name)

    def play(self, clip, volume=1.0, loops=0, max_seconds=0):
        if self.fail_play:
            raise PlaybackError("No free mixer channel")
        playback = FakePlayback(clip, volume, loops, max_seconds)
        self.plays.append(playback)
        return playback

    @property
    def playing(self) -> list[FakePlayback]:
        return [p for p in self.plays if p.playing]


class ScriptedLLM(BaseLLM):
    """Returns queued replies; an Exception in the queue is raised instead."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts: list[str] = []
        self.gate: asyncio.Event | None = None

    async def complete(self, prompt: str) -> Completion:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0) if self.replies else "*smiles*"
        if isinstance(reply, Exception):
            raise reply
        return Completion(text=reply, usage={"total": 12})


def gemini_body(text: str) -> dict:
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}}],
        "usageMetadata": {
            "totalTokenCount": 30,
            "promptTokenCount": 20,
            "candidatesTokenCount": 10,
        },
    }


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def persona():
    return Persona(
        id="tester",
        name="Test Wizard",
        prompt="You are a test wizard.",
        voice=Voice(voice_id="voice-1", settings=VoiceSettings(stability=0.6)),
        sounds=PersonaSounds(typing="typewriter-mystical", notification="bell-magical"),
    )


@pytest.fixture
def audio():
    return FakeAudioPlayer()


@pytest.fixture
def failing_llm():
    return ScriptedLLM(GenerationError("Gemini API error: 503 - overloaded", status=503))
