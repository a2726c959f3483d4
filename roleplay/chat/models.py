import itertools
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from core.state import Emotion, Sender

_message_ids = itertools.count(1)


class VoiceSettings(BaseModel):
    """ElevenLabs tuning parameters for one persona voice."""

    model_config = ConfigDict(frozen=True)

    stability: float = Field(default=0.5, ge=0.0, le=1.0)
    similarity_boost: float = Field(default=0.8, ge=0.0, le=1.0)
    style: float = Field(default=0.2, ge=0.0, le=1.0)
    use_speaker_boost: bool = True


class Voice(BaseModel):
    model_config = ConfigDict(frozen=True)

    voice_id: str
    settings: VoiceSettings = Field(default_factory=VoiceSettings)


class PersonaSounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    typing: str = "typewriter"
    notification: str = "notification"


class Persona(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    theme_color: str = "#6B7280"
    prompt: str
    voice: Voice
    emotion_images: dict[Emotion, str] = Field(default_factory=dict)
    sounds: PersonaSounds = Field(default_factory=PersonaSounds)


class Message(BaseModel):
    """One entry of the conversation log. Never mutated once created."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(default_factory=lambda: next(_message_ids))
    sender: Sender
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    emotion: Optional[Emotion] = None
    speech_text: Optional[str] = None
    persona_id: Optional[str] = None
    is_error: bool = False

    @property
    def is_user(self) -> bool:
        return self.sender == Sender.USER
