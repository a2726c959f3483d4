import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from chat.models import Message, Persona
from core.errors import ValidationError
from core.events import (
    EMOTION_CHANGED,
    ERROR_CHANGED,
    MESSAGES_CHANGED,
    TYPING_CHANGED,
    EventBus,
)
from core.state import Emotion, Sender, TurnState
from llm.generator import GenerationResult, ResponseGenerator
from llm.prompts import fallback_reply


@dataclass
class TurnOutcome:
    """What one ``submit`` call did.

    ``rejected`` turns touched nothing. Otherwise ``message`` is the
    assistant entry appended to the log (a fallback when ``success`` is
    False).
    """

    success: bool
    message: Optional[Message] = None
    rejected: bool = False
    error: str = ""

    @property
    def speech_text(self) -> Optional[str]:
        return self.message.speech_text if self.success and self.message else None


class ConversationSession:
    """Message log, emotion and typing state for one persona conversation.

    Audio is not driven from here: the caller decides what to play from the
    returned :class:`TurnOutcome` (or from the emitted events).
    """

    def __init__(
        self,
        generator: ResponseGenerator,
        persona: Optional[Persona] = None,
        events: Optional[EventBus] = None,
    ):
        self.generator = generator
        self.events = events or EventBus()
        self._persona = persona
        self._messages: list[Message] = []
        self._emotion = Emotion.NEUTRAL
        self._error: Optional[str] = None
        self._pending = 0
        self._generation = 0  # Bumped on reset; replies for older ones are dropped
        self._turn_state = TurnState.READY

    @property
    def persona(self) -> Optional[Persona]:
        return self._persona

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def emotion(self) -> Emotion:
        return self._emotion

    @property
    def is_typing(self) -> bool:
        return self._pending > 0

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def turn_state(self) -> TurnState:
        return self._turn_state

    def _append(self, message: Message) -> None:
        self._messages.append(message)
        self.events.emit(MESSAGES_CHANGED, self.messages)

    def _set_typing(self, delta: int) -> None:
        was_typing = self.is_typing
        self._pending = max(0, self._pending + delta)
        if self.is_typing != was_typing:
            self.events.emit(TYPING_CHANGED, self.is_typing)

    def _set_emotion(self, emotion: Emotion) -> None:
        if emotion != self._emotion:
            self._emotion = emotion
            self.events.emit(EMOTION_CHANGED, emotion)

    def _set_error(self, error: Optional[str]) -> None:
        if error != self._error:
            self._error = error
            self.events.emit(ERROR_CHANGED, error)

    def _validate(self, utterance: str) -> str:
        if self._persona is None:
            raise ValidationError("No persona selected")
        text = (utterance or "").strip()
        if not text:
            raise ValidationError("Message text is required")
        return text

    async def submit(self, utterance: str) -> TurnOutcome:
        """Run one turn. Backend failures become an in-band fallback reply."""
        try:
            text = self._validate(utterance)
        except ValidationError as e:
            logger.warning("Turn rejected: {}", e)
            return TurnOutcome(success=False, rejected=True, error=str(e))

        persona = self._persona
        generation = self._generation
        history = list(self._messages)

        self._set_error(None)
        self._append(Message(sender=Sender.USER, text=text))
        self._turn_state = TurnState.AWAITING_REPLY
        self._set_typing(+1)

        try:
            result = await self.generator.generate(text, persona, history)
        except asyncio.CancelledError:
            if generation == self._generation:
                self._set_typing(-1)
                self._turn_state = TurnState.READY
            raise
        except Exception as e:
            logger.exception("Unexpected error while generating a reply")
            result = GenerationResult(success=False, error=str(e))

        if generation != self._generation:
            # Reset or persona switch already cleared typing.
            logger.info("Dropping reply for a conversation that was reset")
            return TurnOutcome(success=False, error="Conversation was reset")

        if result.success:
            reply = Message(
                sender=Sender.ASSISTANT,
                text=result.text,
                emotion=result.emotion,
                speech_text=result.speech_text,
                persona_id=persona.id,
            )
            self._append(reply)
            self._set_emotion(result.emotion)
            self._set_typing(-1)
            self._turn_state = TurnState.READY
            return TurnOutcome(success=True, message=reply)

        reply = Message(
            sender=Sender.ASSISTANT,
            text=fallback_reply(persona),
            emotion=Emotion.THINKING,
            persona_id=persona.id,
            is_error=True,
        )
        self._append(reply)
        self._set_emotion(Emotion.THINKING)
        self._set_error(result.error)
        self._set_typing(-1)
        self._turn_state = TurnState.ERRORED
        return TurnOutcome(success=False, message=reply, error=result.error)

    def dismiss_error(self) -> None:
        self._set_error(None)
        if self._turn_state == TurnState.ERRORED:
            self._turn_state = TurnState.READY

    def reset(self) -> None:
        """Clear the log and emotion. Audio is left to the caller."""
        self._generation += 1
        self._messages.clear()
        self.events.emit(MESSAGES_CHANGED, [])
        self._set_emotion(Emotion.NEUTRAL)
        self._set_typing(-self._pending)
        self._set_error(None)
        self._turn_state = TurnState.READY
        logger.debug("Conversation reset")

    def switch_persona(self, persona: Persona) -> None:
        self.reset()
        self._persona = persona
        logger.info("Persona switched to {}", persona.name)

    def stats(self) -> dict:
        user = [m for m in self._messages if m.sender == Sender.USER]
        assistant = [m for m in self._messages if m.sender == Sender.ASSISTANT]
        return {
            "total_messages": len(self._messages),
            "user_messages": len(user),
            "assistant_messages": len(assistant),
            "current_emotion": self._emotion.value,
            "chat_start_time": self._messages[0].timestamp if self._messages else None,
            "last_message_time": self._messages[-1].timestamp if self._messages else None,
        }

    def emotion_history(self) -> list[dict]:
        return [
            {"timestamp": m.timestamp, "emotion": m.emotion, "text": m.text}
            for m in self._messages
            if m.sender == Sender.ASSISTANT and m.emotion is not None
        ]

    def export(self) -> str:
        """Serialize persona, log and stats as JSON."""
        data = {
            "persona": self._persona.model_dump(mode="json") if self._persona else None,
            "messages": [m.model_dump(mode="json") for m in self._messages],
            "stats": self.stats(),
            "exported_at": datetime.now(timezone.utc),
        }
        return json.dumps(data, indent=2, default=_json_default)


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Emotion):
        return value.value
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")
