from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from chat.models import Message, Persona
from core.config import GenerationConfig
from core.errors import GenerationError
from core.state import Emotion
from llm.base import BaseLLM
from llm.emotion import classify
from llm.prompts import build_roleplay_prompt
from llm.speech_text import extract


@dataclass
class GenerationResult:
    success: bool
    text: str = ""
    emotion: Emotion = Emotion.NEUTRAL
    speech_text: Optional[str] = None
    error: str = ""
    status: Optional[int] = None
    usage: dict[str, int] = field(default_factory=dict)


class ResponseGenerator:
    """Turns one utterance into a structured in-character reply.

    Never raises for backend problems: a failed call comes back as
    ``GenerationResult(success=False, error=...)``. Retrying is left to the
    caller.
    """

    def __init__(self, llm: BaseLLM, config: Optional[GenerationConfig] = None):
        self.llm = llm
        self.config = config or GenerationConfig()

    async def generate(
        self, utterance: str, persona: Persona, history: list[Message] | None = None
    ) -> GenerationResult:
        prompt = build_roleplay_prompt(
            utterance, persona, history, history_turns=self.config.history_turns
        )
        try:
            completion = await self.llm.complete(prompt)
        except GenerationError as e:
            logger.error("Reply generation failed for {}: {}", persona.id, e)
            return GenerationResult(success=False, error=str(e), status=e.status)

        text = completion.text
        emotion = classify(text)
        speech_text = extract(text, max_words=self.config.max_unmarked_words)
        logger.debug(
            "Reply for {}: emotion={}, speech={!r}", persona.id, emotion.value, speech_text
        )
        return GenerationResult(
            success=True,
            text=text,
            emotion=emotion,
            speech_text=speech_text,
            usage=completion.usage,
        )
