"""Tests for LLM components."""
import json

import httpx
import pytest

from chat.models import Message
from chat.personas import PERSONAS, get_persona, list_personas
from core.config import GenerationConfig
from core.errors import GenerationError
from core.state import Emotion, Sender
from llm.emotion import EMOTION_KEYWORDS, classify
from llm.generator import ResponseGenerator
from llm.prompts import build_roleplay_prompt, fallback_reply, format_history
from llm.providers.gemini_provider import GeminiProvider
from llm.speech_text import extract

from conftest import ScriptedLLM, gemini_body, mock_client


class TestEmotionClassifier:
    @pytest.mark.parametrize(
        "emotion,keyword",
        [(emotion, keyword) for emotion, keywords in EMOTION_KEYWORDS.items() for keyword in keywords],
    )
    def test_every_keyword(self, emotion, keyword):
        assert classify(f"Well then. {keyword} Indeed.") == emotion

    def test_neutral(self):
        assert classify("") == Emotion.NEUTRAL
        assert classify("hello") == Emotion.NEUTRAL
        assert classify(None) == Emotion.NEUTRAL

    def test_case_insensitive(self):
        assert classify("*SIGHS* fine") == Emotion.SAD

    def test_priority_order(self):
        # happy is checked before sad
        assert classify("*sighs* and then *smiles*") == Emotion.HAPPY

    def test_stable(self):
        text = "*ponders* a riddle"
        assert {classify(text) for _ in range(5)} == {Emotion.THINKING}


class TestSpeechTextExtractor:
    def test_action_span(self):
        assert extract("*smiles* Hello there, friend, how are you today") == "smiles"

    def test_short_reply(self):
        assert extract("Sure") == "Sure"

    def test_long_reply(self):
        text = "This is a much longer reply without any bracketed action text at all"
        assert extract(text) is None

    def test_multiple_spans_joined(self):
        assert extract("*hmm* Let me see. *strokes beard*") == "hmm. strokes beard"

    def test_empty_spans_skipped(self):
        assert extract("** well *nods*") == "nods"
        assert extract("*  * and more words than five here") is None

    def test_noise_stripped(self):
        assert extract("Sure thing :) ~") == "Sure thing"

    def test_word_limit_configurable(self):
        assert extract("one two three", max_words=2) is None
        assert extract("one two", max_words=2) == "one two"

    def test_empty(self):
        assert extract("") is None


class TestPrompts:
    def test_prompt_contains_persona_and_rules(self, persona):
        prompt = build_roleplay_prompt("hello", persona)
        assert prompt.startswith(persona.prompt)
        assert "wrap them in asterisks" in prompt
        assert prompt.rstrip().endswith("User: hello\nTest Wizard:")
        assert "Previous conversation" not in prompt

    def test_history_bounded(self, persona):
        history = [
            Message(sender=Sender.USER if i % 2 == 0 else Sender.ASSISTANT, text=f"line {i}")
            for i in range(10)
        ]
        rendered = format_history(history, persona, turns=6)
        lines = rendered.splitlines()
        assert len(lines) == 6
        assert lines[0] == "User: line 4"
        assert lines[1] == "Test Wizard: line 5"
        assert "line 3" not in build_roleplay_prompt("next", persona, history)

    def test_fallback_reply(self, persona):
        assert fallback_reply(persona) == (
            "*Test Wizard seems to be thinking deeply and cannot respond right now*"
        )


class TestPersonas:
    def test_catalog(self):
        ids = [persona_id for persona_id, _ in list_personas()]
        assert ids == ["gandalf", "sherlock", "robot", "knight", "alien", "sorceress"]
        assert len({p.voice.voice_id for p in PERSONAS}) == len(PERSONAS)

    def test_lookup(self):
        assert get_persona("gandalf").name == "Gandalf the Grey"
        assert get_persona("nobody") is None

    def test_every_emotion_has_image(self):
        for persona in PERSONAS:
            assert set(persona.emotion_images) == set(Emotion)


class TestGeminiProvider:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_body("  *smiles* Hi  "))

        provider = GeminiProvider("secret", client=mock_client(handler))
        completion = await provider.complete("prompt text")

        assert completion.text == "*smiles* Hi"
        assert completion.usage == {"total": 30, "prompt": 20, "candidates": 10}
        assert ":generateContent" in seen["url"]
        assert "key=secret" in seen["url"]
        body = seen["body"]
        assert body["contents"][0]["parts"][0]["text"] == "prompt text"
        assert body["generationConfig"] == {
            "temperature": 0.9,
            "maxOutputTokens": 500,
            "topP": 0.8,
            "topK": 40,
        }
        assert len(body["safetySettings"]) == 4

    @pytest.mark.asyncio
    async def test_http_error_carries_status(self):
        def handler(request):
            return httpx.Response(429, json={"error": {"message": "quota exceeded"}})

        provider = GeminiProvider("secret", client=mock_client(handler))
        with pytest.raises(GenerationError) as exc:
            await provider.complete("x")
        assert exc.value.status == 429
        assert "quota exceeded" in str(exc.value)

    @pytest.mark.asyncio
    async def test_missing_candidate(self):
        provider = GeminiProvider(
            "secret", client=mock_client(lambda r: httpx.Response(200, json={"candidates": []}))
        )
        with pytest.raises(GenerationError):
            await provider.complete("x")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        provider = GeminiProvider("secret", client=mock_client(handler))
        with pytest.raises(GenerationError):
            await provider.complete("x")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        provider = GeminiProvider("", client=mock_client(lambda r: httpx.Response(200)))
        with pytest.raises(GenerationError):
            await provider.complete("x")
        assert not await provider.test_connection()


class TestResponseGenerator:
    @pytest.mark.asyncio
    async def test_structured_reply(self, persona):
        provider = GeminiProvider(
            "secret",
            client=mock_client(lambda r: httpx.Response(200, json=gemini_body("*sighs* Alas."))),
        )
        result = await ResponseGenerator(provider).generate("hello", persona, [])

        assert result.success
        assert result.text == "*sighs* Alas."
        assert result.emotion == Emotion.SAD
        assert result.speech_text == "sighs"
        assert result.usage["total"] == 30

    @pytest.mark.asyncio
    async def test_failure_is_returned(self, persona, failing_llm):
        result = await ResponseGenerator(failing_llm).generate("hello", persona, [])
        assert not result.success
        assert result.status == 503
        assert "overloaded" in result.error

    @pytest.mark.asyncio
    async def test_history_passed_to_prompt(self, persona):
        llm = ScriptedLLM("Yes")
        history = [Message(sender=Sender.USER, text="earlier question")]
        config = GenerationConfig(max_unmarked_words=0)
        result = await ResponseGenerator(llm, config).generate("again", persona, history)

        assert "User: earlier question" in llm.prompts[0]
        assert result.speech_text is None
