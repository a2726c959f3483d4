import asyncio
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from core.config import ConfigManager
from core.events import ERROR_CHANGED, EventBus
from core.errors import PlaybackError

# Base directory for the roleplay source root
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
SOUNDS_DIR = BASE_DIR / "audio" / "sounds"

HELP = """Commands:
  /persona <id>      switch persona (starts a new conversation)
  /personas          list personas
  /reset             clear the conversation
  /speech on|off     toggle spoken replies
  /volume <0-1>      speech volume
  /effects on|off    toggle sound effects
  /usage             speech usage this period
  /export            print the conversation as JSON
  /stop              stop speaking
  /quit              leave"""


class ChatApp:
    """Terminal front end: wires the conversation to speech and cues."""

    def __init__(self, data_dir: Path = DATA_DIR, sounds_dir: Path = SOUNDS_DIR):
        self.config_manager = ConfigManager(data_dir)
        self.sounds_dir = sounds_dir
        self.events = EventBus()

        # Components (initialized in start)
        self._audio_player = None
        self._llm = None
        self._synthesizer = None
        self.session = None
        self.speech = None
        self.effects = None
        self._running = False
        self._speech_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        logger.info("=== Roleplay chat starting ===")
        self._load_components()
        self.events.subscribe(ERROR_CHANGED, self._on_error)

        persona = self.session.persona
        print(f"You are chatting with {persona.name}. Type /help for commands.")
        self._running = True
        await self._input_loop()

    def _load_components(self) -> None:
        from audio.audio_player import AudioPlayer
        from audio.effects import EffectsPlayer
        from audio.speech_player import SpeechPlayer, UsageCounter
        from audio.tts import SpeechSynthesizer
        from chat.personas import PERSONAS, get_persona
        from chat.session import ConversationSession
        from llm.generator import ResponseGenerator
        from llm.providers.gemini_provider import GeminiProvider

        config = self.config_manager.config

        self._audio_player = AudioPlayer()
        try:
            self._audio_player.open()
        except PlaybackError as e:
            logger.warning("Audio output unavailable: {}", e)

        self._llm = GeminiProvider(
            api_key=self.config_manager.api_key("gemini"), config=config.generation
        )
        self._synthesizer = SpeechSynthesizer(
            api_key=self.config_manager.api_key("elevenlabs"), config=config.speech
        )

        persona = get_persona(config.persona) or PERSONAS[0]
        self.session = ConversationSession(
            ResponseGenerator(self._llm, config.generation),
            persona=persona,
            events=self.events,
        )
        self.speech = SpeechPlayer(
            self._synthesizer,
            self._audio_player,
            events=self.events,
            enabled=config.speech.enabled,
            volume=config.speech.volume,
            usage=UsageCounter(
                character_limit=config.speech.character_limit,
                warning_ratio=config.speech.usage_warning_ratio,
            ),
        )
        self.effects = EffectsPlayer(
            self._audio_player,
            self.sounds_dir,
            personas=PERSONAS,
            enabled=config.effects.enabled,
            volume=config.effects.volume,
            master_volume=config.effects.master_volume,
        )
        self.effects.load_sounds()
        logger.info("All components loaded.")

    async def _input_loop(self) -> None:
        while self._running:
            try:
                line = await asyncio.to_thread(input, "> ")
            except (EOFError, KeyboardInterrupt):
                break
            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                await self._handle_command(line)
            else:
                await self.send(line)

    async def send(self, text: str) -> None:
        """One turn plus its audio side effects."""
        persona = self.session.persona
        self.effects.play_message_sent()
        self.effects.play_typing(
            persona.id, self.config_manager.config.effects.typing_duration_seconds
        )

        outcome = await self.session.submit(text)
        self.effects.stop_typing()

        if outcome.rejected:
            print(f"! {outcome.error}")
            return

        message = outcome.message
        if message is not None:
            emotion = message.emotion.value if message.emotion else "neutral"
            print(f"{persona.name} [{emotion}]: {message.text}")

        if outcome.success and outcome.speech_text:
            self.effects.play_notification(persona.id)
            self._speech_task = asyncio.create_task(
                self.speech.request(outcome.speech_text, persona)
            )

    def _on_error(self, error: Optional[str]) -> None:
        if error:
            print(f"! {error} (type /dismiss to clear)")

    async def _handle_command(self, line: str) -> None:
        from chat.personas import get_persona, list_personas

        command, _, arg = line.partition(" ")
        arg = arg.strip()

        if command in ("/quit", "/exit"):
            self._running = False
        elif command == "/help":
            print(HELP)
        elif command == "/personas":
            for persona_id, name in list_personas():
                print(f"  {persona_id:<10} {name}")
        elif command == "/persona":
            persona = get_persona(arg)
            if persona is None:
                print(f"! Unknown persona: {arg}")
                return
            self.speech.stop()
            self.effects.stop_typing()
            self.session.switch_persona(persona)
            self.config_manager.update(persona=persona.id)
            print(f"You are now chatting with {persona.name}.")
        elif command == "/reset":
            self.session.reset()
            print("Conversation cleared.")
        elif command == "/dismiss":
            self.session.dismiss_error()
        elif command == "/stop":
            self.speech.stop()
        elif command == "/speech":
            enabled = _parse_switch(arg)
            if enabled is None:
                print("! Usage: /speech on|off")
                return
            self.speech.set_enabled(enabled)
            self.config_manager.update_nested("speech", enabled=enabled)
        elif command == "/volume":
            try:
                volume = self.speech.set_volume(float(arg))
            except ValueError:
                print("! Volume must be a number between 0 and 1")
                return
            self.config_manager.update_nested("speech", volume=volume)
            print(f"Speech volume {volume:.2f}")
        elif command == "/effects":
            enabled = _parse_switch(arg)
            if enabled is None:
                print("! Usage: /effects on|off")
                return
            self.effects.set_enabled(enabled)
            self.config_manager.update_nested("effects", enabled=enabled)
        elif command == "/usage":
            usage = await self.speech.refresh_usage()
            warning = " (near limit)" if usage.near_limit else ""
            print(f"Speech usage: {usage.characters_used} / {usage.character_limit}{warning}")
        elif command == "/export":
            print(self.session.export())
        else:
            print(f"! Unknown command: {command}. Type /help.")

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        logger.info("Shutting down...")
        self._running = False
        if self._speech_task and not self._speech_task.done():
            self._speech_task.cancel()
        if self.speech:
            await self.speech.shutdown()
        if self.effects:
            self.effects.close()
        if self._synthesizer:
            await self._synthesizer.aclose()
        if self._llm:
            await self._llm.aclose()
        if self._audio_player:
            self._audio_player.close()
        self.events.clear()
        logger.info("Shutdown complete.")


def _parse_switch(arg: str) -> Optional[bool]:
    return {"on": True, "off": False}.get(arg.lower())


def setup_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level:<7} | {message}")
    logger.add(DATA_DIR / "chat.log", rotation="10 MB", retention="7 days", level="DEBUG")


def main():
    """Entry point."""
    setup_logging()
    app = ChatApp()

    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(app.shutdown())
        loop.close()


if __name__ == "__main__":
    main()
