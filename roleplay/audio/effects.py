import asyncio
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from chat.models import Persona
from core.config import clamp_volume
from core.errors import PlaybackError

TYPING_KEY = "typewriter"
NOTIFICATION_KEY = "notification"
MESSAGE_SENT_KEY = "messageSent"
TYPING_VOLUME_SCALE = 0.7  # Typing loop sits a little under the other cues
MESSAGE_SENT_VOLUME = 0.4

SOUND_FILES = {
    NOTIFICATION_KEY: "notification-ting.mp3",
    TYPING_KEY: "typewriter-robotic.mp3",
    MESSAGE_SENT_KEY: "message-send.mp3",
    "typewriter-mystical": "typewriter-mystical.mp3",
    "typewriter-classic": "typewriter-classic.mp3",
    "typewriter-robotic": "typewriter-robotic.mp3",
    "typewriter-medieval": "typewriter-medieval.mp3",
    "typewriter-cosmic": "typewriter-cosmic.mp3",
    "typewriter-magical": "typewriter-magical.mp3",
    "bell-magical": "bell-magical.mp3",
    "bell-victorian": "bell-victorian.mp3",
    "beep-digital": "beep-digital.mp3",
    "bell-castle": "bell-castle.mp3",
    "beep-alien": "beep-alien.mp3",
    "chime-ethereal": "chime-ethereal.mp3",
}

# Prefix of a missing variant -> file that stands in for it
FALLBACK_FILES = {
    "typewriter": "typewriter-robotic.mp3",
    "bell": "notification-ting.mp3",
    "beep": "notification-ting.mp3",
    "chime": "notification-ting.mp3",
}


class EffectsPlayer:
    """Short UI cues on a channel independent of speech.

    One-shot cues may overlap freely; each play gets its own playback. The
    typing cue loops and is always bounded by a duration, and it is the only
    cue that ``set_enabled(False)`` cuts off.
    """

    def __init__(
        self,
        audio_player,
        sounds_dir: Path,
        personas: Iterable[Persona] = (),
        enabled: bool = True,
        volume: float = 0.6,
        master_volume: float = 0.8,
    ):
        self.audio_player = audio_player
        self.sounds_dir = sounds_dir
        self._enabled = enabled
        self._volume = clamp_volume(volume)
        self._master = clamp_volume(master_volume)
        self._sounds: dict[str, object] = {}
        self._loops: dict[object, Optional[asyncio.TimerHandle]] = {}
        self._typing_keys: dict[str, str] = {}
        self._notification_keys: dict[str, str] = {}
        for persona in personas:
            self.register_persona(persona)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def master_volume(self) -> float:
        return self._master

    @property
    def loaded_sounds(self) -> list[str]:
        return list(self._sounds)

    @property
    def active_loops(self) -> int:
        return len(self._loops)

    def register_persona(self, persona: Persona) -> None:
        self._typing_keys[persona.id] = persona.sounds.typing
        self._notification_keys[persona.id] = persona.sounds.notification

    def load_sounds(self, files: Optional[dict[str, str]] = None) -> list[str]:
        """Load cue files from the sounds directory.

        A missing variant is loaded from its generic fallback file instead.
        Returns the keys that ended up registered.
        """
        for key, filename in (files or SOUND_FILES).items():
            try:
                self._sounds[key] = self.audio_player.load_file(self.sounds_dir / filename)
                continue
            except PlaybackError as e:
                logger.warning("Failed to load sound {}: {}", key, e)

            fallback = FALLBACK_FILES.get(key.split("-")[0])
            if "-" not in key or fallback is None or fallback == filename:
                continue
            try:
                self._sounds[key] = self.audio_player.load_file(self.sounds_dir / fallback)
                logger.debug("Sound {} loaded from fallback {}", key, fallback)
            except PlaybackError as e:
                logger.warning("Fallback for sound {} failed: {}", key, e)

        logger.info("Loaded {} sound effects", len(self._sounds))
        return self.loaded_sounds

    def register_sound(self, key: str, clip) -> None:
        self._sounds[key] = clip

    def _mix(self, volume: Optional[float]) -> float:
        level = self._volume if volume is None else clamp_volume(volume)
        return level * self._master

    def play(self, key: str, volume: Optional[float] = None):
        """Fire a one-shot cue. Returns its playback, or None if nothing played."""
        if not self._enabled:
            return None
        return self._play_once(key, volume)

    def _play_once(self, key: str, volume: Optional[float]):
        sound = self._sounds.get(key)
        if sound is None:
            logger.warning("Sound not found: {}", key)
            return None
        try:
            return self.audio_player.play(sound, volume=self._mix(volume))
        except PlaybackError as e:
            logger.warning("Failed to play sound {}: {}", key, e)
            return None

    def typing_key(self, persona_id: Optional[str]) -> str:
        key = self._typing_keys.get(persona_id or "", TYPING_KEY)
        return key if key in self._sounds else TYPING_KEY

    def notification_key(self, persona_id: Optional[str]) -> str:
        key = self._notification_keys.get(persona_id or "", NOTIFICATION_KEY)
        return key if key in self._sounds else NOTIFICATION_KEY

    def play_typing(self, persona_id: Optional[str] = None, duration: float = 2.0):
        """Loop the persona's typing cue for at most ``duration`` seconds."""
        if not self._enabled:
            return None
        key = self.typing_key(persona_id)
        sound = self._sounds.get(key)
        if sound is None:
            logger.warning("Typing sound not found for persona: {}", persona_id)
            return None
        try:
            playback = self.audio_player.play(
                sound,
                volume=self._volume * TYPING_VOLUME_SCALE * self._master,
                loops=-1,
                max_seconds=duration,
            )
        except PlaybackError as e:
            logger.warning("Failed to play typing effect: {}", e)
            return None

        try:
            timer = asyncio.get_running_loop().call_later(duration, self._end_loop, playback)
        except RuntimeError:
            timer = None  # No loop running; the mixer time limit still applies
        self._loops[playback] = timer
        return playback

    def _end_loop(self, playback) -> None:
        timer = self._loops.pop(playback, None)
        if timer is not None:
            timer.cancel()
        try:
            playback.stop()
        except PlaybackError as e:
            logger.debug("Error stopping typing loop: {}", e)

    def stop_typing(self) -> None:
        for playback in list(self._loops):
            self._end_loop(playback)

    def play_notification(self, persona_id: Optional[str] = None):
        return self.play(self.notification_key(persona_id))

    def play_message_sent(self):
        return self.play(MESSAGE_SENT_KEY, MESSAGE_SENT_VOLUME)

    def test_sound(self, key: str):
        """Play a cue even while effects are disabled."""
        return self._play_once(key, 0.7)

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if not enabled:
            self.stop_typing()

    def set_volume(self, effects: Optional[float] = None, master: Optional[float] = None) -> None:
        if effects is not None:
            self._volume = clamp_volume(effects)
        if master is not None:
            self._master = clamp_volume(master)

    def close(self) -> None:
        self.stop_typing()
        self._sounds.clear()
