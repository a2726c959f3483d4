import io
from pathlib import Path
from typing import Optional

from loguru import logger

from core.errors import PlaybackError


class Playback:
    """One playing instance of a clip on its own mixer channel.

    A playback only controls its channel while it still owns it. Once the
    channel has been handed to a newer play, or the mixer has been closed,
    ``stop`` and ``set_volume`` do nothing.
    """

    def __init__(self, player: "AudioPlayer", index: int, channel):
        self._player = player
        self._index = index
        self._channel = channel

    def _owns_channel(self) -> bool:
        return self._player.is_open and self._player.owner(self._index) is self

    def is_playing(self) -> bool:
        if not self._player.is_open:
            raise PlaybackError("Audio mixer closed")
        if not self._owns_channel():
            return False
        try:
            return bool(self._channel.get_busy())
        except Exception as e:
            raise PlaybackError(f"Audio playback error: {e}") from e

    def set_volume(self, volume: float) -> None:
        if not self._owns_channel():
            return
        try:
            self._channel.set_volume(volume)
        except Exception as e:
            raise PlaybackError(f"Failed to set volume: {e}") from e

    def stop(self) -> None:
        if not self._owns_channel():
            return
        try:
            self._channel.stop()
        except Exception as e:
            raise PlaybackError(f"Failed to stop playback: {e}") from e
        finally:
            self._player.disown(self._index, self)


class AudioPlayer:
    """Plays audio through pygame's mixer.

    Supports:
    - Decoding MP3/WAV bytes (synthesized speech) and files (sound effects)
    - Any number of overlapping playbacks, one mixer channel each
    - Looping playback with an optional hard time limit
    - Per-playback volume changes while audible
    """

    def __init__(self, frequency: int = 44100, channels: int = 32):
        self.frequency = frequency
        self.channels = channels
        self._mixer = None
        self._channels: list = []
        self._owners: dict[int, Playback] = {}

    @property
    def is_open(self) -> bool:
        return self._mixer is not None

    def open(self) -> None:
        """Initialize the mixer. Safe to call more than once."""
        if self._mixer is not None:
            return
        try:
            import pygame

            pygame.mixer.init(frequency=self.frequency)
            pygame.mixer.set_num_channels(self.channels)
            self._channels = [pygame.mixer.Channel(i) for i in range(self.channels)]
            self._mixer = pygame.mixer
            logger.info("Audio mixer ready ({} channels)", self.channels)
        except ImportError as e:
            raise PlaybackError("pygame not installed. Audio is unavailable.") from e
        except Exception as e:
            raise PlaybackError(f"Failed to initialize audio mixer: {e}") from e

    def _require_mixer(self):
        if self._mixer is None:
            self.open()
        return self._mixer

    def owner(self, index: int) -> Optional[Playback]:
        return self._owners.get(index)

    def disown(self, index: int, playback: Playback) -> None:
        if self._owners.get(index) is playback:
            del self._owners[index]

    def load(self, audio: bytes):
        """Decode in-memory audio bytes into a playable clip."""
        if not audio:
            raise PlaybackError("No audio data")
        mixer = self._require_mixer()
        try:
            return mixer.Sound(file=io.BytesIO(audio))
        except Exception as e:
            raise PlaybackError(f"Failed to decode audio: {e}") from e

    def load_file(self, path: Path):
        """Decode an audio file from disk."""
        if not path.exists():
            raise PlaybackError(f"Sound file not found: {path}")
        mixer = self._require_mixer()
        try:
            return mixer.Sound(file=str(path))
        except Exception as e:
            raise PlaybackError(f"Failed to load {path}: {e}") from e

    def _free_index(self) -> Optional[int]:
        for index, channel in enumerate(self._channels):
            if not channel.get_busy():
                return index
        return None

    def play(self, clip, volume: float = 1.0, loops: int = 0, max_seconds: float = 0) -> Playback:
        """Start an independent playback of ``clip``.

        Args:
            clip: A clip from :meth:`load` or :meth:`load_file`.
            volume: Channel volume in [0, 1].
            loops: Extra repeats; -1 repeats until stopped.
            max_seconds: Stop automatically after this long (0 = no limit).
        """
        self._require_mixer()
        try:
            index = self._free_index()
            if index is not None:
                channel = self._channels[index]
                channel.play(clip, loops=loops, maxtime=int(max_seconds * 1000))
                channel.set_volume(volume)
        except Exception as e:
            raise PlaybackError(f"Audio playback error: {e}") from e
        if index is None:
            raise PlaybackError("No free mixer channel")

        playback = Playback(self, index, channel)
        self._owners[index] = playback
        return playback

    def stop_all(self) -> None:
        if self._mixer is not None:
            self._mixer.stop()
        self._owners.clear()

    def close(self) -> None:
        if self._mixer is not None:
            try:
                self._mixer.stop()
                self._mixer.quit()
            except Exception as e:
                logger.debug("Error closing audio mixer: {}", e)
            self._mixer = None
        self._channels = []
        self._owners.clear()
