import json
import os
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import BaseModel, Field, field_validator


def clamp_volume(value: float) -> float:
    """Clamp a volume level into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


class APIKeysConfig(BaseModel):
    gemini: str = ""
    elevenlabs: str = ""


class GenerationConfig(BaseModel):
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    model: str = "gemini-1.5-flash"
    temperature: float = 0.9
    top_p: float = 0.8
    top_k: int = 40
    max_output_tokens: int = 500
    safety_threshold: str = "BLOCK_MEDIUM_AND_ABOVE"
    history_turns: int = 6
    max_unmarked_words: int = 5  # Unbracketed replies up to this length are spoken
    timeout_seconds: float = 30.0


class SpeechConfig(BaseModel):
    enabled: bool = True
    volume: float = 0.8
    base_url: str = "https://api.elevenlabs.io/v1"
    model_id: str = "eleven_monolingual_v1"
    character_limit: int = 10_000
    usage_warning_ratio: float = 0.8
    timeout_seconds: float = 30.0

    @field_validator("volume")
    @classmethod
    def _clamp_volume(cls, v: float) -> float:
        return clamp_volume(v)


class EffectsConfig(BaseModel):
    enabled: bool = True
    volume: float = 0.6
    master_volume: float = 0.8
    typing_duration_seconds: float = 2.0

    @field_validator("volume", "master_volume")
    @classmethod
    def _clamp_volume(cls, v: float) -> float:
        return clamp_volume(v)


class AppConfig(BaseModel):
    persona: str = "gandalf"
    api_keys: APIKeysConfig = Field(default_factory=APIKeysConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    effects: EffectsConfig = Field(default_factory=EffectsConfig)


ENV_KEYS = {
    "gemini": "GEMINI_API_KEY",
    "elevenlabs": "ELEVENLABS_API_KEY",
}


class ConfigManager:
    """Local settings store backed by a JSON file."""

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.config_path = data_dir / "config.json"
        self._config: Optional[AppConfig] = None

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = self._load()
        return self._config

    def _load(self) -> AppConfig:
        """Load config from disk. Returns defaults if no config exists."""
        if self.config_path.exists():
            try:
                data = json.loads(self.config_path.read_text())
                logger.info("Configuration loaded from {}", self.config_path)
                return AppConfig(**data)
            except Exception as e:
                logger.error("Failed to load config: {}. Using defaults.", e)
        logger.info("No existing config found. Using defaults.")
        return AppConfig()

    def save(self) -> None:
        """Persist current config to disk."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(self.config.model_dump_json(indent=2))
        logger.debug("Configuration saved to {}", self.config_path)

    def update(self, **kwargs) -> AppConfig:
        """Update top-level config fields and save."""
        current = self.config.model_dump()
        for key, value in kwargs.items():
            if key in current:
                if isinstance(current[key], dict) and isinstance(value, dict):
                    current[key].update(value)
                else:
                    current[key] = value
        self._config = AppConfig(**current)
        self.save()
        return self._config

    def update_nested(self, section: str, **kwargs) -> AppConfig:
        """Update fields within a nested config section."""
        current = self.config.model_dump()
        if section in current and isinstance(current[section], dict):
            current[section].update(kwargs)
        self._config = AppConfig(**current)
        self.save()
        return self._config

    def reset(self) -> None:
        """Reset config to defaults and drop the file."""
        self._config = AppConfig()
        if self.config_path.exists():
            self.config_path.unlink()
        logger.info("Configuration reset to defaults.")

    def api_key(self, name: str) -> str:
        """Stored API key, falling back to the environment when blank."""
        stored = getattr(self.config.api_keys, name, "")
        if stored:
            return stored
        return os.environ.get(ENV_KEYS.get(name, ""), "")
