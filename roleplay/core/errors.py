from typing import Optional


class RoleplayError(Exception):
    """Base class for errors raised inside the chat pipeline."""


class GenerationError(RoleplayError):
    """Text backend unreachable, non-2xx, or returned no usable candidate."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class SynthesisError(RoleplayError):
    """Speech backend failed, credentials missing, or empty audio payload."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PlaybackError(RoleplayError):
    """An audio clip could not be decoded or played."""


class ValidationError(RoleplayError):
    """A turn was rejected before any side effect happened."""
