from enum import Enum


class Emotion(str, Enum):
    NEUTRAL = "neutral"
    HAPPY = "happy"
    THINKING = "thinking"
    SAD = "sad"
    SURPRISED = "surprised"
    WAVING = "waving"


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class SpeechState(str, Enum):
    IDLE = "idle"              # Nothing synthesizing or playing
    GENERATING = "generating"  # Waiting on the speech backend
    PLAYING = "playing"        # One session is audible


class TurnState(str, Enum):
    READY = "ready"                    # Accepting a new utterance
    AWAITING_REPLY = "awaiting_reply"  # Text backend call in flight
    ERRORED = "errored"                # Last turn fell back; error slot is set
