import re
from typing import Optional

ACTION_MARKER = "*"
MAX_UNMARKED_WORDS = 5

ACTION_SPAN = re.compile(r"\*(.*?)\*")
NOISE = re.compile(r"[^\w\s.,!?]")
SPEECH_JOINER = ". "


def extract(text: str, max_words: int = MAX_UNMARKED_WORDS) -> Optional[str]:
    """Pick the part of a reply that should be spoken aloud.

    Bracketed actions (``*sighs*``) are spoken, joined with ". ". A reply
    without any actions is spoken only when it is at most ``max_words`` words
    long after punctuation noise is stripped. Otherwise nothing is spoken.

    Args:
        text: The raw reply text.
        max_words: Word limit for replies without action spans.

    Returns:
        The text to vocalize, or None.
    """
    if not text:
        return None

    spans = ACTION_SPAN.findall(text)
    if spans:
        parts = [span.replace(ACTION_MARKER, "").strip() for span in spans]
        return SPEECH_JOINER.join(part for part in parts if part) or None

    clean = NOISE.sub("", text).strip()
    if clean and len(clean.split()) <= max_words:
        return clean
    return None
