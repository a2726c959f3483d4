from core.state import Emotion

# Checked in this order; the first category with any match wins.
EMOTION_KEYWORDS: dict[Emotion, list[str]] = {
    Emotion.HAPPY: [
        "*smiles*", "*laughs*", "*chuckles*", "*grins*", "*beams*", "*chuckles warmly*",
        "*eyes twinkle*", "*happy beeping*", "*sparkles with joy*", "*glows with happiness*",
    ],
    Emotion.THINKING: [
        "*hmm*", "*ponders*", "*thinks*", "*considers*", "*strokes beard*",
        "*taps fingers*", "*peers intently*", "*circuits whirring*", "*adjusts headphones*",
        "*weaves thoughts*", "*analyzing*", "*processing*",
    ],
    Emotion.SAD: [
        "*sighs*", "*frowns*", "*looks down*", "*sadly*", "*feels sorrow*",
        "*looks troubled*", "*systems dimming*", "*cosmic sadness*", "*silver tears*",
    ],
    Emotion.SURPRISED: [
        "*gasps*", "*eyes widen*", "*startled*", "*amazed*", "*LED lights blinking*",
        "*taken aback*", "*drops beats in surprise*", "*stars align in shock*",
    ],
    Emotion.WAVING: [
        "*waves*", "*gestures*", "*raises hand*", "*bows respectfully*",
        "*tentacles dancing*", "*magical greeting*", "*salutes*",
    ],
}


def classify(text: str) -> Emotion:
    """Map a reply to an emotion by action-phrase containment.

    Anything without a known phrase is neutral.
    """
    lower = (text or "").lower()
    for emotion, keywords in EMOTION_KEYWORDS.items():
        if any(keyword.lower() in lower for keyword in keywords):
            return emotion
    return Emotion.NEUTRAL
