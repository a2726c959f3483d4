from chat.models import Message, Persona

FORMATTING_RULES = """CRITICAL INSTRUCTIONS FOR EMOTIONAL EXPRESSION:
- When expressing emotions or actions, wrap them in asterisks like *thinking deeply* or *smiles warmly*
- Use short interjections like *hmm*, *ah*, *oh* when appropriate for your character
- ONLY the text within asterisks will be read aloud by text-to-speech
- Regular dialogue will be displayed but not spoken unless it's very short (under 5 words)
- Stay true to your character's personality and speaking style
- Keep responses engaging but concise (under 100 words)"""

FALLBACK_REPLY = "*{name} seems to be thinking deeply and cannot respond right now*"


def format_history(history: list[Message], persona: Persona, turns: int = 6) -> str:
    """Render the last ``turns`` log entries as ``speaker: text`` lines."""
    if turns <= 0:
        return ""
    lines = []
    for message in history[-turns:]:
        speaker = "User" if message.is_user else persona.name
        lines.append(f"{speaker}: {message.text}")
    return "\n".join(lines)


def build_roleplay_prompt(
    utterance: str,
    persona: Persona,
    history: list[Message] | None = None,
    history_turns: int = 6,
) -> str:
    """Build the single-shot prompt for an in-character reply."""
    context = format_history(history or [], persona, history_turns)
    previous = f"Previous conversation:\n{context}\n" if context else ""

    return f"""{persona.prompt}

{FORMATTING_RULES}

{previous}
User: {utterance}
{persona.name}:"""


def fallback_reply(persona: Persona) -> str:
    """In-character line shown when the text backend is unavailable."""
    return FALLBACK_REPLY.format(name=persona.name)
