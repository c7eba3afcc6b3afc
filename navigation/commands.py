# ClearPath/navigation/commands.py
import re
from enum import Enum
from typing import List, Optional


class VoiceCommand(Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    REPEAT = "repeat"
    STOP = "stop"
    WHERE_AM_I = "where"
    HELP = "help"


# Checked in this order; STOP first so "stop, go back" still ends the session.
COMMAND_PHRASES = (
    (VoiceCommand.STOP,       ("stop", "end navigation", "cancel", "quit", "i have arrived", "i'm here")),
    (VoiceCommand.PREVIOUS,   ("previous", "go back", "back", "last step")),
    (VoiceCommand.REPEAT,     ("repeat", "say that again", "again", "what was that")),
    (VoiceCommand.WHERE_AM_I, ("where am i", "where", "progress", "how far")),
    (VoiceCommand.HELP,       ("help", "what can i say", "commands")),
    (VoiceCommand.NEXT,       ("next", "continue", "go on", "done")),
)

HELP_TEXT = (
    "You can say: next, for the next step. Previous, to go back. "
    "Repeat, to hear the current step again. Where am I, for your progress. "
    "Stop, to end navigation."
)


def _phrase_re(phrase: str) -> re.Pattern:
    return re.compile(r"\b" + r"\s+".join(map(re.escape, phrase.split())) + r"\b")


_COMPILED = [(cmd, [_phrase_re(p) for p in phrases]) for cmd, phrases in COMMAND_PHRASES]


def parse_command(transcript: str) -> Optional[VoiceCommand]:
    """Map a short utterance to a VoiceCommand, or None if nothing matches."""
    if not transcript:
        return None
    text = re.sub(r"[^\w\s']", " ", transcript.lower())
    for cmd, patterns in _COMPILED:
        if any(p.search(text) for p in patterns):
            return cmd
    return None


def command_grammar() -> List[str]:
    """Phrase list for a grammar-restricted recognizer."""
    phrases = [p for _, group in COMMAND_PHRASES for p in group]
    return phrases + ["[unk]"]
