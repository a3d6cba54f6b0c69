"""
Command classification.

Message text is matched by substring containment, in priority order,
for the context and answer commands; then by exact match for the call
commands and the greeting. Anything else is echoed back. Containment
means a long message that happens to contain a keyword triggers that
command.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from callbot_core.bot.schemas import InvokeValue


class Command(str, Enum):
    """Commands the bot understands."""

    SET_TEXT_CONTEXT = "settextcontext"
    DELETE_TEXT_CONTEXT = "deletetextcontext"
    SET_DOCUMENT_CONTEXT = "setdocumentcontext"
    SET_MEETING_CONTEXT = "setmeetingcontext"
    ANSWER = "answerme"
    PLAY_RECORD_PROMPT = "playrecordprompt"
    HANG_UP = "hangup"
    JOIN_SCHEDULED_MEETING = "joinscheduledmeeting"
    GREETING = "hi"
    ECHO = "echo"
    UNKNOWN = "unknown"


# Checked in this order; the first keyword found anywhere in the text wins
CONTAINMENT_COMMANDS: tuple[Command, ...] = (
    Command.SET_TEXT_CONTEXT,
    Command.DELETE_TEXT_CONTEXT,
    Command.SET_DOCUMENT_CONTEXT,
    Command.SET_MEETING_CONTEXT,
    Command.ANSWER,
)

EXACT_COMMANDS: dict[str, Command] = {
    Command.PLAY_RECORD_PROMPT.value: Command.PLAY_RECORD_PROMPT,
    Command.HANG_UP.value: Command.HANG_UP,
    Command.JOIN_SCHEDULED_MEETING.value: Command.JOIN_SCHEDULED_MEETING,
    Command.GREETING.value: Command.GREETING,
}

MENTION_PATTERN = re.compile(r"<at>.*?</at>", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class ParsedCommand:
    """A classified turn: the command, the normalized text and the call it targets."""

    command: Command
    text: str
    call_id: str | None = None


def strip_mention(text: str) -> str:
    """Remove every <at>bot</at> mention, wherever it appears."""
    return MENTION_PATTERN.sub("", text)


def normalize_text(text: str) -> str:
    return strip_mention(text).strip().lower()


def classify(normalized: str) -> Command:
    """Map normalized text to a command. Never fails."""
    for command in CONTAINMENT_COMMANDS:
        if command.value in normalized:
            return command
    return EXACT_COMMANDS.get(normalized, Command.ECHO)


def parse_invoke_value(value: Any) -> ParsedCommand:
    """
    Classify a structured payload such as a card button submission.

    A payload without a usable type, or one that fails validation,
    is UNKNOWN.
    """
    try:
        payload = InvokeValue.model_validate(value)
    except ValidationError:
        return ParsedCommand(command=Command.UNKNOWN, text="")

    action = (payload.type or "").strip().lower()
    if not action:
        return ParsedCommand(command=Command.UNKNOWN, text="", call_id=payload.call_id)
    return ParsedCommand(command=classify(action), text=action, call_id=payload.call_id)


def parse_turn(text: str | None, value: Any = None) -> ParsedCommand:
    """Classify a turn from its text, or from its payload when the text is empty."""
    if not text:
        return parse_invoke_value(value)
    normalized = normalize_text(text)
    return ParsedCommand(command=classify(normalized), text=normalized)
