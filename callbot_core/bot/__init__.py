"""Turn handling: command classification and routing."""
from .base import (
    InMemoryTransport,
    MemberListRosterLookup,
    RosterLookup,
    TransportIncidentNotifier,
    Turn,
    TurnTransport,
)
from .commands import Command, ParsedCommand, classify, parse_turn
from .router import CommandRouter
from .schemas import ReplyAction, ReplyKind, TaskSubmission

__all__ = [
    "Command",
    "CommandRouter",
    "InMemoryTransport",
    "MemberListRosterLookup",
    "ParsedCommand",
    "ReplyAction",
    "ReplyKind",
    "RosterLookup",
    "TaskSubmission",
    "TransportIncidentNotifier",
    "Turn",
    "TurnTransport",
    "classify",
    "parse_turn",
]
