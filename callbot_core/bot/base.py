"""
Bot Base Types

The inbound turn, and the transport and roster interfaces the router
talks to. Delivery to the messaging platform lives behind
TurnTransport; finding a meeting organizer lives behind RosterLookup.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

import structlog

from callbot_core.bot.schemas import ReplyAction, TurnMember
from callbot_core.telephony.base import IncidentDetails, IncidentNotifier


logger = structlog.get_logger()

ORGANIZER_ROLE = "Organizer"


@dataclass
class Turn:
    """One inbound event from the conversation."""

    conversation_id: str
    text: str = ""
    value: Any = None
    channel_data: dict[str, Any] = field(default_factory=dict)
    reply_to_id: str | None = None
    members: list[TurnMember] = field(default_factory=list)

    @property
    def is_meeting(self) -> bool:
        return self.channel_data.get("meeting") is not None

    @property
    def tenant_id(self) -> str | None:
        tenant = self.channel_data.get("tenant")
        if isinstance(tenant, dict):
            return tenant.get("id")
        return None


class TurnTransport(ABC):
    """Delivers replies to the messaging platform."""

    @abstractmethod
    async def send_to_conversation(self, conversation_id: str, reply: ReplyAction) -> None:
        pass

    @abstractmethod
    async def update_activity(self, conversation_id: str, activity_id: str, reply: ReplyAction) -> None:
        """Replace a previously sent activity."""


class RosterLookup(ABC):
    """Finds people in a conversation."""

    @abstractmethod
    async def get_meeting_organizer(self, turn: Turn) -> str | None:
        """Directory object id of the meeting organizer, if any."""


class MemberListRosterLookup(RosterLookup):
    """Reads the organizer from the member list carried on the turn."""

    async def get_meeting_organizer(self, turn: Turn) -> str | None:
        for member in turn.members:
            if member.meeting_role == ORGANIZER_ROLE:
                return member.aad_object_id
        return None


class InMemoryTransport(TurnTransport):
    """
    Collects replies per conversation instead of delivering them.

    Backs the HTTP API, where the caller polls the outbox.
    """

    def __init__(self) -> None:
        self.outbox: dict[str, list[ReplyAction]] = defaultdict(list)

    async def send_to_conversation(self, conversation_id: str, reply: ReplyAction) -> None:
        self.outbox[conversation_id].append(reply)

    async def update_activity(self, conversation_id: str, activity_id: str, reply: ReplyAction) -> None:
        self.outbox[conversation_id].append(reply)

    def drain(self, conversation_id: str) -> list[ReplyAction]:
        return self.outbox.pop(conversation_id, [])


class TransportIncidentNotifier(IncidentNotifier):
    """Announces a new incident in the meeting chat through the transport."""

    def __init__(self, transport: TurnTransport) -> None:
        self.transport = transport

    async def notify_incident(self, details: IncidentDetails) -> None:
        card = ReplyAction.adaptive_card(
            "incident_meeting",
            subject=details.subject,
            call_id=details.call_id,
            start_time=details.start_time.isoformat(),
        )
        await self.transport.send_to_conversation(details.chat_info.thread_id, card)
        logger.debug("incident_announced", call_id=details.call_id, thread_id=details.chat_info.thread_id)
