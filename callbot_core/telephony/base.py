"""
Telephony Base Types

This module defines the call, meeting and chat shapes exchanged with the
communications backend, the service interfaces the orchestrator calls,
and the tagged result returned by guarded call operations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable


@dataclass
class Identity:
    """A directory identity (user or application)."""

    id: str
    display_name: str | None = None
    tenant_id: str | None = None

    def to_identity_set(self) -> dict[str, Any]:
        user: dict[str, Any] = {"@odata.type": "#microsoft.graph.identity", "id": self.id}
        if self.display_name:
            user["displayName"] = self.display_name
        if self.tenant_id:
            user["tenantId"] = self.tenant_id
        return {"@odata.type": "#microsoft.graph.identitySet", "user": user}

    def to_invitation(self) -> dict[str, Any]:
        return {
            "@odata.type": "#microsoft.graph.invitationParticipantInfo",
            "identity": self.to_identity_set(),
        }


@dataclass
class ChatInfo:
    """Chat thread a call or meeting is attached to."""

    thread_id: str
    message_id: str | None = None
    reply_chain_message_id: str | None = None

    def to_graph(self) -> dict[str, Any]:
        data: dict[str, Any] = {"@odata.type": "#microsoft.graph.chatInfo", "threadId": self.thread_id}
        if self.message_id is not None:
            data["messageId"] = self.message_id
        if self.reply_chain_message_id is not None:
            data["replyChainMessageId"] = self.reply_chain_message_id
        return data

    @classmethod
    def from_graph(cls, data: dict[str, Any] | None) -> "ChatInfo | None":
        if not data or not data.get("threadId"):
            return None
        return cls(
            thread_id=data["threadId"],
            message_id=data.get("messageId"),
            reply_chain_message_id=data.get("replyChainMessageId"),
        )


@dataclass
class OrganizerMeetingInfo:
    """Identifies a meeting by its organizer."""

    organizer: Identity

    def to_graph(self) -> dict[str, Any]:
        return {
            "@odata.type": "#microsoft.graph.organizerMeetingInfo",
            "organizer": self.organizer.to_identity_set(),
        }


@dataclass
class Call:
    """A call created by the communications backend."""

    id: str
    chat_info: ChatInfo | None = None
    state: str | None = None


@dataclass
class OnlineMeeting:
    """An online meeting with its join link and meeting chat."""

    id: str
    join_url: str
    chat_info: ChatInfo
    subject: str | None = None


@dataclass(frozen=True)
class IncidentDetails:
    """Metadata recorded once per incident call."""

    call_id: str
    subject: str
    participants: tuple[Identity, ...]
    meeting_info: OrganizerMeetingInfo
    chat_info: ChatInfo
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class OperationStatus(str, Enum):
    """Outcome of a guarded call operation."""

    OK = "ok"
    NOT_FOUND = "not_found"
    FAULT = "fault"


@dataclass(frozen=True)
class OperationResult:
    """Tagged result of an operation on an existing call."""

    status: OperationStatus
    message: str
    detail: str | None = None
    call: Call | None = None

    @classmethod
    def ok(cls, message: str, call: Call | None = None) -> "OperationResult":
        return cls(status=OperationStatus.OK, message=message, call=call)

    @classmethod
    def not_found(cls, message: str) -> "OperationResult":
        return cls(status=OperationStatus.NOT_FOUND, message=message)

    @classmethod
    def fault(cls, message: str, detail: str | None = None) -> "OperationResult":
        return cls(status=OperationStatus.FAULT, message=message, detail=detail)

    @property
    def succeeded(self) -> bool:
        return self.status == OperationStatus.OK


# =============================================================================
# Service interfaces
# =============================================================================


class CallService(ABC):
    """
    Calls on the communications backend.

    Implementations raise CallNotFoundError when the call no longer
    exists and UpstreamFaultError for any other backend failure.
    """

    @abstractmethod
    async def create(self, participants: Iterable[Identity]) -> Call | None:
        """Start a group call with the given users."""

    @abstractmethod
    async def create_for_meeting(self, chat_info: ChatInfo, meeting_info: OrganizerMeetingInfo) -> Call | None:
        """Join the bot into a meeting."""

    @abstractmethod
    async def transfer(self, call_id: str, target: Identity) -> None:
        pass

    @abstractmethod
    async def invite_participant(self, call_id: str, targets: Iterable[Identity]) -> None:
        pass

    @abstractmethod
    async def record(self, call_id: str, prompt_uri: str) -> None:
        """Play a prompt and record the response."""

    @abstractmethod
    async def hang_up(self, call_id: str) -> None:
        pass


class OnlineMeetingService(ABC):
    """Online meeting creation."""

    @abstractmethod
    async def create(self, subject: str, participant_ids: Iterable[str]) -> OnlineMeeting | None:
        pass


class ChatService(ABC):
    """Chat thread management."""

    @abstractmethod
    async def install_app(self, thread_id: str, app_id: str) -> None:
        pass


class IncidentNotifier(ABC):
    """Posts the incident announcement into the meeting chat."""

    @abstractmethod
    async def notify_incident(self, details: IncidentDetails) -> None:
        pass


__all__ = [
    "Identity",
    "ChatInfo",
    "OrganizerMeetingInfo",
    "Call",
    "OnlineMeeting",
    "IncidentDetails",
    "OperationStatus",
    "OperationResult",
    "CallService",
    "OnlineMeetingService",
    "ChatService",
    "IncidentNotifier",
]
