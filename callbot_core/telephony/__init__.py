"""
Telephony module: call services, incident registry and orchestration.
"""

from .base import (
    Call,
    CallService,
    ChatInfo,
    ChatService,
    Identity,
    IncidentDetails,
    IncidentNotifier,
    OnlineMeeting,
    OnlineMeetingService,
    OperationResult,
    OperationStatus,
    OrganizerMeetingInfo,
)
from .graph import GraphCallService, GraphChatService, GraphClient, GraphOnlineMeetingService
from .incidents import IncidentRegistry
from .join_info import parse_join_url
from .orchestrator import CallOrchestrator, handle_call_not_found


__all__ = [
    # Types
    "Call",
    "ChatInfo",
    "Identity",
    "IncidentDetails",
    "OnlineMeeting",
    "OperationResult",
    "OperationStatus",
    "OrganizerMeetingInfo",
    # Interfaces
    "CallService",
    "ChatService",
    "IncidentNotifier",
    "OnlineMeetingService",
    # Graph
    "GraphClient",
    "GraphCallService",
    "GraphChatService",
    "GraphOnlineMeetingService",
    # Orchestration
    "CallOrchestrator",
    "IncidentRegistry",
    "handle_call_not_found",
    "parse_join_url",
]
