"""
Pydantic schemas for bot payloads and replies.

Defines the structured invoke payloads, task-module submissions and the
reply actions handed back to the transport.
"""
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class InvokeValue(BaseModel):
    """Structured value carried by a card action or button press."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str | None = Field(None, description="Command name, e.g. 'hangup'")
    call_id: str | None = Field(None, alias="callId", description="Call the command applies to")


class TaskSubmission(BaseModel):
    """People-picker form submitted from a task module."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    action: str | None = Field(None, description="create, transfer, invite or createincident")
    people_picker: str | None = Field(
        None,
        alias="peoplePicker",
        description="Comma separated directory object ids",
    )
    call_id: str | None = Field(None, alias="callId")
    incident_name: str | None = Field(None, alias="incidentName")

    @property
    def participant_ids(self) -> list[str]:
        if not self.people_picker:
            return []
        return [p.strip() for p in self.people_picker.split(",") if p.strip()]


class ReplyKind(str, Enum):
    """How the transport should deliver a reply."""

    MESSAGE = "message"
    CARD = "card"
    UPDATE = "update"
    TASK_MESSAGE = "task_message"


class ReplyAction(BaseModel):
    """
    A reply for the transport to deliver.

    Cards are named templates plus data; rendering happens in the
    transport.
    """

    kind: ReplyKind = ReplyKind.MESSAGE
    text: str = ""
    card: str | None = Field(None, description="Card template name, e.g. 'welcome'")
    card_data: dict[str, Any] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "kind": "card",
                    "text": "Text context is set. Proceed with your query either by text or call.",
                    "card": "hero",
                    "card_data": {},
                }
            ]
        }
    }

    @classmethod
    def text_message(cls, text: str) -> "ReplyAction":
        return cls(kind=ReplyKind.MESSAGE, text=text)

    @classmethod
    def hero_card(cls, text: str) -> "ReplyAction":
        return cls(kind=ReplyKind.CARD, text=text, card="hero")

    @classmethod
    def adaptive_card(cls, name: str, **data: Any) -> "ReplyAction":
        return cls(kind=ReplyKind.CARD, card=name, card_data=data)

    @classmethod
    def update_activity(cls, text: str) -> "ReplyAction":
        return cls(kind=ReplyKind.UPDATE, text=text)

    @classmethod
    def task_module_message(cls, text: str) -> "ReplyAction":
        return cls(kind=ReplyKind.TASK_MESSAGE, text=text)


class TurnMember(BaseModel):
    """A conversation member as seen by the roster."""

    aad_object_id: str
    meeting_role: str | None = None


class TurnRequest(BaseModel):
    """Request model for the turn endpoint."""

    conversation_id: str = Field(..., min_length=1, max_length=512)
    text: str = Field("", max_length=100000)
    value: Any = None
    channel_data: dict[str, Any] = Field(default_factory=dict)
    reply_to_id: str | None = None
    members: list[TurnMember] = Field(default_factory=list)


class TaskSubmitRequest(BaseModel):
    """Request model for the task-module submit endpoint."""

    conversation_id: str = Field(..., min_length=1, max_length=512)
    data: TaskSubmission


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    service: str = "callbot"
    version: str = "1.0.0"
    timestamp: str
