"""
Call Orchestrator

Runs call lifecycle operations against the communications backend.

Every operation on an existing call goes through the not-found guard: a
missing call id, or a backend that no longer knows the call (it ended,
was transferred away, or never started), produces the same not-found
result instead of an error.

Incident-call creation is a sequence of backend round trips:
1. Create an online meeting for the subject and participants
2. Parse the meeting's join link
3. Create a call into the meeting
4. Install the bot app into the meeting chat
5. Record the incident
6. Announce the incident in the meeting chat

A failed step stops the sequence. Resources created by earlier steps are
left in place.
"""

from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable

import structlog

from callbot_core import messages
from callbot_core.exceptions import CallbotError, CallNotFoundError, UpstreamFaultError
from callbot_core.telephony.base import (
    Call,
    CallService,
    ChatInfo,
    ChatService,
    Identity,
    IncidentDetails,
    IncidentNotifier,
    OnlineMeetingService,
    OperationResult,
    OrganizerMeetingInfo,
)
from callbot_core.telephony.incidents import IncidentRegistry
from callbot_core.telephony.join_info import parse_join_url


logger = structlog.get_logger()


async def handle_call_not_found(
    call_id: str | None,
    operation: Callable[[str], Awaitable[None]],
    success_message: str = messages.WORKING_ON_IT,
) -> OperationResult:
    """
    Run an operation against a call that must already exist.

    Args:
        call_id: Call to operate on; None or empty means no call
        operation: Coroutine function taking the call id
        success_message: Message for the OK result

    Returns:
        OK, NOT_FOUND, or FAULT carrying the backend's message.
        Transport errors are not caught.
    """
    if not call_id:
        logger.info("call_not_found", call_id=call_id, reason="missing_call_id")
        return OperationResult.not_found(messages.CALL_NOT_FOUND)

    try:
        await operation(call_id)
    except CallNotFoundError:
        logger.info("call_not_found", call_id=call_id, reason="backend")
        return OperationResult.not_found(messages.CALL_NOT_FOUND)
    except UpstreamFaultError as e:
        logger.error("call_operation_failed", call_id=call_id, error=str(e), details=e.details)
        return OperationResult.fault(messages.something_went_wrong(e.message), detail=e.message)

    return OperationResult.ok(success_message)


class CallOrchestrator:
    """
    Call and incident operations.

    One backend invocation per call operation; one registry write and
    one chat announcement per successful incident call.
    """

    def __init__(
        self,
        call_service: CallService,
        meeting_service: OnlineMeetingService,
        chat_service: ChatService,
        incidents: IncidentRegistry,
        notifier: IncidentNotifier,
        catalog_app_id: str = "",
        record_prompt_uri: str = "",
    ) -> None:
        self.calls = call_service
        self.meetings = meeting_service
        self.chats = chat_service
        self.incidents = incidents
        self.notifier = notifier
        self.catalog_app_id = catalog_app_id
        self.record_prompt_uri = record_prompt_uri

    async def create(self, participant_ids: Iterable[str]) -> Call | None:
        """Start a group call with the given users."""
        participants = [Identity(id=p) for p in participant_ids]
        call = await self.calls.create(participants)
        logger.info(
            "call_created" if call else "call_not_created",
            call_id=call.id if call else None,
            participants=len(participants),
        )
        return call

    async def join_scheduled_meeting(self, thread_id: str, organizer_id: str, tenant_id: str | None) -> Call | None:
        """Join the bot into the meeting held in the given chat thread."""
        chat_info = ChatInfo(thread_id=thread_id, message_id="0")
        meeting_info = OrganizerMeetingInfo(organizer=Identity(id=organizer_id, tenant_id=tenant_id))

        call = await self.calls.create_for_meeting(chat_info, meeting_info)
        logger.info("meeting_joined", thread_id=thread_id, call_id=call.id if call else None)
        return call

    async def transfer(self, call_id: str | None, target_id: str) -> OperationResult:
        target = Identity(id=target_id)
        return await handle_call_not_found(call_id, lambda cid: self.calls.transfer(cid, target))

    async def invite_participant(self, call_id: str | None, target_id: str) -> OperationResult:
        targets = [Identity(id=target_id)]
        return await handle_call_not_found(call_id, lambda cid: self.calls.invite_participant(cid, targets))

    async def record(self, call_id: str | None, prompt_uri: str | None = None) -> OperationResult:
        prompt = prompt_uri or self.record_prompt_uri
        return await handle_call_not_found(call_id, lambda cid: self.calls.record(cid, prompt))

    async def hang_up(self, call_id: str | None) -> OperationResult:
        return await handle_call_not_found(call_id, self.calls.hang_up)

    async def create_incident_call(self, subject: str, participant_ids: Iterable[str]) -> OperationResult:
        """
        Set up an incident meeting with the bot on the call.

        Returns:
            OK with the created call, or FAULT with the generic apology
            and the failed step name as detail
        """
        participant_ids = list(participant_ids)
        created: dict[str, str] = {}

        def failed(step: str, error: Exception | None = None) -> OperationResult:
            logger.error(
                "incident_step_failed",
                step=step,
                subject=subject,
                created=created,
                error=str(error) if error else None,
            )
            return OperationResult.fault(messages.SOMETHING_WENT_WRONG, detail=step)

        try:
            meeting = await self.meetings.create(subject, participant_ids)
        except CallbotError as e:
            return failed("create_meeting", e)
        if meeting is None:
            return failed("create_meeting")
        created["meeting_id"] = meeting.id

        try:
            _, meeting_info = parse_join_url(meeting.join_url)
        except CallbotError as e:
            return failed("parse_join_url", e)

        try:
            call = await self.calls.create_for_meeting(meeting.chat_info, meeting_info)
        except CallbotError as e:
            return failed("create_call", e)
        if call is None:
            return failed("create_call")
        created["call_id"] = call.id

        thread_id = call.chat_info.thread_id if call.chat_info else meeting.chat_info.thread_id
        try:
            await self.chats.install_app(thread_id, self.catalog_app_id)
        except CallbotError as e:
            return failed("install_app", e)

        details = IncidentDetails(
            call_id=call.id,
            subject=subject,
            participants=tuple(Identity(id=p) for p in participant_ids),
            meeting_info=meeting_info,
            chat_info=meeting.chat_info,
            start_time=datetime.now(timezone.utc),
        )
        self.incidents.set(call.id, details)

        try:
            await self.notifier.notify_incident(details)
        except CallbotError as e:
            return failed("notify", e)

        logger.info(
            "incident_created",
            call_id=call.id,
            subject=subject,
            participants=len(participant_ids),
            thread_id=meeting.chat_info.thread_id,
        )
        return OperationResult.ok(messages.INCIDENT_CREATED, call=call)
