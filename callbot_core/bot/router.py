"""
Command Router

Turns an inbound turn into a command and runs it:
- Context commands update the conversation's context layers
- "answerme" sends the composed context to the completion backend
- Call commands go through the call orchestrator
- Everything else is echoed

The router is the single place where failures become replies. A turn
always gets an answer, even when a backend call raises.
"""

from typing import Awaitable, Callable

import structlog

from callbot_core import messages
from callbot_core.bot.base import RosterLookup, Turn, TurnTransport
from callbot_core.bot.commands import Command, ParsedCommand, parse_turn
from callbot_core.bot.schemas import ReplyAction, ReplyKind, TaskSubmission
from callbot_core.config import Settings, get_settings
from callbot_core.conversation.context import ContextStore
from callbot_core.llm.client import CompletionClient
from callbot_core.telephony.base import OperationResult
from callbot_core.telephony.orchestrator import CallOrchestrator


logger = structlog.get_logger()

Handler = Callable[[Turn, ParsedCommand], Awaitable[ReplyAction]]


def _error_text(error: Exception) -> str:
    return getattr(error, "message", None) or str(error)


class CommandRouter:
    """
    Routes turns and task-module submissions.

    Context is looked up by the turn's conversation id; whether that
    context is private to the conversation depends on the store's scope.
    """

    def __init__(
        self,
        completion: CompletionClient,
        contexts: ContextStore,
        orchestrator: CallOrchestrator,
        roster: RosterLookup | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.completion = completion
        self.contexts = contexts
        self.orchestrator = orchestrator
        self.roster = roster
        self._settings = settings or get_settings()

        self._handlers: dict[Command, Handler] = {
            Command.SET_TEXT_CONTEXT: self._set_text_context,
            Command.DELETE_TEXT_CONTEXT: self._delete_text_context,
            Command.SET_DOCUMENT_CONTEXT: self._set_document_context,
            Command.SET_MEETING_CONTEXT: self._set_meeting_context,
            Command.ANSWER: self._answer,
            Command.PLAY_RECORD_PROMPT: self._play_record_prompt,
            Command.HANG_UP: self._hang_up,
            Command.JOIN_SCHEDULED_MEETING: self._join_scheduled_meeting,
            Command.GREETING: self._greeting,
            Command.ECHO: self._echo,
            Command.UNKNOWN: self._unknown,
        }

    async def route(self, turn: Turn) -> ReplyAction:
        """
        Classify and run a turn.

        Returns:
            The reply for the transport; an apology with the error
            message when a downstream operation fails
        """
        parsed = parse_turn(turn.text, turn.value)

        logger.info(
            "command_classified",
            conversation_id=turn.conversation_id,
            command=parsed.command.value,
            call_id=parsed.call_id,
            from_payload=not turn.text,
        )

        try:
            return await self._handlers[parsed.command](turn, parsed)
        except Exception as e:
            logger.exception(
                "turn_failed",
                conversation_id=turn.conversation_id,
                command=parsed.command.value,
                error=str(e),
            )
            return ReplyAction.text_message(messages.something_went_wrong(_error_text(e)))

    async def on_turn(self, turn: Turn, transport: TurnTransport) -> ReplyAction:
        """Route a turn and deliver the reply."""
        reply = await self.route(turn)

        if reply.kind == ReplyKind.UPDATE and turn.reply_to_id:
            await transport.update_activity(turn.conversation_id, turn.reply_to_id, reply)
        else:
            await transport.send_to_conversation(turn.conversation_id, reply)
        return reply

    # -------------------------------------------------------------------------
    # Context commands
    # -------------------------------------------------------------------------

    async def _set_text_context(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        self.contexts.set(turn.conversation_id, "text", parsed.text)
        return ReplyAction.hero_card(messages.TEXT_CONTEXT_SET)

    async def _delete_text_context(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        self.contexts.clear(turn.conversation_id, "text")
        return ReplyAction.hero_card(messages.TEXT_CONTEXT_DELETED)

    async def _set_document_context(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        self.contexts.set(turn.conversation_id, "document", parsed.text)
        return ReplyAction.hero_card(messages.DOCUMENT_CONTEXT_SET)

    async def _set_meeting_context(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        self.contexts.set(turn.conversation_id, "meeting", parsed.text)
        return ReplyAction.hero_card(messages.MEETING_CONTEXT_SET)

    async def _answer(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        with self.contexts.pending_query(turn.conversation_id, parsed.text) as prompt:
            if self._settings.answer_streaming:
                text = await self.completion.complete_streaming(prompt)
            else:
                text = await self.completion.complete(prompt)

        logger.info("answer_generated", conversation_id=turn.conversation_id, length=len(text))
        return ReplyAction.hero_card(text)

    # -------------------------------------------------------------------------
    # Call commands
    # -------------------------------------------------------------------------

    async def _play_record_prompt(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        result = await self.orchestrator.record(parsed.call_id)
        return ReplyAction.update_activity(result.message)

    async def _hang_up(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        result = await self.orchestrator.hang_up(parsed.call_id)
        return ReplyAction.update_activity(result.message)

    async def _join_scheduled_meeting(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        if not turn.is_meeting:
            return ReplyAction.text_message(messages.MEETING_NOT_FOUND)

        organizer_id = await self.roster.get_meeting_organizer(turn) if self.roster else None
        if not organizer_id:
            logger.warning("meeting_organizer_not_found", conversation_id=turn.conversation_id)
            return ReplyAction.text_message(messages.something_went_wrong("The meeting organizer could not be found."))

        call = await self.orchestrator.join_scheduled_meeting(turn.conversation_id, organizer_id, turn.tenant_id)
        if call is None:
            return ReplyAction.text_message(messages.SOMETHING_WENT_WRONG)
        return ReplyAction.adaptive_card("meeting_actions", call_id=call.id)

    # -------------------------------------------------------------------------
    # Fallbacks
    # -------------------------------------------------------------------------

    async def _greeting(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        return ReplyAction.adaptive_card("welcome", is_meeting=turn.is_meeting)

    async def _echo(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        return ReplyAction.hero_card(parsed.text)

    async def _unknown(self, turn: Turn, parsed: ParsedCommand) -> ReplyAction:
        return ReplyAction.text_message(messages.UNKNOWN_COMMAND)

    # -------------------------------------------------------------------------
    # Task module submissions
    # -------------------------------------------------------------------------

    async def submit_task(
        self,
        conversation_id: str,
        submission: TaskSubmission,
        transport: TurnTransport,
    ) -> ReplyAction:
        """
        Handle a people-picker form.

        Returns:
            A task-module message telling the user what happened
        """
        participant_ids = submission.participant_ids
        action = (submission.action or "").lower()

        logger.info(
            "task_submitted",
            conversation_id=conversation_id,
            action=action,
            call_id=submission.call_id,
            participants=len(participant_ids),
        )

        if not participant_ids:
            return ReplyAction.task_module_message(messages.SOMETHING_WENT_WRONG)

        try:
            if action == "create":
                call = await self.orchestrator.create(participant_ids)
                if call is not None:
                    await transport.send_to_conversation(
                        conversation_id,
                        ReplyAction.adaptive_card("meeting_actions", call_id=call.id),
                    )
                    return ReplyAction.task_module_message(messages.WORKING_ON_IT)

            elif action == "transfer":
                result = await self.orchestrator.transfer(submission.call_id, submission.people_picker)
                return self._task_reply(result)

            elif action == "invite":
                result = await self.orchestrator.invite_participant(submission.call_id, submission.people_picker)
                return self._task_reply(result)

            elif action == "createincident" and submission.incident_name:
                result = await self.orchestrator.create_incident_call(submission.incident_name, participant_ids)
                if result.succeeded:
                    await transport.send_to_conversation(
                        conversation_id,
                        ReplyAction.text_message(messages.INCIDENT_CREATED),
                    )
                    return ReplyAction.task_module_message(messages.WORKING_ON_IT)
                return ReplyAction.task_module_message(result.message)

        except Exception as e:
            logger.exception(
                "task_failed",
                conversation_id=conversation_id,
                action=action,
                error=str(e),
            )
            return ReplyAction.task_module_message(messages.something_went_wrong(_error_text(e)))

        return ReplyAction.task_module_message(messages.SOMETHING_WENT_WRONG)

    @staticmethod
    def _task_reply(result: OperationResult) -> ReplyAction:
        return ReplyAction.task_module_message(result.message)
