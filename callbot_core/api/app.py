"""
Calling Bot - FastAPI Application.

Drives the command router over HTTP without the host messaging SDK.
Replies addressed to other conversations (meeting action cards, incident
announcements) are held in an outbox that callers poll.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI

from callbot_core import __version__
from callbot_core.bot.base import InMemoryTransport, MemberListRosterLookup, TransportIncidentNotifier, Turn
from callbot_core.bot.router import CommandRouter
from callbot_core.bot.schemas import HealthResponse, ReplyAction, TaskSubmitRequest, TurnRequest
from callbot_core.config import Settings, get_settings
from callbot_core.conversation.context import ContextStore
from callbot_core.llm.client import CompletionClient
from callbot_core.logging import configure_logging
from callbot_core.telephony.graph import (
    GraphCallService,
    GraphChatService,
    GraphClient,
    GraphOnlineMeetingService,
)
from callbot_core.telephony.incidents import IncidentRegistry
from callbot_core.telephony.orchestrator import CallOrchestrator


logger = structlog.get_logger()


def build_router(settings: Settings, transport: InMemoryTransport) -> tuple[CommandRouter, list[Any]]:
    """
    Wire the router against the Graph API and the completion backend.

    Returns:
        The router and the clients to close on shutdown
    """
    graph = GraphClient(settings)
    completion = CompletionClient(settings)

    orchestrator = CallOrchestrator(
        call_service=GraphCallService(graph),
        meeting_service=GraphOnlineMeetingService(graph, organizer_id=settings.meeting_organizer_id),
        chat_service=GraphChatService(graph),
        incidents=IncidentRegistry(
            ttl_seconds=settings.incident_ttl_seconds,
            max_entries=settings.incident_max_entries,
        ),
        notifier=TransportIncidentNotifier(transport),
        catalog_app_id=settings.catalog_app_id,
        record_prompt_uri=settings.record_prompt_uri,
    )
    router = CommandRouter(
        completion=completion,
        contexts=ContextStore(
            scope=settings.context_scope,
            max_conversations=settings.context_max_conversations,
        ),
        orchestrator=orchestrator,
        roster=MemberListRosterLookup(),
        settings=settings,
    )
    return router, [graph, completion]


def create_app(
    settings: Settings | None = None,
    router: CommandRouter | None = None,
    transport: InMemoryTransport | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings
        router: Pre-built router; built from settings when omitted
        transport: Outbox shared with the router's incident notifier

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    transport = transport or InMemoryTransport()
    closeables: list[Any] = []
    if router is None:
        router, closeables = build_router(settings, transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(settings.log_level, json_output=settings.environment == "production")
        logger.info("starting_callbot", port=settings.port, env=settings.environment)

        yield

        logger.info("shutting_down_callbot")
        for client in closeables:
            await client.close()

    app = FastAPI(
        title="Calling Bot",
        description="Command routing and call orchestration for a meeting assistant",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.router = router
    app.state.transport = transport

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            service=settings.service_name,
            version=__version__,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.post("/api/turns", response_model=ReplyAction, tags=["Bot"])
    async def post_turn(body: TurnRequest) -> ReplyAction:
        """Route one message or invoke turn and return the reply."""
        turn = Turn(
            conversation_id=body.conversation_id,
            text=body.text,
            value=body.value,
            channel_data=body.channel_data,
            reply_to_id=body.reply_to_id,
            members=body.members,
        )
        return await router.route(turn)

    @app.post("/api/tasks/submit", response_model=ReplyAction, tags=["Bot"])
    async def submit_task(body: TaskSubmitRequest) -> ReplyAction:
        """Handle a task-module form submission."""
        return await router.submit_task(body.conversation_id, body.data, transport)

    @app.get("/api/outbox/{conversation_id}", response_model=list[ReplyAction], tags=["Bot"])
    async def drain_outbox(conversation_id: str) -> list[ReplyAction]:
        """Return and clear the replies queued for a conversation."""
        return transport.drain(conversation_id)

    return app
