"""Shared pytest fixtures for testing."""

import os
from typing import AsyncGenerator, Iterable

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from unittest.mock import AsyncMock

# Set test environment
os.environ["ENVIRONMENT"] = "test"

from callbot_core.bot.base import InMemoryTransport, MemberListRosterLookup
from callbot_core.bot.router import CommandRouter
from callbot_core.config import Settings
from callbot_core.conversation.context import ContextStore
from callbot_core.exceptions import CallNotFoundError
from callbot_core.llm.client import CompletionClient
from callbot_core.telephony.base import (
    Call,
    CallService,
    ChatInfo,
    ChatService,
    Identity,
    IncidentDetails,
    IncidentNotifier,
    OnlineMeeting,
    OnlineMeetingService,
    OrganizerMeetingInfo,
)
from callbot_core.telephony.incidents import IncidentRegistry
from callbot_core.telephony.orchestrator import CallOrchestrator


JOIN_URL = (
    "https://teams.microsoft.com/l/meetup-join/19%3ameeting_abc%40thread.v2/0"
    "?context=%7b%22Tid%22%3a%22tenant-1%22%2c%22Oid%22%3a%22organizer-1%22%7d"
)


# =============================================================================
# Fake backend services
# =============================================================================


class FakeCallService(CallService):
    """Records every backend invocation; unknown call ids raise not-found."""

    def __init__(self, known_calls: Iterable[str] = ("call-1",)):
        self.known_calls = set(known_calls)
        self.invocations: list[tuple] = []
        self.next_call = Call(id="call-new", chat_info=ChatInfo(thread_id="19:meeting_abc@thread.v2"))
        self.error: Exception | None = None

    def _check(self, call_id: str) -> None:
        if self.error is not None:
            raise self.error
        if call_id not in self.known_calls:
            raise CallNotFoundError(call_id)

    async def create(self, participants):
        self.invocations.append(("create", [p.id for p in participants]))
        if self.error is not None:
            raise self.error
        return self.next_call

    async def create_for_meeting(self, chat_info: ChatInfo, meeting_info: OrganizerMeetingInfo):
        self.invocations.append(("create_for_meeting", chat_info, meeting_info))
        if self.error is not None:
            raise self.error
        return self.next_call

    async def transfer(self, call_id: str, target: Identity) -> None:
        self.invocations.append(("transfer", call_id, target.id))
        self._check(call_id)

    async def invite_participant(self, call_id: str, targets) -> None:
        self.invocations.append(("invite_participant", call_id, [t.id for t in targets]))
        self._check(call_id)

    async def record(self, call_id: str, prompt_uri: str) -> None:
        self.invocations.append(("record", call_id, prompt_uri))
        self._check(call_id)

    async def hang_up(self, call_id: str) -> None:
        self.invocations.append(("hang_up", call_id))
        self._check(call_id)


class FakeMeetingService(OnlineMeetingService):
    """Returns a fixed meeting unless told otherwise."""

    def __init__(self):
        self.meeting: OnlineMeeting | None = OnlineMeeting(
            id="meeting-1",
            join_url=JOIN_URL,
            chat_info=ChatInfo(thread_id="19:meeting_abc@thread.v2", message_id="0"),
            subject="Outage",
        )
        self.requests: list[tuple[str, list[str]]] = []
        self.error: Exception | None = None

    async def create(self, subject: str, participant_ids):
        self.requests.append((subject, list(participant_ids)))
        if self.error is not None:
            raise self.error
        return self.meeting


class FakeChatService(ChatService):
    def __init__(self):
        self.installs: list[tuple[str, str]] = []
        self.error: Exception | None = None

    async def install_app(self, thread_id: str, app_id: str) -> None:
        self.installs.append((thread_id, app_id))
        if self.error is not None:
            raise self.error


class RecordingNotifier(IncidentNotifier):
    def __init__(self):
        self.notified: list[IncidentDetails] = []

    async def notify_incident(self, details: IncidentDetails) -> None:
        self.notified.append(details)


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings that never touch a real backend."""
    return Settings(
        environment="test",
        completion_endpoint="https://llm.test/v1/completions",
        completion_token="test-token",
        graph_base_url="https://graph.test/v1.0",
        graph_token="graph-token",
        catalog_app_id="app-catalog-1",
        meeting_organizer_id="organizer-1",
        record_prompt_uri="https://bot.test/audio/prompt.wav",
    )


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def call_service() -> FakeCallService:
    return FakeCallService()


@pytest.fixture
def meeting_service() -> FakeMeetingService:
    return FakeMeetingService()


@pytest.fixture
def chat_service() -> FakeChatService:
    return FakeChatService()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def incidents() -> IncidentRegistry:
    return IncidentRegistry()


@pytest.fixture
def orchestrator(call_service, meeting_service, chat_service, incidents, notifier, settings) -> CallOrchestrator:
    """Orchestrator wired to the fake services."""
    return CallOrchestrator(
        call_service=call_service,
        meeting_service=meeting_service,
        chat_service=chat_service,
        incidents=incidents,
        notifier=notifier,
        catalog_app_id=settings.catalog_app_id,
        record_prompt_uri=settings.record_prompt_uri,
    )


@pytest.fixture
def mock_completion() -> AsyncMock:
    """Completion client that answers every prompt with a fixed text."""
    completion = AsyncMock(spec=CompletionClient)
    completion.complete.return_value = "Seattle is a city"
    completion.complete_streaming.return_value = "Seattle is a city"
    return completion


@pytest.fixture
def contexts() -> ContextStore:
    return ContextStore()


@pytest.fixture
def transport() -> InMemoryTransport:
    return InMemoryTransport()


@pytest.fixture
def router(mock_completion, contexts, orchestrator, settings) -> CommandRouter:
    """Router over the fake services and mocked completion backend."""
    return CommandRouter(
        completion=mock_completion,
        contexts=contexts,
        orchestrator=orchestrator,
        roster=MemberListRosterLookup(),
        settings=settings,
    )


# =============================================================================
# API Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def app(settings, router, transport) -> FastAPI:
    """Create test FastAPI application."""
    from callbot_core.api.app import create_app

    return create_app(settings=settings, router=router, transport=transport)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
