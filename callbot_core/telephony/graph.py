"""Graph communications API services for calls, online meetings and chats."""

import inspect
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Iterable

import httpx
import structlog

from callbot_core.config import Settings, get_settings
from callbot_core.exceptions import CallNotFoundError, UpstreamFaultError
from callbot_core.telephony.base import (
    Call,
    CallService,
    ChatInfo,
    ChatService,
    Identity,
    OnlineMeeting,
    OnlineMeetingService,
    OrganizerMeetingInfo,
)


logger = structlog.get_logger()

TokenProvider = Callable[[], str | Awaitable[str]]


def _error_message(response: httpx.Response) -> str:
    """Pull the Graph error message out of a failed response."""
    try:
        error = response.json().get("error") or {}
        return error.get("message") or response.reason_phrase
    except (ValueError, AttributeError):
        return response.text[:200] or response.reason_phrase


class GraphClient:
    """
    Authenticated HTTP access to the Graph API.

    A 404 on a request scoped to a call raises CallNotFoundError. Any
    other non-2xx raises UpstreamFaultError. Transport errors propagate
    unchanged.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        token_provider: TokenProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._token_provider = token_provider
        self._client = http_client
        self._owns_client = http_client is None

    async def connect(self) -> None:
        """Initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.graph_base_url,
                timeout=httpx.Timeout(self.settings.graph_timeout_seconds),
            )
            self._owns_client = True

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _token(self) -> str:
        if self._token_provider is not None:
            value = self._token_provider()
            if inspect.isawaitable(value):
                value = await value
            return value
        return self.settings.graph_token

    async def request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        call_id: str | None = None,
    ) -> dict[str, Any]:
        await self.connect()
        headers = {"Authorization": f"Bearer {await self._token()}"}

        response = await self._client.request(method, path, json=json, headers=headers)

        if response.status_code == 404 and call_id is not None:
            raise CallNotFoundError(call_id)
        if response.is_error:
            message = _error_message(response)
            logger.error(
                "graph_request_failed",
                method=method,
                path=path,
                status=response.status_code,
                error=message,
            )
            raise UpstreamFaultError(message, status_code=response.status_code, details={"path": path})

        if not response.content:
            return {}
        return response.json()


class GraphCallService(CallService):
    """Calls through /communications/calls."""

    def __init__(self, graph: GraphClient) -> None:
        self.graph = graph

    def _call_body(self, **extra: Any) -> dict[str, Any]:
        body: dict[str, Any] = {
            "@odata.type": "#microsoft.graph.call",
            "callbackUri": self.graph.settings.callback_uri,
            "requestedModalities": ["audio"],
            "mediaConfig": {"@odata.type": "#microsoft.graph.serviceHostedMediaConfig"},
        }
        body.update(extra)
        return body

    @staticmethod
    def _to_call(data: dict[str, Any]) -> Call | None:
        if not data.get("id"):
            return None
        return Call(id=data["id"], chat_info=ChatInfo.from_graph(data.get("chatInfo")), state=data.get("state"))

    async def create(self, participants: Iterable[Identity]) -> Call | None:
        body = self._call_body(
            direction="outgoing",
            targets=[p.to_invitation() for p in participants],
        )
        return self._to_call(await self.graph.request("POST", "/communications/calls", json=body))

    async def create_for_meeting(self, chat_info: ChatInfo, meeting_info: OrganizerMeetingInfo) -> Call | None:
        body = self._call_body(
            chatInfo=chat_info.to_graph(),
            meetingInfo=meeting_info.to_graph(),
            tenantId=meeting_info.organizer.tenant_id,
        )
        return self._to_call(await self.graph.request("POST", "/communications/calls", json=body))

    async def transfer(self, call_id: str, target: Identity) -> None:
        await self.graph.request(
            "POST",
            f"/communications/calls/{call_id}/transfer",
            json={"transferTarget": target.to_invitation()},
            call_id=call_id,
        )

    async def invite_participant(self, call_id: str, targets: Iterable[Identity]) -> None:
        await self.graph.request(
            "POST",
            f"/communications/calls/{call_id}/participants/invite",
            json={
                "participants": [t.to_invitation() for t in targets],
                "clientContext": str(uuid.uuid4()),
            },
            call_id=call_id,
        )

    async def record(self, call_id: str, prompt_uri: str) -> None:
        await self.graph.request(
            "POST",
            f"/communications/calls/{call_id}/recordResponse",
            json={
                "bargeInAllowed": True,
                "clientContext": str(uuid.uuid4()),
                "prompts": [
                    {
                        "@odata.type": "#microsoft.graph.mediaPrompt",
                        "mediaInfo": {"uri": prompt_uri, "resourceId": str(uuid.uuid4())},
                    }
                ],
                "maxRecordDurationInSeconds": 10,
                "initialSilenceTimeoutInSeconds": 5,
                "maxSilenceTimeoutInSeconds": 2,
                "playBeep": True,
                "stopTones": ["#", "1", "*"],
            },
            call_id=call_id,
        )

    async def hang_up(self, call_id: str) -> None:
        await self.graph.request("DELETE", f"/communications/calls/{call_id}", call_id=call_id)


class GraphOnlineMeetingService(OnlineMeetingService):
    """Online meetings owned by the configured organizer account."""

    def __init__(self, graph: GraphClient, organizer_id: str, duration: timedelta = timedelta(hours=1)) -> None:
        self.graph = graph
        self.organizer_id = organizer_id
        self.duration = duration

    async def create(self, subject: str, participant_ids: Iterable[str]) -> OnlineMeeting | None:
        start = datetime.now(timezone.utc)
        body = {
            "subject": subject,
            "startDateTime": start.isoformat(),
            "endDateTime": (start + self.duration).isoformat(),
            "participants": {
                "attendees": [
                    {"identity": Identity(id=p).to_identity_set()} for p in participant_ids
                ],
            },
        }
        data = await self.graph.request("POST", f"/users/{self.organizer_id}/onlineMeetings", json=body)

        chat_info = ChatInfo.from_graph(data.get("chatInfo"))
        if not data.get("id") or not data.get("joinWebUrl") or chat_info is None:
            logger.warning("online_meeting_incomplete", subject=subject, meeting_id=data.get("id"))
            return None

        return OnlineMeeting(
            id=data["id"],
            join_url=data["joinWebUrl"],
            chat_info=chat_info,
            subject=data.get("subject", subject),
        )


class GraphChatService(ChatService):
    """App installation in chats."""

    def __init__(self, graph: GraphClient) -> None:
        self.graph = graph

    async def install_app(self, thread_id: str, app_id: str) -> None:
        base_url = self.graph.settings.graph_base_url.rstrip("/")
        await self.graph.request(
            "POST",
            f"/chats/{thread_id}/installedApps",
            json={"teamsApp@odata.bind": f"{base_url}/appCatalogs/teamsApps/{app_id}"},
        )
