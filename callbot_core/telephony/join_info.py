"""
Meeting join link parsing.

A meeting join URL looks like (after URL decoding):

    https://teams.microsoft.com/l/meetup-join/19:meeting_xyz@thread.v2/0?context={"Tid":"...","Oid":"..."}

The path carries the chat thread and message ids; the context query
parameter carries the tenant id (Tid), organizer object id (Oid) and,
for channel meetings, the reply-chain message id (MessageId).
"""

import json
import re
from urllib.parse import unquote

from callbot_core.exceptions import ParseError
from callbot_core.telephony.base import ChatInfo, Identity, OrganizerMeetingInfo


JOIN_URL_PATTERN = re.compile(
    r"https://teams\.microsoft\.com.*/(?P<thread>[^/]+)/(?P<message>[^/]+)\?context=(?P<context>\{.*\})"
)


def parse_join_url(join_url: str) -> tuple[ChatInfo, OrganizerMeetingInfo]:
    """
    Split a join URL into chat info and organizer meeting info.

    Raises:
        ParseError: the URL does not match the join link shape or its
            context is not valid JSON with Tid and Oid
    """
    decoded = unquote(join_url)
    match = JOIN_URL_PATTERN.match(decoded)
    if not match:
        raise ParseError(f"Join URL cannot be parsed: {join_url}", payload=join_url)

    try:
        context = json.loads(match.group("context"))
    except ValueError as e:
        raise ParseError(f"Join URL context is not JSON: {e}", payload=join_url) from e

    tenant_id = context.get("Tid") if isinstance(context, dict) else None
    organizer_id = context.get("Oid") if isinstance(context, dict) else None
    if not tenant_id or not organizer_id:
        raise ParseError("Join URL context has no tenant or organizer", payload=join_url)

    chat_info = ChatInfo(
        thread_id=match.group("thread"),
        message_id=match.group("message"),
        reply_chain_message_id=context.get("MessageId"),
    )
    meeting_info = OrganizerMeetingInfo(
        organizer=Identity(id=organizer_id, tenant_id=tenant_id),
    )
    return chat_info, meeting_info
