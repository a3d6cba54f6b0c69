"""
Conversation Context

Layered prompt context (free text, document, meeting transcript and the
pending query) composed behind a fixed preamble on every answer.

Contexts are kept per conversation by default. With the "process" scope
every conversation shares one context, so a turn in one chat changes the
answers given in every other chat.
"""

import threading
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Literal

import structlog


logger = structlog.get_logger()

DEFAULT_PREAMBLE = (
    "You are Stacey, a Teams AI Voice Assistant. You help answer peoples' queries "
    "based on prompts if provided or function just like a large language model if "
    "no additional prompt is given. Given following prompts, answer the query given "
    "at the bottom. \n\n"
)

SECTION_SEPARATOR = "\n\n"

PROCESS_SCOPE_KEY = "*"

ContextField = Literal["text", "document", "meeting", "query"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compose_prompt(preamble: str, text: str, document: str, meeting: str, query: str) -> str:
    """Join the layers in fixed order; empty layers still get their separator."""
    return SECTION_SEPARATOR.join([preamble, text, document, meeting, query])


@dataclass
class ConversationContext:
    """Context layers for one conversation."""

    preamble: str = DEFAULT_PREAMBLE
    text: str = ""
    document: str = ""
    meeting: str = ""
    query: str = ""
    updated_at: datetime = field(default_factory=_utcnow)

    def compose(self) -> str:
        return compose_prompt(self.preamble, self.text, self.document, self.meeting, self.query)


class ContextStore:
    """
    Lock-guarded table of contexts keyed by conversation id.

    Features:
    - Lazy creation on first access
    - Per-conversation or process-wide scope
    - Pending query that is cleared once the answer is produced
    - Optional bound on the number of conversations kept, least
      recently used dropped first
    """

    def __init__(
        self,
        preamble: str = DEFAULT_PREAMBLE,
        scope: Literal["conversation", "process"] = "conversation",
        max_conversations: int | None = None,
    ) -> None:
        self.preamble = preamble
        self.scope = scope
        self.max_conversations = max_conversations
        self._contexts: "OrderedDict[str, ConversationContext]" = OrderedDict()
        self._lock = threading.Lock()

    def _key(self, conversation_id: str) -> str:
        return PROCESS_SCOPE_KEY if self.scope == "process" else conversation_id

    def _get_or_create(self, conversation_id: str) -> ConversationContext:
        key = self._key(conversation_id)
        context = self._contexts.get(key)
        if context is None:
            context = ConversationContext(preamble=self.preamble)
            self._contexts[key] = context
            self._evict_locked()
        else:
            self._contexts.move_to_end(key)
        return context

    def _evict_locked(self) -> None:
        if self.max_conversations is None:
            return
        evicted = 0
        while len(self._contexts) > self.max_conversations:
            self._contexts.popitem(last=False)
            evicted += 1
        if evicted:
            logger.info("contexts_evicted", count=evicted, remaining=len(self._contexts))

    def get(self, conversation_id: str) -> ConversationContext:
        """Return the live context for a conversation, creating it if needed."""
        with self._lock:
            return self._get_or_create(conversation_id)

    def set(self, conversation_id: str, layer: ContextField, value: str) -> None:
        with self._lock:
            context = self._get_or_create(conversation_id)
            setattr(context, layer, value)
            context.updated_at = _utcnow()

        logger.info(
            "context_updated",
            conversation_id=conversation_id,
            layer=layer,
            length=len(value),
            scope=self.scope,
        )

    def clear(self, conversation_id: str, layer: ContextField) -> None:
        self.set(conversation_id, layer, "")

    def compose(self, conversation_id: str) -> str:
        with self._lock:
            return self._get_or_create(conversation_id).compose()

    @contextmanager
    def pending_query(self, conversation_id: str, query: str) -> Iterator[str]:
        """
        Set the query layer and yield the composed prompt.

        The query layer is emptied again when the block exits, whether or
        not the answer succeeded.
        """
        with self._lock:
            context = self._get_or_create(conversation_id)
            context.query = query
            prompt = context.compose()
        try:
            yield prompt
        finally:
            with self._lock:
                context.query = ""

    def reset(self, conversation_id: str) -> bool:
        """Drop all layers for a conversation."""
        with self._lock:
            return self._contexts.pop(self._key(conversation_id), None) is not None

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, conversation_id: object) -> bool:
        return isinstance(conversation_id, str) and self._key(conversation_id) in self._contexts
