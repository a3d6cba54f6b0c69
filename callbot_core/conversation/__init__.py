"""Conversation context layers."""
from .context import DEFAULT_PREAMBLE, ContextStore, ConversationContext, compose_prompt

__all__ = [
    "DEFAULT_PREAMBLE",
    "ContextStore",
    "ConversationContext",
    "compose_prompt",
]
