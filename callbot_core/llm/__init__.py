"""Completion backend client."""
from .base import CompletionResponse, ModelPrompt, StreamFrame, parse_stream_line
from .client import CompletionClient

__all__ = [
    "CompletionClient",
    "CompletionResponse",
    "ModelPrompt",
    "StreamFrame",
    "parse_stream_line",
]
