"""
Completion Base Types

Request and response shapes for the text-completion backend, and the
frame type produced while reading a streamed response.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from callbot_core.exceptions import ParseError


DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


@dataclass
class ModelPrompt:
    """Request body sent to the completion endpoint."""

    prompt: str
    max_tokens: int = 500
    temperature: float = 0.6
    top_p: int = 1
    n: int = 1
    stream: bool = False
    logprobs: Any = None
    stop: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "n": self.n,
            "stream": self.stream,
            "logprobs": self.logprobs,
            "stop": self.stop,
        }


@dataclass
class Choice:
    """One generated alternative."""

    text: str
    index: int = 0
    logprobs: Any = None
    finish_reason: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Choice":
        if not isinstance(data, dict) or not isinstance(data.get("text"), str):
            raise ParseError("Choice has no text", payload=json.dumps(data, default=str))
        return cls(
            text=data["text"],
            index=data.get("index") or 0,
            logprobs=data.get("logprobs"),
            finish_reason=data.get("finish_reason"),
        )


@dataclass
class CompletionResponse:
    """
    Decoded blocking completion body.

    Strict: every choice must carry text.
    """

    choices: list[Choice] = field(default_factory=list)
    id: str | None = None
    object: str | None = None
    created: int | None = None
    model: str | None = None

    @property
    def text(self) -> str:
        """Text of the first choice."""
        return self.choices[0].text

    @classmethod
    def parse(cls, body: str) -> "CompletionResponse":
        """
        Decode a JSON envelope.

        Raises:
            ParseError: body is not JSON, or has no usable choices
        """
        try:
            data = json.loads(body)
        except (TypeError, ValueError) as e:
            raise ParseError(f"Completion body is not JSON: {e}", payload=body) from e

        if not isinstance(data, dict):
            raise ParseError("Completion body is not an object", payload=body)

        raw_choices = data.get("choices")
        if not isinstance(raw_choices, list) or not raw_choices:
            raise ParseError("Completion has no choices", payload=body)

        return cls(
            choices=[Choice.from_dict(c) for c in raw_choices],
            id=data.get("id"),
            object=data.get("object"),
            created=data.get("created"),
            model=data.get("model"),
        )


class FrameType(str, Enum):
    """Kinds of decoded stream units."""

    DELTA = "delta"
    DONE = "done"


@dataclass(frozen=True)
class StreamFrame:
    """One decoded unit of a streamed completion."""

    type: FrameType
    text: str = ""

    @classmethod
    def delta(cls, text: str) -> "StreamFrame":
        return cls(type=FrameType.DELTA, text=text)

    @classmethod
    def done(cls) -> "StreamFrame":
        return cls(type=FrameType.DONE)

    @property
    def is_done(self) -> bool:
        return self.type == FrameType.DONE


def parse_stream_line(line: str) -> StreamFrame | None:
    """
    Decode one line of an event stream.

    Returns None for lines that are not data lines (blank separators,
    comments, keep-alives). Frames without choices, and finish frames
    whose text is null, decode as an empty delta. Raises ParseError for
    a data line that is not a JSON object or whose text is not a string.
    """
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):].strip()
    if payload == DONE_SENTINEL:
        return StreamFrame.done()

    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Stream frame is not JSON: {e}", payload=payload) from e
    if not isinstance(data, dict):
        raise ParseError("Stream frame is not an object", payload=payload)

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return StreamFrame.delta("")

    first = choices[0]
    text = first.get("text") if isinstance(first, dict) else None
    if text is None:
        return StreamFrame.delta("")
    if not isinstance(text, str):
        raise ParseError("Stream frame text is not a string", payload=payload)
    return StreamFrame.delta(text)


__all__ = [
    "DATA_PREFIX",
    "DONE_SENTINEL",
    "ModelPrompt",
    "Choice",
    "CompletionResponse",
    "FrameType",
    "StreamFrame",
    "parse_stream_line",
]
