"""
Callbot - Exceptions

Errors raised by the completion client and the call services. The router
is the only place that turns these into user-facing replies.
"""

from typing import Any


class CallbotError(Exception):
    """
    Base exception for all callbot errors.

    Attributes:
        message: Human-readable error message
        code: Error code if available
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', code='{self.code}')"


class NotFoundError(CallbotError):
    """
    Raised when a referenced call or meeting can no longer be resolved.

    Attributes:
        resource_type: Type of resource that wasn't found
        resource_id: ID of the resource that wasn't found
    """

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> None:
        super().__init__(message, code="NOT_FOUND")
        self.resource_type = resource_type
        self.resource_id = resource_id


class CallNotFoundError(NotFoundError):
    """
    Raised by a call service when the call has ended, was transferred
    away or never started.
    """

    def __init__(self, call_id: str | None = None, message: str = "Call not found") -> None:
        super().__init__(message, resource_type="call", resource_id=call_id)
        self.call_id = call_id


class UpstreamFaultError(CallbotError):
    """
    Raised when the call, meeting, chat or completion backend reports a
    failure.

    Attributes:
        status_code: HTTP status returned by the backend, if any
    """

    def __init__(
        self,
        message: str = "Upstream service failed",
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code="UPSTREAM_FAULT", details=details)
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code:
            return f"{base} (HTTP {self.status_code})"
        return base


class ParseError(CallbotError):
    """
    Raised when a completion response cannot be decoded.

    Attributes:
        payload: The offending body or stream line, truncated
    """

    def __init__(self, message: str = "Malformed completion response", payload: str | None = None) -> None:
        super().__init__(message, code="PARSE_ERROR")
        self.payload = payload[:200] if payload else None


__all__ = [
    "CallbotError",
    "NotFoundError",
    "CallNotFoundError",
    "UpstreamFaultError",
    "ParseError",
]
