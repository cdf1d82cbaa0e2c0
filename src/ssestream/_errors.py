from __future__ import annotations
from dataclasses import dataclass
from typing import Any


class SSEStreamError(RuntimeError):
    """Base error of the library."""


class DecoderMissingError(SSEStreamError):
    """A stream was asked to advance without a decoder behind it."""

    def __init__(self, message: str = "decoder is nil") -> None:
        super().__init__(message)


class DecoderClosedError(SSEStreamError):
    """The decoder already released its line cursor."""

    def __init__(self, message: str = "scanner is nil") -> None:
        super().__init__(message)


@dataclass(slots=True)
class EventDecodeError(SSEStreamError):
    """
    The ``data`` of a frame could not be turned into the stream's payload type.

    The original exception (usually a ``pydantic.ValidationError``) is chained
    as ``__cause__`` by the stream that raised it.
    """
    message: str
    data: str = ""
    event: str = ""
    event_id: str = ""

    def __str__(self) -> str:
        return f"failed to unmarshal event data: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Dict form for structured logging."""
        return {
            "message": self.message,
            "data": self.data,
            "event": self.event,
            "event_id": self.event_id,
        }


@dataclass(slots=True)
class APIStatusError(SSEStreamError):
    """
    Non-2xx answer to a streaming request.

    The body is read eagerly before the response is closed, so ``body`` holds
    whatever the server sent instead of an event stream.
    """
    status_code: int
    message: str
    body: str | None = None

    def __str__(self) -> str:
        parts = [f"APIStatusError(status_code={self.status_code}"]
        parts.append(f", message={self.message!r}")
        if self.body:
            parts.append(f", body={len(self.body)} chars")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status_code": self.status_code,
            "message": self.message,
            "body": self.body,
        }

    @property
    def is_client_error(self) -> bool:
        """True for 4xx answers."""
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        """True for 5xx answers."""
        return 500 <= self.status_code < 600
