from __future__ import annotations

from ssestream._client import HttpConfig, SSEHttpClient
from ssestream._errors import (
    APIStatusError,
    DecoderClosedError,
    DecoderMissingError,
    EventDecodeError,
    SSEStreamError,
)
from ssestream._sse import AsyncDecoder, Decoder, Event, iter_events_from_text
from ssestream.stream import AsyncStream, Stream

__all__ = [
    "APIStatusError",
    "AsyncDecoder",
    "AsyncStream",
    "Decoder",
    "DecoderClosedError",
    "DecoderMissingError",
    "Event",
    "EventDecodeError",
    "HttpConfig",
    "SSEHttpClient",
    "SSEStreamError",
    "Stream",
    "iter_events_from_text",
]

__version__ = "0.1.0"
