"""
Incremental decoder for Server-Sent Events (SSE).
Turns the lines of an open streaming response into discrete Event records,
one frame at a time, without reading the whole body up front.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Iterator

from ssestream._errors import DecoderClosedError


@dataclass(frozen=True, slots=True)
class Event:
    """
    Data structure representing a single Server-Sent Event (SSE).

    ``retry`` is part of the grammar but is never populated; reconnection
    delays are not honoured by this library.
    """

    id: str = ""
    event: str = ""
    data: str = ""
    retry: int = 0


def _as_bytes(chunk: Any) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)


class _LineSplitter:
    """
    Incremental line splitter over raw bytes.

    Only ``\\r\\n``, ``\\n`` and ``\\r`` end a line; form feeds, U+2028 and the
    other characters ``str.splitlines`` treats as breaks stay in the payload.
    A ``\\r`` at the end of a chunk is held back until the next chunk shows
    whether it is half of a ``\\r\\n``.
    """

    __slots__ = ("_buffer", "_trailing_cr")

    def __init__(self) -> None:
        self._buffer = b""
        self._trailing_cr = False

    def feed(self, chunk: bytes) -> list[str]:
        if self._trailing_cr:
            chunk = b"\r" + chunk
            self._trailing_cr = False
        if chunk.endswith(b"\r"):
            self._trailing_cr = True
            chunk = chunk[:-1]
        if not chunk:
            return []

        data = self._buffer + chunk
        # bytes.splitlines only knows the ASCII line endings.
        lines = data.splitlines()
        if data.endswith((b"\n", b"\r")):
            self._buffer = b""
        else:
            self._buffer = lines.pop()
        return [line.decode("utf-8", "ignore") for line in lines]

    def flush(self) -> list[str]:
        lines: list[str] = []
        if self._buffer or self._trailing_cr:
            lines.append(self._buffer.decode("utf-8", "ignore"))
        self._buffer = b""
        self._trailing_cr = False
        return lines


def _split_lines(chunks: Iterable[Any]) -> Iterator[str]:
    splitter = _LineSplitter()
    for chunk in chunks:
        yield from splitter.feed(_as_bytes(chunk))
    yield from splitter.flush()


async def _asplit_lines(chunks: AsyncIterable[Any]) -> AsyncIterator[str]:
    splitter = _LineSplitter()
    async for chunk in chunks:
        for line in splitter.feed(_as_bytes(chunk)):
            yield line
    for line in splitter.flush():
        yield line


class _FrameBuilder:
    """Accumulates field lines until a blank line dispatches the frame."""

    __slots__ = ("_id", "_event", "_data")

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._id = ""
        self._event = ""
        self._data = ""

    @property
    def pending(self) -> bool:
        return bool(self._id or self._event or self._data)

    def feed(self, raw_line: str) -> Event | None:
        """
        Consume one line.

        Returns:
            The completed Event when ``raw_line`` terminates a non-empty frame,
            otherwise None.
        """
        line = raw_line.strip()

        if not line:
            if not self.pending:
                return None
            evt = Event(id=self._id, event=self._event, data=self._data)
            self.reset()
            return evt

        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if not sep:
            return None

        name = name.strip()
        value = value.strip()

        if name == "data":
            self._data = f"{self._data}\n{value}" if self._data else value
        elif name == "event":
            self._event = value
        elif name == "id":
            self._id = value
        # "retry" and unknown fields are dropped on purpose.
        return None


class Decoder:
    """
    Reads SSE frames from a streaming response.

    The decoder owns ``response`` exclusively: nothing else may consume its
    bytes while the decoder is in use. Any object exposing ``iter_bytes()``
    (and optionally ``close()``) works; in practice it is an ``httpx.Response``
    opened with ``stream=True``.
    """

    def __init__(self, response: Any) -> None:
        self._response = response
        self._lines: Iterator[str] | None = _split_lines(response.iter_bytes())
        self._frame = _FrameBuilder()
        self._exhausted = False

    @classmethod
    def from_response(cls, response: Any | None) -> Decoder | None:
        """Build a decoder, or return None when there is no response to read."""
        if response is None:
            return None
        return cls(response)

    @property
    def response(self) -> Any:
        return self._response

    def read_event(self) -> Event | None:
        """
        Read the next complete frame.

        Returns:
            The next Event, or None once the source is exhausted. A frame left
            without its terminating blank line at the end is discarded.

        Raises:
            DecoderClosedError: if the decoder was closed or failed before.
            Whatever the underlying source raises while reading (for httpx,
            ``httpx.ReadError`` and friends). A failed decoder is not reusable.
        """
        if self._lines is None:
            raise DecoderClosedError()
        if self._exhausted:
            return None

        try:
            for line in self._lines:
                evt = self._frame.feed(line)
                if evt is not None:
                    logging.debug("SSE event id=%r event=%r data=%d chars", evt.id, evt.event, len(evt.data))
                    return evt
        except Exception:
            self._lines = None
            raise

        if self._frame.pending:
            logging.debug("SSE source ended inside a frame; dropping the unterminated frame")
        self._frame.reset()
        self._exhausted = True
        return None

    def close(self) -> None:
        """Discard the line cursor and close the response; close errors propagate."""
        self._lines = None
        close = getattr(self._response, "close", None)
        if close is not None:
            close()


class AsyncDecoder:
    """Async twin of Decoder, reading ``response.aiter_bytes()``."""

    def __init__(self, response: Any) -> None:
        self._response = response
        self._lines: AsyncIterator[str] | None = _asplit_lines(response.aiter_bytes())
        self._frame = _FrameBuilder()
        self._exhausted = False

    @classmethod
    def from_response(cls, response: Any | None) -> AsyncDecoder | None:
        if response is None:
            return None
        return cls(response)

    @property
    def response(self) -> Any:
        return self._response

    async def read_event(self) -> Event | None:
        if self._lines is None:
            raise DecoderClosedError()
        if self._exhausted:
            return None

        try:
            async for line in self._lines:
                evt = self._frame.feed(line)
                if evt is not None:
                    logging.debug("SSE event id=%r event=%r data=%d chars", evt.id, evt.event, len(evt.data))
                    return evt
        except Exception:
            self._lines = None
            raise

        if self._frame.pending:
            logging.debug("SSE source ended inside a frame; dropping the unterminated frame")
        self._frame.reset()
        self._exhausted = True
        return None

    async def aclose(self) -> None:
        self._lines = None
        aclose = getattr(self._response, "aclose", None)
        if aclose is not None:
            await aclose()


def iter_events_from_text(text: str) -> Iterator[Event]:
    """
    Parse SSE events from an already-buffered text block.

    Args:
        text: The raw string containing one or multiple SSE frames.

    Yields:
        Event objects, with the same framing rules as Decoder.
    """
    frame = _FrameBuilder()
    for line in _split_lines([text]):
        evt = frame.feed(line)
        if evt is not None:
            yield evt
