"""
Typed, pull-based iteration over SSE frames.

Each frame's ``data`` is validated into the payload type the stream was built
for. Errors never escape the iteration loop: ``advance()`` returns False and
the failure is kept for ``err()``.

    with Stream(Decoder.from_response(resp), ChatChunk) as stream:
        while stream.advance():
            handle(stream.current())
        if stream.err() is not None:
            raise stream.err()
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, AsyncIterator, Callable, Generic, Iterator, TypeVar, cast

import httpx
from pydantic import TypeAdapter

from ssestream._errors import DecoderMissingError, EventDecodeError, SSEStreamError
from ssestream._sse import AsyncDecoder, Decoder, Event

T = TypeVar("T")

# Failures of the byte source itself; anything else is a bug and propagates.
READ_ERRORS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,
    httpx.StreamError,
    OSError,
    SSEStreamError,
)


class _TypedState(Generic[T]):
    """State shared by the sync and async streams."""

    def __init__(
        self,
        type_: Any = Any,
        *,
        decode: Callable[[str], T] | None = None,
        err: BaseException | None = None,
        strict: bool = True,
    ) -> None:
        if decode is None:
            decode = partial(TypeAdapter(type_).validate_json, strict=strict)
        self._decode = decode
        self._err = err
        self._current: T | None = None
        self._has_next = True

    @property
    def has_next(self) -> bool:
        """False once the stream reached a stop condition (clean or not)."""
        return self._has_next and self._err is None

    def _fail(self, err: BaseException) -> bool:
        logging.debug("SSE stream failed: %r", err)
        self._err = err
        return False

    def _finish(self) -> bool:
        self._has_next = False
        return False

    def _accept(self, evt: Event) -> bool:
        try:
            value = self._decode(evt.data)
        except Exception as e:
            error = EventDecodeError(
                message=str(e) or type(e).__name__,
                data=evt.data,
                event=evt.event,
                event_id=evt.id,
            )
            error.__cause__ = e
            return self._fail(error)

        self._current = value
        return True

    def current(self) -> T | None:
        """Latest decoded value, or None before the first successful advance."""
        return self._current

    def err(self) -> BaseException | None:
        """Terminal error, or None on success and on clean exhaustion."""
        return self._err


class Stream(_TypedState[T]):
    """
    Synchronous typed SSE stream.

    Args:
        decoder: Frame source; None puts the stream in the failed state on the
            first ``advance()``.
        type_: Payload type for every frame (pydantic model, TypedDict,
            dataclass, builtin...). Ignored when ``decode`` is given.
        decode: Optional ``str -> T`` callable replacing pydantic validation.
            Any exception it raises fails the stream with EventDecodeError.
        err: Pre-seeded terminal error, e.g. the request that should have
            produced the response failed.
        strict: Validate in pydantic strict mode, so ``"1"`` is not an int.
    """

    def __init__(
        self,
        decoder: Decoder | None,
        type_: Any = Any,
        *,
        decode: Callable[[str], T] | None = None,
        err: BaseException | None = None,
        strict: bool = True,
    ) -> None:
        super().__init__(type_, decode=decode, err=err, strict=strict)
        self._decoder = decoder

    def advance(self) -> bool:
        """Move to the next event; True when ``current()`` holds a new value."""
        if self._err is not None or not self._has_next:
            return False

        if self._decoder is None:
            return self._fail(DecoderMissingError())

        try:
            evt = self._decoder.read_event()
        except READ_ERRORS as e:
            return self._fail(e)

        if evt is None:
            return self._finish()

        return self._accept(evt)

    def close(self) -> None:
        """Release the response behind the decoder, if there is one."""
        if self._decoder is None or self._decoder.response is None:
            return
        self._decoder.close()

    def __iter__(self) -> Iterator[T]:
        while self.advance():
            yield cast(T, self._current)

    def __enter__(self) -> Stream[T]:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class AsyncStream(_TypedState[T]):
    """Async twin of Stream over an AsyncDecoder."""

    def __init__(
        self,
        decoder: AsyncDecoder | None,
        type_: Any = Any,
        *,
        decode: Callable[[str], T] | None = None,
        err: BaseException | None = None,
        strict: bool = True,
    ) -> None:
        super().__init__(type_, decode=decode, err=err, strict=strict)
        self._decoder = decoder

    async def advance(self) -> bool:
        if self._err is not None or not self._has_next:
            return False

        if self._decoder is None:
            return self._fail(DecoderMissingError())

        try:
            evt = await self._decoder.read_event()
        except READ_ERRORS as e:
            return self._fail(e)

        if evt is None:
            return self._finish()

        return self._accept(evt)

    async def aclose(self) -> None:
        if self._decoder is None or self._decoder.response is None:
            return
        await self._decoder.aclose()

    async def __aiter__(self) -> AsyncIterator[T]:
        while await self.advance():
            yield cast(T, self._current)

    async def __aenter__(self) -> AsyncStream[T]:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
