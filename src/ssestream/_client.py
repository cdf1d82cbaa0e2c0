from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterator, Mapping

import httpx

from ssestream._errors import APIStatusError
from ssestream._sse import AsyncDecoder, Decoder
from ssestream.stream import AsyncStream, Stream

ENV_BASE_URL = "SSESTREAM_BASE_URL"
ENV_API_KEY = "SSESTREAM_API_KEY"
ENV_HTTP_DEBUG = "SSESTREAM_HTTP_DEBUG"


@dataclass(frozen=True, slots=True)
class HttpConfig:
    base_url: str
    timeout_s: float = 120.0
    api_key: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)

    @staticmethod
    def from_env(
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        timeout_s: float = 120.0,
    ) -> HttpConfig:
        """
        Build a config from explicit values, falling back to the environment.

        Raises:
            ValueError: if no base URL is given nor found in SSESTREAM_BASE_URL.
        """
        url = base_url or os.getenv(ENV_BASE_URL)
        if not url:
            raise ValueError(
                "Base URL missing. Define SSESTREAM_BASE_URL in environment or pass base_url value"
            )
        return HttpConfig(
            base_url=url.rstrip("/"),
            timeout_s=timeout_s,
            api_key=api_key or os.getenv(ENV_API_KEY),
        )


def _status_error(resp: httpx.Response) -> APIStatusError:
    body_text: str | None = None
    try:
        body_text = resp.text
    except httpx.ResponseNotRead:
        body_text = None

    message = resp.reason_phrase or "HTTP error"
    if body_text and body_text.strip():
        message = f"{message}: {body_text.strip()}"
    return APIStatusError(status_code=resp.status_code, message=message, body=body_text)


class SSEHttpClient:
    """
    Thin HTTPX wrapper that opens event-stream requests and hands back typed
    streams. Failed requests come back as streams already in the failed
    state, so callers only ever look at ``stream.err()``.

    Setting SSESTREAM_HTTP_DEBUG=1 logs each request and the status and
    content-type it got back.
    """

    def __init__(
        self,
        *,
        config: HttpConfig,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._debug_http = os.getenv(ENV_HTTP_DEBUG, "").lower() in {"1", "true", "yes", "on"}

        def _log_request(request: httpx.Request) -> None:
            if not self._debug_http:
                return
            has_auth = "authorization" in request.headers
            logging.warning(
                "SSE REQUEST %s %s accept=%s auth=%s",
                request.method,
                request.url,
                request.headers.get("accept", ""),
                "Bearer ***REDACTED***" if has_auth else None,
            )

        def _log_response(response: httpx.Response) -> None:
            if not self._debug_http:
                return
            req = response.request
            ctype = response.headers.get("content-type", "")
            logging.warning(
                "SSE RESPONSE %s %s -> %s content-type=%s", req.method, req.url, response.status_code, ctype
            )
            if response.is_success and "text/event-stream" not in ctype:
                logging.warning("SSE RESPONSE is not an event stream; frames may not decode")

        async def _log_request_async(request: httpx.Request) -> None:
            _log_request(request)

        async def _log_response_async(response: httpx.Response) -> None:
            _log_response(response)

        self._client = httpx.Client(
            timeout=httpx.Timeout(config.timeout_s),
            event_hooks={"request": [_log_request], "response": [_log_response]},
            transport=transport,
        )
        self._aclient = httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_s),
            event_hooks={"request": [_log_request_async], "response": [_log_response_async]},
            transport=async_transport,
        )

    def close(self) -> None:
        self._client.close()

    async def aclose(self) -> None:
        await self._aclient.aclose()

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        headers.update(self._config.headers)
        return headers

    def _build_request(
        self,
        client: httpx.Client | httpx.AsyncClient,
        method: str,
        path: str,
        json: Any | None,
        params: dict[str, Any] | None,
    ) -> httpx.Request:
        url = f"{self._config.base_url}{path}"
        return client.build_request(method, url, headers=self._headers(), json=json, params=params)

    @contextmanager
    def stream(
        self,
        method: str,
        path: str,
        type_: Any = Any,
        *,
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        strict: bool = True,
    ) -> Iterator[Stream[Any]]:
        """
        Open an event-stream request and yield a typed Stream over it.

        Usage:
            with client.stream("POST", "/v1/chat", ChatChunk, json=payload) as s:
                for chunk in s:
                    ...
                if s.err() is not None:
                    ...
        """
        request = self._build_request(self._client, method, path, json, params)
        try:
            resp = self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            failure: BaseException | None = e
        else:
            failure = None
        if failure is not None:
            yield Stream(None, type_, err=failure, strict=strict)
            return

        if not 200 <= resp.status_code < 300:
            try:
                resp.read()
                err = _status_error(resp)
            finally:
                resp.close()
            yield Stream(None, type_, err=err, strict=strict)
            return

        with Stream(Decoder.from_response(resp), type_, strict=strict) as s:
            yield s

    @asynccontextmanager
    async def astream(
        self,
        method: str,
        path: str,
        type_: Any = Any,
        *,
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        strict: bool = True,
    ) -> AsyncIterator[AsyncStream[Any]]:
        """
        Async version of stream().

        Usage:
            async with client.astream("GET", "/events", Tick) as s:
                async for tick in s:
                    ...
        """
        request = self._build_request(self._aclient, method, path, json, params)
        try:
            resp = await self._aclient.send(request, stream=True)
        except httpx.HTTPError as e:
            failure: BaseException | None = e
        else:
            failure = None
        if failure is not None:
            yield AsyncStream(None, type_, err=failure, strict=strict)
            return

        if not 200 <= resp.status_code < 300:
            try:
                await resp.aread()
                err = _status_error(resp)
            finally:
                await resp.aclose()
            yield AsyncStream(None, type_, err=err, strict=strict)
            return

        async with AsyncStream(AsyncDecoder.from_response(resp), type_, strict=strict) as s:
            yield s
