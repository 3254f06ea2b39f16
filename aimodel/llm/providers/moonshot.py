"""
Low-level client for the Moonshot chat-completions API.

Speaks the OpenAI-style ``/v1/chat/completions`` wire protocol over
``httpx``.  Streaming responses run through the SSE framing in
``aimodel.llm.sse`` and the windowed tool-call aggregation in
``aimodel.llm.aggregator``.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator

import httpx

from aimodel.errors import TransportError
from aimodel.llm.aggregator import aggregate
from aimodel.llm.sse import decode_chunks, iter_sse_data, take_until_done
from aimodel.llm.types import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatCompletionRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.moonshot.cn"
COMPLETIONS_PATH = "/v1/chat/completions"


def _status_error(response: httpx.Response) -> TransportError:
    return TransportError(
        f"HTTP {response.status_code} from {response.request.url}",
        status_code=response.status_code,
    )


class MoonshotApi:
    """
    Parameters
    ----------
    base_url:
        Base URL of the API, e.g. ``"https://api.moonshot.cn"``.
    api_key:
        Bearer token.  Pass ``""`` for unauthenticated endpoints.
    timeout:
        HTTP request timeout in seconds.
    max_retries:
        Retries on 429 / 5xx and transport errors, for non-streaming
        requests only.  Streams are never retried.
    completions_path:
        Path of the chat-completions endpoint below *base_url*.
    transport:
        Optional ``httpx`` transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str = "",
        timeout: float = 120.0,
        max_retries: int = 2,
        completions_path: str = COMPLETIONS_PATH,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._max_retries = max_retries
        self._completions_path = completions_path
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self._base_url}{self._completions_path}"

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_headers(self, stream: bool) -> dict[str, str]:
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_body(self, request: ChatCompletionRequest) -> dict:
        body = request.to_dict()
        logger.info(
            "REQUEST: model=%s stream=%s tools=%d messages=%d api_key=%s...",
            request.model,
            request.stream,
            len(request.tools) if request.tools else 0,
            len(request.messages),
            self._api_key[:12] if self._api_key else "(none)",
        )
        return body

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    # ------------------------------------------------------------------
    # Non-streaming request
    # ------------------------------------------------------------------

    async def chat_completion_entity(
        self, request: ChatCompletionRequest
    ) -> ChatCompletion:
        """Create a model response for the given conversation."""
        if request is None:
            raise ValueError("The request body can not be None.")
        if request.stream:
            raise ValueError("Request must set the stream property to false.")

        body = self._build_body(request)
        headers = self._build_headers(stream=False)

        last_error: TransportError | None = None
        for attempt in range(1 + self._max_retries):
            try:
                async with self._client() as client:
                    resp = await client.post(self.url, json=body, headers=headers)
            except httpx.TransportError as exc:
                last_error = TransportError(str(exc))
                last_error.__cause__ = exc
                logger.warning("Transport error (attempt %d): %s", attempt + 1, exc)
                continue

            if resp.status_code == 429 or resp.status_code >= 500:
                last_error = _status_error(resp)
                logger.warning("Retryable HTTP %d (attempt %d)", resp.status_code, attempt + 1)
                continue

            if resp.is_error:
                raise _status_error(resp)

            try:
                return ChatCompletion.from_dict(resp.json())
            except (json.JSONDecodeError, TypeError, ValueError) as exc:
                raise TransportError(f"Malformed completion body: {exc}") from exc

        assert last_error is not None
        raise last_error

    # ------------------------------------------------------------------
    # Streaming request
    # ------------------------------------------------------------------

    async def chat_completion_stream(
        self,
        request: ChatCompletionRequest,
        *,
        strict: bool = False,
    ) -> AsyncIterator[ChatCompletionChunk]:
        """
        Stream the completion, one chunk per aggregation window.

        Tool-call fragments are merged into a single chunk per call.  With
        *strict*, a stream that ends mid tool call raises
        ``IncompleteToolCallError`` instead of dropping the call.
        """
        if request is None:
            raise ValueError("The request body can not be None.")
        if not request.stream:
            raise ValueError("Request must set the stream property to true.")

        source = self._stream_frames(self._build_body(request))
        try:
            chunks = decode_chunks(take_until_done(source))
            async for chunk in aggregate(chunks, strict=strict):
                yield chunk
        finally:
            # Closes the HTTP response on [DONE], errors and early exit alike.
            await source.aclose()

    async def _stream_frames(self, body: dict) -> AsyncIterator[str]:
        headers = self._build_headers(stream=True)
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", self.url, json=body, headers=headers
                ) as response:
                    if response.is_error:
                        # Read body so the connection is released.
                        await response.aread()
                        raise _status_error(response)

                    async for data in iter_sse_data(response):
                        yield data
        except httpx.TransportError as exc:
            raise TransportError(str(exc)) from exc
