"""
Server-Sent Events framing for chat-completion streams.

Each SSE event has the form::

    data: {json}\\n\\n

The literal ``data: [DONE]`` ends the stream.  Three small stages turn an
``httpx`` response into chunks:

  ``iter_sse_data``   response body -> ``data`` payload strings
  ``take_until_done`` stop at the ``[DONE]`` sentinel, never forwarding it
  ``decode_chunks``   payload strings -> ``ChatCompletionChunk``
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterable, AsyncIterator

import httpx

from aimodel.errors import DecodeError
from aimodel.llm.types import ChatCompletionChunk

logger = logging.getLogger(__name__)

SSE_DONE = "[DONE]"


async def iter_sse_lines_data(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """
    Yield the ``data`` payload of every SSE event in *lines*.

    Multi-line ``data`` fields are joined with ``\\n`` as the SSE format
    prescribes.  Comments, ``event:``/``id:``/``retry:`` fields and empty
    events are skipped.
    """
    data_lines: list[str] = []
    async for line in lines:
        line = line.rstrip("\r\n")

        if not line:
            # Empty line -- SSE event boundary.
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue

        if line.startswith(":"):
            continue

        if line.startswith("data:"):
            value = line[len("data:"):]
            if value.startswith(" "):
                value = value[1:]
            data_lines.append(value)

    # Stream closed without a trailing blank line.
    if data_lines:
        yield "\n".join(data_lines)


async def iter_sse_data(response: httpx.Response) -> AsyncIterator[str]:
    """Yield the ``data`` payloads of a streaming ``httpx`` response."""
    async for data in iter_sse_lines_data(response.aiter_lines()):
        yield data


async def take_until_done(frames: AsyncIterable[str]) -> AsyncIterator[str]:
    """Forward frames until the ``[DONE]`` sentinel, which is swallowed."""
    async for frame in frames:
        if frame.strip() == SSE_DONE:
            return
        yield frame


def decode_chunk(frame: str) -> ChatCompletionChunk:
    """
    Decode one JSON frame.

    Raises ``DecodeError`` when the frame is not valid JSON or does not
    match the chunk schema.
    """
    try:
        data = json.loads(frame)
        return ChatCompletionChunk.from_dict(data)
    except (json.JSONDecodeError, TypeError, ValueError) as exc:
        logger.error("Failed to decode stream frame: %s", frame[:200])
        raise DecodeError(f"Undecodable stream frame: {exc}", frame=frame) from exc


async def decode_chunks(
    frames: AsyncIterable[str],
) -> AsyncIterator[ChatCompletionChunk]:
    async for frame in frames:
        yield decode_chunk(frame)
