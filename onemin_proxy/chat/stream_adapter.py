"""Stream adapter converting 1min.ai SSE into OpenAI Chat Completions SSE.

Upstream events (labels are used loosely and sometimes omitted):

    event: content
    data: {"content":"Hel"}

    event: content
    data: {"content":"lo"}

    event: done
    data: {...}

OpenAI Chat Completion chunks:

    data: {"id":"chatcmpl-...","object":"chat.completion.chunk","choices":[{"index":0,"delta":{"content":"Hel"},"finish_reason":null}],...}

    data: [DONE]

The stream ends on any of:
- upstream EOF (a trailing partial line is discarded),
- a ``data:`` line under a ``done`` or ``result`` label,
- a ``data:`` line that is not JSON or whose ``content`` is empty, null,
  false or zero.

Every path cancels the upstream reader exactly once.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional, Protocol

import httpx

from ..core.exceptions import StreamDecodeError

logger = logging.getLogger("onemin-proxy")

DONE_FRAME = b"data: [DONE]\n\n"
TERMINAL_EVENTS = frozenset({"done", "result"})
EVENT_PREFIX = "event: "
DATA_PREFIX = "data: "


class UpstreamReader(Protocol):
    """Source of upstream body chunks."""

    async def read(self) -> Optional[bytes]:
        """Return the next chunk, or None at end of input."""

    async def cancel(self) -> None:
        """Abort the upstream body and release its connection."""


class HttpxStreamReader:
    """Reads an ``httpx`` streaming response one chunk per call."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._chunks = response.aiter_bytes()

    async def read(self) -> Optional[bytes]:
        while True:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                return None
            if chunk:
                return chunk

    async def cancel(self) -> None:
        await self._response.aclose()


@dataclass
class TransducerStep:
    """Output of one pull: zero or more SSE frames and the closed flag."""

    frames: list[bytes] = field(default_factory=list)
    closed: bool = False


def new_chat_id() -> str:
    return f"chatcmpl-{int(time.time() * 1000)}"


def parse_frame_payload(payload: str) -> dict[str, Any]:
    """Decode the JSON body of a ``data:`` line.

    Raises:
        StreamDecodeError: If the payload is not a JSON object.
    """
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise StreamDecodeError(f"invalid JSON in SSE data: {exc}", payload=payload) from exc
    if not isinstance(parsed, dict):
        raise StreamDecodeError("SSE data is not a JSON object", payload=payload)
    return parsed


def content_text(value: Any) -> Optional[str]:
    """Text to emit for a frame's ``content``, or None when it ends the turn.

    null, false, 0, NaN and "" end the turn; other non-string values are
    emitted as JSON text.
    """
    if isinstance(value, str):
        return value or None
    if value is None or value is False:
        return None
    if isinstance(value, (int, float)) and (value == 0 or value != value):
        return None
    return json.dumps(value, ensure_ascii=False)


class SSEToChatCompletionTransducer:
    """Pull-driven state machine from upstream SSE bytes to OpenAI chunks.

    Each ``advance()`` performs at most one upstream read and processes every
    complete line in the buffer. Nothing is read until the consumer pulls
    again, so output is naturally backpressured.

    State carried between pulls:
        buffer: the trailing incomplete line fragment.
        event_type: the last ``event:`` label, until overwritten or cleared
            by a content frame.
    """

    def __init__(
        self,
        reader: UpstreamReader,
        model: str,
        chat_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.reader = reader
        self.model = model
        self.chat_id = chat_id or new_chat_id()
        self._clock = clock

        self.buffer = ""
        self.event_type: Optional[str] = None
        self.closed = False
        self.content_chunks = 0
        self._reader_cancelled = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    async def advance(self) -> TransducerStep:
        """Pull one upstream chunk and return the frames it produces."""
        if self.closed:
            return TransducerStep(closed=True)

        try:
            chunk = await self.reader.read()
        except asyncio.CancelledError:
            await self.cancel()
            raise
        except Exception as exc:
            logger.error(f"Upstream stream read failed: {exc}")
            self.closed = True
            await self._cancel_reader()
            raise

        if chunk is None:
            if self.buffer:
                logger.debug(f"Discarding partial line at EOF: {self.buffer[:100]!r}")
            return await self._finish([])

        self.buffer += self._decoder.decode(chunk)
        *lines, self.buffer = self.buffer.split("\n")

        frames: list[bytes] = []
        for line in lines:
            if line.startswith(EVENT_PREFIX):
                self.event_type = line[len(EVENT_PREFIX):].strip()
                continue

            if not line.startswith(DATA_PREFIX):
                continue

            if self.event_type in TERMINAL_EVENTS:
                logger.debug(f"Upstream signalled end of turn (event={self.event_type})")
                return await self._finish(frames)

            payload = line[len(DATA_PREFIX):]
            try:
                content = content_text(parse_frame_payload(payload).get("content"))
            except StreamDecodeError as exc:
                logger.debug(f"Treating undecodable frame as end of turn: {exc.message}")
                return await self._finish(frames)

            if content is None:
                logger.debug("Treating frame without content as end of turn")
                return await self._finish(frames)

            frames.append(self._content_frame(content))
            self.content_chunks += 1
            self.event_type = None

        return TransducerStep(frames=frames)

    async def cancel(self) -> None:
        """Consumer-initiated cancellation; safe to call more than once."""
        self.closed = True
        await self._cancel_reader()

    async def iter_frames(self) -> AsyncIterator[bytes]:
        """Drive ``advance()`` until closed, yielding frames as they come.

        Closing the iterator early (client disconnect) cancels the upstream.
        """
        try:
            while not self.closed:
                step = await self.advance()
                for frame in step.frames:
                    yield frame
        finally:
            await self.cancel()

    async def _finish(self, frames: list[bytes]) -> TransducerStep:
        frames.append(DONE_FRAME)
        self.closed = True
        await self._cancel_reader()
        logger.debug(f"Stream {self.chat_id} closed after {self.content_chunks} content chunks")
        return TransducerStep(frames=frames, closed=True)

    async def _cancel_reader(self) -> None:
        if self._reader_cancelled:
            return
        self._reader_cancelled = True
        try:
            await self.reader.cancel()
        except Exception as exc:
            logger.warning(f"Failed to cancel upstream reader: {exc}")

    def _content_frame(self, content: str) -> bytes:
        chunk = {
            "id": self.chat_id,
            "object": "chat.completion.chunk",
            "created": int(self._clock()),
            "model": self.model,
            "choices": [
                {
                    "index": 0,
                    "delta": {"content": content},
                    "finish_reason": None,
                }
            ],
        }
        return f"data: {json.dumps(chunk, ensure_ascii=False)}\n\n".encode("utf-8")


async def adapt_upstream_stream(
    response: httpx.Response,
    model: str,
) -> AsyncIterator[bytes]:
    """Convenience wrapper adapting an httpx streaming response.

    Args:
        response: Upstream streaming response whose body is unread.
        model: Model name reported in the chunks (the caller's requested name).
    """
    transducer = SSEToChatCompletionTransducer(HttpxStreamReader(response), model)
    async for frame in transducer.iter_frames():
        yield frame
