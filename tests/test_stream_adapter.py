"""Tests for the 1min.ai SSE -> OpenAI chunk stream adapter."""

import asyncio
import json
from typing import Optional

import httpx
import pytest

from onemin_proxy.chat.stream_adapter import (
    DONE_FRAME,
    HttpxStreamReader,
    SSEToChatCompletionTransducer,
    adapt_upstream_stream,
    content_text,
    parse_frame_payload,
)
from onemin_proxy.core.exceptions import StreamDecodeError


class FakeReader:
    """Upstream reader yielding preset chunks and counting cancellations."""

    def __init__(self, chunks, error: Optional[Exception] = None) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.reads = 0
        self.cancel_count = 0

    async def read(self) -> Optional[bytes]:
        self.reads += 1
        if self.chunks:
            return self.chunks.pop(0)
        if self.error is not None:
            raise self.error
        return None

    async def cancel(self) -> None:
        self.cancel_count += 1


def _content(frame: bytes) -> str:
    assert frame.startswith(b"data: ")
    data = json.loads(frame[len(b"data: "):].decode("utf-8"))
    return data["choices"][0]["delta"]["content"]


async def _drain(transducer: SSEToChatCompletionTransducer) -> list[bytes]:
    frames = []
    async for frame in transducer.iter_frames():
        frames.append(frame)
    return frames


class TestTransducerScenarios:
    """End-of-turn detection."""

    @pytest.mark.asyncio
    async def test_content_then_done_event(self):
        """Test one content chunk followed by an explicit done event."""
        reader = FakeReader([
            b'event: content\ndata: {"content":"A"}\n\n',
            b"event: done\ndata: {}\n\n",
        ])
        transducer = SSEToChatCompletionTransducer(reader, "gpt-4o", chat_id="chatcmpl-1")

        frames = await _drain(transducer)

        assert len(frames) == 2
        assert _content(frames[0]) == "A"
        assert frames[1] == DONE_FRAME
        assert reader.cancel_count == 1

    @pytest.mark.asyncio
    async def test_empty_object_ends_turn_immediately(self):
        """Test that a data line without content is an implicit end of turn."""
        reader = FakeReader([b"data: {}\n\n"])
        transducer = SSEToChatCompletionTransducer(reader, "gpt-4o")

        frames = await _drain(transducer)

        assert frames == [DONE_FRAME]
        assert transducer.content_chunks == 0
        assert reader.cancel_count == 1

    @pytest.mark.asyncio
    async def test_numeric_content_is_emitted_as_text(self):
        """Test that a truthy non-string content is forwarded rather than ending the turn."""
        reader = FakeReader([
            b'data: {"content":42}\n',
            b'data: {"content":"!"}\n',
            b'data: {"content":0}\n',
        ])
        transducer = SSEToChatCompletionTransducer(reader, "m")

        frames = await _drain(transducer)

        assert [_content(f) for f in frames[:-1]] == ["42", "!"]
        assert frames[-1] == DONE_FRAME
        assert transducer.content_chunks == 2
        assert reader.cancel_count == 1

    @pytest.mark.asyncio
    async def test_result_event_ends_turn(self):
        reader = FakeReader([b'event: result\ndata: {"content":"ignored"}\n\n'])
        frames = await _drain(SSEToChatCompletionTransducer(reader, "m"))

        assert frames == [DONE_FRAME]

    @pytest.mark.asyncio
    async def test_invalid_json_ends_turn(self):
        """Test that an undecodable frame ends the stream instead of raising."""
        reader = FakeReader([
            b'data: {"content":"ok"}\n',
            b"data: not-json\n",
            b'data: {"content":"never"}\n',
        ])
        frames = await _drain(SSEToChatCompletionTransducer(reader, "m"))

        assert [_content(f) for f in frames[:-1]] == ["ok"]
        assert frames[-1] == DONE_FRAME
        assert reader.cancel_count == 1

    @pytest.mark.asyncio
    async def test_eof_emits_done_and_discards_partial_line(self):
        reader = FakeReader([b'data: {"content":"x"}\ndata: {"content":"trunc'])
        frames = await _drain(SSEToChatCompletionTransducer(reader, "m"))

        assert [_content(f) for f in frames[:-1]] == ["x"]
        assert frames[-1] == DONE_FRAME
        assert reader.cancel_count == 1

    @pytest.mark.asyncio
    async def test_done_label_applies_after_content_clears_label(self):
        """Test that a content frame clears the label so later frames are content."""
        reader = FakeReader([
            b'event: content\ndata: {"content":"a"}\ndata: {"content":"b"}\n',
            b"event: done\ndata: {}\n",
        ])
        frames = await _drain(SSEToChatCompletionTransducer(reader, "m"))

        assert [_content(f) for f in frames[:-1]] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_blank_and_comment_lines_ignored(self):
        reader = FakeReader([b': keep-alive\n\nid: 7\ndata: {"content":"hi"}\n\n'])
        frames = await _drain(SSEToChatCompletionTransducer(reader, "m"))

        assert [_content(f) for f in frames[:-1]] == ["hi"]


class TestTransducerBuffering:
    """Partial-line handling across chunk boundaries."""

    @pytest.mark.asyncio
    async def test_line_split_across_chunks(self):
        reader = FakeReader([
            b"event: con",
            b'tent\ndata: {"cont',
            b'ent":"Hello"}',
            b"\n\nevent: done\ndata: {}\n",
        ])
        frames = await _drain(SSEToChatCompletionTransducer(reader, "m"))

        assert [_content(f) for f in frames[:-1]] == ["Hello"]
        assert frames[-1] == DONE_FRAME

    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_chunks(self):
        encoded = 'data: {"content":"héllo"}\n'.encode("utf-8")
        split = encoded.index("é".encode("utf-8")) + 1
        reader = FakeReader([encoded[:split], encoded[split:]])

        frames = await _drain(SSEToChatCompletionTransducer(reader, "m"))

        assert _content(frames[0]) == "héllo"

    @pytest.mark.asyncio
    async def test_event_label_trimmed(self):
        reader = FakeReader([b"event: done  \r\ndata: {}\r\n"])
        frames = await _drain(SSEToChatCompletionTransducer(reader, "m"))

        assert frames == [DONE_FRAME]


class TestTransducerAdvance:
    """Pull semantics of advance()."""

    @pytest.mark.asyncio
    async def test_one_read_per_advance(self):
        reader = FakeReader([b'data: {"content":"a"}\n', b'data: {"content":"b"}\n'])
        transducer = SSEToChatCompletionTransducer(reader, "m")

        step = await transducer.advance()

        assert reader.reads == 1
        assert len(step.frames) == 1
        assert step.closed is False

    @pytest.mark.asyncio
    async def test_chunk_shape(self):
        reader = FakeReader([b'data: {"content":"a"}\n'])
        transducer = SSEToChatCompletionTransducer(reader, "gpt-4o", chat_id="chatcmpl-42", clock=lambda: 1700000000.5)

        step = await transducer.advance()
        chunk = json.loads(step.frames[0][len(b"data: "):])

        assert step.frames[0].endswith(b"\n\n")
        assert chunk == {
            "id": "chatcmpl-42",
            "object": "chat.completion.chunk",
            "created": 1700000000,
            "model": "gpt-4o",
            "choices": [{"index": 0, "delta": {"content": "a"}, "finish_reason": None}],
        }

    @pytest.mark.asyncio
    async def test_advance_after_close_returns_empty_closed_step(self):
        reader = FakeReader([b"data: {}\n"])
        transducer = SSEToChatCompletionTransducer(reader, "m")

        first = await transducer.advance()
        second = await transducer.advance()

        assert first.closed is True
        assert second.frames == []
        assert second.closed is True
        assert reader.reads == 1


class TestTransducerCancellation:
    """Upstream cancellation discipline."""

    @pytest.mark.asyncio
    async def test_reader_error_propagates_without_done(self):
        reader = FakeReader([b'data: {"content":"a"}\n'], error=httpx.ReadError("boom"))
        transducer = SSEToChatCompletionTransducer(reader, "m")
        frames = []

        with pytest.raises(httpx.ReadError):
            async for frame in transducer.iter_frames():
                frames.append(frame)

        assert DONE_FRAME not in frames
        assert [_content(f) for f in frames] == ["a"]
        assert reader.cancel_count == 1

    @pytest.mark.asyncio
    async def test_consumer_cancel_is_idempotent(self):
        reader = FakeReader([b'data: {"content":"a"}\n'])
        transducer = SSEToChatCompletionTransducer(reader, "m")

        await transducer.cancel()
        await transducer.cancel()
        step = await transducer.advance()

        assert reader.cancel_count == 1
        assert step.closed is True
        assert reader.reads == 0

    @pytest.mark.asyncio
    async def test_consumer_stopping_early_cancels_upstream(self):
        reader = FakeReader([b'data: {"content":"a"}\n', b'data: {"content":"b"}\n'])
        transducer = SSEToChatCompletionTransducer(reader, "m")

        frames = transducer.iter_frames()
        first = await frames.__anext__()
        await frames.aclose()

        assert _content(first) == "a"
        assert reader.cancel_count == 1
        assert transducer.closed is True

    @pytest.mark.asyncio
    async def test_task_cancellation_during_read_cancels_upstream(self):
        gate = asyncio.Event()

        class BlockingReader(FakeReader):
            async def read(self):
                await gate.wait()
                return None

        reader = BlockingReader([])
        transducer = SSEToChatCompletionTransducer(reader, "m")
        task = asyncio.create_task(transducer.advance())
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert reader.cancel_count == 1
        assert transducer.closed is True


class TestHttpxStreamReader:
    @pytest.mark.asyncio
    async def test_adapts_httpx_streaming_response(self):
        body = b'event: content\ndata: {"content":"Hi"}\n\nevent: done\ndata: {}\n\n'
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=body))
        async with httpx.AsyncClient(transport=transport) as client:
            request = client.build_request("POST", "http://upstream.local/sse")
            response = await client.send(request, stream=True)

            frames = [frame async for frame in adapt_upstream_stream(response, "gpt-4")]

        assert _content(frames[0]) == "Hi"
        assert frames[-1] == DONE_FRAME
        assert response.is_closed

    @pytest.mark.asyncio
    async def test_read_returns_none_at_end(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"abc"))
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.send(client.build_request("GET", "http://upstream.local/"), stream=True)
            reader = HttpxStreamReader(response)

            assert await reader.read() == b"abc"
            assert await reader.read() is None
            await reader.cancel()


class TestParseFramePayload:
    def test_rejects_non_object(self):
        with pytest.raises(StreamDecodeError) as exc_info:
            parse_frame_payload("[1, 2]")
        assert exc_info.value.payload == "[1, 2]"

    def test_rejects_invalid_json(self):
        with pytest.raises(StreamDecodeError):
            parse_frame_payload("{oops")


class TestContentText:
    @pytest.mark.parametrize("value", [None, "", False, 0, 0.0, float("nan")])
    def test_falsy_values_end_turn(self, value):
        assert content_text(value) is None

    @pytest.mark.parametrize(
        "value, expected",
        [("hi", "hi"), (7, "7"), (1.5, "1.5"), (True, "true"), ({"a": 1}, '{"a": 1}')],
    )
    def test_truthy_values_become_text(self, value, expected):
        assert content_text(value) == expected
