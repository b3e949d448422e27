import pytest

from relay_api.relay import iter_sanitized, relay_stream
from relay_api.upstream_client import KIND_STREAM_FAILURE, UpstreamError

from .utils import iter_chunks, sse_body

pytestmark = pytest.mark.asyncio


async def _strings(*items):
    for item in items:
        yield item


async def _collect(gen):
    return [item async for item in gen]


class FakeStream:
    def __init__(self, *chunks, error=None):
        self._chunks = chunks
        self._error = error
        self.closed = False

    async def aiter_bytes(self):
        async for chunk in iter_chunks(*self._chunks):
            yield chunk
        if self._error is not None:
            raise self._error

    async def aclose(self):
        self.closed = True


async def test_word_boundaries_survive_trimming():
    out = await _collect(iter_sanitized(_strings("Hello ", "**world**", "!")))
    assert out == ["Hello", " world", "!"]
    assert "".join(out) == "Hello world!"


async def test_empty_fragments_are_suppressed():
    out = await _collect(iter_sanitized(_strings("```js\nconsole.log(1)\n```", "   ")))
    assert out == []


async def test_whitespace_of_suppressed_fragment_is_carried():
    out = await _collect(iter_sanitized(_strings("one", "\n\n", "two")))
    assert "".join(out) == "one\n\ntwo"


async def test_no_leading_or_trailing_whitespace_written():
    out = await _collect(iter_sanitized(_strings("  start", "end  ")))
    assert out == ["start", "end"]


async def test_relay_stream_completes_and_closes():
    stream = FakeStream(sse_body("Hello ", "**world**"))
    out = await _collect(relay_stream(stream))
    assert "".join(out) == "Hello world"
    assert stream.closed


async def test_relay_stream_failure_ends_silently():
    stream = FakeStream(
        sse_body("first", done=False),
        error=UpstreamError(kind=KIND_STREAM_FAILURE, message="boom"),
    )
    out = await _collect(relay_stream(stream))
    assert out == ["first"]
    assert stream.closed


async def test_relay_stream_stops_when_client_disconnects():
    stream = FakeStream(sse_body("a", "b", "c"))
    calls = 0

    async def is_disconnected():
        nonlocal calls
        calls += 1
        return calls > 1

    out = await _collect(relay_stream(stream, is_disconnected))
    assert out == ["a"]
    assert stream.closed
