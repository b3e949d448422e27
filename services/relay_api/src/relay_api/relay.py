import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable

from relay_api.sanitizer import sanitize
from relay_api.sse_decoder import iter_content_deltas
from relay_api.upstream_client import UpstreamError, UpstreamStream

logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _edge_whitespace(fragment: str) -> tuple[str, str]:
    stripped = fragment.strip()
    if not stripped:
        return fragment, ""
    leading = fragment[: len(fragment) - len(fragment.lstrip())]
    trailing = fragment[len(fragment.rstrip()):]
    return leading, trailing


async def iter_sanitized(deltas: AsyncIterable[str]) -> AsyncIterator[str]:
    """Sanitize each delta and drop the ones that come out empty.

    sanitize() trims, so the whitespace that separated two fragments in the
    raw stream is re-inserted in front of the next emitted fragment. Nothing
    is emitted before the first or after the last piece of text.
    """
    pending = ""
    started = False
    async for delta in deltas:
        text = sanitize(delta)
        leading, trailing = _edge_whitespace(delta)
        if not text:
            if started:
                pending += leading + trailing
            continue
        if started:
            text = pending + leading + text
        yield text
        started = True
        pending = trailing


async def relay_stream(
    stream: UpstreamStream,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """Response body for a successful upstream call.

    Headers are already committed when this runs, so a failing upstream read
    only ends the body; no error marker is written into the stream.
    """
    written = 0
    try:
        async for text in iter_sanitized(iter_content_deltas(stream.aiter_bytes())):
            if is_disconnected is not None and await is_disconnected():
                logger.info("client disconnected, stopping relay after %s writes", written)
                return
            yield text
            written += 1
        logger.info("relay completed writes=%s", written)
    except UpstreamError as exc:
        logger.error("relay stream failed after %s writes: %s", written, exc.message)
    finally:
        await stream.aclose()
