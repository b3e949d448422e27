"""Decoder for the upstream's ``data: <json>`` event stream.

The pipeline is split into composable async generators so each step can be
driven from plain lists in tests:

    bytes chunks -> iter_lines -> parse_event -> iter_content_deltas
"""

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass

from relay_api.constants import DATA_PREFIX, DONE_SENTINEL

logger = logging.getLogger(__name__)

EVENT_DELTA = "delta"
EVENT_DONE = "done"


@dataclass(frozen=True)
class StreamEvent:
    kind: str
    text: str = ""

    @property
    def is_done(self) -> bool:
        return self.kind == EVENT_DONE


DONE_EVENT = StreamEvent(kind=EVENT_DONE)


async def iter_lines(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Yield non-blank text lines, buffering partial lines across chunks."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""
    async for chunk in chunks:
        pending += decoder.decode(chunk)
        *lines, pending = pending.split("\n")
        for line in lines:
            line = line.rstrip("\r")
            if line.strip():
                yield line
    pending += decoder.decode(b"", final=True)
    pending = pending.rstrip("\r")
    if pending.strip():
        yield pending


def _extract_content(payload) -> str | None:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if not isinstance(content, str):
        return None
    return content


def parse_event(line: str) -> StreamEvent | None:
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    if data == DONE_SENTINEL:
        return DONE_EVENT
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        logger.warning("skipping malformed upstream event: %s data=%s", exc, data)
        return None
    content = _extract_content(payload)
    if not content:
        return None
    return StreamEvent(kind=EVENT_DELTA, text=content)


async def iter_events(chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamEvent]:
    async for line in iter_lines(chunks):
        event = parse_event(line)
        if event is not None:
            yield event


async def iter_content_deltas(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    # [DONE] is not forwarded; the stream ends when the upstream closes.
    async for event in iter_events(chunks):
        if event.is_done:
            continue
        yield event.text
