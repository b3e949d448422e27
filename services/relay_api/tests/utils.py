import asyncio
import json

import httpx


def sse_line(content=None, raw: str | None = None) -> str:
    if raw is not None:
        return f"data: {raw}\n\n"
    payload = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def sse_body(*contents: str, done: bool = True) -> bytes:
    body = "".join(sse_line(content) for content in contents)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


async def iter_chunks(*chunks: bytes):
    for chunk in chunks:
        yield chunk


class UpstreamRecorder:
    """In-process upstream that records requests and replays a canned response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.chunks: list[bytes] = [sse_body()]
        self.delay_seconds = 0.0
        self.error: Exception | None = None

    def respond(self, *chunks: bytes, status_code: int = 200) -> None:
        self.chunks = list(chunks)
        self.status_code = status_code

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, content=iter_chunks(*self.chunks))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)
