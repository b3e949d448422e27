import asyncio
import json
import logging
from collections.abc import AsyncIterator

import httpx

from relay_api.constants import TIMEOUT_MESSAGE
from relay_api.request_id import get_request_id_header
from relay_api.schemas import UpstreamPayload
from relay_api.settings import Settings

logger = logging.getLogger(__name__)

KIND_TIMEOUT = "timeout"
KIND_TRANSPORT_FAILURE = "transport_failure"
KIND_UPSTREAM_REJECTED = "upstream_rejected"
KIND_STREAM_FAILURE = "stream_failure"

# Only read this much of a rejected response for the log line.
MAX_ERROR_BODY_BYTES = 4096


class UpstreamError(Exception):
    def __init__(self, kind: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code


def _extract_error_message(raw: bytes) -> str | None:
    # OpenAI-style error format: {"error": {"message": "...", "type": "...", "code": "..."}}
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    err = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(err, dict):
        return err.get("message")
    if isinstance(err, str):
        return err
    return None


def _describe(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


async def _read_error_body(response: httpx.Response) -> bytes:
    raw = b""
    async for chunk in response.aiter_bytes():
        raw += chunk
        if len(raw) >= MAX_ERROR_BODY_BYTES:
            break
    return raw[:MAX_ERROR_BODY_BYTES]


class UpstreamStream:
    """Handle on a successful (2xx) upstream response whose body is still unread."""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response) -> None:
        self._client = client
        self._response = response

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise UpstreamError(
                kind=KIND_STREAM_FAILURE,
                message=f"upstream stream interrupted: {_describe(exc)}",
            ) from exc

    async def aclose(self) -> None:
        try:
            await self._response.aclose()
        finally:
            await self._client.aclose()


async def open_upstream_stream(
    settings: Settings,
    payload: UpstreamPayload,
    timeout_seconds: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> UpstreamStream:
    headers = {
        "Authorization": f"Bearer {settings.api_key}",
        "Content-Type": "application/json",
    }
    headers.update(get_request_id_header())
    timeout = timeout_seconds or settings.upstream_timeout_seconds

    # The window covers connecting and receiving the response head. Body reads
    # are unbounded: a long answer may legitimately stream for minutes.
    client = httpx.AsyncClient(timeout=httpx.Timeout(timeout, read=None), transport=transport)
    try:
        try:
            request = client.build_request(
                "POST", settings.api_url, json=payload.model_dump(), headers=headers
            )
            response = await asyncio.wait_for(client.send(request, stream=True), timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("upstream timeout after %ss url=%s", timeout, settings.api_url)
            raise UpstreamError(kind=KIND_TIMEOUT, message=TIMEOUT_MESSAGE)
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            logger.warning("upstream transport failure url=%s error=%s", settings.api_url, exc)
            raise UpstreamError(kind=KIND_TRANSPORT_FAILURE, message=_describe(exc)) from exc

        if not response.is_success:
            try:
                raw = await asyncio.wait_for(_read_error_body(response), timeout)
            except (asyncio.TimeoutError, httpx.HTTPError):
                raw = b""
            finally:
                await response.aclose()
            logger.warning(
                "upstream rejected status=%s detail=%s",
                response.status_code,
                _extract_error_message(raw) or "-",
            )
            raise UpstreamError(
                kind=KIND_UPSTREAM_REJECTED,
                message=f"upstream request failed: {response.status_code}",
                status_code=response.status_code,
            )
    except BaseException:
        await client.aclose()
        raise

    return UpstreamStream(client, response)
