import logging
import sys
from pathlib import PurePath

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from relay_api.logging_config import configure_logging
from relay_api.relay import STREAM_HEADERS, relay_stream
from relay_api.request_id import REQUEST_ID_HEADER, resolve_request_id, set_request_id
from relay_api.schemas import ChatRequest, ErrorResponse, build_upstream_payload
from relay_api.settings import PROD_ENV, Settings, get_settings
from relay_api.upstream_client import UpstreamError, open_upstream_stream

logger = logging.getLogger(__name__)


class PublicStaticFiles(StaticFiles):
    """Static files without dotfiles; the served directory may hold the .env file."""

    async def get_response(self, path: str, scope):
        hidden = [p for p in PurePath(path).parts if p.startswith(".") and p not in (".", "..")]
        if hidden:
            raise HTTPException(status_code=404)
        return await super().get_response(path, scope)


def _error_response(error: str, message: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, message=message)
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


def create_app(settings: Settings) -> FastAPI:
    configure_logging(settings.log_level)

    app = FastAPI(title="Chat Relay")
    app.state.settings = settings
    # Tests point this at an httpx.MockTransport; None means real network.
    app.state.upstream_transport = None

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        set_request_id(request_id)
        if settings.app_env.lower() == PROD_ENV:
            if request.url.path in ("/docs", "/openapi.json"):
                return JSONResponse(status_code=404, content={"detail": "not found"})
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception("unhandled error")
            response = _error_response("internal server error", str(exc))
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # Outermost layer: error responses carry CORS headers too.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_request: Request, exc: RequestValidationError):
        logger.warning("invalid chat request: %s", exc.errors())
        return _error_response("invalid request body", str(exc))

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/chat")
    async def chat(payload: ChatRequest, request: Request):
        upstream_payload = build_upstream_payload(payload)
        logger.info(
            "chat request messages=%s temperature=%s",
            len(payload.messages) if payload.messages is not None else "missing",
            payload.temperature,
        )
        try:
            stream = await open_upstream_stream(
                request.app.state.settings,
                upstream_payload,
                transport=request.app.state.upstream_transport,
            )
        except UpstreamError as exc:
            logger.warning("upstream error kind=%s status=%s", exc.kind, exc.status_code)
            return _error_response(exc.message)

        return StreamingResponse(
            relay_stream(stream, request.is_disconnected),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )

    if settings.serve_static:
        app.mount("/", PublicStaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


def main() -> None:
    try:
        settings = get_settings()
    except ValidationError as exc:
        configure_logging("INFO")
        logger.error("missing or invalid configuration: %s", exc)
        sys.exit(1)

    app = create_app(settings)
    logger.info("chat relay listening on http://%s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
