"""
FastAPI application entry point for the tutor relay.

Responsibilities:
- create the FastAPI app
- validate configuration at startup and fail fast when it is incomplete
- construct the shared TutorCompletionClient
- include the chat routes and serve the static front-end, if present

Run with:

    uvicorn runtime.api.server:app
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from configs.settings import Settings, settings as default_settings
from core.api.openai_client import TutorCompletionClient
from . import chat_routes


logger = logging.getLogger(__name__)


def create_app(
    config: Optional[Settings] = None,
    completion_client: Optional[TutorCompletionClient] = None,
) -> FastAPI:
    """Build the relay app.

    The completion client is created inside the lifespan hook, after
    Settings.validate_for_relay() has passed, so a missing OPENAI_API_KEY
    stops startup with a ConfigurationError instead of failing per request.
    """
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config.validate_for_relay()
        client = completion_client or TutorCompletionClient(config=config)
        chat_routes.init_routes(completion_client=client)
        logger.info("[SERVER] relay ready model=%s", client.model)
        yield
        chat_routes.init_routes(completion_client=None)

    app = FastAPI(title="Language Tutor Relay", lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        parts = []
        for err in exc.errors():
            field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            parts.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
        message = "Invalid request: " + "; ".join(parts)
        logger.warning("[SERVER] %s", message)
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return PlainTextResponse(f"Not Found: {request.url.path}", status_code=404)
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    app.include_router(chat_routes.router)

    # Static front-end last, so that it never shadows the API routes.
    static_dir = config.static_dir
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")
        logger.info("[SERVER] serving files from: %s", static_dir.resolve())
    else:
        logger.info("[SERVER] static directory %s not found; serving API only", static_dir)

    return app


app = create_app()
