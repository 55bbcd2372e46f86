"""HTTP routes for the tutor relay.

Exposes:

- POST /api/chat -> takes (nativeLanguage, targetLanguage, difficulty, message)
                    and returns {message} with the tutor's reply, or
                    {error} with a non-200 status.
- GET  /healthz  -> liveness probe.
"""

import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from core.api.openai_client import TutorCompletionClient
from exceptions.exceptions import UpstreamError
from ..models.api_models import ChatRequest, ChatResponse, ErrorResponse


logger = logging.getLogger(__name__)

router = APIRouter()


# Module-level reference, initialized by the server at startup.
_COMPLETION_CLIENT: Optional[TutorCompletionClient] = None


def init_routes(completion_client: Optional[TutorCompletionClient]) -> None:
    """Initialize the module-level completion client used by the route handlers."""
    global _COMPLETION_CLIENT
    _COMPLETION_CLIENT = completion_client


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
def chat(request: ChatRequest):
    """Forward one learner turn to the completion provider.

    Declared sync so FastAPI runs the blocking SDK call in its threadpool.
    """
    logger.info(
        "[CHAT] request native=%s target=%s difficulty=%s message=%r",
        request.native_language,
        request.target_language,
        request.difficulty,
        request.message,
    )

    if _COMPLETION_CLIENT is None:
        return _error(500, "Completion client is not configured on the server.")

    try:
        reply = _COMPLETION_CLIENT.reply(
            native_language=request.native_language,
            target_language=request.target_language,
            difficulty=request.difficulty,
            message=request.message,
        )
    except UpstreamError as e:
        logger.warning(
            "[CHAT] upstream failure status=%s target=%s reason=%r",
            e.status,
            request.target_language,
            e.message,
        )
        return _error(502, str(e))
    except Exception as e:
        logger.exception(
            "[CHAT] Unexpected error for target=%s message=%r",
            request.target_language,
            request.message,
        )
        return _error(500, str(e) or e.__class__.__name__)

    return ChatResponse(message=reply)


# --------------------------------------------------------
# Endpoint: GET /healthz
# --------------------------------------------------------
@router.get("/healthz")
def health_check():
    """
    Simple health check endpoint for uptime monitoring.
    """
    return {"status": "ok"}
