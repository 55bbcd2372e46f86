"""
core.relay.relay_client

Client side of the POST /api/chat contract.

Request body:  {nativeLanguage, targetLanguage, difficulty, message}
Response:      200 {message} | non-200 {error}
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from configs.settings import settings
from exceptions.exceptions import UpstreamError, ValidationError


logger = logging.getLogger(__name__)

CHAT_PATH = "/api/chat"


def _error_text(response: httpx.Response) -> str:
    """Best-effort extraction of the relay's error message."""
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return response.text or response.reason_phrase


class RelayClient:
    """Send one learner turn to the relay and return the tutor's reply.

    Parameters
    ----------
    base_url:
        Root URL of the relay server (default: TUTOR_RELAY_URL).
    timeout:
        Request timeout in seconds (default: TUTOR_REQUEST_TIMEOUT).
    client:
        Pre-built httpx.AsyncClient, mostly useful for tests. When given,
        base_url and timeout are ignored and the caller owns its lifetime.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.relay_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
        )

    async def send_turn(
        self,
        native_language: str,
        target_language: str,
        difficulty: str,
        message: str,
    ) -> str:
        """
        Raises
        ------
        ValidationError
            If `message` is empty; no request is made.
        UpstreamError
            On network failure, a non-2xx response, or a 2xx response
            without a `message` string.
        """
        if not message or not message.strip():
            raise ValidationError("Message must not be empty.")

        payload = {
            "nativeLanguage": native_language,
            "targetLanguage": target_language,
            "difficulty": difficulty,
            "message": message,
        }

        try:
            response = await self._client.post(CHAT_PATH, json=payload)
        except httpx.HTTPError as e:
            logger.warning("[RELAY] request failed: %s", e)
            raise UpstreamError(str(e) or e.__class__.__name__) from e

        if not response.is_success:
            detail = _error_text(response)
            logger.warning("[RELAY] HTTP %s from relay: %s", response.status_code, detail)
            raise UpstreamError(detail, status=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Relay returned a non-JSON body.", status=response.status_code) from e

        reply = data.get("message") if isinstance(data, dict) else None
        if not isinstance(reply, str):
            raise UpstreamError("Relay response has no 'message' field.", status=response.status_code)
        return reply

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
