"""
Custom exceptions for the language tutor.

These exceptions are intentionally simple and descriptive.
They are used across:

  - core/api/      (upstream completion provider)
  - core/relay/    (client side of POST /api/chat)
  - core/speech/   (synthesis and recognition)
  - core/session/  (conversation state machine)
  - runtime/api/   (relay server)

Placing them at the project root (exceptions/) avoids circular imports
and keeps exception types consistent across modules. None of them is
fatal to the process except ConfigurationError at server startup.
"""

from typing import Optional


class TutorError(Exception):
    """Base class for every error raised by the tutor."""


class ValidationError(TutorError):
    """
    Raised when input is rejected locally, before any network call.

    Examples: an empty chat message, or a language pair whose native and
    target languages are the same.
    """


class UpstreamError(TutorError):
    """
    Raised when the relay, the network, or the completion provider fails.

    `status` carries the HTTP status code when one was received, and
    `message` the upstream error text when available.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        self.message = message
        if status is not None:
            msg = f"Upstream error ({status}): {message}"
        else:
            msg = f"Upstream error: {message}"
        super().__init__(msg)


class CaptureError(TutorError):
    """
    Raised when speech recognition fails on the platform.

    Only the current capture attempt is aborted; any partial transcript
    is discarded.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Speech capture failed: {reason}")


class PlaybackUnavailable(TutorError):
    """Raised when the platform has no speech synthesis capability."""


class ConfigurationError(TutorError):
    """Raised when required configuration (e.g. OPENAI_API_KEY) is missing or invalid."""
