"""
core.api.openai_client

Thin wrapper around the OpenAI Chat Completions API for the tutor relay.

Used by:
  - runtime/api/chat_routes.py (POST /api/chat)
"""

from __future__ import annotations

import logging
from typing import Optional

from openai import APIStatusError, OpenAI, OpenAIError

from configs.settings import Settings, settings as default_settings
from core.api.prompts import PROMPT_TUTOR_SYSTEM
from exceptions.exceptions import UpstreamError


logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Internal helpers
# -------------------------------------------------------------------


def _build_messages(
    native_language: str,
    target_language: str,
    difficulty: str,
    message: str,
) -> list:
    """Return the chat-completion message list for a single tutor turn."""
    system_prompt = PROMPT_TUTOR_SYSTEM.format(
        native_language=native_language,
        target_language=target_language,
        difficulty=difficulty,
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": message},
    ]


# -------------------------------------------------------------------
# Public client
# -------------------------------------------------------------------


class TutorCompletionClient:
    """
    Ask the upstream chat-completion provider for a tutor reply.

    Parameters
    ----------
    config : Settings, optional
        Source of the API key, base URL and model name. Defaults to the
        module-level settings singleton.
    client : OpenAI, optional
        Pre-built SDK client. When omitted one is created from `config`,
        which raises ConfigurationError if OPENAI_API_KEY is missing.
    """

    def __init__(self, config: Optional[Settings] = None, client: Optional[OpenAI] = None) -> None:
        self.config = config or default_settings
        self.client = client or OpenAI(
            api_key=self.config.openai_api_key,
            base_url=self.config.openai_base_url,
        )
        self.model = self.config.openai_model

    def reply(
        self,
        native_language: str,
        target_language: str,
        difficulty: str,
        message: str,
    ) -> str:
        """
        Send one learner message and return the tutor's reply text.

        Raises
        ------
        UpstreamError
            If the API call fails, carrying the provider's status code
            when one was returned, or if the response has no choices.
        """
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=_build_messages(native_language, target_language, difficulty, message),
            )
        except APIStatusError as e:
            logger.error("[UPSTREAM] OpenAI API error %s: %s", e.status_code, e.message)
            raise UpstreamError(e.message, status=e.status_code) from e
        except OpenAIError as e:
            logger.error("[UPSTREAM] OpenAI request failed: %s", e)
            raise UpstreamError(str(e)) from e

        if not completion.choices:
            raise UpstreamError("Empty response from OpenAI API.")

        text = completion.choices[0].message.content or ""
        logger.debug("[UPSTREAM] reply (%d chars) from model=%s", len(text), self.model)
        return text
