"""TutorSession: the conversation lifecycle of one learner.

States: IDLE (initial), ACTIVE, PAUSED.

    IDLE   --start-->  ACTIVE   greeting requested, appended and spoken
    PAUSED --start-->  ACTIVE   (a fresh conversation)
    ACTIVE --stop-->   PAUSED   speech cancelled, history kept
    *      --reset-->  IDLE     speech cancelled, history cleared

Responsibilities:
- gate input: messages are accepted only while ACTIVE and while no tutor
  reply is outstanding
- coordinate the relay client with the speech adapter so that at most one
  tutor request is in flight and at most one utterance plays
- emit a VisibilityDirective to the injected view on every transition

Relay requests are never cancelled. Each start/reset opens a new
generation; a reply that resolves for an older generation, or after the
session left ACTIVE, is dropped without being appended or spoken.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from core.api.prompts import PROMPT_GREETING
from core.speech.speech_adapter import SpeechAdapter
from exceptions.exceptions import CaptureError, UpstreamError
from runtime.models.session_models import (
    LanguagePreferences,
    Session,
    SessionProgress,
    SessionStatus,
    Speaker,
    Turn,
    directive_for,
)
from .languages import language_name
from .view import SessionView


logger = logging.getLogger(__name__)

ERROR_REPLY = "Sorry, I encountered an error. Please try again."

PAUSED_NOTICE = (
    "Conversation paused. Start a new conversation to begin a new session "
    "or reset to clear the current conversation."
)


class TurnRelay(Protocol):
    async def send_turn(
        self,
        native_language: str,
        target_language: str,
        difficulty: str,
        message: str,
    ) -> str:
        ...


class TutorSession:
    """Conversation state machine for the language tutor.

    Parameters
    ----------
    relay:
        Object exposing `send_turn(...)`, normally a RelayClient.
    speech:
        SpeechAdapter used for tutor playback and voice capture.
    view:
        Presentation layer implementing SessionView.
    preferences:
        Initial language pair and difficulty.
    clock:
        Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        relay: TurnRelay,
        speech: SpeechAdapter,
        view: SessionView,
        preferences: Optional[LanguagePreferences] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.relay = relay
        self.speech = speech
        self.view = view
        self.preferences = preferences or LanguagePreferences()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._session = Session()
        self._generation = 0
        self._in_flight = False

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def turns(self) -> List[Turn]:
        return list(self._session.turns)

    @property
    def message_count(self) -> int:
        return self._session.message_count

    @property
    def last_tutor_reply(self) -> str:
        return self._session.last_tutor_reply

    @property
    def started_at(self) -> Optional[datetime]:
        return self._session.started_at

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def progress(self) -> SessionProgress:
        elapsed = 0
        if self._session.started_at is not None:
            elapsed = max(int((self._clock() - self._session.started_at).total_seconds()), 0)
        return SessionProgress(message_count=self._session.message_count, elapsed_seconds=elapsed)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._session.status == SessionStatus.ACTIVE:
            logger.debug("[SESSION] start ignored: already active")
            return

        self._silence()
        self._generation += 1
        generation = self._generation
        self._in_flight = False
        self._session = Session(status=SessionStatus.ACTIVE, started_at=self._clock())

        self.view.clear_conversation()
        self._emit_visibility()
        self.view.render_progress(self.progress)
        logger.info(
            "[SESSION] started native=%s target=%s difficulty=%s",
            self.preferences.native_language,
            self.preferences.target_language,
            self.preferences.difficulty,
        )

        greeting_request = PROMPT_GREETING.format(
            target_language_name=language_name(self.preferences.target_language)
        )
        await self._request_reply(generation, greeting_request, increment=1)

    def stop(self) -> None:
        if self._session.status != SessionStatus.ACTIVE:
            logger.debug("[SESSION] stop ignored in status=%s", self._session.status.value)
            return

        self._silence()
        if self._in_flight:
            self.view.hide_typing_indicator()
        self._append(Speaker.SYSTEM, PAUSED_NOTICE)
        self._session.status = SessionStatus.PAUSED
        self._emit_visibility()
        logger.info("[SESSION] paused after %d messages", self._session.message_count)

    def reset(self) -> None:
        self._silence()
        self._generation += 1
        self._in_flight = False
        self._session = Session()

        self.view.hide_typing_indicator()
        self.view.render_partial_transcript("")
        self.view.clear_conversation()
        self._emit_visibility()
        self.view.render_progress(self.progress)
        logger.info("[SESSION] reset")

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def send_message(self, text: str) -> bool:
        """Send a learner message; return False if it was not accepted."""
        text = (text or "").strip()
        if not text:
            logger.debug("[SESSION] empty message ignored")
            return False
        if self._session.status != SessionStatus.ACTIVE:
            logger.debug("[SESSION] message ignored in status=%s", self._session.status.value)
            return False
        if self._in_flight:
            logger.info("[SESSION] message ignored: tutor reply still pending")
            return False

        self._append(Speaker.USER, text)
        await self._request_reply(self._generation, text, increment=2)
        return True

    def replay(self) -> bool:
        """Speak the last tutor reply again."""
        if self._session.status != SessionStatus.ACTIVE or not self._session.last_tutor_reply:
            return False
        self.speech.speak(self._session.last_tutor_reply, self.preferences.target_language)
        return True

    def set_preferences(
        self,
        native_language: Optional[str] = None,
        target_language: Optional[str] = None,
        difficulty: Optional[str] = None,
    ) -> LanguagePreferences:
        """Replace the language preferences; raises ValidationError for an invalid pair."""
        current = self.preferences
        self.preferences = LanguagePreferences(
            native_language=native_language if native_language is not None else current.native_language,
            target_language=target_language if target_language is not None else current.target_language,
            difficulty=difficulty if difficulty is not None else current.difficulty,
        )
        return self.preferences

    # ------------------------------------------------------------------
    # Voice input
    # ------------------------------------------------------------------

    async def capture_voice(self, continuous: bool = True) -> Optional[str]:
        """Capture speech, mirror partial transcripts, then send the final one.

        Returns the transcript that was sent, or None if nothing was captured
        or the session did not accept it.
        """
        if self._session.status != SessionStatus.ACTIVE:
            return None
        if self._in_flight:
            logger.info("[SESSION] voice input ignored: tutor reply still pending")
            return None

        generation = self._generation
        transcript = ""
        try:
            async for update in self.speech.start_capture(
                self.preferences.target_language, continuous=continuous
            ):
                if update.is_final:
                    transcript = update.text
                else:
                    self.view.render_partial_transcript(update.text)
        except CaptureError as e:
            logger.warning("[SESSION] voice input failed: %s", e.reason)
            self.view.render_partial_transcript("")
            return None

        self.view.render_partial_transcript("")
        transcript = transcript.strip()
        if not transcript:
            return None
        if generation != self._generation or not await self.send_message(transcript):
            logger.warning("[SESSION] voice message not sent: %r", transcript)
            return None
        return transcript

    def stop_voice_input(self) -> None:
        self.speech.stop_capture()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request_reply(self, generation: int, message: str, increment: int) -> None:
        prefs = self.preferences
        self._in_flight = True
        self.view.show_typing_indicator()
        try:
            reply = await self.relay.send_turn(
                prefs.native_language,
                prefs.target_language,
                prefs.difficulty,
                message,
            )
        except UpstreamError as e:
            if not self._is_current(generation):
                logger.info("[SESSION] discarding relay error for a finished session: %s", e)
                return
            logger.warning("[SESSION] tutor reply failed: %s", e)
            self.view.hide_typing_indicator()
            self._append(Speaker.SYSTEM, f"{ERROR_REPLY} ({e.message})")
            return
        finally:
            if generation == self._generation:
                self._in_flight = False

        if not self._is_current(generation):
            logger.info("[SESSION] discarding tutor reply for a finished session")
            return

        self.view.hide_typing_indicator()
        self._append(Speaker.TUTOR, reply)
        self._session.message_count += increment
        self._session.last_tutor_reply = reply
        self.speech.speak(reply, prefs.target_language)
        self.view.render_progress(self.progress)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._session.status == SessionStatus.ACTIVE

    def _append(self, speaker: Speaker, text: str) -> Turn:
        turn = Turn(speaker=speaker, text=text, sent_at=self._clock())
        self._session.turns.append(turn)
        self.view.render_turn(turn)
        return turn

    def _silence(self) -> None:
        self.speech.cancel_playback()
        self.speech.stop_capture()

    def _emit_visibility(self) -> None:
        self.view.apply_visibility(directive_for(self._session.status))
