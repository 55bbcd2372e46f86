"""SpeechAdapter: one utterance and one recognition stream at a time.

The adapter hides the platform backends behind two operations the
session state machine can await uniformly:

- speak(text, language): cancel whatever is playing, then play `text`.
- start_capture(language): an async generator of TranscriptUpdate that
  ends with a final transcript, or raises CaptureError.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

from exceptions.exceptions import CaptureError, PlaybackUnavailable
from .backends import RecognitionBackend, SynthesisBackend


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptUpdate:
    text: str
    is_final: bool


@dataclass
class VoiceCaptureState:
    active: bool = False
    partial_transcript: str = ""


class SpeechAdapter:
    """Owns the single active utterance and the single active capture.

    Parameters
    ----------
    synthesizer:
        Text-to-speech backend, or None when the platform has none. With
        no synthesizer, speak() is a logged no-op.
    recognizer:
        Speech-to-text backend, or None. With no recognizer,
        start_capture() raises CaptureError on first iteration.
    rate:
        Speaking rate relative to the platform default (0.9 is slightly
        slower, for clarity).
    """

    def __init__(
        self,
        synthesizer: Optional[SynthesisBackend] = None,
        recognizer: Optional[RecognitionBackend] = None,
        rate: float = 0.9,
    ) -> None:
        self.synthesizer = synthesizer
        self.recognizer = recognizer
        self.rate = rate

        self._utterance: Optional[str] = None
        self._capture = VoiceCaptureState()
        # Identifies the capture that currently owns self._capture.
        self._capture_id = 0

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    @property
    def current_utterance(self) -> Optional[str]:
        return self._utterance

    def speak(self, text: str, language: str) -> None:
        if self.synthesizer is None:
            logger.warning("[SPEECH] synthesis unavailable; not speaking %d chars", len(text))
            return

        self.cancel_playback()
        try:
            self.synthesizer.speak(text, language, self.rate)
        except PlaybackUnavailable as e:
            logger.warning("[SPEECH] %s", e)
            return
        self._utterance = text

    def cancel_playback(self) -> None:
        if self._utterance is None:
            return
        if self.synthesizer is not None:
            self.synthesizer.cancel()
        self._utterance = None

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    @property
    def capture(self) -> VoiceCaptureState:
        return VoiceCaptureState(
            active=self._capture.active,
            partial_transcript=self._capture.partial_transcript,
        )

    async def start_capture(
        self,
        language: str,
        continuous: bool = True,
    ) -> AsyncIterator[TranscriptUpdate]:
        """Yield transcript updates until the capture ends.

        In continuous mode the recognizer is restarted whenever a pass ends
        on its own, for as long as the capture is active; the stream then
        finishes with a final transcript once stop_capture() is called. In
        single-shot mode the first final result ends the stream.
        """
        if self.recognizer is None:
            raise CaptureError("speech recognition is not available on this platform")
        if self._capture.active:
            raise CaptureError("a capture is already in progress")

        self.cancel_playback()
        self._capture_id += 1
        capture_id = self._capture_id
        state = VoiceCaptureState(active=True)
        self._capture = state
        committed: List[str] = []
        logger.info("[SPEECH] capture started language=%s continuous=%s", language, continuous)

        try:
            while True:
                async for result in self.recognizer.listen(language):
                    if not state.active:
                        break
                    if result.is_final:
                        committed.append(result.text.strip())
                        state.partial_transcript = " ".join(t for t in committed if t)
                        if not continuous:
                            state.active = False
                            break
                    else:
                        state.partial_transcript = " ".join(
                            t for t in committed + [result.text.strip()] if t
                        )
                    yield TranscriptUpdate(text=state.partial_transcript, is_final=False)

                if not continuous or not state.active:
                    break
                logger.debug("[SPEECH] recognition pass ended; restarting")
                await asyncio.sleep(0)

            final_text = state.partial_transcript
            yield TranscriptUpdate(text=final_text, is_final=True)

        except CaptureError as e:
            logger.warning("[SPEECH] capture aborted: %s", e.reason)
            state.partial_transcript = ""
            raise
        finally:
            state.active = False
            if self._capture_id == capture_id:
                self._capture = VoiceCaptureState()

    def stop_capture(self) -> None:
        if not self._capture.active:
            return
        self._capture.active = False
        if self.recognizer is not None:
            self.recognizer.abort()
        logger.info("[SPEECH] capture stopped")
