"""
Platform speech backends used by the SpeechAdapter.

Two capabilities are modelled as small protocols:

- SynthesisBackend: start speaking a text, cancel whatever is playing.
- RecognitionBackend: run one recognition pass as an async iterator of
  RecognitionResult, abort it on request.

Concrete implementations wrap `pyttsx3` (offline text-to-speech) and
`SpeechRecognition` (microphone capture + Google Web Speech). Both
libraries live in the optional `speech` extra; when they are not
installed, or no audio device is present, the loader returns None and
the adapter treats the capability as absent.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Protocol

from exceptions.exceptions import CaptureError, PlaybackUnavailable


logger = logging.getLogger(__name__)

# pyttsx3 reports speaking rate in words per minute; this is its usual default.
BASE_WORDS_PER_MINUTE = 200

# Upper bound on a single spoken phrase picked up by the microphone.
PHRASE_TIME_LIMIT_S = 15


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    is_final: bool


class SynthesisBackend(Protocol):
    def speak(self, text: str, language: str, rate: float) -> None:
        """Start speaking `text` without blocking the caller."""
        ...

    def cancel(self) -> None:
        ...


class RecognitionBackend(Protocol):
    def listen(self, language: str) -> AsyncIterator[RecognitionResult]:
        """
        Run one recognition pass.

        The iterator ends when the platform ends the pass (silence, a final
        result, or abort()). Platform failures raise CaptureError.
        """
        ...

    def abort(self) -> None:
        ...


# ---------------------------------------------------------------------------
# pyttsx3
# ---------------------------------------------------------------------------


class Pyttsx3Synthesizer:
    """Offline text-to-speech through pyttsx3, played on a worker thread."""

    def __init__(self, pyttsx3_module: Any) -> None:
        self._pyttsx3 = pyttsx3_module
        self._engine: Any = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def speak(self, text: str, language: str, rate: float) -> None:
        try:
            engine = self._pyttsx3.init()
        except (RuntimeError, OSError) as e:
            raise PlaybackUnavailable(f"pyttsx3 could not initialise a driver: {e}") from e

        engine.setProperty("rate", int(BASE_WORDS_PER_MINUTE * rate))
        voice_id = self._voice_for(engine, language)
        if voice_id:
            engine.setProperty("voice", voice_id)

        with self._lock:
            self._engine = engine
        self._thread = threading.Thread(
            target=self._run, args=(engine, text), name="tutor-tts", daemon=True
        )
        self._thread.start()

    def cancel(self) -> None:
        with self._lock:
            engine, self._engine = self._engine, None
        if engine is not None:
            engine.stop()

    @staticmethod
    def _run(engine: Any, text: str) -> None:
        engine.say(text)
        engine.runAndWait()

    @staticmethod
    def _voice_for(engine: Any, language: str) -> Optional[str]:
        """Pick the first installed voice whose language matches the tag's primary subtag."""
        primary = language.split("-")[0].lower()
        for voice in engine.getProperty("voices") or []:
            for lang in getattr(voice, "languages", None) or []:
                if isinstance(lang, bytes):
                    lang = lang.decode("utf-8", "ignore")
                if str(lang).lstrip("\x05").lower().replace("_", "-").startswith(primary):
                    return voice.id
        return None


# ---------------------------------------------------------------------------
# SpeechRecognition
# ---------------------------------------------------------------------------


class MicrophoneRecognizer:
    """
    Microphone capture through the SpeechRecognition package.

    Each pass listens for one phrase and yields a single final result.
    There are no interim results; continuous capture is achieved by the
    adapter restarting passes.
    """

    def __init__(self, sr_module: Any) -> None:
        self._sr = sr_module
        self._recognizer = sr_module.Recognizer()
        self._recognizer.dynamic_energy_threshold = True
        self._aborted = False

    async def listen(self, language: str) -> AsyncIterator[RecognitionResult]:
        self._aborted = False
        text = await asyncio.to_thread(self._listen_once, language)
        if text and not self._aborted:
            yield RecognitionResult(text=text, is_final=True)

    def abort(self) -> None:
        # A blocking listen() cannot be interrupted; its result is dropped instead.
        self._aborted = True

    def _listen_once(self, language: str) -> str:
        sr = self._sr
        try:
            with sr.Microphone() as source:
                audio = self._recognizer.listen(
                    source, timeout=5, phrase_time_limit=PHRASE_TIME_LIMIT_S
                )
        except sr.WaitTimeoutError:
            return ""
        except OSError as e:
            raise CaptureError(f"microphone unavailable: {e}") from e

        try:
            return self._recognizer.recognize_google(audio, language=language)
        except sr.UnknownValueError:
            return ""
        except sr.RequestError as e:
            raise CaptureError(f"recognition service error: {e}") from e


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


def load_synthesizer() -> Optional[SynthesisBackend]:
    """Return a pyttsx3 synthesizer, or None when pyttsx3 is not installed."""
    try:
        import pyttsx3
    except ImportError:
        logger.info("[SPEECH] pyttsx3 not installed; speech synthesis disabled")
        return None
    return Pyttsx3Synthesizer(pyttsx3)


def load_recognizer() -> Optional[RecognitionBackend]:
    """Return a microphone recognizer, or None when SpeechRecognition is not installed."""
    try:
        import speech_recognition
    except ImportError:
        logger.info("[SPEECH] SpeechRecognition not installed; voice input disabled")
        return None
    return MicrophoneRecognizer(speech_recognition)
