import asyncio
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from core.speech.backends import RecognitionResult
from core.speech.speech_adapter import SpeechAdapter
from core.session.tutor_session import TutorSession
from runtime.models.session_models import LanguagePreferences


class FakeRelay:
    """Scripted stand-in for RelayClient.

    Each call pops the next scripted reply; an Exception instance is raised
    instead of returned. When `gate` is set, calls wait on it first.
    """

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls: List[dict] = []
        self.gate = None
        self.pending = 0

    async def send_turn(self, native_language, target_language, difficulty, message):
        self.calls.append(
            {
                "native_language": native_language,
                "target_language": target_language,
                "difficulty": difficulty,
                "message": message,
            }
        )
        self.pending += 1
        try:
            if self.gate is not None:
                await self.gate.wait()
        finally:
            self.pending -= 1
        reply = self.replies.pop(0) if self.replies else f"echo: {message}"
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeSynthesizer:
    def __init__(self):
        self.spoken = []
        self.cancels = 0

    def speak(self, text, language, rate):
        self.spoken.append((text, language, rate))

    def cancel(self):
        self.cancels += 1


class FakeRecognizer:
    """Replays scripted recognition passes, then blocks until abort()."""

    def __init__(self, passes=None):
        self.passes = [list(p) for p in (passes or [])]
        self.listen_calls = 0
        self.languages = []
        self.aborts = 0
        self._abort_event = None

    async def listen(self, language):
        self.listen_calls += 1
        self.languages.append(language)
        self._abort_event = asyncio.Event()
        if self.passes:
            for item in self.passes.pop(0):
                if isinstance(item, Exception):
                    raise item
                yield item
            return
        await self._abort_event.wait()

    def abort(self):
        self.aborts += 1
        if self._abort_event is not None:
            self._abort_event.set()


def partial(text):
    return RecognitionResult(text=text, is_final=False)


def final(text):
    return RecognitionResult(text=text, is_final=True)


class RecordingView:
    def __init__(self):
        self.events = []
        self.directives = []
        self.rendered = []
        self.progress = []
        self.partials = []

    def apply_visibility(self, directive):
        self.directives.append(directive)
        self.events.append(("visibility", directive.status))

    def render_turn(self, turn):
        self.rendered.append(turn)
        self.events.append(("turn", turn.speaker))

    def clear_conversation(self):
        self.events.append(("clear", None))

    def show_typing_indicator(self):
        self.events.append(("typing", True))

    def hide_typing_indicator(self):
        self.events.append(("typing", False))

    def render_progress(self, progress):
        self.progress.append(progress)

    def render_partial_transcript(self, text):
        self.partials.append(text)


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def recognizer():
    return FakeRecognizer()


@pytest.fixture
def speech(synthesizer, recognizer):
    return SpeechAdapter(synthesizer=synthesizer, recognizer=recognizer, rate=0.9)


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(relay, speech, view, clock):
    return TutorSession(
        relay=relay,
        speech=speech,
        view=view,
        preferences=LanguagePreferences("en-US", "es-ES", "beginner"),
        clock=clock,
    )
