import asyncio
import random

import pytest

from conftest import FakeRecognizer, final, partial
from core.session.tutor_session import ERROR_REPLY, PAUSED_NOTICE, TutorSession
from core.speech.speech_adapter import SpeechAdapter
from exceptions.exceptions import CaptureError, UpstreamError, ValidationError
from runtime.models.session_models import Control, SessionStatus, Speaker


GREETING = "¡Hola! Soy tu tutor de español."


async def _wait_for(predicate):
    for _ in range(1000):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def test_new_session_is_idle(session):
    assert session.status == SessionStatus.IDLE
    assert session.turns == []
    assert session.message_count == 0
    assert session.started_at is None


def test_start_appends_and_speaks_greeting(session, relay, synthesizer, view, clock):
    relay.replies = [GREETING]

    asyncio.run(session.start())

    assert session.status == SessionStatus.ACTIVE
    assert session.started_at == clock.now
    assert relay.calls[0]["message"] == "Hello! I am ready to help you learn Spanish"
    assert relay.calls[0]["native_language"] == "en-US"
    assert relay.calls[0]["target_language"] == "es-ES"
    assert [(t.speaker, t.text) for t in session.turns] == [(Speaker.TUTOR, GREETING)]
    assert session.message_count == 1
    assert synthesizer.spoken == [(GREETING, "es-ES", 0.9)]
    assert view.directives[-1].status == SessionStatus.ACTIVE


def test_round_trip_adds_two_messages(session, relay, synthesizer):
    relay.replies = [GREETING, "¡Hola! ¿Cómo estás?"]

    async def scenario():
        await session.start()
        baseline = session.message_count
        accepted = await session.send_message("Hola")
        return baseline, accepted

    baseline, accepted = asyncio.run(scenario())

    assert accepted is True
    assert [(t.speaker, t.text) for t in session.turns] == [
        (Speaker.TUTOR, GREETING),
        (Speaker.USER, "Hola"),
        (Speaker.TUTOR, "¡Hola! ¿Cómo estás?"),
    ]
    assert session.message_count == baseline + 2
    assert session.last_tutor_reply == "¡Hola! ¿Cómo estás?"
    assert synthesizer.spoken[-1][0] == "¡Hola! ¿Cómo estás?"
    assert relay.calls[-1]["message"] == "Hola"


def test_message_is_stripped_before_sending(session, relay):
    async def scenario():
        await session.start()
        await session.send_message("  Buenos días  ")

    asyncio.run(scenario())

    assert relay.calls[-1]["message"] == "Buenos días"
    assert session.turns[1].text == "Buenos días"


def test_upstream_failure_appends_system_turn(session, relay, synthesizer):
    relay.replies = [GREETING, UpstreamError("Internal Server Error", status=500)]

    async def scenario():
        await session.start()
        before = session.message_count
        await session.send_message("Hola")
        return before

    before = asyncio.run(scenario())

    assert session.status == SessionStatus.ACTIVE
    assert session.message_count == before
    last = session.turns[-1]
    assert last.speaker == Speaker.SYSTEM
    assert ERROR_REPLY in last.text
    assert "Internal Server Error" in last.text
    assert len(synthesizer.spoken) == 1
    assert session.in_flight is False


def test_greeting_failure_keeps_session_active(session, relay):
    relay.replies = [UpstreamError("connection refused")]

    asyncio.run(session.start())

    assert session.status == SessionStatus.ACTIVE
    assert session.message_count == 0
    assert session.turns[-1].speaker == Speaker.SYSTEM


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_message_is_ignored(session, relay, text):
    async def scenario():
        await session.start()
        return await session.send_message(text)

    accepted = asyncio.run(scenario())

    assert accepted is False
    assert len(relay.calls) == 1
    assert len(session.turns) == 1


def test_message_while_idle_is_noop(session, relay):
    accepted = asyncio.run(session.send_message("Hola"))

    assert accepted is False
    assert session.turns == []
    assert session.message_count == 0
    assert relay.calls == []


def test_message_while_paused_is_noop(session, relay):
    async def scenario():
        await session.start()
        session.stop()
        turns = session.turns
        count = session.message_count
        accepted = await session.send_message("Hola")
        return turns, count, accepted

    turns, count, accepted = asyncio.run(scenario())

    assert accepted is False
    assert session.turns == turns
    assert session.message_count == count
    assert len(relay.calls) == 1


def test_stop_while_speaking_cancels_playback(session, relay, synthesizer, view):
    relay.replies = [GREETING]

    async def scenario():
        await session.start()
        assert session.speech.current_utterance == GREETING
        session.stop()

    asyncio.run(scenario())

    assert synthesizer.cancels == 1
    assert session.speech.current_utterance is None
    assert session.status == SessionStatus.PAUSED
    directive = view.directives[-1]
    assert directive.status == SessionStatus.PAUSED
    assert {Control.SEND, Control.SPEAK, Control.REPLAY, Control.STOP} <= directive.hidden
    assert directive.shown == {Control.START, Control.RESET}


def test_stop_keeps_history_and_adds_notice(session, relay):
    relay.replies = [GREETING]

    async def scenario():
        await session.start()
        session.stop()

    asyncio.run(scenario())

    assert [t.text for t in session.turns] == [GREETING, PAUSED_NOTICE]
    assert session.message_count == 1


def test_stop_when_not_active_is_noop(session, view):
    session.stop()

    assert session.status == SessionStatus.IDLE
    assert view.directives == []


def test_reset_returns_to_idle_from_every_state(session, relay, view):
    async def scenario():
        session.reset()
        assert session.status == SessionStatus.IDLE

        await session.start()
        session.reset()
        assert session.status == SessionStatus.IDLE
        assert session.turns == []

        await session.start()
        session.stop()
        session.reset()

    asyncio.run(scenario())

    assert session.status == SessionStatus.IDLE
    assert session.turns == []
    assert session.message_count == 0
    assert session.last_tutor_reply == ""
    assert session.started_at is None
    directive = view.directives[-1]
    assert directive.shown == {Control.START}
    assert Control.START not in directive.hidden


def test_reply_after_reset_is_discarded(session, relay, synthesizer):
    relay.replies = [GREETING, "late reply"]

    async def scenario():
        await session.start()
        relay.gate = asyncio.Event()
        task = asyncio.create_task(session.send_message("Hola"))
        await _wait_for(lambda: relay.pending == 1)
        session.reset()
        relay.gate.set()
        await task

    asyncio.run(scenario())

    assert session.status == SessionStatus.IDLE
    assert session.turns == []
    assert session.message_count == 0
    assert [s[0] for s in synthesizer.spoken] == [GREETING]


def test_reply_after_stop_is_discarded(session, relay, synthesizer):
    relay.replies = [GREETING, "late reply"]

    async def scenario():
        await session.start()
        relay.gate = asyncio.Event()
        task = asyncio.create_task(session.send_message("Hola"))
        await _wait_for(lambda: relay.pending == 1)
        session.stop()
        relay.gate.set()
        await task

    asyncio.run(scenario())

    assert session.status == SessionStatus.PAUSED
    assert "late reply" not in [t.text for t in session.turns]
    assert session.message_count == 1
    assert session.in_flight is False


def test_relay_error_after_reset_is_discarded(session, relay, view):
    relay.replies = [GREETING, UpstreamError("boom", status=500)]

    async def scenario():
        await session.start()
        relay.gate = asyncio.Event()
        task = asyncio.create_task(session.send_message("Hola"))
        await _wait_for(lambda: relay.pending == 1)
        session.reset()
        relay.gate.set()
        await task

    asyncio.run(scenario())

    assert session.status == SessionStatus.IDLE
    assert session.turns == []
    assert Speaker.SYSTEM not in [t.speaker for t in view.rendered]
    assert session.in_flight is False


def test_reply_from_previous_session_is_not_added_to_new_one(session, relay):
    relay.replies = [GREETING, "late reply", "second greeting"]

    async def scenario():
        await session.start()
        relay.gate = asyncio.Event()
        task = asyncio.create_task(session.send_message("Hola"))
        await _wait_for(lambda: relay.pending == 1)
        session.stop()
        relay.gate.set()
        await task
        relay.gate = None
        await session.start()

    asyncio.run(scenario())

    assert [t.text for t in session.turns] == ["second greeting"]
    assert session.message_count == 1


def test_second_message_rejected_while_reply_pending(session, relay):
    relay.replies = [GREETING, "first reply"]

    async def scenario():
        await session.start()
        relay.gate = asyncio.Event()
        task = asyncio.create_task(session.send_message("uno"))
        await _wait_for(lambda: relay.pending == 1)
        rejected = await session.send_message("dos")
        relay.gate.set()
        await task
        return rejected

    rejected = asyncio.run(scenario())

    assert rejected is False
    assert [c["message"] for c in relay.calls][1:] == ["uno"]
    assert [t.text for t in session.turns] == [GREETING, "uno", "first reply"]
    assert session.message_count == 3


def test_start_while_active_is_noop(session, relay):
    relay.replies = [GREETING]

    async def scenario():
        await session.start()
        await session.start()

    asyncio.run(scenario())

    assert len(relay.calls) == 1
    assert len(session.turns) == 1


def test_start_after_pause_begins_fresh_conversation(session, relay):
    relay.replies = [GREETING, "reply", "again"]

    async def scenario():
        await session.start()
        await session.send_message("Hola")
        session.stop()
        await session.start()

    asyncio.run(scenario())

    assert session.status == SessionStatus.ACTIVE
    assert [t.text for t in session.turns] == ["again"]
    assert session.message_count == 1


def test_status_stays_within_defined_states(relay, speech, view, clock):
    session = TutorSession(relay=relay, speech=speech, view=view, clock=clock)
    rng = random.Random(1234)

    async def scenario():
        for _ in range(200):
            op = rng.choice(["start", "stop", "reset"])
            if op == "start":
                await session.start()
            elif op == "stop":
                session.stop()
            else:
                session.reset()
            assert session.status in {SessionStatus.IDLE, SessionStatus.ACTIVE, SessionStatus.PAUSED}
            if session.status == SessionStatus.IDLE:
                assert session.turns == []

    asyncio.run(scenario())


def test_every_transition_emits_directive(session, view):
    async def scenario():
        await session.start()
        session.stop()
        session.reset()

    asyncio.run(scenario())

    assert [d.status for d in view.directives] == [
        SessionStatus.ACTIVE,
        SessionStatus.PAUSED,
        SessionStatus.IDLE,
    ]
    active = view.directives[0]
    assert active.shown == {Control.STOP, Control.RESET, Control.SEND, Control.SPEAK, Control.REPLAY}
    assert active.hidden == {Control.START}


def test_typing_indicator_wraps_request(session, relay, view):
    relay.replies = [GREETING]

    asyncio.run(session.start())

    typing = [e for e in view.events if e[0] == "typing"]
    assert typing == [("typing", True), ("typing", False)]


def test_replay_speaks_last_reply(session, relay, synthesizer):
    relay.replies = [GREETING, "Muy bien"]

    async def scenario():
        await session.start()
        await session.send_message("Estoy bien")
        return session.replay()

    assert asyncio.run(scenario()) is True
    assert synthesizer.spoken[-1] == ("Muy bien", "es-ES", 0.9)
    assert synthesizer.spoken[-2] == ("Muy bien", "es-ES", 0.9)


def test_replay_when_idle_does_nothing(session, synthesizer):
    assert session.replay() is False
    assert synthesizer.spoken == []


def test_progress_reports_count_and_elapsed_time(session, relay, clock):
    relay.replies = [GREETING]

    asyncio.run(session.start())
    clock.advance(75)

    progress = session.progress
    assert progress.message_count == 1
    assert progress.elapsed_seconds == 75
    assert progress.elapsed_display == "1:15"
    assert progress.percent == pytest.approx(1.0)


def test_set_preferences_rejects_same_language_pair(session):
    with pytest.raises(ValidationError):
        session.set_preferences(native_language="es-ES", target_language="es-ES")

    assert session.preferences.target_language == "es-ES"
    assert session.preferences.native_language == "en-US"


@pytest.mark.parametrize(
    "changes",
    [
        {"native_language": "en-US", "target_language": ""},
        {"native_language": ""},
        {"difficulty": ""},
    ],
)
def test_set_preferences_rejects_empty_values(session, changes):
    with pytest.raises(ValidationError):
        session.set_preferences(**changes)

    assert session.preferences.native_language == "en-US"
    assert session.preferences.target_language == "es-ES"
    assert session.preferences.difficulty == "beginner"


def test_set_preferences_used_for_next_turn(session, relay):
    session.set_preferences(target_language="fr-FR", difficulty="advanced")

    asyncio.run(session.start())

    assert relay.calls[0]["target_language"] == "fr-FR"
    assert relay.calls[0]["difficulty"] == "advanced"
    assert relay.calls[0]["message"].endswith("French")


def test_voice_capture_sends_final_transcript(relay, synthesizer, view, clock):
    recognizer = FakeRecognizer([[partial("hola"), final("hola amigo")]])
    speech = SpeechAdapter(synthesizer=synthesizer, recognizer=recognizer)
    session = TutorSession(relay=relay, speech=speech, view=view, clock=clock)
    relay.replies = [GREETING, "¡Hola!"]

    async def scenario():
        await session.start()
        return await session.capture_voice(continuous=False)

    transcript = asyncio.run(scenario())

    assert transcript == "hola amigo"
    assert recognizer.languages == ["es-ES"]
    assert "hola" in view.partials
    assert view.partials[-1] == ""
    assert [t.text for t in session.turns] == [GREETING, "hola amigo", "¡Hola!"]
    assert session.message_count == 3


def test_voice_capture_refused_while_reply_pending(relay, synthesizer, view, clock):
    recognizer = FakeRecognizer([[final("hola amigo")]])
    speech = SpeechAdapter(synthesizer=synthesizer, recognizer=recognizer)
    session = TutorSession(relay=relay, speech=speech, view=view, clock=clock)
    relay.replies = [GREETING, "Muy bien"]

    async def scenario():
        await session.start()
        relay.gate = asyncio.Event()
        pending = asyncio.create_task(session.send_message("uno"))
        await _wait_for(lambda: relay.pending == 1)
        transcript = await session.capture_voice(continuous=False)
        relay.gate.set()
        await pending
        return transcript

    transcript = asyncio.run(scenario())

    assert transcript is None
    assert recognizer.listen_calls == 0
    assert [t.text for t in session.turns] == [GREETING, "uno", "Muy bien"]


def test_voice_transcript_not_sent_when_reply_became_pending(relay, synthesizer, view, clock):
    recognizer = FakeRecognizer([[final("hola amigo")]])
    speech = SpeechAdapter(synthesizer=synthesizer, recognizer=recognizer)
    session = TutorSession(relay=relay, speech=speech, view=view, clock=clock)
    relay.replies = [GREETING, "Muy bien"]

    async def scenario():
        await session.start()
        capture = asyncio.create_task(session.capture_voice(continuous=True))
        await _wait_for(lambda: recognizer.listen_calls == 2)
        relay.gate = asyncio.Event()
        pending = asyncio.create_task(session.send_message("uno"))
        await _wait_for(lambda: relay.pending == 1)
        session.stop_voice_input()
        transcript = await capture
        relay.gate.set()
        await pending
        return transcript

    transcript = asyncio.run(scenario())

    assert transcript is None
    assert "hola amigo" not in [t.text for t in session.turns]
    assert [t.text for t in session.turns] == [GREETING, "uno", "Muy bien"]
    assert len(relay.calls) == 2


def test_voice_capture_error_leaves_session_unaffected(relay, synthesizer, view, clock):
    recognizer = FakeRecognizer([[partial("hol"), CaptureError("network")]])
    speech = SpeechAdapter(synthesizer=synthesizer, recognizer=recognizer)
    session = TutorSession(relay=relay, speech=speech, view=view, clock=clock)
    relay.replies = [GREETING]

    async def scenario():
        await session.start()
        return await session.capture_voice()

    transcript = asyncio.run(scenario())

    assert transcript is None
    assert session.status == SessionStatus.ACTIVE
    assert [t.text for t in session.turns] == [GREETING]
    assert view.partials[-1] == ""
    assert speech.capture.active is False


def test_stop_cancels_voice_capture(relay, synthesizer, view, clock):
    recognizer = FakeRecognizer()
    speech = SpeechAdapter(synthesizer=synthesizer, recognizer=recognizer)
    session = TutorSession(relay=relay, speech=speech, view=view, clock=clock)
    relay.replies = [GREETING]

    async def scenario():
        await session.start()
        task = asyncio.create_task(session.capture_voice())
        await _wait_for(lambda: recognizer.listen_calls == 1)
        session.stop()
        return await task

    transcript = asyncio.run(scenario())

    assert transcript is None
    assert recognizer.aborts == 1
    assert recognizer.listen_calls == 1
    assert session.status == SessionStatus.PAUSED


def test_voice_capture_ignored_when_not_active(session, recognizer):
    assert asyncio.run(session.capture_voice()) is None
    assert recognizer.listen_calls == 0
