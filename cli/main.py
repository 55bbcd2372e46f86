#!/usr/bin/env python3
"""
Language Tutor CLI

Two commands:

1) serve
   - Start the relay HTTP listener (POST /api/chat plus the static
     front-end) with uvicorn. Refuses to start without OPENAI_API_KEY.

2) chat
   - Run a conversation in the terminal against a running relay. Tutor
     replies are spoken when pyttsx3 is installed; /speak captures voice
     input when SpeechRecognition is installed.

Terminal commands during `chat`:

    /start  /stop  /reset  /speak  /replay  /lang <native> <target> [difficulty]  /quit

Anything else is sent to the tutor as a message.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Set

# Ensure project root is on sys.path when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from configs.settings import settings
from core.relay.relay_client import RelayClient
from core.session.languages import DIFFICULTIES
from core.session.tutor_session import TutorSession
from core.speech.backends import load_recognizer, load_synthesizer
from core.speech.speech_adapter import SpeechAdapter
from exceptions.exceptions import ConfigurationError, ValidationError
from runtime.models.session_models import Control, LanguagePreferences
from cli.console_view import ConsoleView


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


def cmd_serve(host: str, port: int, reload: bool) -> int:
    """Validate configuration, then run the relay under uvicorn."""
    try:
        settings.validate_for_relay()
    except ConfigurationError as e:
        print(f"[Tutor] {e}", file=sys.stderr)
        return 2

    import uvicorn

    print(f"[Tutor] Server is running on http://{host}:{port}")
    uvicorn.run("runtime.api.server:app", host=host, port=port, reload=reload)
    return 0


# ---------------------------------------------------------------------------
# chat
# ---------------------------------------------------------------------------


class ChatLoop:
    """Reads terminal lines and maps them onto TutorSession operations."""

    def __init__(self, session: TutorSession, view: ConsoleView) -> None:
        self.session = session
        self.view = view
        self._tasks: Set[asyncio.Task] = set()
        self._capture: Optional[asyncio.Task] = None

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _allowed(self, control: Control) -> bool:
        if self.view.is_visible(control):
            return True
        print(f"[Tutor] {control.value} is not available right now.")
        return False

    async def handle(self, line: str) -> bool:
        """Handle one input line; return False to quit."""
        line = line.strip()
        if not line:
            return True

        command, _, rest = line.partition(" ")
        if command == "/quit":
            return False
        if command == "/start":
            if self._allowed(Control.START):
                self._spawn(self.session.start())
        elif command == "/stop":
            if self._allowed(Control.STOP):
                self._stop_capture()
                self.session.stop()
        elif command == "/reset":
            if self._allowed(Control.RESET):
                self._stop_capture()
                self.session.reset()
        elif command == "/speak":
            if self._allowed(Control.SPEAK):
                self._toggle_capture()
        elif command == "/replay":
            if self._allowed(Control.REPLAY) and not self.session.replay():
                print("[Tutor] Nothing to replay yet.")
        elif command == "/lang":
            self._set_languages(rest.split())
        elif command.startswith("/"):
            print(f"[Tutor] Unknown command: {command}")
        elif self._allowed(Control.SEND):
            self._spawn(self._send(line))
        return True

    async def _send(self, text: str) -> None:
        if not await self.session.send_message(text):
            print("[Tutor] Message not sent (waiting for the tutor, or no active conversation).")

    def _toggle_capture(self) -> None:
        if self._capture is not None and not self._capture.done():
            self.session.stop_voice_input()
            return
        if self.session.in_flight:
            print("[Tutor] Wait for the tutor to reply before speaking.")
            return
        print("[Tutor] Listening... type /speak again to finish.")
        self._capture = self._spawn(self._speak())

    async def _speak(self) -> None:
        if await self.session.capture_voice(continuous=True) is None:
            print("[Tutor] Voice message not sent.")

    def _stop_capture(self) -> None:
        if self._capture is not None and not self._capture.done():
            self.session.stop_voice_input()

    def _set_languages(self, args) -> None:
        if len(args) < 2:
            print("[Tutor] Usage: /lang <native> <target> [difficulty]")
            return
        try:
            prefs = self.session.set_preferences(*args[:3])
        except ValidationError as e:
            print(f"[Tutor] {e}")
            return
        print(
            f"[Tutor] native={prefs.native_language} target={prefs.target_language} "
            f"difficulty={prefs.difficulty}"
        )

    async def run(self) -> None:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            if not await self.handle(line):
                break

        self.session.reset()
        for task in list(self._tasks):
            task.cancel()


async def _chat(prefs: LanguagePreferences, relay_url: str, timeout: float, mute: bool) -> None:
    view = ConsoleView()
    speech = SpeechAdapter(
        synthesizer=None if mute else load_synthesizer(),
        recognizer=load_recognizer(),
        rate=settings.speech_rate,
    )
    async with RelayClient(base_url=relay_url, timeout=timeout) as relay:
        session = TutorSession(relay=relay, speech=speech, view=view, preferences=prefs)
        print("[Tutor] Type /start to begin a conversation.")
        await ChatLoop(session, view).run()


def cmd_chat(native: str, target: str, difficulty: str, relay_url: str, timeout: float, mute: bool) -> int:
    try:
        prefs = LanguagePreferences(
            native_language=native,
            target_language=target,
            difficulty=difficulty,
        )
    except ValidationError as e:
        print(f"[Tutor] {e}", file=sys.stderr)
        return 2

    try:
        asyncio.run(_chat(prefs, relay_url, timeout, mute))
    except KeyboardInterrupt:
        pass
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Language Tutor CLI")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (default: TUTOR_LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve
    p_serve = subparsers.add_parser("serve", help="Run the relay HTTP server")
    p_serve.add_argument("--host", default=settings.host, help="Bind host (default: TUTOR_HOST)")
    p_serve.add_argument("--port", type=int, default=settings.port, help="Bind port (default: TUTOR_PORT)")
    p_serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    # chat
    p_chat = subparsers.add_parser("chat", help="Talk to the tutor from the terminal")
    p_chat.add_argument("--native", default="en-US", help="Native language tag (default: en-US)")
    p_chat.add_argument("--target", default="es-ES", help="Target language tag (default: es-ES)")
    p_chat.add_argument("--difficulty", default="beginner", choices=DIFFICULTIES)
    p_chat.add_argument(
        "--relay-url",
        default=settings.relay_url,
        help="Relay base URL (default: TUTOR_RELAY_URL or http://localhost:5000)",
    )
    p_chat.add_argument(
        "--timeout",
        type=float,
        default=settings.request_timeout,
        help="Relay request timeout in seconds",
    )
    p_chat.add_argument("--mute", action="store_true", help="Do not speak tutor replies")

    return parser


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        return cmd_serve(host=args.host, port=args.port, reload=args.reload)
    if args.command == "chat":
        return cmd_chat(
            native=args.native,
            target=args.target,
            difficulty=args.difficulty,
            relay_url=args.relay_url,
            timeout=args.timeout,
            mute=args.mute,
        )
    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
