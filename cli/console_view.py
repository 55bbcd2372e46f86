"""Terminal presentation layer for TutorSession."""

from __future__ import annotations

import sys
from typing import Set, TextIO

from runtime.models.session_models import (
    Control,
    SessionProgress,
    Speaker,
    Turn,
    VisibilityDirective,
)


# Terminal command bound to each control.
CONTROL_COMMANDS = {
    Control.START: "/start",
    Control.STOP: "/stop",
    Control.RESET: "/reset",
    Control.SEND: "<text>",
    Control.SPEAK: "/speak",
    Control.REPLAY: "/replay",
}

_LABELS = {
    Speaker.USER: "You",
    Speaker.TUTOR: "Tutor",
    Speaker.SYSTEM: "System",
}


class ConsoleView:
    """Prints turns and control hints; tracks which controls are visible."""

    def __init__(self, out: TextIO = sys.stdout) -> None:
        self.out = out
        self.visible: Set[Control] = {Control.START}
        self._partial = ""

    def _print(self, line: str) -> None:
        print(line, file=self.out, flush=True)

    def is_visible(self, control: Control) -> bool:
        return control in self.visible

    def apply_visibility(self, directive: VisibilityDirective) -> None:
        self.visible = (self.visible | set(directive.shown)) - set(directive.hidden)
        commands = [CONTROL_COMMANDS[c] for c in Control if c in self.visible]
        self._print(f"[{directive.status.value.lower()}] available: {'  '.join(commands)}  /quit")

    def render_turn(self, turn: Turn) -> None:
        stamp = turn.sent_at.astimezone().strftime("%H:%M:%S")
        self._print(f"[{stamp}] {_LABELS[turn.speaker]}: {turn.text}")

    def clear_conversation(self) -> None:
        self._print("-" * 60)

    def show_typing_indicator(self) -> None:
        self._print("Tutor is typing...")

    def hide_typing_indicator(self) -> None:
        pass

    def render_progress(self, progress: SessionProgress) -> None:
        self._print(
            f"{progress.message_count} messages | Session time: {progress.elapsed_display} "
            f"| progress {progress.percent:.0f}%"
        )

    def render_partial_transcript(self, text: str) -> None:
        if text and text != self._partial:
            self._print(f"(hearing) {text}")
        self._partial = text
