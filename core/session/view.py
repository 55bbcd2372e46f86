"""
View interface used by TutorSession.

The session never touches a concrete UI. It calls the named operations
below on whatever presentation layer was injected: the terminal view in
cli/console_view.py, a test double, or a bridge to a browser.
"""

from __future__ import annotations

from typing import Protocol

from runtime.models.session_models import SessionProgress, Turn, VisibilityDirective


class SessionView(Protocol):
    def apply_visibility(self, directive: VisibilityDirective) -> None:
        """Show and hide controls after a session transition."""
        ...

    def render_turn(self, turn: Turn) -> None:
        ...

    def clear_conversation(self) -> None:
        ...

    def show_typing_indicator(self) -> None:
        ...

    def hide_typing_indicator(self) -> None:
        ...

    def render_progress(self, progress: SessionProgress) -> None:
        ...

    def render_partial_transcript(self, text: str) -> None:
        """Mirror the in-progress voice transcript; an empty string clears it."""
        ...
