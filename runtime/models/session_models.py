"""
Session-related models for the language tutor.

These describe:
- a Session object (status, counters, ordered turns)
- Turn entries (user / tutor / system), immutable once created
- SessionStatus enum (IDLE, ACTIVE, PAUSED)
- Control + VisibilityDirective, the show/hide contract with the view
- LanguagePreferences and SessionProgress
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from exceptions.exceptions import ValidationError


# Progress bar saturates at this many messages.
PROGRESS_FULL_AT = 100


class SessionStatus(str, Enum):
    IDLE = "IDLE"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


class Speaker(str, Enum):
    USER = "user"
    TUTOR = "tutor"
    SYSTEM = "system"


class Control(str, Enum):
    START = "start"
    STOP = "stop"
    RESET = "reset"
    SEND = "send"
    SPEAK = "speak"
    REPLAY = "replay"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Turn(BaseModel):
    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str
    sent_at: datetime = Field(default_factory=_utcnow)


class Session(BaseModel):
    status: SessionStatus = SessionStatus.IDLE
    started_at: Optional[datetime] = None
    message_count: int = Field(default=0, ge=0)
    last_tutor_reply: str = ""
    turns: List[Turn] = Field(default_factory=list)


@dataclass(frozen=True)
class VisibilityDirective:
    """Which controls the view must show and hide after a transition."""

    status: SessionStatus
    shown: FrozenSet[Control] = field(default_factory=frozenset)
    hidden: FrozenSet[Control] = field(default_factory=frozenset)


_ALL_CONTROLS = frozenset(Control)

_SHOWN_BY_STATUS = {
    SessionStatus.IDLE: frozenset({Control.START}),
    SessionStatus.ACTIVE: frozenset(
        {Control.STOP, Control.RESET, Control.SEND, Control.SPEAK, Control.REPLAY}
    ),
    SessionStatus.PAUSED: frozenset({Control.START, Control.RESET}),
}


def directive_for(status: SessionStatus) -> VisibilityDirective:
    """Return the visibility directive emitted on entering `status`."""
    shown = _SHOWN_BY_STATUS[status]
    return VisibilityDirective(status=status, shown=shown, hidden=_ALL_CONTROLS - shown)


@dataclass(frozen=True)
class LanguagePreferences:
    """
    The learner's language pair and level.

    Languages are BCP-47 tags (e.g. "en-US", "es-ES"). Construction raises
    ValidationError for an empty tag or a pair whose native and target
    languages are the same.
    """

    native_language: str = "en-US"
    target_language: str = "es-ES"
    difficulty: str = "beginner"

    def __post_init__(self) -> None:
        native = self.native_language.strip()
        target = self.target_language.strip()
        if not native or not target:
            raise ValidationError("Both native and target languages are required.")
        if native.lower() == target.lower():
            raise ValidationError(
                f"Target language must differ from native language, got {target!r} for both."
            )
        if not self.difficulty.strip():
            raise ValidationError("Difficulty is required.")


@dataclass(frozen=True)
class SessionProgress:
    message_count: int
    elapsed_seconds: int

    @property
    def percent(self) -> float:
        return min(self.message_count / PROGRESS_FULL_AT * 100, 100.0)

    @property
    def elapsed_display(self) -> str:
        minutes, seconds = divmod(self.elapsed_seconds, 60)
        return f"{minutes}:{seconds:02d}"
