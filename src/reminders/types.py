"""Immutable domain values shared by the reminder scheduling engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

NEUTRAL_WEIGHT = 3
MIN_WEIGHT = 1
MAX_WEIGHT = 5
DEFAULT_NAG_INTERVAL_MINUTES = 90


class NotificationKind(str, Enum):
    """Tag carried by every scheduled notification."""

    WISDOM = "wisdom"
    NAG = "nag"
    TEST = "test"


@dataclass(frozen=True)
class Message:
    """A stored reminder message."""

    id: str
    text: str
    created_at: datetime
    weight: int = NEUTRAL_WEIGHT
    is_nag_me: bool = False
    nag_interval_minutes: int = DEFAULT_NAG_INTERVAL_MINUTES
    last_shown: datetime | None = None

    def validate(self) -> None:
        """Raise ValueError when the message violates edit-time invariants."""
        if not self.id:
            raise ValueError("message id must be set.")
        if not self.text.strip():
            raise ValueError("message text must not be empty.")
        if not MIN_WEIGHT <= self.weight <= MAX_WEIGHT:
            raise ValueError(f"message weight must be between {MIN_WEIGHT} and {MAX_WEIGHT}.")
        if self.nag_interval_minutes < 1:
            raise ValueError("nag_interval_minutes must be >= 1.")


@dataclass(frozen=True)
class ReminderSettings:
    """User-configured constraints for wisdom and nag scheduling."""

    notifications_enabled: bool = True
    daily_frequency: int = 3
    start_hour: int = 8
    end_hour: int = 22
    min_gap_hours: int = 2

    def validate(self) -> None:
        """Raise ValueError when the settings violate edit-time invariants."""
        if not 1 <= self.daily_frequency <= 5:
            raise ValueError("daily_frequency must be between 1 and 5.")
        if not 0 <= self.start_hour <= 23:
            raise ValueError("start_hour must be between 0 and 23.")
        if not 1 <= self.end_hour <= 24:
            raise ValueError("end_hour must be between 1 and 24.")
        if self.start_hour >= self.end_hour:
            raise ValueError("start_hour must be before end_hour.")
        if self.min_gap_hours < 0:
            raise ValueError("min_gap_hours must be >= 0.")


@dataclass(frozen=True)
class ScheduledNotification:
    """A notification the engine intends the sink to fire."""

    id: str
    kind: NotificationKind
    fire_at: datetime
    message_ref: str | None
    body: str


@dataclass(frozen=True)
class PendingNotification:
    """A notification currently registered with the sink."""

    id: str
    kind: NotificationKind
    fire_at: datetime
    body: str
    message_ref: str | None = None
    channel_id: str | None = None


@dataclass(frozen=True)
class NotificationChannel:
    """Platform channel a notification is delivered on."""

    id: str
    name: str
    importance: str
    title: str


@dataclass(frozen=True)
class SchedulerState:
    """Bookkeeping written after a completed wisdom pass."""

    last_notification_time: datetime | None = None
    last_shown_message_id: str | None = None


def wisdom_notification_id(epoch_millis: int) -> str:
    """Return the sink identifier for a wisdom notification."""
    return f"wisdom-{epoch_millis}"


def nag_notification_id(message_id: str, epoch_millis: int) -> str:
    """Return the sink identifier for one nag occurrence."""
    return f"nag-{message_id}-{epoch_millis}"
