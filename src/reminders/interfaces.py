"""Collaborator protocols consumed by the scheduling orchestrator."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Protocol

from reminders.types import (
    Message,
    NotificationChannel,
    PendingNotification,
    ReminderSettings,
    ScheduledNotification,
    SchedulerState,
)


class MessageStoreError(Exception):
    """Raised when a message store operation fails."""

    def __init__(self, code: str, message: str, details: dict[str, object] | None = None) -> None:
        """Initialize the store error with structured metadata."""
        super().__init__(message)
        self.code = code
        self.details = details or {}


class NotificationSinkError(Exception):
    """Raised when a notification sink operation fails."""

    def __init__(self, code: str, message: str, details: dict[str, object] | None = None) -> None:
        """Initialize the sink error with structured metadata."""
        super().__init__(message)
        self.code = code
        self.details = details or {}


class MessageStore(Protocol):
    """Protocol for message and settings persistence."""

    def list_messages(self) -> Sequence[Message]:
        """Return every stored message."""
        ...

    def update_message(self, message_id: str, fields: Mapping[str, object]) -> Message | None:
        """Apply partial field updates and return the message, or None if missing."""
        ...

    def get_settings(self) -> ReminderSettings:
        """Return the current reminder settings."""
        ...

    def save_state(self, state: SchedulerState) -> None:
        """Persist scheduler bookkeeping."""
        ...


class NotificationSink(Protocol):
    """Protocol for the platform capability that fires time-triggered alerts."""

    def ensure_channel(self, channel: NotificationChannel) -> None:
        """Create or refresh a delivery channel."""
        ...

    def enumerate_pending(self) -> Sequence[PendingNotification]:
        """Return every pending notification."""
        ...

    def register(
        self,
        notification: ScheduledNotification,
        *,
        title: str,
        channel: NotificationChannel,
    ) -> None:
        """Register a notification to fire at its scheduled time."""
        ...

    def cancel_by_ids(self, ids: Iterable[str]) -> None:
        """Cancel pending notifications by identifier."""
        ...

    def cancel_all(self) -> None:
        """Cancel every pending notification."""
        ...
