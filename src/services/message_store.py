"""SQLAlchemy-backed message, settings, and scheduler state storage."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from contextlib import closing
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from models import MessageRecord, ReminderSettingsRecord, SchedulerStateRecord
from reminders.interfaces import MessageStoreError
from reminders.types import Message, ReminderSettings, SchedulerState
from time_utils import ensure_utc, to_utc

logger = logging.getLogger(__name__)

_SETTINGS_ROW_ID = 1
_STATE_ROW_ID = 1
_UPDATABLE_FIELDS = frozenset(
    {"text", "weight", "is_nag_me", "nag_interval_minutes", "last_shown"}
)


def default_reminder_settings() -> ReminderSettings:
    """Return reminder settings built from configured defaults."""
    defaults = settings.reminders
    return ReminderSettings(
        notifications_enabled=defaults.notifications_enabled,
        daily_frequency=defaults.daily_frequency,
        start_hour=defaults.start_hour,
        end_hour=defaults.end_hour,
        min_gap_hours=defaults.min_gap_hours,
    )


class SqlMessageStore:
    """Message store persisted through SQLAlchemy sessions."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        now_provider: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        """Initialize with a session factory and optional clock and id sources."""
        self._session_factory = session_factory
        self._now_provider = now_provider or (lambda: datetime.now(timezone.utc))
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    def list_messages(self) -> list[Message]:
        """Return every stored message ordered by creation time."""
        try:
            with closing(self._session_factory()) as session:
                records = (
                    session.query(MessageRecord)
                    .order_by(MessageRecord.created_at, MessageRecord.id)
                    .all()
                )
                return [_to_message(record) for record in records]
        except SQLAlchemyError as exc:
            raise _store_error("list_failed", "Failed to list messages.", exc) from exc

    def get_message(self, message_id: str) -> Message | None:
        """Return one message by id, or None."""
        try:
            with closing(self._session_factory()) as session:
                record = session.get(MessageRecord, message_id)
                return _to_message(record) if record is not None else None
        except SQLAlchemyError as exc:
            raise _store_error("get_failed", "Failed to load message.", exc) from exc

    def add_message(
        self,
        text: str,
        *,
        weight: int | None = None,
        is_nag_me: bool = False,
        nag_interval_minutes: int | None = None,
    ) -> Message:
        """Create a message with defaults for any omitted field."""
        message = Message(
            id=self._id_factory(),
            text=text,
            created_at=self._now_provider(),
            weight=weight if weight is not None else settings.scheduling.neutral_weight,
            is_nag_me=is_nag_me,
            nag_interval_minutes=(
                nag_interval_minutes
                if nag_interval_minutes is not None
                else settings.scheduling.default_nag_interval_minutes
            ),
        )
        message.validate()
        try:
            with closing(self._session_factory()) as session:
                session.add(
                    MessageRecord(
                        id=message.id,
                        text=message.text,
                        weight=message.weight,
                        is_nag_me=message.is_nag_me,
                        nag_interval_minutes=message.nag_interval_minutes,
                        created_at=to_utc(message.created_at),
                        last_shown=None,
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise _store_error("add_failed", "Failed to add message.", exc) from exc
        logger.info("Added message %s (nag=%s).", message.id, message.is_nag_me)
        return message

    def update_message(self, message_id: str, fields: Mapping[str, object]) -> Message | None:
        """Apply partial updates and return the updated message, or None if missing."""
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise MessageStoreError(
                "invalid_field",
                "Unsupported message fields.",
                {"fields": sorted(unknown)},
            )
        try:
            with closing(self._session_factory()) as session:
                record = session.get(MessageRecord, message_id)
                if record is None:
                    return None
                current = _to_message(record)
                candidate = Message(
                    id=current.id,
                    text=str(fields.get("text", current.text)),
                    created_at=current.created_at,
                    weight=int(fields.get("weight", current.weight)),
                    is_nag_me=bool(fields.get("is_nag_me", current.is_nag_me)),
                    nag_interval_minutes=int(
                        fields.get("nag_interval_minutes", current.nag_interval_minutes)
                    ),
                    last_shown=fields.get("last_shown", current.last_shown),
                )
                candidate.validate()
                for key in fields:
                    setattr(record, key, _storable(getattr(candidate, key)))
                session.commit()
                return candidate
        except SQLAlchemyError as exc:
            raise _store_error("update_failed", "Failed to update message.", exc) from exc

    def delete_message(self, message_id: str) -> bool:
        """Delete a message and return whether it existed."""
        try:
            with closing(self._session_factory()) as session:
                record = session.get(MessageRecord, message_id)
                if record is None:
                    return False
                session.delete(record)
                session.commit()
        except SQLAlchemyError as exc:
            raise _store_error("delete_failed", "Failed to delete message.", exc) from exc
        logger.info("Deleted message %s.", message_id)
        return True

    def get_settings(self) -> ReminderSettings:
        """Return stored settings, or configured defaults when none are stored."""
        try:
            with closing(self._session_factory()) as session:
                record = session.get(ReminderSettingsRecord, _SETTINGS_ROW_ID)
                if record is None:
                    return default_reminder_settings()
                return ReminderSettings(
                    notifications_enabled=bool(record.notifications_enabled),
                    daily_frequency=int(record.daily_frequency),
                    start_hour=int(record.start_hour),
                    end_hour=int(record.end_hour),
                    min_gap_hours=int(record.min_gap_hours),
                )
        except SQLAlchemyError as exc:
            raise _store_error("settings_failed", "Failed to load settings.", exc) from exc

    def save_settings(self, reminder_settings: ReminderSettings) -> None:
        """Validate and persist reminder settings."""
        reminder_settings.validate()
        try:
            with closing(self._session_factory()) as session:
                record = session.get(ReminderSettingsRecord, _SETTINGS_ROW_ID)
                if record is None:
                    record = ReminderSettingsRecord(id=_SETTINGS_ROW_ID)
                    session.add(record)
                record.notifications_enabled = reminder_settings.notifications_enabled
                record.daily_frequency = reminder_settings.daily_frequency
                record.start_hour = reminder_settings.start_hour
                record.end_hour = reminder_settings.end_hour
                record.min_gap_hours = reminder_settings.min_gap_hours
                session.commit()
        except SQLAlchemyError as exc:
            raise _store_error("settings_failed", "Failed to save settings.", exc) from exc

    def get_state(self) -> SchedulerState:
        """Return scheduler bookkeeping, empty when never written."""
        try:
            with closing(self._session_factory()) as session:
                record = session.get(SchedulerStateRecord, _STATE_ROW_ID)
                if record is None:
                    return SchedulerState()
                return SchedulerState(
                    last_notification_time=ensure_utc(record.last_notification_time),
                    last_shown_message_id=record.last_shown_message_id,
                )
        except SQLAlchemyError as exc:
            raise _store_error("state_failed", "Failed to load scheduler state.", exc) from exc

    def save_state(self, state: SchedulerState) -> None:
        """Persist scheduler bookkeeping."""
        try:
            with closing(self._session_factory()) as session:
                record = session.get(SchedulerStateRecord, _STATE_ROW_ID)
                if record is None:
                    record = SchedulerStateRecord(id=_STATE_ROW_ID)
                    session.add(record)
                record.last_notification_time = _storable(state.last_notification_time)
                record.last_shown_message_id = state.last_shown_message_id
                session.commit()
        except SQLAlchemyError as exc:
            raise _store_error("state_failed", "Failed to save scheduler state.", exc) from exc


def _storable(value: object) -> object:
    """Normalize datetimes to UTC before they reach a timezone-less column."""
    if isinstance(value, datetime):
        return to_utc(value)
    return value


def _to_message(record: MessageRecord) -> Message:
    """Convert a message row into a domain value."""
    return Message(
        id=record.id,
        text=record.text,
        created_at=ensure_utc(record.created_at),
        weight=int(record.weight),
        is_nag_me=bool(record.is_nag_me),
        nag_interval_minutes=int(record.nag_interval_minutes),
        last_shown=ensure_utc(record.last_shown),
    )


def _store_error(code: str, message: str, exc: SQLAlchemyError) -> MessageStoreError:
    """Log and wrap a database failure."""
    logger.error("%s (%s)", message, exc.__class__.__name__)
    return MessageStoreError(code, message, {"error": str(exc)})
