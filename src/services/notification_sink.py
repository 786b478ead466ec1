"""Notification sink that keeps pending notifications in the database.

A platform delivery worker reads ``pending_notifications`` and fires each
row at its ``fire_at`` time. The scheduling engine only writes and clears
rows; delivery is outside its scope.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from contextlib import closing
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import NotificationChannelRecord, PendingNotificationRecord
from reminders.interfaces import NotificationSinkError
from reminders.types import (
    NotificationChannel,
    NotificationKind,
    PendingNotification,
    ScheduledNotification,
)
from time_utils import ensure_utc, to_utc

logger = logging.getLogger(__name__)


class SqlNotificationSink:
    """Notification sink persisted through SQLAlchemy sessions."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize with a session factory."""
        self._session_factory = session_factory

    def ensure_channel(self, channel: NotificationChannel) -> None:
        """Create or refresh a delivery channel row."""
        try:
            with closing(self._session_factory()) as session:
                record = session.get(NotificationChannelRecord, channel.id)
                if record is None:
                    record = NotificationChannelRecord(id=channel.id)
                    session.add(record)
                record.name = channel.name
                record.importance = channel.importance
                session.commit()
        except SQLAlchemyError as exc:
            raise _sink_error("channel_failed", "Failed to ensure channel.", exc) from exc

    def enumerate_pending(self) -> list[PendingNotification]:
        """Return every pending notification ordered by fire time."""
        try:
            with closing(self._session_factory()) as session:
                records = (
                    session.query(PendingNotificationRecord)
                    .order_by(PendingNotificationRecord.fire_at, PendingNotificationRecord.id)
                    .all()
                )
                return [_to_pending(record) for record in records]
        except SQLAlchemyError as exc:
            raise _sink_error("enumerate_failed", "Failed to enumerate pending.", exc) from exc

    def register(
        self,
        notification: ScheduledNotification,
        *,
        title: str,
        channel: NotificationChannel,
    ) -> None:
        """Insert or replace a pending notification row."""
        try:
            with closing(self._session_factory()) as session:
                if session.get(NotificationChannelRecord, channel.id) is None:
                    raise NotificationSinkError(
                        "unknown_channel",
                        f"Channel {channel.id} has not been created.",
                        {"channel_id": channel.id},
                    )
                session.merge(
                    PendingNotificationRecord(
                        id=notification.id,
                        kind=notification.kind.value,
                        fire_at=to_utc(notification.fire_at),
                        title=title,
                        body=notification.body,
                        channel_id=channel.id,
                        message_ref=notification.message_ref,
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise _sink_error("register_failed", "Failed to register notification.", exc) from exc
        logger.debug("Registered %s for %s.", notification.id, notification.fire_at.isoformat())

    def cancel_by_ids(self, ids: Iterable[str]) -> None:
        """Delete pending rows with the given identifiers."""
        id_list = list(ids)
        if not id_list:
            return
        try:
            with closing(self._session_factory()) as session:
                session.query(PendingNotificationRecord).filter(
                    PendingNotificationRecord.id.in_(id_list)
                ).delete(synchronize_session=False)
                session.commit()
        except SQLAlchemyError as exc:
            raise _sink_error("cancel_failed", "Failed to cancel notifications.", exc) from exc
        logger.debug("Cancelled %s pending notifications.", len(id_list))

    def cancel_all(self) -> None:
        """Delete every pending row."""
        try:
            with closing(self._session_factory()) as session:
                session.query(PendingNotificationRecord).delete(synchronize_session=False)
                session.commit()
        except SQLAlchemyError as exc:
            raise _sink_error("cancel_failed", "Failed to cancel notifications.", exc) from exc

    def due(self, now: datetime) -> list[PendingNotification]:
        """Return pending notifications whose fire time has passed."""
        return [item for item in self.enumerate_pending() if item.fire_at <= now]


def _to_pending(record: PendingNotificationRecord) -> PendingNotification:
    """Convert a pending row into a domain value."""
    return PendingNotification(
        id=record.id,
        kind=NotificationKind(record.kind),
        fire_at=ensure_utc(record.fire_at),
        body=record.body,
        message_ref=record.message_ref,
        channel_id=record.channel_id,
    )


def _sink_error(code: str, message: str, exc: SQLAlchemyError) -> NotificationSinkError:
    """Log and wrap a database failure."""
    logger.error("%s (%s)", message, exc.__class__.__name__)
    return NotificationSinkError(code, message, {"error": str(exc)})
