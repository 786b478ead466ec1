"""Data models for Note to Self."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

# SQLAlchemy base
Base = declarative_base()

NotificationKindEnum = Enum(
    "wisdom",
    "nag",
    "test",
    name="notification_kind",
    native_enum=False,
)
ChannelImportanceEnum = Enum(
    "low",
    "default",
    "high",
    name="channel_importance",
    native_enum=False,
)


class MessageRecord(Base):
    """Stored reminder message."""

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint("weight >= 1 AND weight <= 5", name="ck_messages_weight_range"),
        CheckConstraint("nag_interval_minutes >= 1", name="ck_messages_nag_interval_positive"),
    )

    id = Column(String(64), primary_key=True)
    text = Column(Text, nullable=False)
    weight = Column(Integer, nullable=False, default=3)
    is_nag_me = Column(Boolean, nullable=False, default=False)
    nag_interval_minutes = Column(Integer, nullable=False, default=90)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    last_shown = Column(DateTime(timezone=True), nullable=True)


class ReminderSettingsRecord(Base):
    """Single-row reminder settings for the local user."""

    __tablename__ = "reminder_settings"
    __table_args__ = (
        CheckConstraint(
            "daily_frequency >= 1 AND daily_frequency <= 5",
            name="ck_reminder_settings_frequency_range",
        ),
        CheckConstraint("start_hour < end_hour", name="ck_reminder_settings_window"),
        CheckConstraint("min_gap_hours >= 0", name="ck_reminder_settings_gap"),
    )

    id = Column(Integer, primary_key=True)
    notifications_enabled = Column(Boolean, nullable=False, default=True)
    daily_frequency = Column(Integer, nullable=False, default=3)
    start_hour = Column(Integer, nullable=False, default=8)
    end_hour = Column(Integer, nullable=False, default=22)
    min_gap_hours = Column(Integer, nullable=False, default=2)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class SchedulerStateRecord(Base):
    """Single-row bookkeeping written by the wisdom pass."""

    __tablename__ = "scheduler_state"

    id = Column(Integer, primary_key=True)
    last_notification_time = Column(DateTime(timezone=True), nullable=True)
    last_shown_message_id = Column(String(64), nullable=True)


class NotificationChannelRecord(Base):
    """Delivery channel registered with the local notification sink."""

    __tablename__ = "notification_channels"

    id = Column(String(100), primary_key=True)
    name = Column(String(200), nullable=False)
    importance = Column(ChannelImportanceEnum, nullable=False, default="default")


class PendingNotificationRecord(Base):
    """Time-triggered notification awaiting platform delivery."""

    __tablename__ = "pending_notifications"

    id = Column(String(200), primary_key=True)
    kind = Column(NotificationKindEnum, nullable=False)
    fire_at = Column(DateTime(timezone=True), nullable=False)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    channel_id = Column(String(100), nullable=False)
    message_ref = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
