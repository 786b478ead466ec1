"""Unit tests for reminder domain values."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

import pytest

from reminders.types import (
    Message,
    ReminderSettings,
    nag_notification_id,
    wisdom_notification_id,
)

CREATED = datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_message_defaults() -> None:
    """Messages default to neutral weight and a 90 minute nag interval."""
    message = Message(id="1", text="Hello", created_at=CREATED)

    assert message.weight == 3
    assert message.is_nag_me is False
    assert message.nag_interval_minutes == 90
    assert message.last_shown is None
    message.validate()


@pytest.mark.parametrize(
    "changes",
    [{"weight": 0}, {"weight": 6}, {"text": "  "}, {"nag_interval_minutes": 0}, {"id": ""}],
)
def test_message_validation_rejects_invalid_fields(changes: dict[str, object]) -> None:
    """Invalid message fields raise ValueError."""
    message = dataclasses.replace(Message(id="1", text="Hello", created_at=CREATED), **changes)

    with pytest.raises(ValueError):
        message.validate()


def test_messages_are_immutable() -> None:
    """Domain values cannot be mutated in place."""
    message = Message(id="1", text="Hello", created_at=CREATED)

    with pytest.raises(dataclasses.FrozenInstanceError):
        message.weight = 5  # type: ignore[misc]


@pytest.mark.parametrize(
    "changes",
    [
        {"daily_frequency": 0},
        {"daily_frequency": 6},
        {"start_hour": -1},
        {"end_hour": 25},
        {"start_hour": 10, "end_hour": 10},
        {"min_gap_hours": -2},
    ],
)
def test_settings_validation_rejects_invalid_fields(changes: dict[str, object]) -> None:
    """Invalid reminder settings raise ValueError."""
    with pytest.raises(ValueError):
        dataclasses.replace(ReminderSettings(), **changes).validate()


def test_settings_allow_midnight_end() -> None:
    """An end hour of 24 is a valid window edge."""
    ReminderSettings(start_hour=6, end_hour=24).validate()


def test_notification_ids_encode_kind() -> None:
    """Identifiers carry the kind prefix and discriminators."""
    assert wisdom_notification_id(1736928000000) == "wisdom-1736928000000"
    assert nag_notification_id("abc", 1736928000000) == "nag-abc-1736928000000"
