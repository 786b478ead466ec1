"""Snap instants out of quiet hours into the active window."""

from __future__ import annotations

from datetime import datetime, timedelta

from reminders.types import ReminderSettings


def adjust_for_quiet_hours(instant: datetime, reminder_settings: ReminderSettings) -> datetime:
    """Return the nearest permissible instant at or after ``instant``.

    Hours are read from the instant's own timezone. Instants before the
    start hour move to the start hour the same day; instants at or after the
    end hour move to the start hour of the next day. Instants already inside
    the window are returned unchanged.
    """
    hour = instant.hour
    if hour < reminder_settings.start_hour:
        return instant.replace(
            hour=reminder_settings.start_hour, minute=0, second=0, microsecond=0
        )
    if hour >= reminder_settings.end_hour:
        next_day = instant + timedelta(days=1)
        return next_day.replace(
            hour=reminder_settings.start_hour, minute=0, second=0, microsecond=0
        )
    return instant
