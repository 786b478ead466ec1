"""Fixed-interval nag occurrence planning."""

from __future__ import annotations

from datetime import datetime, timedelta

from config import settings
from reminders.quiet_hours import adjust_for_quiet_hours
from reminders.types import Message, ReminderSettings


def plan_nag_times(
    message: Message,
    reminder_settings: ReminderSettings,
    now: datetime,
    *,
    horizon: timedelta | None = None,
) -> list[datetime]:
    """Return nag fire times for ``message`` within the horizon after ``now``.

    Each occurrence is the previous adjusted occurrence plus the message's
    interval, pushed out of quiet hours. Non-positive intervals yield no
    occurrences.
    """
    if horizon is None:
        horizon = timedelta(hours=settings.scheduling.nag_horizon_hours)
    if message.nag_interval_minutes <= 0:
        return []
    interval = timedelta(minutes=message.nag_interval_minutes)
    horizon_end = now + horizon

    times: list[datetime] = []
    next_time = adjust_for_quiet_hours(now + interval, reminder_settings)
    while next_time < horizon_end:
        times.append(next_time)
        next_time = adjust_for_quiet_hours(next_time + interval, reminder_settings)
    return times
