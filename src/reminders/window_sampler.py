"""Random fire-time sampling inside the daily active-hours window."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta

from config import settings
from reminders.types import ReminderSettings

logger = logging.getLogger(__name__)


def active_window(reminder_settings: ReminderSettings, now: datetime) -> tuple[datetime, datetime]:
    """Return the active window that sampling should fill.

    The window is today's ``[start_hour, end_hour]`` in the timezone of
    ``now``. Once ``now`` is past the end, both edges move to the next day.
    """
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start = day_start + timedelta(hours=reminder_settings.start_hour)
    end = day_start + timedelta(hours=reminder_settings.end_hour)
    if now > end:
        start += timedelta(days=1)
        end += timedelta(days=1)
    return start, end


def sample_fire_times(
    reminder_settings: ReminderSettings,
    now: datetime,
    rng: random.Random | None = None,
    *,
    max_attempts: int | None = None,
) -> list[datetime]:
    """Draw up to ``daily_frequency`` fire times inside the active window.

    Each slot gets up to ``max_attempts`` uniform draws. A draw is accepted
    when it lies after ``now`` and at least ``min_gap_hours`` from every
    accepted time. Slots that exhaust their attempts are skipped, so the
    result may be shorter than requested. Results are sorted ascending.
    """
    if max_attempts is None:
        max_attempts = settings.scheduling.max_sample_attempts
    source = rng or random
    start, end = active_window(reminder_settings, now)
    window_seconds = (end - start).total_seconds()
    if window_seconds <= 0:
        return []
    min_gap = timedelta(hours=reminder_settings.min_gap_hours)

    accepted: list[datetime] = []
    for _ in range(reminder_settings.daily_frequency):
        for _ in range(max_attempts):
            candidate = start + timedelta(seconds=source.random() * window_seconds)
            if candidate <= now:
                continue
            if any(abs(candidate - existing) < min_gap for existing in accepted):
                continue
            accepted.append(candidate)
            break

    skipped = reminder_settings.daily_frequency - len(accepted)
    if skipped > 0:
        logger.debug(
            "Skipped %s of %s wisdom slots between %s and %s.",
            skipped,
            reminder_settings.daily_frequency,
            start.isoformat(),
            end.isoformat(),
        )
    return sorted(accepted)
