"""Weighted random message selection with novelty boosting."""

from __future__ import annotations

import random
from collections.abc import Sequence
from datetime import datetime, timedelta

from config import settings
from reminders.types import Message


def effective_weight(
    message: Message,
    now: datetime,
    *,
    novelty_window: timedelta | None = None,
    neutral_weight: int | None = None,
    novelty_boost: float | None = None,
) -> float:
    """Return the selection weight for a message after novelty boosting.

    Messages left at the neutral weight get a boost while they are younger
    than the novelty window. A missing weight counts as neutral.
    """
    scheduling = settings.scheduling
    if novelty_window is None:
        novelty_window = timedelta(days=scheduling.novelty_window_days)
    if neutral_weight is None:
        neutral_weight = scheduling.neutral_weight
    if novelty_boost is None:
        novelty_boost = scheduling.novelty_boost

    weight = message.weight or neutral_weight
    if weight == neutral_weight and now - message.created_at < novelty_window:
        return weight * novelty_boost
    return float(weight)


def select_message(
    candidates: Sequence[Message],
    now: datetime,
    rng: random.Random | None = None,
    **weight_options,
) -> Message | None:
    """Pick one message with probability proportional to its effective weight.

    Returns None for an empty candidate list. Each call is an independent
    draw, so repeated calls sample with replacement.
    """
    if not candidates:
        return None
    source = rng or random
    weights = [effective_weight(message, now, **weight_options) for message in candidates]
    remainder = source.random() * sum(weights)
    for message, weight in zip(candidates, weights):
        remainder -= weight
        if remainder <= 0:
            return message
    # Rounding can leave a sliver of remainder after the last candidate.
    return candidates[0]
