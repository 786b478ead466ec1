"""Regenerates the full wisdom and nag schedules from stored state."""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from config import settings
from reminders.interfaces import (
    MessageStore,
    MessageStoreError,
    NotificationSink,
    NotificationSinkError,
)
from reminders.nag_planner import plan_nag_times
from reminders.selector import select_message
from reminders.types import (
    Message,
    NotificationChannel,
    NotificationKind,
    PendingNotification,
    ScheduledNotification,
    SchedulerState,
    nag_notification_id,
    wisdom_notification_id,
)
from reminders.window_sampler import sample_fire_times
from time_utils import local_now, to_epoch_millis, to_local

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrchestratorConfig:
    """Channels and constants used when registering notifications."""

    wisdom_channel: NotificationChannel
    nag_channel: NotificationChannel
    test_title: str
    max_sample_attempts: int
    novelty_window: timedelta
    nag_horizon: timedelta


def resolve_orchestrator_config(config: OrchestratorConfig | None) -> OrchestratorConfig:
    """Resolve orchestrator configuration with defaults from settings."""
    if config is not None:
        return config
    channels = settings.channels
    scheduling = settings.scheduling
    return OrchestratorConfig(
        wisdom_channel=NotificationChannel(
            id=channels.wisdom.id,
            name=channels.wisdom.name,
            importance=channels.wisdom.importance,
            title=channels.wisdom.title,
        ),
        nag_channel=NotificationChannel(
            id=channels.nag.id,
            name=channels.nag.name,
            importance=channels.nag.importance,
            title=channels.nag.title,
        ),
        test_title=channels.test_title,
        max_sample_attempts=int(scheduling.max_sample_attempts),
        novelty_window=timedelta(days=scheduling.novelty_window_days),
        nag_horizon=timedelta(hours=scheduling.nag_horizon_hours),
    )


@dataclass(frozen=True)
class PassFailure:
    """One collaborator failure observed during a regeneration pass."""

    step: str
    code: str
    message: str


@dataclass(frozen=True)
class PassResult:
    """Outcome of one regeneration pass."""

    kind: NotificationKind
    scheduled: tuple[ScheduledNotification, ...] = ()
    cancelled: int = 0
    skipped_slots: int = 0
    failures: tuple[PassFailure, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        """Return True when the pass completed without collaborator failures."""
        return not self.failures


class SchedulingOrchestrator:
    """Cancels and recreates scheduled notifications from current state.

    Every pass treats the existing schedule for its kind as disposable and
    replaces it wholesale. Passes are serialized by an internal lock.
    """

    def __init__(
        self,
        store: MessageStore,
        sink: NotificationSink,
        *,
        config: OrchestratorConfig | None = None,
        rng: random.Random | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize with persistence, delivery, and randomness dependencies."""
        self._store = store
        self._sink = sink
        self._config = resolve_orchestrator_config(config)
        self._rng = rng or random.Random()
        self._now_provider = now_provider or local_now
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Ensure the wisdom and nag channels exist in the sink."""
        for channel in (self._config.wisdom_channel, self._config.nag_channel):
            self._sink.ensure_channel(channel)
            logger.debug("Ensured notification channel %s.", channel.id)

    def schedule_wisdom(self) -> PassResult:
        """Regenerate wisdom notifications for the current active window."""
        with self._lock:
            return self._run_wisdom_pass()

    def schedule_nags(self) -> PassResult:
        """Regenerate nag notifications for every nag-enabled message."""
        with self._lock:
            return self._run_nag_pass()

    def reschedule_all(self) -> tuple[PassResult, PassResult]:
        """Run the wisdom pass followed by the nag pass."""
        with self._lock:
            return self._run_wisdom_pass(), self._run_nag_pass()

    def cancel_all(self) -> None:
        """Cancel every pending notification regardless of kind."""
        with self._lock:
            self._sink.cancel_all()
            logger.info("Cancelled all pending notifications.")

    def list_scheduled(self, kind: NotificationKind | None = None) -> list[PendingNotification]:
        """Return pending notifications, optionally filtered by kind, by fire time."""
        pending = self._sink.enumerate_pending()
        if kind is not None:
            pending = [item for item in pending if item.kind == kind]
        return sorted(pending, key=lambda item: item.fire_at)

    def send_test_notification(self, text: str) -> ScheduledNotification:
        """Register a notification on the wisdom channel that fires immediately.

        Any earlier test notification still pending is replaced, so at most
        one test notification waits for delivery at a time.
        """
        with self._lock:
            now = self._now_provider()
            notification = ScheduledNotification(
                id=f"test-{to_epoch_millis(now)}",
                kind=NotificationKind.TEST,
                fire_at=now,
                message_ref=None,
                body=text,
            )
            replaced = self._cancel_kind(NotificationKind.TEST)
            self._sink.register(
                notification,
                title=self._config.test_title,
                channel=self._config.wisdom_channel,
            )
        logger.info("Sent test notification %s (replaced %s).", notification.id, replaced)
        return notification

    def _run_wisdom_pass(self) -> PassResult:
        """Cancel and recreate wisdom notifications."""
        kind = NotificationKind.WISDOM
        try:
            reminder_settings = self._store.get_settings()
        except MessageStoreError as exc:
            logger.error("Wisdom pass aborted: settings unavailable (%s).", exc.code, exc_info=True)
            return _failed(kind, "read_settings", exc)

        try:
            cancelled = self._cancel_kind(kind)
        except NotificationSinkError as exc:
            logger.error("Wisdom pass aborted: cancel failed (%s).", exc.code, exc_info=True)
            return _failed(kind, "cancel", exc)

        if not reminder_settings.notifications_enabled:
            logger.info("Notifications disabled; cancelled %s wisdom notifications.", cancelled)
            return PassResult(kind=kind, cancelled=cancelled)

        try:
            messages = self._store.list_messages()
        except MessageStoreError as exc:
            logger.error("Wisdom pass aborted: messages unavailable (%s).", exc.code, exc_info=True)
            return _failed(kind, "list_messages", exc, cancelled=cancelled)

        now = to_local(self._now_provider())
        candidates = [message for message in messages if not message.is_nag_me]
        fire_times = sample_fire_times(
            reminder_settings,
            now,
            self._rng,
            max_attempts=self._config.max_sample_attempts,
        )
        skipped = reminder_settings.daily_frequency - len(fire_times)
        if skipped > 0:
            logger.warning(
                "Placed %s of %s wisdom notifications in the remaining window.",
                len(fire_times),
                reminder_settings.daily_frequency,
            )

        scheduled: list[ScheduledNotification] = []
        failures: list[PassFailure] = []
        last_message: Message | None = None
        for fire_at in fire_times:
            message = select_message(
                candidates,
                now,
                self._rng,
                novelty_window=self._config.novelty_window,
            )
            if message is None:
                continue
            notification = ScheduledNotification(
                id=wisdom_notification_id(to_epoch_millis(fire_at)),
                kind=kind,
                fire_at=fire_at,
                message_ref=message.id,
                body=message.text,
            )
            try:
                self._sink.register(
                    notification,
                    title=self._config.wisdom_channel.title,
                    channel=self._config.wisdom_channel,
                )
            except NotificationSinkError as exc:
                logger.error("Failed to register %s (%s).", notification.id, exc.code)
                failures.append(PassFailure(step="register", code=exc.code, message=str(exc)))
                continue
            scheduled.append(notification)
            last_message = message
            self._record_last_shown(message, fire_at)

        if not candidates:
            logger.info("No wisdom messages available; nothing scheduled.")

        try:
            self._store.save_state(
                SchedulerState(
                    last_notification_time=self._now_provider(),
                    last_shown_message_id=last_message.id if last_message else None,
                )
            )
        except MessageStoreError as exc:
            logger.warning("Failed to save scheduler state (%s).", exc.code)
            failures.append(PassFailure(step="save_state", code=exc.code, message=str(exc)))

        logger.info(
            "Wisdom pass scheduled %s notifications (cancelled %s).",
            len(scheduled),
            cancelled,
        )
        return PassResult(
            kind=kind,
            scheduled=tuple(scheduled),
            cancelled=cancelled,
            skipped_slots=max(skipped, 0),
            failures=tuple(failures),
        )

    def _run_nag_pass(self) -> PassResult:
        """Cancel and recreate nag notifications."""
        kind = NotificationKind.NAG
        try:
            messages = self._store.list_messages()
            reminder_settings = self._store.get_settings()
        except MessageStoreError as exc:
            logger.error("Nag pass aborted: store unavailable (%s).", exc.code, exc_info=True)
            return _failed(kind, "read_store", exc)

        try:
            cancelled = self._cancel_kind(kind)
        except NotificationSinkError as exc:
            logger.error("Nag pass aborted: cancel failed (%s).", exc.code, exc_info=True)
            return _failed(kind, "cancel", exc)

        now = to_local(self._now_provider())
        scheduled: list[ScheduledNotification] = []
        failures: list[PassFailure] = []
        for message in messages:
            if not message.is_nag_me:
                continue
            for fire_at in plan_nag_times(
                message,
                reminder_settings,
                now,
                horizon=self._config.nag_horizon,
            ):
                notification = ScheduledNotification(
                    id=nag_notification_id(message.id, to_epoch_millis(fire_at)),
                    kind=kind,
                    fire_at=fire_at,
                    message_ref=message.id,
                    body=message.text,
                )
                try:
                    self._sink.register(
                        notification,
                        title=self._config.nag_channel.title,
                        channel=self._config.nag_channel,
                    )
                except NotificationSinkError as exc:
                    logger.error("Failed to register %s (%s).", notification.id, exc.code)
                    failures.append(PassFailure(step="register", code=exc.code, message=str(exc)))
                    continue
                scheduled.append(notification)

        logger.info(
            "Nag pass scheduled %s notifications (cancelled %s).",
            len(scheduled),
            cancelled,
        )
        return PassResult(
            kind=kind,
            scheduled=tuple(scheduled),
            cancelled=cancelled,
            failures=tuple(failures),
        )

    def _cancel_kind(self, kind: NotificationKind) -> int:
        """Cancel every pending notification of ``kind`` and return the count."""
        ids = [item.id for item in self._sink.enumerate_pending() if item.kind == kind]
        if ids:
            self._sink.cancel_by_ids(ids)
        return len(ids)

    def _record_last_shown(self, message: Message, fire_at: datetime) -> None:
        """Best-effort write of the message's last shown time."""
        try:
            updated = self._store.update_message(message.id, {"last_shown": fire_at})
        except MessageStoreError as exc:
            logger.warning("Failed to record last_shown for %s (%s).", message.id, exc.code)
            return
        if updated is None:
            logger.warning("Message %s disappeared before last_shown was recorded.", message.id)


def _failed(
    kind: NotificationKind,
    step: str,
    exc: MessageStoreError | NotificationSinkError,
    *,
    cancelled: int = 0,
) -> PassResult:
    """Build a pass result for an aborted pass."""
    return PassResult(
        kind=kind,
        cancelled=cancelled,
        failures=(PassFailure(step=step, code=exc.code, message=str(exc)),),
    )

