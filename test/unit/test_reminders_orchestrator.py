"""Unit tests for the scheduling orchestrator."""

from __future__ import annotations

import random
from zoneinfo import ZoneInfo

from config import settings
from helpers.reminder_fakes import (
    InMemoryMessageStore,
    RecordingNotificationSink,
    ScriptedRandom,
    at,
    make_message,
)
from reminders.orchestrator import SchedulingOrchestrator
from reminders.types import (
    NotificationKind,
    ReminderSettings,
    ScheduledNotification,
)
from time_utils import to_epoch_millis

ENABLED = ReminderSettings(
    notifications_enabled=True,
    daily_frequency=3,
    start_hour=8,
    end_hour=22,
    min_gap_hours=2,
)


def _orchestrator(
    store: InMemoryMessageStore,
    sink: RecordingNotificationSink,
    *,
    now=None,
    rng=None,
) -> SchedulingOrchestrator:
    """Build an orchestrator with a fixed clock and seeded randomness."""
    fixed_now = now or at(7)
    orchestrator = SchedulingOrchestrator(
        store,
        sink,
        rng=rng or random.Random(42),
        now_provider=lambda: fixed_now,
    )
    orchestrator.initialize()
    return orchestrator


def _seed_pending(sink: RecordingNotificationSink, kind: NotificationKind, notification_id: str):
    """Register a pre-existing notification of the given kind."""
    channel = next(iter(sink.channels.values()))
    sink.register(
        ScheduledNotification(
            id=notification_id,
            kind=kind,
            fire_at=at(12),
            message_ref=None,
            body="stale",
        ),
        title="stale",
        channel=channel,
    )


def test_initialize_creates_wisdom_and_nag_channels() -> None:
    """Both delivery channels exist after initialization."""
    sink = RecordingNotificationSink()
    _orchestrator(InMemoryMessageStore(), sink)

    assert set(sink.channels) == {"notetoself-wisdom", "notetoself-nag"}
    assert sink.channels["notetoself-nag"].importance == "high"


def test_disabled_notifications_cancel_wisdom_and_register_nothing() -> None:
    """Disabling notifications clears wisdom entries and schedules none."""
    store = InMemoryMessageStore(
        [make_message("a")],
        ReminderSettings(notifications_enabled=False),
    )
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)
    _seed_pending(sink, NotificationKind.WISDOM, "wisdom-1")
    _seed_pending(sink, NotificationKind.WISDOM, "wisdom-2")
    _seed_pending(sink, NotificationKind.NAG, "nag-x-1")
    registered_before = len(sink.registered)

    result = orchestrator.schedule_wisdom()

    assert result.ok
    assert result.cancelled == 2
    assert result.scheduled == ()
    assert len(sink.registered) == registered_before
    assert [item.id for item in sink.enumerate_pending()] == ["nag-x-1"]
    assert store.states == []


def test_wisdom_pass_registers_selected_messages() -> None:
    """Each sampled slot gets a wisdom notification for a non-nag message."""
    regular = make_message("regular", text="Breathe.")
    nagger = make_message("nagger", is_nag_me=True)
    store = InMemoryMessageStore([regular, nagger], ENABLED)
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)

    result = orchestrator.schedule_wisdom()

    assert result.ok
    assert 1 <= len(result.scheduled) <= 3
    for notification, title, channel_id in sink.registered:
        assert notification.kind == NotificationKind.WISDOM
        assert notification.id == f"wisdom-{to_epoch_millis(notification.fire_at)}"
        assert notification.message_ref == "regular"
        assert notification.body == "Breathe."
        assert title == "💡 Note to Self"
        assert channel_id == "notetoself-wisdom"
        assert at(8) <= notification.fire_at <= at(22)


def test_wisdom_pass_records_last_shown_and_state() -> None:
    """Selected messages get last_shown and the pass saves scheduler state."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)

    result = orchestrator.schedule_wisdom()

    assert [update[0] for update in store.updates] == ["a"] * len(result.scheduled)
    assert store.messages["a"].last_shown == result.scheduled[-1].fire_at
    assert store.states[-1].last_notification_time == at(7)
    assert store.states[-1].last_shown_message_id == "a"


def test_wisdom_pass_replaces_previous_schedule() -> None:
    """A second pass cancels every entry from the first."""
    store = InMemoryMessageStore([make_message("a"), make_message("b")], ENABLED)
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)

    first = orchestrator.schedule_wisdom()
    second = orchestrator.schedule_wisdom()

    assert second.cancelled == len(first.scheduled)
    pending = orchestrator.list_scheduled(NotificationKind.WISDOM)
    assert len(pending) == len(second.scheduled) <= ENABLED.daily_frequency
    assert {item.id for item in pending} == {item.id for item in second.scheduled}


def test_repeated_wisdom_passes_keep_same_cardinality() -> None:
    """Identical inputs and draws yield the same number of notifications."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    sink = RecordingNotificationSink()
    draws = [0.1, 0.0, 0.5, 0.0, 0.9, 0.0]
    orchestrator = _orchestrator(store, sink, rng=ScriptedRandom(draws))

    first = orchestrator.schedule_wisdom()
    rerun = _orchestrator(store, sink, rng=ScriptedRandom(draws))
    second = rerun.schedule_wisdom()

    assert len(first.scheduled) == len(second.scheduled) == 3
    assert second.cancelled == 3
    assert len(rerun.list_scheduled(NotificationKind.WISDOM)) == 3


def test_wisdom_pass_without_regular_messages_schedules_nothing() -> None:
    """Only nag messages means no wisdom notifications."""
    store = InMemoryMessageStore([make_message("n", is_nag_me=True)], ENABLED)
    sink = RecordingNotificationSink()

    result = _orchestrator(store, sink).schedule_wisdom()

    assert result.ok
    assert result.scheduled == ()


def test_wisdom_pass_reports_skipped_slots() -> None:
    """A saturated window is reported rather than raised."""
    store = InMemoryMessageStore(
        [make_message("a")],
        ReminderSettings(daily_frequency=5, start_hour=8, end_hour=22, min_gap_hours=10),
    )
    sink = RecordingNotificationSink()

    result = _orchestrator(store, sink).schedule_wisdom()

    assert result.ok
    assert result.skipped_slots >= 3
    assert len(result.scheduled) + result.skipped_slots == 5


def test_register_failure_continues_and_reports() -> None:
    """One rejected registration does not stop the remaining slots."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    sink = RecordingNotificationSink()
    draws = [0.1, 0.5, 0.9]
    orchestrator = _orchestrator(store, sink, rng=ScriptedRandom(draws))
    rejected = f"wisdom-{to_epoch_millis(at(15))}"
    sink.fail_register_ids.add(rejected)

    result = orchestrator.schedule_wisdom()

    assert not result.ok
    assert [failure.step for failure in result.failures] == ["register"]
    assert rejected not in {item.id for item in result.scheduled}
    assert len(result.scheduled) == 2


def test_store_list_failure_aborts_wisdom_pass() -> None:
    """A message read failure surfaces as a failed pass."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    store.fail_list = True
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)
    _seed_pending(sink, NotificationKind.WISDOM, "wisdom-1")

    result = orchestrator.schedule_wisdom()

    assert not result.ok
    assert result.failures[0].step == "list_messages"
    assert result.cancelled == 1
    assert result.scheduled == ()


def test_settings_failure_leaves_schedule_untouched() -> None:
    """Nothing is cancelled when settings cannot be read."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    store.fail_settings = True
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)
    _seed_pending(sink, NotificationKind.WISDOM, "wisdom-1")

    result = orchestrator.schedule_wisdom()

    assert not result.ok
    assert result.failures[0].code == "settings_failed"
    assert sink.cancelled == []


def test_cancel_failure_aborts_pass() -> None:
    """A failed cancellation stops the pass before registering."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)
    _seed_pending(sink, NotificationKind.WISDOM, "wisdom-1")
    sink.fail_cancel = True
    registered_before = len(sink.registered)

    result = orchestrator.schedule_wisdom()

    assert not result.ok
    assert result.failures[0].step == "cancel"
    assert len(sink.registered) == registered_before


def test_last_shown_failure_does_not_abort_scheduling(caplog) -> None:
    """Failing to record last_shown is logged and scheduling continues."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    store.fail_update = True
    sink = RecordingNotificationSink()

    result = _orchestrator(store, sink).schedule_wisdom()

    assert result.ok
    assert len(result.scheduled) == len(store.updates)
    assert result.scheduled
    assert any(record.levelname == "WARNING" for record in caplog.records)


def test_nag_pass_schedules_each_nag_message() -> None:
    """Every nag message gets its own occurrence sequence."""
    nagger = make_message("pills", text="Take pills", is_nag_me=True, nag_interval_minutes=90)
    store = InMemoryMessageStore([nagger, make_message("regular")], ENABLED)
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink, now=at(9))

    result = orchestrator.schedule_nags()

    assert result.ok
    fire_times = [item.fire_at for item in result.scheduled]
    assert fire_times[:3] == [at(10, 30), at(12), at(13, 30)]
    assert fire_times[-1] == at(8, day=16)
    for notification, title, channel_id in sink.registered:
        assert notification.kind == NotificationKind.NAG
        assert notification.id == f"nag-pills-{to_epoch_millis(notification.fire_at)}"
        assert notification.body == "Take pills"
        assert title == "⏰ Reminder"
        assert channel_id == "notetoself-nag"


def test_nag_pass_clears_stale_nags_without_touching_wisdom() -> None:
    """Nags for messages no longer flagged are removed."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)
    _seed_pending(sink, NotificationKind.NAG, "nag-old-1")
    _seed_pending(sink, NotificationKind.WISDOM, "wisdom-1")

    result = orchestrator.schedule_nags()

    assert result.cancelled == 1
    assert result.scheduled == ()
    assert [item.id for item in sink.enumerate_pending()] == ["wisdom-1"]


def test_nag_pass_ignores_notifications_enabled_flag() -> None:
    """Nags are scheduled regardless of the wisdom toggle."""
    store = InMemoryMessageStore(
        [make_message("n", is_nag_me=True, nag_interval_minutes=120)],
        ReminderSettings(notifications_enabled=False),
    )
    sink = RecordingNotificationSink()

    result = _orchestrator(store, sink, now=at(9)).schedule_nags()

    assert result.scheduled


def test_reschedule_all_runs_both_passes() -> None:
    """The combined reschedule returns wisdom then nag results."""
    store = InMemoryMessageStore(
        [make_message("a"), make_message("n", is_nag_me=True)],
        ENABLED,
    )
    sink = RecordingNotificationSink()

    wisdom, nag = _orchestrator(store, sink).reschedule_all()

    assert wisdom.kind == NotificationKind.WISDOM
    assert nag.kind == NotificationKind.NAG
    assert wisdom.scheduled and nag.scheduled


def test_test_notification_survives_regeneration() -> None:
    """Immediate test notifications are not cancelled by either pass."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)

    notification = orchestrator.send_test_notification("Hello")
    orchestrator.reschedule_all()

    assert notification.kind == NotificationKind.TEST
    assert notification.fire_at == at(7)
    assert orchestrator.list_scheduled(NotificationKind.TEST)[0].id == notification.id
    assert sink.registered[0][1] == "💡 Note to Self (Test)"


def test_test_notification_replaces_previous_one() -> None:
    """Sending again leaves only the newest test notification pending."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    sink = RecordingNotificationSink()
    ticks = iter([at(7), at(7, 5)])
    orchestrator = SchedulingOrchestrator(store, sink, now_provider=lambda: next(ticks))
    orchestrator.initialize()

    first = orchestrator.send_test_notification("Hello")
    second = orchestrator.send_test_notification("Hello again")

    pending = orchestrator.list_scheduled(NotificationKind.TEST)
    assert first.id != second.id
    assert [item.id for item in pending] == [second.id]
    assert sink.cancelled == [[first.id]]


def test_default_clock_uses_local_timezone(monkeypatch) -> None:
    """Without an injected clock, times are taken in the configured zone."""
    monkeypatch.setattr(settings.user, "timezone", "America/New_York", raising=False)
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    orchestrator = SchedulingOrchestrator(store, RecordingNotificationSink())
    orchestrator.initialize()

    notification = orchestrator.send_test_notification("Hello")

    assert notification.fire_at.tzinfo == ZoneInfo("America/New_York")


def test_list_scheduled_sorts_by_fire_time() -> None:
    """Pending notifications come back in fire order."""
    store = InMemoryMessageStore([make_message("a")], ENABLED)
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)
    orchestrator.schedule_wisdom()

    pending = orchestrator.list_scheduled()

    assert [item.fire_at for item in pending] == sorted(item.fire_at for item in pending)


def test_cancel_all_clears_every_kind() -> None:
    """Cancelling everything empties the sink."""
    store = InMemoryMessageStore(
        [make_message("a"), make_message("n", is_nag_me=True)],
        ENABLED,
    )
    sink = RecordingNotificationSink()
    orchestrator = _orchestrator(store, sink)
    orchestrator.reschedule_all()

    orchestrator.cancel_all()

    assert sink.cancel_all_calls == 1
    assert orchestrator.list_scheduled() == []
