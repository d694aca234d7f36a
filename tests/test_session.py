"""Tests for the session state machine."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from ptracker.errors import SessionAlreadyActive
from ptracker.models import ScheduledActivity
from ptracker.session import (
    Active,
    Idle,
    Scheduled,
    SessionTracker,
    current_scheduled,
    duration_minutes,
    format_elapsed,
)

T0 = datetime(2025, 1, 27, 9, 0, tzinfo=timezone.utc)


def make_slot(slot_id: str, start: datetime, end: datetime, option_id: str = "opt-a") -> ScheduledActivity:
    return ScheduledActivity(id=slot_id, user_id="u1", option_id=option_id, start_time=start, end_time=end)


class TestDuration:
    """Tests for whole-minute durations."""

    def test_rounds_down(self):
        assert duration_minutes(T0, T0 + timedelta(seconds=125)) == 2

    def test_under_a_minute(self):
        assert duration_minutes(T0, T0 + timedelta(seconds=59)) == 0

    def test_never_negative(self):
        assert duration_minutes(T0, T0 - timedelta(minutes=5)) == 0


class TestCurrentScheduled:
    """Tests for finding the slot covering an instant."""

    def test_inside_and_outside(self):
        slot = make_slot("s1", T0, T0 + timedelta(hours=1))
        assert current_scheduled([slot], T0 + timedelta(minutes=30)) == slot
        assert current_scheduled([slot], T0 - timedelta(minutes=1)) is None
        assert current_scheduled([slot], T0 + timedelta(minutes=61)) is None

    def test_bounds_are_inclusive(self):
        slot = make_slot("s1", T0, T0 + timedelta(hours=1))
        assert current_scheduled([slot], T0) == slot
        assert current_scheduled([slot], T0 + timedelta(hours=1)) == slot

    def test_first_match_wins_on_overlap(self):
        early = make_slot("early", T0, T0 + timedelta(hours=2))
        late = make_slot("late", T0 + timedelta(hours=1), T0 + timedelta(hours=3))
        assert current_scheduled([early, late], T0 + timedelta(minutes=90)) == early

    def test_empty(self):
        assert current_scheduled([], T0) is None


class TestFormatElapsed:
    """Tests for the timer display."""

    def test_format(self):
        assert format_elapsed(0) == "00:00:00"
        assert format_elapsed(3725) == "01:02:05"

    def test_negative_clamped(self):
        assert format_elapsed(-5) == "00:00:00"


class TestSessionTracker:
    """Tests for state transitions."""

    def test_idle_without_schedule(self):
        assert isinstance(SessionTracker().state([], T0), Idle)

    def test_scheduled_state(self):
        slot = make_slot("s1", T0, T0 + timedelta(hours=1))
        state = SessionTracker().state([slot], T0 + timedelta(minutes=5))
        assert isinstance(state, Scheduled)
        assert state.activity == slot

    def test_active_wins_over_schedule(self):
        slot = make_slot("s1", T0, T0 + timedelta(hours=1))
        tracker = SessionTracker()
        tracker.start("opt-b", now=T0)
        state = tracker.state([slot], T0 + timedelta(minutes=5))
        assert isinstance(state, Active)
        assert state.session.option_id == "opt-b"

    def test_start_stop(self):
        tracker = SessionTracker()
        tracker.start("opt-a", now=T0)

        finished = tracker.stop(now=T0 + timedelta(seconds=125))

        assert finished is not None
        assert finished.option_id == "opt-a"
        assert finished.scheduled_id is None
        assert finished.started_at == T0
        assert finished.duration_minutes == 2
        assert tracker.active is None

    def test_start_while_active_raises(self):
        tracker = SessionTracker()
        tracker.start("opt-a", now=T0)
        with pytest.raises(SessionAlreadyActive) as exc_info:
            tracker.start("opt-b", now=T0)
        assert exc_info.value.option_id == "opt-a"
        assert tracker.active.option_id == "opt-a"

    def test_stop_when_idle(self):
        assert SessionTracker().stop(now=T0) is None

    def test_start_scheduled_links_slot(self):
        slot = make_slot("s1", T0, T0 + timedelta(hours=1))
        session = SessionTracker().start_scheduled(slot, now=T0)
        assert session.option_id == "opt-a"
        assert session.scheduled_id == "s1"

    def test_start_scheduled_override_unlinks_slot(self):
        slot = make_slot("s1", T0, T0 + timedelta(hours=1))
        session = SessionTracker().start_scheduled(slot, option_id="opt-b", now=T0)
        assert session.option_id == "opt-b"
        assert session.scheduled_id is None

    def test_start_scheduled_same_option_keeps_slot(self):
        slot = make_slot("s1", T0, T0 + timedelta(hours=1))
        session = SessionTracker().start_scheduled(slot, option_id="opt-a", now=T0)
        assert session.scheduled_id == "s1"

    def test_switch(self):
        slot = make_slot("s1", T0, T0 + timedelta(hours=1))
        tracker = SessionTracker()
        tracker.start_scheduled(slot, now=T0)
        switch_at = T0 + timedelta(minutes=10)

        finished, session = tracker.switch("opt-b", now=switch_at)

        assert finished.option_id == "opt-a"
        assert finished.scheduled_id == "s1"
        assert finished.ended_at == switch_at
        assert finished.duration_minutes == 10
        assert session.option_id == "opt-b"
        assert session.scheduled_id is None
        assert session.started_at == switch_at

    def test_switch_from_idle_just_starts(self):
        finished, session = SessionTracker().switch("opt-b", now=T0)
        assert finished is None
        assert session.option_id == "opt-b"

    def test_elapsed(self):
        tracker = SessionTracker()
        assert tracker.elapsed_seconds(T0) == 0
        tracker.start("opt-a", now=T0)
        assert tracker.elapsed_seconds(T0 + timedelta(seconds=42)) == 42

    def test_to_row(self):
        tracker = SessionTracker()
        tracker.start("opt-a", now=T0)
        row = tracker.stop(now=T0 + timedelta(minutes=3)).to_row("u1")
        assert row["user_id"] == "u1"
        assert row["duration_minutes"] == 3
        assert row["scheduled_id"] is None

    def test_sessions_are_frozen(self):
        session = SessionTracker().start("opt-a", now=T0)
        with pytest.raises(ValidationError):
            session.option_id = "other"
