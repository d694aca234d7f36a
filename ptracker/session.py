"""Activity session state machine.

At most one session runs at a time. The tracker is in exactly one of three
states:

- ``Idle``: nothing running and nothing scheduled right now
- ``Scheduled``: nothing running, but a scheduled activity covers "now"
- ``Active``: a session is running

``Idle`` and ``Scheduled`` are derived from the schedule on every call and
never stored; only the running session is state.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict

from ptracker.errors import SessionAlreadyActive
from ptracker.models import ScheduledActivity

logger = logging.getLogger(__name__)


class ActiveSession(BaseModel):
    """The running session. Process-local, never persisted."""

    model_config = ConfigDict(frozen=True)

    option_id: str
    scheduled_id: str | None = None
    started_at: datetime


class FinishedSession(BaseModel):
    """A stopped session, ready to be written as an activity log."""

    model_config = ConfigDict(frozen=True)

    option_id: str
    scheduled_id: str | None = None
    started_at: datetime
    ended_at: datetime
    duration_minutes: int

    def to_row(self, user_id: str) -> dict[str, object]:
        return {
            "option_id": self.option_id,
            "scheduled_id": self.scheduled_id,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_minutes": self.duration_minutes,
            "user_id": user_id,
        }


class Idle(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["idle"] = "idle"


class Scheduled(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["scheduled"] = "scheduled"
    activity: ScheduledActivity


class Active(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["active"] = "active"
    session: ActiveSession


TrackerState = Union[Idle, Scheduled, Active]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def duration_minutes(started_at: datetime, ended_at: datetime) -> int:
    """Whole minutes between two instants, rounded down, never negative."""
    seconds = (ended_at - started_at).total_seconds()
    return max(0, int(seconds // 60))


def current_scheduled(
    scheduled: Sequence[ScheduledActivity],
    now: datetime,
) -> ScheduledActivity | None:
    """First scheduled activity whose closed interval contains ``now``.

    Overlapping intervals are allowed; the earliest one in ``scheduled``
    wins. Callers keep the list ordered by start time.
    """
    for activity in scheduled:
        if activity.contains(now):
            return activity
    return None


def format_elapsed(total_seconds: int) -> str:
    """Format seconds as HH:MM:SS."""
    total_seconds = max(0, int(total_seconds))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class SessionTracker:
    """Owns the single optional running session and enforces transitions."""

    def __init__(self) -> None:
        self._active: ActiveSession | None = None

    @property
    def active(self) -> ActiveSession | None:
        return self._active

    def state(
        self,
        scheduled: Sequence[ScheduledActivity],
        now: datetime | None = None,
    ) -> TrackerState:
        if self._active is not None:
            return Active(session=self._active)
        activity = current_scheduled(scheduled, now or utc_now())
        if activity is not None:
            return Scheduled(activity=activity)
        return Idle()

    def start(
        self,
        option_id: str,
        scheduled_id: str | None = None,
        now: datetime | None = None,
    ) -> ActiveSession:
        """Idle/Scheduled -> Active.

        Raises:
            SessionAlreadyActive: If a session is already running.
        """
        if self._active is not None:
            raise SessionAlreadyActive(self._active.option_id)
        self._active = ActiveSession(
            option_id=option_id,
            scheduled_id=scheduled_id,
            started_at=now or utc_now(),
        )
        logger.info("Started %s (scheduled: %s)", option_id, scheduled_id)
        return self._active

    def start_scheduled(
        self,
        activity: ScheduledActivity,
        option_id: str | None = None,
        now: datetime | None = None,
    ) -> ActiveSession:
        """Start from a scheduled slot.

        With ``option_id`` the user overrides the slot with a different
        activity; the session is then not tied to the slot.
        """
        if option_id is None or option_id == activity.option_id:
            return self.start(activity.option_id, activity.id, now)
        return self.start(option_id, None, now)

    def stop(self, now: datetime | None = None) -> FinishedSession | None:
        """Active -> Idle. Returns the finished session, or None if idle."""
        if self._active is None:
            return None
        ended_at = now or utc_now()
        session = self._active
        self._active = None
        finished = FinishedSession(
            option_id=session.option_id,
            scheduled_id=session.scheduled_id,
            started_at=session.started_at,
            ended_at=ended_at,
            duration_minutes=duration_minutes(session.started_at, ended_at),
        )
        logger.info("Stopped %s after %d min", finished.option_id, finished.duration_minutes)
        return finished

    def switch(
        self,
        option_id: str,
        now: datetime | None = None,
    ) -> tuple[FinishedSession | None, ActiveSession]:
        """Stop the running session (if any) and start ``option_id`` at the same instant.

        The new session is never tied to a scheduled slot.
        """
        now = now or utc_now()
        finished = self.stop(now)
        return finished, self.start(option_id, None, now)

    def clear(self) -> None:
        self._active = None

    def elapsed_seconds(self, now: datetime | None = None) -> int:
        if self._active is None:
            return 0
        return max(0, int(((now or utc_now()) - self._active.started_at).total_seconds()))
