"""Productivity tracker: activity options, schedule, logs and the running session.

Local lists are read caches of the store, refreshed after each mutation and
whenever the signed-in user changes.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ptracker.auth import AuthSession
from ptracker.errors import NotAuthenticated, RemoteCallFailed
from ptracker.models import ActivityLog, ActivityOption, CalendarEvent, ScheduledActivity, User
from ptracker.session import (
    ActiveSession,
    FinishedSession,
    SessionTracker,
    TrackerState,
    current_scheduled,
    utc_now,
)
from ptracker.store import TableStore, to_wire

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown"
UNKNOWN_COLOR = "#666"


class ProductivityTracker:
    """Everything the tracker view needs, backed by a table store."""

    def __init__(
        self,
        store: TableStore,
        auth: AuthSession,
        pending_path: Path | None = None,
    ) -> None:
        self.store = store
        self.auth = auth
        self.sessions = SessionTracker()

        self.options: list[ActivityOption] = []
        self.scheduled: list[ScheduledActivity] = []
        self.logs: list[ActivityLog] = []
        self.loading = False
        self.current: ScheduledActivity | None = None

        # Log rows whose write failed, each tagged with its user_id
        self.pending_path = pending_path
        self.pending_logs: list[dict[str, Any]] = self._load_pending()

        self._unsubscribe = auth.on_change(self._on_auth_change)

    def close(self) -> None:
        self._unsubscribe()

    def _on_auth_change(self, user: User | None) -> None:
        # pending_logs survive: flush_pending only writes the signed-in user's rows
        if user is None:
            self.options, self.scheduled, self.logs = [], [], []
            self.current = None
            return
        self.fetch()

    def _load_pending(self) -> list[dict[str, Any]]:
        if self.pending_path is None or not self.pending_path.exists():
            return []
        try:
            with self.pending_path.open("r") as f:
                rows = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable pending log file %s: %s", self.pending_path, e)
            return []
        if not isinstance(rows, list):
            logger.warning("Ignoring malformed pending log file %s", self.pending_path)
            return []
        if rows:
            logger.info("Loaded %d pending activity log(s)", len(rows))
        return rows

    def _save_pending(self) -> None:
        if self.pending_path is None:
            return
        if not self.pending_logs:
            self.pending_path.unlink(missing_ok=True)
            return
        self.pending_path.parent.mkdir(parents=True, exist_ok=True)
        with self.pending_path.open("w") as f:
            json.dump(self.pending_logs, f, indent=2)

    # ---- loading ----

    def fetch(self) -> bool:
        """Reload options, schedule and logs for the current user.

        Returns False if there is no user or the store failed; caches are
        left unchanged in that case.
        """
        self.loading = True
        try:
            user = self.auth.user
            if user is None:
                logger.info("No user logged in, skipping data fetch")
                return False

            self.flush_pending()

            options = self.store.select("activity_options", user_id=user.id, order="created_at")
            scheduled = self.store.select("scheduled_activities", user_id=user.id, order="start_time")
            logs = self.store.select("activity_logs", user_id=user.id, order="started_at", descending=True)

            self.options = [ActivityOption.model_validate(row) for row in options]
            self.scheduled = [ScheduledActivity.model_validate(row) for row in scheduled]
            self.logs = [ActivityLog.model_validate(row) for row in logs]
            return True
        except RemoteCallFailed:
            logger.exception("Error fetching data")
            return False
        except ValidationError:
            logger.exception("Malformed row while fetching data")
            return False
        finally:
            self.loading = False

    def flush_pending(self) -> int:
        """Write the signed-in user's queued activity logs, one attempt each.

        Rows queued for other users stay in the queue. Returns how many were
        written.
        """
        user = self.auth.user
        if user is None or not self.pending_logs:
            return 0
        written = 0
        remaining = []
        for row in self.pending_logs:
            if row.get("user_id") != user.id:
                remaining.append(row)
                continue
            try:
                stored = self.store.insert("activity_logs", row)
            except RemoteCallFailed as e:
                logger.warning("Pending activity log still not written: %s", e)
                remaining.append(row)
                continue
            self.logs.insert(0, ActivityLog.model_validate(stored))
            written += 1
        self.pending_logs = remaining
        if written:
            logger.info("Wrote %d pending activity log(s)", written)
            self._save_pending()
        return written

    def pending_count(self) -> int:
        """Queued logs belonging to the signed-in user."""
        user = self.auth.user
        if user is None:
            return 0
        return sum(1 for row in self.pending_logs if row.get("user_id") == user.id)

    # ---- lookups ----

    def option(self, option_id: str) -> ActivityOption | None:
        for option in self.options:
            if option.id == option_id:
                return option
        return None

    def calendar_events(self) -> list[CalendarEvent]:
        """Scheduled activities joined with their option for display."""
        events = []
        for activity in self.scheduled:
            option = self.option(activity.option_id)
            events.append(
                CalendarEvent(
                    id=activity.id,
                    title=option.name if option else UNKNOWN_TITLE,
                    start=activity.start_time,
                    end=activity.end_time,
                    color=option.color if option else UNKNOWN_COLOR,
                    option_id=activity.option_id,
                    scheduled_id=activity.id,
                )
            )
        return events

    def current_scheduled(self, now: datetime | None = None) -> ScheduledActivity | None:
        return current_scheduled(self.scheduled, now or utc_now())

    def refresh_current(self, now: datetime | None = None) -> ScheduledActivity | None:
        """Re-derive the scheduled activity covering ``now`` and remember it."""
        self.current = self.current_scheduled(now)
        return self.current

    def state(self, now: datetime | None = None) -> TrackerState:
        return self.sessions.state(self.scheduled, now)

    # ---- options ----

    def add_option(self, name: str, color: str) -> ActivityOption | None:
        """Create an activity option. A blank name is ignored (returns None)."""
        name = name.strip()
        if not name:
            logger.debug("Skipping activity option with empty name")
            return None
        user = self.auth.require_user()
        row = self.store.insert("activity_options", {"name": name, "color": color, "user_id": user.id})
        option = ActivityOption.model_validate(row)
        self.options.append(option)
        return option

    def delete_option(self, option_id: str) -> None:
        self.store.delete("activity_options", option_id)
        self.options = [o for o in self.options if o.id != option_id]

    # ---- schedule ----

    def schedule_activity(self, option_id: str, start_time: datetime, end_time: datetime) -> ScheduledActivity:
        """Put an activity on the calendar.

        Overlaps with existing slots are allowed and only logged.

        Raises:
            ValueError: If the slot ends before it starts.
            NotAuthenticated: If no user is signed in.
        """
        if end_time < start_time:
            raise ValueError("Scheduled activity must end after it starts")
        user = self.auth.require_user()

        overlapping = [s.id for s in self.scheduled if s.overlaps(start_time, end_time)]
        if overlapping:
            logger.warning(
                "New slot %s - %s overlaps %s; the earliest-starting slot wins lookups",
                start_time.isoformat(),
                end_time.isoformat(),
                ", ".join(overlapping),
            )

        row = self.store.insert(
            "scheduled_activities",
            {
                "option_id": option_id,
                "start_time": start_time,
                "end_time": end_time,
                "user_id": user.id,
            },
        )
        activity = ScheduledActivity.model_validate(row)
        self.scheduled.append(activity)
        self.scheduled.sort(key=lambda s: s.start_time)
        return activity

    def delete_scheduled(self, scheduled_id: str) -> None:
        self.store.delete("scheduled_activities", scheduled_id)
        self.scheduled = [s for s in self.scheduled if s.id != scheduled_id]
        if self.current is not None and self.current.id == scheduled_id:
            self.current = None

    # ---- session ----

    @property
    def active(self) -> ActiveSession | None:
        return self.sessions.active

    def start(
        self,
        option_id: str,
        scheduled_id: str | None = None,
        now: datetime | None = None,
    ) -> ActiveSession:
        return self.sessions.start(option_id, scheduled_id, now)

    def start_scheduled(self, now: datetime | None = None, option_id: str | None = None) -> ActiveSession | None:
        """Start the activity scheduled for ``now``; None if nothing is scheduled."""
        activity = self.current_scheduled(now)
        if activity is None:
            return None
        return self.sessions.start_scheduled(activity, option_id, now)

    def stop(self, now: datetime | None = None) -> ActivityLog | None:
        """Stop the running session and write its log.

        The session is cleared locally whatever happens to the write.

        Raises:
            NotAuthenticated: No user; nothing is written.
            RemoteCallFailed: The write failed; the log is queued in
                ``pending_logs`` for the next fetch().
        """
        finished = self.sessions.stop(now)
        if finished is None:
            return None
        return self._write_log(finished)

    def switch(self, option_id: str, now: datetime | None = None) -> tuple[ActivityLog | None, ActiveSession]:
        """Stop the running session and immediately start ``option_id``.

        Raises:
            NotAuthenticated: No user; the old session is dropped and no new
                one is started.
            RemoteCallFailed: The log write failed; the new session is
                running and the log is queued.
        """
        now = now or utc_now()
        finished, session = self.sessions.switch(option_id, now)
        if finished is None:
            return None, session
        try:
            log = self._write_log(finished)
        except NotAuthenticated:
            self.sessions.clear()
            raise
        return log, session

    def _write_log(self, finished: FinishedSession) -> ActivityLog:
        user = self.auth.user
        if user is None:
            logger.warning("Dropping %d min of %s: not signed in", finished.duration_minutes, finished.option_id)
            raise NotAuthenticated()

        row = {key: to_wire(value) for key, value in finished.to_row(user.id).items()}
        try:
            stored = self.store.insert("activity_logs", row)
        except RemoteCallFailed:
            logger.exception("Error saving activity log; queued for the next refresh")
            self.pending_logs.append(row)
            self._save_pending()
            raise
        log = ActivityLog.model_validate(stored)
        self.logs.insert(0, log)
        return log

    def elapsed_seconds(self, now: datetime | None = None) -> int:
        return self.sessions.elapsed_seconds(now)
