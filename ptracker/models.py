"""Row models for the store tables."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class User(BaseModel):
    """Signed-in identity."""

    id: str
    email: str = ""
    display_name: str = ""
    avatar_url: str | None = None


class CellData(BaseModel):
    """One painted cell in the sparse wire encoding."""

    row: int
    col: int
    color: str


class Design(BaseModel):
    id: str
    user_id: str
    name: str
    rows: int
    cols: int
    cell_size: int
    cells: list[CellData] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @field_validator("cells", mode="before")
    @classmethod
    def _null_cells_are_empty(cls, value):
        return [] if value is None else value


class ActivityOption(BaseModel):
    id: str
    user_id: str
    name: str
    color: str
    created_at: datetime | None = None


class ScheduledActivity(BaseModel):
    """A calendar interval earmarked for an activity option.

    The interval is closed: both ``start_time`` and ``end_time`` count as
    inside it.
    """

    id: str
    user_id: str
    option_id: str
    start_time: datetime
    end_time: datetime
    created_at: datetime | None = None

    def contains(self, moment: datetime) -> bool:
        return self.start_time <= moment <= self.end_time

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start_time <= end and start <= self.end_time


class ActivityLog(BaseModel):
    """Historical record written when a session stops."""

    id: str
    user_id: str
    option_id: str
    scheduled_id: str | None = None
    started_at: datetime
    ended_at: datetime
    duration_minutes: int
    created_at: datetime | None = None


class CalendarEvent(BaseModel):
    """A scheduled activity joined with its option for display."""

    id: str
    title: str
    start: datetime
    end: datetime
    color: str
    option_id: str
    scheduled_id: str
