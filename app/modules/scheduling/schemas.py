"""Scheduling schemas."""

from __future__ import annotations

import datetime as dt
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import ScheduleScopeEnum

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"


class ScheduleCreateRequest(BaseModel):
    """Student booking form."""

    date: str = Field(pattern=DATE_PATTERN, description="Local calendar date, YYYY-MM-DD")
    start_time: str = Field(pattern=TIME_PATTERN, description="Local start time, HH:MM")
    duration: str | None = Field(default=None, max_length=8, description="Duration option value")
    program_id: UUID | None = None


class AdminScheduleCreateRequest(ScheduleCreateRequest):
    """Admin booking form; optionally repeats weekly."""

    student_id: UUID
    organization_id: UUID | None = None
    is_recurring: bool = False
    until: dt.date | None = Field(default=None, description="Last day of a recurring series")


class AdminScheduleUpdateRequest(BaseModel):
    """Admin edit form."""

    date: str = Field(pattern=DATE_PATTERN)
    start_time: str = Field(pattern=TIME_PATTERN)
    duration: str | None = Field(default=None, max_length=8)
    student_id: UUID | None = None
    program_id: UUID | None = None
    scope: ScheduleScopeEnum = ScheduleScopeEnum.SINGLE


class ScheduleRead(BaseModel):
    """Schedule response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    program_id: UUID | None
    student_id: UUID
    start_time: dt.datetime
    end_time: dt.datetime
    rrule: str | None
    parent_schedule_id: UUID | None
    is_exception: bool
    created_at: dt.datetime
    updated_at: dt.datetime


class ScheduleActionResponse(BaseModel):
    """Result envelope of create/cancel/update/delete actions."""

    success: bool = True
    error: str | None = None
    schedules: list[ScheduleRead] = Field(default_factory=list)
    deleted_count: int = 0


class DurationOptionRead(BaseModel):
    """Selectable duration."""

    model_config = ConfigDict(from_attributes=True)

    value: str
    label: str
    hours: int


class BookingWindowRead(BaseModel):
    """Dates a student may currently book."""

    model_config = ConfigDict(from_attributes=True)

    start: dt.date
    end: dt.date


class ScheduleOptionsRead(BaseModel):
    """Everything a booking form needs to render."""

    organization_id: UUID
    timezone: str
    max_concurrent_students: int
    booking_window: BookingWindowRead
    duration_options: list[DurationOptionRead]
    time_slots: list[str]


class SeriesOccurrenceRead(BaseModel):
    """Materialized row of a series."""

    schedule: ScheduleRead
    matches_rule: bool


class ScheduleSeriesRead(BaseModel):
    """Recurring series overview."""

    series_id: UUID
    rrule: str
    remaining_dates: list[dt.date]
    occurrences: list[SeriesOccurrenceRead]
