"""Time-window policy for student bookings and cancellations.

Everything here is pure: callers pass ``now`` explicitly and the organization
time zone decides what "today" means. Incoming ``YYYY-MM-DD`` strings are
resolved to local calendar dates first and the time of day is applied to that
date afterwards, so a booking near midnight never slides to a neighbouring day.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from app.core.enums import SettingKeyEnum
from app.shared.exceptions import PolicyViolationException
from app.shared.utils import local_date

logger = logging.getLogger(__name__)

SESSION_MULTIPLIERS = (1, 2, 3)


@dataclass(frozen=True, slots=True)
class DurationOption:
    """Selectable booking length."""

    value: str
    label: str
    hours: int


@dataclass(frozen=True, slots=True)
class BookingWindow:
    """Inclusive range of local dates a student may book."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def parse_date_string(value: str) -> date:
    """Parse ``YYYY-MM-DD`` as a local calendar date."""
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError) as exc:
        raise PolicyViolationException(f"Invalid date: {value!r}, expected YYYY-MM-DD") from exc


def parse_time_string(value: str) -> time:
    """Parse ``HH:MM``."""
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (AttributeError, ValueError) as exc:
        raise PolicyViolationException(f"Invalid start time: {value!r}, expected HH:MM") from exc


def apply_time_to_date(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Attach a wall-clock time to an already resolved local date."""
    return datetime.combine(day, at.replace(second=0, microsecond=0), tzinfo=tz)


def calculate_end_time(start_time: datetime, duration_hours: int) -> datetime:
    """End of a slot; wall-clock addition when ``start_time`` is local."""
    return start_time + timedelta(hours=duration_hours)


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def _next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def month_bounds(year: int, month: int, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Half-open ``[first day 00:00, first day of next month 00:00)`` in ``tz``."""
    next_year, next_month = _next_month(year, month)
    return (
        datetime(year, month, 1, tzinfo=tz),
        datetime(next_year, next_month, 1, tzinfo=tz),
    )


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=tz)
    return start, datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)


@dataclass(frozen=True, slots=True)
class SchedulePolicy:
    """Booking rules of one organization."""

    timezone: ZoneInfo
    duration_unit_hours: int = 3
    interval_minutes: int = 30
    next_month_open_day: int = 25
    first_start_hour: int = 9
    last_start_hour: int = 20

    @classmethod
    def from_settings(
        cls,
        timezone_name: str,
        values: Mapping[SettingKeyEnum, Any],
        *,
        next_month_open_day: int = 25,
        first_start_hour: int = 9,
        last_start_hour: int = 20,
    ) -> "SchedulePolicy":
        """Build from stored organization settings (already merged with defaults)."""
        return cls(
            timezone=ZoneInfo(timezone_name),
            duration_unit_hours=int(values[SettingKeyEnum.SCHEDULE_DURATION_HOURS]),
            interval_minutes=int(values[SettingKeyEnum.TIME_SLOT_INTERVAL_MINUTES]),
            next_month_open_day=next_month_open_day,
            first_start_hour=first_start_hour,
            last_start_hour=last_start_hour,
        )

    def today(self, now: datetime) -> date:
        return local_date(now, self.timezone)

    def allowed_booking_range(self, now: datetime) -> BookingWindow:
        """From today through the end of this month, or next month once it opens."""
        today = self.today(now)
        month_end = last_day_of_month(today.year, today.month)
        open_day = min(self.next_month_open_day, month_end.day)
        if today.day >= open_day:
            next_year, next_month = _next_month(today.year, today.month)
            return BookingWindow(start=today, end=last_day_of_month(next_year, next_month))
        return BookingWindow(start=today, end=month_end)

    def can_create(self, day: date, now: datetime) -> bool:
        return day >= self.today(now) and self.allowed_booking_range(now).contains(day)

    def can_cancel(self, schedule_start: datetime, now: datetime) -> bool:
        """Students cancel only before the local day of the lesson."""
        return local_date(schedule_start, self.timezone) > self.today(now)

    def can_modify(self, schedule_start: datetime, now: datetime) -> bool:
        """Admins touch schedules from today onwards; earlier ones are history."""
        return local_date(schedule_start, self.timezone) >= self.today(now)

    def duration_options(self) -> list[DurationOption]:
        return [
            DurationOption(
                value=str(multiplier),
                label=f"{multiplier} session{'s' if multiplier > 1 else ''} "
                f"({multiplier * self.duration_unit_hours}h)",
                hours=multiplier * self.duration_unit_hours,
            )
            for multiplier in SESSION_MULTIPLIERS
        ]

    def resolve_duration_hours(self, value: str | None) -> int:
        """Hours for the selected option; unknown selections get one session."""
        for option in self.duration_options():
            if option.value == value:
                return option.hours
        if value is not None:
            logger.info("Unknown duration option %r, using %sh", value, self.duration_unit_hours)
        return self.duration_unit_hours

    def time_slots(self) -> list[str]:
        """Offered start times, ``HH:MM``."""
        slots: list[str] = []
        minute_of_day = self.first_start_hour * 60
        last_minute = self.last_start_hour * 60
        while minute_of_day <= last_minute:
            hours, minutes = divmod(minute_of_day, 60)
            slots.append(f"{hours:02d}:{minutes:02d}")
            minute_of_day += self.interval_minutes
        return slots

    def validate_start_time(self, at: time) -> None:
        if at.strftime("%H:%M") not in self.time_slots():
            raise PolicyViolationException(
                f"Start time {at.strftime('%H:%M')} is not an offered time slot "
                f"({self.first_start_hour:02d}:00-{self.last_start_hour:02d}:00 "
                f"every {self.interval_minutes} minutes)",
            )

    def build_interval(
        self,
        day: date,
        start_time: str,
        duration_value: str | None,
    ) -> tuple[datetime, datetime]:
        """Local ``(start, end)`` for a booking form submission."""
        at = parse_time_string(start_time)
        self.validate_start_time(at)
        start = apply_time_to_date(day, at, self.timezone)
        return start, calculate_end_time(start, self.resolve_duration_hours(duration_value))
