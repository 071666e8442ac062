from __future__ import annotations

from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from app.core.enums import SettingKeyEnum
from app.modules.scheduling.policy import (
    SchedulePolicy,
    apply_time_to_date,
    day_bounds,
    month_bounds,
    parse_date_string,
    parse_time_string,
)
from app.shared.exceptions import PolicyViolationException

SEOUL = ZoneInfo("Asia/Seoul")


def _policy(**overrides) -> SchedulePolicy:
    return SchedulePolicy(timezone=SEOUL, **overrides)


def _kst(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=SEOUL)


def test_booking_window_covers_rest_of_current_month_before_open_day() -> None:
    window = _policy().allowed_booking_range(_kst(2026, 10, 16))

    assert window.start == date(2026, 10, 16)
    assert window.end == date(2026, 10, 31)


def test_booking_window_extends_to_next_month_from_open_day() -> None:
    window = _policy().allowed_booking_range(_kst(2026, 10, 25))

    assert window.start == date(2026, 10, 25)
    assert window.end == date(2026, 11, 30)


def test_booking_window_rolls_over_to_january() -> None:
    window = _policy().allowed_booking_range(_kst(2026, 12, 28))

    assert window.end == date(2027, 1, 31)


def test_booking_window_uses_organization_local_day() -> None:
    # 2026-10-24 16:30 UTC is already 2026-10-25 01:30 in Seoul.
    now = datetime(2026, 10, 24, 16, 30, tzinfo=UTC)

    window = _policy().allowed_booking_range(now)

    assert window.start == date(2026, 10, 25)
    assert window.end == date(2026, 11, 30)


def test_open_day_is_capped_to_short_months() -> None:
    window = _policy(next_month_open_day=31).allowed_booking_range(_kst(2027, 2, 28))

    assert window.end == date(2027, 3, 31)


def test_can_create_rejects_past_and_out_of_window_dates() -> None:
    policy = _policy()
    now = _kst(2026, 10, 16)

    assert policy.can_create(date(2026, 10, 16), now)
    assert policy.can_create(date(2026, 10, 31), now)
    assert not policy.can_create(date(2026, 10, 15), now)
    assert not policy.can_create(date(2026, 11, 2), now)


def test_same_day_cancellation_is_rejected() -> None:
    policy = _policy()
    now = _kst(2026, 10, 16, 8)

    assert not policy.can_cancel(_kst(2026, 10, 16, 18), now)
    assert not policy.can_cancel(_kst(2026, 10, 15, 18), now)
    assert policy.can_cancel(_kst(2026, 10, 17, 9), now)


def test_admin_can_modify_today_but_not_yesterday() -> None:
    policy = _policy()
    now = _kst(2026, 10, 16, 21)

    assert policy.can_modify(_kst(2026, 10, 16, 9), now)
    assert not policy.can_modify(_kst(2026, 10, 15, 9), now)


def test_duration_options_follow_organization_unit() -> None:
    options = _policy(duration_unit_hours=2).duration_options()

    assert [(item.value, item.hours) for item in options] == [("1", 2), ("2", 4), ("3", 6)]
    assert options[0].label == "1 session (2h)"
    assert options[2].label == "3 sessions (6h)"


@pytest.mark.parametrize("value", [None, "", "4", "abc"])
def test_unknown_duration_falls_back_to_single_session(value: str | None) -> None:
    assert _policy(duration_unit_hours=3).resolve_duration_hours(value) == 3


def test_time_slots_span_studio_hours() -> None:
    slots = _policy(interval_minutes=30).time_slots()

    assert slots[0] == "09:00"
    assert slots[1] == "09:30"
    assert slots[-1] == "20:00"
    assert len(slots) == 23


def test_start_time_must_be_an_offered_slot() -> None:
    policy = _policy(interval_minutes=60)

    policy.validate_start_time(time(10, 0))
    with pytest.raises(PolicyViolationException):
        policy.validate_start_time(time(10, 30))
    with pytest.raises(PolicyViolationException):
        policy.validate_start_time(time(21, 0))


def test_build_interval_keeps_local_date_near_midnight() -> None:
    policy = _policy(duration_unit_hours=3)

    start, end = policy.build_interval(parse_date_string("2026-10-20"), "09:00", "2")

    assert start == datetime(2026, 10, 20, 9, 0, tzinfo=SEOUL)
    assert start.astimezone(UTC).date() == date(2026, 10, 20)
    assert end == datetime(2026, 10, 20, 15, 0, tzinfo=SEOUL)


def test_apply_time_to_date_uses_given_zone() -> None:
    value = apply_time_to_date(date(2026, 10, 20), time(0, 30), SEOUL)

    assert value.astimezone(UTC) == datetime(2026, 10, 19, 15, 30, tzinfo=UTC)


@pytest.mark.parametrize("value", ["2026-13-01", "20261020", "tomorrow", ""])
def test_parse_date_string_rejects_invalid_input(value: str) -> None:
    with pytest.raises(PolicyViolationException):
        parse_date_string(value)


def test_parse_time_string_rejects_invalid_input() -> None:
    assert parse_time_string("18:30") == time(18, 30)
    with pytest.raises(PolicyViolationException):
        parse_time_string("25:00")


def test_month_and_day_bounds_are_half_open_local_ranges() -> None:
    month_start, month_end = month_bounds(2026, 12, SEOUL)
    day_start, day_end = day_bounds(date(2026, 10, 20), SEOUL)

    assert month_start == datetime(2026, 12, 1, tzinfo=SEOUL)
    assert month_end == datetime(2027, 1, 1, tzinfo=SEOUL)
    assert (day_end - day_start).total_seconds() == 24 * 3600


def test_from_settings_reads_stored_values() -> None:
    policy = SchedulePolicy.from_settings(
        "Asia/Seoul",
        {
            SettingKeyEnum.MAX_CONCURRENT_STUDENTS: 5,
            SettingKeyEnum.SCHEDULE_DURATION_HOURS: "2",
            SettingKeyEnum.TIME_SLOT_INTERVAL_MINUTES: 60,
            SettingKeyEnum.NOTIFICATIONS_ENABLED: False,
        },
        next_month_open_day=20,
    )

    assert policy.duration_unit_hours == 2
    assert policy.interval_minutes == 60
    assert policy.next_month_open_day == 20
    assert policy.timezone.key == "Asia/Seoul"
