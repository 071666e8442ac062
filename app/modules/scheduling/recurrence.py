"""Weekly recurrence rules for repeating schedules.

Only the subset of RFC 5545 that schedule series use is supported:
``FREQ=WEEKLY`` with optional ``INTERVAL`` and a mandatory bound (``UNTIL``
or ``COUNT``). Rules are stored in the two-line text form::

    DTSTART;TZID=Asia/Seoul:20261020T100000
    RRULE:FREQ=WEEKLY;UNTIL=20261231T145959Z

Occurrences step in local wall-clock time of ``dtstart``, so a 10:00 lesson
stays at 10:00 across DST changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MAX_OCCURRENCES = 1000

_BASIC_FORMAT = "%Y%m%dT%H%M%S"
_DATE_FORMAT = "%Y%m%d"
_UTC_KEYS = {"UTC", "Etc/UTC", "Etc/Universal", "Universal", "Zulu", "Etc/Zulu"}


class RecurrenceRuleError(ValueError):
    """Raised for malformed or unsupported recurrence rules."""


@dataclass(frozen=True, slots=True)
class WeeklyRule:
    """Weekly rule bounded by ``until`` (inclusive) and/or ``count``."""

    dtstart: datetime
    until: datetime | None = None
    interval: int = 1
    count: int | None = None

    def __post_init__(self) -> None:
        if self.interval < 1:
            raise RecurrenceRuleError("INTERVAL must be a positive integer")
        if self.count is not None and self.count < 1:
            raise RecurrenceRuleError("COUNT must be a positive integer")
        if self.until is None and self.count is None:
            raise RecurrenceRuleError("Recurrence must be bounded by UNTIL or COUNT")
        # The text form has whole-second resolution.
        object.__setattr__(self, "dtstart", self.dtstart.replace(microsecond=0))
        if self.until is not None:
            object.__setattr__(self, "until", _align(self.until, self.dtstart).replace(microsecond=0))


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() is not None


def _align(value: datetime, reference: datetime) -> datetime:
    """Make ``value`` comparable with ``reference`` (floating vs. absolute)."""
    if _is_aware(reference) and not _is_aware(value):
        return value.replace(tzinfo=timezone.utc)
    if not _is_aware(reference) and _is_aware(value):
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _is_utc(value: datetime) -> bool:
    tz = value.tzinfo
    if tz is timezone.utc:
        return True
    return isinstance(tz, ZoneInfo) and tz.key in _UTC_KEYS


def weekly_rule(start: datetime, end: datetime) -> WeeklyRule:
    """Rule repeating ``start`` every week until ``end`` inclusive."""
    return WeeklyRule(dtstart=start, until=end)


def expand(rule: WeeklyRule) -> list[datetime]:
    """Return all occurrences of ``rule`` in ascending order."""
    step = timedelta(weeks=rule.interval)
    occurrences: list[datetime] = []
    current = rule.dtstart
    while True:
        if rule.count is not None and len(occurrences) >= rule.count:
            break
        if rule.until is not None and current > rule.until:
            break
        if len(occurrences) >= MAX_OCCURRENCES:
            raise RecurrenceRuleError(f"Recurrence produces more than {MAX_OCCURRENCES} occurrences")
        occurrences.append(current)
        current = current + step
    return occurrences


def _format_dtstart(value: datetime) -> str:
    if not _is_aware(value):
        return f"DTSTART:{value.strftime(_BASIC_FORMAT)}"
    if _is_utc(value) or not isinstance(value.tzinfo, ZoneInfo):
        return f"DTSTART:{value.astimezone(timezone.utc).strftime(_BASIC_FORMAT)}Z"
    return f"DTSTART;TZID={value.tzinfo.key}:{value.strftime(_BASIC_FORMAT)}"


def _format_until(value: datetime) -> str:
    if not _is_aware(value):
        return value.strftime(_BASIC_FORMAT)
    return f"{value.astimezone(timezone.utc).strftime(_BASIC_FORMAT)}Z"


def format_rule(rule: WeeklyRule) -> str:
    """Serialize ``rule`` to its stored text form."""
    parts = ["FREQ=WEEKLY"]
    if rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.until is not None:
        parts.append(f"UNTIL={_format_until(rule.until)}")
    if rule.count is not None:
        parts.append(f"COUNT={rule.count}")
    return f"{_format_dtstart(rule.dtstart)}\nRRULE:{';'.join(parts)}"


def serialize(start: datetime, end: datetime) -> str:
    """Text form of the weekly rule from ``start`` until ``end``."""
    return format_rule(weekly_rule(start, end))


def _parse_datetime(value: str, tz: ZoneInfo | None = None) -> datetime:
    value = value.strip()
    try:
        if value.endswith("Z") and "T" in value and "-" not in value:
            return datetime.strptime(value[:-1], _BASIC_FORMAT).replace(tzinfo=timezone.utc)
        if len(value) == 15 and "T" in value:
            return datetime.strptime(value, _BASIC_FORMAT).replace(tzinfo=tz)
        if len(value) == 8 and value.isdigit():
            return datetime.strptime(value, _DATE_FORMAT).replace(tzinfo=tz)
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise RecurrenceRuleError(f"Invalid date-time value: {value!r}") from exc
    if parsed.tzinfo is None and tz is not None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _parse_dtstart(name: str, value: str) -> datetime:
    tz: ZoneInfo | None = None
    for param in name.split(";")[1:]:
        key, _, param_value = param.partition("=")
        if key.strip().upper() == "TZID":
            try:
                tz = ZoneInfo(param_value.strip())
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise RecurrenceRuleError(f"Unknown TZID: {param_value!r}") from exc
    return _parse_datetime(value, tz)


def parse(text: str) -> WeeklyRule:
    """Parse the stored text form back into a :class:`WeeklyRule`."""
    dtstart: datetime | None = None
    properties: str | None = None

    for raw_line in text.strip().splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.upper().startswith("FREQ="):
            properties = line
            continue
        name, separator, value = line.partition(":")
        if not separator:
            raise RecurrenceRuleError(f"Malformed recurrence line: {line!r}")
        head = name.strip().upper()
        if head.startswith("DTSTART"):
            dtstart = _parse_dtstart(name, value)
        elif head == "RRULE":
            properties = value
        else:
            raise RecurrenceRuleError(f"Unsupported recurrence property: {head}")

    if properties is None:
        raise RecurrenceRuleError("RRULE line is missing")
    if dtstart is None:
        raise RecurrenceRuleError("DTSTART is required")

    freq: str | None = None
    until: datetime | None = None
    interval = 1
    count: int | None = None
    for part in properties.split(";"):
        if not part.strip():
            continue
        key, _, value = part.partition("=")
        key = key.strip().upper()
        value = value.strip()
        try:
            if key == "FREQ":
                freq = value.upper()
            elif key == "UNTIL":
                until = _parse_datetime(value)
            elif key == "INTERVAL":
                interval = int(value)
            elif key == "COUNT":
                count = int(value)
            elif key == "WKST":
                continue
            else:
                raise RecurrenceRuleError(f"Unsupported RRULE part: {key}")
        except ValueError as exc:
            if isinstance(exc, RecurrenceRuleError):
                raise
            raise RecurrenceRuleError(f"Invalid {key} value: {value!r}") from exc

    if freq != "WEEKLY":
        raise RecurrenceRuleError(f"Only FREQ=WEEKLY is supported, got {freq!r}")
    return WeeklyRule(dtstart=dtstart, until=until, interval=interval, count=count)


def remaining_occurrences(text: str, from_value: datetime | date) -> list[datetime]:
    """Occurrences at or after ``from_value``.

    A ``datetime`` is compared as an instant; a plain ``date`` is compared by
    calendar day so that today's occurrence is included regardless of its hour.
    """
    occurrences = expand(parse(text))
    if isinstance(from_value, datetime):
        return [item for item in occurrences if item >= _align(from_value, item)]
    return [item for item in occurrences if item.date() >= from_value]


def is_valid_occurrence(text: str, value: datetime | date) -> bool:
    """True when exactly one occurrence falls on the calendar day of ``value``.

    Time-of-day of ``value`` is ignored. An aware ``value`` is matched against
    each occurrence seen in its own zone, so rules stored with a UTC start
    still match on the caller's calendar day.
    """
    if isinstance(value, datetime):
        target = value.date()
        zone = value.tzinfo if _is_aware(value) else None
    else:
        target = value
        zone = None

    def occurrence_day(item: datetime) -> date:
        if zone is not None and _is_aware(item):
            return item.astimezone(zone).date()
        return item.date()

    matches = sum(1 for item in expand(parse(text)) if occurrence_day(item) == target)
    return matches == 1
