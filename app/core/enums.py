"""Core enums used across modules."""

from enum import StrEnum


class MemberRoleEnum(StrEnum):
    """Role of a person inside an organization."""

    STUDENT = "student"
    ADMIN = "admin"


class MemberStateEnum(StrEnum):
    """Membership state."""

    NORMAL = "normal"
    GRADUATE = "graduate"
    DELETED = "deleted"


class SettingKeyEnum(StrEnum):
    """Recognized per-organization setting keys."""

    MAX_CONCURRENT_STUDENTS = "max_concurrent_students"
    SCHEDULE_DURATION_HOURS = "schedule_duration_hours"
    TIME_SLOT_INTERVAL_MINUTES = "time_slot_interval_minutes"
    NOTIFICATIONS_ENABLED = "notifications_enabled"


class ScheduleScopeEnum(StrEnum):
    """Which rows of a recurring series an admin mutation touches."""

    SINGLE = "single"
    FUTURE = "future"
