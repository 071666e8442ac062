"""Organization schemas."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.enums import MemberRoleEnum, MemberStateEnum


class OrganizationCreate(BaseModel):
    """Organization setup request."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    timezone: str | None = Field(default=None, max_length=64)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value


class OrganizationRead(BaseModel):
    """Organization response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    timezone: str
    created_at: datetime
    updated_at: datetime


class MemberCreate(BaseModel):
    """Add a person to an organization."""

    email: EmailStr
    full_name: str | None = Field(default=None, max_length=255)
    role: MemberRoleEnum = MemberRoleEnum.STUDENT
    class_end_date: date | None = None


class MemberRead(BaseModel):
    """Membership response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    user_id: UUID
    role: MemberRoleEnum
    state: MemberStateEnum
    class_end_date: date | None


class ProgramCreate(BaseModel):
    """Create program request."""

    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)


class ProgramRead(BaseModel):
    """Program response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    title: str
    description: str | None


class SettingsRead(BaseModel):
    """Effective organization settings (stored values over defaults)."""

    max_concurrent_students: int
    schedule_duration_hours: int
    time_slot_interval_minutes: int
    notifications_enabled: bool


class SettingsUpdate(BaseModel):
    """Partial settings update; omitted keys keep their value."""

    max_concurrent_students: int | None = Field(default=None, ge=1, le=100)
    schedule_duration_hours: int | None = Field(default=None, ge=1, le=8)
    time_slot_interval_minutes: int | None = Field(default=None, ge=5, le=120)
    notifications_enabled: bool | None = None

    @field_validator("time_slot_interval_minutes")
    @classmethod
    def validate_interval_divides_hour(cls, value: int | None) -> int | None:
        if value is not None and 60 % value != 0 and value % 60 != 0:
            raise ValueError("time_slot_interval_minutes must divide an hour or be whole hours")
        return value
