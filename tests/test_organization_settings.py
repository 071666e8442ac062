from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4

import pytest
from pydantic import ValidationError

from app.core.enums import MemberRoleEnum, MemberStateEnum, SettingKeyEnum
from app.modules.organizations.repository import DEFAULT_SETTINGS
from app.modules.organizations.schemas import (
    MemberCreate,
    OrganizationCreate,
    ProgramCreate,
    SettingsUpdate,
)
from app.modules.organizations.service import OrganizationService
from app.shared.exceptions import ConflictException, NotFoundException, UnauthorizedException


@dataclass
class FakeOrganization:
    id: UUID
    name: str
    description: str | None
    timezone: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class FakeMembership:
    id: UUID
    organization_id: UUID
    user_id: UUID
    role: MemberRoleEnum
    state: MemberStateEnum = MemberStateEnum.NORMAL
    class_end_date: date | None = None


@dataclass
class FakeProgram:
    id: UUID
    organization_id: UUID
    title: str
    description: str | None


class FakeOrganizationRepository:
    def __init__(self) -> None:
        self.organizations: dict[UUID, FakeOrganization] = {}
        self.memberships: list[FakeMembership] = []
        self.programs: list[FakeProgram] = []
        self.settings: dict[UUID, dict[SettingKeyEnum, Any]] = {}

    async def create_organization(self, name: str, description: str | None, timezone: str) -> FakeOrganization:
        organization = FakeOrganization(id=uuid4(), name=name, description=description, timezone=timezone)
        self.organizations[organization.id] = organization
        return organization

    async def get_organization_by_id(self, organization_id: UUID) -> FakeOrganization | None:
        return self.organizations.get(organization_id)

    async def get_membership(self, organization_id: UUID, user_id: UUID) -> FakeMembership | None:
        for membership in self.memberships:
            if membership.organization_id == organization_id and membership.user_id == user_id:
                return membership
        return None

    async def list_active_memberships(self, user_id: UUID, role: MemberRoleEnum) -> list[FakeMembership]:
        return [
            item
            for item in self.memberships
            if item.user_id == user_id and item.role == role and item.state == MemberStateEnum.NORMAL
        ]

    async def create_membership(
        self,
        organization_id: UUID,
        user_id: UUID,
        role: MemberRoleEnum,
        class_end_date: date | None = None,
    ) -> FakeMembership:
        membership = FakeMembership(
            id=uuid4(),
            organization_id=organization_id,
            user_id=user_id,
            role=role,
            class_end_date=class_end_date,
        )
        self.memberships.append(membership)
        return membership

    async def create_program(self, organization_id: UUID, title: str, description: str | None) -> FakeProgram:
        program = FakeProgram(id=uuid4(), organization_id=organization_id, title=title, description=description)
        self.programs.append(program)
        return program

    async def list_programs(self, organization_id: UUID) -> list[FakeProgram]:
        return [item for item in self.programs if item.organization_id == organization_id]

    async def get_settings(self, organization_id: UUID) -> dict[SettingKeyEnum, Any]:
        values = dict(DEFAULT_SETTINGS)
        values.update(self.settings.get(organization_id, {}))
        return values

    async def upsert_setting(self, organization_id: UUID, key: SettingKeyEnum, value: Any) -> None:
        self.settings.setdefault(organization_id, {})[key] = value

    async def initialize_default_settings(self, organization_id: UUID) -> None:
        for key, value in DEFAULT_SETTINGS.items():
            await self.upsert_setting(organization_id, key, value)


class FakeIdentityService:
    def __init__(self) -> None:
        self.users: dict[str, SimpleNamespace] = {}

    async def get_or_create_user(self, email: str, full_name: str | None = None) -> SimpleNamespace:
        key = email.lower()
        if key not in self.users:
            self.users[key] = SimpleNamespace(id=uuid4(), email=key, full_name=full_name)
        return self.users[key]


def _service() -> tuple[OrganizationService, FakeOrganizationRepository]:
    repository = FakeOrganizationRepository()
    return OrganizationService(repository, FakeIdentityService()), repository


@pytest.mark.asyncio
async def test_creator_becomes_admin_with_default_settings() -> None:
    service, repository = _service()
    creator = SimpleNamespace(id=uuid4())

    organization = await service.create_organization(OrganizationCreate(name="Sunrise Art Studio"), creator)

    assert organization.timezone == "Asia/Seoul"
    membership = await repository.get_membership(organization.id, creator.id)
    assert membership is not None
    assert membership.role == MemberRoleEnum.ADMIN
    settings = await service.get_settings(organization.id, creator)
    assert settings.max_concurrent_students == 5
    assert settings.schedule_duration_hours == 3
    assert settings.time_slot_interval_minutes == 30
    assert settings.notifications_enabled is False


@pytest.mark.asyncio
async def test_admin_updates_only_given_settings() -> None:
    service, _ = _service()
    admin = SimpleNamespace(id=uuid4())
    organization = await service.create_organization(OrganizationCreate(name="Studio"), admin)

    updated = await service.update_settings(
        organization.id,
        SettingsUpdate(max_concurrent_students=2),
        admin,
    )

    assert updated.max_concurrent_students == 2
    assert updated.schedule_duration_hours == 3


@pytest.mark.asyncio
async def test_student_cannot_update_settings() -> None:
    service, repository = _service()
    admin = SimpleNamespace(id=uuid4())
    student = SimpleNamespace(id=uuid4())
    organization = await service.create_organization(OrganizationCreate(name="Studio"), admin)
    await repository.create_membership(organization.id, student.id, MemberRoleEnum.STUDENT)

    with pytest.raises(UnauthorizedException):
        await service.update_settings(organization.id, SettingsUpdate(max_concurrent_students=9), student)

    settings = await service.get_settings(organization.id, student)
    assert settings.max_concurrent_students == 5


@pytest.mark.asyncio
async def test_outsider_cannot_read_settings() -> None:
    service, _ = _service()
    organization = await service.create_organization(OrganizationCreate(name="Studio"), SimpleNamespace(id=uuid4()))

    with pytest.raises(UnauthorizedException):
        await service.get_settings(organization.id, SimpleNamespace(id=uuid4()))


@pytest.mark.asyncio
async def test_admin_adds_student_once() -> None:
    service, _ = _service()
    admin = SimpleNamespace(id=uuid4())
    organization = await service.create_organization(OrganizationCreate(name="Studio"), admin)
    payload = MemberCreate(email="Student@Example.com", class_end_date=date(2026, 12, 31))

    membership = await service.add_member(organization.id, payload, admin)

    assert membership.role == MemberRoleEnum.STUDENT
    assert membership.class_end_date == date(2026, 12, 31)
    with pytest.raises(ConflictException):
        await service.add_member(organization.id, payload, admin)


@pytest.mark.asyncio
async def test_programs_are_scoped_to_members() -> None:
    service, _ = _service()
    admin = SimpleNamespace(id=uuid4())
    organization = await service.create_organization(OrganizationCreate(name="Studio"), admin)
    await service.create_program(organization.id, ProgramCreate(title="Watercolor"), admin)

    programs = await service.list_programs(organization.id, admin)

    assert [item.title for item in programs] == ["Watercolor"]
    with pytest.raises(UnauthorizedException):
        await service.list_programs(organization.id, SimpleNamespace(id=uuid4()))
    with pytest.raises(NotFoundException):
        await service.list_programs(uuid4(), admin)


def test_unknown_organization_timezone_is_rejected() -> None:
    with pytest.raises(ValidationError):
        OrganizationCreate(name="Studio", timezone="Not/AZone")


@pytest.mark.parametrize("value", [0, 101])
def test_max_concurrent_students_bounds(value: int) -> None:
    with pytest.raises(ValidationError):
        SettingsUpdate(max_concurrent_students=value)


@pytest.mark.parametrize(("value", "valid"), [(30, True), (15, True), (60, True), (120, True), (45, False), (90, False)])
def test_slot_interval_must_align_to_hours(value: int, valid: bool) -> None:
    if valid:
        assert SettingsUpdate(time_slot_interval_minutes=value).time_slot_interval_minutes == value
    else:
        with pytest.raises(ValidationError):
            SettingsUpdate(time_slot_interval_minutes=value)
