"""Organization repository layer."""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import MemberRoleEnum, MemberStateEnum, SettingKeyEnum
from app.modules.organizations.models import (
    Organization,
    OrganizationMember,
    OrganizationSetting,
    Program,
)

DEFAULT_SETTINGS: dict[SettingKeyEnum, Any] = {
    SettingKeyEnum.MAX_CONCURRENT_STUDENTS: 5,
    SettingKeyEnum.SCHEDULE_DURATION_HOURS: 3,
    SettingKeyEnum.TIME_SLOT_INTERVAL_MINUTES: 30,
    SettingKeyEnum.NOTIFICATIONS_ENABLED: False,
}


class OrganizationRepository:
    """DB operations for organizations, memberships, programs and settings."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_organization(self, name: str, description: str | None, timezone: str) -> Organization:
        organization = Organization(name=name, description=description, timezone=timezone)
        self.session.add(organization)
        await self.session.flush()
        return organization

    async def get_organization_by_id(self, organization_id: UUID) -> Organization | None:
        stmt = select(Organization).where(Organization.id == organization_id)
        return await self.session.scalar(stmt)

    async def get_membership(self, organization_id: UUID, user_id: UUID) -> OrganizationMember | None:
        stmt = (
            select(OrganizationMember)
            .options(selectinload(OrganizationMember.organization))
            .where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
            )
        )
        return await self.session.scalar(stmt)

    async def list_active_memberships(
        self,
        user_id: UUID,
        role: MemberRoleEnum,
    ) -> list[OrganizationMember]:
        stmt = (
            select(OrganizationMember)
            .options(selectinload(OrganizationMember.organization))
            .where(
                OrganizationMember.user_id == user_id,
                OrganizationMember.role == role,
                OrganizationMember.state == MemberStateEnum.NORMAL,
            )
            .order_by(OrganizationMember.created_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def create_membership(
        self,
        organization_id: UUID,
        user_id: UUID,
        role: MemberRoleEnum,
        class_end_date: date | None = None,
    ) -> OrganizationMember:
        membership = OrganizationMember(
            organization_id=organization_id,
            user_id=user_id,
            role=role,
            state=MemberStateEnum.NORMAL,
            class_end_date=class_end_date,
        )
        self.session.add(membership)
        await self.session.flush()
        return membership

    async def create_program(self, organization_id: UUID, title: str, description: str | None) -> Program:
        program = Program(organization_id=organization_id, title=title, description=description)
        self.session.add(program)
        await self.session.flush()
        return program

    async def get_program_by_id(self, program_id: UUID) -> Program | None:
        stmt = select(Program).where(Program.id == program_id)
        return await self.session.scalar(stmt)

    async def list_programs(self, organization_id: UUID) -> list[Program]:
        stmt = select(Program).where(Program.organization_id == organization_id).order_by(Program.title.asc())
        return list((await self.session.scalars(stmt)).all())

    async def get_setting(self, organization_id: UUID, key: SettingKeyEnum) -> Any:
        """Return the stored value, or the documented default when unset."""
        stmt = select(OrganizationSetting).where(
            OrganizationSetting.organization_id == organization_id,
            OrganizationSetting.key == key.value,
        )
        setting = await self.session.scalar(stmt)
        if setting is None or setting.value.get("value") is None:
            return DEFAULT_SETTINGS[key]
        return setting.value["value"]

    async def get_settings(self, organization_id: UUID) -> dict[SettingKeyEnum, Any]:
        stmt = select(OrganizationSetting).where(OrganizationSetting.organization_id == organization_id)
        stored = {row.key: row.value.get("value") for row in (await self.session.scalars(stmt)).all()}
        values: dict[SettingKeyEnum, Any] = {}
        for key, default in DEFAULT_SETTINGS.items():
            value = stored.get(key.value)
            values[key] = default if value is None else value
        return values

    async def upsert_setting(self, organization_id: UUID, key: SettingKeyEnum, value: Any) -> OrganizationSetting:
        stmt = select(OrganizationSetting).where(
            OrganizationSetting.organization_id == organization_id,
            OrganizationSetting.key == key.value,
        )
        setting = await self.session.scalar(stmt)
        if setting is None:
            setting = OrganizationSetting(organization_id=organization_id, key=key.value, value={"value": value})
            self.session.add(setting)
        else:
            setting.value = {"value": value}
        await self.session.flush()
        return setting

    async def initialize_default_settings(self, organization_id: UUID) -> None:
        for key, value in DEFAULT_SETTINGS.items():
            await self.upsert_setting(organization_id, key, value)
