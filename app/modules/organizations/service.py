"""Organization business logic layer."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import MemberRoleEnum, MemberStateEnum, SettingKeyEnum
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.service import IdentityService
from app.modules.organizations.models import Organization, OrganizationMember, Program
from app.modules.organizations.repository import OrganizationRepository
from app.modules.organizations.schemas import (
    MemberCreate,
    OrganizationCreate,
    ProgramCreate,
    SettingsRead,
    SettingsUpdate,
)
from app.shared.exceptions import ConflictException, NotFoundException, UnauthorizedException

settings = get_settings()
logger = logging.getLogger(__name__)


async def resolve_membership(
    repository: OrganizationRepository,
    user: User,
    role: MemberRoleEnum,
    organization_id: UUID | None = None,
) -> OrganizationMember:
    """Return the actor's active membership with ``role``.

    Without ``organization_id`` the oldest active membership is used, which
    matches single-studio accounts.
    """
    if organization_id is not None:
        membership = await repository.get_membership(organization_id, user.id)
        if membership is None or membership.role != role or membership.state != MemberStateEnum.NORMAL:
            raise UnauthorizedException(f"Access denied: {role.value} membership required in this organization")
        return membership

    memberships = await repository.list_active_memberships(user.id, role)
    if not memberships:
        raise UnauthorizedException(f"No active {role.value} membership found")
    return memberships[0]


class OrganizationService:
    """Organization domain service."""

    def __init__(self, repository: OrganizationRepository, identity_service: IdentityService) -> None:
        self.repository = repository
        self.identity_service = identity_service

    async def create_organization(self, payload: OrganizationCreate, actor: User) -> Organization:
        """Set up an organization with the actor as admin and default settings."""
        organization = await self.repository.create_organization(
            name=payload.name,
            description=payload.description,
            timezone=payload.timezone or settings.default_timezone,
        )
        await self.repository.create_membership(organization.id, actor.id, MemberRoleEnum.ADMIN)
        await self.repository.initialize_default_settings(organization.id)
        logger.info("Organization %s created by %s", organization.id, actor.id)
        return organization

    async def add_member(self, organization_id: UUID, payload: MemberCreate, actor: User) -> OrganizationMember:
        """Add a student or admin to the organization (admin only)."""
        await resolve_membership(self.repository, actor, MemberRoleEnum.ADMIN, organization_id)

        user = await self.identity_service.get_or_create_user(payload.email, payload.full_name)
        existing = await self.repository.get_membership(organization_id, user.id)
        if existing is not None:
            raise ConflictException("User is already a member of this organization")

        return await self.repository.create_membership(
            organization_id=organization_id,
            user_id=user.id,
            role=payload.role,
            class_end_date=payload.class_end_date,
        )

    async def get_settings(self, organization_id: UUID, actor: User) -> SettingsRead:
        """Return effective settings to any active member."""
        membership = await self.repository.get_membership(organization_id, actor.id)
        if membership is None or membership.state != MemberStateEnum.NORMAL:
            raise UnauthorizedException("Access denied to this organization")

        values = await self.repository.get_settings(organization_id)
        return SettingsRead(**{key.value: value for key, value in values.items()})

    async def update_settings(self, organization_id: UUID, payload: SettingsUpdate, actor: User) -> SettingsRead:
        """Update settings (admin only)."""
        await resolve_membership(self.repository, actor, MemberRoleEnum.ADMIN, organization_id)

        for field_name, value in payload.model_dump(exclude_none=True).items():
            await self.repository.upsert_setting(organization_id, SettingKeyEnum(field_name), value)
        logger.info("Settings of organization %s updated by %s", organization_id, actor.id)

        values = await self.repository.get_settings(organization_id)
        return SettingsRead(**{key.value: value for key, value in values.items()})

    async def create_program(self, organization_id: UUID, payload: ProgramCreate, actor: User) -> Program:
        """Create program (admin only)."""
        await resolve_membership(self.repository, actor, MemberRoleEnum.ADMIN, organization_id)
        return await self.repository.create_program(organization_id, payload.title, payload.description)

    async def list_programs(self, organization_id: UUID, actor: User) -> list[Program]:
        """List programs to any active member."""
        organization = await self.repository.get_organization_by_id(organization_id)
        if organization is None:
            raise NotFoundException("Organization not found")
        membership = await self.repository.get_membership(organization_id, actor.id)
        if membership is None or membership.state != MemberStateEnum.NORMAL:
            raise UnauthorizedException("Access denied to this organization")
        return await self.repository.list_programs(organization_id)


async def get_organization_service(session: AsyncSession = Depends(get_db_session)) -> OrganizationService:
    """Dependency provider for organization service."""
    return OrganizationService(
        repository=OrganizationRepository(session),
        identity_service=IdentityService(IdentityRepository(session)),
    )
