"""Organization API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.modules.identity.service import get_current_user
from app.modules.organizations.schemas import (
    MemberCreate,
    MemberRead,
    OrganizationCreate,
    OrganizationRead,
    ProgramCreate,
    ProgramRead,
    SettingsRead,
    SettingsUpdate,
)
from app.modules.organizations.service import OrganizationService, get_organization_service

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.post("", response_model=OrganizationRead, status_code=status.HTTP_201_CREATED)
async def create_organization(
    payload: OrganizationCreate,
    service: OrganizationService = Depends(get_organization_service),
    current_user=Depends(get_current_user),
) -> OrganizationRead:
    """Set up a new organization with default settings."""
    organization = await service.create_organization(payload, current_user)
    return OrganizationRead.model_validate(organization)


@router.post("/{organization_id}/members", response_model=MemberRead, status_code=status.HTTP_201_CREATED)
async def add_member(
    organization_id: UUID,
    payload: MemberCreate,
    service: OrganizationService = Depends(get_organization_service),
    current_user=Depends(get_current_user),
) -> MemberRead:
    """Add a student or admin."""
    membership = await service.add_member(organization_id, payload, current_user)
    return MemberRead.model_validate(membership)


@router.get("/{organization_id}/settings", response_model=SettingsRead)
async def get_settings(
    organization_id: UUID,
    service: OrganizationService = Depends(get_organization_service),
    current_user=Depends(get_current_user),
) -> SettingsRead:
    """Read effective scheduling settings."""
    return await service.get_settings(organization_id, current_user)


@router.put("/{organization_id}/settings", response_model=SettingsRead)
async def update_settings(
    organization_id: UUID,
    payload: SettingsUpdate,
    service: OrganizationService = Depends(get_organization_service),
    current_user=Depends(get_current_user),
) -> SettingsRead:
    """Update scheduling settings."""
    return await service.update_settings(organization_id, payload, current_user)


@router.post("/{organization_id}/programs", response_model=ProgramRead, status_code=status.HTTP_201_CREATED)
async def create_program(
    organization_id: UUID,
    payload: ProgramCreate,
    service: OrganizationService = Depends(get_organization_service),
    current_user=Depends(get_current_user),
) -> ProgramRead:
    """Create a program."""
    program = await service.create_program(organization_id, payload, current_user)
    return ProgramRead.model_validate(program)


@router.get("/{organization_id}/programs", response_model=list[ProgramRead])
async def list_programs(
    organization_id: UUID,
    service: OrganizationService = Depends(get_organization_service),
    current_user=Depends(get_current_user),
) -> list[ProgramRead]:
    """List programs of the organization."""
    programs = await service.list_programs(organization_id, current_user)
    return [ProgramRead.model_validate(item) for item in programs]
