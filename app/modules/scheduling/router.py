"""Scheduling API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import ScheduleScopeEnum
from app.modules.identity.service import get_current_user
from app.modules.scheduling.schemas import (
    AdminScheduleCreateRequest,
    AdminScheduleUpdateRequest,
    ScheduleActionResponse,
    ScheduleCreateRequest,
    ScheduleOptionsRead,
    ScheduleRead,
    ScheduleSeriesRead,
)
from app.modules.scheduling.service import ScheduleService, get_schedule_service
from app.shared.utils import utc_now

router = APIRouter(prefix="/schedules", tags=["schedules"])
admin_router = APIRouter(prefix="/admin/schedules", tags=["admin-schedules"])


def _year_param(year: int | None) -> int:
    return year if year is not None else utc_now().year


def _month_param(month: int | None) -> int:
    return month if month is not None else utc_now().month


@router.post("", response_model=ScheduleActionResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreateRequest,
    service: ScheduleService = Depends(get_schedule_service),
    current_user=Depends(get_current_user),
) -> ScheduleActionResponse:
    """Book a slot for the current student."""
    schedule = await service.create_schedule(payload, current_user)
    return ScheduleActionResponse(schedules=[ScheduleRead.model_validate(schedule)])


@router.post("/{schedule_id}/delete", response_model=ScheduleActionResponse)
async def cancel_schedule(
    schedule_id: UUID,
    service: ScheduleService = Depends(get_schedule_service),
    current_user=Depends(get_current_user),
) -> ScheduleActionResponse:
    """Cancel one of the current student's schedules."""
    await service.cancel_schedule(schedule_id, current_user)
    return ScheduleActionResponse(deleted_count=1)


@router.get("/my", response_model=list[ScheduleRead])
async def list_my_schedules(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    service: ScheduleService = Depends(get_schedule_service),
    current_user=Depends(get_current_user),
) -> list[ScheduleRead]:
    """Month view of the current student's schedules."""
    items = await service.list_my_schedules(current_user, _year_param(year), _month_param(month))
    return [ScheduleRead.model_validate(item) for item in items]


@router.get("/options", response_model=ScheduleOptionsRead)
async def get_schedule_options(
    service: ScheduleService = Depends(get_schedule_service),
    current_user=Depends(get_current_user),
) -> ScheduleOptionsRead:
    """Booking window, duration options and time slots."""
    return await service.get_options(current_user)


@admin_router.post("", response_model=ScheduleActionResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_schedule(
    payload: AdminScheduleCreateRequest,
    service: ScheduleService = Depends(get_schedule_service),
    current_user=Depends(get_current_user),
) -> ScheduleActionResponse:
    """Create a schedule or weekly series for a student."""
    schedules = await service.admin_create_schedule(payload, current_user)
    return ScheduleActionResponse(schedules=[ScheduleRead.model_validate(item) for item in schedules])


@admin_router.post("/{schedule_id}/update", response_model=ScheduleActionResponse)
async def admin_update_schedule(
    schedule_id: UUID,
    payload: AdminScheduleUpdateRequest,
    service: ScheduleService = Depends(get_schedule_service),
    current_user=Depends(get_current_user),
) -> ScheduleActionResponse:
    """Move or reassign a schedule."""
    schedules = await service.admin_update_schedule(schedule_id, payload, current_user)
    return ScheduleActionResponse(schedules=[ScheduleRead.model_validate(item) for item in schedules])


@admin_router.post("/{schedule_id}/delete", response_model=ScheduleActionResponse)
async def admin_delete_schedule(
    schedule_id: UUID,
    scope: ScheduleScopeEnum = Query(default=ScheduleScopeEnum.SINGLE),
    service: ScheduleService = Depends(get_schedule_service),
    current_user=Depends(get_current_user),
) -> ScheduleActionResponse:
    """Delete a schedule, or it and the rest of its series."""
    deleted = await service.admin_delete_schedule(schedule_id, scope, current_user)
    return ScheduleActionResponse(deleted_count=deleted)


@admin_router.get("", response_model=list[ScheduleRead])
async def list_organization_schedules(
    organization_id: UUID | None = Query(default=None),
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    day: date | None = Query(default=None),
    service: ScheduleService = Depends(get_schedule_service),
    current_user=Depends(get_current_user),
) -> list[ScheduleRead]:
    """Month or day view of the organization's schedules."""
    items = await service.list_organization_schedules(
        current_user,
        organization_id,
        _year_param(year),
        _month_param(month),
        day,
    )
    return [ScheduleRead.model_validate(item) for item in items]


@admin_router.get("/{schedule_id}/series", response_model=ScheduleSeriesRead)
async def get_schedule_series(
    schedule_id: UUID,
    service: ScheduleService = Depends(get_schedule_service),
    current_user=Depends(get_current_user),
) -> ScheduleSeriesRead:
    """Recurrence rule and rows of a schedule's series."""
    return await service.get_series(schedule_id, current_user)
