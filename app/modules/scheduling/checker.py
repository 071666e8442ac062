"""Capacity and time-conflict checks for new or moved schedules."""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from app.core.enums import SettingKeyEnum
from app.modules.organizations.repository import OrganizationRepository
from app.modules.scheduling.repository import SchedulingRepository
from app.shared.exceptions import (
    CapacityExceededException,
    NotFoundException,
    PolicyViolationException,
    StudentConflictException,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SlotAvailability:
    """Outcome of checking one ``[start, end)`` interval."""

    allowed: bool
    current_count: int
    max_count: int
    has_conflict: bool
    conflicting_schedule_id: UUID | None = None

    @property
    def capacity_exceeded(self) -> bool:
        return self.current_count >= self.max_count


def intervals_overlap(
    first_start: datetime,
    first_end: datetime,
    second_start: datetime,
    second_end: datetime,
) -> bool:
    """Half-open intersection: touching intervals do not overlap."""
    return first_start < second_end and second_start < first_end


def ensure_valid_interval(start_time: datetime, end_time: datetime) -> None:
    if end_time <= start_time:
        raise PolicyViolationException("Schedule end time must be after its start time")


class ScheduleConflictChecker:
    """Decides whether an interval may be booked for a student.

    ``check`` locks the organization row first, so the counts it reads stay
    valid until the surrounding transaction commits the insert.
    """

    def __init__(
        self,
        scheduling_repository: SchedulingRepository,
        organization_repository: OrganizationRepository,
    ) -> None:
        self.scheduling_repository = scheduling_repository
        self.organization_repository = organization_repository

    async def check(
        self,
        organization_id: UUID,
        student_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_ids: Collection[UUID] = (),
    ) -> SlotAvailability:
        ensure_valid_interval(start_time, end_time)

        if not await self.scheduling_repository.lock_organization(organization_id):
            raise NotFoundException("Organization not found")

        max_count = int(
            await self.organization_repository.get_setting(
                organization_id,
                SettingKeyEnum.MAX_CONCURRENT_STUDENTS,
            ),
        )
        current_count = await self.scheduling_repository.count_overlapping(
            organization_id,
            start_time,
            end_time,
            exclude_ids,
        )
        overlap = await self.scheduling_repository.find_student_overlap(
            student_id,
            start_time,
            end_time,
            exclude_ids,
        )

        has_conflict = overlap is not None
        return SlotAvailability(
            allowed=current_count < max_count and not has_conflict,
            current_count=current_count,
            max_count=max_count,
            has_conflict=has_conflict,
            conflicting_schedule_id=overlap.id if overlap is not None else None,
        )

    async def ensure_available(
        self,
        organization_id: UUID,
        student_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_ids: Collection[UUID] = (),
    ) -> SlotAvailability:
        """Like :meth:`check` but raises on capacity first, then on conflict."""
        availability = await self.check(organization_id, student_id, start_time, end_time, exclude_ids)
        if availability.allowed:
            return availability

        if availability.capacity_exceeded:
            logger.info(
                "Slot %s-%s of organization %s is full (%s/%s)",
                start_time.isoformat(),
                end_time.isoformat(),
                organization_id,
                availability.current_count,
                availability.max_count,
            )
            raise CapacityExceededException(availability.current_count, availability.max_count)

        raise StudentConflictException(
            "Student already has a schedule in this time range",
            details={"conflicting_schedule_id": str(availability.conflicting_schedule_id)},
        )
