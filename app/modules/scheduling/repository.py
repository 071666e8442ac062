"""Scheduling repository layer."""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.organizations.models import Organization
from app.modules.scheduling.models import Schedule


class SchedulingRepository:
    """DB access for schedules."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock_organization(self, organization_id: UUID) -> bool:
        """Take the organization row lock until the transaction ends.

        All schedule writers of one organization serialize on this lock, which
        makes count-then-insert atomic across server instances.
        """
        stmt = select(Organization.id).where(Organization.id == organization_id).with_for_update()
        return (await self.session.scalar(stmt)) is not None

    async def count_overlapping(
        self,
        organization_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_ids: Collection[UUID] = (),
    ) -> int:
        stmt = select(func.count(Schedule.id)).where(
            Schedule.organization_id == organization_id,
            Schedule.start_time < end_time,
            Schedule.end_time > start_time,
        )
        if exclude_ids:
            stmt = stmt.where(Schedule.id.not_in(list(exclude_ids)))
        return int((await self.session.scalar(stmt)) or 0)

    async def find_student_overlap(
        self,
        student_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_ids: Collection[UUID] = (),
    ) -> Schedule | None:
        stmt = select(Schedule).where(
            Schedule.student_id == student_id,
            Schedule.start_time < end_time,
            Schedule.end_time > start_time,
        )
        if exclude_ids:
            stmt = stmt.where(Schedule.id.not_in(list(exclude_ids)))
        return await self.session.scalar(stmt.order_by(Schedule.start_time.asc()).limit(1))

    async def insert_schedule(
        self,
        organization_id: UUID,
        student_id: UUID,
        start_time: datetime,
        end_time: datetime,
        program_id: UUID | None = None,
        rrule: str | None = None,
        parent_schedule_id: UUID | None = None,
    ) -> Schedule:
        schedule = Schedule(
            organization_id=organization_id,
            student_id=student_id,
            program_id=program_id,
            start_time=start_time,
            end_time=end_time,
            rrule=rrule,
            parent_schedule_id=parent_schedule_id,
            is_exception=False,
        )
        self.session.add(schedule)
        await self.session.flush()
        return schedule

    async def get_schedule_by_id(self, schedule_id: UUID) -> Schedule | None:
        stmt = select(Schedule).where(Schedule.id == schedule_id)
        return await self.session.scalar(stmt)

    async def list_student_schedules(
        self,
        student_id: UUID,
        start_time: datetime,
        end_time: datetime,
    ) -> list[Schedule]:
        stmt = (
            select(Schedule)
            .where(
                Schedule.student_id == student_id,
                Schedule.start_time >= start_time,
                Schedule.start_time < end_time,
            )
            .order_by(Schedule.start_time.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_organization_schedules(
        self,
        organization_id: UUID,
        start_time: datetime,
        end_time: datetime,
    ) -> list[Schedule]:
        stmt = (
            select(Schedule)
            .where(
                Schedule.organization_id == organization_id,
                Schedule.start_time >= start_time,
                Schedule.start_time < end_time,
            )
            .order_by(Schedule.start_time.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_series(self, series_id: UUID, from_time: datetime | None = None) -> list[Schedule]:
        stmt = select(Schedule).where(
            or_(Schedule.id == series_id, Schedule.parent_schedule_id == series_id),
        )
        if from_time is not None:
            stmt = stmt.where(Schedule.start_time >= from_time)
        return list((await self.session.scalars(stmt.order_by(Schedule.start_time.asc()))).all())

    async def delete_schedule(self, schedule_id: UUID) -> None:
        await self.session.execute(delete(Schedule).where(Schedule.id == schedule_id))

    async def delete_schedules(self, schedule_ids: Collection[UUID]) -> int:
        if not schedule_ids:
            return 0
        result = await self.session.execute(delete(Schedule).where(Schedule.id.in_(list(schedule_ids))))
        return int(result.rowcount or 0)

    async def save(self, schedule: Schedule) -> Schedule:
        await self.session.flush()
        return schedule

    async def save_all(self, schedules: list[Schedule]) -> list[Schedule]:
        await self.session.flush()
        return schedules
