"""Schedule lifecycle: booking, cancellation and admin maintenance."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime, time
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import MemberRoleEnum, MemberStateEnum, ScheduleScopeEnum, SettingKeyEnum
from app.core.metrics import record_schedule_operation
from app.modules.identity.models import User
from app.modules.organizations.models import Organization, OrganizationMember
from app.modules.organizations.repository import OrganizationRepository
from app.modules.organizations.service import resolve_membership
from app.modules.scheduling.checker import ScheduleConflictChecker
from app.modules.scheduling.models import STUDENT_OVERLAP_CONSTRAINT, Schedule
from app.modules.scheduling.policy import (
    SchedulePolicy,
    apply_time_to_date,
    calculate_end_time,
    day_bounds,
    month_bounds,
    parse_date_string,
    parse_time_string,
)
from app.modules.scheduling.recurrence import (
    RecurrenceRuleError,
    expand,
    format_rule,
    is_valid_occurrence,
    remaining_occurrences,
    weekly_rule,
)
from app.modules.scheduling.repository import SchedulingRepository
from app.modules.scheduling.schemas import (
    AdminScheduleCreateRequest,
    AdminScheduleUpdateRequest,
    BookingWindowRead,
    DurationOptionRead,
    ScheduleCreateRequest,
    ScheduleOptionsRead,
    ScheduleRead,
    ScheduleSeriesRead,
    SeriesOccurrenceRead,
)
from app.shared.exceptions import (
    AppException,
    BusinessRuleException,
    NotFoundException,
    PolicyViolationException,
    StoreFailureException,
    StudentConflictException,
    UnauthorizedException,
)
from app.shared.utils import local_date, utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59)


class ScheduleService:
    """Enforces booking policy, capacity and ownership around schedule writes.

    Nothing here commits: the request-scoped session commits once the whole
    operation succeeded and rolls back on any raised exception.
    """

    def __init__(
        self,
        scheduling_repository: SchedulingRepository,
        organization_repository: OrganizationRepository,
    ) -> None:
        self.scheduling_repository = scheduling_repository
        self.organization_repository = organization_repository
        self.checker = ScheduleConflictChecker(scheduling_repository, organization_repository)

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        """Record the outcome of one operation and map store errors."""
        try:
            yield
        except AppException as exc:
            record_schedule_operation(name, exc.code)
            raise
        except IntegrityError as exc:
            if STUDENT_OVERLAP_CONSTRAINT in str(exc.orig):
                record_schedule_operation(name, StudentConflictException.code)
                raise StudentConflictException(
                    "Student already has a schedule in this time range",
                ) from exc
            record_schedule_operation(name, StoreFailureException.code)
            logger.exception("Integrity error during schedule %s", name)
            raise StoreFailureException("Schedule could not be saved") from exc
        except SQLAlchemyError as exc:
            record_schedule_operation(name, StoreFailureException.code)
            logger.exception("Store failure during schedule %s", name)
            raise StoreFailureException("Schedule storage is unavailable, please retry") from exc
        record_schedule_operation(name, "success")

    async def _load_policy(self, organization: Organization) -> SchedulePolicy:
        values = await self.organization_repository.get_settings(organization.id)
        return SchedulePolicy.from_settings(
            organization.timezone,
            values,
            next_month_open_day=settings.booking_next_month_open_day,
            first_start_hour=settings.schedule_first_start_hour,
            last_start_hour=settings.schedule_last_start_hour,
        )

    async def _ensure_program(self, organization_id: UUID, program_id: UUID | None) -> None:
        if program_id is None:
            return
        program = await self.organization_repository.get_program_by_id(program_id)
        if program is None or program.organization_id != organization_id:
            raise NotFoundException("Program not found")

    async def _ensure_student(self, organization_id: UUID, student_id: UUID) -> OrganizationMember:
        membership = await self.organization_repository.get_membership(organization_id, student_id)
        if (
            membership is None
            or membership.role != MemberRoleEnum.STUDENT
            or membership.state != MemberStateEnum.NORMAL
        ):
            raise NotFoundException("Student not found in this organization")
        return membership

    async def _get_schedule(self, schedule_id: UUID) -> Schedule:
        schedule = await self.scheduling_repository.get_schedule_by_id(schedule_id)
        if schedule is None:
            raise NotFoundException("Schedule not found")
        return schedule

    async def create_schedule(self, payload: ScheduleCreateRequest, actor: User) -> Schedule:
        """Book a slot for the requesting student."""
        async with self._operation("create"):
            membership = await resolve_membership(self.organization_repository, actor, MemberRoleEnum.STUDENT)
            organization = membership.organization
            policy = await self._load_policy(organization)
            now = utc_now()

            day = parse_date_string(payload.date)
            if day < policy.today(now):
                raise PolicyViolationException("Schedules cannot be booked for past dates")
            if not policy.can_create(day, now):
                window = policy.allowed_booking_range(now)
                raise PolicyViolationException(
                    f"Schedules can only be booked between {window.start.isoformat()} "
                    f"and {window.end.isoformat()}",
                )

            start_time, end_time = policy.build_interval(day, payload.start_time, payload.duration)
            if start_time < now:
                raise PolicyViolationException("Schedules cannot be booked in the past")

            await self._ensure_program(organization.id, payload.program_id)
            await self.checker.ensure_available(organization.id, actor.id, start_time, end_time)

            schedule = await self.scheduling_repository.insert_schedule(
                organization_id=organization.id,
                student_id=actor.id,
                program_id=payload.program_id,
                start_time=start_time,
                end_time=end_time,
            )
            logger.info(
                "Student %s booked %s-%s in organization %s",
                actor.id,
                start_time.isoformat(),
                end_time.isoformat(),
                organization.id,
            )
        return schedule

    async def cancel_schedule(self, schedule_id: UUID, actor: User) -> None:
        """Delete the actor's own future schedule; same-day lessons are locked."""
        async with self._operation("cancel"):
            schedule = await self._get_schedule(schedule_id)
            if schedule.student_id != actor.id:
                raise UnauthorizedException("You cannot cancel this schedule")

            membership = await resolve_membership(
                self.organization_repository,
                actor,
                MemberRoleEnum.STUDENT,
                schedule.organization_id,
            )
            policy = await self._load_policy(membership.organization)
            if not policy.can_cancel(schedule.start_time, utc_now()):
                raise PolicyViolationException(
                    "Same-day or past schedules cannot be cancelled, please contact your instructor",
                )

            await self.scheduling_repository.delete_schedule(schedule.id)
            logger.info("Student %s cancelled schedule %s", actor.id, schedule.id)

    async def list_my_schedules(self, actor: User, year: int, month: int) -> list[Schedule]:
        """Month view for the requesting student."""
        membership = await resolve_membership(self.organization_repository, actor, MemberRoleEnum.STUDENT)
        start, end = month_bounds(year, month, ZoneInfo(membership.organization.timezone))
        return await self.scheduling_repository.list_student_schedules(actor.id, start, end)

    async def get_options(self, actor: User) -> ScheduleOptionsRead:
        """Booking form options for the requesting student."""
        membership = await resolve_membership(self.organization_repository, actor, MemberRoleEnum.STUDENT)
        organization = membership.organization
        policy = await self._load_policy(organization)
        max_count = await self.organization_repository.get_setting(
            organization.id,
            SettingKeyEnum.MAX_CONCURRENT_STUDENTS,
        )
        return ScheduleOptionsRead(
            organization_id=organization.id,
            timezone=organization.timezone,
            max_concurrent_students=int(max_count),
            booking_window=BookingWindowRead.model_validate(policy.allowed_booking_range(utc_now())),
            duration_options=[DurationOptionRead.model_validate(item) for item in policy.duration_options()],
            time_slots=policy.time_slots(),
        )

    async def admin_create_schedule(self, payload: AdminScheduleCreateRequest, actor: User) -> list[Schedule]:
        """Create one schedule, or a weekly series, for a student of the admin's organization."""
        async with self._operation("admin_create"):
            admin = await resolve_membership(
                self.organization_repository,
                actor,
                MemberRoleEnum.ADMIN,
                payload.organization_id,
            )
            organization = admin.organization
            student = await self._ensure_student(organization.id, payload.student_id)
            policy = await self._load_policy(organization)
            now = utc_now()

            day = parse_date_string(payload.date)
            if day < policy.today(now):
                raise PolicyViolationException("Schedules cannot be created for past dates")
            start_time, end_time = policy.build_interval(day, payload.start_time, payload.duration)
            await self._ensure_program(organization.id, payload.program_id)

            if not payload.is_recurring:
                await self.checker.ensure_available(organization.id, student.user_id, start_time, end_time)
                schedule = await self.scheduling_repository.insert_schedule(
                    organization_id=organization.id,
                    student_id=student.user_id,
                    program_id=payload.program_id,
                    start_time=start_time,
                    end_time=end_time,
                )
                created = [schedule]
            else:
                created = await self._create_series(
                    policy,
                    organization.id,
                    student.user_id,
                    payload,
                    day,
                    start_time,
                    until_day=payload.until or student.class_end_date,
                )
            logger.info(
                "Admin %s created %s schedule(s) for student %s",
                actor.id,
                len(created),
                student.user_id,
            )
        return created

    async def _create_series(
        self,
        policy: SchedulePolicy,
        organization_id: UUID,
        student_id: UUID,
        payload: AdminScheduleCreateRequest,
        day: date,
        start_time: datetime,
        until_day: date | None,
    ) -> list[Schedule]:
        if until_day is None:
            raise PolicyViolationException(
                "Student has no class end date; provide an end date for the recurring schedule",
            )
        if until_day < day:
            raise PolicyViolationException("Recurring schedule end date is before its first date")

        rule = weekly_rule(start_time, apply_time_to_date(until_day, END_OF_DAY, policy.timezone))
        duration_hours = policy.resolve_duration_hours(payload.duration)

        created: list[Schedule] = []
        parent: Schedule | None = None
        for occurrence in expand(rule):
            occurrence_end = calculate_end_time(occurrence, duration_hours)
            await self.checker.ensure_available(organization_id, student_id, occurrence, occurrence_end)
            schedule = await self.scheduling_repository.insert_schedule(
                organization_id=organization_id,
                student_id=student_id,
                program_id=payload.program_id,
                start_time=occurrence,
                end_time=occurrence_end,
                rrule=format_rule(rule) if parent is None else None,
                parent_schedule_id=parent.id if parent is not None else None,
            )
            if parent is None:
                parent = schedule
            created.append(schedule)
        return created

    async def admin_update_schedule(
        self,
        schedule_id: UUID,
        payload: AdminScheduleUpdateRequest,
        actor: User,
    ) -> list[Schedule]:
        """Move or reassign one schedule, or every upcoming row of its series."""
        async with self._operation("admin_update"):
            schedule = await self._get_schedule(schedule_id)
            admin = await resolve_membership(
                self.organization_repository,
                actor,
                MemberRoleEnum.ADMIN,
                schedule.organization_id,
            )
            organization = admin.organization
            policy = await self._load_policy(organization)
            now = utc_now()

            if not policy.can_modify(schedule.start_time, now):
                raise PolicyViolationException("Past schedules cannot be modified")

            student_id = payload.student_id or schedule.student_id
            if student_id != schedule.student_id:
                await self._ensure_student(organization.id, student_id)
            await self._ensure_program(organization.id, payload.program_id)

            day = parse_date_string(payload.date)
            if day < policy.today(now):
                raise PolicyViolationException("Schedules cannot be moved to past dates")
            start_time, end_time = policy.build_interval(day, payload.start_time, payload.duration)

            series_id = schedule.series_id
            if payload.scope == ScheduleScopeEnum.FUTURE and series_id is not None:
                updated = await self._update_series(
                    policy,
                    schedule,
                    series_id,
                    student_id,
                    payload,
                    start_time,
                    end_time,
                )
            else:
                await self.checker.ensure_available(
                    organization.id,
                    student_id,
                    start_time,
                    end_time,
                    exclude_ids={schedule.id},
                )
                schedule.student_id = student_id
                schedule.program_id = payload.program_id
                schedule.start_time = start_time
                schedule.end_time = end_time
                schedule.is_exception = series_id is not None
                updated = [await self.scheduling_repository.save(schedule)]
            logger.info("Admin %s updated %s schedule(s) from %s", actor.id, len(updated), schedule.id)
        return updated

    async def _update_series(
        self,
        policy: SchedulePolicy,
        schedule: Schedule,
        series_id: UUID,
        student_id: UUID,
        payload: AdminScheduleUpdateRequest,
        start_time: datetime,
        end_time: datetime,
    ) -> list[Schedule]:
        rows = await self.scheduling_repository.list_series(series_id, from_time=schedule.start_time)
        moving_ids = {row.id for row in rows}

        at = parse_time_string(payload.start_time)
        duration_hours = policy.resolve_duration_hours(payload.duration)
        planned = []
        for row in rows:
            if row.id == schedule.id:
                new_start, new_end = start_time, end_time
            else:
                new_start = apply_time_to_date(local_date(row.start_time, policy.timezone), at, policy.timezone)
                new_end = calculate_end_time(new_start, duration_hours)
            await self.checker.ensure_available(
                schedule.organization_id,
                student_id,
                new_start,
                new_end,
                exclude_ids=moving_ids,
            )
            planned.append((row, new_start, new_end))

        original_day = local_date(schedule.start_time, policy.timezone)
        for row, new_start, new_end in planned:
            row.student_id = student_id
            row.program_id = payload.program_id
            row.start_time = new_start
            row.end_time = new_end
            # Rows already moved off their rule date stay exceptions.
            row.is_exception = row.is_exception or (
                row.id == schedule.id and local_date(new_start, policy.timezone) != original_day
            )

        updated = await self.scheduling_repository.save_all([row for row, _, _ in planned])
        return sorted(updated, key=lambda item: item.start_time)

    async def admin_delete_schedule(
        self,
        schedule_id: UUID,
        scope: ScheduleScopeEnum,
        actor: User,
    ) -> int:
        """Delete one schedule, or it and every later row of its series."""
        async with self._operation("admin_delete"):
            schedule = await self._get_schedule(schedule_id)
            admin = await resolve_membership(
                self.organization_repository,
                actor,
                MemberRoleEnum.ADMIN,
                schedule.organization_id,
            )
            policy = await self._load_policy(admin.organization)
            if not policy.can_modify(schedule.start_time, utc_now()):
                raise PolicyViolationException("Past schedules cannot be deleted")

            series_id = schedule.series_id
            if scope == ScheduleScopeEnum.FUTURE and series_id is not None:
                rows = await self.scheduling_repository.list_series(series_id, from_time=schedule.start_time)
                deleted = await self.scheduling_repository.delete_schedules([row.id for row in rows])
            else:
                await self.scheduling_repository.delete_schedule(schedule.id)
                deleted = 1
            logger.info("Admin %s deleted %s schedule(s) from %s", actor.id, deleted, schedule.id)
        return deleted

    async def list_organization_schedules(
        self,
        actor: User,
        organization_id: UUID | None,
        year: int,
        month: int,
        day: date | None = None,
    ) -> list[Schedule]:
        """Month or single-day view of an organization's schedules."""
        admin = await resolve_membership(self.organization_repository, actor, MemberRoleEnum.ADMIN, organization_id)
        tz = ZoneInfo(admin.organization.timezone)
        if day is not None:
            start, end = day_bounds(day, tz)
        else:
            start, end = month_bounds(year, month, tz)
        return await self.scheduling_repository.list_organization_schedules(admin.organization_id, start, end)

    async def get_series(self, schedule_id: UUID, actor: User) -> ScheduleSeriesRead:
        """Rule, upcoming dates and materialized rows of a schedule's series."""
        schedule = await self._get_schedule(schedule_id)
        admin = await resolve_membership(
            self.organization_repository,
            actor,
            MemberRoleEnum.ADMIN,
            schedule.organization_id,
        )
        series_id = schedule.series_id
        if series_id is None:
            raise NotFoundException("Schedule is not part of a recurring series")

        parent = schedule if schedule.id == series_id else await self.scheduling_repository.get_schedule_by_id(series_id)
        if parent is None or not parent.rrule:
            raise NotFoundException("Recurring series rule not found")

        tz = ZoneInfo(admin.organization.timezone)
        rows = await self.scheduling_repository.list_series(series_id)
        try:
            remaining = remaining_occurrences(parent.rrule, utc_now())
            occurrences = [
                SeriesOccurrenceRead(
                    schedule=ScheduleRead.model_validate(row),
                    matches_rule=is_valid_occurrence(parent.rrule, row.start_time.astimezone(tz)),
                )
                for row in rows
            ]
        except RecurrenceRuleError as exc:
            raise BusinessRuleException(f"Stored recurrence rule is invalid: {exc}") from exc

        return ScheduleSeriesRead(
            series_id=series_id,
            rrule=parent.rrule,
            remaining_dates=[local_date(item, tz) for item in remaining],
            occurrences=occurrences,
        )


async def get_schedule_service(session: AsyncSession = Depends(get_db_session)) -> ScheduleService:
    """Dependency provider for schedule service."""
    return ScheduleService(
        scheduling_repository=SchedulingRepository(session),
        organization_repository=OrganizationRepository(session),
    )
