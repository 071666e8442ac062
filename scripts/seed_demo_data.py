"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass, field
from datetime import date, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.core.enums import MemberRoleEnum, SettingKeyEnum
from app.core.security import create_access_token
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.service import IdentityService
from app.modules.organizations.models import Organization, Program
from app.modules.organizations.repository import OrganizationRepository
from app.modules.scheduling.models import Schedule
from app.modules.scheduling.repository import SchedulingRepository
from app.modules.scheduling.schemas import AdminScheduleCreateRequest
from app.modules.scheduling.service import ScheduleService
from app.shared.exceptions import AppException
from app.shared.utils import local_date, utc_now

DEMO_ORGANIZATION_NAME = "Demo Studio"
DEMO_PROGRAM_TITLE = "Portfolio Drawing"

DEMO_ADMIN_EMAIL = "demo-admin@studio-scheduler.dev"
DEMO_STUDENT_EMAILS = (
    "demo-student-1@studio-scheduler.dev",
    "demo-student-2@studio-scheduler.dev",
)

DEMO_MAX_CONCURRENT_STUDENTS = 2
DEMO_CLASS_LENGTH_DAYS = 60
DEMO_SCHEDULE_DAY_OFFSETS = (1, 2, 3)
DEMO_SCHEDULE_START = "10:00"


@dataclass(slots=True)
class SeedStats:
    users_created: int = 0
    organization_created: bool = False
    organization_id: str | None = None
    schedules_created: int = 0
    schedules_skipped: int = 0
    tokens: dict[str, str] = field(default_factory=dict)


async def _ensure_organization(session: AsyncSession, admin: User) -> tuple[Organization, bool]:
    repository = OrganizationRepository(session)
    organization = await session.scalar(
        select(Organization).where(Organization.name == DEMO_ORGANIZATION_NAME),
    )
    created = False
    if organization is None:
        organization = await repository.create_organization(
            name=DEMO_ORGANIZATION_NAME,
            description="Studio used for demo scenarios.",
            timezone=get_settings().default_timezone,
        )
        await repository.initialize_default_settings(organization.id)
        created = True

    if await repository.get_membership(organization.id, admin.id) is None:
        await repository.create_membership(organization.id, admin.id, MemberRoleEnum.ADMIN)
    await repository.upsert_setting(
        organization.id,
        SettingKeyEnum.MAX_CONCURRENT_STUDENTS,
        DEMO_MAX_CONCURRENT_STUDENTS,
    )
    return organization, created


async def _ensure_program(session: AsyncSession, organization: Organization) -> Program:
    program = await session.scalar(
        select(Program).where(
            Program.organization_id == organization.id,
            Program.title == DEMO_PROGRAM_TITLE,
        ),
    )
    if program is None:
        program = await OrganizationRepository(session).create_program(
            organization.id,
            DEMO_PROGRAM_TITLE,
            "Weekly drawing class.",
        )
    return program


async def _ensure_students(
    session: AsyncSession,
    organization: Organization,
    identity_service: IdentityService,
) -> list[User]:
    repository = OrganizationRepository(session)
    class_end_date = date.today() + timedelta(days=DEMO_CLASS_LENGTH_DAYS)
    students: list[User] = []
    for email in DEMO_STUDENT_EMAILS:
        user = await identity_service.get_or_create_user(email, email.split("@")[0])
        if await repository.get_membership(organization.id, user.id) is None:
            await repository.create_membership(
                organization.id,
                user.id,
                MemberRoleEnum.STUDENT,
                class_end_date=class_end_date,
            )
        students.append(user)
    return students


async def _ensure_demo_schedules(
    session: AsyncSession,
    *,
    admin: User,
    organization: Organization,
    program: Program,
    students: list[User],
    stats: SeedStats,
) -> None:
    existing = await session.scalar(
        select(Schedule.id).where(Schedule.organization_id == organization.id).limit(1),
    )
    if existing is not None:
        return

    service = ScheduleService(SchedulingRepository(session), OrganizationRepository(session))
    today = local_date(utc_now(), ZoneInfo(organization.timezone))
    requests = [
        AdminScheduleCreateRequest(
            organization_id=organization.id,
            student_id=students[0].id,
            program_id=program.id,
            date=(today + timedelta(days=1)).isoformat(),
            start_time=DEMO_SCHEDULE_START,
            is_recurring=True,
        ),
    ]
    for offset in DEMO_SCHEDULE_DAY_OFFSETS[1:]:
        requests.append(
            AdminScheduleCreateRequest(
                organization_id=organization.id,
                student_id=students[1].id,
                program_id=program.id,
                date=(today + timedelta(days=offset)).isoformat(),
                start_time=DEMO_SCHEDULE_START,
                duration="2",
            ),
        )

    for request in requests:
        try:
            async with session.begin_nested():
                created = await service.admin_create_schedule(request, admin)
        except AppException as exc:
            print(f"Skipped demo schedule on {request.date}: {exc.message}")
            stats.schedules_skipped += 1
            continue
        stats.schedules_created += len(created)


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            identity_repository = IdentityRepository(session)
            identity_service = IdentityService(identity_repository)

            admin_existed = await identity_repository.get_user_by_email(DEMO_ADMIN_EMAIL) is not None
            admin = await identity_service.get_or_create_user(DEMO_ADMIN_EMAIL, "Demo Admin")
            organization, stats.organization_created = await _ensure_organization(session, admin)
            stats.organization_id = str(organization.id)
            program = await _ensure_program(session, organization)

            before = len(
                [
                    email
                    for email in DEMO_STUDENT_EMAILS
                    if await identity_repository.get_user_by_email(email) is not None
                ],
            )
            students = await _ensure_students(session, organization, identity_service)
            stats.users_created = (0 if admin_existed else 1) + len(students) - before

            await _ensure_demo_schedules(
                session,
                admin=admin,
                organization=organization,
                program=program,
                students=students,
                stats=stats,
            )

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    for user in (admin, *students):
        stats.tokens[user.email] = create_access_token(str(user.id))
    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for StudioScheduler (organization, admin, "
            "students, program, schedules)."
        ),
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Users created: {stats.users_created}")
    print(f"- Organization created: {stats.organization_created}")
    print(f"- Organization id: {stats.organization_id}")
    print(f"- Schedules created: {stats.schedules_created}")
    print(f"- Schedules skipped: {stats.schedules_skipped}")
    print("")
    print("Demo bearer tokens (non-production only):")
    for email, token in stats.tokens.items():
        print(f"- {email}: {token}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
