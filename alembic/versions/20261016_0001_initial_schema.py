"""Initial schema

Revision ID: 20261016_0001
Revises:
Create Date: 2026-10-16 10:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261016_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


member_role_enum = sa.Enum("student", "admin", name="member_role_enum", native_enum=False)
member_state_enum = sa.Enum("normal", "graduate", "deleted", name="member_state_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "organizations",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=False),
    )

    op.create_table(
        "organization_members",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", member_role_enum, nullable=False),
        sa.Column("state", member_state_enum, nullable=False),
        sa.Column("class_end_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organizations.id"],
            name="fk_organization_members_organization_id_organizations",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_organization_members_user_id_users",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_organization_members_org_user"),
    )
    op.create_index(
        "ix_organization_members_organization_id",
        "organization_members",
        ["organization_id"],
        unique=False,
    )
    op.create_index("ix_organization_members_user_id", "organization_members", ["user_id"], unique=False)

    op.create_table(
        "programs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organizations.id"],
            name="fk_programs_organization_id_organizations",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_programs_organization_id", "programs", ["organization_id"], unique=False)

    op.create_table(
        "organization_settings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("value", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organizations.id"],
            name="fk_organization_settings_organization_id_organizations",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("organization_id", "key", name="uq_organization_settings_org_key"),
    )
    op.create_index(
        "ix_organization_settings_organization_id",
        "organization_settings",
        ["organization_id"],
        unique=False,
    )

    op.create_table(
        "schedules",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("program_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rrule", sa.Text(), nullable=True),
        sa.Column("parent_schedule_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_exception", sa.Boolean(), nullable=False),
        sa.CheckConstraint("end_time > start_time", name="ck_schedules_end_after_start"),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organizations.id"],
            name="fk_schedules_organization_id_organizations",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["program_id"],
            ["programs.id"],
            name="fk_schedules_program_id_programs",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["users.id"],
            name="fk_schedules_student_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["parent_schedule_id"],
            ["schedules.id"],
            name="fk_schedules_parent_schedule_id_schedules",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_schedules_organization_id", "schedules", ["organization_id"], unique=False)
    op.create_index("ix_schedules_student_id", "schedules", ["student_id"], unique=False)
    op.create_index("ix_schedules_parent_schedule_id", "schedules", ["parent_schedule_id"], unique=False)
    op.create_index(
        "ix_schedules_organization_time",
        "schedules",
        ["organization_id", "start_time", "end_time"],
        unique=False,
    )
    op.execute(
        """
        ALTER TABLE schedules
          ADD CONSTRAINT ex_schedules_student_overlap
          EXCLUDE USING gist (
            student_id WITH =,
            tstzrange(start_time, end_time, '[)') WITH &&
          )
        """
    )


def downgrade() -> None:
    op.execute("ALTER TABLE schedules DROP CONSTRAINT IF EXISTS ex_schedules_student_overlap")
    op.drop_index("ix_schedules_organization_time", table_name="schedules")
    op.drop_index("ix_schedules_parent_schedule_id", table_name="schedules")
    op.drop_index("ix_schedules_student_id", table_name="schedules")
    op.drop_index("ix_schedules_organization_id", table_name="schedules")
    op.drop_table("schedules")

    op.drop_index("ix_organization_settings_organization_id", table_name="organization_settings")
    op.drop_table("organization_settings")

    op.drop_index("ix_programs_organization_id", table_name="programs")
    op.drop_table("programs")

    op.drop_index("ix_organization_members_user_id", table_name="organization_members")
    op.drop_index("ix_organization_members_organization_id", table_name="organization_members")
    op.drop_table("organization_members")

    op.drop_table("organizations")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
