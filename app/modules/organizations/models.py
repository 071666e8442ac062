"""Organization ORM models."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import MemberRoleEnum, MemberStateEnum

if TYPE_CHECKING:
    from app.modules.identity.models import User


def _enum_values(enum_cls) -> list[str]:
    """Persist enum values ('student') rather than member names."""
    return [item.value for item in enum_cls]


class Organization(BaseModelMixin, Base):
    """Lesson studio; the tenant boundary for every other row."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), default="Asia/Seoul", nullable=False)

    members: Mapped[list["OrganizationMember"]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan",
    )
    programs: Mapped[list["Program"]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan",
    )
    settings: Mapped[list["OrganizationSetting"]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan",
    )


class OrganizationMember(BaseModelMixin, Base):
    """Binds a user to an organization with a role and state."""

    __tablename__ = "organization_members"
    __table_args__ = (UniqueConstraint("organization_id", "user_id", name="uq_organization_members_org_user"),)

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[MemberRoleEnum] = mapped_column(
        SAEnum(MemberRoleEnum, name="member_role_enum", native_enum=False, values_callable=_enum_values),
        default=MemberRoleEnum.STUDENT,
        nullable=False,
    )
    state: Mapped[MemberStateEnum] = mapped_column(
        SAEnum(MemberStateEnum, name="member_state_enum", native_enum=False, values_callable=_enum_values),
        default=MemberStateEnum.NORMAL,
        nullable=False,
    )
    class_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    organization: Mapped[Organization] = relationship(back_populates="members")
    user: Mapped["User"] = relationship(back_populates="memberships")


class Program(BaseModelMixin, Base):
    """Class offered by an organization."""

    __tablename__ = "programs"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    organization: Mapped[Organization] = relationship(back_populates="programs")


class OrganizationSetting(BaseModelMixin, Base):
    """Per-organization key/value setting stored as ``{"value": ...}``."""

    __tablename__ = "organization_settings"
    __table_args__ = (UniqueConstraint("organization_id", "key", name="uq_organization_settings_org_key"),)

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    key: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[dict[str, Any]] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)

    organization: Mapped[Organization] = relationship(back_populates="settings")
