"""Scheduling ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin

STUDENT_OVERLAP_CONSTRAINT = "ex_schedules_student_overlap"


class Schedule(BaseModelMixin, Base):
    """One booked time slot of a student.

    Rows of a weekly series point at the first row (which stores the rule)
    through ``parent_schedule_id``. The migration adds a GiST exclusion
    constraint so a student can never hold two overlapping rows.
    """

    __tablename__ = "schedules"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="end_after_start"),
        Index("ix_schedules_organization_time", "organization_id", "start_time", "end_time"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    program_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("programs.id", ondelete="SET NULL"),
        nullable=True,
    )
    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    rrule: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_schedule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("schedules.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_exception: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def series_id(self) -> UUID | None:
        """Id of the row holding the series rule, if this row is part of one."""
        if self.parent_schedule_id is not None:
            return self.parent_schedule_id
        if self.rrule:
            return self.id
        return None
