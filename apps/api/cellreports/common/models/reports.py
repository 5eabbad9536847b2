"""Attendance models (monthly reports and weekly presences)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    TIMESTAMP,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from cellreports.common.models.base import Base
from cellreports.common.models.directory import utcnow


class Report(Base):
    """Attendance report for one cell and one (month, year) period.

    Draft while ``submitted_at`` is null, Submitted (terminal) once set.
    Months are stored 1-based.
    """

    __tablename__ = "reports"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    cell_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("cells.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    submitted_by: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True))
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("cell_id", "month", "year", name="uq_reports_cell_period"),
        CheckConstraint("month >= 1 AND month <= 12", name="month_range"),
        Index("ix_reports_period", "year", "month"),
    )

    @property
    def is_locked(self) -> bool:
        return self.submitted_at is not None


class Presence(Base):
    """One member's attendance for one week of a report."""

    __tablename__ = "presences"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    report_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    member_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    cell_attended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    service_attended: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "report_id", "member_id", "week", name="uq_presences_report_member_week"
        ),
        CheckConstraint("week >= 1 AND week <= 4", name="week_range"),
    )
