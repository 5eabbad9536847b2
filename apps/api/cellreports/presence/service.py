"""Presence ledger: per-member, per-week attendance inside a report."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from cellreports.auth.context import CallerContext
from cellreports.common.db import run_with_retry, transaction
from cellreports.common.models import Cell, Member, Presence, Report
from cellreports.common.period import validate_week
from cellreports.common.scope_validation import (
    get_member_for_account,
    get_report_for_account,
    require_member_in_cell,
)
from cellreports.core.business_metrics import BusinessMetric, MetricCategory
from cellreports.core.errors import ConflictError
from cellreports.core.metrics import emit_business_metric

logger = logging.getLogger(__name__)

# Coarse (member, status) snapshots carry no week; they always land here.
SNAPSHOT_WEEK = 1


class AttendanceStatus(str, Enum):
    """Coarse attendance for one member over a snapshot."""

    NONE = "none"
    CELL = "cell"
    SERVICE = "service"
    BOTH = "both"

    @property
    def cell_attended(self) -> bool:
        return self in (AttendanceStatus.CELL, AttendanceStatus.BOTH)

    @property
    def service_attended(self) -> bool:
        return self in (AttendanceStatus.SERVICE, AttendanceStatus.BOTH)


def _ensure_draft(report: Report) -> None:
    if report.is_locked:
        raise ConflictError(
            "Report has been submitted; its presence records are read-only",
            details={"report_id": str(report.id)},
        )


class PresenceService:
    """Service for recording and reading presence."""

    @staticmethod
    def _find_presence(
        db: Session, report_id: UUID, member_id: UUID, week: int
    ) -> Optional[Presence]:
        return db.execute(
            select(Presence).where(
                Presence.report_id == report_id,
                Presence.member_id == member_id,
                Presence.week == week,
            )
        ).scalar_one_or_none()

    @staticmethod
    def _upsert(
        db: Session,
        report_id: UUID,
        member_id: UUID,
        week: int,
        cell_attended: bool,
        service_attended: bool,
        notes: Optional[str] = None,
        set_notes: bool = True,
    ) -> Presence:
        """Insert or overwrite the record for (report, member, week) and flush."""
        presence = PresenceService._find_presence(db, report_id, member_id, week)
        if presence is None:
            presence = Presence(
                report_id=report_id,
                member_id=member_id,
                week=week,
                notes=notes,
            )
            db.add(presence)
        elif set_notes:
            presence.notes = notes

        presence.cell_attended = cell_attended
        presence.service_attended = service_attended
        # Surfaces a lost insert race as IntegrityError inside the transaction
        db.flush()
        return presence

    @staticmethod
    def apply_snapshot(
        db: Session,
        report: Report,
        cell: Cell,
        account_id: UUID,
        entries: Iterable[tuple[UUID, AttendanceStatus]],
    ) -> list[Presence]:
        """
        Write a coarse attendance snapshot into week 1 of a draft report.

        Every entry is validated before anything is written. Members not
        mentioned, and weeks 2-4 of mentioned members, are left alone. When a
        member appears more than once the last entry wins.

        Must run inside the caller's transaction.
        """
        latest: dict[UUID, AttendanceStatus] = {}
        for member_id, status in entries:
            latest[member_id] = AttendanceStatus(status)

        for member_id in latest:
            member = get_member_for_account(db, member_id, account_id)
            require_member_in_cell(member, cell)

        presences = [
            PresenceService._upsert(
                db,
                report.id,
                member_id,
                SNAPSHOT_WEEK,
                status.cell_attended,
                status.service_attended,
                set_notes=False,
            )
            for member_id, status in latest.items()
        ]

        emit_business_metric(
            BusinessMetric.PRESENCE_SNAPSHOT_APPLIED,
            value=len(presences),
            category=MetricCategory.PRESENCE,
            report_id=report.id,
        )
        return presences

    @staticmethod
    def record_presence(
        db: Session,
        caller: CallerContext,
        report_id: UUID,
        member_id: UUID,
        week: int,
        cell_attended: bool,
        service_attended: bool,
        notes: Optional[str] = None,
    ) -> Presence:
        """
        Record one member's attendance for one week of a draft report.

        Idempotent: recording the same key again overwrites the flags and
        notes (last write wins).

        Raises:
            InvalidArgumentError: week outside 1..4, or member of another cell
            NotFoundError: report or member outside the caller's account
            ConflictError: report already submitted
        """
        validate_week(week)

        def _record() -> Presence:
            with transaction(db):
                report, cell = get_report_for_account(
                    db, report_id, caller.account_id, lock=True
                )
                member = get_member_for_account(db, member_id, caller.account_id)
                require_member_in_cell(member, cell)
                _ensure_draft(report)

                presence = PresenceService._upsert(
                    db,
                    report.id,
                    member.id,
                    week,
                    cell_attended,
                    service_attended,
                    notes=notes,
                )
            return presence

        presence = run_with_retry(db, _record, operation="record_presence")
        db.refresh(presence)

        emit_business_metric(
            BusinessMetric.PRESENCE_RECORDED,
            category=MetricCategory.PRESENCE,
            week=week,
        )
        return presence

    @staticmethod
    def bulk_record_presence(
        db: Session,
        caller: CallerContext,
        report_id: UUID,
        entries: list[tuple[UUID, AttendanceStatus]],
    ) -> list[Presence]:
        """
        Apply a (member, status) snapshot to a draft report atomically.

        Raises:
            NotFoundError: report or any member outside the caller's account
            InvalidArgumentError: any member of another cell
            ConflictError: report already submitted
        """

        def _record_all() -> list[Presence]:
            with transaction(db):
                report, cell = get_report_for_account(
                    db, report_id, caller.account_id, lock=True
                )
                _ensure_draft(report)
                presences = PresenceService.apply_snapshot(
                    db, report, cell, caller.account_id, entries
                )
            return presences

        presences = run_with_retry(db, _record_all, operation="bulk_record_presence")
        for presence in presences:
            db.refresh(presence)
        logger.info(f"Applied {len(presences)} snapshot entries to report {report_id}")
        return presences

    @staticmethod
    def list_presences(
        db: Session, caller: CallerContext, report_id: UUID
    ) -> list[Presence]:
        """List a report's presence records, ordered by week then member name."""
        report, _ = get_report_for_account(db, report_id, caller.account_id)
        stmt = (
            select(Presence)
            .join(Member, Member.id == Presence.member_id)
            .where(Presence.report_id == report.id)
            .order_by(Presence.week, Member.name)
        )
        return list(db.execute(stmt).scalars().all())
