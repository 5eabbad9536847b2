"""Report lifecycle: ensure, annotate and submit monthly cell reports."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from cellreports.auth.context import CallerContext
from cellreports.common.audit import create_audit_log
from cellreports.common.db import run_with_retry, transaction
from cellreports.common.models import Cell, Report
from cellreports.common.models.directory import utcnow
from cellreports.common.period import Period, validate_month
from cellreports.common.scope_validation import (
    get_cell_for_account,
    get_report_for_account,
    require_submit_authority,
)
from cellreports.core.business_metrics import BusinessMetric, MetricCategory
from cellreports.core.config import settings
from cellreports.core.errors import ConflictError, UnavailableError
from cellreports.core.metrics import emit_business_metric
from cellreports.presence.service import AttendanceStatus, PresenceService

logger = logging.getLogger(__name__)


def _report_state(report: Report) -> dict:
    return {
        "id": str(report.id),
        "cell_id": str(report.cell_id),
        "month": report.month,
        "year": report.year,
        "notes": report.notes,
        "submitted_at": report.submitted_at.isoformat() if report.submitted_at else None,
    }


class ReportService:
    """Service for the Draft -> Submitted report lifecycle."""

    @staticmethod
    def _find_report(db: Session, cell_id: UUID, period: Period) -> Optional[Report]:
        return db.execute(
            select(Report).where(
                Report.cell_id == cell_id,
                Report.month == period.month,
                Report.year == period.year,
            )
        ).scalar_one_or_none()

    @staticmethod
    def ensure_report(
        db: Session,
        caller: CallerContext,
        cell_id: UUID,
        month: int,
        year: int,
        notes: Optional[str] = None,
    ) -> Report:
        """
        Return the report for (cell, month, year), creating a draft if absent.

        Idempotent. An existing report is returned unchanged whatever its
        state; ``notes`` only seed a newly created draft. Concurrent callers
        for the same key all receive the single surviving row.

        Raises:
            InvalidArgumentError: month outside 1..12 or implausible year
            NotFoundError: cell outside the caller's account
        """
        period = Period(year=year, month=month).validate(settings.min_report_year)

        def _ensure() -> tuple[Report, bool]:
            with transaction(db):
                cell = get_cell_for_account(db, cell_id, caller.account_id)
                existing = ReportService._find_report(db, cell.id, period)
                if existing:
                    return existing, False

                report = Report(
                    cell_id=cell.id,
                    month=period.month,
                    year=period.year,
                    notes=notes,
                    created_by=caller.user_id,
                )
                db.add(report)
                db.flush()

                create_audit_log(
                    db,
                    cell.account_id,
                    caller.user_id,
                    "create",
                    "reports",
                    report.id,
                    None,
                    _report_state(report),
                )
            return report, True

        report, created = run_with_retry(db, _ensure, operation="ensure_report")
        db.refresh(report)

        if created:
            logger.info(f"Created report {report.id} for cell {cell_id} period {period}")
            emit_business_metric(
                BusinessMetric.REPORT_CREATED,
                category=MetricCategory.REPORT,
                period=period,
            )
        return report

    @staticmethod
    def get_report(db: Session, caller: CallerContext, report_id: UUID) -> Report:
        report, _ = get_report_for_account(db, report_id, caller.account_id)
        return report

    @staticmethod
    def list_reports(
        db: Session,
        caller: CallerContext,
        cell_id: Optional[UUID] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
        submitted: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Report]:
        """List reports in the caller's account, newest period first."""
        stmt = (
            select(Report)
            .join(Cell, Cell.id == Report.cell_id)
            .where(Cell.account_id == caller.account_id)
        )

        if cell_id:
            stmt = stmt.where(Report.cell_id == cell_id)

        if month is not None:
            stmt = stmt.where(Report.month == validate_month(month))

        if year is not None:
            stmt = stmt.where(Report.year == year)

        if submitted is True:
            stmt = stmt.where(Report.submitted_at.is_not(None))
        elif submitted is False:
            stmt = stmt.where(Report.submitted_at.is_(None))

        stmt = (
            stmt.order_by(Report.year.desc(), Report.month.desc(), Cell.name)
            .limit(limit)
            .offset(offset)
        )

        return list(db.execute(stmt).scalars().all())

    @staticmethod
    def update_notes(
        db: Session,
        caller: CallerContext,
        report_id: UUID,
        notes: Optional[str],
    ) -> Report:
        """
        Replace a report's free-text notes.

        Permitted for drafts and submitted reports alike; presence and
        submission state are untouched.
        """
        with transaction(db):
            report, cell = get_report_for_account(db, report_id, caller.account_id)
            before_json = {"notes": report.notes}
            report.notes = notes

            create_audit_log(
                db,
                cell.account_id,
                caller.user_id,
                "update_notes",
                "reports",
                report.id,
                before_json,
                {"notes": notes},
            )

        db.refresh(report)
        emit_business_metric(
            BusinessMetric.REPORT_NOTES_UPDATED, category=MetricCategory.REPORT
        )
        return report

    @staticmethod
    def submit_report(
        db: Session,
        caller: CallerContext,
        report_id: UUID,
        snapshot: Optional[list[tuple[UUID, AttendanceStatus]]] = None,
    ) -> Report:
        """
        Move a draft report to Submitted. Irreversible.

        The optional ``snapshot`` is applied exactly like
        ``PresenceService.bulk_record_presence``; it and the submission
        timestamp commit together or not at all.

        Not safe to retry: a second call fails with ConflictError and the
        caller should re-fetch the report instead.

        Raises:
            NotFoundError: report outside the caller's account
            ConflictError: report already submitted
            ForbiddenError: caller is neither the cell leader nor an administrator
            InvalidArgumentError: snapshot names a member of another cell
            UnavailableError: storage failed mid-submit; never retryable, re-fetch
        """

        def _submit() -> Report:
            with transaction(db):
                report, cell = get_report_for_account(
                    db, report_id, caller.account_id, lock=True
                )
                if report.is_locked:
                    raise ConflictError(
                        "Report already submitted; re-fetch its state instead of retrying",
                        details={"report_id": str(report.id)},
                    )
                require_submit_authority(caller, cell)

                if snapshot:
                    PresenceService.apply_snapshot(
                        db, report, cell, caller.account_id, snapshot
                    )

                before_json = _report_state(report)
                submitted_at = utcnow()
                result = db.execute(
                    update(Report)
                    .where(Report.id == report.id, Report.submitted_at.is_(None))
                    .values(
                        submitted_at=submitted_at,
                        submitted_by=caller.user_id,
                        updated_at=submitted_at,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise ConflictError(
                        "Report was submitted concurrently; re-fetch its state",
                        details={"report_id": str(report.id)},
                    )

                create_audit_log(
                    db,
                    cell.account_id,
                    caller.user_id,
                    "submit",
                    "reports",
                    report.id,
                    before_json,
                    {**before_json, "submitted_at": submitted_at.isoformat()},
                )
            return report

        try:
            report = run_with_retry(db, _submit, operation="submit_report")
        except ConflictError:
            emit_business_metric(
                BusinessMetric.REPORT_SUBMIT_REJECTED,
                category=MetricCategory.REPORT,
                report_id=report_id,
            )
            raise
        except UnavailableError as exc:
            logger.warning(f"Submit of report {report_id} ended in an unknown state")
            raise UnavailableError(
                "Submission outcome unknown; re-fetch report state before retrying",
                retryable=False,
            ) from exc

        db.refresh(report)
        logger.info(f"Report {report.id} submitted by {caller.user_id}")
        emit_business_metric(
            BusinessMetric.REPORT_SUBMITTED, category=MetricCategory.REPORT
        )
        return report
