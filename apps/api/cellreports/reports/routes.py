"""Reports API routes."""

from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cellreports.auth.context import CallerContext
from cellreports.auth.dependencies import get_current_caller
from cellreports.common.db import get_db
from cellreports.common.models import Report
from cellreports.common.period import normalize_month
from cellreports.presence.routes import presence_to_response
from cellreports.presence.service import PresenceService
from cellreports.reports import schemas
from cellreports.reports.service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


def report_to_response(report: Report) -> schemas.ReportResponse:
    return schemas.ReportResponse(
        id=report.id,
        cell_id=report.cell_id,
        month=report.month,
        year=report.year,
        notes=report.notes,
        is_locked=report.is_locked,
        submitted_at=report.submitted_at.isoformat() if report.submitted_at else None,
        submitted_by=report.submitted_by,
        created_by=report.created_by,
        created_at=report.created_at.isoformat(),
        updated_at=report.updated_at.isoformat(),
    )


# Sync handler: run_with_retry may sleep between attempts
@router.post("", response_model=schemas.ReportResponse)
def ensure_report(
    request: schemas.ReportEnsureRequest,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Get the report of a cell for a period, creating a draft if none exists."""
    report = ReportService.ensure_report(
        db=db,
        caller=caller,
        cell_id=request.cell_id,
        month=request.month,
        year=request.year,
        notes=request.notes,
    )
    return report_to_response(report)


@router.get("", response_model=list[schemas.ReportResponse])
async def list_reports(
    cell_id: Optional[UUID] = Query(None),
    month: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    month_base: Literal[0, 1] = Query(1),
    submitted: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """List reports with optional filters."""
    reports = ReportService.list_reports(
        db=db,
        caller=caller,
        cell_id=cell_id,
        month=normalize_month(month, month_base) if month is not None else None,
        year=year,
        submitted=submitted,
        limit=limit,
        offset=offset,
    )
    return [report_to_response(r) for r in reports]


@router.get("/{report_id}", response_model=schemas.ReportDetailResponse)
async def get_report(
    report_id: UUID,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Get a report with its presence records."""
    report = ReportService.get_report(db, caller, report_id)
    presences = PresenceService.list_presences(db, caller, report_id)

    return schemas.ReportDetailResponse(
        **report_to_response(report).model_dump(),
        presences=[presence_to_response(p) for p in presences],
    )


@router.patch("/{report_id}", response_model=schemas.ReportResponse)
async def update_report_notes(
    report_id: UUID,
    request: schemas.ReportNotesUpdateRequest,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Replace a report's notes. Allowed after submission."""
    report = ReportService.update_notes(db, caller, report_id, request.notes)
    return report_to_response(report)


# Sync handler: run_with_retry may sleep between attempts
@router.post("/{report_id}/submit", response_model=schemas.ReportResponse)
def submit_report(
    report_id: UUID,
    request: Optional[schemas.ReportSubmitRequest] = None,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Submit a draft report. Irreversible; do not retry on conflict."""
    snapshot = request.snapshot_pairs() if request else None
    report = ReportService.submit_report(db, caller, report_id, snapshot=snapshot)
    return report_to_response(report)
