"""Presence ledger API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cellreports.auth.context import CallerContext
from cellreports.auth.dependencies import get_current_caller
from cellreports.common.db import get_db
from cellreports.common.models import Presence
from cellreports.presence import schemas
from cellreports.presence.service import PresenceService

router = APIRouter(prefix="/reports", tags=["presences"])


def presence_to_response(presence: Presence) -> schemas.PresenceResponse:
    return schemas.PresenceResponse(
        id=presence.id,
        report_id=presence.report_id,
        member_id=presence.member_id,
        week=presence.week,
        cell_attended=presence.cell_attended,
        service_attended=presence.service_attended,
        notes=presence.notes,
        created_at=presence.created_at.isoformat(),
        updated_at=presence.updated_at.isoformat(),
    )


# Sync handler: run_with_retry may sleep between attempts
@router.post("/{report_id}/presences", response_model=schemas.PresenceResponse)
def record_presence(
    report_id: UUID,
    request: schemas.PresenceRecordRequest,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Record (or overwrite) one member's attendance for one week."""
    presence = PresenceService.record_presence(
        db=db,
        caller=caller,
        report_id=report_id,
        member_id=request.member_id,
        week=request.week,
        cell_attended=request.cell_attended,
        service_attended=request.service_attended,
        notes=request.notes,
    )
    return presence_to_response(presence)


# Sync handler: run_with_retry may sleep between attempts
@router.post(
    "/{report_id}/presences/bulk", response_model=list[schemas.PresenceResponse]
)
def bulk_record_presence(
    report_id: UUID,
    request: schemas.PresenceBulkRequest,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Apply a coarse (member, status) snapshot to week 1 of a draft report."""
    presences = PresenceService.bulk_record_presence(
        db=db,
        caller=caller,
        report_id=report_id,
        entries=request.as_pairs(),
    )
    return [presence_to_response(p) for p in presences]


@router.get("/{report_id}/presences", response_model=list[schemas.PresenceResponse])
async def list_presences(
    report_id: UUID,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """List a report's presence records."""
    presences = PresenceService.list_presences(db, caller, report_id)
    return [presence_to_response(p) for p in presences]
