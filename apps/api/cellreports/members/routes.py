"""Members API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cellreports.auth.context import CallerContext
from cellreports.auth.dependencies import get_current_caller
from cellreports.common.db import get_db
from cellreports.members import schemas
from cellreports.members.service import MemberService

router = APIRouter(prefix="/members", tags=["members"])


@router.post("/{member_id}/deactivate", response_model=schemas.MemberResponse)
async def deactivate_member(
    member_id: UUID,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Deactivate a member; their presence history is kept."""
    member = MemberService.deactivate_member(db, caller, member_id)
    return schemas.MemberResponse.model_validate(member)


@router.post("/{member_id}/reactivate", response_model=schemas.MemberResponse)
async def reactivate_member(
    member_id: UUID,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Reactivate a previously deactivated member."""
    member = MemberService.reactivate_member(db, caller, member_id)
    return schemas.MemberResponse.model_validate(member)


@router.delete("/{member_id}", response_model=schemas.MemberPurgeResponse)
async def hard_delete_member(
    member_id: UUID,
    force: bool = Query(False),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Permanently delete a member and their presences. Administrators only."""
    purged = MemberService.hard_delete_member(db, caller, member_id, force=force)
    return schemas.MemberPurgeResponse(member_id=member_id, presences_deleted=purged)
