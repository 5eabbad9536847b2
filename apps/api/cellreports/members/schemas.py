"""Pydantic schemas for Members module."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class MemberResponse(BaseModel):
    """Response with member details."""

    id: UUID
    cell_id: UUID
    name: str
    phone: Optional[str]
    email: Optional[str]
    is_consolidator: bool
    is_co_leader: bool
    is_host: bool
    active: bool

    model_config = {
        "from_attributes": True,
    }


class MemberPurgeResponse(BaseModel):
    """Outcome of a hard delete."""

    member_id: UUID
    presences_deleted: int
