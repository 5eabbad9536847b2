"""Pydantic schemas for the presence ledger."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from cellreports.presence.service import AttendanceStatus


class PresenceRecordRequest(BaseModel):
    """Request to record one member's attendance for one week."""

    member_id: UUID
    week: int
    cell_attended: bool = False
    service_attended: bool = False
    notes: Optional[str] = None


class SnapshotEntry(BaseModel):
    """One (member, coarse status) pair of an attendance snapshot."""

    member_id: UUID
    status: AttendanceStatus


class PresenceBulkRequest(BaseModel):
    """Request to apply a coarse attendance snapshot to week 1."""

    entries: list[SnapshotEntry] = Field(default_factory=list)

    def as_pairs(self) -> list[tuple[UUID, AttendanceStatus]]:
        return [(entry.member_id, entry.status) for entry in self.entries]


class PresenceResponse(BaseModel):
    """Response with a presence record."""

    id: UUID
    report_id: UUID
    member_id: UUID
    week: int
    cell_attended: bool
    service_attended: bool
    notes: Optional[str]
    created_at: str
    updated_at: str

    model_config = {
        "from_attributes": True,
    }
