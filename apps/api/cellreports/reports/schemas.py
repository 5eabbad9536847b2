"""Pydantic schemas for Reports module."""

from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from cellreports.common.period import normalize_month
from cellreports.presence.schemas import PresenceResponse, SnapshotEntry
from cellreports.presence.service import AttendanceStatus


class ReportEnsureRequest(BaseModel):
    """Request to get or create the report of a cell for a period.

    ``month`` counts from ``month_base``; it is 1-based once validated.
    """

    cell_id: UUID
    month: int
    year: int
    month_base: Literal[0, 1] = 1
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _normalize_month(self):
        self.month = normalize_month(self.month, self.month_base)
        self.month_base = 1
        return self


class ReportNotesUpdateRequest(BaseModel):
    """Request to replace a report's notes."""

    notes: Optional[str] = Field(None, max_length=5000)


class ReportSubmitRequest(BaseModel):
    """Request to submit a report, optionally with a final attendance snapshot."""

    snapshot: Optional[list[SnapshotEntry]] = None

    def snapshot_pairs(self) -> Optional[list[tuple[UUID, AttendanceStatus]]]:
        if self.snapshot is None:
            return None
        return [(entry.member_id, entry.status) for entry in self.snapshot]


class ReportResponse(BaseModel):
    """Response with report details."""

    id: UUID
    cell_id: UUID
    month: int
    year: int
    notes: Optional[str]
    is_locked: bool
    submitted_at: Optional[str]
    submitted_by: Optional[UUID]
    created_by: Optional[UUID]
    created_at: str
    updated_at: str

    model_config = {
        "from_attributes": True,
    }


class ReportDetailResponse(ReportResponse):
    """Report with its presence records."""

    presences: list[PresenceResponse] = Field(default_factory=list)
