"""Pydantic schemas for the statistics endpoints."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class GroupFrequencyResponse(BaseModel):
    active_member_count: int
    cell_count: int
    service_count: int
    cell_percentage: float
    service_percentage: float
    percentage: float

    model_config = {
        "from_attributes": True,
    }


class CellPeriodStatsResponse(BaseModel):
    """Frequency of one cell for one reported period."""

    report_id: UUID
    cell_id: UUID
    month: int
    year: int
    submitted: bool
    frequency: GroupFrequencyResponse


class PeriodComparisonResponse(BaseModel):
    """A cell's frequency against the previous period."""

    cell_id: UUID
    month: int
    year: int
    previous_month: int
    previous_year: int
    current_percentage: float
    previous_percentage: float
    growth_percent: float


class LeaderRankResponse(BaseModel):
    position: int
    leader_id: UUID
    leader_name: Optional[str]
    cell_total: int
    member_total: int
    cell_count: int
    service_count: int
    cell_percentage: float
    service_percentage: float
    combined_average: float

    model_config = {
        "from_attributes": True,
    }
