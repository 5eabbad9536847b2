"""Statistics API routes."""

from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from cellreports.auth.context import CallerContext
from cellreports.auth.dependencies import get_current_caller
from cellreports.common.db import get_db
from cellreports.common.period import normalize_month
from cellreports.statistics import schemas
from cellreports.statistics.service import StatisticsService

router = APIRouter(prefix="/statistics", tags=["statistics"])


@router.get(
    "/cells/{cell_id}", response_model=list[schemas.CellPeriodStatsResponse]
)
async def cell_statistics(
    cell_id: UUID,
    month: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    month_base: Literal[0, 1] = Query(1),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Frequency of one cell for each reported period, newest first."""
    stats = StatisticsService.cell_statistics(
        db,
        caller,
        cell_id,
        month=normalize_month(month, month_base) if month is not None else None,
        year=year,
    )

    return [
        schemas.CellPeriodStatsResponse(
            report_id=s.report_id,
            cell_id=s.cell_id,
            month=s.month,
            year=s.year,
            submitted=s.submitted,
            frequency=schemas.GroupFrequencyResponse.model_validate(s.frequency),
        )
        for s in stats
    ]


@router.get(
    "/cells/{cell_id}/comparison", response_model=schemas.PeriodComparisonResponse
)
async def cell_period_comparison(
    cell_id: UUID,
    month: int = Query(...),
    year: int = Query(...),
    month_base: Literal[0, 1] = Query(1),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Compare a cell's frequency with the previous period."""
    comparison = StatisticsService.period_comparison(
        db, caller, cell_id, normalize_month(month, month_base), year
    )

    return schemas.PeriodComparisonResponse(
        cell_id=comparison.cell_id,
        month=comparison.period.month,
        year=comparison.period.year,
        previous_month=comparison.previous.month,
        previous_year=comparison.previous.year,
        current_percentage=comparison.current_percentage,
        previous_percentage=comparison.previous_percentage,
        growth_percent=comparison.growth_percent,
    )


@router.get("/ranking", response_model=list[schemas.LeaderRankResponse])
async def leader_ranking(
    month: int = Query(...),
    year: int = Query(...),
    month_base: Literal[0, 1] = Query(1),
    submitted_only: bool = Query(False),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Rank leaders by combined attendance for one period."""
    ranking = StatisticsService.leader_ranking(
        db,
        caller,
        normalize_month(month, month_base),
        year,
        submitted_only=submitted_only,
    )
    return [schemas.LeaderRankResponse.model_validate(rank) for rank in ranking]


@router.get("/ranking/export")
async def export_leader_ranking(
    month: int = Query(...),
    year: int = Query(...),
    month_base: Literal[0, 1] = Query(1),
    submitted_only: bool = Query(False),
    format: Literal["csv", "xlsx"] = Query("csv"),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Download the leader ranking as CSV or Excel."""
    content, media_type, filename = StatisticsService.export_ranking(
        db,
        caller,
        normalize_month(month, month_base),
        year,
        fmt=format,
        submitted_only=submitted_only,
    )

    return StreamingResponse(
        iter([content]),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
