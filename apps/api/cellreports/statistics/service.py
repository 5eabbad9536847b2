"""Statistics loader: reads reports and presences, hands numbers to the calculator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from cellreports.auth.context import CallerContext
from cellreports.common.models import Cell, Member, Presence, Report, User
from cellreports.common.period import WEEKS_PER_PERIOD, Period, validate_month
from cellreports.common.scope_validation import get_cell_for_account
from cellreports.core.business_metrics import BusinessMetric, MetricCategory
from cellreports.core.config import settings
from cellreports.core.metrics import emit_business_metric
from cellreports.statistics import calculator
from cellreports.statistics.export_generators import CSVGenerator, ExcelGenerator

logger = logging.getLogger(__name__)

RANKING_COLUMNS = [
    "position",
    "leader_id",
    "leader_name",
    "cell_total",
    "member_total",
    "cell_count",
    "service_count",
    "cell_percentage",
    "service_percentage",
    "combined_average",
]

EXPORT_MEDIA_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@dataclass(frozen=True)
class GroupPeriodStats:
    """Frequency of one cell for one reported period."""

    report_id: UUID
    cell_id: UUID
    month: int
    year: int
    submitted: bool
    frequency: calculator.GroupFrequency


@dataclass(frozen=True)
class CellPeriodComparison:
    cell_id: UUID
    period: Period
    previous: Period
    current_percentage: float
    previous_percentage: float
    growth_percent: float


class StatisticsService:
    """Read-only, tenant-scoped statistics queries."""

    @staticmethod
    def _snapshot_query(account_id: UUID):
        attendance = (
            select(
                Presence.report_id.label("report_id"),
                func.sum(case((Presence.cell_attended.is_(True), 1), else_=0)).label(
                    "cell_count"
                ),
                func.sum(
                    case((Presence.service_attended.is_(True), 1), else_=0)
                ).label("service_count"),
            )
            .group_by(Presence.report_id)
            .subquery()
        )
        active_members = (
            select(
                Member.cell_id.label("cell_id"),
                func.count(Member.id).label("active_count"),
            )
            .where(Member.active.is_(True))
            .group_by(Member.cell_id)
            .subquery()
        )

        return (
            select(
                Report,
                Cell,
                User.name,
                func.coalesce(active_members.c.active_count, 0),
                func.coalesce(attendance.c.cell_count, 0),
                func.coalesce(attendance.c.service_count, 0),
            )
            .join(Cell, Cell.id == Report.cell_id)
            .outerjoin(User, User.id == Cell.leader_id)
            .outerjoin(attendance, attendance.c.report_id == Report.id)
            .outerjoin(active_members, active_members.c.cell_id == Cell.id)
            .where(Cell.account_id == account_id)
        )

    @staticmethod
    def _load(db: Session, stmt) -> list[tuple[Report, calculator.ReportSnapshot]]:
        rows = []
        for report, cell, leader_name, active, cell_count, service_count in db.execute(
            stmt
        ).all():
            rows.append(
                (
                    report,
                    calculator.ReportSnapshot(
                        report_id=report.id,
                        cell_id=cell.id,
                        cell_name=cell.name,
                        leader_id=cell.leader_id,
                        leader_name=leader_name,
                        active_member_count=int(active),
                        cell_count=int(cell_count),
                        service_count=int(service_count),
                    ),
                )
            )
        return rows

    @staticmethod
    def _frequency(snapshot: calculator.ReportSnapshot) -> calculator.GroupFrequency:
        return calculator.frequency_from_counts(
            snapshot.active_member_count,
            snapshot.cell_count,
            snapshot.service_count,
            weeks=WEEKS_PER_PERIOD,
        )

    @staticmethod
    def cell_statistics(
        db: Session,
        caller: CallerContext,
        cell_id: UUID,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[GroupPeriodStats]:
        """Per-report frequency of one cell, newest period first."""
        cell = get_cell_for_account(db, cell_id, caller.account_id)

        stmt = StatisticsService._snapshot_query(caller.account_id).where(
            Report.cell_id == cell.id
        )
        if month is not None:
            stmt = stmt.where(Report.month == validate_month(month))
        if year is not None:
            stmt = stmt.where(Report.year == year)
        stmt = stmt.order_by(Report.year.desc(), Report.month.desc())

        return [
            GroupPeriodStats(
                report_id=report.id,
                cell_id=cell.id,
                month=report.month,
                year=report.year,
                submitted=report.is_locked,
                frequency=StatisticsService._frequency(snapshot),
            )
            for report, snapshot in StatisticsService._load(db, stmt)
        ]

    @staticmethod
    def period_comparison(
        db: Session,
        caller: CallerContext,
        cell_id: UUID,
        month: int,
        year: int,
    ) -> CellPeriodComparison:
        """Compare a cell's frequency with the period immediately before it."""
        period = Period(year=year, month=month).validate(settings.min_report_year)
        previous = period.previous()
        cell = get_cell_for_account(db, cell_id, caller.account_id)

        def percentage_for(p: Period) -> float:
            stmt = StatisticsService._snapshot_query(caller.account_id).where(
                Report.cell_id == cell.id,
                Report.month == p.month,
                Report.year == p.year,
            )
            loaded = StatisticsService._load(db, stmt)
            if not loaded:
                return 0.0
            return StatisticsService._frequency(loaded[0][1]).percentage

        current_pct = percentage_for(period)
        previous_pct = percentage_for(previous)
        comparison = calculator.period_comparison(current_pct, previous_pct)

        return CellPeriodComparison(
            cell_id=cell.id,
            period=period,
            previous=previous,
            current_percentage=current_pct,
            previous_percentage=previous_pct,
            growth_percent=comparison.growth_percent,
        )

    @staticmethod
    def leader_ranking(
        db: Session,
        caller: CallerContext,
        month: int,
        year: int,
        submitted_only: bool = False,
    ) -> list[calculator.LeaderRank]:
        """Rank the account's leaders for one period."""
        period = Period(year=year, month=month).validate(settings.min_report_year)

        stmt = StatisticsService._snapshot_query(caller.account_id).where(
            Report.month == period.month,
            Report.year == period.year,
        )
        if submitted_only:
            stmt = stmt.where(Report.submitted_at.is_not(None))

        snapshots = [snapshot for _, snapshot in StatisticsService._load(db, stmt)]
        ranking = calculator.leader_ranking(snapshots)

        emit_business_metric(
            BusinessMetric.RANKING_COMPUTED,
            value=len(ranking),
            category=MetricCategory.STATISTICS,
            period=period,
        )
        return ranking

    @staticmethod
    def export_ranking(
        db: Session,
        caller: CallerContext,
        month: int,
        year: int,
        fmt: str = "csv",
        submitted_only: bool = False,
    ) -> tuple[bytes, str, str]:
        """
        Render the leader ranking as a downloadable file.

        Returns:
            (content, media type, filename)
        """
        ranking = StatisticsService.leader_ranking(
            db, caller, month, year, submitted_only=submitted_only
        )
        rows = [
            {column: getattr(rank, column) for column in RANKING_COLUMNS}
            for rank in ranking
        ]
        for row in rows:
            row["leader_id"] = str(row["leader_id"])

        period = Period(year=year, month=month)
        filename = f"leader-ranking-{period}.{fmt}"
        if fmt == "xlsx":
            content = ExcelGenerator.generate(
                rows, columns=RANKING_COLUMNS, sheet_name="Ranking"
            )
        else:
            content = CSVGenerator.generate(rows, columns=RANKING_COLUMNS)

        logger.info(f"Exported ranking for {period} as {fmt} ({len(rows)} leaders)")
        emit_business_metric(
            BusinessMetric.RANKING_EXPORTED,
            category=MetricCategory.STATISTICS,
            format=fmt,
        )
        return content, EXPORT_MEDIA_TYPES[fmt], filename
