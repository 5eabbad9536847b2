"""Attendance statistics.

Pure functions over already-loaded numbers: no sessions, no callers and no
domain errors. Percentages are rounded half-up to two decimals and are 0
whenever their denominator is 0.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Protocol
from uuid import UUID

from cellreports.common.period import WEEKS_PER_PERIOD

TWO_PLACES = Decimal("0.01")


class AttendanceFlags(Protocol):
    cell_attended: bool
    service_attended: bool


def _ratio(numerator: float, denominator: float) -> Decimal:
    """Unrounded percentage, 0 for an empty denominator."""
    if denominator <= 0:
        return Decimal(0)
    return Decimal(numerator) * 100 / Decimal(denominator)


def round_percent(value: Decimal) -> float:
    return float(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class GroupFrequency:
    active_member_count: int
    cell_count: int
    service_count: int
    cell_percentage: float
    service_percentage: float
    percentage: float


@dataclass(frozen=True)
class PeriodComparison:
    current: float
    prior: float
    growth_percent: float


@dataclass(frozen=True)
class ReportSnapshot:
    """Aggregated attendance of one report, as read by the statistics loader."""

    report_id: UUID
    cell_id: UUID
    cell_name: str
    leader_id: Optional[UUID]
    leader_name: Optional[str]
    active_member_count: int
    cell_count: int
    service_count: int


@dataclass(frozen=True)
class LeaderRank:
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


def group_frequency(
    active_member_count: int,
    presences: Iterable[AttendanceFlags],
    weeks: int = 1,
) -> GroupFrequency:
    """
    Attendance frequency of a group.

    ``percentage`` is (cell + service) / (active members * 2 * weeks) * 100.
    With the default ``weeks=1`` the denominator is simply twice the active
    member count; pass ``WEEKS_PER_PERIOD`` to summarize a full period whose
    presences span all four weeks.
    """
    cell_count = 0
    service_count = 0
    for presence in presences:
        if presence.cell_attended:
            cell_count += 1
        if presence.service_attended:
            service_count += 1

    return frequency_from_counts(active_member_count, cell_count, service_count, weeks)


def frequency_from_counts(
    active_member_count: int,
    cell_count: int,
    service_count: int,
    weeks: int = 1,
) -> GroupFrequency:
    """Same as ``group_frequency`` for counts that were aggregated in the database."""
    slots = active_member_count * weeks
    return GroupFrequency(
        active_member_count=active_member_count,
        cell_count=cell_count,
        service_count=service_count,
        cell_percentage=round_percent(_ratio(cell_count, slots)),
        service_percentage=round_percent(_ratio(service_count, slots)),
        percentage=round_percent(_ratio(cell_count + service_count, slots * 2)),
    )


def period_comparison(current: float, prior: float) -> PeriodComparison:
    """Growth of ``current`` over ``prior`` in percent; 0 when there is no prior."""
    if prior <= 0:
        growth = 0.0
    else:
        growth = round_percent(
            (Decimal(str(current)) - Decimal(str(prior))) * 100 / Decimal(str(prior))
        )
    return PeriodComparison(current=current, prior=prior, growth_percent=growth)


def leader_ranking(
    snapshots: Iterable[ReportSnapshot],
    weeks: int = WEEKS_PER_PERIOD,
) -> list[LeaderRank]:
    """
    Rank leaders by the mean of their cell and service attendance percentages.

    All snapshots must belong to the same period. Reports of cells without a
    leader are ignored. Both percentages are taken over members * ``weeks``
    attendance slots. Ties on the rounded average are broken by leader id so
    that the order is stable across runs.
    """
    grouped: dict[UUID, list[ReportSnapshot]] = defaultdict(list)
    for snapshot in snapshots:
        if snapshot.leader_id is None:
            continue
        grouped[snapshot.leader_id].append(snapshot)

    unranked = []
    for leader_id, items in grouped.items():
        member_total = sum(s.active_member_count for s in items)
        cell_count = sum(s.cell_count for s in items)
        service_count = sum(s.service_count for s in items)
        slots = member_total * weeks

        cell_ratio = _ratio(cell_count, slots)
        service_ratio = _ratio(service_count, slots)

        unranked.append(
            dict(
                leader_id=leader_id,
                leader_name=next((s.leader_name for s in items if s.leader_name), None),
                cell_total=len({s.cell_id for s in items}),
                member_total=member_total,
                cell_count=cell_count,
                service_count=service_count,
                cell_percentage=round_percent(cell_ratio),
                service_percentage=round_percent(service_ratio),
                combined_average=round_percent((cell_ratio + service_ratio) / 2),
            )
        )

    unranked.sort(key=lambda r: (-r["combined_average"], str(r["leader_id"])))
    return [
        LeaderRank(position=index + 1, **row) for index, row in enumerate(unranked)
    ]
