"""Tenant scoping guard.

Reports and presences carry no account column; they are reachable from an
account only through their cell. Every lookup here joins back to
``Cell.account_id`` so that a record outside the caller's account is
indistinguishable from one that does not exist.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from cellreports.auth.context import CallerContext
from cellreports.common.db import lock_for_update
from cellreports.common.models import Cell, Member, Report
from cellreports.core.errors import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)


def get_cell_for_account(db: Session, cell_id: UUID, account_id: UUID) -> Cell:
    """
    Load a cell owned by ``account_id``.

    Raises:
        NotFoundError: If the cell does not exist or belongs to another account
    """
    cell = db.execute(
        select(Cell).where(Cell.id == cell_id, Cell.account_id == account_id)
    ).scalar_one_or_none()
    if not cell:
        raise NotFoundError("Cell", str(cell_id))
    return cell


def get_report_for_account(
    db: Session,
    report_id: UUID,
    account_id: UUID,
    lock: bool = False,
) -> tuple[Report, Cell]:
    """
    Load a report and its cell, walking the chain back to ``account_id``.

    Args:
        db: Database session
        report_id: Report to load
        account_id: Caller's account
        lock: Take a row lock on the report for the rest of the transaction

    Raises:
        NotFoundError: If the report does not exist or belongs to another account
    """
    stmt = (
        select(Report, Cell)
        .join(Cell, Cell.id == Report.cell_id)
        .where(Report.id == report_id, Cell.account_id == account_id)
    )
    if lock:
        stmt = lock_for_update(stmt).execution_options(populate_existing=True)

    row = db.execute(stmt).one_or_none()
    if not row:
        raise NotFoundError("Report", str(report_id))
    return row[0], row[1]


def get_member_for_account(db: Session, member_id: UUID, account_id: UUID) -> Member:
    """
    Load a member whose cell belongs to ``account_id``.

    Raises:
        NotFoundError: If the member does not exist or belongs to another account
    """
    member = db.execute(
        select(Member)
        .join(Cell, Cell.id == Member.cell_id)
        .where(Member.id == member_id, Cell.account_id == account_id)
    ).scalar_one_or_none()
    if not member:
        raise NotFoundError("Member", str(member_id))
    return member


def require_member_in_cell(member: Member, cell: Cell) -> None:
    """
    Raises:
        InvalidArgumentError: If the member belongs to a different cell
    """
    if member.cell_id != cell.id:
        raise InvalidArgumentError(
            f"Member {member.id} does not belong to cell {cell.id}",
            field="member_id",
        )


def require_submit_authority(caller: CallerContext, cell: Cell) -> None:
    """
    Only the cell's leader or an administrator may submit its reports.

    Raises:
        ForbiddenError: If the caller is neither
    """
    if caller.is_admin:
        return
    if cell.leader_id is not None and cell.leader_id == caller.user_id:
        return
    raise ForbiddenError("Only the cell leader or an administrator can submit this report")


def require_cell_manager(caller: CallerContext, cell: Cell) -> None:
    """
    Leader, co-leader, supervisor or administrator.

    Raises:
        ForbiddenError: If the caller has no management role on the cell
    """
    if caller.is_admin:
        return
    if caller.user_id in {cell.leader_id, cell.co_leader_id, cell.supervisor_id}:
        return
    raise ForbiddenError("Caller does not manage this cell")


def require_admin(caller: CallerContext) -> None:
    """
    Raises:
        ForbiddenError: If the caller does not hold an administrative role
    """
    if not caller.is_admin:
        raise ForbiddenError("Administrator role required")
