"""Member lifecycle operations the reporting core owns.

Deactivation is the normal way to remove someone from a cell: presence
history is kept and the member simply stops counting as active. The hard
delete is an administrative purge that takes the member's presences with it.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from cellreports.auth.context import CallerContext
from cellreports.common.audit import create_audit_log
from cellreports.common.db import transaction
from cellreports.common.models import Cell, Member, Presence, Report
from cellreports.common.scope_validation import (
    get_cell_for_account,
    get_member_for_account,
    require_admin,
    require_cell_manager,
)
from cellreports.core.business_metrics import BusinessMetric, MetricCategory
from cellreports.core.errors import ConflictError
from cellreports.core.metrics import emit_business_metric

logger = logging.getLogger(__name__)


def _member_state(member: Member) -> dict:
    return {
        "id": str(member.id),
        "cell_id": str(member.cell_id),
        "name": member.name,
        "active": member.active,
    }


class MemberService:
    """Service for member activation and purge."""

    @staticmethod
    def _set_active(
        db: Session, caller: CallerContext, member_id: UUID, active: bool
    ) -> Member:
        with transaction(db):
            member = get_member_for_account(db, member_id, caller.account_id)
            cell = get_cell_for_account(db, member.cell_id, caller.account_id)
            require_cell_manager(caller, cell)

            if member.active != active:
                before_json = _member_state(member)
                member.active = active
                create_audit_log(
                    db,
                    cell.account_id,
                    caller.user_id,
                    "reactivate" if active else "deactivate",
                    "members",
                    member.id,
                    before_json,
                    _member_state(member),
                )

        db.refresh(member)
        return member

    @staticmethod
    def deactivate_member(
        db: Session, caller: CallerContext, member_id: UUID
    ) -> Member:
        """Mark a member inactive. Presence history is retained."""
        member = MemberService._set_active(db, caller, member_id, False)
        emit_business_metric(
            BusinessMetric.MEMBER_DEACTIVATED, category=MetricCategory.MEMBER
        )
        return member

    @staticmethod
    def reactivate_member(
        db: Session, caller: CallerContext, member_id: UUID
    ) -> Member:
        member = MemberService._set_active(db, caller, member_id, True)
        emit_business_metric(
            BusinessMetric.MEMBER_REACTIVATED, category=MetricCategory.MEMBER
        )
        return member

    @staticmethod
    def hard_delete_member(
        db: Session,
        caller: CallerContext,
        member_id: UUID,
        force: bool = False,
    ) -> int:
        """
        Permanently delete a member and every presence row recorded for them.

        Presences inside submitted reports are otherwise immutable, so the
        purge refuses to touch them unless ``force`` is set.

        Returns:
            Number of presence rows deleted

        Raises:
            ForbiddenError: caller is not an administrator
            NotFoundError: member outside the caller's account
            ConflictError: member has submitted presences and ``force`` is off
        """
        require_admin(caller)

        with transaction(db):
            member = get_member_for_account(db, member_id, caller.account_id)
            cell = db.get(Cell, member.cell_id)

            locked_count = db.execute(
                select(func.count(Presence.id))
                .join(Report, Report.id == Presence.report_id)
                .where(
                    Presence.member_id == member.id,
                    Report.submitted_at.is_not(None),
                )
            ).scalar_one()
            if locked_count and not force:
                raise ConflictError(
                    "Member has presence records in submitted reports",
                    details={
                        "member_id": str(member.id),
                        "submitted_presences": locked_count,
                    },
                )

            before_json = _member_state(member)
            purged = db.execute(
                delete(Presence)
                .where(Presence.member_id == member.id)
                .execution_options(synchronize_session=False)
            ).rowcount
            db.delete(member)

            create_audit_log(
                db,
                cell.account_id,
                caller.user_id,
                "purge",
                "members",
                member_id,
                {**before_json, "presences": purged, "forced": force},
                None,
            )

        logger.info(
            f"Member {member_id} purged by {caller.user_id} ({purged} presences, force={force})"
        )
        emit_business_metric(
            BusinessMetric.MEMBER_PURGED,
            value=purged,
            category=MetricCategory.MEMBER,
            forced=force,
        )
        return purged
