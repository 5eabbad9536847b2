"""Tests for audit logging utilities."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from cellreports.common.audit import create_audit_log
from cellreports.common.models import AuditLog


class TestCreateAuditLog:
    """Test audit log creation."""

    def test_create_audit_log_minimal(self, db: Session, account):
        """Test creating audit log with minimal data."""
        actor_id = uuid4()

        audit_log = create_audit_log(
            db=db,
            account_id=account.id,
            actor_id=actor_id,
            action="create",
        )

        assert audit_log.id is not None
        assert audit_log.account_id == account.id
        assert audit_log.actor_id == actor_id
        assert audit_log.entity_type is None
        assert audit_log.before_json is None
        assert audit_log.after_json is None

    def test_create_audit_log_full_data(self, db: Session, account):
        """Test creating audit log with before and after snapshots."""
        entity_id = uuid4()

        audit_log = create_audit_log(
            db=db,
            account_id=account.id,
            actor_id=uuid4(),
            action="update_notes",
            entity_type="reports",
            entity_id=entity_id,
            before_json={"notes": None},
            after_json={"notes": "Two visitors"},
        )
        db.commit()
        db.refresh(audit_log)

        assert audit_log.entity_id == entity_id
        assert audit_log.before_json == {"notes": None}
        assert audit_log.after_json == {"notes": "Two visitors"}
        assert audit_log.occurred_at is not None

    def test_rolled_back_with_caller_transaction(self, db: Session, account):
        """Test that the entry shares the caller's transaction."""
        create_audit_log(db, account.id, None, "create", "reports", uuid4())
        db.rollback()

        assert db.execute(select(AuditLog)).scalars().all() == []


class TestServiceAuditTrail:
    """Test that report lifecycle operations leave an audit trail."""

    def test_report_lifecycle_is_audited(self, db: Session, cell, leader_caller):
        from cellreports.reports.service import ReportService

        report = ReportService.ensure_report(db, leader_caller, cell.id, 3, 2024)
        ReportService.update_notes(db, leader_caller, report.id, "Prayer night")
        ReportService.submit_report(db, leader_caller, report.id)

        actions = [
            log.action
            for log in db.execute(
                select(AuditLog)
                .where(AuditLog.entity_id == report.id)
                .order_by(AuditLog.occurred_at)
            ).scalars()
        ]
        assert sorted(actions) == ["create", "submit", "update_notes"]
