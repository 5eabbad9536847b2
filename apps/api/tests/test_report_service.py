"""Tests for the report lifecycle service."""

from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from cellreports.common.models import AuditLog, Presence, Report
from cellreports.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from cellreports.presence.service import AttendanceStatus
from cellreports.reports import service as report_service
from cellreports.reports.service import ReportService


def count_reports(db) -> int:
    return db.execute(select(func.count(Report.id))).scalar_one()


class TestEnsureReport:
    def test_creates_draft(self, db, cell, leader_caller):
        """A missing report is created as a draft."""
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)

        assert report.cell_id == cell.id
        assert report.month == 2
        assert report.year == 2024
        assert report.submitted_at is None
        assert report.is_locked is False
        assert report.created_by == leader_caller.user_id

    def test_is_idempotent(self, db, cell, leader_caller):
        """Ensuring an existing key returns the same row unchanged."""
        first = ReportService.ensure_report(
            db, leader_caller, cell.id, 2, 2024, notes="first"
        )
        second = ReportService.ensure_report(
            db, leader_caller, cell.id, 2, 2024, notes="second"
        )

        assert second.id == first.id
        assert second.notes == "first"
        assert count_reports(db) == 1

    def test_writes_one_audit_entry(self, db, cell, leader_caller):
        ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)
        ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)

        entries = db.execute(select(AuditLog)).scalars().all()
        assert len(entries) == 1
        assert entries[0].action == "create"
        assert entries[0].account_id == cell.account_id

    def test_month_out_of_range(self, db, cell, leader_caller):
        with pytest.raises(InvalidArgumentError):
            ReportService.ensure_report(db, leader_caller, cell.id, 13, 2024)
        assert count_reports(db) == 0

    def test_year_before_minimum(self, db, cell, leader_caller):
        with pytest.raises(InvalidArgumentError):
            ReportService.ensure_report(db, leader_caller, cell.id, 5, 2019)

    def test_cell_of_other_account(self, db, foreign_cell, leader_caller):
        with pytest.raises(NotFoundError):
            ReportService.ensure_report(db, leader_caller, foreign_cell.id, 2, 2024)

    def test_unknown_cell(self, db, leader_caller):
        with pytest.raises(NotFoundError):
            ReportService.ensure_report(db, leader_caller, uuid4(), 2, 2024)

    def test_recovers_from_lost_insert_race(self, db, cell, leader_caller, monkeypatch):
        """A concurrent insert that wins the race is returned, not duplicated."""
        existing = ReportService.ensure_report(db, leader_caller, cell.id, 3, 2024)

        original = ReportService._find_report
        calls = {"n": 0}

        def stale_lookup(session, cell_id, period):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return original(session, cell_id, period)

        monkeypatch.setattr(ReportService, "_find_report", staticmethod(stale_lookup))

        report = ReportService.ensure_report(db, leader_caller, cell.id, 3, 2024)

        assert report.id == existing.id
        assert calls["n"] == 2
        assert count_reports(db) == 1


class TestSubmitReport:
    def test_leader_submits(self, db, cell, leader_caller):
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)

        submitted = ReportService.submit_report(db, leader_caller, report.id)

        assert submitted.submitted_at is not None
        assert submitted.submitted_by == leader_caller.user_id
        assert submitted.is_locked is True

    def test_admin_submits_any_cell(self, db, cell, leader_caller, admin_caller):
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)

        submitted = ReportService.submit_report(db, admin_caller, report.id)

        assert submitted.submitted_by == admin_caller.user_id

    def test_other_leader_forbidden(self, db, cell, leader_caller, other_leader_caller):
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)

        with pytest.raises(ForbiddenError):
            ReportService.submit_report(db, other_leader_caller, report.id)

        db.refresh(report)
        assert report.submitted_at is None

    def test_double_submit_conflicts_and_keeps_timestamp(self, db, cell, leader_caller):
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)
        first = ReportService.submit_report(db, leader_caller, report.id)
        submitted_at = first.submitted_at

        with pytest.raises(ConflictError):
            ReportService.submit_report(db, leader_caller, report.id)

        db.refresh(report)
        assert report.submitted_at == submitted_at

    def test_conflict_reported_before_authority(
        self, db, cell, leader_caller, other_leader_caller
    ):
        """An already submitted report answers Conflict even to a non-leader."""
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)
        ReportService.submit_report(db, leader_caller, report.id)

        with pytest.raises(ConflictError):
            ReportService.submit_report(db, other_leader_caller, report.id)

    def test_report_of_other_account(self, db, cell, leader_caller, foreign_caller):
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)

        with pytest.raises(NotFoundError):
            ReportService.submit_report(db, foreign_caller, report.id)

    def test_concurrent_submit_loses_conditional_update(
        self, db, cell, leader_caller, monkeypatch
    ):
        """A submit that read the draft before another committed gets Conflict."""
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)
        stale = SimpleNamespace(
            id=report.id,
            cell_id=report.cell_id,
            month=report.month,
            year=report.year,
            notes=report.notes,
            submitted_at=None,
            is_locked=False,
        )
        ReportService.submit_report(db, leader_caller, report.id)
        submitted_at = db.get(Report, report.id).submitted_at

        monkeypatch.setattr(
            report_service,
            "get_report_for_account",
            lambda session, report_id, account_id, lock=False: (stale, cell),
        )

        with pytest.raises(ConflictError):
            ReportService.submit_report(db, leader_caller, report.id)

        db.expire_all()
        assert db.get(Report, report.id).submitted_at == submitted_at

    def test_snapshot_applied_with_submission(self, db, cell, members, leader_caller):
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)
        snapshot = [
            (members[0].id, AttendanceStatus.BOTH),
            (members[1].id, AttendanceStatus.CELL),
        ]

        ReportService.submit_report(db, leader_caller, report.id, snapshot=snapshot)

        rows = db.execute(
            select(Presence).where(Presence.report_id == report.id)
        ).scalars().all()
        by_member = {p.member_id: p for p in rows}
        assert len(rows) == 2
        assert by_member[members[0].id].cell_attended is True
        assert by_member[members[0].id].service_attended is True
        assert by_member[members[1].id].service_attended is False
        assert all(p.week == 1 for p in rows)

    def test_invalid_snapshot_leaves_report_draft(
        self, db, cell, members, outsider, leader_caller
    ):
        """Snapshot and submission commit together or not at all."""
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)
        snapshot = [
            (members[0].id, AttendanceStatus.BOTH),
            (outsider.id, AttendanceStatus.CELL),
        ]

        with pytest.raises(InvalidArgumentError):
            ReportService.submit_report(db, leader_caller, report.id, snapshot=snapshot)

        db.refresh(report)
        assert report.submitted_at is None
        assert db.execute(select(func.count(Presence.id))).scalar_one() == 0


class TestNotesAndQueries:
    def test_update_notes_after_submission(self, db, cell, leader_caller):
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)
        ReportService.submit_report(db, leader_caller, report.id)

        updated = ReportService.update_notes(db, leader_caller, report.id, "Great month")

        assert updated.notes == "Great month"
        assert updated.is_locked is True

    def test_get_report_scoped(self, db, cell, leader_caller, foreign_caller):
        report = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)

        assert ReportService.get_report(db, leader_caller, report.id).id == report.id
        with pytest.raises(NotFoundError):
            ReportService.get_report(db, foreign_caller, report.id)

    def test_list_orders_newest_first(self, db, cell, second_cell, leader_caller):
        ReportService.ensure_report(db, leader_caller, cell.id, 1, 2024)
        ReportService.ensure_report(db, leader_caller, cell.id, 12, 2023)
        ReportService.ensure_report(db, leader_caller, second_cell.id, 1, 2024)
        ReportService.ensure_report(db, leader_caller, cell.id, 3, 2024)

        reports = ReportService.list_reports(db, leader_caller)

        assert [(r.year, r.month) for r in reports] == [
            (2024, 3),
            (2024, 1),
            (2024, 1),
            (2023, 12),
        ]
        # Same period ordered by cell name
        assert reports[1].cell_id == cell.id
        assert reports[2].cell_id == second_cell.id

    def test_list_filters(self, db, cell, second_cell, leader_caller, admin_caller):
        ReportService.ensure_report(db, leader_caller, cell.id, 1, 2024)
        draft = ReportService.ensure_report(db, leader_caller, second_cell.id, 1, 2024)
        done = ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)
        ReportService.submit_report(db, admin_caller, done.id)

        assert len(ReportService.list_reports(db, leader_caller, cell_id=cell.id)) == 2
        assert len(ReportService.list_reports(db, leader_caller, month=1, year=2024)) == 2
        submitted = ReportService.list_reports(db, leader_caller, submitted=True)
        assert [r.id for r in submitted] == [done.id]
        drafts = ReportService.list_reports(db, leader_caller, submitted=False)
        assert draft.id in {r.id for r in drafts}

    def test_list_excludes_other_accounts(
        self, db, cell, foreign_cell, leader_caller, foreign_caller
    ):
        ReportService.ensure_report(db, leader_caller, cell.id, 1, 2024)
        ReportService.ensure_report(db, foreign_caller, foreign_cell.id, 1, 2024)

        assert len(ReportService.list_reports(db, leader_caller)) == 1
        assert len(ReportService.list_reports(db, foreign_caller)) == 1
