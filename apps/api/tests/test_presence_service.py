"""Tests for the presence ledger service."""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from cellreports.common.models import Presence
from cellreports.core.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
)
from cellreports.presence.service import (
    SNAPSHOT_WEEK,
    AttendanceStatus,
    PresenceService,
)
from cellreports.reports.service import ReportService


@pytest.fixture
def report(db, cell, leader_caller):
    return ReportService.ensure_report(db, leader_caller, cell.id, 2, 2024)


def presence_rows(db, report_id):
    return db.execute(
        select(Presence).where(Presence.report_id == report_id)
    ).scalars().all()


class TestRecordPresence:
    def test_records_presence(self, db, report, members, leader_caller):
        presence = PresenceService.record_presence(
            db, leader_caller, report.id, members[0].id, 1, True, False, notes="late"
        )

        assert presence.report_id == report.id
        assert presence.member_id == members[0].id
        assert presence.week == 1
        assert presence.cell_attended is True
        assert presence.service_attended is False
        assert presence.notes == "late"

    def test_last_write_wins(self, db, report, members, leader_caller):
        """Recording the same key twice keeps one row with the latest flags."""
        first = PresenceService.record_presence(
            db, leader_caller, report.id, members[0].id, 2, True, True, notes="a"
        )
        second = PresenceService.record_presence(
            db, leader_caller, report.id, members[0].id, 2, False, True
        )

        rows = presence_rows(db, report.id)
        assert len(rows) == 1
        assert second.id == first.id
        assert rows[0].cell_attended is False
        assert rows[0].service_attended is True
        assert rows[0].notes is None

    def test_weeks_are_independent(self, db, report, members, leader_caller):
        for week in (1, 2, 3, 4):
            PresenceService.record_presence(
                db, leader_caller, report.id, members[0].id, week, True, False
            )
        assert len(presence_rows(db, report.id)) == 4

    @pytest.mark.parametrize("week", [0, 5])
    def test_week_out_of_range(self, db, report, members, leader_caller, week):
        with pytest.raises(InvalidArgumentError):
            PresenceService.record_presence(
                db, leader_caller, report.id, members[0].id, week, True, True
            )

    def test_member_of_another_cell(self, db, report, outsider, leader_caller):
        with pytest.raises(InvalidArgumentError):
            PresenceService.record_presence(
                db, leader_caller, report.id, outsider.id, 1, True, True
            )
        assert presence_rows(db, report.id) == []

    def test_unknown_member(self, db, report, leader_caller):
        with pytest.raises(NotFoundError):
            PresenceService.record_presence(
                db, leader_caller, report.id, uuid4(), 1, True, True
            )

    def test_report_of_other_account(self, db, report, members, foreign_caller):
        with pytest.raises(NotFoundError):
            PresenceService.record_presence(
                db, foreign_caller, report.id, members[0].id, 1, True, True
            )

    def test_submitted_report_is_read_only(self, db, report, members, leader_caller):
        PresenceService.record_presence(
            db, leader_caller, report.id, members[0].id, 1, True, True
        )
        ReportService.submit_report(db, leader_caller, report.id)

        with pytest.raises(ConflictError):
            PresenceService.record_presence(
                db, leader_caller, report.id, members[0].id, 1, False, False
            )
        with pytest.raises(ConflictError):
            PresenceService.record_presence(
                db, leader_caller, report.id, members[1].id, 1, True, True
            )

        rows = presence_rows(db, report.id)
        assert len(rows) == 1
        assert rows[0].cell_attended is True
        assert rows[0].service_attended is True

    def test_lost_insert_race_becomes_update(
        self, db, report, members, leader_caller, monkeypatch
    ):
        """An insert that collides with a concurrent one is retried as an update."""
        PresenceService.record_presence(
            db, leader_caller, report.id, members[0].id, 1, True, True
        )

        original = PresenceService._find_presence
        calls = {"n": 0}

        def stale_lookup(session, report_id, member_id, week):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return original(session, report_id, member_id, week)

        monkeypatch.setattr(
            PresenceService, "_find_presence", staticmethod(stale_lookup)
        )

        presence = PresenceService.record_presence(
            db, leader_caller, report.id, members[0].id, 1, False, True
        )

        rows = presence_rows(db, report.id)
        assert calls["n"] == 2
        assert len(rows) == 1
        assert presence.id == rows[0].id
        assert rows[0].cell_attended is False

    def test_persistent_race_gives_conflict(
        self, db, report, members, leader_caller, monkeypatch
    ):
        PresenceService.record_presence(
            db, leader_caller, report.id, members[0].id, 1, True, True
        )
        monkeypatch.setattr(
            PresenceService,
            "_find_presence",
            staticmethod(lambda session, report_id, member_id, week: None),
        )

        with pytest.raises(ConflictError):
            PresenceService.record_presence(
                db, leader_caller, report.id, members[0].id, 1, False, False
            )


class TestBulkRecordPresence:
    def test_writes_week_one_only(self, db, report, members, leader_caller):
        entries = [
            (members[0].id, AttendanceStatus.BOTH),
            (members[1].id, AttendanceStatus.SERVICE),
            (members[2].id, AttendanceStatus.NONE),
        ]

        presences = PresenceService.bulk_record_presence(
            db, leader_caller, report.id, entries
        )

        assert len(presences) == 3
        assert {p.week for p in presences} == {SNAPSHOT_WEEK}
        flags = {p.member_id: (p.cell_attended, p.service_attended) for p in presences}
        assert flags[members[0].id] == (True, True)
        assert flags[members[1].id] == (False, True)
        assert flags[members[2].id] == (False, False)

    def test_leaves_other_weeks_and_members_alone(
        self, db, report, members, leader_caller
    ):
        PresenceService.record_presence(
            db, leader_caller, report.id, members[0].id, 3, True, True, notes="kept"
        )
        PresenceService.record_presence(
            db, leader_caller, report.id, members[1].id, 1, True, True
        )

        PresenceService.bulk_record_presence(
            db, leader_caller, report.id, [(members[0].id, AttendanceStatus.NONE)]
        )

        rows = {(p.member_id, p.week): p for p in presence_rows(db, report.id)}
        assert len(rows) == 3
        assert rows[(members[0].id, 3)].cell_attended is True
        assert rows[(members[0].id, 3)].notes == "kept"
        assert rows[(members[1].id, 1)].cell_attended is True
        assert rows[(members[0].id, 1)].cell_attended is False

    def test_duplicate_member_last_entry_wins(self, db, report, members, leader_caller):
        PresenceService.bulk_record_presence(
            db,
            leader_caller,
            report.id,
            [
                (members[0].id, AttendanceStatus.BOTH),
                (members[0].id, AttendanceStatus.CELL),
            ],
        )

        rows = presence_rows(db, report.id)
        assert len(rows) == 1
        assert rows[0].cell_attended is True
        assert rows[0].service_attended is False

    def test_is_atomic(self, db, report, members, outsider, leader_caller):
        """One invalid entry means nothing is written."""
        with pytest.raises(InvalidArgumentError):
            PresenceService.bulk_record_presence(
                db,
                leader_caller,
                report.id,
                [
                    (members[0].id, AttendanceStatus.BOTH),
                    (outsider.id, AttendanceStatus.BOTH),
                ],
            )
        assert db.execute(select(func.count(Presence.id))).scalar_one() == 0

    def test_submitted_report_rejected(self, db, report, members, leader_caller):
        ReportService.submit_report(db, leader_caller, report.id)

        with pytest.raises(ConflictError):
            PresenceService.bulk_record_presence(
                db, leader_caller, report.id, [(members[0].id, AttendanceStatus.BOTH)]
            )


class TestListPresences:
    def test_ordered_by_week_then_name(self, db, report, members, leader_caller):
        PresenceService.record_presence(
            db, leader_caller, report.id, members[2].id, 1, True, False
        )
        PresenceService.record_presence(
            db, leader_caller, report.id, members[0].id, 2, True, False
        )
        PresenceService.record_presence(
            db, leader_caller, report.id, members[1].id, 1, True, False
        )

        listed = PresenceService.list_presences(db, leader_caller, report.id)

        assert [(p.week, p.member_id) for p in listed] == [
            (1, members[1].id),
            (1, members[2].id),
            (2, members[0].id),
        ]

    def test_readable_after_submission(self, db, report, members, leader_caller):
        PresenceService.record_presence(
            db, leader_caller, report.id, members[0].id, 1, True, False
        )
        ReportService.submit_report(db, leader_caller, report.id)

        assert len(PresenceService.list_presences(db, leader_caller, report.id)) == 1

    def test_scoped_to_account(self, db, report, foreign_caller):
        with pytest.raises(NotFoundError):
            PresenceService.list_presences(db, foreign_caller, report.id)
