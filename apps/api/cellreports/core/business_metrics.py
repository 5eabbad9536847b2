"""Business metrics catalog with standardized naming.

Use these names with ``emit_business_metric`` so dashboards see one
spelling per metric.
"""

from enum import Enum


class MetricCategory(str, Enum):
    """Categories for grouping business metrics."""

    REPORT = "report"
    PRESENCE = "presence"
    MEMBER = "member"
    STATISTICS = "statistics"


class BusinessMetric:
    """Catalog of all business metrics."""

    # Report lifecycle
    REPORT_CREATED = "ReportCreated"
    REPORT_NOTES_UPDATED = "ReportNotesUpdated"
    REPORT_SUBMITTED = "ReportSubmitted"
    REPORT_SUBMIT_REJECTED = "ReportSubmitRejected"

    # Presence ledger
    PRESENCE_RECORDED = "PresenceRecorded"
    PRESENCE_SNAPSHOT_APPLIED = "PresenceSnapshotApplied"
    UNIQUE_RACE_RECOVERED = "UniqueRaceRecovered"

    # Members
    MEMBER_DEACTIVATED = "MemberDeactivated"
    MEMBER_REACTIVATED = "MemberReactivated"
    MEMBER_PURGED = "MemberPurged"

    # Statistics
    RANKING_COMPUTED = "RankingComputed"
    RANKING_EXPORTED = "RankingExported"
