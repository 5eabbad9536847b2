"""Models package - exports all models from one place.

Imports like:
    from cellreports.common.models import Report, Presence, Base
work regardless of which module a model lives in.

Models are organized into:
- base: Base class, metadata, and enums
- directory: accounts, users, cells and members (read by the core)
- reports: monthly reports and weekly presences
- audit: audit trail
"""

from __future__ import annotations

# Export Base and metadata first (required by other models)
from cellreports.common.models.base import (
    Base,
    metadata,
    NAMING_CONVENTION,
    MeetingDay,
)

from cellreports.common.models.directory import (
    Account,
    User,
    Cell,
    Member,
)

from cellreports.common.models.reports import (
    Report,
    Presence,
)

from cellreports.common.models.audit import AuditLog

__all__ = [
    # Base
    "Base",
    "metadata",
    "NAMING_CONVENTION",
    "MeetingDay",
    # Directory models
    "Account",
    "User",
    "Cell",
    "Member",
    # Attendance models
    "Report",
    "Presence",
    # Audit
    "AuditLog",
]
