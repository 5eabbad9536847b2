"""Audit logging utility functions."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from cellreports.common.models import AuditLog


def create_audit_log(
    db: Session,
    account_id: UUID,
    actor_id: Optional[UUID],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
    before_json: Optional[dict] = None,
    after_json: Optional[dict] = None,
) -> AuditLog:
    """
    Create an audit log entry inside the caller's transaction.

    Args:
        db: Database session
        account_id: Tenant the audited entity belongs to
        actor_id: ID of the user performing the action
        action: Action being performed (e.g., "create", "submit", "purge")
        entity_type: Type of entity (e.g., "reports", "members")
        entity_id: ID of the entity being acted upon
        before_json: JSON snapshot of entity before the action
        after_json: JSON snapshot of entity after the action

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        account_id=account_id,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        before_json=before_json,
        after_json=after_json,
    )

    db.add(audit_log)
    db.flush()
    return audit_log
