"""Audit trail model."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import JSON, String, TIMESTAMP, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cellreports.common.models.base import Base
from cellreports.common.models.directory import utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True
    )
    actor_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True))
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[Optional[str]] = mapped_column(String(100))
    entity_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True))
    before_json: Mapped[Optional[dict]] = mapped_column(JSON)
    after_json: Mapped[Optional[dict]] = mapped_column(JSON)
    occurred_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )
