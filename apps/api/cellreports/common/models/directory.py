"""Directory models (accounts, users, cells, members).

These rows are owned by the tenant/group directory; the reporting core reads
them to authorize callers and to count active members.
"""

from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    Index,
    TIMESTAMP,
    Uuid,
    Time,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from cellreports.common.models.base import Base, MeetingDay


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(Base):
    """Tenant account; the isolation boundary for everything below it."""

    __tablename__ = "accounts"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )


class User(Base):
    """Application user (leaders, supervisors, administrators)."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="leader")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )


class Cell(Base):
    """Cell groups (recurring small-group meetings) within an account."""

    __tablename__ = "cells"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    meeting_day: Mapped[Optional[str]] = mapped_column(MeetingDay, nullable=True)
    meeting_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    leader_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    co_leader_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    supervisor_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_cells_account_leader", "account_id", "leader_id"),
    )


class Member(Base):
    """A person tracked within exactly one cell."""

    __tablename__ = "members"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    cell_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("cells.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Informational flags, never used for authorization
    is_consolidator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_co_leader: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_host: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )

    __table_args__ = (
        Index("ix_members_cell_active", "cell_id", "active"),
    )
