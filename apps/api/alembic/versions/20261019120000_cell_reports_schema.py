"""cell reports schema

Revision ID: 20261019120000
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019120000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MEETING_DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def upgrade() -> None:
    """Create directory, attendance and audit tables."""
    op.create_table(
        "accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_accounts")),
    )

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="leader"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
            name=op.f("fk_users_account_id_accounts"),
            ondelete="CASCADE",
        ),
    )
    op.create_index(op.f("ix_users_account_id"), "users", ["account_id"], unique=False)

    op.create_table(
        "cells",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column(
            "meeting_day",
            postgresql.ENUM(*MEETING_DAYS, name="meeting_day"),
            nullable=True,
        ),
        sa.Column("meeting_time", sa.Time(), nullable=True),
        sa.Column("leader_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("co_leader_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("supervisor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_cells")),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
            name=op.f("fk_cells_account_id_accounts"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["leader_id"],
            ["users.id"],
            name=op.f("fk_cells_leader_id_users"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["co_leader_id"],
            ["users.id"],
            name=op.f("fk_cells_co_leader_id_users"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["supervisor_id"],
            ["users.id"],
            name=op.f("fk_cells_supervisor_id_users"),
            ondelete="SET NULL",
        ),
    )
    op.create_index(op.f("ix_cells_account_id"), "cells", ["account_id"], unique=False)
    op.create_index(op.f("ix_cells_leader_id"), "cells", ["leader_id"], unique=False)
    op.create_index("ix_cells_account_leader", "cells", ["account_id", "leader_id"], unique=False)

    op.create_table(
        "members",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("cell_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("is_consolidator", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_co_leader", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_host", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_members")),
        sa.ForeignKeyConstraint(
            ["cell_id"],
            ["cells.id"],
            name=op.f("fk_members_cell_id_cells"),
            ondelete="CASCADE",
        ),
    )
    op.create_index(op.f("ix_members_cell_id"), "members", ["cell_id"], unique=False)
    op.create_index("ix_members_cell_active", "members", ["cell_id", "active"], unique=False)

    op.create_table(
        "reports",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("cell_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("submitted_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_reports")),
        sa.ForeignKeyConstraint(
            ["cell_id"],
            ["cells.id"],
            name=op.f("fk_reports_cell_id_cells"),
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("cell_id", "month", "year", name="uq_reports_cell_period"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name=op.f("ck_reports_month_range")),
    )
    op.create_index(op.f("ix_reports_cell_id"), "reports", ["cell_id"], unique=False)
    op.create_index("ix_reports_period", "reports", ["year", "month"], unique=False)

    op.create_table(
        "presences",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("report_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("member_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("week", sa.Integer(), nullable=False),
        sa.Column("cell_attended", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("service_attended", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_presences")),
        sa.ForeignKeyConstraint(
            ["report_id"],
            ["reports.id"],
            name=op.f("fk_presences_report_id_reports"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["member_id"],
            ["members.id"],
            name=op.f("fk_presences_member_id_members"),
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint(
            "report_id", "member_id", "week", name="uq_presences_report_member_week"
        ),
        sa.CheckConstraint("week >= 1 AND week <= 4", name=op.f("ck_presences_week_range")),
    )
    op.create_index(op.f("ix_presences_report_id"), "presences", ["report_id"], unique=False)
    op.create_index(op.f("ix_presences_member_id"), "presences", ["member_id"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_logs")),
    )
    op.create_index(op.f("ix_audit_logs_account_id"), "audit_logs", ["account_id"], unique=False)


def downgrade() -> None:
    """Drop everything created above."""
    op.drop_index(op.f("ix_audit_logs_account_id"), table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index(op.f("ix_presences_member_id"), table_name="presences")
    op.drop_index(op.f("ix_presences_report_id"), table_name="presences")
    op.drop_table("presences")
    op.drop_index("ix_reports_period", table_name="reports")
    op.drop_index(op.f("ix_reports_cell_id"), table_name="reports")
    op.drop_table("reports")
    op.drop_index("ix_members_cell_active", table_name="members")
    op.drop_index(op.f("ix_members_cell_id"), table_name="members")
    op.drop_table("members")
    op.drop_index("ix_cells_account_leader", table_name="cells")
    op.drop_index(op.f("ix_cells_leader_id"), table_name="cells")
    op.drop_index(op.f("ix_cells_account_id"), table_name="cells")
    op.drop_table("cells")
    op.drop_index(op.f("ix_users_account_id"), table_name="users")
    op.drop_table("users")
    op.drop_table("accounts")
    op.execute("DROP TYPE IF EXISTS meeting_day")
