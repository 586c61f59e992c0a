"""Create core tables

Revision ID: 001
Revises: None
Create Date: 2025-09-01 00:00:00.000000+00:00

Creates users, lots, scan_records, activity_sessions and board_names.
Foreign keys: scan_records → users, lots (ON DELETE SET NULL);
lots → users; activity_sessions → users; board_names → users.

Rollback: downgrade() drops all five tables (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str, nullable: bool = False, default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP") if default else None,
        nullable=nullable,
    )


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("profile_image_url", sa.String(500), nullable=True),
        sa.Column(
            "role",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'user'"),
            comment="Access role: user or admin",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
    )

    # ── lots ──────────────────────────────────────────────────────────────
    op.create_table(
        "lots",
        _uuid_pk(),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'open'")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("total_weight", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_value", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        _timestamp("closed_at", nullable=True, default=False),
        sa.PrimaryKeyConstraint("id", name="pk_lots"),
        sa.UniqueConstraint("name", name="uq_lots_name"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], name="fk_lots_created_by"),
        sa.CheckConstraint("status IN ('open', 'closed')", name="ck_lots_status"),
        sa.CheckConstraint(
            "(status = 'open' AND closed_at IS NULL) OR (status = 'closed' AND closed_at IS NOT NULL)",
            name="ck_lots_closed_at",
        ),
    )
    op.create_index("idx_lots_status", "lots", ["status"])
    op.create_index("idx_lots_created_at", "lots", [sa.text("created_at DESC")])
    op.create_index("idx_lots_created_by", "lots", ["created_by"])

    # ── scan_records ──────────────────────────────────────────────────────
    op.create_table(
        "scan_records",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("board_type", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False, server_default=sa.text("'Unknown'")),
        sa.Column("device_type", sa.String(100), nullable=False, server_default=sa.text("'Unknown'")),
        sa.Column("manufacturer", sa.String(255), nullable=True),
        sa.Column("model", sa.String(255), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("image_path", sa.String(255), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("weight_kg", sa.Float(), nullable=True),
        sa.Column("price_per_kg", sa.Numeric(10, 2), nullable=True),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=True, comment="Derived: weight_kg * price_per_kg"),
        sa.Column("lot_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_scan_records"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_scan_records_user_id"),
        sa.ForeignKeyConstraint(
            ["lot_id"], ["lots.id"], name="fk_scan_records_lot_id", ondelete="SET NULL"
        ),
        sa.CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_scan_records_confidence"),
        sa.CheckConstraint("weight_kg IS NULL OR weight_kg >= 0", name="ck_scan_records_weight"),
    )
    op.create_index("idx_scan_records_user_id", "scan_records", ["user_id"])
    op.create_index("idx_scan_records_lot_id", "scan_records", ["lot_id"])
    op.create_index("idx_scan_records_created_at", "scan_records", [sa.text("created_at DESC")])

    # ── activity_sessions ─────────────────────────────────────────────────
    op.create_table(
        "activity_sessions",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("last_active_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("ended_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("activity_date", sa.Date(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_activity_sessions"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_activity_sessions_user_id"),
    )
    op.create_index(
        "idx_activity_sessions_user_activity", "activity_sessions", ["user_id", "activity_date"]
    )
    op.create_index("idx_activity_sessions_started_at", "activity_sessions", ["started_at"])
    op.create_index(
        "uq_activity_sessions_one_open_per_user",
        "activity_sessions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("ended_at IS NULL"),
    )

    # ── board_names ───────────────────────────────────────────────────────
    op.create_table(
        "board_names",
        _uuid_pk(),
        sa.Column("board_type", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("device_type", sa.String(100), nullable=False),
        sa.Column("manufacturer", sa.String(255), nullable=True),
        sa.Column("model", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_board_names"),
        sa.UniqueConstraint("board_type", name="uq_board_names_board_type"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], name="fk_board_names_created_by"),
    )


def downgrade() -> None:
    op.drop_table("board_names")
    op.drop_index("uq_activity_sessions_one_open_per_user", table_name="activity_sessions")
    op.drop_index("idx_activity_sessions_started_at", table_name="activity_sessions")
    op.drop_index("idx_activity_sessions_user_activity", table_name="activity_sessions")
    op.drop_table("activity_sessions")
    op.drop_index("idx_scan_records_created_at", table_name="scan_records")
    op.drop_index("idx_scan_records_lot_id", table_name="scan_records")
    op.drop_index("idx_scan_records_user_id", table_name="scan_records")
    op.drop_table("scan_records")
    op.drop_index("idx_lots_created_by", table_name="lots")
    op.drop_index("idx_lots_created_at", table_name="lots")
    op.drop_index("idx_lots_status", table_name="lots")
    op.drop_table("lots")
    op.drop_table("users")
