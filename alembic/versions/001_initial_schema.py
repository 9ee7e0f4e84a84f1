"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates the tables behind the booking command service:
- Bookings
- Audit logs
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all database tables."""

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("reservation_number", sa.String(40), unique=True, nullable=False, index=True),
        sa.Column("requester_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("service_name", sa.String(200), nullable=False),
        sa.Column("timeslot", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("total_amount", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), default="EUR"),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING", index=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="UNPAID", index=True),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("payment_failure_reason", sa.Text),
        sa.Column("extra", postgresql.JSONB, server_default=sa.text("'{}'::jsonb")),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("started_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("refunded_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    # ==================== AUDIT ====================
    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("actor", sa.String(100), index=True),
        sa.Column("action", sa.String(100), nullable=False, index=True),
        sa.Column("resource_type", sa.String(50), nullable=False, index=True),
        sa.Column("resource_id", sa.String(64)),
        sa.Column("old_values", postgresql.JSONB),
        sa.Column("new_values", postgresql.JSONB),
        sa.Column("correlation_id", sa.String(64), index=True),
        sa.Column("user_agent", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("audit_logs")
    op.drop_table("bookings")
