"""payment webhook events

Revision ID: 0002_payment_webhook_events
Revises: 0001_payment_ledger
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_payment_webhook_events"
down_revision = "0001_payment_ledger"
branch_labels = None
depends_on = None


def _inspector():
    from sqlalchemy import inspect as sa_inspect
    return sa_inspect(op.get_bind())


def upgrade() -> None:
    inspector = _inspector()
    existing_tables = set(inspector.get_table_names())

    if "payment_webhook_events" not in existing_tables:
        op.create_table(
            "payment_webhook_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("payment_id", sa.String(), nullable=False),
            sa.Column("status", sa.String(), nullable=False),
            sa.Column("outcome", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("payment_id", "status", name="uq_payment_webhook_events_payment_status"),
        )
        existing_idx: set[str] = set()
    else:
        existing_idx = {idx["name"] for idx in inspector.get_indexes("payment_webhook_events")}

    if "ix_payment_webhook_events_id" not in existing_idx:
        op.create_index("ix_payment_webhook_events_id", "payment_webhook_events", ["id"])
    if "ix_payment_webhook_events_payment_id" not in existing_idx:
        op.create_index("ix_payment_webhook_events_payment_id", "payment_webhook_events", ["payment_id"])
    if "ix_payment_webhook_events_outcome" not in existing_idx:
        op.create_index("ix_payment_webhook_events_outcome", "payment_webhook_events", ["outcome"])


def downgrade() -> None:
    op.drop_index("ix_payment_webhook_events_outcome", table_name="payment_webhook_events")
    op.drop_index("ix_payment_webhook_events_payment_id", table_name="payment_webhook_events")
    op.drop_index("ix_payment_webhook_events_id", table_name="payment_webhook_events")
    op.drop_table("payment_webhook_events")
