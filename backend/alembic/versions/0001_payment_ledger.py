"""payment ledger

Revision ID: 0001_payment_ledger
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_payment_ledger"
down_revision = None
branch_labels = None
depends_on = None


def _inspector():
    from sqlalchemy import inspect as sa_inspect
    return sa_inspect(op.get_bind())


def upgrade() -> None:
    inspector = _inspector()
    existing_tables = set(inspector.get_table_names())

    def existing_indexes(table: str) -> set[str]:
        if table not in existing_tables:
            return set()
        return {idx["name"] for idx in inspector.get_indexes(table)}

    if "payment" not in existing_tables:
        op.create_table(
            "payment",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("transaction_key", sa.String(), nullable=False),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(), nullable=False),
            sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("end_grace_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("next_schedule_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("next_schedule_id", sa.String(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
        )
    idxs = existing_indexes("payment")
    if "ix_payment_id" not in idxs:
        op.create_index("ix_payment_id", "payment", ["id"])
    if "ix_payment_transaction_key" not in idxs:
        op.create_index("ix_payment_transaction_key", "payment", ["transaction_key"])
    if "ix_payment_user_id" not in idxs:
        op.create_index("ix_payment_user_id", "payment", ["user_id"])
    if "ix_payment_status" not in idxs:
        op.create_index("ix_payment_status", "payment", ["status"])
    if "ix_payment_next_schedule_id" not in idxs:
        op.create_index("ix_payment_next_schedule_id", "payment", ["next_schedule_id"])
    if "ix_payment_created_at" not in idxs:
        op.create_index("ix_payment_created_at", "payment", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_payment_created_at", table_name="payment")
    op.drop_index("ix_payment_next_schedule_id", table_name="payment")
    op.drop_index("ix_payment_status", table_name="payment")
    op.drop_index("ix_payment_user_id", table_name="payment")
    op.drop_index("ix_payment_transaction_key", table_name="payment")
    op.drop_index("ix_payment_id", table_name="payment")
    op.drop_table("payment")
