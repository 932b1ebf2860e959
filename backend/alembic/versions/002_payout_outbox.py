"""Payout outbox: refunds and withdrawals are paid after their commit.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "payouts",
        sa.Column(
            "sequence",
            sa.BigInteger(),
            sa.ForeignKey("ledger_entries.sequence"),
            primary_key=True,
            autoincrement=False,
        ),
        sa.Column("recipient", sa.Text(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("reason", sa.String(32), nullable=False),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount > 0", name="check_payout_amount_positive"),
    )
    # Pending payouts are looked up on every startup
    op.create_index("ix_payouts_pending", "payouts", ["dispatched_at", "sequence"])


def downgrade() -> None:
    op.drop_index("ix_payouts_pending", table_name="payouts")
    op.drop_table("payouts")
