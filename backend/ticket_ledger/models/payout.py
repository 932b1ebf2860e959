"""
Payout outbox: value owed to an account by a committed ledger operation.

Key design decisions:
- Written in the same transaction as the operation's ledger entries, so a
  payout exists if and only if the refund/withdrawal committed
- The payment rail is only called after that commit. A row is claimed
  (`dispatched_at` set) before the transfer and released if the rail
  refuses it, so a payout is sent at most once and retried until it is
- Keyed by the notification sequence that produced it, one payout per entry
"""

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text

from ticket_ledger.db.base import Base


class Payout(Base):
    __tablename__ = "payouts"

    sequence = Column(BigInteger, ForeignKey("ledger_entries.sequence"), primary_key=True, autoincrement=False)
    recipient = Column(Text, nullable=False)
    amount = Column(BigInteger, nullable=False)
    reason = Column(String(32), nullable=False)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_payouts_pending", "dispatched_at", "sequence"),
        CheckConstraint("amount > 0", name="check_payout_amount_positive"),
    )

    def __repr__(self) -> str:
        return f"<Payout(seq={self.sequence}, to={self.recipient}, amount={self.amount}, dispatched={self.dispatched_at is not None})>"
