"""
Notification journal: one append-only row per committed ledger mutation.
"""

from sqlalchemy import BigInteger, Column, DateTime, String, Text

from ticket_ledger.db.base import Base


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    sequence = Column(BigInteger, primary_key=True, autoincrement=False)
    kind = Column(String(32), nullable=False, index=True)
    event_id = Column(BigInteger, nullable=False, index=True)
    ticket_id = Column(BigInteger, nullable=True, index=True)
    actor = Column(Text, nullable=False)
    counterparty = Column(Text, nullable=True)
    amount = Column(BigInteger, nullable=True)
    recorded_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<LedgerEntry(seq={self.sequence}, kind={self.kind}, event={self.event_id}, ticket={self.ticket_id})>"
