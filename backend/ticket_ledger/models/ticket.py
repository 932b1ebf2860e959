"""
Ticket table: durable copy of the ledger's ticket records.

Key design decisions:
- Composite index on (owner, id) is the owner index: per-account listing
  is an index range scan in id order, never a table scan
- `is_used` / `is_refunded` are terminal flags; a CHECK keeps them exclusive
"""

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import relationship

from ticket_ledger.db.base import Base, TimestampMixin


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    event_id = Column(BigInteger, ForeignKey("events.id"), nullable=False, index=True)
    owner = Column(Text, nullable=False)
    purchase_time = Column(DateTime(timezone=True), nullable=False)
    is_used = Column(Boolean, nullable=False, default=False)
    is_refunded = Column(Boolean, nullable=False, default=False)

    event = relationship("Event", back_populates="tickets", lazy="raise")

    __table_args__ = (
        Index("ix_tickets_owner_id", "owner", "id"),
        CheckConstraint("NOT (is_used AND is_refunded)", name="check_ticket_single_terminal_state"),
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, event={self.event_id}, owner={self.owner}, used={self.is_used}, refunded={self.is_refunded})>"
