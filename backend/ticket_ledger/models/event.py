"""
Event table: durable copy of the ledger's event records.

Key design decisions:
- `id` is assigned by the ledger (sequential from 0), never by the database
- Rows are upserted after every committed operation and never deleted
- CHECK constraints restate the ledger invariants as a last line of defense
- Text columns: name/cid/identity ceilings are settings, enforced by the ledger
- `issued_at` is the ledger's creation time; `created_at`/`updated_at` are row bookkeeping
"""

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Column, DateTime, Integer, Text
from sqlalchemy.orm import relationship

from ticket_ledger.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    organizer = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    price = Column(BigInteger, nullable=False)
    total_tickets = Column(Integer, nullable=False)
    available_tickets = Column(Integer, nullable=False)
    released_tickets = Column(Integer, nullable=False, default=0)
    metadata_cid = Column(Text, nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    cancelled = Column(Boolean, nullable=False, default=False)
    completed = Column(Boolean, nullable=False, default=False)
    escrowed_balance = Column(BigInteger, nullable=False, default=0)

    tickets = relationship("Ticket", back_populates="event", lazy="raise")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_event_price_non_negative"),
        CheckConstraint("total_tickets > 0", name="check_total_tickets_positive"),
        CheckConstraint("available_tickets >= 0", name="check_available_tickets_non_negative"),
        CheckConstraint("available_tickets <= total_tickets", name="check_available_lte_total"),
        CheckConstraint("escrowed_balance >= 0", name="check_escrow_non_negative"),
        CheckConstraint("NOT (cancelled AND completed)", name="check_single_terminal_state"),
    )

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, name={self.name}, "
            f"available={self.available_tickets}/{self.total_tickets}, escrow={self.escrowed_balance})>"
        )
