"""
Append-only notification log.

One entry per committed mutation, so indexers and UIs can rebuild history
without re-reading full state. Sequence numbers start at 0 and have no gaps.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class NotificationKind(str, Enum):
    EVENT_CREATED = "EventCreated"
    EVENT_CANCELLED = "EventCancelled"
    EVENT_COMPLETED = "EventCompleted"
    EARNINGS_WITHDRAWN = "EarningsWithdrawn"
    TICKET_PURCHASED = "TicketPurchased"
    TICKET_TRANSFERRED = "TicketTransferred"
    TICKET_CANCELLED = "TicketCancelled"
    TICKET_REFUNDED = "TicketRefunded"
    TICKET_USED = "TicketUsed"


@dataclass(frozen=True)
class Notification:
    sequence: int
    kind: NotificationKind
    event_id: int
    actor: str
    recorded_at: datetime
    ticket_id: Optional[int] = None
    counterparty: Optional[str] = None
    amount: Optional[int] = None


class NotificationLog:
    def __init__(self, start_sequence: int = 0):
        self._entries: list[Notification] = []
        self._first_sequence = start_sequence
        self._next_sequence = start_sequence

    @property
    def next_sequence(self) -> int:
        return self._next_sequence

    def append(
        self,
        kind: NotificationKind,
        event_id: int,
        actor: str,
        recorded_at: datetime,
        ticket_id: Optional[int] = None,
        counterparty: Optional[str] = None,
        amount: Optional[int] = None,
    ) -> Notification:
        entry = Notification(
            sequence=self._next_sequence,
            kind=kind,
            event_id=event_id,
            actor=actor,
            recorded_at=recorded_at,
            ticket_id=ticket_id,
            counterparty=counterparty,
            amount=amount,
        )
        self._entries.append(entry)
        self._next_sequence += 1
        return entry

    def extend(self, entries: list[Notification]) -> None:
        """Load already-committed entries (hydration). Sequences must continue the log."""
        for entry in entries:
            if entry.sequence != self._next_sequence:
                raise ValueError(
                    f"Notification sequence gap: expected {self._next_sequence}, got {entry.sequence}"
                )
            self._entries.append(entry)
            self._next_sequence += 1

    def since(self, after: Optional[int] = None, limit: Optional[int] = None) -> list[Notification]:
        """Entries with sequence > `after` (all entries when `after` is None), oldest first."""
        start = 0 if after is None else max(after + 1 - self._first_sequence, 0)
        entries = self._entries[start:]
        if limit is not None:
            entries = entries[:limit]
        return list(entries)

    def __len__(self) -> int:
        return len(self._entries)
