"""
In-memory record store: the two tables, their id counters and the owner index.

The store does no validation and holds no lock. It is the state the `Ledger`
owns and mutates; nothing else should hold a reference to it.

Ids are assigned sequentially from 0 and double as list positions, so lookup
by id is O(1) and records are never removed.
"""

import bisect
from dataclasses import replace
from typing import Iterable

from ticket_ledger.ledger.errors import EventNotFound, TicketNotFound
from ticket_ledger.ledger.records import EventRecord, TicketRecord


class LedgerStore:
    def __init__(self) -> None:
        self._events: list[EventRecord] = []
        self._tickets: list[TicketRecord] = []
        # owner -> ticket ids in ascending order
        self._owner_index: dict[str, list[int]] = {}

    # --- counters ---

    @property
    def event_count(self) -> int:
        return len(self._events)

    @property
    def ticket_count(self) -> int:
        return len(self._tickets)

    @property
    def next_event_id(self) -> int:
        return len(self._events)

    @property
    def next_ticket_id(self) -> int:
        return len(self._tickets)

    # --- lookup (live records, for the ledger only) ---

    def event(self, event_id: int) -> EventRecord:
        if not 0 <= event_id < len(self._events):
            raise EventNotFound(f"Event {event_id} not found", event_id=event_id)
        return self._events[event_id]

    def ticket(self, ticket_id: int) -> TicketRecord:
        if not 0 <= ticket_id < len(self._tickets):
            raise TicketNotFound(f"Ticket {ticket_id} not found", ticket_id=ticket_id)
        return self._tickets[ticket_id]

    def events(self) -> Iterable[EventRecord]:
        return iter(self._events)

    def tickets(self) -> Iterable[TicketRecord]:
        return iter(self._tickets)

    # --- snapshots (copies, safe to hand out) ---

    def snapshot_event(self, event_id: int) -> EventRecord:
        return replace(self.event(event_id))

    def snapshot_ticket(self, ticket_id: int) -> TicketRecord:
        return replace(self.ticket(ticket_id))

    # --- inserts ---

    def insert_event(self, event: EventRecord) -> None:
        if event.id != self.next_event_id:
            raise ValueError(f"Event id {event.id} is out of sequence (expected {self.next_event_id})")
        self._events.append(event)

    def insert_ticket(self, ticket: TicketRecord) -> None:
        if ticket.id != self.next_ticket_id:
            raise ValueError(f"Ticket id {ticket.id} is out of sequence (expected {self.next_ticket_id})")
        self._tickets.append(ticket)
        self.index_add(ticket.owner, ticket.id)

    # --- owner index ---

    def owner_ticket_ids(self, owner: str) -> list[int]:
        return list(self._owner_index.get(owner, ()))

    def index_add(self, owner: str, ticket_id: int) -> None:
        ids = self._owner_index.setdefault(owner, [])
        pos = bisect.bisect_left(ids, ticket_id)
        if pos == len(ids) or ids[pos] != ticket_id:
            ids.insert(pos, ticket_id)

    def index_remove(self, owner: str, ticket_id: int) -> None:
        ids = self._owner_index.get(owner)
        if not ids:
            return
        pos = bisect.bisect_left(ids, ticket_id)
        if pos < len(ids) and ids[pos] == ticket_id:
            del ids[pos]
        if not ids:
            del self._owner_index[owner]

    def count_live_tickets(self, owner: str) -> int:
        """Tickets held by `owner` that have not been refunded."""
        return sum(1 for tid in self._owner_index.get(owner, ()) if not self._tickets[tid].is_refunded)

    @classmethod
    def from_records(cls, events: Iterable[EventRecord], tickets: Iterable[TicketRecord]) -> "LedgerStore":
        """Rebuild a store (and its owner index) from persisted records ordered by id."""
        store = cls()
        for event in events:
            store.insert_event(replace(event))
        for ticket in tickets:
            store.insert_ticket(replace(ticket))
        return store
