"""
Ledger record types.

Records are plain dataclasses owned by the store. Readers only ever receive
copies (see `LedgerStore.snapshot_event` / `snapshot_ticket`), so the only way
to change a record is through a `Ledger` operation.

Key design decisions:
- Records are never deleted. "Deletion" is a terminal flag
  (`cancelled`, `completed`, `is_used`, `is_refunded`).
- `active` is reserved: it is True from creation and gates nothing.
- Amounts are plain non-negative ints in the smallest currency unit.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class EventRecord:
    id: int
    organizer: str
    name: str
    price: int
    total_tickets: int
    available_tickets: int
    metadata_cid: str
    created_at: datetime
    active: bool = True
    cancelled: bool = False
    completed: bool = False
    escrowed_balance: int = 0
    # seats handed back to the pool by holder cancellations
    released_tickets: int = 0

    @property
    def tickets_sold(self) -> int:
        return self.total_tickets - self.available_tickets


@dataclass
class TicketRecord:
    id: int
    event_id: int
    owner: str
    purchase_time: datetime
    is_used: bool = False
    is_refunded: bool = False


@dataclass(frozen=True)
class LedgerLimits:
    """Validation bounds applied by the ledger. Built from settings by the service layer."""

    max_event_name_length: int = 200
    max_metadata_cid_length: int = 1000
    max_tickets_per_event: int = 1_000_000
    max_tickets_per_account: int = 1000
    max_identity_length: int = 128
