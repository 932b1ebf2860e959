"""
Ledger core - the authoritative state machine for events and tickets.

Pure Python and synchronous. Persistence, HTTP and metrics live in the
service and API layers and only ever reach state through `Ledger`.
"""

from .errors import ErrorKind, LedgerError
from .ledger import Ledger
from .notifications import Notification, NotificationKind
from .records import EventRecord, LedgerLimits, TicketRecord
from .store import LedgerStore

__all__ = [
    "ErrorKind", "LedgerError",
    "Ledger", "LedgerStore", "LedgerLimits",
    "EventRecord", "TicketRecord",
    "Notification", "NotificationKind",
]
