from ticket_ledger.models.event import Event
from ticket_ledger.models.ticket import Ticket
from ticket_ledger.models.ledger_entry import LedgerEntry
from ticket_ledger.models.payout import Payout

__all__ = ["Event", "Ticket", "LedgerEntry", "Payout"]
