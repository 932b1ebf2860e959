"""
Ledger error taxonomy.

Every rejected operation raises exactly one of these. Each concrete class has a
stable machine-readable `code` and belongs to one `ErrorKind`, which is what
the API layer maps to an HTTP status. Nothing in the ledger swallows them.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_STATE = "invalid_state"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    PAYMENT_MISMATCH = "payment_mismatch"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INVALID_INPUT = "invalid_input"
    TRANSFER_FAILED = "transfer_failed"


class LedgerError(Exception):
    """Base class for every ledger rejection."""

    code: str = "LEDGER_ERROR"
    kind: ErrorKind = ErrorKind.INVALID_STATE
    default_message: str = "Ledger operation rejected"

    def __init__(self, message: Optional[str] = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "kind": self.kind.value, "message": self.message}


# --- NotFound ---

class NotFound(LedgerError):
    kind = ErrorKind.NOT_FOUND
    code = "NOT_FOUND"


class EventNotFound(NotFound):
    code = "EVENT_NOT_FOUND"
    default_message = "Event does not exist"


class TicketNotFound(NotFound):
    code = "TICKET_NOT_FOUND"
    default_message = "Ticket does not exist"


# --- Unauthorized ---

class Unauthorized(LedgerError):
    kind = ErrorKind.UNAUTHORIZED
    code = "UNAUTHORIZED"


class NotOrganizer(Unauthorized):
    code = "NOT_ORGANIZER"
    default_message = "Caller is not the event organizer"


class NotTicketOwner(Unauthorized):
    code = "NOT_TICKET_OWNER"
    default_message = "Caller is not the ticket owner"


# --- InvalidState ---

class InvalidState(LedgerError):
    kind = ErrorKind.INVALID_STATE
    code = "INVALID_STATE"


class EventCancelled(InvalidState):
    code = "EVENT_CANCELLED"
    default_message = "Event has been cancelled"


class EventCompleted(InvalidState):
    code = "EVENT_COMPLETED"
    default_message = "Event has been completed"


class EventAlreadyCancelled(InvalidState):
    code = "EVENT_ALREADY_CANCELLED"
    default_message = "Event is already cancelled"


class EventAlreadyCompleted(InvalidState):
    code = "EVENT_ALREADY_COMPLETED"
    default_message = "Event is already completed"


class EventNotCancelled(InvalidState):
    code = "EVENT_NOT_CANCELLED"
    default_message = "Refunds are only available for cancelled events"


class EventNotCompleted(InvalidState):
    code = "EVENT_NOT_COMPLETED"
    default_message = "Earnings can only be withdrawn after the event is completed"


class NothingToWithdraw(InvalidState):
    code = "NOTHING_TO_WITHDRAW"
    default_message = "Event has no escrowed balance to withdraw"


class TicketUsed(InvalidState):
    code = "TICKET_USED"
    default_message = "Ticket has already been used"


class TicketRefunded(InvalidState):
    code = "TICKET_REFUNDED"
    default_message = "Ticket has already been refunded"


# --- CapacityExceeded ---

class CapacityExceeded(LedgerError):
    kind = ErrorKind.CAPACITY_EXCEEDED
    code = "CAPACITY_EXCEEDED"


class SoldOut(CapacityExceeded):
    code = "SOLD_OUT"
    default_message = "No tickets available"


class TooManyTickets(CapacityExceeded):
    code = "TOO_MANY_TICKETS"
    default_message = "Account holds the maximum number of tickets"


# --- PaymentMismatch ---

class PaymentMismatch(LedgerError):
    kind = ErrorKind.PAYMENT_MISMATCH
    code = "PAYMENT_MISMATCH"


class InsufficientPayment(PaymentMismatch):
    code = "INSUFFICIENT_PAYMENT"
    default_message = "Payment must match the ticket price exactly"


# --- InsufficientFunds ---

class InsufficientFunds(LedgerError):
    """Escrow cannot cover a payout. Only reachable if an invariant is broken."""

    kind = ErrorKind.INSUFFICIENT_FUNDS
    code = "INSUFFICIENT_FUNDS"
    default_message = "Escrowed balance cannot cover this payout"


class InvariantViolation(InsufficientFunds):
    code = "INVARIANT_VIOLATION"
    default_message = "Ledger state failed its consistency audit"


# --- InvalidInput / TransferFailed ---

class InvalidInput(LedgerError):
    kind = ErrorKind.INVALID_INPUT
    code = "INVALID_INPUT"
    default_message = "Invalid input parameters"


class TransferFailed(LedgerError):
    kind = ErrorKind.TRANSFER_FAILED
    code = "TRANSFER_FAILED"
    default_message = "Payout transfer failed"
