"""
Ticket ledger state machine.

CONCURRENCY & ATOMICITY
=======================

Every public method runs under one re-entrant lock that covers the whole
store, from the first precondition check to the last write. Two operations
can never interleave, so the capacity decrement in `buy_ticket` and the
escrow arithmetic in the refund/withdraw paths are serializable.

Each operation is written in two phases:

  1. Validate. Look up records and check every precondition. Any failure
     raises a `LedgerError` before anything has been written.
  2. Apply. Plain attribute assignments and list appends that cannot fail.

Value leaving the ledger goes through the injected `transfer` callable. It is
invoked at the end of phase 1, after the escrow sufficiency check, so a
failed payout leaves the ledger untouched.

REFUNDS ARE PULLED, NOT PUSHED
==============================

`cancel_event` only flips a flag. Each holder claims their own refund with
`refund_ticket`, so cancellation costs the same no matter how many tickets
were sold.

CAPACITY ACCOUNTING
===================

`cancel_ticket` returns the seat to the pool, `refund_ticket` does not (the
event is closed to sales). Returned seats are counted in
`EventRecord.released_tickets`, which keeps
`total_tickets - available_tickets == minted - released_tickets` checkable.
"""

import functools
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from ticket_ledger.core.logging import get_logger
from ticket_ledger.ledger.errors import (
    EventAlreadyCancelled,
    EventAlreadyCompleted,
    EventCancelled,
    EventCompleted,
    EventNotCancelled,
    EventNotCompleted,
    InsufficientFunds,
    InsufficientPayment,
    InvalidInput,
    InvariantViolation,
    LedgerError,
    NotOrganizer,
    NotTicketOwner,
    NothingToWithdraw,
    SoldOut,
    TicketRefunded,
    TicketUsed,
    TooManyTickets,
    TransferFailed,
)
from ticket_ledger.ledger.notifications import Notification, NotificationKind, NotificationLog
from ticket_ledger.ledger.records import EventRecord, LedgerLimits, TicketRecord
from ticket_ledger.ledger.store import LedgerStore

logger = get_logger(__name__)

TransferFn = Callable[[str, int], None]
ClockFn = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_amount(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def serialized(method):
    """Run a ledger method under the ledger lock and log rejections."""

    @functools.wraps(method)
    def wrapper(self: "Ledger", *args, **kwargs):
        with self._lock:
            try:
                return method(self, *args, **kwargs)
            except LedgerError as exc:
                logger.warning(
                    "ledger_operation_rejected",
                    operation=method.__name__,
                    code=exc.code,
                    **exc.context,
                )
                raise

    return wrapper


class Ledger:
    def __init__(
        self,
        limits: Optional[LedgerLimits] = None,
        transfer: Optional[TransferFn] = None,
        clock: Optional[ClockFn] = None,
        store: Optional[LedgerStore] = None,
        notifications: Optional[NotificationLog] = None,
    ):
        self._store = store if store is not None else LedgerStore()
        self._log = notifications if notifications is not None else NotificationLog()
        self._limits = limits or LedgerLimits()
        self._transfer = transfer
        self._clock = clock or _utcnow
        self._lock = threading.RLock()

    @classmethod
    def from_records(
        cls,
        events: Iterable[EventRecord],
        tickets: Iterable[TicketRecord],
        notifications: Iterable[Notification] = (),
        **kwargs,
    ) -> "Ledger":
        """Rebuild a ledger from persisted records and audit the result."""
        log = NotificationLog()
        log.extend(list(notifications))
        ledger = cls(store=LedgerStore.from_records(events, tickets), notifications=log, **kwargs)
        ledger.check_invariants()
        return ledger

    @property
    def limits(self) -> LedgerLimits:
        return self._limits

    # ------------------------------------------------------------------
    # Shared checks
    # ------------------------------------------------------------------

    def _require_identity(self, identity, field: str = "caller") -> None:
        if not isinstance(identity, str) or not identity.strip():
            raise InvalidInput(f"{field} must be a non-empty identity")
        if len(identity) > self._limits.max_identity_length:
            raise InvalidInput(
                f"{field} exceeds {self._limits.max_identity_length} characters"
            )

    @staticmethod
    def _require_organizer(event: EventRecord, caller: str) -> None:
        if caller != event.organizer:
            raise NotOrganizer(event_id=event.id)

    @staticmethod
    def _require_holder(ticket: TicketRecord, caller: str) -> None:
        if caller != ticket.owner:
            raise NotTicketOwner(ticket_id=ticket.id)

    def _require_account_room(self, account: str) -> None:
        if self._store.count_live_tickets(account) >= self._limits.max_tickets_per_account:
            raise TooManyTickets(
                f"Account holds the maximum of {self._limits.max_tickets_per_account} tickets"
            )

    def _pay_out(self, recipient: str, amount: int, event: EventRecord) -> None:
        """Check escrow covers `amount` and hand it to the transfer hook. Mutates nothing."""
        if amount > event.escrowed_balance:
            logger.error(
                "escrow_shortfall",
                event_id=event.id,
                requested=amount,
                escrowed=event.escrowed_balance,
            )
            raise InsufficientFunds(
                f"Event {event.id} escrow {event.escrowed_balance} cannot cover {amount}",
                event_id=event.id,
            )
        if amount == 0 or self._transfer is None:
            return
        try:
            self._transfer(recipient, amount)
        except LedgerError:
            raise
        except Exception as exc:
            raise TransferFailed(f"Payout of {amount} to {recipient} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Event operations
    # ------------------------------------------------------------------

    @serialized
    def create_event(
        self,
        caller: str,
        name: str,
        price: int,
        total_tickets: int,
        metadata_cid: str,
    ) -> int:
        """Create an event owned by `caller`. Returns the new event id."""
        limits = self._limits
        self._require_identity(caller)
        if not isinstance(name, str) or not name.strip() or len(name) > limits.max_event_name_length:
            raise InvalidInput(f"name must be 1-{limits.max_event_name_length} characters")
        if (
            not isinstance(metadata_cid, str)
            or not metadata_cid.strip()
            or len(metadata_cid) > limits.max_metadata_cid_length
        ):
            raise InvalidInput(f"metadata_cid must be 1-{limits.max_metadata_cid_length} characters")
        if not _is_amount(total_tickets) or not 0 < total_tickets <= limits.max_tickets_per_event:
            raise InvalidInput(f"total_tickets must be between 1 and {limits.max_tickets_per_event}")
        if not _is_amount(price):
            raise InvalidInput("price must be a non-negative integer")

        now = self._clock()
        event = EventRecord(
            id=self._store.next_event_id,
            organizer=caller,
            name=name,
            price=price,
            total_tickets=total_tickets,
            available_tickets=total_tickets,
            metadata_cid=metadata_cid,
            created_at=now,
        )
        self._store.insert_event(event)
        self._log.append(NotificationKind.EVENT_CREATED, event.id, caller, now, amount=price)

        logger.info(
            "event_created",
            event_id=event.id,
            organizer=caller,
            price=price,
            total_tickets=total_tickets,
        )
        return event.id

    @serialized
    def cancel_event(self, caller: str, event_id: int) -> None:
        """Close the event for good. Holders then claim refunds one by one."""
        event = self._store.event(event_id)
        self._require_organizer(event, caller)
        if event.cancelled:
            raise EventAlreadyCancelled(event_id=event_id)
        if event.completed:
            raise EventAlreadyCompleted(event_id=event_id)

        event.cancelled = True
        self._log.append(NotificationKind.EVENT_CANCELLED, event_id, caller, self._clock())
        logger.info("event_cancelled", event_id=event_id, tickets_sold=event.tickets_sold)

    @serialized
    def complete_event(self, caller: str, event_id: int) -> None:
        event = self._store.event(event_id)
        self._require_organizer(event, caller)
        if event.cancelled:
            raise EventAlreadyCancelled(event_id=event_id)
        if event.completed:
            raise EventAlreadyCompleted(event_id=event_id)

        event.completed = True
        self._log.append(NotificationKind.EVENT_COMPLETED, event_id, caller, self._clock())
        logger.info("event_completed", event_id=event_id, escrowed=event.escrowed_balance)

    @serialized
    def withdraw_earnings(self, caller: str, event_id: int) -> int:
        """Pay the whole escrowed balance of a completed event to its organizer."""
        event = self._store.event(event_id)
        self._require_organizer(event, caller)
        if not event.completed:
            raise EventNotCompleted(event_id=event_id)
        amount = event.escrowed_balance
        if amount == 0:
            raise NothingToWithdraw(event_id=event_id)
        self._pay_out(caller, amount, event)

        event.escrowed_balance -= amount
        self._log.append(
            NotificationKind.EARNINGS_WITHDRAWN, event_id, caller, self._clock(), amount=amount
        )
        logger.info("earnings_withdrawn", event_id=event_id, organizer=caller, amount=amount)
        return amount

    # ------------------------------------------------------------------
    # Ticket operations
    # ------------------------------------------------------------------

    @serialized
    def buy_ticket(self, caller: str, event_id: int, payment_amount: int) -> int:
        """
        Mint a ticket for `caller` against an exact payment.

        Over- and under-payment are both rejected; the payment is never
        partially accepted.
        """
        self._require_identity(caller)
        event = self._store.event(event_id)
        if event.cancelled:
            raise EventCancelled(event_id=event_id)
        if event.completed:
            raise EventCompleted(event_id=event_id)
        if event.available_tickets == 0:
            raise SoldOut(event_id=event_id)
        if not _is_amount(payment_amount) or payment_amount != event.price:
            raise InsufficientPayment(
                f"Payment must be exactly {event.price}",
                event_id=event_id,
            )
        self._require_account_room(caller)

        now = self._clock()
        ticket = TicketRecord(
            id=self._store.next_ticket_id,
            event_id=event_id,
            owner=caller,
            purchase_time=now,
        )
        self._store.insert_ticket(ticket)
        event.available_tickets -= 1
        event.escrowed_balance += event.price
        self._log.append(
            NotificationKind.TICKET_PURCHASED,
            event_id,
            caller,
            now,
            ticket_id=ticket.id,
            amount=event.price,
        )

        logger.info(
            "ticket_purchased",
            ticket_id=ticket.id,
            event_id=event_id,
            buyer=caller,
            price=event.price,
            available=event.available_tickets,
        )
        return ticket.id

    @serialized
    def transfer_ticket(self, caller: str, ticket_id: int, new_owner: str) -> None:
        """Hand a ticket to `new_owner`. Transferring to yourself is a no-op."""
        ticket = self._store.ticket(ticket_id)
        self._require_holder(ticket, caller)
        if ticket.is_used:
            raise TicketUsed(ticket_id=ticket_id)
        if ticket.is_refunded:
            raise TicketRefunded(ticket_id=ticket_id)
        event = self._store.event(ticket.event_id)
        if event.cancelled:
            raise EventCancelled(event_id=event.id)
        self._require_identity(new_owner, field="new_owner")

        if new_owner == caller:
            logger.info("ticket_transfer_noop", ticket_id=ticket_id, owner=caller)
            return
        self._require_account_room(new_owner)

        ticket.owner = new_owner
        self._store.index_remove(caller, ticket_id)
        self._store.index_add(new_owner, ticket_id)
        self._log.append(
            NotificationKind.TICKET_TRANSFERRED,
            event.id,
            caller,
            self._clock(),
            ticket_id=ticket_id,
            counterparty=new_owner,
        )
        logger.info("ticket_transferred", ticket_id=ticket_id, sender=caller, recipient=new_owner)

    @serialized
    def cancel_ticket(self, caller: str, ticket_id: int) -> int:
        """
        Holder gives a ticket back while the event is still open for sale.
        The seat returns to the pool and the price is refunded. Returns the amount.
        """
        ticket = self._store.ticket(ticket_id)
        self._require_holder(ticket, caller)
        if ticket.is_used:
            raise TicketUsed(ticket_id=ticket_id)
        if ticket.is_refunded:
            raise TicketRefunded(ticket_id=ticket_id)
        event = self._store.event(ticket.event_id)
        if event.cancelled:
            raise EventCancelled(
                "Event has been cancelled; claim the refund instead",
                event_id=event.id,
            )
        if event.completed:
            raise EventCompleted(event_id=event.id)
        amount = event.price
        self._pay_out(caller, amount, event)

        ticket.is_refunded = True
        event.available_tickets += 1
        event.released_tickets += 1
        event.escrowed_balance -= amount
        self._log.append(
            NotificationKind.TICKET_CANCELLED,
            event.id,
            caller,
            self._clock(),
            ticket_id=ticket_id,
            amount=amount,
        )
        logger.info(
            "ticket_cancelled",
            ticket_id=ticket_id,
            event_id=event.id,
            owner=caller,
            refund=amount,
            available=event.available_tickets,
        )
        return amount

    @serialized
    def refund_ticket(self, caller: str, ticket_id: int) -> int:
        """Claim the refund for a ticket of a cancelled event. Returns the amount."""
        ticket = self._store.ticket(ticket_id)
        self._require_holder(ticket, caller)
        if ticket.is_refunded:
            raise TicketRefunded(ticket_id=ticket_id)
        if ticket.is_used:
            raise TicketUsed(ticket_id=ticket_id)
        event = self._store.event(ticket.event_id)
        if not event.cancelled:
            raise EventNotCancelled(event_id=event.id)
        amount = event.price
        self._pay_out(caller, amount, event)

        ticket.is_refunded = True
        event.escrowed_balance -= amount
        self._log.append(
            NotificationKind.TICKET_REFUNDED,
            event.id,
            caller,
            self._clock(),
            ticket_id=ticket_id,
            amount=amount,
        )
        logger.info("ticket_refunded", ticket_id=ticket_id, event_id=event.id, owner=caller, amount=amount)
        return amount

    @serialized
    def use_ticket(self, caller: str, ticket_id: int) -> None:
        """Organizer redeems a ticket, e.g. at the door. There is no way back."""
        ticket = self._store.ticket(ticket_id)
        event = self._store.event(ticket.event_id)
        self._require_organizer(event, caller)
        if ticket.is_used:
            raise TicketUsed(ticket_id=ticket_id)
        if ticket.is_refunded:
            raise TicketRefunded(ticket_id=ticket_id)
        if event.cancelled:
            raise EventCancelled(event_id=event.id)
        if event.completed:
            raise EventCompleted(event_id=event.id)

        ticket.is_used = True
        self._log.append(
            NotificationKind.TICKET_USED,
            event.id,
            caller,
            self._clock(),
            ticket_id=ticket_id,
            counterparty=ticket.owner,
        )
        logger.info("ticket_used", ticket_id=ticket_id, event_id=event.id, holder=ticket.owner)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @serialized
    def get_event_count(self) -> int:
        return self._store.event_count

    @serialized
    def get_ticket_count(self) -> int:
        return self._store.ticket_count

    @serialized
    def get_event(self, event_id: int) -> EventRecord:
        return self._store.snapshot_event(event_id)

    @serialized
    def get_ticket(self, ticket_id: int) -> TicketRecord:
        return self._store.snapshot_ticket(ticket_id)

    @serialized
    def get_my_tickets(self, owner: str) -> list[int]:
        """Ticket ids held by `owner`, ascending, served from the owner index."""
        return self._store.owner_ticket_ids(owner)

    @serialized
    def list_events(self, offset: int = 0, limit: Optional[int] = None) -> list[EventRecord]:
        end = self._store.event_count if limit is None else min(offset + limit, self._store.event_count)
        return [self._store.snapshot_event(event_id) for event_id in range(max(offset, 0), end)]

    @serialized
    def get_notifications(self, after: Optional[int] = None, limit: Optional[int] = None) -> list[Notification]:
        return self._log.since(after, limit)

    @serialized
    def next_notification_sequence(self) -> int:
        return self._log.next_sequence

    # ------------------------------------------------------------------
    # Consistency audit
    # ------------------------------------------------------------------

    @serialized
    def check_invariants(self) -> None:
        """Re-verify every record-level invariant. Raises InvariantViolation on the first breach."""
        minted: dict[int, int] = {}
        refunded: dict[int, int] = {}

        for ticket in self._store.tickets():
            if ticket.is_used and ticket.is_refunded:
                raise InvariantViolation(f"Ticket {ticket.id} is both used and refunded")
            if not isinstance(ticket.owner, str) or not ticket.owner:
                raise InvariantViolation(f"Ticket {ticket.id} has no owner")
            if ticket.id not in self._store.owner_ticket_ids(ticket.owner):
                raise InvariantViolation(f"Ticket {ticket.id} missing from owner index")
            if not 0 <= ticket.event_id < self._store.event_count:
                raise InvariantViolation(f"Ticket {ticket.id} references unknown event {ticket.event_id}")
            minted[ticket.event_id] = minted.get(ticket.event_id, 0) + 1
            if ticket.is_refunded:
                refunded[ticket.event_id] = refunded.get(ticket.event_id, 0) + 1

        for event in self._store.events():
            sold = minted.get(event.id, 0)
            live = sold - refunded.get(event.id, 0)
            if not 0 <= event.available_tickets <= event.total_tickets:
                raise InvariantViolation(f"Event {event.id} availability out of range")
            if event.total_tickets - event.available_tickets != sold - event.released_tickets:
                raise InvariantViolation(f"Event {event.id} availability does not match minted tickets")
            if event.cancelled and event.completed:
                raise InvariantViolation(f"Event {event.id} is both cancelled and completed")
            if event.escrowed_balance < 0:
                raise InvariantViolation(f"Event {event.id} escrow is negative")
            expected = event.price * live
            if event.escrowed_balance > expected or (
                not event.completed and event.escrowed_balance != expected
            ):
                raise InvariantViolation(
                    f"Event {event.id} escrow {event.escrowed_balance} does not match {live} live tickets"
                )
