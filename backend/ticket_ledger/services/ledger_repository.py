"""
Durable storage for ledger state.

Write path: after an operation commits in memory, the events and tickets it
touched are upserted (`merge`), its notifications appended and any payout it
owes queued in the `payouts` outbox, all in one DB transaction. Payouts are
claimed and dispatched only after that commit.

Read path: at startup the tables are loaded in id order and
handed to `Ledger.from_records`, which rebuilds the owner index and audits
the invariants.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_ledger.ledger import EventRecord, Notification, NotificationKind, TicketRecord
from ticket_ledger.models import Event, LedgerEntry, Payout, Ticket


@dataclass(frozen=True)
class PendingPayout:
    sequence: int
    recipient: str
    amount: int
    reason: str


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back; everything the ledger writes is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def event_to_row(record: EventRecord) -> Event:
    return Event(
        id=record.id,
        organizer=record.organizer,
        name=record.name,
        price=record.price,
        total_tickets=record.total_tickets,
        available_tickets=record.available_tickets,
        released_tickets=record.released_tickets,
        metadata_cid=record.metadata_cid,
        issued_at=record.created_at,
        active=record.active,
        cancelled=record.cancelled,
        completed=record.completed,
        escrowed_balance=record.escrowed_balance,
    )


def row_to_event(row: Event) -> EventRecord:
    return EventRecord(
        id=row.id,
        organizer=row.organizer,
        name=row.name,
        price=row.price,
        total_tickets=row.total_tickets,
        available_tickets=row.available_tickets,
        released_tickets=row.released_tickets,
        metadata_cid=row.metadata_cid,
        created_at=_aware(row.issued_at),
        active=row.active,
        cancelled=row.cancelled,
        completed=row.completed,
        escrowed_balance=row.escrowed_balance,
    )


def ticket_to_row(record: TicketRecord) -> Ticket:
    return Ticket(
        id=record.id,
        event_id=record.event_id,
        owner=record.owner,
        purchase_time=record.purchase_time,
        is_used=record.is_used,
        is_refunded=record.is_refunded,
    )


def row_to_ticket(row: Ticket) -> TicketRecord:
    return TicketRecord(
        id=row.id,
        event_id=row.event_id,
        owner=row.owner,
        purchase_time=_aware(row.purchase_time),
        is_used=row.is_used,
        is_refunded=row.is_refunded,
    )


def notification_to_row(note: Notification) -> LedgerEntry:
    return LedgerEntry(
        sequence=note.sequence,
        kind=note.kind.value,
        event_id=note.event_id,
        ticket_id=note.ticket_id,
        actor=note.actor,
        counterparty=note.counterparty,
        amount=note.amount,
        recorded_at=note.recorded_at,
    )


def row_to_notification(row: LedgerEntry) -> Notification:
    return Notification(
        sequence=row.sequence,
        kind=NotificationKind(row.kind),
        event_id=row.event_id,
        ticket_id=row.ticket_id,
        actor=row.actor,
        counterparty=row.counterparty,
        amount=row.amount,
        recorded_at=_aware(row.recorded_at),
    )


async def save_changes(
    db: AsyncSession,
    events: Iterable[EventRecord],
    tickets: Iterable[TicketRecord],
    notifications: Iterable[Notification],
    payouts: Iterable[PendingPayout] = (),
) -> None:
    """Upsert touched records, append notifications and queue payouts in one transaction."""
    for record in events:
        await db.merge(event_to_row(record))
    # flush events first so new tickets always find their parent row
    await db.flush()
    for record in tickets:
        await db.merge(ticket_to_row(record))
    db.add_all([notification_to_row(note) for note in notifications])
    payout_rows = [payout_to_row(payout) for payout in payouts]
    if payout_rows:
        # payouts reference their ledger entry
        await db.flush()
        db.add_all(payout_rows)
    await db.commit()


async def load_state(
    db: AsyncSession,
) -> tuple[list[EventRecord], list[TicketRecord], list[Notification]]:
    """Read every persisted record in id order."""
    events = (await db.execute(select(Event).order_by(Event.id))).scalars().all()
    tickets = (await db.execute(select(Ticket).order_by(Ticket.id))).scalars().all()
    entries = (await db.execute(select(LedgerEntry).order_by(LedgerEntry.sequence))).scalars().all()
    return (
        [row_to_event(row) for row in events],
        [row_to_ticket(row) for row in tickets],
        [row_to_notification(row) for row in entries],
    )


def payout_to_row(payout: PendingPayout) -> Payout:
    return Payout(
        sequence=payout.sequence,
        recipient=payout.recipient,
        amount=payout.amount,
        reason=payout.reason,
    )


async def pending_payouts(db: AsyncSession) -> list[PendingPayout]:
    """Payouts not yet handed to the payment rail, oldest first."""
    rows = (
        await db.execute(
            select(Payout).where(Payout.dispatched_at.is_(None)).order_by(Payout.sequence)
        )
    ).scalars().all()
    return [
        PendingPayout(sequence=row.sequence, recipient=row.recipient, amount=row.amount, reason=row.reason)
        for row in rows
    ]


async def claim_payout(db: AsyncSession, sequence: int, dispatched_at: datetime) -> bool:
    """Mark a pending payout as dispatched. False if someone else already claimed it."""
    result = await db.execute(
        update(Payout)
        .where(Payout.sequence == sequence, Payout.dispatched_at.is_(None))
        .values(dispatched_at=dispatched_at)
    )
    await db.commit()
    return result.rowcount == 1


async def release_payout(db: AsyncSession, sequence: int) -> None:
    """Return a claimed payout to the pending queue after the rail refused it."""
    await db.execute(update(Payout).where(Payout.sequence == sequence).values(dispatched_at=None))
    await db.commit()
