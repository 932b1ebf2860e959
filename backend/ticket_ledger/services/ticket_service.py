"""
Ticket service: purchase, transfer, holder cancellation, refund claims and
organizer redemption.

All capacity and escrow rules live in the ledger core; this module only
sequences ledger calls for the HTTP layer and reads back the result.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ticket_ledger.ledger import Notification, TicketRecord
from ticket_ledger.services.ledger_service import LedgerService


async def buy_ticket(
    service: LedgerService,
    db: AsyncSession,
    buyer: str,
    event_id: int,
    payment_amount: int,
) -> TicketRecord:
    """Mint a ticket against an exact payment."""
    ticket_id = await service.execute(db, "buy_ticket", buyer, event_id, payment_amount)
    return await service.read(db, "get_ticket", ticket_id)


async def transfer_ticket(
    service: LedgerService,
    db: AsyncSession,
    ticket_id: int,
    caller: str,
    new_owner: str,
) -> TicketRecord:
    await service.execute(db, "transfer_ticket", caller, ticket_id, new_owner)
    return await service.read(db, "get_ticket", ticket_id)


async def cancel_ticket(service: LedgerService, db: AsyncSession, ticket_id: int, caller: str) -> int:
    """Give a ticket back before the event closes. Returns the refunded amount."""
    return await service.execute(db, "cancel_ticket", caller, ticket_id)


async def refund_ticket(service: LedgerService, db: AsyncSession, ticket_id: int, caller: str) -> int:
    """Claim the refund for a ticket of a cancelled event. Returns the amount."""
    return await service.execute(db, "refund_ticket", caller, ticket_id)


async def use_ticket(service: LedgerService, db: AsyncSession, ticket_id: int, caller: str) -> TicketRecord:
    await service.execute(db, "use_ticket", caller, ticket_id)
    return await service.read(db, "get_ticket", ticket_id)


async def get_ticket(service: LedgerService, db: AsyncSession, ticket_id: int) -> TicketRecord:
    return await service.read(db, "get_ticket", ticket_id)


async def get_ticket_count(service: LedgerService, db: AsyncSession) -> int:
    return await service.read(db, "get_ticket_count")


async def get_owned_tickets(service: LedgerService, db: AsyncSession, owner: str) -> list[int]:
    """Ticket ids held by `owner`, ascending."""
    return await service.read(db, "get_my_tickets", owner)


async def get_notifications(
    service: LedgerService,
    db: AsyncSession,
    after: Optional[int] = None,
    limit: int = 100,
) -> tuple[list[Notification], int]:
    notes = await service.read(db, "get_notifications", after, limit)
    next_sequence = await service.read(db, "next_notification_sequence")
    return notes, next_sequence
