"""
Event service: organizer-side lifecycle operations and event reads.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from ticket_ledger.ledger import EventRecord
from ticket_ledger.schemas.event import EventCreate
from ticket_ledger.services.ledger_service import LedgerService


async def create_event(
    service: LedgerService,
    db: AsyncSession,
    event_data: EventCreate,
    organizer: str,
) -> EventRecord:
    """Create a new event with full ticket availability."""
    event_id = await service.execute(
        db,
        "create_event",
        organizer,
        event_data.name,
        event_data.price,
        event_data.total_tickets,
        event_data.metadata_cid,
    )
    return await service.read(db, "get_event", event_id)


async def cancel_event(service: LedgerService, db: AsyncSession, event_id: int, caller: str) -> EventRecord:
    await service.execute(db, "cancel_event", caller, event_id)
    return await service.read(db, "get_event", event_id)


async def complete_event(service: LedgerService, db: AsyncSession, event_id: int, caller: str) -> EventRecord:
    await service.execute(db, "complete_event", caller, event_id)
    return await service.read(db, "get_event", event_id)


async def withdraw_earnings(service: LedgerService, db: AsyncSession, event_id: int, caller: str) -> int:
    """Pay out the escrow of a completed event. Returns the amount withdrawn."""
    return await service.execute(db, "withdraw_earnings", caller, event_id)


async def get_event(service: LedgerService, db: AsyncSession, event_id: int) -> EventRecord:
    return await service.read(db, "get_event", event_id)


async def get_event_count(service: LedgerService, db: AsyncSession) -> int:
    return await service.read(db, "get_event_count")


async def list_events(
    service: LedgerService,
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[EventRecord], int]:
    """List events in id order with pagination."""
    total = await service.read(db, "get_event_count")
    events = await service.read(db, "list_events", (page - 1) * page_size, page_size)
    return events, total
