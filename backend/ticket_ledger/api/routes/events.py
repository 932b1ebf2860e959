"""
Event endpoints: creation, organizer lifecycle actions and reads.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_ledger.db.session import get_db
from ticket_ledger.schemas.event import (
    EventCreate,
    EventListResponse,
    EventResponse,
    EventStatusResponse,
    WithdrawalResponse,
)
from ticket_ledger.schemas.ticket import CountResponse
from ticket_ledger.services import event_service
from ticket_ledger.services.ledger_service import LedgerService, get_ledger_service
from ticket_ledger.core.security import get_current_account

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    account: str = Depends(get_current_account),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Create a new event. The caller becomes its organizer."""
    event = await event_service.create_event(service, db, event_data, account)
    return EventResponse.model_validate(event)


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """List events in creation order with pagination."""
    events, total = await event_service.list_events(service, db, page, page_size)
    return EventListResponse(
        events=[EventResponse.model_validate(e) for e in events],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/count", response_model=CountResponse)
async def event_count_endpoint(
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    return CountResponse(count=await event_service.get_event_count(service, db))


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID with live availability and escrow."""
    event = await event_service.get_event(service, db, event_id)
    return EventResponse.model_validate(event)


@router.post("/{event_id}/cancel", response_model=EventStatusResponse)
async def cancel_event_endpoint(
    event_id: int,
    account: str = Depends(get_current_account),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Cancel an event. Ticket holders then claim refunds individually."""
    event = await event_service.cancel_event(service, db, event_id, account)
    return EventStatusResponse(
        message="Event cancelled; refunds can now be claimed",
        event_id=event.id,
        cancelled=event.cancelled,
        completed=event.completed,
    )


@router.post("/{event_id}/complete", response_model=EventStatusResponse)
async def complete_event_endpoint(
    event_id: int,
    account: str = Depends(get_current_account),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Mark an event completed, making its escrow withdrawable."""
    event = await event_service.complete_event(service, db, event_id, account)
    return EventStatusResponse(
        message="Event completed",
        event_id=event.id,
        cancelled=event.cancelled,
        completed=event.completed,
    )


@router.post("/{event_id}/withdraw", response_model=WithdrawalResponse)
async def withdraw_earnings_endpoint(
    event_id: int,
    account: str = Depends(get_current_account),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    amount = await event_service.withdraw_earnings(service, db, event_id, account)
    return WithdrawalResponse(message="Earnings withdrawn", event_id=event_id, amount=amount)
