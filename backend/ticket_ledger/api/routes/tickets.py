"""
Ticket endpoints: purchase, transfer, cancellation, refund claims and redemption.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_ledger.db.session import get_db
from ticket_ledger.schemas.ticket import (
    CountResponse,
    OwnedTicketsResponse,
    TicketPurchase,
    TicketRefundResponse,
    TicketResponse,
    TicketTransfer,
)
from ticket_ledger.services import ticket_service
from ticket_ledger.services.ledger_service import LedgerService, get_ledger_service
from ticket_ledger.core.security import get_current_account

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.post("/", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def buy_ticket_endpoint(
    purchase: TicketPurchase,
    account: str = Depends(get_current_account),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Buy one ticket for an event.

    `payment_amount` must equal the event price exactly; over- and
    under-payment are both rejected with 402 and nothing is recorded.
    """
    ticket = await ticket_service.buy_ticket(
        service, db, account, purchase.event_id, purchase.payment_amount
    )
    return TicketResponse.model_validate(ticket)


@router.get("/count", response_model=CountResponse)
async def ticket_count_endpoint(
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    return CountResponse(count=await ticket_service.get_ticket_count(service, db))


@router.get("/mine", response_model=OwnedTicketsResponse)
async def my_tickets_endpoint(
    account: str = Depends(get_current_account),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Ticket ids held by the authenticated account."""
    ticket_ids = await ticket_service.get_owned_tickets(service, db, account)
    return OwnedTicketsResponse(owner=account, ticket_ids=ticket_ids)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket_endpoint(
    ticket_id: int,
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    ticket = await ticket_service.get_ticket(service, db, ticket_id)
    return TicketResponse.model_validate(ticket)


@router.post("/{ticket_id}/transfer", response_model=TicketResponse)
async def transfer_ticket_endpoint(
    ticket_id: int,
    transfer: TicketTransfer,
    account: str = Depends(get_current_account),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Transfer a ticket to another account. Transferring to yourself changes nothing."""
    ticket = await ticket_service.transfer_ticket(service, db, ticket_id, account, transfer.new_owner)
    return TicketResponse.model_validate(ticket)


@router.post("/{ticket_id}/cancel", response_model=TicketRefundResponse)
async def cancel_ticket_endpoint(
    ticket_id: int,
    account: str = Depends(get_current_account),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Return a ticket while its event is open; the seat goes back on sale."""
    amount = await ticket_service.cancel_ticket(service, db, ticket_id, account)
    return TicketRefundResponse(message="Ticket cancelled and refunded", ticket_id=ticket_id, amount=amount)


@router.post("/{ticket_id}/refund", response_model=TicketRefundResponse)
async def refund_ticket_endpoint(
    ticket_id: int,
    account: str = Depends(get_current_account),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Claim the refund for a ticket whose event was cancelled."""
    amount = await ticket_service.refund_ticket(service, db, ticket_id, account)
    return TicketRefundResponse(message="Ticket refunded", ticket_id=ticket_id, amount=amount)


@router.post("/{ticket_id}/use", response_model=TicketResponse)
async def use_ticket_endpoint(
    ticket_id: int,
    account: str = Depends(get_current_account),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Redeem a ticket at the door. Organizer only."""
    ticket = await ticket_service.use_ticket(service, db, ticket_id, account)
    return TicketResponse.model_validate(ticket)
