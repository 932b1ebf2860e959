"""
Account lookups served from the owner index.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_ledger.db.session import get_db
from ticket_ledger.schemas.ticket import OwnedTicketsResponse
from ticket_ledger.services import ticket_service
from ticket_ledger.services.ledger_service import LedgerService, get_ledger_service

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.get("/{owner}/tickets", response_model=OwnedTicketsResponse)
async def owned_tickets_endpoint(
    owner: str,
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Ticket ids currently held by any account, ascending."""
    ticket_ids = await ticket_service.get_owned_tickets(service, db, owner)
    return OwnedTicketsResponse(owner=owner, ticket_ids=ticket_ids)
