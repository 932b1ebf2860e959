"""
Notification log endpoint for indexers and UIs.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_ledger.db.session import get_db
from ticket_ledger.schemas.notification import NotificationListResponse, NotificationResponse
from ticket_ledger.services import ticket_service
from ticket_ledger.services.ledger_service import LedgerService, get_ledger_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=NotificationListResponse)
async def list_notifications_endpoint(
    after: Optional[int] = Query(None, ge=-1, description="Return entries with a larger sequence"),
    limit: int = Query(100, ge=1, le=1000),
    service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db),
):
    """Committed ledger mutations, oldest first. Poll with `after` = last sequence seen."""
    notes, next_sequence = await ticket_service.get_notifications(service, db, after, limit)
    return NotificationListResponse(
        notifications=[
            NotificationResponse(
                sequence=note.sequence,
                kind=note.kind.value,
                event_id=note.event_id,
                ticket_id=note.ticket_id,
                actor=note.actor,
                counterparty=note.counterparty,
                amount=note.amount,
                recorded_at=note.recorded_at,
            )
            for note in notes
        ],
        next_sequence=next_sequence,
    )
