"""
Pydantic schemas for ticket-related request/response validation.
"""

from datetime import datetime
from pydantic import BaseModel, Field


class TicketPurchase(BaseModel):
    event_id: int = Field(..., ge=0)
    # Not range-checked here: the ledger rejects anything but the exact price
    payment_amount: int


class TicketTransfer(BaseModel):
    new_owner: str = Field(..., min_length=1)


class TicketResponse(BaseModel):
    id: int
    event_id: int
    owner: str
    purchase_time: datetime
    is_used: bool
    is_refunded: bool

    model_config = {"from_attributes": True}


class TicketRefundResponse(BaseModel):
    message: str
    ticket_id: int
    amount: int


class OwnedTicketsResponse(BaseModel):
    owner: str
    ticket_ids: list[int]


class CountResponse(BaseModel):
    count: int
