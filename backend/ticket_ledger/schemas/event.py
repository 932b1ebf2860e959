"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from pydantic import BaseModel, Field

MAX_AMOUNT = 2**63 - 1  # BIGINT column


class EventCreate(BaseModel):
    # Length and capacity ceilings come from Settings and are enforced by the ledger
    name: str = Field(..., min_length=1)
    price: int = Field(..., ge=0, le=MAX_AMOUNT)
    total_tickets: int = Field(..., gt=0)
    metadata_cid: str = Field(..., min_length=1)


class EventResponse(BaseModel):
    id: int
    organizer: str
    name: str
    price: int
    total_tickets: int
    available_tickets: int
    tickets_sold: int
    metadata_cid: str
    created_at: datetime
    active: bool
    cancelled: bool
    completed: bool
    escrowed_balance: int

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int


class EventStatusResponse(BaseModel):
    message: str
    event_id: int
    cancelled: bool
    completed: bool


class WithdrawalResponse(BaseModel):
    message: str
    event_id: int
    amount: int
