"""
Pydantic schemas for the notification log and error envelopes.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class NotificationResponse(BaseModel):
    sequence: int
    kind: str
    event_id: int
    ticket_id: Optional[int]
    actor: str
    counterparty: Optional[str]
    amount: Optional[int]
    recorded_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    next_sequence: int


class ErrorDetail(BaseModel):
    code: str
    kind: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail
