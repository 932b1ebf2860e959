from ticket_ledger.schemas.event import (
    EventCreate, EventResponse, EventListResponse, EventStatusResponse, WithdrawalResponse,
)
from ticket_ledger.schemas.ticket import (
    TicketPurchase, TicketTransfer, TicketResponse, TicketRefundResponse,
    OwnedTicketsResponse, CountResponse,
)
from ticket_ledger.schemas.notification import (
    NotificationResponse, NotificationListResponse, ErrorDetail, ErrorResponse,
)

__all__ = [
    "EventCreate", "EventResponse", "EventListResponse", "EventStatusResponse", "WithdrawalResponse",
    "TicketPurchase", "TicketTransfer", "TicketResponse", "TicketRefundResponse",
    "OwnedTicketsResponse", "CountResponse",
    "NotificationResponse", "NotificationListResponse", "ErrorDetail", "ErrorResponse",
]
