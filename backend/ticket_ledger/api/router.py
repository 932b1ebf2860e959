"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from ticket_ledger.api.routes import events, tickets, accounts, notifications
from ticket_ledger.schemas.notification import ErrorResponse

# Ledger rejections share one envelope (see api/errors.py)
LEDGER_ERRORS = {code: {"model": ErrorResponse} for code in (402, 403, 404, 409, 502)}

api_router = APIRouter(prefix="/api/v1", responses=LEDGER_ERRORS)
api_router.include_router(events.router)
api_router.include_router(tickets.router)
api_router.include_router(accounts.router)
api_router.include_router(notifications.router)
