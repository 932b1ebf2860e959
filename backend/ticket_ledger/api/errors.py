"""
Translate ledger rejections into HTTP responses.

Every `LedgerError` becomes the same envelope, so clients branch on
`error.code` / `error.kind` instead of sniffing response shapes:

    {"error": {"code": "SOLD_OUT", "kind": "capacity_exceeded", "message": "..."}}
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ticket_ledger.core.logging import get_logger
from ticket_ledger.ledger.errors import ErrorKind, LedgerError

logger = get_logger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorKind.PAYMENT_MISMATCH: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.INVALID_INPUT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.TRANSFER_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.INSUFFICIENT_FUNDS: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("ledger_fault", code=exc.code, message=exc.message)
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
