from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from libs.result import Error

ERROR_STATUS_CODES = {
    "ACCOUNT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "TRANSACTION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "MONTHLY_CARD_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INSUFFICIENT_FUNDS": status.HTTP_402_PAYMENT_REQUIRED,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "LEDGER_CONTENTION": status.HTTP_409_CONFLICT,
    "SYNC_ALREADY_RUNNING": status.HTTP_409_CONFLICT,
    "ACCOUNT_ALREADY_EXISTS": status.HTTP_409_CONFLICT,
    "REDEMPTION_DELIVERED": status.HTTP_409_CONFLICT,
    "MEMBERSHIP_NOT_UPGRADE": status.HTTP_409_CONFLICT,
    "MONTHLY_CARD_ACTIVE": status.HTTP_409_CONFLICT,
    "CODE_GENERATION_FAILED": status.HTTP_409_CONFLICT,
    "MEMBER_CODE_GENERATION_FAILED": status.HTTP_409_CONFLICT,
    "UPSTREAM_UNAVAILABLE": status.HTTP_502_BAD_GATEWAY,
    "MINT_FAILED": status.HTTP_502_BAD_GATEWAY,
    "PARTIAL_REDEMPTION_FAILURE": status.HTTP_502_BAD_GATEWAY,
}


def status_code_for(error: Error) -> int:
    if error.code in ERROR_STATUS_CODES:
        return ERROR_STATUS_CODES[error.code]
    if error.code.endswith("_FAILED"):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


class ClientError(Exception):
    def __init__(self, error: Error, status_code: Optional[int] = None):
        self.error = error
        self.status_code = status_code or status_code_for(error)


async def client_error_handler(request: Request, exc: ClientError) -> JSONResponse:
    body = {"code": exc.error.code, "message": exc.error.message}
    if exc.error.details:
        body["details"] = exc.error.details
    return JSONResponse(status_code=exc.status_code, content={"error": body})
