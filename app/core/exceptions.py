"""Ledger error taxonomy and its HTTP mapping."""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base exception for the ledger domain."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed input: non-positive amounts, empty participants, unknown users."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(LedgerError):
    """Actor lacks standing for the target bill, payment or reminder."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(LedgerError):
    """Bill, participant, payment, reminder or group is absent."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(LedgerError):
    """State forbids the operation (settled bill, confirmed payments, lost race)."""

    status_code = status.HTTP_409_CONFLICT


class UnavailableError(LedgerError):
    """Store timeout or transient failure. Safe to retry with backoff."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if isinstance(exc, UnavailableError):
        logger.warning("Store unavailable", extra={"path": request.url.path, "error": exc.message})
    headers = {"Retry-After": "1"} if isinstance(exc, UnavailableError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers
    )
