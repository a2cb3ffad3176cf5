"""Domain rejection taxonomy.

Every rejection is an ``HTTPException`` subclass so services can raise it
directly, the same way they raise plain HTTP errors. The application
exception handler renders the ``error`` code and, for duplicate request
claims, the suggested alternative classification next to ``detail``.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class DomainError(HTTPException):
    error_code = "domain_error"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=self.status_code_default, detail=detail)

    def to_payload(self) -> dict[str, object]:
        return {"detail": self.detail, "error": self.error_code}


class ValidationError(DomainError):
    """Missing or malformed input, rejected before any mutation."""

    error_code = "validation_error"
    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY


class AccessDenied(DomainError):
    """Access window violation or ownership mismatch."""

    error_code = "access_denied"
    status_code_default = status.HTTP_403_FORBIDDEN


class StateConflict(DomainError):
    error_code = "state_conflict"
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, detail: str, *, suggested_type: str | None = None) -> None:
        super().__init__(detail)
        self.suggested_type = suggested_type

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        if self.suggested_type is not None:
            payload["suggested_type"] = self.suggested_type
        return payload


class TemporalLock(DomainError):
    """Month boundary passed; entry is immutable through non-privileged paths."""

    error_code = "temporal_lock"
    status_code_default = status.HTTP_423_LOCKED


class NotFound(DomainError):
    error_code = "not_found"
    status_code_default = status.HTTP_404_NOT_FOUND


def domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
