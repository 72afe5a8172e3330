"""Translation of domain errors into HTTP errors."""

from fastapi import HTTPException, status

from sew4mi.domain.exceptions import (
    ConflictError,
    DomainError,
    EscrowCalculationError,
    InvalidStateTransitionError,
    NotFoundError,
    RateLimitedError,
)

# Checked in order; first matching base class wins
_STATUS_BY_ERROR: list[tuple[type[DomainError], int]] = [
    (RateLimitedError, status.HTTP_429_TOO_MANY_REQUESTS),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (EscrowCalculationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(error: DomainError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def to_http_exception(error: DomainError) -> HTTPException:
    """Build an HTTPException carrying the error envelope fields."""
    return HTTPException(
        status_code=status_for(error),
        detail={
            "error_code": error.error_code,
            "message": error.message,
            "details": error.details,
        },
    )
