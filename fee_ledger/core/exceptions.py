from typing import Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    """Malformed or conflicting input. Safe to retry after correction."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    """Id does not resolve within the caller's school."""

    status_code = status.HTTP_404_NOT_FOUND


class ReferentialIntegrityError(ServiceError):
    """Deletion blocked by live references; count says how many."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, count: int) -> None:
        super().__init__(message)
        self.count = count


class InvalidAmountError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class ExceedsDueError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class HasPaymentsError(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class ConcurrencyConflictError(ServiceError):
    """The row changed under us. Caller must retry with fresh data."""

    status_code = status.HTTP_409_CONFLICT
