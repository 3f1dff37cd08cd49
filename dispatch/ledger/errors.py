"""
Dispatch Error Taxonomy

All errors are local, synchronous and non-retryable by the engine. Error
detail is confined to plaintext metadata (ids, principals, flags); no
error path ever decrypts a value to say more.
"""

from enum import Enum


class DispatchErrorCode(Enum):
    INVALID_INPUT = "INVALID_INPUT"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    INACTIVE_ROUTE = "INACTIVE_ROUTE"
    ALREADY_MATCHED = "ALREADY_MATCHED"
    SCHEDULE_REQUIRED = "SCHEDULE_REQUIRED"


class DispatchError(Exception):
    """Base exception for rejected dispatch operations."""

    error_code = DispatchErrorCode.INVALID_INPUT
    http_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"{self.error_code.value}: {message}")


class InvalidInput(DispatchError):
    """Plaintext input outside its declared bit width."""
    error_code = DispatchErrorCode.INVALID_INPUT
    http_code = 422


class Unauthorized(DispatchError):
    """Caller is not the required principal."""
    error_code = DispatchErrorCode.UNAUTHORIZED
    http_code = 403


class NotFound(DispatchError):
    error_code = DispatchErrorCode.NOT_FOUND
    http_code = 404


class InactiveRoute(DispatchError):
    error_code = DispatchErrorCode.INACTIVE_ROUTE
    http_code = 409


class AlreadyMatched(DispatchError):
    error_code = DispatchErrorCode.ALREADY_MATCHED
    http_code = 409


class ScheduleRequired(DispatchError):
    """Route has no completed optimization to match against."""
    error_code = DispatchErrorCode.SCHEDULE_REQUIRED
    http_code = 409
