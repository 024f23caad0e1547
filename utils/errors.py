"""
Error taxonomy for supply-chain actions.

Every action raises one of these; the handlers registered in ``main.py`` turn
them into ``{"success": false, "error": ...}`` responses with the matching
HTTP status, so no action error reaches the client as an unhandled exception.
"""

from fastapi import status


class SupplyChainError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationRequired(SupplyChainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class InsufficientRole(SupplyChainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class ResourceNotFound(SupplyChainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class OwnershipMismatch(SupplyChainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Batch does not belong to your warehouse"


class IllegalStatusTransition(SupplyChainError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, current, target, message=None, concurrent=False):
        self.current = current
        self.target = target
        if concurrent:
            # Another writer moved the row between our read and our write
            self.status_code = status.HTTP_409_CONFLICT
        super().__init__(message or f"Cannot transition from {_label(current)} to {_label(target)}")


class ValidationError(SupplyChainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Conflict(SupplyChainError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicting resource state"


class PersistenceFailure(SupplyChainError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An unexpected error occurred"


def _label(value):
    return getattr(value, "value", value)
