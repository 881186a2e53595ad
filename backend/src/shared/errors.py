"""
Error types raised by the marketplace core and mapped to API Gateway responses.
"""
from typing import Any, Dict, Optional


class MarketplaceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = 'INTERNAL_ERROR'

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_body(self) -> Dict[str, Any]:
        body = {'error': self.code, 'message': self.message}
        if self.details:
            body['details'] = self.details
        return body


class InvalidInput(MarketplaceError):
    status_code = 400
    code = 'INVALID_INPUT'


class Unauthorized(MarketplaceError):
    status_code = 401
    code = 'UNAUTHORIZED'


class Forbidden(MarketplaceError):
    status_code = 403
    code = 'FORBIDDEN'


class NotFound(MarketplaceError):
    status_code = 404
    code = 'NOT_FOUND'


class Conflict(MarketplaceError):
    status_code = 409
    code = 'CONFLICT'


class InternalError(MarketplaceError):
    status_code = 500
    code = 'INTERNAL_ERROR'


class TransactionCancelled(Exception):
    """
    A multi-item write was cancelled because one of its conditions failed.

    `reasons` holds one DynamoDB cancellation code per submitted item, in
    submission order ('None' for items that did not cause the cancellation).
    It is empty when the store did not report per-item reasons.
    """

    def __init__(self, reasons=None):
        self.reasons = list(reasons or [])
        super().__init__(f"Transaction cancelled: {self.reasons}")

    def failed(self, index: int) -> bool:
        """True if the item at `index` failed its condition check."""
        if index >= len(self.reasons):
            return False
        return self.reasons[index] not in (None, 'None')
