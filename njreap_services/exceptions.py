"""
NJREAP Service Exceptions

Custom exception classes for the booking, lookup and admin flows.
"""

from typing import Any, Optional


class NJREAPServiceError(Exception):
    """Base exception for all service errors"""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.response = response


class ValidationFailedError(NJREAPServiceError):
    """Exception for missing or malformed request data"""
    status_code = 400


class AuthenticationError(NJREAPServiceError):
    """Exception for missing or invalid credentials"""
    status_code = 401


class AuthorizationError(NJREAPServiceError):
    """Exception for authenticated users without the required role"""
    status_code = 403


class NotFoundError(NJREAPServiceError):
    status_code = 404


class IdempotencyConflictError(NJREAPServiceError):
    """Exception for a booking attempt that is still being processed"""
    status_code = 409


class RateLimitExceededError(NJREAPServiceError):
    status_code = 429


class ConfigurationError(NJREAPServiceError):
    """Exception for integrations used without credentials"""
    status_code = 500


class UpstreamServiceError(NJREAPServiceError):
    """Exception for third-party API failures"""
    status_code = 502


class PropertyLookupError(UpstreamServiceError):
    pass


class CalendarError(UpstreamServiceError):
    """Exception for calendar auth or event API failures"""
    status_code = 500


class EmailDeliveryError(UpstreamServiceError):
    status_code = 500


class StoreError(UpstreamServiceError):
    """Exception for Supabase read/write failures"""
    status_code = 500


class PaymentError(UpstreamServiceError):
    """Exception for Stripe customer and invoice failures"""
    status_code = 500
