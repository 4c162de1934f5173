"""
Tailor CRM Exceptions

Exception classes raised by the store, identity and configuration layers.
Actions catch these and turn them into structured results.
"""

from typing import Optional


class TailorCRMError(Exception):
    """Base exception for Tailor CRM errors"""

    def __init__(self, message: str, operation: Optional[str] = None,
                 details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.details = details


class ConfigurationError(TailorCRMError):
    """Exception for missing or invalid settings"""
    pass


class StoreError(TailorCRMError):
    """Exception for failed store operations"""
    pass


class RecordNotFoundError(StoreError):
    """Exception for operations that matched no row"""
    pass


class AuthenticationError(TailorCRMError):
    """Exception for sign-in, sign-up and session failures"""
    pass
