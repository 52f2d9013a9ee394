"""
Domain-specific exception hierarchy for the staff slots application.
"""


class StaffSlotsError(Exception):
    """Base class for all application-level errors."""


class DataAccessError(StaffSlotsError):
    """Raised when staff or booking data cannot be fetched or parsed."""


class AuthenticationError(StaffSlotsError):
    """Raised when sign-in or session handling fails."""
