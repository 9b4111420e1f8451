"""Exceptions shared by the service modules.

The API layer maps these onto HTTP status codes; the Streamlit app shows
their message directly.
"""


class FinanceTrackerError(Exception):
    """Base class for errors raised by the tracker's services."""


class ValidationError(FinanceTrackerError):
    """Input was missing or malformed."""


class NotFoundError(FinanceTrackerError):
    """The requested record does not exist or belongs to another user."""


class AuthError(FinanceTrackerError):
    """Registration or login was refused."""
