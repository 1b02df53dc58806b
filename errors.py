"""
Domain exceptions raised by the services layer.

Services never build HTTP responses; the routes translate these into
HTTPException with the matching status code.
"""


class LibraryError(Exception):
    """Base class for loan portal errors."""


class ValidationError(LibraryError):
    """A required field is missing or malformed."""


class AuthError(LibraryError):
    """Bad admin credentials, or a missing/invalid signed token."""


class NotFoundError(LibraryError):
    """Unknown loan, book or access code."""


class ExpiredError(LibraryError):
    """Access code or read token is past its expiry."""


class LoanStateError(LibraryError):
    """The loan request is not in a state that allows the transition."""


class StorageError(LibraryError):
    """Object storage upload failed."""


class MailError(LibraryError):
    """The mail relay refused or failed to deliver a message."""


class DatabaseError(LibraryError):
    """A store operation failed after exhausting its retries."""
