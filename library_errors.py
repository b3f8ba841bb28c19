"""
library_errors.py

Typed failures raised by the checkout core. Every error carries a
human-readable message that the presentation layer shows as-is.
"""

from __future__ import annotations


class LibraryError(Exception):
    """Base class for all checkout-rule failures."""


class ValidationError(LibraryError):
    """Malformed or missing required input."""


class NotFoundError(LibraryError):
    """Unknown book, member or checkout reference."""


class InvalidStateError(LibraryError):
    """Operation not legal for the entity's current state."""


class LimitExceededError(LibraryError):
    """Member already holds the maximum number of checkouts."""


class UnavailableError(LibraryError):
    """No free copies of the requested book."""


class IntegrityError(LibraryError):
    """A record points at another record that no longer exists."""
