"""Error types raised by the authorization layer."""
from __future__ import annotations


class AuthorizeError(Exception):
    """Base class for every error raised by this package."""


class InvalidArgument(AuthorizeError, ValueError):
    """Malformed construction input or an identifier of the wrong type."""


class NotFound(AuthorizeError, LookupError):
    """A user, role or privilege named in a mutation could not be resolved."""


class StoreError(AuthorizeError):
    """Any failure reported by the persistence store."""


class AccessDenied(AuthorizeError, PermissionError):
    """Raised by guarded callables when the privilege check fails."""
