from .errors import (
    AccessDenied,
    AuthorizeError,
    InvalidArgument,
    NotFound,
    StoreError,
)
from .schemas import PrivilegeCatalog
from .service import AuthorizationService, Identifier
from .store import DatabaseStore, Store

__all__ = [
    "AccessDenied",
    "AuthorizationService",
    "AuthorizeError",
    "DatabaseStore",
    "Identifier",
    "InvalidArgument",
    "NotFound",
    "PrivilegeCatalog",
    "Store",
    "StoreError",
]
