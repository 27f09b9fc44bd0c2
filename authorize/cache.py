"""Per-service memoization of store lookups."""
from __future__ import annotations

from typing import Any, Callable, Dict, Hashable

from loguru import logger

from .metrics import CACHE_LOOKUP_COUNTER

BUCKETS = (
    "user_ids",
    "usernames",
    "role_ids",
    "rolenames",
    "roles",
    "user_roles",
    "user_privs",
    "role_privs",
    "role_users",
    "priv_users",
    "priv_roles",
)


class AuthorizationCache:
    """Lazily populated lookup cache owned by a single service instance.

    Each bucket maps a resolved key to the value loaded for it. Buckets are
    only ever filled on a miss and only ever emptied all at once.
    """

    def __init__(self):
        self._buckets: Dict[str, Dict[Hashable, Any]] = {name: {} for name in BUCKETS}

    def get_or_load(
        self,
        bucket: str,
        key: Hashable,
        loader: Callable[[], Any],
    ) -> Any:
        entries = self._buckets[bucket]
        if key in entries:
            CACHE_LOOKUP_COUNTER.labels(result="hit").inc()
            return entries[key]

        CACHE_LOOKUP_COUNTER.labels(result="miss").inc()
        value = loader()
        # None means "not found"; keep asking the store until it exists
        if value is not None:
            entries[key] = value
            logger.debug(f"Cached {bucket}[{key!r}]")
        return value

    def clear(self) -> None:
        for entries in self._buckets.values():
            entries.clear()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._buckets.values())
