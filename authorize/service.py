"""Role-based authorization queries over the user/role/privilege graph.

``AuthorizationService`` answers "does this user hold this privilege?" and
maintains the association tables that make the answer true. Users and roles
live in the store; privileges are defined by the application and passed in as
a catalog of ``{priv_id: name}``.

Every parameter that names a user, role or privilege accepts an
``Identifier``: an ``int`` is taken as an already-resolved id, a ``str`` as a
name to resolve. Lookups are memoized per instance until the next mutation or
an explicit ``clear_cache()``.

Usage:
    service = AuthorizationService(store, {1: "deploy", 2: "read"}, identity="alice")
    if service.has_priv("deploy"):
        ...
"""
from __future__ import annotations

from itertools import chain
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from loguru import logger

from .cache import AuthorizationCache
from .errors import AccessDenied, InvalidArgument, NotFound
from .metrics import CHECK_COUNTER, MUTATION_COUNTER
from .schemas import PrivilegeCatalog
from .store import Store, is_store

Identifier = Union[int, str]


class AuthorizationService:
    def __init__(
        self,
        store: Store,
        privs: Union[PrivilegeCatalog, Mapping[int, str]],
        identity: Optional[Identifier] = None,
    ):
        if not is_store(store):
            raise InvalidArgument(
                "A Store implementation must be passed to AuthorizationService"
            )

        if isinstance(privs, PrivilegeCatalog):
            catalog = privs
        else:
            try:
                catalog = PrivilegeCatalog.from_mapping(privs)
            except (TypeError, ValueError) as e:
                raise InvalidArgument(f"Invalid privilege catalog: {e}") from e

        if identity is not None:
            _check_identifier(identity)

        self.store = store
        self.privs: Dict[int, str] = dict(catalog.privs)
        self._priv_ids = {name: priv_id for priv_id, name in self.privs.items()}
        self.identity = identity
        self.cache = AuthorizationCache()

    def clear_cache(self) -> None:
        self.cache.clear()

    # -------------------------
    # IDENTITY RESOLUTION
    # -------------------------
    def _user_id(self, user: Optional[Identifier]) -> Optional[int]:
        if user is None:
            user = self.identity
        if user is None:
            return None
        return self.fetch_user_id(user)

    def _role_id(self, role: Identifier) -> Optional[int]:
        return self.fetch_role_id(role)

    def _priv_id(self, priv: Identifier) -> Optional[int]:
        return self.fetch_priv_id(priv)

    def fetch_user_id(self, username: Identifier) -> Optional[int]:
        _check_identifier(username)
        if isinstance(username, int):
            return username
        return self.cache.get_or_load(
            "user_ids",
            username,
            lambda: self.store.fetch_value(
                "select user_id from users where username = :username",
                username=username,
            ),
        )

    def fetch_username(self, user_id: Optional[Identifier] = None) -> Optional[str]:
        """Return the username for ``user_id``, defaulting to the service identity."""
        resolved = self._user_id(user_id)
        if resolved is None:
            return None
        return self.cache.get_or_load(
            "usernames",
            resolved,
            lambda: self.store.fetch_value(
                "select username from users where user_id = :user_id",
                user_id=resolved,
            ),
        )

    def fetch_role_id(self, rolename: Identifier) -> Optional[int]:
        _check_identifier(rolename)
        if isinstance(rolename, int):
            return rolename
        return self.cache.get_or_load(
            "role_ids",
            rolename,
            lambda: self.store.fetch_value(
                "select role_id from roles where rolename = :rolename",
                rolename=rolename,
            ),
        )

    def fetch_rolename(self, role_id: Identifier) -> Optional[str]:
        resolved = self._role_id(role_id)
        if resolved is None:
            return None
        return self.cache.get_or_load(
            "rolenames",
            resolved,
            lambda: self.store.fetch_value(
                "select rolename from roles where role_id = :role_id",
                role_id=resolved,
            ),
        )

    def fetch_priv_id(self, privname: Identifier) -> Optional[int]:
        # Catalog lookup only; the store knows nothing about privilege names
        _check_identifier(privname)
        if isinstance(privname, int):
            return privname if privname in self.privs else None
        return self._priv_ids.get(privname)

    def fetch_priv(self, priv_id: Identifier) -> Optional[str]:
        resolved = self._priv_id(priv_id)
        if resolved is None:
            return None
        return self.privs[resolved]

    # -------------------------
    # CHECKS
    # -------------------------
    def has_priv(self, priv: Identifier, user: Optional[Identifier] = None) -> bool:
        """Check if the user holds the privilege, through a role or directly.

        Privilege checks are the preferred way to authorize; see ``has_role``.
        """
        priv_id = self._priv_id(priv)
        allowed = priv_id is not None and priv_id in self.fetch_user_privs(user)
        CHECK_COUNTER.labels(kind="priv", result=str(allowed).lower()).inc()
        return allowed

    def has_role(self, role: Identifier, user: Optional[Identifier] = None) -> bool:
        """Check if the user is a member of the role.

        Prefer ``has_priv``; checking roles ties the caller to a role layout.
        """
        role_id = self._role_id(role)
        allowed = role_id is not None and role_id in self.fetch_user_roles(user)
        CHECK_COUNTER.labels(kind="role", result=str(allowed).lower()).inc()
        return allowed

    def is_same_user(
        self, user1: Identifier, user2: Optional[Identifier] = None
    ) -> bool:
        """Check if both refer to the same existing user (ownership checks)."""
        user1_id = self._user_id(user1)
        user2_id = self._user_id(user2)
        same = user1_id is not None and user1_id == user2_id
        CHECK_COUNTER.labels(kind="user", result=str(same).lower()).inc()
        return same

    def require(self, priv: Identifier, user: Optional[Identifier] = None) -> Callable:
        """Decorator that only runs the wrapped callable when ``has_priv`` holds."""

        def wrapper(fn: Callable) -> Callable:
            def inner(*args, **kwargs):
                if not self.has_priv(priv, user):
                    raise AccessDenied(f"Access denied: {priv!r} required")
                return fn(*args, **kwargs)

            return inner

        return wrapper

    # -------------------------
    # MUTATIONS
    # -------------------------
    def add_user_role(self, user: Identifier, role: Identifier) -> None:
        user_id = _resolved(self._user_id(user), "user", user)
        role_id = _resolved(self._role_id(role), "role", role)
        self._insert("user_roles", user_id, role_id)

    def add_role_priv(self, role: Identifier, priv: Identifier) -> None:
        role_id = _resolved(self._role_id(role), "role", role)
        priv_id = _resolved(self._priv_id(priv), "privilege", priv)
        self._insert("role_privs", role_id, priv_id)

    def add_user_priv(self, user: Identifier, priv: Identifier) -> None:
        user_id = _resolved(self._user_id(user), "user", user)
        priv_id = _resolved(self._priv_id(priv), "privilege", priv)
        self._insert("user_privs", user_id, priv_id)

    def remove_user_role(self, user: Identifier, role: Identifier) -> None:
        self._delete("user_roles", self._user_id(user), self._role_id(role))

    def remove_role_priv(self, role: Identifier, priv: Identifier) -> None:
        self._delete("role_privs", self._role_id(role), self._priv_id(priv))

    def remove_user_priv(self, user: Identifier, priv: Identifier) -> None:
        self._delete("user_privs", self._user_id(user), self._priv_id(priv))

    def _insert(self, table: str, *ids: int) -> None:
        self.store.insert(table, list(ids))
        MUTATION_COUNTER.labels(table=table, action="insert").inc()
        logger.info(f"Added {table} {ids}")
        self.clear_cache()

    def _delete(self, table: str, *ids: Optional[int]) -> None:
        # An operand that does not resolve cannot have an association row
        if None in ids:
            logger.debug(f"Nothing to remove from {table} for {ids}")
        else:
            self.store.delete(table, list(ids))
            MUTATION_COUNTER.labels(table=table, action="delete").inc()
            logger.info(f"Removed {table} {ids}")
        self.clear_cache()

    # -------------------------
    # LISTINGS
    # -------------------------
    def fetch_roles(self) -> Dict[int, str]:
        """Return every role as ``{role_id: rolename}``, snapshotted on first use."""
        roles = self.cache.get_or_load(
            "roles",
            None,
            lambda: self.store.fetch_group(
                "role_id",
                "rolename",
                "select role_id, rolename from roles order by role_id",
            ),
        )
        return dict(roles)

    def fetch_privs(self) -> Dict[int, str]:
        return dict(self.privs)

    def fetch_user_roles(self, user: Optional[Identifier]) -> Dict[int, str]:
        user_id = self._user_id(user)
        if user_id is None:
            return {}
        roles = self.cache.get_or_load(
            "user_roles",
            user_id,
            lambda: self.store.fetch_group(
                "role_id",
                "rolename",
                """
                select distinct r.role_id, r.rolename
                from user_roles ur
                join roles r on ur.role_id = r.role_id
                where ur.user_id = :user_id
                order by r.role_id
                """,
                user_id=user_id,
            ),
        )
        return dict(roles)

    def fetch_user_privs(self, user: Optional[Identifier]) -> Dict[int, str]:
        """Return the user's effective privileges: role grants first, then direct grants."""
        user_id = self._user_id(user)
        if user_id is None:
            return {}

        def load() -> Dict[int, str]:
            role_priv_ids = self.store.fetch_group(
                None,
                "priv_id",
                """
                select distinct rp.priv_id
                from user_roles ur
                join role_privs rp on ur.role_id = rp.role_id
                where ur.user_id = :user_id
                order by rp.priv_id
                """,
                user_id=user_id,
            )
            direct_priv_ids = self.store.fetch_group(
                None,
                "priv_id",
                "select priv_id from user_privs where user_id = :user_id order by priv_id",
                user_id=user_id,
            )
            return self._name_privs(chain(role_priv_ids, direct_priv_ids))

        return dict(self.cache.get_or_load("user_privs", user_id, load))

    def fetch_role_privs(self, role: Identifier) -> Dict[int, str]:
        role_id = self._role_id(role)
        if role_id is None:
            return {}

        def load() -> Dict[int, str]:
            priv_ids = self.store.fetch_group(
                None,
                "priv_id",
                "select priv_id from role_privs where role_id = :role_id order by priv_id",
                role_id=role_id,
            )
            return self._name_privs(priv_ids)

        return dict(self.cache.get_or_load("role_privs", role_id, load))

    def fetch_role_users(self, role: Identifier) -> Dict[int, str]:
        role_id = self._role_id(role)
        if role_id is None:
            return {}
        users = self.cache.get_or_load(
            "role_users",
            role_id,
            lambda: self.store.fetch_group(
                "user_id",
                "username",
                """
                select distinct u.user_id, u.username
                from user_roles ur
                join users u on ur.user_id = u.user_id
                where ur.role_id = :role_id
                order by u.user_id
                """,
                role_id=role_id,
            ),
        )
        return dict(users)

    def fetch_priv_users(self, priv: Identifier) -> Dict[int, str]:
        """Return users holding the privilege through any role or a direct grant."""
        priv_id = self._priv_id(priv)
        if priv_id is None:
            return {}

        def load() -> Dict[int, str]:
            users = dict(
                self.store.fetch_group(
                    "user_id",
                    "username",
                    """
                    select distinct u.user_id, u.username
                    from role_privs rp
                    join user_roles ur on rp.role_id = ur.role_id
                    join users u on ur.user_id = u.user_id
                    where rp.priv_id = :priv_id
                    order by u.user_id
                    """,
                    priv_id=priv_id,
                )
            )
            direct_users = self.store.fetch_group(
                "user_id",
                "username",
                """
                select distinct u.user_id, u.username
                from user_privs up
                join users u on up.user_id = u.user_id
                where up.priv_id = :priv_id
                order by u.user_id
                """,
                priv_id=priv_id,
            )
            for user_id, username in direct_users.items():
                users.setdefault(user_id, username)
            return users

        return dict(self.cache.get_or_load("priv_users", priv_id, load))

    def fetch_priv_roles(self, priv: Identifier) -> Dict[int, str]:
        priv_id = self._priv_id(priv)
        if priv_id is None:
            return {}
        roles = self.cache.get_or_load(
            "priv_roles",
            priv_id,
            lambda: self.store.fetch_group(
                "role_id",
                "rolename",
                """
                select distinct r.role_id, r.rolename
                from role_privs rp
                join roles r on rp.role_id = r.role_id
                where rp.priv_id = :priv_id
                order by r.role_id
                """,
                priv_id=priv_id,
            ),
        )
        return dict(roles)

    def _name_privs(self, priv_ids: Iterable[Any]) -> Dict[int, str]:
        privs: Dict[int, str] = {}
        for priv_id in priv_ids:
            if priv_id in privs:
                continue
            name = self.privs.get(priv_id)
            if name is None:
                logger.warning(f"Privilege id {priv_id} is not in the catalog; skipping")
                continue
            privs[priv_id] = name
        return privs


def _check_identifier(ref: Any) -> None:
    if isinstance(ref, bool) or not isinstance(ref, (int, str)):
        raise InvalidArgument(
            f"Expected an int id or a str name, got {type(ref).__name__}"
        )


def _resolved(value: Optional[int], kind: str, ref: Identifier) -> int:
    if value is None:
        raise NotFound(f"Unknown {kind}: {ref!r}")
    return value
