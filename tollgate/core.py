"""
The Tollgate service object.

``Tollgate`` ties the pieces together: the permission store, the
clipboard (cached or not), the gate with its guard, the tenant scope and
the ownership rules. It is the entry point applications use to write
permissions and ask questions about them.
"""

from __future__ import annotations

import contextvars
import copy
import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from tollgate.caching import ArrayStore, CacheStore, make_store
from tollgate.clipboard import BaseClipboard, CachedClipboard, Clipboard
from tollgate.conductors import (
    AssignsRoles,
    ChecksRoles,
    ForbidsAbilities,
    GivesAbilities,
    RemovesAbilities,
    RemovesRoles,
    SyncsRolesAndAbilities,
    UnforbidsAbilities,
)
from tollgate.config import TollgateConfig
from tollgate.database import Ability, Role, Schema, SQLPermissionStore
from tollgate.database.queries import Maintenance, Roles
from tollgate.entities import EntityResolver
from tollgate.exceptions import AuthorizationError
from tollgate.gate import Gate
from tollgate.guard import Guard
from tollgate.ownership import Ownership
from tollgate.policies import Policy
from tollgate.scope import Scope
from tollgate.types import AuthorizationResult

logger = logging.getLogger(__name__)

# Context variable for the authority checks run as
_acting_user: contextvars.ContextVar[Any] = contextvars.ContextVar("tollgate_user", default=None)

_DEFAULT: Any = object()


def get_acting_user() -> Any:
    """Get the authority set by ``Tollgate.acting_as()``, if any."""
    return _acting_user.get()


class Tollgate:
    """
    Main entry point for Tollgate.

    Example:
        >>> tollgate = Tollgate.create("sqlite://", user_model=User)
        >>>
        >>> tollgate.allow("editor").to(["view", "edit"], Post)
        >>> tollgate.assign("editor").to(user)
        >>>
        >>> with tollgate.acting_as(user):
        ...     tollgate.can("edit", post)
        True
        >>> tollgate.check(user, "delete", post)
        False
    """

    def __init__(
        self,
        store: SQLPermissionStore | Engine,
        *,
        user: Any = None,
        config: TollgateConfig | None = None,
        cache: CacheStore | None = _DEFAULT,
        gate: Gate | None = None,
    ) -> None:
        """
        Initialize Tollgate.

        Args:
            store: A permission store, or an engine to build one on.
            user: Default authority for ``can()`` and friends.
            config: Configuration; validated immediately.
            cache: Cache store for the clipboard. Defaults to the configured
                backend; None runs every check uncached.
            gate: Gate to register the guard at. A new one is built if
                omitted.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        self.config = config or TollgateConfig()
        self.config.validate()
        self._lock = threading.RLock()
        self._user = user

        if isinstance(store, SQLPermissionStore):
            self.store = store
        else:
            self.store = SQLPermissionStore(
                store,
                Schema(prefix=self.config.table_prefix, names=self.config.table_names),
                _build_resolver(self.config),
                Scope(),
            )

        self.resolver = self.store.resolver
        self.ownership = Ownership(self.resolver)

        if cache is _DEFAULT:
            cache = make_store(self.config.cache, self.config.cache_size)
        self._clipboard = self._make_clipboard(cache)

        self.gate = gate or Gate(self.resolver)
        self.guard = Guard(self._clipboard, "before" if self.config.run_before_policies else "after")
        self.guard.register_at(self.gate)

        logger.info(
            f"Tollgate ready (clipboard={type(self._clipboard).__name__}, "
            f"slot={self.guard.slot()})"
        )

    @classmethod
    def create(cls, url_or_engine: str | Engine, create_tables: bool = True, **options: Any) -> Tollgate:
        """
        Build a Tollgate on a database URL or engine.

        Keyword options are ``TollgateConfig`` fields, plus ``user``,
        ``cache`` and ``gate`` which are passed through.

        Example:
            >>> tollgate = Tollgate.create("sqlite://", table_prefix="auth_", cache="lru")
        """
        passthrough = {key: options.pop(key) for key in ("user", "cache", "gate") if key in options}
        config = TollgateConfig.from_dict(options)

        if isinstance(url_or_engine, str):
            engine = _create_engine(url_or_engine)
        else:
            engine = url_or_engine

        tollgate = cls(engine, config=config, **passthrough)
        if create_tables:
            tollgate.create_tables()
        return tollgate

    def create_tables(self) -> None:
        self.store.create_tables()

    # ==================== Writers ====================

    def allow(self, authority: Any) -> GivesAbilities:
        """
        Start granting abilities to an authority or role name.

        Example:
            >>> tollgate.allow(user).to("edit", post)
            >>> tollgate.allow("admin").everything()
            >>> tollgate.allow(user).to_own(Post).to("update")
        """
        return GivesAbilities(self.store, authority, self.refresh)

    def allow_everyone(self) -> GivesAbilities:
        return GivesAbilities(self.store, None, self.refresh)

    def disallow(self, authority: Any) -> RemovesAbilities:
        return RemovesAbilities(self.store, authority, self.refresh)

    def disallow_everyone(self) -> RemovesAbilities:
        return RemovesAbilities(self.store, None, self.refresh)

    def forbid(self, authority: Any) -> ForbidsAbilities:
        return ForbidsAbilities(self.store, authority, self.refresh)

    def forbid_everyone(self) -> ForbidsAbilities:
        return ForbidsAbilities(self.store, None, self.refresh)

    def unforbid(self, authority: Any) -> UnforbidsAbilities:
        return UnforbidsAbilities(self.store, authority, self.refresh)

    def unforbid_everyone(self) -> UnforbidsAbilities:
        return UnforbidsAbilities(self.store, None, self.refresh)

    def assign(self, *roles: Any) -> AssignsRoles:
        """
        Start assigning roles.

        Example:
            >>> tollgate.assign("admin", "editor").to(user)
            >>> tollgate.assign("member").within(team).to(User, keys=[1, 2])
        """
        return AssignsRoles(self.store, _flatten(roles), self.refresh)

    def retract(self, *roles: Any) -> RemovesRoles:
        return RemovesRoles(self.store, _flatten(roles), self.refresh)

    def sync(self, authority: Any) -> SyncsRolesAndAbilities:
        return SyncsRolesAndAbilities(self.store, authority, self.refresh)

    def is_(self, authority: Any) -> ChecksRoles:
        """
        Start a role check.

        Example:
            >>> tollgate.is_(user).an("admin")
            >>> tollgate.is_(user).not_a("banned")
        """
        return ChecksRoles(self._clipboard, authority)

    def role(self, name: str, title: str | None = None) -> Role:
        """Find or create a role by name."""
        role = self.store.find_role_by_name(name)
        if role is None:
            role = self.store.create_role(name, title)
            self.refresh()
        return role

    def ability(self, name: str, subject: Any = None, **attributes: Any) -> Ability:
        """Create an ability, optionally for a subject."""
        if subject is not None:
            ability = self.store.create_for_model(subject, {**attributes, "name": name})
        else:
            ability = self.store.create_ability(Ability(name=name, **attributes))
        self.refresh()
        return ability

    def delete_role(self, role: Role | int | str) -> None:
        """Delete a role along with its permissions and assignments."""
        if isinstance(role, str):
            found = self.store.find_role_by_name(role)
            if found is None:
                return
            role = found
        self.store.delete_role(role)
        self.refresh()

    def detach(self, authority: Any) -> None:
        """Remove every permission and role assignment of an authority."""
        self.store.detach_authority(self.resolver.authority_ref(authority))
        self.refresh()

    # ==================== Checks ====================

    def can(self, ability: str, subject: Any = None, *, context: Any = None) -> bool:
        """Check an ability for the current user through the gate."""
        return self.inspect(ability, subject, context=context).allowed

    def cannot(self, ability: str, subject: Any = None, *, context: Any = None) -> bool:
        return not self.can(ability, subject, context=context)

    def can_any(self, abilities: Iterable[str], subject: Any = None, *, context: Any = None) -> bool:
        return any(self.can(ability, subject, context=context) for ability in abilities)

    def inspect(self, ability: str, subject: Any = None, *, context: Any = None) -> AuthorizationResult:
        arguments = () if subject is None else (subject,)
        return self._gate().inspect(ability, *arguments, context=context)

    def authorize(self, ability: str, subject: Any = None, *, context: Any = None) -> AuthorizationResult:
        """
        Check an ability for the current user and raise if it is denied.

        Returns:
            The result, whose reason names the granting ability when the
            stored permissions decided.

        Raises:
            AuthorizationError: If the ability is denied.
        """
        result = self.inspect(ability, subject, context=context)
        if not result.allowed:
            raise AuthorizationError(
                ability=ability,
                subject=subject,
                authority=self.user,
                reason=result.reason,
            )
        return result

    def check(self, authority: Any, ability: str, subject: Any = None, context: Any = None) -> bool:
        """Check the stored permissions of an authority, bypassing the gate."""
        return self._clipboard.check(authority, ability, subject, context)

    def get_abilities(self, authority: Any, context: Any = None) -> list[Ability]:
        return self._clipboard.get_abilities(authority, context)

    def get_forbidden_abilities(self, authority: Any, context: Any = None) -> list[Ability]:
        return self._clipboard.get_forbidden_abilities(authority, context)

    def get_roles(self, authority: Any, context: Any = None) -> list[str]:
        return self._clipboard.get_roles(authority, context)

    # ==================== Gate ====================

    def define(self, ability: str, callback: Any) -> Tollgate:
        self.gate.define(ability, callback)
        return self

    def policy(self, model: Any, policy_class: type[Policy]) -> Tollgate:
        self.gate.policy(model, policy_class)
        return self

    def run_before_policies(self, flag: bool = True) -> Tollgate:
        """Consult stored permissions before (True) or after (False) gate rules."""
        self.guard.slot("before" if flag else "after")
        return self

    def owned_via(self, model_or_strategy: Any, strategy: Any = None) -> Tollgate:
        """
        Override how ownership is decided.

        Example:
            >>> tollgate.owned_via(Post, "author_id")
            >>> tollgate.owned_via(lambda model, user: model.team_id == user.team_id)
        """
        self.ownership.owned_via(model_or_strategy, strategy)
        self.refresh()
        return self

    # ==================== Cache ====================

    def cache(self, store: CacheStore | None = None) -> Tollgate:
        """Use the cached clipboard, with ``store`` or a fresh in-memory store."""
        with self._lock:
            clipboard = self._make_clipboard(store if store is not None else ArrayStore())
            self._set_clipboard(clipboard)
        return self

    def dont_cache(self) -> Tollgate:
        """Run every check against the database."""
        with self._lock:
            self._set_clipboard(self._make_clipboard(None))
        return self

    def refresh(self, authority: Any = None) -> Tollgate:
        """Clear cached permissions, for everyone or for one authority."""
        if isinstance(self._clipboard, CachedClipboard):
            self._clipboard.refresh(authority)
        return self

    def refresh_for(self, authority: Any) -> Tollgate:
        if isinstance(self._clipboard, CachedClipboard):
            self._clipboard.refresh_for(authority)
        return self

    @property
    def clipboard(self) -> BaseClipboard:
        return self._clipboard

    def uses_cached_clipboard(self) -> bool:
        return isinstance(self._clipboard, CachedClipboard)

    # ==================== Identity and scope ====================

    def scope(self) -> Scope:
        """
        The tenant scope shared by every read and write.

        Example:
            >>> tollgate.scope().to(tenant.id)
            >>> with tollgate.scope().once_to(other_tenant.id):
            ...     tollgate.can("view", report)
        """
        return self.store.scope

    @property
    def user(self) -> Any:
        acting = _acting_user.get()
        return acting if acting is not None else self._user

    def set_user(self, user: Any) -> Tollgate:
        self._user = user
        return self

    def for_user(self, user: Any) -> Tollgate:
        """Return a Tollgate sharing this one's state with a different default user."""
        bound = copy.copy(self)
        bound._user = user
        return bound

    @contextmanager
    def acting_as(self, user: Any) -> Iterator[Any]:
        """
        Run checks in the block as ``user``.

        Example:
            >>> with tollgate.acting_as(user):
            ...     tollgate.authorize("publish", post)
        """
        token = _acting_user.set(user)
        try:
            yield user
        finally:
            _acting_user.reset(token)

    def morph_key_map(self, mapping: dict[Any, str]) -> Tollgate:
        self.resolver.morph_key_map(mapping)
        return self

    def enforce_morph_key_map(self, mapping: dict[Any, str]) -> Tollgate:
        self.resolver.enforce_morph_key_map(mapping)
        return self

    def require_key_map(self) -> Tollgate:
        self.resolver.require_key_map()
        return self

    # ==================== Queries ====================

    @property
    def role_queries(self) -> Roles:
        """
        Role filters for ``select()`` statements over authority models.

        Example:
            >>> query = tollgate.role_queries.where_is(select(User), User, "admin")
        """
        return self.store.roles

    @property
    def maintenance(self) -> Maintenance:
        return self.store.maintenance

    # ==================== Internals ====================

    def _gate(self) -> Gate:
        return self.gate.for_user(self.user)

    def _make_clipboard(self, cache: CacheStore | None) -> BaseClipboard:
        if cache is None:
            return Clipboard(self.store, self.ownership)
        return CachedClipboard(self.store, cache, tag=self.config.cache_tag, ownership=self.ownership)

    def _set_clipboard(self, clipboard: BaseClipboard) -> None:
        self._clipboard = clipboard
        self.guard.set_clipboard(clipboard)
        logger.info(f"Switched to {type(clipboard).__name__}")


def _build_resolver(config: TollgateConfig) -> EntityResolver:
    return EntityResolver(
        morph_key_map=config.morph_key_map,
        enforce_morph_key_map=config.enforce_morph_key_map,
        require_key_map=config.require_key_map,
        aliases=config.morph_aliases,
        user_model=config.user_model,
    )


def _create_engine(url: str) -> Engine:
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
    return create_engine(url)


def _flatten(roles: tuple[Any, ...]) -> list[Any]:
    flat: list[Any] = []
    for role in roles:
        if isinstance(role, (list, tuple, set)):
            flat.extend(role)
        else:
            flat.append(role)
    return flat
