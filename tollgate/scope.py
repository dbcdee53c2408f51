"""
Tenant scoping.

A ``Scope`` is the explicit context object that partitions abilities,
roles, permissions and role assignments by tenant. It is shared by the
permission store, the query layer and the clipboards of one ``Tollgate``
instance.

While a scope is set, every written row is stamped with it and every read
sees rows of that scope plus global (unscoped) rows. With no scope set,
only global rows are visible.

Example:
    >>> scope = Scope()
    >>> scope.to(1)
    >>> with scope.once_to(2):
    ...     tollgate.allow(user).to("write")   # stamped with scope 2
    >>> scope.get()
    1
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import Table, or_

if TYPE_CHECKING:
    from sqlalchemy.sql import ColumnElement, Select

logger = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool)


class Scope:
    """
    The current tenant and the rules for applying it.

    Attributes:
        relations_only: When True, ability and role rows are neither
            stamped nor filtered; only permission and assignment rows are.
        scope_role_abilities: When False, abilities granted to roles are
            not stamped with the scope, so they apply in every tenant.
    """

    def __init__(self, scope: Any = None) -> None:
        self._lock = threading.RLock()
        self._scope = scope
        self.relations_only = False
        self.scope_role_abilities = True

    # ==================== Current value ====================

    def to(self, scope: Any) -> Scope:
        """Set the current scope."""
        with self._lock:
            self._scope = scope
        logger.debug(f"Scope set to {scope!r}")
        return self

    def get(self) -> Any:
        """Return the current scope, or None."""
        return self._scope

    def remove(self) -> Scope:
        """Clear the current scope."""
        return self.to(None)

    def only_relations(self, flag: bool = True) -> Scope:
        """Only scope permission and assignment rows, not abilities or roles."""
        with self._lock:
            self.relations_only = flag
        return self

    def dont_scope_role_abilities(self) -> Scope:
        """Keep abilities granted to roles unscoped."""
        with self._lock:
            self.scope_role_abilities = False
        return self

    @contextmanager
    def once_to(self, scope: Any) -> Iterator[Scope]:
        """
        Temporarily switch to another scope.

        The previous scope is restored when the block exits, including
        when it exits with an exception.

        Example:
            >>> with tollgate.scope().once_to(2):
            ...     tollgate.can("write")
        """
        with self._lock:
            previous = self._scope
            self._scope = scope
        try:
            yield self
        finally:
            with self._lock:
                self._scope = previous

    @contextmanager
    def remove_once(self) -> Iterator[Scope]:
        """Temporarily clear the scope."""
        with self.once_to(None) as scope:
            yield scope

    # ==================== Writes ====================

    def storage_value(self) -> str | None:
        """
        Return the current scope as stored in the ``scope`` columns.

        Scalars are stored as strings; other values as canonical JSON.
        """
        if self._scope is None:
            return None
        if isinstance(self._scope, _SCALARS):
            return str(self._scope)
        return json.dumps(self._scope, sort_keys=True, default=str)

    def get_attach_attributes(self, authority_is_role: bool = False) -> dict[str, Any]:
        """Return the columns to stamp onto a new permission or assignment row."""
        if self._scope is None:
            return {"scope": None}
        if authority_is_role and not self.scope_role_abilities:
            return {"scope": None}
        return {"scope": self.storage_value()}

    def get_model_attributes(self) -> dict[str, Any]:
        """Return the columns to stamp onto a new ability or role row."""
        if self.relations_only:
            return {"scope": None}
        return {"scope": self.storage_value()}

    # ==================== Reads ====================

    def clause(self, table: Table) -> ColumnElement[bool]:
        """Visibility clause for ``table`` under the current scope."""
        column = table.c.scope
        if self._scope is None:
            return column.is_(None)
        return or_(column == self.storage_value(), column.is_(None))

    def apply_to_model_query(self, query: Select, table: Table) -> Select:
        """Constrain a query over the abilities or roles table."""
        if self.relations_only:
            return query
        return query.where(self.clause(table))

    def apply_to_relation_query(self, query: Any, table: Table) -> Any:
        """Constrain a query over the permissions or assigned roles table."""
        return query.where(self.clause(table))

    # ==================== Caching ====================

    def cache_suffix(self) -> str | None:
        """
        Return the part of a cache key that identifies the scope.

        Non-scalar scopes are hashed so keys stay short and deterministic.
        """
        if self._scope is None:
            return None
        if isinstance(self._scope, _SCALARS):
            return str(self._scope)
        serialized = json.dumps(self._scope, sort_keys=True, default=str)
        return hashlib.md5(serialized.encode()).hexdigest()

    def append_to_cache_key(self, key: str) -> str:
        suffix = self.cache_suffix()
        return key if suffix is None else f"{key}-{suffix}"
