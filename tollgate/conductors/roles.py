"""
Writers and readers for role assignments.

Example:
    >>> AssignsRoles(store, ["admin", "editor"]).to(user)
    >>> RemovesRoles(store, "editor").from_(User, keys=[1, 2])
    >>> ChecksRoles(clipboard, user).a("admin")
    True
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from tollgate.conductors.base import OnChange

if TYPE_CHECKING:
    from tollgate.clipboard import BaseClipboard
    from tollgate.database.store import SQLPermissionStore
    from tollgate.types import EntityRef

logger = logging.getLogger(__name__)


class _RoleWriter:
    def __init__(self, store: SQLPermissionStore, roles: Any, on_change: OnChange | None = None) -> None:
        self.store = store
        self.roles = roles
        self.context: EntityRef | None = None
        self._on_change = on_change

    def within(self, context: Any) -> _RoleWriter:
        """Bind the assignments to a context entity."""
        self.context = self.store.resolver.ref(context)
        return self

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()


class AssignsRoles(_RoleWriter):
    """Assigns roles to authorities, creating roles that do not exist yet."""

    def to(self, authority: Any, keys: Iterable[Any] | None = None) -> int:
        """
        Assign the roles.

        Args:
            authority: An instance, a list of instances, a bare key of the
                configured user model, or a class together with ``keys``.
            keys: Keys of the authorities when ``authority`` is a class.

        Returns:
            Number of new assignments.
        """
        assigned = self.store.assign_to(self.roles, authority, keys, self.context)

        self._changed()
        return assigned


class RemovesRoles(_RoleWriter):
    """Retracts roles from authorities; unknown roles are ignored."""

    def from_(self, authority: Any, keys: Iterable[Any] | None = None) -> int:
        """
        Retract the roles.

        Returns:
            Number of assignments removed.
        """
        removed = self.store.retract_from(self.roles, authority, keys, self.context)
        if not removed:
            logger.debug(f"No assignments of {self.roles!r} to retract")
            return 0

        self._changed()
        return removed


class ChecksRoles:
    """
    Role checks phrased for readability.

    Example:
        >>> checks = ChecksRoles(clipboard, user)
        >>> checks.an("admin", "editor")
        >>> checks.not_a("banned")
        >>> checks.all("member", "verified")
    """

    def __init__(self, clipboard: BaseClipboard, authority: Any, context: Any = None) -> None:
        self.clipboard = clipboard
        self.authority = authority
        self.context = context

    def within(self, context: Any) -> ChecksRoles:
        return ChecksRoles(self.clipboard, self.authority, context)

    def a(self, *roles: Any) -> bool:
        return self.clipboard.check_role(self.authority, roles, "or", self.context)

    def an(self, *roles: Any) -> bool:
        return self.a(*roles)

    def not_a(self, *roles: Any) -> bool:
        return self.clipboard.check_role(self.authority, roles, "not", self.context)

    def not_an(self, *roles: Any) -> bool:
        return self.not_a(*roles)

    def all(self, *roles: Any) -> bool:
        return self.clipboard.check_role(self.authority, roles, "and", self.context)
