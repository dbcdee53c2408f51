"""
Shared plumbing for the fluent writers.

Authorities given to a writer may be an entity instance, a ``Role``
record, a role name (resolved to a role, created on grant), or None for
"everyone". Every writer commits as soon as its terminal method is called
and then notifies its owner so cached permissions are refreshed.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from tollgate.database.models import Role
from tollgate.types import EntityRef, WILDCARD

if TYPE_CHECKING:
    from sqlalchemy import Connection

    from tollgate.database.store import SQLPermissionStore

logger = logging.getLogger(__name__)

OnChange = Callable[[], Any]


class _Skip:
    def __repr__(self) -> str:
        return "SKIP"


# Returned by actor resolution when a role name does not exist and the
# write must not create it
SKIP: Any = _Skip()


class PermissionWriter(ABC):
    """
    Abstract base class for ability writers.

    Subclasses decide whether they link or unlink abilities and whether
    the link allows or forbids.

    Attributes:
        store: The permission store written to.
        authority: Who the abilities are written for; None is everyone.
        context: Optional entity the written rows are bound to.
    """

    forbidding: bool = False

    def __init__(self, store: SQLPermissionStore, authority: Any = None, on_change: OnChange | None = None) -> None:
        self.store = store
        self.authority = authority
        self.context: EntityRef | None = None
        self._on_change = on_change

    def within(self, context: Any) -> PermissionWriter:
        """Bind the written rows to a context entity, such as a team."""
        self.context = self.store.resolver.ref(context)
        return self

    @abstractmethod
    def to(self, abilities: Any, subject: Any = None, attributes: dict[str, Any] | None = None) -> Any:
        """Write the abilities for the authority."""
        ...

    def to_manage(self, subjects: Any, attributes: dict[str, Any] | None = None) -> Any:
        """Every ability on the given subject(s)."""
        return self.to(WILDCARD, subjects, attributes)

    def everything(self, attributes: dict[str, Any] | None = None) -> Any:
        """Every ability on every subject."""
        return self.to(WILDCARD, WILDCARD, attributes)

    def to_own(self, subject: Any, attributes: dict[str, Any] | None = None) -> PendingOwnership:
        """
        Start an ownership write; nothing is stored until it is committed.

        Example:
            >>> tollgate.allow(user).to_own(Post).to(["edit", "delete"])
            >>> tollgate.allow(user).to_own(Post).commit()
        """
        return PendingOwnership(self, subject, attributes)

    def to_own_everything(self, attributes: dict[str, Any] | None = None) -> PendingOwnership:
        return PendingOwnership(self, WILDCARD, attributes)

    def _actor(self, conn: Connection, create: bool) -> Any:
        """Resolve the authority, or return ``SKIP`` for a missing role name."""
        authority = self.authority
        if authority is None:
            return None

        if isinstance(authority, str):
            if create:
                return _role_ref(self.store.find_or_create_roles(authority, conn)[0])
            role = self.store.find_role_by_name(authority, conn)
            return SKIP if role is None else _role_ref(role)

        if isinstance(authority, Role) and authority.id is None:
            if not create:
                return SKIP
            return _role_ref(self.store.find_or_create_roles(authority, conn)[0])

        return self.store.resolver.authority_ref(authority)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()


class PendingOwnership:
    """
    An ownership write waiting for its abilities.

    Example:
        >>> pending = tollgate.allow(user).to_own(Post)
        >>> pending.to("edit")
    """

    def __init__(self, writer: PermissionWriter, subject: Any, attributes: dict[str, Any] | None = None) -> None:
        self.writer = writer
        self.subject = subject
        self.attributes = dict(attributes or {})

    def to(self, abilities: Any, attributes: dict[str, Any] | None = None) -> Any:
        """Write the given abilities restricted to owned subjects."""
        merged = {**self.attributes, **(attributes or {}), "only_owned": True}
        return self.writer.to(abilities, self.subject, merged)

    def commit(self) -> Any:
        """Write every ability restricted to owned subjects."""
        return self.to(WILDCARD)


def _role_ref(role: Role) -> EntityRef:
    return EntityRef(Role.__morph_type__, role.id)
