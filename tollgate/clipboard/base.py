"""
Base class for clipboards.

A clipboard answers "may this authority perform this ability on this
subject?". The verdict combines the authority's direct grants, the grants
of its roles and the grants given to everyone:

1. If any matching forbiddance exists, the answer is no.
2. Otherwise the id of the first (lowest id) matching grant is returned.
3. Otherwise there is no answer and the caller decides.

Abilities carrying constraints only match an entity instance whose
attributes satisfy them.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from tollgate.database.models import Ability, Grant, Role
from tollgate.exceptions import InvalidArgumentError
from tollgate.ownership import Ownership

if TYPE_CHECKING:
    from tollgate.database.store import PermissionStore
    from tollgate.types import EntityRef

logger = logging.getLogger(__name__)

ROLE_CHECK_MODES = ("or", "and", "not")


class BaseClipboard(ABC):
    """
    Abstract base class for clipboards.

    Subclasses provide the grant lookups; the precedence rules and role
    checks live here so every clipboard agrees on them.

    Attributes:
        store: The permission store grants are read from.
        ownership: Decides whether an authority owns a subject instance.
    """

    def __init__(self, store: PermissionStore, ownership: Ownership | None = None) -> None:
        self.store = store
        self.resolver = store.resolver
        self.scope = store.scope
        self.ownership = ownership or Ownership(self.resolver)

    # ==================== Abilities ====================

    def check(self, authority: Any, ability: str, subject: Any = None, context: Any = None) -> bool:
        """Determine if the authority has the given ability."""
        result = self.check_get_id(authority, ability, subject, context)
        return result is not None and result is not False

    def check_get_id(
        self,
        authority: Any,
        ability: str,
        subject: Any = None,
        context: Any = None,
    ) -> int | bool | None:
        """
        Resolve the ability for an authority.

        Returns:
            False when a forbiddance matches, the id of the allowing
            ability when a grant matches, None otherwise.
        """
        ref = self.resolver.authority_ref(authority)
        context_ref = self._context_ref(context)

        if self.find_match(authority, ref, ability, subject, context_ref, allowed=False) is not None:
            logger.debug(f"{ref} is forbidden to {ability}")
            return False

        ability_id = self.find_match(authority, ref, ability, subject, context_ref, allowed=True)
        if ability_id is not None:
            logger.debug(f"{ref} may {ability} via ability #{ability_id}")
        return ability_id

    @abstractmethod
    def find_match(
        self,
        authority: Any,
        ref: EntityRef,
        ability: str,
        subject: Any,
        context: EntityRef | None,
        allowed: bool,
    ) -> int | None:
        """Return the lowest id of a matching grant (or forbiddance), if any."""
        ...

    @abstractmethod
    def grants(self, ref: EntityRef, allowed: bool = True) -> list[Grant]:
        """Every grant (or forbiddance) reaching the authority, in all contexts."""
        ...

    def get_abilities(self, authority: Any, context: Any = None) -> list[Ability]:
        """Abilities granted to the authority and visible in ``context``."""
        return self._abilities(authority, True, context)

    def get_forbidden_abilities(self, authority: Any, context: Any = None) -> list[Ability]:
        return self._abilities(authority, False, context)

    def _abilities(self, authority: Any, allowed: bool, context: Any) -> list[Ability]:
        ref = self.resolver.authority_ref(authority)
        context_ref = self._context_ref(context)

        abilities: dict[int, Ability] = {}
        for grant in self.grants(ref, allowed):
            if grant.applies_in(context_ref):
                abilities.setdefault(grant.ability.id, grant.ability)
        return [abilities[key] for key in sorted(abilities)]

    def is_owned_by(self, authority: Any, model: Any) -> bool:
        return self.ownership.is_owned_by(authority, model)

    def passes_constraints(self, ability: Ability, authority: Any, subject: Any) -> bool:
        """Constrained abilities need a subject instance that satisfies them."""
        constraints = ability.get_constraints()
        if len(constraints) == 0:
            return True
        if subject is None or isinstance(subject, (str, type)):
            return False
        return constraints.check(subject, authority)

    # ==================== Roles ====================

    @abstractmethod
    def role_assignments(self, ref: EntityRef) -> list[dict[str, Any]]:
        """
        The authority's role assignments in all contexts.

        Returns:
            ``[{"id", "name", "context_type", "context_id"}, ...]``
        """
        ...

    def check_role(
        self,
        authority: Any,
        roles: Iterable[str | int | Role] | str | int | Role,
        boolean: str = "or",
        context: Any = None,
    ) -> bool:
        """
        Check the authority against the given roles.

        Args:
            authority: The authority to check.
            roles: Role names, ids or records.
            boolean: "or" (any of them), "and" (all of them) or "not"
                (none of them).
            context: Only assignments without a context or within this
                context count.

        Raises:
            InvalidArgumentError: For an unknown mode or role identifier.
        """
        if boolean not in ROLE_CHECK_MODES:
            raise InvalidArgumentError(
                f"{boolean} is an invalid role check mode",
                argument="boolean",
            )
        if isinstance(roles, (str, int, Role)):
            roles = [roles]

        ids, names = self._roles_lookup(authority, context)
        matches = [_has_role(ids, names, role) for role in roles]

        if boolean == "and":
            return all(matches)
        if boolean == "not":
            return not any(matches)
        return any(matches)

    def get_roles(self, authority: Any, context: Any = None) -> list[str]:
        """Names of the roles assigned to the authority."""
        _, names = self._roles_lookup(authority, context)
        return sorted(names)

    def _roles_lookup(self, authority: Any, context: Any) -> tuple[set[int], set[str]]:
        ref = self.resolver.authority_ref(authority)
        context_ref = self._context_ref(context)

        ids: set[int] = set()
        names: set[str] = set()
        for assignment in self.role_assignments(ref):
            if assignment["context_id"] is not None and (
                context_ref is None
                or assignment["context_type"] != context_ref.type
                or assignment["context_id"] != context_ref.id
            ):
                continue
            ids.add(assignment["id"])
            names.add(assignment["name"])
        return ids, names

    # ==================== Helpers ====================

    def _context_ref(self, context: Any) -> EntityRef | None:
        if context is None:
            return None
        return self.resolver.ref(context)


def _has_role(ids: set[int], names: set[str], role: Any) -> bool:
    if isinstance(role, Role):
        return role.id in ids if role.id is not None else role.name in names
    if isinstance(role, str):
        return role in names
    if isinstance(role, int) and not isinstance(role, bool):
        return role in ids
    raise InvalidArgumentError("Invalid model identifier", argument="roles")
