"""
Syncing an authority's roles and abilities.

A sync makes the authority's context-free links exactly the given set:
missing links are added, extra ones removed, unchanged ones left alone.
Each sync runs as a single transaction.

Example:
    >>> SyncsRolesAndAbilities(store, user).roles(["editor", "reviewer"])
    >>> SyncsRolesAndAbilities(store, "editor").abilities(["view", "edit"])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tollgate.conductors.base import OnChange
from tollgate.database.models import Role
from tollgate.types import EntityRef

if TYPE_CHECKING:
    from tollgate.database.store import SQLPermissionStore

logger = logging.getLogger(__name__)


class SyncsRolesAndAbilities:
    """Replaces an authority's roles, abilities or forbidden abilities."""

    def __init__(self, store: SQLPermissionStore, authority: Any, on_change: OnChange | None = None) -> None:
        self.store = store
        self.authority = authority
        self._on_change = on_change

    def roles(self, roles: Any) -> None:
        self.store.sync_roles(self._actor(), roles or [])
        logger.debug(f"Synced roles of {self.authority!r}")
        self._changed()

    def abilities(self, abilities: Any) -> None:
        self.store.sync_abilities(self._actor(), abilities or [], forbidden=False)
        logger.debug(f"Synced abilities of {self.authority!r}")
        self._changed()

    def forbidden_abilities(self, abilities: Any) -> None:
        self.store.sync_abilities(self._actor(), abilities or [], forbidden=True)
        logger.debug(f"Synced forbidden abilities of {self.authority!r}")
        self._changed()

    def _actor(self) -> EntityRef:
        authority = self.authority
        if isinstance(authority, str) or (isinstance(authority, Role) and authority.id is None):
            role = self.store.find_or_create_roles(authority)[0]
            return EntityRef(Role.__morph_type__, role.id)
        return self.store.resolver.authority_ref(self.authority)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
