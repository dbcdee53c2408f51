"""
Cached clipboard.

Each authority's grants, forbiddances and role assignments are loaded
once and kept in a cache store. Checks then match in memory by comparing
each grant's ``(name, subject_type, subject_id, only_owned)`` key.

Cache keys look like::

    tollgate[-<scope>]-abilities-<type>-<id>-a
    tollgate[-<scope>]-abilities-<type>-<id>-f
    tollgate[-<scope>]-roles-<type>-<id>
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from tollgate.caching import ArrayStore, CacheStore, TaggableStore
from tollgate.clipboard.base import BaseClipboard
from tollgate.database.models import AbilityKey, Grant, Role
from tollgate.types import WILDCARD, EntityRef

if TYPE_CHECKING:
    from tollgate.database.store import PermissionStore
    from tollgate.ownership import Ownership

logger = logging.getLogger(__name__)


class CachedClipboard(BaseClipboard):
    """
    Clipboard that memoizes per-authority permission data.

    Example:
        >>> clipboard = CachedClipboard(store, cache=ArrayStore())
        >>> clipboard.check(user, "view", Post)
        True
        >>> clipboard.refresh_for(user)
    """

    def __init__(
        self,
        store: PermissionStore,
        cache: CacheStore | None = None,
        tag: str = "tollgate",
        ownership: Ownership | None = None,
    ) -> None:
        super().__init__(store, ownership)
        self.tag = tag
        self._cache = cache if cache is not None else ArrayStore()
        self._lock = threading.RLock()
        self._seen_authorities: set[EntityRef] = set()
        self._seen_prefixes: set[str] = set()

    # ==================== Cache store ====================

    def set_cache(self, cache: CacheStore) -> CachedClipboard:
        with self._lock:
            self._cache = cache
            self._seen_authorities.clear()
            self._seen_prefixes.clear()
        return self

    def get_cache(self) -> CacheStore:
        return self._cache

    def _store(self) -> CacheStore:
        if isinstance(self._cache, TaggableStore):
            return self._cache.tags(self.tag)
        return self._cache

    def _prefix(self) -> str:
        return self.scope.append_to_cache_key(self.tag)

    def _key(self, ref: EntityRef, kind: str, suffix: str | None = None) -> str:
        prefix = self._prefix()
        with self._lock:
            self._seen_authorities.add(ref)
            self._seen_prefixes.add(prefix)

        key = f"{prefix}-{kind}-{ref.type}-{ref.id}"
        return key if suffix is None else f"{key}-{suffix}"

    # ==================== Lookups ====================

    def grants(self, ref: EntityRef, allowed: bool = True) -> list[Grant]:
        key = self._key(ref, "abilities", "a" if allowed else "f")
        data = self._store().remember_forever(
            key,
            lambda: [grant.to_dict() for grant in self.store.grants_for(ref, allowed)],
        )
        return [Grant.from_dict(item) for item in data]

    def role_assignments(self, ref: EntityRef) -> list[dict[str, Any]]:
        key = self._key(ref, "roles")
        return self._store().remember_forever(key, lambda: self.store.roles_lookup(ref))

    def find_match(
        self,
        authority: Any,
        ref: EntityRef,
        ability: str,
        subject: Any,
        context: EntityRef | None,
        allowed: bool,
    ) -> int | None:
        identifiers = self.ability_identifiers(authority, ability, subject)

        matches = sorted(
            (
                grant.ability
                for grant in self.grants(ref, allowed)
                if grant.applies_in(context) and grant.ability.match_key in identifiers
            ),
            key=lambda matched: matched.id,
        )
        for matched in matches:
            if self.passes_constraints(matched, authority, subject):
                return matched.id
        return None

    def ability_identifiers(self, authority: Any, ability: str, subject: Any) -> set[AbilityKey]:
        """
        Match keys of every ability that would grant ``ability`` on ``subject``.

        Keys are ``(name, subject_type, subject_id, only_owned)`` tuples, the
        same fields the uncached clipboard compares in SQL.

        Example:
            >>> clipboard.ability_identifiers(user, "edit", Post)
            {('edit', 'posts', None, False), ('*', '*', None, False), ...}
        """
        ability = ability.lower()

        if subject is None:
            return {(ability, None, None, False), (WILDCARD, None, None, False), (WILDCARD, WILDCARD, None, False)}

        if isinstance(subject, str) and subject == WILDCARD:
            return {(ability, WILDCARD, None, False), (WILDCARD, WILDCARD, None, False)}

        if isinstance(subject, str):
            subject_type, key = subject, None
        else:
            subject_type = self.resolver.type_of(subject)
            key = self.resolver.key_of(subject) if self.resolver.exists(subject) else None

        subject_ids: list[str | None] = [None] if key is None else [None, str(key)]
        identifiers: list[AbilityKey] = [
            (name, WILDCARD, None, False) for name in (ability, WILDCARD)
        ]
        identifiers += [
            (name, subject_type, subject_id, False)
            for name in (ability, WILDCARD)
            for subject_id in subject_ids
        ]

        if self.is_owned_by(authority, subject):
            identifiers += [(name, type_, id_, True) for name, type_, id_, _ in identifiers]

        return set(identifiers)

    # ==================== Refresh ====================

    def refresh(self, authority: Any = None) -> CachedClipboard:
        """
        Clear cached permission data.

        Tag-capable stores flush every Tollgate entry at once. Other stores
        forget the entries of every known authority one by one.
        """
        if authority is not None:
            return self.refresh_for(authority)

        if isinstance(self._cache, TaggableStore):
            self._cache.tags(self.tag).flush()
            logger.info(f"Flushed cache tag {self.tag}")
            return self

        authorities = self._known_authorities()
        for ref in authorities:
            self._forget(ref)
        logger.info(f"Refreshed cached permissions of {len(authorities)} authorities")
        return self

    def refresh_for(self, authority: Any) -> CachedClipboard:
        """Clear the cached permission data of one authority, in every scope seen."""
        ref = authority if isinstance(authority, EntityRef) else self.resolver.authority_ref(authority)
        self._forget(ref)
        logger.debug(f"Refreshed cached permissions of {ref}")
        return self

    def _forget(self, ref: EntityRef) -> None:
        store = self._store()
        with self._lock:
            prefixes = set(self._seen_prefixes) | {self._prefix()}

        for prefix in prefixes:
            base = f"{prefix}-abilities-{ref.type}-{ref.id}"
            store.forget(f"{base}-a")
            store.forget(f"{base}-f")
            store.forget(f"{prefix}-roles-{ref.type}-{ref.id}")

    def _known_authorities(self) -> set[EntityRef]:
        roles = {EntityRef(Role.__morph_type__, role.id) for role in self.store.all_roles(scoped=False)}
        with self._lock:
            seen = set(self._seen_authorities)
        return roles | self.store.distinct_actors() | seen
