"""
Entity identity resolution.

The resolver answers three questions about any entity (an ORM instance,
a plain object, a mapping-like record or a class): what is its morph
type, which attribute is its identity key, and does it exist yet. It is
the injected form of the morph key map and is shared by the permission
store, the query layer and the clipboards.

Example:
    >>> resolver = EntityResolver(morph_key_map={Organization: "uuid"})
    >>> resolver.ref(org)
    EntityRef(type='app.models.Organization', id='7b0c...')
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import inspect as sa_inspect

from tollgate.exceptions import ConfigurationError, InvalidArgumentError, MorphKeyViolation
from tollgate.types import EntityRef

logger = logging.getLogger(__name__)

_MISSING = object()


class EntityResolver:
    """
    Morph type, key and existence lookups for entities.

    Morph types are resolved from a ``__morph_type__`` class attribute,
    then from registered aliases, and finally from the qualified class
    name. Key attributes come from a ``__morph_key__`` class attribute,
    then from the morph key map, then from the SQLAlchemy primary key,
    and finally default to ``id``.

    Attributes:
        user_model: Class used when authorities are given as bare keys.
    """

    def __init__(
        self,
        morph_key_map: Mapping[Any, str] | None = None,
        enforce_morph_key_map: Mapping[Any, str] | None = None,
        require_key_map: bool = False,
        aliases: Mapping[str, type] | None = None,
        user_model: type | None = None,
    ) -> None:
        if morph_key_map and enforce_morph_key_map:
            raise ConfigurationError(
                config_key="morph_key_map",
                expected="either morph_key_map or enforce_morph_key_map, not both",
                received="both",
            )

        self._lock = threading.RLock()
        self._key_map: dict[Any, str] = dict(morph_key_map or enforce_morph_key_map or {})
        self._enforced = bool(enforce_morph_key_map) or require_key_map
        self._aliases: dict[str, type] = dict(aliases or {})
        self._classes: dict[str, type] = dict(self._aliases)
        self.user_model = user_model

    # ==================== Configuration ====================

    def morph_key_map(self, mapping: Mapping[Any, str]) -> None:
        """Add permissive key mappings; unmapped types use their primary key."""
        with self._lock:
            if self._enforced and mapping:
                raise ConfigurationError(
                    config_key="morph_key_map",
                    expected="either morph_key_map or enforce_morph_key_map, not both",
                    received="both",
                )
            self._key_map.update(mapping)

    def enforce_morph_key_map(self, mapping: Mapping[Any, str]) -> None:
        """Add key mappings and require every resolved type to be mapped."""
        with self._lock:
            if self._key_map and not self._enforced:
                raise ConfigurationError(
                    config_key="enforce_morph_key_map",
                    expected="either morph_key_map or enforce_morph_key_map, not both",
                    received="both",
                )
            self._key_map.update(mapping)
            self._enforced = True

    def require_key_map(self) -> None:
        """Require every resolved type to be present in the key map."""
        with self._lock:
            self._enforced = True

    def alias(self, name: str, cls: type) -> None:
        """Register ``name`` as the morph type of ``cls``."""
        with self._lock:
            self._aliases[name] = cls
            self._classes[name] = cls

    def reset(self) -> None:
        """Drop all key mappings, aliases and enforcement."""
        with self._lock:
            self._key_map.clear()
            self._aliases.clear()
            self._classes.clear()
            self._enforced = False

    @property
    def enforced(self) -> bool:
        return self._enforced

    # ==================== Lookups ====================

    def type_of(self, entity: Any) -> str:
        """Return the morph type of an entity instance or class."""
        cls = entity if isinstance(entity, type) else type(entity)

        explicit = getattr(cls, "__morph_type__", None)
        if explicit:
            return explicit

        for name, aliased in self._aliases.items():
            if aliased is cls:
                return name

        name = f"{cls.__module__}.{cls.__qualname__}"
        self._classes.setdefault(name, cls)
        return name

    def class_for(self, morph_type: str) -> type | None:
        """Return the class seen for a morph type, if any."""
        return self._classes.get(morph_type)

    def key_name(self, entity: Any) -> str:
        """
        Return the attribute used as the identity key of an entity.

        Raises:
            MorphKeyViolation: If the key map is enforced and the entity's
                type is not mapped.
        """
        cls = entity if isinstance(entity, type) else type(entity)

        explicit = getattr(cls, "__morph_key__", None)
        if explicit:
            return explicit

        morph_type = self.type_of(cls)
        mapped = self._key_map.get(cls) or self._key_map.get(morph_type)
        if mapped:
            return mapped

        if self._enforced:
            raise MorphKeyViolation(morph_type)

        mapper = sa_inspect(cls, raiseerr=False)
        if mapper is not None and getattr(mapper, "primary_key", None):
            return mapper.get_property_by_column(mapper.primary_key[0]).key

        return "id"

    def key_of(self, entity: Any) -> Any:
        """Return the value of the entity's identity key."""
        return self.attribute(entity, self.key_name(entity))

    def exists(self, entity: Any) -> bool:
        """
        Check whether an entity instance has been persisted.

        Classes never exist. A key of 0 counts as existing.
        """
        if entity is None or isinstance(entity, (type, str)):
            return False

        flag = getattr(entity, "exists", _MISSING)
        if isinstance(flag, bool):
            return flag

        state = sa_inspect(entity, raiseerr=False)
        if state is not None and hasattr(state, "has_identity"):
            return bool(state.has_identity)

        return self.key_of(entity) is not None

    def ref(self, entity: Any) -> EntityRef:
        """
        Build the stored identity of an entity instance.

        Raises:
            InvalidArgumentError: If the entity is a class or has no key.
        """
        if isinstance(entity, EntityRef):
            return entity
        if isinstance(entity, type):
            raise InvalidArgumentError(
                f"Expected an entity instance, got class {entity.__name__}",
                argument="entity",
            )

        key = self.key_of(entity)
        if key is None:
            raise InvalidArgumentError(
                f"Entity of type {type(entity).__name__} has no identity key",
                argument="entity",
            )
        return EntityRef(self.type_of(entity), key)

    def authority_ref(self, authority: Any) -> EntityRef:
        """Like ``ref()``, but bare keys resolve against ``user_model``."""
        if isinstance(authority, (int, str)) and not isinstance(authority, bool):
            if self.user_model is None:
                raise InvalidArgumentError(
                    "Bare authority keys require a configured user_model",
                    argument="authority",
                )
            return EntityRef(self.type_of(self.user_model), authority)
        return self.ref(authority)

    def authority_refs(self, authority: Any, keys: Iterable[Any] | None = None) -> list[EntityRef]:
        """
        Turn an authority argument into stored identities.

        Accepts an instance, a list of instances, bare keys of the configured
        user model, or a class together with ``keys``. A class without keys
        resolves to nothing.
        """
        if isinstance(authority, type):
            if keys is None:
                return []
            if isinstance(keys, (str, int)):
                keys = [keys]
            morph_type = self.type_of(authority)
            return [EntityRef(morph_type, key) for key in keys]

        if isinstance(authority, (list, tuple, set)):
            return [self.authority_ref(item) for item in authority]

        return [self.authority_ref(authority)]

    @staticmethod
    def attribute(entity: Any, name: str, default: Any = None) -> Any:
        """Read an attribute from a mapping or an object."""
        if isinstance(entity, Mapping):
            return entity.get(name, default)
        return getattr(entity, name, default)
