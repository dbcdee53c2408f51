"""
Configuration for Tollgate.

All configuration is validated eagerly when a ``Tollgate`` instance is
built, so structural mistakes surface at boot rather than inside a check.

Example:
    >>> config = TollgateConfig.from_dict({
    ...     "morph_key_map": {User: "uuid"},
    ...     "table_prefix": "auth_",
    ...     "cache": "array",
    ... })
    >>> config.validate()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from tollgate.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

TABLE_KEYS = ("abilities", "roles", "permissions", "assigned_roles")
CACHE_BACKENDS = ("array", "lru", "null", "none")


@dataclass
class TollgateConfig:
    """
    Configuration consumed by the Tollgate core.

    Attributes:
        morph_key_map: Maps an entity type (class or morph type string) to
            the attribute used as its identity key. Missing types fall back
            to the primary key.
        enforce_morph_key_map: Same shape as ``morph_key_map``, but missing
            types raise ``MorphKeyViolation``. Mutually exclusive with
            ``morph_key_map``.
        require_key_map: Enforce the key map without adding entries.
        morph_aliases: Maps short morph type names to classes.
        user_model: Class used when bare keys are given as authorities.
        table_prefix: Prefix applied to every table name.
        table_names: Overrides for individual table names.
        run_before_policies: Run ability checks before gate policies.
        cache: Cache backend ("array", "lru", "null" or "none").
        cache_size: Maximum entries for the "lru" backend.
        cache_tag: Prefix for every cache key.
    """

    morph_key_map: dict[Any, str] = field(default_factory=dict)
    enforce_morph_key_map: dict[Any, str] = field(default_factory=dict)
    require_key_map: bool = False
    morph_aliases: dict[str, type] = field(default_factory=dict)
    user_model: type | None = None
    table_prefix: str = ""
    table_names: dict[str, str] = field(default_factory=dict)
    run_before_policies: bool = False
    cache: str = "array"
    cache_size: int = 1000
    cache_tag: str = "tollgate"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TollgateConfig:
        """
        Build a config from a plain mapping.

        Unknown keys are rejected so typos do not silently fall back to
        defaults.

        Raises:
            ConfigurationError: If the mapping contains unknown keys.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                config_key=unknown[0],
                expected=f"one of {sorted(known)}",
                received=unknown[0],
            )
        return cls(**dict(data))

    def validate(self) -> None:
        """
        Check the configuration for structural problems.

        Raises:
            ConfigurationError: If both key map modes are set, a table key
                is unknown, or the cache backend is not supported.
        """
        if self.morph_key_map and self.enforce_morph_key_map:
            raise ConfigurationError(
                config_key="morph_key_map",
                expected="either morph_key_map or enforce_morph_key_map, not both",
                received="both",
            )

        for key in self.table_names:
            if key not in TABLE_KEYS:
                raise ConfigurationError(
                    config_key=f"table_names.{key}",
                    expected=f"one of {list(TABLE_KEYS)}",
                    received=key,
                )

        if self.cache not in CACHE_BACKENDS:
            raise ConfigurationError(
                config_key="cache",
                expected=f"one of {list(CACHE_BACKENDS)}",
                received=self.cache,
            )

        if self.cache_size < 1:
            raise ConfigurationError(
                config_key="cache_size",
                expected="a positive integer",
                received=self.cache_size,
            )

        if self.user_model is not None and not isinstance(self.user_model, type):
            raise ConfigurationError(
                config_key="user_model",
                expected="a class",
                received=self.user_model,
            )

        logger.debug(f"Validated configuration (cache={self.cache}, prefix={self.table_prefix!r})")
