"""
Permission store tables.

Four relations back the permission store: abilities, roles, permissions
(authority or role to ability, allow or forbid) and assigned roles
(authority to role). Table names can be overridden individually and all
of them can share a prefix.

Example:
    >>> schema = Schema(prefix="auth_")
    >>> schema.create_all(engine)
    >>> schema.abilities.name
    'auth_abilities'
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Engine,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
)

from tollgate.config import TABLE_KEYS
from tollgate.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Schema:
    """
    The table definitions of one permission store.

    Attributes:
        metadata: The MetaData the tables are bound to.
        abilities: Grantable permission units.
        roles: Named collections of abilities.
        permissions: Links from an authority (or role, or everyone) to an
            ability, either allowing or forbidding it.
        assigned_roles: Links from an authority to a role.
    """

    def __init__(
        self,
        metadata: MetaData | None = None,
        prefix: str = "",
        names: Mapping[str, str] | None = None,
    ) -> None:
        names = dict(names or {})
        for key in names:
            if key not in TABLE_KEYS:
                raise ConfigurationError(
                    config_key=f"table_names.{key}",
                    expected=f"one of {list(TABLE_KEYS)}",
                    received=key,
                )

        self.metadata = metadata if metadata is not None else MetaData()
        self.prefix = prefix
        self.names = {key: prefix + names.get(key, key) for key in TABLE_KEYS}

        self.abilities = Table(
            self.names["abilities"],
            self.metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("name", String(255), nullable=False),
            Column("title", String(255), nullable=True),
            Column("subject_type", String(255), nullable=True),
            Column("subject_id", String(255), nullable=True),
            Column("only_owned", Boolean, nullable=False, default=False),
            Column("options", JSON, nullable=True),
            Column("scope", String(255), nullable=True, index=True),
            Column("created_at", DateTime(timezone=True), default=_utc_now),
            Column("updated_at", DateTime(timezone=True), default=_utc_now, onupdate=_utc_now),
        )

        self.roles = Table(
            self.names["roles"],
            self.metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("name", String(255), nullable=False),
            Column("title", String(255), nullable=True),
            Column("scope", String(255), nullable=True, index=True),
            Column("created_at", DateTime(timezone=True), default=_utc_now),
            Column("updated_at", DateTime(timezone=True), default=_utc_now, onupdate=_utc_now),
            Index(f"ix_{self.names['roles']}_name_scope", "name", "scope"),
        )

        self.permissions = Table(
            self.names["permissions"],
            self.metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column(
                "ability_id",
                Integer,
                ForeignKey(f"{self.names['abilities']}.id", ondelete="CASCADE"),
                nullable=False,
            ),
            Column("actor_type", String(255), nullable=True),
            Column("actor_id", String(255), nullable=True),
            Column("forbidden", Boolean, nullable=False, default=False),
            Column("context_type", String(255), nullable=True),
            Column("context_id", String(255), nullable=True),
            Column("scope", String(255), nullable=True, index=True),
            Index(f"ix_{self.names['permissions']}_actor", "actor_id", "actor_type", "scope"),
        )

        self.assigned_roles = Table(
            self.names["assigned_roles"],
            self.metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column(
                "role_id",
                Integer,
                ForeignKey(f"{self.names['roles']}.id", ondelete="CASCADE"),
                nullable=False,
            ),
            Column("actor_type", String(255), nullable=False),
            Column("actor_id", String(255), nullable=False),
            Column("context_type", String(255), nullable=True),
            Column("context_id", String(255), nullable=True),
            Column("scope", String(255), nullable=True, index=True),
            Index(f"ix_{self.names['assigned_roles']}_actor", "actor_id", "actor_type", "scope"),
        )

    def create_all(self, engine: Engine) -> None:
        """Create any missing tables."""
        self.metadata.create_all(engine, tables=self.tables())
        logger.info(f"Created permission tables: {', '.join(self.names.values())}")

    def drop_all(self, engine: Engine) -> None:
        self.metadata.drop_all(engine, tables=self.tables())

    def tables(self) -> list[Table]:
        return [self.abilities, self.roles, self.permissions, self.assigned_roles]
