"""
Role membership query helpers.

These helpers add role conditions to ``select()`` statements over a
host application's mapped authority class, and narrow ``select()``
statements over the roles table to the roles held by some authorities.

Example:
    >>> roles = Roles(schema, resolver, scope)
    >>> admins = session.scalars(roles.where_is(select(User), User, "admin")).all()
    >>> session.scalars(roles.where_is_not(select(User), User, "banned")).all()
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, and_, cast, distinct, exists, func, or_, select

from tollgate.exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from sqlalchemy.sql import Select

    from tollgate.database.schema import Schema
    from tollgate.entities import EntityResolver
    from tollgate.scope import Scope


class Roles:
    """Builds role-membership filters."""

    def __init__(self, schema: Schema, resolver: EntityResolver, scope: Scope) -> None:
        self._schema = schema
        self._resolver = resolver
        self._scope = scope

    def where_is(self, query: Select, model: type, *roles: str) -> Select:
        """Keep authorities that have any of the given roles."""
        return query.where(exists(self._assignments(model, roles)))

    def where_is_all(self, query: Select, model: type, *roles: str) -> Select:
        """Keep authorities that have every one of the given roles."""
        r = self._schema.roles
        names = set(roles)
        counted = self._assignments(model, names).with_only_columns(func.count(distinct(r.c.name)))
        return query.where(counted.scalar_subquery() == len(names))

    def where_is_not(self, query: Select, model: type, *roles: str) -> Select:
        """Keep authorities that have none of the given roles."""
        return query.where(~exists(self._assignments(model, roles)))

    def where_assigned_to(
        self,
        query: Select,
        authorities: Any,
        keys: Iterable[Any] | None = None,
    ) -> Select:
        """
        Keep roles assigned to the given authorities.

        Args:
            query: A ``select()`` over the roles table.
            authorities: A model instance, a list of instances, or a model
                class combined with ``keys``.
            keys: Keys of the authorities when ``authorities`` is a class.
        """
        ar, r = self._schema.assigned_roles, self._schema.roles
        by_type = self._group_by_type(authorities, keys)

        matches = [
            and_(ar.c.actor_type == morph_type, ar.c.actor_id.in_(ids))
            for morph_type, ids in by_type.items()
        ]
        assigned = select(ar.c.id).where(ar.c.role_id == r.c.id, or_(*matches))
        assigned = self._scope.apply_to_relation_query(assigned, ar)
        return query.where(exists(assigned))

    def _assignments(self, model: type, roles: Iterable[str]) -> Select:
        ar, r = self._schema.assigned_roles, self._schema.roles
        key_column = getattr(model, self._resolver.key_name(model))

        query = (
            select(ar.c.id)
            .select_from(ar.join(r, r.c.id == ar.c.role_id))
            .where(
                ar.c.actor_type == self._resolver.type_of(model),
                ar.c.actor_id == cast(key_column, String),
                r.c.name.in_(list(roles)),
            )
        )
        query = self._scope.apply_to_model_query(query, r)
        return self._scope.apply_to_relation_query(query, ar)

    def _group_by_type(self, authorities: Any, keys: Iterable[Any] | None) -> dict[str, list[str]]:
        if isinstance(authorities, type):
            if keys is None:
                raise InvalidArgumentError("A class requires keys", argument="keys")
            if isinstance(keys, (str, int)):
                keys = [keys]
            return {self._resolver.type_of(authorities): [str(key) for key in keys]}

        if not isinstance(authorities, (list, tuple, set)):
            authorities = [authorities]

        grouped: dict[str, list[str]] = defaultdict(list)
        for authority in authorities:
            ref = self._resolver.authority_ref(authority)
            grouped[ref.type].append(ref.id)
        return dict(grouped)

