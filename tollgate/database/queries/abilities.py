"""
Abilities that apply to an authority.

Three sources are combined: abilities granted directly to the authority,
abilities granted to roles assigned to the authority, and abilities
granted to everyone (a permission row with no actor). Every join and
filter uses both the authority's morph type and its mapped key, so two
entity types that happen to share a key never see each other's grants.

Each row of the resulting query carries the ability columns, the
permission's ``forbidden`` flag and context, and the context of the role
assignment the grant came through (``role_context_type``/``role_context_id``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, and_, cast, literal, null, or_, select, union_all

from tollgate.database.models import Role
from tollgate.types import EntityRef

if TYPE_CHECKING:
    from sqlalchemy import Table
    from sqlalchemy.sql import ColumnElement, CompoundSelect, Select

    from tollgate.database.schema import Schema
    from tollgate.scope import Scope

logger = logging.getLogger(__name__)


class _AllContexts:
    def __repr__(self) -> str:
        return "ALL_CONTEXTS"


# Context filter meaning "do not filter by context"
ALL_CONTEXTS: Any = _AllContexts()


def context_clause(table: Table, context: EntityRef | None) -> ColumnElement[bool] | None:
    """
    Visibility of context-bound rows.

    Rows without a context are always visible. Rows bound to a context are
    visible only when checking within that same context.
    """
    if context is ALL_CONTEXTS:
        return None
    if context is None:
        return table.c.context_id.is_(None)
    return or_(
        table.c.context_id.is_(None),
        and_(table.c.context_type == context.type, table.c.context_id == context.id),
    )


class Abilities:
    """
    Builds authority-centric ability queries.

    Example:
        >>> query = Abilities(schema, scope).for_authority(EntityRef("users", 1))
        >>> grants = [Grant.from_row(row) for row in connection.execute(query)]
    """

    def __init__(self, schema: Schema, scope: Scope) -> None:
        self._schema = schema
        self._scope = scope

    def for_authority(
        self,
        authority: EntityRef,
        allowed: bool = True,
        context: Any = ALL_CONTEXTS,
    ) -> CompoundSelect:
        """
        Select the abilities granted (or forbidden) to an authority.

        Args:
            authority: The stored identity of the authority.
            allowed: True for granted abilities, False for forbidden ones.
            context: A context ``EntityRef``, None for context-free rows
                only, or ``ALL_CONTEXTS`` to skip context filtering.
        """
        forbidden = not allowed
        return union_all(
            self._direct(authority, forbidden, context),
            self._through_roles(authority, forbidden, context),
            self._everyone(forbidden, context),
        )

    def forbidden_for_authority(self, authority: EntityRef, context: Any = ALL_CONTEXTS) -> CompoundSelect:
        return self.for_authority(authority, allowed=False, context=context)

    def for_everyone(self, allowed: bool = True, context: Any = ALL_CONTEXTS) -> Select:
        """Select abilities granted (or forbidden) to everyone."""
        return self._everyone(not allowed, context)

    # ==================== Branches ====================

    def _columns(self) -> list[Any]:
        a, p = self._schema.abilities, self._schema.permissions
        return [
            a.c.id,
            a.c.name,
            a.c.title,
            a.c.subject_type,
            a.c.subject_id,
            a.c.only_owned,
            a.c.options,
            a.c.scope,
            p.c.forbidden,
            p.c.context_type,
            p.c.context_id,
        ]

    def _base(self, forbidden: bool, context: Any, role_context: tuple[Any, Any]) -> Select:
        a, p = self._schema.abilities, self._schema.permissions
        query = (
            select(
                *self._columns(),
                role_context[0].label("role_context_type"),
                role_context[1].label("role_context_id"),
            )
            .select_from(a.join(p, p.c.ability_id == a.c.id))
            .where(p.c.forbidden == literal(forbidden))
        )
        query = self._scope.apply_to_model_query(query, a)
        query = self._scope.apply_to_relation_query(query, p)

        clause = context_clause(p, context)
        if clause is not None:
            query = query.where(clause)
        return query

    def _direct(self, authority: EntityRef, forbidden: bool, context: Any) -> Select:
        p = self._schema.permissions
        query = self._base(forbidden, context, (null(), null()))
        return query.where(p.c.actor_type == authority.type, p.c.actor_id == authority.id)

    def _through_roles(self, authority: EntityRef, forbidden: bool, context: Any) -> Select:
        p, r, ar = self._schema.permissions, self._schema.roles, self._schema.assigned_roles
        query = self._base(forbidden, context, (ar.c.context_type, ar.c.context_id))
        query = (
            query.join(r, and_(p.c.actor_type == Role.__morph_type__, p.c.actor_id == cast(r.c.id, String)))
            .join(ar, ar.c.role_id == r.c.id)
            .where(ar.c.actor_type == authority.type, ar.c.actor_id == authority.id)
        )
        query = self._scope.apply_to_model_query(query, r)
        query = self._scope.apply_to_relation_query(query, ar)

        clause = context_clause(ar, context)
        if clause is not None:
            query = query.where(clause)
        return query

    def _everyone(self, forbidden: bool, context: Any) -> Select:
        p = self._schema.permissions
        query = self._base(forbidden, context, (null(), null()))
        return query.where(p.c.actor_type.is_(None), p.c.actor_id.is_(None))
