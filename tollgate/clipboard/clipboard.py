"""
Uncached clipboard.

Every check runs its matching in SQL against the permission store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, false, func, or_, select

from tollgate.clipboard.base import BaseClipboard
from tollgate.database.models import Grant
from tollgate.types import WILDCARD

if TYPE_CHECKING:
    from sqlalchemy.sql import ColumnElement
    from sqlalchemy.sql.base import ColumnCollection

    from tollgate.types import EntityRef

logger = logging.getLogger(__name__)


class Clipboard(BaseClipboard):
    """
    Clipboard that queries the store on every call.

    Example:
        >>> clipboard = Clipboard(store)
        >>> clipboard.check(user, "edit", post)
        True
    """

    def find_match(
        self,
        authority: Any,
        ref: EntityRef,
        ability: str,
        subject: Any,
        context: EntityRef | None,
        allowed: bool,
    ) -> int | None:
        grants = self.store.abilities.for_authority(ref, allowed, context).subquery("grants")

        query = select(grants).where(self._ability_clause(grants.c, ability, subject))
        if not self.is_owned_by(authority, subject):
            query = query.where(grants.c.only_owned == false())
        query = query.order_by(grants.c.id)

        with self.store.engine.connect() as conn:
            for row in conn.execute(query):
                grant = Grant.from_row(row)
                if self.passes_constraints(grant.ability, authority, subject):
                    return grant.ability.id
        return None

    def _ability_clause(self, columns: ColumnCollection, ability: str, subject: Any) -> ColumnElement[bool]:
        name = func.lower(columns.name)

        if subject is None:
            return or_(
                and_(name == ability.lower(), columns.subject_type.is_(None)),
                and_(
                    columns.name == WILDCARD,
                    or_(columns.subject_type.is_(None), columns.subject_type == WILDCARD),
                ),
            )

        return and_(
            name.in_([ability.lower(), WILDCARD]),
            self.store.for_model.constrain(columns, subject),
        )

    def grants(self, ref: EntityRef, allowed: bool = True) -> list[Grant]:
        return self.store.grants_for(ref, allowed)

    def role_assignments(self, ref: EntityRef) -> list[dict[str, Any]]:
        return self.store.roles_lookup(ref)
