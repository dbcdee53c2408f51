"""
Read-only queries for ability cleanup.

Deleting stale abilities is left to the host application; these queries
identify the candidates. An ability is "unassigned" when no permission row
references it, and "orphaned" when it targets a specific subject instance
that no longer exists.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from sqlalchemy import exists, func, select

from tollgate.database.models import Ability

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from tollgate.database.schema import Schema

ExistingIds = Callable[[str, list[str]], Iterable[str]]


class Maintenance:
    """
    Cleanup candidates across all scopes.

    Example:
        >>> maintenance = Maintenance(schema, engine)
        >>> stale = maintenance.unassigned_abilities()
        >>> gone = maintenance.orphaned_abilities(lambda kind, ids: lookup(kind, ids))
    """

    def __init__(self, schema: Schema, engine: Engine) -> None:
        self._schema = schema
        self._engine = engine

    def reference_count(self, ability_id: int) -> int:
        """Number of permission rows referencing an ability."""
        p = self._schema.permissions
        query = select(func.count()).select_from(p).where(p.c.ability_id == ability_id)
        with self._engine.connect() as conn:
            return int(conn.execute(query).scalar_one())

    def unassigned_abilities(self) -> list[Ability]:
        a, p = self._schema.abilities, self._schema.permissions
        query = select(a).where(~exists().where(p.c.ability_id == a.c.id)).order_by(a.c.id)
        with self._engine.connect() as conn:
            return [Ability.from_row(row) for row in conn.execute(query)]

    def model_abilities(self) -> dict[str, list[tuple[int, str]]]:
        """
        Instance-specific abilities grouped by subject type.

        Returns:
            ``{subject_type: [(ability_id, subject_id), ...]}``
        """
        a = self._schema.abilities
        query = (
            select(a.c.id, a.c.subject_type, a.c.subject_id)
            .where(a.c.subject_id.is_not(None), a.c.subject_type != "*")
            .order_by(a.c.id)
        )
        grouped: dict[str, list[tuple[int, str]]] = defaultdict(list)
        with self._engine.connect() as conn:
            for ability_id, subject_type, subject_id in conn.execute(query):
                grouped[subject_type].append((ability_id, subject_id))
        return dict(grouped)

    def orphaned_abilities(self, existing_ids: ExistingIds) -> list[int]:
        """
        Ids of abilities whose subject instance no longer exists.

        Args:
            existing_ids: Called with a subject type and candidate ids;
                returns the ids that still exist.
        """
        orphaned: list[int] = []
        for subject_type, pairs in self.model_abilities().items():
            alive = {str(key) for key in existing_ids(subject_type, [subject for _, subject in pairs])}
            orphaned.extend(ability_id for ability_id, subject in pairs if subject not in alive)
        return orphaned
