"""
Constrain ability queries to a subject.

The subject may be the wildcard "*", a model class, an unsaved instance
(treated like its class) or a persisted instance. Non-strict matching also
includes abilities granted on every subject type ("*"); strict matching
is used when looking up one exact ability row.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, false, or_

from tollgate.entities import EntityResolver
from tollgate.types import WILDCARD

if TYPE_CHECKING:
    from sqlalchemy.sql import ColumnElement
    from sqlalchemy.sql.base import ColumnCollection


class AbilitiesForModel:
    """Builds the subject clause of an ability query."""

    def __init__(self, resolver: EntityResolver) -> None:
        self._resolver = resolver

    def constrain(
        self,
        columns: ColumnCollection,
        subject: Any,
        strict: bool = False,
    ) -> ColumnElement[bool]:
        """
        Return the clause matching abilities that apply to ``subject``.

        Args:
            columns: Column collection holding ``subject_type`` and
                ``subject_id`` (a table's or a subquery's ``.c``).
            subject: "*", a morph type string, a class or an instance.
            strict: Only match abilities defined exactly for this subject.
        """
        if subject is None:
            return false()

        if isinstance(subject, str) and subject == WILDCARD:
            return columns.subject_type == WILDCARD

        model_clause = self._model_clause(columns, subject, strict)
        if strict:
            return model_clause
        return or_(columns.subject_type == WILDCARD, model_clause)

    def _model_clause(
        self,
        columns: ColumnCollection,
        subject: Any,
        strict: bool,
    ) -> ColumnElement[bool]:
        if isinstance(subject, str):
            subject_type, exists, key = subject, False, None
        else:
            subject_type = self._resolver.type_of(subject)
            exists = self._resolver.exists(subject)
            key = self._resolver.key_of(subject) if exists else None

        if exists and key is not None:
            if strict:
                id_clause = columns.subject_id == str(key)
            else:
                id_clause = or_(columns.subject_id.is_(None), columns.subject_id == str(key))
        else:
            id_clause = columns.subject_id.is_(None)

        return and_(columns.subject_type == subject_type, id_clause)
