"""
Fluent builder for constraint trees.

Example:
    >>> constraints = (
    ...     Builder.make()
    ...     .where("active", True)
    ...     .or_where(lambda q: q.where("age", ">=", 18).where("verified", True))
    ...     .build()
    ... )
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from tollgate.constraints.base import Constrainer
from tollgate.constraints.constraint import _MISSING, Constraint
from tollgate.constraints.group import Group


class Builder:
    """Collects constrainers and builds the smallest equivalent tree."""

    def __init__(self) -> None:
        self._constraints: list[Constrainer] = []

    @classmethod
    def make(cls) -> Builder:
        return cls()

    def where(self, column: str | Callable[[Builder], Any], operator: Any = _MISSING,
              value: Any = _MISSING) -> Builder:
        """Add an AND constraint, or an AND group when given a callable."""
        if callable(column):
            return self._add(self._nested(column, Group.with_and()))
        return self._add(Constraint.where(column, operator, value))

    def or_where(self, column: str | Callable[[Builder], Any], operator: Any = _MISSING,
                 value: Any = _MISSING) -> Builder:
        """Add an OR constraint, or an OR group when given a callable."""
        if callable(column):
            return self._add(self._nested(column, Group.with_or()))
        return self._add(Constraint.or_where(column, operator, value))

    def where_column(self, a: str, operator: str, b: Any = _MISSING) -> Builder:
        return self._add(Constraint.where_column(a, operator, b))

    def or_where_column(self, a: str, operator: str, b: Any = _MISSING) -> Builder:
        return self._add(Constraint.or_where_column(a, operator, b))

    def build(self) -> Constrainer:
        """
        Build the constraint tree.

        Returns:
            An empty group when nothing was added, the lone constrainer
            when one was added, otherwise a group of all of them.
        """
        if len(self._constraints) == 1:
            return self._constraints[0]
        return Group(self._constraints)

    def _add(self, constraint: Constrainer) -> Builder:
        self._constraints.append(constraint)
        return self

    @staticmethod
    def _nested(callback: Callable[[Builder], Any], group: Group) -> Group:
        builder = Builder()
        callback(builder)
        for constraint in builder._constraints:
            group.add(constraint)
        return group
