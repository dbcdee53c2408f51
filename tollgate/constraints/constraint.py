"""
Leaf constraints.

A ``ValueConstraint`` compares an entity attribute to a literal; a
``ColumnConstraint`` compares an entity attribute to an attribute of the
authority. Both use strict comparisons: booleans never equal integers and
values that cannot be ordered against each other simply fail to match.

Example:
    >>> Constraint.where("active", True).check(account)
    True
    >>> Constraint.where_column("team_id", "team_id").check(post, user)
    True
"""

from __future__ import annotations

import logging
import operator as op
from collections.abc import Callable
from typing import Any

from tollgate.constraints.base import AND, OR, Constrainer
from tollgate.entities import EntityResolver
from tollgate.exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

_MISSING = object()

_ORDERING: dict[str, Callable[[Any, Any], bool]] = {
    ">": op.gt,
    "<": op.lt,
    ">=": op.ge,
    "<=": op.le,
}

OPERATORS = ("=", "==", "!=", *_ORDERING)


def _strict_equals(a: Any, b: Any) -> bool:
    return type(a) is type(b) and a == b


def compare(a: Any, operator: str, b: Any) -> bool:
    """Compare two values with one of the supported operators."""
    if operator in ("=", "=="):
        return _strict_equals(a, b)
    if operator == "!=":
        return not _strict_equals(a, b)

    if a is None or b is None:
        return False
    try:
        return bool(_ORDERING[operator](a, b))
    except TypeError:
        logger.debug(f"Cannot compare {type(a).__name__} {operator} {type(b).__name__}")
        return False


def _check_operator(operator: Any) -> str:
    if operator not in OPERATORS:
        raise InvalidArgumentError(
            f"{operator!r} is not a valid comparison operator",
            argument="operator",
        )
    return operator


class Constraint(Constrainer):
    """
    Base for leaf constraints, with named constructors.

    ``where``/``or_where`` build value constraints and
    ``where_column``/``or_where_column`` build column constraints. When
    only two arguments are given the operator defaults to ``=``.
    """

    @classmethod
    def where(cls, column: str, operator: Any, value: Any = _MISSING) -> ValueConstraint:
        if value is _MISSING:
            operator, value = "=", operator
        return ValueConstraint(column, operator, value)

    @classmethod
    def or_where(cls, column: str, operator: Any, value: Any = _MISSING) -> ValueConstraint:
        constraint = cls.where(column, operator, value)
        constraint.logical_operator(OR)
        return constraint

    @classmethod
    def where_column(cls, a: str, operator: str, b: Any = _MISSING) -> ColumnConstraint:
        if b is _MISSING:
            operator, b = "=", operator
        return ColumnConstraint(a, operator, b)

    @classmethod
    def or_where_column(cls, a: str, operator: str, b: Any = _MISSING) -> ColumnConstraint:
        constraint = cls.where_column(a, operator, b)
        constraint.logical_operator(OR)
        return constraint


class ValueConstraint(Constraint):
    """Compares ``entity[column]`` to a literal value."""

    def __init__(self, column: str, operator: str, value: Any) -> None:
        super().__init__()
        self.column = column
        self.operator = _check_operator(operator)
        self.value = value

    def check(self, entity: Any, authority: Any = None) -> bool:
        actual = EntityResolver.attribute(entity, self.column)
        return compare(actual, self.operator, self.value)

    def params(self) -> dict[str, Any]:
        return {
            "column": self.column,
            "operator": self.operator,
            "value": self.value,
            "logical_operator": self._logical_operator,
        }

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> ValueConstraint:
        column = params.get("column")
        operator = params.get("operator")
        if not isinstance(column, str) or not isinstance(operator, str):
            raise InvalidArgumentError("Column and operator must be strings", argument="column")

        constraint = cls(column, operator, params.get("value"))
        constraint.logical_operator(params.get("logical_operator") or AND)
        return constraint

    def equals(self, other: Constrainer) -> bool:
        if not isinstance(other, ValueConstraint):
            return False
        return (
            self.column == other.column
            and self.operator == other.operator
            and _strict_equals(self.value, other.value)
            and self._logical_operator == other.logical_operator()
        )

    def __repr__(self) -> str:
        return f"ValueConstraint({self.column!r} {self.operator} {self.value!r}, {self._logical_operator})"


class ColumnConstraint(Constraint):
    """Compares ``entity[a]`` to ``authority[b]``."""

    def __init__(self, a: str, operator: str, b: str) -> None:
        super().__init__()
        self.a = a
        self.operator = _check_operator(operator)
        self.b = b

    def check(self, entity: Any, authority: Any = None) -> bool:
        if authority is None:
            return False
        return compare(
            EntityResolver.attribute(entity, self.a),
            self.operator,
            EntityResolver.attribute(authority, self.b),
        )

    def params(self) -> dict[str, Any]:
        return {
            "a": self.a,
            "operator": self.operator,
            "b": self.b,
            "logical_operator": self._logical_operator,
        }

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> ColumnConstraint:
        a, operator, b = params.get("a"), params.get("operator"), params.get("b")
        if not all(isinstance(part, str) for part in (a, operator, b)):
            raise InvalidArgumentError("Columns and operator must be strings", argument="a")

        constraint = cls(a, operator, b)
        constraint.logical_operator(params.get("logical_operator") or AND)
        return constraint

    def equals(self, other: Constrainer) -> bool:
        if not isinstance(other, ColumnConstraint):
            return False
        return (
            self.a == other.a
            and self.operator == other.operator
            and self.b == other.b
            and self._logical_operator == other.logical_operator()
        )

    def __repr__(self) -> str:
        return f"ColumnConstraint({self.a!r} {self.operator} {self.b!r}, {self._logical_operator})"
