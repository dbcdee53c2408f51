"""
Constraint engine for Tollgate.

Constraints are serializable predicates attached to abilities. They are
evaluated against the subject instance and the checking authority, and
an ability whose constraints fail does not match.

Quick Start:
    >>> from tollgate.constraints import Builder, Constraint, Group
    >>>
    >>> constraints = Group.with_and().add(Constraint.where("active", True))
    >>> Constrainer.from_data(constraints.data()).equals(constraints)
    True
"""

from tollgate.constraints.base import AND, OR, Constrainer
from tollgate.constraints.builder import Builder
from tollgate.constraints.constraint import (
    OPERATORS,
    ColumnConstraint,
    Constraint,
    ValueConstraint,
    compare,
)
from tollgate.constraints.group import Group

__all__ = [
    "AND",
    "OR",
    "OPERATORS",
    "Builder",
    "ColumnConstraint",
    "Constrainer",
    "Constraint",
    "Group",
    "ValueConstraint",
    "compare",
]
