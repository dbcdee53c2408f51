"""
Groups of constrainers.

A group folds its children left to right. The first child seeds the
result; every following child is AND-ed or OR-ed into it according to
that child's own logical operator. The group's own operator only matters
when the group is itself nested inside another group.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from tollgate.constraints.base import AND, OR, Constrainer
from tollgate.exceptions import InvalidArgumentError


class Group(Constrainer):
    """
    An ordered collection of constrainers.

    An empty group always passes.

    Example:
        >>> group = Group.with_or().add(Constraint.where("active", True))
        >>> group.check(account)
        True
    """

    def __init__(self, constraints: Iterable[Constrainer] | None = None) -> None:
        super().__init__()
        self.constraints: list[Constrainer] = []
        for constraint in constraints or ():
            self.add(constraint)

    @classmethod
    def with_and(cls) -> Group:
        return cls().logical_operator(AND)

    @classmethod
    def with_or(cls) -> Group:
        return cls().logical_operator(OR)

    def add(self, constraint: Constrainer) -> Group:
        """Append a constrainer and return ``self``."""
        if not isinstance(constraint, Constrainer):
            raise InvalidArgumentError(
                f"Groups may only contain constrainers, {type(constraint).__name__} given",
                argument="constraint",
            )
        self.constraints.append(constraint)
        return self

    def check(self, entity: Any, authority: Any = None) -> bool:
        if not self.constraints:
            return True

        first, *rest = self.constraints
        result = first.check(entity, authority)

        for constraint in rest:
            if constraint.is_or():
                result = result or constraint.check(entity, authority)
            else:
                result = result and constraint.check(entity, authority)

        return result

    def params(self) -> dict[str, Any]:
        return {
            "logical_operator": self._logical_operator,
            "constraints": [constraint.data() for constraint in self.constraints],
        }

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> Group:
        children = params.get("constraints", [])
        if not isinstance(children, list):
            raise InvalidArgumentError("Group constraints must be a list", argument="constraints")

        group = cls(Constrainer.from_data(child) for child in children)
        group.logical_operator(params.get("logical_operator") or AND)
        return group

    def equals(self, other: Constrainer) -> bool:
        if not isinstance(other, Group):
            return False
        if self._logical_operator != other.logical_operator():
            return False
        if len(self.constraints) != len(other.constraints):
            return False
        return all(a.equals(b) for a, b in zip(self.constraints, other.constraints))

    def __len__(self) -> int:
        return len(self.constraints)

    def __repr__(self) -> str:
        return f"Group({self.constraints!r}, {self._logical_operator})"
