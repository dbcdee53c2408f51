"""
Base class for serializable predicate nodes.

Every constrainer evaluates against an (entity, authority) pair, carries
its own logical operator tag used when it is folded into a parent group,
and serializes to a ``{"class": ..., "params": ...}`` mapping so it can
be persisted inside an ability's options.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from tollgate.exceptions import InvalidArgumentError

AND = "and"
OR = "or"


class Constrainer(ABC):
    """
    Abstract base for constraints and constraint groups.

    Subclasses register themselves by class name so that
    ``Constrainer.from_data()`` can rebuild any node from its data.
    """

    _registry: ClassVar[dict[str, type[Constrainer]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        Constrainer._registry[cls.__name__] = cls

    def __init__(self) -> None:
        self._logical_operator = AND

    @abstractmethod
    def check(self, entity: Any, authority: Any = None) -> bool:
        """Evaluate the predicate against an entity and authority."""

    @abstractmethod
    def params(self) -> dict[str, Any]:
        """Return the constructor parameters of this node."""

    @classmethod
    @abstractmethod
    def from_params(cls, params: dict[str, Any]) -> Constrainer:
        """Rebuild a node of this class from ``params()`` output."""

    @abstractmethod
    def equals(self, other: Constrainer) -> bool:
        """Structural equality."""

    def logical_operator(self, operator: Any = None) -> Any:
        """
        Get or set the logical operator used when folding into a parent.

        With no argument, return the current operator. With an argument,
        set it and return ``self`` for chaining.

        Raises:
            InvalidArgumentError: If the operator is not "and" or "or".
        """
        if operator is None:
            return self._logical_operator

        if not isinstance(operator, str):
            raise InvalidArgumentError(
                f"Logical operator must be a string, {type(operator).__name__} given",
                argument="operator",
            )
        if operator not in (AND, OR):
            raise InvalidArgumentError(
                f"{operator} is an invalid logical operator",
                argument="operator",
            )

        self._logical_operator = operator
        return self

    def is_and(self) -> bool:
        return self._logical_operator == AND

    def is_or(self) -> bool:
        return self._logical_operator == OR

    def data(self) -> dict[str, Any]:
        """Serialize this node to a JSON-compatible mapping."""
        return {"class": type(self).__name__, "params": self.params()}

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> Constrainer:
        """
        Rebuild a node from ``data()`` output.

        Called on ``Constrainer`` itself, dispatches on the ``class`` key.
        Called on a concrete subclass, ``data`` may also be the bare
        params mapping.

        Raises:
            InvalidArgumentError: If the data is malformed or names an
                unknown class.
        """
        if not isinstance(data, dict):
            raise InvalidArgumentError(
                f"Constraint data must be a mapping, {type(data).__name__} given",
                argument="data",
            )

        if "class" in data and "params" in data:
            target = cls._registry.get(data["class"]) if isinstance(data["class"], str) else None
            if target is None:
                raise InvalidArgumentError(
                    f"Unknown constrainer class [{data['class']}]",
                    argument="class",
                )
            if cls is not Constrainer and not issubclass(target, cls):
                raise InvalidArgumentError(
                    f"Cannot build {cls.__name__} from {data['class']} data",
                    argument="class",
                )
            if not isinstance(data["params"], dict):
                raise InvalidArgumentError(
                    f"Constraint params must be a mapping, {type(data['params']).__name__} given",
                    argument="params",
                )
            return target.from_params(data["params"])

        if cls is Constrainer:
            raise InvalidArgumentError(
                "Constraint data must contain 'class' and 'params'",
                argument="data",
            )
        return cls.from_params(data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Constrainer):
            return NotImplemented
        return self.equals(other)

    __hash__ = None  # type: ignore[assignment]
