"""
Core type definitions for Tollgate.

This module defines the small value types threaded through the library:
the polymorphic entity reference used for actors, subjects and contexts,
and the detailed result returned by gate inspections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Ability name / subject type meaning "anything"
WILDCARD = "*"


@dataclass(frozen=True)
class EntityRef:
    """
    Polymorphic identity of an entity as it is stored.

    Every actor, subject and context is reduced to its morph type and the
    value of its mapped key before it reaches the permission store. Ids
    are normalized to strings so that different entity types can share
    one column without ever being confused for one another.

    Attributes:
        type: The morph type of the entity (e.g., "app.models.User").
        id: The mapped key of the entity, as a string. None for classes.

    Example:
        >>> ref = EntityRef("users", 5)
        >>> ref.id
        '5'
    """

    type: str
    id: str | None = None

    def __post_init__(self) -> None:
        if self.id is not None and not isinstance(self.id, str):
            object.__setattr__(self, "id", str(self.id))

    def __str__(self) -> str:
        if self.id is None:
            return self.type
        return f"{self.type}#{self.id}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"type": self.type, "id": self.id}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EntityRef | None:
        """Rebuild a reference from ``to_dict()`` output."""
        if not data:
            return None
        return cls(data["type"], data.get("id"))


@dataclass
class AuthorizationResult:
    """
    Result of an authorization check.

    Captures whether the ability was allowed, the reason for the decision,
    and which policies or callbacks were evaluated to reach it.

    Attributes:
        allowed: Whether the ability is authorized.
        reason: Human-readable explanation of the decision.
        policies_evaluated: Names of the policies/callbacks that ran.
        metadata: Additional information about the decision
            (e.g., the id of the granting ability).

    Example:
        >>> result = AuthorizationResult.allow(
        ...     reason="Tollgate granted permission via ability #3",
        ...     metadata={"ability_id": 3},
        ... )
    """

    allowed: bool
    reason: str | None = None
    policies_evaluated: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def allow(cls, reason: str | None = None,
              policies: list[str] | None = None,
              metadata: dict[str, Any] | None = None) -> AuthorizationResult:
        """Create an allowed result."""
        return cls(
            allowed=True,
            reason=reason,
            policies_evaluated=policies or [],
            metadata=metadata or {},
        )

    @classmethod
    def deny(cls, reason: str | None = None,
             policies: list[str] | None = None,
             metadata: dict[str, Any] | None = None) -> AuthorizationResult:
        """Create a denied result."""
        return cls(
            allowed=False,
            reason=reason,
            policies_evaluated=policies or [],
            metadata=metadata or {},
        )

    def __bool__(self) -> bool:
        return self.allowed

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "policies_evaluated": self.policies_evaluated,
            "metadata": self.metadata,
        }
