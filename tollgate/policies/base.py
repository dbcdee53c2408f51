"""
Policy base class for the gate.

Policies group the gate rules for one subject type. Following the Pundit
pattern, a method named ``can_<ability>`` answers for that ability. A
method may return None to abstain, which lets the stored permissions
decide.
"""

from __future__ import annotations

import re
from typing import Any, Generic, TypeVar

# Type variable for the subject being authorized
T = TypeVar("T")


class Policy(Generic[T]):
    """
    Base class for subject policies.

    Attributes:
        user: The authority the check runs for.
        resource: The subject being accessed; a class for type-level
            checks such as "can this user create posts?".

    Example:
        >>> class PostPolicy(Policy):
        ...     def can_update(self, context: dict) -> bool | None:
        ...         if self.resource.locked:
        ...             return False
        ...         return None  # let stored permissions decide
        ...
        ...     def can_publish(self, context: dict) -> bool:
        ...         return self.resource.author_id == self.user.id
    """

    # Set by PolicyRegistry.register()
    _resource_name: str | None = None

    def __init__(self, user: Any, resource: T | None = None) -> None:
        self.user = user
        self.resource = resource

    def authorize(self, action: str, context: dict[str, Any] | None = None) -> bool | None:
        """
        Run the ``can_<action>`` method.

        Returns:
            The method's answer, or None when the policy does not define
            the action.
        """
        method = getattr(self, f"can_{action}", None)
        if method is None:
            return None
        return method(context or {})

    def can(self, action: str, context: dict[str, Any] | None = None) -> bool | None:
        return self.authorize(action, context)

    @classmethod
    def get_resource_name(cls) -> str:
        """
        Get the subject type this policy handles.

        Falls back to the class name: ``BlogPostPolicy`` -> ``blog_post``.
        """
        if cls._resource_name:
            return cls._resource_name

        name = cls.__name__
        if name.endswith("Policy"):
            name = name[:-6]
        return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()

    @classmethod
    def get_available_actions(cls) -> list[str]:
        """
        Get all abilities defined by this policy.

        Example:
            >>> PostPolicy.get_available_actions()
            ['publish', 'update']
        """
        return sorted(
            name[4:] for name in dir(cls)
            if name.startswith("can_") and callable(getattr(cls, name))
        )
