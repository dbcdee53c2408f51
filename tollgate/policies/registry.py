"""
Policy registry for the gate.

Policies are registered per subject type. Registration accepts either a
model class or its morph type string; both resolve to the same key, so a
policy applies to the class and to all of its instances.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from tollgate.exceptions import PolicyNotFoundError

if TYPE_CHECKING:
    from tollgate.entities import EntityResolver
    from tollgate.policies.base import Policy

logger = logging.getLogger(__name__)


class PolicyRegistry:
    """
    Registry of policy classes keyed by subject morph type.

    Example:
        >>> registry = PolicyRegistry(resolver)
        >>>
        >>> @registry.policy(Post)
        ... class PostPolicy(Policy):
        ...     def can_publish(self, context: dict) -> bool:
        ...         return self.resource.author_id == self.user.id
        >>>
        >>> registry.policy_for(post)
        <class 'PostPolicy'>

    Thread Safety:
        All operations are thread-safe via internal locking.
    """

    def __init__(self, resolver: EntityResolver) -> None:
        self._resolver = resolver
        self._policies: dict[str, type[Policy]] = {}
        self._lock = threading.RLock()

    def policy(self, model: Any) -> Any:
        """Decorator for registering a policy class for a model."""
        def decorator(policy_class: type[Policy]) -> type[Policy]:
            self.register(model, policy_class)
            return policy_class
        return decorator

    def register(self, model: Any, policy_class: type[Policy]) -> None:
        """Register a policy class for a model class or morph type."""
        resource_name = self._key(model)

        with self._lock:
            if resource_name in self._policies:
                existing = self._policies[resource_name].__name__
                logger.warning(
                    f"Overwriting policy for '{resource_name}': "
                    f"{existing} -> {policy_class.__name__}"
                )

            self._policies[resource_name] = policy_class
            policy_class._resource_name = resource_name

        logger.debug(f"Registered policy '{policy_class.__name__}' for resource '{resource_name}'")

    def get_policy(self, model: Any) -> type[Policy]:
        """
        Get the policy class for a model class, instance or morph type.

        Raises:
            PolicyNotFoundError: If no policy is registered.
        """
        resource_name = self._key(model)
        with self._lock:
            if resource_name in self._policies:
                return self._policies[resource_name]
            raise PolicyNotFoundError(resource_name, list(self._policies))

    def policy_for(self, subject: Any) -> type[Policy] | None:
        """Like ``get_policy()``, but returns None for unregistered subjects."""
        if subject is None:
            return None
        with self._lock:
            return self._policies.get(self._key(subject))

    def has_policy(self, model: Any) -> bool:
        return self.policy_for(model) is not None

    def list_policies(self) -> dict[str, str]:
        """
        List all registered policies.

        Example:
            >>> registry.list_policies()
            {'posts': 'PostPolicy'}
        """
        with self._lock:
            return {resource: policy.__name__ for resource, policy in self._policies.items()}

    def unregister(self, model: Any) -> bool:
        resource_name = self._key(model)
        with self._lock:
            if resource_name in self._policies:
                del self._policies[resource_name]
                logger.debug(f"Unregistered policy for resource '{resource_name}'")
                return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._policies.clear()
            logger.debug("Cleared all registered policies")

    def _key(self, model: Any) -> str:
        if isinstance(model, str):
            return model
        return self._resolver.type_of(model)
