"""
Pundit-style policies for the Tollgate gate.

Example:
    >>> from tollgate.policies import Policy
    >>>
    >>> @tollgate.gate.policies.policy(Post)
    ... class PostPolicy(Policy):
    ...     def can_publish(self, context: dict) -> bool:
    ...         return self.resource.author_id == self.user.id
"""

from tollgate.policies.base import Policy
from tollgate.policies.registry import PolicyRegistry

__all__ = [
    "Policy",
    "PolicyRegistry",
]
