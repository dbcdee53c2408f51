"""
Tollgate: role and ability based authorization for SQLAlchemy applications.

Tollgate decides whether an authority (a user, any other entity, or a
role) may perform an ability on a subject (a model class, an instance, or
everything). Grants, forbiddances, roles, ownership, tenant scopes and
per-context grants are stored in four tables and resolved with a clear
precedence: a forbiddance always wins.

Basic Usage:
    >>> from tollgate import Tollgate
    >>>
    >>> tollgate = Tollgate.create("sqlite://", user_model=User)
    >>>
    >>> # Grant abilities to a role and assign it
    >>> tollgate.allow("editor").to(["view", "edit"], Post)
    >>> tollgate.assign("editor").to(user)
    >>>
    >>> # Forbid one instance
    >>> tollgate.forbid(user).to("edit", locked_post)
    >>>
    >>> # Check
    >>> with tollgate.acting_as(user):
    ...     tollgate.can("edit", post)
    True
"""

__version__ = "0.1.0"

from tollgate.caching import ArrayStore, CacheStore, LRUStore, NullStore
from tollgate.clipboard import BaseClipboard, CachedClipboard, Clipboard
from tollgate.config import TollgateConfig
from tollgate.constraints import Builder, ColumnConstraint, Constraint, Group, ValueConstraint
from tollgate.core import Tollgate, get_acting_user
from tollgate.database import Ability, Role, Schema, SQLPermissionStore
from tollgate.entities import EntityResolver
from tollgate.exceptions import (
    AuthorizationError,
    ConfigurationError,
    InvalidArgumentError,
    MorphKeyViolation,
    PolicyNotFoundError,
    TollgateError,
)
from tollgate.gate import Gate, GateCall
from tollgate.guard import Guard
from tollgate.policies import Policy, PolicyRegistry
from tollgate.scope import Scope
from tollgate.types import WILDCARD, AuthorizationResult, EntityRef

__all__ = [
    # Version
    "__version__",
    # Core
    "Tollgate",
    "TollgateConfig",
    "get_acting_user",
    # Storage
    "Ability",
    "Role",
    "Schema",
    "SQLPermissionStore",
    "EntityResolver",
    "Scope",
    # Constraints
    "Builder",
    "ColumnConstraint",
    "Constraint",
    "Group",
    "ValueConstraint",
    # Resolution
    "BaseClipboard",
    "CachedClipboard",
    "Clipboard",
    "ArrayStore",
    "CacheStore",
    "LRUStore",
    "NullStore",
    # Gate
    "Gate",
    "GateCall",
    "Guard",
    "Policy",
    "PolicyRegistry",
    # Types
    "AuthorizationResult",
    "EntityRef",
    "WILDCARD",
    # Exceptions
    "AuthorizationError",
    "ConfigurationError",
    "InvalidArgumentError",
    "MorphKeyViolation",
    "PolicyNotFoundError",
    "TollgateError",
]
