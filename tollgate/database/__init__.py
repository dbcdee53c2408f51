"""
Permission storage for Tollgate.

Table definitions, record types, the query layer and the permission
store built on SQLAlchemy Core.

Example:
    >>> from sqlalchemy import create_engine
    >>> from tollgate.database import Schema, SQLPermissionStore
    >>>
    >>> engine = create_engine("sqlite://")
    >>> store = SQLPermissionStore(engine, Schema(prefix="auth_"))
    >>> store.create_tables()
"""

from tollgate.database.models import Ability, Grant, Role, subject_columns
from tollgate.database.schema import Schema
from tollgate.database.store import PermissionStore, SQLPermissionStore

__all__ = [
    "Ability",
    "Grant",
    "PermissionStore",
    "Role",
    "SQLPermissionStore",
    "Schema",
    "subject_columns",
]
