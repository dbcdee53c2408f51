"""
Query layer for Tollgate.

Builds the SQLAlchemy statements that answer "which abilities or roles
apply to X". Statements are returned unexecuted so callers can refine
them further.
"""

from tollgate.database.queries.abilities import ALL_CONTEXTS, Abilities, context_clause
from tollgate.database.queries.abilities_for_model import AbilitiesForModel
from tollgate.database.queries.maintenance import Maintenance
from tollgate.database.queries.roles import Roles

__all__ = [
    "ALL_CONTEXTS",
    "Abilities",
    "AbilitiesForModel",
    "Maintenance",
    "Roles",
    "context_clause",
]
