"""
Fluent writers and role checks.

These are usually reached through the ``Tollgate`` service object rather
than constructed directly.

Example:
    >>> tollgate.allow(user).to("edit", post)
    >>> tollgate.assign("admin").to(user)
    >>> tollgate.is_(user).an("admin")
    True
"""

from tollgate.conductors.abilities import (
    ForbidsAbilities,
    GivesAbilities,
    RemovesAbilities,
    UnforbidsAbilities,
)
from tollgate.conductors.base import PendingOwnership, PermissionWriter
from tollgate.conductors.roles import AssignsRoles, ChecksRoles, RemovesRoles
from tollgate.conductors.sync import SyncsRolesAndAbilities

__all__ = [
    "AssignsRoles",
    "ChecksRoles",
    "ForbidsAbilities",
    "GivesAbilities",
    "PendingOwnership",
    "PermissionWriter",
    "RemovesAbilities",
    "RemovesRoles",
    "SyncsRolesAndAbilities",
    "UnforbidsAbilities",
]
