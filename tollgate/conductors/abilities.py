"""
Writers that grant, forbid, remove and unforbid abilities.

Example:
    >>> GivesAbilities(store, user).to("edit", post)
    >>> ForbidsAbilities(store, user).to("delete", Post)
    >>> RemovesAbilities(store, "editor").within(team).to("publish", Post)
"""

from __future__ import annotations

import logging
from typing import Any

from tollgate.conductors.base import SKIP, PermissionWriter

logger = logging.getLogger(__name__)


class AssociatesAbilities(PermissionWriter):
    """Links abilities to the authority, creating missing abilities."""

    def to(self, abilities: Any, subject: Any = None, attributes: dict[str, Any] | None = None) -> list[int]:
        """
        Link the abilities to the authority.

        Args:
            abilities: A name, id, ``Ability``, list of those, or a mapping
                of names to subjects.
            subject: Subject the named abilities apply to; "*" for every
                subject type.
            attributes: Extra ability attributes such as ``only_owned``.

        Returns:
            Ids of the abilities that were newly linked.
        """
        with self.store.transaction() as conn:
            actor = self._actor(conn, create=True)
            ids = self.store.ability_ids(abilities, subject, attributes, create=True, conn=conn)
            linked = self.store.associate(actor, ids, self.forbidding, self.context, conn=conn)

        self._changed()
        return linked


class DisassociatesAbilities(PermissionWriter):
    """Unlinks abilities from the authority; missing abilities are ignored."""

    def to(self, abilities: Any, subject: Any = None, attributes: dict[str, Any] | None = None) -> int:
        """
        Unlink the abilities from the authority.

        Returns:
            Number of permission rows removed.
        """
        with self.store.transaction() as conn:
            actor = self._actor(conn, create=False)
            if actor is SKIP:
                logger.debug(f"Role {self.authority!r} does not exist, nothing to remove")
                return 0

            ids = self.store.ability_ids(abilities, subject, attributes, create=False, conn=conn)
            removed = self.store.disassociate(actor, ids, self.forbidding, self.context, conn=conn)

        self._changed()
        return removed


class GivesAbilities(AssociatesAbilities):
    forbidding = False


class ForbidsAbilities(AssociatesAbilities):
    forbidding = True


class RemovesAbilities(DisassociatesAbilities):
    forbidding = False


class UnforbidsAbilities(DisassociatesAbilities):
    forbidding = True
