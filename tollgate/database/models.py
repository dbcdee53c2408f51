"""
Records read from and written to the permission store.

``Ability`` and ``Role`` are plain dataclasses rather than ORM classes so
that host applications can bring any declarative base (or none). A
``Grant`` is one permission row as seen by a check: the ability plus the
flags and contexts of the link it came through.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from tollgate.constraints import Constrainer, Group
from tollgate.exceptions import ConfigurationError, InvalidArgumentError
from tollgate.titles import ability_title, role_title
from tollgate.types import WILDCARD, EntityRef

if TYPE_CHECKING:
    from sqlalchemy.engine import Row

    from tollgate.entities import EntityResolver

logger = logging.getLogger(__name__)

ABILITY_COLUMNS = ("id", "name", "title", "subject_type", "subject_id", "only_owned", "options", "scope")
ROLE_COLUMNS = ("id", "name", "title", "scope")

AbilityKey = tuple[str, str | None, str | None, bool]


@dataclass
class Ability:
    """
    A grantable (or forbiddable) permission unit.

    Attributes:
        name: The action name; "*" means any action.
        title: Human label, derived from the other fields when omitted.
        subject_type: Morph type of the subject; None for simple abilities,
            "*" for every subject type.
        subject_id: Key of one subject instance; None for blanket abilities.
        only_owned: Restrict to subject instances owned by the authority.
        options: Extra data; constraints live under "constraints".
        scope: Tenant the ability belongs to, as stored.
        id: Primary key once persisted.
    """

    __morph_type__ = "abilities"
    __morph_key__ = "id"

    name: str
    title: str | None = None
    subject_type: str | None = None
    subject_id: str | None = None
    only_owned: bool = False
    options: dict[str, Any] | None = None
    scope: str | None = None
    id: int | None = None
    created_at: datetime | None = field(default=None, compare=False, repr=False)
    updated_at: datetime | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.subject_id is not None and not isinstance(self.subject_id, str):
            self.subject_id = str(self.subject_id)
        if self.title is None:
            self.title = ability_title(self)

    @property
    def exists(self) -> bool:
        return self.id is not None

    @property
    def identifier(self) -> str:
        """
        Lowercase slug such as ``edit-app.models.post-5-owned``.

        Used for display and logging only. Different abilities can share a
        slug, so matching goes through ``match_key``.
        """
        slug = self.name
        if self.subject_type:
            slug += f"-{self.subject_type}"
        if self.subject_id is not None:
            slug += f"-{self.subject_id}"
        if self.only_owned:
            slug += "-owned"
        return slug.lower()

    slug = identifier

    @property
    def match_key(self) -> AbilityKey:
        """The fields a check compares, with the name lowercased."""
        return (self.name.lower(), self.subject_type, self.subject_id, bool(self.only_owned))

    # ==================== Constraints ====================

    def get_constraints(self) -> Group:
        """
        Return the constraint tree stored in the options.

        Missing or corrupt data yields an empty group, which always passes.
        """
        options = self.options if isinstance(self.options, dict) else {}
        data = options.get("constraints")
        if not data:
            return Group()

        try:
            constraints = Constrainer.from_data(data)
        except InvalidArgumentError as e:
            logger.warning(f"Ignoring corrupt constraints on ability #{self.id}: {e}")
            return Group()

        if isinstance(constraints, Group):
            return constraints
        return Group([constraints])

    def set_constraints(self, constraints: Constrainer) -> Ability:
        options = dict(self.options) if isinstance(self.options, dict) else {}
        options["constraints"] = constraints.data()
        self.options = options
        return self

    def has_constraints(self) -> bool:
        """True when the stored tree has at least one constraint."""
        return len(self.get_constraints()) > 0

    # ==================== Factories ====================

    @classmethod
    def make_for_model(
        cls,
        resolver: EntityResolver,
        subject: Any,
        attributes: str | dict[str, Any],
    ) -> Ability:
        """
        Build an unsaved ability for a subject.

        Args:
            resolver: Resolves the subject's morph type and key.
            subject: A model class, a model instance, a registered morph
                type string, or "*".
            attributes: The ability name, or a mapping of attributes that
                must include "name".

        Raises:
            ConfigurationError: If the subject type cannot be resolved.
        """
        if isinstance(attributes, str):
            attributes = {"name": attributes}
        attributes = dict(attributes)

        subject_type, subject_id = subject_columns(resolver, subject)
        attributes.setdefault("subject_type", subject_type)
        attributes.setdefault("subject_id", subject_id)

        return cls(**attributes)

    @classmethod
    def from_row(cls, row: Row | dict[str, Any]) -> Ability:
        data = row._mapping if hasattr(row, "_mapping") else row
        return cls(**{key: data[key] for key in ABILITY_COLUMNS})

    def to_row(self) -> dict[str, Any]:
        """Columns for an insert or update."""
        return {key: getattr(self, key) for key in ABILITY_COLUMNS if key != "id"}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {key: getattr(self, key) for key in ABILITY_COLUMNS}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Ability:
        return cls(**{key: data.get(key) for key in ABILITY_COLUMNS})


@dataclass
class Role:
    """
    A named collection of abilities.

    Role names are unique within a scope. Roles are authorities too: they
    can be granted and forbidden abilities just like users.
    """

    __morph_type__ = "roles"
    __morph_key__ = "id"

    name: str
    title: str | None = None
    scope: str | None = None
    id: int | None = None
    created_at: datetime | None = field(default=None, compare=False, repr=False)
    updated_at: datetime | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.title is None:
            self.title = role_title(self.name)

    @property
    def exists(self) -> bool:
        return self.id is not None

    @classmethod
    def from_row(cls, row: Row | dict[str, Any]) -> Role:
        data = row._mapping if hasattr(row, "_mapping") else row
        return cls(**{key: data[key] for key in ROLE_COLUMNS})

    def to_row(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in ROLE_COLUMNS if key != "id"}

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in ROLE_COLUMNS}


@dataclass
class Grant:
    """
    One permission link as seen by a check.

    Attributes:
        ability: The linked ability.
        forbidden: Whether the link forbids rather than allows.
        context: Context the permission was granted within, if any.
        role_context: Context of the role assignment the permission was
            inherited through, if any.
    """

    ability: Ability
    forbidden: bool = False
    context: EntityRef | None = None
    role_context: EntityRef | None = None

    def applies_in(self, context: EntityRef | None) -> bool:
        """Context-bound links only apply when checking within that context."""
        if self.context is not None and self.context != context:
            return False
        if self.role_context is not None and self.role_context != context:
            return False
        return True

    @classmethod
    def from_row(cls, row: Row) -> Grant:
        data = row._mapping
        return cls(
            ability=Ability.from_row(data),
            forbidden=bool(data["forbidden"]),
            context=_context(data["context_type"], data["context_id"]),
            role_context=_context(data["role_context_type"], data["role_context_id"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ability": self.ability.to_dict(),
            "forbidden": self.forbidden,
            "context": self.context.to_dict() if self.context else None,
            "role_context": self.role_context.to_dict() if self.role_context else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Grant:
        return cls(
            ability=Ability.from_dict(data["ability"]),
            forbidden=data["forbidden"],
            context=EntityRef.from_dict(data.get("context")),
            role_context=EntityRef.from_dict(data.get("role_context")),
        )


def _context(context_type: str | None, context_id: str | None) -> EntityRef | None:
    if context_type is None:
        return None
    return EntityRef(context_type, context_id)


def subject_columns(resolver: EntityResolver, subject: Any) -> tuple[str | None, str | None]:
    """
    Resolve a subject into its ``(subject_type, subject_id)`` columns.

    Unsaved instances resolve to the blanket (class-level) form.

    Raises:
        ConfigurationError: If a string subject is neither "*" nor a known
            morph type.
    """
    if subject is None:
        return None, None
    if isinstance(subject, str):
        if subject == WILDCARD:
            return WILDCARD, None
        if resolver.class_for(subject) is None:
            raise ConfigurationError(
                config_key="subject",
                expected="a model class, a model instance, a registered morph type or '*'",
                received=subject,
            )
        return subject, None
    if isinstance(subject, type):
        return resolver.type_of(subject), None

    subject_type = resolver.type_of(subject)
    if not resolver.exists(subject):
        return subject_type, None
    key = resolver.key_of(subject)
    return subject_type, None if key is None else str(key)
