"""
Permission store.

The ``PermissionStore`` protocol is the persistence surface used by the
writers and the clipboards. ``SQLPermissionStore`` implements it on top of
SQLAlchemy Core. Every public write runs in one transaction, so multi-row
operations (syncs, role deletion, authority detachment) either complete
as a unit or not at all.

Actors are passed as ``EntityRef`` values. ``None`` as an actor stands for
"everyone".

Example:
    >>> store = SQLPermissionStore(engine, schema, resolver, scope)
    >>> store.create_tables()
    >>> ids = store.ability_ids(["view", "edit"], Post)
    >>> store.associate(EntityRef("users", 1), ids)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import and_, delete, func, insert, or_, select, union, update

from tollgate.database.models import Ability, Grant, Role
from tollgate.database.queries import (
    ALL_CONTEXTS,
    Abilities,
    AbilitiesForModel,
    Maintenance,
    Roles,
    context_clause,
)
from tollgate.database.schema import Schema
from tollgate.entities import EntityResolver
from tollgate.exceptions import InvalidArgumentError
from tollgate.scope import Scope
from tollgate.types import EntityRef

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine, Table
    from sqlalchemy.sql import ColumnElement

logger = logging.getLogger(__name__)

ROLE_TYPE = Role.__morph_type__


@runtime_checkable
class PermissionStore(Protocol):
    """
    Protocol defining the persistence surface of Tollgate.

    Implementations must make every multi-row write atomic and must use
    both the morph type and the mapped key of an actor in every filter.
    """

    resolver: EntityResolver
    scope: Scope

    def ability_ids(
        self,
        abilities: Any,
        subject: Any = None,
        attributes: Mapping[str, Any] | None = None,
        create: bool = True,
    ) -> list[int]: ...

    def find_or_create_roles(self, identifiers: Any) -> list[Role]: ...

    def role_ids(self, identifiers: Any) -> list[int]: ...

    def find_role_by_name(self, name: str) -> Role | None: ...

    def associate(
        self,
        actor: EntityRef | None,
        ability_ids: Iterable[int],
        forbidden: bool = False,
        context: EntityRef | None = None,
    ) -> list[int]: ...

    def disassociate(
        self,
        actor: EntityRef | None,
        ability_ids: Iterable[int],
        forbidden: bool = False,
        context: EntityRef | None = None,
    ) -> int: ...

    def sync_abilities(self, actor: EntityRef, abilities: Any, forbidden: bool = False) -> None: ...

    def assign_roles(
        self,
        roles: Iterable[Role],
        actors: Iterable[EntityRef],
        context: EntityRef | None = None,
    ) -> int: ...

    def retract_roles(
        self,
        role_ids: Iterable[int],
        actors: Iterable[EntityRef],
        context: EntityRef | None = None,
    ) -> int: ...

    def assign_to(
        self,
        roles: Any,
        authority: Any,
        keys: Iterable[Any] | None = None,
        context: EntityRef | None = None,
    ) -> int: ...

    def retract_from(
        self,
        roles: Any,
        authority: Any,
        keys: Iterable[Any] | None = None,
        context: EntityRef | None = None,
    ) -> int: ...

    def sync_roles(self, actor: EntityRef, identifiers: Any) -> None: ...

    def grants_for(self, actor: EntityRef, allowed: bool = True, context: Any = ALL_CONTEXTS) -> list[Grant]: ...

    def roles_lookup(self, actor: EntityRef, context: Any = ALL_CONTEXTS) -> list[dict[str, Any]]: ...

    def all_roles(self, scoped: bool = True) -> list[Role]: ...

    def distinct_actors(self) -> set[EntityRef]: ...


class SQLPermissionStore:
    """
    SQLAlchemy Core implementation of ``PermissionStore``.

    Attributes:
        engine: The SQLAlchemy engine holding the permission tables.
        schema: The permission table definitions.
        resolver: Morph type and key resolution for entities.
        scope: The tenant scope applied to reads and writes.
    """

    def __init__(
        self,
        engine: Engine,
        schema: Schema | None = None,
        resolver: EntityResolver | None = None,
        scope: Scope | None = None,
    ) -> None:
        self.engine = engine
        self.schema = schema or Schema()
        self.resolver = resolver or EntityResolver()
        self.scope = scope or Scope()

        self.abilities = Abilities(self.schema, self.scope)
        self.for_model = AbilitiesForModel(self.resolver)
        self.roles = Roles(self.schema, self.resolver, self.scope)
        self.maintenance = Maintenance(self.schema, self.engine)

    def create_tables(self) -> None:
        self.schema.create_all(self.engine)

    @contextmanager
    def transaction(self, conn: Connection | None = None) -> Iterator[Connection]:
        """
        Yield a connection inside a transaction.

        An existing connection is reused as-is, so nested calls join the
        outer transaction.
        """
        if conn is not None:
            yield conn
            return
        with self.engine.begin() as new_conn:
            yield new_conn

    # ==================== Abilities ====================

    def find_ability(self, ability_id: int) -> Ability | None:
        a = self.schema.abilities
        with self.engine.connect() as conn:
            row = conn.execute(select(a).where(a.c.id == ability_id)).first()
        return Ability.from_row(row) if row else None

    def find_abilities(self, ability_ids: Iterable[int]) -> list[Ability]:
        a = self.schema.abilities
        with self.engine.connect() as conn:
            rows = conn.execute(select(a).where(a.c.id.in_(list(ability_ids))).order_by(a.c.id))
            return [Ability.from_row(row) for row in rows]

    def all_abilities(self) -> list[Ability]:
        a = self.schema.abilities
        query = self.scope.apply_to_model_query(select(a).order_by(a.c.id), a)
        with self.engine.connect() as conn:
            return [Ability.from_row(row) for row in conn.execute(query)]

    def create_ability(self, ability: Ability, conn: Connection | None = None) -> Ability:
        """Persist a new ability, stamping the current scope when it has none."""
        if ability.scope is None:
            ability.scope = self.scope.get_model_attributes()["scope"]

        with self.transaction(conn) as tx:
            result = tx.execute(insert(self.schema.abilities).values(**ability.to_row()))
        ability.id = result.inserted_primary_key[0]
        logger.debug(f"Created ability #{ability.id} ({ability.identifier})")
        return ability

    def save_ability(self, ability: Ability) -> Ability:
        if ability.id is None:
            return self.create_ability(ability)

        a = self.schema.abilities
        with self.transaction() as tx:
            tx.execute(update(a).where(a.c.id == ability.id).values(**ability.to_row()))
        return ability

    def create_for_model(self, subject: Any, attributes: str | Mapping[str, Any]) -> Ability:
        """Build and persist an ability for a subject."""
        return self.create_ability(self.make_for_model(subject, attributes))

    def make_for_model(self, subject: Any, attributes: str | Mapping[str, Any]) -> Ability:
        """Build an ability for a subject without persisting it."""
        if isinstance(attributes, Mapping):
            attributes = dict(attributes)
        return Ability.make_for_model(self.resolver, subject, attributes)

    def find_model_ability(
        self,
        name: str,
        subject: Any,
        only_owned: bool = False,
        conn: Connection | None = None,
    ) -> Ability | None:
        """Find the ability defined exactly for ``name`` on ``subject``."""
        a = self.schema.abilities
        query = select(a).where(
            func.lower(a.c.name) == name.lower(),
            self.for_model.constrain(a.c, subject, strict=True),
            a.c.only_owned == only_owned,
        )
        query = self.scope.apply_to_model_query(query, a).order_by(a.c.id)

        with self.transaction(conn) as tx:
            row = tx.execute(query).first()
        return Ability.from_row(row) if row else None

    def simple_abilities_by_name(
        self,
        names: Iterable[str],
        only_owned: bool = False,
        conn: Connection | None = None,
    ) -> list[Ability]:
        a = self.schema.abilities
        query = select(a).where(
            func.lower(a.c.name).in_([name.lower() for name in names]),
            a.c.subject_type.is_(None),
            a.c.only_owned == only_owned,
        )
        query = self.scope.apply_to_model_query(query, a).order_by(a.c.id)

        with self.transaction(conn) as tx:
            return [Ability.from_row(row) for row in tx.execute(query)]

    def ability_ids(
        self,
        abilities: Any,
        subject: Any = None,
        attributes: Mapping[str, Any] | None = None,
        create: bool = True,
        conn: Connection | None = None,
    ) -> list[int]:
        """
        Resolve ability identifiers into ability ids.

        Args:
            abilities: An ability name, id or ``Ability``; a list of those;
                or a mapping of ability names to subjects.
            subject: Subject (or list of subjects) the named abilities are
                for. None means simple abilities.
            attributes: Extra ability attributes such as ``only_owned``.
            create: Create missing abilities. When False, missing ones are
                skipped.

        Raises:
            InvalidArgumentError: For unrecognized identifiers, or a subject
                instance that has not been persisted.
        """
        attributes = dict(attributes or {})

        with self.transaction(conn) as tx:
            if isinstance(abilities, Ability):
                return [self._ensure_ability(abilities, tx, create)]

            if subject is not None:
                return self._model_ability_ids(abilities, subject, attributes, create, tx)

            if isinstance(abilities, Mapping):
                abilities = [abilities]
            elif isinstance(abilities, (str, int)):
                abilities = [abilities]

            ids: list[int] = []
            names: list[str] = []
            for item in abilities:
                if isinstance(item, str):
                    names.append(item)
                elif isinstance(item, Ability):
                    ids.append(self._ensure_ability(item, tx, create))
                elif isinstance(item, int) and not isinstance(item, bool):
                    ids.append(item)
                elif isinstance(item, Mapping):
                    for name, item_subject in item.items():
                        ids.extend(self.ability_ids(name, item_subject, attributes, create, tx))
                else:
                    raise InvalidArgumentError(
                        f"Invalid ability identifier of type {type(item).__name__}",
                        argument="abilities",
                    )

            if names:
                ids.extend(ability.id for ability in self._abilities_by_name(names, attributes, create, tx))

        return [ability_id for ability_id in ids if ability_id is not None]

    def _ensure_ability(self, ability: Ability, conn: Connection, create: bool) -> int | None:
        if ability.id is None and create:
            self.create_ability(ability, conn)
        return ability.id

    def _abilities_by_name(
        self,
        names: list[str],
        attributes: dict[str, Any],
        create: bool,
        conn: Connection,
    ) -> list[Ability]:
        unique: dict[str, str] = {}
        for name in names:
            unique.setdefault(name.lower(), name)
        names = list(unique.values())
        only_owned = bool(attributes.get("only_owned", False))
        existing = self.simple_abilities_by_name(names, only_owned, conn)
        if not create:
            return existing

        found = {ability.name.lower() for ability in existing}
        created = [
            self.create_ability(Ability(**{**attributes, "name": name}), conn)
            for name in names
            if name.lower() not in found
        ]
        return existing + created

    def _model_ability_ids(
        self,
        abilities: Any,
        subject: Any,
        attributes: dict[str, Any],
        create: bool,
        conn: Connection,
    ) -> list[int]:
        names = abilities if isinstance(abilities, (list, tuple, set)) else [abilities]
        subjects = subject if isinstance(subject, (list, tuple, set)) else [subject]
        only_owned = bool(attributes.get("only_owned", False))

        ids: list[int] = []
        for item_subject in subjects:
            self._check_subject(item_subject)
            for name in names:
                existing = self.find_model_ability(name, item_subject, only_owned, conn)
                if existing is None and create:
                    existing = self.create_ability(
                        Ability.make_for_model(self.resolver, item_subject, {**attributes, "name": name}),
                        conn,
                    )
                if existing is not None:
                    ids.append(existing.id)
        return ids

    def _check_subject(self, subject: Any) -> None:
        if isinstance(subject, (str, type)):
            return
        if not self.resolver.exists(subject):
            raise InvalidArgumentError(
                f"Cannot target an unsaved {type(subject).__name__} instance",
                argument="subject",
            )

    # ==================== Roles ====================

    def find_role(self, role_id: int) -> Role | None:
        r = self.schema.roles
        with self.engine.connect() as conn:
            row = conn.execute(select(r).where(r.c.id == role_id)).first()
        return Role.from_row(row) if row else None

    def find_role_by_name(self, name: str, conn: Connection | None = None) -> Role | None:
        r = self.schema.roles
        query = self.scope.apply_to_model_query(select(r).where(r.c.name == name), r)
        with self.transaction(conn) as tx:
            row = tx.execute(query.order_by(r.c.id)).first()
        return Role.from_row(row) if row else None

    def create_role(self, name: str, title: str | None = None, conn: Connection | None = None) -> Role:
        role = Role(name=name, title=title, scope=self.scope.get_model_attributes()["scope"])
        with self.transaction(conn) as tx:
            result = tx.execute(insert(self.schema.roles).values(**role.to_row()))
        role.id = result.inserted_primary_key[0]
        logger.debug(f"Created role #{role.id} ({role.name})")
        return role

    def all_roles(self, scoped: bool = True) -> list[Role]:
        r = self.schema.roles
        query = select(r).order_by(r.c.id)
        if scoped:
            query = self.scope.apply_to_model_query(query, r)
        with self.engine.connect() as conn:
            return [Role.from_row(row) for row in conn.execute(query)]

    def find_or_create_roles(self, identifiers: Any, conn: Connection | None = None) -> list[Role]:
        """
        Resolve role ids, names and records, creating roles for unknown names.

        Every requested role appears exactly once in the result.

        Raises:
            InvalidArgumentError: For identifiers that are not ids, names
                or ``Role`` records.
        """
        ids, names, records = _partition_roles(identifiers)
        r = self.schema.roles

        with self.transaction(conn) as tx:
            roles: dict[int, Role] = {role.id: role for role in records if role.id is not None}

            for role in records:
                if role.id is None:
                    created = self.create_role(role.name, role.title, tx)
                    roles[created.id] = created

            if ids:
                for row in tx.execute(select(r).where(r.c.id.in_(ids))):
                    roles.setdefault(row.id, Role.from_row(row))

            if names:
                query = self.scope.apply_to_model_query(select(r).where(r.c.name.in_(names)), r)
                existing = {row.name: Role.from_row(row) for row in tx.execute(query.order_by(r.c.id))}
                for name in dict.fromkeys(names):
                    role = existing.get(name) or self.create_role(name, conn=tx)
                    roles.setdefault(role.id, role)

        return list(roles.values())

    def role_ids(self, identifiers: Any, conn: Connection | None = None) -> list[int]:
        """Resolve role identifiers to ids, skipping names that do not exist."""
        ids, names, records = _partition_roles(identifiers)
        ids = ids + [role.id for role in records if role.id is not None]

        if names:
            r = self.schema.roles
            query = self.scope.apply_to_model_query(select(r.c.id).where(r.c.name.in_(names)), r)
            with self.transaction(conn) as tx:
                ids.extend(tx.execute(query).scalars())

        return list(dict.fromkeys(ids))

    def delete_role(self, role: Role | int) -> None:
        """Delete a role along with its permissions and assignments."""
        role_id = role.id if isinstance(role, Role) else role
        p, ar, r = self.schema.permissions, self.schema.assigned_roles, self.schema.roles

        with self.transaction() as tx:
            tx.execute(delete(p).where(p.c.actor_type == ROLE_TYPE, p.c.actor_id == str(role_id)))
            tx.execute(delete(ar).where(ar.c.role_id == role_id))
            tx.execute(delete(r).where(r.c.id == role_id))
        logger.debug(f"Deleted role #{role_id}")

    # ==================== Permissions ====================

    def associated_ability_ids(
        self,
        actor: EntityRef | None,
        ability_ids: Iterable[int],
        forbidden: bool = False,
        context: EntityRef | None = None,
        conn: Connection | None = None,
    ) -> set[int]:
        """Ids among ``ability_ids`` already linked to the actor with this flag."""
        p = self.schema.permissions
        query = select(p.c.ability_id).where(
            p.c.ability_id.in_(list(ability_ids)),
            p.c.forbidden == forbidden,
            _actor_clause(p, actor),
            _exact_context(p, context),
        )
        query = self.scope.apply_to_relation_query(query, p)

        with self.transaction(conn) as tx:
            return set(tx.execute(query).scalars())

    def associate(
        self,
        actor: EntityRef | None,
        ability_ids: Iterable[int],
        forbidden: bool = False,
        context: EntityRef | None = None,
        conn: Connection | None = None,
    ) -> list[int]:
        """
        Link abilities to an actor (or everyone); existing links are left as-is.

        Returns:
            The ids that were newly linked.
        """
        ability_ids = list(dict.fromkeys(ability_ids))
        if not ability_ids:
            return []

        with self.transaction(conn) as tx:
            existing = self.associated_ability_ids(actor, ability_ids, forbidden, context, tx)
            missing = [ability_id for ability_id in ability_ids if ability_id not in existing]
            if missing:
                attach = self.scope.get_attach_attributes(actor is not None and actor.type == ROLE_TYPE)
                tx.execute(
                    insert(self.schema.permissions),
                    [
                        {
                            "ability_id": ability_id,
                            "actor_type": actor.type if actor else None,
                            "actor_id": actor.id if actor else None,
                            "forbidden": forbidden,
                            "context_type": context.type if context else None,
                            "context_id": context.id if context else None,
                            **attach,
                        }
                        for ability_id in missing
                    ],
                )

        logger.debug(
            f"{'Forbade' if forbidden else 'Granted'} abilities {missing} for {actor or 'everyone'}"
        )
        return missing

    def disassociate(
        self,
        actor: EntityRef | None,
        ability_ids: Iterable[int],
        forbidden: bool = False,
        context: EntityRef | None = None,
        conn: Connection | None = None,
    ) -> int:
        """Remove links between abilities and an actor (or everyone)."""
        ability_ids = list(ability_ids)
        if not ability_ids:
            return 0

        p = self.schema.permissions
        statement = delete(p).where(
            p.c.ability_id.in_(ability_ids),
            p.c.forbidden == forbidden,
            _actor_clause(p, actor),
            _exact_context(p, context),
        )
        statement = self.scope.apply_to_relation_query(statement, p)

        with self.transaction(conn) as tx:
            removed = tx.execute(statement).rowcount
        logger.debug(f"Removed {removed} permission(s) for {actor or 'everyone'}")
        return removed

    def sync_abilities(self, actor: EntityRef, abilities: Any, forbidden: bool = False) -> None:
        """
        Make the actor's context-free links with this flag exactly ``abilities``.

        Runs as one transaction.
        """
        p = self.schema.permissions

        with self.transaction() as tx:
            ids = self.ability_ids(abilities, conn=tx) if abilities else []
            statement = delete(p).where(
                _actor_clause(p, actor),
                p.c.forbidden == forbidden,
                p.c.context_id.is_(None),
                p.c.ability_id.not_in(ids),
            )
            tx.execute(self.scope.apply_to_relation_query(statement, p))
            self.associate(actor, ids, forbidden, conn=tx)

    def direct_abilities(self, actor: EntityRef, forbidden: bool | None = None) -> list[Ability]:
        """Abilities linked directly to the actor."""
        a, p = self.schema.abilities, self.schema.permissions
        query = select(a).select_from(a.join(p, p.c.ability_id == a.c.id)).where(_actor_clause(p, actor))
        if forbidden is not None:
            query = query.where(p.c.forbidden == forbidden)
        query = self.scope.apply_to_relation_query(query, p).order_by(a.c.id)

        with self.engine.connect() as conn:
            return [Ability.from_row(row) for row in conn.execute(query)]

    # ==================== Role assignments ====================

    def assign_roles(
        self,
        roles: Iterable[Role],
        actors: Iterable[EntityRef],
        context: EntityRef | None = None,
        conn: Connection | None = None,
    ) -> int:
        """Assign roles to actors; existing assignments are left as-is."""
        role_ids = [role.id for role in roles]
        actors = list(actors)
        if not role_ids or not actors:
            return 0

        ar = self.schema.assigned_roles
        with self.transaction(conn) as tx:
            query = select(ar.c.role_id, ar.c.actor_type, ar.c.actor_id).where(
                ar.c.role_id.in_(role_ids),
                _actors_clause(ar, actors),
                _exact_context(ar, context),
            )
            query = self.scope.apply_to_relation_query(query, ar)
            existing = {(row.role_id, row.actor_type, row.actor_id) for row in tx.execute(query)}

            attach = self.scope.get_attach_attributes()
            records = [
                {
                    "role_id": role_id,
                    "actor_type": actor.type,
                    "actor_id": actor.id,
                    "context_type": context.type if context else None,
                    "context_id": context.id if context else None,
                    **attach,
                }
                for actor in actors
                for role_id in role_ids
                if (role_id, actor.type, actor.id) not in existing
            ]
            if records:
                tx.execute(insert(ar), records)

        logger.debug(f"Assigned roles {role_ids} to {len(actors)} actor(s), {len(records)} new")
        return len(records)

    def retract_roles(
        self,
        role_ids: Iterable[int],
        actors: Iterable[EntityRef],
        context: EntityRef | None = None,
        conn: Connection | None = None,
    ) -> int:
        """Retract roles from actors; missing assignments are ignored."""
        role_ids, actors = list(role_ids), list(actors)
        if not role_ids or not actors:
            return 0

        ar = self.schema.assigned_roles
        statement = delete(ar).where(
            ar.c.role_id.in_(role_ids),
            _actors_clause(ar, actors),
            _exact_context(ar, context),
        )
        statement = self.scope.apply_to_relation_query(statement, ar)

        with self.transaction(conn) as tx:
            removed = tx.execute(statement).rowcount
        logger.debug(f"Retracted roles {role_ids}: {removed} assignment(s) removed")
        return removed

    def assign_to(
        self,
        roles: Any,
        authority: Any,
        keys: Iterable[Any] | None = None,
        context: EntityRef | None = None,
    ) -> int:
        """
        Assign roles to authorities, creating missing roles by name.

        Args:
            roles: Role names, ids or records.
            authority: An instance, a list of instances, a bare key of the
                configured user model, or a class together with ``keys``.
            keys: Keys of the authorities when ``authority`` is a class.
            context: Bind the assignments to this context.

        Returns:
            Number of new assignments.
        """
        actors = self.resolver.authority_refs(authority, keys)
        with self.transaction() as tx:
            found = self.find_or_create_roles(roles, tx)
            return self.assign_roles(found, actors, context, conn=tx)

    def retract_from(
        self,
        roles: Any,
        authority: Any,
        keys: Iterable[Any] | None = None,
        context: EntityRef | None = None,
    ) -> int:
        """Retract roles from authorities; unknown roles and assignments are ignored."""
        actors = self.resolver.authority_refs(authority, keys)
        with self.transaction() as tx:
            role_ids = self.role_ids(roles, tx)
            return self.retract_roles(role_ids, actors, context, conn=tx)

    def sync_roles(self, actor: EntityRef, identifiers: Any) -> None:
        """
        Make the actor's context-free role assignments exactly ``identifiers``.

        Runs as one transaction; unchanged assignments are not touched.
        """
        ar = self.schema.assigned_roles

        with self.transaction() as tx:
            roles = self.find_or_create_roles(identifiers, tx) if identifiers else []
            wanted = {role.id for role in roles}

            query = select(ar.c.role_id).where(
                _actor_clause(ar, actor),
                ar.c.context_id.is_(None),
            )
            current = set(tx.execute(self.scope.apply_to_relation_query(query, ar)).scalars())

            stale = current - wanted
            if stale:
                self.retract_roles(stale, [actor], conn=tx)
            self.assign_roles([role for role in roles if role.id not in current], [actor], conn=tx)

    def roles_of(self, actor: EntityRef) -> list[Role]:
        r, ar = self.schema.roles, self.schema.assigned_roles
        query = (
            select(r)
            .distinct()
            .select_from(r.join(ar, ar.c.role_id == r.c.id))
            .where(_actor_clause(ar, actor))
        )
        query = self.scope.apply_to_model_query(query, r)
        query = self.scope.apply_to_relation_query(query, ar).order_by(r.c.id)

        with self.engine.connect() as conn:
            return [Role.from_row(row) for row in conn.execute(query)]

    def detach_authority(self, actor: EntityRef) -> None:
        """Remove every permission and role assignment of an actor, in all scopes."""
        p, ar = self.schema.permissions, self.schema.assigned_roles
        with self.transaction() as tx:
            tx.execute(delete(p).where(_actor_clause(p, actor)))
            tx.execute(delete(ar).where(_actor_clause(ar, actor)))
        logger.debug(f"Detached {actor} from all permissions and roles")

    # ==================== Reads for checks ====================

    def grants_for(self, actor: EntityRef, allowed: bool = True, context: Any = ALL_CONTEXTS) -> list[Grant]:
        """All grants (or forbiddances) that reach the actor."""
        query = self.abilities.for_authority(actor, allowed, context)
        with self.engine.connect() as conn:
            return [Grant.from_row(row) for row in conn.execute(query)]

    def roles_lookup(self, actor: EntityRef, context: Any = ALL_CONTEXTS) -> list[dict[str, Any]]:
        """
        The actor's role assignments as plain data.

        Returns:
            ``[{"id", "name", "context_type", "context_id"}, ...]``
        """
        r, ar = self.schema.roles, self.schema.assigned_roles
        query = (
            select(r.c.id, r.c.name, ar.c.context_type, ar.c.context_id)
            .select_from(r.join(ar, ar.c.role_id == r.c.id))
            .where(_actor_clause(ar, actor))
        )
        query = self.scope.apply_to_model_query(query, r)
        query = self.scope.apply_to_relation_query(query, ar)
        clause = context_clause(ar, context)
        if clause is not None:
            query = query.where(clause)

        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(query.order_by(r.c.id))]

    def distinct_actors(self) -> set[EntityRef]:
        """Every actor that has a permission or a role assignment, in any scope."""
        p, ar = self.schema.permissions, self.schema.assigned_roles
        query = union(
            select(p.c.actor_type, p.c.actor_id).where(p.c.actor_type.is_not(None)),
            select(ar.c.actor_type, ar.c.actor_id),
        )
        with self.engine.connect() as conn:
            return {EntityRef(actor_type, actor_id) for actor_type, actor_id in conn.execute(query)}


def _actor_clause(table: Table, actor: EntityRef | None) -> ColumnElement[bool]:
    if actor is None:
        return and_(table.c.actor_type.is_(None), table.c.actor_id.is_(None))
    return and_(table.c.actor_type == actor.type, table.c.actor_id == actor.id)


def _actors_clause(table: Table, actors: list[EntityRef]) -> ColumnElement[bool]:
    return or_(*[_actor_clause(table, actor) for actor in actors])


def _exact_context(table: Table, context: EntityRef | None) -> ColumnElement[bool]:
    if context is None:
        return table.c.context_id.is_(None)
    return and_(table.c.context_type == context.type, table.c.context_id == context.id)


def _partition_roles(identifiers: Any) -> tuple[list[int], list[str], list[Role]]:
    if isinstance(identifiers, (str, int, Role)):
        identifiers = [identifiers]

    ids: list[int] = []
    names: list[str] = []
    records: list[Role] = []
    for identifier in identifiers:
        if isinstance(identifier, Role):
            records.append(identifier)
        elif isinstance(identifier, str):
            names.append(identifier)
        elif isinstance(identifier, int) and not isinstance(identifier, bool):
            ids.append(identifier)
        else:
            raise InvalidArgumentError("Invalid model identifier", argument="roles")
    return ids, names, records

