"""
Tests for entity identity resolution and morph key maps.
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from tests.conftest import Account, User
from tollgate import EntityRef, Tollgate
from tollgate.entities import EntityResolver
from tollgate.exceptions import ConfigurationError, InvalidArgumentError, MorphKeyViolation


@dataclass
class Document:
    id: int
    uuid: str


class Plain:
    pass


class TestEntityRef:
    """Tests for the stored identity value type."""

    def test_ids_are_strings(self):
        """Test that keys are normalized to strings."""
        assert EntityRef("users", 5).id == "5"
        assert EntityRef("users", 5) == EntityRef("users", "5")

    def test_str(self):
        """Test the display form."""
        assert str(EntityRef("users", 5)) == "users#5"
        assert str(EntityRef("users")) == "users"

    def test_dict_round_trip(self):
        """Test rebuilding from to_dict() output."""
        ref = EntityRef("teams", 3)
        assert EntityRef.from_dict(ref.to_dict()) == ref
        assert EntityRef.from_dict(None) is None


class TestMorphTypes:
    """Tests for morph type resolution."""

    def test_explicit_morph_type(self):
        """Test that __morph_type__ wins."""
        resolver = EntityResolver()
        assert resolver.type_of(User) == "users"
        assert resolver.type_of(User(name="x", age=1)) == "users"

    def test_qualified_name_fallback(self):
        """Test that plain classes use their qualified name."""
        resolver = EntityResolver()
        assert resolver.type_of(Plain) == f"{Plain.__module__}.Plain"
        assert resolver.class_for(f"{Plain.__module__}.Plain") is Plain

    def test_aliases(self):
        """Test that registered aliases name the class."""
        resolver = EntityResolver(aliases={"documents": Document})
        assert resolver.type_of(Document(1, "a")) == "documents"
        assert resolver.class_for("documents") is Document


class TestKeys:
    """Tests for key attribute resolution."""

    def test_primary_key_of_mapped_class(self):
        """Test that mapped classes default to their primary key."""
        assert EntityResolver().key_name(Account) == "id"

    def test_plain_objects_default_to_id(self):
        """Test the id fallback."""
        assert EntityResolver().key_of(Document(4, "abc")) == 4

    def test_morph_key_map(self):
        """Test a permissive key map entry."""
        resolver = EntityResolver(morph_key_map={Document: "uuid"})
        assert resolver.key_of(Document(4, "abc")) == "abc"
        assert resolver.key_name(Account) == "id"

    def test_enforced_map_raises_for_unmapped_types(self):
        """Test that enforcement rejects unmapped types."""
        resolver = EntityResolver(enforce_morph_key_map={Document: "uuid"})

        assert resolver.key_of(Document(4, "abc")) == "abc"
        with pytest.raises(MorphKeyViolation, match=r"No morph key mapping is defined for \[accounts\]"):
            resolver.key_name(Account)

    def test_require_key_map(self):
        """Test enforcement without adding entries."""
        resolver = EntityResolver()
        resolver.require_key_map()
        assert resolver.enforced
        with pytest.raises(MorphKeyViolation):
            resolver.key_name(Document)

    def test_both_modes_conflict(self):
        """Test that permissive and enforced maps are mutually exclusive."""
        with pytest.raises(ConfigurationError):
            EntityResolver(morph_key_map={Document: "uuid"}, enforce_morph_key_map={User: "id"})

        resolver = EntityResolver(morph_key_map={Document: "uuid"})
        with pytest.raises(ConfigurationError):
            resolver.enforce_morph_key_map({User: "id"})

    def test_reset(self):
        """Test that reset drops maps and enforcement."""
        resolver = EntityResolver(enforce_morph_key_map={Document: "uuid"})
        resolver.reset()
        assert not resolver.enforced
        assert resolver.key_name(Document) == "id"


class TestExistence:
    """Tests for persisted-instance detection."""

    def test_classes_never_exist(self):
        """Test that classes and strings are not instances."""
        resolver = EntityResolver()
        assert resolver.exists(User) is False
        assert resolver.exists("users") is False
        assert resolver.exists(None) is False

    def test_orm_instances(self, user: User):
        """Test ORM identity detection."""
        resolver = EntityResolver()
        assert resolver.exists(user) is True
        assert resolver.exists(User(name="new", age=1)) is False

    def test_zero_key_exists(self):
        """Test that a key of 0 counts as persisted."""
        assert EntityResolver().exists(Document(0, "zero")) is True


class TestRefs:
    """Tests for building stored identities."""

    def test_ref_of_instance(self, user: User):
        """Test references to persisted instances."""
        assert EntityResolver().ref(user) == EntityRef("users", user.id)

    def test_ref_of_class_raises(self):
        """Test that a class has no identity."""
        with pytest.raises(InvalidArgumentError):
            EntityResolver().ref(User)

    def test_bare_keys_need_user_model(self):
        """Test bare authority keys."""
        assert EntityResolver(user_model=User).authority_ref(5) == EntityRef("users", 5)
        with pytest.raises(InvalidArgumentError):
            EntityResolver().authority_ref(5)


class TestKeyMapsInTollgate:
    """Tests for key maps applied through the Tollgate service."""

    def test_abilities_store_the_mapped_key(self, engine, user: User):
        """Test that instance abilities record the mapped key."""
        tollgate = Tollgate.create(engine, morph_key_map={Document: "uuid"}, user_model=User)
        doc = Document(1, "7b0c")

        tollgate.allow(user).to("edit", doc)

        assert tollgate.get_abilities(user)[0].subject_id == "7b0c"
        assert tollgate.check(user, "edit", doc) is True
        assert tollgate.check(user, "edit", Document(2, "other")) is False

    def test_enforced_map_surfaces_violations(self, engine, user: User):
        """Test that checks on unmapped authorities raise."""
        tollgate = Tollgate.create(engine, enforce_morph_key_map={Document: "uuid"})

        with pytest.raises(MorphKeyViolation):
            tollgate.check(user, "edit")

    def test_fluent_configuration(self, engine):
        """Test configuring key maps after construction."""
        tollgate = Tollgate.create(engine)
        tollgate.morph_key_map({Document: "uuid"})

        assert tollgate.resolver.key_of(Document(1, "k")) == "k"
        with pytest.raises(ConfigurationError):
            tollgate.enforce_morph_key_map({User: "id"})
