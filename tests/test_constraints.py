"""
Tests for the constraint engine.

Tests cover:
- Value and column constraints with strict comparisons
- Logical operators and group folding
- Serialization to and from data
- The fluent builder
"""

from __future__ import annotations

import pytest

from tollgate.constraints import (
    Builder,
    ColumnConstraint,
    Constrainer,
    Constraint,
    Group,
    ValueConstraint,
    compare,
)
from tollgate.exceptions import InvalidArgumentError


# ============================================================================
# Leaf Constraints
# ============================================================================


class TestValueConstraint:
    """Tests for constraints comparing an attribute to a literal."""

    def test_two_argument_form_defaults_to_equals(self):
        """Test that where(column, value) means column = value."""
        constraint = Constraint.where("active", True)

        assert isinstance(constraint, ValueConstraint)
        assert constraint.operator == "="
        assert constraint.check({"active": True}) is True
        assert constraint.check({"active": False}) is False

    def test_equality_is_strict(self):
        """Test that values of different types never compare equal."""
        assert Constraint.where("active", True).check({"active": 1}) is False
        assert Constraint.where("count", 1).check({"count": "1"}) is False
        assert Constraint.where("count", 1).check({"count": 1.0}) is False
        assert Constraint.where("count", "!=", 1).check({"count": 1.0}) is True
        assert Constraint.where("count", 1.5).check({"count": 1.5}) is True

    def test_ordering_operators(self):
        """Test the ordering comparisons."""
        assert Constraint.where("age", ">=", 18).check({"age": 18}) is True
        assert Constraint.where("age", ">", 18).check({"age": 18}) is False
        assert Constraint.where("age", "<", 18).check({"age": 17}) is True
        assert Constraint.where("age", "<=", 18).check({"age": 19}) is False

    def test_not_equals(self):
        """Test the != operator."""
        constraint = Constraint.where("status", "!=", "closed")
        assert constraint.check({"status": "open"}) is True
        assert constraint.check({"status": "closed"}) is False

    def test_incomparable_values_do_not_match(self):
        """Test that ordering across types fails instead of raising."""
        assert Constraint.where("age", ">", 18).check({"age": "20"}) is False
        assert Constraint.where("age", ">", 18).check({"age": None}) is False

    def test_missing_attribute_is_none(self):
        """Test that a missing attribute compares as None."""
        assert Constraint.where("deleted_at", None).check({}) is True
        assert Constraint.where("active", True).check({}) is False

    def test_reads_object_attributes(self):
        """Test that constraints read attributes of plain objects."""
        class Post:
            published = True

        assert Constraint.where("published", True).check(Post()) is True

    def test_invalid_operator_raises(self):
        """Test that unknown comparison operators are rejected."""
        with pytest.raises(InvalidArgumentError):
            Constraint.where("age", "~", 18)


class TestColumnConstraint:
    """Tests for constraints comparing the entity to the authority."""

    def test_matching_columns(self):
        """Test comparing an entity attribute to an authority attribute."""
        constraint = Constraint.where_column("team_id", "team_id")

        assert isinstance(constraint, ColumnConstraint)
        assert constraint.check({"team_id": 4}, {"team_id": 4}) is True
        assert constraint.check({"team_id": 4}, {"team_id": 5}) is False

    def test_without_authority_fails(self):
        """Test that column constraints need an authority."""
        constraint = Constraint.where_column("owner_id", "=", "id")
        assert constraint.check({"owner_id": 1}) is False

    def test_ordering(self):
        """Test ordering operators between columns."""
        constraint = Constraint.where_column("level", "<=", "clearance")
        assert constraint.check({"level": 2}, {"clearance": 3}) is True
        assert constraint.check({"level": 4}, {"clearance": 3}) is False


def test_compare_helper():
    """Test the module level compare function."""
    assert compare(1, "==", 1) is True
    assert compare(True, "=", 1) is False
    assert compare(None, ">", 1) is False


# ============================================================================
# Logical Operators and Groups
# ============================================================================


class TestLogicalOperator:
    """Tests for logical operator handling."""

    def test_default_is_and(self):
        """Test that constrainers default to AND."""
        constraint = Constraint.where("active", True)
        assert constraint.logical_operator() == "and"
        assert constraint.is_and()
        assert not constraint.is_or()

    def test_or_constructors(self):
        """Test the or_where named constructors."""
        assert Constraint.or_where("active", True).is_or()
        assert Constraint.or_where_column("a", "b").is_or()

    def test_setter_returns_self(self):
        """Test that setting the operator chains."""
        constraint = Constraint.where("active", True)
        assert constraint.logical_operator("or") is constraint
        assert constraint.is_or()

    def test_invalid_operator_string(self):
        """Test that an unknown operator string is rejected."""
        with pytest.raises(InvalidArgumentError, match="xor is an invalid logical operator"):
            Constraint.where("active", True).logical_operator("xor")

    def test_non_string_operator(self):
        """Test that a non-string operator is rejected."""
        with pytest.raises(InvalidArgumentError):
            Group().logical_operator(1)


class TestGroup:
    """Tests for constraint groups."""

    def test_empty_group_passes(self):
        """Test that an empty group always passes."""
        assert Group().check({}) is True
        assert len(Group()) == 0

    def test_and_folding(self):
        """Test that AND children must all pass."""
        group = Group([Constraint.where("a", 1), Constraint.where("b", 2)])
        assert group.check({"a": 1, "b": 2}) is True
        assert group.check({"a": 1, "b": 3}) is False

    def test_or_folding(self):
        """Test that an OR child can rescue a failing left side."""
        group = Group([Constraint.where("a", 1), Constraint.or_where("b", 2)])
        assert group.check({"a": 0, "b": 2}) is True
        assert group.check({"a": 0, "b": 0}) is False

    def test_folds_left_to_right(self):
        """Test that each child combines with the result so far."""
        group = Group([
            Constraint.where("a", 1),
            Constraint.or_where("b", 1),
            Constraint.where("c", 1),
        ])
        # (a or b) and c
        assert group.check({"a": 0, "b": 1, "c": 1}) is True
        assert group.check({"a": 1, "b": 0, "c": 0}) is False

    def test_first_child_operator_is_ignored(self):
        """Test that the first child only seeds the result."""
        group = Group([Constraint.or_where("a", 1), Constraint.where("b", 1)])
        assert group.check({"a": 1, "b": 0}) is False

    def test_nested_groups(self):
        """Test groups inside groups."""
        inner = Group.with_or().add(Constraint.where("role", "admin"))
        outer = Group([Constraint.where("active", False), inner])

        assert outer.check({"active": True, "role": "user"}) is False
        assert outer.check({"active": True, "role": "admin"}) is True

    def test_add_rejects_non_constrainers(self):
        """Test that groups only hold constrainers."""
        with pytest.raises(InvalidArgumentError):
            Group().add({"column": "active"})


# ============================================================================
# Serialization
# ============================================================================


class TestSerialization:
    """Tests for data() and from_data()."""

    def test_value_constraint_data(self):
        """Test the serialized shape of a value constraint."""
        data = Constraint.where("age", ">=", 18).data()

        assert data == {
            "class": "ValueConstraint",
            "params": {"column": "age", "operator": ">=", "value": 18, "logical_operator": "and"},
        }

    def test_rebuilds_nested_tree(self):
        """Test that a nested tree survives serialization."""
        tree = Group([
            Constraint.where("active", True),
            Group.with_or()
            .add(Constraint.where_column("team_id", "team_id"))
            .add(Constraint.or_where("public", True)),
        ])

        rebuilt = Constrainer.from_data(tree.data())

        assert rebuilt.equals(tree)
        assert rebuilt == tree

    def test_subclass_accepts_bare_params(self):
        """Test that a concrete class rebuilds from its params alone."""
        constraint = ValueConstraint.from_data({"column": "a", "operator": "=", "value": 1})
        assert constraint.equals(Constraint.where("a", 1))

    def test_equality_is_strict(self):
        """Test that structural equality compares values strictly."""
        assert Constraint.where("a", 1) != Constraint.where("a", True)
        assert Constraint.where("a", 1) != Constraint.or_where("a", 1)
        assert Constraint.where("a", 1) != Constraint.where_column("a", "a")

    def test_unknown_class_raises(self):
        """Test that unknown class names are rejected."""
        with pytest.raises(InvalidArgumentError, match="Unknown constrainer class"):
            Constrainer.from_data({"class": "Nope", "params": {}})

    def test_missing_keys_raise(self):
        """Test that the base class needs class and params."""
        with pytest.raises(InvalidArgumentError):
            Constrainer.from_data({"column": "a"})

    def test_non_mapping_raises(self):
        """Test that non-mapping data is rejected."""
        with pytest.raises(InvalidArgumentError):
            Constrainer.from_data(["a"])

    def test_wrong_subclass_raises(self):
        """Test that a subclass refuses data of another class."""
        with pytest.raises(InvalidArgumentError):
            ColumnConstraint.from_data(Constraint.where("a", 1).data())

    def test_malformed_params_raise(self):
        """Test that non-string columns are rejected."""
        with pytest.raises(InvalidArgumentError):
            Constrainer.from_data({"class": "ValueConstraint", "params": {"column": 3, "operator": "="}})

        with pytest.raises(InvalidArgumentError):
            Constrainer.from_data({"class": "Group", "params": {"constraints": "nope"}})

    def test_non_mapping_params_raise(self):
        """Test that params must be a mapping at every level."""
        with pytest.raises(InvalidArgumentError, match="params must be a mapping"):
            Constrainer.from_data({"class": "ValueConstraint", "params": "garbage"})

        with pytest.raises(InvalidArgumentError, match="params must be a mapping"):
            Constrainer.from_data({
                "class": "Group",
                "params": {"constraints": [{"class": "ColumnConstraint", "params": [1, 2]}]},
            })

    def test_non_string_class_raises(self):
        """Test that an unhashable class name is rejected cleanly."""
        with pytest.raises(InvalidArgumentError, match="Unknown constrainer class"):
            Constrainer.from_data({"class": ["Group"], "params": {}})


# ============================================================================
# Builder
# ============================================================================


class TestBuilder:
    """Tests for the fluent builder."""

    def test_empty_builder_builds_empty_group(self):
        """Test building with nothing added."""
        built = Builder.make().build()
        assert isinstance(built, Group)
        assert len(built) == 0

    def test_single_constraint_is_returned_as_is(self):
        """Test that a lone constraint is not wrapped."""
        built = Builder.make().where("active", True).build()
        assert built.equals(Constraint.where("active", True))

    def test_multiple_constraints_build_a_group(self):
        """Test that several constraints are grouped in order."""
        built = Builder.make().where("a", 1).or_where("b", 2).where_column("c", "c").build()

        assert isinstance(built, Group)
        assert built.equals(Group([
            Constraint.where("a", 1),
            Constraint.or_where("b", 2),
            Constraint.where_column("c", "c"),
        ]))

    def test_nested_callbacks(self):
        """Test that callables build nested groups."""
        built = (
            Builder.make()
            .where("active", True)
            .or_where(lambda q: q.where("age", ">=", 18).where("verified", True))
            .build()
        )

        assert built.check({"active": False, "age": 20, "verified": True}) is True
        assert built.check({"active": False, "age": 20, "verified": False}) is False
        assert built.constraints[1].is_or()

    def test_or_where_column(self):
        """Test the OR column constraint on the builder."""
        built = Builder.make().where("a", 1).or_where_column("team_id", "team_id").build()
        assert built.check({"a": 0, "team_id": 3}, {"team_id": 3}) is True
