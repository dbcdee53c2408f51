"""
Tests for tenant scopes and multi-tenant resolution.

Tests cover:
- Storage values and cache suffixes
- Temporary scope switches
- Visibility of scoped and global rows
- Relation-only scoping and unscoped role abilities
"""

from __future__ import annotations

import re

import pytest
from sqlalchemy import select

from tests.conftest import User
from tollgate import Scope, Tollgate


class TestScopeValues:
    """Tests for the scope value object."""

    def test_defaults_to_no_scope(self):
        """Test that a new scope is empty."""
        scope = Scope()
        assert scope.get() is None
        assert scope.storage_value() is None
        assert scope.cache_suffix() is None

    def test_scalars_are_stored_as_strings(self):
        """Test scalar storage values."""
        scope = Scope().to(7)
        assert scope.get() == 7
        assert scope.storage_value() == "7"
        assert scope.cache_suffix() == "7"
        assert scope.append_to_cache_key("tollgate") == "tollgate-7"

    def test_non_scalars_are_hashed_in_cache_keys(self):
        """Test that structured scopes get a short deterministic cache suffix."""
        a = Scope().to({"tenant": 1, "region": "eu"})
        b = Scope().to({"region": "eu", "tenant": 1})

        assert a.storage_value() == b.storage_value()
        assert re.fullmatch(r"[0-9a-f]{32}", a.cache_suffix())
        assert a.cache_suffix() == b.cache_suffix()

    def test_once_to_restores_previous_scope(self):
        """Test temporary scope switches."""
        scope = Scope().to(1)

        with scope.once_to(2):
            assert scope.get() == 2
        assert scope.get() == 1

    def test_once_to_restores_after_errors(self):
        """Test that the previous scope survives an exception."""
        scope = Scope().to(1)

        with pytest.raises(RuntimeError):
            with scope.once_to(2):
                raise RuntimeError("boom")
        assert scope.get() == 1

    def test_remove_once(self):
        """Test temporarily clearing the scope."""
        scope = Scope().to(1)
        with scope.remove_once():
            assert scope.get() is None
        assert scope.get() == 1

    def test_attach_attributes(self):
        """Test the columns stamped onto permission rows."""
        scope = Scope().to(3)
        assert scope.get_attach_attributes() == {"scope": "3"}
        assert scope.get_attach_attributes(authority_is_role=True) == {"scope": "3"}

        scope.dont_scope_role_abilities()
        assert scope.get_attach_attributes(authority_is_role=True) == {"scope": None}
        assert scope.get_attach_attributes() == {"scope": "3"}

    def test_model_attributes(self):
        """Test the columns stamped onto ability and role rows."""
        scope = Scope().to(3)
        assert scope.get_model_attributes() == {"scope": "3"}

        scope.only_relations()
        assert scope.get_model_attributes() == {"scope": None}


class TestMultiTenancy:
    """Tests for scoped resolution."""

    def test_scoped_grants_stay_in_their_scope(self, tollgate: Tollgate, user: User):
        """Test that a grant made in one tenant is invisible in another."""
        tollgate.scope().to(1)
        tollgate.allow(user).to("create", User)

        assert tollgate.check(user, "create", User) is True

        tollgate.scope().to(2)
        assert tollgate.check(user, "create", User) is False

    def test_scoped_grants_are_invisible_without_a_scope(self, tollgate: Tollgate, user: User):
        """Test that no scope means global rows only."""
        tollgate.scope().to(1)
        tollgate.allow(user).to("create", User)
        tollgate.scope().remove()

        assert tollgate.check(user, "create", User) is False

    def test_global_grants_apply_in_every_scope(self, tollgate: Tollgate, user: User):
        """Test that unscoped rows are visible within any scope."""
        tollgate.allow(user).to("view", User)

        with tollgate.scope().once_to(5):
            assert tollgate.check(user, "view", User) is True

    def test_scoped_roles(self, tollgate: Tollgate, user: User):
        """Test that roles and assignments are scoped too."""
        tollgate.scope().to(1)
        tollgate.allow("admin").to("ban-users")
        tollgate.assign("admin").to(user)

        assert tollgate.is_(user).an("admin")
        assert tollgate.check(user, "ban-users") is True

        tollgate.scope().to(2)
        assert tollgate.is_(user).not_an("admin")
        assert tollgate.check(user, "ban-users") is False

    def test_role_names_are_unique_per_scope(self, tollgate: Tollgate):
        """Test that the same role name maps to a separate role per tenant."""
        with tollgate.scope().once_to(1):
            first = tollgate.role("admin")
        with tollgate.scope().once_to(2):
            second = tollgate.role("admin")

        assert first.id != second.id
        assert first.scope == "1"
        assert second.scope == "2"

    def test_forbiddances_are_scoped(self, tollgate: Tollgate, user: User):
        """Test that a forbiddance in one tenant does not leak."""
        tollgate.allow(user).to("delete", User)

        with tollgate.scope().once_to(1):
            tollgate.forbid(user).to("delete", User)
            assert tollgate.check(user, "delete", User) is False

        with tollgate.scope().once_to(2):
            assert tollgate.check(user, "delete", User) is True

    def test_only_relations(self, tollgate: Tollgate, user: User):
        """Test that relation-only scoping shares abilities and roles."""
        tollgate.scope().only_relations().to(1)
        tollgate.allow(user).to("edit")

        ability = tollgate.store.all_abilities()[0]
        assert ability.scope is None

        tollgate.scope().to(2)
        assert [found.id for found in tollgate.store.all_abilities()] == [ability.id]
        assert tollgate.check(user, "edit") is False

    def test_unscoped_role_abilities(self, tollgate: Tollgate, user: User):
        """Test that abilities granted to roles can be kept out of the scope."""
        tollgate.scope().dont_scope_role_abilities()
        tollgate.scope().to(1)

        tollgate.allow("admin").to("edit")
        tollgate.allow(user).to("view")

        permissions = tollgate.store.schema.permissions
        with tollgate.store.engine.connect() as conn:
            rows = {row.actor_type: row.scope for row in conn.execute(select(permissions))}

        assert rows == {"roles": None, "users": "1"}
