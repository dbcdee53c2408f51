"""
Tests for derived role and ability titles.
"""

from __future__ import annotations

import pytest

from tollgate import Ability, Role
from tollgate.titles import basename, humanize, pluralize


class TestHumanize:
    """Tests for identifier humanization."""

    @pytest.mark.parametrize("value", ["siteAdmin", "SiteAdmin", "site_admin", "site-admin", "site admin"])
    def test_normalizes_cases(self, value: str):
        """Test that every identifier style reads the same."""
        assert humanize(value) == "Site admin"

    def test_separates_hashes(self):
        """Test that hashes are spaced from the preceding word."""
        assert humanize("post#5") == "Post #5"

    def test_pluralize(self):
        """Test the plural forms used in titles."""
        assert pluralize("user") == "users"
        assert pluralize("category") == "categories"
        assert pluralize("box") == "boxes"
        assert pluralize("key") == "keys"

    def test_basename(self):
        """Test short names of morph types."""
        assert basename("app.models.BlogPost") == "blog post"
        assert basename("accounts") == "accounts"


class TestRoleTitle:
    """Tests for role titles."""

    def test_derived_from_name(self):
        """Test that a role without a title gets one from its name."""
        assert Role("siteAdmin").title == "Site admin"

    def test_explicit_title_kept(self):
        """Test that an explicit title is not replaced."""
        assert Role("admin", title="Administrator").title == "Administrator"


class TestAbilityTitle:
    """Tests for ability titles."""

    def test_all_abilities(self):
        """Test the manage-everything titles."""
        assert Ability("*", subject_type="*").title == "All abilities"
        assert Ability("*", subject_type="*", only_owned=True).title == "Manage everything owned"

    def test_simple_abilities(self):
        """Test abilities without a subject."""
        assert Ability("*").title == "All simple abilities"
        assert Ability("ban-users").title == "Ban users"

    def test_everything_abilities(self):
        """Test abilities on every subject type."""
        assert Ability("edit", subject_type="*").title == "Edit everything"
        assert Ability("edit", subject_type="*", only_owned=True).title == "Edit everything owned"

    def test_model_abilities(self):
        """Test blanket abilities on one subject type."""
        assert Ability("create", subject_type="app.models.BlogPost").title == "Create blog posts"
        assert Ability("*", subject_type="app.models.User").title == "Manage users"
        assert Ability("edit", subject_type="app.models.Category").title == "Edit categories"
        assert Ability("*", subject_type="app.models.Account", only_owned=True).title == "Manage accounts owned"

    def test_instance_abilities(self):
        """Test abilities on one subject instance."""
        assert Ability("delete", subject_type="app.models.User", subject_id=2).title == "Delete user #2"
        assert Ability("*", subject_type="app.models.User", subject_id="7").title == "Manage user #7"
