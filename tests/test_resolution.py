"""
Tests for permission resolution.

Every test runs against both the cached and the uncached clipboard, which
must always agree.

Tests cover:
- Simple, model, instance and wildcard abilities
- Forbiddance precedence
- Roles and grants to everyone
- Ownership
- Constrained abilities
"""

from __future__ import annotations

from tests.conftest import Account, User
from tollgate import Constraint, Group, Tollgate


# ============================================================================
# Ability Shapes
# ============================================================================


class TestSimpleAbilities:
    """Tests for abilities without a subject."""

    def test_grant(self, tollgate: Tollgate, user: User, other_user: User):
        """Test a simple grant."""
        tollgate.allow(user).to("ban-users")

        assert tollgate.check(user, "ban-users") is True
        assert tollgate.check(other_user, "ban-users") is False

    def test_does_not_apply_to_subjects(self, tollgate: Tollgate, user: User):
        """Test that a simple ability does not grant it on a model."""
        tollgate.allow(user).to("ban-users")
        assert tollgate.check(user, "ban-users", User) is False

    def test_hyphenated_name_is_not_a_model_ability(self, tollgate: Tollgate, user: User, make_account):
        """Test that a simple name never grants an ability whose parts it spells."""
        tollgate.allow(user).to("edit-accounts")

        assert tollgate.check(user, "edit", Account) is False
        assert tollgate.check(user, "edit", make_account()) is False
        assert tollgate.check(user, "edit-accounts") is True

    def test_model_ability_is_not_a_hyphenated_name(self, tollgate: Tollgate, user: User, make_account):
        """Test that a model grant never spells out a simple ability."""
        account = make_account()
        tollgate.allow(user).to("ban", User)
        tollgate.allow(user).to("close", account)

        assert tollgate.check(user, "ban-users") is False
        assert tollgate.check(user, f"close-accounts-{account.id}") is False
        assert tollgate.check(user, "ban", User) is True

    def test_names_are_case_insensitive(self, tollgate: Tollgate, user: User):
        """Test that ability names match regardless of case."""
        tollgate.allow(user).to("Publish")
        assert tollgate.check(user, "publish") is True

    def test_wildcard_name(self, tollgate: Tollgate, user: User):
        """Test that "*" grants every simple ability and nothing else."""
        tollgate.allow(user).to("*")

        assert tollgate.check(user, "anything") is True
        assert tollgate.check(user, "edit", Account) is False

    def test_remove(self, tollgate: Tollgate, user: User):
        """Test taking a simple ability away."""
        tollgate.allow(user).to("ban-users")
        tollgate.disallow(user).to("ban-users")

        assert tollgate.check(user, "ban-users") is False


class TestModelAbilities:
    """Tests for abilities on a subject type or instance."""

    def test_class_grant_covers_instances(self, tollgate: Tollgate, user: User, make_account):
        """Test that a blanket ability applies to every instance."""
        tollgate.allow(user).to("edit", Account)

        assert tollgate.check(user, "edit", Account) is True
        assert tollgate.check(user, "edit", make_account()) is True
        assert tollgate.check(user, "edit") is False
        assert tollgate.check(user, "edit", User) is False

    def test_instance_grant(self, tollgate: Tollgate, user: User, make_account):
        """Test that an instance ability applies to that instance only."""
        granted, other = make_account("granted"), make_account("other")
        tollgate.allow(user).to("edit", granted)

        assert tollgate.check(user, "edit", granted) is True
        assert tollgate.check(user, "edit", other) is False
        assert tollgate.check(user, "edit", Account) is False

    def test_unsaved_instance_is_checked_like_its_class(self, tollgate: Tollgate, user: User):
        """Test that unsaved instances only match blanket abilities."""
        tollgate.allow(user).to("create", Account)
        assert tollgate.check(user, "create", Account(name="draft")) is True

    def test_to_manage(self, tollgate: Tollgate, user: User, make_account):
        """Test every ability on a subject type."""
        tollgate.allow(user).to_manage(Account)

        assert tollgate.check(user, "delete", make_account()) is True
        assert tollgate.check(user, "create", Account) is True
        assert tollgate.check(user, "delete", User) is False

    def test_ability_on_every_subject(self, tollgate: Tollgate, user: User, make_account):
        """Test one ability on every subject type."""
        tollgate.allow(user).to("view", "*")

        assert tollgate.check(user, "view", Account) is True
        assert tollgate.check(user, "view", make_account()) is True
        assert tollgate.check(user, "view", "*") is True
        assert tollgate.check(user, "view") is False

    def test_everything(self, tollgate: Tollgate, user: User, make_account):
        """Test the superuser grant."""
        tollgate.allow(user).everything()

        assert tollgate.check(user, "ban-users") is True
        assert tollgate.check(user, "delete", make_account()) is True
        assert tollgate.check(user, "delete", "*") is True

    def test_mapping_grants(self, tollgate: Tollgate, user: User):
        """Test granting with a mapping of names to subjects."""
        tollgate.allow(user).to({"edit": Account, "view": User})

        assert tollgate.check(user, "edit", Account) is True
        assert tollgate.check(user, "view", User) is True
        assert tollgate.check(user, "view", Account) is False

    def test_lowest_id_wins(self, tollgate: Tollgate, user: User):
        """Test that the first created matching grant is reported."""
        tollgate.allow(user).to("edit", Account)
        tollgate.allow(user).everything()

        expected = tollgate.store.find_model_ability("edit", Account).id
        assert tollgate.clipboard.check_get_id(user, "edit", Account) == expected


# ============================================================================
# Forbiddance
# ============================================================================


class TestForbid:
    """Tests for forbidden abilities."""

    def test_forbid_wins_over_grant(self, tollgate: Tollgate, user: User, make_account):
        """Test that a forbiddance beats a broader grant."""
        locked, open_account = make_account("locked"), make_account("open")
        tollgate.allow(user).to_manage(Account)
        tollgate.forbid(user).to("delete", locked)

        assert tollgate.check(user, "delete", locked) is False
        assert tollgate.check(user, "delete", open_account) is True
        assert tollgate.check(user, "edit", locked) is True
        assert tollgate.clipboard.check_get_id(user, "delete", locked) is False

    def test_forbid_wins_over_narrower_grant(self, tollgate: Tollgate, user: User, make_account):
        """Test that a class forbiddance beats an instance grant."""
        account = make_account()
        tollgate.allow(user).to("delete", account)
        tollgate.forbid(user).to("delete", Account)

        assert tollgate.check(user, "delete", account) is False

    def test_unforbid(self, tollgate: Tollgate, user: User):
        """Test lifting a forbiddance."""
        tollgate.allow(user).to("edit", Account)
        tollgate.forbid(user).to("edit", Account)
        tollgate.unforbid(user).to("edit", Account)

        assert tollgate.check(user, "edit", Account) is True

    def test_forbid_everything(self, tollgate: Tollgate, user: User):
        """Test the blanket forbiddance."""
        tollgate.allow(user).to("ban-users")
        tollgate.forbid(user).everything()

        assert tollgate.check(user, "ban-users") is False

    def test_no_answer_is_none(self, tollgate: Tollgate, user: User):
        """Test that no matching grant yields no answer."""
        assert tollgate.clipboard.check_get_id(user, "edit", Account) is None


# ============================================================================
# Roles and Everyone
# ============================================================================


class TestRoleResolution:
    """Tests for abilities inherited through roles."""

    def test_role_grants(self, tollgate: Tollgate, user: User, other_user: User):
        """Test that role abilities reach role members."""
        tollgate.allow("editor").to("edit", Account)
        tollgate.assign("editor").to(user)

        assert tollgate.check(user, "edit", Account) is True
        assert tollgate.check(other_user, "edit", Account) is False

    def test_retracting_a_role(self, tollgate: Tollgate, user: User):
        """Test that retracting a role removes its abilities."""
        tollgate.allow("editor").to("edit", Account)
        tollgate.assign("editor").to(user)
        tollgate.retract("editor").from_(user)

        assert tollgate.check(user, "edit", Account) is False

    def test_role_forbiddance(self, tollgate: Tollgate, user: User):
        """Test that a role's forbiddance beats a direct grant."""
        tollgate.allow(user).to("edit", Account)
        tollgate.forbid("suspended").to("edit", Account)
        tollgate.assign("suspended").to(user)

        assert tollgate.check(user, "edit", Account) is False

    def test_role_record_as_authority(self, tollgate: Tollgate, user: User):
        """Test granting through a role record."""
        role = tollgate.role("auditor")
        tollgate.allow(role).to("view-logs")
        tollgate.assign(role).to(user)

        assert tollgate.check(user, "view-logs") is True

    def test_disallow_missing_role_is_noop(self, tollgate: Tollgate):
        """Test that removing from an unknown role creates nothing."""
        assert tollgate.disallow("ghost").to("edit") == 0
        assert tollgate.store.all_roles() == []

    def test_assign_by_key(self, tollgate: Tollgate, user: User, other_user: User):
        """Test assigning roles to bare keys of the user model."""
        tollgate.assign("member").to(User, keys=[user.id, other_user.id])

        assert tollgate.is_(user).a("member")
        assert tollgate.is_(other_user.id).a("member")

    def test_role_checks(self, tollgate: Tollgate, user: User):
        """Test the any, all and none role checks."""
        tollgate.assign("admin", "editor").to(user)

        assert tollgate.is_(user).an("admin", "reviewer")
        assert tollgate.is_(user).all("admin", "editor")
        assert not tollgate.is_(user).all("admin", "reviewer")
        assert tollgate.is_(user).not_a("reviewer")
        assert not tollgate.is_(user).not_an("admin")
        assert tollgate.get_roles(user) == ["admin", "editor"]


class TestEveryone:
    """Tests for abilities granted to everyone."""

    def test_grant_to_everyone(self, tollgate: Tollgate, user: User, other_user: User):
        """Test that everyone grants reach every authority."""
        tollgate.allow_everyone().to("view", Account)

        assert tollgate.check(user, "view", Account) is True
        assert tollgate.check(other_user, "view", Account) is True

    def test_forbid_everyone(self, tollgate: Tollgate, user: User, make_account):
        """Test that everyone forbiddances reach every authority."""
        hidden = make_account("hidden")
        tollgate.allow(user).to("view", Account)
        tollgate.forbid_everyone().to("view", hidden)

        assert tollgate.check(user, "view", hidden) is False
        assert tollgate.check(user, "view", make_account("shown")) is True

    def test_remove_from_everyone(self, tollgate: Tollgate, user: User):
        """Test removing and unforbidding for everyone."""
        tollgate.allow_everyone().to("view")
        tollgate.forbid_everyone().to("edit")
        tollgate.disallow_everyone().to("view")
        tollgate.unforbid_everyone().to("edit")

        assert tollgate.check(user, "view") is False
        assert tollgate.get_forbidden_abilities(user) == []


# ============================================================================
# Ownership
# ============================================================================


class TestOwnership:
    """Tests for abilities restricted to owned subjects."""

    def test_owned_abilities(self, tollgate: Tollgate, user: User, other_user: User, make_account):
        """Test that owned abilities only apply to the owner's subjects."""
        mine = make_account("mine", owner=user)
        theirs = make_account("theirs", owner=other_user)
        tollgate.allow(user).to_own(Account).to("edit")

        assert tollgate.check(user, "edit", mine) is True
        assert tollgate.check(user, "edit", theirs) is False
        assert tollgate.check(user, "edit", Account) is False

    def test_own_every_ability(self, tollgate: Tollgate, user: User, make_account):
        """Test committing an ownership write with every ability."""
        tollgate.allow(user).to_own(Account).commit()

        assert tollgate.check(user, "delete", make_account(owner=user)) is True
        assert tollgate.check(user, "delete", make_account()) is False

    def test_own_everything(self, tollgate: Tollgate, user: User, make_account):
        """Test ownership of every subject type."""
        tollgate.allow(user).to_own_everything().commit()

        assert tollgate.check(user, "archive", make_account(owner=user)) is True
        assert tollgate.check(user, "archive", make_account()) is False

    def test_nothing_is_written_until_committed(self, tollgate: Tollgate, user: User):
        """Test that a pending ownership write stores nothing."""
        tollgate.allow(user).to_own(Account)
        assert tollgate.get_abilities(user) == []

    def test_owner_type_must_match(self, tollgate: Tollgate, user: User, make_account):
        """Test that the owner key alone is not enough."""
        account = make_account()
        account.actor_id = user.id
        account.actor_type = "teams"
        tollgate.allow(user).to_own(Account).to("edit")

        assert tollgate.check(user, "edit", account) is False

    def test_attribute_strategy(self, tollgate: Tollgate, user: User, make_account):
        """Test ownership through another attribute."""
        tollgate.owned_via(Account, "user_id")
        tollgate.allow(user).to_own(Account).to("edit")

        assert tollgate.check(user, "edit", make_account(user_id=user.id)) is True
        assert tollgate.check(user, "edit", make_account(owner=user)) is False

    def test_callable_strategy(self, tollgate: Tollgate, make_user, make_account):
        """Test a global ownership callable."""
        member = make_user("member", team_id=3)
        tollgate.owned_via(lambda model, authority: model.team_id == authority.team_id)
        tollgate.allow(member).to_own(Account).to("edit")

        assert tollgate.check(member, "edit", make_account(team_id=3)) is True
        assert tollgate.check(member, "edit", make_account(team_id=4)) is False


# ============================================================================
# Constraints
# ============================================================================


class TestConstrainedAbilities:
    """Tests for abilities carrying constraints."""

    def test_value_constraint(self, tollgate: Tollgate, user: User, make_account):
        """Test that constraints filter the subject instances."""
        ability = tollgate.store.make_for_model(Account, "edit")
        ability.set_constraints(Constraint.where("active", True))
        tollgate.allow(user).to(ability)

        assert tollgate.check(user, "edit", make_account(active=True)) is True
        assert tollgate.check(user, "edit", make_account(active=False)) is False

    def test_constraints_need_an_instance(self, tollgate: Tollgate, user: User):
        """Test that a constrained ability never matches a class."""
        ability = tollgate.store.make_for_model(Account, "edit")
        ability.set_constraints(Constraint.where("active", True))
        tollgate.allow(user).to(ability)

        assert tollgate.check(user, "edit", Account) is False

    def test_column_constraint(self, tollgate: Tollgate, make_user, make_account):
        """Test constraints comparing the subject to the authority."""
        member = make_user("member", team_id=8)
        ability = tollgate.store.make_for_model(Account, "view")
        ability.set_constraints(Group([Constraint.where_column("team_id", "team_id")]))
        tollgate.allow(member).to(ability)

        assert tollgate.check(member, "view", make_account(team_id=8)) is True
        assert tollgate.check(member, "view", make_account(team_id=9)) is False

    def test_unconstrained_grant_still_applies(self, tollgate: Tollgate, user: User, make_account):
        """Test that a failing constraint falls through to other grants."""
        constrained = tollgate.store.make_for_model(Account, "edit")
        constrained.set_constraints(Constraint.where("active", True))
        tollgate.allow(user).to(constrained)
        tollgate.allow(user).to("edit", "*")

        assert tollgate.check(user, "edit", make_account(active=False)) is True

    def test_empty_group_applies_everywhere(self, tollgate: Tollgate, user: User, make_account):
        """Test that an empty constraint group does not restrict the ability."""
        ability = tollgate.store.make_for_model(Account, "edit")
        ability.set_constraints(Group())
        tollgate.allow(user).to(ability)

        assert ability.has_constraints() is False
        assert tollgate.check(user, "edit", Account) is True
        assert tollgate.check(user, "edit", make_account(active=False)) is True

    def test_corrupt_constraints_fall_back_to_empty_group(self, tollgate: Tollgate, user: User, make_account):
        """Test that unreadable stored constraints never break a check."""
        ability = tollgate.store.make_for_model(Account, "view")
        ability.options = {"constraints": {"class": "ValueConstraint", "params": "garbage"}}
        tollgate.allow(user).to(ability)

        assert len(ability.get_constraints()) == 0
        assert tollgate.check(user, "view", make_account()) is True
        assert tollgate.check(user, "view", Account) is True

    def test_non_mapping_options_are_ignored(self, tollgate: Tollgate, user: User, make_account):
        """Test that options of the wrong shape read as unconstrained."""
        ability = tollgate.store.make_for_model(Account, "view")
        ability.options = ["constraints"]
        tollgate.allow(user).to(ability)

        assert tollgate.check(user, "view", make_account()) is True


# ============================================================================
# Listing
# ============================================================================


class TestListing:
    """Tests for listing abilities."""

    def test_get_abilities(self, tollgate: Tollgate, user: User):
        """Test listing direct, role and everyone abilities."""
        tollgate.allow(user).to("edit")
        tollgate.allow("admin").to("ban-users")
        tollgate.assign("admin").to(user)
        tollgate.allow_everyone().to("view")
        tollgate.forbid(user).to("delete")

        assert [ability.name for ability in tollgate.get_abilities(user)] == ["edit", "ban-users", "view"]
        assert [ability.name for ability in tollgate.get_forbidden_abilities(user)] == ["delete"]

    def test_abilities_are_not_duplicated(self, tollgate: Tollgate, user: User):
        """Test that an ability reached twice is listed once."""
        tollgate.allow(user).to("edit")
        tollgate.allow("admin").to("edit")
        tollgate.assign("admin").to(user)

        assert len(tollgate.get_abilities(user)) == 1
