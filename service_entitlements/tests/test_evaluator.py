"""
Unit tests for the EntitlementEvaluator.
"""

from dataclasses import replace

import pytest

from service_entitlements.app.plans.limits import UNLIMITED, UNLIMITED_LIMITS, limits_for_plan
from service_entitlements.app.roles.models import Permission, SystemRole, UserProfile
from service_entitlements.app.rules.engine import ACTIONS, EntitlementEvaluator, limit_message
from service_entitlements.app.rules.models import CurrentCounts, PermissionEvaluationContext


class TestEntitlementEvaluator:
    """Test cases for EntitlementEvaluator."""

    @pytest.fixture
    def evaluator(self):
        """Create EntitlementEvaluator instance."""
        return EntitlementEvaluator()

    @pytest.fixture
    def standard(self):
        """Standard plan limits."""
        return limits_for_plan("standard")

    @pytest.fixture
    def editor(self):
        """Editor profile."""
        return UserProfile(uid="editor-1", email="ed@example.com", role=SystemRole.EDITOR)

    @pytest.fixture
    def admin(self):
        """Admin profile."""
        return UserProfile(uid="admin-1", email="ad@example.com", role=SystemRole.ADMIN)

    def context(self, profile, limits, **counts):
        return PermissionEvaluationContext(profile, limits, CurrentCounts(**counts))

    @pytest.mark.parametrize("role", [SystemRole.GOD, SystemRole.ADMIN])
    @pytest.mark.parametrize("count", [0, 10 ** 9])
    def test_exempt_always_within_limit(self, evaluator, standard, role, count):
        """Test exempt roles are unlimited regardless of count."""
        profile = UserProfile(uid="x", role=role)
        result = evaluator.check_limit(profile, standard, count, "props")
        assert result.within_limit
        assert result.limit == UNLIMITED
        assert evaluator.can_create_resource(profile, standard, count, "props").allowed

    def test_limit_is_exclusive(self, evaluator, editor, standard):
        """Test count equal to the limit is denied and one below is allowed."""
        assert evaluator.can_create_resource(editor, standard, 99, "props").allowed
        denied = evaluator.can_create_resource(editor, standard, 100, "props")
        assert not denied.allowed
        assert "100" in denied.reason

    def test_denial_message(self, evaluator, editor, standard):
        """Test denial messages embed the limit."""
        result = evaluator.check_limit(editor, standard, 10, "shows")
        assert result.message == "You have reached your plan's show limit of 10. Upgrade to create more shows."

    def test_per_show_message(self):
        """Test per-show denial wording."""
        assert limit_message("collaborators_per_show", 15) == (
            "This show has reached its collaborator limit of 15. Upgrade to add more collaborators."
        )

    @pytest.mark.parametrize("bad_count", [-5, "abc", None])
    def test_bad_counts_are_zero(self, evaluator, editor, standard, bad_count):
        """Test negative or non-numeric counts are treated as zero."""
        result = evaluator.check_limit(editor, standard, bad_count, "props")
        assert result.within_limit
        assert result.current_count == 0

    def test_unlimited_limit_allows(self, evaluator, editor, standard):
        """Test an unlimited field allows any count for non-exempt users."""
        limits = replace(standard, props=UNLIMITED)
        assert evaluator.can_create_resource(editor, limits, 10 ** 6, "props").allowed

    def test_unknown_action_denied(self, evaluator, admin, standard):
        """Test unknown actions fail closed, even for exempt users."""
        result = evaluator.can_perform_action("launch_rockets", self.context(admin, standard))
        assert not result.allowed
        assert result.reason == "Unknown action: launch_rockets"

    def test_permission_required(self, evaluator, standard):
        """Test a viewer cannot create props."""
        viewer = UserProfile(uid="v")
        result = evaluator.can_perform_action("create_prop", self.context(viewer, standard))
        assert not result.allowed
        assert "create_props" in result.reason

    def test_override_respected(self, evaluator, standard):
        """Test explicit permission overrides take precedence over role defaults."""
        viewer = UserProfile(uid="v", permissions={Permission.CREATE_PROPS: True})
        assert evaluator.can_perform_action("create_prop", self.context(viewer, standard)).allowed

    def test_quota_applies_to_action(self, evaluator, editor, standard):
        """Test actions with a quota compare against current counts."""
        assert evaluator.can_perform_action("create_prop", self.context(editor, standard, props=99)).allowed
        assert not evaluator.can_perform_action("create_prop", self.context(editor, standard, props=100)).allowed

    def test_feature_flag_blocks(self, evaluator, editor):
        """Test plan feature flags gate actions."""
        free = limits_for_plan("free")
        result = evaluator.can_perform_action("export_data", self.context(editor, free))
        assert not result.allowed
        assert "data export" in result.reason

    def test_exempt_bypasses_flags(self, evaluator, admin):
        """Test exempt users skip feature flags and quotas."""
        free = limits_for_plan("free")
        assert evaluator.can_perform_action("export_data", self.context(admin, free)).allowed
        assert evaluator.can_perform_action("create_show", self.context(admin, free, shows=500)).allowed

    def test_bypass_requires_exemption(self, evaluator, editor, admin, standard):
        """Test only exempt users may bypass subscription limits."""
        assert not evaluator.can_perform_action("bypass_subscription_limits", self.context(editor, standard)).allowed
        assert evaluator.can_perform_action("bypass_subscription_limits", self.context(admin, standard)).allowed

    def test_action_table_quota_keys_exist(self, standard):
        """Test every quota key in the action table is a real limit."""
        for rule in ACTIONS.values():
            if rule.quota_key:
                standard.get(rule.quota_key)

    def test_missing_profile_is_viewer(self, evaluator, standard):
        """Test evaluation without a profile behaves like a viewer."""
        context = self.context(None, standard)
        assert not evaluator.is_exempt(context)
        assert not evaluator.can_perform_action("create_prop", context).allowed
        assert evaluator.has_minimum_role(context, SystemRole.VIEWER)


class TestSummary:
    """Test cases for permission summaries."""

    @pytest.fixture
    def evaluator(self):
        """Create EntitlementEvaluator instance."""
        return EntitlementEvaluator()

    def test_regular_user_summary(self, evaluator):
        """Test summary for a regular user near a limit."""
        profile = UserProfile(uid="u1", email="u@example.com", role=SystemRole.EDITOR)
        context = PermissionEvaluationContext(profile, limits_for_plan("standard"), CurrentCounts(props=100, shows=2))
        summary = evaluator.summarize(context)

        assert summary.is_valid
        assert not summary.is_exempt
        assert summary.should_show_subscription_notifications
        assert summary.role_display_name == "Editor"
        assert summary.can_invite_team_members
        assert not summary.can_view_all_props
        assert not summary.limits["props"].within_limit
        assert summary.limits["shows"].within_limit
        assert summary.to_dict()["limits"]["props"]["limit"] == 100

    def test_exempt_summary(self, evaluator):
        """Test exempt users see unlimited effective limits."""
        profile = UserProfile(uid="g", email="g@example.com", role=SystemRole.GOD)
        summary = evaluator.summarize(PermissionEvaluationContext(profile, limits_for_plan("free")))

        assert summary.is_exempt
        assert summary.effective_limits == UNLIMITED_LIMITS
        assert not summary.should_show_subscription_notifications
        assert summary.to_dict()["limits"]["shows"]["unlimited"] is True

    def test_invalid_without_email(self, evaluator):
        """Test a profile without an email is not valid."""
        summary = evaluator.summarize(PermissionEvaluationContext(UserProfile(uid="u1"), limits_for_plan("free")))
        assert not summary.is_valid
