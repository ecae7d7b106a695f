"""
Entitlement evaluation engine.

The evaluator is a pure function of a PermissionEvaluationContext: it keeps
no state between calls and performs no I/O. Unknown actions fail closed;
quota decisions treat the limit as an exclusive upper bound.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from shared.logging import get_logger

from ..plans.limits import (
    PER_SHOW_FIELDS, UNLIMITED, UNLIMITED_LIMITS, LimitNumber, SubscriptionLimits, is_unlimited,
)
from ..roles.hierarchy import (
    get_role_rank, has_minimum_role, has_permission, is_exempt, role_display_name, role_of,
)
from ..roles.models import Permission, SystemRole, UserProfile
from .models import (
    CurrentCounts, LimitCheckResult, LimitStatus, PermissionEvaluationContext,
    PermissionResult, PermissionSummary, sanitize_count,
)


@dataclass(frozen=True)
class ActionRule:
    """What an action needs: a capability, a plan feature flag and/or quota headroom."""
    permission: Optional[Permission] = None
    feature_flag: Optional[str] = None
    quota_key: Optional[str] = None
    exempt_only: bool = False


ACTIONS: Dict[str, ActionRule] = {
    "create_show": ActionRule(Permission.CREATE_SHOWS, "can_create_shows", "shows"),
    "edit_show": ActionRule(Permission.EDIT_SHOWS),
    "delete_show": ActionRule(Permission.DELETE_SHOWS),
    "archive_show": ActionRule(Permission.ARCHIVE_SHOWS, quota_key="archived_shows"),
    "create_board": ActionRule(Permission.CREATE_BOARDS, quota_key="boards"),
    "create_prop": ActionRule(Permission.CREATE_PROPS, quota_key="props"),
    "edit_prop": ActionRule(Permission.EDIT_PROPS),
    "delete_prop": ActionRule(Permission.DELETE_PROPS),
    "create_packing_box": ActionRule(Permission.CREATE_PACKING_BOXES, quota_key="packing_boxes"),
    "invite_team_member": ActionRule(
        Permission.INVITE_TEAM_MEMBERS, "can_invite_collaborators", "collaborators_per_show"
    ),
    "remove_team_member": ActionRule(Permission.REMOVE_TEAM_MEMBERS),
    "manage_user_roles": ActionRule(Permission.ASSIGN_ROLES),
    "access_admin_panel": ActionRule(Permission.ACCESS_ADMIN_PANEL),
    "view_all_props": ActionRule(Permission.VIEW_ALL_PROPS),
    "view_billing": ActionRule(Permission.VIEW_BILLING),
    "purchase_addons": ActionRule(Permission.PURCHASE_ADDONS),
    "export_data": ActionRule(Permission.EXPORT_DATA, "can_export_data"),
    "use_advanced_features": ActionRule(Permission.VIEW_PROPS, "can_use_advanced_features"),
    "access_api": ActionRule(Permission.VIEW_PROPS, "can_access_api"),
    "bypass_subscription_limits": ActionRule(exempt_only=True),
}

FEATURE_NAMES = {
    "can_create_shows": "show creation",
    "can_invite_collaborators": "collaborator invitations",
    "can_export_data": "data export",
    "can_use_advanced_features": "advanced features",
    "can_access_api": "API access",
}

# limit key -> (label, plural noun, verb)
LIMIT_LABELS = {
    "shows": ("show", "shows", "create"),
    "boards": ("board", "boards", "create"),
    "packing_boxes": ("packing box", "packing boxes", "create"),
    "props": ("props", "props", "create"),
    "archived_shows": ("archived show", "shows", "archive"),
    "collaborators_per_show": ("collaborator", "collaborators", "add"),
    "boards_per_show": ("board", "boards", "create"),
    "packing_boxes_per_show": ("packing box", "packing boxes", "create"),
    "props_per_show": ("props", "props", "create"),
}

SHOW_SCOPED_LIMITS = PER_SHOW_FIELDS | {"collaborators_per_show"}

SUMMARY_RESOURCES = ("shows", "boards", "props", "packing_boxes")


def limit_message(limit_key: str, limit: LimitNumber) -> str:
    """Upgrade prompt shown when a quota is reached."""
    label, plural, verb = LIMIT_LABELS[limit_key]
    if limit_key in SHOW_SCOPED_LIMITS:
        return f"This show has reached its {label} limit of {int(limit)}. Upgrade to {verb} more {plural}."
    return f"You have reached your plan's {label} limit of {int(limit)}. Upgrade to {verb} more {plural}."


class EntitlementEvaluator:
    """Answers capability, seniority and quota questions for one context."""

    def __init__(self):
        self.logger = get_logger("entitlements.evaluator")

    def is_exempt(self, context: PermissionEvaluationContext) -> bool:
        return is_exempt(context.profile)

    def has_minimum_role(self, context: PermissionEvaluationContext, role: SystemRole) -> bool:
        return has_minimum_role(context.profile, role)

    def effective_limits_for(
        self, profile: Optional[UserProfile], limits: SubscriptionLimits
    ) -> SubscriptionLimits:
        """Exempt profiles see every limit as unlimited."""
        return UNLIMITED_LIMITS if is_exempt(profile) else limits

    def check_limit(
        self,
        profile: Optional[UserProfile],
        limits: SubscriptionLimits,
        current_count,
        limit_key: str,
    ) -> LimitCheckResult:
        """Compare a count against one limit; the limit itself is not allowed."""
        count = sanitize_count(current_count)
        is_per_show = limit_key in SHOW_SCOPED_LIMITS

        if is_exempt(profile):
            return LimitCheckResult(True, count, UNLIMITED, is_per_show)

        limit = limits.get(limit_key)
        if is_unlimited(limit) or count < limit:
            return LimitCheckResult(True, count, limit, is_per_show)

        return LimitCheckResult(False, count, limit, is_per_show, limit_message(limit_key, limit))

    def can_create_resource(
        self,
        profile: Optional[UserProfile],
        limits: SubscriptionLimits,
        current_count,
        limit_key: str,
    ) -> PermissionResult:
        result = self.check_limit(profile, limits, current_count, limit_key)
        return PermissionResult(result.within_limit, result.message)

    def can_perform_action(self, action: str, context: PermissionEvaluationContext) -> PermissionResult:
        """Evaluate a named action against the static action table."""
        rule = ACTIONS.get(action)
        if rule is None:
            self.logger.warning("Unknown action requested", action=action)
            return PermissionResult(False, f"Unknown action: {action}")

        exempt = is_exempt(context.profile)
        if rule.exempt_only:
            if exempt:
                return PermissionResult(True)
            return PermissionResult(False, "Only exempt users can bypass subscription limits")

        if exempt:
            return PermissionResult(True)

        if rule.permission is not None and not has_permission(context.profile, rule.permission):
            return PermissionResult(
                False,
                f"Your role ({role_display_name(role_of(context.profile))}) does not have the "
                f"{rule.permission.value} permission",
            )

        if rule.feature_flag is not None and not getattr(context.limits, rule.feature_flag):
            feature = FEATURE_NAMES[rule.feature_flag]
            return PermissionResult(False, f"Your plan does not include {feature}. Upgrade to unlock it.")

        if rule.quota_key is not None:
            return self.can_create_resource(
                context.profile,
                context.limits,
                context.counts.count_for(rule.quota_key),
                rule.quota_key,
            )

        return PermissionResult(True)

    def summarize(self, context: PermissionEvaluationContext) -> PermissionSummary:
        """Full entitlement picture for a profile."""
        profile = context.profile
        exempt = is_exempt(profile)
        effective = self.effective_limits_for(profile, context.limits)
        counts = context.counts or CurrentCounts()

        statuses = {}
        for resource in SUMMARY_RESOURCES:
            result = self.check_limit(profile, effective, counts.count_for(resource), resource)
            statuses[resource] = LimitStatus(
                current=result.current_count,
                limit=result.limit,
                within_limit=result.within_limit,
                is_exempt=exempt,
            )

        return PermissionSummary(
            is_valid=bool(profile and profile.uid and profile.email),
            is_exempt=exempt,
            effective_limits=effective,
            can_invite_team_members=has_permission(profile, Permission.INVITE_TEAM_MEMBERS),
            can_view_all_props=has_permission(profile, Permission.VIEW_ALL_PROPS),
            should_show_subscription_notifications=not exempt,
            role_display_name=role_display_name(role_of(profile)),
            role_rank=get_role_rank(profile),
            current_counts=counts,
            limits=statuses,
        )
