"""
Per-user subscription resolution.

Reads a user's profile and add-on documents and turns them into the
effective limits the evaluator works with. Identity reads fail closed
(Viewer on the free plan); add-on reads fail open to "no add-ons".
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from shared.logging import get_logger
from shared.observability import ErrorReporter

from .addons.catalog import AddOnCatalog
from .addons.composer import DEFAULT_CATALOG, UserAddOn, active_add_ons, effective_limits, to_datetime
from .plans.billing import BillingConfigClient
from .plans.limits import UNLIMITED_LIMITS, PlanKey, SubscriptionLimits, parse_plan_key
from .roles.hierarchy import is_exempt
from .roles.models import UserProfile
from .store.base import DocumentStore

PROFILE_COLLECTION = "userProfiles"
ADDONS_COLLECTION = "userAddOns"

EXEMPT_STATUS = "exempt"


@dataclass(frozen=True)
class ResolvedSubscription:
    profile: UserProfile
    plan: PlanKey
    status: str
    base_limits: SubscriptionLimits
    limits: SubscriptionLimits
    add_ons: Tuple[UserAddOn, ...] = field(default_factory=tuple)
    current_period_end: Optional[datetime] = None

    def to_dict(self):
        return {
            "user_id": self.profile.uid,
            "role": self.profile.role.value,
            "plan": self.plan.value,
            "status": self.status,
            "current_period_end": self.current_period_end.isoformat() if self.current_period_end else None,
            "base_limits": self.base_limits.to_dict(),
            "limits": self.limits.to_dict(),
            "active_add_ons": [addon.add_on_id for addon in self.add_ons],
        }


class SubscriptionResolver:
    """Profile + plan + add-ons -> effective limits."""

    def __init__(
        self,
        store: DocumentStore,
        billing: BillingConfigClient,
        catalog: AddOnCatalog = DEFAULT_CATALOG,
        reporter: Optional[ErrorReporter] = None,
    ):
        self.store = store
        self.billing = billing
        self.catalog = catalog
        self.reporter = reporter or ErrorReporter("entitlements")
        self.logger = get_logger("entitlements.subscription")

    async def load_profile(self, user_id: str) -> Tuple[UserProfile, dict]:
        """Profile and its raw document; unreadable or missing profiles are Viewers."""
        try:
            document = await self.store.get_document(PROFILE_COLLECTION, user_id)
        except Exception as e:
            self.reporter.report(e, {"collection": PROFILE_COLLECTION, "user_id": user_id})
            return UserProfile(uid=user_id), {}

        if document is None:
            self.logger.info("No profile document, treating as viewer", user_id=user_id)
            return UserProfile(uid=user_id), {}

        return UserProfile.from_document(user_id, document), document

    async def load_add_ons(self, user_id: str) -> List[UserAddOn]:
        try:
            document = await self.store.get_document(ADDONS_COLLECTION, user_id)
        except Exception as e:
            self.reporter.report(e, {"collection": ADDONS_COLLECTION, "user_id": user_id})
            return []

        records = (document or {}).get("addOns") or []
        add_ons = []
        for record in records:
            if not isinstance(record, dict):
                continue
            add_on = UserAddOn.from_document(record, user_id=user_id)
            if add_on is not None:
                add_ons.append(add_on)
        return add_ons

    async def resolve(self, user_id: str, now: Optional[datetime] = None) -> ResolvedSubscription:
        now = now or datetime.now(timezone.utc)
        profile, document = await self.load_profile(user_id)

        if is_exempt(profile):
            return ResolvedSubscription(
                profile=profile,
                plan=PlanKey.PRO,
                status=EXEMPT_STATUS,
                base_limits=UNLIMITED_LIMITS,
                limits=UNLIMITED_LIMITS,
            )

        plan = parse_plan_key(document.get("plan") or document.get("subscriptionPlan"))
        status = str(document.get("subscriptionStatus") or "unknown")

        base_limits = await self.billing.get_plan_limits(plan)

        active = active_add_ons(await self.load_add_ons(user_id), now)
        limits = effective_limits(base_limits, active, self.catalog)

        return ResolvedSubscription(
            profile=profile,
            plan=plan,
            status=status,
            base_limits=base_limits,
            limits=limits,
            add_ons=tuple(active),
            current_period_end=to_datetime(document.get("currentPeriodEnd")),
        )
