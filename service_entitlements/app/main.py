"""
Entitlements service for the Props platform.

Composition root: builds one document store, one data-view service, one
billing client, one subscription resolver and one evaluator, and exposes
them over HTTP.
"""

from typing import Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ValidationError
from shared.logging import set_user_context
from shared.observability import ErrorReporter

from .addons.catalog import AddOnType, can_purchase_add_ons
from .addons.composer import DEFAULT_CATALOG
from .cache.data_views import DataViewCache, DataViewService
from .cache.redis_cache import PricingConfigCache
from .limits.checker import LimitChecker
from .plans.billing import BillingConfigClient
from .plans.limits import limits_for_plan, parse_plan_key
from .rules.engine import EntitlementEvaluator
from .rules.models import (
    AddOnListResponse, DataViewResponse, EntitlementCheckRequest, EntitlementCheckResponse,
    LimitCheckResponse, PermissionEvaluationContext, PermissionResult,
)
from .store.memory import InMemoryDocumentStore
from .store.postgres import PostgresDocumentStore
from .subscription import ResolvedSubscription, SubscriptionResolver

SERVICE_NAME = "entitlements"
SERVICE_PORT = 8011

# resource -> (account-wide check, per-show check)
LIMIT_CHECKS = {
    "shows": ("check_show_limit", None),
    "archived_shows": ("check_archived_show_limit", None),
    "boards": ("check_board_limit", "check_board_limit_for_show"),
    "packing_boxes": ("check_packing_box_limit", "check_packing_box_limit_for_show"),
    "props": ("check_prop_limit", "check_prop_limit_for_show"),
    "collaborators": (None, "check_collaborator_limit_for_show"),
}

# Actions that also consume a per-show quota when a show is given
PER_SHOW_ACTION_CHECKS = {
    "create_board": "check_board_limit_for_show",
    "create_packing_box": "check_packing_box_limit_for_show",
    "create_prop": "check_prop_limit_for_show",
    "invite_team_member": "check_collaborator_limit_for_show",
}


class EntitlementsService(BaseService):
    """Entitlements service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, store=None,
                 billing: Optional[BillingConfigClient] = None):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))

        self.store = store if store is not None else self._build_store()
        self.pricing_cache = None
        if billing is None and self.config.enable_pricing_cache:
            self.pricing_cache = PricingConfigCache(self.config.redis_url, self.config.pricing_cache_ttl_seconds)
        self.billing = billing or BillingConfigClient(
            self.config.billing_config_url,
            timeout=self.config.billing_timeout_seconds,
            cache_ttl_seconds=self.config.pricing_cache_ttl_seconds,
            shared_cache=self.pricing_cache,
        )

        self.reporter = ErrorReporter(SERVICE_NAME, self.metrics)
        self.evaluator = EntitlementEvaluator()
        self.catalog = DEFAULT_CATALOG
        self.data_views = DataViewService(DataViewCache(self.config.data_view_ttl_seconds), self.metrics)
        self.resolver = SubscriptionResolver(self.store, self.billing, self.catalog, self.reporter)

        self._setup_entitlements_routes()

    def _build_store(self):
        kind = (self.config.document_store or "memory").lower()
        if kind == "postgres":
            return PostgresDocumentStore(self.config.postgres_dsn)
        if kind != "memory":
            self.logger.warning("Unknown document store, using in-memory store", document_store=kind)
        return InMemoryDocumentStore()

    def limit_checker_for(self, subscription: ResolvedSubscription) -> LimitChecker:
        return LimitChecker(
            self.store,
            subscription.profile,
            subscription.limits,
            evaluator=self.evaluator,
            reporter=self.reporter,
        )

    async def check_action(self, user_id: str, action: str, show_id: Optional[str] = None) -> PermissionResult:
        """Resolve the user's subscription and counts, then evaluate one action."""
        subscription = await self.resolver.resolve(user_id)
        checker = self.limit_checker_for(subscription)
        counts = await checker.collect_counts(user_id, show_id)

        context = PermissionEvaluationContext(subscription.profile, subscription.limits, counts)
        result = self.evaluator.can_perform_action(action, context)

        if result.allowed and show_id and action in PER_SHOW_ACTION_CHECKS:
            per_show = await getattr(checker, PER_SHOW_ACTION_CHECKS[action])(show_id)
            if not per_show.within_limit:
                result = PermissionResult(False, per_show.message)

        return result

    def _setup_entitlements_routes(self):
        """Set up entitlements-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Props - Entitlements Service",
                "version": "1.0.0",
                "capabilities": ["roles", "plan_limits", "add_ons", "limit_checks", "data_views"]
            }

        @self.app.post("/entitlements/check", response_model=EntitlementCheckResponse)
        async def check_entitlements(request: EntitlementCheckRequest):
            """Check whether a user may perform an action."""
            set_user_context(request.user_id, request.show_id)

            with self.metrics.time_operation("entitlement_check_duration_seconds"):
                result = await self.check_action(request.user_id, request.action, request.show_id)

            decision = "allow" if result.allowed else "deny"
            self.metrics.increment_counter("entitlement_checks_total", decision=decision)
            self.logger.info(
                "Entitlement check completed",
                action=request.action,
                allowed=result.allowed,
                reason=result.reason
            )
            return EntitlementCheckResponse(allowed=result.allowed, reason=result.reason)

        @self.app.get("/entitlements/limits/{resource}", response_model=LimitCheckResponse)
        async def check_limit(
            resource: str,
            user_id: str = Query(..., description="User whose subscription applies"),
            show_id: Optional[str] = Query(None, description="Check the per-show limit for this show")
        ):
            """Check one resource limit, account-wide or per show."""
            if resource not in LIMIT_CHECKS:
                raise ValidationError(
                    f"Unknown resource: {resource}",
                    details={"allowed": sorted(LIMIT_CHECKS)}
                )

            account_check, show_check = LIMIT_CHECKS[resource]
            method = show_check if show_id is not None else account_check
            if method is None:
                raise ValidationError(
                    f"Resource {resource} requires {'a show_id' if show_id is None else 'no show_id'}"
                )

            set_user_context(user_id, show_id)
            subscription = await self.resolver.resolve(user_id)
            checker = self.limit_checker_for(subscription)
            result = await getattr(checker, method)(show_id if show_id is not None else user_id)
            return LimitCheckResponse(**result.to_dict())

        @self.app.get("/entitlements/summary/{user_id}")
        async def get_summary(user_id: str, show_id: Optional[str] = Query(None)):
            """Permission summary for a user."""
            set_user_context(user_id, show_id)
            subscription = await self.resolver.resolve(user_id)
            counts = await self.limit_checker_for(subscription).collect_counts(user_id, show_id)
            context = PermissionEvaluationContext(subscription.profile, subscription.limits, counts)

            summary = self.evaluator.summarize(context).to_dict()
            summary["subscription"] = subscription.to_dict()
            return summary

        @self.app.get("/entitlements/plans/{plan}")
        async def get_plan(plan: str):
            """Static limits for a plan; unknown plans resolve to free."""
            plan_key = parse_plan_key(plan)
            return {
                "plan": plan_key.value,
                "limits": limits_for_plan(plan_key).to_dict(),
                "can_purchase_add_ons": can_purchase_add_ons(plan_key),
                "add_ons": [addon.id for addon in self.catalog.for_plan(plan_key)]
            }

        @self.app.get("/entitlements/addons", response_model=AddOnListResponse)
        async def list_add_ons(
            plan: Optional[str] = Query(None, description="Filter by target plan"),
            addon_type: Optional[str] = Query(None, alias="type", description="Filter by add-on type")
        ):
            """Add-on catalog with optional filters."""
            add_ons = list(self.catalog)
            if plan is not None:
                plan_add_ons = self.catalog.for_plan(parse_plan_key(plan))
                add_ons = [addon for addon in add_ons if addon in plan_add_ons]
            if addon_type is not None:
                try:
                    wanted = AddOnType(addon_type)
                except ValueError:
                    raise ValidationError(
                        f"Unknown add-on type: {addon_type}",
                        details={"allowed": [t.value for t in AddOnType]}
                    )
                add_ons = [addon for addon in add_ons if addon.type == wanted]

            return AddOnListResponse(
                version=self.catalog.version,
                add_ons=[addon.to_dict() for addon in add_ons],
                total=len(add_ons)
            )

        @self.app.get("/entitlements/data-view/{user_id}", response_model=DataViewResponse)
        async def get_data_view(user_id: str, show_id: Optional[str] = Query(None)):
            """Role-based prop data view for a user."""
            profile, _ = await self.resolver.load_profile(user_id)
            result = self.data_views.get_effective_data_view(profile, show_id)
            return DataViewResponse(
                role=result.role.value,
                source=result.source,
                is_custom=result.is_custom,
                config=result.config.to_dict()
            )

        @self.app.delete("/entitlements/data-view/cache")
        async def clear_data_view_cache():
            """Drop every cached data view."""
            self.data_views.clear_cache()
            return {"cleared": True, **self.data_views.cache_stats()}

    async def _check_dependencies(self):
        """Check entitlements service dependencies."""
        dependencies = {}

        try:
            dependencies["document_store"] = "ok" if await self.store.health_check() else "error"
        except Exception:
            dependencies["document_store"] = "error"

        if self.pricing_cache is not None:
            dependencies["redis"] = "ok" if await self.pricing_cache.health_check() else "error"

        dependencies["billing_provider"] = "enabled" if self.billing.enabled else "disabled"
        return dependencies

    async def start(self):
        """Start entitlements service components."""
        if hasattr(self.store, "start"):
            await self.store.start()
        if self.pricing_cache is not None:
            await self.pricing_cache.start()

        self.logger.info(
            "Entitlements service started",
            document_store=type(self.store).__name__,
            billing_provider=self.billing.enabled
        )

    async def stop(self):
        """Stop entitlements service components."""
        if hasattr(self.store, "stop"):
            await self.store.stop()
        if self.pricing_cache is not None:
            await self.pricing_cache.stop()

        self.logger.info("Entitlements service stopped")


def create_app(config: Optional[ServiceConfig] = None, store=None, billing: Optional[BillingConfigClient] = None):
    """Create entitlements service application."""
    service = EntitlementsService(config=config, store=store, billing=billing)
    return service.app


if __name__ == "__main__":
    service = EntitlementsService()
    service.run()
