"""
Billing provider pricing config client.

The provider publishes a plan list; each plan carries a flat string-keyed
``limits`` map. A missing, failing or malformed provider never surfaces to
callers: they get the static plan defaults instead.
"""

import time
from typing import Any, Callable, Dict, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import ExternalServiceError
from shared.logging import get_logger

from ..cache.redis_cache import PricingConfigCache
from .limits import SubscriptionLimits, limits_for_plan, parse_plan_key, parse_provider_limits


class BillingConfigClient:
    """Fetches and caches the provider's pricing config."""

    def __init__(
        self,
        config_url: Optional[str],
        timeout: float = 10.0,
        cache_ttl_seconds: int = 300,
        shared_cache: Optional[PricingConfigCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config_url = config_url
        self.timeout = timeout
        self.cache_ttl_seconds = cache_ttl_seconds
        self.shared_cache = shared_cache
        self.logger = get_logger("entitlements.billing")
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=30.0,
            name="billing_provider",
            clock=clock,
        )
        self._http_client = http_client
        self._clock = clock or time.monotonic

        self._config: Optional[Dict[str, Any]] = None
        self._fetched_at = 0.0

    @property
    def enabled(self) -> bool:
        return bool(self.config_url)

    async def fetch_pricing_config(self) -> Dict[str, Any]:
        """Call the provider directly. Raises ExternalServiceError on failure."""
        async def _fetch():
            if self._http_client is not None:
                response = await self._http_client.get(self.config_url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.config_url)

            if response.status_code != 200:
                raise ExternalServiceError(
                    "billing",
                    f"Pricing config request failed: {response.status_code}",
                )
            payload = response.json()
            if not isinstance(payload, dict) or not isinstance(payload.get("plans"), list):
                raise ExternalServiceError("billing", "Pricing config has no plan list")
            return payload

        try:
            return await self.circuit_breaker.call(_fetch)
        except ExternalServiceError:
            raise
        except CircuitBreakerOpenException as e:
            raise ExternalServiceError("billing", str(e))
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError("billing", f"Pricing config unavailable: {e}")

    def _local_config(self) -> Optional[Dict[str, Any]]:
        if self._config is None:
            return None
        if self._clock() - self._fetched_at >= self.cache_ttl_seconds:
            self._config = None
            return None
        return self._config

    def _store_local(self, config: Dict[str, Any]):
        self._config = config
        self._fetched_at = self._clock()

    async def get_pricing_config(self) -> Optional[Dict[str, Any]]:
        """Cached pricing config, or None when the provider is unavailable."""
        if not self.enabled:
            return None

        config = self._local_config()
        if config is not None:
            return config

        if self.shared_cache is not None:
            config = await self.shared_cache.get_pricing_config()
            if config is not None:
                self._store_local(config)
                return config

        try:
            config = await self.fetch_pricing_config()
        except ExternalServiceError as e:
            self.logger.warning("Billing provider unavailable, using default limits", error=e.message)
            return None

        self._store_local(config)
        if self.shared_cache is not None:
            await self.shared_cache.set_pricing_config(config, self.cache_ttl_seconds)
        return config

    async def get_plan_limits(self, plan: Any) -> SubscriptionLimits:
        """Limits for a plan from the provider, falling back to static defaults."""
        plan_key = parse_plan_key(plan)
        config = await self.get_pricing_config()
        if config is None:
            return limits_for_plan(plan_key)

        for plan_config in config.get("plans", []):
            if not isinstance(plan_config, dict):
                continue
            if str(plan_config.get("id", "")).lower() != plan_key.value:
                continue
            metadata = plan_config.get("limits")
            if isinstance(metadata, dict):
                return parse_provider_limits(metadata)
            break

        self.logger.debug("No provider limits for plan, using defaults", plan=plan_key.value)
        return limits_for_plan(plan_key)

    async def refresh(self) -> bool:
        """Force a provider fetch, replacing cached config on success."""
        if not self.enabled:
            return False
        try:
            config = await self.fetch_pricing_config()
        except ExternalServiceError as e:
            self.logger.warning("Pricing config refresh failed", error=e.message)
            return False

        self._store_local(config)
        if self.shared_cache is not None:
            await self.shared_cache.set_pricing_config(config, self.cache_ttl_seconds)
        self.logger.info("Pricing config refreshed", plans=len(config.get("plans", [])))
        return True

    async def clear_cache(self):
        self._config = None
        self._fetched_at = 0.0
        if self.shared_cache is not None:
            await self.shared_cache.clear_cache()
