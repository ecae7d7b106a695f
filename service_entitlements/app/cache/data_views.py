"""
Data-View Cache.

Plain memoization of role display configurations keyed by
``(user_id, show_id or "global", role)``. Entries expire lazily on read.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..roles.data_views import (
    DataViewConfig, get_priority_fields_for_role, get_quick_actions_for_role,
    get_role_data_view, is_field_visible_for_role,
)
from ..roles.hierarchy import role_of
from ..roles.models import SystemRole, UserProfile

CacheKey = Tuple[str, str, str]

DEFAULT_TTL_SECONDS = 300


def cache_key(user_id: str, show_id: Optional[str], role: SystemRole) -> CacheKey:
    return (user_id, show_id or "global", role.value)


@dataclass
class _Entry:
    config: DataViewConfig
    stored_at: float
    ttl: float


class DataViewCache:
    """TTL cache; expired entries are dropped when read."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Optional[Callable[[], float]] = None):
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: Dict[CacheKey, _Entry] = {}

    def get(self, key: CacheKey) -> Optional[DataViewConfig]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at > entry.ttl:
            del self._entries[key]
            return None
        return entry.config

    def set(self, key: CacheKey, config: DataViewConfig, ttl: Optional[float] = None):
        self._entries[key] = _Entry(config, self._clock(), self.ttl_seconds if ttl is None else ttl)

    def clear(self):
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class DataViewResult:
    config: DataViewConfig
    role: SystemRole
    source: str
    is_custom: bool = False


class DataViewService:
    """Role data views for users, read through one shared DataViewCache."""

    def __init__(self, cache: Optional[DataViewCache] = None, metrics: Optional[MetricsCollector] = None):
        self.cache = cache or DataViewCache()
        self.metrics = metrics
        self.logger = get_logger("entitlements.data_views")

    def _record_lookup(self, result: str):
        if self.metrics is not None:
            self.metrics.increment_counter("data_view_cache_lookups_total", result=result)

    def get_effective_data_view(self, profile: Optional[UserProfile], show_id: Optional[str] = None) -> DataViewResult:
        """Effective data view for the profile's role, tagged with where it came from.

        ``cached``: a live cache entry. ``default``: a cache miss, answered with
        the role's built-in view, which is then cached. ``computed``: no usable
        profile, answered with Viewer's view and not cached.
        """
        if profile is None or not profile.uid:
            return DataViewResult(get_role_data_view(SystemRole.VIEWER).config, SystemRole.VIEWER, "computed")

        role = role_of(profile)
        key = cache_key(profile.uid, show_id, role)

        cached = self.cache.get(key)
        if cached is not None:
            self._record_lookup("hit")
            self.logger.debug("Data view cache hit", role=role.value)
            return DataViewResult(cached, role, "cached")

        self._record_lookup("miss")
        config = get_role_data_view(role).config
        self.cache.set(key, config)
        return DataViewResult(config, role, "default")

    def is_field_visible(self, field_name: str, profile: Optional[UserProfile]) -> bool:
        return is_field_visible_for_role(field_name, role_of(profile))

    def get_priority_fields(self, profile: Optional[UserProfile]) -> Tuple[str, ...]:
        return get_priority_fields_for_role(role_of(profile))

    def get_quick_actions(self, profile: Optional[UserProfile]) -> Tuple[str, ...]:
        return get_quick_actions_for_role(role_of(profile))

    def filter_prop_data(self, prop_data: Dict[str, Any], profile: Optional[UserProfile]) -> Dict[str, Any]:
        """Only the fields the profile's role may see."""
        role = role_of(profile)
        return {key: value for key, value in prop_data.items() if is_field_visible_for_role(key, role)}

    def clear_cache(self):
        self.cache.clear()
        self.logger.info("Data view cache cleared")

    def cache_stats(self) -> Dict[str, Any]:
        return {"size": self.cache.size(), "ttl_seconds": self.cache.ttl_seconds}
