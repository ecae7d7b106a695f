"""
Subscription Limit Model.

Limits are derived, never stored per user: either from the static plan
tables below or from the billing provider's string-valued plan metadata.
"Unlimited" is ``math.inf`` everywhere inside the engine.
"""

import math
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from shared.logging import get_logger

logger = get_logger("entitlements.plans")

UNLIMITED = math.inf

# Finite stand-ins for "unlimited" seen in stored and provider data
UNLIMITED_THRESHOLD = 999999

PER_SHOW_MARKER = "per_show"

LimitNumber = Union[int, float]


class PlanKey(str, Enum):
    FREE = "free"
    STARTER = "starter"
    STANDARD = "standard"
    PRO = "pro"


class LimitScope(str, Enum):
    PER_ACCOUNT = "per_account"
    PER_SHOW = "per_show"


@dataclass(frozen=True)
class LimitValue:
    """A provider limit parsed once into its scope and numeric value."""
    scope: LimitScope
    value: LimitNumber

    @classmethod
    def parse(cls, raw: Any) -> Optional["LimitValue"]:
        """Parse ``"20"`` or ``"20per_show"``; ``None`` when unparseable."""
        if raw is None or isinstance(raw, bool):
            return None
        if isinstance(raw, (int, float)):
            value = normalize_limit(raw)
            return None if value is None else cls(LimitScope.PER_ACCOUNT, value)

        text = str(raw).strip().lower()
        scope = LimitScope.PER_ACCOUNT
        if text.endswith(PER_SHOW_MARKER):
            scope = LimitScope.PER_SHOW
            text = text[: -len(PER_SHOW_MARKER)].strip()

        value = normalize_limit(text)
        return None if value is None else cls(scope, value)


def normalize_limit(raw: Any) -> Optional[LimitNumber]:
    """Convert an inbound limit to a non-negative int or UNLIMITED.

    Returns ``None`` for values that cannot be read as a limit.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in ("unlimited", "infinity", "inf"):
            return UNLIMITED
        try:
            raw = int(text)
        except ValueError:
            return None
    if isinstance(raw, float):
        if math.isnan(raw):
            return None
        if math.isinf(raw):
            return UNLIMITED if raw > 0 else None
        raw = int(raw)
    if not isinstance(raw, int) or raw < 0:
        return None
    if raw >= UNLIMITED_THRESHOLD:
        return UNLIMITED
    return raw


def is_unlimited(value: LimitNumber) -> bool:
    return value == UNLIMITED


def render_limit(value: LimitNumber) -> Optional[int]:
    """Outbound form of a limit: ``None`` stands for unlimited."""
    return None if is_unlimited(value) else int(value)


@dataclass(frozen=True)
class SubscriptionLimits:
    """Numeric quotas, per account and per show, plus feature flags."""
    # Per-account limits (total across all shows)
    shows: LimitNumber
    boards: LimitNumber
    packing_boxes: LimitNumber
    props: LimitNumber
    archived_shows: LimitNumber
    collaborators_per_show: LimitNumber

    # Per-show limits
    boards_per_show: LimitNumber
    packing_boxes_per_show: LimitNumber
    props_per_show: LimitNumber

    # Feature flags
    can_create_shows: bool = True
    can_invite_collaborators: bool = True
    can_use_advanced_features: bool = False
    can_export_data: bool = False
    can_access_api: bool = False

    def get(self, key: str) -> LimitNumber:
        """Numeric limit by field name."""
        if key not in NUMERIC_LIMIT_FIELDS:
            raise KeyError(key)
        return getattr(self, key)

    def with_additions(self, additions: Mapping[str, int]) -> "SubscriptionLimits":
        changes = {key: self.get(key) + amount for key, amount in additions.items() if amount}
        return replace(self, **changes) if changes else self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = render_limit(value) if f.name in NUMERIC_LIMIT_FIELDS else value
        return data


NUMERIC_LIMIT_FIELDS = frozenset({
    "shows", "boards", "packing_boxes", "props", "archived_shows",
    "collaborators_per_show", "boards_per_show", "packing_boxes_per_show",
    "props_per_show",
})

PER_SHOW_FIELDS = frozenset({"boards_per_show", "packing_boxes_per_show", "props_per_show"})

PLAN_DEFAULTS: Dict[PlanKey, SubscriptionLimits] = {
    PlanKey.FREE: SubscriptionLimits(
        shows=1, boards=2, packing_boxes=20, props=10, archived_shows=0,
        collaborators_per_show=3,
        boards_per_show=2, packing_boxes_per_show=20, props_per_show=10,
        can_create_shows=True, can_invite_collaborators=True,
        can_use_advanced_features=False, can_export_data=False, can_access_api=False,
    ),
    PlanKey.STARTER: SubscriptionLimits(
        shows=3, boards=5, packing_boxes=200, props=50, archived_shows=2,
        collaborators_per_show=5,
        boards_per_show=3, packing_boxes_per_show=30, props_per_show=20,
        can_create_shows=True, can_invite_collaborators=True,
        can_use_advanced_features=True, can_export_data=True, can_access_api=False,
    ),
    PlanKey.STANDARD: SubscriptionLimits(
        shows=10, boards=20, packing_boxes=1000, props=100, archived_shows=5,
        collaborators_per_show=15,
        boards_per_show=5, packing_boxes_per_show=100, props_per_show=50,
        can_create_shows=True, can_invite_collaborators=True,
        can_use_advanced_features=True, can_export_data=True, can_access_api=True,
    ),
    PlanKey.PRO: SubscriptionLimits(
        shows=100, boards=200, packing_boxes=10000, props=1000, archived_shows=10,
        collaborators_per_show=100,
        boards_per_show=20, packing_boxes_per_show=1000, props_per_show=500,
        can_create_shows=True, can_invite_collaborators=True,
        can_use_advanced_features=True, can_export_data=True, can_access_api=True,
    ),
}

DEFAULT_LIMITS = PLAN_DEFAULTS[PlanKey.FREE]

UNLIMITED_LIMITS = SubscriptionLimits(
    **{name: UNLIMITED for name in NUMERIC_LIMIT_FIELDS},
    can_create_shows=True,
    can_invite_collaborators=True,
    can_use_advanced_features=True,
    can_export_data=True,
    can_access_api=True,
)

# Provider metadata key -> (limit field, expected scope, fallback when absent)
PROVIDER_LIMIT_KEYS = {
    "shows": ("shows", LimitScope.PER_ACCOUNT, 1),
    "boards": ("boards", LimitScope.PER_ACCOUNT, 2),
    "packing_boxes": ("packing_boxes", LimitScope.PER_ACCOUNT, 20),
    "props": ("props", LimitScope.PER_ACCOUNT, 10),
    "archived_shows": ("archived_shows", LimitScope.PER_ACCOUNT, 0),
    "collaborators": ("collaborators_per_show", LimitScope.PER_ACCOUNT, 3),
    "boards_per_show": ("boards_per_show", LimitScope.PER_SHOW, 2),
    "packing_boxes_per_show": ("packing_boxes_per_show", LimitScope.PER_SHOW, 20),
    "props_per_show": ("props_per_show", LimitScope.PER_SHOW, 10),
}

# Flag key -> default; True flags stay on unless explicitly "false",
# False flags stay off unless explicitly "true"
PROVIDER_FLAG_DEFAULTS = {
    "can_create_shows": True,
    "can_invite_collaborators": True,
    "can_use_advanced_features": False,
    "can_export_data": False,
    "can_access_api": False,
}


def parse_plan_key(raw: Any) -> PlanKey:
    """Map a stored plan name onto a plan; anything unrecognised is free."""
    if isinstance(raw, PlanKey):
        return raw
    try:
        return PlanKey(str(raw or "").strip().lower())
    except ValueError:
        return PlanKey.FREE


def limits_for_plan(plan: Any) -> SubscriptionLimits:
    """Built-in limits for a plan name; unknown names get the free plan."""
    return PLAN_DEFAULTS[parse_plan_key(plan)]


def _parse_flag(raw: Any, default: bool) -> bool:
    text = str(raw).strip().lower() if raw is not None else ""
    if default:
        return text != "false"
    return text == "true"


def parse_provider_limits(metadata: Optional[Mapping[str, Any]]) -> SubscriptionLimits:
    """Parse a billing provider's flat plan metadata map.

    Absent, unparseable or wrongly scoped values fall back to a per-field
    default rather than zero. Never raises.
    """
    metadata = metadata or {}
    values: Dict[str, Any] = {}

    for key, (field_name, scope, default) in PROVIDER_LIMIT_KEYS.items():
        raw = metadata.get(key)
        parsed = LimitValue.parse(raw) if raw not in (None, "") else None
        if parsed is None:
            if raw not in (None, ""):
                logger.warning("Unparseable provider limit, using default", key=key, value=str(raw))
            values[field_name] = default
        elif parsed.scope != scope:
            logger.warning(
                "Provider limit has unexpected scope, using default",
                key=key, value=str(raw), scope=parsed.scope.value,
            )
            values[field_name] = default
        else:
            values[field_name] = parsed.value

    for key, default in PROVIDER_FLAG_DEFAULTS.items():
        values[key] = _parse_flag(metadata.get(key), default)

    return SubscriptionLimits(**values)
