"""
Add-On Composer.

Combines base plan limits with a user's purchased add-ons. Only the four
additive fields (shows, props, packing boxes, archived shows) are ever
extended; per-show limits, collaborators and feature flags pass through.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from shared.logging import get_logger

from ..plans.limits import SubscriptionLimits
from .catalog import ADDON_LIMIT_FIELDS, AddOnCatalog

logger = get_logger("entitlements.addons")

DEFAULT_CATALOG = AddOnCatalog()


class AddOnStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


def to_datetime(value: Any) -> Optional[datetime]:
    """Normalise a stored timestamp (epoch millis, ISO string or datetime) to aware UTC."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


@dataclass(frozen=True)
class UserAddOn:
    """A purchased add-on record."""
    id: str
    user_id: str
    add_on_id: str
    quantity: int
    status: AddOnStatus
    billing_interval: str = "monthly"
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, data: Dict[str, Any], user_id: str = "") -> Optional["UserAddOn"]:
        """Build from a stored record; malformed records yield None."""
        add_on_id = data.get("addOnId")
        if not add_on_id:
            return None
        try:
            status = AddOnStatus(str(data.get("status", "")).lower())
        except ValueError:
            logger.warning("Add-on with unknown status ignored", add_on_id=str(add_on_id), status=str(data.get("status")))
            return None
        try:
            quantity = int(data.get("quantity") or 0)
        except (TypeError, ValueError):
            quantity = 0

        return cls(
            id=str(data.get("id") or add_on_id),
            user_id=str(data.get("userId") or user_id),
            add_on_id=str(add_on_id),
            quantity=quantity,
            status=status,
            billing_interval=str(data.get("billingInterval") or "monthly"),
            created_at=to_datetime(data.get("createdAt")),
            cancelled_at=to_datetime(data.get("cancelledAt")),
            expires_at=to_datetime(data.get("expiresAt")),
        )

    def is_active(self, now: datetime) -> bool:
        if self.status != AddOnStatus.ACTIVE:
            return False
        return self.expires_at is None or self.expires_at > now


def active_add_ons(user_add_ons: Iterable[UserAddOn], now: datetime) -> List[UserAddOn]:
    """Active status and not past expiry, regardless of what the stored status says."""
    now = to_datetime(now)
    return [addon for addon in user_add_ons if addon.is_active(now)]


def add_on_totals(add_ons: Iterable[UserAddOn], catalog: AddOnCatalog = DEFAULT_CATALOG) -> Dict[str, int]:
    """Per limit field, the catalog quantity summed over active-status add-ons."""
    totals: Dict[str, int] = {}
    for user_add_on in add_ons:
        if user_add_on.status != AddOnStatus.ACTIVE:
            continue
        definition = catalog.get(user_add_on.add_on_id)
        if definition is None:
            logger.warning("Add-on not in catalog, ignoring", add_on_id=user_add_on.add_on_id)
            continue
        field_name = ADDON_LIMIT_FIELDS[definition.type]
        totals[field_name] = totals.get(field_name, 0) + definition.quantity
    return totals


def effective_limits(
    base: SubscriptionLimits,
    add_ons: Iterable[UserAddOn],
    catalog: AddOnCatalog = DEFAULT_CATALOG,
) -> SubscriptionLimits:
    """Base limits extended by add-ons; unknown catalog ids contribute zero."""
    return base.with_additions(add_on_totals(add_ons, catalog))
