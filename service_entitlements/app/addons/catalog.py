"""
Add-on catalog.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from ..plans.limits import PlanKey


class AddOnType(str, Enum):
    SHOWS = "shows"
    PROPS = "props"
    PACKING_BOXES = "packing_boxes"
    ARCHIVED_SHOWS = "archived_shows"


# Limit field extended by each add-on type
ADDON_LIMIT_FIELDS: Dict[AddOnType, str] = {
    AddOnType.SHOWS: "shows",
    AddOnType.PROPS: "props",
    AddOnType.PACKING_BOXES: "packing_boxes",
    AddOnType.ARCHIVED_SHOWS: "archived_shows",
}

PURCHASABLE_PLANS = frozenset({PlanKey.STANDARD, PlanKey.PRO})


@dataclass(frozen=True)
class AddOn:
    """A purchasable add-on definition."""
    id: str
    type: AddOnType
    name: str
    description: str
    quantity: int
    target_plans: Tuple[PlanKey, ...]
    monthly_price: int
    yearly_price: int
    popular: bool = False
    features: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "description": self.description,
            "quantity": self.quantity,
            "target_plans": [plan.value for plan in self.target_plans],
            "monthly_price": self.monthly_price,
            "yearly_price": self.yearly_price,
            "popular": self.popular,
            "features": list(self.features),
        }


def _addon(addon_id, addon_type, quantity, monthly_price, noun, features, popular=False) -> AddOn:
    return AddOn(
        id=addon_id,
        type=addon_type,
        name=f"{quantity} Additional {noun}",
        description=f"Add {quantity} more {noun.lower()} to your account",
        quantity=quantity,
        target_plans=(PlanKey.STANDARD, PlanKey.PRO),
        monthly_price=monthly_price,
        yearly_price=monthly_price * 10,
        popular=popular,
        features=(f"{quantity} additional {noun.lower()}",) + features,
    )


_SHOW_FEATURES = ("Full show functionality", "Priority support")
_PROP_FEATURES = ("Image storage included", "Search functionality")
_PACKING_FEATURES = ("Organizational tools", "Export functionality")
_ARCHIVE_FEATURES = ("Complete data preservation", "Restoration capability")

DEFAULT_ADDONS: Tuple[AddOn, ...] = (
    _addon("shows_5", AddOnType.SHOWS, 5, 12, "Shows", _SHOW_FEATURES, popular=True),
    _addon("shows_10", AddOnType.SHOWS, 10, 20, "Shows", _SHOW_FEATURES),
    _addon("shows_25", AddOnType.SHOWS, 25, 40, "Shows", _SHOW_FEATURES),

    _addon("props_100", AddOnType.PROPS, 100, 4, "Props", _PROP_FEATURES, popular=True),
    _addon("props_500", AddOnType.PROPS, 500, 15, "Props", _PROP_FEATURES),
    _addon("props_1000", AddOnType.PROPS, 1000, 25, "Props", _PROP_FEATURES),

    _addon("packing_100", AddOnType.PACKING_BOXES, 100, 2, "Packing Boxes", _PACKING_FEATURES),
    _addon("packing_500", AddOnType.PACKING_BOXES, 500, 8, "Packing Boxes", _PACKING_FEATURES),
    _addon("packing_1000", AddOnType.PACKING_BOXES, 1000, 12, "Packing Boxes", _PACKING_FEATURES),

    _addon("archived_5", AddOnType.ARCHIVED_SHOWS, 5, 2, "Archived Shows", _ARCHIVE_FEATURES),
    _addon("archived_10", AddOnType.ARCHIVED_SHOWS, 10, 3, "Archived Shows", _ARCHIVE_FEATURES),
    _addon("archived_25", AddOnType.ARCHIVED_SHOWS, 25, 6, "Archived Shows", _ARCHIVE_FEATURES),
)


class AddOnCatalog:
    """Versioned in-memory lookup over add-on definitions."""

    def __init__(self, addons: Iterable[AddOn] = DEFAULT_ADDONS, version: str = "2024.1"):
        self._addons: Dict[str, AddOn] = {addon.id: addon for addon in addons}
        self.version = version

    def __len__(self) -> int:
        return len(self._addons)

    def __iter__(self):
        return iter(self._addons.values())

    def get(self, addon_id: str) -> Optional[AddOn]:
        return self._addons.get(addon_id)

    def for_plan(self, plan: PlanKey) -> List[AddOn]:
        return [addon for addon in self._addons.values() if plan in addon.target_plans]

    def by_type(self, addon_type: AddOnType) -> List[AddOn]:
        return [addon for addon in self._addons.values() if addon.type == addon_type]


def can_purchase_add_ons(plan: PlanKey) -> bool:
    return plan in PURCHASABLE_PLANS
