"""
Role-based prop data views.

Each role has a static display configuration describing which prop fields
it sees, which it sees first, and which quick actions its cards offer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from .models import SystemRole


class PropFieldCategory(str, Enum):
    LOCATION = "location"
    FINANCIAL = "financial"
    MAINTENANCE = "maintenance"
    CREATIVE = "creative"
    LOGISTICS = "logistics"
    SAFETY = "safety"
    TECHNICAL = "technical"
    ADMINISTRATIVE = "administrative"


@dataclass(frozen=True)
class PropFieldDefinition:
    name: str
    category: PropFieldCategory
    label: str
    priority: str = "medium"


@dataclass(frozen=True)
class DataViewConfig:
    """Field visibility and card presentation for one role."""
    visible_fields: Tuple[str, ...]
    hidden_fields: Tuple[str, ...]
    priority_fields: Tuple[str, ...]
    visible_categories: Tuple[PropFieldCategory, ...]
    hidden_categories: Tuple[PropFieldCategory, ...]
    card_layout: str = "detailed"
    show_images: bool = True
    show_status_indicators: bool = True
    quick_actions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {
            "visible_fields": list(self.visible_fields),
            "hidden_fields": list(self.hidden_fields),
            "priority_fields": list(self.priority_fields),
            "visible_categories": [c.value for c in self.visible_categories],
            "hidden_categories": [c.value for c in self.hidden_categories],
            "card_layout": self.card_layout,
            "show_images": self.show_images,
            "show_status_indicators": self.show_status_indicators,
            "quick_actions": list(self.quick_actions),
        }


@dataclass(frozen=True)
class RoleDataView:
    role: SystemRole
    display_name: str
    description: str
    config: DataViewConfig


def _field(name: str, category: PropFieldCategory, label: str, priority: str) -> Tuple[str, PropFieldDefinition]:
    return name, PropFieldDefinition(name, category, label, priority)


C = PropFieldCategory

PROP_FIELD_DEFINITIONS: Dict[str, PropFieldDefinition] = dict([
    _field("location", C.LOCATION, "Location", "high"),
    _field("currentLocation", C.LOCATION, "Current Location", "high"),
    _field("act", C.LOCATION, "Act", "high"),
    _field("scene", C.LOCATION, "Scene", "high"),

    _field("price", C.FINANCIAL, "Price", "medium"),
    _field("replacementCost", C.FINANCIAL, "Replacement Cost", "low"),
    _field("repairEstimate", C.FINANCIAL, "Repair Estimate", "low"),

    _field("maintenanceNotes", C.MAINTENANCE, "Maintenance Notes", "high"),
    _field("nextMaintenanceDue", C.MAINTENANCE, "Next Maintenance", "high"),
    _field("condition", C.MAINTENANCE, "Condition", "high"),
    _field("lastInspectionDate", C.MAINTENANCE, "Last Inspection", "medium"),

    _field("description", C.CREATIVE, "Description", "high"),
    _field("usageInstructions", C.CREATIVE, "Usage Instructions", "high"),
    _field("notes", C.CREATIVE, "Notes", "medium"),
    _field("images", C.CREATIVE, "Images", "medium"),

    _field("quantity", C.LOGISTICS, "Quantity", "high"),
    _field("dimensions", C.LOGISTICS, "Dimensions", "medium"),
    _field("weight", C.LOGISTICS, "Weight", "medium"),
    _field("source", C.LOGISTICS, "Source", "medium"),

    _field("safetyNotes", C.SAFETY, "Safety Notes", "high"),
    _field("isHazardous", C.SAFETY, "Hazardous", "high"),
    _field("isBreakable", C.SAFETY, "Breakable", "medium"),

    _field("powerRequirements", C.TECHNICAL, "Power Requirements", "medium"),
    _field("specialRequirements", C.TECHNICAL, "Special Requirements", "medium"),
    _field("batteryType", C.TECHNICAL, "Battery Type", "low"),

    _field("status", C.ADMINISTRATIVE, "Status", "high"),
    _field("category", C.ADMINISTRATIVE, "Category", "medium"),
    _field("tags", C.ADMINISTRATIVE, "Tags", "low"),
    _field("createdAt", C.ADMINISTRATIVE, "Created", "low"),
])

ALL_FIELDS = tuple(PROP_FIELD_DEFINITIONS)
ALL_CATEGORIES = tuple(PropFieldCategory)


def _full_access(priority_fields, quick_actions) -> DataViewConfig:
    return DataViewConfig(
        visible_fields=ALL_FIELDS,
        hidden_fields=(),
        priority_fields=tuple(priority_fields),
        visible_categories=ALL_CATEGORIES,
        hidden_categories=(),
        quick_actions=tuple(quick_actions),
    )


ROLE_DATA_VIEWS: Dict[SystemRole, RoleDataView] = {
    SystemRole.STAGE_MANAGER: RoleDataView(
        role=SystemRole.STAGE_MANAGER,
        display_name="Stage Manager",
        description="Prop location, usage and maintenance for show operations",
        config=DataViewConfig(
            visible_fields=("location", "currentLocation", "act", "scene", "usageInstructions",
                            "maintenanceNotes", "condition", "safetyNotes"),
            hidden_fields=("price", "replacementCost", "repairEstimate", "source", "purchaseUrl"),
            priority_fields=("currentLocation", "act", "scene", "usageInstructions", "maintenanceNotes"),
            visible_categories=(C.LOCATION, C.MAINTENANCE, C.CREATIVE, C.SAFETY),
            hidden_categories=(C.FINANCIAL,),
            quick_actions=("updateLocation", "addMaintenanceNote", "reportIssue", "markReady"),
        ),
    ),
    SystemRole.ASSISTANT_STAGE_MANAGER: RoleDataView(
        role=SystemRole.ASSISTANT_STAGE_MANAGER,
        display_name="Assistant Stage Manager",
        description="Stage management view with a shipping and logistics focus",
        config=DataViewConfig(
            visible_fields=("location", "currentLocation", "act", "scene", "usageInstructions",
                            "maintenanceNotes", "condition", "shippingCrateDetails", "travelsUnboxed"),
            hidden_fields=("price", "replacementCost", "repairEstimate"),
            priority_fields=("currentLocation", "act", "scene", "usageInstructions", "shippingCrateDetails"),
            visible_categories=(C.LOCATION, C.MAINTENANCE, C.CREATIVE, C.LOGISTICS),
            hidden_categories=(C.FINANCIAL,),
            quick_actions=("updateLocation", "addMaintenanceNote", "updateShipping", "markReady"),
        ),
    ),
    SystemRole.PROP_MAKER: RoleDataView(
        role=SystemRole.PROP_MAKER,
        display_name="Prop Maker",
        description="Materials, construction details and work progress",
        config=DataViewConfig(
            visible_fields=("description", "materials", "dimensions", "weight", "specialRequirements",
                            "notes", "images", "status"),
            hidden_fields=("price", "replacementCost", "act", "scene", "rentalDueDate"),
            priority_fields=("description", "materials", "specialRequirements", "status", "notes"),
            visible_categories=(C.CREATIVE, C.TECHNICAL, C.LOGISTICS),
            hidden_categories=(C.FINANCIAL, C.LOCATION),
            quick_actions=("updateStatus", "addNote", "uploadImage", "requestMaterials"),
        ),
    ),
    SystemRole.ART_DIRECTOR: RoleDataView(
        role=SystemRole.ART_DIRECTOR,
        display_name="Art Director",
        description="Design specifications, budget and creative requirements",
        config=DataViewConfig(
            visible_fields=("description", "images", "price", "replacementCost", "source", "purchaseUrl",
                            "notes", "specialRequirements"),
            hidden_fields=("act", "scene", "maintenanceNotes", "lastInspectionDate"),
            priority_fields=("description", "images", "price", "source", "specialRequirements"),
            visible_categories=(C.CREATIVE, C.FINANCIAL, C.LOGISTICS),
            hidden_categories=(C.LOCATION, C.MAINTENANCE),
            quick_actions=("updateDescription", "addImage", "updatePrice", "findSource"),
        ),
    ),
    SystemRole.PROPS_SUPERVISOR: RoleDataView(
        role=SystemRole.PROPS_SUPERVISOR,
        display_name="Props Supervisor",
        description="All prop information and management capabilities",
        config=_full_access(
            ("status", "location", "condition", "maintenanceNotes", "price"),
            ("editProp", "deleteProp", "duplicateProp", "exportData", "manageTeam"),
        ),
    ),
    SystemRole.PROPS_SUPERVISOR_ASSISTANT: RoleDataView(
        role=SystemRole.PROPS_SUPERVISOR_ASSISTANT,
        display_name="Props Supervisor Assistant",
        description="Assistant to the props supervisor with most capabilities",
        config=_full_access(
            ("status", "location", "condition", "maintenanceNotes"),
            ("editProp", "duplicateProp", "exportData", "updateStatus"),
        ),
    ),
    SystemRole.GOD: RoleDataView(
        role=SystemRole.GOD,
        display_name="God User",
        description="Complete system access",
        config=_full_access(
            ("status", "location", "condition", "maintenanceNotes", "price"),
            ("editProp", "deleteProp", "duplicateProp", "exportData", "manageSystem", "customizeViews"),
        ),
    ),
    SystemRole.ADMIN: RoleDataView(
        role=SystemRole.ADMIN,
        display_name="Administrator",
        description="All prop information",
        config=_full_access(
            ("status", "location", "condition", "maintenanceNotes"),
            ("editProp", "deleteProp", "duplicateProp", "exportData"),
        ),
    ),
    SystemRole.EDITOR: RoleDataView(
        role=SystemRole.EDITOR,
        display_name="Editor",
        description="Full editing access to prop information",
        config=_full_access(
            ("status", "location", "condition", "description"),
            ("editProp", "duplicateProp", "exportData"),
        ),
    ),
    SystemRole.VIEWER: RoleDataView(
        role=SystemRole.VIEWER,
        display_name="Viewer",
        description="Read-only access to prop information",
        config=DataViewConfig(
            visible_fields=("name", "description", "category", "status", "location", "images"),
            hidden_fields=("price", "replacementCost", "maintenanceNotes", "safetyNotes"),
            priority_fields=("name", "description", "status", "location"),
            visible_categories=(C.CREATIVE, C.LOCATION, C.ADMINISTRATIVE),
            hidden_categories=(C.FINANCIAL, C.MAINTENANCE, C.SAFETY),
            card_layout="compact",
            show_status_indicators=False,
            quick_actions=("viewDetails",),
        ),
    ),
}


def get_role_data_view(role: SystemRole) -> RoleDataView:
    return ROLE_DATA_VIEWS.get(role) or ROLE_DATA_VIEWS[SystemRole.VIEWER]


def is_field_visible_for_role(field_name: str, role: SystemRole) -> bool:
    """Resolve visibility of one prop field.

    Order: explicitly hidden, explicitly visible, hidden category, visible
    category. Fields without a definition, or not covered by any rule, are
    not visible.
    """
    definition = PROP_FIELD_DEFINITIONS.get(field_name)
    if definition is None:
        return False

    config = get_role_data_view(role).config
    if field_name in config.hidden_fields:
        return False
    if field_name in config.visible_fields:
        return True
    if definition.category in config.hidden_categories:
        return False
    return definition.category in config.visible_categories


def get_priority_fields_for_role(role: SystemRole) -> Tuple[str, ...]:
    return get_role_data_view(role).config.priority_fields


def get_quick_actions_for_role(role: SystemRole) -> Tuple[str, ...]:
    return get_role_data_view(role).config.quick_actions
