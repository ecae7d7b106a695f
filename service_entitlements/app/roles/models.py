"""
Role and profile data models for Entitlements Service.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional


class SystemRole(str, Enum):
    """System roles. Ranks live in hierarchy.ROLE_HIERARCHY."""
    GOD = "god"
    ADMIN = "admin"
    PROPS_SUPERVISOR = "props_supervisor"
    PROPS_SUPERVISOR_ASSISTANT = "props_supervisor_assistant"
    STAGE_MANAGER = "stage_manager"
    ASSISTANT_STAGE_MANAGER = "assistant_stage_manager"
    PROP_MAKER = "prop_maker"
    ART_DIRECTOR = "art_director"
    EDITOR = "editor"
    VIEWER = "viewer"


class Permission(str, Enum):
    """Granular capabilities granted by roles or explicit overrides."""
    # User management
    MANAGE_USERS = "manage_users"
    ASSIGN_ROLES = "assign_roles"
    VIEW_USER_PROFILES = "view_user_profiles"

    # Shows
    CREATE_SHOWS = "create_shows"
    EDIT_SHOWS = "edit_shows"
    DELETE_SHOWS = "delete_shows"
    ARCHIVE_SHOWS = "archive_shows"
    VIEW_SHOWS = "view_shows"

    # Team
    INVITE_TEAM_MEMBERS = "invite_team_members"
    REMOVE_TEAM_MEMBERS = "remove_team_members"
    MANAGE_TEAM_ROLES = "manage_team_roles"

    # Props
    CREATE_PROPS = "create_props"
    EDIT_PROPS = "edit_props"
    DELETE_PROPS = "delete_props"
    VIEW_PROPS = "view_props"
    VIEW_ALL_PROPS = "view_all_props"

    # Boards
    CREATE_BOARDS = "create_boards"
    EDIT_BOARDS = "edit_boards"
    DELETE_BOARDS = "delete_boards"
    VIEW_BOARDS = "view_boards"

    # Packing
    CREATE_PACKING_BOXES = "create_packing_boxes"
    EDIT_PACKING_BOXES = "edit_packing_boxes"
    DELETE_PACKING_BOXES = "delete_packing_boxes"
    VIEW_PACKING_BOXES = "view_packing_boxes"

    # Data
    EXPORT_DATA = "export_data"

    # System administration
    VIEW_SYSTEM_LOGS = "view_system_logs"
    MANAGE_SYSTEM_SETTINGS = "manage_system_settings"
    ACCESS_ADMIN_PANEL = "access_admin_panel"

    # Billing
    VIEW_BILLING = "view_billing"
    MANAGE_SUBSCRIPTIONS = "manage_subscriptions"
    PURCHASE_ADDONS = "purchase_addons"


@dataclass(frozen=True)
class UserProfile:
    """User identity with its assigned role and optional permission overrides.

    ``role`` is always a resolved SystemRole; use ``UserProfile.from_document``
    to build a profile from raw stored data so unknown role strings are
    normalised in one place.
    """
    uid: str
    email: str = ""
    display_name: Optional[str] = None
    role: SystemRole = SystemRole.VIEWER
    permissions: Mapping[Permission, bool] = field(default_factory=dict)
    groups: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_document(cls, uid: str, data: Optional[Dict[str, Any]]) -> "UserProfile":
        """Build a profile from a stored profile document."""
        # Local import: hierarchy imports this module.
        from .hierarchy import resolve_role, parse_permission_overrides

        data = data or {}
        groups = data.get("groups") or {}
        if isinstance(groups, dict):
            group_names = frozenset(name for name, enabled in groups.items() if enabled is True)
        else:
            group_names = frozenset(str(name) for name in groups)

        return cls(
            uid=uid,
            email=str(data.get("email") or ""),
            display_name=data.get("displayName"),
            role=resolve_role(data.get("role")),
            permissions=parse_permission_overrides(data.get("permissions")),
            groups=group_names,
        )
