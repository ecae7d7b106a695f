"""
Role hierarchy and capability resolution.

Roles form a ladder ranked by ROLE_HIERARCHY. Specialist roles share a
single rank so they compare equal to each other while still sitting above
Editor and below Props Supervisor Assistant.
"""

from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

from shared.logging import get_logger

from .models import Permission, SystemRole, UserProfile

logger = get_logger("entitlements.roles")

# Higher number = higher privilege
ROLE_HIERARCHY: Dict[SystemRole, int] = {
    SystemRole.GOD: 100,
    SystemRole.ADMIN: 90,
    SystemRole.PROPS_SUPERVISOR: 80,
    SystemRole.PROPS_SUPERVISOR_ASSISTANT: 70,
    SystemRole.STAGE_MANAGER: 50,
    SystemRole.ASSISTANT_STAGE_MANAGER: 50,
    SystemRole.PROP_MAKER: 50,
    SystemRole.ART_DIRECTOR: 50,
    SystemRole.EDITOR: 40,
    SystemRole.VIEWER: 10,
}

DEFAULT_ROLE = SystemRole.VIEWER

# Quota checks short-circuit to unlimited for these
EXEMPT_ROLES: FrozenSet[SystemRole] = frozenset({SystemRole.GOD, SystemRole.ADMIN})

SYSTEM_ADMIN_GROUP = "system-admin"

ROLE_DISPLAY_NAMES: Dict[SystemRole, str] = {
    SystemRole.GOD: "God",
    SystemRole.ADMIN: "Administrator",
    SystemRole.PROPS_SUPERVISOR: "Props Supervisor",
    SystemRole.PROPS_SUPERVISOR_ASSISTANT: "Props Supervisor Assistant",
    SystemRole.STAGE_MANAGER: "Stage Manager",
    SystemRole.ASSISTANT_STAGE_MANAGER: "Assistant Stage Manager",
    SystemRole.PROP_MAKER: "Prop Maker",
    SystemRole.ART_DIRECTOR: "Art Director",
    SystemRole.EDITOR: "Editor",
    SystemRole.VIEWER: "Viewer",
}

# Legacy role strings still found on older profile documents
ROLE_ALIASES: Dict[str, SystemRole] = {
    "user": SystemRole.VIEWER,
    "props_carpenter": SystemRole.PROP_MAKER,
    "props_supervisor_assistant": SystemRole.PROPS_SUPERVISOR_ASSISTANT,
    "props-supervisor-assistant": SystemRole.PROPS_SUPERVISOR_ASSISTANT,
}

# Lowest role on the ladder that holds each permission by default
PERMISSION_MINIMUM_ROLES: Dict[Permission, SystemRole] = {
    Permission.MANAGE_USERS: SystemRole.ADMIN,
    Permission.ASSIGN_ROLES: SystemRole.ADMIN,
    Permission.VIEW_USER_PROFILES: SystemRole.PROPS_SUPERVISOR,

    Permission.CREATE_SHOWS: SystemRole.EDITOR,
    Permission.EDIT_SHOWS: SystemRole.EDITOR,
    Permission.DELETE_SHOWS: SystemRole.ADMIN,
    Permission.ARCHIVE_SHOWS: SystemRole.PROPS_SUPERVISOR,
    Permission.VIEW_SHOWS: SystemRole.VIEWER,

    Permission.INVITE_TEAM_MEMBERS: SystemRole.EDITOR,
    Permission.REMOVE_TEAM_MEMBERS: SystemRole.PROPS_SUPERVISOR,
    Permission.MANAGE_TEAM_ROLES: SystemRole.PROPS_SUPERVISOR,

    Permission.CREATE_PROPS: SystemRole.EDITOR,
    Permission.EDIT_PROPS: SystemRole.EDITOR,
    Permission.DELETE_PROPS: SystemRole.PROPS_SUPERVISOR,
    Permission.VIEW_PROPS: SystemRole.VIEWER,
    Permission.VIEW_ALL_PROPS: SystemRole.PROPS_SUPERVISOR,

    Permission.CREATE_BOARDS: SystemRole.EDITOR,
    Permission.EDIT_BOARDS: SystemRole.EDITOR,
    Permission.DELETE_BOARDS: SystemRole.PROPS_SUPERVISOR_ASSISTANT,
    Permission.VIEW_BOARDS: SystemRole.VIEWER,

    Permission.CREATE_PACKING_BOXES: SystemRole.EDITOR,
    Permission.EDIT_PACKING_BOXES: SystemRole.EDITOR,
    Permission.DELETE_PACKING_BOXES: SystemRole.PROPS_SUPERVISOR_ASSISTANT,
    Permission.VIEW_PACKING_BOXES: SystemRole.VIEWER,

    Permission.EXPORT_DATA: SystemRole.EDITOR,

    Permission.VIEW_SYSTEM_LOGS: SystemRole.ADMIN,
    Permission.MANAGE_SYSTEM_SETTINGS: SystemRole.GOD,
    Permission.ACCESS_ADMIN_PANEL: SystemRole.ADMIN,

    Permission.VIEW_BILLING: SystemRole.VIEWER,
    Permission.MANAGE_SUBSCRIPTIONS: SystemRole.EDITOR,
    Permission.PURCHASE_ADDONS: SystemRole.EDITOR,
}

# Extra capabilities held by specialists on top of their ladder rank
SPECIALIST_PERMISSIONS: Dict[SystemRole, FrozenSet[Permission]] = {
    SystemRole.STAGE_MANAGER: frozenset({Permission.VIEW_ALL_PROPS}),
    SystemRole.ASSISTANT_STAGE_MANAGER: frozenset({Permission.VIEW_ALL_PROPS}),
    SystemRole.ART_DIRECTOR: frozenset({Permission.VIEW_ALL_PROPS}),
}


def _build_default_permissions() -> Dict[SystemRole, FrozenSet[Permission]]:
    defaults = {}
    for role, rank in ROLE_HIERARCHY.items():
        granted = {
            permission
            for permission, minimum in PERMISSION_MINIMUM_ROLES.items()
            if rank >= ROLE_HIERARCHY[minimum]
        }
        granted |= SPECIALIST_PERMISSIONS.get(role, frozenset())
        defaults[role] = frozenset(granted)
    return defaults


DEFAULT_ROLE_PERMISSIONS: Dict[SystemRole, FrozenSet[Permission]] = _build_default_permissions()


def resolve_role(value: Any) -> SystemRole:
    """Normalise a stored role value; unknown values become Viewer."""
    if isinstance(value, SystemRole):
        return value
    if value is None or value == "":
        return DEFAULT_ROLE

    key = str(value).strip().lower()
    try:
        return SystemRole(key)
    except ValueError:
        pass

    if key in ROLE_ALIASES:
        return ROLE_ALIASES[key]

    logger.warning("Unrecognized role, treating as viewer", role=str(value))
    return DEFAULT_ROLE


def parse_permission_overrides(raw: Any) -> Dict[Permission, bool]:
    """Parse a stored ``{permission: bool}`` map, dropping unknown keys."""
    if not isinstance(raw, dict):
        return {}

    overrides = {}
    for name, granted in raw.items():
        try:
            permission = Permission(str(name).lower())
        except ValueError:
            logger.warning("Ignoring unknown permission override", permission=str(name))
            continue
        overrides[permission] = granted is True or str(granted).lower() == "true"
    return overrides


def role_of(profile: Optional[UserProfile]) -> SystemRole:
    """Role of a profile; a missing profile is a Viewer."""
    if profile is None:
        return DEFAULT_ROLE
    return profile.role


def role_rank(role: Union[SystemRole, str, None]) -> int:
    return ROLE_HIERARCHY[resolve_role(role)]


def get_role_rank(profile: Optional[UserProfile]) -> int:
    return ROLE_HIERARCHY[role_of(profile)]


def role_display_name(role: Union[SystemRole, str, None]) -> str:
    return ROLE_DISPLAY_NAMES[resolve_role(role)]


def has_role(profile: Optional[UserProfile], role: SystemRole) -> bool:
    """Exact role match."""
    return role_of(profile) == role


def has_minimum_role(profile: Optional[UserProfile], required: SystemRole) -> bool:
    """True iff the profile's rank is at least the required role's rank."""
    return get_role_rank(profile) >= ROLE_HIERARCHY[required]


def default_permissions(role: SystemRole) -> FrozenSet[Permission]:
    return DEFAULT_ROLE_PERMISSIONS[role]


def has_permission(profile: Optional[UserProfile], permission: Permission) -> bool:
    """Explicit override first, then the role's default capability set."""
    if profile is not None and permission in profile.permissions:
        return bool(profile.permissions[permission])
    return permission in DEFAULT_ROLE_PERMISSIONS[role_of(profile)]


def is_exempt(profile: Optional[UserProfile]) -> bool:
    """Exempt profiles bypass every quota check."""
    if profile is None:
        return False
    if profile.role in EXEMPT_ROLES:
        return True
    return SYSTEM_ADMIN_GROUP in profile.groups


def can_access_show(
    profile: Optional[UserProfile],
    show_owner_id: str,
    show_team: Optional[Mapping[str, Any]] = None,
    required_role: Optional[SystemRole] = None,
) -> bool:
    """Whether a profile can reach a show's resources.

    God and the show owner always can. Anyone else needs an entry in the
    show's team map, ranked at least ``required_role`` when one is given.
    """
    if profile is None:
        return False
    if profile.role == SystemRole.GOD:
        return True
    if profile.uid and profile.uid == show_owner_id:
        return True
    if not show_team or profile.uid not in show_team:
        return False
    if required_role is None:
        return True
    return role_rank(show_team[profile.uid]) >= ROLE_HIERARCHY[required_role]


def can_edit_show(profile, show_owner_id, show_team=None) -> bool:
    return can_access_show(profile, show_owner_id, show_team, SystemRole.EDITOR)


def can_delete_show(profile, show_owner_id, show_team=None) -> bool:
    return can_access_show(profile, show_owner_id, show_team, SystemRole.ADMIN)


def can_manage_show_team(profile, show_owner_id, show_team=None) -> bool:
    return can_access_show(profile, show_owner_id, show_team, SystemRole.PROPS_SUPERVISOR)
