"""
Evaluation data models for Entitlements Service.

Dataclasses are the engine's value types; the pydantic models are the HTTP
request/response shapes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..plans.limits import LimitNumber, SubscriptionLimits, is_unlimited, render_limit
from ..roles.models import UserProfile


def sanitize_count(value: Any) -> int:
    """Negative or non-numeric counts are treated as zero."""
    if isinstance(value, bool):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return count if count > 0 else 0


@dataclass(frozen=True)
class CurrentCounts:
    """Snapshot of how many resources a user currently owns."""
    shows: int = 0
    boards: int = 0
    props: int = 0
    packing_boxes: int = 0
    collaborators: int = 0
    archived_shows: int = 0

    def __post_init__(self):
        for name in ("shows", "boards", "props", "packing_boxes", "collaborators", "archived_shows"):
            object.__setattr__(self, name, sanitize_count(getattr(self, name)))

    def count_for(self, limit_key: str) -> int:
        """Count compared against a given limit field."""
        return getattr(self, COUNT_FIELD_FOR_LIMIT[limit_key])

    def to_dict(self) -> Dict[str, int]:
        return {
            "shows": self.shows,
            "boards": self.boards,
            "props": self.props,
            "packing_boxes": self.packing_boxes,
            "collaborators": self.collaborators,
            "archived_shows": self.archived_shows,
        }


COUNT_FIELD_FOR_LIMIT = {
    "shows": "shows",
    "boards": "boards",
    "props": "props",
    "packing_boxes": "packing_boxes",
    "archived_shows": "archived_shows",
    "collaborators_per_show": "collaborators",
    "boards_per_show": "boards",
    "props_per_show": "props",
    "packing_boxes_per_show": "packing_boxes",
}


@dataclass(frozen=True)
class PermissionEvaluationContext:
    """Single input to every evaluator decision; built fresh per evaluation."""
    profile: Optional[UserProfile]
    limits: SubscriptionLimits
    counts: CurrentCounts = field(default_factory=CurrentCounts)


@dataclass(frozen=True)
class PermissionResult:
    allowed: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class LimitCheckResult:
    within_limit: bool
    current_count: int
    limit: LimitNumber
    is_per_show: bool
    message: Optional[str] = None

    @property
    def unlimited(self) -> bool:
        return is_unlimited(self.limit)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "within_limit": self.within_limit,
            "current_count": self.current_count,
            "limit": render_limit(self.limit),
            "unlimited": self.unlimited,
            "is_per_show": self.is_per_show,
            "message": self.message,
        }


@dataclass(frozen=True)
class LimitStatus:
    current: int
    limit: LimitNumber
    within_limit: bool
    is_exempt: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current,
            "limit": render_limit(self.limit),
            "unlimited": is_unlimited(self.limit),
            "within_limit": self.within_limit,
            "is_exempt": self.is_exempt,
        }


@dataclass(frozen=True)
class PermissionSummary:
    """Everything a client needs to render a user's entitlement state."""
    is_valid: bool
    is_exempt: bool
    effective_limits: SubscriptionLimits
    can_invite_team_members: bool
    can_view_all_props: bool
    should_show_subscription_notifications: bool
    role_display_name: str
    role_rank: int
    current_counts: CurrentCounts
    limits: Dict[str, LimitStatus]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "is_exempt": self.is_exempt,
            "effective_limits": self.effective_limits.to_dict(),
            "can_invite_team_members": self.can_invite_team_members,
            "can_view_all_props": self.can_view_all_props,
            "should_show_subscription_notifications": self.should_show_subscription_notifications,
            "role_display_name": self.role_display_name,
            "role_rank": self.role_rank,
            "current_counts": self.current_counts.to_dict(),
            "limits": {name: status.to_dict() for name, status in self.limits.items()},
        }


class EntitlementCheckRequest(BaseModel):
    """Request model for entitlement check."""
    user_id: str = Field(..., min_length=1, description="User ID")
    action: str = Field(..., min_length=1, description="Action to perform")
    show_id: Optional[str] = Field(None, description="Show the action targets")


class EntitlementCheckResponse(BaseModel):
    """Response model for entitlement check."""
    allowed: bool = Field(..., description="Whether the action is allowed")
    reason: Optional[str] = Field(None, description="Reason for the decision")


class LimitCheckResponse(BaseModel):
    """Response model for a resource limit check."""
    within_limit: bool
    current_count: int
    limit: Optional[int] = Field(None, description="Null when unlimited")
    unlimited: bool = False
    is_per_show: bool = False
    message: Optional[str] = None


class AddOnListResponse(BaseModel):
    """Response model for the add-on catalog."""
    version: str
    add_ons: List[Dict[str, Any]]
    total: int


class DataViewResponse(BaseModel):
    """Response model for a user's effective data view."""
    role: str
    source: str
    is_custom: bool = False
    config: Dict[str, Any]
