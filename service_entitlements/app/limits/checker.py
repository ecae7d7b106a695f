"""
Limit Checker.

Fetches current resource counts from the document store and asks the
evaluator whether one more resource fits. Quota checks fail open: an
invalid id or an unreadable store yields ``within_limit=True`` with a
count of zero and the configured limit.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from shared.logging import get_logger
from shared.observability import ErrorReporter

from ..plans.limits import UNLIMITED, SubscriptionLimits
from ..roles.hierarchy import is_exempt
from ..roles.models import UserProfile
from ..rules.engine import EntitlementEvaluator
from ..rules.models import CurrentCounts, LimitCheckResult
from ..store.base import DocumentStore


@dataclass(frozen=True)
class CountQuery:
    """Where a resource's documents live and which field scopes them."""
    resource: str
    collection: str
    owner_field: str
    limit_key: str
    per_show_limit_key: Optional[str] = None


SHOWS = CountQuery("shows", "shows", "ownerId", "shows")
BOARDS = CountQuery("boards", "todo_boards", "ownerId", "boards", "boards_per_show")
PACKING_BOXES = CountQuery("packing_boxes", "packingBoxes", "ownerId", "packing_boxes", "packing_boxes_per_show")
PROPS = CountQuery("props", "props", "userId", "props", "props_per_show")
ARCHIVED_SHOWS = CountQuery("archived_shows", "show_archives", "archivedBy", "archived_shows")

SHOW_FIELD = "showId"
SHOW_COLLECTION = "shows"
COLLABORATORS_LIMIT_KEY = "collaborators_per_show"


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


class LimitChecker:
    """Per-resource limit checks for one profile and its effective limits."""

    def __init__(
        self,
        store: DocumentStore,
        profile: Optional[UserProfile],
        limits: SubscriptionLimits,
        evaluator: Optional[EntitlementEvaluator] = None,
        reporter: Optional[ErrorReporter] = None,
    ):
        self.store = store
        self.profile = profile
        self.limits = limits
        self.evaluator = evaluator or EntitlementEvaluator()
        self.reporter = reporter or ErrorReporter("entitlements")
        self.logger = get_logger("entitlements.limit_checker")

    def _fail_open(self, limit_key: str, is_per_show: bool) -> LimitCheckResult:
        return LimitCheckResult(True, 0, self.limits.get(limit_key), is_per_show)

    async def _check(self, query: CountQuery, scope_id: Any, per_show: bool) -> LimitCheckResult:
        limit_key = query.per_show_limit_key if per_show else query.limit_key
        field = SHOW_FIELD if per_show else query.owner_field

        if not is_valid_id(scope_id):
            self.logger.warning("Invalid id for limit check, allowing", resource=query.resource, field=field)
            return self._fail_open(limit_key, per_show)

        if is_exempt(self.profile):
            return LimitCheckResult(True, 0, UNLIMITED, per_show)

        try:
            documents = await self.store.get_documents(query.collection, {field: scope_id})
        except Exception as e:
            self.reporter.report(e, {
                "resource": query.resource,
                "collection": query.collection,
                "field": field,
                "scope_id": scope_id,
            })
            return self._fail_open(limit_key, per_show)

        return self.evaluator.check_limit(self.profile, self.limits, len(documents), limit_key)

    async def check_show_limit(self, user_id: str) -> LimitCheckResult:
        return await self._check(SHOWS, user_id, per_show=False)

    async def check_board_limit(self, user_id: str) -> LimitCheckResult:
        return await self._check(BOARDS, user_id, per_show=False)

    async def check_board_limit_for_show(self, show_id: str) -> LimitCheckResult:
        return await self._check(BOARDS, show_id, per_show=True)

    async def check_packing_box_limit(self, user_id: str) -> LimitCheckResult:
        return await self._check(PACKING_BOXES, user_id, per_show=False)

    async def check_packing_box_limit_for_show(self, show_id: str) -> LimitCheckResult:
        return await self._check(PACKING_BOXES, show_id, per_show=True)

    async def check_prop_limit(self, user_id: str) -> LimitCheckResult:
        return await self._check(PROPS, user_id, per_show=False)

    async def check_prop_limit_for_show(self, show_id: str) -> LimitCheckResult:
        return await self._check(PROPS, show_id, per_show=True)

    async def check_archived_show_limit(self, user_id: str) -> LimitCheckResult:
        return await self._check(ARCHIVED_SHOWS, user_id, per_show=False)

    async def _collaborator_count(self, show_id: str) -> Optional[int]:
        """Team size from the show document; None when the show is missing."""
        show = await self.store.get_document(SHOW_COLLECTION, show_id)
        if not show:
            return None
        members = show.get("teamMembers") or show.get("collaborators") or []
        return len(members) if isinstance(members, (list, dict)) else 0

    async def check_collaborator_limit_for_show(self, show_id: str) -> LimitCheckResult:
        if not is_valid_id(show_id):
            self.logger.warning("Invalid id for limit check, allowing", resource="collaborators")
            return self._fail_open(COLLABORATORS_LIMIT_KEY, True)

        if is_exempt(self.profile):
            return LimitCheckResult(True, 0, UNLIMITED, True)

        try:
            count = await self._collaborator_count(show_id)
        except Exception as e:
            self.reporter.report(e, {
                "resource": "collaborators",
                "collection": SHOW_COLLECTION,
                "scope_id": show_id,
            })
            return self._fail_open(COLLABORATORS_LIMIT_KEY, True)

        if count is None:
            self.logger.warning("Show not found for collaborator limit check", show_id=show_id)
            return self._fail_open(COLLABORATORS_LIMIT_KEY, True)

        return self.evaluator.check_limit(self.profile, self.limits, count, COLLABORATORS_LIMIT_KEY)

    async def _safe_count(self, query: CountQuery, field: str, scope_id: str) -> int:
        try:
            return len(await self.store.get_documents(query.collection, {field: scope_id}))
        except Exception as e:
            self.reporter.report(e, {
                "resource": query.resource,
                "collection": query.collection,
                "field": field,
                "scope_id": scope_id,
            })
            return 0

    async def _safe_collaborator_count(self, show_id: str) -> int:
        try:
            return await self._collaborator_count(show_id) or 0
        except Exception as e:
            self.reporter.report(e, {"resource": "collaborators", "collection": SHOW_COLLECTION, "scope_id": show_id})
            return 0

    async def collect_counts(self, user_id: str, show_id: Optional[str] = None) -> CurrentCounts:
        """Current account-wide counts for a user, fetched concurrently.

        The collaborator count is only collected when ``show_id`` is given.
        Failed queries are reported and count as zero.
        """
        if not is_valid_id(user_id):
            return CurrentCounts()

        async def no_count() -> int:
            return 0

        shows, boards, props, packing_boxes, archived_shows, collaborators = await asyncio.gather(
            self._safe_count(SHOWS, SHOWS.owner_field, user_id),
            self._safe_count(BOARDS, BOARDS.owner_field, user_id),
            self._safe_count(PROPS, PROPS.owner_field, user_id),
            self._safe_count(PACKING_BOXES, PACKING_BOXES.owner_field, user_id),
            self._safe_count(ARCHIVED_SHOWS, ARCHIVED_SHOWS.owner_field, user_id),
            self._safe_collaborator_count(show_id) if is_valid_id(show_id) else no_count(),
        )

        return CurrentCounts(
            shows=shows,
            boards=boards,
            props=props,
            packing_boxes=packing_boxes,
            collaborators=collaborators,
            archived_shows=archived_shows,
        )
