"""
Who may see whose locations.

A viewer sees a subject when any of these holds, checked in order:

1. the viewer is the subject;
2. both are Active members of the group being viewed, unless the group is
   organisation-type and the subject has disabled peer visibility there;
3. the subject shares a public timeline and the queried instant is older than
   their public delay threshold (anonymous viewers included).

Nothing else grants visibility. Grants are computed per request and never stored.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional, Set
import logging

from supabase import Client

from app.core.clock import ensure_utc
from app.core.dependencies import get_user_group_ids
from app.core.exceptions import Forbidden, NotFound
from app.core.timespan import parse_threshold
from app.modules.groups.schemas import GroupMemberResponse, GroupResponse, is_org_group
from app.modules.groups.service import GroupService
from app.modules.users.schemas import UserProfileResponse
from app.modules.users.service import UserService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupAccessContext:
    group: GroupResponse
    viewer_id: Optional[str]
    viewer_membership: Optional[GroupMemberResponse]
    active_members: Dict[str, GroupMemberResponse]
    allowed_user_ids: FrozenSet[str]
    is_org: bool
    thresholds: Dict[str, int] = field(default_factory=dict)

    @property
    def is_member(self) -> bool:
        return self.viewer_membership is not None


def peer_visible(member: GroupMemberResponse, is_org: bool) -> bool:
    return not (is_org and member.org_peer_visibility_access_disabled)


def compute_allowed_user_ids(
    viewer_id: Optional[str],
    active_members: Dict[str, GroupMemberResponse],
    is_org: bool,
) -> FrozenSet[str]:
    if viewer_id is None or viewer_id not in active_members:
        return frozenset()
    return frozenset(
        user_id for user_id, member in active_members.items()
        if user_id == viewer_id or peer_visible(member, is_org)
    )


def public_timeline_allows(profile: Optional[UserProfileResponse], instant: datetime, now: datetime) -> bool:
    if profile is None or not profile.is_timeline_public:
        return False
    try:
        delay = parse_threshold(profile.public_timeline_time_threshold)
    except ValueError:
        logger.warning(f"Ignoring unparseable public threshold for user {profile.id}")
        return False
    return ensure_utc(instant) <= ensure_utc(now) - delay


def can_view(
    viewer_id: Optional[str],
    subject_id: str,
    context: Optional[GroupAccessContext] = None,
    public_profile: Optional[UserProfileResponse] = None,
    instant: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> bool:
    if viewer_id is not None and viewer_id == subject_id:
        return True
    if context is not None and viewer_id is not None and subject_id in context.allowed_user_ids:
        return True
    if public_profile is not None and now is not None:
        return public_timeline_allows(public_profile, instant or now, now)
    return False


def visible_subjects(context: GroupAccessContext) -> Set[str]:
    """Members whose locations the viewer may see on the group map"""
    return set(context.allowed_user_ids)


class AccessService:
    def __init__(self, supabase: Client, cache: Optional[Dict[str, Any]] = None):
        self.supabase = supabase
        self.cache = cache
        self.groups = GroupService(supabase)
        self.users = UserService(supabase)

    def build_context(self, group_id: str, viewer_id: Optional[str]) -> GroupAccessContext:
        """Load the group and its Active members once per request"""
        group = self.groups.get_group(group_id)
        members = {m.user_id: m for m in self.groups.list_active_members(group_id)}
        is_org = is_org_group(group.group_type)
        return GroupAccessContext(
            group=group,
            viewer_id=viewer_id,
            viewer_membership=members.get(viewer_id) if viewer_id else None,
            active_members=members,
            allowed_user_ids=compute_allowed_user_ids(viewer_id, members, is_org),
            is_org=is_org,
            thresholds=self.users.get_thresholds(members.keys()),
        )

    def require_member(self, group_id: str, viewer_id: str) -> GroupAccessContext:
        context = self.build_context(group_id, viewer_id)
        if not context.is_member:
            raise Forbidden("You must be a member of this group")
        return context

    def can_view_user(
        self,
        viewer_id: Optional[str],
        subject_id: str,
        now: datetime,
        instant: Optional[datetime] = None,
    ) -> bool:
        """Visibility outside a specific group: self, any shared group, or the public timeline"""
        if viewer_id is not None and viewer_id == subject_id:
            return True
        if viewer_id is not None:
            shared = set(get_user_group_ids(viewer_id, self.supabase, self.cache))\
                & set(get_user_group_ids(subject_id, self.supabase, self.cache))
            for group_id in sorted(shared):
                try:
                    context = self.build_context(group_id, viewer_id)
                except NotFound:
                    continue
                if can_view(viewer_id, subject_id, context=context):
                    return True
        profile = self.users.find_user_by_id(subject_id)
        return can_view(viewer_id, subject_id, public_profile=profile, instant=instant or now, now=now)
