from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import Forbidden, NotFound
from app.modules.group_timeline.access import (
    AccessService, can_view, compute_allowed_user_ids, public_timeline_allows, visible_subjects
)
from app.modules.groups.schemas import GroupMemberResponse, is_org_group
from app.modules.users.schemas import UserProfileResponse
from conftest import NOW


def member(user_id: str, disabled: bool = False) -> GroupMemberResponse:
    return GroupMemberResponse(
        id=f"m-{user_id}",
        group_id="g1",
        user_id=user_id,
        role="Member",
        status="Active",
        joined_at=NOW,
        org_peer_visibility_access_disabled=disabled,
    )


def profile(**fields) -> UserProfileResponse:
    return UserProfileResponse(id="carol", username="carol", **fields)


class TestOrgGroupTypes:
    @pytest.mark.parametrize("group_type", ["Organization", "organisation", "FRIENDS", " Friends "])
    def test_organisation_types(self, group_type):
        assert is_org_group(group_type)

    @pytest.mark.parametrize("group_type", [None, "", "Family", "Team"])
    def test_other_types(self, group_type):
        assert not is_org_group(group_type)


class TestComputeAllowed:
    def test_everyone_visible_in_plain_group(self):
        members = {"alice": member("alice"), "bob": member("bob", disabled=True)}
        assert compute_allowed_user_ids("alice", members, is_org=False) == {"alice", "bob"}

    def test_opt_out_respected_in_org_group(self):
        members = {"alice": member("alice"), "bob": member("bob", disabled=True)}
        assert compute_allowed_user_ids("alice", members, is_org=True) == {"alice"}

    def test_self_always_included(self):
        members = {"bob": member("bob", disabled=True)}
        assert compute_allowed_user_ids("bob", members, is_org=True) == {"bob"}

    def test_non_member_sees_nobody(self):
        members = {"alice": member("alice")}
        assert compute_allowed_user_ids("mallory", members, is_org=False) == frozenset()
        assert compute_allowed_user_ids(None, members, is_org=False) == frozenset()


class TestPublicTimeline:
    def test_private_profile(self):
        assert not public_timeline_allows(profile(is_timeline_public=False), NOW, NOW)

    def test_now_threshold_shows_current_locations(self):
        assert public_timeline_allows(profile(is_timeline_public=True, public_timeline_time_threshold="now"), NOW, NOW)

    def test_delay_hides_recent_locations(self):
        p = profile(is_timeline_public=True, public_timeline_time_threshold="1h")
        assert not public_timeline_allows(p, NOW - timedelta(minutes=30), NOW)
        assert public_timeline_allows(p, NOW - timedelta(hours=1), NOW)

    def test_unparseable_threshold_hides_everything(self):
        p = profile(is_timeline_public=True, public_timeline_time_threshold="whenever")
        assert not public_timeline_allows(p, NOW - timedelta(days=400), NOW)


class TestCanView:
    def test_self(self):
        assert can_view("alice", "alice")

    def test_anonymous_never_matches_self(self):
        assert not can_view(None, "alice")

    def test_no_grant(self):
        assert not can_view("alice", "bob")

    def test_public_profile_for_anonymous_viewer(self):
        p = profile(is_timeline_public=True, public_timeline_time_threshold="now")
        assert can_view(None, "carol", public_profile=p, now=NOW)


class TestAccessService:
    @pytest.fixture
    def org(self, db):
        for user_id in ("owner", "alice", "bob", "mallory"):
            db.add_user(user_id, user_id)
        db.add_group("g1", "owner", group_type="Organization", members=("alice", "bob"))
        db.add_group("g2", "owner", name="Friends of bob", members=("bob", "alice"))
        db.add_member("g1", "mallory", status="Removed")
        return db

    def test_context_for_member(self, org):
        context = AccessService(org).build_context("g1", "alice")
        assert context.is_member
        assert context.is_org
        assert set(context.active_members) == {"owner", "alice", "bob"}
        assert context.thresholds["alice"] == 10

    def test_removed_member_is_not_a_member(self, org):
        with pytest.raises(Forbidden):
            AccessService(org).require_member("g1", "mallory")

    def test_unknown_group(self, org):
        with pytest.raises(NotFound):
            AccessService(org).build_context("nope", "alice")

    def test_archived_group(self, org):
        org.add_group("g3", "owner", is_archived=True)
        with pytest.raises(NotFound):
            AccessService(org).build_context("g3", "owner")

    def test_disabling_peer_visibility_only_affects_that_group(self, org):
        for row in org.rows("group_members", group_id="g1", user_id="bob"):
            row["org_peer_visibility_access_disabled"] = True
        service = AccessService(org)
        assert "bob" not in visible_subjects(service.build_context("g1", "alice"))
        assert "bob" in visible_subjects(service.build_context("g1", "bob"))
        assert "bob" in visible_subjects(service.build_context("g2", "alice"))

    def test_can_view_user_through_shared_group(self, org):
        assert AccessService(org).can_view_user("alice", "bob", NOW)

    def test_can_view_user_reuses_request_cache(self, org):
        cache = {}
        service = AccessService(org, cache)
        assert service.can_view_user("alice", "bob", NOW)
        assert set(cache) == {"group_ids:alice", "group_ids:bob"}

        def group_lookups():
            return sum(
                1 for table, _, filters in org.calls
                if table == "group_members" and ("eq", "user_id", "alice") in filters
            )

        before = group_lookups()
        assert service.can_view_user("alice", "bob", NOW)
        assert group_lookups() == before

    def test_can_view_user_without_shared_group(self, org):
        org.add_user("zed", "zed")
        assert not AccessService(org).can_view_user("alice", "zed", NOW)

    def test_can_view_user_via_public_timeline(self, org):
        org.add_user("pub", "pub", is_timeline_public=True, public_timeline_time_threshold="now")
        assert AccessService(org).can_view_user(None, "pub", NOW)

    def test_store_failure_is_not_an_empty_result(self, org):
        org.fail_tables.add("group_members")
        with pytest.raises(Exception) as excinfo:
            AccessService(org).build_context("g1", "alice")
        assert getattr(excinfo.value, "status_code", None) == 500
