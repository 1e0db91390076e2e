import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from app.core.clock import FixedClock
from app.modules.locations.service import LocationService
from app.modules.realtime.broker import HEARTBEAT_FRAME, SseBroker, format_frame
from app.modules.realtime.events import RealtimeEvent
from app.modules.realtime.service import RealtimePublisher, location_update_frames
from app.modules.realtime.topics import GroupTopic, MembershipTopic, UserLocationTopic
from conftest import NOW


def decode(frame: str) -> dict:
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):].strip())


class TestTopics:
    def test_channel_names(self):
        assert UserLocationTopic("alice").channel == "location-update-alice"
        assert GroupTopic("g1").channel == "group-g1"
        assert MembershipTopic("u1").channel == "membership-update-u1"

    def test_topics_are_value_objects(self):
        assert GroupTopic("g1") == GroupTopic("g1")
        assert GroupTopic("g1") != MembershipTopic("g1")


class TestEvents:
    def test_payload_omits_irrelevant_fields(self):
        payload = RealtimeEvent.member_removed("bob").to_payload()
        assert payload == {"type": "member-removed", "user_id": "bob"}

    def test_location_payload(self):
        payload = RealtimeEvent.location(7, "alice", "alice", NOW, True, "manual").to_payload()
        assert payload["type"] == "location"
        assert payload["location_id"] == 7
        assert payload["is_live"] is True
        assert payload["timestamp_utc"].startswith("2024-06-15T12:00:30")


class TestBroker:
    def test_publish_without_subscribers_is_dropped(self, broker):
        assert broker.publish(GroupTopic("g1"), {"type": "member-left"}) == 0

    def test_late_subscriber_misses_earlier_events(self, broker):
        broker.publish(GroupTopic("g1"), {"type": "member-left", "user_id": "a"})
        subscription = broker.subscribe(GroupTopic("g1"))
        broker.publish(GroupTopic("g1"), {"type": "member-joined", "user_id": "b"})
        assert subscription.queue.qsize() == 1
        assert decode(subscription.queue.get_nowait())["type"] == "member-joined"

    def test_fan_out_to_every_subscriber_once(self, broker):
        first = broker.subscribe(GroupTopic("g1"))
        second = broker.subscribe(GroupTopic("g1"))
        other = broker.subscribe(GroupTopic("g2"))
        assert broker.publish(GroupTopic("g1"), {"type": "invite-created"}) == 2
        assert first.queue.qsize() == 1 and second.queue.qsize() == 1
        assert other.queue.empty()

    def test_full_queue_drops_for_that_subscriber_only(self):
        broker = SseBroker(queue_size=1)
        slow = broker.subscribe(GroupTopic("g1"))
        slow.offer("data: {}\n\n")
        fast = broker.subscribe(GroupTopic("g1"))
        assert broker.publish(GroupTopic("g1"), {"type": "member-left"}) == 1
        assert fast.queue.qsize() == 1
        assert slow.queue.qsize() == 1

    def test_unsubscribe(self, broker):
        subscription = broker.subscribe(GroupTopic("g1"))
        broker.unsubscribe(subscription)
        assert broker.subscriber_count(GroupTopic("g1")) == 0
        broker.unsubscribe(subscription)

    async def test_stream_yields_frames_and_heartbeats(self, broker):
        subscription = broker.subscribe(GroupTopic("g1"))
        broker.publish(GroupTopic("g1"), {"type": "member-joined"})
        stream = broker.stream(subscription, heartbeat_seconds=0.01)
        assert decode(await stream.__anext__())["type"] == "member-joined"
        assert await stream.__anext__() == HEARTBEAT_FRAME
        await stream.aclose()
        assert broker.subscriber_count(GroupTopic("g1")) == 0

    async def test_stream_stops_on_disconnect(self, broker):
        subscription = broker.subscribe(GroupTopic("g1"))

        async def disconnected():
            return True

        frames = [frame async for frame in broker.stream(subscription, 0.01, disconnected)]
        assert frames == []
        assert broker.subscriber_count(GroupTopic("g1")) == 0

    def test_frame_format(self):
        assert format_frame({"type": "x"}) == 'data: {"type": "x"}\n\n'


class TestRealtimePublisher:
    @pytest.fixture
    def seeded(self, db):
        db.add_user("alice", "alice")
        db.add_user("bob", "bob")
        db.add_group("org", "bob", group_type="Organization", members=("alice",))
        db.add_group("plain", "bob", members=("alice",))
        return db

    def test_location_goes_to_user_and_group_topics(self, seeded, broker):
        own = broker.subscribe(UserLocationTopic("alice"))
        group = broker.subscribe(GroupTopic("plain"))
        seeded.add_location("alice", NOW - timedelta(minutes=1))
        locations = LocationService(seeded)
        location = locations.annotate([locations.get_latest("alice")], NOW)[0]
        RealtimePublisher(broker, seeded).location_logged("alice", location)
        event = decode(own.queue.get_nowait())
        assert event["type"] == "location"
        assert event["username"] == "alice"
        assert event["is_live"] is True
        assert decode(group.queue.get_nowait())["user_id"] == "alice"

    def test_opted_out_member_not_published_to_org_group(self, seeded, broker):
        for row in seeded.rows("group_members", group_id="org", user_id="alice"):
            row["org_peer_visibility_access_disabled"] = True
        org = broker.subscribe(GroupTopic("org"))
        plain = broker.subscribe(GroupTopic("plain"))
        RealtimePublisher(broker, seeded).locations_deleted("alice", [1, 2])
        assert org.queue.empty()
        assert decode(plain.queue.get_nowait())["location_ids"] == [1, 2]

    def test_lookup_failure_is_logged_not_raised(self, seeded, broker):
        seeded.fail_tables.add("group_members")
        RealtimePublisher(broker, seeded).locations_deleted("alice", [1])

    def test_broker_failure_is_logged_not_raised(self, seeded):
        class BrokenBroker(SseBroker):
            def publish(self, topic, payload):
                raise RuntimeError("down")

        assert RealtimePublisher(BrokenBroker(), seeded).group_event("org", RealtimeEvent.member_left("alice")) == 0


class TestLocationUpdateFrames:
    async def test_pushes_liveness_expired_when_latest_goes_stale(self, db, broker):
        db.add_user("alice", "alice")
        db.add_location("alice", datetime(2024, 6, 15, 11, 51, 30, tzinfo=timezone.utc))
        # 50ms before the 10 minute window closes at 12:02:00
        clock = FixedClock(datetime(2024, 6, 15, 12, 1, 59, 950000, tzinfo=timezone.utc))
        subscription = broker.subscribe(UserLocationTopic("alice"))
        frames = location_update_frames(broker, subscription, "alice", 10, LocationService(db), clock, 5.0)
        frame = await asyncio.wait_for(frames.__anext__(), timeout=2)
        event = decode(frame)
        assert event["type"] == "liveness-expired"
        assert event["user_id"] == "alice"
        await frames.aclose()
        assert broker.subscriber_count(UserLocationTopic("alice")) == 0

    async def test_no_timer_when_nothing_is_live(self, db, broker):
        db.add_user("alice", "alice")
        db.add_location("alice", NOW - timedelta(hours=3))
        subscription = broker.subscribe(UserLocationTopic("alice"))
        frames = location_update_frames(broker, subscription, "alice", 10, LocationService(db), FixedClock(NOW), 0.05)
        assert await asyncio.wait_for(frames.__anext__(), timeout=2) == HEARTBEAT_FRAME
        await frames.aclose()
