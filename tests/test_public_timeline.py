from datetime import timedelta

import pytest

from conftest import NOW, as_user

BBOX = {"min_lng": 19.0, "min_lat": 49.0, "max_lng": 21.0, "max_lat": 51.0}
HOME = "POLYGON((19.9 49.9, 20.1 49.9, 20.1 50.1, 19.9 50.1, 19.9 49.9))"


def timeline(client, username="carol", **headers):
    return client.post(f"/api/v1/public/users/{username}/timeline", json=BBOX, headers=headers)


class TestPublicTimeline:
    def test_delay_hides_recent_locations(self, client, db):
        db.add_user("carol", "carol", is_timeline_public=True, public_timeline_time_threshold="1h")
        old = db.add_location("carol", NOW - timedelta(hours=3))
        cutoff_latest = db.add_location("carol", NOW - timedelta(hours=2))
        db.add_location("carol", NOW - timedelta(minutes=5))
        body = timeline(client).json()
        assert [r["id"] for r in body["results"]] == [cutoff_latest["id"], old["id"]]
        assert [r["is_latest_location"] for r in body["results"]] == [True, False]
        assert body["results"][0]["liveness"] == "latest"

    def test_now_threshold_shows_live_location(self, client, db):
        db.add_user("carol", "carol", is_timeline_public=True, public_timeline_time_threshold="now")
        db.add_location("carol", NOW - timedelta(minutes=2))
        body = timeline(client).json()
        assert body["total_items"] == 1
        assert body["results"][0]["liveness"] == "live"

    def test_delay_cutoff_is_applied_in_the_query(self, client, db):
        db.add_user("carol", "carol", is_timeline_public=True, public_timeline_time_threshold="1h")
        db.add_location("carol", NOW - timedelta(hours=3))
        timeline(client)
        cutoff = (NOW - timedelta(hours=1)).isoformat()
        location_reads = [filters for table, op, filters in db.calls if table == "locations" and op == "select"]
        assert any(("lte", "local_timestamp", cutoff) in filters for filters in location_reads)

    def test_hidden_areas_are_left_out(self, client, db):
        db.add_user("carol", "carol", is_timeline_public=True, public_timeline_time_threshold="now")
        db.tables.setdefault("hidden_areas", []).append({
            "id": 1,
            "user_id": "carol",
            "name": "Home",
            "area_wkt": HOME,
        })
        db.add_location("carol", NOW - timedelta(hours=2), latitude=50.0, longitude=20.0)
        visible = db.add_location("carol", NOW - timedelta(hours=3), latitude=50.5, longitude=20.5)
        body = timeline(client).json()
        assert [r["id"] for r in body["results"]] == [visible["id"]]

    def test_private_user_is_not_found(self, client, db):
        db.add_user("carol", "carol", is_timeline_public=False)
        assert timeline(client).status_code == 404

    def test_unknown_user(self, client, db):
        assert timeline(client, username="nobody").status_code == 404

    def test_authentication_not_required(self, client, db):
        db.add_user("carol", "carol", is_timeline_public=True, public_timeline_time_threshold="now")
        assert timeline(client).status_code == 200
        assert timeline(client, **as_user("someone")).status_code == 200


class TestUserSettings:
    @pytest.fixture
    def alice(self, db):
        return db.add_user("alice", "alice")

    def test_get_profile(self, client, alice):
        body = client.get("/api/v1/users/me", headers=as_user("alice")).json()
        assert body["username"] == "alice"
        assert body["time_zone"] == "UTC"

    def test_update_settings(self, client, alice):
        response = client.put(
            "/api/v1/users/me/settings",
            json={"is_timeline_public": True, "public_timeline_time_threshold": "2.5d", "time_zone": "Europe/Warsaw"},
            headers=as_user("alice"),
        )
        assert response.status_code == 200
        assert response.json()["public_timeline_time_threshold"] == "2.5d"
        assert alice["time_zone"] == "Europe/Warsaw"
        assert alice["updated_at"] == NOW.isoformat()

    @pytest.mark.parametrize("body", [
        {"public_timeline_time_threshold": "30y"},
        {"public_timeline_time_threshold": "soon"},
        {"time_zone": "Mars/Olympus"},
        {"location_time_threshold_minutes": 0},
    ])
    def test_rejects_invalid_settings(self, client, alice, body):
        assert client.put("/api/v1/users/me/settings", json=body, headers=as_user("alice")).status_code == 422


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
        assert client.get("/ready").json() == {"status": "ready"}
        assert client.get("/").json()["status"] == "healthy"

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
