from types import SimpleNamespace

import pytest

from app.core.exceptions import Unauthorized
from app.modules.auth.service import AuthService, clear_auth_cache
from conftest import as_user


class FakeAuth:
    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    def get_user(self, jwt):
        self.calls += 1
        if self.error:
            raise self.error
        if jwt != "good-token":
            return None
        user = SimpleNamespace(id="alice", email="alice@example.com", user_metadata=None, app_metadata={})
        return SimpleNamespace(user=user)


@pytest.fixture(autouse=True)
def fresh_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


class TestAuthService:
    def test_resolves_and_caches_user(self):
        auth = FakeAuth()
        service = AuthService(SimpleNamespace(auth=auth))
        assert service.get_current_user("good-token")["id"] == "alice"
        assert service.get_current_user("good-token")["user_metadata"] == {}
        assert auth.calls == 1

    def test_unknown_token(self):
        with pytest.raises(Unauthorized):
            AuthService(SimpleNamespace(auth=FakeAuth())).get_current_user("bad-token")

    def test_expired_token(self):
        auth = FakeAuth(error=RuntimeError("JWT expired"))
        with pytest.raises(Unauthorized) as excinfo:
            AuthService(SimpleNamespace(auth=auth)).get_current_user("good-token")
        assert excinfo.value.detail == "Invalid or expired token"


class TestMe:
    def test_identity_with_profile(self, client, db):
        db.add_user("alice", "alice")
        body = client.get("/api/v1/auth/me", headers=as_user("alice")).json()
        assert body["id"] == "alice"
        assert body["profile"]["username"] == "alice"

    def test_identity_without_profile(self, client, db):
        assert client.get("/api/v1/auth/me", headers=as_user("ghost")).json()["profile"] is None
