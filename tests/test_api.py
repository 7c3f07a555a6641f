import pytest
from fastapi.testclient import TestClient

from conftest import CHROME_WINDOWS, SAFARI_IPHONE, FakeLocator
from src.careops.app import create_app
from src.careops.exceptions import BackendError, BackendUnavailable
from src.careops.utils.context import build_context
from src.careops.utils.storage import MemoryStore


class FakeBackend:
    def __init__(self):
        self.credentials = None
        self.accept = True
        self.reject_password = False
        self.password_changes = []

    def post(self, path, json=None):
        if path == "/auth/change-password":
            if self.reject_password:
                raise BackendError(400, "Current password is incorrect")
            self.password_changes.append(json)
            return {"success": True}
        if not self.accept:
            raise BackendError(401, "Invalid email or password")
        return {"success": True, "token": "tok-1", "user": {"email": json["email"], "role": "admin"}}

    def get(self, path):
        return {"success": True}


@pytest.fixture
def ctx(test_settings):
    return build_context(
        test_settings,
        persistent_scope=MemoryStore(),
        locator=FakeLocator(),
        client=FakeBackend(),
    )


@pytest.fixture
def client(ctx):
    with TestClient(create_app(ctx)) as c:
        yield c


def login(client, ua=CHROME_WINDOWS, **extra):
    body = {"email": "charge.nurse@example.org", "password": "pw", **extra}
    return client.post("/auth/login", json=body, headers={"User-Agent": ua})


def sign_in(client, **kwargs):
    r = login(client, **kwargs)
    assert r.status_code == 200
    client.headers["Authorization"] = f"Bearer {r.json()['token']}"
    return r


def test_login_creates_session_and_history(client):
    r = sign_in(client, remember_me=True, screen="1920x1080")
    data = r.json()
    assert data["ok"] is True
    assert data["token"] == "tok-1"
    assert data["session"]["device"] == "Desktop - Chrome"

    sessions = client.get("/api/profile/sessions").json()
    assert len(sessions) == 1 and sessions[0]["current"] is True

    history = client.get("/api/profile/login-history").json()
    assert [h["status"] for h in history] == ["Success"]

    current = client.get("/api/profile/sessions/current").json()
    assert current["id"] == sessions[0]["id"]

    activity = client.get("/api/profile/activity").json()
    assert activity[0]["action"] == "Logged in"
    assert activity[0]["time_ago"] == "Just now"


def test_failed_login_returns_banner_and_records_attempt(client, ctx):
    ctx.client.accept = False
    r = login(client)
    assert r.status_code == 401
    body = r.json()
    assert body["dismissible"] is True
    assert body["status_code"] == 401

    assert ctx.sessions.get_active_sessions() == []
    assert [h.status.value for h in ctx.sessions.get_login_history()] == ["Failed"]


@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/profile/sessions"),
        ("get", "/api/profile/sessions/current"),
        ("delete", "/api/profile/sessions/session_1_abc"),
        ("post", "/api/profile/sessions/terminate-others"),
        ("get", "/api/profile/login-history"),
        ("get", "/api/profile/activity"),
        ("delete", "/api/profile/activity"),
        ("post", "/auth/heartbeat"),
    ],
)
def test_protected_routes_reject_missing_token(client, method, path):
    r = getattr(client, method)(path)
    assert r.status_code == 401
    body = r.json()
    assert body["error_type"] == "NotAuthenticated"
    assert body["message"] == "Not signed in."
    assert body["dismissible"] is True


def test_signed_in_context_still_needs_the_bearer_token(client, ctx):
    sign_in(client)
    del client.headers["Authorization"]

    assert client.delete("/api/profile/activity").status_code == 401
    assert client.post("/api/profile/sessions/terminate-others").status_code == 401
    assert client.post("/auth/interaction", json={"event": "keydown"}).status_code == 401
    assert len(ctx.sessions.get_active_sessions()) == 1
    assert ctx.activity_log.query()[0].action == "Logged in"

    r = client.get("/api/profile/sessions", headers={"Authorization": "Bearer forged"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid token."


def test_terminate_endpoints(client):
    sign_in(client)
    sign_in(client)
    sign_in(client)
    sessions = client.get("/api/profile/sessions").json()
    assert len(sessions) == 3

    first_id = sessions[0]["id"]
    assert client.delete(f"/api/profile/sessions/{first_id}").status_code == 200
    assert client.delete(f"/api/profile/sessions/{first_id}").status_code == 200
    assert len(client.get("/api/profile/sessions").json()) == 2

    r = client.post("/api/profile/sessions/terminate-others")
    assert r.status_code == 200 and r.json()["remaining"] == 1


def test_logout_clears_current_session_but_keeps_history(client, ctx):
    sign_in(client)
    assert client.post("/auth/logout").status_code == 200

    assert ctx.sessions.get_active_sessions() == []
    assert len(ctx.sessions.get_login_history()) == 1
    assert client.get("/api/profile/sessions").status_code == 401


def test_heartbeat_and_interaction(client, ctx):
    sign_in(client)
    assert client.post("/auth/heartbeat").status_code == 200
    assert client.post("/auth/interaction", json={"event": "keydown"}).json() == {"updated": True}
    assert client.post("/auth/interaction", json={"event": "keydown"}).json() == {"updated": False}

    # Signed in, but the tracked session is gone
    ctx.sessions.clear_session()
    assert client.post("/auth/heartbeat").status_code == 409


def test_activity_endpoints(client):
    sign_in(client)
    r = client.post("/api/profile/activity", json={"action": "Generated census report", "icon": "📊"})
    assert r.json()["recorded"] is True
    r = client.post("/api/profile/activity", json={"action": "Generated census report", "icon": "📊"})
    assert r.json()["recorded"] is False

    actions = [a["action"] for a in client.get("/api/profile/activity").json()]
    assert actions == ["Generated census report", "Logged in"]
    assert client.delete("/api/profile/activity").status_code == 200
    assert client.get("/api/profile/activity").json() == []


@pytest.mark.parametrize(
    "body, message",
    [
        ({"new_password": "secret1", "confirm_password": "secret1"}, "Please enter your current password"),
        ({"current_password": "old"}, "Please enter a new password"),
        (
            {"current_password": "old", "new_password": "abc", "confirm_password": "abc"},
            "New password must be at least 6 characters long",
        ),
        (
            {"current_password": "old", "new_password": "secret1", "confirm_password": "secret2"},
            "New passwords do not match",
        ),
    ],
)
def test_password_change_validation(client, ctx, body, message):
    sign_in(client)
    r = client.post("/api/profile/password", json=body)
    assert r.status_code == 400
    assert r.json()["message"] == message

    assert ctx.client.password_changes == []
    assert ctx.auth.is_authenticated
    assert len(ctx.sessions.get_active_sessions()) == 1


def test_password_change_signs_out(client, ctx):
    sign_in(client)
    body = {"current_password": "old-pw", "new_password": "new-secret", "confirm_password": "new-secret"}
    r = client.post("/api/profile/password", json=body)
    assert r.status_code == 200
    assert r.json()["ok"] is True

    assert ctx.client.password_changes == [
        {"email": "charge.nurse@example.org", "currentPassword": "old-pw", "newPassword": "new-secret"}
    ]
    assert not ctx.auth.is_authenticated
    assert ctx.credentials.get_token() is None
    assert ctx.sessions.get_active_sessions() == []
    assert [e.action for e in ctx.activity_log.query()][:2] == ["Logged out", "Changed password"]
    assert client.get("/api/profile/sessions").status_code == 401


def test_password_change_rejected_by_backend_keeps_login(client, ctx):
    sign_in(client)
    ctx.client.reject_password = True
    body = {"current_password": "wrong", "new_password": "new-secret", "confirm_password": "new-secret"}
    r = client.post("/api/profile/password", json=body)
    assert r.status_code == 400
    assert r.json()["message"] == "Current password is incorrect"
    assert ctx.auth.is_authenticated


def test_missing_user_agent_uses_configured_default(test_settings):
    cfg = test_settings.model_copy(update={"DEFAULT_USER_AGENT": SAFARI_IPHONE})
    ctx = build_context(cfg, persistent_scope=MemoryStore(), locator=FakeLocator(), client=FakeBackend())
    with TestClient(create_app(ctx)) as c:
        r = c.post("/auth/login", json={"email": "a@example.org", "password": "pw"}, headers={"User-Agent": ""})
    assert r.json()["session"]["device"] == "Mobile - Safari"


def test_validation_errors_use_the_banner_shape(client):
    r = client.post("/auth/login", json={"email": "", "password": ""})
    assert r.status_code == 422
    body = r.json()
    assert body["message"] == "Validation error occurred"
    assert body["validation_errors"]


def test_me_requires_login(client):
    assert client.get("/auth/me").status_code == 401
    login(client)
    assert client.get("/auth/me").json()["user"]["role"] == "admin"


def test_login_failure_keeps_backend_message(client, ctx):
    ctx.client.accept = False
    assert login(client).json()["message"] == "Invalid email or password"


def test_backend_outage_becomes_503_banner(ctx):
    app = create_app(ctx)

    @app.get("/boom")
    async def boom():
        raise BackendUnavailable()

    with TestClient(app) as c:
        r = c.get("/boom")
    assert r.status_code == 503
    assert r.json()["error_type"] == "BackendUnavailable"
    assert r.json()["dismissible"] is True
