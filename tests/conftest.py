import pathlib
import sys

import pytest
from fastapi.testclient import TestClient

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from repairdesk.lifecycle import Role
from repairdesk.main import create_app
from repairdesk.session import Session
from repairdesk.store import store

DEFAULT_PASSWORD = "secret-pass"
TEST_JWT_SECRET = "jwt_test_secret_repairdesk_32bytes_min"


class AuthenticatedClient:
    """TestClient wrapper that signs every /api/v1 call with a user's bearer token."""

    def __init__(self, client: TestClient, *, token: str):
        self._client = client
        self._token = token

    def request(self, method: str, url: str, **kwargs):
        headers = dict(kwargs.pop("headers", {}) or {})
        if url.startswith("/api/v1/") and "Authorization" not in headers:
            headers["Authorization"] = f"Bearer {self._token}"
        return self._client.request(method, url, headers=headers, **kwargs)

    def __getattr__(self, name: str):
        return getattr(self._client, name)

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs):
        return self.request("PUT", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self.request("DELETE", url, **kwargs)


def register_user(
    *,
    email: str,
    name: str,
    role: str = Role.CLIENT,
    address: str = "",
    phone: str = "",
) -> dict:
    return store.register_account(
        email=email,
        password=DEFAULT_PASSWORD,
        name=name,
        phone=phone,
        address=address,
        role=role,
    )


def sign_in_session(email: str) -> Session:
    data = store.sign_in(email=email, password=DEFAULT_PASSWORD)
    return store.open_session(data["access_token"])


@pytest.fixture(autouse=True)
def reset_store(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("JWT_SHARED_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("JWT_ISSUER", "test-issuer")
    monkeypatch.setenv("JWT_AUDIENCE", "test-audience")
    monkeypatch.delenv("TRACE_ID_STRICT_REQUIRED", raising=False)
    monkeypatch.delenv("PHOTO_MAX_COUNT", raising=False)
    monkeypatch.delenv("PHOTO_MAX_BYTES", raising=False)
    store.reset()
    yield


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


@pytest.fixture
def admin_session() -> Session:
    register_user(email="admin@example.com", name="Ana Admin", role=Role.ADMIN)
    return sign_in_session("admin@example.com")


@pytest.fixture
def client_session() -> Session:
    register_user(email="carla@example.com", name="Carla Client", address="12 Elm Street", phone="555-0101")
    return sign_in_session("carla@example.com")


@pytest.fixture
def collaborator_session() -> Session:
    register_user(email="colin@example.com", name="Colin Fixer", role=Role.COLLABORATOR)
    return sign_in_session("colin@example.com")


@pytest.fixture
def other_collaborator_session() -> Session:
    register_user(email="olga@example.com", name="Olga Fixer", role=Role.COLLABORATOR)
    return sign_in_session("olga@example.com")


@pytest.fixture
def as_user(client):
    def _as_user(session: Session) -> AuthenticatedClient:
        return AuthenticatedClient(client, token=session.token)

    return _as_user
