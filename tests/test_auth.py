import pytest
from fastapi.testclient import TestClient

from backoffice.api.auth import get_current_user
from backoffice.database import get_db
from backoffice.main import app
from backoffice.models.user import User
from backoffice.services import auth_service

API = "/api/v1"


@pytest.fixture
def anon_client(db, user):
    """Client with the real authentication dependency."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides.pop(get_current_user, None)
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuthService:
    def test_password_round_trip(self):
        hashed = auth_service.hash_password("rahsia")
        assert auth_service.verify_password("rahsia", hashed)
        assert not auth_service.verify_password("salah", hashed)

    def test_token_carries_user(self, user):
        token = auth_service.create_access_token(user)
        payload = auth_service.decode_token(token)
        assert payload["sub"] == str(user.id)
        assert payload["username"] == "staff"
        assert payload["role"] == user.role

    def test_token_resolves_to_actor(self, db, user):
        token = auth_service.create_access_token(user)
        assert auth_service.resolve_actor(db, token).id == user.id

    def test_disabled_user_token_rejected(self, db, user):
        token = auth_service.create_access_token(user)
        user.active = False
        db.commit()
        assert auth_service.resolve_actor(db, token) is None

    def test_garbage_token(self, db):
        assert auth_service.decode_token("not-a-token") is None
        assert auth_service.resolve_actor(db, "not-a-token") is None

    def test_default_admin_created_once(self, db):
        auth_service.ensure_default_admin(db)
        auth_service.ensure_default_admin(db)
        assert db.query(User).filter(User.username == "admin").count() == 1

    def test_duplicate_username(self, db, user):
        with pytest.raises(ValueError):
            auth_service.create_user(db, "staff", "x")


class TestAuthRoutes:
    def test_login_and_me(self, anon_client):
        r = anon_client.post(f"{API}/auth/login", json={"username": "staff", "password": "secret"})
        assert r.status_code == 200
        token = r.json()["token"]

        r = anon_client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 200
        assert r.json()["username"] == "staff"

    def test_bad_password(self, anon_client):
        r = anon_client.post(f"{API}/auth/login", json={"username": "staff", "password": "wrong"})
        assert r.status_code == 401

    def test_routes_need_a_token(self, anon_client):
        assert anon_client.get(f"{API}/orders").status_code == 401

    def test_totals_preview_is_open(self, anon_client):
        r = anon_client.post(f"{API}/orders/totals", json={"items": [{"quantity": 1, "unit_price": "2.00"}]})
        assert r.status_code == 200
