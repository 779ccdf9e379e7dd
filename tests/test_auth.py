import pytest
from fastapi.testclient import TestClient

from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models.user import User


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def register_user(client: TestClient, email: str, password: str):
    return client.post("/auth/register", json={"email": email, "password": password})


def test_registration_returns_user_without_password():
    client = TestClient(app)
    response = register_user(client, "agence@example.com", "secret")
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "agence@example.com"
    assert "password" not in data
    assert "hashed_password" not in data
    assert isinstance(data.get("id"), int)


def test_duplicate_email_returns_400():
    client = TestClient(app)
    assert register_user(client, "dup@example.com", "secret").status_code == 200
    assert register_user(client, "dup@example.com", "secret").status_code == 400


def test_password_is_stored_hashed():
    client = TestClient(app)
    register_user(client, "hash@example.com", "secret")
    with SessionLocal() as db:
        user = db.query(User).filter(User.email == "hash@example.com").first()
        assert user is not None
        assert user.hashed_password and user.hashed_password != "secret"


def test_login_returns_bearer_token():
    client = TestClient(app)
    register_user(client, "login@example.com", "secret")
    response = client.post("/auth/login", json={"email": "login@example.com", "password": "secret"})
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert isinstance(data["access_token"], str) and data["access_token"]


def test_login_rejects_wrong_password_and_unknown_user():
    client = TestClient(app)
    register_user(client, "wrongpw@example.com", "secret")
    assert client.post("/auth/login", json={"email": "wrongpw@example.com", "password": "bad"}).status_code == 400
    assert client.post("/auth/login", json={"email": "nosuch@example.com", "password": "secret"}).status_code == 400


def test_login_with_missing_hash_returns_400_not_500():
    client = TestClient(app)
    register_user(client, "badhash@example.com", "secret")
    with SessionLocal() as db:
        user = db.query(User).filter(User.email == "badhash@example.com").first()
        user.hashed_password = None
        db.commit()
    response = client.post("/auth/login", json={"email": "badhash@example.com", "password": "secret"})
    assert response.status_code == 400


def test_me_returns_current_user():
    client = TestClient(app)
    register_user(client, "me@example.com", "secret")
    token = client.post("/auth/login", json={"email": "me@example.com", "password": "secret"}).json()["access_token"]
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["email"] == "me@example.com"


def test_me_requires_valid_token():
    client = TestClient(app)
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer invalid"}).status_code == 401
