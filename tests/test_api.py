"""
End-to-end tests of the HTTP API against an in-memory database.
"""
import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

from habittracker.database import get_db
from habittracker import main
from habittracker.config import settings
from habittracker.main import app, limiter
from habittracker.models import Habit


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    limiter.enabled = True


def signup(client, email="ada@example.com", password="secret123"):
    return client.post("/api/v1/users/", json={"email": email, "password": password})


def login(client, email="ada@example.com", password="secret123"):
    return client.post("/api/v1/login", data={"username": email, "password": password})


@pytest.fixture
def tokens(client):
    signup(client)
    return login(client).json()


@pytest.fixture
def auth(tokens):
    return {"Authorization": f"Bearer {tokens['access_token']}"}


class TestAuth:

    def test_health(self, client):
        assert client.get("/").json()["status"] == "online"

    def test_signup(self, client):
        response = signup(client)
        assert response.status_code == 200
        assert response.json()["email"] == "ada@example.com"

    def test_duplicate_signup(self, client):
        signup(client)
        assert signup(client).status_code == 409

    def test_short_password(self, client):
        assert signup(client, password="abc").status_code == 422

    def test_invalid_email(self, client):
        assert signup(client, email="not-an-email").status_code == 422

    def test_bad_login(self, client):
        signup(client)
        response = login(client, password="wrong-password")
        assert response.status_code == 401
        assert response.json()["detail"] == "Incorrect email or password"

    def test_login_returns_token_pair(self, tokens):
        assert tokens["token_type"] == "bearer"
        assert tokens["access_token"]
        assert tokens["refresh_token"]

    def test_habits_need_token(self, client):
        assert client.get("/api/v1/habits/").status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/api/v1/habits/", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    def test_refresh_rotates(self, client, tokens):
        response = client.post("/api/v1/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["refresh_token"] != tokens["refresh_token"]

        reused = client.post("/api/v1/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert reused.status_code == 401

    def test_logout_revokes_refresh_token(self, client, tokens, auth):
        response = client.post("/api/v1/logout", json={"refresh_token": tokens["refresh_token"]}, headers=auth)
        assert response.status_code == 200

        again = client.post("/api/v1/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert again.status_code == 401


class TestHabits:

    def test_create_and_view(self, client, auth):
        response = client.post(
            "/api/v1/habits/",
            json={"name": " Meditate ", "missed_days_allowed": 1, "notes": "10 minutes"},
            headers=auth,
        )
        assert response.status_code == 200
        habit = response.json()
        assert habit["name"] == "Meditate"
        assert habit["streak"] == 0
        assert habit["num_days_record"] == 0
        assert habit["done_today"] is True
        assert habit["days_since_label"] == "Today"

        fetched = client.get(f"/api/v1/habits/{habit['id']}", headers=auth)
        assert fetched.status_code == 200
        assert fetched.json()["notes"] == "10 minutes"

    def test_blank_name_rejected(self, client, auth):
        response = client.post("/api/v1/habits/", json={"name": "   "}, headers=auth)
        assert response.status_code == 422

    def test_negative_allowance_rejected(self, client, auth):
        response = client.post("/api/v1/habits/", json={"name": "Run", "missed_days_allowed": -2}, headers=auth)
        assert response.status_code == 422

    def test_list(self, client, auth):
        client.post("/api/v1/habits/", json={"name": "Run"}, headers=auth)
        client.post("/api/v1/habits/", json={"name": "Read"}, headers=auth)

        response = client.get("/api/v1/habits/", headers=auth)
        assert response.status_code == 200
        assert sorted(h["name"] for h in response.json()) == ["Read", "Run"]

    def test_missing_habit(self, client, auth):
        assert client.get("/api/v1/habits/999", headers=auth).status_code == 404
        assert client.post("/api/v1/habits/999/done", headers=auth).status_code == 404

    def test_habits_are_private(self, client, auth):
        habit = client.post("/api/v1/habits/", json={"name": "Run"}, headers=auth).json()

        signup(client, email="grace@example.com")
        other = login(client, email="grace@example.com").json()
        other_auth = {"Authorization": f"Bearer {other['access_token']}"}

        assert client.get("/api/v1/habits/", headers=other_auth).json() == []
        assert client.get(f"/api/v1/habits/{habit['id']}", headers=other_auth).status_code == 404

    def test_done_on_creation_day_is_not_counted(self, client, auth):
        habit = client.post("/api/v1/habits/", json={"name": "Run"}, headers=auth).json()

        response = client.post(f"/api/v1/habits/{habit['id']}/done", headers=auth)
        assert response.status_code == 200
        body = response.json()
        assert body["accepted"] is False
        assert body["habit"]["streak"] == 0

    def test_done_next_day_counts_once(self, client, auth, db_session):
        habit = client.post("/api/v1/habits/", json={"name": "Run"}, headers=auth).json()
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        db_session.query(Habit).filter(Habit.id == habit["id"]).update({"last_performed": yesterday})
        db_session.commit()

        first  = client.post(f"/api/v1/habits/{habit['id']}/done", headers=auth).json()
        second = client.post(f"/api/v1/habits/{habit['id']}/done", headers=auth).json()

        assert first["accepted"] is True
        assert first["habit"]["streak"] == 1
        assert first["habit"]["done_today"] is True
        assert second["accepted"] is False
        assert second["habit"]["streak"] == 1

    def test_corrupt_record(self, client, auth, db_session):
        habit = client.post("/api/v1/habits/", json={"name": "Run"}, headers=auth).json()
        db_session.query(Habit).filter(Habit.id == habit["id"]).update({"streak": -5})
        db_session.commit()

        response = client.get(f"/api/v1/habits/{habit['id']}", headers=auth)
        assert response.status_code == 500
        assert response.json()["detail"] == "A stored habit could not be read."


class TestServe:

    def test_runs_app_on_configured_address(self, monkeypatch):
        calls = []
        monkeypatch.setattr(main.uvicorn, "run", lambda *a, **kw: calls.append((a, kw)))

        main.serve()

        assert calls == [((app,), {"host": settings.HOST, "port": settings.PORT})]
