import json

import pytest
from fastapi.testclient import TestClient

import rehab_service.router as coaching_router
from core.config import Settings
from main import app
from rehab_service.models import SessionManager

from conftest import make_landmarks, raised_left_arm


@pytest.fixture
def manager(monkeypatch):
    manager = SessionManager(config=Settings(), max_sessions=2, clock=lambda: 0.0)
    monkeypatch.setattr(coaching_router, "get_manager", lambda: manager)
    return manager


@pytest.fixture
def client(manager):
    return TestClient(app)


def _start(client, exercise="shoulder_flexion"):
    response = client.post("/api/coaching/sessions", json={"user_id": "u1", "exercise_type": exercise})
    assert response.status_code == 200
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_list_exercises(client):
    data = client.get("/api/coaching/exercises").json()
    assert data["total"] == 6
    assert {e["id"] for e in data["exercises"]} >= {"shoulder_flexion", "seated_march"}


def test_session_lifecycle(client):
    session = _start(client, "Shoulder Flexion")
    session_id = session["session_id"]
    assert session["recognized"] is True

    frame = {"landmarks": make_landmarks(raised_left_arm(0.2)), "timestamp_ms": 0}
    data = client.post(f"/api/coaching/sessions/{session_id}/frames", json=frame).json()
    assert data["is_correct_form"] is True
    assert data["rep_count"] == 1
    assert data["phase"] == "execution"

    assert client.post(f"/api/coaching/sessions/{session_id}/pause").json()["status"] == "paused"
    assert client.post(f"/api/coaching/sessions/{session_id}/resume").json()["status"] == "resumed"
    assert client.get(f"/api/coaching/sessions/{session_id}").json()["rep_count"] == 1

    assert client.post(f"/api/coaching/sessions/{session_id}/reset").json()["status"] == "reset"

    summary = client.post(f"/api/coaching/sessions/{session_id}/complete").json()
    assert summary["status"] == "completed"
    assert client.get(f"/api/coaching/sessions/{session_id}").status_code == 404


def test_frame_with_missing_landmarks(client):
    session_id = _start(client)["session_id"]
    response = client.post(
        f"/api/coaching/sessions/{session_id}/frames",
        json={"landmarks": [None] * 33, "timestamp_ms": 0}
    )

    assert response.status_code == 200
    assert response.json()["confidence"] == 0.0


def test_unknown_exercise_is_not_recognized(client):
    assert _start(client, "jumping jacks")["recognized"] is False


def test_unknown_session_is_404(client):
    assert client.get("/api/coaching/sessions/nope").status_code == 404
    assert client.post("/api/coaching/sessions/nope/frames", json={"landmarks": []}).status_code == 404


def test_resume_active_session_conflicts(client):
    session_id = _start(client)["session_id"]
    assert client.post(f"/api/coaching/sessions/{session_id}/resume").status_code == 409


def test_capacity_exhausted_is_429(client):
    _start(client)
    _start(client)
    response = client.post("/api/coaching/sessions", json={"user_id": "u1", "exercise_type": "bicep_curl"})
    assert response.status_code == 429


@pytest.mark.parametrize("timestamp", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_timestamp_rejected(client, timestamp):
    session_id = _start(client)["session_id"]
    landmarks = json.dumps(make_landmarks(raised_left_arm(0.2)))

    for _ in range(3):
        response = client.post(
            f"/api/coaching/sessions/{session_id}/frames",
            content=f'{{"landmarks": {landmarks}, "timestamp_ms": {timestamp}}}',
            headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 422

    status = client.get(f"/api/coaching/sessions/{session_id}").json()
    assert status["rep_count"] == 0
    assert status["frames_processed"] == 0
