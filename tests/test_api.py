from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from koala.api import create_app
from koala.models import Config
from koala.pipeline import Unconfigured

WAV = ("voice.wav", b"\x00\x01" * 8000, "audio/wav")


@pytest.fixture
def client(storage, usage):
    app = create_app(Config(), storage=storage, usage=usage, backend=Unconfigured("no credentials"))
    with TestClient(app) as test_client:
        yield test_client


def test_welcome(client):
    response = client.get("/")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "running"
    assert payload["mode"] == "SIMULATION"


def test_health_reports_mode_and_usage(client):
    payload = client.get("/api/health").json()
    assert payload["status"] == "OK"
    assert payload["mode"] == "SIMULATION"
    assert payload["usage"]["speech"]["limit"] == 2.0
    assert payload["usage"]["translate"]["limit"] == 15000


def test_process_audio_in_simulation_mode(client, storage):
    response = client.post(
        "/api/process-audio",
        data={"student": "Min", "mood": "😢", "language": "russian"},
        files={"audio": WAV},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["priority"] == "high"
    assert data["mode"] == "SIMULATION"
    assert "Min" in data["originalText"]
    assert "Здравствуйте" in data["originalText"]
    assert "Min" in data["translatedText"]
    assert "슬퍼요" in data["translatedText"]
    assert data["usage"]["speech"]["used"] == 0
    assert storage.count_records() == 1


def test_missing_audio_returns_400_without_record(client, storage):
    response = client.post("/api/process-audio", data={"student": "Min", "mood": "😢", "language": "russian"})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "error" in response.json()
    assert storage.count_records() == 0


def test_non_audio_upload_is_rejected(client, storage):
    response = client.post(
        "/api/process-audio",
        data={"student": "Min"},
        files={"audio": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400
    assert storage.count_records() == 0


def test_oversized_upload_is_rejected(client, monkeypatch):
    import koala.api as api

    monkeypatch.setattr(api, "MAX_UPLOAD_BYTES", 10)
    response = client.post("/api/process-audio", data={"student": "Min"}, files={"audio": WAV})

    assert response.status_code == 400


def test_quota_exceeded_returns_429_with_usage(client, usage, storage):
    usage.consume_speech(1.9)

    response = client.post("/api/process-audio", data={"student": "Min"}, files={"audio": WAV})

    assert response.status_code == 429
    body = response.json()
    assert body["usage"]["speech"]["used"] == pytest.approx(1.9)
    assert storage.count_records() == 0


def test_usage_resets_after_day_boundary(client, usage, clock):
    usage.consume_speech(1.2)
    usage.consume_translate(500)
    clock.current = clock.current + timedelta(days=1)

    data = client.get("/api/usage").json()["data"]

    assert data["speech"]["used"] == 0
    assert data["translate"]["used"] == 0
    assert data["date"] == clock.current.isoformat()


def test_records_are_paginated_with_full_field_names(client):
    for i in range(21):
        client.post(
            "/api/process-audio",
            data={"student": f"student-{i}", "mood": "😊", "language": "vietnamese"},
            files={"audio": WAV},
        )

    first = client.get("/api/records").json()
    second = client.get("/api/records", params={"page": 2}).json()

    assert len(first["data"]) == 20
    assert len(second["data"]) == 1
    assert first["pagination"] == {"page": 1, "perPage": 20, "total": 21, "totalPages": 2}
    newest = first["data"][0]
    assert newest["student"] == "student-20"
    assert set(newest) >= {"student", "mood", "language", "originalText", "translatedText", "date", "priority"}
    assert second["data"][0]["student"] == "student-0"


def test_test_audio_endpoint(client):
    body = client.post("/api/test-audio").json()
    assert body["success"] is True
    assert body["data"]["language"] == "korean"


def test_unknown_route_lists_available_routes(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert "POST /api/process-audio" in response.json()["availableRoutes"]


def test_cors_headers_allow_any_origin(client):
    response = client.get("/api/health", headers={"Origin": "https://forms.example.org"})
    assert response.headers["access-control-allow-origin"] == "*"


def test_translate_usage_counters_are_integers(client, usage):
    usage.consume_translate(120)

    response = client.get("/api/usage")
    data = response.json()["data"]

    assert '"limit":15000' in response.text
    assert isinstance(data["translate"]["used"], int)
    assert isinstance(data["translate"]["remaining"], int)
    assert data["translate"]["remaining"] == 14880


class BrokenStorage:
    def add_record(self, record):
        raise OSError("disk full")


class BrokenSimulator:
    def generate(self, student, mood, language):
        raise RuntimeError("template table missing")


@pytest.fixture
def app(storage, usage):
    return create_app(Config(), storage=storage, usage=usage, backend=Unconfigured("no credentials"))


def test_storage_failure_returns_500_with_reason(app, storage):
    app.state.services.orchestrator.storage = BrokenStorage()

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post("/api/process-audio", data={"student": "Min"}, files={"audio": WAV})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert "disk full" in body["error"]
    assert storage.count_records() == 0


def test_unexpected_failure_returns_generic_500(app, storage):
    app.state.services.orchestrator.simulator = BrokenSimulator()

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post("/api/process-audio", data={"student": "Min"}, files={"audio": WAV})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Internal server error"
    assert storage.count_records() == 0
