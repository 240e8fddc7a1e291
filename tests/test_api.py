"""Tests for the HTTP adapter."""

import base64
import io
from datetime import timedelta

import numpy as np
import pytest
import soundfile as sf
from fastapi.testclient import TestClient

from voicefactor.app.dependencies import (
    get_enrollment_orchestrator,
    get_verification_orchestrator,
)
from voicefactor.app.main import create_app
from voicefactor.app.service_loader import get_service_loader
from voicefactor.database.stores import SqlRateLimiter
from voicefactor.domain_service import EnrollmentOrchestrator, VerificationOrchestrator

from .conftest import VOICE_A, VOICE_B, harmonic_wave

HEADERS = {"X-Authenticated-User": "user-001"}


def encode(audio: np.ndarray, sample_rate: int = 16000) -> str:
    """Base64 of a 16-bit PCM WAV."""
    buffer = io.BytesIO()
    sf.write(buffer, audio, sample_rate, format="WAV", subtype="PCM_16")
    return base64.b64encode(buffer.getvalue()).decode()


def enroll_body(gains=(0.8, 1.0, 1.2)) -> dict:
    return {
        "captures": [
            {"audio_data": encode(harmonic_wave(VOICE_A, gain=g)), "audio_format": "wav"}
            for g in gains
        ]
    }


@pytest.fixture
def client(extractor, engine, template_store, attempt_log, clock, locks):
    """Create test client with orchestrators on the in-memory database."""
    app = create_app()
    rate_limiter = SqlRateLimiter(
        engine, max_failed_attempts=3, window=timedelta(minutes=15), clock=clock, locks=locks
    )
    enrollment = EnrollmentOrchestrator(extractor, template_store)
    verification = VerificationOrchestrator(
        extractor, template_store, rate_limiter, attempt_log
    )
    app.dependency_overrides[get_enrollment_orchestrator] = lambda: enrollment
    app.dependency_overrides[get_verification_orchestrator] = lambda: verification
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_lifespan_loads_services(self, monkeypatch):
        """Services are built on startup and dropped on shutdown."""
        monkeypatch.setattr("voicefactor.app.main.init_db", lambda: None)
        loader = get_service_loader()

        with TestClient(create_app()):
            assert loader.loaded
        assert not loader.loaded


class TestEnrollEndpoint:
    """Tests for POST/DELETE /api/auth/enroll."""

    def test_enroll(self, client):
        """Three good captures enroll the authenticated user."""
        response = client.post("/api/auth/enroll", json=enroll_body(), headers=HEADERS)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "enrolled"
        assert data["version"] == 1
        assert len(data["captures"]) == 3

    def test_enroll_incomplete(self, client):
        """Too few usable captures is reported as a failed enrollment."""
        silence = encode(np.zeros(3 * 16000, dtype=np.float32))
        body = enroll_body(gains=(1.0,))
        body["captures"] += [{"audio_data": silence}] * 2

        response = client.post("/api/auth/enroll", json=body, headers=HEADERS)

        assert response.status_code == 422
        data = response.json()
        assert data["status"] == "failed"
        assert data["reason"] == "enrollment_incomplete"

    def test_enroll_requires_identity(self, client):
        """Requests without an authenticated user are refused."""
        response = client.post("/api/auth/enroll", json=enroll_body())
        assert response.status_code == 401

    def test_user_id_in_body_rejected(self, client):
        """A payload cannot name the user to enroll."""
        body = enroll_body()
        body["user_id"] = "someone-else"
        response = client.post("/api/auth/enroll", json=body, headers=HEADERS)
        assert response.status_code == 422

    def test_invalid_audio(self, client):
        """Undecodable audio is a 400 input error."""
        body = {"captures": [{"audio_data": base64.b64encode(b"garbage").decode()}]}
        response = client.post("/api/auth/enroll", json=body, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["reason"] == "unsupported_format"

    def test_revoke(self, client, template_store):
        """DELETE revokes the template; repeating it is harmless."""
        client.post("/api/auth/enroll", json=enroll_body(), headers=HEADERS)

        for _ in range(2):
            response = client.delete("/api/auth/enroll", headers=HEADERS)
            assert response.status_code == 200
            assert response.json() == {"status": "revoked"}
        assert template_store.get_active("user-001") is None


class TestVerifyEndpoint:
    """Tests for POST /api/auth/verify."""

    def test_accept(self, client):
        client.post("/api/auth/enroll", json=enroll_body(), headers=HEADERS)
        body = {"audio_data": encode(harmonic_wave(VOICE_A, gain=1.1))}

        response = client.post("/api/auth/verify", json=body, headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {
            "decision": "accept",
            "reason": "matched",
            "retry_after_seconds": None,
        }

    def test_reject_never_returns_score(self, client):
        """The similarity score is not exposed to the client."""
        client.post("/api/auth/enroll", json=enroll_body(), headers=HEADERS)
        body = {"audio_data": encode(harmonic_wave(VOICE_B))}

        response = client.post("/api/auth/verify", json=body, headers=HEADERS)

        data = response.json()
        assert data["decision"] == "reject"
        assert data["reason"] == "below_threshold"
        assert "score" not in data

    def test_identity_comes_from_header(self, client):
        """Verifying as another user checks that user's template."""
        client.post("/api/auth/enroll", json=enroll_body(), headers=HEADERS)
        body = {"audio_data": encode(harmonic_wave(VOICE_A, gain=1.1))}

        response = client.post(
            "/api/auth/verify", json=body, headers={"X-Authenticated-User": "user-002"}
        )
        assert response.json()["reason"] == "no_template"

    def test_lockout(self, client):
        """After repeated failures the client sees the lockout and retry time."""
        client.post("/api/auth/enroll", json=enroll_body(), headers=HEADERS)
        wrong = {"audio_data": encode(harmonic_wave(VOICE_B))}
        for _ in range(3):
            client.post("/api/auth/verify", json=wrong, headers=HEADERS)

        right = {"audio_data": encode(harmonic_wave(VOICE_A))}
        data = client.post("/api/auth/verify", json=right, headers=HEADERS).json()

        assert data["reason"] == "locked_out"
        assert data["retry_after_seconds"] == 900

    def test_too_short(self, client):
        """Out-of-bounds durations are rejected as invalid input."""
        body = {"audio_data": encode(harmonic_wave(VOICE_A, duration=1.0))}
        response = client.post("/api/auth/verify", json=body, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_audio"

    def test_requires_identity(self, client):
        body = {"audio_data": encode(harmonic_wave(VOICE_A))}
        assert client.post("/api/auth/verify", json=body).status_code == 401
