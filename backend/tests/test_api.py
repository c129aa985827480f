"""
Integration tests for the HTTP API.

Tests verify:
- /classify returns classifications and serves repeats from the cache
- /classify/verification records LLM results
- /resolve returns resolver output and 400 {"error"} on bad input
- /health/ and /metrics respond
- Trace IDs are propagated through response headers
"""
import uuid

import pytest
from fastapi.testclient import TestClient

from ewrouter.core.config import reset_settings
from ewrouter.main import app
from ewrouter.services.classification.classifier import reset_query_classifier


@pytest.fixture
def client(monkeypatch, tmp_path):
    """Test client with stores under a temporary cache directory."""
    monkeypatch.setenv("EW_CACHE_DIR", str(tmp_path))
    reset_settings()
    reset_query_classifier()
    yield TestClient(app)
    reset_query_classifier()
    reset_settings()


class TestClassifyEndpoint:
    """Test POST /classify."""

    def test_classify_login(self, client):
        response = client.post("/classify", json={"query": "design a login system"})

        assert response.status_code == 200
        data = response.json()
        assert "SE" in data["systems"]
        assert data["confidence"] >= 0.85
        assert data["needs_llm_verification"] is False
        assert data["classifier"] == "fast-path"

    def test_repeat_is_cache_hit(self, client):
        client.post("/classify", json={"query": "design a login system"})
        data = client.post("/classify", json={"query": "design a login system"}).json()

        assert data["confidence"] == 1.0
        assert data["from_cache"] is True

    def test_no_keywords(self, client):
        data = client.post("/classify", json={"query": "what should we have for lunch today"}).json()

        assert data["systems"] == []
        assert data["confidence"] == 0.0
        assert data["needs_llm_verification"] is True
        assert data["verification_prompt"]

    def test_missing_query(self, client):
        response = client.post("/classify", json={})
        assert response.status_code == 422


class TestVerificationEndpoint:
    """Test POST /classify/verification."""

    def test_record_verification(self, client):
        response = client.post(
            "/classify/verification",
            json={"query": "kafka consumer lag", "systems": ["BE"], "confidence": 0.9},
        )
        assert response.status_code == 200
        assert response.json()["classifier"] == "llm"

        cached = client.post("/classify", json={"query": "kafka consumer lag"}).json()
        assert cached["from_cache"] is True
        assert cached["systems"] == ["BE"]

    def test_invalid_payload(self, client):
        response = client.post(
            "/classify/verification",
            json={"query": "q", "systems": ["NOPE"], "confidence": 0.9},
        )
        assert response.status_code == 400
        assert "trace_id" in response.json()

    def test_missing_query(self, client):
        response = client.post("/classify/verification", json={"systems": ["DB"], "confidence": 0.9})
        assert response.status_code == 400


class TestResolveEndpoint:
    """Test POST /resolve."""

    def test_resolve_conflict(self, client):
        response = client.post(
            "/resolve",
            json=[
                {"target": "consistency", "value": "strong", "source": "DB"},
                {"target": "consistency", "value": "eventual", "source": "BE"},
            ],
        )
        assert response.status_code == 200
        data = response.json()
        assert data["conflicts"][0]["type"] == "structural"
        assert data["conflicts"][0]["resolved_value"] == "strong"
        assert len(data["resolved_set"]) == 1

    def test_wrapped_input(self, client):
        single = {"id": "c1", "source": "DB", "target": "consistency", "value": "strong"}
        wrapped = client.post("/resolve", json={"constraints": [single]}).json()
        bare = client.post("/resolve", json=[single]).json()
        assert wrapped["resolved_set"] == bare["resolved_set"] == [single]

    def test_unparsable_body(self, client):
        response = client.post(
            "/resolve",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert set(response.json()) == {"error"}

    def test_missing_field(self, client):
        response = client.post("/resolve", json=[{"id": "a", "source": "DB", "value": 1}])
        assert response.status_code == 400
        assert "error" in response.json()


class TestOperationalEndpoints:
    """Test health, metrics and trace propagation."""

    def test_health(self, client, tmp_path):
        response = client.get("/health/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["pattern_cache_path"] == str(tmp_path / "pattern-cache.json")

    def test_metrics(self, client):
        client.post("/classify", json={"query": "design a login system"})
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "classifications_total" in response.text

    def test_trace_id_generated(self, client):
        response = client.get("/health/")
        trace_id = response.headers["X-Trace-ID"]
        uuid.UUID(trace_id)
        assert "X-Request-ID" in response.headers

    def test_trace_id_propagated(self, client):
        custom_trace_id = str(uuid.uuid4())
        response = client.get("/health/", headers={"X-Trace-ID": custom_trace_id})
        assert response.headers["X-Trace-ID"] == custom_trace_id
