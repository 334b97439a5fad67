"""
Tests for ora_recommender/api/app.py using FastAPI's TestClient.

Regeneration endpoints run against a real seeded database; the internal
error path uses a mocked orchestrator.
"""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from ora_recommender.api.app import classify_error, create_app
from ora_recommender.config import ApiConfig
from ora_recommender.errors import (
    NoOnboardingAnswersError,
    OnboardingIncompleteError,
    PipelineStepError,
    UserNotFoundError,
)

TOKEN = "test-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}
CALLABLE = "/callable/regenerateUserRecommendations"
PLAIN = "/regenerateUserRecommendations"


def _config(base, **api_kwargs):
    api_kwargs.setdefault("auth_tokens", [TOKEN])
    return base.model_copy(update={"api": ApiConfig(**api_kwargs)})


@pytest.fixture
def client(seeded_config) -> TestClient:
    return TestClient(create_app(_config(seeded_config)))


# ── classify_error ────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "exc, code",
    [
        (ValueError("uid is required"), "invalid-argument"),
        (UserNotFoundError("u1"), "not-found"),
        (OnboardingIncompleteError("u1"), "failed-precondition"),
        (NoOnboardingAnswersError("u1"), "failed-precondition"),
        (PipelineStepError("u1", "scored", RuntimeError("x")), "internal"),
    ],
)
def test_classify_error(exc, code):
    assert classify_error(exc).code == code


def test_internal_message_prefixed():
    err = classify_error(RuntimeError("db gone"))
    assert err.message == "Failed to regenerate recommendations: db gone"
    assert err.http_status == 500


# ── Callable endpoint ─────────────────────────────────────────────────────────

class TestCallable:
    def test_success(self, client):
        resp = client.post(CALLABLE, json={"data": {"uid": "user-2"}}, headers=AUTH)
        assert resp.status_code == 200
        assert resp.json() == {
            "result": {
                "success": True,
                "message": "Recommendations regenerated for user user-2",
            }
        }
        latest = client.get("/users/user-2/recommendations/latest").json()
        assert latest["metadata"]["trigger"] == "manual"

    def test_missing_token(self, client):
        resp = client.post(CALLABLE, json={"data": {"uid": "user-2"}})
        assert resp.status_code == 401
        assert resp.json()["error"]["status"] == "UNAUTHENTICATED"

    def test_wrong_token(self, client):
        resp = client.post(
            CALLABLE, json={"data": {"uid": "user-2"}},
            headers={"Authorization": "Bearer nope"},
        )
        assert resp.status_code == 401

    def test_no_tokens_configured_rejects_everything(self, seeded_config):
        client = TestClient(create_app(_config(seeded_config, auth_tokens=[])))
        resp = client.post(CALLABLE, json={"data": {"uid": "user-2"}}, headers=AUTH)
        assert resp.status_code == 401

    @pytest.mark.parametrize("body", [{}, {"data": {}}, {"data": {"uid": ""}}, {"data": {"uid": 7}}])
    def test_missing_uid(self, client, body):
        resp = client.post(CALLABLE, json=body, headers=AUTH)
        assert resp.status_code == 400
        assert resp.json()["error"] == {
            "status": "INVALID_ARGUMENT",
            "message": "User ID (uid) is required",
        }

    def test_malformed_json(self, client):
        resp = client.post(
            CALLABLE, content=b"{not json",
            headers={**AUTH, "Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    def test_unknown_user(self, client):
        resp = client.post(CALLABLE, json={"data": {"uid": "ghost"}}, headers=AUTH)
        assert resp.status_code == 404
        assert resp.json()["error"]["status"] == "NOT_FOUND"

    def test_onboarding_incomplete(self, client):
        resp = client.post(CALLABLE, json={"data": {"uid": "user-pending"}}, headers=AUTH)
        assert resp.status_code == 412
        assert resp.json()["error"]["status"] == "FAILED_PRECONDITION"

    def test_internal_error(self, seeded_config):
        orch = MagicMock()
        orch.run_on_demand.side_effect = PipelineStepError(
            "user-2", "candidates_loaded", sqlite3.OperationalError("locked")
        )
        client = TestClient(create_app(_config(seeded_config), orchestrator=orch))
        resp = client.post(CALLABLE, json={"data": {"uid": "user-2"}}, headers=AUTH)
        assert resp.status_code == 500
        error = resp.json()["error"]
        assert error["status"] == "INTERNAL"
        assert error["message"].startswith("Failed to regenerate recommendations:")


# ── Plain HTTP endpoint ───────────────────────────────────────────────────────

class TestPlainEndpoint:
    def test_success_without_token(self, client):
        resp = client.post(PLAIN, json={"uid": "user-3"})
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "message": "Recommendations regenerated for user user-3",
        }

    def test_missing_uid(self, client):
        resp = client.post(PLAIN, json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "User ID (uid) is required"}

    def test_empty_body(self, client):
        resp = client.post(PLAIN)
        assert resp.status_code == 400

    def test_not_found(self, client):
        assert client.post(PLAIN, json={"uid": "ghost"}).status_code == 404

    def test_requires_auth_when_configured(self, seeded_config):
        client = TestClient(create_app(_config(seeded_config, http_requires_auth=True)))
        assert client.post(PLAIN, json={"uid": "user-3"}).status_code == 401
        assert client.post(PLAIN, json={"uid": "user-3"}, headers=AUTH).status_code == 200


# ── Read routes / CORS / health ───────────────────────────────────────────────

class TestReadRoutes:
    def test_latest_missing(self, client):
        assert client.get("/users/user-2/recommendations/latest").status_code == 404

    def test_latest_content(self, client):
        client.post(PLAIN, json={"uid": "user-2"})
        record = client.get("/users/user-2/recommendations/latest").json()
        items = client.get(
            "/users/user-2/recommendations/latest/content", params={"limit": 2}
        ).json()
        assert [i["content_id"] for i in items] == record["content_ids"][:2]

    def test_read_routes_require_token_when_configured(self, seeded_config):
        client = TestClient(create_app(_config(seeded_config, http_requires_auth=True)))
        client.post(PLAIN, json={"uid": "user-2"}, headers=AUTH)

        for path in (
            "/users/user-2/recommendations/latest",
            "/users/user-2/recommendations/latest/content",
        ):
            assert client.get(path).status_code == 401
            assert client.get(path, headers={"Authorization": "Bearer nope"}).status_code == 401
            assert client.get(path, headers=AUTH).status_code == 200

    def test_content_limit_validated(self, client):
        resp = client.get("/users/user-2/recommendations/latest/content", params={"limit": 0})
        assert resp.status_code == 422

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert "version" in body

    def test_cors_preflight(self, client):
        resp = client.options(
            CALLABLE,
            headers={
                "Origin": "https://app.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] in ("*", "https://app.example.com")
