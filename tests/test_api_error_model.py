"""Tests for the API error envelope and exception mapping.

Tests cover:
A) Every error response carries {code, message, details, request_id}
B) request_id matches the X-Request-Id response header
C) Domain errors map to stable codes and statuses
D) Unhandled exceptions fail closed with a generic 500
"""

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from riskprofile.api.main import create_app
from riskprofile.audit.sink import InMemoryAuditSink
from riskprofile.models.framework import FrameworkVersion
from riskprofile.scoring.evaluator import EngineIntegrityError


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app(audit_sink=InMemoryAuditSink()), raise_server_exceptions=False)


def _assert_envelope(response, code: str, status: int) -> dict:
    assert response.status_code == status
    body = response.json()
    assert set(body) == {"code", "message", "details", "request_id"}
    assert body["code"] == code
    assert body["message"]
    assert body["request_id"] == response.headers["X-Request-Id"]
    return body


class TestNotFound:
    @pytest.mark.parametrize(
        ("path", "code"),
        [
            ("/v1/questions/ghost", "QUESTION_NOT_FOUND"),
            ("/v1/frameworks/ghost", "FRAMEWORK_NOT_FOUND"),
            ("/v1/frameworks/ghost/versions", "FRAMEWORK_NOT_FOUND"),
            ("/v1/framework-versions/ghost", "FRAMEWORK_VERSION_NOT_FOUND"),
            ("/v1/framework-versions/ghost/questions", "FRAMEWORK_VERSION_NOT_FOUND"),
            ("/v1/submissions/ghost", "SUBMISSION_NOT_FOUND"),
        ],
    )
    def test_domain_not_found(self, client: TestClient, path: str, code: str) -> None:
        _assert_envelope(client.get(path), code, 404)

    def test_unknown_route(self, client: TestClient) -> None:
        _assert_envelope(client.get("/v1/nothing-here"), "NOT_FOUND", 404)

    def test_request_id_is_echoed(self, client: TestClient) -> None:
        response = client.get("/v1/questions/ghost", headers={"X-Request-Id": "trace-9"})

        body = _assert_envelope(response, "QUESTION_NOT_FOUND", 404)
        assert body["request_id"] == "trace-9"
        assert body["details"] == {"key": "ghost"}

    def test_no_active_version(self, client: TestClient) -> None:
        client.post("/v1/frameworks", json={"code": "empty", "name": "Empty"})

        _assert_envelope(
            client.get("/v1/frameworks/empty/active-version"),
            "ACTIVE_FRAMEWORK_VERSION_NOT_FOUND",
            404,
        )


class TestRequestValidation:
    def test_missing_body_fields(self, client: TestClient) -> None:
        body = _assert_envelope(
            client.post("/v1/frameworks", json={"code": "x"}),
            "REQUEST_VALIDATION_FAILED",
            422,
        )

        assert {"field": "name", "message": "Field required"} in body["details"]["errors"]

    def test_malformed_json(self, client: TestClient) -> None:
        response = client.post(
            "/v1/questions",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        _assert_envelope(response, "REQUEST_VALIDATION_FAILED", 422)


class TestUnhandled:
    def test_generic_exception_is_opaque(
        self,
        client: TestClient,
        seed_reference: Callable[..., FrameworkVersion],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        version = seed_reference()

        def boom(*args: object, **kwargs: object) -> None:
            raise RuntimeError("secret internals")

        monkeypatch.setattr(
            "riskprofile.services.frameworks.registry.FrameworkRegistry.get_version", boom
        )

        response = client.get(f"/v1/framework-versions/{version.version_id}")

        body = _assert_envelope(response, "INTERNAL_ERROR", 500)
        assert "secret" not in body["message"]
        assert body["details"] is None

    def test_engine_integrity_error(
        self,
        client: TestClient,
        seed_reference: Callable[..., FrameworkVersion],
        aggressive_answers: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        version = seed_reference()

        def broken(self: object, answers: object) -> None:
            raise EngineIntegrityError("decision outside band domain")

        monkeypatch.setattr("riskprofile.scoring.evaluator.ScoringEvaluator.evaluate", broken)

        response = client.post(
            f"/v1/framework-versions/{version.version_id}/submissions",
            json={"answers": aggressive_answers},
        )

        body = _assert_envelope(response, "ENGINE_INTEGRITY_ERROR", 500)
        assert "outside" not in body["message"]
        assert client.get("/v1/submissions").json()["items"] == []
