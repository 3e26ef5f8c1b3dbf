"""Tests for the OpenAPI schema customizations."""

from fastapi.testclient import TestClient


def _schema(client: TestClient) -> dict:
    response = client.get("/openapi.json")
    assert response.status_code == 200
    return response.json()


def test_security_schemes_are_declared(client: TestClient) -> None:
    schemes = _schema(client)["components"]["securitySchemes"]

    assert schemes["AdminApiKey"]["name"] == "X-API-Key"
    assert schemes["BearerSession"]["scheme"] == "bearer"


def test_security_requirements_per_path(client: TestClient) -> None:
    paths = _schema(client)["paths"]

    assert paths["/v1/rate-limits/{identifier}"]["delete"]["security"] == [{"AdminApiKey": []}]
    assert paths["/v1/forms"]["get"]["security"] == [{"BearerSession": []}]
    assert paths["/v1/forms"]["post"]["security"] == [{"BearerSession": []}]
    assert paths["/v1/forms/{form_id}/submit"]["post"]["security"] == []
    assert paths["/health"]["get"]["security"] == []


def test_rate_limited_operations_document_headers(client: TestClient) -> None:
    submit = _schema(client)["paths"]["/v1/forms/{form_id}/submit"]["post"]["responses"]

    assert "X-RateLimit-Limit" in submit["200"]["headers"]
    assert "Retry-After" not in submit["200"]["headers"]
    assert "Retry-After" in submit["429"]["headers"]
    assert "X-RateLimit-Reset" in submit["429"]["headers"]


def test_health_has_no_rate_limit_docs(client: TestClient) -> None:
    health = _schema(client)["paths"]["/health"]["get"]["responses"]

    assert "429" not in health
    assert "headers" not in health["200"]


def test_tags_metadata(client: TestClient) -> None:
    names = {tag["name"] for tag in _schema(client)["tags"]}

    assert {"Forms", "Rate limits", "Health"} <= names
