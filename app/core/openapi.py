"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- Security schemes: admin API key (``X-API-Key``) for operational endpoints
  and bearer sessions for user endpoints, with per-path requirements
- Rate limit response headers on every operation that can answer 429

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

RATE_LIMIT_HEADERS: Dict[str, Any] = {
    "X-RateLimit-Limit": {
        "description": "Max requests per window for the applied quota",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Remaining": {
        "description": "Requests left in the current window",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "UNIX epoch milliseconds when the window resets",
        "schema": {"type": "integer"},
    },
}

RETRY_AFTER_HEADER: Dict[str, Any] = {
    "Retry-After": {
        "description": "Seconds to wait before retrying",
        "schema": {"type": "integer"},
    },
}

_TAGS = [
    {
        "name": "Forms",
        "description": "Rate limited form endpoints (submission, API, form creation).",
    },
    {
        "name": "Rate limits",
        "description": "Operational endpoints for counter management (admin API key).",
    },
    {
        "name": "Health",
        "description": "Liveness check and rate limit store reachability.",
    },
]


def _security_for(path: str, method: str) -> list[dict[str, list]]:
    if "/rate-limits/" in path:
        return [{"AdminApiKey": []}]
    if path.endswith("/forms") and method in {"get", "post"}:
        return [{"BearerSession": []}]
    return []


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes for the admin key and bearer sessions
    - Sets the security requirement per operation (public submissions and
      health are open)
    - Documents ``X-RateLimit-*`` headers on success and 429 responses of
      rate limited operations, plus ``Retry-After`` on 429
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        # Components / security schemes
        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "AdminApiKey",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Admin API key for operational endpoints.",
            },
        )
        security_schemes.setdefault(
            "BearerSession",
            {
                "type": "http",
                "scheme": "bearer",
                "description": (
                    "Session token. Missing or unknown tokens are served as the "
                    "anonymous user on the free tier."
                ),
            },
        )

        # Tags metadata
        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            for method, operation in methods.items():
                if not isinstance(operation, dict):
                    continue
                operation["security"] = _security_for(path, method)

                responses = operation.get("responses", {})
                if "429" not in responses:
                    continue
                for status_code, response in responses.items():
                    headers = response.setdefault("headers", {})
                    if status_code == "429":
                        headers.update(RATE_LIMIT_HEADERS)
                        headers.update(RETRY_AFTER_HEADER)
                    elif status_code.startswith("2"):
                        headers.update(RATE_LIMIT_HEADERS)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
