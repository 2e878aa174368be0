"""OpenAPI metadata and customization utilities.

Enriches the generated schema with:
- A bearer security scheme (principals are authenticated upstream)
- Tags metadata
- A documented 429 response on every rate-limited path

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TOO_MANY_REQUESTS = {
    "description": "Rate limit exceeded. See Retry-After and X-RateLimit-* headers.",
}


def apply_openapi_customizations(app: FastAPI, *, rate_limited_prefix: str = "/v1") -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    Health endpoints are exempted from auth by setting ``security: []``.
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "BearerAuth",
            {
                "type": "http",
                "scheme": "bearer",
                "description": "Session token issued by the sign-in service.",
            },
        )
        schema.setdefault("security", [{"BearerAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Operations",
                "description": "Red-team operations, filtered by visibility and access groups.",
            },
            {
                "name": "Health",
                "description": "Liveness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                if path.endswith("/health"):
                    method_obj["security"] = []
                elif path.startswith(rate_limited_prefix):
                    method_obj.setdefault("responses", {}).setdefault("429", _TOO_MANY_REQUESTS)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
