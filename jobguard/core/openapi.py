"""OpenAPI additions the route decorators cannot express.

- the ``X-API-Key`` scheme, required everywhere except ``/health``
- the shared error envelope, documented on every ``/v1`` operation as the
  403 (auth) and 429 (rate limit, with ``Retry-After``) responses
- tag descriptions
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

API_KEY_SCHEME = "ApiKeyAuth"

_TAGS = [
    {"name": "Throttle", "description": "Per-key attempt tracking with interval, window and lockout rules."},
    {"name": "Cache", "description": "Type-tagged TTL cache shared by the job-board front ends."},
    {"name": "Health", "description": "Liveness checks."},
]

_ERROR_ENVELOPE = {
    "type": "object",
    "required": ["error"],
    "properties": {
        "error": {
            "type": "object",
            "required": ["code", "message"],
            "properties": {
                "code": {"type": "string"},
                "message": {"type": "string"},
                "request_id": {"type": "string", "nullable": True},
                "details": {"type": "object"},
            },
        }
    },
}


def _error_response(description: str, **headers: str) -> Dict[str, Any]:
    response: Dict[str, Any] = {
        "description": description,
        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/ErrorEnvelope"}}},
    }
    if headers:
        response["headers"] = {
            name.replace("_", "-"): {"description": text, "schema": {"type": "string"}}
            for name, text in headers.items()
        }
    return response


def apply_openapi_customizations(app: FastAPI) -> None:
    """Wrap ``app.openapi`` so the generated schema carries the additions.

    FastAPI caches the generated schema, so the patch runs on the same dict
    every time and only adds what is missing.
    """

    generate = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = generate()
        components = schema.setdefault("components", {})
        components.setdefault("schemas", {})["ErrorEnvelope"] = _ERROR_ENVELOPE
        components.setdefault("securitySchemes", {})[API_KEY_SCHEME] = {
            "type": "apiKey",
            "in": "header",
            "name": "X-API-Key",
            "description": "Shared key issued to the job-board front ends.",
        }
        schema["security"] = [{API_KEY_SCHEME: []}]

        known = {tag.get("name") for tag in schema.setdefault("tags", [])}
        schema["tags"].extend(tag for tag in _TAGS if tag["name"] not in known)

        for path, operations in schema.get("paths", {}).items():
            for operation in operations.values():
                if not isinstance(operation, dict):
                    continue
                if path == "/health":
                    operation["security"] = []
                    continue
                responses = operation.setdefault("responses", {})
                responses.setdefault("403", _error_response("Missing or invalid API key"))
                responses.setdefault(
                    "429",
                    _error_response(
                        "Rate limit exceeded",
                        Retry_After="Seconds until the window resets",
                    ),
                )

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
