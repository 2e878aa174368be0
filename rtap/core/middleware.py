"""HTTP middleware for request correlation.

For every request the middleware:
- Accepts the incoming request id header or generates a UUID
- Stores request_id in contextvars so every log line of the request carries it
- Resolves the client IP once and keeps it on ``request.state.client_ip`` for
  audit logging
- Echoes request_id and total duration in response headers

Usage:
    app.middleware("http")(request_context_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from rtap.core.client_ip import get_client_ip
from rtap.core.config import settings
from rtap.core.logging import clear_request_id, set_request_id


async def request_context_middleware(request: Request, call_next) -> Response:
    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    request.state.client_ip = get_client_ip(
        request.headers,
        fallback=request.client.host if request.client else None,
    )

    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
