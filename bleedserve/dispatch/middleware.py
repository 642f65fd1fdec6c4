"""Request correlation middleware.

Assigns every incoming request a ULID, binds it as ``request_id`` in the
structlog context for the duration of the request, and echoes it back in the
``X-Request-ID`` response header.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from bleedserve.utils.logger import clear_request_id, set_request_id
from bleedserve.utils.ulid import generate_ulid

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Starlette middleware tagging each request with a ULID.

    Registration (in create_app() in bleedserve/main.py):
        application.add_middleware(RequestIdMiddleware)
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        request_id = generate_ulid()
        set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_id()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
