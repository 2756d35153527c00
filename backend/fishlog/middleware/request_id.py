"""
FishLog Backend — Request ID Middleware
=========================================

What:  Tags every request with a correlation id and echoes it back in the
       X-Request-ID response header.
How:   A client-supplied X-Request-ID is reused so mobile/web clients can
       correlate their own error reports; otherwise a short random id is
       generated. The id lives in a ContextVar so the exception handlers in
       main.py can put it in the error envelope.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local; concurrent requests share one thread
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "")[:MAX_CLIENT_ID_LENGTH] or uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
