from __future__ import annotations

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.context import request_id_var


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id: the inbound X-Request-Id when present,
    otherwise a fresh UUIDv4. The id is kept on request.state, bound to the
    logging contextvar for the duration of the request and echoed back.
    """

    header_name = "X-Request-Id"

    async def dispatch(self, request: Request, call_next):
        inbound = (request.headers.get("x-request-id") or "").strip()
        request_id = inbound or str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers[self.header_name] = request_id
            return response
        finally:
            request_id_var.reset(token)
