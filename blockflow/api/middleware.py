"""Caller identity middleware.

Authentication happens upstream: the auth proxy in front of BlockFlow
forwards the signed-in user as headers. This middleware only copies them
into ``request.state``; routes that need a caller reject requests without one.

  X-User-Id     → request.state.external_id  (header name is configurable)
  X-User-Email  → request.state.user_email
  X-User-Name   → request.state.user_name
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from blockflow.config import config


class IdentityMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header: str = None):
        super().__init__(app)
        self.header = header or config.user_header

    async def dispatch(self, request: Request, call_next):
        request.state.external_id = request.headers.get(self.header, "").strip() or None
        request.state.user_email = request.headers.get("X-User-Email", "")
        request.state.user_name = request.headers.get("X-User-Name") or None
        return await call_next(request)
