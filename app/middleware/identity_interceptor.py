"""
Identity Interceptor Middleware

Normalizes the `X-Wallet-Address` header into `request.state.identity` so
endpoints and dependencies see one lowercase identity, and echoes it back in
the response.

Usage:
    from app.middleware.identity_interceptor import IdentityInterceptorMiddleware

    app.add_middleware(IdentityInterceptorMiddleware, skip_paths=["/health", "/docs"])
"""
from typing import Optional, List
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.identity import IDENTITY_HEADER, normalize_identity
from app.core.logging import get_logger

logger = get_logger("middleware.identity-interceptor")


class IdentityInterceptorMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, skip_paths: Optional[List[str]] = None):
        super().__init__(app)
        self.skip_paths = skip_paths or ["/health", "/docs", "/openapi.json", "/redoc"]

    def should_skip_path(self, path: str) -> bool:
        return any(path == skip or path.startswith(skip + "/") for skip in self.skip_paths)

    async def dispatch(self, request: Request, call_next):
        if self.should_skip_path(request.url.path):
            return await call_next(request)

        identity = normalize_identity(request.headers.get(IDENTITY_HEADER))
        request.state.identity = identity
        if identity:
            logger.debug(f"Request identity: {identity}")

        response = await call_next(request)
        if identity:
            response.headers[IDENTITY_HEADER] = identity
        return response
