"""
Origin Guard Middleware
=======================
Rejects cross-origin mutations before any token or session logic runs.

Usage:
    from inductlite_core.csrf import OriginGuard, OriginGuardMiddleware

    app.add_middleware(
        OriginGuardMiddleware,
        guard=OriginGuard.from_settings(settings),
    )
"""

from typing import Optional, Set

from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
import structlog

from ..errors import OriginRejectedError, PublicMessages, public_error
from .origin import OriginGuard

logger = structlog.get_logger(__name__)

UNSAFE_METHODS: Set[str] = {"POST", "PUT", "PATCH", "DELETE"}


class OriginGuardMiddleware(BaseHTTPMiddleware):
    """
    Middleware enforcing the same-origin check on unsafe methods.

    Safe methods and excluded paths (health checks) pass through untouched.
    """

    DEFAULT_EXCLUDED_PATHS: Set[str] = {"/health", "/ready", "/live"}

    def __init__(
        self,
        app,
        guard: OriginGuard,
        excluded_paths: Optional[Set[str]] = None,
    ):
        super().__init__(app)
        self.guard = guard
        self.excluded_paths = (
            excluded_paths if excluded_paths is not None else self.DEFAULT_EXCLUDED_PATHS
        )

    async def dispatch(self, request: Request, call_next):
        if request.method.upper() not in UNSAFE_METHODS:
            return await call_next(request)

        if request.url.path in self.excluded_paths:
            return await call_next(request)

        try:
            self.guard.assert_origin(request.headers)
        except OriginRejectedError:
            logger.warning(
                "cross_origin_request_blocked",
                method=request.method,
                path=request.url.path,
            )
            return forbidden_response()

        return await call_next(request)


def forbidden_response() -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content=public_error(OriginRejectedError.code, PublicMessages.FORBIDDEN),
    )


def require_same_origin(guard: OriginGuard):
    """
    Build a FastAPI dependency that enforces the origin check on one route.

    Rejections become a 403 ``HTTPException`` carrying only the generic message.

    Usage:
        @router.post("/sign-out", dependencies=[Depends(require_same_origin(guard))])
    """
    async def dependency(request: Request) -> None:
        try:
            guard.assert_origin(request.headers)
        except OriginRejectedError as e:
            raise HTTPException(status_code=e.status_code, detail=PublicMessages.FORBIDDEN) from e

    return dependency
