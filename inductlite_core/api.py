"""
Sign-Out API
============
Public FastAPI route for visitor self-service sign-out.

Usage:
    settings = load_settings()
    service = SignOutService(TokenVerifier.from_settings(settings), store)
    app.include_router(create_sign_out_router(
        service,
        OriginGuard.from_settings(settings),
        trust_proxy=settings.trust_proxy,
    ))
"""

from typing import Dict, List

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
import structlog

from .csrf.middleware import forbidden_response
from .csrf.origin import OriginGuard
from .csrf.tokens import generate_request_id, get_client_ip, get_user_agent
from .errors import OriginRejectedError, PublicMessages, RevocationStoreError, public_error
from .logging import request_id_var
from .service import SignOutService

logger = structlog.get_logger(__name__)


class SignOutRequest(BaseModel):
    token: str = Field(min_length=1, max_length=2048)
    phone: str = Field(min_length=1, max_length=32)


def _field_errors(exc: ValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        errors.setdefault(field, []).append(error["msg"])
    return errors


def create_sign_out_router(
    service: SignOutService,
    guard: OriginGuard,
    prefix: str = "",
    trust_proxy: bool = False,
) -> APIRouter:
    """
    Create the public sign-out router.

    The origin check runs before the body is parsed and before any token or
    record logic, so the body is read by hand rather than by a FastAPI model
    parameter.

    Args:
        service: Configured SignOutService
        guard: OriginGuard for this deployment
        prefix: Optional route prefix
        trust_proxy: Read the client IP from proxy headers (``TRUST_PROXY``)

    Returns:
        APIRouter with ``POST {prefix}/sign-out``
    """
    router = APIRouter(prefix=prefix, tags=["sign-out"])

    @router.post("/sign-out")
    async def submit_sign_out(request: Request):
        request_id_var.set(generate_request_id())

        try:
            guard.assert_origin(request.headers)
        except OriginRejectedError:
            return forbidden_response()

        try:
            body = SignOutRequest.model_validate(await request.json())
        except ValueError as e:
            field_errors = _field_errors(e) if isinstance(e, ValidationError) else None
            return JSONResponse(
                status_code=422,
                content=public_error("VALIDATION_ERROR", "Invalid sign-out data", field_errors),
            )

        try:
            outcome = await service.sign_out_with_token(
                body.token,
                body.phone,
                client_ip=get_client_ip(request.headers, trust_proxy=trust_proxy),
                user_agent=get_user_agent(request.headers),
            )
        except RevocationStoreError as e:
            # Never log: token, phone
            logger.error("sign_out_failed", error_type=type(e).__name__)
            return JSONResponse(
                status_code=500,
                content=public_error("INTERNAL_ERROR", PublicMessages.UNEXPECTED),
            )

        if not outcome.success:
            return JSONResponse(
                status_code=400,
                content=public_error("VALIDATION_ERROR", outcome.message),
            )

        return {"success": True, "message": outcome.message}

    return router
