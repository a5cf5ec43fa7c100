"""
CSRF Defense
============
Origin validation and request helpers for public, state-mutating actions.
"""

from .origin import OriginGuard, parse_origin
from .middleware import (
    OriginGuardMiddleware,
    UNSAFE_METHODS,
    forbidden_response,
    require_same_origin,
)
from .tokens import (
    generate_request_id,
    generate_csrf_token,
    validate_csrf_token,
    is_valid_ip_format,
    get_client_ip,
    get_user_agent,
)

__all__ = [
    # Origin
    "OriginGuard",
    "parse_origin",
    # Middleware
    "OriginGuardMiddleware",
    "UNSAFE_METHODS",
    "forbidden_response",
    "require_same_origin",
    # Tokens
    "generate_request_id",
    "generate_csrf_token",
    "validate_csrf_token",
    "is_valid_ip_format",
    "get_client_ip",
    "get_user_agent",
]
