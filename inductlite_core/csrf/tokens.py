"""
Request Helpers
===============
CSRF tokens, request ids and client metadata for public actions.
"""

import hmac
import ipaddress
import re
import secrets
from typing import Mapping, Optional

MAX_IP_LENGTH = 45
IP_CHARACTERS = re.compile(r"[0-9a-fA-F.:]+")


def generate_request_id() -> str:
    """Generate a random request ID for tracing."""
    return secrets.token_hex(16)


def generate_csrf_token() -> str:
    """Generate a CSRF token for high-risk operations."""
    return secrets.token_hex(32)


def validate_csrf_token(provided_token: Optional[str], session_token: Optional[str]) -> bool:
    """
    Validate a CSRF token against the session token.

    Uses constant-time comparison to prevent timing attacks.
    """
    if not provided_token or not session_token:
        return False
    if len(provided_token) != len(session_token):
        return False
    return hmac.compare_digest(provided_token.encode(), session_token.encode())


def is_valid_ip_format(ip: Optional[str]) -> bool:
    """Check that a header value is a plain IPv4 or IPv6 address."""
    if not ip or not isinstance(ip, str):
        return False
    candidate = ip.strip()
    if not candidate or len(candidate) > MAX_IP_LENGTH:
        return False
    # Zone ids ("fe80::1%eth0") would let arbitrary text through ipaddress
    if not IP_CHARACTERS.fullmatch(candidate):
        return False
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return False
    return True


def get_client_ip(headers: Mapping[str, str], trust_proxy: bool = False) -> Optional[str]:
    """
    Extract the client IP from proxy headers.

    Proxy headers are ignored unless ``trust_proxy`` is set, so clients cannot
    spoof their address. Enable it only behind a proxy that overwrites them.

    Returns:
        IP string, or None if none is trusted or the value is malformed
    """
    if not trust_proxy:
        return None

    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first_ip = forwarded_for.split(",")[0].strip()
        return first_ip if is_valid_ip_format(first_ip) else None

    real_ip = headers.get("x-real-ip")
    if real_ip:
        real_ip = real_ip.strip()
        return real_ip if is_valid_ip_format(real_ip) else None

    return None


def get_user_agent(headers: Mapping[str, str]) -> Optional[str]:
    return headers.get("user-agent") or None
