"""
Origin Guard
============
Same-origin check for state-mutating requests, as defense in depth
alongside SameSite cookies.

Rules:
- Allowed origins are the configured public URL plus the request's own
  (forwarded) host and protocol.
- ``Origin`` is preferred and must match exactly. No subdomain, scheme or
  port laxity.
- Without ``Origin``, the origin of ``Referer`` must match exactly.
  Unparsable referers fail closed.
- Without either header, requests pass only outside production.
"""

from typing import Mapping, Optional, Set
from urllib.parse import urlsplit

import structlog

from ..errors import OriginRejectedError

logger = structlog.get_logger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


def parse_origin(url: str) -> Optional[str]:
    """
    Reduce a URL to its ``scheme://host[:port]`` origin.

    Default ports are dropped, matching how browsers serialize origins.

    Returns:
        Origin string, or None if the URL is not an absolute http(s) URL
    """
    try:
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        hostname = parts.hostname
        port = parts.port
    except (ValueError, AttributeError):
        return None

    if scheme not in DEFAULT_PORTS or not hostname:
        return None

    if ":" in hostname:
        hostname = f"[{hostname}]"

    if port is None or port == DEFAULT_PORTS[scheme]:
        return f"{scheme}://{hostname}"
    return f"{scheme}://{hostname}:{port}"


def _first_value(value: Optional[str]) -> Optional[str]:
    """Forwarded headers may carry a comma-separated chain; the first hop wins."""
    if not value:
        return None
    first = value.split(",")[0].strip()
    return first or None


class OriginGuard:
    """Validates the declared origin of mutating requests."""

    def __init__(self, public_url: Optional[str] = None, production: bool = True):
        self.production = production
        self._configured: Set[str] = set()
        if public_url:
            origin = parse_origin(public_url)
            if origin:
                self._configured.add(origin)
            else:
                # Startup validation owns hard failures; the request path never crashes
                logger.debug("origin_guard_public_url_ignored")

    @classmethod
    def from_settings(cls, settings) -> "OriginGuard":
        return cls(public_url=settings.public_url, production=settings.is_production)

    def allowed_origins(self, headers: Mapping[str, str]) -> Set[str]:
        """Configured origins plus the request's own host as a same-origin baseline."""
        origins = set(self._configured)

        host = _first_value(headers.get("x-forwarded-host")) or _first_value(headers.get("host"))
        protocol = _first_value(headers.get("x-forwarded-proto")) or (
            "https" if self.production else "http"
        )
        if host:
            # Serialize like a browser Origin: lowercase, default port elided
            baseline = parse_origin(f"{protocol.lower()}://{host}")
            if baseline:
                origins.add(baseline)

        return origins

    def validate_origin(self, headers: Mapping[str, str]) -> bool:
        """
        Check a request's ``Origin``/``Referer`` against the allow-set.

        Args:
            headers: Case-insensitive request headers (Starlette ``Headers``)
                or a dict with lowercase keys

        Returns:
            True if the request may proceed
        """
        allowed = self.allowed_origins(headers)

        origin = headers.get("origin")
        if origin:
            return origin in allowed

        referer = headers.get("referer")
        if referer:
            referer_origin = parse_origin(referer)
            return referer_origin is not None and referer_origin in allowed

        return not self.production

    def assert_origin(self, headers: Mapping[str, str]) -> None:
        """
        Raise if the request origin is not allowed.

        The error is deliberately generic; which rule failed is only logged.

        Raises:
            OriginRejectedError: On rejection
        """
        if not self.validate_origin(headers):
            logger.warning(
                "origin_rejected",
                has_origin=bool(headers.get("origin")),
                has_referer=bool(headers.get("referer")),
            )
            raise OriginRejectedError()
