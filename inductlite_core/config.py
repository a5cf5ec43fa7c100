"""
Configuration
=============
Settings for sign-out tokens and origin checks, loaded once at startup.
"""

import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigurationError

MIN_SECRET_LENGTH = 32
DEFAULT_PHONE_REGION = "NZ"
DEFAULT_TOKEN_TTL_HOURS = 8


@dataclass(frozen=True)
class SignOutSettings:
    """Runtime configuration for the sign-out core."""
    secret: str
    public_url: Optional[str] = None
    environment: str = "development"
    default_phone_region: str = DEFAULT_PHONE_REGION
    token_ttl_hours: float = DEFAULT_TOKEN_TTL_HOURS
    trust_proxy: bool = False
    database_url: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def token_ttl_ms(self) -> int:
        return int(self.token_ttl_hours * 60 * 60 * 1000)

    def __repr__(self) -> str:
        # Keep the secret out of tracebacks and logs
        return (
            f"SignOutSettings(environment={self.environment!r}, "
            f"public_url={self.public_url!r}, "
            f"default_phone_region={self.default_phone_region!r}, "
            f"token_ttl_hours={self.token_ttl_hours!r}, "
            f"trust_proxy={self.trust_proxy!r})"
        )


def _is_truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> SignOutSettings:
    """
    Build settings from environment variables.

    Call this once during application startup. A missing or short secret is
    fatal; no default secret is ever substituted.

    Args:
        environ: Mapping to read from (default: ``os.environ``)

    Returns:
        Frozen SignOutSettings

    Raises:
        ConfigurationError: If required values are missing or malformed
    """
    env = os.environ if environ is None else environ

    secret = (env.get("SIGN_OUT_TOKEN_SECRET") or env.get("SESSION_SECRET") or "").strip()
    if not secret:
        raise ConfigurationError(
            "SIGN_OUT_TOKEN_SECRET or SESSION_SECRET must be configured"
        )
    if len(secret) < MIN_SECRET_LENGTH:
        raise ConfigurationError(
            f"Sign-out token secret must be at least {MIN_SECRET_LENGTH} characters"
        )

    raw_ttl = env.get("SIGN_OUT_TOKEN_TTL_HOURS", str(DEFAULT_TOKEN_TTL_HOURS))
    try:
        ttl_hours = float(raw_ttl)
    except ValueError:
        raise ConfigurationError(f"SIGN_OUT_TOKEN_TTL_HOURS is not a number: {raw_ttl!r}")
    if not math.isfinite(ttl_hours * 60 * 60 * 1000):
        raise ConfigurationError(f"SIGN_OUT_TOKEN_TTL_HOURS must be finite: {raw_ttl!r}")
    if ttl_hours <= 0:
        raise ConfigurationError("SIGN_OUT_TOKEN_TTL_HOURS must be positive")

    region = (env.get("DEFAULT_PHONE_REGION") or DEFAULT_PHONE_REGION).strip().upper()
    if len(region) != 2 or not region.isalpha():
        raise ConfigurationError(f"DEFAULT_PHONE_REGION must be a two-letter region code: {region!r}")

    return SignOutSettings(
        secret=secret,
        public_url=(env.get("PUBLIC_APP_URL") or "").strip() or None,
        environment=(env.get("APP_ENV") or "development").strip().lower(),
        default_phone_region=region,
        token_ttl_hours=ttl_hours,
        trust_proxy=_is_truthy(env.get("TRUST_PROXY")),
        database_url=(env.get("DATABASE_URL") or "").strip() or None,
    )
