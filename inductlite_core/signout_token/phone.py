"""
Phone Binding
=============
Binds a token to a phone number independent of how the visitor types it.

"021 123 4567" and "+64211234567" denote the same NZ mobile and must hash
identically, so numbers are canonicalized to E.164 before hashing.
"""

import hashlib
import hmac
import re
from typing import Optional

import phonenumbers

from ..config import DEFAULT_PHONE_REGION
from .models import PHONE_HASH_LENGTH


def format_e164(phone: str, region: str = DEFAULT_PHONE_REGION) -> Optional[str]:
    """
    Normalize a phone number to E.164.

    Args:
        phone: Raw phone number in any common format
        region: Region used for numbers without a country code

    Returns:
        E.164 string, or None if the number cannot be parsed or is invalid
    """
    try:
        parsed = phonenumbers.parse(phone, region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def digits_only(phone: str) -> str:
    """Strip everything but digits."""
    return re.sub(r"\D", "", phone)


def canonicalize_phone(phone: str, region: str = DEFAULT_PHONE_REGION) -> str:
    """Prefer E.164; fall back to digits only for numbers that do not parse."""
    return format_e164(phone, region) or digits_only(phone)


class PhoneBinder:
    """Produces the keyed, truncated phone hash embedded in sign-out tokens."""

    def __init__(self, secret: str, default_region: str = DEFAULT_PHONE_REGION):
        if not secret:
            raise ValueError("PhoneBinder requires a non-empty secret")
        self._key = secret.encode()
        self.default_region = default_region

    def canonicalize(self, phone: str) -> str:
        return canonicalize_phone(phone, self.default_region)

    def hash_phone(self, phone: str) -> str:
        """
        Hash a phone number for token binding.

        64 bits is enough to bind a token to a visitor; it is not meant to
        keep the number secret on its own.

        Args:
            phone: Raw phone number

        Returns:
            First 16 lowercase hex characters of HMAC-SHA256(secret, canonical)
        """
        canonical = self.canonicalize(phone)
        digest = hmac.new(self._key, canonical.encode(), hashlib.sha256).hexdigest()
        return digest[:PHONE_HASH_LENGTH]

    def matches(self, phone: str, phone_hash: str) -> bool:
        """Constant-time check of a phone number against a stored phone hash."""
        return hmac.compare_digest(self.hash_phone(phone), phone_hash)
