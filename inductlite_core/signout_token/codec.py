"""
Token Codec
===========
Deterministic encoding of a sign-out payload plus its HMAC-SHA256 signature.

Wire format:
    base64url(JSON{signInRecordId, phoneHash, expiresAt}) + "." +
    base64url(HMAC-SHA256(secret, part A))

Both segments are unpadded base64url. The codec knows nothing about expiry
or phone binding; it only guarantees that a decoded payload was signed with
the current secret.
"""

import base64
import binascii
import hashlib
import hmac
import json

from pydantic import ValidationError

from .models import DecodeResult, SignOutTokenPayload, TokenError

SEPARATOR = "."


def b64url_encode(data: bytes) -> str:
    """Unpadded base64url encoding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    """Decode unpadded (or padded) base64url."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


class TokenCodec:
    """Encodes and decodes signed sign-out tokens."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("TokenCodec requires a non-empty secret")
        self._key = secret.encode()

    def sign(self, part_a: str) -> str:
        """Compute the base64url HMAC-SHA256 signature over part A."""
        digest = hmac.new(self._key, part_a.encode(), hashlib.sha256).digest()
        return b64url_encode(digest)

    def encode(self, payload: SignOutTokenPayload) -> str:
        """
        Serialize and sign a payload.

        Args:
            payload: Token body

        Returns:
            ``partA.partB`` token string
        """
        payload_json = json.dumps(
            payload.model_dump(),
            separators=(",", ":"),
            ensure_ascii=False,
        )
        part_a = b64url_encode(payload_json.encode("utf-8"))
        return f"{part_a}{SEPARATOR}{self.sign(part_a)}"

    def decode(self, token: str) -> DecodeResult:
        """
        Verify the signature and decode the payload.

        The signature is checked before part A is parsed, so a forged payload
        never reaches the JSON parser.

        Args:
            token: Token string

        Returns:
            DecodeResult with either the payload or an error tag
        """
        if not isinstance(token, str):
            return DecodeResult(error=TokenError.INVALID_FORMAT)

        parts = token.split(SEPARATOR)
        if len(parts) != 2:
            return DecodeResult(error=TokenError.INVALID_FORMAT)

        part_a, provided_signature = parts
        if not part_a or not provided_signature:
            return DecodeResult(error=TokenError.INVALID_FORMAT)

        try:
            expected = self.sign(part_a).encode("ascii")
            provided = provided_signature.encode("ascii")
        except UnicodeError:
            return DecodeResult(error=TokenError.INVALID_SIGNATURE)

        if len(provided) != len(expected) or not hmac.compare_digest(provided, expected):
            return DecodeResult(error=TokenError.INVALID_SIGNATURE)

        try:
            raw = json.loads(b64url_decode(part_a).decode("utf-8"))
        except (binascii.Error, ValueError, RecursionError):
            return DecodeResult(error=TokenError.INVALID_FORMAT)

        if not isinstance(raw, dict):
            return DecodeResult(error=TokenError.INVALID_FORMAT)

        try:
            payload = SignOutTokenPayload.model_validate(raw)
        except ValidationError:
            return DecodeResult(error=TokenError.INVALID_FORMAT)

        return DecodeResult(payload=payload)


def decode_unverified(token: str) -> dict:
    """
    Parse part A of a token without checking its signature.

    Only for lookups and display. Never use the result to authorize anything.

    Raises:
        ValueError: If the token is not structurally a token
    """
    if not isinstance(token, str):
        raise ValueError("not a sign-out token")
    parts = token.split(SEPARATOR)
    if len(parts) != 2 or not parts[0]:
        raise ValueError("not a sign-out token")
    try:
        raw = json.loads(b64url_decode(parts[0]).decode("utf-8"))
    except binascii.Error as e:
        raise ValueError("payload is not base64url") from e
    except RecursionError as e:
        raise ValueError("payload is nested too deeply") from e
    if not isinstance(raw, dict):
        raise ValueError("payload is not an object")
    return raw
