"""
Revocation Hashing
==================
One-way hashes of issued tokens, so the token itself is never stored.
"""

import binascii
import hashlib
import hmac


def hash_sign_out_token(secret: str, token: str) -> str:
    """
    Hash a full sign-out token for revocation storage.

    Args:
        secret: Process signing secret
        token: The complete ``partA.partB`` token

    Returns:
        64-character hex HMAC-SHA256
    """
    return hmac.new(secret.encode(), token.encode(), hashlib.sha256).hexdigest()


def compare_token_hashes(stored_hash: str, provided_hash: str) -> bool:
    """
    Compare two hex token hashes in constant time.

    Returns:
        True if both are valid hex of equal length and match
    """
    if not stored_hash or not provided_hash:
        return False

    try:
        stored = bytes.fromhex(stored_hash)
        provided = bytes.fromhex(provided_hash)
    except (TypeError, ValueError, binascii.Error):
        return False

    if len(stored) != len(provided):
        return False

    return hmac.compare_digest(stored, provided)
