"""
Credential Manager

One-way hashing and verification of the administrator's secret
(password or PIN). Holds no state and stores nothing.

DESIGN DECISION: The digest is an unsalted SHA-256 hex string.
Identical secrets across fresh setups produce identical digests;
with a single administrator per database this is accepted.
"""

import hashlib
import hmac
from typing import Optional


DIGEST_LENGTH = 64  # hex characters of a SHA-256 digest


class AuthSystemError(Exception):
    """Hashing failed (unencodable input or crypto backend unavailable)."""
    pass


def hash_secret(secret: str) -> str:
    """
    Hash a secret into a fixed-length hex digest.

    Args:
        secret: Password or PIN as entered by the user

    Returns:
        64-character lowercase hex SHA-256 digest

    Raises:
        AuthSystemError: If the secret cannot be encoded or hashed
    """
    if not isinstance(secret, str):
        raise AuthSystemError(f"Secret must be a string, got {type(secret).__name__}")
    try:
        data = secret.encode("utf-8")
        return hashlib.sha256(data).hexdigest()
    except (UnicodeEncodeError, ValueError) as e:
        raise AuthSystemError(f"Failed to hash secret: {e}") from e


def verify_secret(secret: str, stored_digest: Optional[str]) -> bool:
    """
    Check a secret against a stored digest.

    Returns False on any mismatch, including a missing digest.
    Hashing failures still raise AuthSystemError.
    """
    if not stored_digest or len(stored_digest) != DIGEST_LENGTH:
        return False
    candidate = hash_secret(secret)
    return hmac.compare_digest(candidate, stored_digest.lower())
