"""Credential hashing package."""

from receiptbook.services.auth.credentials import (
    AuthSystemError,
    hash_secret,
    verify_secret,
)

__all__ = [
    "AuthSystemError",
    "hash_secret",
    "verify_secret",
]
