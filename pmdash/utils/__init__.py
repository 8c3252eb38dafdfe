"""Utility functions and helpers."""

from .security import get_password_hash, validate_password_strength, verify_password

__all__ = [
    "get_password_hash",
    "validate_password_strength",
    "verify_password",
]
