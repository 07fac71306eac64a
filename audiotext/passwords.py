# audiotext/passwords.py
"""
Password hashing shared by the API and the admin CLI.

Stored format: base64(salt || pbkdf2_sha256(password, salt)), 16-byte salt,
32-byte key, 100k iterations.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import re
import secrets
import string
from typing import List

log = logging.getLogger(__name__)

SALT_LENGTH = 16
ITERATIONS = 100_000
KEY_LENGTH = 32

SPECIAL_CHARS = '!@#$%^&*(),.?":{}|<>'
_GENERATOR_CHARSET = string.ascii_letters + string.digits + "!@#$%^&*"


def _derive(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, ITERATIONS, dklen=KEY_LENGTH)


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(SALT_LENGTH)
    return base64.b64encode(salt + _derive(password, salt)).decode("ascii")


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        combined = base64.b64decode(stored_hash.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError, AttributeError) as e:
        log.warning("Password verification on malformed hash: %s", e)
        return False
    if len(combined) != SALT_LENGTH + KEY_LENGTH:
        return False
    salt, expected = combined[:SALT_LENGTH], combined[SALT_LENGTH:]
    return hmac.compare_digest(_derive(password, salt), expected)


def validate_password_strength(password: str) -> List[str]:
    """Return the violated rules; an empty list means the password is acceptable."""
    errors: List[str] = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not any(c in SPECIAL_CHARS for c in password):
        errors.append("Password must contain at least one special character")
    return errors


def generate_secure_password(length: int = 12) -> str:
    if length < 8:
        raise ValueError("length must be at least 8")
    while True:
        candidate = "".join(secrets.choice(_GENERATOR_CHARSET) for _ in range(length))
        if not validate_password_strength(candidate):
            return candidate
