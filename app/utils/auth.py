"""
Password authentication utilities for admin access.

Two hash formats are accepted for ADMIN_PASS_HASH:
    pbkdf2:<iterations>:<salt_hex>:<hash_hex>   PBKDF2-HMAC-SHA256, 32-byte key
    $2b$...                                     bcrypt
"""
import hashlib
import hmac
import logging
import secrets

import bcrypt

from app.config import settings

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000
PBKDF2_KEY_LENGTH = 32


def hash_password(password: str) -> str:
    """bcrypt hash with a fresh salt, as text suitable for ADMIN_PASS_HASH."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("ascii")


def hash_password_pbkdf2(password: str, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Hash a password into the pbkdf2:<iterations>:<salt_hex>:<hash_hex> format."""
    salt = secrets.token_bytes(16)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, PBKDF2_KEY_LENGTH)
    return f"pbkdf2:{iterations}:{salt.hex()}:{derived.hex()}"


def _verify_pbkdf2(password: str, stored: str) -> bool:
    parts = stored.split(":")
    if len(parts) != 4:
        return False
    try:
        iterations = int(parts[1])
        salt = bytes.fromhex(parts[2])
        expected = bytes.fromhex(parts[3])
    except ValueError:
        return False
    if iterations <= 0 or not expected:
        return False
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, len(expected))
    return hmac.compare_digest(derived, expected)


def verify_password(password: str, hashed_password: str) -> bool:
    """Check a password against either supported hash format. Malformed hashes never match."""
    if hashed_password.startswith("pbkdf2:"):
        return _verify_pbkdf2(password, hashed_password)
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def admin_configured() -> bool:
    return bool(
        settings.ADMIN_USER
        and (settings.ADMIN_PASS_HASH or settings.ADMIN_PASS)
        and settings.SESSION_SECRET
    )


def verify_admin_credentials(username: str, password: str) -> bool:
    """
    Verify admin username and password against configured credentials.

    Args:
        username: Submitted username
        password: Submitted plain text password

    Returns:
        True if both match, False otherwise

    Raises:
        ValueError: If admin credentials are not configured
    """
    if not admin_configured():
        raise ValueError("Admin not configured")

    user_ok = hmac.compare_digest(username.encode("utf-8"), settings.ADMIN_USER.encode("utf-8"))

    if settings.ADMIN_PASS_HASH:
        password_ok = verify_password(password, settings.ADMIN_PASS_HASH)
    else:
        logger.warning("ADMIN_PASS_HASH not set - comparing against plaintext ADMIN_PASS")
        password_ok = hmac.compare_digest(password.encode("utf-8"), settings.ADMIN_PASS.encode("utf-8"))

    return user_ok and password_ok
