"""Password and opaque-token hashing helpers."""

import hashlib
import secrets

import bcrypt

# bcrypt only reads the first 72 bytes of its input and rejects longer ones
BCRYPT_MAX_PASSWORD_BYTES = 72


def get_password_hash(password: str) -> str:
    """Hash a password with a fresh bcrypt salt.

    Raises:
        ValueError: if the password encodes to more than 72 bytes.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes")
    hashed = bcrypt.hashpw(encoded, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plain password against a bcrypt hash.

    Passwords too long to have been hashed never match.
    """
    encoded = plain_password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(encoded, hashed_password.encode("utf-8"))


def generate_reset_token() -> str:
    """Generate a random URL-safe password reset token (64 hex chars)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Hash an opaque token for storage; only the hash is persisted."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
