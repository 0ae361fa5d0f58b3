import secrets

from passlib.context import CryptContext

from config import settings
from logging_config import logger

# scrypt is memory-hard; the salt and cost parameters travel inside the hash:
#   $scrypt$ln=15,r=8,p=1$<salt>$<digest>
pwd_context = CryptContext(
    schemes=["scrypt"],
    deprecated="auto",
    scrypt__rounds=settings.SCRYPT_ROUNDS,
)


def get_password_hash(password: str) -> str:
    """Hash password with a fresh random salt (SCRYPT_ROUNDS in .env)"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify password against a stored hash.

    Never raises: an empty, malformed or foreign hash counts as a failed
    verification so a corrupt record cannot crash the login handler.
    Digest comparison is constant-time inside passlib.
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.warning(f"Password verification failed on unusable stored hash: {type(e).__name__}")
        return False


def generate_session_token() -> str:
    """Generate an opaque session token"""
    return secrets.token_urlsafe(32)
