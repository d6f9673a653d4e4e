"""
Encryption service for stored OAuth tokens.
Uses Fernet symmetric encryption; when ENCRYPTION_KEY is unset tokens are
stored as plain UTF-8 bytes (local development only).
"""

from cryptography.fernet import Fernet, InvalidToken

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class EncryptionError(Exception):
    """Custom exception for encryption/decryption errors."""


def _get_fernet() -> Fernet | None:
    """
    Get Fernet instance with encryption key from settings.

    Returns:
        Fernet instance, or None when encryption is not configured

    Raises:
        EncryptionError: If the configured key is invalid
    """
    if not settings.ENCRYPTION_KEY:
        return None

    try:
        return Fernet(settings.ENCRYPTION_KEY.encode("utf-8"))
    except Exception as e:
        logger.error("Failed to initialize Fernet cipher", error=str(e))
        raise EncryptionError(f"Invalid encryption key: {e}") from e


def encrypt_token(token: str) -> bytes:
    """Encrypt a token string for BYTEA storage."""
    if not token or not isinstance(token, str):
        raise EncryptionError("Token must be a non-empty string")

    fernet = _get_fernet()
    token_bytes = token.encode("utf-8")
    if fernet is None:
        return token_bytes

    try:
        return fernet.encrypt(token_bytes)
    except Exception as e:
        logger.error("Failed to encrypt token", error=str(e))
        raise EncryptionError(f"Encryption failed: {e}") from e


def decrypt_token(encrypted_token: bytes | memoryview) -> str:
    """
    Decrypt a token from database storage.

    Raises:
        EncryptionError: If decryption fails or token is invalid
    """
    if isinstance(encrypted_token, memoryview):
        encrypted_token = encrypted_token.tobytes()
    if not encrypted_token or not isinstance(encrypted_token, bytes):
        raise EncryptionError("Encrypted token must be non-empty bytes")

    fernet = _get_fernet()
    if fernet is None:
        return encrypted_token.decode("utf-8")

    try:
        return fernet.decrypt(encrypted_token).decode("utf-8")
    except InvalidToken as e:
        logger.error("Token decryption failed - invalid token")
        raise EncryptionError("Invalid or corrupted token") from e
    except Exception as e:
        logger.error("Failed to decrypt token", error=str(e))
        raise EncryptionError(f"Decryption failed: {e}") from e


def generate_new_key() -> str:
    """
    Generate a new Fernet encryption key.

    Note:
        Use this for initial setup or key rotation and store the result
        in ENCRYPTION_KEY.
    """
    return Fernet.generate_key().decode("utf-8")
