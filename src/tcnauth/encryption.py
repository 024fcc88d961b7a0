"""Credential encryption using Fernet symmetric encryption.

This module provides encryption/decryption for the remembered credential
cache using Fernet (AES-128-CBC with HMAC authentication). The key lives in
a local file (``<config_dir>/.credential_key``) created with 0600 permissions
the first time it is needed.

Thread Safety:
    The encryption key is cached globally to avoid re-reading the key file.
    The cache is NOT thread-safe; callers sharing a process across threads
    must synchronize calls to get_encryption_key() / reset_encryption_key_cache().
"""

import os

from cryptography.fernet import Fernet, InvalidToken

from tcnauth.config import get_settings
from tcnauth.exceptions import EncryptionError
from tcnauth.logging import get_logger

LOG = get_logger(__name__)

# Cache the encryption key in memory to avoid repeated file reads
_encryption_key_cache: bytes | None = None


def get_encryption_key() -> bytes:
    """Get the encryption key for credential data.

    Returns:
        Fernet-compatible 32-byte key (base64 encoded).

    Raises:
        EncryptionError: If the key cannot be read or generated.
    """
    global _encryption_key_cache

    if _encryption_key_cache is not None:
        return _encryption_key_cache

    _encryption_key_cache = _get_key_from_file()
    return _encryption_key_cache


def _get_key_from_file() -> bytes:
    """Get or create the encryption key from the local key file."""
    settings = get_settings()
    key_file = settings.config_dir / ".credential_key"

    try:
        if key_file.exists():
            LOG.debug("using_encryption_key_from_file")
            key = key_file.read_bytes().strip()
            Fernet(key)  # Validate key format
            return key

        # Generate new key and save it with secure permissions from creation
        key = Fernet.generate_key()
        fd = os.open(key_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(key)
    except (OSError, ValueError) as exc:
        raise EncryptionError(f"Unable to load encryption key from {key_file}: {exc}") from exc

    LOG.info("generated_new_credential_encryption_key")
    return key


def reset_encryption_key_cache() -> None:
    """Reset the encryption key cache.

    Useful for testing or when rotating keys.
    """
    global _encryption_key_cache
    _encryption_key_cache = None


def encrypt_data(data: bytes) -> bytes:
    """Encrypt data using Fernet symmetric encryption.

    Args:
        data: Raw bytes to encrypt.

    Returns:
        Encrypted bytes.
    """
    fernet = Fernet(get_encryption_key())
    return fernet.encrypt(data)


def decrypt_data(data: bytes) -> bytes:
    """Decrypt data using Fernet symmetric encryption.

    Args:
        data: Encrypted bytes.

    Returns:
        Decrypted raw bytes.

    Raises:
        EncryptionError: If decryption fails (wrong key or corrupted data).
    """
    fernet = Fernet(get_encryption_key())
    try:
        return fernet.decrypt(data)
    except InvalidToken as exc:
        raise EncryptionError(
            "Decryption failed. The credential cache may be corrupted "
            "or the encryption key has changed."
        ) from exc
