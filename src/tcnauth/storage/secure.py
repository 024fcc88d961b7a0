"""Encrypted secret storage for the remembered credential pair.

Secrets are kept as one Fernet-encrypted JSON object on disk. Read failures
(missing key file, corrupted blob, rotated key) are logged and treated as
"no secret" so a broken cache degrades to a normal login prompt; write
failures are raised so "remember me" never silently appears to succeed.
"""

import json
import os
from pathlib import Path

from tcnauth.encryption import decrypt_data, encrypt_data
from tcnauth.exceptions import EncryptionError, StorageError
from tcnauth.logging import get_logger

LOG = get_logger(__name__)


class EncryptedSecretStore:
    """Secret store backed by ``tcnauth.encryption``."""

    available = True

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(decrypt_data(self.path.read_bytes()))
        except (OSError, EncryptionError, json.JSONDecodeError) as exc:
            LOG.error("secure_store_read_failed", path=str(self.path), error=str(exc))
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(k): str(v) for k, v in payload.items() if isinstance(v, str)}

    def _write_all(self, secrets: dict[str, str]) -> None:
        if not secrets:
            self.path.unlink(missing_ok=True)
            return
        try:
            blob = encrypt_data(json.dumps(secrets).encode("utf-8"))
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(blob)
        except (OSError, EncryptionError) as exc:
            LOG.error("secure_store_write_failed", path=str(self.path), error=str(exc))
            raise StorageError(f"Unable to store secure credential: {exc}") from exc

    def get_secret(self, key: str) -> str | None:
        value = self._read_all().get(key, "").strip()
        return value or None

    def set_secret(self, key: str, value: str | None) -> None:
        trimmed = value.strip() if value else ""
        if not trimmed:
            self.remove_secret(key)
            return
        secrets = self._read_all()
        secrets[key] = trimmed
        self._write_all(secrets)

    def remove_secret(self, key: str) -> None:
        secrets = self._read_all()
        if secrets.pop(key, None) is None:
            return
        try:
            self._write_all(secrets)
        except StorageError:
            LOG.warning("secure_store_remove_failed", key=key)


class NullSecretStore:
    """Secret store for platforms or configurations without "remember me"."""

    available = False

    def get_secret(self, key: str) -> str | None:
        return None

    def set_secret(self, key: str, value: str | None) -> None:
        if value:
            LOG.debug("secure_store_unavailable_write_dropped", key=key)

    def remove_secret(self, key: str) -> None:
        return None
