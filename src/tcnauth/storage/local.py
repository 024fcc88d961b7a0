"""Local filesystem key/value storage backend."""

import json
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path

from tcnauth.exceptions import StorageError
from tcnauth.logging import get_logger

LOG = get_logger(__name__)


class LocalKeyValueStore:
    """Key/value store persisted as a single JSON object on disk.

    Storage structure: ``{path}`` holds ``{"key": "value", ...}``.

    Features:
    - Atomic writes (temp file + rename) with 0o600 permissions
    - Lazy load on first access; the in-memory copy is authoritative afterwards
    - Corrupt files are treated as empty rather than crashing the app
    """

    def __init__(self, path: Path) -> None:
        """Initialize local key/value storage.

        Args:
            path: JSON file holding the persisted key space.
        """
        self.path = path
        self._data: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data

        data: dict[str, str] = {}
        if self.path.exists():
            try:
                raw = json.loads(self.path.read_text())
                if isinstance(raw, dict):
                    data = {str(k): str(v) for k, v in raw.items() if v is not None}
                else:
                    LOG.warning("state_file_not_an_object", path=str(self.path))
            except (OSError, json.JSONDecodeError) as exc:
                LOG.warning("state_file_unreadable", path=str(self.path), error=str(exc))

        self._data = data
        return data

    def _flush(self) -> None:
        data = self._load()
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write: write to temp file, then rename
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w") as f:
                f.write(json.dumps(data, indent=2, sort_keys=True))
            Path(temp_path).replace(self.path)
        except OSError as exc:
            Path(temp_path).unlink(missing_ok=True)
            LOG.error("state_file_write_failed", path=str(self.path), error=str(exc))
            raise StorageError(f"Unable to write session state to {self.path}: {exc}") from exc

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def remove(self, key: str) -> None:
        self.remove_many([key])

    def get_many(self, keys: Iterable[str]) -> dict[str, str | None]:
        data = self._load()
        return {key: data.get(key) for key in keys}

    def set_many(self, entries: Mapping[str, str]) -> None:
        if not entries:
            return
        self._load().update({str(k): str(v) for k, v in entries.items()})
        self._flush()

    def remove_many(self, keys: Iterable[str]) -> None:
        data = self._load()
        removed = [key for key in keys if data.pop(key, None) is not None]
        if removed:
            self._flush()
            LOG.debug("state_keys_removed", count=len(removed))
