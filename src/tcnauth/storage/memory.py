"""In-memory storage backends (tests and ephemeral sessions)."""

from collections.abc import Iterable, Mapping


class MemoryKeyValueStore:
    """Process-local key/value store; nothing survives a restart.

    ``writes`` counts mutating calls so callers can verify that redundant
    writes are skipped.
    """

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def remove(self, key: str) -> None:
        self.remove_many([key])

    def get_many(self, keys: Iterable[str]) -> dict[str, str | None]:
        return {key: self.data.get(key) for key in keys}

    def set_many(self, entries: Mapping[str, str]) -> None:
        if not entries:
            return
        self.data.update(entries)
        self.writes += 1

    def remove_many(self, keys: Iterable[str]) -> None:
        removed = [key for key in keys if self.data.pop(key, None) is not None]
        if removed:
            self.writes += 1


class MemorySecretStore:
    """Secret store kept in memory only."""

    available = True

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self.secrets: dict[str, str] = dict(initial or {})

    def get_secret(self, key: str) -> str | None:
        return self.secrets.get(key)

    def set_secret(self, key: str, value: str | None) -> None:
        trimmed = value.strip() if value else ""
        if not trimmed:
            self.remove_secret(key)
            return
        self.secrets[key] = trimmed

    def remove_secret(self, key: str) -> None:
        self.secrets.pop(key, None)
