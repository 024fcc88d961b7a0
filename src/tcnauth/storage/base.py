"""Base protocols for persisted session state and secrets."""

from collections.abc import Iterable, Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for the plain persisted key space.

    Values are strings; callers serialize structured data (e.g. the user
    profile) as JSON before storing it. Implementations must treat writes as
    durable once the call returns.
    """

    def get(self, key: str) -> str | None:
        """Return the stored value, or None when absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    def remove(self, key: str) -> None:
        """Remove *key*; absent keys are ignored."""
        ...

    def get_many(self, keys: Iterable[str]) -> dict[str, str | None]:
        """Return a mapping of every requested key to its value (or None)."""
        ...

    def set_many(self, entries: Mapping[str, str]) -> None:
        """Store several entries in a single write."""
        ...

    def remove_many(self, keys: Iterable[str]) -> None:
        """Remove several keys in a single write."""
        ...


@runtime_checkable
class SecretStore(Protocol):
    """Protocol for the capability-gated secure store.

    Used only for the remembered credential pair. Implementations that cannot
    store secrets (``NullSecretStore``) report ``available = False`` and
    silently drop writes, which disables "remember me".
    """

    @property
    def available(self) -> bool:
        """Whether secrets written to this store can be read back later."""
        ...

    def get_secret(self, key: str) -> str | None:
        """Return the secret, or None when absent or unreadable."""
        ...

    def set_secret(self, key: str, value: str | None) -> None:
        """Store a secret; a blank value removes it."""
        ...

    def remove_secret(self, key: str) -> None:
        """Remove a secret; absent keys are ignored."""
        ...
