"""Custom exceptions for tcnauth package."""

from __future__ import annotations

from typing import Any

from tcnauth.error_catalog import (
    ErrorDescriptor,
    find_descriptor_by_message,
    get_error_descriptor,
)


class TcnAuthError(Exception):
    """Base exception class for all tcnauth errors."""


class ConfigurationError(TcnAuthError):
    """Raised when required configuration is missing or invalid."""


class EncryptionError(TcnAuthError):
    """Raised when encryption or decryption operations fail."""


class StorageError(TcnAuthError):
    """Raised when a storage backend operation fails."""


class AppError(TcnAuthError):
    """User-facing error tagged with a stable catalog code.

    The exception message is ``"CODE: message"``; ``display_message`` holds the
    message alone for UIs that render the code separately.

    Example:
        raise AppError("AUTH_WORDPRESS_CREDENTIALS", metadata={"status": 401})
    """

    def __init__(
        self,
        error_id: str,
        *,
        message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        descriptor = get_error_descriptor(error_id)
        self.descriptor: ErrorDescriptor = descriptor
        self.error_id = descriptor.id
        self.code = descriptor.code
        self.override_message = message.strip() if message and message.strip() else None
        self.metadata: dict[str, Any] = dict(metadata or {})
        super().__init__(self.to_display_string())

    @property
    def display_message(self) -> str:
        """Message intended for end users, without the code prefix."""
        return self.override_message or self.descriptor.default_message

    @property
    def status(self) -> int | None:
        """HTTP status recorded in metadata, if any."""
        status = self.metadata.get("status")
        return status if isinstance(status, int) else None

    def to_display_string(self) -> str:
        """Render ``CODE: message`` for toasts and CLI output."""
        return f"{self.code}: {self.display_message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "name": type(self).__name__,
            "id": self.error_id,
            "code": self.code,
            "message": self.display_message,
            "metadata": self.metadata or None,
        }


class TokenUnavailableError(AppError):
    """Raised when a call needs a bearer token and none can be produced.

    Raised before any network I/O is attempted.
    """

    def __init__(self, *, metadata: dict[str, Any] | None = None) -> None:
        super().__init__("SESSION_TOKEN_UNAVAILABLE", metadata=metadata)


class SessionExpiredError(AppError):
    """Raised when refresh and re-authentication both failed.

    The session has already been cleared when this is raised.
    """

    def __init__(self, *, metadata: dict[str, Any] | None = None) -> None:
        super().__init__("SESSION_EXPIRED", metadata=metadata)


def ensure_app_error(
    value: BaseException | str | None,
    fallback_id: str = "UNKNOWN",
    *,
    propagate_message: bool = False,
    metadata: dict[str, Any] | None = None,
) -> AppError:
    """Coerce an arbitrary exception or message into an ``AppError``.

    Messages that match a catalog default message adopt that descriptor;
    otherwise *fallback_id* is used and the original message is kept as the
    display message.

    Args:
        value: Exception, plain message, or None.
        fallback_id: Catalog id used when no descriptor matches.
        propagate_message: Keep the original message even when a descriptor matched.
        metadata: Extra metadata attached to the result.

    Returns:
        An ``AppError`` (the input itself when it already is one).
    """
    if isinstance(value, AppError):
        return value

    if value is None:
        return AppError(fallback_id, metadata=metadata)

    text = (str(value) if isinstance(value, BaseException) else value).strip()
    descriptor = find_descriptor_by_message(text) if text else None
    error_id = descriptor.id if descriptor else fallback_id
    keep_message = propagate_message or descriptor is None
    error = AppError(error_id, message=text if keep_message else None, metadata=metadata)
    if isinstance(value, BaseException):
        error.__cause__ = value
    return error
