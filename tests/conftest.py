"""Pytest configuration for tcnauth tests."""

import sys
from pathlib import Path

import pytest
import structlog
from structlog._config import BoundLoggerLazyProxy

# Add src directory to sys.path for test imports
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate each test with its own config directory.

    This fixture:
    - Creates a temporary config directory for each test
    - Sets TCNAUTH_CONFIG_DIR to the temp directory
    - Resets the global settings instance and the cached encryption key
    """
    config_dir = tmp_path / "tcnauth"
    config_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("TCNAUTH_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("TCNAUTH_BASE_URL", "https://example.com")

    from tcnauth.config import reset_settings
    from tcnauth.encryption import reset_encryption_key_cache

    reset_settings()
    reset_encryption_key_cache()

    return config_dir


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Reset structlog after each test to prevent closed file handle errors.

    CliRunner captures stderr with a temporary file. When configure_logging()
    runs inside CliRunner, structlog binds loggers to that temp file. After
    the test, CliRunner closes the file, so structlog is reset here.
    """
    yield
    structlog.reset_defaults()
    for module in list(sys.modules.values()):
        for attr in getattr(module, "__dict__", {}).values():
            if isinstance(attr, BoundLoggerLazyProxy):
                attr.__dict__.pop("bind", None)
