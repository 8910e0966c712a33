"""
Configuration for the TCRS command-line client.

This module centralizes configuration values including the server URL,
the session cache location, timeouts and output settings. A single
Config instance is built per invocation and handed to every component.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigurationError

BASE_URL_ENV = 'TCRS_BASE_URL'
CACHE_DIR_ENV = 'TCRS_CACHE_DIR'
USER_ENV = 'TCRS_USER'
PASSWORD_ENV = 'TCRS_PASSWORD'

# Sessions are judged purely by local clock against this age
SESSION_TIMEOUT_HOURS = 12
REQUEST_TIMEOUT_SECONDS = 30.0


def default_cache_dir() -> Path:
    """Return the default per-user cache directory (~/.tcrs)."""
    try:
        return Path.home() / '.tcrs'
    except RuntimeError:
        # No resolvable home directory
        return Path('.tcrs')


@dataclass
class Config:
    """
    Application configuration.

    Attributes:
        base_url: Root URL of the TCRS server (no trailing slash required)
        cache_dir: Directory holding per-user cookie and session files
        request_timeout: Timeout for each HTTP request (seconds)
        session_timeout_hours: Age after which a stored session is expired
        verbose: Whether to enable verbose logging
        json_output: Whether command results are printed as JSON
    """
    base_url: str = ''
    cache_dir: Path = field(default_factory=default_cache_dir)
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    session_timeout_hours: int = SESSION_TIMEOUT_HOURS

    # CLI options
    verbose: bool = False
    json_output: bool = False

    def __post_init__(self):
        self.base_url = (self.base_url or '').strip().rstrip('/')
        self.cache_dir = Path(self.cache_dir)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'Config':
        """
        Build a configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            **overrides: Explicit field values that win over the environment

        Returns:
            Config instance
        """
        if environ is None:
            environ = os.environ

        values = {}
        base_url = environ.get(BASE_URL_ENV, '')
        if base_url:
            values['base_url'] = base_url
        cache_dir = environ.get(CACHE_DIR_ENV, '')
        if cache_dir:
            values['cache_dir'] = Path(cache_dir).expanduser()

        values.update(overrides)
        return cls(**values)

    def validate_base_url(self):
        """
        Check that the server URL is configured.

        Raises:
            ConfigurationError: If the base URL is unset or not http(s)
        """
        if not self.base_url:
            raise ConfigurationError(f"{BASE_URL_ENV} environment variable is not set")

        if not self.base_url.startswith(('http://', 'https://')):
            raise ConfigurationError(
                f"{BASE_URL_ENV} must start with http:// or https://, got: {self.base_url}"
            )

    def validate(self):
        """
        Validate the whole configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        self.validate_base_url()

        if self.request_timeout <= 0:
            raise ConfigurationError(f"Request timeout must be positive, got: {self.request_timeout}")

        if self.session_timeout_hours <= 0:
            raise ConfigurationError(
                f"Session timeout must be positive, got: {self.session_timeout_hours}"
            )

    def ensure_cache_dir(self):
        """Create the cache directory, private to the owner."""
        self.cache_dir.mkdir(mode=0o700, parents=True, exist_ok=True)

    def cookie_file(self, user_id: str) -> Path:
        """Return the path of the cookie file for a user."""
        return self.cache_dir / f"{_checked_user_id(user_id)}.cookies"

    def session_file(self, user_id: str) -> Path:
        """Return the path of the session info file for a user."""
        return self.cache_dir / f"{_checked_user_id(user_id)}.session"


def _checked_user_id(user_id: str) -> str:
    if not user_id or not user_id.strip():
        raise ValueError("User ID cannot be empty")
    if '/' in user_id or '\\' in user_id or user_id in ('.', '..'):
        raise ValueError(f"User ID cannot contain path separators: {user_id!r}")
    return user_id
