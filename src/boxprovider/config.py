"""Configuration management with validation.

Configuration is loaded from BRIGHTBOX_* environment variables and
validated at construction time, so a bad value fails at startup rather than
halfway through a lifecycle call.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


class Operation(str, Enum):
    """Lifecycle operations that carry their own timeout."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


# Configuration constants with documented bounds
DEFAULT_API_URL = "https://api.gb1.brightbox.com"
DEFAULT_ORBIT_URL = "https://orbit.brightbox.com/"

DEFAULT_TIMEOUT_SECONDS = 5 * 60  # create/delete of most resource kinds
DEFAULT_OPERATION_TIMEOUT_SECONDS = 20 * 60  # anything without an explicit timeout
MAX_TIMEOUT_SECONDS = 24 * 60 * 60

MINIMUM_REFRESH_WAIT_SECONDS = 3.0
MAXIMUM_REFRESH_WAIT_SECONDS = 10.0

VALID_ACCOUNT_PATTERN = r"^acc-[0-9a-z]{5}$"
VALID_API_CLIENT_PATTERN = r"^(cli|app)-[0-9a-z]{5}$"
VALID_URL_PATTERN = r"^https?://[^\s/$.?#].[^\s]*$"


class AuthFlow(str, Enum):
    """OAuth2 flows understood by the session bootstrap."""

    CLIENT_CREDENTIALS = "client_credentials"
    PASSWORD = "password"


@dataclass(frozen=True)
class Timeouts:
    """Per-operation timeouts in seconds for one resource kind."""

    create: float = DEFAULT_TIMEOUT_SECONDS
    read: float = DEFAULT_OPERATION_TIMEOUT_SECONDS
    update: float = DEFAULT_OPERATION_TIMEOUT_SECONDS
    delete: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        for operation in Operation:
            value = getattr(self, operation.value)
            if not 0 < value <= MAX_TIMEOUT_SECONDS:
                raise ConfigurationError(
                    f"{operation.value} timeout must be between 0 and {MAX_TIMEOUT_SECONDS} "
                    f"seconds: {value}"
                )

    def for_operation(self, operation: Operation) -> float:
        return float(getattr(self, operation.value))


@dataclass(frozen=True)
class AuthConfig:
    """Credentials handed to the session bootstrap.

    The bootstrap itself lives outside this package. These details are only
    carried and validated here.
    """

    api_client: str = ""
    api_secret: str = field(default="", repr=False)
    username: str = ""
    password: str = field(default="", repr=False)
    account: str = ""
    api_url: str = DEFAULT_API_URL
    orbit_url: str = DEFAULT_ORBIT_URL

    @property
    def auth_flow(self) -> AuthFlow:
        """Password flow when a user name or password is supplied."""
        if self.username or self.password:
            return AuthFlow.PASSWORD
        return AuthFlow.CLIENT_CREDENTIALS

    def redacted(self) -> dict[str, str]:
        """Printable view with secrets masked."""
        return {
            "api_client": self.api_client,
            "api_secret": "***" if self.api_secret else "",
            "username": self.username,
            "password": "***" if self.password else "",
            "account": self.account,
            "api_url": self.api_url,
            "orbit_url": self.orbit_url,
            "auth_flow": self.auth_flow.value,
        }


@dataclass(frozen=True)
class Config:
    """Provider configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    auth: AuthConfig = field(default_factory=AuthConfig)

    # Timing
    timeouts: Timeouts = field(default_factory=Timeouts)
    minimum_refresh_wait_seconds: float = MINIMUM_REFRESH_WAIT_SECONDS
    maximum_refresh_wait_seconds: float = MAXIMUM_REFRESH_WAIT_SECONDS

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if self.auth.api_client and not re.match(VALID_API_CLIENT_PATTERN, self.auth.api_client):
            errors.append(f"BRIGHTBOX_CLIENT must be an API client ID: {self.auth.api_client}")

        if self.auth.api_client and not self.auth.api_secret:
            errors.append("BRIGHTBOX_CLIENT_SECRET is required when BRIGHTBOX_CLIENT is set")

        if self.auth.auth_flow is AuthFlow.PASSWORD and not (
            self.auth.username and self.auth.password
        ):
            errors.append("BRIGHTBOX_USER_NAME and BRIGHTBOX_PASSWORD must be set together")

        if self.auth.account and not re.match(VALID_ACCOUNT_PATTERN, self.auth.account):
            errors.append(f"BRIGHTBOX_ACCOUNT must be an account ID: {self.auth.account}")

        for name, url in (
            ("BRIGHTBOX_API_URL", self.auth.api_url),
            ("BRIGHTBOX_ORBIT_URL", self.auth.orbit_url),
        ):
            if not re.match(VALID_URL_PATTERN, url):
                errors.append(f"{name} must be an http(s) URL: {url}")

        if self.minimum_refresh_wait_seconds <= 0:
            errors.append("MINIMUM_REFRESH_WAIT must be positive")
        elif self.maximum_refresh_wait_seconds < self.minimum_refresh_wait_seconds:
            errors.append("MAXIMUM_REFRESH_WAIT must not be below MINIMUM_REFRESH_WAIT")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"LOG_LEVEL is not a logging level: {self.log_level}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            BRIGHTBOX_CLIENT: API client ID (cli-xxxxx or app-xxxxx)
            BRIGHTBOX_CLIENT_SECRET: API client secret
            BRIGHTBOX_USER_NAME: User name, selects the password flow
            BRIGHTBOX_PASSWORD: User password
            BRIGHTBOX_ACCOUNT: Account to operate on (default: first account)
            BRIGHTBOX_API_URL: API endpoint (default: https://api.gb1.brightbox.com)
            BRIGHTBOX_ORBIT_URL: Orbit storage endpoint
            BRIGHTBOX_CREATE_TIMEOUT: Create timeout in seconds (default: 300)
            BRIGHTBOX_READ_TIMEOUT: Read timeout in seconds (default: 1200)
            BRIGHTBOX_UPDATE_TIMEOUT: Update timeout in seconds (default: 1200)
            BRIGHTBOX_DELETE_TIMEOUT: Delete timeout in seconds (default: 300)
            BRIGHTBOX_MINIMUM_REFRESH_WAIT: Minimum seconds between polls (default: 3)
            BRIGHTBOX_MAXIMUM_REFRESH_WAIT: Poll backoff cap in seconds (default: 10)
            LOG_LEVEL: Logging level (default: INFO)
            JSON_LOGS: If "false", use plain text logs (default: true)
        """

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            auth=AuthConfig(
                api_client=os.environ.get("BRIGHTBOX_CLIENT", ""),
                api_secret=os.environ.get("BRIGHTBOX_CLIENT_SECRET", ""),
                username=os.environ.get("BRIGHTBOX_USER_NAME", ""),
                password=os.environ.get("BRIGHTBOX_PASSWORD", ""),
                account=os.environ.get("BRIGHTBOX_ACCOUNT", ""),
                api_url=os.environ.get("BRIGHTBOX_API_URL", DEFAULT_API_URL),
                orbit_url=os.environ.get("BRIGHTBOX_ORBIT_URL", DEFAULT_ORBIT_URL),
            ),
            timeouts=Timeouts(
                create=get_float("BRIGHTBOX_CREATE_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
                read=get_float("BRIGHTBOX_READ_TIMEOUT", DEFAULT_OPERATION_TIMEOUT_SECONDS),
                update=get_float("BRIGHTBOX_UPDATE_TIMEOUT", DEFAULT_OPERATION_TIMEOUT_SECONDS),
                delete=get_float("BRIGHTBOX_DELETE_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
            ),
            minimum_refresh_wait_seconds=get_float(
                "BRIGHTBOX_MINIMUM_REFRESH_WAIT", MINIMUM_REFRESH_WAIT_SECONDS
            ),
            maximum_refresh_wait_seconds=get_float(
                "BRIGHTBOX_MAXIMUM_REFRESH_WAIT", MAXIMUM_REFRESH_WAIT_SECONDS
            ),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            json_logs=get_bool("JSON_LOGS", True),
        )
