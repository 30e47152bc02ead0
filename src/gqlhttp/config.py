"""Client configuration.

``HttpConfig`` holds process-wide defaults read from the environment.
``ClientConfig`` is the construction-time surface of one client: it is frozen
once built and safe to share between threads.

Environment variables:

- ``GRAPHQL_CLIENT_TIMEOUT``: socket timeout (seconds) for calls without a deadline
- ``GRAPHQL_CLIENT_USER_AGENT``: ``User-Agent`` sent by every client
- ``GRAPHQL_ENDPOINT``, ``GRAPHQL_MULTIPART_FORM``,
  ``GRAPHQL_IMMEDIATELY_CLOSE_BODY``: read by :meth:`ClientConfig.from_env`
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

import requests


class ConfigurationError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigurationError):
    """Raised when a configuration fails validation."""


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class HttpConfig:
    """Configuration for HTTP requests."""

    # Timeout for calls whose context carries no deadline (seconds)
    TIMEOUT: float = float(os.getenv("GRAPHQL_CLIENT_TIMEOUT", "60"))

    USER_AGENT: str = os.getenv("GRAPHQL_CLIENT_USER_AGENT", "gqlhttp")


http_config = HttpConfig()


@dataclass
class ConfigValidationResult:
    """Result of configuration validation.

    Attributes:
        success: True if validation passed, False otherwise
        errors: List of error messages describing validation failures
    """

    success: bool
    errors: List[str]

    def add_error(self, error: str) -> None:
        self.errors.append(error)
        self.success = False

    @classmethod
    def success_result(cls) -> ConfigValidationResult:
        return cls(success=True, errors=[])


@dataclass(frozen=True)
class ClientConfig:
    """Construction-time settings of a :class:`gqlhttp.Client`.

    Attributes:
        endpoint: GraphQL endpoint URL every request is POSTed to
        session: Injected HTTP session; None creates a default ``requests.Session``
        use_multipart_form: Send ``multipart/form-data`` bodies instead of JSON
        immediately_close_request_body: Release attachment streams right after
            the body is framed
        default_headers: Headers sent with every request (read-only)
        timeout: Socket timeout for calls without a deadline
    """

    endpoint: str
    session: Optional[requests.Session] = field(default=None, compare=False, repr=False)
    use_multipart_form: bool = False
    immediately_close_request_body: bool = False
    # mappings are unhashable; equality still compares them
    default_headers: Mapping[str, str] = field(default_factory=dict, hash=False)
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_headers", MappingProxyType(dict(self.default_headers)))
        if self.timeout is None:
            object.__setattr__(self, "timeout", http_config.TIMEOUT)

    def validate(self) -> ConfigValidationResult:
        """Check the endpoint URL and timeout."""
        result = ConfigValidationResult.success_result()
        parsed = urlparse(self.endpoint or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            result.add_error(f"endpoint must be an absolute http(s) URL, got {self.endpoint!r}")
        if self.timeout is not None and self.timeout <= 0:
            result.add_error(f"timeout must be positive, got {self.timeout}")
        for name, value in self.default_headers.items():
            if not isinstance(name, str) or not isinstance(value, str):
                result.add_error(f"header {name!r} must map a string to a string")
        return result

    def validate_or_raise(self) -> "ClientConfig":
        """Validate and return ``self``.

        Raises:
            ConfigValidationError: If validation fails.
        """
        result = self.validate()
        if not result.success:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in result.errors)
            raise ConfigValidationError(error_msg)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view; the session is not included."""
        return {
            "endpoint": self.endpoint,
            "use_multipart_form": self.use_multipart_form,
            "immediately_close_request_body": self.immediately_close_request_body,
            "default_headers": dict(self.default_headers),
            "timeout": self.timeout,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], session: Optional[requests.Session] = None) -> ClientConfig:
        if "endpoint" not in data:
            raise ConfigurationError("endpoint is required")
        return cls(
            endpoint=data["endpoint"],
            session=session,
            use_multipart_form=bool(data.get("use_multipart_form", False)),
            immediately_close_request_body=bool(data.get("immediately_close_request_body", False)),
            default_headers=dict(data.get("default_headers") or {}),
            timeout=data.get("timeout"),
        )

    @classmethod
    def from_env(cls, session: Optional[requests.Session] = None) -> ClientConfig:
        """Build and validate a configuration from ``GRAPHQL_*`` variables."""
        return cls(
            endpoint=os.getenv("GRAPHQL_ENDPOINT", ""),
            session=session,
            use_multipart_form=_env_flag("GRAPHQL_MULTIPART_FORM"),
            immediately_close_request_body=_env_flag("GRAPHQL_IMMEDIATELY_CLOSE_BODY"),
        ).validate_or_raise()
