"""Configuration loading and validation for Stampede."""

from __future__ import annotations

import os
from dataclasses import dataclass

from yarl import URL

from stampede._internal.errors import ConfigError
from stampede._internal.logging import get_logger

logger = get_logger("config")

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_CONCURRENCY = 1000
DEFAULT_PROGRESS_INTERVAL = 100


@dataclass(frozen=True)
class Settings:
    """Process-wide defaults, read from the environment.

    Attributes:
        request_timeout: Per-request timeout in seconds.
        max_concurrency: Hard cap on the number of concurrent workers.
        progress_interval: Emit a progress line every N completed requests.
    """

    request_timeout: float = DEFAULT_TIMEOUT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL


@dataclass(frozen=True)
class RunConfig:
    """Validated configuration of a single load test run.

    Every instance is validated on construction, and ``concurrency`` is
    clamped so that it never exceeds ``requests``. :meth:`create` adds the
    environment defaults and the hard concurrency cap on top.

    Attributes:
        url: Target URL hit with GET requests.
        requests: Total number of requests to send.
        concurrency: Number of concurrent workers.
        timeout: Per-request timeout in seconds.
        progress_interval: Emit a progress notification every N results.

    Raises:
        ConfigError: If any value is missing or out of range.
    """

    url: str
    requests: int
    concurrency: int
    timeout: float = DEFAULT_TIMEOUT
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL

    def __post_init__(self) -> None:
        if not self.url or not self.url.strip():
            msg = "url is required"
            raise ConfigError(msg)
        _check_url(self.url)

        if self.requests <= 0:
            msg = f"requests must be greater than 0, got: {self.requests}"
            raise ConfigError(msg)
        if self.concurrency <= 0:
            msg = f"concurrency must be greater than 0, got: {self.concurrency}"
            raise ConfigError(msg)
        if self.timeout <= 0:
            msg = f"timeout must be positive, got: {self.timeout}"
            raise ConfigError(msg)
        if self.progress_interval < 1:
            msg = f"progress interval must be >= 1, got: {self.progress_interval}"
            raise ConfigError(msg)

        if self.concurrency > self.requests:
            logger.debug("Concurrency clamped from %d to %d", self.concurrency, self.requests)
            # Frozen dataclass
            object.__setattr__(self, "concurrency", self.requests)

    @classmethod
    def create(
        cls,
        url: str | None,
        requests: int,
        concurrency: int,
        *,
        timeout: float | None = None,
        progress_interval: int | None = None,
        settings: Settings | None = None,
    ) -> RunConfig:
        """Apply environment defaults to raw input and build a run configuration.

        Args:
            url: Target URL. Must be an absolute http or https URL.
            requests: Total request count. Must be positive.
            concurrency: Requested concurrency. Must be positive; clamped to
                ``requests`` and to ``settings.max_concurrency``.
            timeout: Per-request timeout override in seconds.
            progress_interval: Progress interval override.
            settings: Environment defaults. Defaults to ``Settings()``.

        Returns:
            A validated RunConfig.

        Raises:
            ConfigError: If any value is missing or out of range.
        """
        settings = settings or Settings()

        if concurrency > settings.max_concurrency:
            logger.debug(
                "Concurrency capped from %d to %d", concurrency, settings.max_concurrency
            )
            concurrency = settings.max_concurrency

        return cls(
            url=(url or "").strip(),
            requests=requests,
            concurrency=concurrency,
            timeout=settings.request_timeout if timeout is None else timeout,
            progress_interval=(
                settings.progress_interval if progress_interval is None else progress_interval
            ),
        )


def _check_url(url: str) -> None:
    """Reject URLs that are not absolute http(s) targets."""
    try:
        parsed = URL(url)
    except (TypeError, ValueError) as exc:
        msg = f"url is not valid: {url!r} ({exc})"
        raise ConfigError(msg) from None

    if parsed.scheme not in ("http", "https") or not parsed.host:
        msg = f"url must be an absolute http(s) URL, got: {url!r}"
        raise ConfigError(msg)


def load_settings() -> Settings:
    """Load settings from environment variables with defaults.

    Environment variables:
        STAMPEDE_TIMEOUT: Request timeout in seconds (default: 30.0).
        STAMPEDE_MAX_CONCURRENCY: Hard cap on workers (default: 1000).
        STAMPEDE_PROGRESS_INTERVAL: Progress interval (default: 100).

    Returns:
        Populated Settings instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    timeout_str = os.environ.get("STAMPEDE_TIMEOUT", str(DEFAULT_TIMEOUT))
    cap_str = os.environ.get("STAMPEDE_MAX_CONCURRENCY", str(DEFAULT_MAX_CONCURRENCY))
    interval_str = os.environ.get("STAMPEDE_PROGRESS_INTERVAL", str(DEFAULT_PROGRESS_INTERVAL))

    try:
        timeout = float(timeout_str)
    except ValueError:
        msg = f"STAMPEDE_TIMEOUT must be a number, got: {timeout_str!r}"
        raise ConfigError(msg) from None

    if timeout <= 0:
        msg = f"STAMPEDE_TIMEOUT must be positive, got: {timeout}"
        raise ConfigError(msg)

    return Settings(
        request_timeout=timeout,
        max_concurrency=_positive_int("STAMPEDE_MAX_CONCURRENCY", cap_str),
        progress_interval=_positive_int("STAMPEDE_PROGRESS_INTERVAL", interval_str),
    )


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got: {raw!r}"
        raise ConfigError(msg) from None

    if value < 1:
        msg = f"{name} must be >= 1, got: {value}"
        raise ConfigError(msg)
    return value
