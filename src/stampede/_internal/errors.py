"""Custom exception hierarchy for Stampede."""

from __future__ import annotations


class StampedeError(Exception):
    """Base exception for all Stampede errors.

    All custom exceptions in Stampede inherit from this class, making it
    easy to catch any Stampede-specific error with a single except clause.
    """


class ConfigError(StampedeError):
    """Raised when configuration is invalid or missing.

    Raised before any ticket is produced or any request is sent.

    Examples:
        - The target URL is empty or not an absolute http(s) URL.
        - The request count or concurrency is not a positive integer.
        - An environment variable has an invalid value.
    """


class RequestBuildError(StampedeError):
    """Raised when a GET request cannot be built for the target URL.

    Workers never let this escape: it is recorded as a status-0 result.
    """


class EngineError(StampedeError):
    """Raised when the dispatch engine detects an integrity violation.

    Examples:
        - A worker tries to publish a result after the sink was closed.
        - The orchestration fails for a reason other than a request error.
    """
