"""Stampede: concurrent HTTP GET load generator."""

from __future__ import annotations

from stampede._internal.config import RunConfig, Settings, load_settings
from stampede._internal.errors import ConfigError, EngineError, RequestBuildError, StampedeError
from stampede.client.http_client import HttpClient, RequestClient
from stampede.engine.cancellation import CancellationToken
from stampede.engine.runner import LoadTestRunner, run_load_test
from stampede.metrics.models import LatencySummary, Report, RequestResult

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "ConfigError",
    "EngineError",
    "HttpClient",
    "LatencySummary",
    "LoadTestRunner",
    "Report",
    "RequestBuildError",
    "RequestClient",
    "RequestResult",
    "RunConfig",
    "Settings",
    "StampedeError",
    "load_settings",
    "run_load_test",
]
