"""Environment-variable defaults for loadburst."""

from __future__ import annotations

import os
from dataclasses import dataclass

from loadburst._internal.errors import ConfigError

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6770
DEFAULT_ENDPOINT = "/metrics"
DEFAULT_NUM_REQUESTS = 10_000
DEFAULT_CONCURRENCY = 50
DEFAULT_METHOD = "GET"
DEFAULT_TIMEOUT = 30.0
DEFAULT_ACCEPT = "application/json"


@dataclass(frozen=True)
class LoadBurstConfig:
    """Defaults for a run, resolved from the environment.

    Attributes:
        target_url: URL to load test. Either ``LOADBURST_URL`` verbatim or
            built from host, port and endpoint.
        num_requests: Total number of requests to send.
        concurrency: Maximum number of requests in flight.
        method: HTTP method name.
        request_timeout: Per-request timeout in seconds.
        accept: Value of the ``Accept`` header sent unless the caller
            supplies its own. Empty to send none.
    """

    target_url: str = f"http://{DEFAULT_HOST}:{DEFAULT_PORT}{DEFAULT_ENDPOINT}"
    num_requests: int = DEFAULT_NUM_REQUESTS
    concurrency: int = DEFAULT_CONCURRENCY
    method: str = DEFAULT_METHOD
    request_timeout: float = DEFAULT_TIMEOUT
    accept: str = DEFAULT_ACCEPT


def _int_from_env(name: str, default: int, *, minimum: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got: {raw!r}"
        raise ConfigError(msg) from None
    if value < minimum:
        msg = f"{name} must be >= {minimum}, got: {value}"
        raise ConfigError(msg)
    return value


def _build_target_url() -> str:
    url = os.environ.get("LOADBURST_URL", "")
    if url:
        return url

    host = os.environ.get("LOADBURST_HOST", "") or DEFAULT_HOST
    port = _int_from_env("LOADBURST_PORT", DEFAULT_PORT, minimum=1)
    if port > 65535:
        msg = f"LOADBURST_PORT must be <= 65535, got: {port}"
        raise ConfigError(msg)
    endpoint = os.environ.get("LOADBURST_ENDPOINT", "") or DEFAULT_ENDPOINT
    if not endpoint.startswith("/"):
        endpoint = f"/{endpoint}"
    return f"http://{host}:{port}{endpoint}"


def load_config() -> LoadBurstConfig:
    """Load run defaults from environment variables.

    Environment variables:
        LOADBURST_URL: Full target URL. Takes precedence over the three below.
        LOADBURST_HOST: Target host (default: 127.0.0.1).
        LOADBURST_PORT: Target port (default: 6770).
        LOADBURST_ENDPOINT: Target path (default: /metrics).
        LOADBURST_NUM_REQUESTS: Total requests (default: 10000).
        LOADBURST_CONCURRENCY: Concurrency limit (default: 50).
        LOADBURST_METHOD: HTTP method (default: GET).
        LOADBURST_TIMEOUT: Per-request timeout in seconds (default: 30.0).
        LOADBURST_ACCEPT: Default Accept header (default: application/json).
            Set but empty to send no Accept header.

    Returns:
        Populated LoadBurstConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    num_requests = _int_from_env("LOADBURST_NUM_REQUESTS", DEFAULT_NUM_REQUESTS, minimum=0)
    concurrency = _int_from_env("LOADBURST_CONCURRENCY", DEFAULT_CONCURRENCY, minimum=1)

    timeout_str = os.environ.get("LOADBURST_TIMEOUT", "") or str(DEFAULT_TIMEOUT)
    try:
        timeout = float(timeout_str)
    except ValueError:
        msg = f"LOADBURST_TIMEOUT must be a number, got: {timeout_str!r}"
        raise ConfigError(msg) from None
    if timeout <= 0:
        msg = f"LOADBURST_TIMEOUT must be positive, got: {timeout}"
        raise ConfigError(msg)

    return LoadBurstConfig(
        target_url=_build_target_url(),
        num_requests=num_requests,
        concurrency=concurrency,
        method=(os.environ.get("LOADBURST_METHOD", "") or DEFAULT_METHOD).upper(),
        request_timeout=timeout,
        accept=os.environ.get("LOADBURST_ACCEPT", DEFAULT_ACCEPT).strip(),
    )
