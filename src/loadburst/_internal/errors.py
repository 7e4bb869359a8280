"""Custom exception hierarchy for loadburst."""

from __future__ import annotations


class LoadBurstError(Exception):
    """Base exception for all loadburst errors.

    Catch this to handle any loadburst-specific failure with a single
    except clause.
    """


class ConfigError(LoadBurstError):
    """Raised when configuration is invalid, before any request is sent.

    Examples:
        - The target URL is relative or uses an unsupported scheme.
        - The request count or concurrency limit is out of range.
        - An environment variable holds a value that cannot be parsed.
    """


class EngineError(LoadBurstError):
    """Raised when the load engine is driven incorrectly.

    Examples:
        - ``Dispatcher.run()`` is called a second time.
        - The event loop fails outside of any single request attempt.
    """


class RunCancelledError(LoadBurstError):
    """Raised by the concurrency governor once the run has been cancelled.

    Waiters blocked in ``ConcurrencyGovernor.acquire()`` receive this when
    the overall deadline elapses or an external stop is requested.
    """


class AlreadyFinalizedError(LoadBurstError):
    """Raised when an outcome is recorded after the summary was finalized."""
