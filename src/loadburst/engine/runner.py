"""Top-level orchestrator: event loop, signals and logging around a Dispatcher."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import threading
from typing import TYPE_CHECKING, Any

from loadburst._internal.errors import EngineError
from loadburst._internal.logging import get_logger, setup_logging
from loadburst.engine.dispatcher import Dispatcher

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadburst.engine.run_config import RunConfig, RunResult
    from loadburst.metrics.models import ProgressSnapshot
    from loadburst.request.template import RequestTemplate

logger = get_logger("engine.runner")


def _loop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    """Return uvloop's loop constructor when it is installed.

    Falls back to the default asyncio event loop on Windows or when uvloop
    is not installed.
    """
    if sys.platform == "win32":
        return None

    try:
        import uvloop
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")
        return None

    logger.debug("Using uvloop event loop")
    return uvloop.new_event_loop


class LoadRunner:
    """Runs one load test to completion from synchronous code.

    Wires together logging, the event loop, SIGINT/SIGTERM handling and the
    Dispatcher. The first signal cancels the run gracefully: in-flight
    attempts are abandoned and the partial summary is still returned.

    Attributes:
        template: Request to repeat.
        config: Run parameters.
    """

    def __init__(
        self,
        template: RequestTemplate,
        config: RunConfig,
        *,
        on_progress: Callable[[ProgressSnapshot], None] | None = None,
        tick_interval: float = 0.5,
        log_level: int = logging.INFO,
        log_json: bool = False,
    ) -> None:
        """Initialize the runner.

        Args:
            template: Validated request template.
            config: Validated run configuration.
            on_progress: Optional callback receiving a ProgressSnapshot
                every ``tick_interval`` seconds.
            tick_interval: Seconds between progress callbacks.
            log_level: Logging level.
            log_json: Emit JSON log lines instead of plain text.
        """
        self.template = template
        self.config = config
        self.on_progress = on_progress
        self._tick_interval = tick_interval
        self._log_level = log_level
        self._log_json = log_json
        self._dispatcher: Dispatcher | None = None
        self._original_handlers: dict[signal.Signals, Any] = {}

    def run(self) -> RunResult:
        """Execute the run on a fresh event loop. Blocks until it ends.

        Returns:
            RunResult with the terminal state and summary.

        Raises:
            EngineError: If the run fails outside of individual attempts.
        """
        setup_logging(level=self._log_level, json_format=self._log_json)
        with asyncio.Runner(loop_factory=_loop_factory()) as loop_runner:
            return loop_runner.run(self.run_async())

    async def run_async(self) -> RunResult:
        """Execute the run on the current event loop.

        Returns:
            RunResult with the terminal state and summary.

        Raises:
            EngineError: If the run fails outside of individual attempts.
        """
        dispatcher = Dispatcher(
            self.template,
            self.config,
            on_progress=self.on_progress,
            tick_interval=self._tick_interval,
        )
        self._dispatcher = dispatcher

        self._install_signal_handlers(dispatcher)
        try:
            return await dispatcher.run()
        except EngineError:
            raise
        except Exception as exc:
            logger.exception("Load test failed")
            raise EngineError("Load test failed") from exc
        finally:
            self._remove_signal_handlers()

    def cancel(self) -> None:
        """Cancel the active run, if any. Callable from any thread."""
        if self._dispatcher is not None:
            self._dispatcher.cancel()

    def _install_signal_handlers(self, dispatcher: Dispatcher) -> None:
        # Signal handlers can only be installed from the main thread.
        if threading.current_thread() is not threading.main_thread():
            return
        self._original_handlers = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
        loop = asyncio.get_running_loop()

        def _signal_handler() -> None:
            logger.info("Signal received, cancelling run")
            dispatcher.cancel()

        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            # Windows doesn't support add_signal_handler
            signal.signal(signal.SIGINT, lambda _s, _f: loop.call_soon_threadsafe(_signal_handler))
            signal.signal(signal.SIGTERM, lambda _s, _f: loop.call_soon_threadsafe(_signal_handler))

    def _remove_signal_handlers(self) -> None:
        """Put back whatever handlers were installed before the run."""
        if not self._original_handlers:
            return
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in self._original_handlers:
                loop.remove_signal_handler(sig)
        for sig, handler in self._original_handlers.items():
            # getsignal() returns None for handlers not installed from Python.
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
        self._original_handlers = {}
