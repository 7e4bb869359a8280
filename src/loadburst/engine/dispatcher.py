"""Drives a fixed number of request attempts under a concurrency limit.

Each attempt runs in its own task. A done-callback attached at spawn time
releases the attempt's permit and records its outcome, so every task that
was ever created produces exactly one outcome, including tasks that were
cancelled before they got to run.
"""

from __future__ import annotations

import asyncio
import functools
import time
from typing import TYPE_CHECKING, Protocol

from loadburst._internal.errors import EngineError, RunCancelledError
from loadburst._internal.logging import get_logger
from loadburst.engine.governor import ConcurrencyGovernor
from loadburst.engine.http_client import HttpClient
from loadburst.engine.rate_limiter import TokenBucketRateLimiter
from loadburst.engine.run_config import RunResult, RunState
from loadburst.metrics.aggregator import Aggregator
from loadburst.metrics.outcome import ErrorKind, Failure

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadburst.engine.governor import Permit
    from loadburst.engine.run_config import RunConfig
    from loadburst.metrics.models import ProgressSnapshot
    from loadburst.metrics.outcome import Outcome
    from loadburst.request.template import RequestTemplate

logger = get_logger("engine.dispatcher")


def _is_running_on(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class RequestSender(Protocol):
    """Anything that can turn a template into an outcome."""

    async def send(self, template: RequestTemplate) -> Outcome: ...


class Dispatcher:
    """Runs one load test: ``total`` attempts, at most ``concurrency`` at once.

    State machine: IDLE -> RUNNING -> COMPLETED | CANCELLED | TIMED_OUT

    Attempts are never retried; a failed attempt still counts toward
    ``total``. When the overall deadline elapses or :meth:`cancel` is
    called, no new attempts start and in-flight attempts are abandoned and
    recorded as ``Failure(CANCELLED)``.

    Attributes:
        template: Request sent on every attempt.
        config: Run parameters.
        aggregator: Receives every outcome and builds the summary.
    """

    def __init__(
        self,
        template: RequestTemplate,
        config: RunConfig,
        *,
        aggregator: Aggregator | None = None,
        sender: RequestSender | None = None,
        on_progress: Callable[[ProgressSnapshot], None] | None = None,
        tick_interval: float = 1.0,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            template: Request to repeat.
            config: Validated run parameters.
            aggregator: Outcome sink. A fresh Aggregator by default.
            sender: Object used to send requests. When None, an
                :class:`HttpClient` is opened for the duration of the run.
            on_progress: Optional callback invoked every ``tick_interval``
                seconds with a running ProgressSnapshot.
            tick_interval: Seconds between progress callbacks.
        """
        self.template = template
        self.config = config
        self.aggregator = aggregator or Aggregator(total=config.total)
        self._sender = sender
        self._on_progress = on_progress
        self._tick_interval = tick_interval

        self._governor = ConcurrencyGovernor(config.concurrency)
        self._rate_limiter = (
            TokenBucketRateLimiter(rate=config.rate_limit) if config.rate_limit is not None else None
        )
        self._state = RunState.IDLE
        self._cancel_event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._in_flight: set[asyncio.Task[Outcome]] = set()
        self._dispatched = 0

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def dispatched(self) -> int:
        """Attempts started so far."""
        return self._dispatched

    @property
    def in_flight(self) -> int:
        return self._governor.in_flight

    @property
    def peak_in_flight(self) -> int:
        return self._governor.peak_in_flight

    def cancel(self) -> None:
        """Request cancellation.

        Safe to call more than once, from a signal handler, or from a thread
        other than the one running the event loop. Off-loop calls are
        handed to the loop with ``call_soon_threadsafe`` so the run wakes
        up at once instead of at the next completed I/O.
        """
        if self._state.is_terminal:
            return
        loop = self._loop
        if loop is not None and not _is_running_on(loop):
            if not loop.is_closed():
                loop.call_soon_threadsafe(self.cancel)
            return
        if not self._cancel_event.is_set():
            logger.info("Cancellation requested after %d attempts", self._dispatched)
        self._cancel_event.set()

    async def run(self) -> RunResult:
        """Execute the run and return its result.

        Returns:
            RunResult with the terminal state and finalized summary.

        Raises:
            EngineError: If called more than once, or if the dispatch loop
                fails for a reason other than a single attempt's error.
        """
        if self._state is not RunState.IDLE:
            msg = f"Dispatcher.run() may only be called once (state={self._state.name})"
            raise EngineError(msg)

        self._state = RunState.RUNNING
        self._loop = asyncio.get_running_loop()
        logger.info(
            "Starting run: %s, total=%d, concurrency=%d, timeout=%.1fs, deadline=%s",
            self.template.describe(),
            self.config.total,
            self.config.concurrency,
            self.config.request_timeout,
            f"{self.config.deadline:.1f}s" if self.config.deadline is not None else "none",
        )

        self.aggregator.start()
        start = time.monotonic()

        if self.config.total == 0:
            state = RunState.COMPLETED
        elif self._sender is not None:
            state = await self._drive(self._sender)
        else:
            async with HttpClient(
                timeout=self.config.request_timeout,
                pool_size=self.config.concurrency,
                keepalive=self.config.keepalive,
            ) as client:
                state = await self._drive(client)

        self._state = state
        summary = self.aggregator.finalize(duration_seconds=time.monotonic() - start)

        logger.info(
            "Run %s: counted=%d/%d, successes=%d, failures=%d, rps=%.1f, p95=%.1fms",
            state.name.lower(),
            summary.total_counted,
            self.config.total,
            summary.success_count,
            summary.failure_count,
            summary.requests_per_second,
            summary.latency.percentile(95.0),
        )

        return RunResult(
            state=state,
            summary=summary,
            config=self.config,
            template=self.template,
            peak_in_flight=self.peak_in_flight,
        )

    async def _drive(self, sender: RequestSender) -> RunState:
        """Run the dispatch loop until it finishes, is cancelled or times out."""
        dispatch = asyncio.create_task(self._dispatch_all(sender), name="loadburst-dispatch")
        cancelled = asyncio.create_task(self._cancel_event.wait(), name="loadburst-cancel-wait")
        helpers: list[asyncio.Task[object]] = [cancelled]
        if self._on_progress is not None:
            helpers.append(asyncio.create_task(self._tick(), name="loadburst-progress"))

        try:
            done, _pending = await asyncio.wait(
                {dispatch, cancelled},
                timeout=self.config.deadline,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if dispatch in done:
                exc = dispatch.exception()
                if exc is not None:
                    await self._abort(dispatch)
                    raise EngineError("Dispatch loop failed") from exc
                # The loop also ends early when a cancel lands between attempts.
                if self._dispatched < self.config.total:
                    return RunState.CANCELLED
                return RunState.COMPLETED

            state = RunState.CANCELLED if self._cancel_event.is_set() else RunState.TIMED_OUT
            logger.warning(
                "Run %s with %d attempts in flight; abandoning them",
                "cancelled" if state is RunState.CANCELLED else "timed out",
                len(self._in_flight),
            )
            await self._abort(dispatch)
            return state
        except asyncio.CancelledError:
            await self._abort(dispatch)
            raise
        finally:
            for helper in helpers:
                helper.cancel()
            await asyncio.gather(*helpers, return_exceptions=True)
            if self._on_progress is not None:
                self._emit_progress()

    async def _dispatch_all(self, sender: RequestSender) -> None:
        for attempt in range(self.config.total):
            if self._cancel_event.is_set():
                break
            if self._rate_limiter is not None:
                await self._rate_limiter.acquire()
            try:
                permit = await self._governor.acquire()
            except RunCancelledError:
                break
            self._spawn(sender, attempt, permit)

        if self._in_flight:
            await asyncio.wait(set(self._in_flight))

    def _spawn(self, sender: RequestSender, attempt: int, permit: Permit) -> None:
        spawned_at = time.perf_counter()
        task = asyncio.create_task(self._send(sender), name=f"loadburst-attempt-{attempt}")
        self._dispatched += 1
        self._in_flight.add(task)
        task.add_done_callback(
            functools.partial(self._complete, attempt=attempt, permit=permit, spawned_at=spawned_at)
        )

    async def _send(self, sender: RequestSender) -> Outcome:
        start = time.perf_counter()
        try:
            async with asyncio.timeout(self.config.request_timeout):
                return await sender.send(self.template)
        except TimeoutError:
            return Failure(
                kind=ErrorKind.TIMEOUT,
                latency_ms=(time.perf_counter() - start) * 1000,
                message=f"No response within {self.config.request_timeout:g}s",
            )

    def _complete(
        self,
        task: asyncio.Task[Outcome],
        *,
        attempt: int,
        permit: Permit,
        spawned_at: float,
    ) -> None:
        """Release the permit and record the outcome of a finished attempt."""
        self._in_flight.discard(task)
        self._governor.release(permit)

        if task.cancelled():
            outcome: Outcome = Failure(
                kind=ErrorKind.CANCELLED,
                latency_ms=(time.perf_counter() - spawned_at) * 1000,
                message="Attempt abandoned",
            )
        elif (exc := task.exception()) is not None:
            logger.warning("Attempt %d raised %s: %s", attempt, type(exc).__name__, exc)
            outcome = Failure(
                kind=ErrorKind.PROTOCOL,
                latency_ms=(time.perf_counter() - spawned_at) * 1000,
                message=f"{type(exc).__name__}: {exc}",
            )
        else:
            outcome = task.result()

        self.aggregator.record(outcome)

    async def _abort(self, dispatch: asyncio.Task[None]) -> None:
        """Stop dispatching and abandon every in-flight attempt."""
        self._governor.close()
        dispatch.cancel()
        pending = list(self._in_flight)
        for task in pending:
            task.cancel()
        await asyncio.gather(dispatch, *pending, return_exceptions=True)

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            self._emit_progress()

    def _emit_progress(self) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(self.aggregator.progress(in_flight=self.in_flight))
        except Exception:
            logger.warning("Progress callback failed", exc_info=True)
