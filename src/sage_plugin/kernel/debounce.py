"""
Debounce + cancellation tokens.

Every ``Debouncer.schedule()`` issues a fresh ``CancellationToken`` and
invalidates every token issued before it. The deferred action receives its
token and must check ``token.cancelled`` after each await before touching
shared state. In-flight work is never aborted: a superseded action may run
to completion, it just has to discard its result.

    debouncer = Debouncer(delay=0.8)
    debouncer.schedule(action)   # action(token) runs 0.8s later, if still current
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

DebouncedAction = Callable[["CancellationToken"], Awaitable[None]]


class GenerationCounter:
    """Monotonic counter that hands out tokens bound to one generation."""

    def __init__(self) -> None:
        self._generation = 0

    @property
    def current(self) -> int:
        return self._generation

    def issue(self) -> CancellationToken:
        """Start a new generation; all earlier tokens become cancelled."""
        self._generation += 1
        return CancellationToken(self, self._generation)

    def invalidate(self) -> None:
        self._generation += 1


class CancellationToken:
    """Valid only while its generation is still the counter's current one."""

    __slots__ = ("_counter", "_generation")

    def __init__(self, counter: GenerationCounter, generation: int) -> None:
        self._counter = counter
        self._generation = generation

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def cancelled(self) -> bool:
        return self._counter.current != self._generation

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "live"
        return f"<CancellationToken gen={self._generation} {state}>"


class Debouncer:
    """Trailing-edge debounce on the running event loop."""

    def __init__(self, delay: float, name: str = "debounce") -> None:
        self.delay = delay
        self.name = name
        self._counter = GenerationCounter()
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def generation(self) -> int:
        return self._counter.current

    @property
    def pending(self) -> bool:
        """True while a timer is armed or a fired action is still running."""
        return self._timer is not None or bool(self._tasks)

    def schedule(self, action: DebouncedAction) -> CancellationToken:
        token = self._counter.issue()
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire, action, token)
        return token

    def cancel(self) -> None:
        """Disarm the timer and invalidate outstanding tokens."""
        self._counter.invalidate()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, action: DebouncedAction, token: CancellationToken) -> None:
        self._timer = None
        if token.cancelled:
            return
        task = asyncio.create_task(
            self._run(action, token), name=f"{self.name}-{token.generation}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, action: DebouncedAction, token: CancellationToken) -> None:
        try:
            await action(token)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s action failed (gen=%d)", self.name, token.generation)

    async def wait_idle(self, poll: float = 0.005) -> None:
        """Wait until no timer is armed and no action is running."""
        while self.pending:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(poll)

    async def aclose(self) -> None:
        """Shutdown: disarm, then cancel and reap running actions."""
        self.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
