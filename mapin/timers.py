"""
Cancelable timers and background I/O for the persistence synchronizer.

Two implementations share one small interface:
- VirtualClock: time only moves when a test calls advance()
- AsyncioScheduler: timers on the running event loop, blocking I/O in
  the loop's default executor with results delivered back on the loop
"""

import asyncio
import heapq
import itertools
import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

# done(result, error) is always invoked on the scheduler's own thread
DoneCallback = Callable[[Any, Optional[BaseException]], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """What the synchronizer needs from its environment."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def submit(self, job: Callable[[], Any], done: DoneCallback) -> None: ...


class _VirtualTimer:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class VirtualClock:
    """
    Manually advanced clock.

    Submitted I/O jobs run as soon as they are submitted unless
    `defer_io` is set, in which case they wait for run_io(). Deferring
    lets a test hold a save "in flight" while it keeps editing.
    """

    def __init__(self, defer_io: bool = False):
        self.now = 0.0
        self.defer_io = defer_io
        self._timers: list[tuple[float, int, _VirtualTimer]] = []
        self._seq = itertools.count()
        self._io: list[tuple[Callable[[], Any], DoneCallback]] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _VirtualTimer:
        timer = _VirtualTimer(self.now + delay, callback)
        heapq.heappush(self._timers, (timer.when, next(self._seq), timer))
        return timer

    def submit(self, job: Callable[[], Any], done: DoneCallback):
        self._io.append((job, done))
        if not self.defer_io:
            self.run_io()

    @property
    def pending_timers(self) -> int:
        return sum(1 for _, _, t in self._timers if not t.cancelled)

    @property
    def pending_io(self) -> int:
        return len(self._io)

    def advance(self, seconds: float):
        """Move time forward, firing every timer that falls due in order."""
        deadline = self.now + seconds
        while self._timers and self._timers[0][0] <= deadline:
            when, _, timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self.now = when
            timer.callback()
        self.now = deadline

    def run_io(self):
        """Complete every queued I/O job in submission order."""
        while self._io:
            job, done = self._io.pop(0)
            try:
                result = job()
            except Exception as e:
                done(None, e)
            else:
                done(result, None)


class AsyncioScheduler:
    """Scheduler bound to an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback)

    def submit(self, job: Callable[[], Any], done: DoneCallback):
        future = self.loop.run_in_executor(None, job)

        def _deliver(fut: asyncio.Future):
            if fut.cancelled():
                done(None, asyncio.CancelledError())
                return
            error = fut.exception()
            done(None if error else fut.result(), error)

        future.add_done_callback(_deliver)
