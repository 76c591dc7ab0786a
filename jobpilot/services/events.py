"""
Background event worker.

Events are queued in-process and routed to the functions registered for
their name. Each function consumes its own queue and may be throttled (at
most ``limit`` runs per ``period`` seconds); a throttled run waits for a
free slot instead of being dropped. A failing function is logged and never
stops its consumer.
"""

import asyncio
import contextlib
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Deque, Dict, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

# Event names
JOB_LISTING_APPLICATION_CREATED = "app/jobListingApplication.created"
RESUME_UPLOADED = "app/resume.uploaded"
DAILY_USER_JOB_LISTINGS_EMAIL = "app/email.daily-user-job-listings"
DAILY_ORGANIZATION_USER_APPLICATIONS_EMAIL = "app/email.daily-organization-user-applications"
DAILY_NOTIFICATIONS_CRON = "app/cron.daily-notifications"


@dataclass
class Event:
    name: str
    data: dict = field(default_factory=dict)
    user: Optional[dict] = None
    ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[Event, "EventWorker"], Awaitable[None]]


class Throttle:
    """Sliding-window rate limit: ``limit`` acquisitions per ``period`` seconds."""

    def __init__(self, limit: int, period: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.period = period
        self.clock = clock
        self._starts: Deque[float] = deque()

    def delay(self) -> float:
        """Seconds to wait before the next run may start (0 when a slot is free)."""
        now = self.clock()
        while self._starts and now - self._starts[0] >= self.period:
            self._starts.popleft()
        if len(self._starts) < self.limit:
            return 0.0
        return self.period - (now - self._starts[0])

    def record(self) -> None:
        self._starts.append(self.clock())

    async def acquire(self) -> None:
        wait = self.delay()
        while wait > 0:
            await asyncio.sleep(wait)
            wait = self.delay()
        self.record()


@dataclass
class RegisteredFunction:
    id: str
    event: str
    handler: Handler
    throttle: Optional[Throttle] = None
    queue: "asyncio.Queue[Event]" = field(default_factory=asyncio.Queue)
    task: Optional[asyncio.Task] = None


class EventWorker:
    """
    Routes queued events to their functions.

    ``send`` puts events on the intake queue; ``run`` moves each one onto the
    queue of every function registered for its name. Every function drains its
    own queue in a separate consumer task, so a throttled function only holds
    back its own runs.
    """

    def __init__(self) -> None:
        self.queue: asyncio.Queue[Event] = asyncio.Queue()
        self.functions: Dict[str, List[RegisteredFunction]] = {}

    def register(
        self,
        event: str,
        id: str,
        handler: Handler,
        throttle: Optional[Throttle] = None,
    ) -> None:
        """Register ``handler`` for ``event``; registering the same id again replaces it."""
        functions = []
        for function in self.functions.get(event, []):
            if function.id != id:
                functions.append(function)
            elif function.task is not None:
                function.task.cancel()
        functions.append(RegisteredFunction(id=id, event=event, handler=handler, throttle=throttle))
        self.functions[event] = functions

    async def send(self, events: Union[Event, Iterable[Event]]) -> int:
        """Queue one or many events. Returns the queue size."""
        if isinstance(events, Event):
            events = [events]
        for event in events:
            await self.queue.put(event)
        return self.queue.qsize()

    @contextlib.contextmanager
    def step(self, function_id: str, name: str):
        started = time.perf_counter()
        logger.debug("[%s] step %s started", function_id, name)
        try:
            yield
        except Exception:
            logger.warning("[%s] step %s failed", function_id, name)
            raise
        logger.debug(
            "[%s] step %s finished in %.1f ms",
            function_id,
            name,
            (time.perf_counter() - started) * 1000,
        )

    def _functions_for(self, event: Event) -> List[RegisteredFunction]:
        functions = self.functions.get(event.name, [])
        if not functions:
            logger.warning("No function registered for event %s", event.name)
        return functions

    async def execute(self, function: RegisteredFunction, event: Event) -> None:
        """Run one function for one event, waiting on its throttle first."""
        if function.throttle is not None:
            await function.throttle.acquire()
        try:
            await function.handler(event, self)
        except Exception:
            logger.exception("Function %s failed for event %s", function.id, event.name)

    async def handle(self, event: Event) -> None:
        """Run every function of ``event`` inline, one after the other."""
        for function in self._functions_for(event):
            await self.execute(function, event)

    def dispatch(self, event: Event) -> int:
        """Put ``event`` on the queue of each of its functions. Returns how many."""
        functions = self._functions_for(event)
        for function in functions:
            function.queue.put_nowait(event)
            if function.task is None or function.task.done():
                function.task = asyncio.create_task(self._consume(function))
        return len(functions)

    async def _consume(self, function: RegisteredFunction) -> None:
        while True:
            event = await function.queue.get()
            try:
                await self.execute(function, event)
            finally:
                function.queue.task_done()

    async def run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                self.dispatch(event)
            finally:
                self.queue.task_done()

    async def stop(self) -> None:
        """Cancel the per-function consumer tasks."""
        tasks = [
            function.task
            for functions in self.functions.values()
            for function in functions
            if function.task is not None
        ]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for functions in self.functions.values():
            for function in functions:
                function.task = None


# Singleton instance
_worker: EventWorker = None


def get_event_worker() -> EventWorker:
    global _worker
    if _worker is None:
        _worker = EventWorker()
    return _worker
