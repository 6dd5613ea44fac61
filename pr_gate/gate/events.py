# AGPL-3.0 License

"""
Lifecycle events and the observer bus.

Observers (CI status updater, comment poster, chat notifier, ...) subscribe
to the bus; the engine publishes without knowing who listens. A failing or
slow observer never affects the run or the other observers.
"""

import asyncio
import inspect
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable

from pr_gate.gate.errors import ObserverError
from pr_gate.log import get_logger


class EventKind(str, Enum):
    """
    Types of lifecycle events published during a run.
    """

    RULE_STARTED = "rule-started"
    """A rule got a pool slot and began evaluating; payload is the rule id"""

    RULE_FINISHED = "rule-finished"
    """A rule produced its result; payload is the RuleResult"""

    RUN_COMPLETED = "run-completed"
    """The run finished; payload is the Report"""

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Event:
    """
    A single lifecycle notification.
    """
    kind: EventKind
    submission_id: str
    payload: Any = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class Observer(Protocol):
    """
    Anything with a ``notify(event)`` method, sync or async.
    """

    def notify(self, event: Event) -> Any: ...


class EventBus:
    """
    Fan-out of events to subscribed observers.

    ``publish`` never runs observer code on the event loop: coroutine
    observers are scheduled as their own tasks, synchronous observers run
    on a dedicated worker thread each, so a slow or blocking observer can
    neither delay the rules nor the other observers. Each observer still
    receives events in publication order. The bus keeps no per-submission
    state.
    """

    def __init__(self, observers: Optional[list[Observer]] = None):
        self._observers: list[Observer] = []
        self._executors: dict[int, ThreadPoolExecutor] = {}
        self._pending: set[asyncio.Future] = set()
        self.logger = get_logger()
        for observer in observers or []:
            self.subscribe(observer)

    @property
    def observers(self) -> list[Observer]:
        return list(self._observers)

    def subscribe(self, observer: Observer) -> None:
        if not callable(getattr(observer, "notify", None)):
            raise TypeError(f"{observer!r} has no notify() method")
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)
        executor = self._executors.pop(id(observer), None)
        if executor is not None:
            executor.shutdown(wait=False)

    def publish(self, event: Event) -> None:
        """
        Deliver an event to every observer. Never raises.

        Args:
            event: Event to deliver
        """
        for observer in list(self._observers):
            try:
                if inspect.iscoroutinefunction(observer.notify):
                    self._schedule(observer, event, observer.notify(event))
                else:
                    self._dispatch(observer, event)
            except Exception as e:
                self._report_failure(observer, event, e)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """
        Wait for in-flight deliveries to finish.

        Args:
            timeout: Seconds to wait before giving up (None = wait forever)
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._pending:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                break
            await asyncio.wait(list(self._pending), timeout=remaining)
        if self._pending:
            self.logger.warning(f"{len(self._pending)} observer notification(s) still running after drain timeout")

    def _dispatch(self, observer: Observer, event: Event) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop to protect, deliver in place
            outcome = observer.notify(event)
            if inspect.isawaitable(outcome):
                self._schedule(observer, event, outcome)
            return

        executor = self._executors.get(id(observer))
        if executor is None:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"observer-{type(observer).__name__}")
            self._executors[id(observer)] = executor
        self._track(observer, event, loop.run_in_executor(executor, observer.notify, event))

    def _schedule(self, observer: Observer, event: Event, awaitable) -> None:
        try:
            task = asyncio.ensure_future(awaitable)
        except RuntimeError as e:
            # no running event loop to deliver on
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._report_failure(observer, event, e)
            return
        self._track(observer, event, task)

    def _track(self, observer: Observer, event: Event, future: asyncio.Future) -> None:
        self._pending.add(future)

        def _done(f: asyncio.Future):
            self._pending.discard(f)
            if f.cancelled():
                return
            error = f.exception()
            if error is not None:
                self._report_failure(observer, event, error)
                return
            outcome = f.result()
            if inspect.isawaitable(outcome):
                self._schedule(observer, event, outcome)

        future.add_done_callback(_done)

    def _report_failure(self, observer: Observer, event: Event, error: BaseException) -> None:
        wrapped = ObserverError(f"Observer {type(observer).__name__} failed on {event.kind.value}: {error}")
        self.logger.bind(submission_id=event.submission_id).opt(exception=error).error(str(wrapped))


class LoggingObserver:
    """
    Observer that writes lifecycle events to the log.
    """

    def __init__(self, level: str = "INFO"):
        self.level = level
        self.logger = get_logger()

    def notify(self, event: Event) -> None:
        if event.kind == EventKind.RULE_STARTED:
            message = f"Rule started: {event.payload}"
        elif event.kind == EventKind.RULE_FINISHED:
            message = f"Rule finished: {event.payload}"
        else:
            verdict = getattr(event.payload, "verdict", None)
            message = f"Run completed: verdict={verdict}"
        self.logger.log(self.level, f"[{event.submission_id}] {message}")
