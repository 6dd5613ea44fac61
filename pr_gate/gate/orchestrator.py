# AGPL-3.0 License

"""
Rule orchestration and execution management.
"""

import asyncio
import time
from collections import OrderedDict
from typing import Optional, Sequence

from pr_gate.gate.aggregator import DEFAULT_MAX_EXAMPLES_PER_GROUP, aggregate
from pr_gate.gate.base_rule import BaseRule
from pr_gate.gate.errors import ConfigError, RuleExecutionError, RuleTimeout, RunCancelled
from pr_gate.gate.events import Event, EventBus, EventKind
from pr_gate.gate.finding import Finding, Severity
from pr_gate.gate.report import Report
from pr_gate.gate.rule_result import RuleResult, RuleStatus
from pr_gate.gate.submission import Submission
from pr_gate.log import get_logger

_CANCELLED = object()


class ResultCache:
    """
    In-memory cache of rule results keyed by rule config and submission content.

    Only ``passed`` and ``failed`` results are stored; errors, timeouts and
    skips are always re-evaluated.
    """

    CACHEABLE_STATUSES = (RuleStatus.PASSED, RuleStatus.FAILED)

    def __init__(self, max_entries: int = 1024):
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple[str, str], RuleResult] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def key(rule: BaseRule, submission: Submission) -> tuple[str, str]:
        return rule.spec.fingerprint, submission.fingerprint

    def get(self, rule: BaseRule, submission: Submission) -> Optional[RuleResult]:
        key = self.key(rule, submission)
        result = self._entries.get(key)
        if result is not None:
            self._entries.move_to_end(key)
        return result

    def put(self, rule: BaseRule, submission: Submission, result: RuleResult) -> None:
        if result.status not in self.CACHEABLE_STATUSES:
            return
        key = self.key(rule, submission)
        self._entries[key] = result
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


class RuleOrchestrator:
    """
    Runs a resolved rule set against a submission and builds the Report.

    Rules run concurrently up to a limit, each under its own timeout. A rule
    that raises or times out is recorded as ``errored``/``timed-out`` and
    never affects the other rules.
    """

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        cache: Optional[ResultCache] = None,
        max_examples_per_group: int = DEFAULT_MAX_EXAMPLES_PER_GROUP
    ):
        """
        Initialize the orchestrator.

        Args:
            bus: Event bus receiving lifecycle events (None = no observers)
            cache: Optional result cache shared across runs
            max_examples_per_group: Example findings per summary group
        """
        self.bus = bus or EventBus()
        self.cache = cache
        self.max_examples_per_group = max_examples_per_group
        self.logger = get_logger()

    async def run(
        self,
        submission: Submission,
        rules: Sequence[BaseRule],
        concurrency_limit: int = 4,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Report:
        """
        Execute all rules and aggregate their results.

        Args:
            submission: Change under review, shared read-only by all rules
            rules: Resolved rules in declaration order
            concurrency_limit: Maximum number of rules evaluating at once
            cancel_event: Setting this event cancels the whole run

        Returns:
            Report with one outcome per rule; verdict ``cancelled`` if the run was cancelled
        """
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be at least 1, got {concurrency_limit}")

        identifiers = [rule.identifier for rule in rules]
        duplicates = sorted({i for i in identifiers if identifiers.count(i) > 1})
        if duplicates:
            raise ConfigError("duplicate rule", ", ".join(duplicates))

        self.logger.info(
            f"Running {len(rules)} rule(s) on {submission.identifier} (concurrency limit {concurrency_limit})"
        )

        semaphore = asyncio.Semaphore(concurrency_limit)
        queue: asyncio.Queue = asyncio.Queue()
        started: set[str] = set()
        tasks = {
            rule.identifier: asyncio.create_task(
                self._run_single_rule(rule, submission, semaphore, queue, started),
                name=f"rule:{rule.identifier}",
            )
            for rule in rules
        }
        watcher = asyncio.create_task(self._watch_cancel(cancel_event, queue)) if cancel_event else None

        results: dict[str, RuleResult] = {}
        cancelled = False
        try:
            while len(results) < len(rules):
                item = await queue.get()
                if item is _CANCELLED:
                    cancelled = True
                    break
                results[item.rule_id] = item

            if cancelled:
                await self._cancel_in_flight(tasks, results, queue, submission, started)
        finally:
            if watcher is not None:
                watcher.cancel()
            for task in tasks.values():
                if not task.done():
                    task.cancel()

        report = aggregate(
            submission,
            results.values(),
            [rule.spec for rule in rules],
            max_examples_per_group=self.max_examples_per_group,
            cancelled=cancelled,
        )
        self.logger.info(f"Run on {submission.identifier} completed: verdict={report.verdict.value}")
        self.bus.publish(Event(EventKind.RUN_COMPLETED, submission.identifier, report))
        return report

    async def _run_single_rule(
        self,
        rule: BaseRule,
        submission: Submission,
        semaphore: asyncio.Semaphore,
        queue: asyncio.Queue,
        started: set[str]
    ) -> None:
        """
        Execute a single rule and push its result into the queue.

        Every rule publishes ``rule-started`` before ``rule-finished``, skipped ones included.
        """
        started_at = time.monotonic()
        try:
            if rule.spec.enabled and not rule.has_relevant_files(submission):
                self.logger.info(f"Rule {rule.identifier} skipped - no matching files")
                self._publish_started(rule.identifier, submission, started)
                result = RuleResult(rule_id=rule.identifier, status=RuleStatus.SKIPPED, error="No relevant files to check")
            else:
                async with semaphore:
                    self._publish_started(rule.identifier, submission, started)
                    result = self.cache.get(rule, submission) if self.cache is not None else None
                    if result is not None:
                        self.logger.debug(f"Rule {rule.identifier} served from cache")
                    else:
                        result = await self._evaluate(rule, submission)
                        if self.cache is not None:
                            self.cache.put(rule, submission, result)
        except Exception as e:
            self.logger.error(f"Rule {rule.identifier} could not be scheduled: {e}")
            duration_ms = (time.monotonic() - started_at) * 1000
            result = self._incomplete_result(rule, RuleStatus.ERRORED, f"{type(e).__name__}: {e}", duration_ms)

        self.logger.info(f"Rule {rule.identifier} completed: {result}")
        self.bus.publish(Event(EventKind.RULE_FINISHED, submission.identifier, result))
        queue.put_nowait(result)

    async def _evaluate(self, rule: BaseRule, submission: Submission) -> RuleResult:
        """
        Evaluate a rule under its timeout, turning failures into results.
        """
        started = time.monotonic()
        task = asyncio.create_task(rule.evaluate(submission))
        try:
            done, _ = await asyncio.wait({task}, timeout=rule.timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        duration_ms = (time.monotonic() - started) * 1000

        if not done:
            # cancelled, not awaited: a rule ignoring cancellation must not stall the run
            task.cancel()
            task.add_done_callback(_discard_outcome)
            timeout = RuleTimeout(rule.identifier, rule.spec.timeout_ms)
            self.logger.warning(str(timeout))
            return self._incomplete_result(rule, RuleStatus.TIMED_OUT, str(timeout), duration_ms)

        if task.cancelled():
            return self._incomplete_result(rule, RuleStatus.ERRORED, "Rule evaluation was cancelled", duration_ms)

        error = task.exception()
        if error is not None:
            if isinstance(error, RuleExecutionError):
                message = str(error)
            else:
                message = f"{type(error).__name__}: {error}"
            self.logger.bind(rule_id=rule.identifier).opt(exception=error).error(
                f"Rule {rule.identifier} failed with exception: {message}"
            )
            return self._incomplete_result(rule, RuleStatus.ERRORED, message, duration_ms)

        result = task.result()
        if not isinstance(result, RuleResult) or result.rule_id != rule.identifier:
            message = f"Rule returned a malformed result: {result!r}"
            self.logger.error(f"Rule {rule.identifier}: {message}")
            return self._incomplete_result(rule, RuleStatus.ERRORED, message, duration_ms)

        return result.with_duration(duration_ms)

    def _publish_started(self, rule_id: str, submission: Submission, started: set[str]) -> None:
        if rule_id not in started:
            started.add(rule_id)
            self.bus.publish(Event(EventKind.RULE_STARTED, submission.identifier, rule_id))

    @staticmethod
    def _incomplete_result(rule: BaseRule, status: RuleStatus, message: str, duration_ms: float) -> RuleResult:
        note = Finding(
            rule_id=rule.identifier,
            severity=Severity.INFO,
            message=f"Rule did not complete ({status.value}): {message}",
        )
        return RuleResult(
            rule_id=rule.identifier,
            status=status,
            findings=(note,),
            duration_ms=duration_ms,
            error=message,
        )

    @staticmethod
    async def _watch_cancel(cancel_event: asyncio.Event, queue: asyncio.Queue) -> None:
        await cancel_event.wait()
        queue.put_nowait(_CANCELLED)

    async def _cancel_in_flight(
        self,
        tasks: dict[str, asyncio.Task],
        results: dict[str, RuleResult],
        queue: asyncio.Queue,
        submission: Submission,
        started: set[str]
    ) -> None:
        """
        Cancel every unfinished rule and record it as skipped.
        """
        pending = [task for task in tasks.values() if not task.done()]
        self.logger.warning(f"Run on {submission.identifier} cancelled with {len(pending)} rule(s) in flight")
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        # results that completed while the cancellation was being handled
        while not queue.empty():
            item = queue.get_nowait()
            if item is not _CANCELLED:
                results[item.rule_id] = item

        reason = str(RunCancelled(f"Run on {submission.identifier} was cancelled"))
        for rule_id in tasks:
            if rule_id in results:
                continue
            result = RuleResult(rule_id=rule_id, status=RuleStatus.SKIPPED, error=reason)
            results[rule_id] = result
            self._publish_started(rule_id, submission, started)
            self.bus.publish(Event(EventKind.RULE_FINISHED, submission.identifier, result))


def _discard_outcome(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()
