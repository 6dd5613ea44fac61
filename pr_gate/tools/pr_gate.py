# AGPL-3.0 License

"""
PR Gate tool - runs the configured rules against a submission.

Loads rule definitions from the ``[rules.*]`` tables of the settings,
executes them and hands the resulting Report to the registered publishers
(CI status updater, PR comment poster, ...).
"""

import asyncio
import inspect
from typing import Any, Optional, Protocol

from dynaconf import Dynaconf

from pr_gate.config_loader import get_settings
from pr_gate.gate.events import EventBus, Observer
from pr_gate.gate.orchestrator import ResultCache, RuleOrchestrator
from pr_gate.gate.registry import RuleRegistry
from pr_gate.gate.report import Report
from pr_gate.gate.submission import Submission
from pr_gate.log import get_logger

# results survive across runs in the same process, e.g. re-checks of one head revision
_shared_cache = ResultCache()


class Publisher(Protocol):
    """
    Receives the final Report; ``publish`` may be sync or async.
    """

    def publish(self, report: Report) -> Any: ...


class PRGate:
    """
    PR Gate tool - resolves rules, runs them and publishes the Report.
    """

    def __init__(
        self,
        publishers: Optional[list[Publisher]] = None,
        observers: Optional[list[Observer]] = None,
        settings: Optional[Dynaconf] = None,
        registry: Optional[RuleRegistry] = None,
        cache: Optional[ResultCache] = None
    ):
        """
        Initialize the gate tool.

        Args:
            publishers: Collaborators receiving the final Report
            observers: Collaborators receiving lifecycle events
            settings: Settings object (defaults to the global settings)
            registry: Rule registry (defaults to the built-in providers)
            cache: Result cache (defaults to a process-wide cache when ``gate.cache_results`` is on)
        """
        self.settings = settings or get_settings()
        self.gate_settings = self.settings.get("gate", {})
        self.publishers = list(publishers or [])
        self.bus = EventBus(observers)
        self.registry = registry or RuleRegistry(defaults={
            "timeout_ms": self.gate_settings.get("default_timeout_ms", 60000),
            "severity_threshold": self.gate_settings.get("default_severity_threshold", "error"),
        })
        if cache is None and self.gate_settings.get("cache_results", False):
            cache = _shared_cache
        self.orchestrator = RuleOrchestrator(
            bus=self.bus,
            cache=cache,
            max_examples_per_group=self.gate_settings.get("max_examples_per_group", 5),
        )
        self.logger = get_logger()

    async def run(self, submission: Submission, cancel_event: Optional[asyncio.Event] = None) -> Report:
        """
        Gate a submission.

        Args:
            submission: Change under review
            cancel_event: Set it to cancel the run (e.g. the PR got a newer commit)

        Returns:
            The final Report

        Raises:
            ConfigError: If the rule configuration is invalid; no rule is run
        """
        self.logger.info(f"Gating submission: {submission.identifier}")

        rules = self.registry.resolve(self.settings.get("rules", {}))
        if not rules:
            self.logger.info("No rules configured")

        report = await self.orchestrator.run(
            submission,
            rules,
            concurrency_limit=self.gate_settings.get("concurrency_limit", 4),
            cancel_event=cancel_event,
        )

        await self._publish(report)
        await self.bus.drain(timeout=self.gate_settings.get("observer_drain_timeout", 10))

        self.logger.info(f"Gate completed for {submission.identifier}: {report.verdict.value}")
        return report

    async def _publish(self, report: Report) -> None:
        """Hand the report to every publisher; failures are logged only."""
        for publisher in self.publishers:
            try:
                outcome = publisher.publish(report)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                self.logger.error(f"Failed to publish report with {type(publisher).__name__}: {e}")
