# AGPL-3.0 License

"""
Rule orchestration engine for PR-Gate.

Resolves configured rules, runs them concurrently against a submission
with per-rule timeouts and failure isolation, aggregates their results
into a single verdict and notifies observers along the way.
"""

from pr_gate.gate.errors import (
    ConfigError,
    GateError,
    ObserverError,
    RuleExecutionError,
    RuleTimeout,
    RunCancelled,
)
from pr_gate.gate.finding import Finding, Location, Severity
from pr_gate.gate.submission import DiffHunk, EditType, FileChange, Submission
from pr_gate.gate.rule_spec import RuleSpec
from pr_gate.gate.rule_result import RuleResult, RuleStatus
from pr_gate.gate.base_rule import BaseRule, DisabledRule
from pr_gate.gate.report import Report, RuleOutcome, Verdict
from pr_gate.gate.events import Event, EventBus, EventKind, LoggingObserver, Observer
from pr_gate.gate.aggregator import aggregate
from pr_gate.gate.orchestrator import ResultCache, RuleOrchestrator
from pr_gate.gate.registry import RuleRegistry

__all__ = [
    "BaseRule",
    "ConfigError",
    "DiffHunk",
    "DisabledRule",
    "EditType",
    "Event",
    "EventBus",
    "EventKind",
    "FileChange",
    "Finding",
    "GateError",
    "Location",
    "LoggingObserver",
    "Observer",
    "ObserverError",
    "Report",
    "ResultCache",
    "RuleExecutionError",
    "RuleOrchestrator",
    "RuleOutcome",
    "RuleRegistry",
    "RuleResult",
    "RuleSpec",
    "RuleStatus",
    "RuleTimeout",
    "RunCancelled",
    "Severity",
    "Submission",
    "Verdict",
    "aggregate",
]
