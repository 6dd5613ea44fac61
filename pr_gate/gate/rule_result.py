# AGPL-3.0 License

"""
Rule result data structures.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pr_gate.gate.finding import Finding


class RuleStatus(str, Enum):
    """
    Outcome of a single rule execution.
    """

    PASSED = "passed"
    """Rule ran and found nothing at or above its threshold"""

    FAILED = "failed"
    """Rule ran and reported findings at or above its threshold"""

    ERRORED = "errored"
    """Rule raised, or its provider returned something unusable"""

    TIMED_OUT = "timed-out"
    """Rule did not finish within its timeout"""

    SKIPPED = "skipped"
    """Rule was disabled, had no relevant files, or the run was cancelled"""

    @property
    def is_incomplete(self) -> bool:
        """True for statuses where the rule could not give a judgment."""
        return self in (RuleStatus.ERRORED, RuleStatus.TIMED_OUT)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RuleResult:
    """
    Result of executing one rule against a submission.

    Attributes:
        rule_id: Identifier of the rule that produced the result
        status: Outcome of the execution
        findings: Findings in the order the rule reported them
        duration_ms: Wall time spent on the rule
        error: Error description for errored/timed-out/skipped results
        metadata: Raw provider metadata (model name, exit code, ...)
    """
    rule_id: str
    status: RuleStatus
    findings: tuple[Finding, ...] = ()
    duration_ms: float = 0.0
    error: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "findings", tuple(self.findings))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata or {})))
        for finding in self.findings:
            if finding.rule_id != self.rule_id:
                raise ValueError(
                    f"Finding from rule '{finding.rule_id}' attached to result of rule '{self.rule_id}'"
                )

    def with_duration(self, duration_ms: float) -> "RuleResult":
        return replace(self, duration_ms=duration_ms, metadata=dict(self.metadata))

    def __str__(self) -> str:
        text = f"[{self.status.value.upper()}] {self.rule_id}: {len(self.findings)} finding(s)"
        if self.error:
            text += f" ({self.error})"
        return text
