# AGPL-3.0 License

"""
Report data structures and the JSON report format.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pr_gate.gate.finding import Finding
from pr_gate.gate.rule_result import RuleStatus


class Verdict(str, Enum):
    """
    Final decision of a gate run.
    """

    APPROVE = "approve"
    """Nothing worth attention was found"""

    NEEDS_REVIEW = "needs-review"
    """Non-blocking findings, or an optional rule could not finish"""

    BLOCK = "block"
    """A blocking finding, or a required rule errored or timed out"""

    CANCELLED = "cancelled"
    """The run was cancelled before it completed"""

    @property
    def exit_code(self) -> int:
        """Process exit status a CLI wrapper should use for this verdict."""
        return _EXIT_CODES[self]

    def __str__(self) -> str:
        return self.value


# 2 is reserved for configuration failures, which produce no Report at all
CONFIG_ERROR_EXIT_CODE = 2

_EXIT_CODES = {
    Verdict.APPROVE: 0,
    Verdict.NEEDS_REVIEW: 0,
    Verdict.BLOCK: 1,
    Verdict.CANCELLED: 3,
}


@dataclass(frozen=True)
class RuleOutcome:
    """
    Per-rule status line of a report.
    """
    rule_id: str
    status: RuleStatus
    required: bool = False
    duration_ms: float = 0.0
    error: Optional[str] = None
    finding_count: int = 0

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "status": self.status.value,
            "required": self.required,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "finding_count": self.finding_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RuleOutcome":
        return cls(
            rule_id=data["rule_id"],
            status=RuleStatus(data["status"]),
            required=data.get("required", False),
            duration_ms=data.get("duration_ms", 0.0),
            error=data.get("error"),
            finding_count=data.get("finding_count", 0),
        )


@dataclass(frozen=True)
class Report:
    """
    Aggregate outcome of a gate run.

    Attributes:
        submission_id: Identifier of the gated submission
        verdict: Final decision
        findings: All findings, sorted by rule declaration order then location
        outcomes: One entry per rule, in declaration order
        summary: Human-readable summary text
    """
    submission_id: str
    verdict: Verdict
    findings: tuple[Finding, ...] = ()
    outcomes: tuple[RuleOutcome, ...] = ()
    summary: str = ""

    def __post_init__(self):
        object.__setattr__(self, "findings", tuple(self.findings))
        object.__setattr__(self, "outcomes", tuple(self.outcomes))

    @property
    def cancelled(self) -> bool:
        return self.verdict == Verdict.CANCELLED

    def findings_by_rule(self) -> dict[str, list[Finding]]:
        """Findings partitioned by rule id, in declaration order."""
        grouped: dict[str, list[Finding]] = {outcome.rule_id: [] for outcome in self.outcomes}
        for finding in self.findings:
            grouped.setdefault(finding.rule_id, []).append(finding)
        return grouped

    def get_outcome(self, rule_id: str) -> Optional[RuleOutcome]:
        for outcome in self.outcomes:
            if outcome.rule_id == rule_id:
                return outcome
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "submission_id": self.submission_id,
            "verdict": self.verdict.value,
            "findings": [f.to_dict() for f in self.findings],
            "outcomes": [o.to_dict() for o in self.outcomes],
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Report":
        """Create Report from dictionary."""
        return cls(
            submission_id=data["submission_id"],
            verdict=Verdict(data["verdict"]),
            findings=tuple(Finding.from_dict(f) for f in data.get("findings", [])),
            outcomes=tuple(RuleOutcome.from_dict(o) for o in data.get("outcomes", [])),
            summary=data.get("summary", ""),
        )

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "Report":
        return cls.from_dict(json.loads(text))
