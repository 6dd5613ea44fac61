# AGPL-3.0 License

"""
Base class for all rule modules.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Iterable, Mapping, Optional

import pathspec

from pr_gate.gate.finding import Finding, Location, Severity
from pr_gate.gate.rule_result import RuleResult, RuleStatus
from pr_gate.gate.rule_spec import RuleSpec
from pr_gate.gate.submission import FileChange, Submission


class BaseRule(ABC):
    """
    Abstract base class for all rule modules.

    A rule is bound to exactly one RuleSpec. The engine only relies on
    ``identifier``, ``timeout`` and ``evaluate``; everything else is
    convenience for rule authors. Rules may restrict themselves to a subset
    of the changed files through the spec's ``paths``/``exclude_paths``
    glob patterns.
    """

    provider_name: ClassVar[str] = ""

    def __init__(self, spec: RuleSpec):
        """
        Initialize a rule.

        Args:
            spec: Validated configuration entry the rule is bound to
        """
        self.spec = spec

        # Compile path specs for efficient matching
        self._path_spec = pathspec.PathSpec.from_lines('gitwildmatch', spec.paths or ["**/*"])
        self._exclude_spec = pathspec.PathSpec.from_lines('gitwildmatch', spec.exclude_paths) if spec.exclude_paths else None

    @classmethod
    def validate_params(cls, spec: RuleSpec) -> None:
        """
        Check provider parameters and credentials at resolution time.

        Args:
            spec: Configuration entry to validate

        Raises:
            ConfigError: If a required parameter is missing or invalid
        """

    @property
    def identifier(self) -> str:
        return self.spec.rule_id

    @property
    def timeout(self) -> float:
        """Evaluation timeout in seconds."""
        return self.spec.timeout

    def should_check_file(self, file_path: str) -> bool:
        """
        Determine if this rule applies to the given file.

        Args:
            file_path: Path to check

        Returns:
            True if the file matches include patterns and doesn't match exclude patterns
        """
        if not self._path_spec.match_file(file_path):
            return False

        if self._exclude_spec and self._exclude_spec.match_file(file_path):
            return False

        return True

    def relevant_files(self, submission: Submission) -> list[FileChange]:
        """Changed files this rule applies to."""
        return [f for f in submission.files if self.should_check_file(f.path)]

    def has_relevant_files(self, submission: Submission) -> bool:
        return any(self.should_check_file(f.path) for f in submission.files)

    def make_finding(
        self,
        message: str,
        severity: Severity = Severity.WARNING,
        file_path: Optional[str] = None,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
        suggestion: Optional[str] = None,
    ) -> Finding:
        location = Location(file_path, start_line, end_line) if file_path else None
        return Finding(
            rule_id=self.identifier,
            severity=severity,
            message=message,
            location=location,
            suggestion=suggestion,
        )

    def build_result(self, findings: Iterable[Finding], metadata: Optional[Mapping[str, Any]] = None) -> RuleResult:
        """
        Wrap findings into a RuleResult.

        The result is ``failed`` when any finding reaches the rule's
        severity threshold, ``passed`` otherwise.
        """
        findings = tuple(findings)
        threshold = self.spec.severity_threshold
        failed = any(f.severity.at_least(threshold) for f in findings)
        return RuleResult(
            rule_id=self.identifier,
            status=RuleStatus.FAILED if failed else RuleStatus.PASSED,
            findings=findings,
            metadata=metadata or {},
        )

    @abstractmethod
    async def evaluate(self, submission: Submission) -> RuleResult:
        """
        Evaluate the submission and return the rule's result.

        Implementations must not mutate the submission and should raise
        RuleExecutionError when the provider fails.

        Args:
            submission: Change under review

        Returns:
            RuleResult for this rule
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.identifier!r}, provider={self.spec.provider!r})"


class DisabledRule(BaseRule):
    """
    Placeholder for a rule whose spec has ``enabled = false``.

    Keeps the resolved rule list aligned with the configuration; always
    reports ``skipped`` without contacting any provider.
    """

    async def evaluate(self, submission: Submission) -> RuleResult:
        return RuleResult(
            rule_id=self.identifier,
            status=RuleStatus.SKIPPED,
            error="Rule is disabled",
        )
