# AGPL-3.0 License

"""
Rules about the shape of the change set itself.
"""

import fnmatch

from pr_gate.gate.base_rule import BaseRule
from pr_gate.gate.errors import ConfigError
from pr_gate.gate.rule_result import RuleResult
from pr_gate.gate.rule_spec import RuleSpec
from pr_gate.gate.submission import Submission
from pr_gate.providers.params import get_param, get_positive_int, get_severity


class FileSizeRule(BaseRule):
    """
    Check for file and PR size limits.

    Flags overly large changes that are difficult to review.

    Parameters:
        max_file_lines: Maximum changed lines per file
        max_total_lines: Maximum changed lines across the whole submission
        severity: Severity of the findings (default "warning")
    """

    provider_name = "file_size"

    @classmethod
    def validate_params(cls, spec: RuleSpec) -> None:
        max_file_lines = get_positive_int(spec, "max_file_lines")
        max_total_lines = get_positive_int(spec, "max_total_lines")
        if max_file_lines is None and max_total_lines is None:
            raise ConfigError("Set at least one of 'max_file_lines' or 'max_total_lines'", spec.rule_id)
        get_severity(spec)

    def __init__(self, spec: RuleSpec):
        super().__init__(spec)
        self.max_file_lines = get_positive_int(spec, "max_file_lines")
        self.max_total_lines = get_positive_int(spec, "max_total_lines")
        self.severity = get_severity(spec)

    async def evaluate(self, submission: Submission) -> RuleResult:
        findings = []
        total_lines = 0

        for file_change in self.relevant_files(submission):
            lines_changed = file_change.num_plus_lines + file_change.num_minus_lines
            total_lines += lines_changed

            if self.max_file_lines and lines_changed > self.max_file_lines:
                findings.append(self.make_finding(
                    f"File changes {lines_changed} lines (limit {self.max_file_lines})",
                    severity=self.severity,
                    file_path=file_change.path,
                    suggestion="Split the change into smaller pieces",
                ))

        if self.max_total_lines and total_lines > self.max_total_lines:
            findings.append(self.make_finding(
                f"Total lines changed ({total_lines}) exceeds limit ({self.max_total_lines})",
                severity=self.severity,
            ))

        return self.build_result(findings, {"total_lines": total_lines})


class RequiredFilesRule(BaseRule):
    """
    Ensure certain files are modified together.

    Example: if package.json changes, package-lock.json should also change.

    Parameters:
        trigger_files: Glob patterns of files that trigger the requirement
        required_files: Glob patterns that must each match a changed file
        message: Message for each missing pattern
        severity: Severity of the findings (default "warning")
    """

    provider_name = "required_files"

    @classmethod
    def validate_params(cls, spec: RuleSpec) -> None:
        for name in ("trigger_files", "required_files"):
            patterns = get_param(spec, name, list)
            if not patterns or not all(isinstance(p, str) for p in patterns):
                raise ConfigError(f"'{name}' must be a non-empty list of glob patterns", spec.rule_id)
        get_param(spec, "message", str, "Required files not modified")
        get_severity(spec)

    def __init__(self, spec: RuleSpec):
        super().__init__(spec)
        self.trigger_files = list(get_param(spec, "trigger_files", list))
        self.required_files = list(get_param(spec, "required_files", list))
        self.message_template = get_param(spec, "message", str, "Required files not modified")
        self.severity = get_severity(spec)

    async def evaluate(self, submission: Submission) -> RuleResult:
        changed_files = [f.path for f in self.relevant_files(submission)]

        trigger_matched = any(
            fnmatch.fnmatch(f, pattern) for f in changed_files for pattern in self.trigger_files
        )
        if not trigger_matched:
            return self.build_result([], {"triggered": False})

        missing = [
            pattern for pattern in self.required_files
            if not any(fnmatch.fnmatch(f, pattern) for f in submission.files_changed)
        ]
        findings = [
            self.make_finding(
                f"{self.message_template}: missing change matching {pattern}",
                severity=self.severity,
            )
            for pattern in missing
        ]
        return self.build_result(findings, {"triggered": True})
