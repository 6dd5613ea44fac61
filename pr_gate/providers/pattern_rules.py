# AGPL-3.0 License

"""
Regex-based rules over the added lines of a submission.
"""

from pr_gate.gate.base_rule import BaseRule
from pr_gate.gate.errors import ConfigError
from pr_gate.gate.finding import Severity
from pr_gate.gate.rule_result import RuleResult
from pr_gate.gate.rule_spec import RuleSpec
from pr_gate.gate.submission import Submission
from pr_gate.providers.params import compile_pattern, get_param, get_severity


class PatternRule(BaseRule):
    """
    Searches added lines for a forbidden pattern, or requires one to be present.

    Parameters:
        pattern: Regular expression
        message: Message attached to each match
        severity: Severity of the findings (default "warning")
        invert: If true, report when the pattern is NOT found anywhere
    """

    provider_name = "pattern"

    @classmethod
    def validate_params(cls, spec: RuleSpec) -> None:
        compile_pattern(spec, get_param(spec, "pattern", str))
        get_param(spec, "message", str, "Pattern match found")
        get_param(spec, "invert", bool, False)
        get_severity(spec)

    def __init__(self, spec: RuleSpec):
        super().__init__(spec)
        self.pattern = compile_pattern(spec, get_param(spec, "pattern", str))
        self.message_template = get_param(spec, "message", str, "Pattern match found")
        self.invert = get_param(spec, "invert", bool, False)
        self.severity = get_severity(spec)

    async def evaluate(self, submission: Submission) -> RuleResult:
        findings = []
        for file_change in self.relevant_files(submission):
            for line_number, text in file_change.added_lines():
                if self.pattern.search(text):
                    findings.append(self.make_finding(
                        self.message_template,
                        severity=self.severity,
                        file_path=file_change.path,
                        start_line=line_number,
                    ))

        if not self.invert:
            return self.build_result(findings, {"matches": len(findings)})

        # Should REQUIRE pattern - report if not found
        if findings:
            return self.build_result([], {"matches": len(findings)})
        missing = self.make_finding(
            f"{self.message_template} (required pattern not found: {self.pattern.pattern})",
            severity=self.severity,
        )
        return self.build_result([missing], {"matches": 0})


class ForbiddenPatternsRule(BaseRule):
    """
    Check for secrets and sensitive data patterns.

    Reports added lines containing common secret patterns like API keys,
    passwords and private keys.

    Parameters:
        custom_patterns: Extra [{pattern, message}] entries
        severity: Severity of the findings (default "blocker")
    """

    provider_name = "forbidden_patterns"

    # Common secret patterns (basic set - extend with custom_patterns)
    DEFAULT_PATTERNS = [
        (r'(?i)(api[_-]?key|apikey)\s*[=:]\s*["\']?[a-z0-9]{20,}', "API key detected"),
        (r'(?i)(password|passwd|pwd)\s*[=:]\s*["\']?[^\s]{8,}', "Hardcoded password detected"),
        (r'(?i)(secret|token)\s*[=:]\s*["\']?[a-z0-9_\-]{20,}', "Secret/token detected"),
        (r'(?i)(aws_access_key_id|aws_secret_access_key)', "AWS credentials detected"),
        (r'-----BEGIN (RSA |DSA |EC )?PRIVATE KEY-----', "Private key detected"),
        (r'(?i)Bearer\s+[a-zA-Z0-9_\-\.]{20,}', "Bearer token detected"),
    ]

    SUGGESTION = "Remove sensitive data and use environment variables or secret management"

    @classmethod
    def validate_params(cls, spec: RuleSpec) -> None:
        cls._custom_patterns(spec)
        get_severity(spec, default=Severity.BLOCKER)

    @staticmethod
    def _custom_patterns(spec: RuleSpec) -> list[tuple[str, str]]:
        entries = get_param(spec, "custom_patterns", list, [])
        patterns = []
        for entry in entries:
            if not isinstance(entry, dict) or not isinstance(entry.get("pattern"), str):
                raise ConfigError("Each custom pattern needs a 'pattern' string", spec.rule_id)
            compile_pattern(spec, entry["pattern"])
            patterns.append((entry["pattern"], str(entry.get("message", "Forbidden pattern detected"))))
        return patterns

    def __init__(self, spec: RuleSpec):
        super().__init__(spec)
        self.patterns = [
            (compile_pattern(spec, pattern), message)
            for pattern, message in self.DEFAULT_PATTERNS + self._custom_patterns(spec)
        ]
        self.severity = get_severity(spec, default=Severity.BLOCKER)

    async def evaluate(self, submission: Submission) -> RuleResult:
        findings = []
        for file_change in self.relevant_files(submission):
            for line_number, text in file_change.added_lines():
                for pattern, message in self.patterns:
                    if pattern.search(text):
                        findings.append(self.make_finding(
                            message,
                            severity=self.severity,
                            file_path=file_change.path,
                            start_line=line_number,
                            suggestion=self.SUGGESTION,
                        ))
        return self.build_result(findings)
