# AGPL-3.0 License

"""
Rule doubles shared by the gate tests.
"""

import asyncio

from pr_gate.gate.base_rule import BaseRule
from pr_gate.gate.finding import Severity
from pr_gate.gate.rule_result import RuleResult
from pr_gate.gate.rule_spec import RuleSpec
from pr_gate.gate.submission import Submission


class StubRule(BaseRule):
    """
    Test rule driven entirely by provider_params.

    Params: findings (list of {severity, message, file_path, line}),
    delay (seconds), error (message to raise), ignore_cancel (bool).
    """

    provider_name = "stub"

    def __init__(self, spec: RuleSpec):
        super().__init__(spec)
        self.calls = 0
        self.cancelled = False

    async def evaluate(self, submission: Submission) -> RuleResult:
        self.calls += 1
        params = self.spec.provider_params
        delay = params.get("delay", 0)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled = True
                if not params.get("ignore_cancel"):
                    raise
        if params.get("error"):
            raise RuntimeError(params["error"])
        findings = [
            self.make_finding(
                f["message"],
                severity=Severity.from_string(f.get("severity", "warning")),
                file_path=f.get("file_path"),
                start_line=f.get("line"),
            )
            for f in params.get("findings", [])
        ]
        return self.build_result(findings)


def build_spec(rule_id: str, **kwargs) -> RuleSpec:
    data = {"provider": "stub"}
    data.update(kwargs)
    return RuleSpec.from_dict(rule_id, data)


def stub(rule_id: str, **kwargs) -> StubRule:
    return StubRule(build_spec(rule_id, **kwargs))
