# AGPL-3.0 License

"""
Result aggregation: turns per-rule results into a single Report.

Everything here is a pure function of its inputs.
"""

from typing import Iterable, Sequence

from pr_gate.gate.finding import Finding, Severity
from pr_gate.gate.report import Report, RuleOutcome, Verdict
from pr_gate.gate.rule_result import RuleResult, RuleStatus
from pr_gate.gate.rule_spec import RuleSpec
from pr_gate.gate.submission import Submission

DEFAULT_MAX_EXAMPLES_PER_GROUP = 5

_JUDGED_STATUSES = (RuleStatus.PASSED, RuleStatus.FAILED)


def aggregate(
    submission: Submission,
    results: Iterable[RuleResult],
    specs: Sequence[RuleSpec],
    max_examples_per_group: int = DEFAULT_MAX_EXAMPLES_PER_GROUP,
    cancelled: bool = False,
) -> Report:
    """
    Merge rule results into a Report.

    The order in which results are supplied does not matter: findings are
    sorted by the declaration order of their rule, then by location.

    Args:
        submission: Submission the results belong to
        results: Exactly one result per spec, in any order
        specs: Rule specs in declaration order
        max_examples_per_group: Example findings listed per summary group
        cancelled: Whether the run was cancelled before completing

    Returns:
        The final Report

    Raises:
        ValueError: If results and specs do not match one-to-one
    """
    if max_examples_per_group < 0:
        raise ValueError("max_examples_per_group must not be negative")

    order = {spec.rule_id: index for index, spec in enumerate(specs)}
    by_rule = _index_results(results, order)

    findings: list[Finding] = []
    for spec in specs:
        findings.extend(_dedupe(by_rule[spec.rule_id].findings))
    findings.sort(key=lambda f: (order[f.rule_id],) + f.sort_key())

    outcomes = tuple(
        RuleOutcome(
            rule_id=spec.rule_id,
            status=by_rule[spec.rule_id].status,
            required=spec.required,
            duration_ms=by_rule[spec.rule_id].duration_ms,
            error=by_rule[spec.rule_id].error,
            finding_count=len(_dedupe(by_rule[spec.rule_id].findings)),
        )
        for spec in specs
    )

    verdict = compute_verdict(by_rule.values(), specs, cancelled=cancelled)
    summary = summarize(verdict, findings, outcomes, specs, max_examples_per_group)

    return Report(
        submission_id=submission.identifier,
        verdict=verdict,
        findings=tuple(findings),
        outcomes=outcomes,
        summary=summary,
    )


def compute_verdict(results: Iterable[RuleResult], specs: Sequence[RuleSpec], cancelled: bool = False) -> Verdict:
    """
    Decide the verdict for a complete set of results.

    ``block`` when any finding reaches its rule's severity threshold, or a
    required rule errored or timed out. ``needs-review`` when any finding
    is a warning or worse, or an optional rule errored or timed out.
    ``approve`` otherwise. The ``info`` notes attached to errored and
    timed-out results never affect the verdict.
    """
    if cancelled:
        return Verdict.CANCELLED

    spec_by_id = {spec.rule_id: spec for spec in specs}
    needs_review = False

    for result in results:
        spec = spec_by_id[result.rule_id]
        incomplete = result.status.is_incomplete

        if incomplete:
            if spec.required:
                return Verdict.BLOCK
            needs_review = True

        for finding in result.findings:
            if incomplete and finding.severity == Severity.INFO:
                continue
            if finding.severity.at_least(spec.severity_threshold):
                return Verdict.BLOCK
            if finding.severity.at_least(Severity.WARNING):
                needs_review = True

    return Verdict.NEEDS_REVIEW if needs_review else Verdict.APPROVE


def summarize(
    verdict: Verdict,
    findings: Sequence[Finding],
    outcomes: Sequence[RuleOutcome],
    specs: Sequence[RuleSpec],
    max_examples_per_group: int = DEFAULT_MAX_EXAMPLES_PER_GROUP,
) -> str:
    """
    Render the plain-text summary of a report.

    Findings are grouped by severity (most serious first), then by rule in
    declaration order. Each group lists at most ``max_examples_per_group``
    findings followed by an "... and N more" line when truncated.
    """
    lines = [f"Verdict: {verdict.value.upper()}"]

    counts = {severity: 0 for severity in Severity}
    for finding in findings:
        counts[finding.severity] += 1
    rules_with_findings = len({f.rule_id for f in findings})

    if findings:
        totals = ", ".join(
            f"{counts[severity]} {severity.value}"
            for severity in reversed(list(Severity))
            if counts[severity]
        )
        lines.append(f"{len(findings)} finding(s) from {rules_with_findings} rule(s): {totals}")
    else:
        lines.append(f"No findings from {len(outcomes)} rule(s)")

    incomplete = [o for o in outcomes if o.status not in _JUDGED_STATUSES]
    if incomplete:
        lines.append("")
        lines.append("Rules without a result:")
        for outcome in incomplete:
            required = " (required)" if outcome.required else ""
            reason = f": {outcome.error}" if outcome.error else ""
            lines.append(f"  {outcome.rule_id} {outcome.status.value}{required}{reason}")

    declaration = [spec.rule_id for spec in specs]
    for severity in reversed(list(Severity)):
        severity_findings = [f for f in findings if f.severity == severity]
        if not severity_findings:
            continue
        lines.append("")
        lines.append(f"{severity.value.upper()} ({len(severity_findings)})")
        for rule_id in declaration:
            group = [f for f in severity_findings if f.rule_id == rule_id]
            if not group:
                continue
            lines.append(f"  {rule_id} ({len(group)})")
            for finding in group[:max_examples_per_group]:
                where = f"{finding.location}: " if finding.location else ""
                lines.append(f"    - {where}{finding.message}")
            hidden = len(group) - max_examples_per_group
            if hidden > 0:
                lines.append(f"    ... and {hidden} more")

    return "\n".join(lines)


def _index_results(results: Iterable[RuleResult], order: dict[str, int]) -> dict[str, RuleResult]:
    by_rule: dict[str, RuleResult] = {}
    for result in results:
        if result.rule_id not in order:
            raise ValueError(f"Result for unknown rule '{result.rule_id}'")
        if result.rule_id in by_rule:
            raise ValueError(f"More than one result for rule '{result.rule_id}'")
        by_rule[result.rule_id] = result

    missing = [rule_id for rule_id in order if rule_id not in by_rule]
    if missing:
        raise ValueError(f"Missing result(s) for rule(s): {', '.join(missing)}")
    return by_rule


def _dedupe(findings: Iterable[Finding]) -> list[Finding]:
    seen = set()
    unique = []
    for finding in findings:
        if finding in seen:
            continue
        seen.add(finding)
        unique.append(finding)
    return unique
