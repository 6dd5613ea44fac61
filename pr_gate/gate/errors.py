# AGPL-3.0 License

"""
Exception taxonomy for the gate engine.

Only ConfigError escapes a run; everything else is recorded in the
results or logged.
"""

from typing import Optional


class GateError(Exception):
    """Base class for all gate errors."""


class ConfigError(GateError):
    """Invalid rule configuration. Raised before any rule runs."""

    def __init__(self, message: str, rule_id: Optional[str] = None):
        self.rule_id = rule_id
        if rule_id:
            message = f"{message} (rule '{rule_id}')"
        super().__init__(message)


class RuleExecutionError(GateError):
    """A rule failed while evaluating (provider failure, malformed response)."""


class RuleTimeout(GateError):
    """A rule did not finish within its timeout."""

    def __init__(self, rule_id: str, timeout_ms: int):
        self.rule_id = rule_id
        self.timeout_ms = timeout_ms
        super().__init__(f"Rule '{rule_id}' timed out after {timeout_ms}ms")


class ObserverError(GateError):
    """An observer raised while being notified. Logged, never propagated."""


class RunCancelled(GateError):
    """The whole run was cancelled, e.g. because the PR got a newer commit."""
