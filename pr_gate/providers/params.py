# AGPL-3.0 License

"""
Helpers for validating provider parameters at resolution time.
"""

import re
from typing import Any, Optional, Union

from pr_gate.gate.errors import ConfigError
from pr_gate.gate.finding import Severity
from pr_gate.gate.rule_spec import RuleSpec

_MISSING = object()


def get_param(spec: RuleSpec, name: str, expected: Union[type, tuple], default: Any = _MISSING) -> Any:
    """
    Read a provider parameter, checking its type.

    Raises:
        ConfigError: If the parameter is required and missing, or has the wrong type
    """
    value = spec.provider_params.get(name, default)
    if value is _MISSING:
        raise ConfigError(f"Provider '{spec.provider}' requires parameter '{name}'", spec.rule_id)
    if value is None and default is None:
        return None
    expected_types = expected if isinstance(expected, tuple) else (expected,)
    if isinstance(value, bool) and bool not in expected_types:
        raise ConfigError(f"Parameter '{name}' must not be a boolean", spec.rule_id)
    if not isinstance(value, expected_types):
        names = "/".join(t.__name__ for t in expected_types)
        raise ConfigError(f"Parameter '{name}' must be of type {names}, got {type(value).__name__}", spec.rule_id)
    return value


def get_severity(spec: RuleSpec, name: str = "severity", default: Severity = Severity.WARNING) -> Severity:
    value = spec.provider_params.get(name, default.value)
    try:
        return Severity.from_string(value)
    except ValueError as e:
        raise ConfigError(str(e), spec.rule_id) from e


def compile_pattern(spec: RuleSpec, pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"Invalid regular expression {pattern!r}: {e}", spec.rule_id) from e


def get_positive_int(spec: RuleSpec, name: str) -> Optional[int]:
    value = get_param(spec, name, int, None)
    if value is not None and value <= 0:
        raise ConfigError(f"Parameter '{name}' must be positive", spec.rule_id)
    return value
