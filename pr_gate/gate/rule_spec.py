# AGPL-3.0 License

"""
Rule configuration entries.

A RuleSpec is validated once, when it is built from configuration, so
providers never have to re-check the shape of their settings.
"""

import hashlib
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pr_gate.gate.errors import ConfigError
from pr_gate.gate.finding import Severity

DEFAULT_TIMEOUT_MS = 60000

RULE_SPEC_FIELDS = {
    "id",
    "enabled",
    "severity_threshold",
    "required",
    "timeout_ms",
    "provider",
    "provider_params",
    "description",
    "paths",
    "exclude_paths",
}


@dataclass(frozen=True)
class RuleSpec:
    """
    Configuration of a single rule.

    Attributes:
        rule_id: Unique identifier of the rule
        provider: Name of the provider that implements the rule
        enabled: Disabled rules are reported as skipped
        severity_threshold: Findings at or above this severity block merge
        required: An errored or timed-out required rule blocks merge
        timeout_ms: Per-rule evaluation timeout
        provider_params: Provider-specific parameters
        description: Human-readable description
        paths: Glob patterns of files the rule applies to (None = all files)
        exclude_paths: Glob patterns of files the rule ignores
    """
    rule_id: str
    provider: str
    enabled: bool = True
    severity_threshold: Severity = Severity.ERROR
    required: bool = False
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    provider_params: Mapping[str, Any] = field(default_factory=dict)
    description: str = ""
    paths: Optional[tuple[str, ...]] = None
    exclude_paths: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "provider_params", MappingProxyType(dict(self.provider_params or {})))
        if self.paths is not None:
            object.__setattr__(self, "paths", tuple(self.paths))
        object.__setattr__(self, "exclude_paths", tuple(self.exclude_paths or ()))

    @property
    def timeout(self) -> float:
        """Timeout in seconds."""
        return self.timeout_ms / 1000

    @property
    def fingerprint(self) -> str:
        """Stable hash of the whole configuration entry."""
        content = json.dumps({
            "rule_id": self.rule_id,
            "provider": self.provider,
            "enabled": self.enabled,
            "severity_threshold": self.severity_threshold.value,
            "required": self.required,
            "timeout_ms": self.timeout_ms,
            "provider_params": dict(self.provider_params),
            "paths": list(self.paths) if self.paths is not None else None,
            "exclude_paths": list(self.exclude_paths),
        }, sort_keys=True, default=str)
        return hashlib.sha256(content.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, rule_id: Optional[str], data: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None) -> "RuleSpec":
        """
        Build a RuleSpec from a configuration mapping.

        Args:
            rule_id: Rule identifier (None to read it from ``data["id"]``)
            data: Raw configuration entry
            defaults: Fallback values for ``timeout_ms`` and ``severity_threshold``

        Returns:
            Validated RuleSpec

        Raises:
            ConfigError: If a field is missing, unknown or has the wrong type
        """
        if not isinstance(data, Mapping):
            raise ConfigError(f"Rule configuration must be a table, got {type(data).__name__}", rule_id)

        data = {str(k).lower(): v for k, v in data.items()}
        defaults = defaults or {}

        if rule_id is None:
            rule_id = data.get("id")
        elif "id" in data and data["id"] != rule_id:
            raise ConfigError(f"Conflicting rule id '{data['id']}'", rule_id)
        if not isinstance(rule_id, str) or not rule_id.strip():
            raise ConfigError("Rule is missing a non-empty 'id'")

        unknown = sorted(set(data) - RULE_SPEC_FIELDS)
        if unknown:
            raise ConfigError(f"Unknown rule field(s): {', '.join(unknown)}", rule_id)

        provider = data.get("provider")
        if not isinstance(provider, str) or not provider.strip():
            raise ConfigError("Missing required field 'provider'", rule_id)

        enabled = _require_bool(data, "enabled", True, rule_id)
        required = _require_bool(data, "required", False, rule_id)

        threshold_value = data.get("severity_threshold", defaults.get("severity_threshold", Severity.ERROR.value))
        try:
            severity_threshold = Severity.from_string(threshold_value)
        except ValueError as e:
            raise ConfigError(str(e), rule_id) from e

        timeout_ms = data.get("timeout_ms", defaults.get("timeout_ms", DEFAULT_TIMEOUT_MS))
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
            raise ConfigError(f"'timeout_ms' must be a positive integer, got {timeout_ms!r}", rule_id)

        provider_params = data.get("provider_params", {})
        if not isinstance(provider_params, Mapping):
            raise ConfigError("'provider_params' must be a table", rule_id)

        description = data.get("description", rule_id)
        if not isinstance(description, str):
            raise ConfigError("'description' must be a string", rule_id)

        paths = data.get("paths")
        if paths is not None:
            paths = _require_str_list(paths, "paths", rule_id)
        exclude_paths = _require_str_list(data.get("exclude_paths", []), "exclude_paths", rule_id)

        return cls(
            rule_id=rule_id,
            provider=provider.strip().lower(),
            enabled=enabled,
            severity_threshold=severity_threshold,
            required=required,
            timeout_ms=timeout_ms,
            provider_params=_to_plain(provider_params),
            description=description,
            paths=paths,
            exclude_paths=exclude_paths,
        )


def _require_bool(data: Mapping[str, Any], key: str, default: bool, rule_id: str) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}", rule_id)
    return value


def _require_str_list(value: Any, key: str, rule_id: str) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigError(f"'{key}' must be a list of glob patterns", rule_id)
    if not all(isinstance(item, str) for item in value):
        raise ConfigError(f"'{key}' must only contain strings", rule_id)
    return tuple(value)


def _to_plain(value: Any) -> Any:
    """Copy nested settings containers into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {str(k): _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value
