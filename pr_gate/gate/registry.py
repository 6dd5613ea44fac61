# AGPL-3.0 License

"""
Rule registry: resolves configuration into runnable rules.

This is the only module that knows the concrete provider classes. Providers
are looked up in an explicit name -> class table; unknown names and invalid
parameters are rejected before any rule runs.
"""

from typing import Any, Iterable, Mapping, Optional, Union

from pr_gate.gate.base_rule import BaseRule, DisabledRule
from pr_gate.gate.errors import ConfigError
from pr_gate.gate.rule_spec import RuleSpec
from pr_gate.log import get_logger

RuleConfig = Union[Mapping[str, Mapping[str, Any]], Iterable[Union[RuleSpec, Mapping[str, Any]]]]


class RuleRegistry:
    """
    Maps provider names to rule classes and builds rule instances.
    """

    def __init__(
        self,
        providers: Optional[Mapping[str, type[BaseRule]]] = None,
        defaults: Optional[Mapping[str, Any]] = None
    ):
        """
        Initialize the registry.

        Args:
            providers: Provider table (None = built-in providers)
            defaults: Fallback ``timeout_ms``/``severity_threshold`` for specs that omit them
        """
        from pr_gate.providers import BUILT_IN_PROVIDERS

        self._providers: dict[str, type[BaseRule]] = {}
        self.defaults = dict(defaults or {})
        self.logger = get_logger()

        for name, rule_class in (BUILT_IN_PROVIDERS if providers is None else providers).items():
            self.register_provider(name, rule_class)

    @property
    def provider_names(self) -> list[str]:
        return sorted(self._providers)

    def register_provider(self, name: str, rule_class: type[BaseRule], replace: bool = False) -> None:
        """
        Add a provider to the table.

        Args:
            name: Provider name referenced by ``provider = "..."`` in rule config
            rule_class: BaseRule subclass implementing the provider
            replace: Allow overriding an existing entry
        """
        key = name.strip().lower()
        if not (isinstance(rule_class, type) and issubclass(rule_class, BaseRule)):
            raise TypeError(f"Provider '{name}' must be a BaseRule subclass")
        if key in self._providers and not replace:
            raise ValueError(f"Provider '{name}' is already registered")
        self._providers[key] = rule_class

    def load_specs(self, config: RuleConfig) -> list[RuleSpec]:
        """
        Turn raw rule configuration into validated specs.

        Accepts a mapping of rule id -> table, or a sequence of tables each
        carrying an ``id`` (or ready-made RuleSpecs). Declaration order is kept.

        Raises:
            ConfigError: On invalid entries or duplicate rule ids
        """
        if isinstance(config, Mapping):
            entries = [(str(rule_id), entry) for rule_id, entry in config.items()]
        elif isinstance(config, (str, bytes)) or not isinstance(config, Iterable):
            raise ConfigError(f"Rule configuration must be a table or a list, got {type(config).__name__}")
        else:
            entries = [(None, entry) for entry in config]

        specs: list[RuleSpec] = []
        seen: set[str] = set()
        for rule_id, entry in entries:
            spec = entry if isinstance(entry, RuleSpec) else RuleSpec.from_dict(rule_id, entry, self.defaults)
            if spec.rule_id in seen:
                raise ConfigError("duplicate rule", spec.rule_id)
            seen.add(spec.rule_id)
            specs.append(spec)
        return specs

    def resolve(self, config: RuleConfig) -> list[BaseRule]:
        """
        Resolve configuration into rule instances, in declaration order.

        Every enabled rule has its provider parameters validated here, so a
        missing API key fails the run before any rule is started.

        Args:
            config: Rule configuration (see ``load_specs``)

        Returns:
            One fresh rule instance per spec

        Raises:
            ConfigError: On unknown providers, invalid parameters or duplicate rules
        """
        specs = self.load_specs(config)
        rules: list[BaseRule] = []

        for spec in specs:
            rule_class = self._providers.get(spec.provider)
            if rule_class is None:
                raise ConfigError(
                    f"Unknown provider '{spec.provider}' (known: {', '.join(self.provider_names)})",
                    spec.rule_id,
                )

            if not spec.enabled:
                self.logger.debug(f"Rule {spec.rule_id} is disabled")
                rules.append(DisabledRule(spec))
                continue

            rule_class.validate_params(spec)
            try:
                rules.append(rule_class(spec))
            except ConfigError:
                raise
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid parameters for provider '{spec.provider}': {e}", spec.rule_id) from e

        self.logger.info(f"Resolved {len(rules)} rule(s): {', '.join(r.identifier for r in rules)}")
        return rules
