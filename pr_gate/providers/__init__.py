# AGPL-3.0 License

"""
Built-in rule providers.

The registry resolves ``provider = "<name>"`` in rule configuration through
this table.
"""

from pr_gate.providers.change_rules import FileSizeRule, RequiredFilesRule
from pr_gate.providers.command_rule import CommandRule
from pr_gate.providers.llm_rule import LLMRule
from pr_gate.providers.pattern_rules import ForbiddenPatternsRule, PatternRule

BUILT_IN_PROVIDERS = {
    rule_class.provider_name: rule_class
    for rule_class in (
        PatternRule,
        ForbiddenPatternsRule,
        FileSizeRule,
        RequiredFilesRule,
        CommandRule,
        LLMRule,
    )
}

__all__ = [
    "BUILT_IN_PROVIDERS",
    "CommandRule",
    "FileSizeRule",
    "ForbiddenPatternsRule",
    "LLMRule",
    "PatternRule",
    "RequiredFilesRule",
]
