# AGPL-3.0 License

"""
AI-powered rule that evaluates a natural-language rule with an LLM.
"""

import json
import os
from functools import partial
from typing import Any, Awaitable, Callable, Optional

from jinja2 import Template

from pr_gate.config_loader import get_settings
from pr_gate.gate.base_rule import BaseRule
from pr_gate.gate.errors import ConfigError, RuleExecutionError
from pr_gate.gate.finding import Finding, Severity
from pr_gate.gate.rule_result import RuleResult
from pr_gate.gate.rule_spec import RuleSpec
from pr_gate.gate.submission import Submission
from pr_gate.log import get_logger
from pr_gate.providers.params import get_param

CompletionFunc = Callable[..., Awaitable[Any]]


async def litellm_completion(model: str, messages: list[dict], **kwargs) -> Any:
    """Default completion backend."""
    from litellm import acompletion

    return await acompletion(model=model, messages=messages, **kwargs)


class LLMRule(BaseRule):
    """
    Uses an LLM to interpret and apply a rule written in natural language.

    Example rule: "All new functions must have corresponding unit tests"

    Parameters:
        rule: Natural language rule to evaluate
        model: Model identifier, must be one of ``llm.supported_models``
        api_key: Provider API key (or ``api_key_env`` naming an environment variable)
        temperature: Sampling temperature (default ``llm.temperature``)
        max_patch_chars: Truncate each file's patch in the prompt to this size
    """

    provider_name = "llm"

    @classmethod
    def validate_params(cls, spec: RuleSpec) -> None:
        rule = get_param(spec, "rule", str)
        if not rule.strip():
            raise ConfigError("'rule' must not be empty", spec.rule_id)

        model = get_param(spec, "model", str)
        supported = list(get_settings().get("llm", {}).get("supported_models", []))
        if model not in supported:
            raise ConfigError(f"Unsupported model '{model}' (supported: {', '.join(supported)})", spec.rule_id)

        if not cls._api_key(spec):
            raise ConfigError("LLM provider requires a non-empty 'api_key' or 'api_key_env'", spec.rule_id)

        get_param(spec, "temperature", (int, float), 0.2)
        get_param(spec, "max_patch_chars", int, 20000)

    @staticmethod
    def _api_key(spec: RuleSpec) -> str:
        api_key = get_param(spec, "api_key", str, "")
        if not api_key:
            env_name = get_param(spec, "api_key_env", str, "")
            api_key = os.environ.get(env_name, "") if env_name else ""
        return api_key.strip()

    def __init__(self, spec: RuleSpec, completion: Optional[CompletionFunc] = None):
        """
        Initialize the LLM rule.

        Args:
            spec: Rule configuration
            completion: Async completion callable (defaults to litellm); bound
                to this rule's API key so no client state is shared between rules
        """
        super().__init__(spec)
        settings = get_settings()
        self.rule = get_param(spec, "rule", str)
        self.model = get_param(spec, "model", str)
        self.temperature = get_param(spec, "temperature", (int, float), settings.get("llm", {}).get("temperature", 0.2))
        self.max_patch_chars = get_param(spec, "max_patch_chars", int, 20000)
        self.completion = partial(completion or litellm_completion, api_key=self._api_key(spec))
        self.logger = get_logger()

    def build_prompt(self, submission: Submission) -> tuple[str, str]:
        """Render the system and user prompts for a submission."""
        prompts = get_settings().get("rule_prompts", {})
        files = [
            {"path": f.path, "patch": f.patch[:self.max_patch_chars]}
            for f in self.relevant_files(submission)
        ]
        user = Template(prompts.get("user", "")).render(rule=self.rule, submission=submission, files=files)
        return prompts.get("system", ""), user

    async def evaluate(self, submission: Submission) -> RuleResult:
        system, user = self.build_prompt(submission)
        try:
            response = await self.completion(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=self.temperature,
            )
        except Exception as e:
            raise RuleExecutionError(f"LLM request to {self.model} failed: {e}") from e

        content = _response_content(response)
        findings = self.parse_response(content)
        return self.build_result(findings, {"model": self.model})

    def parse_response(self, content: str) -> list[Finding]:
        """
        Convert the model's JSON answer into findings.

        Raises:
            RuleExecutionError: If the answer is not the expected JSON shape
        """
        text = content.strip()
        if text.startswith("```"):
            text = text.strip("`")
            if text.lower().startswith("json"):
                text = text[4:]
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RuleExecutionError(f"Malformed LLM response: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("findings", []), list):
            raise RuleExecutionError("Malformed LLM response: expected an object with a 'findings' list")

        findings = []
        for item in data.get("findings", []):
            if not isinstance(item, dict) or not item.get("message"):
                raise RuleExecutionError(f"Malformed LLM finding: {item!r}")
            try:
                severity = Severity.from_string(item.get("severity", "warning"))
                findings.append(self.make_finding(
                    str(item["message"]),
                    severity=severity,
                    file_path=item.get("file_path") or None,
                    start_line=item.get("start_line"),
                    end_line=item.get("end_line"),
                    suggestion=item.get("suggestion"),
                ))
            except (TypeError, ValueError) as e:
                raise RuleExecutionError(f"Malformed LLM finding {item!r}: {e}") from e
        return findings


def _response_content(response: Any) -> str:
    """Extract the message text from an OpenAI-style completion response."""
    try:
        if isinstance(response, dict):
            return response["choices"][0]["message"]["content"] or ""
        return response.choices[0].message.content or ""
    except (AttributeError, IndexError, KeyError, TypeError) as e:
        raise RuleExecutionError(f"Malformed LLM response object: {e}") from e
