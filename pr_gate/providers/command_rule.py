# AGPL-3.0 License

"""
Rule backed by an external linter binary.
"""

import asyncio
import shutil
from typing import Optional

from pr_gate.gate.base_rule import BaseRule
from pr_gate.gate.errors import ConfigError, RuleExecutionError
from pr_gate.gate.finding import Finding
from pr_gate.gate.rule_result import RuleResult
from pr_gate.gate.rule_spec import RuleSpec
from pr_gate.gate.submission import EditType, Submission
from pr_gate.log import get_logger
from pr_gate.providers.params import compile_pattern, get_param, get_severity

# path:line[:col]: message, as printed by flake8, ruff, eslint --format unix, shellcheck -f gcc, ...
DEFAULT_OUTPUT_PATTERN = r"^(?P<path>[^:\s][^:]*):(?P<line>\d+)(?::(?P<col>\d+))?:\s*(?P<message>.+)$"


class CommandRule(BaseRule):
    """
    Runs a linter over the changed files and turns its output into findings.

    Parameters:
        command: Binary to run (name on PATH or absolute path)
        args: Extra arguments placed before the file list
        pass_files: Append the relevant changed files to the command line (default true)
        working_dir: Directory to run the command in (the checkout root)
        output_pattern: Regex with named groups ``path``, ``line`` and ``message``
        ok_exit_codes: Exit codes that mean "ran fine" (default [0, 1])
        severity: Severity of the findings (default "warning")
    """

    provider_name = "command"

    @classmethod
    def validate_params(cls, spec: RuleSpec) -> None:
        command = get_param(spec, "command", str)
        if shutil.which(command) is None:
            raise ConfigError(f"Linter binary '{command}' not found", spec.rule_id)
        args = get_param(spec, "args", list, [])
        if not all(isinstance(a, str) for a in args):
            raise ConfigError("'args' must be a list of strings", spec.rule_id)
        exit_codes = get_param(spec, "ok_exit_codes", list, [0, 1])
        if not all(isinstance(c, int) and not isinstance(c, bool) for c in exit_codes):
            raise ConfigError("'ok_exit_codes' must be a list of integers", spec.rule_id)
        pattern = compile_pattern(spec, get_param(spec, "output_pattern", str, DEFAULT_OUTPUT_PATTERN))
        if "message" not in pattern.groupindex:
            raise ConfigError("'output_pattern' needs a named group 'message'", spec.rule_id)
        get_param(spec, "pass_files", bool, True)
        get_param(spec, "working_dir", str, None)
        get_severity(spec)

    def __init__(self, spec: RuleSpec):
        super().__init__(spec)
        self.command = shutil.which(get_param(spec, "command", str)) or get_param(spec, "command", str)
        self.args = list(get_param(spec, "args", list, []))
        self.pass_files = get_param(spec, "pass_files", bool, True)
        self.working_dir: Optional[str] = get_param(spec, "working_dir", str, None)
        self.output_pattern = compile_pattern(spec, get_param(spec, "output_pattern", str, DEFAULT_OUTPUT_PATTERN))
        self.ok_exit_codes = set(get_param(spec, "ok_exit_codes", list, [0, 1]))
        self.severity = get_severity(spec)
        self.logger = get_logger()

    async def evaluate(self, submission: Submission) -> RuleResult:
        files = [f.path for f in self.relevant_files(submission) if f.edit_type != EditType.DELETED]
        argv = [self.command, *self.args, *(files if self.pass_files else [])]
        self.logger.debug(f"Running linter for {self.identifier}: {' '.join(argv)}")

        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.working_dir,
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            try:
                _kill(process)
            finally:
                # reap the child so no zombie is left behind
                await process.wait()
            raise

        if process.returncode not in self.ok_exit_codes:
            tail = stderr.decode(errors="replace").strip()[-500:]
            raise RuleExecutionError(f"{argv[0]} exited with status {process.returncode}: {tail}")

        findings = self.parse_output(stdout.decode(errors="replace"), set(files))
        return self.build_result(findings, {"exit_code": process.returncode, "command": argv[0]})

    def parse_output(self, output: str, files: set[str]) -> list[Finding]:
        """
        Turn linter output lines into findings.

        Lines that do not match ``output_pattern``, or that point at files
        outside the submission, are ignored.
        """
        findings = []
        for line in output.splitlines():
            match = self.output_pattern.match(line.strip())
            if match is None:
                continue
            groups = match.groupdict()
            path = groups.get("path")
            if path is not None:
                path = path[2:] if path.startswith("./") else path
                if files and path not in files:
                    continue
            line_number = int(groups["line"]) if groups.get("line") else None
            if not line_number:
                # file-level diagnostic
                line_number = None
            findings.append(self.make_finding(
                groups["message"].strip(),
                severity=self.severity,
                file_path=path,
                start_line=line_number if path else None,
            ))
        return findings


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
