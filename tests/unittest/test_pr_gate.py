# AGPL-3.0 License

"""
Unit tests for the PR Gate tool.
"""

import pytest
from dynaconf import Dynaconf

from helpers_rules import StubRule
from pr_gate.gate.errors import ConfigError
from pr_gate.gate.events import EventKind
from pr_gate.gate.orchestrator import ResultCache
from pr_gate.gate.registry import RuleRegistry
from pr_gate.gate.report import Verdict
from pr_gate.tools import PRGate

GATE_SETTINGS = """
[gate]
concurrency_limit = 2
default_timeout_ms = 5000
default_severity_threshold = "error"
max_examples_per_group = 5
cache_results = false
observer_drain_timeout = 1

[rules.lint]
provider = "stub"
required = true
provider_params = { findings = [{ severity = "warning", message = "unused import", file_path = "src/app.py", line = 2 }] }

[rules.security]
provider = "stub"
provider_params = { findings = [{ severity = "blocker", message = "hardcoded key", file_path = "README.md", line = 2 }] }
"""


def load_settings(tmp_path, text=GATE_SETTINGS):
    config_path = tmp_path / "gate.toml"
    config_path.write_text(text)
    return Dynaconf(settings_files=[str(config_path)])


def stub_registry():
    return RuleRegistry(providers={"stub": StubRule}, defaults={"timeout_ms": 5000})


class RecordingPublisher:
    def __init__(self):
        self.reports = []

    def publish(self, report):
        self.reports.append(report)


class AsyncRecordingPublisher(RecordingPublisher):
    async def publish(self, report):
        self.reports.append(report)


class BrokenPublisher:
    def publish(self, report):
        raise ConnectionError("comment API unavailable")


class RecordingObserver:
    def __init__(self):
        self.events = []

    async def notify(self, event):
        self.events.append(event)


@pytest.mark.asyncio
class TestPRGate:
    """Tests for PRGate."""

    async def test_runs_configured_rules(self, tmp_path, submission):
        """Test that rules from the settings run in declaration order."""
        gate = PRGate(settings=load_settings(tmp_path), registry=stub_registry())

        report = await gate.run(submission)

        assert [o.rule_id for o in report.outcomes] == ["lint", "security"]
        assert report.verdict == Verdict.BLOCK
        assert report.verdict.exit_code == 1
        assert [f.message for f in report.findings] == ["unused import", "hardcoded key"]

    async def test_publishers_receive_report(self, tmp_path, submission):
        """Test that sync and async publishers get the report."""
        sync_publisher, async_publisher = RecordingPublisher(), AsyncRecordingPublisher()
        gate = PRGate(
            publishers=[sync_publisher, async_publisher],
            settings=load_settings(tmp_path),
            registry=stub_registry(),
        )

        report = await gate.run(submission)

        assert sync_publisher.reports == [report]
        assert async_publisher.reports == [report]

    async def test_failing_publisher_is_isolated(self, tmp_path, submission):
        """Test that a raising publisher does not stop the others."""
        healthy = RecordingPublisher()
        gate = PRGate(
            publishers=[BrokenPublisher(), healthy],
            settings=load_settings(tmp_path),
            registry=stub_registry(),
        )

        report = await gate.run(submission)

        assert healthy.reports == [report]
        assert report.verdict == Verdict.BLOCK

    async def test_config_error_produces_no_report(self, tmp_path, submission):
        """Test that an invalid rule config fails before anything runs."""
        settings = load_settings(tmp_path, GATE_SETTINGS + '\n[rules.style]\nprovider = "unknown"\n')
        publisher = RecordingPublisher()
        observer = RecordingObserver()
        gate = PRGate(publishers=[publisher], observers=[observer], settings=settings, registry=stub_registry())

        with pytest.raises(ConfigError, match="Unknown provider 'unknown'"):
            await gate.run(submission)

        assert publisher.reports == []
        assert observer.events == []

    async def test_observers_are_drained(self, tmp_path, submission):
        """Test that observers have seen every event when run() returns."""
        observer = RecordingObserver()
        gate = PRGate(observers=[observer], settings=load_settings(tmp_path), registry=stub_registry())

        report = await gate.run(submission)

        kinds = [e.kind for e in observer.events]
        assert kinds.count(EventKind.RULE_STARTED) == 2
        assert kinds.count(EventKind.RULE_FINISHED) == 2
        assert kinds[-1] == EventKind.RUN_COMPLETED
        assert observer.events[-1].payload == report

    async def test_cache_reuses_results(self, tmp_path, submission):
        """Test that the gate reuses cached results on a re-run."""
        cache = ResultCache()
        registry = stub_registry()
        gate = PRGate(settings=load_settings(tmp_path), registry=registry, cache=cache)

        first = await gate.run(submission)
        second = await gate.run(submission)

        assert len(cache) == 2
        assert first.verdict == second.verdict
        assert first.findings == second.findings

    async def test_no_rules_approves(self, tmp_path, submission):
        """Test that a gate without rules approves."""
        settings = load_settings(tmp_path, "[gate]\ncache_results = false\n")
        report = await PRGate(settings=settings, registry=stub_registry()).run(submission)
        assert report.verdict == Verdict.APPROVE
        assert report.outcomes == ()
