# tests/e2e/test_ci_workflow_e2e.py
"""
E2E — workflow "Continuous integration".

Valida o core de ponta a ponta com o workflow concreto:
- documento `.github/CICD-Config.yml` (+ override local) via FileConfigSource
- Change Detector sobre uma lista explícita de arquivos alterados
- RunCoordinator + Engine com um executor roteirizado
- Manifest final com round-trip JSON
- Result Aggregator publicando o relatório fixo do pull request
"""

from __future__ import annotations

import threading
from pathlib import Path

from gantry.core.changes.detector import ChangeDetector, ChangedFilesRevisionSource
from gantry.core.config.loader import FileConfigSource
from gantry.core.config.settings import CI_CONFIG_PATH
from gantry.core.engine.coordinator import RunCoordinator
from gantry.core.pipeline.action import CallableActionExecutor
from gantry.core.pipeline.types import NodeState, RunStatus
from gantry.core.traceability.manifest import load_manifest, save_manifest
from gantry.export.report_pdf import convert_md_to_pdf
from gantry.report.sinks import FileReportingSink, InMemoryReportingSink
from gantry.workflows.continuous_integration import build_ci_aggregator, build_ci_pipeline

BACKEND_CHANGE = ["NG.Host/Controllers/HealthController.cs"]
FRONTEND_CHANGE = ["NG.Host.Frontend/src/app/app.component.ts"]


class RecordingHandlers:
    """Handlers das ações do workflow, com registro thread-safe das execuções."""

    def __init__(self, *, line_rate=93.0, failing=()):
        self.line_rate = line_rate
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def _record(self, inputs):
        with self._lock:
            self.calls.append((inputs.node, dict(inputs.params)))
        return inputs.node in self.failing

    def generic(self, inputs, token):
        return not self._record(inputs)

    def unit_testing(self, inputs, token):
        if self._record(inputs):
            return False
        return {"line_rate": self.line_rate, "branch_rate": 88.0}

    def code_analysis(self, inputs, token):
        self._record(inputs)
        language = inputs.params["language"]
        return {
            "findings": [
                {"rule": f"{language}/unused", "severity": "note", "message": "unused symbol", "location": "x:1"}
            ]
        }

    def executor(self):
        return CallableActionExecutor(
            {
                "build-backend": self.generic,
                "build-frontend": self.generic,
                "lint-frontend": self.generic,
                "unit-testing": self.unit_testing,
                "build-docker": self.generic,
                "code-analysis": self.code_analysis,
                "cleanup": self.generic,
            }
        )

    def nodes(self):
        return [node for node, _ in self.calls]


def _write_config(root: Path, yaml_text: str, local_text: str | None = None) -> FileConfigSource:
    config = root / CI_CONFIG_PATH
    config.parent.mkdir(parents=True, exist_ok=True)
    config.write_text(yaml_text, encoding="utf-8")
    if local_text is not None:
        config.with_name("CICD-Config.local.yml").write_text(local_text, encoding="utf-8")
    return FileConfigSource(root)


def _coordinator(source, handlers, changed):
    detector = ChangeDetector(ChangedFilesRevisionSource({("main", "head-sha"): changed}))
    return RunCoordinator(
        pipeline=build_ci_pipeline(),
        executor=handlers.executor(),
        config_source=source,
        detector=detector,
    )


def test_backend_only_pull_request(tmp_path: Path, ci_config_yaml, pr_trigger):
    handlers = RecordingHandlers()
    coordinator = _coordinator(_write_config(tmp_path, ci_config_yaml), handlers, BACKEND_CHANGE)

    run = coordinator.submit(pr_trigger)
    result = run.wait(30)

    assert dict(run.ctx.flags) == {"backend": True, "frontend": False}
    assert result.state_of("build-backend") == NodeState.SUCCEEDED
    assert result.state_of("unit-testing") == NodeState.SUCCEEDED
    assert result.state_of("build-frontend") == NodeState.SKIPPED
    assert result.state_of("lint-frontend") == NodeState.SKIPPED
    assert result.state_of("build-docker") == NodeState.SKIPPED
    assert result.state_of("code-analysis") == NodeState.SKIPPED
    assert result.state_of("cleanup") == NodeState.SUCCEEDED
    assert handlers.nodes()[-1] == "cleanup"
    assert result.status == RunStatus.SUCCEEDED

    sink = InMemoryReportingSink()
    report = build_ci_aggregator().run(result, trigger=pr_trigger, sink=sink, manifest=run.manifest)

    assert report.exit_code == 0
    assert report.context_key == "Continuous integration/pull/42"
    assert len(sink.visible(report.context_key)) == 1
    assert "| unit-testing | line_rate | 93% | ✅ healthy |" in report.body
    assert "| unit-testing | branch_rate | 88% | ⚠️ warning |" not in report.body
    assert "❌ critical" in report.body


def test_full_pull_request_runs_every_job(tmp_path: Path, ci_config_yaml, pr_trigger):
    handlers = RecordingHandlers()
    coordinator = _coordinator(
        _write_config(tmp_path, ci_config_yaml),
        handlers,
        BACKEND_CHANGE + FRONTEND_CHANGE,
    )

    run = coordinator.submit(pr_trigger)
    result = run.wait(30)

    assert result.status == RunStatus.SUCCEEDED
    assert all(r.state == NodeState.SUCCEEDED for r in result.nodes.values())
    assert sorted(result.nodes) == [
        "build-backend",
        "build-docker[0]",
        "build-docker[1]",
        "build-frontend",
        "cleanup",
        "code-analysis[0]",
        "code-analysis[1]",
        "lint-frontend",
        "unit-testing",
    ]

    params = dict(handlers.calls)
    assert params["build-docker[1]"] == {"context": "NG.Host.Frontend", "file": "NG.Host.Frontend/Dockerfile"}
    assert params["code-analysis[1]"] == {"language": "javascript-typescript"}
    assert run.engine.graph.nodes["code-analysis[0]"].timeout_s == 360 * 60

    order = handlers.nodes()
    for dep in ("build-frontend", "build-backend", "lint-frontend", "unit-testing"):
        assert order.index(dep) < order.index("code-analysis[0]")
    assert order[-1] == "cleanup"

    manifest_path = tmp_path / "out" / "manifest.json"
    save_manifest(run.manifest, manifest_path)
    loaded = load_manifest(manifest_path)
    assert loaded.run["status"] == "succeeded"
    assert loaded.run["concurrency_key"] == "Continuous integration-42"
    assert loaded.inputs["flags"] == {"backend": True, "frontend": True}

    sink = FileReportingSink(tmp_path / "reports")
    aggregator = build_ci_aggregator()
    report = aggregator.run(result, trigger=pr_trigger, sink=sink, manifest=loaded)
    aggregator.run(result, trigger=pr_trigger, sink=sink, manifest=loaded)

    [visible] = sink.visible(report.context_key)
    assert [f["rule"] for f in report.findings] == ["csharp/unused", "javascript-typescript/unused"]

    pdf = tmp_path / "reports" / "report.pdf"
    convert_md_to_pdf(md_path=visible, pdf_path=pdf)
    assert pdf.read_bytes().startswith(b"%PDF")


def test_local_override_disables_code_analysis(tmp_path: Path, ci_config_yaml, ci_config_local_yaml, pr_trigger):
    handlers = RecordingHandlers()
    source = _write_config(tmp_path, ci_config_yaml, ci_config_local_yaml)
    coordinator = _coordinator(source, handlers, BACKEND_CHANGE + FRONTEND_CHANGE)

    run = coordinator.submit(pr_trigger)
    result = run.wait(30)

    assert run.ctx.config["code-analysis"] == "false"
    assert run.engine.max_workers == 2
    assert run.engine.graph.instances["code-analysis"] == []
    assert result.state_of("code-analysis") == NodeState.SUCCEEDED
    assert not any(node.startswith("code-analysis") for node in handlers.nodes())
    assert result.state_of("cleanup") == NodeState.SUCCEEDED


def test_failing_unit_tests_fail_run_and_report(tmp_path: Path, ci_config_yaml, push_trigger):
    handlers = RecordingHandlers(failing={"unit-testing"})
    coordinator = _coordinator(_write_config(tmp_path, ci_config_yaml), handlers, BACKEND_CHANGE + FRONTEND_CHANGE)

    run = coordinator.submit(push_trigger)
    result = run.wait(30)

    assert result.state_of("unit-testing") == NodeState.FAILED
    assert result.state_of("build-docker") == NodeState.SUCCEEDED
    assert result.state_of("code-analysis") == NodeState.SKIPPED
    assert result.state_of("cleanup") == NodeState.SUCCEEDED
    assert result.status == RunStatus.FAILED

    sink = InMemoryReportingSink()
    report = build_ci_aggregator().run(result, trigger=push_trigger, sink=sink, manifest=run.manifest)

    assert report.exit_code == 1
    assert sink.sticky == {}
    assert len(sink.emitted) == 1
    assert [f["node"] for f in report.failures] == ["unit-testing"]
    assert "`ACTION_FAILED`" in report.body


def test_coverage_below_minimum_fails_aggregation_when_enabled(tmp_path: Path, ci_config_yaml, pr_trigger):
    handlers = RecordingHandlers(line_rate=72.0)
    coordinator = _coordinator(_write_config(tmp_path, ci_config_yaml), handlers, BACKEND_CHANGE)
    result = coordinator.run(pr_trigger, timeout=30)

    assert build_ci_aggregator().aggregate(result, trigger=pr_trigger).exit_code == 0
    strict = build_ci_aggregator(fail_below_min=True).aggregate(result, trigger=pr_trigger)
    assert strict.exit_code == 1
    assert {e.details["metric"] for e in strict.errors} == {"line_rate", "branch_rate"}
