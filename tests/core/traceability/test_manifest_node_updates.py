# tests/core/traceability/test_manifest_node_updates.py
"""
Testes de atualização incremental de nós no Manifest.

Os testes asseguram que:
- nós são registrados apenas quando eventos explícitos ocorrem
- transições (ready → running → terminal) são consolidadas no registro do nó
- duração é calculada a partir do início registrado
- payloads de erro são preservados em falhas
"""

from datetime import datetime, timezone

import pytest

try:
    from gantry.core.traceability.manifest import create_manifest, node_ready, node_started, node_terminal
except Exception as e:
    create_manifest = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing traceability APIs. Import error: {_IMPORT_ERR}")


T0 = datetime(2026, 1, 16, 12, 0, 0, tzinfo=timezone.utc)
T1 = datetime(2026, 1, 16, 12, 0, 2, 500000, tzinfo=timezone.utc)


def _manifest():
    return create_manifest(
        run_id="run-001",
        started_at=T0,
        gantry_version="0.4.0",
        pipeline="p",
        concurrency_key="p-42",
        trigger={},
        config_hash="h",
        flags={},
    )


def test_node_lifecycle_is_consolidated():
    _require_imports()
    m = _manifest()

    node_ready(m, node="code-analysis[0]", template="code-analysis", kind="scan", ts=T0, reason="guard satisfied")
    assert m.nodes["code-analysis[0]"]["state"] == "ready"

    node_started(m, node="code-analysis[0]", ts=T0, timeout_s=21600.0)
    assert m.nodes["code-analysis[0]"]["state"] == "running"
    assert m.nodes["code-analysis[0]"]["timeout_s"] == 21600.0

    node_terminal(
        m,
        ts=T1,
        result={
            "name": "code-analysis[0]",
            "template": "code-analysis",
            "kind": "scan",
            "state": "succeeded",
            "params": {"language": "csharp"},
            "outputs": {"findings": []},
        },
    )

    node = m.nodes["code-analysis[0]"]
    assert node["state"] == "succeeded"
    assert node["duration_ms"] == 2500
    assert node["params"] == {"language": "csharp"}
    assert node["finished_at"] == "2026-01-16T12:00:02.500000+00:00"


def test_failed_node_keeps_error_payload():
    _require_imports()
    m = _manifest()
    error = {"type": "TIMEOUT", "message": "timed out", "details": {"node": "unit-testing"}, "hint": None}

    node_started(m, node="unit-testing", ts=T0, timeout_s=1.0)
    node_terminal(m, ts=T1, result={"name": "unit-testing", "state": "failed", "error": error})

    assert m.nodes["unit-testing"]["error"] == error
    assert m.events[-1]["payload"] == {"state": "failed", "duration_ms": 2500, "error_type": "TIMEOUT"}


def test_skipped_node_has_no_duration():
    _require_imports()
    m = _manifest()
    node_terminal(m, ts=T1, result={"name": "lint", "state": "skipped", "summary": "guard is false"})

    assert m.nodes["lint"]["duration_ms"] is None
    assert m.events[-1]["payload"] == {"state": "skipped", "reason": "guard is false"}
