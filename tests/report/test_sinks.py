# tests/report/test_sinks.py
"""
Testes dos reporting sinks (memória e arquivo).

Os testes asseguram que:
- upsert e emit substituem a publicação anterior do mesmo contexto
- chaves distintas (mesmo quando diferem só em pontuação) não colidem em disco
"""

from pathlib import Path

import pytest

from gantry.report.sinks import FileReportingSink, InMemoryReportingSink, ReportingSink


@pytest.mark.parametrize("factory", [InMemoryReportingSink, lambda: FileReportingSink("unused")])
def test_sinks_implement_protocol(factory):
    assert isinstance(factory(), ReportingSink)


def test_in_memory_upsert_replaces():
    sink = InMemoryReportingSink()
    sink.upsert("ci/pull/1", "v1")
    sink.upsert("ci/pull/1", "v2")
    sink.emit("ci/pull/2", "other")

    assert sink.visible("ci/pull/1") == ["v2"]
    assert sink.visible("ci/pull/2") == ["other"]


def test_in_memory_emit_replaces_same_context():
    sink = InMemoryReportingSink()
    sink.emit("ci/main/r1", "a")
    sink.emit("ci/main/r2", "x")
    sink.emit("ci/main/r1", "b")

    assert sink.visible("ci/main/r1") == ["b"]
    assert sink.emitted == [("ci/main/r2", "x"), ("ci/main/r1", "b")]


def test_file_sink_upsert_keeps_single_report(tmp_path: Path):
    sink = FileReportingSink(tmp_path / "reports")
    sink.upsert("Continuous integration/pull/42", "# v1")
    sink.upsert("Continuous integration/pull/42", "# v2")
    sink.set_exit_status("Continuous integration/pull/42", 1)

    visible = sink.visible("Continuous integration/pull/42")
    assert len(visible) == 1
    assert visible[0].name == "Continuous%20integration%2Fpull%2F42.md"
    assert visible[0].read_text(encoding="utf-8") == "# v2"
    assert sink.exit_path("Continuous integration/pull/42").read_text(encoding="utf-8") == "1\n"


def test_file_sink_emit_replaces_same_context(tmp_path: Path):
    sink = FileReportingSink(tmp_path)
    sink.emit("ci/main/r1", "a")
    sink.emit("ci/main/r1", "b")

    [visible] = sink.visible("ci/main/r1")
    assert visible.name == "ci%2Fmain%2Fr1.emit.md"
    assert visible.read_text(encoding="utf-8") == "b"


@pytest.mark.parametrize(
    "first, second",
    [
        ("ci/main", "ci main"),
        ("ci/main", "ci_main"),
        ("ci", "ci.emit"),
        ("ci.1", "ci/1"),
    ],
)
def test_file_sink_distinct_keys_do_not_collide(tmp_path: Path, first, second):
    sink = FileReportingSink(tmp_path)
    sink.emit(first, "first")
    sink.upsert(first, "first sticky")
    sink.emit(second, "second")
    sink.upsert(second, "second sticky")

    assert [p.read_text(encoding="utf-8") for p in sink.visible(first)] == ["first sticky", "first"]
    assert [p.read_text(encoding="utf-8") for p in sink.visible(second)] == ["second sticky", "second"]
    assert len(list(tmp_path.iterdir())) == 4


def test_file_sink_rejects_empty_context(tmp_path: Path):
    with pytest.raises(ValueError):
        FileReportingSink(tmp_path).upsert("   ", "x")
