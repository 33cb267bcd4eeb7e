"""
src/gantry/report/report_md.py

Gerador canônico do relatório markdown de uma run.

Regras:
- O relatório é derivado EXCLUSIVAMENTE do Manifest final, do resultado da
  run e da agregação dos nós sink (dicts serializáveis).
- Não infere, não recalcula, não acessa filesystem.
- Mesmas entradas => mesmo markdown (ordenação estável em todas as listas).

Estrutura mínima obrigatória:
# CI Report

## Summary
## Jobs
## Failures
## Coverage
## Findings
## Traceability
## Execution Metadata
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple


REQUIRED_SECTIONS: List[str] = [
    "# CI Report",
    "## Summary",
    "## Jobs",
    "## Failures",
    "## Coverage",
    "## Findings",
    "## Traceability",
    "## Execution Metadata",
]

_HEALTH_MARK = {"healthy": "✅", "warning": "⚠️", "critical": "❌"}


def _sorted_items(d: Any) -> List[Tuple[str, Any]]:
    if not isinstance(d, dict):
        return []
    return sorted(d.items(), key=lambda kv: kv[0])


def _as_pretty_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, indent=2)


def _require_dict(value: Any, name: str) -> Dict[str, Any]:
    if not isinstance(value, dict) or not value:
        raise ValueError(f"{name} is required to generate the report")
    return value


def _section(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def generate_report_md(
    *,
    manifest: Dict[str, Any],
    result: Dict[str, Any],
    aggregation: Dict[str, Any],
) -> str:
    """Gera o markdown completo do relatório a partir de Manifest, resultado e agregação."""
    manifest = _require_dict(manifest, "manifest")
    result = _require_dict(result, "result")
    aggregation = _require_dict(aggregation, "aggregation")

    run = _section(manifest.get("run"))
    inputs = _section(manifest.get("inputs"))
    events = _list(manifest.get("events"))
    nodes = _section(result.get("nodes"))
    templates = _section(result.get("templates"))

    lines: List[str] = []

    lines.append("# CI Report\n")

    lines.append("## Summary")
    lines.append(f"- **Run ID**: `{result.get('run_id', run.get('run_id', '<unknown>'))}`")
    lines.append(f"- **Pipeline**: `{run.get('pipeline', '<unknown>')}`")
    lines.append(f"- **Status**: `{result.get('status', '<unknown>')}`")
    lines.append(f"- **Exit code**: `{result.get('exit_code', '<unknown>')}`")
    lines.append(f"- **Aggregation**: `{aggregation.get('state', '<unknown>')}`")
    if result.get("cancelled_reason"):
        lines.append(f"- **Cancelled**: {result['cancelled_reason']}")
    lines.append("")

    lines.append("## Jobs")
    if templates:
        for template, status in _sorted_items(templates):
            lines.append(f"- **{template}** — `{status}`")
            for name, node in _sorted_items(nodes):
                if not isinstance(node, dict) or node.get("template") != template or name == template:
                    continue
                lines.append(f"  - `{name}` — `{node.get('state', 'unknown')}`")
    else:
        lines.append("No jobs recorded for this run.")
    lines.append("")

    lines.append("## Failures")
    failures = _list(aggregation.get("failures"))
    if failures:
        for f in sorted(failures, key=lambda x: str(x.get("node", ""))):
            lines.append(
                f"- **{f.get('node')}** (`{f.get('kind')}`) — `{f.get('error_type')}`: {f.get('message') or ''}".rstrip()
            )
    else:
        lines.append("No failed jobs.")
    errors = _list(aggregation.get("errors"))
    for err in errors:
        lines.append(f"- **report** — `{err.get('type')}`: {err.get('message')}")
    lines.append("")

    lines.append("## Coverage")
    coverage = _list(aggregation.get("coverage"))
    thresholds = _section(aggregation.get("thresholds"))
    if thresholds:
        lines.append(f"Thresholds: `{thresholds.get('lower')}` / `{thresholds.get('upper')}`\n")
    if coverage:
        lines.append("| Job | Metric | Rate | Health |")
        lines.append("| --- | --- | --- | --- |")
        for c in sorted(coverage, key=lambda x: str(x.get("node", ""))):
            health = _section(c.get("health"))
            for metric, rate in _sorted_items(c.get("rates")):
                h = health.get(metric, "unknown")
                lines.append(f"| {c.get('node')} | {metric} | {rate:g}% | {_HEALTH_MARK.get(h, '')} {h} |")
    else:
        lines.append("No coverage recorded.")
    lines.append("")

    lines.append("## Findings")
    findings = _list(aggregation.get("findings"))
    if findings:
        for f in findings:
            location = f" ({f['location']})" if f.get("location") else ""
            lines.append(
                f"- **{f.get('node')}** `{f.get('severity', 'unknown')}` {f.get('rule', '')}: {f.get('message', '')}{location}"
            )
    else:
        lines.append("No findings reported.")
    lines.append("")

    lines.append("## Traceability")
    lines.append(f"- Concurrency key: `{run.get('concurrency_key', '<unknown>')}`")
    lines.append(f"- Config hash: `{inputs.get('config_hash', '<unknown>')}`")
    lines.append(f"- Events recorded: `{len(events)}`")
    for w in _list(aggregation.get("warnings")):
        lines.append(f"- Warning: {w}")
    lines.append("")

    lines.append("## Execution Metadata")
    lines.append("### run")
    lines.append("```json")
    lines.append(_as_pretty_json(run))
    lines.append("```")
    lines.append("### inputs")
    lines.append("```json")
    lines.append(_as_pretty_json(inputs))
    lines.append("```")

    content = "\n".join(lines)

    for sec in REQUIRED_SECTIONS:
        if sec not in content:
            raise RuntimeError(f"Report generation failed: missing required section: {sec}")

    return content
