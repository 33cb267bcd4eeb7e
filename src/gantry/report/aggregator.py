# src/gantry/report/aggregator.py
"""
Result Aggregator — consolidação dos nós sink de uma run terminal.

Entradas:
    - RunResult terminal (estados, outputs e erros de todos os nós)
    - Manifest final (metadados e Event Log)
    - trigger da run

Nós sink:
    - coverage → outputs `line_rate` / `branch_rate` em porcentagem (0–100)
    - scan     → outputs `findings`: lista de registros
                 {rule, severity, message, location}

Thresholds de cobertura (`CoverageThresholds`):
    - (lower, upper), default (90, 90)
    - taxa >= upper        → healthy
    - lower <= taxa < upper → warning
    - taxa < lower          → critical
    - `fail_below_min`: uma taxa abaixo de `lower` marca o AGREGADOR como
      failed (erro THRESHOLD_NOT_MET); nós upstream já succeeded não mudam

Publicação:
    - trigger de pull request → `sink.upsert` (um relatório visível por PR)
    - demais triggers         → `sink.emit` sob a chave da run (um relatório
                                 visível por run)
    - status de saída: 0 sse a run succeeded e a agregação não falhou

Invariantes:
    - Agregar duas vezes a mesma run contra o mesmo sink produz um único
      relatório visível, em pull requests e nos demais triggers
      (recreate, não duplica)
    - Toda falha terminal aparece no relatório com nó e tipo de erro
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from gantry.core.engine.engine import RunResult
from gantry.core.errors import GantryErrorPayload, threshold_not_met
from gantry.core.pipeline.types import NodeResult, NodeState, RunStatus, TriggerEvent
from gantry.core.traceability.manifest import GantryManifest

from .report_md import generate_report_md
from .sinks import ReportingSink

COVERAGE_METRICS: Tuple[str, ...] = ("line_rate", "branch_rate")


@dataclass(frozen=True)
class CoverageThresholds:
    lower: float = 90.0
    upper: float = 90.0
    fail_below_min: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.lower <= self.upper <= 100:
            raise ValueError(f"invalid coverage thresholds: lower={self.lower}, upper={self.upper}")

    @classmethod
    def parse(cls, spec: str, *, fail_below_min: bool = False) -> "CoverageThresholds":
        """Aceita o formato textual "lower upper" (ex.: "90 90")."""
        parts = spec.split()
        if len(parts) != 2:
            raise ValueError(f"thresholds must be 'lower upper', got: {spec!r}")
        return cls(lower=float(parts[0]), upper=float(parts[1]), fail_below_min=fail_below_min)

    def health(self, rate: float) -> str:
        if rate >= self.upper:
            return "healthy"
        if rate >= self.lower:
            return "warning"
        return "critical"


@dataclass(frozen=True)
class CoverageSummary:
    node: str
    rates: Dict[str, float]
    health: Dict[str, str]

    @property
    def below_min(self) -> bool:
        return any(h == "critical" for h in self.health.values())

    def to_dict(self) -> Dict[str, Any]:
        return {"node": self.node, "rates": dict(self.rates), "health": dict(self.health)}


@dataclass(frozen=True)
class AggregatedReport:
    run_id: str
    context_key: str
    run_status: RunStatus
    state: NodeState
    body: str
    coverage: List[CoverageSummary] = field(default_factory=list)
    findings: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[GantryErrorPayload] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 0 if self.run_status == RunStatus.SUCCEEDED and self.state == NodeState.SUCCEEDED else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "context_key": self.context_key,
            "run_status": self.run_status.value,
            "state": self.state.value,
            "exit_code": self.exit_code,
            "coverage": [c.to_dict() for c in self.coverage],
            "findings": [dict(f) for f in self.findings],
            "failures": [dict(f) for f in self.failures],
            "warnings": list(self.warnings),
            "errors": [e.to_dict() for e in self.errors],
        }


def report_context_key(trigger: TriggerEvent, run_id: str) -> str:
    """Contexto do relatório: o PR, para pull requests; a run, nos demais casos."""
    if trigger.is_pull_request:
        return f"{trigger.workflow}/pull/{trigger.pull_request}"
    return f"{trigger.workflow}/{trigger.ref}/{run_id}"


def _nodes_of(result: RunResult, templates: Sequence[str]) -> List[NodeResult]:
    wanted = set(templates)
    return [r for r in result.nodes.values() if r.template in wanted]


class ResultAggregator:
    """
    Args:
        coverage_sinks: templates cujos outputs trazem taxas de cobertura.
        scan_sinks: templates cujos outputs trazem achados de análise.
        thresholds: thresholds de cobertura.
    """

    def __init__(
        self,
        *,
        coverage_sinks: Sequence[str] = (),
        scan_sinks: Sequence[str] = (),
        thresholds: Optional[CoverageThresholds] = None,
    ):
        self.coverage_sinks = tuple(coverage_sinks)
        self.scan_sinks = tuple(scan_sinks)
        self.thresholds = thresholds or CoverageThresholds()

    def _coverage(self, result: RunResult, warnings: List[str]) -> List[CoverageSummary]:
        out: List[CoverageSummary] = []
        for node in _nodes_of(result, self.coverage_sinks):
            if node.state != NodeState.SUCCEEDED:
                continue
            rates: Dict[str, float] = {}
            for metric in COVERAGE_METRICS:
                value = node.outputs.get(metric)
                if value is None:
                    continue
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    warnings.append(f"{node.name}: {metric} não numérico ({value!r})")
                    continue
                rates[metric] = float(value)
            if not rates:
                warnings.append(f"{node.name}: nenhuma taxa de cobertura nos outputs")
                continue
            out.append(
                CoverageSummary(
                    node=node.name,
                    rates=rates,
                    health={m: self.thresholds.health(v) for m, v in rates.items()},
                )
            )
        return out

    def _findings(self, result: RunResult, warnings: List[str]) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for node in _nodes_of(result, self.scan_sinks):
            if node.state != NodeState.SUCCEEDED:
                continue
            raw = node.outputs.get("findings", [])
            if not isinstance(raw, list):
                warnings.append(f"{node.name}: findings deve ser lista")
                continue
            for finding in raw:
                if not isinstance(finding, Mapping):
                    warnings.append(f"{node.name}: finding ignorado ({finding!r})")
                    continue
                record = {"node": node.name, **{str(k): v for k, v in finding.items()}}
                out.append(record)
        return sorted(out, key=lambda f: (f["node"], str(f.get("rule", "")), str(f.get("location", ""))))

    @staticmethod
    def _failures(result: RunResult) -> List[Dict[str, Any]]:
        failures: List[Dict[str, Any]] = []
        for node in result.nodes.values():
            if node.state != NodeState.FAILED:
                continue
            error = node.error or {}
            failures.append(
                {
                    "node": node.name,
                    "template": node.template,
                    "kind": node.kind.value,
                    "error_type": error.get("type"),
                    "message": error.get("message") or node.summary,
                }
            )
        return failures

    def aggregate(
        self,
        result: RunResult,
        *,
        trigger: TriggerEvent,
        manifest: Optional[GantryManifest] = None,
    ) -> AggregatedReport:
        """Consolida a run terminal em um relatório (sem publicar)."""
        warnings: List[str] = []
        coverage = self._coverage(result, warnings)
        findings = self._findings(result, warnings)
        failures = self._failures(result)

        errors: List[GantryErrorPayload] = []
        if self.thresholds.fail_below_min:
            for summary in coverage:
                for metric, rate in sorted(summary.rates.items()):
                    if rate < self.thresholds.lower:
                        errors.append(
                            threshold_not_met(
                                node=summary.node,
                                metric=metric,
                                value=rate,
                                minimum=self.thresholds.lower,
                            )
                        )

        state = NodeState.FAILED if errors else NodeState.SUCCEEDED
        context_key = report_context_key(trigger, result.run_id)
        body = generate_report_md(
            manifest=manifest.to_dict() if manifest is not None else {"run": {"run_id": result.run_id}},
            result=result.to_dict(),
            aggregation={
                "state": state.value,
                "thresholds": {"lower": self.thresholds.lower, "upper": self.thresholds.upper},
                "coverage": [c.to_dict() for c in coverage],
                "findings": findings,
                "failures": failures,
                "warnings": warnings,
                "errors": [e.to_dict() for e in errors],
            },
        )

        return AggregatedReport(
            run_id=result.run_id,
            context_key=context_key,
            run_status=result.status,
            state=state,
            body=body,
            coverage=coverage,
            findings=findings,
            failures=failures,
            warnings=warnings,
            errors=errors,
        )

    def publish(self, report: AggregatedReport, sink: ReportingSink, *, trigger: TriggerEvent) -> None:
        if trigger.is_pull_request:
            sink.upsert(report.context_key, report.body)
        else:
            sink.emit(report.context_key, report.body)
        sink.set_exit_status(report.context_key, report.exit_code)

    def run(
        self,
        result: RunResult,
        *,
        trigger: TriggerEvent,
        sink: ReportingSink,
        manifest: Optional[GantryManifest] = None,
    ) -> AggregatedReport:
        """Agrega e publica. Pode ser repetido para a mesma run (idempotente)."""
        report = self.aggregate(result, trigger=trigger, manifest=manifest)
        self.publish(report, sink, trigger=trigger)
        return report
