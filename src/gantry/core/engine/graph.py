# src/gantry/core/engine/graph.py
"""
JobGraph — grafo concreto de uma run.

Construído uma vez por run a partir dos templates (ordem topológica do
planner) e da saída do Matrix Expander:

    templates ──plan_execution──▶ ordem topológica
              ──MatrixExpander──▶ instâncias por template
              ─────────────────▶ JobGraph

Dependências continuam declaradas entre TEMPLATES: um sucessor depende
do status agregado de todas as instâncias de cada predecessor.

Status agregado de um template (`aggregate_status`):
    - zero instâncias              → succeeded (vacuamente satisfeito)
    - alguma instância failed      → failed
    - senão, alguma cancelled      → cancelled
    - todas skipped                → skipped
    - demais casos                 → succeeded

Invariantes:
    - O grafo é acíclico (garantido pelo planner)
    - Nomes de nós são únicos na run
    - O grafo é imutável após a construção

Limites explícitos:
    - Não guarda estado de execução (isso pertence à Engine da run)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from gantry.core.pipeline.job import JobNode, JobTemplate
from gantry.core.pipeline.types import ActionKind, NodeState

from .matrix import MatrixExpander
from .planner import plan_execution


def aggregate_status(states: Sequence[NodeState]) -> NodeState:
    """Status agregado de um template a partir dos estados terminais das instâncias."""
    if not states:
        return NodeState.SUCCEEDED
    if any(s == NodeState.FAILED for s in states):
        return NodeState.FAILED
    if any(s == NodeState.CANCELLED for s in states):
        return NodeState.CANCELLED
    if all(s == NodeState.SKIPPED for s in states):
        return NodeState.SKIPPED
    return NodeState.SUCCEEDED


@dataclass(frozen=True)
class JobGraph:
    templates: List[JobTemplate]
    nodes: Dict[str, JobNode]
    instances: Dict[str, List[str]]
    dependents: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        templates: Iterable[JobTemplate],
        *,
        config: Mapping[str, Any],
        timeout_overrides: Optional[Mapping[ActionKind, float]] = None,
    ) -> "JobGraph":
        """
        Valida, ordena e expande os templates.

        Raises:
            DuplicateJobNameError / UnknownDependencyError / GraphCyclic:
                erros estruturais do planner.
            MatrixSourceEmpty / ConfigTypeMismatch: erros de expansão.
        """
        ordered = plan_execution(templates)
        expander = MatrixExpander(config, timeout_overrides=timeout_overrides)

        nodes: Dict[str, JobNode] = {}
        instances: Dict[str, List[str]] = {}
        dependents: Dict[str, List[str]] = {t.name: [] for t in ordered}
        for template in ordered:
            expanded = expander.expand(template)
            instances[template.name] = [n.name for n in expanded]
            for node in expanded:
                nodes[node.name] = node
            for dep in template.needs:
                dependents[dep].append(template.name)

        return cls(templates=ordered, nodes=nodes, instances=instances, dependents=dependents)

    def template(self, name: str) -> JobTemplate:
        for t in self.templates:
            if t.name == name:
                return t
        raise KeyError(name)

    def instances_of(self, template: str) -> List[JobNode]:
        return [self.nodes[n] for n in self.instances[template]]

    def roots(self) -> List[JobTemplate]:
        return [t for t in self.templates if not t.needs]

    def template_status(self, template: str, states: Mapping[str, NodeState]) -> Optional[NodeState]:
        """Status agregado do template, ou None se alguma instância não for terminal."""
        current = [states[n] for n in self.instances[template]]
        if any(not s.is_terminal for s in current):
            return None
        return aggregate_status(current)

    def describe(self) -> Dict[str, Any]:
        return {
            "templates": [t.name for t in self.templates],
            "instances": {k: list(v) for k, v in self.instances.items()},
        }
