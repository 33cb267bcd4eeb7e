# src/gantry/core/engine/__init__.py
"""
Planejamento e execução de runs do Gantry.

Componentes:
    - planner      → validação estrutural e ordem topológica (GraphCyclic)
    - matrix       → Matrix Expander (template + lista → instâncias)
    - graph        → JobGraph concreto de uma run e status agregado
    - cancellation → CancellationToken e grupos de concorrência
    - engine       → execução orientada a eventos de uma run
    - coordinator  → admissão single-flight e PipelineRun
"""

from .cancellation import CancellationToken, ConcurrencyGroupRegistry, concurrency_key
from .coordinator import PipelineRun, RunCoordinator, trigger_concurrency_key
from .engine import Engine, RunResult
from .graph import JobGraph, aggregate_status
from .matrix import MatrixExpander
from .planner import GraphCyclic, UnknownDependencyError, plan_execution

__all__ = [
    "CancellationToken",
    "ConcurrencyGroupRegistry",
    "concurrency_key",
    "PipelineRun",
    "RunCoordinator",
    "trigger_concurrency_key",
    "Engine",
    "RunResult",
    "JobGraph",
    "aggregate_status",
    "MatrixExpander",
    "GraphCyclic",
    "UnknownDependencyError",
    "plan_execution",
]
