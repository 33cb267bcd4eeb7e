# src/gantry/core/pipeline/__init__.py
"""
Modelo declarativo do pipeline do Gantry.

Contém os tipos canônicos (estados, kinds, trigger), guards, templates
de job, o registro estrutural, o contexto de run, o contrato do
ActionExecutor e o carregamento de definições declarativas.
"""

from .action import ActionExecutor, ActionInputs, CallableActionExecutor, coerce_outcome
from .context import RunContext
from .definition import Pipeline, load_pipeline_definition, pipeline_from_document
from .guards import Guard, GuardDecision, GuardExpression, GuardInputs, decide
from .job import JobNode, JobTemplate, MatrixSpec, instance_name
from .registry import DuplicateJobNameError, JobRegistry
from .types import (
    DEFAULT_TIMEOUTS_S,
    TERMINAL_STATES,
    ActionKind,
    ActionOutcome,
    NodeResult,
    NodeState,
    RunStatus,
    TriggerEvent,
)

__all__ = [
    "ActionExecutor",
    "ActionInputs",
    "CallableActionExecutor",
    "coerce_outcome",
    "RunContext",
    "Pipeline",
    "load_pipeline_definition",
    "pipeline_from_document",
    "Guard",
    "GuardDecision",
    "GuardExpression",
    "GuardInputs",
    "decide",
    "JobNode",
    "JobTemplate",
    "MatrixSpec",
    "instance_name",
    "DuplicateJobNameError",
    "JobRegistry",
    "DEFAULT_TIMEOUTS_S",
    "TERMINAL_STATES",
    "ActionKind",
    "ActionOutcome",
    "NodeResult",
    "NodeState",
    "RunStatus",
    "TriggerEvent",
]
