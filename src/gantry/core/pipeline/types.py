# src/gantry/core/pipeline/types.py
"""
Tipos canônicos do pipeline do Gantry.

Este módulo define as estruturas e enums fundamentais que padronizam
a comunicação entre templates de job, Engine, Coordinator e
rastreabilidade.

Componentes principais:
    - NodeState    → máquina de estados de um JobNode
    - RunStatus    → estado de uma PipelineRun
    - ActionKind   → classe semântica de ação (define timeout default)
    - TriggerEvent → metadados do evento que dispara a run
    - ActionOutcome→ resultado reportado pelo ActionExecutor
    - NodeResult   → resultado imutável e terminal de um nó

Máquina de estados de um nó:

    pending → {skipped | ready} → running → {succeeded | failed | cancelled}
    (qualquer estado não terminal → cancelled)

Princípios fundamentais:
    - Tipos são estáveis e serializáveis (valores textuais canônicos)
    - Nenhuma lógica de execução vive neste módulo

Limites explícitos:
    - Não executa nós
    - Não decide políticas de skip, cancelamento ou timeout
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class NodeState(str, Enum):
    """
    Estados de um JobNode dentro de uma run.

    Estados terminais:
        - SUCCEEDED: ação concluída com sucesso
        - FAILED: ação falhou, levantou exceção ou excedeu o timeout
        - SKIPPED: guard falso ou predecessor não tolerado
        - CANCELLED: run cancelada/substituída ou irmão de matriz fail-fast falhou

    Os valores textuais são expostos aos guards (`needs["build"] == "succeeded"`).
    """
    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {NodeState.SUCCEEDED, NodeState.FAILED, NodeState.SKIPPED, NodeState.CANCELLED}
)


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in {RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED}


class ActionKind(str, Enum):
    """
    Classe semântica da ação de um job.

    O `kind` é informativo para relatórios e define o timeout default do
    nó (ver `DEFAULT_TIMEOUTS_S`). O Engine não muda a semântica de
    execução com base nele.
    """
    CONFIG = "config"
    DETECT = "detect"
    BUILD = "build"
    TEST = "test"
    LINT = "lint"
    PACKAGE = "package"
    SCAN = "scan"
    REPORT = "report"
    CLEANUP = "cleanup"


_MINUTE = 60.0

# Timeouts default por classe de ação, em segundos.
# scan usa o teto de 360 min do runtime hospedado (análises completas são longas).
DEFAULT_TIMEOUTS_S: Dict[ActionKind, float] = {
    ActionKind.CONFIG: 10 * _MINUTE,
    ActionKind.DETECT: 10 * _MINUTE,
    ActionKind.BUILD: 60 * _MINUTE,
    ActionKind.TEST: 90 * _MINUTE,
    ActionKind.LINT: 30 * _MINUTE,
    ActionKind.PACKAGE: 60 * _MINUTE,
    ActionKind.SCAN: 360 * _MINUTE,
    ActionKind.REPORT: 10 * _MINUTE,
    ActionKind.CLEANUP: 10 * _MINUTE,
}


@dataclass(frozen=True)
class TriggerEvent:
    """
    Evento que dispara uma run.

    Campos:
        - workflow: identidade lógica do pipeline (ex.: "Continuous integration")
        - event_name: "pull_request", "push", "workflow_dispatch", ...
        - ref: referência git do evento (ex.: "refs/heads/main")
        - revision: revisão de trabalho (head)
        - base_ref: referência base para detecção de mudanças
        - pull_request: número do PR, quando houver
        - payload: dados livres do evento
    """
    workflow: str
    event_name: str
    ref: str
    revision: Optional[str] = None
    base_ref: Optional[str] = None
    pull_request: Optional[int] = None
    payload: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_pull_request(self) -> bool:
        return self.event_name == "pull_request" and self.pull_request is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow": self.workflow,
            "event_name": self.event_name,
            "ref": self.ref,
            "revision": self.revision,
            "base_ref": self.base_ref,
            "pull_request": self.pull_request,
        }


@dataclass(frozen=True)
class ActionOutcome:
    """Resultado reportado pelo ActionExecutor (status ∈ {SUCCEEDED, FAILED})."""
    status: NodeState
    outputs: Dict[str, Any] = field(default_factory=dict)
    summary: str = ""

    @classmethod
    def succeeded(cls, outputs: Optional[Dict[str, Any]] = None, summary: str = "") -> "ActionOutcome":
        return cls(status=NodeState.SUCCEEDED, outputs=dict(outputs or {}), summary=summary)

    @classmethod
    def failed(cls, outputs: Optional[Dict[str, Any]] = None, summary: str = "") -> "ActionOutcome":
        return cls(status=NodeState.FAILED, outputs=dict(outputs or {}), summary=summary)


@dataclass(frozen=True)
class NodeResult:
    """
    Resultado imutável e terminal de um nó.

    Campos:
        - name: nome do nó (instâncias de matriz: "template[i]")
        - template: nome do template de origem
        - kind: classe da ação
        - state: estado terminal
        - summary: resumo textual
        - outputs: mapa de saídas que outros nós podem consumir
        - params: parâmetros de matriz (vazio para nós simples)
        - error: GantryErrorPayload serializado, quando `failed`
        - started_at / finished_at: timestamps ISO-8601 UTC
    """
    name: str
    template: str
    kind: ActionKind
    state: NodeState
    summary: str = ""
    outputs: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "template": self.template,
            "kind": self.kind.value,
            "state": self.state.value,
            "summary": self.summary,
            "outputs": dict(self.outputs),
            "params": dict(self.params),
            "error": dict(self.error) if self.error is not None else None,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
