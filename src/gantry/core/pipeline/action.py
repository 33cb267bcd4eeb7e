# src/gantry/core/pipeline/action.py
"""
Contrato do Action Executor (colaborador externo).

O core nunca executa trabalho de build/test/lint/scan diretamente: cada
nó delega seu descritor de ação (opaco) a um `ActionExecutor`:

    execute(action, inputs, token) -> ActionOutcome

    - `inputs` expõe os parâmetros da instância, outputs dos predecessores,
      config e flags da run
    - `token` é o CancellationToken do nó; ações longas devem consultá-lo
      (`token.is_cancelled`) ou aguardá-lo (`token.wait(...)`) em seus
      pontos de suspensão
    - status do outcome ∈ {SUCCEEDED, FAILED}; exceções levantadas pela
      ação são convertidas pela Engine em `ENGINE_EXECUTION_ERROR`

`CallableActionExecutor` é a implementação embutida: o descritor é uma
função Python ou o nome de um handler registrado.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

from .types import ActionOutcome, NodeState, TriggerEvent

if TYPE_CHECKING:
    from gantry.core.engine.cancellation import CancellationToken


@dataclass(frozen=True)
class ActionInputs:
    """Entradas entregues ao executor para um nó."""

    run_id: str
    node: str
    template: str
    params: Mapping[str, Any] = field(default_factory=dict)
    upstream: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    config: Mapping[str, Any] = field(default_factory=dict)
    flags: Mapping[str, bool] = field(default_factory=dict)
    trigger: Optional[TriggerEvent] = None


@runtime_checkable
class ActionExecutor(Protocol):
    def execute(self, action: Any, inputs: ActionInputs, token: "CancellationToken") -> ActionOutcome:
        ...


ActionHandler = Callable[[ActionInputs, "CancellationToken"], Any]


def coerce_outcome(result: Any) -> ActionOutcome:
    """
    Normaliza o retorno de um handler em ActionOutcome.

    - ActionOutcome → como está
    - None          → succeeded sem outputs
    - bool          → succeeded / failed
    - dict          → succeeded com outputs
    """
    if isinstance(result, ActionOutcome):
        if result.status not in (NodeState.SUCCEEDED, NodeState.FAILED):
            raise ValueError(f"action outcome status must be succeeded or failed, got {result.status.value}")
        return result
    if result is None:
        return ActionOutcome.succeeded()
    if isinstance(result, bool):
        return ActionOutcome.succeeded() if result else ActionOutcome.failed()
    if isinstance(result, dict):
        return ActionOutcome.succeeded(outputs=result)
    raise TypeError(f"unsupported action result type: {type(result).__name__}")


class CallableActionExecutor:
    """
    Executor que invoca funções Python.

    O descritor de ação pode ser:
        - uma função `(inputs, token) -> resultado`
        - o nome de um handler registrado em `handlers`
    """

    def __init__(self, handlers: Optional[Mapping[str, ActionHandler]] = None):
        self._handlers: Dict[str, ActionHandler] = dict(handlers or {})

    def register(self, name: str, handler: ActionHandler) -> None:
        if name in self._handlers:
            raise ValueError(f"handler already registered: {name}")
        self._handlers[name] = handler

    def execute(self, action: Any, inputs: ActionInputs, token: "CancellationToken") -> ActionOutcome:
        if callable(action):
            handler = action
        elif isinstance(action, str) and action in self._handlers:
            handler = self._handlers[action]
        else:
            raise KeyError(f"no handler for action of node {inputs.node!r}: {action!r}")
        return coerce_outcome(handler(inputs, token))
