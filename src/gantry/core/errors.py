"""
Gantry — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Gantry.
Erros de nó fazem parte do resultado da run e devem ser:

- explícitos
- serializáveis
- rastreáveis até o nó de origem
- acionáveis

O coordinator nunca engole falhas: todo nó `failed` carrega um
GantryErrorPayload que chega ao Manifest e ao relatório agregado.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GantryErrorPayload:
    """
    Payload canônico de erro do Gantry.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico (inclui o nó)
    - hint: ação sugerida ao operador
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GantryErrorPayload":
        return cls(
            type=str(data.get("type", ENGINE_EXECUTION_ERROR)),
            message=str(data.get("message", "")),
            details=dict(data.get("details") or {}),
            hint=data.get("hint"),
        )


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Detecção de mudanças
BASE_UNRESOLVABLE = "BASE_UNRESOLVABLE"

# Execução de nós
ACTION_FAILED = "ACTION_FAILED"
TIMEOUT = "TIMEOUT"
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"
GUARD_EVALUATION_ERROR = "GUARD_EVALUATION_ERROR"

# Agregação de resultados
THRESHOLD_NOT_MET = "THRESHOLD_NOT_MET"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def action_failed(
    *,
    node: str,
    message: str = "Ação reportou falha",
    outputs: Optional[Dict[str, Any]] = None,
    hint: str = "Consulte os logs da ação no executor; o core não reexecuta nós automaticamente.",
) -> GantryErrorPayload:
    return GantryErrorPayload(
        type=ACTION_FAILED,
        message=message,
        details={"node": node, "outputs": dict(outputs or {})},
        hint=hint,
    )


def node_timeout(
    *,
    node: str,
    timeout_s: float,
    elapsed_s: float,
    hint: str = "Aumente o timeout do job (timeout_minutes) ou reduza o trabalho da ação.",
) -> GantryErrorPayload:
    return GantryErrorPayload(
        type=TIMEOUT,
        message=f"Nó excedeu o tempo máximo de execução ({timeout_s:g}s)",
        details={"node": node, "timeout_s": timeout_s, "elapsed_s": round(elapsed_s, 3)},
        hint=hint,
    )


def engine_execution_error(
    *,
    node: Optional[str] = None,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "O executor levantou uma exceção inesperada. Nenhum fallback é aplicado automaticamente.",
) -> GantryErrorPayload:
    return GantryErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message="Falha inesperada durante a execução do nó",
        details={
            "node": node,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
    )


def base_unresolvable(
    *,
    base: str,
    head: Optional[str],
    reason: Optional[str] = None,
    hint: str = "Verifique se a referência base existe no clone; jobs que dependem das flags afetadas foram pulados.",
) -> GantryErrorPayload:
    return GantryErrorPayload(
        type=BASE_UNRESOLVABLE,
        message="Referência base da detecção de mudanças não resolvida",
        details={"base": base, "head": head, "reason": reason},
        hint=hint,
    )


def threshold_not_met(
    *,
    node: str,
    metric: str,
    value: float,
    minimum: float,
    hint: str = "Aumente a cobertura ou ajuste os thresholds de relatório.",
) -> GantryErrorPayload:
    return GantryErrorPayload(
        type=THRESHOLD_NOT_MET,
        message=f"{metric} abaixo do mínimo ({value:g} < {minimum:g})",
        details={"node": node, "metric": metric, "value": value, "minimum": minimum},
        hint=hint,
    )


def guard_evaluation_error(
    *,
    node: str,
    guard: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    hint: str = "Corrija a expressão do guard ou garanta que a chave exista no config da run.",
) -> GantryErrorPayload:
    return GantryErrorPayload(
        type=GUARD_EVALUATION_ERROR,
        message=message,
        details={"node": node, "guard": guard, **dict(details or {})},
        hint=hint,
    )
