# src/gantry/core/pipeline/job.py
"""
Templates e nós de job do Gantry.

Este módulo define as duas formas de um job:

    - JobTemplate → declaração estática (nome, predecessores, guard,
                    matriz opcional, ação, timeout)
    - JobNode     → unidade concreta de trabalho de uma run; um template
                    simples gera exatamente um nó, um template com matriz
                    gera zero ou mais instâncias `template[i]`

Decisões arquiteturais:
    - Predecessores são referenciados por NOME DE TEMPLATE; instâncias de
      matriz herdam os predecessores e sucessores do template
    - O descritor de ação é opaco para o core (delegado ao ActionExecutor)
    - `always_run` é um modificador do guard, não um caso especial do scheduler
    - Referências `needs["x"]` no guard devem apontar para predecessores
      declarados (validado na construção)

Invariantes:
    - Nome de template não vazio e sem colchetes (reservados às instâncias)
    - `needs` sem duplicatas e sem auto-referência

Limites explícitos:
    - Não resolve a fonte da matriz (ver engine.matrix)
    - Não valida ciclos (ver engine.planner)
    - Não executa ações
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from gantry.core.exceptions import InvalidGuardExpression

from .guards import Guard
from .types import DEFAULT_TIMEOUTS_S, ActionKind

MatrixSource = Union[str, Callable[[Mapping[str, Any]], Sequence[Any]]]
TimeoutSpec = Union[float, int, Callable[[Mapping[str, Any]], float]]


@dataclass(frozen=True)
class MatrixSpec:
    """
    Política de expansão de matriz de um template.

    Campos:
        - source: chave do config da run (ex.: "docker") ou função
          `config -> lista`; resolvida na construção do grafo
        - axis: nome do parâmetro quando os registros são escalares
          (ex.: "language" para ["csharp", "swift"]); registros dict são
          expostos como estão
        - fail_fast: a primeira instância `failed` cancela as irmãs não terminais
        - require_instances: lista vazia vira `MatrixSourceEmpty` em vez de
          zero instâncias
    """

    source: MatrixSource
    axis: Optional[str] = None
    fail_fast: bool = True
    require_instances: bool = False

    def describe_source(self) -> str:
        if isinstance(self.source, str):
            return self.source
        return getattr(self.source, "__name__", "<callable>")


@dataclass(frozen=True)
class JobTemplate:
    """
    Declaração estática de um job.

    Exemplo:
        JobTemplate(
            name="unit-testing",
            needs=("build-backend",),
            guard=Guard.when('flags["backend"]'),
            kind=ActionKind.TEST,
            action={"run": "dotnet test"},
        )
    """

    name: str
    action: Any = None
    needs: Tuple[str, ...] = ()
    guard: Guard = field(default_factory=Guard)
    kind: ActionKind = ActionKind.BUILD
    matrix: Optional[MatrixSpec] = None
    timeout: Optional[TimeoutSpec] = None
    continue_on_error: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("job name must be a non-empty string")
        if "[" in self.name or "]" in self.name:
            raise ValueError(f"job name must not contain brackets: {self.name!r}")

        needs = tuple(self.needs)
        object.__setattr__(self, "needs", needs)
        if len(set(needs)) != len(needs):
            raise ValueError(f"duplicate predecessor in needs of {self.name!r}: {list(needs)}")
        if self.name in needs:
            raise ValueError(f"job {self.name!r} cannot depend on itself")

        if not isinstance(self.kind, ActionKind):
            object.__setattr__(self, "kind", ActionKind(self.kind))

        undeclared = sorted(self.guard.referenced_needs - set(needs))
        if undeclared:
            raise InvalidGuardExpression(
                message=f"Guard de {self.name!r} referencia jobs fora de needs",
                details={"job": self.name, "undeclared": undeclared},
                hint="Adicione os jobs referenciados em needs[...] à lista de predecessores.",
            )

    @property
    def is_matrix(self) -> bool:
        return self.matrix is not None

    def resolve_timeout(
        self,
        params: Mapping[str, Any],
        overrides: Optional[Mapping[ActionKind, float]] = None,
    ) -> float:
        """
        Timeout efetivo (segundos) de um nó deste template.

        Precedência: timeout do template → override por kind (config da
        engine) → default do kind.
        """
        if self.timeout is not None:
            value = self.timeout(params) if callable(self.timeout) else self.timeout
            return float(value)
        if overrides and self.kind in overrides:
            return float(overrides[self.kind])
        return DEFAULT_TIMEOUTS_S[self.kind]


@dataclass(frozen=True)
class JobNode:
    """
    Nó concreto de uma run (job simples ou instância de matriz).

    Campos:
        - name: nome do template, ou "template[i]" para instâncias
        - template: template de origem
        - params: registro de parâmetros exposto à ação (vazio em jobs simples)
        - index: posição na matriz (None para jobs simples)
        - timeout_s: duração máxima de execução
    """

    name: str
    template: JobTemplate
    params: Dict[str, Any] = field(default_factory=dict)
    index: Optional[int] = None
    timeout_s: float = 0.0

    @property
    def template_name(self) -> str:
        return self.template.name

    @property
    def needs(self) -> Tuple[str, ...]:
        return self.template.needs

    @property
    def kind(self) -> ActionKind:
        return self.template.kind

    @property
    def guard(self) -> Guard:
        return self.template.guard

    @property
    def is_matrix_instance(self) -> bool:
        return self.index is not None


def instance_name(template: str, index: int) -> str:
    return f"{template}[{index}]"
