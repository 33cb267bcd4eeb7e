# src/gantry/core/engine/planner.py
"""
Planejador estrutural do grafo de jobs (DAG).

Valida a estrutura dos templates declarados e produz uma ordem
topológica determinística, antes de qualquer expansão de matriz ou
execução.

Decisões arquiteturais:
    - Ordenação topológica determinística (Kahn); empates resolvidos pela
      ordem de declaração dos templates
    - Dependências são declaradas por nome de template
    - Erros estruturais são fatais: nenhuma execução parcial

Invariantes:
    - Nenhum template aparece antes de seus predecessores
    - Todos os templates aparecem exatamente uma vez
    - A mesma definição sempre produz a mesma ordem

Limites explícitos:
    - Não executa nós
    - Não avalia guards
    - Não expande matrizes
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from gantry.core.pipeline.job import JobTemplate
from gantry.core.pipeline.registry import JobRegistry


class UnknownDependencyError(ValueError):
    """
    Um template referencia em `needs` um job inexistente.

    Tratado como referência de template não resolvida: erro de construção,
    a run é recusada antes de qualquer nó executar.
    """


class GraphCyclic(ValueError):
    """
    O grafo de dependências contém ao menos um ciclo.

    A exceção carrega `cycle`: os templates que não puderam ser planejados
    (o ciclo e tudo a jusante dele), em ordem de declaração.
    """

    def __init__(self, message: str, cycle: Iterable[str] = ()):
        super().__init__(message)
        self.cycle: List[str] = list(cycle)


def plan_execution(templates: Iterable[JobTemplate]) -> List[JobTemplate]:
    """
    Valida e ordena topologicamente os templates.

    Args:
        templates: templates do pipeline, na ordem de declaração.

    Returns:
        List[JobTemplate]: templates em ordem topológica determinística.

    Raises:
        DuplicateJobNameError: nomes duplicados.
        UnknownDependencyError: dependência inexistente.
        GraphCyclic: ciclo no grafo.
    """
    registry = JobRegistry.of(templates)
    order = registry.names()
    position = {name: i for i, name in enumerate(order)}

    for name in order:
        for dep in registry.get(name).needs:
            if dep not in registry:
                raise UnknownDependencyError(f"Job '{name}' depends on unknown job '{dep}'")

    incoming: Dict[str, int] = {name: len(registry.get(name).needs) for name in order}
    outgoing: Dict[str, List[str]] = {name: [] for name in order}
    for name in order:
        for dep in registry.get(name).needs:
            outgoing[dep].append(name)

    ready: List[str] = [name for name in order if incoming[name] == 0]
    planned: List[str] = []

    while ready:
        name = ready.pop(0)
        planned.append(name)
        for child in outgoing[name]:
            incoming[child] -= 1
            if incoming[child] == 0:
                ready.append(child)
                ready.sort(key=position.__getitem__)

    if len(planned) != len(order):
        remaining = [name for name in order if incoming[name] > 0]
        raise GraphCyclic(f"Cycle detected in job dependency graph: {remaining}", cycle=remaining)

    return [registry.get(name) for name in planned]
