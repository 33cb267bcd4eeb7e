# src/gantry/core/engine/matrix.py
"""
Matrix Expander — fan-out de templates em instâncias concretas.

Dado um template com `MatrixSpec` e o config resolvido da run, produz uma
instância `JobNode` por registro da lista de parâmetros:

    code-analysis + ["csharp", "swift"]
        → code-analysis[0] {language: csharp}
        → code-analysis[1] {language: swift}

Decisões arquiteturais:
    - A expansão acontece na construção do grafo: depois do Config Loader,
      antes de qualquer agendamento
    - Instâncias herdam predecessores, guard, ação e sucessores do template
    - Lista vazia → zero instâncias (o template fica vacuamente satisfeito),
      a menos que o template exija instâncias (`require_instances`)
    - Fonte ausente ou `null` no config é tratada como lista vazia

Invariantes:
    - A ordem das instâncias é a ordem da lista de origem
    - Cada instância recebe uma cópia própria de seus parâmetros

Limites explícitos:
    - Não avalia guards
    - Não agenda nem executa instâncias
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, List, Mapping, Optional

from gantry.core.config.errors import ConfigTypeMismatch
from gantry.core.exceptions import MatrixSourceEmpty
from gantry.core.pipeline.job import JobNode, JobTemplate, instance_name
from gantry.core.pipeline.types import ActionKind

DEFAULT_AXIS = "value"


class MatrixExpander:
    """Expande templates contra o config (imutável) de uma run."""

    def __init__(
        self,
        config: Mapping[str, Any],
        *,
        timeout_overrides: Optional[Mapping[ActionKind, float]] = None,
    ):
        self.config = config
        self.timeout_overrides = dict(timeout_overrides or {})

    def resolve_source(self, template: JobTemplate) -> List[Any]:
        """
        Lista de registros de parâmetros do template.

        Raises:
            ConfigTypeMismatch: a fonte não resolve para uma lista.
        """
        spec = template.matrix
        if spec is None:
            raise ValueError(f"job {template.name!r} has no matrix")

        if callable(spec.source):
            value = spec.source(self.config)
        else:
            value = self.config.get(spec.source)

        if value is None:
            return []
        if not isinstance(value, list):
            raise ConfigTypeMismatch(
                f"Fonte da matriz de {template.name!r} ({spec.describe_source()}) deve ser lista, "
                f"recebido: {type(value).__name__}"
            )
        return value

    def _params_for(self, template: JobTemplate, record: Any) -> Dict[str, Any]:
        axis = template.matrix.axis if template.matrix is not None else None
        if isinstance(record, dict) and axis is None:
            return deepcopy(record)
        return {axis or DEFAULT_AXIS: deepcopy(record)}

    def expand(self, template: JobTemplate) -> List[JobNode]:
        """
        Materializa os nós de um template.

        Templates sem matriz geram exatamente um nó com o nome do template.

        Raises:
            MatrixSourceEmpty: lista vazia e `require_instances=True`.
            ConfigTypeMismatch: fonte não é lista.
        """
        if template.matrix is None:
            return [
                JobNode(
                    name=template.name,
                    template=template,
                    timeout_s=template.resolve_timeout({}, self.timeout_overrides),
                )
            ]

        records = self.resolve_source(template)
        if not records and template.matrix.require_instances:
            raise MatrixSourceEmpty(
                message=f"Matriz de {template.name!r} exige ao menos uma instância",
                details={"job": template.name, "source": template.matrix.describe_source()},
                hint="Preencha a lista de origem no documento de configuração ou desative require_instances.",
            )

        nodes: List[JobNode] = []
        for i, record in enumerate(records):
            params = self._params_for(template, record)
            nodes.append(
                JobNode(
                    name=instance_name(template.name, i),
                    template=template,
                    params=params,
                    index=i,
                    timeout_s=template.resolve_timeout(params, self.timeout_overrides),
                )
            )
        return nodes
