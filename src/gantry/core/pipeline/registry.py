# src/gantry/core/pipeline/registry.py
"""
Registro estrutural de templates de job.

O `JobRegistry` valida a integridade estrutural do pipeline antes de
qualquer planejamento ou execução:
    - cada template possui nome válido
    - não existem nomes duplicados
    - a ordem de declaração é preservada explicitamente

Decisões arquiteturais:
    - A validação ocorre antes do planner e da Engine
    - Erros estruturais são falhas fatais de construção
    - A ordem de registro desempata o planejamento (determinismo)

Limites explícitos:
    - Não resolve dependências (ver engine.planner)
    - Não expande matrizes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .job import JobTemplate


class DuplicateJobNameError(ValueError):
    """Dois templates registrados com o mesmo nome."""


@dataclass
class JobRegistry:
    """Registro canônico de templates, na ordem de declaração."""

    _templates: Dict[str, JobTemplate] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    @classmethod
    def of(cls, templates: Iterable[JobTemplate]) -> "JobRegistry":
        registry = cls()
        for template in templates:
            registry.add(template)
        return registry

    def add(self, template: JobTemplate) -> None:
        if not isinstance(template, JobTemplate):
            raise TypeError(f"expected JobTemplate, got {type(template).__name__}")
        if template.name in self._templates:
            raise DuplicateJobNameError(f"Duplicate job name: {template.name}")
        self._templates[template.name] = template
        self._order.append(template.name)

    def get(self, name: str) -> JobTemplate:
        return self._templates[name]

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._order)

    def names(self) -> List[str]:
        return list(self._order)

    def list(self) -> List[JobTemplate]:
        return [self._templates[name] for name in self._order]
