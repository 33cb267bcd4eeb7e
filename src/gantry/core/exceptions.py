"""
Gantry — Canonical Exceptions (v1)

Este módulo define exceções tipadas de runtime do Gantry.

Objetivo:
- Permitir que Engine, Matrix Expander e Change Detector levantem falhas semânticas
- Facilitar o mapeamento determinístico para GantryErrorPayload
- Evitar ValueError/RuntimeError genéricos em pontos de decisão da run

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- Erros de configuração vivem em `core.config.errors`; erros estruturais do
  grafo (ciclo, referência desconhecida) vivem em `core.engine.planner`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class GantryException(Exception):
    """Base class para exceções internas do Gantry.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------------------------------------------------------
# Falhas terminais de nó
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActionFailed(GantryException):
    """O ActionExecutor reportou falha (ou levantou exceção) para o nó."""


@dataclass(frozen=True)
class Timeout(GantryException):
    """O nó excedeu sua duração máxima de execução."""


# ---------------------------------------------------------------------------
# Construção do grafo / entradas da run
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatrixSourceEmpty(GantryException):
    """Template exige ao menos uma instância e a fonte da matriz está vazia."""


@dataclass(frozen=True)
class InvalidGuardExpression(GantryException):
    """Expressão de guard inválida (sintaxe ou construção proibida)."""


@dataclass(frozen=True)
class BaseUnresolvable(GantryException):
    """A revisão base da detecção de mudanças não pôde ser resolvida."""


@dataclass(frozen=True)
class GuardEvaluationError(GantryException):
    """Guard válido falhou em runtime (entrada ausente ou comparação inválida)."""
