# src/gantry/core/pipeline/context.py
"""
Contexto de execução de uma PipelineRun.

Este módulo define o `RunContext`, a estrutura canônica que concentra o
estado explícito de uma run do Gantry:
    - identidade da execução (run_id, created_at, concurrency_key)
    - trigger que originou a run
    - config resolvido e flags do Change Detector (imutáveis na run), com a
      marca `flags_unresolved` quando a base do diff não foi resolvida
    - outputs dos nós terminais (consumidos por sucessores e pelo Aggregator)
    - logs estruturados e warnings por nó

Princípios fundamentais:
    - Isolamento por execução (cada run possui seu próprio contexto)
    - Ausência de estado global compartilhado
    - Comunicação explícita e rastreável

Invariantes:
    - Logs sempre incluem `run_id` e `node`
    - Warnings são agrupados por nó
    - Outputs de um nó são gravados uma única vez (nó terminal)

Limites explícitos:
    - Não executa nós
    - Não decide políticas de execução
    - Não registra eventos no Manifest
    - Não persiste dados automaticamente
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from .types import TriggerEvent


@dataclass
class RunContext:
    """
    Contexto compartilhado de uma run.

    Workers da Engine escrevem concorrentemente em `events`, `warnings` e
    nos outputs; todas as escritas passam por um lock interno.
    """

    run_id: str
    created_at: datetime
    trigger: TriggerEvent
    config: Mapping[str, Any] = field(default_factory=dict)
    flags: Mapping[str, bool] = field(default_factory=dict)
    flags_unresolved: bool = False
    concurrency_key: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)
    _outputs: Dict[str, Dict[str, Any]] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self.config = MappingProxyType(dict(self.config))
        self.flags = MappingProxyType(dict(self.flags))

    # -----------------------------
    # Outputs
    # -----------------------------
    def set_outputs(self, node: str, outputs: Mapping[str, Any]) -> None:
        with self._lock:
            if node in self._outputs:
                raise RuntimeError(f"outputs already recorded for node: {node}")
            self._outputs[node] = dict(outputs)

    def has_outputs(self, node: str) -> bool:
        with self._lock:
            return node in self._outputs

    def get_outputs(self, node: str) -> Dict[str, Any]:
        with self._lock:
            if node not in self._outputs:
                raise KeyError(node)
            return dict(self._outputs[node])

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, node: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "node": node,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, node: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(node, []).append(message)
