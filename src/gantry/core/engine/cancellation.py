# src/gantry/core/engine/cancellation.py
"""
Cancelamento cooperativo e grupos de concorrência.

CancellationToken:
    - sinal de cancelamento único e irreversível (threading.Event)
    - tokens filhos herdam o cancelamento do pai (run → nó)
    - callbacks registrados são chamados uma única vez, na thread que
      cancelou; se o token já estiver cancelado, o callback roda na hora
    - ações observam o token em seus pontos de suspensão; o core nunca
      interrompe à força efeitos colaterais que não controla

ConcurrencyGroupRegistry:
    - mapa chave de concorrência → run ativa
    - admitir uma run nova cancela a anterior da mesma chave ANTES de
      registrar a nova (single-flight com preempção)
    - toda leitura/escrita ocorre sob uma única seção crítica

Invariantes:
    - No máximo uma run ativa e não cancelada por chave
    - `cancel()` é idempotente; o primeiro motivo informado prevalece
"""

from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional, Protocol

CancelCallback = Callable[[], None]


class CancellationToken:
    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[CancelCallback] = []
        self.reason: Optional[str] = None
        if parent is not None:
            parent.add_callback(lambda: self.cancel(parent.reason or "parent cancelled"))

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> bool:
        """Cancela o token. Retorna False se já estava cancelado."""
        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            cb()
        return True

    def add_callback(self, callback: CancelCallback) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Bloqueia até o cancelamento (ou timeout). Retorna True se cancelado."""
        return self._event.wait(timeout)

    def child(self) -> "CancellationToken":
        return CancellationToken(parent=self)


class Cancellable(Protocol):
    @property
    def is_terminal(self) -> bool:
        ...

    def cancel(self, reason: str = ...) -> bool:
        ...


def concurrency_key(workflow: str, *, ref: str, pull_request: Optional[int] = None) -> str:
    """Chave `"{workflow}-{pull_request or ref}"` do grupo de concorrência."""
    identity = pull_request if pull_request is not None else ref
    return f"{workflow}-{identity}"


class ConcurrencyGroupRegistry:
    """Tabela compartilhada chave → run ativa."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: Dict[str, Cancellable] = {}

    def admit(self, key: str, run: Cancellable, *, reason: Optional[str] = None) -> Optional[Cancellable]:
        """
        Registra `run` como ativa para `key`, cancelando a anterior.

        O cancelamento da run anterior completa (todos os nós não
        terminais viram cancelled) antes que a nova seja registrada.

        Returns:
            A run substituída, se havia uma ativa.
        """
        with self._lock:
            previous = self._active.get(key)
            if previous is not None and not previous.is_terminal:
                previous.cancel(reason or f"superseded in concurrency group {key}")
            self._active[key] = run
            return previous

    def release(self, key: str, run: Cancellable) -> bool:
        """Remove `run` da tabela se ela ainda for a ativa da chave."""
        with self._lock:
            if self._active.get(key) is run:
                del self._active[key]
                return True
            return False

    def active(self, key: str) -> Optional[Cancellable]:
        with self._lock:
            return self._active.get(key)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._active)
