# src/gantry/report/sinks.py
"""
Reporting sinks — destino dos relatórios agregados.

Contrato (`ReportingSink`):
    - upsert(context_key, body) → cria ou SUBSTITUI o relatório visível do
      contexto (semântica "recreate" de comentário fixo em pull request)
    - emit(context_key, body)   → publica o relatório avulso do contexto
      (triggers que não são pull request; a chave já identifica a run) e
      substitui um emit anterior com a mesma chave
    - set_exit_status(context_key, code) → status de saída da run

Implementações:
    - InMemoryReportingSink → embedders e testes
    - FileReportingSink     → um arquivo por contexto e tipo de publicação,
      sobrescrito a cada upsert/emit

Invariantes:
    - Dois upserts (ou dois emits) para o mesmo contexto resultam em
      exatamente um relatório visível daquele tipo
    - Chaves de contexto distintas nunca compartilham arquivo
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Dict, List, Protocol, Tuple, Union, runtime_checkable
from urllib.parse import quote


@runtime_checkable
class ReportingSink(Protocol):
    def upsert(self, context_key: str, body: str) -> None:
        ...

    def emit(self, context_key: str, body: str) -> None:
        ...

    def set_exit_status(self, context_key: str, code: int) -> None:
        ...


class InMemoryReportingSink:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.sticky: Dict[str, str] = {}
        self.emitted: List[Tuple[str, str]] = []
        self.exit_codes: Dict[str, int] = {}
        self.upsert_count = 0

    def upsert(self, context_key: str, body: str) -> None:
        with self._lock:
            self.sticky[context_key] = body
            self.upsert_count += 1

    def emit(self, context_key: str, body: str) -> None:
        with self._lock:
            self.emitted = [(k, b) for k, b in self.emitted if k != context_key]
            self.emitted.append((context_key, body))

    def set_exit_status(self, context_key: str, code: int) -> None:
        with self._lock:
            self.exit_codes[context_key] = int(code)

    def visible(self, context_key: str) -> List[str]:
        """Relatórios visíveis para um contexto (fixo + avulso)."""
        with self._lock:
            out = [self.sticky[context_key]] if context_key in self.sticky else []
            out.extend(body for key, body in self.emitted if key == context_key)
            return out


def _file_stem(context_key: str) -> str:
    """Codificação reversível da chave; o resultado não contém `.` nem `/`."""
    if not context_key.strip():
        raise ValueError(f"invalid context key: {context_key!r}")
    return quote(context_key, safe="").replace(".", "%2E")


class FileReportingSink:
    """
    Relatórios em disco sob `root`:
        - <contexto>.md       → relatório fixo (upsert)
        - <contexto>.emit.md  → relatório avulso (emit)
        - <contexto>.exit     → último status de saída

    `<contexto>` é a chave percent-encoded (inclusive `.`), então chaves
    distintas nunca colidem e os sufixos não se confundem com a chave.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self._lock = threading.Lock()

    def sticky_path(self, context_key: str) -> Path:
        return self.root / f"{_file_stem(context_key)}.md"

    def emit_path(self, context_key: str) -> Path:
        return self.root / f"{_file_stem(context_key)}.emit.md"

    def exit_path(self, context_key: str) -> Path:
        return self.root / f"{_file_stem(context_key)}.exit"

    def upsert(self, context_key: str, body: str) -> None:
        with self._lock:
            self.root.mkdir(parents=True, exist_ok=True)
            self.sticky_path(context_key).write_text(body, encoding="utf-8")

    def emit(self, context_key: str, body: str) -> None:
        with self._lock:
            self.root.mkdir(parents=True, exist_ok=True)
            self.emit_path(context_key).write_text(body, encoding="utf-8")

    def set_exit_status(self, context_key: str, code: int) -> None:
        with self._lock:
            self.root.mkdir(parents=True, exist_ok=True)
            self.exit_path(context_key).write_text(f"{int(code)}\n", encoding="utf-8")

    def visible(self, context_key: str) -> List[Path]:
        return [p for p in (self.sticky_path(context_key), self.emit_path(context_key)) if p.exists()]
