# src/gantry/core/changes/globs.py
"""
Casamento de caminhos com globs de filtros de mudança.

Semântica (compatível com filtros de paths usuais em CI):
    - `**`  → qualquer número de segmentos, inclusive zero (`**/*.cs` casa `A.cs`)
    - `*`   → qualquer sequência dentro de um segmento (não atravessa `/`)
    - `?`   → um caractere dentro de um segmento
    - `[..]`→ classe de caracteres (`[!..]` nega)

Caminhos são sempre relativos à raiz do repositório, com `/` como separador.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Pattern


def _translate(pattern: str) -> str:
    i, n = 0, len(pattern)
    out = []
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                j = i + 2
                at_segment_start = i == 0 or pattern[i - 1] == "/"
                if at_segment_start and j < n and pattern[j] == "/":
                    out.append("(?:.*/)?")
                    i = j + 1
                    continue
                out.append(".*")
                i = j
                continue
            out.append("[^/]*")
            i += 1
            continue
        if c == "?":
            out.append("[^/]")
            i += 1
            continue
        if c == "[":
            j = pattern.find("]", i + 1)
            if j == -1:
                out.append(re.escape(c))
                i += 1
                continue
            body = pattern[i + 1 : j].replace("\\", "\\\\")
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append(f"[{body}]")
            i = j + 1
            continue
        out.append(re.escape(c))
        i += 1
    return "(?s:" + "".join(out) + r")\Z"


def _normalize(path: str) -> str:
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> Pattern[str]:
    """Compila um glob para regex (cacheado)."""
    if not isinstance(pattern, str) or not pattern.strip():
        raise ValueError("glob pattern must be a non-empty string")
    return re.compile(_translate(_normalize(pattern.strip())))


def path_matches(path: str, pattern: str) -> bool:
    return compile_glob(pattern).match(_normalize(path)) is not None


def any_path_matches(paths: Iterable[str], patterns: Iterable[str]) -> bool:
    """True se algum caminho casar com algum glob."""
    compiled = [compile_glob(p) for p in patterns]
    if not compiled:
        return False
    return any(rx.match(_normalize(p)) is not None for p in paths for rx in compiled)
