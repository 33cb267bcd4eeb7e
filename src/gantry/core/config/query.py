# src/gantry/core/config/query.py
"""
Queries tipadas sobre documentos de configuração.

Uma query nomeia um caminho no documento (estilo yq: `.docker`,
`.code-analysis-languages`, `.engine.max_workers`) e declara o formato
esperado do valor:

    - list   → fontes de matriz (ex.: imagens docker, linguagens)
    - scalar → flags e strings (ex.: localização do frontend)
    - object → seções estruturadas
    - any    → sem verificação de formato

Regras de resolução:
    - caminho ausente (ou valor `null`) + `required=True`  → ConfigMissing
    - caminho ausente (ou valor `null`) + `required=False` → default documentado
    - formato incompatível                                  → ConfigTypeMismatch

O módulo é puro: não lê arquivos e não muta o documento consultado.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping

from .errors import ConfigMissing, ConfigTypeMismatch

_MISSING = object()


class QueryKind(str, Enum):
    LIST = "list"
    SCALAR = "scalar"
    OBJECT = "object"
    ANY = "any"


@dataclass(frozen=True)
class ConfigQuery:
    """
    Query nomeada sobre um documento de configuração.

    Campos:
        - name: nome sob o qual o valor resolvido é exposto (ex.: "docker")
        - path: caminho estilo yq no documento
        - expects: formato esperado (`QueryKind`)
        - required: se a ausência é fatal
        - default: valor usado quando o caminho está ausente e `required=False`
    """

    name: str
    path: str
    expects: QueryKind = QueryKind.ANY
    required: bool = True
    default: Any = None


def split_path(path: str) -> List[str]:
    """Divide um caminho estilo yq em chaves (`.a.b-c` → ["a", "b-c"])."""
    if not isinstance(path, str):
        raise TypeError(f"path deve ser str, recebido: {type(path).__name__}")
    stripped = path.strip()
    if stripped in {"", "."}:
        return []
    if stripped.startswith("."):
        stripped = stripped[1:]
    parts = stripped.split(".")
    if any(not p for p in parts):
        raise ValueError(f"Caminho de configuração inválido: {path!r}")
    return parts


def lookup(document: Mapping[str, Any], path: str) -> Any:
    """
    Retorna o valor no caminho, ou o sentinela `_MISSING` se ausente.

    Valores `None` são tratados como ausentes.
    """
    current: Any = document
    for key in split_path(path):
        if not isinstance(current, Mapping) or key not in current:
            return _MISSING
        current = current[key]
    if current is None:
        return _MISSING
    return current


def _matches(kind: QueryKind, value: Any) -> bool:
    if kind is QueryKind.LIST:
        return isinstance(value, list)
    if kind is QueryKind.OBJECT:
        return isinstance(value, dict)
    if kind is QueryKind.SCALAR:
        return isinstance(value, (str, bool, int, float))
    return True


def resolve_query(document: Mapping[str, Any], query: ConfigQuery) -> Any:
    """
    Resolve uma query sobre o documento.

    Raises:
        ConfigMissing: caminho obrigatório ausente.
        ConfigTypeMismatch: valor presente com formato incompatível.
    """
    value = lookup(document, query.path)

    if value is _MISSING:
        if query.required:
            raise ConfigMissing(
                f"Caminho obrigatório ausente na configuração: {query.path} (query '{query.name}')"
            )
        return deepcopy(query.default)

    if not _matches(query.expects, value):
        raise ConfigTypeMismatch(
            f"Query '{query.name}' esperava {query.expects.value} em {query.path}, "
            f"recebido: {type(value).__name__}"
        )

    return deepcopy(value)


def resolve_queries(document: Mapping[str, Any], queries: Iterable[ConfigQuery]) -> Dict[str, Any]:
    """
    Resolve um conjunto de queries e retorna `{query.name: valor}`.

    Raises:
        ValueError: nomes de query duplicados.
        ConfigMissing / ConfigTypeMismatch: ver `resolve_query`.
    """
    resolved: Dict[str, Any] = {}
    for q in queries:
        if q.name in resolved:
            raise ValueError(f"Duplicate config query name: {q.name}")
        resolved[q.name] = resolve_query(document, q)
    return resolved
