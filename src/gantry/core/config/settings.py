# src/gantry/core/config/settings.py
"""
Settings tipados do pipeline de CI.

Este módulo converte o documento de configuração do repositório
(`.github/CICD-Config.yml` por padrão) em settings tipados consumidos
pelos estágios seguintes da run:

    - docker                  → fonte da matriz `build-docker` (lista de {context, file})
    - code-analysis-languages → fonte da matriz `code-analysis` (lista de linguagens)
    - frontend-location       → diretório do frontend (usado nos filtros de mudança)
    - engine.max_workers      → tamanho do pool de workers
    - engine.timeouts         → overrides de timeout por tipo de ação (segundos)

Defaults documentados:
    - docker ausente                   → [] (zero variantes)
    - code-analysis-languages ausente,
      `null`, `false` ou "false"       → análise de código desabilitada
    - engine.max_workers ausente       → 4
    - engine.timeouts ausente          → {}

`frontend-location` é obrigatório: sem ele não há como construir o
filtro de mudanças do frontend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ConfigTypeMismatch
from .loader import ConfigSource
from .query import ConfigQuery, QueryKind, resolve_queries

CI_CONFIG_PATH = ".github/CICD-Config.yml"

DEFAULT_MAX_WORKERS = 4

CI_QUERIES: List[ConfigQuery] = [
    ConfigQuery(name="docker", path=".docker", expects=QueryKind.LIST, required=False, default=[]),
    ConfigQuery(
        name="code-analysis",
        path=".code-analysis-languages",
        expects=QueryKind.ANY,
        required=False,
        default=False,
    ),
    ConfigQuery(name="frontend", path=".frontend-location", expects=QueryKind.SCALAR, required=True),
]

ENGINE_QUERIES: List[ConfigQuery] = [
    ConfigQuery(
        name="max_workers",
        path=".engine.max_workers",
        expects=QueryKind.SCALAR,
        required=False,
        default=DEFAULT_MAX_WORKERS,
    ),
    ConfigQuery(name="timeouts", path=".engine.timeouts", expects=QueryKind.OBJECT, required=False, default={}),
]


@dataclass(frozen=True)
class CISettings:
    """Settings resolvidos de uma run de CI."""

    frontend_location: str
    docker: List[Dict[str, Any]] = field(default_factory=list)
    code_analysis_languages: Optional[List[str]] = None
    max_workers: int = DEFAULT_MAX_WORKERS
    timeouts: Dict[str, float] = field(default_factory=dict)

    @property
    def code_analysis_enabled(self) -> bool:
        return self.code_analysis_languages is not None

    def as_config(self) -> Dict[str, Any]:
        """
        Visão dos settings exposta a guards e fontes de matriz.

        As chaves seguem os outputs do job `config` do workflow de CI
        (`docker`, `frontend`, `code-analysis`); análise desabilitada é
        exposta como a string "false".
        """
        return {
            "docker": [dict(r) for r in self.docker],
            "frontend": self.frontend_location,
            "code-analysis": list(self.code_analysis_languages)
            if self.code_analysis_languages is not None
            else "false",
        }


def _normalize_languages(value: Any) -> Optional[List[str]]:
    if value is False or value is None:
        return None
    if isinstance(value, str):
        if value.strip().lower() in {"false", "null", ""}:
            return None
        raise ConfigTypeMismatch(
            f"code-analysis-languages deve ser lista ou false, recebido: {value!r}"
        )
    if not isinstance(value, list):
        raise ConfigTypeMismatch(
            f"code-analysis-languages deve ser lista ou false, recebido: {type(value).__name__}"
        )
    for lang in value:
        if not isinstance(lang, str) or not lang.strip():
            raise ConfigTypeMismatch(f"Linguagem inválida em code-analysis-languages: {lang!r}")
    return list(value)


def _normalize_docker(value: List[Any]) -> List[Dict[str, Any]]:
    records: List[Dict[str, Any]] = []
    for i, rec in enumerate(value):
        if not isinstance(rec, dict):
            raise ConfigTypeMismatch(
                f"docker[{i}] deve ser objeto {{context, file}}, recebido: {type(rec).__name__}"
            )
        records.append(dict(rec))
    return records


def _normalize_timeouts(value: Dict[str, Any]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for kind, seconds in value.items():
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds <= 0:
            raise ConfigTypeMismatch(f"engine.timeouts.{kind} deve ser número positivo, recebido: {seconds!r}")
        out[str(kind)] = float(seconds)
    return out


@dataclass(frozen=True)
class EngineSettings:
    """Tunables da Engine (pool de workers e overrides de timeout)."""

    max_workers: int = DEFAULT_MAX_WORKERS
    timeouts: Dict[str, float] = field(default_factory=dict)


def engine_settings_from_document(document: Dict[str, Any]) -> EngineSettings:
    """
    Resolve a seção `engine` (opcional) do documento.

    Raises:
        ConfigTypeMismatch: max_workers não inteiro positivo ou timeout
            não numérico.
    """
    values = resolve_queries(document, ENGINE_QUERIES)

    max_workers = values["max_workers"]
    if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
        raise ConfigTypeMismatch(f"engine.max_workers deve ser inteiro >= 1, recebido: {max_workers!r}")

    return EngineSettings(max_workers=max_workers, timeouts=_normalize_timeouts(values["timeouts"]))


def settings_from_document(document: Dict[str, Any]) -> CISettings:
    """
    Resolve `CISettings` a partir de um documento já carregado.

    Raises:
        ConfigMissing: `frontend-location` ausente.
        ConfigTypeMismatch: qualquer seção com formato incompatível.
    """
    values = resolve_queries(document, CI_QUERIES)
    engine = engine_settings_from_document(document)

    frontend = values["frontend"]
    if not isinstance(frontend, str):
        raise ConfigTypeMismatch(f"frontend-location deve ser string, recebido: {type(frontend).__name__}")

    return CISettings(
        frontend_location=frontend.strip().rstrip("/") or ".",
        docker=_normalize_docker(values["docker"]),
        code_analysis_languages=_normalize_languages(values["code-analysis"]),
        max_workers=engine.max_workers,
        timeouts=engine.timeouts,
    )


def load_ci_settings(source: ConfigSource, path: str = CI_CONFIG_PATH) -> CISettings:
    """Carrega o documento via `ConfigSource` e resolve os settings de CI."""
    return settings_from_document(source.load(path))
