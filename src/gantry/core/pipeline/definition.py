# src/gantry/core/pipeline/definition.py
"""
Definição declarativa de pipelines.

Um `Pipeline` reúne tudo o que o Coordinator precisa para instanciar uma
run a partir de um trigger:

    - name: identidade lógica (compõe a chave de concorrência)
    - templates: JobTemplates na ordem de declaração
    - filters: grupos nomeados de globs para o Change Detector; globs
      podem conter placeholders `{chave}` resolvidos contra o config da run
      (ex.: "{frontend}/**")
    - config_path: documento lido via ConfigSource no início da run
    - config_resolver: função `documento -> config da run`

Pipelines podem ser montados em Python ou carregados de um documento
YAML/JSON com o esquema:

    name: Continuous integration
    config:
      path: .github/CICD-Config.yml
      queries:
        docker: {path: .docker, expects: list, required: false, default: []}
    filters:
      backend: ["**/*.cs"]
    jobs:
      build:
        kind: build
        if: flags["backend"]
        action: build-backend
      package:
        needs: [build]
        matrix: {source: docker, fail_fast: false}
        timeout_minutes: 30
      cleanup:
        needs: [build, package]
        always: true

Erros de esquema são erros de configuração (fatais na construção).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from gantry.core.config.errors import ConfigMissing, ConfigTypeMismatch
from gantry.core.config.loader import load_document
from gantry.core.config.query import ConfigQuery, QueryKind, resolve_queries

from .guards import Guard
from .job import JobTemplate, MatrixSpec
from .types import ActionKind

_PLACEHOLDER = re.compile(r"\{([A-Za-z0-9_.\-]+)\}")

_JOB_KEYS = {
    "needs",
    "if",
    "always",
    "kind",
    "action",
    "matrix",
    "timeout_minutes",
    "continue_on_error",
    "description",
}
_MATRIX_KEYS = {"source", "axis", "fail_fast", "require_instances"}


@dataclass(frozen=True)
class Pipeline:
    name: str
    templates: Tuple[JobTemplate, ...]
    filters: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    config_path: Optional[str] = None
    config_resolver: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("pipeline name must be a non-empty string")
        object.__setattr__(self, "templates", tuple(self.templates))
        object.__setattr__(
            self, "filters", {group: tuple(globs) for group, globs in dict(self.filters).items()}
        )

    def resolve_config(self, document: Dict[str, Any]) -> Dict[str, Any]:
        if self.config_resolver is None:
            return dict(document)
        return self.config_resolver(document)

    def resolve_filters(self, config: Mapping[str, Any]) -> Dict[str, List[str]]:
        """Substitui placeholders `{chave}` dos globs pelos valores do config."""

        def substitute(match: "re.Match[str]") -> str:
            key = match.group(1)
            if key not in config:
                raise ConfigMissing(f"Placeholder de filtro sem valor no config: {{{key}}}")
            return str(config[key]).rstrip("/")

        return {
            group: [_PLACEHOLDER.sub(substitute, glob) for glob in globs]
            for group, globs in sorted(self.filters.items())
        }


def _expect(value: Any, types: Union[type, Tuple[type, ...]], where: str) -> Any:
    if isinstance(value, bool) and bool not in (types if isinstance(types, tuple) else (types,)):
        raise ConfigTypeMismatch(f"{where}: tipo inválido (bool)")
    if not isinstance(value, types):
        raise ConfigTypeMismatch(f"{where}: tipo inválido ({type(value).__name__})")
    return value


def _parse_matrix(raw: Any, job: str) -> MatrixSpec:
    where = f"jobs.{job}.matrix"
    if isinstance(raw, str):
        return MatrixSpec(source=raw)
    _expect(raw, dict, where)
    unknown = sorted(set(raw) - _MATRIX_KEYS)
    if unknown:
        raise ConfigTypeMismatch(f"{where}: chaves desconhecidas {unknown}")
    if "source" not in raw:
        raise ConfigMissing(f"{where}.source é obrigatório")
    return MatrixSpec(
        source=_expect(raw["source"], str, f"{where}.source"),
        axis=_expect(raw["axis"], str, f"{where}.axis") if raw.get("axis") is not None else None,
        fail_fast=_expect(raw.get("fail_fast", True), bool, f"{where}.fail_fast"),
        require_instances=_expect(raw.get("require_instances", False), bool, f"{where}.require_instances"),
    )


def _parse_job(name: str, raw: Any) -> JobTemplate:
    where = f"jobs.{name}"
    if raw is None:
        raw = {}
    _expect(raw, dict, where)
    unknown = sorted(set(raw) - _JOB_KEYS)
    if unknown:
        raise ConfigTypeMismatch(f"{where}: chaves desconhecidas {unknown}")

    needs_raw = raw.get("needs", [])
    if isinstance(needs_raw, str):
        needs_raw = [needs_raw]
    needs: Sequence[str] = [_expect(n, str, f"{where}.needs") for n in _expect(needs_raw, list, f"{where}.needs")]

    expression = raw.get("if")
    always = _expect(raw.get("always", False), bool, f"{where}.always")
    if expression is None:
        guard = Guard(always_run=always)
    else:
        guard = Guard.when(_expect(expression, str, f"{where}.if"), always_run=always)

    kind_raw = _expect(raw.get("kind", ActionKind.BUILD.value), str, f"{where}.kind")
    try:
        kind = ActionKind(kind_raw)
    except ValueError as e:
        raise ConfigTypeMismatch(f"{where}.kind desconhecido: {kind_raw!r}") from e

    timeout: Optional[float] = None
    if raw.get("timeout_minutes") is not None:
        minutes = _expect(raw["timeout_minutes"], (int, float), f"{where}.timeout_minutes")
        if minutes <= 0:
            raise ConfigTypeMismatch(f"{where}.timeout_minutes deve ser positivo")
        timeout = float(minutes) * 60.0

    return JobTemplate(
        name=name,
        action=raw.get("action", name),
        needs=tuple(needs),
        guard=guard,
        kind=kind,
        matrix=_parse_matrix(raw["matrix"], name) if raw.get("matrix") is not None else None,
        timeout=timeout,
        continue_on_error=_expect(raw.get("continue_on_error", False), bool, f"{where}.continue_on_error"),
        description=_expect(raw.get("description", ""), str, f"{where}.description"),
    )


def _parse_queries(raw: Any) -> List[ConfigQuery]:
    _expect(raw, dict, "config.queries")
    queries: List[ConfigQuery] = []
    for name, spec in raw.items():
        where = f"config.queries.{name}"
        if isinstance(spec, str):
            spec = {"path": spec}
        _expect(spec, dict, where)
        if "path" not in spec:
            raise ConfigMissing(f"{where}.path é obrigatório")
        try:
            expects = QueryKind(spec.get("expects", QueryKind.ANY.value))
        except ValueError as e:
            raise ConfigTypeMismatch(f"{where}.expects desconhecido: {spec.get('expects')!r}") from e
        queries.append(
            ConfigQuery(
                name=str(name),
                path=_expect(spec["path"], str, f"{where}.path"),
                expects=expects,
                required=_expect(spec.get("required", True), bool, f"{where}.required"),
                default=spec.get("default"),
            )
        )
    return queries


def pipeline_from_document(document: Mapping[str, Any]) -> Pipeline:
    """
    Constrói um `Pipeline` a partir de um documento já interpretado.

    Raises:
        ConfigMissing: `name` ou `jobs` ausentes.
        ConfigTypeMismatch: seções com formato incompatível.
        InvalidGuardExpression: expressão `if` inválida.
    """
    if not document.get("name"):
        raise ConfigMissing("Definição de pipeline sem 'name'")
    if not document.get("jobs"):
        raise ConfigMissing("Definição de pipeline sem 'jobs'")

    jobs = _expect(document["jobs"], dict, "jobs")
    templates = [_parse_job(str(name), raw) for name, raw in jobs.items()]

    filters_raw = _expect(document.get("filters") or {}, dict, "filters")
    filters: Dict[str, Tuple[str, ...]] = {}
    for group, globs in filters_raw.items():
        if isinstance(globs, str):
            globs = [globs]
        _expect(globs, list, f"filters.{group}")
        filters[str(group)] = tuple(_expect(g, str, f"filters.{group}") for g in globs)

    config_path: Optional[str] = None
    resolver: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None
    config_raw = document.get("config")
    if isinstance(config_raw, str):
        config_path = config_raw
    elif config_raw is not None:
        _expect(config_raw, dict, "config")
        config_path = _expect(config_raw.get("path"), str, "config.path") if config_raw.get("path") else None
        if config_raw.get("queries"):
            queries = _parse_queries(config_raw["queries"])
            resolver = lambda doc: resolve_queries(doc, queries)  # noqa: E731

    return Pipeline(
        name=_expect(document["name"], str, "name"),
        templates=tuple(templates),
        filters=filters,
        config_path=config_path,
        config_resolver=resolver,
    )


def load_pipeline_definition(source: Union[str, Path, Mapping[str, Any]]) -> Pipeline:
    """Carrega um `Pipeline` de um arquivo YAML/JSON ou de um mapa já interpretado."""
    if isinstance(source, Mapping):
        return pipeline_from_document(source)
    return pipeline_from_document(load_document(source))
