# src/gantry/workflows/continuous_integration.py
"""
Workflow "Continuous integration" como Pipeline do Gantry.

Estágios de construção (executados pelo RunCoordinator, não são jobs):
    - config  → `.github/CICD-Config.yml` via CISettings
                (docker, frontend, code-analysis)
    - changes → flags `backend` e `frontend` a partir de CI_FILTERS

Jobs:
    build-backend   → flags["backend"]
    build-frontend  → flags["frontend"]
    lint-frontend   → needs build-frontend; flags["frontend"]
    unit-testing    → needs build-backend; flags["backend"]; sink de cobertura
    build-docker    → needs build-backend, build-frontend; matriz sobre
                      `docker` ({context, file}), fail-fast desligado
    code-analysis   → needs build-frontend, build-backend, lint-frontend,
                      unit-testing; matriz sobre as linguagens, fail-fast
                      desligado, 120 min para swift e 360 para as demais;
                      sink de análise
    cleanup         → always(); needs todos os anteriores

Limites explícitos:
    - As ações são nomes opacos (o nome do job); quem as executa é o
      ActionExecutor fornecido pelo embedder
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from gantry.core.config.settings import CI_CONFIG_PATH, settings_from_document
from gantry.core.pipeline.definition import Pipeline
from gantry.core.pipeline.guards import Guard
from gantry.core.pipeline.job import JobTemplate, MatrixSpec
from gantry.core.pipeline.types import ActionKind
from gantry.report.aggregator import CoverageThresholds, ResultAggregator

WORKFLOW_NAME = "Continuous integration"

CI_FILTERS: Dict[str, List[str]] = {
    "backend": ["**/*.cs", "**/*.csproj"],
    "frontend": ["{frontend}/**"],
}

COVERAGE_THRESHOLDS = "90 90"

_MINUTE = 60.0


def _resolve_ci_config(document: Dict[str, Any]) -> Dict[str, Any]:
    return settings_from_document(document).as_config()


def analysis_languages(config: Mapping[str, Any]) -> List[Any]:
    """Linguagens da análise de código; "false" desabilita a matriz."""
    value = config.get("code-analysis")
    if value == "false" or value is None:
        return []
    return value


def analysis_timeout(params: Mapping[str, Any]) -> float:
    return (120 if params.get("language") == "swift" else 360) * _MINUTE


def ci_templates() -> List[JobTemplate]:
    return [
        JobTemplate(
            name="build-backend",
            action="build-backend",
            guard=Guard.when('flags["backend"]'),
            kind=ActionKind.BUILD,
            description="Build .NET solution",
        ),
        JobTemplate(
            name="build-frontend",
            action="build-frontend",
            guard=Guard.when('flags["frontend"]'),
            kind=ActionKind.BUILD,
            description="Build frontend",
        ),
        JobTemplate(
            name="lint-frontend",
            action="lint-frontend",
            needs=("build-frontend",),
            guard=Guard.when('flags["frontend"]'),
            kind=ActionKind.LINT,
            description="Lint and format frontend",
        ),
        JobTemplate(
            name="unit-testing",
            action="unit-testing",
            needs=("build-backend",),
            guard=Guard.when('flags["backend"]'),
            kind=ActionKind.TEST,
            description="Unit testing",
        ),
        JobTemplate(
            name="build-docker",
            action="build-docker",
            needs=("build-backend", "build-frontend"),
            kind=ActionKind.PACKAGE,
            matrix=MatrixSpec(source="docker", fail_fast=False),
            description="Build Docker",
        ),
        JobTemplate(
            name="code-analysis",
            action="code-analysis",
            needs=("build-frontend", "build-backend", "lint-frontend", "unit-testing"),
            guard=Guard.when('config["code-analysis"] != "false"'),
            kind=ActionKind.SCAN,
            matrix=MatrixSpec(source=analysis_languages, axis="language", fail_fast=False),
            timeout=analysis_timeout,
            description="Code analysis",
        ),
        JobTemplate(
            name="cleanup",
            action="cleanup",
            needs=(
                "build-frontend",
                "build-backend",
                "lint-frontend",
                "unit-testing",
                "build-docker",
                "code-analysis",
            ),
            guard=Guard.always(),
            kind=ActionKind.CLEANUP,
            description="Cleanup",
        ),
    ]


def build_ci_pipeline() -> Pipeline:
    return Pipeline(
        name=WORKFLOW_NAME,
        templates=tuple(ci_templates()),
        filters=CI_FILTERS,
        config_path=CI_CONFIG_PATH,
        config_resolver=_resolve_ci_config,
    )


def build_ci_aggregator(*, fail_below_min: bool = False) -> ResultAggregator:
    """Aggregator do workflow: cobertura de `unit-testing`, achados de `code-analysis`."""
    return ResultAggregator(
        coverage_sinks=("unit-testing",),
        scan_sinks=("code-analysis",),
        thresholds=CoverageThresholds.parse(COVERAGE_THRESHOLDS, fail_below_min=fail_below_min),
    )
