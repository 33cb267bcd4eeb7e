# tests/conftest.py
"""
Fixtures compartilhados para testes do Gantry.

Este módulo define fixtures reutilizáveis que fornecem:
- documentos de configuração mínimos e determinísticos (CICD-Config)
- triggers de pull request e de push
- contexto de execução controlado (RunContext)
- um ActionExecutor roteirizado (scripted) para testes de Engine
- uma fábrica de JobTemplates

O objetivo destas fixtures é permitir testes do core
(config, changes, pipeline, engine, traceability e report) sem depender de:
- controle de versão real
- runners, containers ou rede
- relógio de parede (a concorrência é sincronizada com threading.Event)

Decisões arquiteturais:
    - Fixtures são mantidas simples e explícitas
    - Imports do core são realizados de forma lazy para
      melhorar a clareza de erros durante falhas
    - O executor roteirizado registra a ordem real de início dos nós

Invariantes:
    - Nenhuma fixture executa pipeline real
    - Nenhuma fixture realiza I/O
    - Todas as fixtures são seguras para execução em paralelo

Limites explícitos:
    - Não substituir testes de integração (ver tests/e2e)
"""

import threading
from datetime import datetime, timezone

import pytest


# =====================================================
# Config Loader fixtures
# =====================================================

@pytest.fixture
def ci_config_document() -> dict:
    """
    Documento `.github/CICD-Config.yml` já interpretado.

    Contém duas imagens docker, duas linguagens de análise e a
    localização do frontend, como no repositório de origem do workflow.
    """
    return {
        "docker": [
            {"context": ".", "file": "NG.Host/Dockerfile"},
            {"context": "NG.Host.Frontend", "file": "NG.Host.Frontend/Dockerfile"},
        ],
        "code-analysis-languages": ["csharp", "javascript-typescript"],
        "frontend-location": "NG.Host.Frontend",
    }


@pytest.fixture
def ci_config_yaml() -> str:
    """O mesmo documento de CI, como texto YAML."""
    return """\
docker:
  - context: .
    file: NG.Host/Dockerfile
  - context: NG.Host.Frontend
    file: NG.Host.Frontend/Dockerfile
code-analysis-languages:
  - csharp
  - javascript-typescript
frontend-location: NG.Host.Frontend
"""


@pytest.fixture
def ci_config_local_yaml() -> str:
    """Override local: desabilita a análise de código e reduz o pool."""
    return """\
code-analysis-languages: null
engine:
  max_workers: 2
"""


# =====================================================
# Triggers
# =====================================================

@pytest.fixture
def pr_trigger():
    from gantry.core.pipeline.types import TriggerEvent

    return TriggerEvent(
        workflow="Continuous integration",
        event_name="pull_request",
        ref="refs/pull/42/merge",
        revision="head-sha",
        base_ref="main",
        pull_request=42,
    )


@pytest.fixture
def push_trigger():
    from gantry.core.pipeline.types import TriggerEvent

    return TriggerEvent(
        workflow="Continuous integration",
        event_name="push",
        ref="refs/heads/main",
        revision="head-sha",
        base_ref="main",
    )


# =====================================================
# Pipeline fixtures (RunContext, executor, templates)
# =====================================================

@pytest.fixture
def dummy_ctx(pr_trigger):
    """
    RunContext determinístico.

    `run_id` e `created_at` são fixos; config e flags são mínimos e
    imutáveis, como em uma run real após Config Loader e Change Detector.
    """
    from gantry.core.pipeline.context import RunContext

    return RunContext(
        run_id="run-test-001",
        created_at=datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc),
        trigger=pr_trigger,
        config={"docker": [], "frontend": "NG.Host.Frontend", "code-analysis": "false"},
        flags={"backend": True, "frontend": False},
        meta={"source": "pytest"},
    )


class ScriptedExecutor:
    """
    ActionExecutor roteirizado por nome de nó ou de template.

    `script` mapeia nome → handler `(inputs, token) -> resultado` ou um
    resultado fixo (ActionOutcome, dict, bool, None). Nós sem roteiro
    terminam com sucesso. Cada início é registrado em `started`, na ordem
    real observada pelos workers.
    """

    def __init__(self, script=None):
        self.script = dict(script or {})
        self.started = []
        self.inputs = {}
        self._lock = threading.Lock()

    def execute(self, action, inputs, token):
        from gantry.core.pipeline.action import coerce_outcome

        with self._lock:
            self.started.append(inputs.node)
            self.inputs[inputs.node] = inputs

        entry = self.script.get(inputs.node, self.script.get(inputs.template))
        if callable(entry):
            return coerce_outcome(entry(inputs, token))
        return coerce_outcome(entry)


@pytest.fixture
def scripted_executor():
    """Fábrica de ScriptedExecutor (`scripted_executor({...})`)."""
    return ScriptedExecutor


@pytest.fixture
def make_template():
    """
    Fábrica de JobTemplate com defaults de teste.

    A ação default é o próprio nome do job (roteável pelo ScriptedExecutor).
    """
    from gantry.core.pipeline.job import JobTemplate

    def _make(name, **kwargs):
        kwargs.setdefault("action", name)
        return JobTemplate(name=name, **kwargs)

    return _make


@pytest.fixture
def run_graph(dummy_ctx):
    """
    Executa templates em uma Engine nova e retorna (result, engine).

    Uso: `run_graph(templates, executor, config=..., flags=...)`.
    """
    from gantry.core.engine.engine import Engine
    from gantry.core.engine.graph import JobGraph
    from gantry.core.pipeline.context import RunContext

    def _run(templates, executor, *, config=None, flags=None, max_workers=4, manifest=None):
        ctx = RunContext(
            run_id=dummy_ctx.run_id,
            created_at=dummy_ctx.created_at,
            trigger=dummy_ctx.trigger,
            config=dict(dummy_ctx.config) if config is None else config,
            flags=dict(dummy_ctx.flags) if flags is None else flags,
        )
        graph = JobGraph.build(templates, config=ctx.config)
        engine = Engine(graph=graph, ctx=ctx, executor=executor, max_workers=max_workers, manifest=manifest)
        return engine.run(), engine

    return _run
