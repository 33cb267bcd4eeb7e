# src/gantry/core/engine/coordinator.py
"""
Run Coordinator — admissão de runs e política single-flight.

`RunCoordinator.submit(trigger)` executa, nesta ordem:

    1. Config Loader      → documento via ConfigSource, config da run e
                            settings da engine
    2. Change Detector    → flags a partir dos filtros do pipeline
    3. Planner + Matrix   → JobGraph (erros de construção abortam aqui)
    4. Contexto/Manifest  → RunContext, GantryManifest
    5. Admissão           → chave de concorrência; a run ativa da mesma
                            chave é cancelada antes da nova ser registrada
    6. Execução           → Engine em thread própria; a PipelineRun é
                            devolvida imediatamente

Decisões arquiteturais:
    - Erros de construção (config, ciclo, referência desconhecida, matriz
      vazia obrigatória, guard inválido) são levantados por `submit` antes
      da admissão: nenhum nó executa e o grupo de concorrência fica intacto
    - O cancelamento é cooperativo: ações em voo recebem o sinal pelo token
    - A única tabela compartilhada entre runs é o ConcurrencyGroupRegistry

Limites explícitos:
    - Não executa ações (ver ActionExecutor)
    - Não publica relatórios (ver gantry.report)
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from gantry import __version__
from gantry.core.changes.detector import ChangeDetector, ChangeSet
from gantry.core.config.errors import ConfigTypeMismatch
from gantry.core.config.hashing import compute_config_hash, compute_flags_hash
from gantry.core.config.loader import ConfigSource
from gantry.core.config.settings import EngineSettings, engine_settings_from_document
from gantry.core.pipeline.action import ActionExecutor
from gantry.core.pipeline.context import RunContext
from gantry.core.pipeline.definition import Pipeline
from gantry.core.pipeline.types import ActionKind, RunStatus, TriggerEvent
from gantry.core.traceability.manifest import GantryManifest, create_manifest

from .cancellation import CancellationToken, ConcurrencyGroupRegistry, concurrency_key
from .engine import Engine, RunResult
from .graph import JobGraph


def trigger_concurrency_key(trigger: TriggerEvent) -> str:
    return concurrency_key(trigger.workflow, ref=trigger.ref, pull_request=trigger.pull_request)


def _timeout_overrides(settings: EngineSettings) -> Dict[ActionKind, float]:
    overrides: Dict[ActionKind, float] = {}
    for kind, seconds in settings.timeouts.items():
        try:
            overrides[ActionKind(kind)] = seconds
        except ValueError as e:
            raise ConfigTypeMismatch(f"engine.timeouts: tipo de ação desconhecido: {kind!r}") from e
    return overrides


class PipelineRun:
    """
    Uma instanciação do grafo para um trigger.

    Criada por `RunCoordinator.submit`; pertence exclusivamente ao
    coordinator. `wait()` bloqueia até o estado terminal.
    """

    def __init__(
        self,
        *,
        run_id: str,
        concurrency_key: str,
        trigger: TriggerEvent,
        started_at: datetime,
        engine: Engine,
        changes: ChangeSet,
    ):
        self.run_id = run_id
        self.concurrency_key = concurrency_key
        self.trigger = trigger
        self.started_at = started_at
        self.engine = engine
        self.changes = changes
        self._done = threading.Event()
        self._result: Optional[RunResult] = None
        self._error: Optional[BaseException] = None

    @property
    def ctx(self) -> RunContext:
        return self.engine.ctx

    @property
    def manifest(self) -> Optional[GantryManifest]:
        return self.engine.manifest

    @property
    def token(self) -> CancellationToken:
        return self.engine.token

    @property
    def is_terminal(self) -> bool:
        return self._done.is_set()

    @property
    def status(self) -> RunStatus:
        if self._result is not None:
            return self._result.status
        if self.token.is_cancelled:
            return RunStatus.CANCELLED
        return RunStatus.RUNNING

    @property
    def result(self) -> Optional[RunResult]:
        return self._result

    def cancel(self, reason: str = "explicit abort") -> bool:
        """Cancelamento explícito: todo nó não terminal vira cancelled."""
        return self.engine.cancel(reason)

    def wait(self, timeout: Optional[float] = None) -> RunResult:
        """
        Aguarda o fim da run.

        Raises:
            TimeoutError: a run não terminou dentro de `timeout`.
            RuntimeError: a thread da Engine falhou inesperadamente.
        """
        if not self._done.wait(timeout):
            raise TimeoutError(f"run {self.run_id} did not finish within {timeout}s")
        if self._error is not None:
            raise RuntimeError(f"run {self.run_id} crashed") from self._error
        return self._result

    def _execute(self, on_done) -> None:
        try:
            self._result = self.engine.run()
        except BaseException as e:
            self._error = e
            raise
        finally:
            # a chave é liberada antes de acordar quem aguarda em wait()
            on_done(self)
            self._done.set()

    def __repr__(self) -> str:
        return f"PipelineRun(run_id={self.run_id!r}, key={self.concurrency_key!r}, status={self.status.value})"


class RunCoordinator:
    """
    Ponto de entrada do core: `submit(trigger) -> PipelineRun`.

    Args:
        pipeline: definição do pipeline (templates, filtros, config).
        executor: ActionExecutor que executa as ações dos nós.
        config_source: fonte do documento de configuração (obrigatória se
            o pipeline declarar `config_path`).
        detector: Change Detector (obrigatório se o pipeline declarar filtros).
        max_workers: sobrescreve `engine.max_workers` do documento.
        groups: tabela de grupos de concorrência (compartilhável entre
            coordinators do mesmo processo).
    """

    def __init__(
        self,
        *,
        pipeline: Pipeline,
        executor: ActionExecutor,
        config_source: Optional[ConfigSource] = None,
        detector: Optional[ChangeDetector] = None,
        max_workers: Optional[int] = None,
        groups: Optional[ConcurrencyGroupRegistry] = None,
    ):
        if pipeline.config_path is not None and config_source is None:
            raise ValueError(f"pipeline {pipeline.name!r} declares a config path but no config_source was given")
        if pipeline.filters and detector is None:
            raise ValueError(f"pipeline {pipeline.name!r} declares change filters but no detector was given")

        self.pipeline = pipeline
        self.executor = executor
        self.config_source = config_source
        self.detector = detector
        self.max_workers = max_workers
        self.groups = groups or ConcurrencyGroupRegistry()

    def concurrency_key(self, trigger: TriggerEvent) -> str:
        return trigger_concurrency_key(trigger)

    def _load_document(self) -> Dict[str, Any]:
        if self.pipeline.config_path is None:
            return {}
        return self.config_source.load(self.pipeline.config_path)

    def _detect(self, trigger: TriggerEvent, config: Dict[str, Any]) -> ChangeSet:
        filters = self.pipeline.resolve_filters(config)
        if not filters:
            return ChangeSet(base=trigger.base_ref, head=trigger.revision)
        return self.detector.detect(base=trigger.base_ref, head=trigger.revision, filters=filters)

    def prepare(self, trigger: TriggerEvent) -> PipelineRun:
        """
        Constrói a run (config, flags, grafo, contexto) sem admiti-la.

        Raises:
            ConfigMissing / ConfigMalformed / ConfigTypeMismatch
            GraphCyclic / UnknownDependencyError / DuplicateJobNameError
            MatrixSourceEmpty
        """
        document = self._load_document()
        config = self.pipeline.resolve_config(document)
        settings = engine_settings_from_document(document)
        changes = self._detect(trigger, config)

        graph = JobGraph.build(
            self.pipeline.templates,
            config=config,
            timeout_overrides=_timeout_overrides(settings),
        )

        run_id = uuid.uuid4().hex
        started_at = datetime.now(timezone.utc)
        key = self.concurrency_key(trigger)

        ctx = RunContext(
            run_id=run_id,
            created_at=started_at,
            trigger=trigger,
            config=config,
            flags=changes.flags,
            flags_unresolved=changes.unresolved,
            concurrency_key=key,
            meta={"pipeline": self.pipeline.name, "graph": graph.describe()},
        )
        if changes.unresolved:
            ctx.add_warning(
                node="*",
                message=changes.error.message if changes.error is not None else "base unresolved",
            )

        manifest = create_manifest(
            run_id=run_id,
            started_at=started_at,
            gantry_version=__version__,
            pipeline=self.pipeline.name,
            concurrency_key=key,
            trigger=trigger.to_dict(),
            config_hash=compute_config_hash(document),
            flags=changes.flags,
            flags_unresolved=changes.unresolved,
            flags_hash=compute_flags_hash(changes.flags),
        )

        engine = Engine(
            graph=graph,
            ctx=ctx,
            executor=self.executor,
            token=CancellationToken(),
            max_workers=self.max_workers or settings.max_workers,
            manifest=manifest,
        )
        return PipelineRun(
            run_id=run_id,
            concurrency_key=key,
            trigger=trigger,
            started_at=started_at,
            engine=engine,
            changes=changes,
        )

    def submit(self, trigger: TriggerEvent) -> PipelineRun:
        """
        Admite e inicia uma run para o trigger.

        A run ativa da mesma chave de concorrência é cancelada (todos os
        nós não terminais viram cancelled) antes da nova ser registrada e
        começar a agendar nós.
        """
        run = self.prepare(trigger)
        self.groups.admit(
            run.concurrency_key,
            run,
            reason=f"superseded by run {run.run_id}",
        )
        thread = threading.Thread(
            target=run._execute,
            args=(self._release,),
            name=f"gantry-run-{run.run_id[:8]}",
            daemon=True,
        )
        thread.start()
        return run

    def run(self, trigger: TriggerEvent, timeout: Optional[float] = None) -> RunResult:
        """Atalho síncrono: `submit(trigger).wait(timeout)`."""
        return self.submit(trigger).wait(timeout)

    def cancel(self, trigger: TriggerEvent, reason: str = "explicit abort") -> bool:
        """Cancela a run ativa da chave do trigger, se houver."""
        active = self.groups.active(self.concurrency_key(trigger))
        if active is None:
            return False
        return active.cancel(reason)

    def active(self, trigger: TriggerEvent) -> Optional[PipelineRun]:
        return self.groups.active(self.concurrency_key(trigger))

    def _release(self, run: PipelineRun) -> None:
        self.groups.release(run.concurrency_key, run)
