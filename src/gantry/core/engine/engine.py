# src/gantry/core/engine/engine.py
"""
Engine de execução de uma PipelineRun do Gantry.

A Engine é dona exclusiva da tabela de estados dos nós de UMA run e
executa o JobGraph até que todo nó esteja terminal:

    pending → {skipped | ready} → running → {succeeded | failed | cancelled}

Modelo de agendamento (orientado a eventos, sem polling):
    - cada template aguarda um contador de predecessores pendentes; quando
      um template fica terminal (todas as instâncias terminais), os
      contadores dos dependentes são decrementados
    - ao chegar a zero, o guard do template é avaliado UMA vez e suas
      instâncias viram `ready` (submetidas ao pool) ou `skipped`
    - um worker do pool executa o nó até um único desfecho terminal

Timeouts:
    - o loop principal aguarda a condição da run com timeout igual ao
      deadline mais próximo; nós expirados viram `failed` com erro TIMEOUT
      e seu token é cancelado (a ação é convidada a parar)

Cancelamento:
    - o token da run propaga para os tokens dos nós
    - no cancelamento, todo nó não terminal vira `cancelled` sob o lock da
      run; um worker só marca `running` se o nó ainda estiver `ready` e a
      run não estiver cancelada, então nenhum nó inicia após o cancelamento
    - desfechos tardios de ações já canceladas/expiradas são ignorados

Fail-fast de matriz:
    - a primeira instância `failed` de um template com fail_fast cancela as
      irmãs ainda não terminais

Invariantes:
    - Nenhum nó executa duas vezes na mesma run
    - Nenhum nó entra em `running` antes de todos os predecessores terminais
    - Toda falha vira um GantryErrorPayload no NodeResult e no Manifest

Limites explícitos:
    - Não admite runs nem calcula chaves de concorrência (ver coordinator)
    - Não constrói o grafo (ver graph)
    - Não força o término de efeitos colaterais das ações
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional

from gantry.core.config.settings import DEFAULT_MAX_WORKERS
from gantry.core.errors import (
    ACTION_FAILED,
    TIMEOUT,
    GantryErrorPayload,
    action_failed,
    engine_execution_error,
    guard_evaluation_error,
    node_timeout,
)
from gantry.core.exceptions import ActionFailed, GantryException, GuardEvaluationError, Timeout
from gantry.core.pipeline.action import ActionExecutor, ActionInputs
from gantry.core.pipeline.context import RunContext
from gantry.core.pipeline.guards import GuardInputs, decide
from gantry.core.pipeline.types import NodeResult, NodeState, RunStatus
from gantry.core.traceability.manifest import (
    GantryManifest,
    node_ready,
    node_started,
    node_terminal,
    run_cancelled,
    run_finished,
    run_started,
)

from .cancellation import CancellationToken
from .graph import JobGraph


@dataclass(frozen=True)
class RunResult:
    """Resultado terminal de uma run."""

    run_id: str
    status: RunStatus
    nodes: Dict[str, NodeResult] = field(default_factory=dict)
    templates: Dict[str, NodeState] = field(default_factory=dict)
    cancelled_reason: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.status == RunStatus.SUCCEEDED else 1

    def state_of(self, name: str) -> NodeState:
        """Estado de um nó ou, para templates de matriz, o status agregado."""
        if name in self.nodes:
            return self.nodes[name].state
        return self.templates[name]

    def failed_nodes(self) -> List[NodeResult]:
        return [r for r in self.nodes.values() if r.state == NodeState.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "cancelled_reason": self.cancelled_reason,
            "templates": {k: v.value for k, v in self.templates.items()},
            "nodes": {k: v.to_dict() for k, v in self.nodes.items()},
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Engine:
    """Executor de uma run (planejamento já feito, grafo já expandido)."""

    def __init__(
        self,
        *,
        graph: JobGraph,
        ctx: RunContext,
        executor: ActionExecutor,
        token: Optional[CancellationToken] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        manifest: Optional[GantryManifest] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        self.graph = graph
        self.ctx = ctx
        self.executor = executor
        self.max_workers = max_workers
        self.manifest = manifest
        self.token = token or CancellationToken()
        self._clock = clock

        self._cond = threading.Condition()
        self._templates = {t.name: t for t in graph.templates}
        self._states: Dict[str, NodeState] = {name: NodeState.PENDING for name in graph.nodes}
        self._results: Dict[str, NodeResult] = {}
        self._waiting: Dict[str, int] = {t.name: len(t.needs) for t in graph.templates}
        self._done_templates: Dict[str, NodeState] = {}
        self._node_tokens: Dict[str, CancellationToken] = {}
        self._deadlines: Dict[str, float] = {}
        self._started_mono: Dict[str, float] = {}
        self._started_at: Dict[str, str] = {}
        self._pool: Optional[ThreadPoolExecutor] = None
        self._cancel_reason: Optional[str] = None
        self._ran = False
        self._finished = False

        self.token.add_callback(self._on_cancel)

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------
    def cancel(self, reason: str = "explicit abort") -> bool:
        return self.token.cancel(reason)

    def states(self) -> Dict[str, NodeState]:
        with self._cond:
            return dict(self._states)

    def run(self) -> RunResult:
        with self._cond:
            if self._ran:
                raise RuntimeError("engine already ran")
            self._ran = True
            self._pool = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix=f"gantry-{self.ctx.run_id[:8]}",
            )
            if self.manifest is not None:
                run_started(self.manifest, ts=_utcnow(), nodes=list(self.graph.nodes))
            self.ctx.log(node="*", level="info", message="run started", nodes=len(self.graph.nodes))

            if self._cancel_reason is None:
                for template in self.graph.roots():
                    self._evaluate_template(template.name)

            while not self._all_terminal():
                self._cond.wait(self._next_deadline_delay())
                self._expire_deadlines()

            self._finished = True
            result = self._build_result()
            if self.manifest is not None:
                run_finished(self.manifest, ts=_utcnow(), status=result.status.value)
            self.ctx.log(node="*", level="info", message=f"run {result.status.value}")

        # workers de nós cancelados/expirados podem seguir rodando a ação; não esperamos por eles
        self._pool.shutdown(wait=False, cancel_futures=True)
        return result

    # ------------------------------------------------------------------
    # Transições (sempre sob self._cond)
    # ------------------------------------------------------------------
    def _all_terminal(self) -> bool:
        return all(s.is_terminal for s in self._states.values())

    def _template_status(self, template: str) -> NodeState:
        return self._done_templates[template]

    def _evaluate_template(self, name: str) -> None:
        template = self._templates[name]
        instances = self.graph.instances[name]

        if not instances:
            self.ctx.log(node=name, level="info", message="matrix expanded to zero instances")
            self._template_finished(name)
            return

        needs = {dep: self._template_status(dep).value for dep in template.needs}
        inputs = GuardInputs(
            flags=self.ctx.flags,
            config=self.ctx.config,
            needs=MappingProxyType(needs),
            flags_unresolved=self.ctx.flags_unresolved,
        )

        try:
            decision = decide(template.guard, inputs)
        except GuardEvaluationError as e:
            self._fail_guard(name, message=e.message, details=e.details)
            return
        except Exception as e:
            self._fail_guard(
                name,
                message="Guard levantou exceção",
                details={"exc_type": e.__class__.__name__, "exc_message": str(e)},
            )
            return

        if decision.state == NodeState.SKIPPED:
            for node in instances:
                self._finish(node, NodeState.SKIPPED, summary=decision.reason, cascade=False)
            self._check_template(name)
            return

        for node in instances:
            self._states[node] = NodeState.READY
            self._node_tokens[node] = self.token.child()
            if self.manifest is not None:
                node_ready(
                    self.manifest,
                    node=node,
                    template=name,
                    kind=template.kind.value,
                    ts=_utcnow(),
                    reason=decision.reason,
                )
            self._pool.submit(self._execute, node)

    def _fail_guard(self, template: str, *, message: str, details: Dict[str, Any]) -> None:
        guard = self._templates[template].guard.describe()
        for node in self.graph.instances[template]:
            error = guard_evaluation_error(node=node, guard=guard, message=message, details=details)
            self._finish(node, NodeState.FAILED, summary=message, error=error, cascade=False)
        self._check_template(template)

    def _check_template(self, template: str) -> None:
        if template in self._done_templates:
            return
        if self.graph.template_status(template, self._states) is not None:
            self._template_finished(template)

    def _template_finished(self, template: str) -> None:
        status = self.graph.template_status(template, self._states)
        self._done_templates[template] = status
        if self._cancel_reason is not None:
            return
        for dependent in self.graph.dependents[template]:
            self._waiting[dependent] -= 1
            if self._waiting[dependent] == 0:
                self._evaluate_template(dependent)

    def _finish(
        self,
        name: str,
        state: NodeState,
        *,
        summary: str,
        outputs: Optional[Dict[str, Any]] = None,
        error: Optional[GantryErrorPayload] = None,
        cascade: bool = True,
    ) -> None:
        node = self.graph.nodes[name]
        self._states[name] = state
        self._deadlines.pop(name, None)

        result = NodeResult(
            name=name,
            template=node.template_name,
            kind=node.kind,
            state=state,
            summary=summary,
            outputs=dict(outputs or {}),
            params=dict(node.params),
            error=error.to_dict() if error is not None else None,
            started_at=self._started_at.get(name),
            finished_at=_utcnow().isoformat(),
        )
        self._results[name] = result
        self.ctx.set_outputs(name, result.outputs)
        if self.manifest is not None:
            node_terminal(self.manifest, ts=_utcnow(), result=result.to_dict())

        level = "error" if state == NodeState.FAILED else "info"
        self.ctx.log(node=name, level=level, message=f"{state.value}: {summary}" if summary else state.value)
        self._cond.notify_all()

        if not cascade:
            return

        template = node.template
        if (
            state == NodeState.FAILED
            and node.is_matrix_instance
            and template.matrix is not None
            and template.matrix.fail_fast
        ):
            for sibling in self.graph.instances[template.name]:
                if sibling != name and not self._states[sibling].is_terminal:
                    self._cancel_node(sibling, reason=f"fail-fast: {name} failed")

        self._check_template(template.name)

    def _cancel_node(self, name: str, *, reason: str) -> None:
        token = self._node_tokens.get(name)
        if token is not None:
            token.cancel(reason)
        self._finish(name, NodeState.CANCELLED, summary=reason, cascade=False)

    def _on_cancel(self) -> None:
        with self._cond:
            if self._finished or self._cancel_reason is not None:
                return
            self._cancel_reason = self.token.reason or "cancelled"
            if self.manifest is not None:
                run_cancelled(self.manifest, ts=_utcnow(), reason=self._cancel_reason)
            self.ctx.log(node="*", level="warning", message=f"run cancelled: {self._cancel_reason}")
            for name in self.graph.nodes:
                if not self._states[name].is_terminal:
                    self._cancel_node(name, reason=self._cancel_reason)
            self._cond.notify_all()

    # ------------------------------------------------------------------
    # Timeouts
    # ------------------------------------------------------------------
    def _next_deadline_delay(self) -> Optional[float]:
        if not self._deadlines:
            return None
        return max(0.0, min(self._deadlines.values()) - self._clock())

    def _expire_deadlines(self) -> None:
        now = self._clock()
        for name, deadline in sorted(self._deadlines.items(), key=lambda kv: kv[1]):
            if now < deadline or self._states[name] != NodeState.RUNNING:
                continue
            node = self.graph.nodes[name]
            self._node_tokens[name].cancel("timeout")
            self._finish(
                name,
                NodeState.FAILED,
                summary=f"timed out after {node.timeout_s:g}s",
                error=node_timeout(
                    node=name,
                    timeout_s=node.timeout_s,
                    elapsed_s=now - self._started_mono[name],
                ),
            )

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _inputs_for(self, name: str) -> ActionInputs:
        node = self.graph.nodes[name]
        upstream: Dict[str, Dict[str, Any]] = {}
        for dep in node.needs:
            for instance in self.graph.instances[dep]:
                if self.ctx.has_outputs(instance):
                    upstream[instance] = self.ctx.get_outputs(instance)
        return ActionInputs(
            run_id=self.ctx.run_id,
            node=name,
            template=node.template_name,
            params=MappingProxyType(dict(node.params)),
            upstream=MappingProxyType(upstream),
            config=self.ctx.config,
            flags=self.ctx.flags,
            trigger=self.ctx.trigger,
        )

    def _exception_to_error(self, node: str, exc: Exception) -> GantryErrorPayload:
        """Converte exceções da ação em payload canônico (sem stack trace)."""
        if isinstance(exc, GantryException):
            if isinstance(exc, ActionFailed):
                code = ACTION_FAILED
            elif isinstance(exc, Timeout):
                code = TIMEOUT
            else:
                code = exc.__class__.__name__
            return GantryErrorPayload(
                type=code,
                message=exc.message or "Erro de execução",
                details={"node": node, **dict(exc.details or {})},
                hint=exc.hint,
            )
        return engine_execution_error(node=node, exc_type=exc.__class__.__name__, exc_message=str(exc))

    def _execute(self, name: str) -> None:
        node = self.graph.nodes[name]
        with self._cond:
            if self._states[name] != NodeState.READY or self.token.is_cancelled:
                return
            token = self._node_tokens[name]
            now = self._clock()
            self._states[name] = NodeState.RUNNING
            self._started_mono[name] = now
            self._started_at[name] = _utcnow().isoformat()
            self._deadlines[name] = now + node.timeout_s
            if self.manifest is not None:
                node_started(self.manifest, node=name, ts=_utcnow(), timeout_s=node.timeout_s)
            self.ctx.log(node=name, level="info", message="started", params=dict(node.params))
            inputs = self._inputs_for(name)
            self._cond.notify_all()

        error: Optional[GantryErrorPayload] = None
        outputs: Dict[str, Any] = {}
        try:
            outcome = self.executor.execute(node.template.action, inputs, token)
            state, outputs, summary = outcome.status, dict(outcome.outputs), outcome.summary
            if state == NodeState.FAILED:
                error = action_failed(node=name, message=summary or "Ação reportou falha", outputs=outputs)
        except Exception as e:
            error = self._exception_to_error(name, e)
            state, summary = NodeState.FAILED, error.message

        with self._cond:
            if self._states[name] != NodeState.RUNNING:
                self.ctx.log(
                    node=name,
                    level="warning",
                    message=f"late outcome ignored ({state.value}); node is {self._states[name].value}",
                )
                return
            self._finish(name, state, summary=summary, outputs=outputs, error=error)

    # ------------------------------------------------------------------
    # Resultado
    # ------------------------------------------------------------------
    def _build_result(self) -> RunResult:
        templates = {
            t.name: self.graph.template_status(t.name, self._states) or NodeState.CANCELLED
            for t in self.graph.templates
        }
        if self._cancel_reason is not None:
            status = RunStatus.CANCELLED
        elif any(
            r.state == NodeState.FAILED and not self._templates[r.template].continue_on_error
            for r in self._results.values()
        ):
            status = RunStatus.FAILED
        else:
            status = RunStatus.SUCCEEDED

        ordered = {name: self._results[name] for name in self.graph.nodes}
        return RunResult(
            run_id=self.ctx.run_id,
            status=status,
            nodes=ordered,
            templates=templates,
            cancelled_reason=self._cancel_reason,
        )
