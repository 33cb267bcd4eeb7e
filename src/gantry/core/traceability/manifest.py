# src/gantry/core/traceability/manifest.py
"""
Manifest — rastreabilidade de runs do Gantry.

O Manifest consolida, de forma determinística e auditável:
    - metadados da run (run_id, pipeline, chave de concorrência, trigger,
      versão do gantry, início/fim, status final)
    - entradas da run (hash do config efetivo e flags de mudança)
    - estado incremental de cada nó (inclusive instâncias de matriz)
    - Event Log ordenado de eventos explícitos

Eventos canônicos:
    run_started, node_ready, node_started, node_finished, node_failed,
    node_skipped, node_cancelled, run_cancelled, run_finished

Princípios fundamentais:
    - Nenhum evento é emitido implicitamente
    - A ordem do Event Log reflete a ordem real das transições
    - O Manifest é serializável e reconstruível (round-trip JSON)

Decisões arquiteturais:
    - UTC é o timezone canônico de todos os timestamps
    - A Engine chama a API sob o lock da run; o Manifest em si não
      sincroniza acesso

Limites explícitos:
    - Não executa nós
    - Não decide políticas de skip, cancelamento ou timeout
    - Não persiste automaticamente
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """Timestamps naive são assumidos como UTC; aware são convertidos para UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


# Estado terminal → tipo de evento registrado.
_TERMINAL_EVENTS = {
    "succeeded": "node_finished",
    "failed": "node_failed",
    "skipped": "node_skipped",
    "cancelled": "node_cancelled",
}


@dataclass
class GantryManifest:
    """
    Registro de uma run.

    Campos principais:
        - run: metadados da execução
        - inputs: config_hash, flags e estado da detecção de mudanças
        - nodes: estado incremental por nó
        - events: Event Log ordenado

    Invariantes:
        - `nodes` é indexado pelo nome do nó
        - `events` é sempre uma lista ordenada
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    nodes: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "nodes": {k: dict(v) for k, v in self.nodes.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GantryManifest":
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            nodes={k: dict(v) for k, v in (data.get("nodes", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )

    def events_of(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e.get("event_type") == event_type]


def create_manifest(
    *,
    run_id: str,
    started_at: datetime,
    gantry_version: str,
    pipeline: str,
    concurrency_key: str,
    trigger: Mapping[str, Any],
    config_hash: str,
    flags: Mapping[str, bool],
    flags_unresolved: bool = False,
    flags_hash: Optional[str] = None,
) -> GantryManifest:
    """
    Cria o Manifest inicial de uma run.

    Importante: nenhum evento é emitido aqui; o Event Log inicia vazio e
    só é preenchido via `run_started`, `node_*` e `run_finished`.
    """
    started_at = _ensure_tzaware_utc(started_at)
    return GantryManifest(
        run={
            "run_id": run_id,
            "pipeline": pipeline,
            "concurrency_key": concurrency_key,
            "trigger": dict(trigger),
            "started_at": _iso(started_at),
            "gantry_version": gantry_version,
            "status": "pending",
        },
        inputs={
            "config_hash": config_hash,
            "flags": dict(flags),
            "flags_hash": flags_hash,
            "flags_unresolved": bool(flags_unresolved),
        },
    )


def add_event(
    manifest: GantryManifest,
    *,
    event_type: str,
    ts: datetime,
    node: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """Adiciona um evento explícito ao Event Log (ordem de chamada preservada)."""
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if node is not None:
        ev["node"] = node
    if payload is not None:
        ev["payload"] = payload
    manifest.events.append(ev)


def run_started(manifest: GantryManifest, *, ts: datetime, nodes: List[str]) -> None:
    manifest.run["status"] = "running"
    add_event(manifest, event_type="run_started", ts=ts, payload={"nodes": list(nodes)})


def node_ready(manifest: GantryManifest, *, node: str, template: str, kind: str, ts: datetime, reason: str) -> None:
    n = manifest.nodes.setdefault(node, {"node": node})
    n.update({"template": template, "kind": kind, "state": "ready"})
    add_event(manifest, event_type="node_ready", ts=ts, node=node, payload={"reason": reason})


def node_started(manifest: GantryManifest, *, node: str, ts: datetime, timeout_s: float) -> None:
    n = manifest.nodes.setdefault(node, {"node": node})
    n.update({"state": "running", "started_at": _iso(ts), "timeout_s": timeout_s})
    add_event(manifest, event_type="node_started", ts=ts, node=node, payload={"timeout_s": timeout_s})


def node_terminal(manifest: GantryManifest, *, ts: datetime, result: Mapping[str, Any]) -> None:
    """
    Registra o estado terminal de um nó a partir de `NodeResult.to_dict()`.

    O tipo do evento depende do estado: node_finished (succeeded),
    node_failed, node_skipped ou node_cancelled.
    """
    name = result["name"]
    state = result["state"]
    n = manifest.nodes.setdefault(name, {"node": name})

    duration_ms: Optional[int] = None
    started_iso = n.get("started_at")
    if started_iso:
        duration_ms = _ms_between(datetime.fromisoformat(started_iso), ts)

    n.update(
        {
            "template": result.get("template"),
            "kind": result.get("kind"),
            "state": state,
            "finished_at": _iso(ts),
            "duration_ms": duration_ms,
            "summary": result.get("summary"),
            "params": dict(result.get("params") or {}),
            "outputs": dict(result.get("outputs") or {}),
            "error": result.get("error"),
        }
    )

    payload: Dict[str, Any] = {"state": state}
    if duration_ms is not None:
        payload["duration_ms"] = duration_ms
    if result.get("error") is not None:
        payload["error_type"] = result["error"].get("type")
    elif result.get("summary"):
        payload["reason"] = result["summary"]

    add_event(manifest, event_type=_TERMINAL_EVENTS[state], ts=ts, node=name, payload=payload)


def run_cancelled(manifest: GantryManifest, *, ts: datetime, reason: str) -> None:
    add_event(manifest, event_type="run_cancelled", ts=ts, payload={"reason": reason})


def run_finished(manifest: GantryManifest, *, ts: datetime, status: str) -> None:
    started = datetime.fromisoformat(manifest.run["started_at"])
    manifest.run.update(
        {
            "status": status,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started, ts),
        }
    )
    add_event(manifest, event_type="run_finished", ts=ts, payload={"status": status})


def save_manifest(manifest: GantryManifest, path: Path) -> None:
    """
    Persiste o Manifest em JSON determinístico (chaves ordenadas).

    Raises:
        OSError: falha ao criar diretórios ou escrever o arquivo.
        TypeError: conteúdo não serializável.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(manifest.to_dict(), ensure_ascii=False, indent=2, sort_keys=True),
        encoding="utf-8",
    )


def load_manifest(path: Path) -> GantryManifest:
    data = json.loads(path.read_text(encoding="utf-8"))
    return GantryManifest.from_dict(data)
