# src/gantry/core/traceability/__init__.py
"""
Rastreabilidade de runs do Gantry (Manifest).

API pública:
    - GantryManifest  → estrutura canônica do Manifest
    - create_manifest → criação explícita (Event Log vazio)
    - add_event       → registro explícito de eventos
    - run_started / run_cancelled / run_finished
    - node_ready / node_started / node_terminal
    - save_manifest / load_manifest → round-trip JSON

Nenhum evento é emitido implicitamente; a ordem do Event Log reflete a
ordem de chamada.
"""

from .manifest import (
    GantryManifest,
    add_event,
    create_manifest,
    load_manifest,
    node_ready,
    node_started,
    node_terminal,
    run_cancelled,
    run_finished,
    run_started,
    save_manifest,
)

__all__ = [
    "GantryManifest",
    "add_event",
    "create_manifest",
    "load_manifest",
    "node_ready",
    "node_started",
    "node_terminal",
    "run_cancelled",
    "run_finished",
    "run_started",
    "save_manifest",
]
