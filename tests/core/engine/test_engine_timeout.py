# tests/core/engine/test_engine_timeout.py
"""
Testes de timeout de nós na Engine.

Os testes asseguram que:
- um nó que excede seu timeout termina `failed` com erro TIMEOUT
- o token do nó é cancelado (a ação é convidada a parar)
- sucessores sem always_run são pulados; cleanup always executa
"""

import threading

from gantry.core.pipeline.guards import Guard
from gantry.core.pipeline.types import NodeState, RunStatus


def test_node_timeout_fails_and_cancels_token(make_template, scripted_executor, run_graph):
    observed = {}
    released = threading.Event()

    def hang(inputs, token):
        observed["cancelled"] = token.wait(5)
        observed["reason"] = token.reason
        released.set()
        return {"late": True}

    templates = [
        make_template("unit-testing", timeout=0.05),
        make_template("publish", needs=("unit-testing",)),
        make_template("cleanup", needs=("unit-testing",), guard=Guard.always()),
    ]
    result, _ = run_graph(templates, scripted_executor({"unit-testing": hang}))

    node = result.nodes["unit-testing"]
    assert node.state == NodeState.FAILED
    assert node.error["type"] == "TIMEOUT"
    assert node.error["details"]["timeout_s"] == 0.05
    assert node.outputs == {}
    assert result.nodes["publish"].state == NodeState.SKIPPED
    assert result.nodes["cleanup"].state == NodeState.SUCCEEDED
    assert result.status == RunStatus.FAILED

    assert released.wait(5)
    assert observed == {"cancelled": True, "reason": "timeout"}


def test_fast_node_is_not_affected_by_timeout(make_template, scripted_executor, run_graph):
    result, _ = run_graph([make_template("lint", timeout=5)], scripted_executor())
    assert result.nodes["lint"].state == NodeState.SUCCEEDED
