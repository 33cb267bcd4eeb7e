# tests/core/pipeline/test_guards.py
"""
Testes dos guards (linguagem de expressão restrita + regra de decisão).

Os testes asseguram que:
- expressões válidas avaliam sobre flags, config e needs
- flags desconhecidas valem False
- construções fora da linguagem são rejeitadas no parse
- sem `always_run`, qualquer predecessor não `succeeded` pula o nó
- com `always_run`, o estado dos predecessores não bloqueia
- com a base do diff não resolvida, todo guard que lê flags pula o nó
"""

import pytest

from gantry.core.exceptions import GuardEvaluationError, InvalidGuardExpression
from gantry.core.pipeline.guards import Guard, GuardExpression, GuardInputs, decide
from gantry.core.pipeline.types import NodeState


def _inputs(flags=None, config=None, needs=None, flags_unresolved=False):
    return GuardInputs(
        flags=flags or {},
        config=config or {},
        needs=needs or {},
        flags_unresolved=flags_unresolved,
    )


@pytest.mark.parametrize(
    "source, expected",
    [
        ('flags["backend"]', True),
        ('flags["frontend"]', False),
        ('flags["unknown"]', False),
        ('not flags["frontend"]', True),
        ('flags["backend"] and config["frontend"] == "web"', True),
        ('flags["frontend"] or config.get("missing", "x") == "x"', True),
        ('config["code-analysis"] != "false"', True),
        ('"csharp" in config["code-analysis"]', True),
        ('needs["build"] in ["succeeded", "skipped"]', True),
        ('needs.get("build") == "failed"', False),
        ('config.get("nope") is None', True),
    ],
)
def test_expression_evaluation(source, expected):
    inputs = _inputs(
        flags={"backend": True, "frontend": False},
        config={"frontend": "web", "code-analysis": ["csharp"]},
        needs={"build": "succeeded"},
    )
    assert GuardExpression(source).evaluate(inputs) is expected


@pytest.mark.parametrize(
    "source",
    [
        "__import__('os')",
        "flags.backend",
        "flags[backend]",
        "open('x')",
        "[x for x in flags]",
        "flags['a'] + 1",
        "lambda: True",
        "config['a']['b']",
        "flags.keys()",
        "flags[",
    ],
)
def test_forbidden_constructs_are_rejected(source):
    with pytest.raises(InvalidGuardExpression):
        GuardExpression(source)


def test_referenced_needs_are_collected():
    expr = GuardExpression('needs["a"] == "failed" or needs.get("b") == "skipped"')
    assert expr.referenced_needs == frozenset({"a", "b"})


def test_missing_config_key_is_runtime_error():
    with pytest.raises(GuardEvaluationError):
        GuardExpression('config["absent"] == "x"').evaluate(_inputs())


def test_incompatible_comparison_is_runtime_error():
    with pytest.raises(GuardEvaluationError):
        GuardExpression('config["n"] > "a"').evaluate(_inputs(config={"n": 3}))


def test_default_guard_requires_all_predecessors_succeeded():
    decision = decide(Guard(), _inputs(needs={"a": "succeeded", "b": "skipped"}))
    assert decision.state == NodeState.SKIPPED
    assert "b" in decision.reason

    assert decide(Guard(), _inputs(needs={"a": "succeeded"})).state == NodeState.READY


def test_failed_predecessor_skips_even_with_true_expression():
    guard = Guard.when('flags["backend"]')
    decision = decide(guard, _inputs(flags={"backend": True}, needs={"build": "failed"}))
    assert decision.state == NodeState.SKIPPED


def test_false_expression_skips():
    decision = decide(Guard.when('flags["frontend"]'), _inputs(flags={"frontend": False}))
    assert decision.state == NodeState.SKIPPED
    assert "guard is false" in decision.reason


def test_always_run_ignores_predecessor_states():
    needs = {"a": "failed", "b": "skipped", "c": "cancelled"}
    assert decide(Guard.always(), _inputs(needs=needs)).state == NodeState.READY


def test_always_run_still_evaluates_expression():
    guard = Guard.always('needs["a"] == "failed"')
    assert decide(guard, _inputs(needs={"a": "failed"})).state == NodeState.READY
    assert decide(guard, _inputs(needs={"a": "succeeded"})).state == NodeState.SKIPPED
    assert guard.describe() == 'always() && needs["a"] == "failed"'


def test_callable_guard():
    guard = Guard.when(lambda inputs: inputs.config.get("docker") == [])
    assert decide(guard, _inputs(config={"docker": []})).state == NodeState.READY
    assert guard.referenced_needs == frozenset()


@pytest.mark.parametrize(
    "source",
    [
        'flags["backend"]',
        'not flags["backend"]',
        'flags["backend"] == False',
        'flags.get("backend", True)',
        'config["docker"] == [] or not flags["frontend"]',
    ],
)
def test_unresolved_base_skips_every_flag_guard(source):
    inputs = _inputs(flags={"backend": False, "frontend": False}, config={"docker": []}, flags_unresolved=True)
    decision = decide(Guard.when(source), inputs)
    assert decision.state == NodeState.SKIPPED
    assert decision.reason.startswith("base unresolvable")


def test_unresolved_base_skips_always_run_flag_guard():
    guard = Guard.always('not flags["backend"]')
    assert decide(guard, _inputs(flags_unresolved=True)).state == NodeState.SKIPPED


def test_unresolved_base_does_not_affect_guards_without_flags():
    inputs = _inputs(config={"docker": []}, flags_unresolved=True)
    assert decide(Guard(), inputs).state == NodeState.READY
    assert decide(Guard.always(), inputs).state == NodeState.READY
    assert decide(Guard.when('config["docker"] == []'), inputs).state == NodeState.READY


def test_flag_references_are_collected():
    assert GuardExpression('not flags["backend"]').references_flags
    assert GuardExpression('flags.get("x") == False').references_flags
    assert not GuardExpression('config["docker"] == []').references_flags


def test_unresolved_base_with_callable_guard():
    reads_flags = Guard.when(lambda inputs: not inputs.flags.get("backend", False))
    config_only = Guard.when(lambda inputs: inputs.config.get("docker") == [])
    inputs = _inputs(config={"docker": []}, flags_unresolved=True)

    assert decide(reads_flags, inputs).state == NodeState.SKIPPED
    assert decide(config_only, inputs).state == NodeState.READY
