# src/gantry/core/pipeline/guards.py
"""
Guards — condições que decidem `pending → ready | skipped`.

Um guard combina:
    - uma expressão opcional (string na linguagem restrita abaixo, ou
      função Python `GuardInputs -> bool`)
    - o modificador `always_run`

Entradas de um guard (exatamente três tipos):
    - flags  → flags do Change Detector (flag desconhecida vale False)
    - config → outputs do Config Loader (ex.: config["code-analysis"])
    - needs  → estado terminal de cada predecessor declarado
               ("succeeded", "failed", "skipped", "cancelled")

Regra de decisão (`decide`):
    1. Sem `always_run`: qualquer predecessor diferente de `succeeded`
       pula o nó (upstream `skipped`/`failed` não é tolerado).
    2. Com `always_run`: o estado dos predecessores não bloqueia.
    3. Base do diff não resolvida (`flags_unresolved`): toda expressão que
       lê `flags` vale o default seguro false e o nó é pulado, inclusive
       formas negadas como `not flags["backend"]`.
    4. Sem expressão → ready; com expressão → ready sse ela for verdadeira.

A avaliação é pura e acontece uma única vez por nó, no instante em que
todos os predecessores ficam terminais; as entradas são imutáveis na run.

Linguagem de expressão (validada no parse, sem `eval`):
    - nomes: flags, config, needs, True, False, None
    - subscripts com chave literal: flags["backend"], config["frontend"]
    - métodos: <nome>.get(chave[, default])
    - comparações (==, !=, <, <=, >, >=, in, not in, is None, is not None)
    - and / or / not, literais e listas/tuplas/conjuntos de literais
"""

from __future__ import annotations

import ast
import operator
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Mapping, Optional, Set, Union

from gantry.core.exceptions import GuardEvaluationError, InvalidGuardExpression

from .types import NodeState

GUARD_NAMES = frozenset({"flags", "config", "needs"})

_COMPARISON_OPS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}


@dataclass(frozen=True)
class GuardInputs:
    """Entradas imutáveis de avaliação de um guard."""

    flags: Mapping[str, bool] = field(default_factory=dict)
    config: Mapping[str, Any] = field(default_factory=dict)
    needs: Mapping[str, str] = field(default_factory=dict)
    flags_unresolved: bool = False


class _FlagReads(Mapping[str, bool]):
    """Flags que registram se foram lidas (guards definidos como função)."""

    def __init__(self, flags: Mapping[str, bool]) -> None:
        self._flags = flags
        self.touched = False

    def __getitem__(self, key: str) -> bool:
        self.touched = True
        return self._flags[key]

    def __iter__(self) -> Iterator[str]:
        self.touched = True
        return iter(self._flags)

    def __len__(self) -> int:
        self.touched = True
        return len(self._flags)


class _GuardValidator(ast.NodeVisitor):
    """Rejeita qualquer construção fora da linguagem de guards."""

    def __init__(self) -> None:
        self.errors: List[str] = []
        self.referenced_needs: Set[str] = set()
        self.references_flags = False
        self._in_call_func = False

    def _is_guard_root(self, node: ast.AST) -> bool:
        return isinstance(node, ast.Name) and node.id in GUARD_NAMES

    def visit_Expression(self, node: ast.Expression) -> None:
        self.visit(node.body)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id == "flags":
            self.references_flags = True
        if node.id not in GUARD_NAMES and node.id not in {"True", "False", "None"}:
            self.errors.append(f"Forbidden name: {node.id!r}")

    def visit_Constant(self, node: ast.Constant) -> None:
        if node.value is not None and not isinstance(node.value, (str, int, float, bool)):
            self.errors.append(f"Forbidden constant type: {type(node.value).__name__}")

    def visit_Subscript(self, node: ast.Subscript) -> None:
        if not self._is_guard_root(node.value):
            self.errors.append("Subscript is only allowed directly on flags, config or needs")
        key = node.slice
        if not (isinstance(key, ast.Constant) and isinstance(key.value, str)):
            self.errors.append("Subscript key must be a string literal")
        elif isinstance(node.value, ast.Name) and node.value.id == "needs":
            self.referenced_needs.add(key.value)
        self.visit(node.value)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if not (self._in_call_func and self._is_guard_root(node.value) and node.attr == "get"):
            self.errors.append(f"Forbidden attribute access: {node.attr!r}")
        self.visit(node.value)

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        if not (isinstance(func, ast.Attribute) and self._is_guard_root(func.value) and func.attr == "get"):
            self.errors.append("Only flags.get / config.get / needs.get calls are allowed")
            return
        if node.keywords or not 1 <= len(node.args) <= 2:
            self.errors.append(".get() requires 1 or 2 positional arguments")
        first = node.args[0] if node.args else None
        if not (isinstance(first, ast.Constant) and isinstance(first.value, str)):
            self.errors.append(".get() key must be a string literal")
        elif isinstance(func.value, ast.Name) and func.value.id == "needs":
            self.referenced_needs.add(first.value)
        self._in_call_func = True
        self.visit(func)
        self._in_call_func = False
        for arg in node.args:
            self.visit(arg)

    def visit_Compare(self, node: ast.Compare) -> None:
        for op in node.ops:
            if type(op) not in _COMPARISON_OPS:
                self.errors.append(f"Forbidden comparison operator: {type(op).__name__}")
        self.visit(node.left)
        for c in node.comparators:
            self.visit(c)

    def visit_BoolOp(self, node: ast.BoolOp) -> None:
        for v in node.values:
            self.visit(v)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> None:
        if not isinstance(node.op, ast.Not):
            self.errors.append(f"Forbidden unary operator: {type(node.op).__name__}")
        self.visit(node.operand)

    def visit_List(self, node: ast.List) -> None:
        for e in node.elts:
            self.visit(e)

    visit_Tuple = visit_List
    visit_Set = visit_List

    def generic_visit(self, node: ast.AST) -> None:
        self.errors.append(f"Forbidden construct: {type(node).__name__}")


class _GuardEvaluator(ast.NodeVisitor):
    def __init__(self, inputs: GuardInputs) -> None:
        self._roots: Dict[str, Mapping[str, Any]] = {
            "flags": inputs.flags,
            "config": inputs.config,
            "needs": inputs.needs,
        }

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id in self._roots:
            return self._roots[node.id]
        return {"True": True, "False": False, "None": None}[node.id]

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        root = node.value.id  # type: ignore[attr-defined]
        key = node.slice.value  # type: ignore[attr-defined]
        mapping = self._roots[root]
        if root == "flags":
            return bool(mapping.get(key, False))
        if key not in mapping:
            raise GuardEvaluationError(
                message=f"{root}[{key!r}] não está disponível para o guard",
                details={"root": root, "key": key},
            )
        return mapping[key]

    def visit_Call(self, node: ast.Call) -> Any:
        root = node.func.value.id  # type: ignore[attr-defined]
        args = [self.visit(a) for a in node.args]
        return self._roots[root].get(*args)

    def visit_Compare(self, node: ast.Compare) -> Any:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            try:
                if not _COMPARISON_OPS[type(op)](left, right):
                    return False
            except TypeError as e:
                raise GuardEvaluationError(
                    message=f"Comparação inválida entre {type(left).__name__} e {type(right).__name__}",
                    details={"operator": type(op).__name__},
                ) from e
            left = right
        return True

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        result: Any = None
        if isinstance(node.op, ast.And):
            for value in node.values:
                result = self.visit(value)
                if not result:
                    return result
            return result
        for value in node.values:
            result = self.visit(value)
            if result:
                return result
        return result

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        return not self.visit(node.operand)

    def visit_List(self, node: ast.List) -> Any:
        return [self.visit(e) for e in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> Any:
        return tuple(self.visit(e) for e in node.elts)

    def visit_Set(self, node: ast.Set) -> Any:
        return {self.visit(e) for e in node.elts}


class GuardExpression:
    """Expressão de guard parseada e validada na construção."""

    def __init__(self, source: str) -> None:
        self.source = source
        try:
            self._ast = ast.parse(source.strip(), mode="eval")
        except SyntaxError as e:
            raise InvalidGuardExpression(
                message=f"Sintaxe inválida no guard: {e.msg}",
                details={"expression": source},
            ) from e

        validator = _GuardValidator()
        validator.visit(self._ast)
        if validator.errors:
            raise InvalidGuardExpression(
                message="Guard contém construções não permitidas",
                details={"expression": source, "errors": validator.errors},
                hint="Use apenas flags[...], config[...], needs[...], comparações e and/or/not.",
            )
        self.referenced_needs: FrozenSet[str] = frozenset(validator.referenced_needs)
        self.references_flags: bool = validator.references_flags

    def evaluate(self, inputs: GuardInputs) -> bool:
        return bool(_GuardEvaluator(inputs).visit(self._ast))

    def __repr__(self) -> str:
        return f"GuardExpression({self.source!r})"


GuardCallable = Callable[[GuardInputs], bool]


@dataclass(frozen=True)
class Guard:
    """
    Guard de um job: expressão opcional + modificador `always_run`.

    Construtores usuais:
        Guard()                         → default: todos os predecessores succeeded
        Guard.when('flags["backend"]')  → default + expressão
        Guard.always()                  → roda mesmo com predecessores skipped/failed
    """

    expression: Optional[Union[GuardExpression, GuardCallable]] = None
    always_run: bool = False

    @classmethod
    def when(cls, expression: Union[str, GuardCallable], *, always_run: bool = False) -> "Guard":
        expr = GuardExpression(expression) if isinstance(expression, str) else expression
        return cls(expression=expr, always_run=always_run)

    @classmethod
    def always(cls, expression: Union[str, GuardCallable, None] = None) -> "Guard":
        if expression is None:
            return cls(always_run=True)
        return cls.when(expression, always_run=True)

    @property
    def referenced_needs(self) -> FrozenSet[str]:
        if isinstance(self.expression, GuardExpression):
            return self.expression.referenced_needs
        return frozenset()

    def describe(self) -> str:
        if self.expression is None:
            text = "all predecessors succeeded"
        elif isinstance(self.expression, GuardExpression):
            text = self.expression.source
        else:
            text = getattr(self.expression, "__name__", "<callable>")
        return f"always() && {text}" if self.always_run else text

    def evaluate(self, inputs: GuardInputs) -> bool:
        if self.expression is None:
            return True
        if isinstance(self.expression, GuardExpression):
            return self.expression.evaluate(inputs)
        return bool(self.expression(inputs))

    def reads_flags(self, inputs: GuardInputs) -> bool:
        """
        Indica se a expressão depende de flags.

        Expressões da linguagem de guards são inspecionadas no parse; funções
        são executadas uma vez contra flags que registram o acesso.
        """
        if self.expression is None:
            return False
        if isinstance(self.expression, GuardExpression):
            return self.expression.references_flags
        recorded = _FlagReads(inputs.flags)
        self.expression(replace(inputs, flags=recorded))
        return recorded.touched


@dataclass(frozen=True)
class GuardDecision:
    state: NodeState
    reason: str


def decide(guard: Guard, inputs: GuardInputs) -> GuardDecision:
    """
    Decide `ready` ou `skipped` a partir dos estados terminais dos predecessores.

    Raises:
        GuardEvaluationError: a expressão referencia uma entrada inexistente
            ou compara tipos incompatíveis.
    """
    if not guard.always_run:
        blocking = sorted(
            name for name, status in inputs.needs.items() if status != NodeState.SUCCEEDED.value
        )
        if blocking:
            first = blocking[0]
            return GuardDecision(
                state=NodeState.SKIPPED,
                reason=f"predecessor '{first}' is {inputs.needs[first]}",
            )

    if inputs.flags_unresolved and guard.reads_flags(inputs):
        return GuardDecision(state=NodeState.SKIPPED, reason=f"base unresolvable: {guard.describe()}")

    if guard.evaluate(inputs):
        return GuardDecision(state=NodeState.READY, reason=f"guard satisfied: {guard.describe()}")
    return GuardDecision(state=NodeState.SKIPPED, reason=f"guard is false: {guard.describe()}")
