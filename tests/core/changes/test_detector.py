# tests/core/changes/test_detector.py
"""
Testes do Change Detector.

Os testes asseguram que:
- cada grupo de filtros vira exatamente uma flag
- a mesma tripla (base, head, globs) produz sempre as mesmas flags
- base não resolvida não aborta a run: todas as flags ficam False e o
  ChangeSet carrega o erro BASE_UNRESOLVABLE

Decisões arquiteturais:
    - O RevisionSource é um colaborador externo (aqui, listas fixas)
    - Flags são imutáveis depois de calculadas
"""

import pytest

from gantry.core.changes.detector import ChangeDetector, ChangedFilesRevisionSource
from gantry.core.errors import BASE_UNRESOLVABLE
from gantry.core.exceptions import BaseUnresolvable

FILTERS = {
    "backend": ["**/*.cs", "**/*.csproj"],
    "frontend": ["NG.Host.Frontend/**"],
}


def _detector(files):
    return ChangeDetector(ChangedFilesRevisionSource({("main", "head-sha"): files}))


def test_backend_only_change():
    changes = _detector(["NG.Host/Program.cs"]).detect(base="main", head="head-sha", filters=FILTERS)

    assert dict(changes.flags) == {"backend": True, "frontend": False}
    assert not changes.unresolved
    assert changes.error is None


def test_frontend_and_backend_change():
    changes = _detector(["NG.Host/NG.Host.csproj", "NG.Host.Frontend/src/main.ts"]).detect(
        base="main", head="head-sha", filters=FILTERS
    )
    assert dict(changes.flags) == {"backend": True, "frontend": True}


def test_no_relevant_change():
    changes = _detector(["README.md"]).detect(base="main", head="head-sha", filters=FILTERS)
    assert dict(changes.flags) == {"backend": False, "frontend": False}


def test_detection_is_deterministic():
    detector = _detector(["NG.Host/Program.cs", "NG.Host.Frontend/x.ts"])
    first = detector.detect(base="main", head="head-sha", filters=FILTERS)
    second = detector.detect(base="main", head="head-sha", filters=dict(reversed(list(FILTERS.items()))))

    assert dict(first.flags) == dict(second.flags)
    assert list(first.flags) == list(second.flags) == ["backend", "frontend"]


def test_flags_are_read_only():
    changes = _detector(["NG.Host/Program.cs"]).detect(base="main", head="head-sha", filters=FILTERS)
    with pytest.raises(TypeError):
        changes.flags["backend"] = False


def test_unknown_base_defaults_all_flags_to_false():
    """
    Base não resolvida → flags False + erro tipado, sem exceção.

    Guards que dependem das flags afetadas pulam seus nós; a run segue.
    """
    changes = _detector(["NG.Host/Program.cs"]).detect(base="deleted-branch", head="head-sha", filters=FILTERS)

    assert dict(changes.flags) == {"backend": False, "frontend": False}
    assert changes.unresolved
    assert changes.error.type == BASE_UNRESOLVABLE
    assert changes.error.details["base"] == "deleted-branch"


def test_missing_base_is_unresolved():
    changes = _detector([]).detect(base=None, head="head-sha", filters=FILTERS)
    assert changes.unresolved
    assert not any(changes.flags.values())


def test_callable_source_raising_base_unresolvable():
    def files(base, head):
        raise BaseUnresolvable(message=f"unknown revision {base}", details={"base": base})

    changes = ChangeDetector(ChangedFilesRevisionSource(files)).detect(base="main", head="x", filters=FILTERS)
    assert changes.unresolved
    assert changes.to_dict()["error"]["type"] == BASE_UNRESOLVABLE


def test_group_with_no_globs_is_false():
    changes = _detector(["a.cs"]).detect(base="main", head="head-sha", filters={"empty": []})
    assert dict(changes.flags) == {"empty": False}
