# tests/core/config/test_query.py
"""
Testes das queries tipadas sobre documentos de configuração.

Regras validadas:
    - caminho ausente + required → ConfigMissing
    - caminho ausente + opcional → default documentado (cópia)
    - formato incompatível → ConfigTypeMismatch
    - chaves com hífen e caminhos aninhados (estilo yq)
"""

import pytest

from gantry.core.config.errors import ConfigMissing, ConfigTypeMismatch
from gantry.core.config.query import ConfigQuery, QueryKind, resolve_queries, resolve_query, split_path


def test_split_path_accepts_hyphenated_keys():
    assert split_path(".code-analysis-languages") == ["code-analysis-languages"]
    assert split_path(".engine.max_workers") == ["engine", "max_workers"]
    assert split_path(".") == []

    with pytest.raises(ValueError):
        split_path(".engine..max_workers")


def test_list_query_resolves_matrix_source(ci_config_document):
    q = ConfigQuery(name="docker", path=".docker", expects=QueryKind.LIST)
    value = resolve_query(ci_config_document, q)

    assert value == ci_config_document["docker"]
    value.append({"context": "x"})
    assert len(ci_config_document["docker"]) == 2


def test_required_missing_raises():
    q = ConfigQuery(name="frontend", path=".frontend-location", expects=QueryKind.SCALAR, required=True)
    with pytest.raises(ConfigMissing):
        resolve_query({}, q)


def test_optional_missing_returns_default_copy():
    default = []
    q = ConfigQuery(name="docker", path=".docker", expects=QueryKind.LIST, required=False, default=default)

    value = resolve_query({"docker": None}, q)
    assert value == []
    assert value is not default


def test_list_query_rejects_scalar():
    q = ConfigQuery(name="docker", path=".docker", expects=QueryKind.LIST)
    with pytest.raises(ConfigTypeMismatch):
        resolve_query({"docker": "nginx"}, q)


def test_scalar_query_rejects_list():
    q = ConfigQuery(name="frontend", path=".frontend-location", expects=QueryKind.SCALAR)
    with pytest.raises(ConfigTypeMismatch):
        resolve_query({"frontend-location": ["a", "b"]}, q)


def test_resolve_queries_rejects_duplicate_names():
    q = ConfigQuery(name="x", path=".a", required=False)
    with pytest.raises(ValueError):
        resolve_queries({}, [q, q])


def test_resolve_queries_returns_values_by_name(ci_config_document):
    out = resolve_queries(
        ci_config_document,
        [
            ConfigQuery(name="docker", path=".docker", expects=QueryKind.LIST),
            ConfigQuery(name="frontend", path=".frontend-location", expects=QueryKind.SCALAR),
        ],
    )
    assert set(out) == {"docker", "frontend"}
    assert out["frontend"] == "NG.Host.Frontend"
