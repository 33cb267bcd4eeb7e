# tests/core/config/test_loader.py
"""
Testes do carregador de configuração (load_config e ConfigSource).

Este módulo valida o comportamento do loader responsável por:
- carregar o documento de defaults (`CICD-Config.yml`)
- aplicar o override local opcional (`CICD-Config.local.yml`)
- rejeitar formatos e estados inválidos com exceções tipadas
- expor documentos via FileConfigSource e DictConfigSource

Decisões arquiteturais:
    - A configuração é declarativa e baseada em documentos
    - Overrides locais atuam apenas como substituição explícita
    - Erros estruturais são tratados como falhas fatais tipadas

Invariantes:
    - O documento retornado é sempre um dicionário
    - Nenhuma configuração parcial é retornada em caso de erro

Limites explícitos:
    - Não valida queries nem settings (ver test_query / test_settings)
"""

from pathlib import Path

import pytest

try:
    from gantry.core.config.errors import (
        ConfigMalformed,
        ConfigMissing,
        ConfigSourceNotFound,
        InvalidConfigRootTypeError,
        UnsupportedConfigFormatError,
    )
    from gantry.core.config.loader import DictConfigSource, FileConfigSource, load_config, load_document
except Exception as e:  # noqa: BLE001
    load_config = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """Falha explicitamente quando o loader ou suas exceções não podem ser importados."""
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing config loader modules. Implement:\n"
            "- src/gantry/core/config/loader.py (load_config, FileConfigSource, DictConfigSource)\n"
            "- src/gantry/core/config/errors.py (ConfigMissing, ConfigMalformed, ...)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_missing_defaults_raises(tmp_path: Path):
    """
    Verifica que a ausência do documento de defaults é um ConfigMissing.

    A exceção concreta é ConfigSourceNotFound, especialização de
    ConfigMissing: a ausência do documento equivale à ausência de todos
    os seus caminhos.
    """
    _require_imports()

    with pytest.raises(ConfigMissing) as exc:
        load_config(defaults_path=str(tmp_path / "CICD-Config.yml"))
    assert isinstance(exc.value, ConfigSourceNotFound)


def test_missing_local_is_ok(tmp_path: Path, ci_config_yaml):
    _require_imports()

    defaults = tmp_path / "CICD-Config.yml"
    defaults.write_text(ci_config_yaml, encoding="utf-8")

    cfg = load_config(defaults_path=str(defaults), local_path=str(tmp_path / "CICD-Config.local.yml"))
    assert cfg["frontend-location"] == "NG.Host.Frontend"
    assert len(cfg["docker"]) == 2


def test_load_defaults_and_local(tmp_path: Path, ci_config_yaml, ci_config_local_yaml):
    """
    Verifica que o override local tem prioridade sobre os defaults.

    Invariantes:
        - Chaves sobrescritas refletem o override
        - Chaves ausentes no override preservam o valor de defaults
    """
    _require_imports()

    defaults = tmp_path / "CICD-Config.yml"
    local = tmp_path / "CICD-Config.local.yml"
    defaults.write_text(ci_config_yaml, encoding="utf-8")
    local.write_text(ci_config_local_yaml, encoding="utf-8")

    cfg = load_config(defaults_path=str(defaults), local_path=str(local))

    assert cfg["code-analysis-languages"] is None
    assert cfg["engine"] == {"max_workers": 2}
    assert cfg["frontend-location"] == "NG.Host.Frontend"


def test_empty_document_is_empty_dict(tmp_path: Path):
    _require_imports()

    path = tmp_path / "CICD-Config.yml"
    path.write_text("", encoding="utf-8")
    assert load_config(defaults_path=str(path)) == {}


def test_invalid_root_type_raises(tmp_path: Path):
    _require_imports()

    path = tmp_path / "CICD-Config.yml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(InvalidConfigRootTypeError):
        load_config(defaults_path=str(path))


def test_malformed_yaml_raises(tmp_path: Path):
    _require_imports()

    path = tmp_path / "CICD-Config.yml"
    path.write_text("docker: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigMalformed):
        load_config(defaults_path=str(path))


def test_unsupported_extension_raises(tmp_path: Path):
    _require_imports()

    path = tmp_path / "CICD-Config.toml"
    path.write_text("a = 1\n", encoding="utf-8")

    with pytest.raises(UnsupportedConfigFormatError):
        load_config(defaults_path=str(path))


def test_json_documents_are_supported(tmp_path: Path):
    _require_imports()

    path = tmp_path / "config.json"
    path.write_text('{"frontend-location": "web"}', encoding="utf-8")
    assert load_config(defaults_path=str(path)) == {"frontend-location": "web"}


def test_load_document_reads_single_file_without_local_override(tmp_path: Path, ci_config_yaml):
    _require_imports()

    path = tmp_path / "pipeline.yml"
    path.write_text(ci_config_yaml, encoding="utf-8")
    (tmp_path / "pipeline.local.yml").write_text("frontend-location: other\n", encoding="utf-8")

    assert load_document(str(path))["frontend-location"] == "NG.Host.Frontend"
    assert load_document(path) == load_config(defaults_path=path, local_path=None)

    with pytest.raises(ConfigSourceNotFound):
        load_document(tmp_path / "missing.yml")


def test_file_source_resolves_relative_to_root(tmp_path: Path, ci_config_yaml, ci_config_local_yaml):
    """FileConfigSource aplica automaticamente o override `<nome>.local<ext>`."""
    _require_imports()

    gh = tmp_path / ".github"
    gh.mkdir()
    (gh / "CICD-Config.yml").write_text(ci_config_yaml, encoding="utf-8")
    (gh / "CICD-Config.local.yml").write_text(ci_config_local_yaml, encoding="utf-8")

    doc = FileConfigSource(tmp_path).load(".github/CICD-Config.yml")
    assert doc["code-analysis-languages"] is None

    doc_no_local = FileConfigSource(tmp_path, local_suffix=None).load(".github/CICD-Config.yml")
    assert doc_no_local["code-analysis-languages"] == ["csharp", "javascript-typescript"]


def test_dict_source_parses_text_and_copies_dicts(ci_config_yaml, ci_config_document):
    _require_imports()

    source = DictConfigSource(
        {
            ".github/CICD-Config.yml": ci_config_yaml,
            "other.json": ci_config_document,
        }
    )

    assert source.load(".github/CICD-Config.yml") == ci_config_document

    loaded = source.load("other.json")
    loaded["docker"].clear()
    assert len(source.load("other.json")["docker"]) == 2

    with pytest.raises(ConfigSourceNotFound):
        source.load("missing.yml")
