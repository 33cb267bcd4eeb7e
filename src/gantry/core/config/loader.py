# src/gantry/core/config/loader.py
"""
Loader canônico de documentos de configuração do Gantry.

Este módulo é responsável por ler documentos de configuração (YAML ou
JSON), validar requisitos estruturais mínimos e resolver a configuração
efetiva a partir de defaults + overrides locais.

Ele também define o protocolo `ConfigSource`, a fonte de documentos
consumida pelo Coordinator no início de cada run:

    load(path) -> document

Implementações fornecidas:
    - FileConfigSource → documentos no filesystem, relativos a uma raiz
    - DictConfigSource → documentos em memória (dict ou texto YAML/JSON)

Princípios fundamentais:
    - Nenhum efeito colateral além de leitura
    - Documentos vazios são interpretados como dicionários vazios
    - Erros estruturais são tratados como falhas fatais tipadas

Invariantes:
    - O retorno de `load` é sempre um dicionário puro (`dict`)
    - Overrides locais nunca mutam os defaults

Limites explícitos:
    - Não valida semântica de domínio (ver `query` e `settings`)
    - Não interage com Engine ou Coordinator
"""

from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol, Union, runtime_checkable

import yaml  # PyYAML

from .errors import (
    ConfigMalformed,
    ConfigSourceNotFound,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash
from .merge import deep_merge

_YAML_SUFFIXES = {".yaml", ".yml"}
_JSON_SUFFIXES = {".json"}


def _parse_text(text: str, *, suffix: str, origin: str) -> Dict[str, Any]:
    """
    Interpreta o conteúdo textual de um documento e valida o tipo raiz.

    Args:
        text (str): Conteúdo bruto do documento.
        suffix (str): Extensão que define o formato (".yml", ".json", ...).
        origin (str): Identificação do documento para mensagens de erro.

    Returns:
        Dict[str, Any]: Documento interpretado.

    Raises:
        UnsupportedConfigFormatError: Formato não suportado.
        ConfigMalformed: Erro de sintaxe YAML/JSON.
        InvalidConfigRootTypeError: Conteúdo raiz não é um dicionário.
    """
    suffix = suffix.lower()

    if suffix in _YAML_SUFFIXES:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigMalformed(f"YAML inválido em {origin}: {e}") from e

    elif suffix in _JSON_SUFFIXES:
        try:
            data = json.loads(text) if text.strip() else None
        except json.JSONDecodeError as e:
            raise ConfigMalformed(f"JSON inválido em {origin}: {e}") from e

    else:
        raise UnsupportedConfigFormatError(f"Formato não suportado: {suffix or '<sem extensão>'}")

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"Config root deve ser dict, recebido: {type(data).__name__} ({origin})"
        )

    return data


def load_document(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Carrega um arquivo de configuração do disco.

    Ponto de entrada público para documentos avulsos (ex.: definição de
    pipeline); `load_config` aplica por cima a política defaults + local.

    Raises:
        ConfigSourceNotFound: Se o arquivo não existir.
        UnsupportedConfigFormatError / ConfigMalformed / InvalidConfigRootTypeError:
            ver `_parse_text`.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigSourceNotFound(f"Arquivo de configuração não encontrado: {path}")

    with path.open("r", encoding="utf-8") as f:
        text = f.read()

    return _parse_text(text, suffix=path.suffix, origin=str(path))


def load_config(
    *,
    defaults_path: str,
    local_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Carrega e resolve a configuração efetiva (defaults + override local).

    Política de resolução:
        - O arquivo de defaults é obrigatório
        - O arquivo local é opcional e ignorado quando ausente
        - Quando presente, o local sempre tem prioridade sobre defaults

    Args:
        defaults_path (str): Caminho para o documento base.
        local_path (Optional[str]): Caminho opcional para overrides locais.

    Returns:
        Dict[str, Any]: Configuração final resolvida.

    Raises:
        ConfigSourceNotFound: Se o arquivo de defaults não existir.
        ConfigMalformed: Se algum documento não puder ser interpretado.
        ConfigTypeConflictError: Se ocorrer conflito estrutural durante o merge.
    """
    effective = load_document(Path(defaults_path))

    if local_path is not None:
        local_file = Path(local_path)
        if local_file.exists():
            effective = deep_merge(effective, load_document(local_file))

    # valida serializabilidade canônica; o hash em si é registrado no Manifest
    compute_config_hash(effective)

    return effective


@runtime_checkable
class ConfigSource(Protocol):
    """
    Fonte de documentos de configuração (colaborador externo).

    Contrato:
        - `load(path)` retorna o documento interpretado como `dict`
        - Documento ausente → `ConfigSourceNotFound` (um `ConfigMissing`)
        - Documento ilegível → `ConfigMalformed`
        - Nenhum efeito colateral além de leitura
    """

    def load(self, path: str) -> Dict[str, Any]:
        ...


class FileConfigSource:
    """Documentos no filesystem, resolvidos relativamente a `root`."""

    def __init__(self, root: Union[str, Path] = ".", *, local_suffix: Optional[str] = ".local"):
        self.root = Path(root)
        self.local_suffix = local_suffix

    def _local_path_for(self, path: Path) -> Optional[Path]:
        if not self.local_suffix:
            return None
        return path.with_name(f"{path.stem}{self.local_suffix}{path.suffix}")

    def load(self, path: str) -> Dict[str, Any]:
        full = self.root / path
        local = self._local_path_for(full)
        return load_config(
            defaults_path=str(full),
            local_path=str(local) if local is not None else None,
        )


class DictConfigSource:
    """
    Documentos em memória.

    Cada entrada pode ser um `dict` já interpretado ou o texto bruto do
    documento; texto é interpretado pelo formato indicado na extensão do
    caminho, exatamente como um arquivo em disco seria.
    """

    def __init__(self, documents: Mapping[str, Union[Dict[str, Any], str]]):
        self._documents = dict(documents)

    def load(self, path: str) -> Dict[str, Any]:
        if path not in self._documents:
            raise ConfigSourceNotFound(f"Documento de configuração não encontrado: {path}")

        doc = self._documents[path]
        if isinstance(doc, str):
            return _parse_text(doc, suffix=Path(path).suffix, origin=path)
        if not isinstance(doc, dict):
            raise InvalidConfigRootTypeError(
                f"Config root deve ser dict, recebido: {type(doc).__name__} ({path})"
            )
        return deepcopy(doc)
