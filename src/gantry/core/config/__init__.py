# src/gantry/core/config/__init__.py
"""
Camada de configuração do Gantry.

Responsabilidades do pacote:
    - Carregamento de documentos YAML/JSON (defaults + overrides locais)
    - Resolução determinística via deep-merge
    - Queries tipadas por caminho (listas para matrizes, escalares para flags)
    - Settings de CI com defaults documentados
    - Hash canônico para rastreabilidade

Invariantes:
    - O documento efetivo é sempre um dicionário puro (dict)
    - A mesma entrada sempre produz os mesmos settings
    - Ausências obrigatórias e formatos incompatíveis são erros tipados

Limites explícitos:
    - Não executa pipeline
    - Não avalia guards
"""

from .errors import (
    ConfigError,
    ConfigMalformed,
    ConfigMissing,
    ConfigSourceNotFound,
    ConfigTypeMismatch,
)
from .loader import ConfigSource, DictConfigSource, FileConfigSource, load_config, load_document
from .query import ConfigQuery, QueryKind, resolve_queries, resolve_query
from .settings import (
    CI_CONFIG_PATH,
    CISettings,
    EngineSettings,
    engine_settings_from_document,
    load_ci_settings,
    settings_from_document,
)

__all__ = [
    "ConfigError",
    "ConfigMalformed",
    "ConfigMissing",
    "ConfigSourceNotFound",
    "ConfigTypeMismatch",
    "ConfigSource",
    "DictConfigSource",
    "FileConfigSource",
    "load_config",
    "load_document",
    "ConfigQuery",
    "QueryKind",
    "resolve_queries",
    "resolve_query",
    "CI_CONFIG_PATH",
    "CISettings",
    "load_ci_settings",
    "settings_from_document",
    "EngineSettings",
    "engine_settings_from_document",
]
