# src/gantry/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Gantry.

Este módulo define a hierarquia oficial de exceções utilizadas durante
o carregamento, a validação estrutural e a resolução de queries sobre
documentos de configuração.

A taxonomia pública possui três famílias:
    - ConfigMissing      → caminho obrigatório (ou documento) ausente
    - ConfigMalformed    → documento não pode ser interpretado
    - ConfigTypeMismatch → query esperava lista e encontrou escalar (ou vice-versa)

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Erros de configuração são fatais para a run, exceto quando o campo
      possui um default documentado (nesse caso a exceção nem é levantada)

Limites explícitos:
    - Não executa pipeline
    - Não realiza fallback ou recovery
    - Não depende de Engine, Coordinator ou relatórios
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Gantry.

    Todas as exceções levantadas durante carregamento, validação estrutural
    e resolução de configuração herdam desta classe, permitindo captura
    genérica de falhas de configuração no estágio de construção da run.
    """


class ConfigMissing(ConfigError):
    """
    Um caminho obrigatório não existe no documento de configuração.

    Exemplo:
        - query `.frontend-location` marcada como `required=True`
          sobre um documento sem essa chave

    Limites explícitos:
        - Não é levantada para campos opcionais com default documentado
    """


class ConfigSourceNotFound(ConfigMissing):
    """
    O documento de configuração não existe na fonte consultada.

    Decisões arquiteturais:
        - A ausência do documento é tratada como ausência de todos os seus caminhos
        - A exceção é uma especialização de `ConfigMissing`
    """


class ConfigMalformed(ConfigError):
    """
    O documento de configuração não pode ser interpretado.

    Cobre erros de sintaxe YAML/JSON, formatos não suportados e
    documentos cujo conteúdo raiz não é um mapa chave-valor.
    """


class UnsupportedConfigFormatError(ConfigMalformed):
    """
    Exceção levantada quando o formato do arquivo de configuração
    não é suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)

    Limites explícitos:
        - Não tenta inferir formato por conteúdo
    """


class InvalidConfigRootTypeError(ConfigMalformed):
    """
    Exceção levantada quando o conteúdo raiz da configuração
    não é um dicionário (`dict`).
    """


class ConfigTypeMismatch(ConfigError):
    """
    O valor encontrado não possui o formato esperado pela query.

    Exemplos:
        - query de matriz (`expects=list`) encontra uma string
        - query de flag (`expects=scalar`) encontra uma lista
    """


class ConfigTypeConflictError(ConfigTypeMismatch):
    """
    Exceção levantada quando ocorre conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"engine": {"max_workers": 4}}
        - override: {"engine": "fast"}

    Invariantes:
        - Nenhum merge parcial é produzido em caso de conflito
    """
