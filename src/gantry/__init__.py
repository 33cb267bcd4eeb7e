# src/gantry/__init__.py
"""
Gantry — núcleo de orquestração de pipelines de CI.

Este pacote raiz define o namespace público do Gantry, um núcleo que
executa um grafo de dependências de jobs de build/teste/análise com
gates condicionais, jobs matriciais expandidos dinamicamente e
cancelamento cooperativo entre execuções concorrentes do mesmo pipeline.

Princípios centrais:
    - O pipeline é um DAG explícito de jobs
    - Guards são avaliados uma única vez, sobre entradas imutáveis da run
    - No máximo uma run ativa por chave de concorrência
    - Toda falha terminal é visível no relatório agregado

Arquitetura em alto nível:
    - core.config       → documentos de configuração, queries e settings de CI
    - core.changes      → detecção de mudanças por grupos de globs (flags)
    - core.pipeline     → tipos, templates de job, guards e contexto de run
    - core.engine       → planner (DAG), matriz, grafo, engine e coordinator
    - core.traceability → Manifest e Event Log de cada run
    - report            → agregação de resultados, relatório e sinks

Limites explícitos:
    - Não interpreta a sintaxe YAML do runtime hospedado
    - Não executa builds, containers ou scanners (delegado ao ActionExecutor)
    - Não integra diretamente com controle de versão
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
