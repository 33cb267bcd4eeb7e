# src/gantry/core/__init__.py
"""
Core do Gantry.

Este pacote reúne a implementação canônica do núcleo de orquestração:
configuração, detecção de mudanças, modelo de jobs, planejamento e
execução do grafo, e rastreabilidade de runs.

O core é projetado para ser:
    - determinístico no planejamento (mesmo grafo → mesma ordem)
    - testável de forma isolada (colaboradores externos são protocolos)
    - livre de dependências do runtime hospedado de CI

Componentes principais:
    - config       → carregamento, merge, hashing e queries de configuração
    - changes      → classificação de caminhos alterados em flags nomeadas
    - pipeline     → JobTemplate, JobNode, guards, RunContext, ActionExecutor
    - engine       → planner, Matrix Expander, JobGraph, Engine, RunCoordinator
    - traceability → Manifest e Event Log

Limites explícitos:
    - Não executa trabalho real de build/teste (ActionExecutor externo)
    - Não persiste histórico de runs além do Manifest explícito
"""
