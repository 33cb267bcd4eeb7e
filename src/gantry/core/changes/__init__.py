# src/gantry/core/changes/__init__.py
"""
Detecção de mudanças do Gantry.

Converte (base, head, grupos de globs) em flags booleanas imutáveis,
consumidas pelos guards dos jobs.
"""

from .detector import ChangeDetector, ChangedFilesRevisionSource, ChangeSet, RevisionSource
from .globs import any_path_matches, compile_glob, path_matches

__all__ = [
    "ChangeDetector",
    "ChangedFilesRevisionSource",
    "ChangeSet",
    "RevisionSource",
    "any_path_matches",
    "compile_glob",
    "path_matches",
]
