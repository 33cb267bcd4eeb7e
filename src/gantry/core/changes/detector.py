# src/gantry/core/changes/detector.py
"""
Change Detector — classificação de mudanças em flags nomeadas.

Dada uma revisão base, uma revisão head e um conjunto de grupos nomeados
de globs (ex.: "backend" → ["**/*.cs", "**/*.csproj"]), o detector produz
um booleano por grupo: "algum arquivo sob algum glob do grupo difere
entre base e head".

Colaborador externo (`RevisionSource`):
    diff(base, head, globs) -> bool

Decisões arquiteturais:
    - Grupos são avaliados em ordem lexicográfica (determinismo)
    - O resultado depende apenas de (base, head, globs); nada de relógio
      ou ordem de execução
    - Falha ao resolver a base (`BaseUnresolvable`) não aborta a run:
      todas as flags assumem `False` e o ChangeSet sai com
      `unresolved=True`; a run propaga a marca e `decide` pula todo nó cujo
      guard lê flags, inclusive `not flags[...]`

Invariantes:
    - Flags são imutáveis depois de calculadas (ChangeSet é frozen)
    - Todo grupo declarado aparece no resultado

Limites explícitos:
    - Não fala com controle de versão; isso é responsabilidade do RevisionSource
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
    runtime_checkable,
)

from gantry.core.errors import GantryErrorPayload, base_unresolvable
from gantry.core.exceptions import BaseUnresolvable

from .globs import any_path_matches


@runtime_checkable
class RevisionSource(Protocol):
    """Fonte de diferenças entre revisões (estável e sem efeitos colaterais)."""

    def diff(self, base: str, head: Optional[str], globs: Sequence[str]) -> bool:
        ...


ChangedFiles = Union[Mapping[Tuple[str, Optional[str]], Sequence[str]], Callable[[str, Optional[str]], Sequence[str]]]


class ChangedFilesRevisionSource:
    """
    RevisionSource sobre listas explícitas de arquivos alterados.

    `changed_files` pode ser:
        - um mapa `(base, head) -> [caminhos]`
        - uma função `(base, head) -> [caminhos]` que levanta
          `BaseUnresolvable` quando a base não existe

    Útil para embedders que já obtiveram a lista de arquivos do provedor
    de código (ex.: API de pull requests) e para testes.
    """

    def __init__(self, changed_files: ChangedFiles):
        self._changed_files = changed_files

    def files_between(self, base: str, head: Optional[str]) -> Sequence[str]:
        if callable(self._changed_files):
            return list(self._changed_files(base, head))
        key = (base, head)
        if key not in self._changed_files:
            raise BaseUnresolvable(
                message=f"Base não resolvida: {base}",
                details={"base": base, "head": head},
            )
        return list(self._changed_files[key])

    def diff(self, base: str, head: Optional[str], globs: Sequence[str]) -> bool:
        return any_path_matches(self.files_between(base, head), globs)


@dataclass(frozen=True)
class ChangeSet:
    """
    Resultado imutável de uma detecção de mudanças.

    Campos:
        - base / head: revisões comparadas
        - flags: booleano por grupo (somente leitura)
        - unresolved: True quando a base não pôde ser resolvida
        - error: payload `BASE_UNRESOLVABLE`, quando aplicável
    """

    base: Optional[str]
    head: Optional[str]
    flags: Mapping[str, bool] = field(default_factory=dict)
    unresolved: bool = False
    error: Optional[GantryErrorPayload] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base": self.base,
            "head": self.head,
            "flags": dict(self.flags),
            "unresolved": self.unresolved,
            "error": self.error.to_dict() if self.error is not None else None,
        }


class ChangeDetector:
    """Aplica filtros nomeados sobre um `RevisionSource`."""

    def __init__(self, source: RevisionSource):
        self.source = source

    def detect(
        self,
        *,
        base: Optional[str],
        head: Optional[str],
        filters: Mapping[str, Sequence[str]],
    ) -> ChangeSet:
        """
        Calcula uma flag por grupo de filtros.

        Args:
            base: revisão/referência base (None → não resolvível).
            head: revisão de trabalho.
            filters: grupo → globs.

        Returns:
            ChangeSet: flags determinísticas; em caso de base não resolvida,
            todas `False` com `unresolved=True`.
        """
        names = sorted(filters)
        safe_default = {name: False for name in names}

        if not base:
            return ChangeSet(
                base=base,
                head=head,
                flags=MappingProxyType(safe_default),
                unresolved=True,
                error=base_unresolvable(base=str(base), head=head, reason="base ausente no trigger"),
            )

        flags: Dict[str, bool] = {}
        try:
            for name in names:
                globs = tuple(filters[name] or ())
                flags[name] = bool(globs) and bool(self.source.diff(base, head, globs))
        except BaseUnresolvable as e:
            return ChangeSet(
                base=base,
                head=head,
                flags=MappingProxyType(safe_default),
                unresolved=True,
                error=base_unresolvable(base=base, head=head, reason=e.message),
            )

        return ChangeSet(base=base, head=head, flags=MappingProxyType(flags))
