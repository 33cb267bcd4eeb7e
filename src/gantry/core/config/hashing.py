# src/gantry/core/config/hashing.py
"""
Hashing canônico de configuração e de flags.

O hash representa a identidade estrutural das entradas de uma run e é
registrado no Manifest para auditoria: duas runs com o mesmo hash de
configuração e o mesmo hash de flags avaliam todos os guards da mesma forma.

Política (v1):
    - Serialização JSON canônica (chaves ordenadas, separadores compactos)
    - UTF-8
    - SHA-256 (64 caracteres hexadecimais)
"""

import hashlib
import json
from typing import Any, Dict, Mapping


def _canonical_sha256(value: Any) -> str:
    canonical_json = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico da configuração efetiva.

    Args:
        config (Dict[str, Any]): Configuração efetiva (documento resolvido).

    Returns:
        str: Hash SHA-256 hexadecimal.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )
    return _canonical_sha256(config)


def compute_flags_hash(flags: Mapping[str, bool]) -> str:
    """Hash canônico do conjunto de flags de uma run (independe da ordem)."""
    return _canonical_sha256({str(k): bool(v) for k, v in flags.items()})
