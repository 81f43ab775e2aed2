# version.py
"""
Políticas para decidir se a versão encontrada num rescan/fetch conta como
atualização da versão registrada no banco.

Comparar strings de versão diretamente não ordena nem tags semânticas nem
hashes de commit, então a regra é plugável:

- ExactPolicy: qualquer diferença é atualização (default)
- NewerPolicy: duas tags são comparadas com packaging.version; se uma delas
  não for parseável (ou for commit), cai para a regra exata
"""

from __future__ import annotations

from typing import Dict, Optional, Type

from packaging.version import InvalidVersion, Version

from beku.modules.common import is_tag_version


def parse_tag(tag: str) -> Optional[Version]:
    """Parseia uma tag ("v1.2.0", "1.2") ou None se não for versão PEP 440."""
    if not is_tag_version(tag):
        return None
    try:
        return Version(tag[1:] if tag[0] == "v" else tag)
    except InvalidVersion:
        return None


class VersionPolicy:
    name = "base"

    def is_update(self, current: str, candidate: str) -> bool:
        raise NotImplementedError


class ExactPolicy(VersionPolicy):
    name = "exact"

    def is_update(self, current: str, candidate: str) -> bool:
        if not candidate:
            return False
        return current != candidate


class NewerPolicy(VersionPolicy):
    name = "newer"

    def is_update(self, current: str, candidate: str) -> bool:
        if not candidate or current == candidate:
            return False
        cur, cand = parse_tag(current), parse_tag(candidate)
        if cur is None or cand is None:
            return True
        return cand > cur


POLICIES: Dict[str, Type[VersionPolicy]] = {
    ExactPolicy.name: ExactPolicy,
    NewerPolicy.name: NewerPolicy,
}


def get_policy(name: str) -> VersionPolicy:
    try:
        return POLICIES[name or ExactPolicy.name]()
    except KeyError:
        raise ValueError(f"Política de versão desconhecida: {name}") from None
