# database.py
"""
Banco de dependências do workspace (arquivo YAML).

Formato:

    beku:
      exclude:
      - github.com/foo/bar
    package:
      github.com/shuLhan/beku:
        vcs: git
        remote-name: origin
        remote-url: https://github.com/shuLhan/beku
        remote-branch: master
        version: v0.1.0
        deps:
        - github.com/shuLhan/share
        required-by: []
        missing:
        - golang.org/x/tools

O save é sempre uma reescrita completa (arquivo temporário + rename).
Seções de pacote sem import path são ignoradas com um warning.
"""

from __future__ import annotations

import os
import tempfile
from typing import TYPE_CHECKING, Any, Dict, List

import yaml

from beku.modules import log
from beku.modules.common import DatabaseError
from beku.modules.package import PackageState
from beku.modules.vcs import VCSMode

if TYPE_CHECKING:
    from beku.modules.env import Env
    from beku.modules.package import Package

logger = log.get_logger("database")

SECTION_BEKU = "beku"
SECTION_PACKAGE = "package"

KEY_EXCLUDE = "exclude"
KEY_VCS = "vcs"
KEY_REMOTE_NAME = "remote-name"
KEY_REMOTE_URL = "remote-url"
KEY_REMOTE_BRANCH = "remote-branch"
KEY_VERSION = "version"
KEY_DEPS = "deps"
KEY_REQUIRED_BY = "required-by"
KEY_MISSING = "missing"


def _as_list(value: Any) -> List[str]:
    """Aceita lista, valor único ou vazio; sempre devolve lista de strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    value = str(value).strip()
    return [value] if value else []


def _as_str(value: Any) -> str:
    return "" if value is None else str(value).strip()


# -------------------------
# Encode
# -------------------------
def package_to_section(pkg: "Package") -> Dict[str, Any]:
    section: Dict[str, Any] = {
        KEY_VCS: pkg.vcs_mode.value,
        KEY_REMOTE_NAME: pkg.remote_name,
        KEY_REMOTE_URL: pkg.remote_url,
    }
    if pkg.remote_branch:
        section[KEY_REMOTE_BRANCH] = pkg.remote_branch
    section[KEY_VERSION] = pkg.version
    section[KEY_DEPS] = list(pkg.deps)
    section[KEY_REQUIRED_BY] = list(pkg.required_by)
    section[KEY_MISSING] = list(pkg.deps_missing)
    return section


def dump(env: "Env") -> Dict[str, Any]:
    return {
        SECTION_BEKU: {KEY_EXCLUDE: list(env.pkgs_exclude)},
        SECTION_PACKAGE: {pkg.import_path: package_to_section(pkg) for pkg in env.pkgs},
    }


def save(env: "Env", path: str) -> None:
    """Reescreve o banco inteiro em `path`."""
    doc = dump(env)
    dirname = os.path.dirname(path) or "."
    os.makedirs(dirname, exist_ok=True)

    fd, tmp = tempfile.mkstemp(prefix=".beku-", dir=dirname)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            yaml.safe_dump(doc, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise

    logger.info("Banco salvo em %s (%d pacotes)", path, len(env.pkgs))


# -------------------------
# Decode
# -------------------------
def package_from_section(env: "Env", import_path: str, section: Dict[str, Any]) -> "Package":
    section = section or {}
    pkg = env.new_package(import_path)
    pkg.vcs_mode = VCSMode.from_string(_as_str(section.get(KEY_VCS)))
    pkg.remote_name = _as_str(section.get(KEY_REMOTE_NAME))
    pkg.remote_url = _as_str(section.get(KEY_REMOTE_URL))
    pkg.remote_branch = _as_str(section.get(KEY_REMOTE_BRANCH))
    pkg.version = _as_str(section.get(KEY_VERSION))
    pkg.deps = _as_list(section.get(KEY_DEPS))
    pkg.required_by = _as_list(section.get(KEY_REQUIRED_BY))
    pkg.deps_missing = _as_list(section.get(KEY_MISSING))
    pkg.state = PackageState.LOADED
    return pkg


def parse(env: "Env", doc: Any) -> None:
    """Popula o grafo do env a partir do documento já decodificado."""
    if doc is None:
        return
    if not isinstance(doc, dict):
        raise DatabaseError("formato inválido: esperado um mapeamento na raiz")

    beku = doc.get(SECTION_BEKU) or {}
    if not isinstance(beku, dict):
        raise DatabaseError(f"seção '{SECTION_BEKU}' inválida")
    for exclude in _as_list(beku.get(KEY_EXCLUDE)):
        env.add_exclude(exclude)

    packages = doc.get(SECTION_PACKAGE) or {}
    if not isinstance(packages, dict):
        raise DatabaseError(f"seção '{SECTION_PACKAGE}' inválida")

    for import_path, section in packages.items():
        import_path = _as_str(import_path)
        if not import_path:
            logger.warning("Seção de pacote sem import path ignorada")
            continue
        if section is not None and not isinstance(section, dict):
            raise DatabaseError(f"seção de pacote inválida: {import_path}")
        env.add_package(package_from_section(env, import_path, section))


def load(env: "Env", path: str) -> None:
    """
    Lê o banco de `path`. FileNotFoundError sobe sem conversão (o CLI usa
    isso para detectar o primeiro uso); YAML inválido vira DatabaseError.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            doc = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise DatabaseError(f"{path}: {e}") from e

    parse(env, doc)
    logger.debug("Banco carregado de %s (%d pacotes)", path, len(env.pkgs))
