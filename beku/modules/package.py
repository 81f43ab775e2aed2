# package.py
"""
Pacote rastreado no workspace (uma entrada do banco).

Recursos:
- Scan do estado do checkout (versão, remote, branch) via adaptador de VCS
- Scan de dependências via adaptador de build e classificação de cada import
- Ligação simétrica Deps / RequiredBy e lista de dependências faltando
- Install (clone + checkout), Update (rename, troca de remote, checkout),
  Remove (clean + remoção do diretório + pais vazios)
- Fetch da versão mais recente (tag ou commit) para VersionNext
"""

from __future__ import annotations

import enum
import os
import shutil
from typing import IO, TYPE_CHECKING, List, Optional

from beku.modules import log, utils
from beku.modules.common import (
    BekuError,
    CommandError,
    DirNotEmptyError,
    IMPORT_CGO,
    SEP_IMPORT,
    VENDOR_DIR,
    VersionNotFoundError,
    has_import_prefix,
    is_tag_version,
)
from beku.modules.gotool import BuildTool
from beku.modules.vcs import GIT_DEF_BRANCH, GIT_DEF_REMOTE_NAME, GIT_REF_HEAD, VCS, VCSMode

if TYPE_CHECKING:
    from beku.modules.env import Env

logger = log.get_logger("package")

DBG_SKIP_SELF = "skip self dep"
DBG_SKIP_STD = "skip std dep"
DBG_SKIP_EXCLUDE = "skip excluded dep"
DBG_MISS_DEP = "missing dep"
DBG_LINK_DEP = "linking dep"

# branches preferidos, em ordem, para rastrear no remote
PREFERRED_BRANCHES = (GIT_DEF_BRANCH, "main")


class PackageState(enum.Enum):
    """
    Ciclo de vida: UNSCANNED -> {NEW, LOADED} -> CHANGED -> DIRTY -> SAVED
    """
    UNSCANNED = "unscanned"
    NEW = "new"
    LOADED = "loaded"
    CHANGED = "changed"
    DIRTY = "dirty"
    SAVED = "saved"


class Package:
    def __init__(self, import_path: str, full_path: str, vcs: Optional[VCS] = None,
                 tool: Optional[BuildTool] = None, debug: int = 0):
        self.import_path = import_path
        self.full_path = full_path
        self.remote_name = ""
        self.remote_url = ""
        self.remote_branch = ""
        self.version = ""
        self.version_next = ""
        self.deps: List[str] = []
        self.deps_missing: List[str] = []
        self.required_by: List[str] = []
        self.vcs_mode = vcs.mode if vcs is not None else VCSMode.GIT
        self.state = PackageState.UNSCANNED
        self.vcs = vcs
        self.tool = tool
        self.debug = debug

    # isTag é sempre derivado da versão atual
    @property
    def is_tag(self) -> bool:
        return is_tag_version(self.version)

    def mark_dirty(self):
        self.state = PackageState.DIRTY

    # -------------------------
    # Scan
    # -------------------------
    def scan(self):
        """
        Lê versão, remote e branch do checkout em FullPath.
        VersionNotFoundError / RemoteNotFoundError sobem para o chamador.
        """
        if self.debug >= 2:
            logger.debug("Scanning package: %s", self.import_path)

        self.version = self.vcs.scan_version(self.full_path)
        self.remote_name, self.remote_url = self.vcs.scan_remote(self.full_path)
        self.remote_branch = self._pick_branch()

    def _pick_branch(self) -> str:
        try:
            branches = self.vcs.remote_branches(self.full_path)
        except CommandError as e:
            logger.debug("%s: sem branches remotos (%s)", self.import_path, e)
            return ""
        for name in PREFERRED_BRANCHES:
            if name in branches:
                return name
        return branches[0] if branches else ""

    def scan_deps(self, env: "Env"):
        """Lista todos os imports recursivos do pacote e classifica cada um."""
        imports = self.tool.recursive_imports(self.full_path)
        if self.debug >= 2 and imports:
            logger.debug("   imports recursive: %s", imports)
        for import_path in imports:
            self.add_dep(env, import_path)

    def add_dep(self, env: "Env", import_path: str) -> bool:
        """
        Classifica `import_path` (primeiro caso que casar vence):

        (0) vazio -> ignorado
        (1) o próprio pacote (ou sub-pacote dele) -> ignorado
        (2) dentro de "vendor" -> ignorado
        (3) pseudo-import "C" (cgo) -> ignorado
        (4) biblioteca padrão -> ignorado
        (5) excluído pelo usuário -> ignorado
        (6) casa com pacote rastreado -> liga Deps / RequiredBy
        (7) senão -> DepsMissing e pkgsMissing do env

        Retorna True se virou dependência ou falta, False se foi ignorado.
        """
        # (0)
        if not import_path:
            return False

        # (1)
        if has_import_prefix(import_path, self.import_path):
            self._debug(DBG_SKIP_SELF, import_path)
            return False

        # (2)
        top = import_path.split(SEP_IMPORT)[0]
        if top == VENDOR_DIR or (SEP_IMPORT + VENDOR_DIR + SEP_IMPORT) in import_path:
            return False

        # (3)
        if import_path == IMPORT_CGO:
            return False

        # (4)
        if top in env.pkgs_std:
            self._debug(DBG_SKIP_STD, import_path)
            return False

        # (5)
        if env.is_excluded(import_path):
            self._debug(DBG_SKIP_EXCLUDE, import_path)
            return False

        # (6)
        dep = env.find_by_prefix(import_path)
        if dep is not None and dep is not self:
            self.link_dep(dep)
            dep.push_required_by(self.import_path)
            return True

        # (7)
        self._debug(DBG_MISS_DEP, import_path)
        if import_path not in self.deps_missing:
            self.deps_missing.append(import_path)
        env.add_package_missing(import_path)
        return True

    def _debug(self, what: str, import_path: str):
        if self.debug >= 2:
            logger.debug("%15s >>> %s", what, import_path)

    # -------------------------
    # Arestas
    # -------------------------
    def link_dep(self, dep: "Package") -> bool:
        """Adiciona `dep` em Deps só se ainda não existir."""
        if dep.import_path in self.deps:
            return False
        self.deps.append(dep.import_path)
        self._debug(DBG_LINK_DEP, dep.import_path)
        return True

    def push_required_by(self, import_path: str) -> bool:
        if import_path in self.required_by:
            return False
        self.required_by.append(import_path)
        return True

    def remove_required_by(self, import_path: str) -> bool:
        if import_path not in self.required_by:
            return False
        self.required_by.remove(import_path)
        return True

    def remove_dep(self, import_path: str) -> bool:
        if import_path not in self.deps:
            return False
        self.deps.remove(import_path)
        return True

    def update_missing_dep(self, new_pkg: "Package", add_as_dep: bool) -> bool:
        """
        Remove de DepsMissing toda entrada coberta por `new_pkg`; com
        add_as_dep também liga Deps / RequiredBy. Retorna True se algo casou.
        """
        found = False
        keep = []
        for missing in self.deps_missing:
            if not has_import_prefix(missing, new_pkg.import_path):
                keep.append(missing)
                continue
            found = True
            if add_as_dep:
                self.link_dep(new_pkg)
                new_pkg.push_required_by(self.import_path)

        if found:
            self.deps_missing = keep
            self.mark_dirty()
        return found

    # -------------------------
    # VCS
    # -------------------------
    def fetch(self):
        self.vcs.fetch_all(self.full_path)

    def fetch_latest_version(self):
        """
        Busca atualizações e coloca em VersionNext a tag mais recente (se a
        versão atual é tag) ou o último commit do branch rastreado.
        """
        self.fetch()
        if self.is_tag:
            try:
                self.version_next = self.vcs.latest_tag(self.full_path)
                return
            except VersionNotFoundError:
                logger.info("%s: nenhuma tag no remote, usando último commit", self.import_path)
        ref = f"{self.remote_name or GIT_DEF_REMOTE_NAME}/{self.remote_branch or GIT_DEF_BRANCH}"
        self.version_next = self.vcs.latest_commit(self.full_path, ref)

    def checkout_version(self, version: str):
        self.vcs.checkout_revision(self.full_path, self.remote_name, self.remote_branch, version)

    def compare_version(self, new_pkg: "Package", out: IO[str]):
        self.vcs.log_revisions(self.full_path, self.version, new_pkg.version, out)

    def install(self):
        """
        Clona em FullPath e faz checkout da versão registrada, ou da tag mais
        recente, ou do último commit. Falha no meio remove o clone parcial.
        """
        if not utils.is_dir_empty(self.full_path):
            raise DirNotEmptyError(self.full_path)

        try:
            self.vcs.clone(self.remote_url, self.full_path)

            if not self.version:
                try:
                    self.version = self.vcs.latest_tag(self.full_path)
                except (CommandError, VersionNotFoundError):
                    self.version = self.vcs.latest_commit(self.full_path, GIT_REF_HEAD)

            self.remote_name = self.remote_name or self.vcs.scan_remote(self.full_path)[0]
            self.remote_branch = self.remote_branch or self._pick_branch()
            self.checkout_version(self.version)
        except BekuError:
            self._remove_partial()
            raise

    def _remove_partial(self):
        try:
            self.remove()
        except (BekuError, OSError) as e:
            logger.warning("Não foi possível limpar %s após falha: %s", self.full_path, e)

    def update(self, new_pkg: "Package"):
        """
        Aplica o estado de `new_pkg`: renomeia o diretório se o import path
        mudou, troca o remote se mudou, busca e faz checkout da nova versão.
        """
        if new_pkg.import_path != self.import_path:
            self._rename(new_pkg)

        if self.remote_name != new_pkg.remote_name or self.remote_url != new_pkg.remote_url:
            self.vcs.remote_change(self.full_path, self.remote_name,
                                   new_pkg.remote_name, new_pkg.remote_url)

        self.fetch()
        branch = new_pkg.remote_branch or self.remote_branch
        self.vcs.checkout_revision(self.full_path, new_pkg.remote_name, branch, new_pkg.version)

        self.remote_name = new_pkg.remote_name
        self.remote_url = new_pkg.remote_url
        self.remote_branch = branch
        self.version = new_pkg.version
        self.version_next = ""

    def _rename(self, new_pkg: "Package"):
        if os.path.exists(new_pkg.full_path) and not utils.is_dir_empty(new_pkg.full_path):
            raise DirNotEmptyError(new_pkg.full_path)
        os.makedirs(os.path.dirname(new_pkg.full_path), exist_ok=True)
        if os.path.isdir(new_pkg.full_path):
            os.rmdir(new_pkg.full_path)
        shutil.move(self.full_path, new_pkg.full_path)
        logger.info("Renomeado %s → %s", self.full_path, new_pkg.full_path)

        old_parent = os.path.dirname(self.full_path)
        root = self._src_root()
        self.import_path = new_pkg.import_path
        self.full_path = new_pkg.full_path
        utils.rmdir_empty_all(old_parent, stop=root)

    def _src_root(self) -> str:
        """Raiz dos fontes: FullPath sem o ImportPath no final."""
        suffix = os.sep + self.import_path.replace(SEP_IMPORT, os.sep)
        if self.full_path.endswith(suffix):
            return self.full_path[: -len(suffix)]
        return os.path.dirname(self.full_path)

    def remove(self):
        """
        go clean, remove o diretório de fontes e os pais que ficarem vazios
        (nunca a raiz do workspace).
        """
        self.go_clean()
        utils.rm(self.full_path)
        utils.rmdir_empty_all(os.path.dirname(self.full_path), stop=self._src_root())
        logger.info("Removido %s", self.full_path)

    # -------------------------
    # Build
    # -------------------------
    def go_install(self, env: Optional[dict] = None):
        self.tool.install(self.full_path, env)

    def go_clean(self) -> bool:
        return self.tool.clean(self.full_path)

    # -------------------------
    # Comparação / debug
    # -------------------------
    def is_equal(self, other: Optional["Package"]) -> bool:
        if other is None:
            return False
        return (self.import_path == other.import_path
                and self.remote_name == other.remote_name
                and self.remote_url == other.remote_url
                and self.version == other.version)

    def __repr__(self):
        return f"Package({self.import_path!r}, version={self.version!r}, state={self.state.value})"

    def __str__(self):
        return (
            f'\n[package "{self.import_path}"]\n'
            f"          VCS = {self.vcs_mode.value}\n"
            f"   RemoteName = {self.remote_name}\n"
            f"    RemoteURL = {self.remote_url}\n"
            f" RemoteBranch = {self.remote_branch}\n"
            f"      Version = {self.version}\n"
            f"  VersionNext = {self.version_next}\n"
            f"        IsTag = {self.is_tag}\n"
            f"         Deps = {self.deps}\n"
            f"   RequiredBy = {self.required_by}\n"
            f"  DepsMissing = {self.deps_missing}\n"
        )
