# env.py
"""
Environment: o grafo de dependências do workspace GOPATH.

Mantém a lista ordenada de pacotes rastreados (com índice por import path),
a lista de exclusão, os imports faltando e os pacotes da biblioteca padrão.
Todos os fluxos do beku passam por aqui: scan/rescan, sync, sync_all,
remove (recursivo), exclude, freeze, query, load e save do banco.
"""

from __future__ import annotations

import os
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from beku.modules import database, log, utils
from beku.modules.common import (
    BekuError,
    ConfigError,
    DirNotEmptyError,
    IMPORT_CGO,
    MSG_CLEAN_DIR,
    MSG_CONTINUE,
    MSG_UPDATE_PROCEED,
    MSG_UPDATE_VIEW,
    PackageNameError,
    PackageRequiredError,
    RemoteNotFoundError,
    RemoteURLError,
    SEP_IMPORT,
    VersionNotFoundError,
    confirm as ask_stdin,
    get_compare_url,
    has_import_prefix,
    import_prefixes,
    is_ignored_dir,
    is_remote_url,
    parse_pkg_version,
    split_remote_url,
)
from beku.modules.config import Options
from beku.modules.gotool import BuildTool, GoTool
from beku.modules.package import Package, PackageState
from beku.modules.vcs import GIT_DEF_REMOTE_NAME, VCS, get_vcs
from beku.modules.version import get_policy

logger = log.get_logger("env")

ConfirmFunc = Callable[[str, bool], bool]


class Env:
    def __init__(self, opts: Options, vcs: Optional[VCS] = None, tool: Optional[BuildTool] = None,
                 confirm: Optional[ConfirmFunc] = None, pkgs_std: Optional[Sequence[str]] = None):
        opts.validate()
        self.opts = opts
        self.out = opts.stdout
        self.vcs = vcs or get_vcs()
        self.tool = tool or GoTool(opts.gopath, verbose=opts.debug >= 1)

        try:
            self.policy = get_policy(opts.version_policy)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        self._confirm = confirm or (lambda q, d: ask_stdin(opts.stdin, opts.stdout, q, d))

        self.pkgs: List[Package] = []
        self._index: Dict[str, Package] = {}
        self.pkgs_exclude: List[str] = []
        self.pkgs_missing: List[str] = []

        if pkgs_std is None:
            pkgs_std = self.tool.std_packages(opts.goroot)
        self.pkgs_std: List[str] = list(pkgs_std)
        if IMPORT_CGO not in self.pkgs_std:
            self.pkgs_std.append(IMPORT_CGO)

        self.dirty = False
        self._missing_tried: set = set()

    @property
    def dir_src(self) -> str:
        return self.opts.dir_src

    def _print(self, msg: str = ""):
        print(msg, file=self.out)

    def _ask(self, question: str, default: bool) -> bool:
        """Sem confirmação (no_confirm) vale a resposta default."""
        if self.opts.no_confirm:
            return default
        return self._confirm(question, default)

    # -------------------------
    # Construção de pacotes
    # -------------------------
    def new_package(self, import_path: str, full_path: Optional[str] = None) -> Package:
        if full_path is None:
            full_path = os.path.join(self.dir_src, *import_path.split(SEP_IMPORT))
        return Package(import_path, full_path, vcs=self.vcs, tool=self.tool, debug=self.opts.debug)

    def new_candidate(self, name: str, import_path: str = "", version: str = "") -> Package:
        """
        Pacote "desejado" de um sync. `name` é um import path (o remote vira
        https://<name>) ou a própria URL do remote.
        """
        name = (name or "").strip()
        if not name:
            raise PackageNameError(name)

        if is_remote_url(name):
            remote_url = name
            parts = split_remote_url(name)
            if parts is None:
                raise RemoteURLError(name)
            import_path = import_path or SEP_IMPORT.join(parts)
        else:
            remote_url = "https://" + name.strip(SEP_IMPORT)
            if split_remote_url(remote_url) is None:
                raise RemoteURLError(remote_url)
            import_path = import_path or name

        import_path = import_path.strip().strip(SEP_IMPORT)
        segments = import_path.split(SEP_IMPORT)
        if not import_path or any(s in ("", ".", "..") for s in segments):
            raise PackageNameError(import_path)

        pkg = self.new_package(import_path)
        pkg.remote_name = GIT_DEF_REMOTE_NAME
        pkg.remote_url = remote_url
        pkg.version = version
        return pkg

    # -------------------------
    # Grafo
    # -------------------------
    def add_package(self, pkg: Package) -> bool:
        if pkg.import_path in self._index:
            logger.warning("Pacote duplicado ignorado: %s", pkg.import_path)
            return False
        self.pkgs.append(pkg)
        self._index[pkg.import_path] = pkg
        for missing in pkg.deps_missing:
            self.add_package_missing(missing)
        return True

    def add_package_missing(self, import_path: str) -> bool:
        if not import_path or import_path in self.pkgs_missing or self.is_excluded(import_path):
            return False
        self.pkgs_missing.append(import_path)
        return True

    def add_exclude(self, import_path: str) -> bool:
        """Adiciona na lista de exclusão; False se vazio ou já presente."""
        import_path = (import_path or "").strip().strip(SEP_IMPORT)
        if not import_path or import_path in self.pkgs_exclude:
            return False
        self.pkgs_exclude.append(import_path)
        return True

    def is_excluded(self, import_path: str) -> bool:
        return any(has_import_prefix(import_path, ex) for ex in self.pkgs_exclude)

    def find_by_prefix(self, import_path: str) -> Optional[Package]:
        """Pacote rastreado cujo import path é o prefixo mais longo de `import_path`."""
        for prefix in import_prefixes(import_path):
            pkg = self._index.get(prefix)
            if pkg is not None:
                return pkg
        return None

    def get_package_from_db(self, import_path: str, remote_url: str = "") -> Optional[Package]:
        """
        Busca por import path exato, depois por remote URL exata, depois por
        prefixo de import path (sub-pacote resolve para o pacote pai).
        """
        pkg = self._index.get(import_path)
        if pkg is not None:
            return pkg
        if remote_url:
            for pkg in self.pkgs:
                if pkg.remote_url == remote_url:
                    return pkg
        return self.find_by_prefix(import_path)

    def _drop(self, pkg: Package):
        """Tira `pkg` do grafo e remove todas as arestas que apontam para ele."""
        self.pkgs.remove(pkg)
        del self._index[pkg.import_path]
        for other in self.pkgs:
            dropped = other.remove_required_by(pkg.import_path)
            dropped = other.remove_dep(pkg.import_path) or dropped
            if dropped:
                other.mark_dirty()

    def _rebuild_missing(self):
        """pkgsMissing volta a ser a união dos DepsMissing rastreados."""
        self.pkgs_missing = []
        for pkg in self.pkgs:
            for missing in pkg.deps_missing:
                self.add_package_missing(missing)

    def _reindex(self, old: str, new: str):
        pkg = self._index.pop(old)
        self._index[new] = pkg
        for other in self.pkgs:
            for edges in (other.deps, other.required_by):
                if old in edges:
                    edges[edges.index(old)] = new

    def update_missing(self, new_pkg: Package, add_as_dep: bool) -> bool:
        """
        Resolve em todo o grafo os imports faltando cobertos por `new_pkg`.
        Com add_as_dep=False só remove das listas de faltando.
        """
        updated = False
        for pkg in self.pkgs:
            if pkg is new_pkg:
                continue
            if pkg.update_missing_dep(new_pkg, add_as_dep):
                updated = True

        self.pkgs_missing = [m for m in self.pkgs_missing
                             if not has_import_prefix(m, new_pkg.import_path)]
        if updated:
            self.dirty = True
        return updated

    # -------------------------
    # Scan
    # -------------------------
    def _walk_packages(self, root: str) -> Iterator[str]:
        """
        Raízes de pacotes sob `root`: o primeiro diretório com metadados de
        VCS encerra a descida; diretórios ignorados são pulados.
        """
        try:
            entries = sorted(os.scandir(root), key=lambda e: e.name)
        except OSError as e:
            logger.warning("Não foi possível ler %s: %s", root, e)
            return

        subdirs = []
        for entry in entries:
            if is_ignored_dir(entry.name) or not entry.is_dir(follow_symlinks=False):
                continue
            if self.vcs.is_repo(entry.path):
                yield entry.path
            else:
                subdirs.append(entry.path)

        for path in subdirs:
            yield from self._walk_packages(path)

    def _import_path_of(self, full_path: str) -> str:
        return os.path.relpath(full_path, self.dir_src).replace(os.sep, SEP_IMPORT)

    def scan(self):
        """
        Percorre o workspace; pacotes novos entram como NEW, pacotes já
        rastreados com versão diferente no disco ficam CHANGED (VersionNext).
        Depois refaz as dependências de todos.
        """
        logger.info("Escaneando %s", self.dir_src)

        for full_path in self._walk_packages(self.dir_src):
            import_path = self._import_path_of(full_path)
            if self.is_excluded(import_path):
                continue

            pkg = self.new_package(import_path, full_path)
            try:
                pkg.scan()
            except (VersionNotFoundError, RemoteNotFoundError) as e:
                logger.warning("%s ignorado: %s", import_path, e)
                continue

            cur = self._index.get(import_path)
            if cur is None:
                cur = next((p for p in self.pkgs if p.remote_url == pkg.remote_url), None)
            if cur is not None:
                if self.policy.is_update(cur.version, pkg.version):
                    cur.version_next = pkg.version
                    cur.state = PackageState.CHANGED
                continue

            pkg.state = PackageState.NEW
            self.add_package(pkg)

        for pkg in self.pkgs:
            pkg.scan_deps(self)

    def rescan(self, first_time: bool = False) -> bool:
        """
        Scan + confirmação das mudanças encontradas. Retorna False se o
        usuário recusou.
        """
        self.scan()

        changed = [p for p in self.pkgs if p.state in (PackageState.NEW, PackageState.CHANGED)]
        if not changed:
            self._print("Nada para mudar.")
            if first_time:
                self.dirty = True
            return True

        rows = []
        for pkg in changed:
            if pkg.state is PackageState.NEW:
                rows.append((pkg.import_path, "-", pkg.version))
            else:
                rows.append((pkg.import_path, pkg.version, pkg.version_next))
        self._print_table(("ImportPath", "Versão atual", "Nova versão"), rows)

        if not self._ask(MSG_CONTINUE, True):
            return False

        for pkg in changed:
            is_new = pkg.state is PackageState.NEW
            if pkg.state is PackageState.CHANGED:
                pkg.version = pkg.version_next
                pkg.version_next = ""
            pkg.mark_dirty()
            if is_new:
                self.update_missing(pkg, True)

        self.dirty = True
        return True

    def get_unused(self) -> List[str]:
        """Pacotes no disco que não estão no banco (nem excluídos)."""
        unused = []
        for full_path in self._walk_packages(self.dir_src):
            import_path = self._import_path_of(full_path)
            if import_path in self._index or self.is_excluded(import_path):
                continue
            unused.append(import_path)
        return unused

    # -------------------------
    # Sync
    # -------------------------
    def sync(self, pkg_name: str, import_path: str = "") -> bool:
        """
        Instala ou atualiza um pacote. `pkg_name` aceita o sufixo "@versão";
        `import_path` muda o destino. Retorna False quando nada foi feito.
        """
        name, version = parse_pkg_version(pkg_name)
        if not name:
            raise PackageNameError(pkg_name)

        if self.is_excluded(name) or (import_path and self.is_excluded(import_path)):
            self._print(f"Pacote {name} está excluído, ignorando.")
            return False

        new_pkg = self.new_candidate(name, import_path, version)
        if self.is_excluded(new_pkg.import_path):
            self._print(f"Pacote {new_pkg.import_path} está excluído, ignorando.")
            return False

        cur = self.get_package_from_db(new_pkg.import_path, new_pkg.remote_url)
        if cur is not None:
            # sub-pacote de um pacote rastreado: o sync é do repositório pai
            if (not import_path and cur.import_path != new_pkg.import_path
                    and has_import_prefix(new_pkg.import_path, cur.import_path)):
                new_pkg.import_path = cur.import_path
                new_pkg.full_path = cur.full_path
            if not is_remote_url(name):
                new_pkg.remote_name = cur.remote_name
                new_pkg.remote_url = cur.remote_url
            if not self._sync_update(cur, new_pkg):
                return False
            pkg = cur
        else:
            self._sync_install(new_pkg)
            self.add_package(new_pkg)
            pkg = new_pkg

        pkg.mark_dirty()
        self.dirty = True
        self.post_sync(pkg)
        return True

    def _sync_update(self, cur: Package, new_pkg: Package) -> bool:
        cur.fetch_latest_version()
        if not new_pkg.version:
            new_pkg.version = cur.version_next

        if cur.is_equal(new_pkg):
            self._print(f"Nada para atualizar em {cur.import_path}.")
            return False

        self._print_table(("ImportPath", "Versão atual", "Nova versão"),
                          [(cur.import_path, cur.version, new_pkg.version)])
        compare_url = get_compare_url(cur.remote_url, cur.version, new_pkg.version)
        if compare_url:
            self._print(f"Comparar: {compare_url}")

        if self._ask(MSG_UPDATE_VIEW, False):
            cur.compare_version(new_pkg, self.out)
        if not self._ask(MSG_UPDATE_PROCEED, True):
            return False

        old_import_path = cur.import_path
        try:
            cur.update(new_pkg)
        finally:
            if cur.import_path != old_import_path:
                self._reindex(old_import_path, cur.import_path)
        return True

    def _sync_install(self, new_pkg: Package):
        if not utils.is_dir_empty(new_pkg.full_path):
            self._print(f"Diretório de destino {new_pkg.full_path} não está vazio.")
            if not self._ask(MSG_CLEAN_DIR, False):
                raise DirNotEmptyError(new_pkg.full_path)
            utils.rm(new_pkg.full_path)

        self._print(f"Instalando {new_pkg.import_path} de {new_pkg.remote_url}")
        new_pkg.install()

    def post_sync(self, pkg: Package):
        """
        Resolve os imports faltando contra `pkg`, refaz as dependências dele
        e, se não faltar nada, faz o build.
        """
        self.update_missing(pkg, True)
        pkg.scan_deps(self)

        if pkg.deps_missing and not self.opts.no_deps:
            self.install_missing()

        if pkg.deps_missing:
            self._print(f"{pkg.import_path}: dependências faltando, build ignorado:")
            for missing in pkg.deps_missing:
                self._print(f"  {missing}")
            return

        pkg.go_install()

    def sync_many(self, pkg_names: Sequence[str]):
        """Sync de cada nome em sequência; o primeiro erro aborta o lote."""
        for name in pkg_names:
            self.sync(name)

    def sync_all(self) -> bool:
        updates = []
        for pkg in self.pkgs:
            self._print(f">>> Buscando atualizações de {pkg.import_path}")
            pkg.fetch_latest_version()
            if self.policy.is_update(pkg.version, pkg.version_next):
                updates.append(pkg)

        if not updates:
            self._print("Todos os pacotes estão atualizados.")
            return False

        self._print_table(("ImportPath", "Versão atual", "Nova versão"),
                          [(p.import_path, p.version, p.version_next) for p in updates])
        if not self._ask(MSG_UPDATE_PROCEED, True):
            return False

        for pkg in updates:
            pkg.checkout_version(pkg.version_next)
            pkg.version = pkg.version_next
            pkg.version_next = ""
            pkg.mark_dirty()
        self.dirty = True

        for pkg in updates:
            try:
                self.post_sync(pkg)
            except BekuError as e:
                logger.warning("post sync %s: %s", pkg.import_path, e)
        return True

    def install_missing(self):
        """Sync de cada import faltando; falhas são logadas e não abortam."""
        for import_path in list(self.pkgs_missing):
            if import_path not in self.pkgs_missing or import_path in self._missing_tried:
                continue
            if self.is_excluded(import_path):
                continue
            self._missing_tried.add(import_path)
            try:
                self.sync(import_path)
            except BekuError as e:
                logger.error("Falha ao instalar dependência %s: %s", import_path, e)

    # -------------------------
    # Remove / exclude
    # -------------------------
    def filter_unused_deps(self, pkg: Package, tobe_removed: Dict[str, bool],
                           _seen: Optional[set] = None):
        """
        Marca `pkg` e suas dependências diretas para remoção; cada dependência
        é classificada depois das suas próprias dependências e só continua
        marcada se todo pacote que a requer também estiver marcado.
        """
        top = _seen is None
        if top:
            _seen = set()
        _seen.add(pkg.import_path)

        tobe_removed[pkg.import_path] = True
        for dep in pkg.deps:
            tobe_removed.setdefault(dep, True)

        for dep_path in pkg.deps:
            dep = self._index.get(dep_path)
            if dep is None:
                continue
            if dep_path not in _seen:
                self.filter_unused_deps(dep, tobe_removed, _seen)
            tobe_removed[dep_path] = all(tobe_removed.get(r) for r in dep.required_by)

        if not top:
            return

        # desmarcar um pacote pode manter vivas dependências já marcadas
        changed = True
        while changed:
            changed = False
            for path, marked in tobe_removed.items():
                if not marked or path == pkg.import_path:
                    continue
                dep = self._index.get(path)
                if dep is not None and not all(tobe_removed.get(r) for r in dep.required_by):
                    tobe_removed[path] = False
                    changed = True

    def remove(self, import_path: str, recursive: bool = False) -> bool:
        """
        Remove o pacote (fontes e artefatos) e, com `recursive`, as
        dependências que ficariam sem uso. Pacote ainda requerido por outro
        gera PackageRequiredError sem mexer no grafo.
        """
        if self.is_excluded(import_path):
            self._print(f"Pacote {import_path} está excluído, ignorando.")
            return False

        pkg = self._index.get(import_path)
        if pkg is None:
            self._print(f"Pacote {import_path} não está no banco.")
            return False

        if pkg.required_by:
            raise PackageRequiredError(import_path, pkg.required_by)

        tobe_removed = {import_path: True}
        if recursive:
            self.filter_unused_deps(pkg, tobe_removed)
        names = [path for path, marked in tobe_removed.items() if marked and path in self._index]

        self._print("Pacotes a remover:")
        for name in names:
            self._print(f"  {name}")
        if not self._ask(MSG_CONTINUE, True):
            return False

        try:
            for name in names:
                target = self._index[name]
                target.remove()
                self._drop(target)
                self.dirty = True
        finally:
            self._rebuild_missing()
        return True

    def exclude(self, import_paths: Sequence[str]):
        """
        Exclui import paths de todo scan/sync futuro: sai do grafo, das
        listas de faltando e das arestas dos outros pacotes.
        """
        for import_path in import_paths:
            import_path = (import_path or "").strip().strip(SEP_IMPORT)
            if not import_path:
                continue
            if self.add_exclude(import_path):
                self._print(f"Excluído: {import_path}")

            # o pacote e todos os sub-pacotes rastreados sob o prefixo
            for pkg in [p for p in self.pkgs if has_import_prefix(p.import_path, import_path)]:
                self._drop(pkg)

            self.update_missing(self.new_package(import_path), False)

            for other in self.pkgs:
                stale = [path for path in other.deps + other.required_by
                         if has_import_prefix(path, import_path)]
                dropped = False
                for path in stale:
                    dropped = other.remove_required_by(path) or dropped
                    dropped = other.remove_dep(path) or dropped
                if dropped:
                    other.mark_dirty()

            self._rebuild_missing()
            self.dirty = True

    # -------------------------
    # Freeze
    # -------------------------
    def freeze(self):
        """
        Deixa o workspace igual ao banco: instala ou faz checkout da versão
        registrada de cada pacote, remove pacotes fora do banco e refaz as
        dependências.
        """
        for pkg in self.pkgs:
            if utils.is_dir_empty(pkg.full_path):
                self._print(f">>> Instalando {pkg.import_path}@{pkg.version}")
                pkg.install()
            else:
                self._print(f">>> Checkout {pkg.import_path}@{pkg.version}")
                pkg.checkout_version(pkg.version)

        unused = self.get_unused()
        if unused:
            self._print("Pacotes fora do banco:")
            for import_path in unused:
                self._print(f"  {import_path}")
            if self._ask(MSG_CONTINUE, True):
                for import_path in unused:
                    self.new_package(import_path).remove()

        for pkg in self.pkgs:
            pkg.scan_deps(self)

        if not self.opts.no_deps:
            self.install_missing()
        self.dirty = True

    # -------------------------
    # Query
    # -------------------------
    def query(self, pkg_names: Optional[Sequence[str]] = None):
        """Imprime "import-path  versão"; nomes desconhecidos são ignorados."""
        if pkg_names:
            pkgs = [self._index[n] for n in pkg_names if n in self._index]
        else:
            pkgs = list(self.pkgs)
        if not pkgs:
            return

        width = max(len(p.import_path) for p in pkgs)
        for pkg in pkgs:
            self._print(f"{pkg.import_path:<{width}}  {pkg.version}")

    def _print_table(self, header: Tuple[str, str, str], rows: List[Tuple[str, str, str]]):
        w0 = max(len(header[0]), *(len(r[0]) for r in rows))
        w1 = max(len(header[1]), *(len(r[1]) for r in rows))
        self._print()
        self._print(f"{header[0]:<{w0}}  {header[1]:<{w1}}  {header[2]}")
        for r in rows:
            self._print(f"{r[0]:<{w0}}  {r[1]:<{w1}}  {r[2]}")
        self._print()

    # -------------------------
    # Banco
    # -------------------------
    def load(self, path: Optional[str] = None):
        """Substitui o grafo em memória pelo conteúdo do banco."""
        path = path or self.opts.db_file
        self.pkgs = []
        self._index = {}
        self.pkgs_exclude = []
        self.pkgs_missing = []

        database.load(self, path)
        self.dirty = False
        if self.opts.debug >= 2:
            logger.debug("%s", self)

    def save(self, path: Optional[str] = None) -> bool:
        """Grava o banco; sem mudanças (dirty=False) não faz nada."""
        if not self.dirty:
            logger.debug("Banco sem mudanças, save ignorado")
            return False

        database.save(self, path or self.opts.db_file)
        for pkg in self.pkgs:
            pkg.state = PackageState.SAVED
        self.dirty = False
        return True

    def __str__(self):
        lines = [
            "Environment",
            f"  dirSrc      : {self.dir_src}",
            f"  dbFile      : {self.opts.db_file}",
            f"  pkgsStd     : {self.pkgs_std}",
            f"  pkgsExclude : {self.pkgs_exclude}",
            f"  pkgsMissing : {self.pkgs_missing}",
            f"  dirty       : {self.dirty}",
        ]
        return "\n".join(lines) + "".join(str(p) for p in self.pkgs)
