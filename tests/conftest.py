"""Fixtures compartilhadas: adaptadores falsos de VCS e build, workspace em tmp_path."""

from __future__ import annotations

import io
import os
from typing import Dict, List, Optional

import pytest

from beku.modules.common import CommandError, DirNotEmptyError, RemoteNotFoundError, VersionNotFoundError
from beku.modules.config import Options
from beku.modules.env import Env
from beku.modules.gotool import BuildTool
from beku.modules.vcs import VCS, VCSMode

STD = ["bytes", "fmt", "net", "os", "strings"]


class FakeRepo:
    def __init__(self, version="", remote=("origin", ""), branches=None,
                 latest_tag="", latest_commit=""):
        self.version = version
        self.remote = remote
        self.branches = ["master"] if branches is None else branches
        self.latest_tag = latest_tag
        self.latest_commit = latest_commit


class FakeVCS(VCS):
    """VCS em memória: cada checkout é um FakeRepo indexado pelo caminho."""

    mode = VCSMode.GIT
    metadata_dir = ".git"

    def __init__(self):
        self.repos: Dict[str, FakeRepo] = {}
        # repositórios "remotos" disponíveis para clone, por URL
        self.upstream: Dict[str, FakeRepo] = {}
        self.calls: List[tuple] = []
        self.fail_checkout = False

    def add(self, path: str, repo: FakeRepo) -> FakeRepo:
        # o id fica dentro de .git para o repo continuar achável depois de um rename
        meta = os.path.join(path, self.metadata_dir)
        os.makedirs(meta, exist_ok=True)
        repo_id = str(len(self.repos))
        with open(os.path.join(meta, "id"), "w") as f:
            f.write(repo_id)
        self.repos[repo_id] = repo
        return repo

    def _repo(self, path) -> FakeRepo:
        try:
            with open(os.path.join(path, self.metadata_dir, "id")) as f:
                return self.repos[f.read()]
        except (OSError, KeyError):
            raise CommandError("fake", 128, "", f"not a repository: {path}") from None

    def scan_version(self, path):
        version = self._repo(path).version
        if not version:
            raise VersionNotFoundError(path)
        return version

    def scan_remote(self, path):
        name, url = self._repo(path).remote
        if not url:
            raise RemoteNotFoundError(path)
        return name, url

    def fetch_all(self, path):
        self.calls.append(("fetch_all", path))

    def latest_tag(self, path):
        tag = self._repo(path).latest_tag
        if not tag:
            raise VersionNotFoundError(path)
        return tag

    def latest_commit(self, path, ref):
        return self._repo(path).latest_commit

    def clone(self, remote_url, dest):
        self.calls.append(("clone", remote_url, dest))
        if os.path.isdir(dest) and os.listdir(dest):
            raise DirNotEmptyError(dest)
        upstream = self.upstream.get(remote_url)
        if upstream is None:
            raise CommandError("gitClone", 128, "", f"repository not found: {remote_url}")
        self.add(dest, FakeRepo(version=upstream.latest_commit, remote=("origin", remote_url),
                                branches=list(upstream.branches), latest_tag=upstream.latest_tag,
                                latest_commit=upstream.latest_commit))

    def checkout_revision(self, path, remote_name, branch, revision):
        self.calls.append(("checkout", path, branch, revision))
        if self.fail_checkout:
            raise CommandError("gitCheckoutVersion", 1, "", "bad revision")
        if revision:
            self._repo(path).version = revision

    def log_revisions(self, path, from_rev, to_rev, out):
        out.write(f"log {from_rev}...{to_rev}\n")

    def remote_change(self, path, old_name, new_name, new_url):
        self.calls.append(("remote_change", path, old_name, new_name, new_url))
        self._repo(path).remote = (new_name, new_url)

    def remote_branches(self, path):
        return list(self._repo(path).branches)


class FakeTool(BuildTool):
    def __init__(self):
        self.imports: Dict[str, List[str]] = {}
        self.installed: List[str] = []
        self.cleaned: List[str] = []

    def recursive_imports(self, path):
        return sorted(set(self.imports.get(path, [])))

    def install(self, path, env=None):
        self.installed.append(path)

    def clean(self, path):
        self.cleaned.append(path)
        return os.path.isdir(path)

    def std_packages(self, goroot):
        return list(STD)


class Confirmer:
    """confirm(question, default) falso: responde da fila ou com o default."""

    def __init__(self, answers: Optional[List[bool]] = None):
        self.answers = list(answers or [])
        self.questions: List[str] = []

    def __call__(self, question, default):
        self.questions.append(question)
        if self.answers:
            return self.answers.pop(0)
        return default


@pytest.fixture
def gopath(tmp_path):
    (tmp_path / "src").mkdir()
    return tmp_path


@pytest.fixture
def opts(gopath):
    return Options(
        gopath=str(gopath),
        db_file=str(gopath / "var" / "beku" / "gopath.deps"),
        stdin=io.StringIO(),
        stdout=io.StringIO(),
    )


@pytest.fixture
def vcs():
    return FakeVCS()


@pytest.fixture
def tool():
    return FakeTool()


@pytest.fixture
def confirmer():
    return Confirmer()


@pytest.fixture
def env(opts, vcs, tool, confirmer):
    return Env(opts, vcs=vcs, tool=tool, confirm=confirmer, pkgs_std=STD)


@pytest.fixture
def add_repo(env, vcs, tool):
    """Cria um checkout em src/<import_path> e registra imports e versão."""

    def _add(import_path, version="v1.0.0", imports=(), url=None, branches=None,
             latest_tag="", latest_commit=""):
        full_path = os.path.join(env.dir_src, *import_path.split("/"))
        vcs.add(full_path, FakeRepo(version=version,
                                    remote=("origin", url or f"https://{import_path}"),
                                    branches=branches, latest_tag=latest_tag,
                                    latest_commit=latest_commit))
        tool.imports[full_path] = list(imports)
        return full_path

    return _add


def track(env, import_path, version="v1.0.0", deps=(), required_by=(), missing=()):
    """Adiciona um pacote direto no grafo, sem passar pelo scan."""
    pkg = env.new_package(import_path)
    pkg.remote_name = "origin"
    pkg.remote_url = f"https://{import_path}"
    pkg.version = version
    pkg.deps = list(deps)
    pkg.required_by = list(required_by)
    pkg.deps_missing = list(missing)
    env.add_package(pkg)
    return pkg


def assert_edges_symmetric(env):
    paths = {p.import_path: p for p in env.pkgs}
    for pkg in env.pkgs:
        for dep in pkg.deps:
            assert pkg.import_path in paths[dep].required_by, (pkg.import_path, dep)
        for req in pkg.required_by:
            assert pkg.import_path in paths[req].deps, (req, pkg.import_path)
