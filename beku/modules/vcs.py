#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
vcs.py — Adaptador de controle de versão

Contrato (VCS) usado pelo Package para ler e mudar o estado de um checkout:
scan de versão/remote, fetch, tag/commit mais recente, clone, checkout,
log entre revisões, troca de remote e listagem de branches remotos.

Só git é implementado (GitVCS). Todo comando passa por utils.run, que loga
e converte saída != 0 em CommandError com o nome da operação.
"""

from __future__ import annotations

import enum
import os
from typing import IO, List, Optional, Tuple

from beku.modules import log, utils
from beku.modules.common import (
    DirNotEmptyError,
    RemoteNotFoundError,
    VersionNotFoundError,
)

logger = log.get_logger("vcs")

GIT_DEF_BRANCH = "master"
GIT_DEF_REMOTE_NAME = "origin"
GIT_DIR = ".git"
GIT_REF_HEAD = "HEAD"


class VCSMode(enum.Enum):
    GIT = "git"

    @classmethod
    def from_string(cls, value: str) -> "VCSMode":
        """Modo desconhecido cai para git, o único suportado."""
        for mode in cls:
            if mode.value == (value or "").strip().lower():
                return mode
        return cls.GIT


class VCS:
    """Contrato do adaptador de VCS."""

    mode: VCSMode
    metadata_dir: str

    def is_repo(self, path: str) -> bool:
        return os.path.exists(os.path.join(path, self.metadata_dir))

    def scan_version(self, path: str) -> str:
        raise NotImplementedError

    def scan_remote(self, path: str) -> Tuple[str, str]:
        raise NotImplementedError

    def fetch_all(self, path: str) -> None:
        raise NotImplementedError

    def latest_tag(self, path: str) -> str:
        raise NotImplementedError

    def latest_commit(self, path: str, ref: str) -> str:
        raise NotImplementedError

    def clone(self, remote_url: str, dest: str) -> None:
        raise NotImplementedError

    def checkout_revision(self, path: str, remote_name: str, branch: str, revision: str) -> None:
        raise NotImplementedError

    def log_revisions(self, path: str, from_rev: str, to_rev: str, out: IO[str]) -> None:
        raise NotImplementedError

    def remote_change(self, path: str, old_name: str, new_name: str, new_url: str) -> None:
        raise NotImplementedError

    def remote_branches(self, path: str) -> List[str]:
        raise NotImplementedError


class GitVCS(VCS):
    mode = VCSMode.GIT
    metadata_dir = GIT_DIR

    def _git(self, op: str, path: str, *args: str, check: bool = True):
        return utils.run(op, ["git", *args], cwd=path, check=check)

    def get_tag(self, path: str) -> Optional[str]:
        """Tag exata em HEAD, ou None."""
        rc, out, _ = self._git("gitGetTag", path, "describe", "--tags", "--exact-match", check=False)
        tag = out.strip()
        return tag if rc == 0 and tag else None

    def scan_version(self, path: str) -> str:
        """
        (1) tag exata em HEAD, ou
        (2) hash curto do commit em HEAD.
        """
        tag = self.get_tag(path)
        if tag:
            return tag

        rc, out, _ = self._git("gitGetCommit", path, "rev-parse", "--short", GIT_REF_HEAD, check=False)
        commit = out.strip()
        if rc != 0 or not commit:
            raise VersionNotFoundError(path)
        return commit

    def scan_remote(self, path: str) -> Tuple[str, str]:
        rc, out, _ = self._git("gitScanRemote", path, "remote", check=False)
        remotes = out.split() if rc == 0 else []
        if not remotes:
            raise RemoteNotFoundError(path)

        name = GIT_DEF_REMOTE_NAME if GIT_DEF_REMOTE_NAME in remotes else remotes[0]
        rc, out, _ = self._git("gitScanRemote", path, "remote", "get-url", name, check=False)
        url = out.strip()
        if rc != 0 or not url:
            raise RemoteNotFoundError(path)
        return name, url

    def fetch_all(self, path: str) -> None:
        logger.info("Buscando atualizações em %s", path)
        self._git("gitFetch", path, "fetch", "--all", "--tags")

    def latest_tag(self, path: str) -> str:
        _, out, _ = self._git("gitGetTagLatest", path, "rev-list", "--tags", "--max-count=1")
        rev = out.strip()
        if not rev:
            raise VersionNotFoundError(path)
        _, out, _ = self._git("gitGetTagLatest", path, "describe", "--tags", "--abbrev=0", rev)
        return out.strip()

    def latest_commit(self, path: str, ref: str) -> str:
        _, out, _ = self._git("gitGetCommit", path, "rev-parse", "--short", ref)
        return out.strip()

    def clone(self, remote_url: str, dest: str) -> None:
        utils.ensure_dir(dest)
        if not utils.is_dir_empty(dest):
            raise DirNotEmptyError(dest)
        logger.info("Clonando %s → %s", remote_url, dest)
        self._git("gitClone", dest, "clone", remote_url, ".")

    def checkout_revision(self, path: str, remote_name: str, branch: str, revision: str) -> None:
        """
        Coloca HEAD em `revision`. Não usa "git stash": arquivos locais são
        descartados com "git clean" antes do reset.
        """
        if not revision:
            logger.info("gitCheckoutVersion %s: versão vazia", path)
            return

        remote_name = remote_name or GIT_DEF_REMOTE_NAME
        branch = branch or GIT_DEF_BRANCH

        self._git("gitCheckoutVersion", path, "clean", "-qdff", check=False)
        self._git("gitCheckoutVersion", path, "checkout", "-t", f"{remote_name}/{branch}",
                  "-B", branch, check=False)
        self._git("gitCheckoutVersion", path, "reset", "--hard", revision)

    def log_revisions(self, path: str, from_rev: str, to_rev: str, out: IO[str]) -> None:
        _, stdout, _ = self._git("gitCompareVersion", path, "log", "--oneline",
                                 f"{from_rev}...{to_rev}")
        out.write(stdout)
        out.flush()

    def remote_change(self, path: str, old_name: str, new_name: str, new_url: str) -> None:
        if old_name:
            rc, _, err = self._git("gitRemoteChange", path, "remote", "remove", old_name, check=False)
            if rc != 0:
                logger.warning("gitRemoteChange: %s", err.strip())
        self._git("gitRemoteChange", path, "remote", "add", new_name, new_url)

    def remote_branches(self, path: str) -> List[str]:
        _, out, _ = self._git("gitRemoteBranches", path, "for-each-ref",
                              "--format=%(refname:lstrip=3)", "refs/remotes")
        return [b.strip() for b in out.splitlines() if b.strip() and b.strip() != GIT_REF_HEAD]


_BACKENDS = {
    VCSMode.GIT: GitVCS,
}


def get_vcs(mode: VCSMode = VCSMode.GIT) -> VCS:
    try:
        return _BACKENDS[mode]()
    except KeyError:
        raise ValueError(f"Modo de VCS desconhecido: {mode}") from None
