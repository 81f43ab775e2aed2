# gotool.py
"""
Adaptador da toolchain de build (go list / go install / go clean).

- recursive_imports: todos os import paths importados (transitivamente)
  pela árvore do pacote, sem duplicatas e ordenados
- install: build + install recursivo do pacote
- clean: remove artefatos; "nada para limpar" não é erro
- std_packages: pacotes da biblioteca padrão em $GOROOT/src
"""

from __future__ import annotations

import os
from typing import Dict, List, Optional

from beku.modules import log, utils
from beku.modules.common import CommandError, ConfigError, is_ignored_dir

logger = log.get_logger("gotool")

DEF_PATH = "/bin:/usr/bin:/usr/sbin:/usr/local/bin:/usr/local/sbin"

# mensagens do `go` quando não há pacote para operar
_NOTHING_TO_CLEAN = (
    "no Go files",
    "matched no packages",
    "cannot find package",
    "cannot find module",
    "directory not found",
)


class BuildTool:
    """Contrato do adaptador de build."""

    def recursive_imports(self, path: str) -> List[str]:
        raise NotImplementedError

    def install(self, path: str, env: Optional[Dict[str, str]] = None) -> None:
        raise NotImplementedError

    def clean(self, path: str) -> bool:
        raise NotImplementedError

    def std_packages(self, goroot: Optional[str]) -> List[str]:
        raise NotImplementedError


class GoTool(BuildTool):
    def __init__(self, gopath: str, verbose: bool = False):
        self.gopath = gopath
        self.verbose = verbose

    def environ(self) -> Dict[str, str]:
        env = dict(os.environ)
        env["GOPATH"] = self.gopath
        env.setdefault("PATH", DEF_PATH)
        # workspace no modo GOPATH
        env.setdefault("GO111MODULE", "off")
        return env

    def recursive_imports(self, path: str) -> List[str]:
        _, out, _ = utils.run("GetRecursiveImports",
                              ["go", "list", "-e", "-f", '{{ join .Deps "\\n" }}', "./..."],
                              cwd=path, env=self.environ())
        return sorted({line.strip() for line in out.splitlines() if line.strip()})

    def install(self, path: str, env: Optional[Dict[str, str]] = None) -> None:
        cmd = ["go", "install"]
        if self.verbose:
            cmd.append("-v")
        cmd.append("./...")
        logger.info("go install em %s", path)
        utils.run("GoInstall", cmd, cwd=path, env=env or self.environ())

    def clean(self, path: str) -> bool:
        """
        Remove binários e objetos instalados. Retorna False quando não havia
        nada para limpar (diretório ausente ou sem pacotes Go).
        """
        if not os.path.isdir(path):
            return False
        rc, out, err = utils.run("GoClean", ["go", "clean", "-i", "./..."],
                                 cwd=path, env=self.environ(), check=False)
        if rc == 0:
            return True
        if any(msg in err for msg in _NOTHING_TO_CLEAN):
            logger.debug("GoClean %s: nada para limpar", path)
            return False
        raise CommandError("GoClean", rc, out, err)

    def std_packages(self, goroot: Optional[str]) -> List[str]:
        """
        Diretórios de primeiro nível em $GOROOT/src (exceto ignorados). Sem
        GOROOT configurado, pergunta ao próprio `go env GOROOT`.
        """
        if not goroot:
            rc, out, _ = utils.run("GoEnv", ["go", "env", "GOROOT"], env=self.environ(), check=False)
            goroot = out.strip() if rc == 0 else ""
        if not goroot:
            raise ConfigError("GOROOT não definido")

        src = os.path.join(goroot, "src")
        try:
            names = sorted(os.listdir(src))
        except OSError as e:
            raise ConfigError(f"GOROOT inválido ({src}): {e}") from e

        return [n for n in names if os.path.isdir(os.path.join(src, n)) and not is_ignored_dir(n)]
