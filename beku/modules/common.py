# common.py
"""
Funções puras sobre import paths e versões, mais a hierarquia de erros do beku.

- is_ignored_dir: diretórios que nunca são pacotes (_x, .x, vendor, testdata)
- is_tag_version: distingue tag (v1.0.0, 1.0) de hash de commit
- parse_pkg_version: separa "nome@versão"
- get_compare_url: URL web de comparação entre duas revisões
- has_import_prefix: prefixo de import path respeitando segmentos
- confirm: pergunta sim/não lendo uma linha do stream de entrada
"""

from __future__ import annotations

import re
from typing import IO, Iterator, Optional, Tuple

TESTDATA_DIR = "testdata"
VENDOR_DIR = "vendor"

TAG_PREFIX = "v"
SEP_IMPORT = "/"
SEP_IMPORT_VERSION = "@"
SEP_VERSION = "."

# pseudo-import do cgo
IMPORT_CGO = "C"

MSG_CLEAN_DIR = "Limpar diretório de destino?"
MSG_CONTINUE = "Continuar?"
MSG_UPDATE_PROCEED = "Prosseguir com a atualização?"
MSG_UPDATE_VIEW = "Ver log de commits?"


# -------------------------
# Erros
# -------------------------
class BekuError(Exception):
    """Erro base do beku"""
    pass


class ConfigError(BekuError):
    """Workspace (GOPATH) ou config inválida"""
    pass


class VersionNotFoundError(BekuError):
    """Diretório tem metadados de VCS mas nenhuma tag ou commit"""

    def __init__(self, path: str = ""):
        msg = "nenhuma tag ou commit encontrado"
        super().__init__(f"{msg}: {path}" if path else msg)


class RemoteNotFoundError(BekuError):
    """Nenhum remote configurado"""

    def __init__(self, path: str = ""):
        msg = "nenhum remote encontrado"
        super().__init__(f"{msg}: {path}" if path else msg)


class PackageNameError(BekuError):
    def __init__(self, name: str = ""):
        super().__init__(f"nome de pacote vazio ou inválido: {name!r}")


class RemoteURLError(BekuError):
    def __init__(self, url: str = ""):
        super().__init__(f"remote URL vazia ou inválida: {url!r}")


class DirNotEmptyError(BekuError):
    def __init__(self, path: str):
        super().__init__(f"diretório {path} não está vazio")


class PackageRequiredError(BekuError):
    """Pacote ainda é dependência de outros pacotes rastreados"""

    def __init__(self, import_path: str, required_by):
        self.import_path = import_path
        self.required_by = list(required_by)
        super().__init__(f"{import_path} é requerido por: {', '.join(self.required_by)}")


class DatabaseError(BekuError):
    pass


class CommandError(BekuError):
    """
    Falha de um comando externo (git, go). A mensagem leva o nome da
    operação como prefixo, ex: "gitFetch: exit 128: fatal: ...".
    """

    def __init__(self, op: str, rc: int, stdout: str = "", stderr: str = ""):
        self.op = op
        self.rc = rc
        self.stdout = stdout
        self.stderr = stderr
        detail = (stderr or stdout or "").strip()
        msg = f"{op}: exit {rc}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


# -------------------------
# Import paths / versões
# -------------------------
def is_ignored_dir(name: str) -> bool:
    """
    True se o diretório começa com "_" ou ".", ou é "vendor" / "testdata".
    """
    if not name:
        return False
    if name[0] in ("_", "."):
        return True
    return name in (TESTDATA_DIR, VENDOR_DIR)


def is_tag_version(version: str) -> bool:
    """
    True se a versão começa com "v" ou contém "." depois do primeiro
    caractere. Não faz strip: " v" não é tag.
    """
    if not version:
        return False
    if version[0] == TAG_PREFIX:
        return True
    return version.find(SEP_VERSION) > 0


def parse_pkg_version(pkg_name: str) -> Tuple[str, str]:
    """
    "pkg@v1.0.0" -> ("pkg", "v1.0.0"); "pkg" -> ("pkg", "").
    Espaços ao redor de nome e versão são removidos. Só o último "@" conta,
    e só se o que vem depois não tiver "/" nem ":" (git@host:a/b.git).
    """
    pkg_name = pkg_name or ""
    name, sep, version = pkg_name.rpartition(SEP_IMPORT_VERSION)
    if not sep or "/" in version or ":" in version:
        return pkg_name.strip(), ""
    return name.strip(), version.strip()


def has_import_prefix(import_path: str, prefix: str) -> bool:
    """
    Prefixo por segmentos: "a/b" casa com "a/b" e "a/b/c", mas não com "a/bc".
    """
    if not prefix:
        return False
    if import_path == prefix:
        return True
    return import_path.startswith(prefix.rstrip(SEP_IMPORT) + SEP_IMPORT)


def import_prefixes(import_path: str) -> Iterator[str]:
    """Gera os prefixos de um import path, do mais longo ao mais curto."""
    parts = import_path.strip(SEP_IMPORT).split(SEP_IMPORT)
    for n in range(len(parts), 0, -1):
        yield SEP_IMPORT.join(parts[:n])


_RE_SCP_URL = re.compile(r"^[\w.-]+@(?P<host>[^:/]+):(?P<path>.+)$")
_RE_HTTP_URL = re.compile(r"^(?:https?|git|ssh)://(?:[^@/]+@)?(?P<host>[^/:]+)(?::\d+)?/(?P<path>.+)$")


def is_remote_url(name: str) -> bool:
    """True se `name` já é uma URL de remote (scheme://... ou user@host:path)."""
    return "://" in name or bool(_RE_SCP_URL.match(name))


def split_remote_url(remote_url: str) -> Optional[Tuple[str, str]]:
    """
    "git@github.com:a/b.git" e "https://github.com/a/b" -> ("github.com", "a/b").
    None se a URL não tiver host e caminho.
    """
    m = _RE_SCP_URL.match(remote_url or "") or _RE_HTTP_URL.match(remote_url or "")
    if not m:
        return None
    path = m.group("path").strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    if not path:
        return None
    return m.group("host").lower(), path


def get_compare_url(remote_url: str, old_ver: str, new_ver: str) -> str:
    """
    URL web para comparar duas revisões. Só github.com e golang.org (que
    espelha em github.com/golang) são suportados; outros hosts retornam "".
    """
    parts = split_remote_url(remote_url)
    if parts is None:
        return ""
    host, path = parts

    if host == "golang.org":
        # golang.org/x/net -> github.com/golang/net
        parts = path.split("/")
        if len(parts) < 2 or parts[0] != "x":
            return ""
        path = "golang/" + parts[1]
    elif host != "github.com":
        return ""

    return f"https://github.com/{path}/compare/{old_ver}...{new_ver}"


# -------------------------
# Confirmação
# -------------------------
def confirm(stdin: IO[str], stdout: IO[str], question: str, def_is_yes: bool) -> bool:
    """
    Pergunta sim/não. Resposta vazia devolve o default; resposta começando
    com "y" ou "Y" é sim, qualquer outra é não.
    """
    hint = "[Y/n]" if def_is_yes else "[y/N]"
    stdout.write(f"{question} {hint}: ")
    stdout.flush()

    answer = stdin.readline().strip()
    if not answer:
        return def_is_yes
    return answer[0] in ("y", "Y")
