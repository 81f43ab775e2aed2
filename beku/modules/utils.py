import os
import shutil
from typing import List, Optional

from beku.modules import log
from beku.modules.common import CommandError


# -------------------------
# Sistema de arquivos
# -------------------------
def ensure_dir(path: str):
    """Cria diretório se não existir"""
    os.makedirs(path, mode=0o700, exist_ok=True)


def rm(path: str):
    """Remove arquivo ou diretório"""
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def is_dir_empty(path: str) -> bool:
    """True se o diretório não existe ou não tem nenhuma entrada"""
    try:
        with os.scandir(path) as it:
            return next(it, None) is None
    except FileNotFoundError:
        return True


def rmdir_empty_all(path: str, stop: Optional[str] = None):
    """
    Remove `path` e cada diretório pai enquanto estiverem vazios.
    Para ao encontrar um arquivo, um diretório com conteúdo, ou `stop`
    (que nunca é removido). Um `path` inexistente é pulado e a subida
    continua pelo pai.
    """
    if not path:
        return
    path = os.path.abspath(path)
    stop = os.path.abspath(stop) if stop else None

    while path and path != os.path.dirname(path):
        if stop and (path == stop or not path.startswith(stop + os.sep)):
            return
        if os.path.lexists(path):
            if not os.path.isdir(path) or not is_dir_empty(path):
                return
            os.rmdir(path)
        path = os.path.dirname(path)


# -------------------------
# Execução de comandos
# -------------------------
def run(op: str, cmd: List[str], cwd: Optional[str] = None, env: Optional[dict] = None,
        check: bool = True):
    """
    Wrapper para rodar comandos com log. Com check=True, saída diferente de
    zero vira CommandError com `op` como prefixo da mensagem.
    """
    rc, out, err = log.run_cmd(cmd, cwd=cwd, env=env)
    if check and rc != 0:
        raise CommandError(op, rc, out, err)
    return rc, out, err
