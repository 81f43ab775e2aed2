import logging
import os
import subprocess
from logging.handlers import RotatingFileHandler
from datetime import datetime
from typing import Optional

from beku.modules import config

# -------------------------
# Configuração inicial
# -------------------------
LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_root_logger = logging.getLogger("beku")
_root_logger.setLevel(logging.DEBUG)  # captura tudo


class ColorFormatter(logging.Formatter):
    """Formata mensagens com cores para o console"""
    COLORS = {
        logging.DEBUG: "\033[36m",   # ciano
        logging.INFO: "\033[32m",    # verde
        logging.WARNING: "\033[33m", # amarelo
        logging.ERROR: "\033[31m",   # vermelho
        logging.CRITICAL: "\033[41m" # fundo vermelho
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelno, self.RESET)
        ts = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        module = f"[{record.name}]" if record.name != "beku" else ""
        msg = super().format(record)
        return f"{color}[{ts}] {record.levelname.lower():<8}{module}{self.RESET} {msg}"


def _setup_handlers():
    """Configura handlers globais"""
    if _root_logger.handlers:
        return  # já configurado

    # Console
    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if int(config.get("debug", 0)) >= 1 else logging.WARNING)
    ch.setFormatter(ColorFormatter("%(message)s"))
    _root_logger.addHandler(ch)

    # Arquivo
    log_dir = os.path.expanduser(config.get("log_dir"))
    try:
        os.makedirs(log_dir, exist_ok=True)
        fh = RotatingFileHandler(os.path.join(log_dir, "beku.log"),
                                 maxBytes=10 * 1024 * 1024, backupCount=5)
    except OSError as e:
        _root_logger.warning("Log em arquivo desativado (%s): %s", log_dir, e)
        return

    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
        "%Y-%m-%d %H:%M:%S"
    ))
    _root_logger.addHandler(fh)


_setup_handlers()


# -------------------------
# API pública
# -------------------------
def get_logger(name: str = "beku"):
    """Obtém sub-logger (ex.: log.get_logger("env"))"""
    return _root_logger.getChild(name)


def set_level(level: str):
    """Altera nível do console"""
    lvl = LEVELS.get(level.lower())
    if lvl is None:
        raise ValueError(f"Nível inválido: {level}")
    for handler in _root_logger.handlers:
        if not isinstance(handler, RotatingFileHandler):
            handler.setLevel(lvl)


def run_cmd(cmd: list[str], cwd: Optional[str] = None, env: Optional[dict] = None):
    """
    Executa comando externo registrando stdout/stderr.
    Retorna (returncode, stdout, stderr). Não há timeout: um fetch travado
    bloqueia até o processo terminar.
    """
    logger = get_logger("cmd")
    logger.debug("Executando: %s (cwd=%s)", " ".join(cmd), cwd or ".")

    try:
        process = subprocess.run(
            cmd,
            cwd=cwd,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except FileNotFoundError as e:
        logger.error("Comando não encontrado: %s", cmd[0])
        return 127, "", str(e)

    for line in process.stdout.splitlines():
        logger.debug("[stdout] %s", line)
    for line in process.stderr.splitlines():
        logger.debug("[stderr] %s", line)

    rc = process.returncode
    if rc != 0:
        logger.debug("Comando falhou com código %s", rc)

    return rc, process.stdout, process.stderr
