#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
config.py — Módulo de configuração do beku

- Suporta $BEKU_CONFIG > ~/.config/beku/config.yml > /etc/beku/config.yml > defaults
- Workspace (GOPATH) e GOROOT vêm do ambiente quando não configurados
- Permite leitura, escrita, reset e listagem completa da config
- options() monta a estrutura Options que é passada explicitamente ao Env
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import IO, Optional

import yaml

from beku.modules.common import ConfigError

# Caminhos padrão
USER_CONFIG = os.path.expanduser("~/.config/beku/config.yml")
SYSTEM_CONFIG = "/etc/beku/config.yml"

ENV_CONFIG = "BEKU_CONFIG"
ENV_DEBUG = "BEKU_DEBUG"

# Valores padrão
DEFAULTS = {
    # Workspace
    "gopath": None,   # None -> $GOPATH ou ~/go
    "goroot": None,   # None -> $GOROOT

    # Banco de dados (relativo ao gopath quando não absoluto)
    "db_name": "gopath.deps",
    "db_dir": "var/beku",

    # Logs
    "log_dir": "~/.local/state/beku",

    # Comportamento
    "debug": 0,
    "no_confirm": False,
    "no_deps": False,
    "version_policy": "exact",  # exact | newer
}

_config = DEFAULTS.copy()


def _load_from(path: str) -> dict:
    """Carrega configuração de um arquivo YAML se existir."""
    if not os.path.isfile(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"config inválida em {path}: {e}") from e
    if not isinstance(data, dict):
        return {}
    return data


def load_config() -> dict:
    """Carrega config seguindo a hierarquia: env > user > system > defaults"""
    global _config

    env_path = os.getenv(ENV_CONFIG)
    if env_path and os.path.exists(env_path):
        _config = {**DEFAULTS, **_load_from(env_path)}
    elif os.path.exists(USER_CONFIG):
        _config = {**DEFAULTS, **_load_from(USER_CONFIG)}
    elif os.path.exists(SYSTEM_CONFIG):
        _config = {**DEFAULTS, **_load_from(SYSTEM_CONFIG)}
    else:
        _config = DEFAULTS.copy()

    debug = os.getenv(ENV_DEBUG)
    if debug:
        try:
            _config["debug"] = int(debug)
        except ValueError:
            raise ConfigError(f"{ENV_DEBUG} inválido: {debug!r}")

    return _config


def _save(cfg: dict, system: bool = False) -> None:
    """Salva configuração em YAML (usuário ou sistema)."""
    path = SYSTEM_CONFIG if system else USER_CONFIG
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, default_flow_style=False, allow_unicode=True)


def get(key: str, default=None):
    """Obtém valor de uma chave da configuração (com fallback)."""
    if not _config:
        load_config()
    value = _config.get(key, DEFAULTS.get(key))
    return default if value is None else value


def set(key: str, value, system: bool = False):
    """Define valor para uma chave e salva em config.yml."""
    cfg = load_config()
    cfg[key] = value
    _save(cfg, system=system)
    _config.update(cfg)


def parse_value(raw: str):
    """
    Converte o texto vindo da linha de comando no tipo YAML correspondente:
    "false" -> False, "2" -> 2, "/opt/go" -> "/opt/go".
    """
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def as_bool(value) -> bool:
    """Booleano de config; aceita strings como "false", "no", "0"."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


def all() -> dict:
    """Retorna configuração completa (merge de defaults + arquivo carregado)."""
    return load_config()


def reset(system: bool = False):
    """Restaura configuração para os valores padrão."""
    _save(DEFAULTS.copy(), system=system)
    load_config()


# -------------------------
# Workspace
# -------------------------
def gopath() -> str:
    """Raiz do workspace: config > $GOPATH (primeira entrada) > ~/go"""
    path = get("gopath")
    if not path:
        env_path = os.getenv("GOPATH", "")
        path = env_path.split(os.pathsep)[0] if env_path else ""
    if not path:
        path = os.path.join(os.path.expanduser("~"), "go")
    return os.path.abspath(os.path.expanduser(path))


def goroot() -> Optional[str]:
    path = get("goroot") or os.getenv("GOROOT")
    if not path:
        return None
    return os.path.abspath(os.path.expanduser(path))


def db_path(root: Optional[str] = None, name: Optional[str] = None) -> str:
    """Caminho do banco de dados padrão ({gopath}/var/beku/gopath.deps)."""
    db_dir = os.path.expanduser(get("db_dir"))
    if not os.path.isabs(db_dir):
        db_dir = os.path.join(root or gopath(), db_dir)
    return os.path.join(db_dir, name or get("db_name"))


@dataclass
class Options:
    """
    Configuração explícita de um Env: raiz do workspace, nível de debug,
    modo sem confirmação e os streams de entrada e saída.
    """
    gopath: str
    goroot: Optional[str] = None
    db_file: str = ""
    debug: int = 0
    no_confirm: bool = False
    no_deps: bool = False
    version_policy: str = "exact"
    stdin: IO[str] = field(default=sys.stdin, repr=False)
    stdout: IO[str] = field(default=sys.stdout, repr=False)

    @property
    def dir_src(self) -> str:
        return os.path.join(self.gopath, "src")

    def validate(self) -> None:
        if not self.gopath:
            raise ConfigError("GOPATH não definido")
        if not os.path.isdir(self.dir_src):
            raise ConfigError(f"diretório de fontes não existe: {self.dir_src}")


def options(**overrides) -> Options:
    """Monta Options a partir da config carregada; overrides têm prioridade."""
    cfg = load_config()
    opts = Options(
        gopath=gopath(),
        goroot=goroot(),
        db_file=db_path(),
        debug=int(cfg.get("debug") or 0),
        no_confirm=as_bool(cfg.get("no_confirm")),
        no_deps=as_bool(cfg.get("no_deps")),
        version_policy=cfg.get("version_policy") or "exact",
    )
    for key, value in overrides.items():
        if value is not None:
            setattr(opts, key, value)
    if overrides.get("gopath") and not overrides.get("db_file"):
        opts.db_file = db_path(root=opts.gopath)
    return opts


# Carrega config logo no import
load_config()

# Execução direta para debug
if __name__ == "__main__":
    import json
    print("Config atual:")
    print(json.dumps(all(), indent=2, ensure_ascii=False))
