#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cli.py — CLI do beku (gerenciador de dependências do GOPATH)

    beku sync <pkg[@versão]>... [--into DIR]
    beku sync --update
    beku rescan
    beku remove <pkg> [--recursive]
    beku query [pkg...]
    beku exclude <pkg>...
    beku freeze
    beku config get|set|list|reset

Opções globais: --noconfirm, --nodeps, --verbose.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Tuple

from beku.modules import config as config_mod
from beku.modules import log as log_mod
from beku.modules.common import BekuError, ConfigError, DatabaseError
from beku.modules.env import Env

# ANSI colors simples
C = {
    "reset": "\033[0m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "bold": "\033[1m",
}


def color(text: str, col: str) -> str:
    return f"{C.get(col, '')}{text}{C['reset']}"


logger = log_mod.get_logger("cli")


def _setup_logging(verbose: bool) -> None:
    if verbose or int(config_mod.get("debug", 0)) >= 1:
        log_mod.set_level("debug")


def _options(args) -> config_mod.Options:
    debug = int(config_mod.get("debug", 0))
    if getattr(args, "verbose", False):
        debug = max(debug, 1)
    return config_mod.options(
        no_confirm=True if getattr(args, "noconfirm", False) else None,
        no_deps=True if getattr(args, "nodeps", False) else None,
        debug=debug,
    )


def _new_env(opts: config_mod.Options) -> Env:
    return Env(opts)


def _open_env(args, required: bool = True) -> Tuple[Env, bool]:
    """
    Cria o Env e carrega o banco. Retorna (env, primeira_vez); banco
    ausente é erro só quando `required`.
    """
    env = _new_env(_options(args))
    try:
        env.load()
    except FileNotFoundError:
        if required:
            raise DatabaseError(f"banco não encontrado: {env.opts.db_file}") from None
        logger.info("Banco %s não existe, primeiro uso", env.opts.db_file)
        return env, True
    return env, False


# ---------------------------
# Handlers
# ---------------------------

def cmd_sync(args):
    """
    beku sync <pkg[@versão]>... [--into DIR] | beku sync --update
    """
    pkgs = args.pkgs or []
    if args.into and len(pkgs) != 1:
        print(color("[ERRO] sync: --into aceita exatamente um pacote", "red"), file=sys.stderr)
        return 1
    if not pkgs and not args.update:
        print("Uso: beku sync <pkg[@versão]>... | beku sync --update")
        return 1

    env, first_time = _open_env(args, required=False)
    try:
        if first_time and not env.rescan(True):
            return 0

        if args.update and not pkgs:
            env.sync_all()
        elif args.into:
            env.sync(pkgs[0], args.into)
        else:
            env.sync_many(pkgs)
    finally:
        env.save()

    print(color("[OK] Sync concluído", "green"))
    return 0


def cmd_rescan(args):
    """
    beku rescan
    """
    env, first_time = _open_env(args, required=False)
    if env.rescan(first_time):
        env.save()
    return 0


def cmd_remove(args):
    """
    beku remove <pkg> [--recursive]
    """
    env, _ = _open_env(args)
    try:
        ok = env.remove(args.pkg, recursive=args.recursive)
    finally:
        env.save()

    if ok:
        print(color("[OK] Pacote removido", "green"))
        return 0
    print(color("[WARN] Nada foi removido", "yellow"))
    return 1


def cmd_query(args):
    """
    beku query [pkg...]
    """
    env, _ = _open_env(args)
    env.query(args.pkgs)
    return 0


def cmd_exclude(args):
    """
    beku exclude <pkg>...
    """
    env, _ = _open_env(args, required=False)
    env.exclude(args.pkgs)
    env.save()
    return 0


def cmd_freeze(args):
    """
    beku freeze
    """
    env, _ = _open_env(args)
    try:
        env.freeze()
    finally:
        env.save()
    print(color("[OK] Workspace igual ao banco", "green"))
    return 0


def _config_value(key: str, raw: str):
    """Valor tipado para `config set`; chaves booleanas aceitam yes/no/0/1."""
    if key not in config_mod.DEFAULTS:
        raise ConfigError(f"chave desconhecida: {key}")
    value = config_mod.parse_value(raw)
    if isinstance(config_mod.DEFAULTS[key], bool):
        return config_mod.as_bool(value)
    return value


def cmd_config(args):
    """
    beku config get <key>
    beku config set <key> <value> [--system]
    beku config list
    beku config reset [--system]
    """
    scope = "global" if args.system else "usuário"

    if args.action == "list":
        for key, value in sorted(config_mod.all().items()):
            print(f"{color(key, 'cyan')}: {value}")
        return 0

    if args.action == "reset":
        config_mod.reset(system=args.system)
        print(color(f"[OK] Configuração {scope} restaurada", "green"))
        return 0

    if not args.key:
        print(f"Uso: beku config {args.action} <chave>{' <valor>' if args.action == 'set' else ''}")
        return 1

    if args.action == "get":
        print(config_mod.get(args.key))
        return 0

    if args.value is None:
        print("Uso: beku config set <chave> <valor> [--system]")
        return 1
    value = _config_value(args.key, args.value)
    config_mod.set(args.key, value, system=args.system)
    print(color(f"[OK] {args.key} = {value!r} ({scope})", "green"))
    return 0


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------

def build_parser():
    p = argparse.ArgumentParser(prog="beku", description="beku - Gerenciador de dependências do GOPATH")
    p.add_argument("--verbose", "-v", action="store_true", help="Modo verboso")
    p.add_argument("--noconfirm", action="store_true", help="Não pedir confirmação (usa a resposta padrão)")
    p.add_argument("--nodeps", action="store_true", help="Não instalar dependências faltando")
    sub = p.add_subparsers(dest="command")

    # sync
    ss = sub.add_parser("sync", aliases=["S"], help="Instalar ou atualizar pacotes")
    ss.add_argument("pkgs", nargs="*", help="Pacotes (import path ou URL, com @versão opcional)")
    ss.add_argument("--into", metavar="DIR", default=None, help="Import path de destino")
    ss.add_argument("--update", "-u", action="store_true", help="Atualizar todos os pacotes")
    ss.set_defaults(func=cmd_sync)

    # rescan
    sre = sub.add_parser("rescan", help="Reescanear o GOPATH e atualizar o banco")
    sre.set_defaults(func=cmd_rescan)

    # remove
    sr = sub.add_parser("remove", aliases=["rm", "R"], help="Remover pacote")
    sr.add_argument("pkg")
    sr.add_argument("--recursive", "-s", action="store_true",
                    help="Remover também dependências que ficarem sem uso")
    sr.set_defaults(func=cmd_remove)

    # query
    sq = sub.add_parser("query", aliases=["Q"], help="Listar pacotes e versões")
    sq.add_argument("pkgs", nargs="*")
    sq.set_defaults(func=cmd_query)

    # exclude
    se = sub.add_parser("exclude", aliases=["e"], help="Excluir pacotes de scan e sync")
    se.add_argument("pkgs", nargs="+")
    se.set_defaults(func=cmd_exclude)

    # freeze
    sf = sub.add_parser("freeze", aliases=["B"], help="Deixar o GOPATH igual ao banco")
    sf.set_defaults(func=cmd_freeze)

    # config
    sc = sub.add_parser("config", help="Gerenciar configuração do beku")
    sc.add_argument("action", choices=["get", "set", "list", "reset"], help="Ação sobre a configuração")
    sc.add_argument("key", nargs="?", help="Chave da configuração")
    sc.add_argument("value", nargs="?", help="Valor (para set)")
    sc.add_argument("--system", action="store_true", help="Salvar/operar no config global (/etc)")
    sc.set_defaults(func=cmd_config)

    return p


def run(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    _setup_logging(getattr(args, "verbose", False))

    try:
        return args.func(args)
    except BekuError as e:
        print(color(f"[ERRO] {args.command}: {e}", "red"), file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("Erro ao executar comando")
        print(color(f"[ERRO] {args.command}: {e}", "red"), file=sys.stderr)
        return 2


def main(argv=None):
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
