#!/usr/bin/env python3
"""CLI to run a multi-wiki BlueSpice farm.

Inputs: one action flag (--shared, --create, --deploy NAME, --backup NAME,
--upgrade).
Side effects: starts the shared services, creates/deploys wikis via docker
compose, backs a wiki up and upgrades every wiki to a new release. Each step
runs as `python -m <module>` and shares this process's run-id log file.
"""
import os
import subprocess
import sys

from modules.utils import RID_ENV, init_logging, run_cmd, status_fail, status_pass

MOD_SHARED = "modules.shared"
MOD_WIKI = "modules.wiki"
FLAG_SHARED = "--shared"
FLAG_CREATE = "--create"
FLAG_DEPLOY = "--deploy"
FLAG_UPGRADE = "--upgrade"
FLAG_BACKUP = "--backup"
FLAG_FRESH = "--fresh-install"
FLAG_PROFILE = "--profile"
FLAG_YES = "--yes"
USAGE = (
    "usage: --shared | --create | --deploy NAME [--fresh-install|--profile=upgrade]"
    " | --backup NAME | --upgrade [--version=X.Y] [--yes]"
)


def run_script(module: str, args: list[str]) -> bool:
    cmd = [sys.executable, "-m", module] + args
    try:
        run_cmd(cmd)
        return True
    except subprocess.CalledProcessError as err:
        status_fail(f"{module} {args[0] if args else ''} exit={err.returncode}; see log")
        return False


def step_shared_up() -> bool:
    return run_script(MOD_SHARED, ["up"])


def step_shared_status() -> bool:
    return run_script(MOD_SHARED, ["status"])


def step_create() -> bool:
    return run_script(MOD_WIKI, ["create"])


def step_deploy(wiki: str, extra: list[str]) -> bool:
    return run_script(MOD_WIKI, ["deploy", f"--wiki-name={wiki}"] + extra)


def step_backup(wiki: str) -> bool:
    return run_script(MOD_WIKI, ["backup", f"--wiki-name={wiki}"])


def step_upgrade(extra: list[str]) -> bool:
    return run_script(MOD_WIKI, ["upgrade"] + extra)


def _split_deploy_flags(rest: list[str]) -> tuple[list[str], list[str]]:
    passed, unknown = [], []
    for a in rest:
        if a == FLAG_FRESH or a.startswith(f"{FLAG_PROFILE}="):
            passed.append(a)
        else:
            unknown.append(a)
    return passed, unknown


def _split_upgrade_flags(rest: list[str]) -> tuple[list[str], list[str]]:
    passed, unknown = [], []
    for a in rest:
        if a == FLAG_YES or a.startswith("--version="):
            passed.append(a)
        else:
            unknown.append(a)
    return passed, unknown


def main(argv: list[str]) -> int:
    rid = init_logging(None)
    # Ensure subprocs inherit run-id
    os.environ[RID_ENV] = rid
    if not argv:
        status_fail(USAGE)
        return 1
    action, rest = argv[0], argv[1:]

    if action == FLAG_SHARED and not rest:
        if not step_shared_up():
            return 1
        status_pass("shared services up")
        return 0 if step_shared_status() else 1
    if action == FLAG_CREATE and not rest:
        if not step_create():
            return 1
        status_pass("wiki created")
        return 0
    if action == FLAG_DEPLOY and rest and not rest[0].startswith("--"):
        wiki = rest[0]
        extra, unknown = _split_deploy_flags(rest[1:])
        if unknown:
            status_fail(f"unknown argument(s): {' '.join(unknown)}")
            print(USAGE)
            return 1
        if not step_deploy(wiki, extra):
            return 1
        status_pass(f"wiki {wiki} deployed")
        return 0
    if action == FLAG_BACKUP and len(rest) == 1 and not rest[0].startswith("--"):
        if not step_backup(rest[0]):
            return 1
        status_pass(f"wiki {rest[0]} backed up")
        return 0
    if action == FLAG_UPGRADE:
        extra, unknown = _split_upgrade_flags(rest)
        if unknown:
            status_fail(f"unknown argument(s): {' '.join(unknown)}")
            print(USAGE)
            return 1
        if not step_upgrade(extra):
            return 1
        status_pass("upgrade finished")
        return 0

    status_fail(USAGE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
