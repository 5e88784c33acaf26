"""Module entry point: python -m modules.wiki <subcommand> [--flags]."""

from __future__ import annotations

import sys
from pathlib import Path

from modules.utils import init_logging, parse_flags, status_fail
from modules.validation import validate_wiki_name
from .backup import backup_wiki
from .images import import_images
from .importer import import_sql_dump, import_xml_dump
from .installer import PROFILE_FRESH, PROFILE_UPGRADE, create_wiki, deploy_wiki
from .oauth import setup_oauth_extensions
from .search import rebuild_search_index
from .settings import load_wiki_config
from .upgrade import upgrade_all

USAGE = (
    "usage: create [--yes] | deploy --wiki-name=N [--fresh-install|--profile=upgrade]"
    " | import-db --wiki-name=N --dump=PATH [--strip-prefix|--keep-prefix]"
    " | import-xml --wiki-name=N --dump=PATH"
    " | import-images --wiki-name=N --images-archive=PATH [--yes]"
    " | oauth --wiki-name=N [--client-id=ID --client-secret=S [--autocreate]]"
    " | search --wiki-name=N | backup --wiki-name=N"
    " | upgrade [--version=X.Y] [--yes]"
)

# flag name -> True when it takes a value (--flag=VALUE), False for a bare switch
KNOWN_FLAGS = {
    "create": {"yes": False},
    "deploy": {"wiki-name": True, "fresh-install": False, "profile": True},
    "import-db": {"wiki-name": True, "dump": True, "strip-prefix": False, "keep-prefix": False},
    "import-xml": {"wiki-name": True, "dump": True},
    "import-images": {"wiki-name": True, "images-archive": True, "yes": False},
    "oauth": {"wiki-name": True, "client-id": True, "client-secret": True, "autocreate": False},
    "search": {"wiki-name": True},
    "backup": {"wiki-name": True},
    "upgrade": {"version": True, "yes": False},
}


def _value(flags: dict, key: str) -> str:
    value = flags.get(key)
    return value if isinstance(value, str) else ""


def _require(flags: dict, *keys: str) -> bool:
    missing = [k for k in keys if not _value(flags, k)]
    if missing:
        status_fail(f"missing --{'=, --'.join(missing)}=")
        return False
    return True


def _cmd_deploy(flags: dict) -> bool:
    profile = _value(flags, "profile") or PROFILE_FRESH
    if flags.get("fresh-install") and profile == PROFILE_UPGRADE:
        status_fail("--fresh-install and --profile=upgrade are exclusive")
        return False
    return deploy_wiki(_value(flags, "wiki-name"), profile)


def _cmd_import_db(flags: dict, cfg) -> bool:
    if flags.get("strip-prefix") and flags.get("keep-prefix"):
        status_fail("--strip-prefix and --keep-prefix are exclusive")
        return False
    strip = None
    if flags.get("strip-prefix"):
        strip = True
    elif flags.get("keep-prefix"):
        strip = False
    return import_sql_dump(cfg, Path(_value(flags, "dump")), strip=strip)


def dispatch(cmd: str, flags: dict) -> bool:
    if cmd == "create":
        return create_wiki(assume_yes=bool(flags.get("yes")))
    if cmd == "upgrade":
        return upgrade_all(_value(flags, "version") or None, assume_yes=bool(flags.get("yes")))
    if not _require(flags, "wiki-name"):
        return False
    if not validate_wiki_name(_value(flags, "wiki-name")):
        status_fail("invalid --wiki-name")
        return False
    if cmd == "deploy":
        return _cmd_deploy(flags)
    if cmd == "search":
        return rebuild_search_index(_value(flags, "wiki-name"))

    cfg = load_wiki_config(_value(flags, "wiki-name"))
    if cfg is None:
        status_fail(f"could not load configuration for {_value(flags, 'wiki-name')}")
        return False
    if cmd == "import-db":
        return _require(flags, "dump") and _cmd_import_db(flags, cfg)
    if cmd == "import-xml":
        return _require(flags, "dump") and import_xml_dump(cfg, Path(_value(flags, "dump")))
    if cmd == "import-images":
        return _require(flags, "images-archive") and import_images(
            cfg, Path(_value(flags, "images-archive")), assume_yes=bool(flags.get("yes"))
        )
    if cmd == "oauth":
        if _value(flags, "client-id") and not _require(flags, "client-secret"):
            return False
        return setup_oauth_extensions(
            cfg,
            _value(flags, "client-id"),
            _value(flags, "client-secret"),
            bool(flags.get("autocreate")),
        )
    if cmd == "backup":
        return backup_wiki(cfg) is not None
    status_fail("unknown subcommand")
    return False


def main(argv: list[str] | None = None) -> int:
    init_logging(None)
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0] not in KNOWN_FLAGS:
        status_fail(USAGE)
        return 1
    cmd = argv[0]
    flags, unknown = parse_flags(argv[1:], KNOWN_FLAGS[cmd])
    if unknown:
        status_fail(f"unknown argument(s) for {cmd}: {' '.join(unknown)}")
        print(USAGE)
        return 1
    return 0 if dispatch(cmd, flags) else 1


if __name__ == "__main__":
    raise SystemExit(main())
