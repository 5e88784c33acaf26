"""Shared services controller: database, search, cache, proxy and the
stateless formula/pdf/diagram renderers.

Usage: python -m modules.shared up|down|status|fix-password|letsencrypt

The services live in one compose project on the external bluespice-network.
Their settings (data directory, image version, DB root password) are kept in
shared/.shared.env, created on first use with a generated root password.
The acme-companion certificate service runs as a second project, started
the first time a wiki with SSL enabled is deployed.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Optional

from dotenv import dotenv_values

import config
from modules.docker import (
    compose_down,
    compose_up,
    ensure_network,
    health_status,
    is_container_running,
)
from modules.utils import (
    generate_password,
    init_logging,
    log,
    status_fail,
    status_pass,
    status_warn,
)
from modules.wiki.db import bootstrap_root_password, wait_for_database

PROJECT = "bluespice-shared"
SHARED_CONTAINERS = (
    config.DB_CONTAINER,
    config.SEARCH_CONTAINER,
    "bluespice-cache",
    "bluespice-proxy",
) + config.STATELESS_CONTAINERS
LETSENCRYPT_PROJECT = "bluespice-letsencrypt"


def compose_files() -> list:
    return [config.COMPOSE_DIR / "shared-services.yml"]


def render_shared_env(root_pass: str) -> str:
    template = (config.DATA_DIR / "shared.env.tpl").read_text(encoding="utf-8")
    return template.format(
        generated=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        data_dir=config.BLUESPICE_DATA_DIR,
        version=config.VERSION,
        service_repository=config.SERVICE_REPOSITORY,
        db_root_pass=root_pass,
        admin_mail=config.ADMIN_MAIL,
    )


def ensure_shared_env() -> bool:
    env_file = config.SHARED_ENV_FILE
    if env_file.is_file():
        return True
    try:
        env_file.parent.mkdir(parents=True, exist_ok=True)
        env_file.write_text(render_shared_env(generate_password()), encoding="utf-8")
        env_file.chmod(0o600)
    except OSError as err:
        logging.error("Could not write %s: %s", env_file, err)
        return False
    status_pass(f"created {env_file} with a new database root password")
    return True


def load_root_password() -> Optional[str]:
    env_file = config.SHARED_ENV_FILE
    if not env_file.is_file():
        logging.error("Shared configuration not found: %s", env_file)
        return None
    root_pass = dotenv_values(env_file).get("DB_ROOT_PASS")
    if not root_pass:
        logging.error("DB_ROOT_PASS is not set in %s", env_file)
        return None
    return root_pass


def shared_up() -> bool:
    if not ensure_shared_env():
        status_fail("could not prepare shared configuration")
        return False
    root_pass = load_root_password()
    if root_pass is None:
        status_fail(f"no database root password in {config.SHARED_ENV_FILE}")
        return False
    if not ensure_network():
        status_fail(f"could not create network {config.NETWORK_NAME}")
        return False
    if not compose_up(compose_files(), config.SHARED_ENV_FILE, PROJECT):
        status_fail("could not start shared services")
        return False
    status_pass("shared services started")
    if not wait_for_database(root_pass):
        return False
    return bootstrap_root_password(root_pass)


def letsencrypt_files() -> list:
    return [config.COMPOSE_DIR / "letsencrypt.yml"]


def ensure_letsencrypt() -> bool:
    """Start the certificate service unless it is already running."""
    if is_container_running(config.LETSENCRYPT_CONTAINER):
        log(f"{config.LETSENCRYPT_CONTAINER} already running")
        return True
    if not config.SHARED_ENV_FILE.is_file():
        status_fail(f"shared configuration not found: {config.SHARED_ENV_FILE}; run --shared first")
        return False
    if not compose_up(letsencrypt_files(), config.SHARED_ENV_FILE, LETSENCRYPT_PROJECT):
        status_fail("could not start the Let's Encrypt certificate service")
        return False
    status_pass("Let's Encrypt certificate service started")
    return True


def shared_down() -> bool:
    if is_container_running(config.LETSENCRYPT_CONTAINER) and not compose_down(
        letsencrypt_files(), config.SHARED_ENV_FILE, LETSENCRYPT_PROJECT
    ):
        status_warn("could not stop the Let's Encrypt certificate service")
    if not compose_down(compose_files(), config.SHARED_ENV_FILE, PROJECT):
        status_fail("could not stop shared services")
        return False
    status_pass("shared services stopped")
    return True


def shared_status() -> bool:
    all_up = True
    for name in SHARED_CONTAINERS:
        if not is_container_running(name):
            print(f"  {name}: stopped")
            all_up = False
            continue
        print(f"  {name}: running ({health_status(name)})")
    if is_container_running(config.LETSENCRYPT_CONTAINER):
        name = config.LETSENCRYPT_CONTAINER
        print(f"  {name}: running ({health_status(name)})")
    if all_up:
        status_pass("all shared services running")
    else:
        status_warn("some shared services are not running")
    return all_up


def fix_password() -> bool:
    root_pass = load_root_password()
    if root_pass is None:
        status_fail(f"no database root password in {config.SHARED_ENV_FILE}")
        return False
    return bootstrap_root_password(root_pass)


COMMANDS = {
    "up": shared_up,
    "down": shared_down,
    "status": shared_status,
    "fix-password": fix_password,
    "letsencrypt": ensure_letsencrypt,
}


def main() -> int:
    init_logging(None)
    argv = sys.argv[1:]
    if len(argv) != 1 or argv[0] not in COMMANDS:
        status_fail(f"usage: {'|'.join(COMMANDS)}")
        return 1
    log(f"shared: {argv[0]}")
    return 0 if COMMANDS[argv[0]]() else 1


if __name__ == "__main__":
    raise SystemExit(main())
