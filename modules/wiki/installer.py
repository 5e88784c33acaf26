"""Create and deploy wikis.

create_wiki() is the interactive wizard: it collects the settings, writes the
wiki's .env and PHP settings files and then deploys with the fresh-install
profile. deploy_wiki() brings a wiki's containers up and either installs the
database (fresh-install) or migrates it (upgrade).
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

import config
from modules.docker import (
    compose_up,
    copy_to_container,
    docker_exec,
    is_container_running,
    set_ownership,
    wait_for_container_ready,
)
from modules.shared import ensure_letsencrypt, load_root_password
from modules.utils import (
    confirm,
    generate_password,
    log,
    mask_secret,
    prompt,
    status_fail,
    status_pass,
    status_warn,
)
from modules.validation import (
    validate_domain,
    validate_email,
    validate_language_code,
    validate_port,
    validate_smtp_host,
    validate_smtp_pass,
    validate_wiki_name,
)
from . import db, php
from .oauth import setup_oauth_extensions
from .search import rebuild_search_index
from .settings import (
    WikiConfig,
    load_wiki_config,
    new_wiki_config,
    save_env,
    validate_config,
)

PROFILE_FRESH = "fresh-install"
PROFILE_UPGRADE = "upgrade"
PROFILES = (PROFILE_FRESH, PROFILE_UPGRADE)

INSTALLER_SCRIPT = f"{config.CONTAINER_INSTALLER_DIR}/020-install-database"
ADMIN_PASSWORD_FILE = "initialAdminPassword"


def _new_wiki_name(wikis_dir: Optional[Path]) -> Callable[[str], bool]:
    return lambda name: validate_wiki_name(name) and _not_existing(name, wikis_dir)


def _not_existing(name: str, wikis_dir: Optional[Path]) -> bool:
    if (Path(wikis_dir or config.WIKIS_DIR) / name / ".env").exists():
        logging.error("Wiki %s already exists", name)
        print(f"  Wiki '{name}' already exists")
        return False
    return True


def ask_wiki_config(wikis_dir: Optional[Path] = None) -> WikiConfig:
    name = prompt("Wiki name", validator=_new_wiki_name(wikis_dir))
    domain = prompt("Domain (e.g. wiki.example.com)", validator=validate_domain)
    lang = prompt("Language code", validator=validate_language_code, default=config.DEFAULT_LANG)
    cfg = new_wiki_config(name, domain, lang=lang, wikis_dir=wikis_dir)
    cfg.ssl_enabled = confirm(f"Request a Let's Encrypt certificate for {domain}?")

    if confirm("Configure SMTP for outgoing mail?"):
        cfg.smtp_host = prompt("SMTP host", validator=validate_smtp_host)
        port = prompt(
            "SMTP port",
            validator=lambda p: validate_port(p, "SMTP port"),
            default=str(config.DEFAULT_SMTP_PORT),
        )
        cfg.smtp_port = int(port)
        cfg.smtp_user = prompt("SMTP user (email)", validator=validate_email)
        cfg.smtp_pass = prompt("SMTP password", validator=validate_smtp_pass, secret=True)

    if confirm("Configure Google OAuth login?"):
        cfg.oauth_client_id = prompt("Google OAuth client ID", validator=bool)
        cfg.oauth_client_secret = prompt(
            "Google OAuth client secret", validator=bool, secret=True
        )
        cfg.oauth_autocreate = confirm("Create accounts for unknown Google users?")
    return cfg


def print_summary(cfg: WikiConfig) -> None:
    print("Wiki configuration:")
    print(f"  Name:      {cfg.name}")
    print(f"  URL:       {cfg.server_url}")
    print(f"  Language:  {cfg.lang}")
    print(f"  Database:  {cfg.db_name} (user {cfg.db_user})")
    print(f"  Container: {cfg.container_name}")
    print("  SSL:       " + ("Let's Encrypt" if cfg.ssl_enabled else "not requested"))
    if cfg.has_smtp:
        print(f"  SMTP:      {cfg.smtp_user} via {cfg.smtp_host}:{cfg.smtp_port}")
    else:
        print("  SMTP:      not configured")
    if cfg.oauth_client_id:
        print(f"  OAuth:     client {mask_secret(cfg.oauth_client_id)}")
    else:
        print("  OAuth:     not configured")


def prepare_wiki_files(cfg: WikiConfig) -> bool:
    """Write .env and the PHP settings files for a new wiki."""
    if not validate_config(cfg):
        status_fail("invalid wiki configuration")
        return False
    if not save_env(cfg):
        status_fail(f"could not write {cfg.env_file}")
        return False
    if not php.write_settings_files(cfg):
        status_fail("could not write PHP settings files")
        return False
    if not cfg.oauth_client_id:
        if not php.append_block(cfg.wiki_dir / php.POST_INIT, php.render_oauth_placeholder()):
            return False
    status_pass(f"configuration written to {cfg.wiki_dir}")
    return True


def create_wiki(wikis_dir: Optional[Path] = None, assume_yes: bool = False) -> bool:
    cfg = ask_wiki_config(wikis_dir)
    print_summary(cfg)
    if not assume_yes and not confirm("Create this wiki?"):
        print("Wiki creation cancelled")
        return True
    if not prepare_wiki_files(cfg):
        return False
    if not deploy_wiki(cfg.name, PROFILE_FRESH, wikis_dir=wikis_dir):
        return False
    if cfg.oauth_client_id:
        if not setup_oauth_extensions(
            cfg, cfg.oauth_client_id, cfg.oauth_client_secret, cfg.oauth_autocreate
        ):
            status_warn("wiki deployed but OAuth setup failed; rerun: oauth --wiki-name=" + cfg.name)
    return True


def push_settings_files(cfg: WikiConfig) -> bool:
    name = cfg.container_name
    for filename in (php.PRE_INIT, php.POST_INIT):
        local = cfg.wiki_dir / filename
        dest = f"{config.CONTAINER_DATA_DIR}/{filename}"
        if not local.is_file():
            status_fail(f"{local} not found")
            return False
        if not copy_to_container(name, local, dest):
            status_fail(f"could not copy {filename} into {name}")
            return False
        if not set_ownership(name, dest):
            status_fail(f"could not set ownership of {dest}")
            return False
    log(f"PASS: settings files installed in {name}")
    return True


def patch_installer(cfg: WikiConfig) -> bool:
    """Replace the image's database install step with the socket/TCP variant."""
    script = php.render_template(
        "install-database.sh.tpl", wiki_dir=config.CONTAINER_WIKI_DIR
    )
    fd, tmp = tempfile.mkstemp(prefix="install-database-", suffix=".sh")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(script)
        if not copy_to_container(cfg.container_name, tmp, INSTALLER_SCRIPT):
            return False
    finally:
        os.unlink(tmp)
    if not docker_exec(cfg.container_name, ["chmod", "+x", INSTALLER_SCRIPT], user="root"):
        return False
    log(f"PASS: patched {INSTALLER_SCRIPT}")
    return True


def write_admin_password(cfg: WikiConfig, password: str) -> Optional[Path]:
    path = cfg.wiki_dir / ADMIN_PASSWORD_FILE
    try:
        path.write_text(password + "\n", encoding="utf-8")
        path.chmod(0o600)
    except OSError as err:
        logging.error("Could not write %s: %s", path, err)
        return None
    return path


def install_database(cfg: WikiConfig) -> bool:
    password_file = write_admin_password(cfg, generate_password())
    if password_file is None:
        status_fail("could not store the initial admin password")
        return False
    # The password arrives on stdin so it never shows up in argv or logs.
    shell = (
        f"read -r adminPass && export adminPass "
        f"adminUserName={config.DEFAULT_ADMIN_USER} && bash {INSTALLER_SCRIPT}"
    )
    with open(password_file, "rb") as fh:
        ok = docker_exec(
            cfg.container_name, ["bash", "-c", shell], user=config.CONTAINER_USER, stdin=fh
        )
    if not ok:
        status_fail(f"MediaWiki installation failed for {cfg.name}")
        return False
    status_pass(
        f"MediaWiki installed; admin user {config.DEFAULT_ADMIN_USER}, "
        f"password in {password_file}"
    )
    return True


def run_update(cfg: WikiConfig) -> bool:
    argv = ["php", f"{config.CONTAINER_WIKI_DIR}/maintenance/update.php", "--quick"]
    if not docker_exec(cfg.container_name, argv, user=config.CONTAINER_USER):
        status_fail(f"update.php failed for {cfg.name}")
        return False
    status_pass(f"database schema updated for {cfg.name}")
    return True


def deploy_wiki(
    wiki_name: str, profile: str = PROFILE_FRESH, wikis_dir: Optional[Path] = None
) -> bool:
    if profile not in PROFILES:
        status_fail(f"unknown profile '{profile}' (expected {' or '.join(PROFILES)})")
        return False
    cfg = load_wiki_config(wiki_name, wikis_dir)
    if cfg is None:
        status_fail(f"could not load configuration for {wiki_name}")
        return False
    if not is_container_running(config.DB_CONTAINER):
        status_fail(f"shared database {config.DB_CONTAINER} is not running; start it with --shared")
        return False

    if profile == PROFILE_FRESH:
        root_pass = load_root_password()
        if root_pass is None:
            status_fail("database root password unavailable")
            return False
        if not db.ensure_db_and_user(cfg, root_pass):
            status_fail(f"could not create database {cfg.db_name}")
            return False
        status_pass(f"database {cfg.db_name} ready")

    if cfg.ssl_enabled and not ensure_letsencrypt():
        return False

    files = [config.COMPOSE_DIR / "wiki.yml"]
    if not compose_up(files, cfg.env_file, cfg.container_prefix):
        status_fail(f"could not start containers for {wiki_name}")
        return False
    status_pass(f"containers started for {wiki_name}")

    # The readiness check looks for post-init-settings.php, so install it first.
    if not push_settings_files(cfg):
        return False
    if not wait_for_container_ready(cfg.name):
        return False

    if profile == PROFILE_FRESH:
        if not patch_installer(cfg):
            status_fail("could not patch the database installer")
            return False
        if not install_database(cfg):
            return False
    elif not run_update(cfg):
        return False

    if not rebuild_search_index(cfg.name):
        status_warn(f"search index rebuild failed for {wiki_name}; run: search --wiki-name={wiki_name}")
    status_pass(f"wiki {wiki_name} deployed ({profile}) at {cfg.server_url}")
    return True
