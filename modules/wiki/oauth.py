"""Install PluggableAuth/OpenIDConnect into a wiki and configure Google OAuth.

Extensions are downloaded on the host (primary URL, then fallback), unpacked,
copied into the web container and completed with composer. Settings blocks
are appended to the host copy of post-init-settings.php and pushed into the
container, so both copies stay identical.
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Optional, Sequence

import requests

from config import AUTH_EXTENSIONS, CONTAINER_DATA_DIR, CONTAINER_EXTENSIONS_DIR, HTTP_TIMEOUT
from modules.docker import (
    copy_to_container,
    docker_exec,
    docker_exec_capture,
    is_container_running,
    set_ownership,
    wait_for_container_ready,
)
from modules.utils import log, require, status_fail, status_pass, status_warn
from . import php
from .settings import WikiConfig, update_env_key


def auth_extensions_needed(cfg: WikiConfig) -> Optional[bool]:
    """True when any extension is missing, False when all are present,
    None when the container is not running."""
    name = cfg.container_name
    if not is_container_running(name):
        status_fail(f"container {name} is not running")
        return None
    for ext in AUTH_EXTENSIONS:
        rc, _, _ = docker_exec_capture(name, ["test", "-d", f"{CONTAINER_EXTENSIONS_DIR}/{ext}"])
        if rc != 0:
            log(f"extension {ext} not installed in {name}")
            return True
    return False


def download_extension(name: str, urls: Sequence[str], dest_dir: Path) -> Optional[Path]:
    target = dest_dir / f"{name}.tar.gz"
    for url in urls:
        try:
            with requests.get(url, stream=True, timeout=HTTP_TIMEOUT) as resp:
                resp.raise_for_status()
                with open(target, "wb") as fh:
                    for chunk in resp.iter_content(chunk_size=64 * 1024):
                        fh.write(chunk)
        except requests.RequestException as err:
            logging.warning("Download of %s from %s failed: %s", name, url, err)
            continue
        log(f"PASS: downloaded {name} from {url}")
        return target
    logging.error("Failed to download %s from all sources", name)
    return None


def extract_extension(name: str, archive: Path, dest_dir: Path) -> Optional[Path]:
    staging = dest_dir / f"{name}.extract"
    staging.mkdir(exist_ok=True)
    try:
        with tarfile.open(archive, "r:gz") as tf:
            tf.extractall(staging, filter="data")
    except (tarfile.TarError, OSError) as err:
        logging.error("Failed to extract %s: %s", name, err)
        return None

    extracted = [p for p in staging.iterdir() if p.is_dir() and name in p.name]
    if not extracted:
        logging.error("Could not find extracted %s directory", name)
        return None
    final = dest_dir / name
    extracted[0].rename(final)
    if not (final / "extension.json").is_file():
        logging.error("%s extraction verification failed: no extension.json", name)
        return None
    log(f"PASS: {name} extracted to {final}")
    return final


def install_auth_extensions(cfg: WikiConfig) -> bool:
    name = cfg.container_name
    if not wait_for_container_ready(cfg.name):
        status_fail("container not ready for extension installation")
        return False

    temp_dir = Path(tempfile.mkdtemp(prefix="mw_extensions_"))
    try:
        prepared: list[Path] = []
        for ext, urls in AUTH_EXTENSIONS.items():
            archive = download_extension(ext, urls, temp_dir)
            if archive is None:
                status_fail(f"could not download {ext}")
                return False
            ext_dir = extract_extension(ext, archive, temp_dir)
            if ext_dir is None:
                status_fail(f"could not extract {ext}")
                return False
            prepared.append(ext_dir)

        for ext_dir in prepared:
            if not copy_to_container(name, ext_dir, f"{CONTAINER_EXTENSIONS_DIR}/"):
                status_fail(f"failed to copy {ext_dir.name} to container")
                return False
            target = f"{CONTAINER_EXTENSIONS_DIR}/{ext_dir.name}"
            if not docker_exec(name, ["chmod", "-R", "755", target], user="root"):
                logging.warning("chmod of %s failed", target)
            rc, _, _ = docker_exec_capture(name, ["test", "-f", f"{target}/extension.json"])
            if rc != 0:
                status_fail(f"{ext_dir.name} installation verification failed")
                return False
            composer = f"cd {target} && composer update --no-dev --no-interaction"
            if not docker_exec(name, ["sh", "-c", composer], user="root"):
                status_warn(f"composer failed for {ext_dir.name}")
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    status_pass("authentication extensions installed")
    return True


def _push_post_init(cfg: WikiConfig) -> bool:
    local = cfg.wiki_dir / php.POST_INIT
    dest = f"{CONTAINER_DATA_DIR}/{php.POST_INIT}"
    if not copy_to_container(cfg.container_name, local, dest):
        return False
    return set_ownership(cfg.container_name, dest)


def configure_extension_loading(cfg: WikiConfig) -> bool:
    local = cfg.wiki_dir / php.POST_INIT
    if not local.is_file():
        status_fail(f"{local} not found")
        return False
    if php.EXTENSION_MARKER in local.read_text(encoding="utf-8"):
        log("Extension loading already present in post-init settings")
        return True
    if not php.append_block(local, php.render_extension_loading()):
        return False
    if not _push_post_init(cfg):
        status_fail("failed to push post-init settings with extension loading")
        return False
    status_pass("extension loading added to post-init settings")
    return True


def configure_oauth(
    cfg: WikiConfig, client_id: str, client_secret: str, autocreate: bool
) -> bool:
    local = cfg.wiki_dir / php.POST_INIT
    if not local.is_file():
        status_fail(f"{local} not found")
        return False
    if php.has_active_setting(local.read_text(encoding="utf-8"), php.OAUTH_MARKER):
        status_warn(f"OAuth already configured in {local}; edit it there to change credentials")
        return True
    block = php.render_oauth_block(client_id, client_secret, autocreate)
    if not php.append_block(local, block):
        return False
    for key, value in (
        ("OAUTH_CLIENT_ID", client_id),
        ("OAUTH_CLIENT_SECRET", client_secret),
        ("OAUTH_AUTOCREATE", "true" if autocreate else "false"),
    ):
        if not update_env_key(cfg.env_file, key, value):
            return False
    cfg.oauth_client_id = client_id
    cfg.oauth_client_secret = client_secret
    cfg.oauth_autocreate = autocreate
    if is_container_running(cfg.container_name) and not _push_post_init(cfg):
        status_fail("failed to push OAuth settings into container")
        return False
    status_pass("OAuth configuration added")
    print(f"  Redirect URI: {cfg.server_url}/index.php/Special:PluggableAuthLogin")
    return True


def setup_oauth_extensions(
    cfg: WikiConfig,
    client_id: str = "",
    client_secret: str = "",
    autocreate: bool = False,
) -> bool:
    needed = auth_extensions_needed(cfg)
    if needed is None:
        return False
    if needed:
        if not install_auth_extensions(cfg):
            return False
    else:
        log("Authentication extensions already installed")
    if not configure_extension_loading(cfg):
        return False
    if not require(bool(client_id), "OAuth credentials not provided; extension loading only"):
        return True
    return configure_oauth(cfg, client_id, client_secret, autocreate)
