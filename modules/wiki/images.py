"""Replace a wiki's uploaded files from a ZIP archive and re-register them.

Steps: validate wiki and archive, back up the current images directory,
extract, fix ownership on the host, clear and refill the container's
images directory, then run importImages.php and rebuildImages.php.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import CONTAINER_FALLBACK_UID, CONTAINER_IMAGES_DIR, CONTAINER_USER, CONTAINER_WIKI_DIR
from modules.docker import (
    copy_from_container,
    copy_to_container,
    docker_exec,
    docker_exec_capture,
    is_container_running,
)
from modules.utils import confirm, log, status_fail, status_pass, status_warn
from .settings import WikiConfig

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif")


def validate_wiki(cfg: WikiConfig) -> bool:
    if not cfg.wiki_dir.is_dir():
        status_fail(f"wiki directory not found: {cfg.wiki_dir}")
        return False
    if not cfg.env_file.is_file():
        status_fail(f"wiki configuration not found: {cfg.env_file}")
        return False
    if not is_container_running(cfg.container_name):
        status_fail(
            f"wiki container not running: {cfg.container_name}; "
            f"start it with: bluespice.py --deploy {cfg.name}"
        )
        return False
    return True


def validate_images_archive(archive: Path) -> bool:
    if not archive.is_file():
        status_fail(f"images archive not found: {archive}")
        return False
    if not zipfile.is_zipfile(archive):
        status_fail(f"file is not a ZIP archive: {archive}")
        return False
    with zipfile.ZipFile(archive) as zf:
        has_images_dir = any("images/" in n for n in zf.namelist())
    if not has_images_dir:
        status_warn("archive does not appear to contain an 'images/' directory; continuing")
    return True


def _stamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def backup_current_images(cfg: WikiConfig) -> Optional[Path]:
    backup_dir = Path(tempfile.gettempdir()) / f"images_backup_{cfg.name}_{_stamp()}"
    backup_dir.mkdir(parents=True, exist_ok=True)
    if not copy_from_container(cfg.container_name, f"{CONTAINER_IMAGES_DIR}/.", backup_dir):
        logging.error("Failed to back up current images")
        return None
    log(f"PASS: current images backed up to {backup_dir}")
    return backup_dir


def container_uid(name: str) -> int:
    rc, out, _ = docker_exec_capture(name, ["id", "-u", CONTAINER_USER])
    if rc == 0 and out.strip().isdigit():
        return int(out.strip())
    return CONTAINER_FALLBACK_UID


def find_images_source(extract_dir: Path) -> Optional[Path]:
    direct = extract_dir / "images"
    if direct.is_dir():
        return direct
    if any(p.suffix.lower() in IMAGE_SUFFIXES for p in extract_dir.iterdir() if p.is_file()):
        return extract_dir
    for path in sorted(extract_dir.rglob("images")):
        if path.is_dir():
            return path
    return None


def _chown_tree(path: Path, uid: int) -> None:
    try:
        for root, dirs, files in os.walk(path):
            for entry in dirs + files:
                os.chown(os.path.join(root, entry), uid, uid)
        os.chown(path, uid, uid)
        log(f"PASS: ownership of {path} set to {uid}")
        return
    except (PermissionError, AttributeError) as err:
        logging.warning("Could not chown as current user (%s); trying sudo", err)
    try:
        subprocess.run(
            ["sudo", "-n", "chown", "-R", f"{uid}:{uid}", str(path)],
            check=True,
            capture_output=True,
        )
        log(f"PASS: ownership of {path} set to {uid} with sudo")
    except (subprocess.CalledProcessError, FileNotFoundError) as err:
        status_warn(f"could not fix ownership of extracted files ({err}); continuing")


def copy_images_into_container(cfg: WikiConfig, archive: Path) -> bool:
    name = cfg.container_name
    uid = container_uid(name)
    log(f"{CONTAINER_USER} UID in {name}: {uid}")

    temp_dir = Path(tempfile.mkdtemp(prefix="images_import_"))
    try:
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(temp_dir)
        except (zipfile.BadZipFile, OSError) as err:
            status_fail(f"failed to extract images archive: {err}")
            return False

        source = find_images_source(temp_dir)
        if source is None:
            status_fail("could not find images directory in archive")
            return False
        log(f"Found images source: {source}")

        _chown_tree(source, uid)

        clear = f"rm -rf {CONTAINER_IMAGES_DIR}/* {CONTAINER_IMAGES_DIR}/.[!.]*"
        if not docker_exec(name, ["sh", "-c", clear], user="root"):
            status_warn("could not fully clear images directory")

        if not copy_to_container(name, f"{source}/.", f"{CONTAINER_IMAGES_DIR}/"):
            status_fail("failed to copy images to container")
            return False

        owner = f"{CONTAINER_USER}:{CONTAINER_USER}"
        if not docker_exec(name, ["chown", "-R", owner, CONTAINER_IMAGES_DIR], user="root"):
            logging.warning("chown inside container failed")
        if not docker_exec(name, ["chmod", "-R", "755", CONTAINER_IMAGES_DIR], user="root"):
            logging.warning("chmod inside container failed")
        status_pass("images copied into container")
        return True
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


def _maintenance(name: str, script: str, args: list[str]) -> bool:
    argv = ["php", f"{CONTAINER_WIKI_DIR}/maintenance/{script}"] + args
    if docker_exec(name, argv, user=CONTAINER_USER):
        return True
    logging.warning("%s failed as %s; retrying as root", script, CONTAINER_USER)
    return docker_exec(name, argv, user="root")


def register_images(cfg: WikiConfig) -> bool:
    name = cfg.container_name
    if not _maintenance(
        name,
        "importImages.php",
        ["--search-recursively", "--overwrite", f"{CONTAINER_IMAGES_DIR}/"],
    ):
        status_fail("importImages.php failed even as root")
        return False
    status_pass("images registered in database")
    if not _maintenance(name, "rebuildImages.php", []):
        status_warn("rebuildImages.php failed; import may still be complete")
    return True


def import_images(cfg: WikiConfig, archive: Path, assume_yes: bool = False) -> bool:
    archive = Path(archive)
    if not validate_wiki(cfg):
        return False
    if not validate_images_archive(archive):
        return False

    print(f"  Wiki: {cfg.name}")
    print(f"  Images archive: {archive}")
    status_warn("this will replace ALL current images in the wiki")
    if not assume_yes and not confirm("Continue with import?"):
        log("Images import cancelled by operator")
        print("Import cancelled")
        return True

    backup = backup_current_images(cfg)
    if backup is None:
        status_fail("failed to back up current images")
        return False

    if not copy_images_into_container(cfg, archive):
        status_fail(f"images import failed; restore from backup: {backup}")
        return False

    if not register_images(cfg):
        status_warn("images imported but database registration had issues")
    status_pass(f"images import completed; previous images in {backup}")
    return True
