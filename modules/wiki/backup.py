"""Back up one wiki: database dump, uploaded images and settings files.

Each run writes BACKUPS_DIR/<wiki>/<timestamp>/ with:
  database_<db>.sql.gz  dump made by mariadb-dump in the database container
  images/               docker cp of the wiki container's images directory
  settings/             the wiki's .env and PHP settings files
  MANIFEST.txt          file list with sizes and sha256 checksums
The gzipped dump can be fed straight back into `import-db`.
"""

from __future__ import annotations

import gzip
import hashlib
import logging
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import (
    BACKUP_RETENTION_DAYS,
    BACKUPS_DIR,
    CONTAINER_IMAGES_DIR,
    DB_CONTAINER,
    DB_DUMP_CLIENT,
)
from modules.docker import copy_from_container, docker_exec_capture, is_container_running
from modules.utils import log, status_fail, status_pass, status_warn
from .settings import WikiConfig

DUMP_OPTIONS = (
    "--single-transaction",
    "--routines",
    "--triggers",
    "--events",
    "--add-drop-table",
    "--quick",
)


def _dump_argv(cfg: WikiConfig, remote: str) -> list[str]:
    return (
        [DB_DUMP_CLIENT, "-u", cfg.db_user, f"-p{cfg.db_pass}"]
        + list(DUMP_OPTIONS)
        + [f"--result-file={remote}", cfg.db_name]
    )


def dump_database(cfg: WikiConfig, dest_dir: Path, stamp: str) -> Optional[Path]:
    """Dump the wiki database inside the database container, copy it out and
    gzip it. Returns the .sql.gz path."""
    remote = f"/tmp/{cfg.db_name}_{stamp}.sql"
    rc, _, err = docker_exec_capture(DB_CONTAINER, _dump_argv(cfg, remote))
    if rc != 0:
        logging.error("Dump of %s failed (exit %s): %s", cfg.db_name, rc, err.strip())
        return None
    plain = dest_dir / f"database_{cfg.db_name}.sql"
    try:
        if not copy_from_container(DB_CONTAINER, remote, plain):
            return None
    finally:
        docker_exec_capture(DB_CONTAINER, ["rm", "-f", remote])

    target = plain.with_name(plain.name + ".gz")
    with open(plain, "rb") as src, gzip.open(target, "wb") as dst:
        shutil.copyfileobj(src, dst)
    plain.unlink()
    log(f"PASS: database {cfg.db_name} dumped to {target}")
    return target


def copy_images(cfg: WikiConfig, dest_dir: Path) -> bool:
    images_dir = dest_dir / "images"
    images_dir.mkdir()
    if not copy_from_container(cfg.container_name, f"{CONTAINER_IMAGES_DIR}/.", images_dir):
        logging.error("Failed to copy images out of %s", cfg.container_name)
        return False
    log(f"PASS: images copied to {images_dir}")
    return True


def copy_settings(cfg: WikiConfig, dest_dir: Path) -> int:
    settings_dir = dest_dir / "settings"
    settings_dir.mkdir()
    copied = 0
    for path in sorted(cfg.wiki_dir.iterdir()):
        if path.is_file():
            shutil.copy2(path, settings_dir / path.name)
            copied += 1
    return copied


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(64 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def write_manifest(cfg: WikiConfig, dest_dir: Path) -> Path:
    lines = [
        f"Wiki: {cfg.name}",
        f"Database: {cfg.db_name}",
        f"Created: {datetime.now().isoformat(timespec='seconds')}",
        "",
    ]
    for path in sorted(p for p in dest_dir.rglob("*") if p.is_file()):
        rel = path.relative_to(dest_dir)
        lines.append(f"{_sha256(path)}  {path.stat().st_size:>12}  {rel}")
    manifest = dest_dir / "MANIFEST.txt"
    manifest.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return manifest


def prune_old_backups(wiki_root: Path, keep_days: int, now: Optional[float] = None) -> int:
    """Delete timestamped backup directories older than keep_days."""
    if keep_days <= 0 or not wiki_root.is_dir():
        return 0
    cutoff = (time.time() if now is None else now) - keep_days * 86400
    removed = 0
    for path in wiki_root.iterdir():
        if path.is_dir() and path.name[:2] == "20" and path.stat().st_mtime < cutoff:
            log(f"removing old backup {path}")
            shutil.rmtree(path)
            removed += 1
    return removed


def backup_wiki(
    cfg: WikiConfig,
    backups_dir: Optional[Path] = None,
    keep_days: int = BACKUP_RETENTION_DAYS,
) -> Optional[Path]:
    if not is_container_running(DB_CONTAINER):
        status_fail(f"{DB_CONTAINER} is not running; start it with: bluespice.py --shared")
        return None
    wiki_root = (backups_dir or BACKUPS_DIR) / cfg.name
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    dest_dir = wiki_root / stamp
    dest_dir.mkdir(parents=True, exist_ok=True)
    dest_dir.chmod(0o700)

    if dump_database(cfg, dest_dir, stamp) is None:
        status_fail(f"database backup of {cfg.name} failed")
        shutil.rmtree(dest_dir, ignore_errors=True)
        return None

    if not is_container_running(cfg.container_name):
        status_warn(f"{cfg.container_name} is not running; images not backed up")
    elif not copy_images(cfg, dest_dir):
        status_warn("images backup failed; database dump kept")
    copied = copy_settings(cfg, dest_dir)
    log(f"{copied} settings file(s) copied")
    write_manifest(cfg, dest_dir)

    removed = prune_old_backups(wiki_root, keep_days)
    if removed:
        log(f"{removed} old backup(s) removed")
    status_pass(f"backup of {cfg.name} written to {dest_dir}")
    return dest_dir
