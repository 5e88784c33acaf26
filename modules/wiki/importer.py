"""Import a legacy SQL dump (optionally de-prefixed) or an XML page dump."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from config import CONTAINER_WIKI_DIR
from modules.docker import copy_to_container, docker_exec
from modules.utils import confirm, log, status_fail, status_pass, status_warn
from modules.validation import validate_file_exists
from . import db, sqldump
from .settings import WikiConfig


def _decide_strip(prefix: str, strip: Optional[bool]) -> bool:
    if strip is not None:
        return strip
    return confirm(f"Remove detected prefix '{prefix}' from table names?")


def import_sql_dump(
    cfg: WikiConfig, dump_path: Path, strip: Optional[bool] = None
) -> bool:
    """Decompress, validate, optionally de-prefix and import dump_path.

    strip=None asks the operator when a prefix is found; True/False force
    the answer. The original file is never modified; the working copy is
    removed whatever the outcome.
    """
    dump_path = Path(dump_path)
    if not validate_file_exists(dump_path, "SQL dump"):
        return False

    compression = sqldump.detect_compression(dump_path)
    log(f"Processing {dump_path} (compression: {compression})")

    work_dir = Path(tempfile.mkdtemp(prefix="bluespice_import_"))
    try:
        working = work_dir / "working_dump.sql"
        if not sqldump.decompress_to(dump_path, working, compression):
            status_fail(f"could not decompress {dump_path}")
            return False
        if not sqldump.validate_sql(working):
            status_fail(f"invalid SQL dump: {dump_path}")
            return False
        status_pass("SQL dump validation passed")

        prefix = sqldump.detect_prefix_in_file(working)
        if prefix is None:
            status_warn("no consistent table prefix detected; importing as-is")
        elif _decide_strip(prefix, strip):
            processed = work_dir / "processed_dump.sql"
            if sqldump.strip_prefix_file(working, processed, prefix):
                status_pass(f"removed prefix '{prefix}'")
                working = processed
            else:
                status_warn("failed to process prefix removal; importing original")
        else:
            log(f"Keeping prefix '{prefix}' as requested")

        if not db.import_sql_file(cfg, working):
            status_fail(f"database import into {cfg.db_name} failed")
            return False
        status_pass(f"SQL dump imported into {cfg.db_name}")
        return True
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)


def import_xml_dump(cfg: WikiConfig, dump_path: Path) -> bool:
    """Load a MediaWiki XML export through importDump.php."""
    dump_path = Path(dump_path)
    if not validate_file_exists(dump_path, "XML dump"):
        return False
    name = cfg.container_name
    target = f"/tmp/{dump_path.name}"
    if not copy_to_container(name, dump_path, target):
        status_fail("could not copy XML dump into container")
        return False
    maint = f"{CONTAINER_WIKI_DIR}/maintenance"
    try:
        if not docker_exec(name, ["php", f"{maint}/importDump.php", target]):
            status_fail("importDump.php failed")
            return False
        if not docker_exec(name, ["php", f"{maint}/rebuildrecentchanges.php"]):
            status_warn("rebuildrecentchanges.php failed; recent changes may be stale")
    finally:
        if not docker_exec(name, ["rm", "-f", target], user="root"):
            logging.warning("Could not remove %s from %s", target, name)
    status_pass(f"XML dump imported into {cfg.name}")
    return True
