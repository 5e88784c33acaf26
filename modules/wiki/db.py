"""MariaDB helpers: statements run through the client in the shared database
container."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from config import DB_CLIENT, DB_CONTAINER, DB_WAIT_ATTEMPTS, DB_WAIT_INTERVAL
from modules.docker import docker_exec_capture, is_container_running
from modules.utils import log, mask_secret, status_fail, status_pass, wait_until
from .settings import WikiConfig


def sql_literal(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def sql_ident(value: str) -> str:
    return "`" + value.replace("`", "``") + "`"


def _client_argv(user: str, password: Optional[str], database: str = "") -> list[str]:
    argv = [DB_CLIENT, "-u", user]
    if password:
        argv.append(f"-p{password}")
    if database:
        argv.append(database)
    return argv


def _mysql_try(sql: str, root_pass: Optional[str]) -> tuple[int, str, str]:
    return docker_exec_capture(
        DB_CONTAINER, _client_argv("root", root_pass) + ["-e", sql]
    )


def run_mysql(sql: str, root_pass: Optional[str], secret: str = "") -> bool:
    rc, out, err = _mysql_try(sql, root_pass)
    shown = sql.replace(secret, mask_secret(secret)) if secret else sql
    msg = f"SQL: {shown}\nEXIT: {rc}\nSTDOUT: {out.strip()}\nSTDERR: {err.strip()}"
    if rc == 0:
        log(f"PASS: {msg}")
        return True
    logging.error(msg)
    return False


def database_responds(root_pass: Optional[str]) -> bool:
    rc, _, _ = _mysql_try("SELECT 1;", root_pass)
    return rc == 0


def wait_for_database(
    root_pass: Optional[str],
    attempts: int = DB_WAIT_ATTEMPTS,
    interval: float = DB_WAIT_INTERVAL,
) -> bool:
    """Poll until the server answers; a fresh server may still have no root
    password, so passwordless access also counts as ready."""
    mode = "password" if root_pass else "no password"
    ok = wait_until(
        lambda: database_responds(root_pass)
        or bool(root_pass and database_responds(None)),
        attempts=attempts,
        interval=interval,
        label=f"database ready ({mode})",
    )
    if not ok:
        status_fail("database failed to initialize within expected time")
        return False
    status_pass(f"database ready ({mode})")
    return True


def bootstrap_root_password(root_pass: str) -> bool:
    """Make root@localhost use root_pass; a no-op when it already does."""
    if not is_container_running(DB_CONTAINER):
        status_fail(f"database container {DB_CONTAINER} is not running")
        return False
    if database_responds(root_pass):
        log("PASS: database root password already correct")
        return True
    if not database_responds(None):
        status_fail("cannot connect to database with or without root password")
        return False
    log(f"Setting root password ({mask_secret(root_pass)})")
    sql = (
        f"ALTER USER 'root'@'localhost' IDENTIFIED BY {sql_literal(root_pass)}; "
        "FLUSH PRIVILEGES;"
    )
    if not run_mysql(sql, None, secret=root_pass):
        status_fail("failed to set database root password")
        return False
    if not database_responds(root_pass):
        status_fail("database root password verification failed")
        return False
    status_pass("database root password set")
    return True


def ensure_db_and_user(cfg: WikiConfig, root_pass: Optional[str]) -> bool:
    db = sql_ident(cfg.db_name)
    password = sql_literal(cfg.db_pass)
    statements = [f"CREATE DATABASE IF NOT EXISTS {db};"]
    # '%' for the network; 'localhost' for socket installs inside the container
    for host in ("%", "localhost"):
        user = f"{sql_literal(cfg.db_user)}@{sql_literal(host)}"
        statements += [
            f"CREATE USER IF NOT EXISTS {user} IDENTIFIED BY {password};",
            f"ALTER USER {user} IDENTIFIED BY {password};",
            f"GRANT ALL PRIVILEGES ON {db}.* TO {user};",
        ]
    statements.append("FLUSH PRIVILEGES;")
    for sql in statements:
        if not run_mysql(sql, root_pass, secret=cfg.db_pass):
            return False
    log(f"PASS: database {cfg.db_name} and user {cfg.db_user} ready")
    return True


def import_sql_file(cfg: WikiConfig, sql_file: Path) -> bool:
    """Pipe sql_file into the client authenticated as the wiki's own user."""
    with open(sql_file, "rb") as fh:
        rc, _, err = docker_exec_capture(
            DB_CONTAINER,
            _client_argv(cfg.db_user, cfg.db_pass, cfg.db_name),
            stdin=fh,
        )
    if rc != 0:
        logging.error("Import into %s failed (exit %s): %s", cfg.db_name, rc, err.strip())
        return False
    return True
