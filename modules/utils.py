"""Utility helpers shared by every module.

- init_logging: configure console + file logging with run-id.
- status_pass/status_warn/status_fail: concise console status lines (with run-id).
- run_cmd/run_capture: thin wrappers over subprocess.run.
- log: debug-level logger for normal status lines (file-oriented).
- confirm/prompt: interactive questions on stdin.
- wait_until: bounded sleep-and-check polling.
"""

import getpass
import logging
import os
import re
import secrets
import string
import subprocess
import time
from logging.handlers import RotatingFileHandler
from typing import IO, Callable, List, Optional, Tuple


_RUN_ID = ""
RID_ENV = "BLUESPICE_RID"


def _gen_run_id() -> str:
    try:
        import uuid

        return uuid.uuid4().hex[:8]
    except Exception:
        return "00000000"


def init_logging(run_id: str | None = None) -> str:
    """Initialize logging with console + rotating file handlers.

    - Console: minimal, CRITICAL only; status lines are printed directly.
    - File: DEBUG+, rich format, written to log/bluespice-<rid>.log
    Returns the run-id used.
    """
    global _RUN_ID
    if _RUN_ID:
        return _RUN_ID

    rid = run_id or os.environ.get(RID_ENV) or _gen_run_id()
    _RUN_ID = rid

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Project root = parent of 'modules'
    try:
        root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
        log_dir = os.path.join(root_dir, "log")
        os.makedirs(log_dir, exist_ok=True)
        logfile = os.path.join(log_dir, f"bluespice-{rid}.log")
    except OSError:
        logfile = os.path.abspath(f"bluespice-{rid}.log")

    for h in list(root.handlers):
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
            h.setLevel(logging.CRITICAL)

    has_file = any(
        isinstance(h, RotatingFileHandler)
        and getattr(h, "baseFilename", "").endswith(os.path.basename(logfile))
        for h in root.handlers
    )
    if not has_file:
        fh = RotatingFileHandler(logfile, maxBytes=5 * 1024 * 1024, backupCount=3)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )
        root.addHandler(fh)

    if not any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in root.handlers
    ):
        ch = logging.StreamHandler()
        ch.setLevel(logging.CRITICAL)
        ch.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        root.addHandler(ch)

    logging.debug("Logging initialized. run_id=%s file=%s", rid, logfile)
    os.environ[RID_ENV] = rid
    return rid


def _rid() -> str:
    return _RUN_ID or os.environ.get(RID_ENV, "--------")


def status_pass(msg: str) -> None:
    logging.info(msg)
    print(f"PASS: {msg} [{_rid()}]")


def status_warn(msg: str) -> None:
    logging.warning(msg)
    print(f"WARN: {msg} [{_rid()}]", flush=True)


def status_fail(msg: str) -> None:
    logging.error(msg)
    print(f"FAIL: {msg} [{_rid()}]", flush=True)


def log(msg: str) -> None:
    # File-oriented normal progress; stays out of console noise.
    logging.debug(msg)


def mask_secret(value: str | None) -> str:
    if not value:
        return ""
    if len(value) < 3:
        return "********"
    return f"{value[0]}********{value[-1]}"


def _fmt_args(args: List[str]) -> str:
    # -pSECRET is how the mariadb client takes passwords
    shown = []
    for a in args:
        if a.startswith("-p") and len(a) > 2:
            shown.append("-p" + mask_secret(a[2:]))
        else:
            shown.append(a)
    return " ".join(shown)


def run_cmd(args: List[str]) -> None:
    log(f"RUN: {_fmt_args(args)}")
    subprocess.run(args, check=True, text=True)


def run_capture(
    args: List[str], input_file: Optional[IO] = None
) -> Tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr); never raises
    for a non-zero exit. A missing binary is reported as exit 127."""
    log(f"RUN: {_fmt_args(args)}")
    try:
        proc = subprocess.run(
            args,
            stdin=input_file,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as err:
        logging.error("Command not found: %s (%s)", args[0], err)
        return 127, "", str(err)
    return proc.returncode, (proc.stdout or ""), (proc.stderr or "")


def require(condition: bool, message: str, level: str = "info") -> bool:
    if condition:
        return True

    if level == "error":
        logging.error(f"SKIP: {message}")
    elif level == "warning":
        logging.warning(f"SKIP: {message}")
    else:
        log(f"SKIP: {message}")

    return False


def confirm(message: str, default: bool = False) -> bool:
    suffix = "(Y/n)" if default else "(y/N)"
    try:
        answer = input(f"{message} {suffix}: ").strip()
    except EOFError:
        answer = ""
    if not answer:
        return default
    return answer in ("y", "Y")


def prompt(
    message: str,
    validator: Optional[Callable[[str], bool]] = None,
    default: Optional[str] = None,
    secret: bool = False,
) -> str:
    """Ask until the answer passes the validator; empty input takes default."""
    label = f"{message} [{default}]: " if default else f"{message}: "
    while True:
        if secret:
            answer = getpass.getpass(label)
        else:
            answer = input(label)
        answer = answer.strip()
        if not answer and default is not None:
            answer = default
        if validator is None or validator(answer):
            return answer


def wait_until(
    predicate: Callable[[], bool],
    attempts: int,
    interval: float,
    label: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll predicate up to attempts times, sleeping interval between tries."""
    for attempt in range(1, attempts + 1):
        if predicate():
            log(f"PASS: {label} after {attempt} attempt(s)")
            return True
        log(f"WAIT: {label} (attempt {attempt}/{attempts})")
        if attempt < attempts:
            sleep(interval)
    logging.error("%s not reached after %d attempts", label, attempts)
    return False


_PASSWORD_CHARS = string.ascii_letters + string.digits


def generate_password(length: int = 22) -> str:
    return "".join(secrets.choice(_PASSWORD_CHARS) for _ in range(length))


def parse_flags(argv: List[str], known: dict) -> Tuple[dict, List[str]]:
    """Split --key=value / --flag arguments; return (flags, unknown).

    `known` maps each flag name to True when it takes a value and False when
    it is a bare switch. A flag given in the other shape lands in unknown.
    """
    flags: dict = {}
    unknown: List[str] = []
    for arg in argv:
        m = re.match(r"^--([a-z][a-z0-9-]*)(?:=(.*))?$", arg)
        if not m or m.group(1) not in known:
            unknown.append(arg)
            continue
        value = m.group(2)
        if known[m.group(1)] != (value is not None):
            unknown.append(arg)
            continue
        flags[m.group(1)] = True if value is None else value
    return flags, unknown
