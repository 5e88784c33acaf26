"""Docker CLI wrappers: container naming, readiness, exec/cp and compose.

All container access goes through these helpers so callers never build
docker argv themselves. Helpers return bool (or rc/out/err tuples) and log
failures; they never raise for a non-zero docker exit.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Optional, Sequence, Tuple

from config import NETWORK_NAME, READY_MARKER, WAIT_ATTEMPTS, WAIT_INTERVAL
from modules.utils import log, run_capture, status_fail, status_pass, wait_until

DOCKER = "docker"


def container_name(wiki_name: str) -> str:
    return f"bluespice-{wiki_name}-wiki-web"


def is_container_running(name: str) -> bool:
    rc, out, _ = run_capture(
        [DOCKER, "ps", "--filter", f"name={name}", "--format", "{{.Names}}"]
    )
    if rc != 0:
        return False
    return name in [ln.strip() for ln in out.splitlines()]


def health_status(name: str) -> str:
    rc, out, _ = run_capture(
        [DOCKER, "inspect", "--format={{.State.Health.Status}}", name]
    )
    status = out.strip()
    if rc != 0 or not status or status == "<no value>":
        return "none"
    return status


def container_ready(name: str, marker: str = READY_MARKER) -> bool:
    if not is_container_running(name):
        return False
    if health_status(name) not in ("healthy", "none"):
        return False
    rc, _, _ = run_capture([DOCKER, "exec", name, "test", "-f", marker])
    return rc == 0


def wait_for_container_ready(
    wiki_name: str,
    attempts: int = WAIT_ATTEMPTS,
    interval: float = WAIT_INTERVAL,
    marker: str = READY_MARKER,
) -> bool:
    name = container_name(wiki_name)
    ok = wait_until(
        lambda: container_ready(name, marker),
        attempts=attempts,
        interval=interval,
        label=f"container {name} ready",
    )
    if not ok:
        status_fail(
            f"container {name} not ready within {attempts * interval:.0f}s"
        )
        return False
    status_pass(f"container {name} ready")
    return True


def _exec_argv(
    name: str, args: Sequence[str], user: Optional[str], interactive: bool
) -> list[str]:
    argv = [DOCKER, "exec"]
    if interactive:
        argv.append("-i")
    if user:
        argv += ["--user", user]
    return argv + [name] + [str(a) for a in args]


def docker_exec_capture(
    name: str,
    args: Sequence[str],
    user: Optional[str] = None,
    stdin: Optional[IO] = None,
) -> Tuple[int, str, str]:
    return run_capture(_exec_argv(name, args, user, stdin is not None), input_file=stdin)


def docker_exec(
    name: str,
    args: Sequence[str],
    user: Optional[str] = None,
    stdin: Optional[IO] = None,
) -> bool:
    if not is_container_running(name):
        logging.error("Container %s is not running", name)
        return False
    rc, out, err = docker_exec_capture(name, args, user=user, stdin=stdin)
    if rc == 0:
        if out.strip():
            log(out.strip())
        return True
    logging.error(
        "docker exec %s %s exit=%s\nSTDERR: %s",
        name,
        " ".join(str(a) for a in args[:3]),
        rc,
        err.strip(),
    )
    return False


def copy_to_container(name: str, source: Path | str, dest: str) -> bool:
    if not is_container_running(name):
        logging.error("Container %s is not running", name)
        return False
    if not Path(source).exists():
        logging.error("Source path does not exist: %s", source)
        return False
    rc, _, err = run_capture([DOCKER, "cp", str(source), f"{name}:{dest}"])
    if rc != 0:
        logging.error("docker cp %s -> %s:%s failed: %s", source, name, dest, err.strip())
        return False
    log(f"PASS: copied {source} -> {name}:{dest}")
    return True


def copy_from_container(name: str, source: str, dest: Path | str) -> bool:
    rc, _, err = run_capture([DOCKER, "cp", f"{name}:{source}", str(dest)])
    if rc != 0:
        logging.error("docker cp %s:%s -> %s failed: %s", name, source, dest, err.strip())
        return False
    return True


def set_ownership(name: str, path: str, owner: str = "bluespice:bluespice") -> bool:
    return docker_exec(name, ["chown", owner, path], user="root")


def ensure_network(network: str = NETWORK_NAME) -> bool:
    rc, _, _ = run_capture([DOCKER, "network", "inspect", network])
    if rc == 0:
        return True
    rc, _, err = run_capture([DOCKER, "network", "create", network])
    if rc != 0:
        logging.error("Could not create network %s: %s", network, err.strip())
        return False
    log(f"PASS: created network {network}")
    return True


def _compose_argv(
    files: Sequence[Path], env_file: Path, project: str
) -> list[str]:
    argv = [DOCKER, "compose", "--env-file", str(env_file), "-p", project]
    for f in files:
        argv += ["-f", str(f)]
    return argv


def compose_up(files: Sequence[Path], env_file: Path, project: str) -> bool:
    rc, _, err = run_capture(
        _compose_argv(files, env_file, project) + ["up", "-d", "--remove-orphans"]
    )
    if rc != 0:
        logging.error("compose up (%s) failed: %s", project, err.strip())
        return False
    log(f"PASS: compose up {project}")
    return True


def compose_down(files: Sequence[Path], env_file: Path, project: str) -> bool:
    rc, _, err = run_capture(_compose_argv(files, env_file, project) + ["down"])
    if rc != 0:
        logging.error("compose down (%s) failed: %s", project, err.strip())
        return False
    log(f"PASS: compose down {project}")
    return True


def pull_image(image: str) -> bool:
    rc, _, err = run_capture([DOCKER, "pull", image])
    if rc != 0:
        logging.error("docker pull %s failed: %s", image, err.strip())
        return False
    return True
