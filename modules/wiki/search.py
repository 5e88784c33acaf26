"""BlueSpice ExtendedSearch index rebuild and verification."""

from __future__ import annotations

import json
import logging

from config import CONTAINER_WIKI_DIR, SEARCH_CONTAINER
from modules.docker import container_name, docker_exec, docker_exec_capture, is_container_running
from modules.utils import log, status_fail, status_pass, status_warn

SEARCH_MAINTENANCE = "extensions/BlueSpiceExtendedSearch/maintenance"
REBUILD_STEPS = (
    f"{SEARCH_MAINTENANCE}/initBackends.php",
    f"{SEARCH_MAINTENANCE}/rebuildIndex.php",
    "maintenance/runJobs.php",
)


def index_name(wiki_name: str) -> str:
    return f"{wiki_name}_wiki_wikipage"


def parse_count(body: str) -> int | None:
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    count = data.get("count")
    return count if isinstance(count, int) else None


def verify_search_index(wiki_name: str) -> bool:
    index = index_name(wiki_name)
    rc, out, _ = docker_exec_capture(
        SEARCH_CONTAINER, ["curl", "-s", f"http://localhost:9200/{index}/_count"]
    )
    if rc != 0:
        status_warn(f"could not query index {index}")
        return False
    count = parse_count(out)
    if not count:
        status_warn(f"index {index} appears empty")
        return False
    status_pass(f"index verified: {count} documents in {index}")
    return True


def rebuild_search_index(wiki_name: str) -> bool:
    name = container_name(wiki_name)
    if not is_container_running(name):
        status_fail(f"container for {wiki_name} is not running")
        return False
    for step in REBUILD_STEPS:
        log(f"search: running {step}")
        if not docker_exec(name, ["php", f"{CONTAINER_WIKI_DIR}/{step}"], user="root"):
            status_fail(f"search index rebuild failed for {wiki_name} at {step}")
            return False
    status_pass(f"search index rebuilt for {wiki_name}")
    if not verify_search_index(wiki_name):
        logging.warning("Could not verify search index for %s", wiki_name)
    return True
