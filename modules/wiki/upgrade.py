"""Find the newest BlueSpice release and move every wiki onto it."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

import requests

import config
from modules.docker import pull_image
from modules.utils import confirm, log, status_fail, status_pass, status_warn
from .installer import deploy_wiki
from .settings import list_wikis

_TAG_RE = re.compile(r"^\d+\.\d+(\.\d+)?$")
_VERSION_LINE_RE = re.compile(r"^VERSION=.*$", re.MULTILINE)
_IMAGE_RE = re.compile(re.escape(config.WIKI_IMAGE_NAME) + r":[0-9][0-9.]*")


def latest_version(tags_json: dict) -> Optional[str]:
    """Highest numeric X.Y(.Z) tag from a Docker Hub tags payload, as X.Y."""
    names = [t.get("name", "") for t in tags_json.get("results", []) if isinstance(t, dict)]
    numeric = [n for n in names if _TAG_RE.match(n)]
    if not numeric:
        return None
    best = max(numeric, key=lambda n: tuple(int(p) for p in n.split(".")))
    return ".".join(best.split(".")[:2])


def fetch_latest_version(url: str = config.DOCKER_HUB_TAGS_URL) -> Optional[str]:
    try:
        resp = requests.get(url, timeout=config.HTTP_TIMEOUT)
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError) as err:
        logging.error("Could not fetch tags from %s: %s", url, err)
        return None
    version = latest_version(payload)
    if version is None:
        logging.error("No numeric release tags found at %s", url)
    return version


def update_version_in_file(path: Path, version: str) -> bool:
    path = Path(path)
    if not path.is_file():
        log(f"SKIP: {path} does not exist")
        return True
    text = path.read_text(encoding="utf-8")
    new = _VERSION_LINE_RE.sub(f"VERSION={version}", text)
    new = _IMAGE_RE.sub(f"{config.WIKI_IMAGE_NAME}:{version}", new)
    if new == text:
        log(f"{path} already at {version}")
        return True
    try:
        path.write_text(new, encoding="utf-8")
    except OSError as err:
        logging.error("Could not update %s: %s", path, err)
        return False
    log(f"PASS: {path} set to version {version}")
    return True


def upgrade_all(
    version: Optional[str] = None,
    assume_yes: bool = False,
    wikis_dir: Optional[Path] = None,
) -> bool:
    version = version or fetch_latest_version()
    if not version:
        status_fail("could not determine the BlueSpice version to upgrade to")
        return False

    wikis = list_wikis(wikis_dir)
    print(f"Upgrading to BlueSpice {version}")
    print(f"  Wikis: {', '.join(wikis) if wikis else '(none)'}")
    if not assume_yes and not confirm("Proceed with upgrade?"):
        print("Upgrade cancelled")
        return True

    base = Path(wikis_dir or config.WIKIS_DIR)
    files = [config.GLOBAL_ENV_FILE]
    files += [base / w / ".env" for w in wikis]
    if not all(update_version_in_file(f, version) for f in files):
        status_fail("could not update version in configuration files")
        return False

    image = f"{config.WIKI_IMAGE_NAME}:{version}"
    if not pull_image(image):
        status_fail(f"could not pull {image}")
        return False
    status_pass(f"pulled {image}")

    failed = []
    for wiki in wikis:
        if deploy_wiki(wiki, "upgrade", wikis_dir=wikis_dir):
            status_pass(f"{wiki} upgraded to {version}")
        else:
            status_warn(f"{wiki} upgrade failed")
            failed.append(wiki)

    print(f"Upgraded {len(wikis) - len(failed)}/{len(wikis)} wiki(s)")
    if failed:
        status_fail(f"upgrade failed for: {', '.join(failed)}")
        return False
    return True
