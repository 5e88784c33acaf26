"""Shared configuration constants for bluespice-farm.

Centralizes paths, container names and tuning knobs used by modules.
Every value can be overridden from the environment or from an optional
.global.env file next to this module.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent
GLOBAL_ENV_FILE = PROJECT_ROOT / ".global.env"
if GLOBAL_ENV_FILE.exists():
    load_dotenv(GLOBAL_ENV_FILE)

DATA_DIR = PROJECT_ROOT / "data"
COMPOSE_DIR = DATA_DIR / "compose"
WIKIS_DIR = Path(os.getenv("BLUESPICE_WIKIS_DIR", str(PROJECT_ROOT / "wikis")))
SHARED_DIR = Path(os.getenv("BLUESPICE_SHARED_DIR", str(PROJECT_ROOT / "shared")))
SHARED_ENV_FILE = SHARED_DIR / ".shared.env"
ENV_TEMPLATE_FILE = DATA_DIR / "wiki.env.tpl"
BACKUPS_DIR = Path(os.getenv("BLUESPICE_BACKUPS_DIR", str(PROJECT_ROOT / "backups")))

# Host directory mounted into the containers
BLUESPICE_DATA_DIR = os.getenv("BLUESPICE_DATA_DIR", "/bluespice")

# Images
VERSION = os.getenv("VERSION", "5.1")
EDITION = os.getenv("EDITION", "free")
SERVICE_REPOSITORY = os.getenv(
    "BLUESPICE_SERVICE_REPOSITORY", "docker.bluespice.com/bluespice"
)
WIKI_IMAGE_NAME = "bluespice/wiki"
DOCKER_HUB_TAGS_URL = (
    "https://registry.hub.docker.com/v2/repositories/bluespice/wiki/tags?page_size=100"
)

# Shared containers
NETWORK_NAME = "bluespice-network"
DB_CONTAINER = os.getenv("DB_CONTAINER", "bluespice-database")
SEARCH_CONTAINER = os.getenv("SEARCH_CONTAINER", "bluespice-search")
LETSENCRYPT_CONTAINER = "bluespice-letsencrypt-service"
STATELESS_CONTAINERS = ("bluespice-formula", "bluespice-pdf", "bluespice-diagram")
DB_HOST = "bluespice-database"
DB_PORT = 3306
DB_CLIENT = "mariadb"
DB_DUMP_CLIENT = "mariadb-dump"

# Paths inside the wiki container
CONTAINER_DATA_DIR = "/data/bluespice"
CONTAINER_WIKI_DIR = "/app/bluespice/w"
CONTAINER_IMAGES_DIR = f"{CONTAINER_WIKI_DIR}/images"
CONTAINER_EXTENSIONS_DIR = f"{CONTAINER_WIKI_DIR}/extensions"
CONTAINER_INSTALLER_DIR = "/app/bin/run-installation.d"
CONTAINER_USER = "bluespice"
CONTAINER_FALLBACK_UID = 1002
READY_MARKER = f"{CONTAINER_DATA_DIR}/post-init-settings.php"

# Readiness polling
WAIT_INTERVAL = float(os.getenv("WAIT_INTERVAL", "2"))
WAIT_ATTEMPTS = int(os.getenv("WAIT_ATTEMPTS", "30"))
DB_WAIT_INTERVAL = float(os.getenv("DB_WAIT_INTERVAL", "5"))
DB_WAIT_ATTEMPTS = int(os.getenv("DB_WAIT_ATTEMPTS", "30"))

# Table prefix detection for legacy SQL dumps
PREFIX_MIN_TABLES = int(os.getenv("PREFIX_MIN_TABLES", "20"))
PREFIX_MIN_LEN = int(os.getenv("PREFIX_MIN_LEN", "3"))
PREFIX_MAX_LEN = int(os.getenv("PREFIX_MAX_LEN", "20"))

# Wiki defaults
DEFAULT_LANG = "en"
DEFAULT_SMTP_PORT = 587
DEFAULT_ADMIN_USER = "Admin"
ADMIN_MAIL = os.getenv("ADMIN_MAIL", "")
SUPPORTED_LANGUAGES = ("en", "de", "fr", "es", "it", "pt", "nl", "pl", "ru", "ja", "zh")
WIKI_NAME_MAX_LEN = 50

# Authentication extensions (MediaWiki REL1_43)
AUTH_EXTENSIONS = {
    "PluggableAuth": (
        "https://extdist.wmflabs.org/dist/extensions/PluggableAuth-REL1_43-8d3e70f.tar.gz",
        "https://github.com/wikimedia/mediawiki-extensions-PluggableAuth/archive/refs/heads/REL1_43.tar.gz",
    ),
    "OpenIDConnect": (
        "https://extdist.wmflabs.org/dist/extensions/OpenIDConnect-REL1_43-52e0b73.tar.gz",
        "https://github.com/wikimedia/mediawiki-extensions-OpenIDConnect/archive/refs/heads/REL1_43.tar.gz",
    ),
}
HTTP_TIMEOUT = int(os.getenv("HTTP_TIMEOUT", "30"))

# Backups
BACKUP_RETENTION_DAYS = int(os.getenv("BACKUP_RETENTION_DAYS", "30"))
