"""Per-wiki configuration: the WikiConfig struct and its .env file.

The .env file is the persisted form of a wiki; it is rendered from
data/wiki.env.tpl and read back with python-dotenv. WikiConfig is passed
explicitly between deployment steps.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values, set_key

import config
from modules.utils import generate_password, log
from modules.validation import (
    validate_domain,
    validate_email,
    validate_language_code,
    validate_port,
    validate_smtp_host,
    validate_smtp_pass,
    validate_wiki_name,
)

REQUIRED_KEYS = ("DB_NAME", "DB_USER", "DB_PASS", "CONTAINER_PREFIX")
_PLAIN_VALUE_RE = re.compile(r"^[A-Za-z0-9_.@:/+,=-]*$")


@dataclass
class WikiConfig:
    name: str
    domain: str
    lang: str = config.DEFAULT_LANG
    smtp_host: str = ""
    smtp_port: int = config.DEFAULT_SMTP_PORT
    smtp_user: str = ""
    smtp_pass: str = ""
    db_name: str = ""
    db_user: str = ""
    db_pass: str = ""
    db_host: str = config.DB_HOST
    db_port: int = config.DB_PORT
    version: str = config.VERSION
    edition: str = config.EDITION
    service_repository: str = config.SERVICE_REPOSITORY
    data_dir: str = config.BLUESPICE_DATA_DIR
    ssl_enabled: bool = False
    oauth_client_id: str = ""
    oauth_client_secret: str = ""
    oauth_autocreate: bool = False
    wikis_dir: Optional[Path] = None

    @property
    def container_prefix(self) -> str:
        return f"bluespice-{self.name}"

    @property
    def container_name(self) -> str:
        return f"{self.container_prefix}-wiki-web"

    @property
    def wiki_dir(self) -> Path:
        return Path(self.wikis_dir or config.WIKIS_DIR) / self.name

    @property
    def env_file(self) -> Path:
        return self.wiki_dir / ".env"

    @property
    def server_url(self) -> str:
        return f"https://{self.domain}"

    @property
    def has_smtp(self) -> bool:
        return bool(self.smtp_host)


def new_wiki_config(name: str, domain: str, **kwargs) -> WikiConfig:
    cfg = WikiConfig(name=name, domain=domain, **kwargs)
    if not cfg.db_name:
        cfg.db_name = f"{name}_wiki"
    if not cfg.db_user:
        cfg.db_user = f"{name}_user"
    if not cfg.db_pass:
        cfg.db_pass = generate_password()
    return cfg


def validate_config(cfg: WikiConfig) -> bool:
    checks = [
        validate_wiki_name(cfg.name),
        validate_domain(cfg.domain),
        validate_language_code(cfg.lang),
    ]
    if cfg.has_smtp:
        checks += [
            validate_smtp_host(cfg.smtp_host),
            validate_port(cfg.smtp_port, "SMTP port"),
            validate_email(cfg.smtp_user),
            validate_smtp_pass(cfg.smtp_pass),
        ]
    if not all(checks):
        logging.error("Invalid configuration for wiki %s", cfg.name)
        return False
    log("PASS: Configuration validation passed")
    return True


def env_value(value: object) -> str:
    """Quote a value for a dotenv / compose env file when needed."""
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if _PLAIN_VALUE_RE.match(text):
        return text
    if "'" not in text:
        return f"'{text}'"
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def render_env(cfg: WikiConfig) -> str:
    template = config.ENV_TEMPLATE_FILE.read_text(encoding="utf-8")
    values = {
        "generated": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "name": cfg.name,
        "domain": cfg.domain,
        "lang": cfg.lang,
        "db_name": cfg.db_name,
        "db_user": cfg.db_user,
        "db_pass": cfg.db_pass,
        "db_host": cfg.db_host,
        "db_port": cfg.db_port,
        "smtp_host": cfg.smtp_host,
        "smtp_port": cfg.smtp_port,
        "smtp_user": cfg.smtp_user,
        "smtp_pass": cfg.smtp_pass,
        "data_dir": cfg.data_dir,
        "version": cfg.version,
        "edition": cfg.edition,
        "service_repository": cfg.service_repository,
        "wiki_image": f"{config.WIKI_IMAGE_NAME}:{cfg.version}",
        "container_prefix": cfg.container_prefix,
        "ssl_enabled": cfg.ssl_enabled,
        "letsencrypt_host": cfg.domain if cfg.ssl_enabled else "",
    }
    return template.format(**{k: env_value(v) for k, v in values.items()})


def save_env(cfg: WikiConfig) -> bool:
    try:
        cfg.wiki_dir.mkdir(parents=True, exist_ok=True)
        cfg.env_file.write_text(render_env(cfg), encoding="utf-8")
        cfg.env_file.chmod(0o600)
    except OSError as err:
        logging.error("Could not write %s: %s", cfg.env_file, err)
        return False
    log(f"PASS: Saved configuration to {cfg.env_file}")
    return True


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "y")


def _as_int(value: Optional[str], default: int) -> int:
    try:
        return int(value or default)
    except ValueError:
        return default


def load_wiki_config(
    wiki_name: str, wikis_dir: Optional[Path] = None
) -> Optional[WikiConfig]:
    env_file = Path(wikis_dir or config.WIKIS_DIR) / wiki_name / ".env"
    if not env_file.is_file():
        logging.error("Configuration file not found: %s", env_file)
        return None
    values = dotenv_values(env_file)
    missing = [k for k in REQUIRED_KEYS if not values.get(k)]
    if missing:
        logging.error("%s is missing %s", env_file, ", ".join(missing))
        return None
    cfg = WikiConfig(
        name=values.get("WIKI_NAME") or wiki_name,
        domain=values.get("WIKI_HOST") or "",
        lang=values.get("WIKI_LANG") or config.DEFAULT_LANG,
        smtp_host=values.get("SMTP_HOST") or "",
        smtp_port=_as_int(values.get("SMTP_PORT"), config.DEFAULT_SMTP_PORT),
        smtp_user=values.get("SMTP_USER") or "",
        smtp_pass=values.get("SMTP_PASS") or "",
        db_name=values["DB_NAME"],
        db_user=values["DB_USER"],
        db_pass=values["DB_PASS"],
        db_host=values.get("DB_HOST") or config.DB_HOST,
        db_port=_as_int(values.get("DB_PORT"), config.DB_PORT),
        version=values.get("VERSION") or config.VERSION,
        edition=values.get("EDITION") or config.EDITION,
        service_repository=values.get("BLUESPICE_SERVICE_REPOSITORY")
        or config.SERVICE_REPOSITORY,
        data_dir=values.get("DATA_DIR") or config.BLUESPICE_DATA_DIR,
        ssl_enabled=_as_bool(values.get("SSL_ENABLED")),
        oauth_client_id=values.get("OAUTH_CLIENT_ID") or "",
        oauth_client_secret=values.get("OAUTH_CLIENT_SECRET") or "",
        oauth_autocreate=_as_bool(values.get("OAUTH_AUTOCREATE")),
        wikis_dir=Path(wikis_dir) if wikis_dir else None,
    )
    log(f"PASS: Loaded {env_file} (db={cfg.db_name} container={cfg.container_name})")
    return cfg


def update_env_key(env_file: Path, key: str, value: str) -> bool:
    # env_value does the quoting; set_key must write it verbatim
    ok, _, _ = set_key(str(env_file), key, env_value(value), quote_mode="never")
    if not ok:
        logging.error("Could not set %s in %s", key, env_file)
        return False
    return True


def list_wikis(wikis_dir: Optional[Path] = None) -> list[str]:
    base = Path(wikis_dir or config.WIKIS_DIR)
    if not base.is_dir():
        logging.error("Wikis directory not found: %s", base)
        return []
    return sorted(p.name for p in base.iterdir() if (p / ".env").is_file())
