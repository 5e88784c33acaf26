"""Input validators for wiki deployment settings.

Each validator returns bool and logs the reason on failure, so callers can
use them directly as prompt() validators or in config checks.
"""

import logging
import re
from pathlib import Path

from config import SUPPORTED_LANGUAGES, WIKI_NAME_MAX_LEN

WIKI_NAME_RE = re.compile(r"^[a-zA-Z0-9._-]+$")
DOMAIN_RE = re.compile(r"^[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
HOST_RE = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(\.([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?))*$"
)


def _reject(msg: str) -> bool:
    logging.error(msg)
    print(f"  {msg}")
    return False


def validate_wiki_name(name: str) -> bool:
    if not name:
        return _reject("Wiki name cannot be empty")
    if not WIKI_NAME_RE.match(name):
        return _reject(
            "Wiki name must contain only alphanumeric characters, dots, "
            f"dashes, and underscores (got '{name}')"
        )
    if name.startswith("."):
        return _reject(f"Wiki name cannot start with a dot (got '{name}')")
    if len(name) > WIKI_NAME_MAX_LEN:
        return _reject(f"Wiki name must be {WIKI_NAME_MAX_LEN} characters or less")
    return True


def validate_domain(domain: str) -> bool:
    if not domain:
        return _reject("Domain name cannot be empty")
    if not DOMAIN_RE.match(domain):
        return _reject(
            f"Invalid domain format '{domain}'; expected subdomain.domain.tld"
        )
    return True


def validate_email(email: str) -> bool:
    if not email:
        return _reject("Email address cannot be empty")
    if not EMAIL_RE.match(email):
        return _reject(f"Invalid email format '{email}'; expected user@domain.com")
    return True


def validate_port(port: str | int, description: str = "Port") -> bool:
    text = str(port).strip()
    if not text:
        return _reject(f"{description} cannot be empty")
    if not text.isdigit():
        return _reject(f"{description} must be a number (got '{text}')")
    if not 1 <= int(text) <= 65535:
        return _reject(f"{description} must be between 1 and 65535 (got {text})")
    return True


def validate_language_code(lang: str) -> bool:
    if not lang:
        return _reject("Language code cannot be empty")
    if lang not in SUPPORTED_LANGUAGES:
        return _reject(
            f"Invalid language code: {lang}; valid options: {' '.join(SUPPORTED_LANGUAGES)}"
        )
    return True


def validate_smtp_host(host: str) -> bool:
    if not host:
        return _reject("SMTP host cannot be empty")
    if not HOST_RE.match(host):
        return _reject(f"Invalid SMTP host format '{host}'; expected smtp.domain.com")
    if "." not in host:
        return _reject("SMTP host must be a fully qualified domain name")
    return True


def validate_smtp_pass(password: str) -> bool:
    if not password:
        return _reject("SMTP password cannot be empty")
    if re.search(r"\s", password):
        return _reject("SMTP password cannot contain spaces")
    return True


def validate_file_exists(path: str | Path, description: str = "File") -> bool:
    if not path or not str(path).strip():
        return _reject(f"{description} path cannot be empty")
    p = Path(path)
    if not p.is_file():
        return _reject(f"{description} not found: {p}")
    try:
        with p.open("rb"):
            pass
    except OSError:
        return _reject(f"{description} is not readable: {p}")
    return True
