"""Render MediaWiki PHP settings files from the templates in data/.

Templates are plain str.format text. Every value is converted to a PHP
literal before substitution, so secrets such as SMTP passwords or OAuth
client secrets can never break out of their string.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from config import DATA_DIR, SEARCH_CONTAINER
from modules.utils import log
from .settings import WikiConfig

PRE_INIT = "pre-init-settings.php"
POST_INIT = "post-init-settings.php"
EXTENSION_MARKER = "wfLoadExtension( 'PluggableAuth' )"
OAUTH_MARKER = '$wgPluggableAuth_Config["Google"]'

_PHP_COMMENT_RE = re.compile(r"/\*.*?\*/|^[ \t]*(?:#|//)[^\n]*", re.DOTALL | re.MULTILINE)


def php_string(value: object) -> str:
    text = str(value)
    escaped = text.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def php_bool(value: bool) -> str:
    return "true" if value else "false"


def php_int(value: object) -> str:
    return str(int(value))


def render_template(name: str, **values: str) -> str:
    template = (DATA_DIR / name).read_text(encoding="utf-8")
    return template.format(**values)


def render_pre_init(cfg: WikiConfig) -> str:
    return render_template(
        f"{PRE_INIT}.tpl", tmp_dir=php_string(f"/tmp/{cfg.name}")
    )


def render_post_init(cfg: WikiConfig) -> str:
    text = render_template(
        f"{POST_INIT}.tpl",
        tmp_dir=php_string(f"/tmp/{cfg.name}"),
        search_host=php_string(SEARCH_CONTAINER),
    )
    if cfg.has_smtp:
        text += render_smtp_block(cfg)
    return text


def render_smtp_block(cfg: WikiConfig) -> str:
    return render_template(
        "smtp-settings.php.tpl",
        smtp_host=php_string(cfg.smtp_host),
        smtp_port=php_int(cfg.smtp_port),
        smtp_user=php_string(cfg.smtp_user),
        smtp_pass=php_string(cfg.smtp_pass),
        id_host=php_string(cfg.domain),
    )


def render_oauth_block(client_id: str, client_secret: str, autocreate: bool) -> str:
    return render_template(
        "oauth-settings.php.tpl",
        comment_open="",
        comment_close="",
        client_id=php_string(client_id),
        client_secret=php_string(client_secret),
        create_if_not_exist=php_bool(autocreate),
        email_matching_only=php_bool(not autocreate),
    )


def render_oauth_placeholder() -> str:
    """Commented-out OAuth block for wikis where the operator skipped OAuth."""
    header = (
        "\n# To enable Google OAuth login:\n"
        "# 1. Get credentials from https://console.cloud.google.com\n"
        "# 2. Uncomment and update the configuration below\n"
        "# 3. Add redirect URI: https://YOUR-DOMAIN/index.php/Special:PluggableAuthLogin\n"
    )
    body = render_template(
        "oauth-settings.php.tpl",
        comment_open="/*",
        comment_close="*/",
        client_id=php_string("YOUR_GOOGLE_CLIENT_ID"),
        client_secret=php_string("YOUR_GOOGLE_CLIENT_SECRET"),
        create_if_not_exist=php_bool(False),
        email_matching_only=php_bool(True),
    )
    return header + body


def render_extension_loading() -> str:
    return render_template("extension-loading.php.tpl")


def write_settings_files(cfg: WikiConfig) -> bool:
    wiki_dir = cfg.wiki_dir
    if not wiki_dir.is_dir():
        logging.error("Wiki directory does not exist: %s", wiki_dir)
        return False
    try:
        (wiki_dir / PRE_INIT).write_text(render_pre_init(cfg), encoding="utf-8")
        (wiki_dir / POST_INIT).write_text(render_post_init(cfg), encoding="utf-8")
    except OSError as err:
        logging.error("Could not write settings files in %s: %s", wiki_dir, err)
        return False
    if not cfg.has_smtp:
        logging.warning("SMTP configuration incomplete - skipped SMTP block")
    log(f"PASS: Wrote {PRE_INIT} and {POST_INIT} in {wiki_dir}")
    return True


def append_block(path: Path, block: str) -> bool:
    try:
        with path.open("a", encoding="utf-8") as fh:
            fh.write(block)
    except OSError as err:
        logging.error("Could not append to %s: %s", path, err)
        return False
    return True


def has_active_setting(text: str, marker: str) -> bool:
    """True when marker occurs outside PHP comments."""
    return marker in _PHP_COMMENT_RE.sub("", text)
