from dotenv import dotenv_values

from modules.wiki import settings


def test_new_wiki_config_derives_database_names():
    cfg = settings.new_wiki_config("docs", "docs.example.com")
    assert cfg.db_name == "docs_wiki"
    assert cfg.db_user == "docs_user"
    assert len(cfg.db_pass) == 22
    assert cfg.container_name == "bluespice-docs-wiki-web"
    assert cfg.server_url == "https://docs.example.com"


def test_env_round_trip(wiki_cfg, wikis_dir):
    wiki_cfg.smtp_host = "smtp.example.com"
    wiki_cfg.smtp_user = "wiki@example.com"
    wiki_cfg.smtp_pass = "we#ird $pass"
    assert settings.save_env(wiki_cfg)

    loaded = settings.load_wiki_config("docs", wikis_dir)
    assert loaded == wiki_cfg
    assert wiki_cfg.env_file.stat().st_mode & 0o777 == 0o600


def test_env_file_carries_compose_variables(wiki_cfg):
    assert settings.save_env(wiki_cfg)
    values = dotenv_values(wiki_cfg.env_file)
    assert values["CONTAINER_PREFIX"] == "bluespice-docs"
    assert values["BLUESPICE_WIKI_IMAGE"] == f"bluespice/wiki:{wiki_cfg.version}"
    assert values["VIRTUAL_HOST"] == "docs.example.com"
    assert values["SSL_ENABLED"] == "false"


def test_load_rejects_missing_required_keys(wikis_dir):
    wiki_dir = wikis_dir / "broken"
    wiki_dir.mkdir()
    (wiki_dir / ".env").write_text("WIKI_NAME=broken\nDB_NAME=x\n", encoding="utf-8")
    assert settings.load_wiki_config("broken", wikis_dir) is None


def test_load_missing_wiki(wikis_dir):
    assert settings.load_wiki_config("ghost", wikis_dir) is None


def test_validate_config_checks_smtp_only_when_set(wiki_cfg):
    assert settings.validate_config(wiki_cfg)
    wiki_cfg.smtp_host = "smtp.example.com"
    wiki_cfg.smtp_user = "not-an-email"
    wiki_cfg.smtp_pass = "x"
    assert not settings.validate_config(wiki_cfg)


def test_update_env_key(wiki_cfg):
    assert settings.save_env(wiki_cfg)
    assert settings.update_env_key(wiki_cfg.env_file, "OAUTH_CLIENT_ID", "abc.apps.googleusercontent.com")
    assert dotenv_values(wiki_cfg.env_file)["OAUTH_CLIENT_ID"] == "abc.apps.googleusercontent.com"


def test_update_env_key_quotes_secrets(wiki_cfg):
    assert settings.save_env(wiki_cfg)
    for secret in ("a$b #c", "a$b' #c", "it's #1"):
        assert settings.update_env_key(wiki_cfg.env_file, "OAUTH_CLIENT_SECRET", secret)
        assert dotenv_values(wiki_cfg.env_file)["OAUTH_CLIENT_SECRET"] == secret
    text = wiki_cfg.env_file.read_text(encoding="utf-8")
    assert text.count("OAUTH_CLIENT_SECRET=") == 1


def test_list_wikis(wikis_dir):
    for name in ("zeta", "alpha"):
        (wikis_dir / name).mkdir()
        (wikis_dir / name / ".env").write_text("WIKI_NAME=x\n", encoding="utf-8")
    (wikis_dir / "not-a-wiki").mkdir()
    assert settings.list_wikis(wikis_dir) == ["alpha", "zeta"]


def test_env_value_quoting():
    assert settings.env_value("plain-value_1") == "plain-value_1"
    assert settings.env_value(True) == "true"
    assert settings.env_value("a b") == "'a b'"
    assert settings.env_value("it's") == '"it\'s"'
