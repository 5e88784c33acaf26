import subprocess

import pytest

import bluespice
from modules.wiki import __main__ as wiki_cli


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(wiki_cli, "init_logging", lambda rid: "testrun0")
    monkeypatch.setattr(bluespice, "init_logging", lambda rid: "testrun0")


def test_wiki_cli_unknown_flag():
    assert wiki_cli.main(["import-db", "--wiki-name=docs", "--bogus"]) == 1


def test_wiki_cli_unknown_subcommand(capsys):
    assert wiki_cli.main(["explode"]) == 1
    assert "usage:" in capsys.readouterr().out


def test_wiki_cli_missing_wiki_name():
    assert wiki_cli.main(["search"]) == 1


def test_wiki_cli_exclusive_prefix_flags(monkeypatch, wiki_cfg):
    monkeypatch.setattr(wiki_cli, "load_wiki_config", lambda name: wiki_cfg)
    monkeypatch.setattr(wiki_cli, "import_sql_dump", lambda *a, **k: pytest.fail("imported"))
    assert wiki_cli.main(["import-db", "--wiki-name=docs", "--dump=x.sql", "--strip-prefix", "--keep-prefix"]) == 1


def test_wiki_cli_import_db_forwards_choice(monkeypatch, wiki_cfg):
    seen = {}
    monkeypatch.setattr(wiki_cli, "load_wiki_config", lambda name: wiki_cfg)
    monkeypatch.setattr(
        wiki_cli, "import_sql_dump", lambda cfg, path, strip=None: seen.update(path=path.name, strip=strip) or True
    )
    assert wiki_cli.main(["import-db", "--wiki-name=docs", "--dump=legacy.sql.gz", "--keep-prefix"]) == 0
    assert seen == {"path": "legacy.sql.gz", "strip": False}


def test_wiki_cli_deploy_profile(monkeypatch):
    seen = []
    monkeypatch.setattr(wiki_cli, "deploy_wiki", lambda wiki, profile: seen.append((wiki, profile)) or True)
    assert wiki_cli.main(["deploy", "--wiki-name=docs", "--profile=upgrade"]) == 0
    assert wiki_cli.main(["deploy", "--wiki-name=docs"]) == 0
    assert seen == [("docs", "upgrade"), ("docs", "fresh-install")]


def test_wiki_cli_bare_profile_is_rejected(monkeypatch, capsys):
    monkeypatch.setattr(wiki_cli, "deploy_wiki", lambda *a, **k: pytest.fail("deployed"))
    assert wiki_cli.main(["deploy", "--wiki-name=docs", "--profile"]) == 1
    assert "--profile" in capsys.readouterr().out


def test_wiki_cli_valued_switch_is_rejected(monkeypatch, wiki_cfg):
    monkeypatch.setattr(wiki_cli, "load_wiki_config", lambda name: wiki_cfg)
    monkeypatch.setattr(wiki_cli, "import_sql_dump", lambda *a, **k: pytest.fail("imported"))
    assert wiki_cli.main(["import-db", "--wiki-name=docs", "--dump=x.sql", "--strip-prefix=no"]) == 1


def test_wiki_cli_bare_wiki_name_is_rejected(monkeypatch):
    monkeypatch.setattr(wiki_cli, "rebuild_search_index", lambda name: pytest.fail("ran"))
    assert wiki_cli.main(["search", "--wiki-name"]) == 1


@pytest.mark.parametrize(
    "argv",
    [
        ["search", "--wiki-name=../x"],
        ["deploy", "--wiki-name=../x"],
        ["import-xml", "--wiki-name=../x", "--dump=x.xml"],
        ["backup", "--wiki-name=.."],
    ],
)
def test_wiki_cli_rejects_path_like_wiki_name(monkeypatch, argv):
    monkeypatch.setattr(wiki_cli, "rebuild_search_index", lambda name: pytest.fail("ran"))
    monkeypatch.setattr(wiki_cli, "deploy_wiki", lambda *a, **k: pytest.fail("deployed"))
    monkeypatch.setattr(wiki_cli, "load_wiki_config", lambda name: pytest.fail("loaded"))
    assert wiki_cli.main(argv) == 1


def test_wiki_cli_backup(monkeypatch, wiki_cfg, tmp_path):
    seen = []
    monkeypatch.setattr(wiki_cli, "load_wiki_config", lambda name: wiki_cfg)
    monkeypatch.setattr(wiki_cli, "backup_wiki", lambda cfg: seen.append(cfg.name) or tmp_path)
    assert wiki_cli.main(["backup", "--wiki-name=docs"]) == 0
    monkeypatch.setattr(wiki_cli, "backup_wiki", lambda cfg: None)
    assert wiki_cli.main(["backup", "--wiki-name=docs"]) == 1
    assert seen == ["docs"]


def test_orchestrator_usage():
    assert bluespice.main([]) == 1
    assert bluespice.main(["--explode"]) == 1
    assert bluespice.main(["--deploy", "docs", "--bogus"]) == 1


def test_orchestrator_runs_module_steps(monkeypatch):
    cmds = []
    monkeypatch.setattr(bluespice, "run_cmd", cmds.append)
    assert bluespice.main(["--deploy", "docs", "--profile=upgrade"]) == 0
    assert cmds[0][1:] == ["-m", "modules.wiki", "deploy", "--wiki-name=docs", "--profile=upgrade"]


def test_orchestrator_reports_failed_step(monkeypatch, capsys):
    def failing(cmd):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(bluespice, "run_cmd", failing)
    assert bluespice.main(["--shared"]) == 1
    assert "FAIL: modules.shared up exit=1" in capsys.readouterr().out


def test_orchestrator_backup_step(monkeypatch):
    cmds = []
    monkeypatch.setattr(bluespice, "run_cmd", cmds.append)
    assert bluespice.main(["--backup", "docs"]) == 0
    assert cmds[0][1:] == ["-m", "modules.wiki", "backup", "--wiki-name=docs"]
    assert bluespice.main(["--backup"]) == 1
    assert len(cmds) == 1
