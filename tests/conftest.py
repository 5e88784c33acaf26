import pytest

from modules.wiki.settings import new_wiki_config


@pytest.fixture(autouse=True)
def run_id(monkeypatch):
    # Status lines read the run-id from the environment when logging is not initialized.
    monkeypatch.setenv("BLUESPICE_RID", "testrun0")


@pytest.fixture
def wikis_dir(tmp_path):
    path = tmp_path / "wikis"
    path.mkdir()
    return path


@pytest.fixture
def wiki_cfg(wikis_dir):
    cfg = new_wiki_config("docs", "docs.example.com", wikis_dir=wikis_dir, db_pass="s3cretPass")
    cfg.wiki_dir.mkdir()
    return cfg


@pytest.fixture
def no_input(monkeypatch):
    """Fail the test if anything prompts the operator."""

    def _fail(*_args, **_kwargs):
        raise AssertionError("unexpected prompt")

    monkeypatch.setattr("builtins.input", _fail)
