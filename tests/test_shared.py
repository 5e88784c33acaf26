import pytest
from dotenv import dotenv_values

from modules import shared


@pytest.fixture
def shared_env(tmp_path, monkeypatch):
    path = tmp_path / "shared" / ".shared.env"
    monkeypatch.setattr(shared.config, "SHARED_ENV_FILE", path)
    return path


def test_shared_env_generated_once(shared_env):
    assert shared.ensure_shared_env()
    first = dotenv_values(shared_env)["DB_ROOT_PASS"]
    assert len(first) == 22
    assert shared.ensure_shared_env()
    assert shared.load_root_password() == first
    assert shared_env.stat().st_mode & 0o777 == 0o600


def test_load_root_password_missing(shared_env):
    assert shared.load_root_password() is None
    shared_env.parent.mkdir(parents=True)
    shared_env.write_text("DATA_DIR=/bluespice\n", encoding="utf-8")
    assert shared.load_root_password() is None


def test_shared_up_sequence(shared_env, monkeypatch):
    steps = []
    monkeypatch.setattr(shared, "ensure_network", lambda: steps.append("network") or True)
    monkeypatch.setattr(shared, "compose_up", lambda files, env, project: steps.append(project) or True)
    monkeypatch.setattr(shared, "wait_for_database", lambda pw: steps.append("wait") or True)
    monkeypatch.setattr(shared, "bootstrap_root_password", lambda pw: steps.append("bootstrap") or True)
    assert shared.shared_up()
    assert steps == ["network", "bluespice-shared", "wait", "bootstrap"]


def test_shared_up_stops_when_compose_fails(shared_env, monkeypatch):
    monkeypatch.setattr(shared, "ensure_network", lambda: True)
    monkeypatch.setattr(shared, "compose_up", lambda files, env, project: False)
    monkeypatch.setattr(shared, "wait_for_database", lambda pw: pytest.fail("waited"))
    assert not shared.shared_up()


def test_main_rejects_unknown_command(monkeypatch):
    monkeypatch.setattr(shared, "init_logging", lambda rid: "testrun0")
    monkeypatch.setattr(shared.sys, "argv", ["shared", "restart"])
    assert shared.main() == 1


def test_stateless_renderers_are_shared_services():
    for name in ("bluespice-formula", "bluespice-pdf", "bluespice-diagram"):
        assert name in shared.SHARED_CONTAINERS
    manifest = (shared.config.COMPOSE_DIR / "shared-services.yml").read_text(encoding="utf-8")
    for service in ("formula:", "pdf:", "diagram:"):
        assert f"\n  {service}\n" in manifest


def test_status_reports_stopped_renderer(monkeypatch, capsys):
    monkeypatch.setattr(shared, "is_container_running", lambda name: name != "bluespice-pdf")
    monkeypatch.setattr(shared, "health_status", lambda name: "healthy")
    assert not shared.shared_status()
    assert "bluespice-pdf: stopped" in capsys.readouterr().out


def test_letsencrypt_started_once(shared_env, monkeypatch):
    started = []
    monkeypatch.setattr(shared, "is_container_running", lambda name: bool(started))
    monkeypatch.setattr(shared, "compose_up", lambda files, env, project: started.append((files, project)) or True)
    assert shared.ensure_shared_env()
    assert shared.ensure_letsencrypt()
    assert shared.ensure_letsencrypt()
    assert len(started) == 1
    files, project = started[0]
    assert project == "bluespice-letsencrypt"
    assert files[0].name == "letsencrypt.yml" and files[0].is_file()


def test_letsencrypt_needs_shared_env(shared_env, monkeypatch):
    monkeypatch.setattr(shared, "is_container_running", lambda name: False)
    monkeypatch.setattr(shared, "compose_up", lambda *a: pytest.fail("started"))
    assert not shared.ensure_letsencrypt()
