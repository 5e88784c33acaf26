from modules.wiki import db


def test_sql_quoting():
    assert db.sql_literal("it's") == "'it\\'s'"
    assert db.sql_literal("a\\b") == "'a\\\\b'"
    assert db.sql_ident("we`ird") == "`we``ird`"


def test_client_argv():
    assert db._client_argv("root", None) == ["mariadb", "-u", "root"]
    assert db._client_argv("u", "pw", "d") == ["mariadb", "-u", "u", "-ppw", "d"]


def test_ensure_db_and_user_covers_both_hosts(wiki_cfg, monkeypatch):
    statements = []
    monkeypatch.setattr(db, "run_mysql", lambda sql, root_pass, secret="": statements.append(sql) or True)

    assert db.ensure_db_and_user(wiki_cfg, "rootpw")
    assert statements[0] == "CREATE DATABASE IF NOT EXISTS `docs_wiki`;"
    assert statements[-1] == "FLUSH PRIVILEGES;"
    grants = [s for s in statements if s.startswith("GRANT")]
    assert grants == [
        "GRANT ALL PRIVILEGES ON `docs_wiki`.* TO 'docs_user'@'%';",
        "GRANT ALL PRIVILEGES ON `docs_wiki`.* TO 'docs_user'@'localhost';",
    ]


def test_ensure_db_and_user_stops_on_first_failure(wiki_cfg, monkeypatch):
    statements = []

    def fail_second(sql, root_pass, secret=""):
        statements.append(sql)
        return len(statements) < 2

    monkeypatch.setattr(db, "run_mysql", fail_second)
    assert not db.ensure_db_and_user(wiki_cfg, "rootpw")
    assert len(statements) == 2


def test_run_mysql_masks_secret_in_log(monkeypatch, caplog):
    monkeypatch.setattr(db, "_mysql_try", lambda sql, root_pass: (1, "", "denied"))
    with caplog.at_level("ERROR"):
        assert not db.run_mysql("ALTER USER x IDENTIFIED BY 'hunter22';", "root", secret="hunter22")
    assert "hunter22" not in caplog.text
    assert "h********2" in caplog.text


class FakeServer:
    """Answers SELECT 1 only for the password it currently has."""

    def __init__(self, password):
        self.password = password
        self.statements = []

    def __call__(self, sql, root_pass):
        if root_pass != self.password:
            return 1, "", "Access denied"
        self.statements.append(sql)
        if sql.startswith("ALTER USER"):
            self.password = "newpass"
        return 0, "", ""


def test_bootstrap_is_noop_when_password_works(monkeypatch):
    server = FakeServer("newpass")
    monkeypatch.setattr(db, "is_container_running", lambda name: True)
    monkeypatch.setattr(db, "_mysql_try", server)
    assert db.bootstrap_root_password("newpass")
    assert not any(s.startswith("ALTER") for s in server.statements)


def test_bootstrap_sets_password_from_passwordless(monkeypatch):
    server = FakeServer(None)
    monkeypatch.setattr(db, "is_container_running", lambda name: True)
    monkeypatch.setattr(db, "_mysql_try", server)
    assert db.bootstrap_root_password("newpass")
    assert server.password == "newpass"


def test_bootstrap_fails_without_any_access(monkeypatch):
    monkeypatch.setattr(db, "is_container_running", lambda name: True)
    monkeypatch.setattr(db, "_mysql_try", FakeServer("other"))
    assert not db.bootstrap_root_password("newpass")


def test_wait_for_database_accepts_passwordless(monkeypatch):
    monkeypatch.setattr(db, "_mysql_try", FakeServer(None))
    assert db.wait_for_database("newpass", attempts=1, interval=0)
