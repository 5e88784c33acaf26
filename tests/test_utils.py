import subprocess

import pytest

from modules import utils


def test_wait_until_succeeds_without_sleeping_after_success():
    answers = iter([False, False, True])
    sleeps = []
    assert utils.wait_until(lambda: next(answers), attempts=30, interval=2, sleep=sleeps.append)
    assert sleeps == [2, 2]


def test_wait_until_gives_up_after_attempts():
    calls = []
    sleeps = []

    def never():
        calls.append(1)
        return False

    assert not utils.wait_until(never, attempts=30, interval=2, sleep=sleeps.append)
    assert len(calls) == 30
    # no sleep after the final attempt
    assert len(sleeps) == 29


@pytest.mark.parametrize(
    "answer, default, expected",
    [("y", False, True), ("Y", False, True), ("yes", False, False), ("", False, False), ("", True, True), ("n", True, False)],
)
def test_confirm(monkeypatch, answer, default, expected):
    monkeypatch.setattr("builtins.input", lambda _msg: answer)
    assert utils.confirm("Continue?", default=default) is expected


def test_confirm_eof_takes_default(monkeypatch):
    def eof(_msg):
        raise EOFError

    monkeypatch.setattr("builtins.input", eof)
    assert utils.confirm("Continue?") is False


def test_prompt_retries_until_valid(monkeypatch):
    answers = iter(["bad name", "good"])
    monkeypatch.setattr("builtins.input", lambda _msg: next(answers))
    assert utils.prompt("Name", validator=lambda v: " " not in v) == "good"


def test_prompt_default(monkeypatch):
    monkeypatch.setattr("builtins.input", lambda _msg: "  ")
    assert utils.prompt("Lang", default="en") == "en"


def test_mask_secret():
    assert utils.mask_secret("") == ""
    assert utils.mask_secret("ab") == "********"
    assert utils.mask_secret("secret") == "s********t"


def test_fmt_args_masks_client_password():
    shown = utils._fmt_args(["mariadb", "-u", "root", "-ptopsecret", "-e", "SELECT 1;"])
    assert "topsecret" not in shown
    assert "-pt********t" in shown


def test_run_capture_missing_binary():
    rc, out, err = utils.run_capture(["definitely-not-a-real-binary-xyz"])
    assert rc == 127
    assert out == ""


def test_run_cmd_raises_on_failure(monkeypatch):
    def fake_run(args, check, text):
        raise subprocess.CalledProcessError(3, args)

    monkeypatch.setattr(utils.subprocess, "run", fake_run)
    with pytest.raises(subprocess.CalledProcessError):
        utils.run_cmd(["false"])


def test_parse_flags():
    flags, unknown = utils.parse_flags(
        ["--wiki-name=docs", "--yes", "--bogus", "stray"], {"wiki-name": True, "yes": False}
    )
    assert flags == {"wiki-name": "docs", "yes": True}
    assert unknown == ["--bogus", "stray"]


def test_parse_flags_rejects_wrong_shape():
    known = {"profile": True, "strip-prefix": False}
    flags, unknown = utils.parse_flags(["--profile", "--strip-prefix=no"], known)
    assert flags == {}
    assert unknown == ["--profile", "--strip-prefix=no"]

    flags, unknown = utils.parse_flags(["--profile=", "--strip-prefix"], known)
    assert flags == {"profile": "", "strip-prefix": True}
    assert unknown == []


def test_generate_password():
    pw = utils.generate_password(30)
    assert len(pw) == 30
    assert pw.isalnum()


def test_status_lines_carry_run_id(capsys):
    utils.status_pass("done")
    utils.status_fail("broken")
    out = capsys.readouterr().out
    assert "PASS: done [" in out
    assert "FAIL: broken [" in out
