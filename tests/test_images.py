import zipfile

import pytest

from modules.wiki import images


def make_zip(path, entries):
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


def test_find_images_source_prefers_images_dir(tmp_path):
    (tmp_path / "images" / "a").mkdir(parents=True)
    assert images.find_images_source(tmp_path) == tmp_path / "images"


def test_find_images_source_top_level_files(tmp_path):
    (tmp_path / "Logo.PNG").write_bytes(b"png")
    assert images.find_images_source(tmp_path) == tmp_path


def test_find_images_source_nested(tmp_path):
    (tmp_path / "backup" / "w" / "images").mkdir(parents=True)
    assert images.find_images_source(tmp_path) == tmp_path / "backup" / "w" / "images"


def test_find_images_source_nothing(tmp_path):
    (tmp_path / "readme.txt").write_text("hi", encoding="utf-8")
    assert images.find_images_source(tmp_path) is None


def test_validate_images_archive(tmp_path, capsys):
    good = make_zip(tmp_path / "good.zip", {"images/a/ab/x.png": b"x"})
    assert images.validate_images_archive(good)

    flat = make_zip(tmp_path / "flat.zip", {"x.png": b"x"})
    assert images.validate_images_archive(flat)
    assert "WARN:" in capsys.readouterr().out

    not_zip = tmp_path / "images.zip"
    not_zip.write_text("plain", encoding="utf-8")
    assert not images.validate_images_archive(not_zip)
    assert not images.validate_images_archive(tmp_path / "missing.zip")


def test_container_uid_fallback(monkeypatch):
    monkeypatch.setattr(images, "docker_exec_capture", lambda name, args: (1, "", "no such user"))
    assert images.container_uid("c") == 1002
    monkeypatch.setattr(images, "docker_exec_capture", lambda name, args: (0, "1005\n", ""))
    assert images.container_uid("c") == 1005


def test_register_images_retries_as_root(wiki_cfg, monkeypatch):
    calls = []

    def fake_exec(name, argv, user=None):
        calls.append((argv[1].rsplit("/", 1)[-1], user))
        return user == "root"

    monkeypatch.setattr(images, "docker_exec", fake_exec)
    assert images.register_images(wiki_cfg)
    assert calls == [
        ("importImages.php", "bluespice"),
        ("importImages.php", "root"),
        ("rebuildImages.php", "bluespice"),
        ("rebuildImages.php", "root"),
    ]


def test_register_images_fails_when_import_fails(wiki_cfg, monkeypatch):
    monkeypatch.setattr(images, "docker_exec", lambda name, argv, user=None: False)
    assert not images.register_images(wiki_cfg)


def test_rebuild_failure_is_only_a_warning(wiki_cfg, monkeypatch):
    monkeypatch.setattr(
        images, "docker_exec", lambda name, argv, user=None: "importImages" in argv[1]
    )
    assert images.register_images(wiki_cfg)


def test_import_cancelled_by_operator(wiki_cfg, tmp_path, monkeypatch):
    archive = make_zip(tmp_path / "img.zip", {"images/x.png": b"x"})
    monkeypatch.setattr(images, "validate_wiki", lambda cfg: True)
    monkeypatch.setattr(images, "confirm", lambda message, default=False: False)
    monkeypatch.setattr(images, "backup_current_images", lambda cfg: pytest.fail("backup after cancel"))
    assert images.import_images(wiki_cfg, archive)


def test_import_stops_when_backup_fails(wiki_cfg, tmp_path, monkeypatch):
    archive = make_zip(tmp_path / "img.zip", {"images/x.png": b"x"})
    monkeypatch.setattr(images, "validate_wiki", lambda cfg: True)
    monkeypatch.setattr(images, "backup_current_images", lambda cfg: None)
    monkeypatch.setattr(images, "copy_images_into_container", lambda cfg, a: pytest.fail("copied without backup"))
    assert not images.import_images(wiki_cfg, archive, assume_yes=True)
