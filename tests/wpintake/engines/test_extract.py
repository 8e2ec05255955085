"""Tests for safe archive extraction."""

from __future__ import annotations

import stat
import zipfile

import pytest

from wpintake.engines.exceptions import ExtractionError
from wpintake.engines.intake.extract import safe_extract


def _zip(path, entries: dict[str, str]):
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return path


class TestSafeExtract:
    def test_extracts(self, tmp_path):
        archive = _zip(tmp_path / "a.zip", {"p/p.php": "<?php", "p/readme.txt": "hi"})
        dest = safe_extract(archive, tmp_path / "out")
        assert (dest / "p" / "p.php").read_text() == "<?php"

    def test_replaces_existing_dest(self, tmp_path):
        dest = tmp_path / "out"
        dest.mkdir()
        (dest / "stale.txt").write_text("old")
        safe_extract(_zip(tmp_path / "a.zip", {"new.txt": "x"}), dest)
        assert not (dest / "stale.txt").exists()
        assert (dest / "new.txt").exists()

    @pytest.mark.parametrize("name", ["../evil.php", "a/../../evil.php", "/abs/evil.php", "C:/evil.php"])
    def test_rejects_escaping_entries(self, tmp_path, name):
        archive = _zip(tmp_path / "bad.zip", {"ok.txt": "x", name: "boom"})
        with pytest.raises(ExtractionError):
            safe_extract(archive, tmp_path / "out")
        assert not (tmp_path / "out").exists()
        assert not (tmp_path / "evil.php").exists()

    def test_rejects_symlink_entries(self, tmp_path):
        archive = tmp_path / "link.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            info = zipfile.ZipInfo("link")
            info.external_attr = (stat.S_IFLNK | 0o777) << 16
            zf.writestr(info, "/etc/passwd")
        with pytest.raises(ExtractionError, match="symlink"):
            safe_extract(archive, tmp_path / "out")

    def test_not_a_zip(self, tmp_path):
        bogus = tmp_path / "bogus.zip"
        bogus.write_bytes(b"definitely not a zip")
        with pytest.raises(ExtractionError, match="invalid zip"):
            safe_extract(bogus, tmp_path / "out")
        assert [p.name for p in tmp_path.iterdir()] == ["bogus.zip"]
