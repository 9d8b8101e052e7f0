"""Tests for pgcrate.collaborators.local.LocalFileWriter."""

from __future__ import annotations

import stat

from pgcrate.collaborators.local import LocalFileWriter


class TestLocalFileWriter:
    def test_writes_below_root(self, tmp_path):
        writer = LocalFileWriter(tmp_path)
        assert writer.write("/etc/pg/pg_hba.conf", "local all all trust\n") is True
        target = tmp_path / "etc" / "pg" / "pg_hba.conf"
        assert target.read_text(encoding="utf-8") == "local all all trust\n"

    def test_modes_applied(self, tmp_path):
        writer = LocalFileWriter(tmp_path)
        writer.write("/conf/a.conf", "x", mode="0600", directory_mode="0700")
        assert stat.S_IMODE((tmp_path / "conf" / "a.conf").stat().st_mode) == 0o600
        assert stat.S_IMODE((tmp_path / "conf").stat().st_mode) == 0o700

    def test_unchanged_content(self, tmp_path):
        writer = LocalFileWriter(tmp_path)
        writer.write("/a.conf", "x")
        assert writer.write("/a.conf", "x", flag="changed") is False
        assert not writer.is_flag_set("changed")

    def test_changed_sets_flag(self, tmp_path):
        writer = LocalFileWriter(tmp_path)
        writer.write("/a.conf", "x")
        assert writer.write("/a.conf", "y", flag="changed") is True
        assert writer.is_flag_set("changed")

    def test_no_leftover_temp_files(self, tmp_path):
        writer = LocalFileWriter(tmp_path)
        writer.write("/d/a.conf", "x")
        assert [p.name for p in (tmp_path / "d").iterdir()] == ["a.conf"]

    def test_delete_missing_is_noop(self, tmp_path):
        writer = LocalFileWriter(tmp_path)
        writer.delete("/nothing/here")
        writer.write("/a.conf", "x")
        writer.delete("/a.conf")
        assert not (tmp_path / "a.conf").exists()
