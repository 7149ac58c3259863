"""Temp-file materialization."""

import re
from pathlib import Path

import pytest

from sheetsync_ingestion.services.materialize import materialized_file, temp_file_name


class TestTempFileName:
    def test_format(self, deterministic_clock):
        name = temp_file_name(deterministic_clock, ".xlsx")
        assert re.fullmatch(r"sheetsync-20240601T093000000000Z-[0-9a-f]{12}\.xlsx", name)

    def test_unique_per_call(self, deterministic_clock):
        assert temp_file_name(deterministic_clock, ".csv") != temp_file_name(deterministic_clock, ".csv")


class TestMaterializedFile:
    def test_written_then_deleted(self, temp_dir, deterministic_clock):
        with materialized_file(b"abc", suffix=".csv", temp_dir=temp_dir, clock=deterministic_clock) as path:
            assert path.parent == temp_dir
            assert path.read_bytes() == b"abc"
            assert path.suffix == ".csv"
        assert not path.exists()

    def test_deleted_when_body_raises(self, temp_dir):
        with pytest.raises(RuntimeError):
            with materialized_file(b"abc", temp_dir=temp_dir):
                raise RuntimeError("parse failed")
        assert list(temp_dir.iterdir()) == []

    def test_cleanup_failure_is_logged_not_raised(self, temp_dir, monkeypatch, captured_logs):
        def broken_unlink(self, missing_ok=False):
            raise PermissionError("locked")

        with materialized_file(b"abc", temp_dir=temp_dir) as path:
            monkeypatch.setattr(Path, "unlink", broken_unlink)

        monkeypatch.undo()
        warning = next(r for r in captured_logs() if r["message"] == "temp_file_cleanup_failed")
        assert warning["temp_path"] == str(path)
        assert "locked" in warning["error"]
        path.unlink()
