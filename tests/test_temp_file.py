"""
Unit tests for exclusively created temp files.
"""

import os
import stat
from unittest.mock import patch

import pytest

from bodytrack_datastore.data_access.temp_file import (
    TOTAL_TRIES,
    TempFile,
    generate_temp_filename,
)


@pytest.mark.unit
class TestTempFile:
    """Test suite for TempFile."""

    def test_generate_temp_filename(self, tmp_path):
        path = generate_temp_filename("prefix_", ".json", tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith(f"prefix_{os.getpid()}_")
        assert path.name.endswith(".json")
        assert generate_temp_filename("prefix_", ".json", tmp_path) != path

    def test_create_write_cleanup(self, tmp_path):
        temp_file = TempFile.create(prefix="test_", suffix=".json", directory=tmp_path)

        assert temp_file.path.exists()
        assert stat.S_IMODE(temp_file.path.stat().st_mode) == 0o600

        temp_file.write_text('{"a": 1}')
        assert temp_file.fd is None
        assert temp_file.path.read_text() == '{"a": 1}'

        temp_file.cleanup()
        assert not temp_file.path.exists()

    def test_write_after_close_fails(self, tmp_path):
        temp_file = TempFile.create(directory=tmp_path)
        temp_file.close()

        with pytest.raises(ValueError, match="already closed"):
            temp_file.write_text("x")
        temp_file.cleanup()

    def test_cleanup_missing_file_raises(self, tmp_path):
        temp_file = TempFile.create(directory=tmp_path)
        temp_file.cleanup()

        with pytest.raises(FileNotFoundError):
            temp_file.cleanup()

    def test_context_manager_removes_file(self, tmp_path):
        with TempFile.create(directory=tmp_path) as temp_file:
            temp_file.write_text("data")
            path = temp_file.path
        assert not path.exists()

    def test_retries_on_collision(self, tmp_path):
        taken = tmp_path / "taken.json"
        taken.write_text("")
        fresh = tmp_path / "fresh.json"

        with patch(
            "bodytrack_datastore.data_access.temp_file.generate_temp_filename",
            side_effect=[taken, taken, fresh],
        ):
            temp_file = TempFile.create(directory=tmp_path)

        assert temp_file.path == fresh
        temp_file.cleanup()

    def test_gives_up_after_total_tries(self, tmp_path):
        taken = tmp_path / "taken.json"
        taken.write_text("")

        with patch(
            "bodytrack_datastore.data_access.temp_file.generate_temp_filename",
            return_value=taken,
        ) as mock_generate:
            with pytest.raises(OSError, match="Failed to create a temp file"):
                TempFile.create(directory=tmp_path)

        assert mock_generate.call_count == TOTAL_TRIES
