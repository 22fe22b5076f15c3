"""
Unit tests for datastore configuration and installation validation.
"""

import logging
from pathlib import Path

import pytest

from bodytrack_datastore.data_access import BodyTrackDatastore
from bodytrack_datastore.data_access.config import (
    DATASTORE_EXECUTABLES,
    DatastoreConfig,
    load_config,
    validate_installation,
)


@pytest.mark.unit
class TestDatastoreConfig:
    """Test suite for DatastoreConfig construction."""

    def test_paths_are_normalised(self):
        config = DatastoreConfig(bin_dir="bin", data_dir="dev.kvs")
        assert config.bin_dir == Path("bin")
        assert config.data_dir == Path("dev.kvs")
        assert config.executable_path("info") == Path("bin") / "info"

    @pytest.mark.parametrize(
        "mapping",
        [
            {"bin_dir": "bin", "data_dir": "data"},
            {"binDir": "bin", "dataDir": "data"},
            {"bin_dir": "bin", "dataDir": "data"},
        ],
    )
    def test_from_mapping(self, mapping):
        config = DatastoreConfig.from_mapping(mapping)
        assert config == DatastoreConfig(bin_dir="bin", data_dir="data")

    @pytest.mark.parametrize(
        "mapping",
        [
            None,
            {},
            {"dataDir": "foo"},
            {"binDir": "foo"},
            {"binDir": None, "dataDir": None},
            {"binDir": None, "dataDir": "foo"},
            {"binDir": "foo", "dataDir": None},
            {"binDir": "", "dataDir": "foo"},
        ],
    )
    def test_incomplete_config_is_fatal(self, mapping):
        with pytest.raises(ValueError):
            DatastoreConfig.from_mapping(mapping)

    @pytest.mark.parametrize(
        "mapping", [None, {}, {"dataDir": "foo"}, {"binDir": "foo"}]
    )
    def test_facade_construction_is_fatal(self, mapping):
        with pytest.raises(ValueError):
            BodyTrackDatastore(mapping)


@pytest.mark.unit
class TestLoadConfig:
    """Test suite for YAML config loading."""

    def test_top_level_keys(self, tmp_path):
        path = tmp_path / "datastore.yaml"
        path.write_text("bin_dir: /opt/bin\ndata_dir: /var/dev.kvs\n")

        config = load_config(path)

        assert config.bin_dir == Path("/opt/bin")
        assert config.data_dir == Path("/var/dev.kvs")

    def test_datastore_section(self, tmp_path):
        path = tmp_path / "datastore.yaml"
        path.write_text("datastore:\n  binDir: /opt/bin\n  dataDir: /var/dev.kvs\nother: 1\n")

        config = load_config(str(path))

        assert config == DatastoreConfig(bin_dir="/opt/bin", data_dir="/var/dev.kvs")

    def test_missing_directory_in_file(self, tmp_path):
        path = tmp_path / "datastore.yaml"
        path.write_text("datastore:\n  bin_dir: /opt/bin\n")

        with pytest.raises(ValueError, match="data_dir"):
            load_config(path)

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "datastore.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="must contain a mapping"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")


@pytest.mark.unit
class TestValidateInstallation:
    """Test suite for installation checks."""

    def _install(self, bin_dir):
        for name in DATASTORE_EXECUTABLES:
            (bin_dir / name).write_text("#!/bin/sh\n")

    def test_valid_installation(self, bin_dir, data_dir, datastore_config):
        self._install(bin_dir)
        assert validate_installation(datastore_config) is True
        assert BodyTrackDatastore(datastore_config).is_config_valid() is True

    def test_missing_data_dir(self, bin_dir, tmp_path, caplog):
        self._install(bin_dir)
        config = DatastoreConfig(bin_dir=bin_dir, data_dir=tmp_path / "missing")

        with caplog.at_level(logging.ERROR):
            assert validate_installation(config) is False
        assert "does not exist" in caplog.text

    def test_missing_bin_dir(self, data_dir, tmp_path):
        config = DatastoreConfig(bin_dir=tmp_path / "missing", data_dir=data_dir)
        assert validate_installation(config) is False

    def test_data_dir_is_a_file(self, bin_dir, tmp_path):
        self._install(bin_dir)
        data_file = tmp_path / "data.txt"
        data_file.write_text("not a directory")
        config = DatastoreConfig(bin_dir=bin_dir, data_dir=data_file)

        assert validate_installation(config) is False

    def test_missing_executable(self, bin_dir, datastore_config, caplog):
        self._install(bin_dir)
        (bin_dir / "gettile").unlink()

        with caplog.at_level(logging.ERROR):
            assert validate_installation(datastore_config) is False
        assert "gettile" in caplog.text

    def test_executable_is_a_directory(self, bin_dir, datastore_config):
        self._install(bin_dir)
        (bin_dir / "export").unlink()
        (bin_dir / "export").mkdir()

        assert validate_installation(datastore_config) is False

    def test_uses_injected_logger(self, tmp_path, data_dir):
        log = logging.getLogger("test.injected")
        config = DatastoreConfig(bin_dir=tmp_path / "missing", data_dir=data_dir)
        datastore = BodyTrackDatastore(config, log=log)

        with pytest.MonkeyPatch.context() as mp:
            calls = []
            mp.setattr(log, "error", lambda *args: calls.append(args))
            assert datastore.is_config_valid() is False
        assert calls
