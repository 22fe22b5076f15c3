"""
Pytest configuration and shared fixtures for bodytrack-datastore tests.

The datastore executables are replaced by small Python scripts written into a
temporary bin directory. Each script records its argv, copies the import
payload (for ``import``), writes optional stderr, prints a canned response
and exits with a configurable status, so tests exercise real subprocess
plumbing without a datastore installation.
"""

import json
import stat
import sys
from pathlib import Path
from typing import Any, Optional

import pytest

from bodytrack_datastore.data_access import (
    DATASTORE_EXECUTABLES,
    BodyTrackDatastore,
    DatastoreConfig,
)

FAKE_EXECUTABLE = """#!{python}
import json
import os
import sys

name = os.path.basename(sys.argv[0])
here = os.path.dirname(os.path.abspath(sys.argv[0]))

with open(os.path.join(here, name + ".argv.json"), "w") as f:
    json.dump(sys.argv[1:], f)

if name == "import":
    with open(sys.argv[-1]) as src, open(os.path.join(here, "import.payload"), "w") as dst:
        dst.write(src.read())

stderr_path = os.path.join(here, name + ".stderr")
if os.path.exists(stderr_path):
    with open(stderr_path) as f:
        sys.stderr.write(f.read())
    sys.stderr.flush()

response_path = os.path.join(here, name + ".response")
if os.path.exists(response_path):
    with open(response_path) as f:
        sys.stdout.write(f.read())

exit_code_path = os.path.join(here, name + ".exitcode")
exit_code = 0
if os.path.exists(exit_code_path):
    with open(exit_code_path) as f:
        exit_code = int(f.read())
if exit_code:
    sys.stderr.write(name + " failed\\n")
sys.exit(exit_code)
"""


class FakeDatastoreBinaries:
    """Controls and inspects the fake executables in a bin directory."""

    def __init__(self, bin_dir: Path) -> None:
        self.bin_dir = bin_dir
        script = FAKE_EXECUTABLE.format(python=sys.executable)
        for name in DATASTORE_EXECUTABLES:
            path = bin_dir / name
            path.write_text(script)
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    def set_response(self, name: str, stdout: Any, exit_code: int = 0) -> None:
        if not isinstance(stdout, str):
            stdout = json.dumps(stdout)
        (self.bin_dir / f"{name}.response").write_text(stdout)
        (self.bin_dir / f"{name}.exitcode").write_text(str(exit_code))

    def set_stderr(self, name: str, text: str) -> None:
        (self.bin_dir / f"{name}.stderr").write_text(text)

    def argv(self, name: str) -> Optional[list]:
        path = self.bin_dir / f"{name}.argv.json"
        if not path.exists():
            return None
        return json.loads(path.read_text())

    def was_called(self, name: str) -> bool:
        return (self.bin_dir / f"{name}.argv.json").exists()

    def import_payload(self) -> Any:
        return json.loads((self.bin_dir / "import.payload").read_text())


@pytest.fixture
def bin_dir(tmp_path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def data_dir(tmp_path) -> Path:
    path = tmp_path / "dev.kvs"
    path.mkdir()
    return path


@pytest.fixture
def fake_binaries(bin_dir) -> FakeDatastoreBinaries:
    """Fake datastore executables installed in ``bin_dir``."""
    return FakeDatastoreBinaries(bin_dir)


@pytest.fixture
def datastore_config(bin_dir, data_dir) -> DatastoreConfig:
    return DatastoreConfig(bin_dir=bin_dir, data_dir=data_dir)


@pytest.fixture
def datastore(fake_binaries, datastore_config) -> BodyTrackDatastore:
    """A facade wired to the fake executables."""
    return BodyTrackDatastore(datastore_config)


@pytest.fixture
def import_tmpdir(tmp_path, monkeypatch) -> Path:
    """Redirect import temp files into a private directory so leaks are visible."""
    path = tmp_path / "tmp"
    path.mkdir()
    monkeypatch.setattr("tempfile.tempdir", str(path))
    return path


@pytest.fixture
def speck_request():
    return {"user_id": 1, "device_name": "speck", "channel_names": ["particles", "humidity"]}


@pytest.fixture
def valid_info():
    return {
        "channel_specs": {
            "speck.particles": {
                "channel_bounds": {
                    "min_time": 1384355116,
                    "max_time": 1384355157,
                    "min_value": 0,
                    "max_value": 45,
                }
            }
        }
    }


@pytest.fixture
def valid_tile():
    return {
        "level": 10,
        "offset": 2639,
        "fields": ["time", "mean", "stddev", "count"],
        "data": [
            [1384355116.0, 21.0, 0.0, 1],
            [1384355126.0, 45.0, 0.0, 1],
        ],
        "type": "value",
    }


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as running the fake datastore executables"
    )

