"""
Unit tests for PolarsConverter class.

Tests conversion of tile documents and CSV exports to Polars DataFrames.
"""

import asyncio
import subprocess
from unittest.mock import AsyncMock, Mock

import polars as pl
import pytest

from bodytrack_datastore.data_access import get_datastore_info, scan_export, scan_tile
from bodytrack_datastore.data_access.errors import ServerError
from bodytrack_datastore.data_access.polars_converter import PolarsConverter


def _process(stdout=b"", stderr=b"", returncode=0):
    process = Mock()
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.returncode = returncode
    process.args = ["export"]
    return process


@pytest.mark.unit
class TestPolarsConverter:
    """Test suite for PolarsConverter functionality."""

    def setup_method(self):
        """Set up test fixtures for each test method."""
        self.converter = PolarsConverter(infer_schema_length=100)

    def test_init(self):
        """Test PolarsConverter initialization."""
        assert PolarsConverter().infer_schema_length == 10000
        assert self.converter.infer_schema_length == 100

    def test_tile_to_polars(self, valid_tile):
        """Each tile row becomes a DataFrame row."""
        df = self.converter.tile_to_polars(valid_tile)

        assert df.columns == ["time", "mean", "stddev", "count"]
        assert len(df) == 2
        assert df["mean"].to_list() == [21.0, 45.0]
        assert df["count"].to_list() == [1, 1]

    def test_empty_tile(self):
        """A tile for a channel with no data converts to an empty frame."""
        df = self.converter.tile_to_polars({})

        assert isinstance(df, pl.DataFrame)
        assert df.is_empty()

    def test_csv_to_polars(self):
        csv = b"EpochTime,1.speck.particles,1.speck.humidity\n1384355116,21,40\n1384355126,45,41\n"

        df = self.converter.csv_to_polars(csv)

        assert df.columns == ["EpochTime", "1.speck.particles", "1.speck.humidity"]
        assert df["1.speck.particles"].to_list() == [21, 45]

    def test_header_only_csv(self):
        """An export with no rows in range keeps its columns."""
        df = self.converter.csv_to_polars(b"EpochTime,1.speck.particles\n")

        assert df.columns == ["EpochTime", "1.speck.particles"]
        assert df.is_empty()

    def test_blank_csv(self):
        assert self.converter.csv_to_polars(b"").is_empty()
        assert self.converter.csv_to_polars(b"\n").is_empty()

    def test_collect_process_output(self):
        process = _process(stdout=b"data")

        assert asyncio.run(self.converter.collect_process_output(process)) == b"data"

    def test_collect_failed_process(self):
        process = _process(stdout=b"partial", stderr=b"export failed", returncode=2)

        with pytest.raises(ServerError, match="Datastore process failed") as exc_info:
            asyncio.run(self.converter.collect_process_output(process))

        context = exc_info.value.context
        assert isinstance(context, subprocess.CalledProcessError)
        assert context.returncode == 2
        assert context.stderr == b"export failed"

    def test_export_to_polars(self):
        process = _process(stdout=b"EpochTime,1.speck.particles\n1,2.5\n")

        df = asyncio.run(self.converter.export_to_polars(process))

        assert df["1.speck.particles"].to_list() == [2.5]


@pytest.mark.integration
class TestDatastoreScanner:
    """Test suite for the blocking scan functions."""

    def test_get_datastore_info(self, fake_binaries, datastore_config, valid_info):
        fake_binaries.set_response("info", valid_info)

        assert get_datastore_info(datastore_config, 1, device_name="speck") == valid_info
        assert fake_binaries.argv("info")[-2:] == ["--prefix", "speck"]

    def test_scan_tile_from_mapping(self, fake_binaries, bin_dir, data_dir, valid_tile):
        fake_binaries.set_response("gettile", valid_tile)
        config = {"binDir": str(bin_dir), "dataDir": str(data_dir)}

        df = scan_tile(config, 1, "speck", "particles", 10, 2639)

        assert df.columns == valid_tile["fields"]
        assert len(df) == 2

    def test_scan_export(self, fake_binaries, datastore, speck_request):
        fake_binaries.set_response(
            "export",
            "EpochTime,1.speck.particles,1.speck.humidity\n1384355116,21,40\n",
        )

        df = scan_export(datastore, [speck_request, speck_request], min_time=1384355116)

        assert df.columns == ["EpochTime", "1.speck.particles", "1.speck.humidity"]
        assert fake_binaries.argv("export")[:3] == ["--csv", "--start", "1384355116"]

    def test_scan_export_failure(self, fake_binaries, datastore, speck_request):
        fake_binaries.set_response("export", "", exit_code=1)

        with pytest.raises(ServerError, match="Datastore process failed"):
            scan_export(datastore, [speck_request])
