"""
Polars DataFrame conversion for datastore output.

The datastore executables emit tiles as JSON documents and exports as CSV.
This module collects that output and turns it into Polars DataFrames for
analysis, without changing what the datastore produced.

Tile documents look like::

    {
        "level": 10,
        "offset": 2639,
        "fields": ["time", "mean", "stddev", "count"],
        "data": [[1384355116.0, 42.0, 0.0, 1], ...],
        "type": "value"
    }

and become one row per entry in ``data`` with the ``fields`` as columns.
Export CSV has an ``EpochTime`` column followed by one column per exported
channel (named by its ``uid.device.channel`` locator).

Examples
--------
>>> converter = PolarsConverter()
>>> tile = await datastore.get_tile(1, "speck", "particles", 10, 2639)
>>> df = converter.tile_to_polars(tile)
>>>
>>> process = await datastore.export_data(requests, min_time=1384355116)
>>> df = await converter.export_to_polars(process)
>>> df.columns
['EpochTime', '1.speck.particles']
"""

from __future__ import annotations

import io
import subprocess
from typing import Any

import polars as pl

from .commands import StreamingProcess
from .errors import ServerError


class PolarsConverter:
    """
    Converts datastore tiles and exports to Polars DataFrames.

    Parameters
    ----------
    infer_schema_length : int, default 10000
        Rows Polars scans to infer CSV column types. Exports with sparse
        early rows may need a larger value.

    Notes
    -----
    Export conversion reads the whole stream into memory. For exports too
    large for that, consume ``process.stdout`` directly.
    """

    def __init__(self, infer_schema_length: int = 10000) -> None:
        self.infer_schema_length = infer_schema_length

    def tile_to_polars(self, tile: dict[str, Any]) -> pl.DataFrame:
        """
        Convert a tile document to a DataFrame.

        Parameters
        ----------
        tile : dict
            A tile as returned by :meth:`BodyTrackDatastore.get_tile`.

        Returns
        -------
        pl.DataFrame
            One column per entry in ``tile["fields"]`` and one row per entry in
            ``tile["data"]``. An empty tile (``{}``) gives an empty frame.
        """
        fields = tile.get("fields") or []
        rows = tile.get("data") or []
        if not fields:
            return pl.DataFrame()
        return pl.DataFrame(rows, schema=list(fields), orient="row")

    def csv_to_polars(self, data: bytes) -> pl.DataFrame:
        """Parse export CSV. A header-only export gives an empty frame with columns."""
        if not data.strip():
            return pl.DataFrame()
        return pl.read_csv(io.BytesIO(data), infer_schema_length=self.infer_schema_length)

    async def collect_process_output(self, process: StreamingProcess) -> bytes:
        """
        Drain a streaming datastore process and return its stdout.

        Raises
        ------
        ServerError
            If the process exits non-zero. The context is a
            :class:`subprocess.CalledProcessError` with the exit status and
            captured output.
        """
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            error = subprocess.CalledProcessError(
                process.returncode,
                getattr(process, "args", None),
                output=stdout,
                stderr=stderr,
            )
            raise ServerError("Datastore process failed", error) from error
        return stdout

    async def export_to_polars(self, process: StreamingProcess) -> pl.DataFrame:
        """Collect a CSV ``export`` process into a DataFrame."""
        return self.csv_to_polars(await self.collect_process_output(process))
