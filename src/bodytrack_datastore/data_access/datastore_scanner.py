"""
Blocking convenience functions over :class:`BodyTrackDatastore`.

These wrap the async facade with :func:`asyncio.run` for scripts, notebooks
and the command-line interface, where an event loop is not already running.
Inside async code, use :class:`BodyTrackDatastore` directly.

Key Functions
-------------
get_datastore_info : Channel specs for a user, device or channel
scan_tile : One tile as a Polars DataFrame
scan_export : A CSV export as a Polars DataFrame

Examples
--------
>>> from bodytrack_datastore.data_access import scan_export
>>>
>>> df = scan_export(
...     {"bin_dir": "/opt/datastore/bin", "data_dir": "/var/datastore/dev.kvs"},
...     [{"user_id": 1, "device_name": "speck", "channel_names": ["particles"]}],
...     min_time=1384355116,
...     max_time=1384355157,
... )
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import polars as pl

from .config import DatastoreConfig
from .datastore import BodyTrackDatastore
from .polars_converter import PolarsConverter


def _datastore(
    config: DatastoreConfig | Mapping[str, Any] | BodyTrackDatastore,
    log: logging.Logger | None,
) -> BodyTrackDatastore:
    if isinstance(config, BodyTrackDatastore):
        return config
    return BodyTrackDatastore(config, log=log)


def get_datastore_info(
    config: DatastoreConfig | Mapping[str, Any] | BodyTrackDatastore,
    user_id: Any,
    device_name: str | None = None,
    channel_name: str | None = None,
    min_time: Any = None,
    max_time: Any = None,
    find_most_recent_sample: bool = False,
    log: logging.Logger | None = None,
) -> dict[str, Any]:
    """
    Get channel specs, blocking until ``info`` finishes.

    Parameters
    ----------
    config : DatastoreConfig, mapping or BodyTrackDatastore
        The installation, or an existing facade to reuse.
    user_id, device_name, channel_name, min_time, max_time, find_most_recent_sample
        As for :meth:`BodyTrackDatastore.get_info`.
    log : logging.Logger, optional
        Logger for a newly created facade.

    Returns
    -------
    dict
        The parsed ``info`` output.
    """
    datastore = _datastore(config, log)
    return asyncio.run(
        datastore.get_info(
            user_id,
            device_name=device_name,
            channel_name=channel_name,
            min_time=min_time,
            max_time=max_time,
            find_most_recent_sample=find_most_recent_sample,
        )
    )


def scan_tile(
    config: DatastoreConfig | Mapping[str, Any] | BodyTrackDatastore,
    user_id: Any,
    device_name: str,
    channel_name: str,
    level: Any,
    offset: Any,
    log: logging.Logger | None = None,
) -> pl.DataFrame:
    """Fetch one tile and return its samples as a DataFrame."""
    datastore = _datastore(config, log)
    tile = asyncio.run(datastore.get_tile(user_id, device_name, channel_name, level, offset))
    return PolarsConverter().tile_to_polars(tile)


def scan_export(
    config: DatastoreConfig | Mapping[str, Any] | BodyTrackDatastore,
    channel_requests: list[Mapping[str, Any]],
    min_time: Any = None,
    max_time: Any = None,
    infer_schema_length: int = 10000,
    log: logging.Logger | None = None,
) -> pl.DataFrame:
    """
    Run a CSV export and return it as a DataFrame.

    Parameters
    ----------
    config : DatastoreConfig, mapping or BodyTrackDatastore
        The installation, or an existing facade to reuse.
    channel_requests : list of dict
        Channels to export. See :func:`validate_channel_requests`.
    min_time, max_time : float, optional
        Time range in epoch seconds.
    infer_schema_length : int, default 10000
        Passed to :class:`PolarsConverter`.
    log : logging.Logger, optional
        Logger for a newly created facade.

    Returns
    -------
    pl.DataFrame
        ``EpochTime`` plus one column per unique channel. Header-only exports
        give an empty frame with those columns.
    """
    datastore = _datastore(config, log)
    converter = PolarsConverter(infer_schema_length=infer_schema_length)

    async def _export() -> pl.DataFrame:
        process = await datastore.export_data(
            channel_requests, min_time=min_time, max_time=max_time, format="csv"
        )
        return await converter.export_to_polars(process)

    return asyncio.run(_export())
