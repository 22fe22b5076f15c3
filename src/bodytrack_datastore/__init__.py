"""
bodytrack-datastore: async Python access to the BodyTrack Datastore.

The BodyTrack Datastore is a suite of native executables (``import``,
``export``, ``gettile``, ``info``) that store and tile time-series data. This
package is a thin front end to them: it validates parameters, runs the
executables as subprocesses without a shell, and turns their output into
Python objects or Polars DataFrames.

Key Features
------------
- Strict validation of user IDs, device names and channel names before any
  process is started
- asyncio-based execution, buffered for JSON results and streaming for
  exports and multi-channel tiles
- JSend-shaped errors for client validation and server failures
- YAML configuration and a ``bodytrack-datastore`` command-line tool

Basic Usage
-----------
>>> import asyncio
>>> import bodytrack_datastore as bt
>>>
>>> datastore = bt.BodyTrackDatastore(
...     {"bin_dir": "/opt/datastore/bin", "data_dir": "/var/datastore/dev.kvs"}
... )
>>> asyncio.run(datastore.import_json(1, "speck", payload))
>>> info = asyncio.run(datastore.get_info(1, device_name="speck"))

Blocking helpers
----------------
>>> df = bt.scan_export(
...     datastore,
...     [{"user_id": 1, "device_name": "speck", "channel_names": ["particles"]}],
... )
"""

from .data_access import (
    BodyTrackDatastore,
    ClientValidationError,
    DatastoreConfig,
    DatastoreError,
    ServerError,
    get_datastore_info,
    is_valid_key,
    load_config,
    scan_export,
    scan_tile,
)

__version__ = "0.1.0"
__all__ = [
    "BodyTrackDatastore",
    "DatastoreConfig",
    "load_config",
    "is_valid_key",
    "get_datastore_info",
    "scan_tile",
    "scan_export",
    "DatastoreError",
    "ClientValidationError",
    "ServerError",
]
