"""
Data Access Module for bodytrack-datastore.

This module provides validated, asynchronous access to a BodyTrack Datastore
installation. The datastore itself is a suite of external executables
(``import``, ``export``, ``gettile``, ``info``); this module validates
parameters, runs those executables without a shell, and shapes their output.

The module is organized into several components:

Core Components
---------------
BodyTrackDatastore : Primary async facade
    Info, tile, multi-tile, export, import and device deletion

DatastoreConfig : Installation paths
    ``bin_dir`` and ``data_dir``, loadable from YAML

DatastoreCommandRunner : Subprocess plumbing
    argv construction plus buffered and streaming execution

StreamingProcess : A running export or multi-tile process
    stdout for the caller, stderr drained in the background

Processing Components
---------------------
PolarsConverter : Output to DataFrame conversion
    Tiles and CSV exports as Polars DataFrames

TempFile : Exclusive temp files
    Used to hand import payloads to the ``import`` executable

Convenience Functions
---------------------
get_datastore_info, scan_tile, scan_export : Blocking wrappers
is_valid_key : Device/channel name validation

Examples
--------
>>> from bodytrack_datastore.data_access import BodyTrackDatastore
>>>
>>> datastore = BodyTrackDatastore({"bin_dir": "./bin", "data_dir": "./dev.kvs"})
>>> datastore.is_config_valid()
True
>>> response = await datastore.import_json(1, "speck", payload)
>>> info = await datastore.get_info(1, device_name="speck")
"""

from .commands import DatastoreCommandRunner, StreamingProcess
from .config import (
    DATASTORE_EXECUTABLES,
    DatastoreConfig,
    load_config,
    validate_installation,
)
from .datastore import BodyTrackDatastore, is_successful_import
from .datastore_scanner import get_datastore_info, scan_export, scan_tile
from .errors import (
    ClientValidationError,
    DatastoreError,
    ServerError,
    create_jsend_client_error,
    create_jsend_client_validation_error,
    create_jsend_server_error,
    create_jsend_success,
)
from .polars_converter import PolarsConverter
from .temp_file import TempFile
from .validation import is_valid_key, validate_channel_requests

__all__ = [
    # Main public API
    "BodyTrackDatastore",
    "DatastoreConfig",
    "load_config",
    "validate_installation",
    "is_valid_key",
    "validate_channel_requests",
    "get_datastore_info",
    "scan_tile",
    "scan_export",
    # Errors
    "DatastoreError",
    "ClientValidationError",
    "ServerError",
    "create_jsend_success",
    "create_jsend_client_error",
    "create_jsend_client_validation_error",
    "create_jsend_server_error",
    # Advanced components for custom workflows
    "DatastoreCommandRunner",
    "StreamingProcess",
    "PolarsConverter",
    "TempFile",
    "DATASTORE_EXECUTABLES",
    "is_successful_import",
]
