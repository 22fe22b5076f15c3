"""
Async facade over the BodyTrack Datastore executables.

:class:`BodyTrackDatastore` is the main entry point of the package. It
validates caller parameters, builds the argv each datastore executable
expects, runs it, and turns its stdout and exit status into results or
exceptions. The datastore itself (tiling, storage, indexing) lives entirely in
the external executables.

Operations
----------
get_info : Channel specs for a user, device or channel (buffered)
get_tile : A single tile for one channel (buffered)
get_tiles : Tiles for many channels (streamed)
export_data : CSV or JSON export of many channels (streamed)
import_json : Import a JSON payload for a device (buffered)
delete_device : Remove a device's data directory

Examples
--------
>>> import asyncio
>>> from bodytrack_datastore import BodyTrackDatastore
>>>
>>> datastore = BodyTrackDatastore({"bin_dir": "/opt/datastore/bin",
...                                 "data_dir": "/var/datastore/dev.kvs"})
>>> info = asyncio.run(datastore.get_info(1, device_name="speck"))
>>> tile = asyncio.run(datastore.get_tile(1, "speck", "particles", 10, 2639))

Streaming an export:

>>> async def export():
...     process = await datastore.export_data(
...         [{"user_id": 1, "device_name": "speck", "channel_names": ["particles"]}],
...         min_time=1384355116,
...     )
...     async for line in process.stdout:
...         print(line.decode(), end="")
...     return await process.wait()

Notes
-----
Validation failures raise :class:`ClientValidationError` before any process
is started. Everything else raises :class:`ServerError`. Nothing is retried.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .commands import DatastoreCommandRunner, StreamingProcess
from .config import DatastoreConfig, validate_installation
from .errors import ClientValidationError, ServerError
from .temp_file import TempFile
from .validation import (
    format_number,
    is_int,
    is_numeric,
    is_valid_key,
    is_valid_user_id,
    to_int,
    validate_channel_requests,
)

logger = logging.getLogger(__name__)

IMPORT_TEMP_FILE_PREFIX = "bodytrack_datastore_json_data_to_import_"
EXPORT_FORMATS = ("csv", "json")


def _is_count(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_successful_import(response: Any) -> bool:
    """
    Decide whether a parsed ``import`` response means the import succeeded.

    The response must report zero failed records and at least one successful
    record. A batch with zero successful and zero failed records is treated
    as a failure.
    """
    return (
        isinstance(response, Mapping)
        and _is_count(response.get("failed_records"))
        and response["failed_records"] == 0
        and _is_count(response.get("successful_records"))
        and response["successful_records"] > 0
    )


class BodyTrackDatastore:
    """
    Validating, asynchronous front end to a BodyTrack Datastore installation.

    Parameters
    ----------
    config : DatastoreConfig or mapping
        Paths to the installation. A mapping may use ``bin_dir``/``data_dir``
        or ``binDir``/``dataDir``.
    log : logging.Logger, optional
        Logger used by this instance and its helpers. Defaults to the module
        logger.

    Raises
    ------
    ValueError
        If ``config`` is None or lacks either directory.

    Attributes
    ----------
    config : DatastoreConfig
        The installation paths.
    runner : DatastoreCommandRunner
        Runs the datastore executables.
    """

    def __init__(
        self,
        config: DatastoreConfig | Mapping[str, Any],
        log: logging.Logger | None = None,
    ) -> None:
        if not isinstance(config, DatastoreConfig):
            config = DatastoreConfig.from_mapping(config)
        self.config = config
        self.log = log or logger
        self.runner = DatastoreCommandRunner(config, log=self.log)

    @staticmethod
    def is_valid_key(key: Any) -> bool:
        """Return True if ``key`` is a valid device or channel name."""
        return is_valid_key(key)

    def is_config_valid(self) -> bool:
        """
        Check that the configured directories and executables exist.

        Returns False (and logs why) for a missing or broken installation.
        Never raises.
        """
        return validate_installation(self.config, self.log)

    async def get_info(
        self,
        user_id: Any,
        device_name: str | None = None,
        channel_name: str | None = None,
        min_time: Any = None,
        max_time: Any = None,
        find_most_recent_sample: bool = False,
    ) -> dict[str, Any]:
        """
        Get the ``channel_specs`` for a user, optionally narrowed.

        Produces specs for every device and channel of the user, for every
        channel of one device, or for one channel. Results may be filtered
        to a time range.

        Parameters
        ----------
        user_id : int or str
            Required. Must be a positive integer.
        device_name : str, optional
            Restrict to this device.
        channel_name : str, optional
            Restrict to this channel. Ignored unless ``device_name`` is
            given.
        min_time, max_time : float, optional
            Time range in epoch seconds.
        find_most_recent_sample : bool, default False
            Ask the datastore to compute the most recent sample. Ignored when
            either time bound is set.

        Returns
        -------
        dict
            The parsed ``info`` output, e.g. ``{"channel_specs": {...}}``.

        Raises
        ------
        ClientValidationError
            Checked in this order: user ID missing, user ID invalid, device
            name invalid, channel name invalid, min time invalid, max time
            invalid.
        ServerError
            If ``info`` fails or prints something that is not JSON.
        """
        if user_id is None:
            raise ClientValidationError.for_field("user_id", "User ID is required")
        if not is_valid_user_id(user_id):
            raise ClientValidationError.for_field(
                "user_id", "User ID must be a positive integer"
            )

        prefix = None
        if device_name is not None:
            if not is_valid_key(device_name):
                raise ClientValidationError.for_field("device_name", "Invalid device name")
            prefix = device_name
            if channel_name is not None:
                if not is_valid_key(channel_name):
                    raise ClientValidationError.for_field(
                        "channel_name", "Invalid channel name"
                    )
                prefix = f"{device_name}.{channel_name}"

        if min_time is not None and not is_numeric(min_time):
            raise ClientValidationError.for_field("min_time", "Invalid min time")
        if max_time is not None and not is_numeric(max_time):
            raise ClientValidationError.for_field("max_time", "Invalid max time")

        parameters: list[Any] = ["-r", to_int(user_id)]
        if find_most_recent_sample and min_time is None and max_time is None:
            parameters.append("--find-most-recent")
        if prefix is not None:
            parameters.extend(["--prefix", prefix])
        if min_time is not None:
            parameters.extend(["--min-time", format_number(min_time)])
        if max_time is not None:
            parameters.extend(["--max-time", format_number(max_time)])

        stdout = await self.runner.run("info", parameters)
        return self._parse_json(stdout, "info")

    async def get_tile(
        self,
        user_id: Any,
        device_name: str,
        channel_name: str,
        level: Any,
        offset: Any,
    ) -> dict[str, Any]:
        """
        Get one tile for a channel.

        Parameters
        ----------
        user_id : int or str
            Positive integer user ID.
        device_name, channel_name : str
            The channel to read.
        level, offset : int
            Tile zoom level and position. Level may be negative.

        Returns
        -------
        dict
            The parsed tile. A valid request for a device, channel or region
            without data returns ``{}``.

        Raises
        ------
        ClientValidationError
            Fields are checked in the order user_id, device_name,
            channel_name, level, offset; only the first failure is reported.
        ServerError
            If ``gettile`` fails or prints something that is not JSON.
        """
        if not is_valid_user_id(user_id):
            raise ClientValidationError.for_field(
                "user_id", "User ID must be a positive integer"
            )
        if not is_valid_key(device_name):
            raise ClientValidationError.for_field("device_name", "Invalid device name")
        if not is_valid_key(channel_name):
            raise ClientValidationError.for_field("channel_name", "Invalid channel name")
        if not is_int(level):
            raise ClientValidationError.for_field("level", "Level must be an integer")
        if not is_int(offset):
            raise ClientValidationError.for_field("offset", "Offset must be an integer")

        parameters = [
            to_int(user_id),
            f"{device_name}.{channel_name}",
            to_int(level),
            to_int(offset),
        ]
        stdout = await self.runner.run("gettile", parameters)
        return self._parse_json(stdout, "gettile")

    async def get_tiles(
        self, channel_requests: list[Mapping[str, Any]], level: Any, offset: Any
    ) -> StreamingProcess:
        """
        Start a multi-channel ``gettile`` and return the running process.

        Duplicate channels are requested once, in first-seen order, so the
        output has one column per unique channel. Valid but unknown users,
        devices or channels are not errors; they simply have no data.

        Parameters
        ----------
        channel_requests : list of dict
            See :func:`validate_channel_requests`.
        level, offset : int
            Tile zoom level and position.

        Returns
        -------
        StreamingProcess
            The live process. Drain ``stdout`` and await ``wait()``.
        """
        locators = validate_channel_requests(channel_requests)
        if not is_int(level):
            raise ClientValidationError.for_field("level", "Level must be an integer")
        if not is_int(offset):
            raise ClientValidationError.for_field("offset", "Offset must be an integer")

        parameters = [
            self.config.data_dir,
            "--multi",
            ",".join(locators),
            to_int(level),
            to_int(offset),
        ]
        return await self.runner.spawn("gettile", parameters)

    async def export_data(
        self,
        channel_requests: list[Mapping[str, Any]],
        min_time: Any = None,
        max_time: Any = None,
        format: Any = "csv",
    ) -> StreamingProcess:
        """
        Start an export of one or more channels and return the running process.

        Parameters
        ----------
        channel_requests : list of dict
            See :func:`validate_channel_requests`. Duplicates are dropped.
        min_time, max_time : float, optional
            Time range in epoch seconds. A min time greater than the max time
            is not an error; the export then contains only the header.
        format : str, default "csv"
            ``"csv"`` or ``"json"`` (case-insensitive). None means CSV.

        Returns
        -------
        StreamingProcess
            The live ``export`` process.

        Raises
        ------
        ClientValidationError
            For invalid channel requests, format, min time or max time.
        ServerError
            If ``export`` cannot be started.
        """
        locators = validate_channel_requests(channel_requests)

        if format is None:
            format = "csv"
        if not isinstance(format, str) or format.strip().lower() not in EXPORT_FORMATS:
            raise ClientValidationError.for_field("format", "Format must be csv or json")
        export_format = format.strip().lower()

        parameters: list[Any] = [f"--{export_format}"]
        if min_time is not None:
            if not is_numeric(min_time):
                raise ClientValidationError.for_field("min_time", "Invalid min time")
            parameters.extend(["--start", format_number(min_time)])
        if max_time is not None:
            if not is_numeric(max_time):
                raise ClientValidationError.for_field("max_time", "Invalid max time")
            parameters.extend(["--end", format_number(max_time)])

        parameters.append(self.config.data_dir)
        parameters.extend(locators)
        return await self.runner.spawn("export", parameters)

    async def import_json(self, user_id: Any, device_name: str, data: Any) -> dict[str, Any]:
        """
        Import a JSON payload for a device.

        The payload is serialised to an exclusively created temp file which
        is handed to ``import`` and removed afterwards, whether or not the
        import succeeded.

        Parameters
        ----------
        user_id : int or str
            Positive integer user ID.
        device_name : str
            Device to import into.
        data : Any
            JSON-serialisable payload. Must not be None or contain NaN or
            infinite floats.

        Returns
        -------
        dict
            The parsed ``import`` response, containing at least
            ``successful_records`` and ``failed_records``.

        Raises
        ------
        ClientValidationError
            For an invalid user ID or device name, or data that is None or
            cannot be written as standard JSON.
        ServerError
            If the temp file cannot be written, ``import`` fails, or the
            response does not report at least one successful and zero failed
            records. In the last case ``context`` is the parsed response, or
            None when stdout was not JSON.
        """
        if not is_valid_user_id(user_id):
            raise ClientValidationError.for_field(
                "user_id", "User ID must be a positive integer"
            )
        if not is_valid_key(device_name):
            raise ClientValidationError.for_field("device_name", "Invalid device name")
        if data is None:
            raise ClientValidationError.for_field("data", "Data cannot be None")

        try:
            payload = json.dumps(data, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ClientValidationError.for_field(
                "data", f"Data is not JSON serializable: {e}"
            ) from e

        temp_file = await asyncio.to_thread(self._write_import_file, payload)
        try:
            stdout = await self.runner.run(
                "import",
                [to_int(user_id), device_name, "--format", "json", temp_file.path],
            )
        finally:
            self._cleanup_temp_file(temp_file)

        try:
            response = json.loads(stdout)
        except json.JSONDecodeError as e:
            self.log.error("Error parsing datastore import response: %s", e)
            response = None

        if is_successful_import(response):
            return response

        raise ServerError("Datastore import did not succeed", response)

    async def delete_device(self, user_id: Any, device_name: str) -> None:
        """
        Delete all data for a device.

        Removes ``<data_dir>/<user_id>/<device_name>`` recursively. Deleting
        a device that does not exist is a no-op.

        Raises
        ------
        ClientValidationError
            For an invalid user ID or device name.
        ServerError
            If the directory cannot be removed.
        """
        if not is_valid_user_id(user_id):
            raise ClientValidationError.for_field(
                "user_id", "User ID must be a positive integer"
            )
        if not is_valid_key(device_name):
            raise ClientValidationError.for_field("device_name", "Invalid device name")

        # valid keys contain no separators and are never "." or "..", so this
        # path cannot leave data_dir
        device_path = self.config.data_dir / str(to_int(user_id)) / device_name

        self.log.debug("Attempting to delete device at path [%s]", device_path)
        try:
            await asyncio.to_thread(self._remove_tree, device_path)
        except OSError as e:
            self.log.error("Failed to delete device directory [%s]", device_path)
            raise ServerError("Failed to delete device", e) from e

    def _parse_json(self, stdout: str, command: str) -> Any:
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ServerError(f"Failed to parse {command} output as JSON", stdout) from e

    def _write_import_file(self, payload: str) -> TempFile:
        try:
            temp_file = TempFile.create(
                prefix=IMPORT_TEMP_FILE_PREFIX, suffix=".json", log=self.log
            )
        except OSError as e:
            raise ServerError(
                "Import failed due to an error trying to open the temp file", e
            ) from e

        try:
            temp_file.write_text(payload)
        except OSError as e:
            self.log.error("Error trying to write to the temp file [%s]: %s", temp_file.path, e)
            self._cleanup_temp_file(temp_file)
            raise ServerError("Failed to write to temp file", e) from e

        return temp_file

    def _cleanup_temp_file(self, temp_file: TempFile) -> None:
        try:
            temp_file.cleanup()
        except OSError as e:
            self.log.error("Error trying to cleanup the temp file [%s]: %s", temp_file.path, e)

    @staticmethod
    def _remove_tree(path: Path) -> None:
        if path.is_symlink():
            path.unlink()
        elif path.exists():
            shutil.rmtree(path)
