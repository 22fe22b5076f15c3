"""
Command-line interface for bodytrack-datastore.

This module provides a command-line interface for working with a BodyTrack
Datastore installation: checking the installation, inspecting channel specs,
fetching tiles, exporting and importing data, and deleting devices. Every
command goes through the same validation as the Python API, so invalid user
IDs, device names and channel names are rejected before any datastore
executable runs.

The CLI supports these commands:
- check-config: Verify the installation directories and executables
- info: Print channel specs for a user, device or channel
- tile: Print a single tile
- tiles: Stream tiles for several channels
- export: Stream a CSV or JSON export of several channels
- import: Import a JSON file for a device
- delete-device: Delete all data for a device

Examples
--------
Check an installation:
    $ bodytrack-datastore --bin-dir ./bin --data-dir ./dev.kvs check-config

Get channel specs for a device:
    $ bodytrack-datastore --config datastore.yaml info 1 --device speck

Export two channels to CSV:
    $ bodytrack-datastore --config datastore.yaml export \\
        '[{"user_id": 1, "device_name": "speck", "channel_names": ["particles", "humidity"]}]' \\
        --min-time 1384355116 --output speck.csv

Notes
-----
Installation paths come from a YAML file (``--config``), from
``--bin-dir``/``--data-dir``, or both, with the flags taking precedence.
Channel requests are given as a JSON list of objects.
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any, BinaryIO, Optional

from .data_access import (
    BodyTrackDatastore,
    ClientValidationError,
    DatastoreConfig,
    ServerError,
    StreamingProcess,
    load_config,
)


def check_config_command(args) -> None:
    """
    Verify that the configured installation is usable.

    Prints ``Config OK`` and returns if both directories exist and the bin
    directory contains every datastore executable.

    Raises
    ------
    SystemExit
        With code 1 if the config is missing or the installation is broken.
        The reason is logged.
    """
    try:
        datastore = BodyTrackDatastore(_resolve_config(args))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not datastore.is_config_valid():
        print("Error: invalid datastore installation", file=sys.stderr)
        sys.exit(1)
    print("Config OK")


def info_command(args) -> None:
    """
    Print the channel specs for a user, optionally narrowed to a device or channel.

    Parameters
    ----------
    args : argparse.Namespace
        Command-line arguments containing:
        - user_id : str
        - device : str, optional
        - channel : str, optional
            Only used when ``device`` is given
        - min_time, max_time : str, optional
        - find_most_recent : bool
        - output : str, optional
            File to write the JSON to instead of stdout

    Raises
    ------
    SystemExit
        If validation or the datastore call fails, exits with code 1

    Examples
    --------
        $ bodytrack-datastore info 1
        $ bodytrack-datastore info 1 --device speck --channel particles --output info.json
    """
    try:
        datastore = BodyTrackDatastore(_resolve_config(args))
        info = asyncio.run(
            datastore.get_info(
                args.user_id,
                device_name=args.device,
                channel_name=args.channel,
                min_time=args.min_time,
                max_time=args.max_time,
                find_most_recent_sample=args.find_most_recent,
            )
        )
        _emit_json(info, args.output, "Info")
    except Exception as e:
        _report_error(e)
        sys.exit(1)


def tile_command(args) -> None:
    """
    Print a single tile as JSON.

    Raises
    ------
    SystemExit
        If validation or the datastore call fails, exits with code 1

    Examples
    --------
        $ bodytrack-datastore tile 1 speck particles 10 2639
    """
    try:
        datastore = BodyTrackDatastore(_resolve_config(args))
        tile = asyncio.run(
            datastore.get_tile(
                args.user_id, args.device, args.channel, args.level, args.offset
            )
        )
        _emit_json(tile, args.output, "Tile")
    except Exception as e:
        _report_error(e)
        sys.exit(1)


def tiles_command(args) -> None:
    """
    Stream tiles for several channels at one level and offset.

    Parameters
    ----------
    args : argparse.Namespace
        Command-line arguments containing:
        - channel_requests : str
            JSON list of channel requests
        - level, offset : str
        - output : str, optional
            File to stream to instead of stdout

    Raises
    ------
    SystemExit
        If validation fails or ``gettile`` exits non-zero, exits with code 1
    """
    try:
        datastore = BodyTrackDatastore(_resolve_config(args))
        requests = _parse_channel_requests(args.channel_requests)

        async def _run() -> None:
            process = await datastore.get_tiles(requests, args.level, args.offset)
            await _stream_to_output(process, args.output)

        asyncio.run(_run())
    except Exception as e:
        _report_error(e)
        sys.exit(1)


def export_command(args) -> None:
    """
    Stream an export of several channels as CSV or JSON.

    Parameters
    ----------
    args : argparse.Namespace
        Command-line arguments containing:
        - channel_requests : str
            JSON list of channel requests
        - min_time, max_time : str, optional
        - format : str
            ``csv`` (default) or ``json``
        - output : str, optional
            File to stream to instead of stdout

    Raises
    ------
    SystemExit
        If validation fails or ``export`` exits non-zero, exits with code 1

    Examples
    --------
        $ bodytrack-datastore export '[{"user_id": 1, "device_name": "speck", "channel_names": ["particles"]}]'
        $ bodytrack-datastore export '[...]' --format json --min-time 1384355116 --max-time 1384355157
    """
    try:
        datastore = BodyTrackDatastore(_resolve_config(args))
        requests = _parse_channel_requests(args.channel_requests)

        async def _run() -> None:
            process = await datastore.export_data(
                requests,
                min_time=args.min_time,
                max_time=args.max_time,
                format=args.format,
            )
            await _stream_to_output(process, args.output)

        asyncio.run(_run())
    except Exception as e:
        _report_error(e)
        sys.exit(1)


def import_command(args) -> None:
    """
    Import a JSON file (or ``-`` for stdin) for a device and print the response.

    Raises
    ------
    SystemExit
        If the file cannot be read, validation fails, or the import does not
        succeed, exits with code 1
    """
    try:
        datastore = BodyTrackDatastore(_resolve_config(args))
        data = _load_json_input(args.json_file)
        response = asyncio.run(datastore.import_json(args.user_id, args.device, data))
        _emit_json(response, None, "Import response")
    except Exception as e:
        _report_error(e)
        sys.exit(1)


def delete_device_command(args) -> None:
    """Delete all data for a device."""
    try:
        datastore = BodyTrackDatastore(_resolve_config(args))
        asyncio.run(datastore.delete_device(args.user_id, args.device))
        print(f"Deleted device {args.device} for user {args.user_id}")
    except Exception as e:
        _report_error(e)
        sys.exit(1)


def _resolve_config(args) -> DatastoreConfig:
    """
    Build the installation config from ``--config`` and the directory flags.

    Flags override values from the YAML file.

    Raises
    ------
    ValueError
        If neither source provides both directories.
    """
    bin_dir = getattr(args, "bin_dir", None)
    data_dir = getattr(args, "data_dir", None)

    config_path = getattr(args, "config", None)
    if config_path:
        config = load_config(config_path)
        overrides = {}
        if bin_dir:
            overrides["bin_dir"] = bin_dir
        if data_dir:
            overrides["data_dir"] = data_dir
        return dataclasses.replace(config, **overrides) if overrides else config

    return DatastoreConfig.from_mapping({"bin_dir": bin_dir, "data_dir": data_dir})


def _parse_channel_requests(channel_requests_str: str) -> Any:
    """
    Parse channel requests from a JSON command-line string.

    Examples
    --------
    >>> _parse_channel_requests('[{"user_id": 1, "device_name": "speck", "channel_names": ["particles"]}]')
    [{'user_id': 1, 'device_name': 'speck', 'channel_names': ['particles']}]

    Raises
    ------
    ValueError
        If the string is not valid JSON.
    """
    try:
        return json.loads(channel_requests_str)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid channel requests JSON: {channel_requests_str}") from e


def _load_json_input(path: str) -> Any:
    if path == "-":
        return json.load(sys.stdin)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _emit_json(data: Any, output: Optional[str], label: str) -> None:
    if output:
        with open(output, "w") as f:
            json.dump(data, f, indent=2)
        print(f"{label} saved to {output}")
    else:
        print(json.dumps(data, indent=2))


async def _copy_stream(reader: asyncio.StreamReader, out: BinaryIO) -> None:
    while True:
        chunk = await reader.read(65536)
        if not chunk:
            break
        out.write(chunk)
    out.flush()


async def _stream_to_output(process: StreamingProcess, output: Optional[str]) -> None:
    """
    Copy a streaming process's stdout to a file or to stdout.

    Raises
    ------
    RuntimeError
        If the process exits non-zero. Its stderr is included in the message.
    """
    if output:
        with open(output, "wb") as out:
            await _copy_stream(process.stdout, out)
    else:
        await _copy_stream(process.stdout, sys.stdout.buffer)

    returncode = await process.wait()
    if returncode != 0:
        stderr = await process.stderr_output()
        message = stderr.decode("utf-8", errors="replace").strip()
        raise RuntimeError(f"datastore process exited with status {returncode}: {message}")


def _report_error(error: Exception) -> None:
    print(f"Error: {error}", file=sys.stderr)
    if isinstance(error, ClientValidationError):
        print(json.dumps(error.fields), file=sys.stderr)
    elif isinstance(error, ServerError) and error.context is not None:
        logging.getLogger(__name__).debug("Server error context: %r", error.context)


def create_parser() -> argparse.ArgumentParser:
    """
    Create the command-line argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser with all subcommands and options

    Examples
    --------
    >>> parser = create_parser()
    >>> args = parser.parse_args(['--data-dir', 'dev.kvs', '--bin-dir', 'bin', 'info', '1'])
    >>> args.command
    'info'
    """
    parser = argparse.ArgumentParser(
        description="bodytrack-datastore: validated access to a BodyTrack Datastore",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", "-c", help="YAML file with bin_dir and data_dir")
    parser.add_argument("--bin-dir", help="Directory containing the datastore executables")
    parser.add_argument("--data-dir", help="The datastore's data directory")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Check-config command
    check_parser = subparsers.add_parser(
        "check-config", help="Verify the datastore installation"
    )
    check_parser.set_defaults(func=check_config_command)

    # Info command
    info_parser = subparsers.add_parser("info", help="Get channel specs")
    info_parser.add_argument("user_id", help="User ID")
    info_parser.add_argument("--device", help="Device name")
    info_parser.add_argument("--channel", help="Channel name (requires --device)")
    info_parser.add_argument("--min-time", help="Minimum time (epoch seconds)")
    info_parser.add_argument("--max-time", help="Maximum time (epoch seconds)")
    info_parser.add_argument(
        "--find-most-recent",
        action="store_true",
        help="Find the most recent sample (ignored with --min-time/--max-time)",
    )
    info_parser.add_argument("--output", "-o", help="Output file for info")
    info_parser.set_defaults(func=info_command)

    # Tile command
    tile_parser = subparsers.add_parser("tile", help="Get a single tile")
    tile_parser.add_argument("user_id", help="User ID")
    tile_parser.add_argument("device", help="Device name")
    tile_parser.add_argument("channel", help="Channel name")
    tile_parser.add_argument("level", help="Tile level")
    tile_parser.add_argument("offset", help="Tile offset")
    tile_parser.add_argument("--output", "-o", help="Output file for the tile")
    tile_parser.set_defaults(func=tile_command)

    # Tiles command
    tiles_parser = subparsers.add_parser("tiles", help="Stream tiles for several channels")
    tiles_parser.add_argument("channel_requests", help="Channel requests as a JSON list")
    tiles_parser.add_argument("level", help="Tile level")
    tiles_parser.add_argument("offset", help="Tile offset")
    tiles_parser.add_argument("--output", "-o", help="Output file")
    tiles_parser.set_defaults(func=tiles_command)

    # Export command
    export_parser = subparsers.add_parser("export", help="Export channels as CSV or JSON")
    export_parser.add_argument("channel_requests", help="Channel requests as a JSON list")
    export_parser.add_argument("--min-time", help="Minimum time (epoch seconds)")
    export_parser.add_argument("--max-time", help="Maximum time (epoch seconds)")
    export_parser.add_argument(
        "--format", default="csv", choices=["csv", "json"], help="Export format"
    )
    export_parser.add_argument("--output", "-o", help="Output file")
    export_parser.set_defaults(func=export_command)

    # Import command
    import_parser = subparsers.add_parser("import", help="Import a JSON file for a device")
    import_parser.add_argument("user_id", help="User ID")
    import_parser.add_argument("device", help="Device name")
    import_parser.add_argument("json_file", help="JSON file to import, or - for stdin")
    import_parser.set_defaults(func=import_command)

    # Delete-device command
    delete_parser = subparsers.add_parser(
        "delete-device", help="Delete all data for a device"
    )
    delete_parser.add_argument("user_id", help="User ID")
    delete_parser.add_argument("device", help="Device name")
    delete_parser.set_defaults(func=delete_device_command)

    return parser


def main(argv: Optional[list] = None) -> None:
    """
    Main CLI entry point.

    Parses command-line arguments, configures logging, and dispatches to the
    appropriate command function. Provides help message if no command is
    specified.

    Raises
    ------
    SystemExit
        Exits with code 1 if no command is provided or the command fails.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
