#!/usr/bin/env python3
"""
bodytrack-datastore Example: Reading and Writing Sensor Data

This example demonstrates how to use bodytrack-datastore against a local
BodyTrack Datastore installation.

Features demonstrated:
- Checking an installation
- Importing JSON data for a device
- Inspecting channel specs
- Fetching tiles as Polars DataFrames
- Streaming a multi-channel CSV export into Polars

Set DATASTORE_BIN_DIR and DATASTORE_DATA_DIR to point at your installation
before running it.
"""

import asyncio
import os
import sys

import polars as pl

from bodytrack_datastore import (
    BodyTrackDatastore,
    ClientValidationError,
    DatastoreConfig,
    ServerError,
    get_datastore_info,
    scan_export,
    scan_tile,
)

USER_ID = 1
DEVICE = "temp_monitor"
CHANNELS = ["temperature", "humidity"]


def make_config():
    return DatastoreConfig(
        bin_dir=os.environ.get("DATASTORE_BIN_DIR", "./datastore/bin"),
        data_dir=os.environ.get("DATASTORE_DATA_DIR", "./datastore/dev.kvs"),
    )


def import_example(datastore):
    """Import a small batch of samples."""
    print("=" * 60)
    print("Import Example")
    print("=" * 60)

    payload = {
        "channel_names": CHANNELS,
        "data": [
            [1380276279.1, 19.0, 59.0],
            [1380276290.2, 19.2, 58.0],
            [1380276301.3, 19.5, 57.5],
        ],
    }

    try:
        response = asyncio.run(datastore.import_json(USER_ID, DEVICE, payload))
        print(f"Imported {response['successful_records']} records")
    except ServerError as e:
        print(f"Import failed: {e} ({e.context})")


def info_example(datastore):
    """Show the channel specs for the device."""
    print("\n" + "=" * 60)
    print("Info Example")
    print("=" * 60)

    info = get_datastore_info(datastore, USER_ID, device_name=DEVICE)
    for channel, spec in info.get("channel_specs", {}).items():
        bounds = spec.get("channel_bounds", {})
        print(f"{channel}: {bounds.get('min_time')} .. {bounds.get('max_time')}")


def tile_example(datastore):
    """Fetch one tile and summarise it with Polars."""
    print("\n" + "=" * 60)
    print("Tile Example")
    print("=" * 60)

    df = scan_tile(datastore, USER_ID, DEVICE, "temperature", 4, 5180)
    if df.is_empty():
        print("No data in this tile")
        return

    print(df.head())
    print(df.select(pl.col("mean").min().alias("min"), pl.col("mean").max().alias("max")))


def export_example(datastore):
    """Export both channels to a DataFrame."""
    print("\n" + "=" * 60)
    print("Export Example")
    print("=" * 60)

    requests = [{"user_id": USER_ID, "device_name": DEVICE, "channel_names": CHANNELS}]
    df = scan_export(datastore, requests, min_time=1380276279, max_time=1380276302)
    print(f"Exported columns: {df.columns}")
    print(df)


def validation_example(datastore):
    """Invalid names are rejected before any executable runs."""
    print("\n" + "=" * 60)
    print("Validation Example")
    print("=" * 60)

    try:
        asyncio.run(datastore.get_tile(USER_ID, DEVICE, "../secret", 4, 5180))
    except ClientValidationError as e:
        print(f"Rejected: {e.to_jsend()}")


def main():
    """Run all examples."""
    print("bodytrack-datastore Examples")
    print("============================")

    datastore = BodyTrackDatastore(make_config())
    if not datastore.is_config_valid():
        print("The datastore installation is not usable; check the log above.")
        sys.exit(1)

    import_example(datastore)
    info_example(datastore)
    tile_example(datastore)
    export_example(datastore)
    validation_example(datastore)

    print("\n" + "=" * 60)
    print("Examples Complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
