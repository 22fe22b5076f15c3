"""
Configuration for a BodyTrack Datastore installation.

A datastore installation is described by two directories:

- ``bin_dir`` holds the datastore executables (``export``, ``gettile``,
  ``import``, ``info``).
- ``data_dir`` is the datastore's data directory (typically named
  ``dev.kvs``).

A config missing either field is a construction error and raises immediately.
A config that points at a missing or broken installation is not: it can be
checked at runtime with :func:`validate_installation`, which logs the problem
and returns False.

Configs can be built in code, from a mapping, or from a YAML file:

>>> config = DatastoreConfig(bin_dir="/opt/datastore/bin", data_dir="/var/datastore/dev.kvs")
>>> config = DatastoreConfig.from_mapping({"binDir": "...", "dataDir": "..."})
>>> config = load_config("datastore.yaml")

with ``datastore.yaml`` looking like::

    datastore:
      bin_dir: /opt/datastore/bin
      data_dir: /var/datastore/dev.kvs
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DATASTORE_EXECUTABLES = ("export", "gettile", "import", "info")


@dataclass(frozen=True)
class DatastoreConfig:
    """
    Paths to a datastore installation.

    Parameters
    ----------
    bin_dir : str or Path
        Directory containing the datastore executables.
    data_dir : str or Path
        The datastore's data directory.

    Raises
    ------
    ValueError
        If either path is None or empty.
    """

    bin_dir: Path
    data_dir: Path

    def __post_init__(self) -> None:
        for name in ("bin_dir", "data_dir"):
            value = getattr(self, name)
            if value is None or str(value) == "":
                raise ValueError(f"config.{name} cannot be None or empty")
            # frozen dataclass, so normalise through object.__setattr__
            object.__setattr__(self, name, Path(value))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> DatastoreConfig:
        """
        Build a config from a mapping.

        Accepts ``bin_dir``/``data_dir`` as well as the camelCase
        ``binDir``/``dataDir`` used by existing deployments.

        Raises
        ------
        ValueError
            If the mapping is None or lacks either directory.
        """
        if mapping is None:
            raise ValueError("config cannot be None")

        bin_dir = mapping.get("bin_dir", mapping.get("binDir"))
        data_dir = mapping.get("data_dir", mapping.get("dataDir"))
        if bin_dir is None:
            raise ValueError("config.bin_dir cannot be None")
        if data_dir is None:
            raise ValueError("config.data_dir cannot be None")
        return cls(bin_dir=bin_dir, data_dir=data_dir)

    def executable_path(self, name: str) -> Path:
        return self.bin_dir / name


def load_config(path: str | Path) -> DatastoreConfig:
    """
    Load a :class:`DatastoreConfig` from a YAML file.

    The directories may sit at the top level of the file or under a
    ``datastore:`` section.

    Parameters
    ----------
    path : str or Path
        Path to the YAML file.

    Returns
    -------
    DatastoreConfig
        The loaded config.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file does not contain both directories.
    """
    config_path = Path(path)
    with open(config_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, Mapping):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    section = raw.get("datastore", raw)
    if not isinstance(section, Mapping):
        raise ValueError(f"'datastore' section in {config_path} must be a mapping")
    return DatastoreConfig.from_mapping(section)


def validate_installation(
    config: DatastoreConfig, log: logging.Logger | None = None
) -> bool:
    """
    Check that a config points at a usable datastore installation.

    Returns True if both directories exist and are directories, and if
    ``bin_dir`` contains every executable in :data:`DATASTORE_EXECUTABLES`
    as a regular file. The first problem found is logged at ERROR level.
    Never raises.

    Parameters
    ----------
    config : DatastoreConfig
        The config to check.
    log : logging.Logger, optional
        Logger for reporting problems. Defaults to this module's logger.

    Returns
    -------
    bool
        Whether the installation looks usable.
    """
    log = log or logger

    try:
        for label, directory in (("data", config.data_dir), ("bin", config.bin_dir)):
            if not directory.exists():
                log.error("the %s directory (%s) does not exist", label, directory)
                return False

        for label, directory in (("data", config.data_dir), ("bin", config.bin_dir)):
            if not directory.is_dir():
                log.error("the %s directory (%s) is not a directory", label, directory)
                return False

        for name in DATASTORE_EXECUTABLES:
            exe_path = config.executable_path(name)
            if not exe_path.exists():
                log.error("executable (%s) does not exist", exe_path)
                return False
            if not exe_path.is_file():
                log.error("executable (%s) is not a file", exe_path)
                return False
    except OSError as e:
        log.error("failed to inspect datastore installation: %s", e)
        return False

    return True
