"""
Exclusively-created temporary files for handing data to the datastore.

The datastore's ``import`` executable reads its input from a file, so
:meth:`BodyTrackDatastore.import_json` serialises each payload to a fresh
temp file first. Files are opened with ``O_CREAT | O_EXCL`` so two concurrent
imports can never share a file. On a name collision a new random name is
tried, up to :data:`TOTAL_TRIES` attempts.
"""

from __future__ import annotations

import logging
import os
import secrets
import tempfile
import time
from pathlib import Path

logger = logging.getLogger(__name__)

CREATE_FLAGS = os.O_CREAT | os.O_EXCL | os.O_RDWR
FILE_MODE = 0o600
TOTAL_TRIES = 10


def generate_temp_filename(
    prefix: str = "tmp", suffix: str = ".tmp", directory: str | Path | None = None
) -> Path:
    """Return a random path of the form ``<prefix><pid>_<ns>_<hex><suffix>``."""
    name = f"{prefix}{os.getpid()}_{time.time_ns()}_{secrets.token_hex(10)}{suffix}"
    return Path(directory or tempfile.gettempdir()) / name


class TempFile:
    """
    An open, exclusively created temporary file.

    Use :meth:`create` rather than the constructor. The file is not removed
    automatically; call :meth:`cleanup` (or use the instance as a context
    manager, which closes and removes it on exit).

    Attributes
    ----------
    fd : int or None
        The open file descriptor, or None once closed.
    path : Path
        Absolute path to the file.
    """

    def __init__(self, fd: int, path: Path) -> None:
        self.fd: int | None = fd
        self.path = path

    @classmethod
    def create(
        cls,
        prefix: str = "tmp",
        suffix: str = ".tmp",
        directory: str | Path | None = None,
        log: logging.Logger | None = None,
    ) -> TempFile:
        """
        Create a new temp file with a random name.

        Parameters
        ----------
        prefix, suffix : str
            Added around the random part of the name.
        directory : str or Path, optional
            Where to create the file. Defaults to the system temp directory.
        log : logging.Logger, optional
            Logger for failed attempts.

        Raises
        ------
        OSError
            If no file could be created after :data:`TOTAL_TRIES` attempts.
        """
        log = log or logger
        for _ in range(TOTAL_TRIES):
            path = generate_temp_filename(prefix, suffix, directory)
            try:
                fd = os.open(path, CREATE_FLAGS, FILE_MODE)
            except OSError as e:
                log.error("Failed to create temp file [%s]: %s", path, e)
                continue
            return cls(fd, path)

        raise OSError("Failed to create a temp file")

    def write_text(self, text: str) -> None:
        """Write ``text`` as UTF-8 and close the file."""
        if self.fd is None:
            raise ValueError(f"Temp file [{self.path}] is already closed")
        fd, self.fd = self.fd, None
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)

    def close(self) -> None:
        if self.fd is not None:
            fd, self.fd = self.fd, None
            os.close(fd)

    def cleanup(self) -> None:
        """Unlink the file. Closes it first if still open. Raises on failure."""
        self.close()
        os.unlink(self.path)

    def __enter__(self) -> TempFile:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.cleanup()
        except FileNotFoundError:
            pass
