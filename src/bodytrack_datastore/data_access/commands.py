"""
Subprocess plumbing for the BodyTrack Datastore executables.

This module turns validated parameters into argv vectors and runs the
datastore executables with :func:`asyncio.create_subprocess_exec`. Arguments
are always passed as discrete argv elements and never through a shell, so no
quoting is needed and user-supplied strings cannot be interpreted by one.

Two execution modes are provided:

- :meth:`DatastoreCommandRunner.run` buffers stdout and returns it as text.
  Used by ``info``, ``gettile`` and ``import``.
- :meth:`DatastoreCommandRunner.spawn` returns a :class:`StreamingProcess` so
  the caller can stream stdout while stderr is drained in the background.
  Used by ``export`` and multi-channel ``gettile``.

Examples
--------
>>> runner = DatastoreCommandRunner(config)
>>> stdout = await runner.run("info", ["-r", 1])
>>> process = await runner.spawn("export", ["--csv", config.data_dir, "1.speck.particles"])
>>> async for line in process.stdout:
...     print(line.decode(), end="")
>>> await process.wait()
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from collections.abc import Iterable
from typing import Any

from .config import DatastoreConfig
from .errors import ServerError

logger = logging.getLogger(__name__)


def convert_null_to_string(value: Any) -> str:
    """Stringify an argv element. ``None`` becomes the literal ``"null"``."""
    return "null" if value is None else str(value)


class StreamingProcess:
    """
    A running datastore executable whose stdout is left to the caller.

    stderr is read by a background task from the moment the process starts,
    so a chatty executable can never fill the stderr pipe and stall stdout.

    Parameters
    ----------
    process : asyncio.subprocess.Process
        Process started with both stdout and stderr piped.
    args : list of str
        The argv it was started with.

    Attributes
    ----------
    stdout : asyncio.StreamReader
        The process's stdout. Drain it before or while awaiting :meth:`wait`.
    args : list of str
        The argv, for error reporting.
    """

    def __init__(self, process: asyncio.subprocess.Process, args: list[str]) -> None:
        self.process = process
        self.args = args
        self.stdout = process.stdout
        self._stderr_task = asyncio.ensure_future(process.stderr.read())

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    async def wait(self) -> int:
        """Wait for the process to exit and for stderr to be fully read."""
        returncode = await self.process.wait()
        await self._stderr_task
        return returncode

    async def stderr_output(self) -> bytes:
        """Everything the process wrote to stderr. Completes once stderr closes."""
        return await self._stderr_task

    async def communicate(self) -> tuple[bytes, bytes]:
        """Read all of stdout, wait for exit and return ``(stdout, stderr)``."""
        stdout = await self.stdout.read()
        await self.wait()
        return stdout, await self._stderr_task

    def kill(self) -> None:
        self.process.kill()

    def terminate(self) -> None:
        self.process.terminate()


class DatastoreCommandRunner:
    """
    Builds argv vectors for, and runs, the datastore executables.

    Parameters
    ----------
    config : DatastoreConfig
        The installation to run against.
    log : logging.Logger, optional
        Logger for command tracing. Defaults to this module's logger.

    Notes
    -----
    The runner holds no per-call state. Every call spawns its own process and
    nothing bounds how many run at once.
    """

    def __init__(self, config: DatastoreConfig, log: logging.Logger | None = None) -> None:
        self.config = config
        self.log = log or logger

    def executable_path(self, name: str) -> str:
        return str(self.config.executable_path(name))

    def build_argv(self, name: str, parameters: Iterable[Any] = ()) -> list[str]:
        """
        Build the argv for a buffered command.

        The data directory is always the first argument after the
        executable, followed by ``parameters``.

        Parameters
        ----------
        name : str
            Executable name, e.g. ``"info"``.
        parameters : iterable
            Remaining arguments. ``None`` values become ``"null"``.

        Returns
        -------
        list of str
            The complete argv, executable first.
        """
        args = [self.config.data_dir, *parameters]
        return [self.executable_path(name), *map(convert_null_to_string, args)]

    def build_spawn_argv(self, name: str, parameters: Iterable[Any] = ()) -> list[str]:
        """Build an argv where the caller places the data directory itself."""
        return [self.executable_path(name), *map(convert_null_to_string, parameters)]

    async def run(self, name: str, parameters: Iterable[Any] = ()) -> str:
        """
        Run a datastore executable and return its stdout.

        Parameters
        ----------
        name : str
            Executable name.
        parameters : iterable
            Arguments following the data directory.

        Returns
        -------
        str
            Decoded stdout of the process.

        Raises
        ------
        ServerError
            If the process cannot be started (context is the ``OSError``) or
            exits non-zero (context is a
            :class:`subprocess.CalledProcessError` carrying the exit status,
            stdout and stderr).
        """
        argv = self.build_argv(name, parameters)
        self.log.debug("Executing %s", argv)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ServerError(f"Failed to call {name}", e) from e

        stdout, stderr = await process.communicate()
        stdout_text = stdout.decode("utf-8", errors="replace")

        if process.returncode != 0:
            error = subprocess.CalledProcessError(
                process.returncode,
                argv,
                output=stdout_text,
                stderr=stderr.decode("utf-8", errors="replace"),
            )
            self.log.debug("%s exited with status %s", name, process.returncode)
            raise ServerError(f"Failed to call {name}", error) from error

        return stdout_text

    async def spawn(
        self, name: str, parameters: Iterable[Any] = ()
    ) -> StreamingProcess:
        """
        Start a datastore executable and return it as a :class:`StreamingProcess`.

        The caller must drain stdout and await
        :meth:`StreamingProcess.wait` to learn the exit status. stderr is
        collected in the background. There is no timeout; kill the process
        to cancel.

        Raises
        ------
        ServerError
            If the process cannot be started.
        """
        argv = self.build_spawn_argv(name, parameters)
        self.log.debug("Spawning %s", argv)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ServerError(f"Failed to spawn {name}", e) from e
        return StreamingProcess(process, argv)
