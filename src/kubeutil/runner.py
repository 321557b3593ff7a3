"""External command execution.

The runner is the only place kubeutil reaches the outside world. Every call
spawns exactly one child process whose lifetime is bound to the awaiting
task: cancelling the task (directly, through ``asyncio.wait_for`` or through a
poller deadline) kills the child before ``CancelledError`` propagates.

stdout and stderr are captured into separate buffers so that a successful
stdout can be parsed as JSON / jsonpath output without diagnostic noise.
"""

from __future__ import annotations

import asyncio
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from .errors import CommandError, InvalidCommandError
from .logging import ensure_logger

# Appended to every child environment to keep Go-based tooling
# (kubectl plugins, kind, controller-gen) in module mode.
ENV_MARKER_KEY = "GO111MODULE"
ENV_MARKER_VALUE = "on"


@dataclass(frozen=True)
class CommandRequest:
    """Descriptor of one external command.

    ``args`` is the full argv; ``args[0]`` is the program name and is used as
    the executable when ``path`` is not set.
    """

    args: tuple[str, ...] = ()
    path: str | None = None
    cwd: str | Path | None = None
    stdin: bytes | None = None
    env: Mapping[str, str] | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        if isinstance(self.stdin, str):
            object.__setattr__(self, "stdin", self.stdin.encode("utf-8"))

    @classmethod
    def of(
        cls,
        *args: str,
        path: str | None = None,
        cwd: str | Path | None = None,
        stdin: bytes | str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandRequest:
        """Build a request from positional argv items."""
        return cls(args=args, path=path, cwd=cwd, stdin=stdin, env=env)

    def resolve_path(self) -> str:
        """Executable to run: ``path`` if set, else ``args[0]``."""
        if self.path:
            return self.path
        if self.args:
            return self.args[0]
        raise InvalidCommandError("empty command: no path and no arguments")

    def argv(self) -> list[str]:
        return [self.resolve_path(), *self.args[1:]]

    def command_line(self) -> str:
        return " ".join(self.argv())


def build_env(env: Mapping[str, str] | None = None) -> dict[str, str]:
    """Build the child environment.

    With no explicit environment the host environment is inherited. The
    marker variable is always present; a value the caller set explicitly for
    the marker key is kept as-is.
    """
    if not env:
        merged = dict(os.environ)
        merged[ENV_MARKER_KEY] = ENV_MARKER_VALUE
        return merged

    merged = dict(env)
    merged.setdefault(ENV_MARKER_KEY, ENV_MARKER_VALUE)
    return merged


def as_request(request: CommandRequest | Sequence[str]) -> CommandRequest:
    """Accept either a CommandRequest or a bare argv."""
    if isinstance(request, CommandRequest):
        return request
    if isinstance(request, (str, bytes)):
        raise TypeError("argv must be a sequence of strings, not a single string")
    return CommandRequest(args=tuple(request))


class CommandRunner(Protocol):
    """Runs a command and returns its stdout, or raises CommandError."""

    async def run(
        self,
        request: CommandRequest | Sequence[str],
        *,
        logger: Any | None = None,
    ) -> str: ...


class DefaultRunner:
    """Run commands with asyncio subprocesses."""

    async def run(
        self,
        request: CommandRequest | Sequence[str],
        *,
        logger: Any | None = None,
    ) -> str:
        """Run a command to completion.

        Args:
            request: Command descriptor or argv.
            logger: Optional structlog logger; the command line is logged
                before execution.

        Returns:
            Captured stdout.

        Raises:
            InvalidCommandError: Request has no path and no arguments.
            CommandError: Process could not start or exited non-zero. The
                error carries the (possibly partial) stdout and stderr.
        """
        log = ensure_logger(logger)
        request = as_request(request)

        argv = request.argv()
        command = " ".join(argv)
        log.info("running", command=command)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(request.cwd) if request.cwd is not None else None,
                stdin=subprocess.PIPE if request.stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=build_env(request.env),
            )
        except OSError as e:
            raise CommandError(command, cause=e) from e

        try:
            out, err = await proc.communicate(request.stdin)
        except asyncio.CancelledError:
            await _kill(proc)
            raise

        stdout = out.decode("utf-8", errors="replace")
        stderr = err.decode("utf-8", errors="replace")

        if proc.returncode != 0:
            cause = subprocess.CalledProcessError(proc.returncode, argv, stdout, stderr)
            raise CommandError(
                command,
                cause=cause,
                stdout=stdout,
                stderr=stderr,
                returncode=proc.returncode,
            ) from cause
        return stdout

    def run_sync(
        self,
        request: CommandRequest | Sequence[str],
        *,
        timeout: float | None = None,
        logger: Any | None = None,
    ) -> str:
        """Synchronous wrapper for run.

        Args:
            request: Command descriptor or argv.
            timeout: Optional seconds after which the child is killed.
            logger: Optional structlog logger.

        Returns:
            Captured stdout.
        """
        request = as_request(request)

        async def _run() -> str:
            return await asyncio.wait_for(self.run(request, logger=logger), timeout)

        try:
            return asyncio.run(_run())
        except asyncio.TimeoutError:
            raise TimeoutError(
                f"{request.command_line()!r} timed out after {timeout}s"
            ) from None


async def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill and reap a child process."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()
