"""
Asynchronous execution of validated mkcert/openssl/ls commands.

Commands arrive as the strings the console builds (so they can be checked by
``CommandValidator`` and shown to the user) but are executed as an argument
vector with ``asyncio.create_subprocess_exec``. No shell is involved:

* a leading ``cd "<dir>" &&`` becomes the working directory of the child,
* the remainder is split with ``shlex``,
* ``*.pem`` patterns given to ``ls`` are expanded here, in the working directory.
"""

import asyncio
import logging
import os
import re
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ..exceptions import CommandTimeout, InvalidCommand, SubprocessFailure
from ..security import CommandValidator

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_MAX_OUTPUT = 1024 * 1024
NO_CERTIFICATES_MESSAGE = "No certificates found"

_CD_PREFIX = re.compile(r'^cd\s+"([^"]+)"\s+&&\s+(.*)$', re.ASCII | re.DOTALL)
_READ_CHUNK = 64 * 1024


@dataclass
class CommandResult:
    command: str
    stdout: str
    stderr: str
    exit_code: int


class CommandRunner:
    """Runs allowlisted commands with a timeout and a bound on captured output."""

    def __init__(
        self,
        validator: Optional[CommandValidator] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_output: int = DEFAULT_MAX_OUTPUT,
    ):
        self.validator = validator or CommandValidator()
        self.timeout = timeout
        self.max_output = max_output

    def build_argv(self, command: str, cwd: Optional[str] = None) -> Tuple[List[str], Optional[str]]:
        """Translate a validated command string into ``(argv, working_directory)``."""
        command = command.strip()
        workdir = cwd

        match = _CD_PREFIX.match(command)
        if match:
            target = match.group(1)
            workdir = target if os.path.isabs(target) or cwd is None else os.path.join(cwd, target)
            command = match.group(2)

        try:
            argv = shlex.split(command)
        except ValueError as exc:
            raise InvalidCommand(f"Invalid command: {exc}") from exc
        if not argv:
            raise InvalidCommand("Invalid command: empty command")

        if argv[0] == "ls":
            argv = self._expand_globs(argv, workdir)

        return argv, workdir

    @staticmethod
    def _expand_globs(argv: List[str], workdir: Optional[str]) -> List[str]:
        base = Path(workdir or ".")
        expanded = [argv[0]]
        for arg in argv[1:]:
            if "*" in arg:
                expanded.extend(sorted(p.name for p in base.glob(arg)))
            else:
                expanded.append(arg)
        return expanded

    async def run(self, command: str, cwd: Optional[str] = None) -> CommandResult:
        """
        Validate and execute ``command``.

        Raises:
            InvalidCommand: the command is not allowlisted.
            CommandTimeout: the child ran longer than ``timeout`` seconds.
            SubprocessFailure: non-zero exit, oversize output or missing binary.
        """
        reason = self.validator.rejection_reason(command)
        if reason is not None:
            raise InvalidCommand(f"Command not allowed for security reasons: {reason}")

        argv, workdir = self.build_argv(command, cwd)

        # ls with nothing left to list after glob expansion
        if argv[0] == "ls" and not [a for a in argv[1:] if not a.startswith("-")]:
            return CommandResult(command=command, stdout=NO_CERTIFICATES_MESSAGE, stderr="", exit_code=0)

        logger.info("Executing command: %s", command)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=workdir,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            logger.error("Executable not found for command %s: %s", command, exc)
            raise SubprocessFailure(f"Command not found: {argv[0]}", stderr=str(exc)) from exc
        except OSError as exc:
            logger.error("Failed to start command %s: %s", command, exc)
            raise SubprocessFailure(f"Failed to start command: {argv[0]}", stderr=str(exc)) from exc

        try:
            raw_stdout, raw_stderr = await asyncio.wait_for(self._collect(process), timeout=self.timeout)
        except asyncio.TimeoutError:
            await self._terminate(process)
            logger.error("Command timed out after %ss: %s", self.timeout, command)
            raise CommandTimeout(command, self.timeout)
        except SubprocessFailure:
            await self._terminate(process)
            logger.error("Command output exceeded %d bytes: %s", self.max_output, command)
            raise

        stdout = raw_stdout.decode("utf-8", errors="replace")
        stderr = raw_stderr.decode("utf-8", errors="replace")
        exit_code = process.returncode

        if exit_code != 0:
            logger.error("Command failed with exit code %s: %s", exit_code, command)
            raise SubprocessFailure(
                f"Command failed with exit code {exit_code}",
                stdout=stdout,
                stderr=stderr,
                exit_code=exit_code,
            )

        return CommandResult(command=command, stdout=stdout, stderr=stderr, exit_code=exit_code)

    async def _collect(self, process) -> Tuple[bytes, bytes]:
        stdout = bytearray()
        stderr = bytearray()

        async def pump(stream, sink: bytearray):
            while True:
                chunk = await stream.read(_READ_CHUNK)
                if not chunk:
                    return
                sink.extend(chunk)
                if len(stdout) + len(stderr) > self.max_output:
                    raise SubprocessFailure(
                        f"Command output exceeded {self.max_output} bytes",
                        stdout=bytes(stdout).decode("utf-8", errors="replace"),
                        stderr=bytes(stderr).decode("utf-8", errors="replace"),
                    )

        tasks = [
            asyncio.ensure_future(pump(process.stdout, stdout)),
            asyncio.ensure_future(pump(process.stderr, stderr)),
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            # a failed or timed-out pump must not leave its sibling reading
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        await process.wait()
        return bytes(stdout), bytes(stderr)

    @staticmethod
    async def _terminate(process):
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
