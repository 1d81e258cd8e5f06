"""External process invocation for pdfmassage.

Commands are always spawned from an argument vector. Nothing is ever passed
through a shell, so file names cannot inject extra commands.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pdfmassage.constants import STDERR_TAIL_CHARS
from pdfmassage.exceptions import InvalidDocumentError, ProcessingError
from pdfmassage.logging_config import get_logger

logger = get_logger(__name__)


class Outcome(str, Enum):
    """How a finished process should be treated by its caller."""

    SUCCESS = "success"
    INVALID_DOCUMENT = "invalid_document"  # tool says the input is unreadable
    FAILURE = "failure"  # tool exited non-zero for any other reason


@dataclass
class ProcessResult:
    """Exit status and captured output of one finished process."""

    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""
    argv: list[str] = field(default_factory=list)

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    def has_error_marker(self, prefix: str) -> bool:
        """True if any stderr line starts with the tool's error prefix."""
        return any(line.lstrip().startswith(prefix) for line in self.stderr_text.splitlines())

    def describe(self) -> dict:
        """Context for error reporting."""
        return {
            "command": " ".join(self.argv),
            "returncode": self.returncode,
            "stderr": self.stderr_text.strip()[-STDERR_TAIL_CHARS:],
        }


def classify(result: ProcessResult, error_prefix: str | None = None) -> Outcome:
    """Classify a finished process.

    A tool error marker wins over the exit status: identify exits non-zero
    when it rejects a document, and the marker is the more specific signal.
    """
    if error_prefix and result.has_error_marker(error_prefix):
        return Outcome.INVALID_DOCUMENT
    if result.returncode != 0:
        return Outcome.FAILURE
    return Outcome.SUCCESS


def check_result(result: ProcessResult, error_prefix: str | None = None) -> ProcessResult:
    """Return ``result`` if the process succeeded, otherwise raise.

    Raises:
        InvalidDocumentError: stderr carries the tool's error marker
        ProcessingError: non-zero exit without a marker
    """
    outcome = classify(result, error_prefix)
    if outcome is Outcome.INVALID_DOCUMENT:
        raise InvalidDocumentError(context=result.describe())
    if outcome is Outcome.FAILURE:
        raise ProcessingError(context=result.describe())
    return result


class ProcessRunner:
    """Runs external commands as asyncio subprocesses.

    Args:
        timeout: Seconds to wait for a process before killing it. None waits
            forever (task cancellation still kills the child).
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    async def run(
        self,
        command: str,
        args: Sequence[str | Path],
        *,
        stdin: bytes | AsyncIterable[bytes] | None = None,
        cwd: Path | None = None,
    ) -> ProcessResult:
        """Run ``command`` with ``args`` and capture its output.

        Args:
            command: Executable name or path
            args: Argument vector (paths are converted with str())
            stdin: Bytes, or an async iterable of chunks, fed to the process
            cwd: Working directory for the process

        Returns:
            ProcessResult; the exit status is not interpreted here

        Raises:
            ProcessingError: The command could not be started or timed out
        """
        argv = [command, *(str(a) for a in args)]
        logger.debug("Running: %s", " ".join(argv))

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd else None,
            )
        except OSError as e:
            raise ProcessingError(
                f"Could not start {command}: {e}",
                context={"command": " ".join(argv)},
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(self._communicate(proc, stdin), self.timeout)
        except asyncio.TimeoutError as e:
            await _kill(proc)
            raise ProcessingError(
                f"{command} timed out after {self.timeout}s",
                context={"command": " ".join(argv)},
            ) from e
        except BaseException:
            # cancelled, or stdin source failed: never leave an orphan behind
            await _kill(proc)
            raise

        result = ProcessResult(returncode=proc.returncode, stdout=stdout, stderr=stderr, argv=argv)
        logger.debug("%s exited with %d", command, result.returncode)
        return result

    async def _communicate(
        self,
        proc: asyncio.subprocess.Process,
        stdin: bytes | AsyncIterable[bytes] | None,
    ) -> tuple[bytes, bytes]:
        if stdin is None or isinstance(stdin, (bytes, bytearray, memoryview)):
            return await proc.communicate(bytes(stdin) if stdin is not None else None)

        stdout_task = asyncio.ensure_future(proc.stdout.read())
        stderr_task = asyncio.ensure_future(proc.stderr.read())
        try:
            await _feed(proc, stdin)
            stdout, stderr = await asyncio.gather(stdout_task, stderr_task)
        except BaseException:
            stdout_task.cancel()
            stderr_task.cancel()
            raise
        await proc.wait()
        return stdout, stderr


async def _feed(proc: asyncio.subprocess.Process, chunks: AsyncIterable[bytes]) -> None:
    """Stream chunks into the process's stdin, then close it."""
    try:
        async for chunk in chunks:
            proc.stdin.write(chunk)
            await proc.stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # tool stopped reading early; its exit status tells the rest
        logger.debug("stdin closed early by child process")
    finally:
        proc.stdin.close()


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()
