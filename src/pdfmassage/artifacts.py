"""Temporary artifact management for pdfmassage.

Each operation invocation owns one private workspace directory inside the
scratch directory:

    <scratch_dir>/<prefix><operation>_<token>/<operation>_<token>_<name>

The token comes from ``secrets``, so concurrent invocations never collide
and need no locking. TempArtifacts is an async context manager: every path
it hands out (inputs it materialized, outputs it named for a tool, side
files a tool is known to write) is released exactly once on exit, whether
the operation succeeded or failed.
"""

from __future__ import annotations

import asyncio
import secrets
from collections.abc import Awaitable
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, TypeVar

import aiofiles
import aiofiles.os

from pdfmassage.constants import DEFAULT_CHUNK_SIZE, DEFAULT_TEMP_PREFIX
from pdfmassage.exceptions import MassageError, ProcessingError
from pdfmassage.logging_config import get_logger
from pdfmassage.sources import is_buffer, iter_chunks

logger = get_logger(__name__)

T = TypeVar("T")


def new_token() -> str:
    """Return a 16-character random hex token."""
    return secrets.token_hex(8)


async def release(*paths: Path) -> None:
    """Unlink every path.

    Missing files are ignored, so releasing twice is harmless. Any other
    error is logged and swallowed: cleanup must not mask the result or the
    error of the operation that owned the files.
    """
    for path in paths:
        try:
            await aiofiles.os.remove(path)
            logger.debug("Released %s", path)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("Could not remove temporary file %s: %s", path, e)


async def gather_all(*aws: Awaitable[T]) -> list[T]:
    """Await a batch of sub-tasks and raise the first failure, if any.

    Unlike a plain gather, siblings of a failed task are left to finish, so
    nothing is still writing into the workspace when it gets cleaned up.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


class TempArtifacts:
    """Scoped owner of one operation's temporary files.

    Usage:
        async with TempArtifacts(scratch_dir, "rotate") as tmp:
            src = await tmp.materialize(data, "in.pdf")
            out = tmp.path("out.pdf")
            ...

    Args:
        scratch_dir: Directory the workspace is created in
        operation: Short operation name, part of every file name
        prefix: Prefix marking the workspace as ours
        chunk_size: Read size used when piping streams to disk
    """

    def __init__(
        self,
        scratch_dir: Path,
        operation: str,
        prefix: str = DEFAULT_TEMP_PREFIX,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.token = new_token()
        self.stem = f"{operation}_{self.token}"
        self.directory = Path(scratch_dir) / f"{prefix}{self.stem}"
        self.chunk_size = chunk_size
        self._tracked: list[Path] = []

    @property
    def tracked(self) -> list[Path]:
        return list(self._tracked)

    async def __aenter__(self) -> "TempArtifacts":
        try:
            await aiofiles.os.mkdir(self.directory)
        except OSError as e:
            raise ProcessingError(
                f"Could not create workspace: {e}",
                context={"path": str(self.directory)},
            ) from e
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.cleanup()

    async def cleanup(self) -> None:
        """Release all tracked paths, then remove the workspace."""
        tracked, self._tracked = self._tracked, []
        await release(*tracked)
        try:
            await aiofiles.os.rmdir(self.directory)
        except FileNotFoundError:
            pass
        except OSError as e:
            # a tool wrote something we did not know about
            leftovers = await _list(self.directory)
            logger.warning(
                "Workspace %s not empty after cleanup (%s), removing: %s",
                self.directory,
                e,
                ", ".join(leftovers),
            )
            await release(*(self.directory / name for name in leftovers))
            try:
                await aiofiles.os.rmdir(self.directory)
            except OSError as e:
                logger.warning("Could not remove workspace %s: %s", self.directory, e)

    def path(self, name: str) -> Path:
        """Name a new file in the workspace and track it for release."""
        return self.track(self.directory / f"{self.stem}_{name}")

    def track(self, path: Path) -> Path:
        """Track a path some tool will create, e.g. a fixed-name side file."""
        self._tracked.append(path)
        return path

    async def materialize(self, source: Any, name: str) -> Path:
        """Write a buffer or stream to a new tracked file.

        Returns once the file is completely written and closed.

        Raises:
            ProcessingError: The stream or the write failed. Errors that are
                already taxonomy members (e.g. a failing URL stream) pass
                through unchanged.
        """
        path = self.path(name)
        try:
            async with aiofiles.open(path, "wb") as f:
                if is_buffer(source):
                    await f.write(bytes(source))
                else:
                    async for chunk in iter_chunks(source, self.chunk_size):
                        await f.write(chunk)
                await f.flush()
        except MassageError:
            raise
        except Exception as e:
            raise ProcessingError(
                f"Could not write input to disk: {e}",
                context={"path": str(path)},
            ) from e
        logger.debug("Materialized %s", path)
        return path

    async def glob(self, pattern: str | None = None) -> list[Path]:
        """List workspace files, optionally filtered by a glob pattern."""
        names = await _list(self.directory)
        return [self.directory / n for n in names if pattern is None or fnmatch(n, pattern)]


async def _list(directory: Path) -> list[str]:
    try:
        return sorted(await aiofiles.os.listdir(directory))
    except FileNotFoundError:
        return []


async def read_bytes(path: Path) -> bytes:
    """Read a whole file without blocking the event loop."""
    async with aiofiles.open(path, "rb") as f:
        return await f.read()
