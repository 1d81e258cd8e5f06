"""Document operations for pdfmassage.

Every operation runs the same steps:

    normalize input -> materialize into a private workspace -> run tool
    -> collect output -> release the workspace -> return or raise

The workspace is a TempArtifacts scope, so cleanup happens on every path
out of an operation. Errors are mapped by ``_guard`` into the taxonomy in
pdfmassage.exceptions before they reach the caller.

Tools run with the workspace as their working directory and are given bare
file names. pdftk and convert expand printf-style patterns in file names,
so the scratch directory path must never reach their argument vector.
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pdfmassage.artifacts import TempArtifacts, gather_all, read_bytes
from pdfmassage.config import MassageConfig
from pdfmassage.constants import (
    BURST_PAGE_SUFFIX,
    BURST_SIDE_ARTIFACT,
    IDENTIFY_FORMAT,
    ROTATE_ANGLES,
)
from pdfmassage.exceptions import InvalidRotationError, MassageError, ProcessingError
from pdfmassage.logging_config import get_logger
from pdfmassage.metadata import MetaData, parse_identify_output
from pdfmassage.process import ProcessRunner, check_result
from pdfmassage.sources import HttpFetcher, Source, get_buffer, is_buffer, iter_chunks, open_stream

logger = get_logger(__name__)

PAGE_NUMBER_RE = re.compile(r"_page_(\d+)$")


@dataclass(frozen=True)
class PageArtifact:
    """One page of a burst document."""

    page: int  # 1-based
    content: bytes


@contextmanager
def _guard(operation: str) -> Iterator[None]:
    """Let taxonomy errors through; wrap anything else as ProcessingError."""
    try:
        yield
    except MassageError as e:
        logger.debug("%s failed: %s", operation, e)
        raise
    except Exception as e:
        logger.debug("%s failed unexpectedly: %r", operation, e)
        raise ProcessingError(
            f"{operation} failed: {e}",
            context={"operation": operation},
        ) from e


async def _read_output(path: Path) -> bytes:
    try:
        return await read_bytes(path)
    except FileNotFoundError as e:
        raise ProcessingError(
            "Tool reported success but wrote no output",
            context={"path": str(path)},
        ) from e


class Massager:
    """Drives identify, convert and pdftk over documents.

    Args:
        config: Settings (scratch directory, tool paths, densities, ...)
        runner: Process runner; defaults to one using config.process_timeout
        fetcher: HTTP transport for URL sources
    """

    def __init__(
        self,
        config: MassageConfig | None = None,
        runner: ProcessRunner | None = None,
        fetcher: HttpFetcher | None = None,
    ):
        self.config = config or MassageConfig()
        self.runner = runner or ProcessRunner(timeout=self.config.process_timeout)
        self.fetcher = fetcher or HttpFetcher(
            timeout=self.config.fetch_timeout,
            chunk_size=self.config.chunk_size,
        )

    def _workspace(self, operation: str) -> TempArtifacts:
        return TempArtifacts(
            self.config.scratch_dir,
            operation,
            prefix=self.config.temp_prefix,
            chunk_size=self.config.chunk_size,
        )

    async def get_buffer(self, source: Any) -> bytes | Any:
        """Resolve a source: buffers and streams pass through, URLs are downloaded."""
        return await get_buffer(source, fetcher=self.fetcher, timeout=self.config.fetch_timeout)

    async def get_stream(self, url: str) -> AsyncIterator[bytes]:
        """Open a URL as an async stream of chunks, after checking it with HEAD."""
        return await open_stream(url, fetcher=self.fetcher)

    async def get_metadata(self, source: Source) -> MetaData:
        """Describe a document's type, first-page size and page count.

        The document is piped to identify's stdin; nothing touches disk.

        Raises:
            InvalidDocumentError: identify rejected the document
        """
        with _guard("get_metadata"):
            data = await self.get_buffer(source)
            stdin = data if is_buffer(data) else iter_chunks(data, self.config.chunk_size)
            result = await self.runner.run(
                self.config.tools.identify,
                ["-format", IDENTIFY_FORMAT, "-"],
                stdin=stdin,
            )
            check_result(result, error_prefix=self.config.identify_error_prefix)
            return parse_identify_output(result.stdout_text, self.config.unit)

    async def rotate_pdf(self, source: Source, degrees: int) -> bytes:
        """Rotate every page clockwise by 90, 180 or 270 degrees.

        Raises:
            InvalidRotationError: Before any I/O, for any other angle
        """
        if isinstance(degrees, bool) or degrees not in ROTATE_ANGLES:
            raise InvalidRotationError(context={"degrees": degrees})

        with _guard("rotate_pdf"):
            data = await self.get_buffer(source)
            async with self._workspace("rotate") as tmp:
                in_path = await tmp.materialize(data, "in.pdf")
                out_path = tmp.path("out.pdf")
                result = await self.runner.run(
                    self.config.tools.convert,
                    [
                        "-rotate", str(int(degrees)),
                        "-density", str(self.config.rotate_density),
                        in_path.name,
                        out_path.name,
                    ],
                    cwd=tmp.directory,
                )
                check_result(result)
                return await _read_output(out_path)

    async def merge(self, first: Source, second: Source, *more: Source) -> bytes:
        """Concatenate documents in order into one PDF.

        Inputs are written to disk concurrently; if one write fails the
        others still finish, and every file is released.
        """
        with _guard("merge"):
            sources = (first, second, *more)
            data = await gather_all(*(self.get_buffer(s) for s in sources))
            async with self._workspace("merge") as tmp:
                in_paths = await gather_all(
                    *(tmp.materialize(d, f"in{i}.pdf") for i, d in enumerate(data, 1))
                )
                out_path = tmp.path("out.pdf")
                result = await self.runner.run(
                    self.config.tools.pdftk,
                    [*(p.name for p in in_paths), "cat", "output", out_path.name],
                    cwd=tmp.directory,
                )
                check_result(result)
                return await _read_output(out_path)

    async def burst_pdf(self, source: Source) -> list[PageArtifact]:
        """Split a document into single-page PDFs, ordered by page number.

        Raises:
            ProcessingError: pdftk failed, or produced no pages or a gap
        """
        with _guard("burst_pdf"):
            data = await self.get_buffer(source)
            async with self._workspace("burst") as tmp:
                in_path = await tmp.materialize(data, "in.pdf")
                pattern = f"{tmp.stem}{BURST_PAGE_SUFFIX}"
                # pdftk writes its report into the working directory
                tmp.track(tmp.directory / BURST_SIDE_ARTIFACT)

                try:
                    result = await self.runner.run(
                        self.config.tools.pdftk,
                        [in_path.name, "burst", "output", pattern],
                        cwd=tmp.directory,
                    )
                finally:
                    # track pages even if pdftk failed halfway through
                    pages = await self._collect_pages(tmp)
                check_result(result)
                _check_page_sequence(pages)

                contents = await gather_all(*(read_bytes(path) for _, path in pages))
                return [PageArtifact(page=n, content=c) for (n, _), c in zip(pages, contents)]

    async def _collect_pages(self, tmp: TempArtifacts) -> list[tuple[int, Path]]:
        pages = []
        for path in await tmp.glob(f"{tmp.stem}_page_*"):
            match = PAGE_NUMBER_RE.search(path.name)
            if match:
                pages.append((int(match.group(1)), tmp.track(path)))
        # directory listings are unordered
        return sorted(pages)

    async def generate_thumbnail(self, source: Source, size: str) -> bytes:
        """Render the first page resized to an ImageMagick geometry like ``200x200``.

        The geometry is not checked here; convert rejects a malformed one
        and that surfaces as ProcessingError.
        """
        with _guard("generate_thumbnail"):
            data = await self.get_buffer(source)
            async with self._workspace("thumbnail") as tmp:
                in_path = await tmp.materialize(data, "in")
                out_path = tmp.path(f"out.{self.config.thumbnail_format}")
                result = await self.runner.run(
                    self.config.tools.convert,
                    [
                        "-resize", str(size),
                        "-density", str(self.config.thumbnail_density),
                        f"{in_path.name}[0]",
                        out_path.name,
                    ],
                    cwd=tmp.directory,
                )
                check_result(result)
                return await _read_output(out_path)

    async def image_to_pdf(self, source: Source, dpi: int | str) -> bytes:
        """Wrap a raster image in a PDF whose page size follows ``dpi``.

        ``dpi`` is handed to convert as is; a non-numeric value makes convert
        fail with ProcessingError.
        """
        with _guard("image_to_pdf"):
            data = await self.get_buffer(source)
            async with self._workspace("image") as tmp:
                in_path = await tmp.materialize(data, "in")
                out_path = tmp.path("out.pdf")
                result = await self.runner.run(
                    self.config.tools.convert,
                    [
                        "-quality", "100",
                        "-units", "PixelsPerInch",
                        "-density", f"{dpi}x{dpi}",
                        in_path.name,
                        out_path.name,
                    ],
                    cwd=tmp.directory,
                )
                check_result(result)
                return await _read_output(out_path)


def _check_page_sequence(pages: list[tuple[int, Path]]) -> None:
    numbers = [n for n, _ in pages]
    if not numbers:
        raise ProcessingError("Burst produced no pages")
    if numbers != list(range(1, len(numbers) + 1)):
        raise ProcessingError(
            "Burst pages are not numbered 1..N",
            context={"pages": numbers},
        )
