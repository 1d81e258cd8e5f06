"""Shared fixtures for pdfmassage tests."""

import io
import random
import shutil
import tempfile
from pathlib import Path

import pytest
import yaml

from pdfmassage.config import MassageConfig
from pdfmassage.operations import Massager
from pdfmassage.process import ProcessResult, ProcessRunner


# === Path/Directory Fixtures ===

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def scratch_dir(temp_dir):
    """Scratch directory handed to the Massager."""
    scratch = temp_dir / "scratch"
    scratch.mkdir()
    return scratch


@pytest.fixture
def leftovers(scratch_dir):
    """Callable listing anything an operation left behind in the scratch directory."""
    return lambda: sorted(scratch_dir.glob("massage_*"))


# === Document Fixtures ===

def make_pdf(pages: int = 1, width: float = 288, height: float = 432) -> bytes:
    """Blank PDF; the default page is 4in wide and 6in long."""
    from pypdf import PdfWriter

    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=width, height=height)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def pdf_bytes():
    """Single-page 4x6 inch PDF."""
    return make_pdf()


@pytest.fixture
def multi_page_pdf_bytes():
    """Six-page letter-size PDF."""
    return make_pdf(pages=6, width=612, height=792)


@pytest.fixture
def png_bytes():
    """Small RGB PNG image."""
    from PIL import Image

    buffer = io.BytesIO()
    Image.new("RGB", (300, 450), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def temp_pdf(temp_dir, pdf_bytes):
    """Single-page 4x6 inch PDF on disk."""
    pdf_path = temp_dir / "test.pdf"
    pdf_path.write_bytes(pdf_bytes)
    return pdf_path


# === Config Fixtures ===

@pytest.fixture
def massage_config(scratch_dir):
    return MassageConfig(scratch_dir=scratch_dir)


@pytest.fixture
def config_dict(scratch_dir):
    """Configuration dictionary with every option set."""
    return {
        "massage": {
            "scratch_dir": str(scratch_dir),
            "temp_prefix": "massage_",
            "fetch_timeout": 5,
            "process_timeout": 30,
            "rotate_density": 200,
            "thumbnail_density": 96,
            "thumbnail_format": "jpg",
            "unit": "pt",
            "chunk_size": 4096,
            "tools": {
                "identify": "/usr/bin/identify",
                "convert": "/usr/bin/convert",
                "pdftk": "/usr/bin/pdftk",
            },
        }
    }


@pytest.fixture
def temp_config_file(temp_dir, config_dict):
    """Create a temporary config file."""
    config_path = temp_dir / "massage.yaml"
    with open(config_path, "w") as f:
        yaml.dump(config_dict, f)
    return config_path


# === Fake external tools ===

class FakeRunner(ProcessRunner):
    """Stands in for identify, convert and pdftk.

    Writes plausible output files where the real tools would, and records
    every call. Set ``fail`` to a (returncode, stderr) pair to make the next
    calls fail, or ``identify_output`` to control what identify prints.
    """

    def __init__(self):
        super().__init__()
        self.calls: list[dict] = []
        self.fail: tuple[int, bytes] | None = None
        self.identify_output = b"PDF,288,432,1,"
        self.burst_pages = 3
        self.burst_numbers: list[int] | None = None

    async def run(self, command, args, *, stdin=None, cwd=None):
        args = [str(a) for a in args]
        stdin_data = await _drain(stdin)
        self.calls.append({"command": command, "args": args, "stdin": stdin_data, "cwd": cwd})
        argv = [command, *args]

        if self.fail:
            returncode, stderr = self.fail
            return ProcessResult(returncode=returncode, stderr=stderr, argv=argv)

        tool = Path(command).name
        base = Path(cwd) if cwd else Path()
        if tool == "identify":
            if not stdin_data.startswith(b"%PDF") and not stdin_data.startswith(b"\x89PNG"):
                return ProcessResult(
                    returncode=1,
                    stderr=b"identify: no decode delegate for this image format `' @ error/constitute.c/ReadImage/572.\n",
                    argv=argv,
                )
            return ProcessResult(returncode=0, stdout=self.identify_output, argv=argv)

        if tool == "convert":
            if "-resize" in args and "x" not in args[args.index("-resize") + 1]:
                return ProcessResult(returncode=1, stderr=b"convert: invalid argument for option `-resize'", argv=argv)
            if "-density" in args and not args[args.index("-density") + 1].replace("x", "").isdigit():
                return ProcessResult(returncode=1, stderr=b"convert: invalid argument for option `-density'", argv=argv)
            source = (base / args[-2].removesuffix("[0]")).read_bytes()
            (base / args[-1]).write_bytes(b"converted:" + source[:16])
            return ProcessResult(returncode=0, argv=argv)

        if tool == "pdftk":
            if "cat" in args:
                inputs = args[: args.index("cat")]
                (base / args[-1]).write_bytes(b"".join((base / p).read_bytes() for p in inputs))
                return ProcessResult(returncode=0, argv=argv)
            if "burst" in args:
                pattern = args[-1]
                numbers = self.burst_numbers or list(range(1, self.burst_pages + 1))
                shuffled = numbers[:]
                random.shuffle(shuffled)
                for n in shuffled:
                    (base / (pattern % n)).write_bytes(f"page {n}".encode())
                (base / "doc_data.txt").write_text("InfoBegin\n")
                return ProcessResult(returncode=0, argv=argv)

        return ProcessResult(returncode=127, stderr=b"unknown tool", argv=argv)


async def _drain(stdin) -> bytes:
    if stdin is None:
        return b""
    if isinstance(stdin, (bytes, bytearray)):
        return bytes(stdin)
    chunks = []
    async for chunk in stdin:
        chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def massager(massage_config, fake_runner):
    """Massager wired to the fake tools and a private scratch directory."""
    return Massager(massage_config, runner=fake_runner)
