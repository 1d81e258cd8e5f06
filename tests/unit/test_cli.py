"""Tests for pdfmassage.cli module."""

import io
import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from unittest.mock import patch

import pytest

from pdfmassage.cli import check_arguments, create_parser, main, open_input
from pdfmassage.operations import Massager


@pytest.fixture
def fake_massager(fake_runner):
    """Patch the CLI to build Massagers that use the fake tools."""
    with patch("pdfmassage.operations.Massager", lambda config: Massager(config, runner=fake_runner)):
        yield fake_runner


@pytest.fixture
def cli_config(temp_dir, scratch_dir):
    config_path = temp_dir / "cli.yaml"
    config_path.write_text(f"scratch_dir: {scratch_dir}\n")
    return config_path


class TestCreateParser:
    """Test argument parser creation."""

    def test_parser_creation(self):
        parser = create_parser()
        assert parser.prog == "massage"

    def test_version_flag(self):
        args = create_parser().parse_args(["-V"])
        assert args.version is True
        assert args.command is None

    def test_rotate(self):
        args = create_parser().parse_args(["rotate", "in.pdf", "--degrees", "90", "-o", "out.pdf"])
        assert args.command == "rotate"
        assert args.inputs == ["in.pdf"]
        assert args.degrees == 90
        assert args.output == Path("out.pdf")

    def test_merge_many_inputs(self):
        args = create_parser().parse_args(["merge", "a.pdf", "b.pdf", "c.pdf", "-o", "all.pdf"])
        assert args.inputs == ["a.pdf", "b.pdf", "c.pdf"]

    def test_config_flag(self):
        args = create_parser().parse_args(["check", "--config", "massage.yaml"])
        assert args.config == Path("massage.yaml")

    def test_verbosity(self):
        args = create_parser().parse_args(["meta", "a.pdf", "-vv"])
        assert args.verbose == 2

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["shred", "a.pdf"])

    def test_degrees_must_be_integer(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["rotate", "a.pdf", "--degrees", "ninety"])


class TestCheckArguments:
    """Test per-command argument checks."""

    @pytest.mark.parametrize(
        "argv,problem",
        [
            (["meta"], "needs at least one input"),
            (["merge", "a.pdf", "-o", "x.pdf"], "at least two inputs"),
            (["rotate", "a.pdf", "b.pdf", "--degrees", "90", "-o", "x.pdf"], "exactly one input"),
            (["rotate", "a.pdf", "--degrees", "90"], "needs --output"),
            (["rotate", "a.pdf", "-o", "x.pdf"], "needs --degrees"),
            (["burst", "a.pdf"], "needs --output"),
            (["thumbnail", "a.pdf", "-o", "t.png"], "needs --size"),
            (["image-to-pdf", "a.png", "-o", "a.pdf"], "needs --dpi"),
        ],
    )
    def test_problems(self, argv, problem):
        assert problem in check_arguments(create_parser().parse_args(argv))

    @pytest.mark.parametrize(
        "argv",
        [
            ["check"],
            ["meta", "a.pdf", "b.pdf"],
            ["rotate", "a.pdf", "--degrees", "33", "-o", "x.pdf"],
            ["merge", "a.pdf", "b.pdf", "-o", "x.pdf"],
            ["burst", "a.pdf", "-o", "pages"],
            ["thumbnail", "a.pdf", "--size", "200x200", "-o", "t.png"],
            ["image-to-pdf", "a.png", "--dpi", "300", "-o", "a.pdf"],
        ],
    )
    def test_valid(self, argv):
        assert check_arguments(create_parser().parse_args(argv)) is None


class TestOpenInput:
    """Test mapping CLI inputs to document sources."""

    def test_url(self):
        with ExitStack() as stack:
            assert open_input("https://example.com/a.pdf", stack) == "https://example.com/a.pdf"

    def test_stdin(self):
        fake_stdin = io.TextIOWrapper(io.BytesIO(b"%PDF"))
        with patch.object(sys, "stdin", fake_stdin):
            with ExitStack() as stack:
                assert open_input("-", stack) is fake_stdin.buffer

    def test_file_closed_with_stack(self, temp_pdf):
        with ExitStack() as stack:
            f = open_input(str(temp_pdf), stack)
            assert f.read(4) == b"%PDF"
        assert f.closed


class TestMain:
    """Test main CLI entry point."""

    def test_version(self, caplog):
        with caplog.at_level(logging.INFO, logger="pdfmassage"):
            result = main(["--version"])
        assert result == 0
        assert "pdfmassage 0.1.0" in caplog.text

    def test_no_args_prints_help(self, capsys):
        result = main([])
        assert result == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_argument_problem(self, caplog):
        with caplog.at_level(logging.ERROR, logger="pdfmassage"):
            result = main(["rotate", "a.pdf", "-o", "x.pdf"])
        assert result == 1
        assert "needs --degrees" in caplog.text

    def test_missing_config(self, temp_dir, caplog):
        with caplog.at_level(logging.ERROR, logger="pdfmassage"):
            result = main(["check", "-c", str(temp_dir / "missing.yaml")])
        assert result == 1
        assert "not found" in caplog.text

    def test_invalid_config(self, temp_dir, caplog):
        bad = temp_dir / "bad.yaml"
        bad.write_text("unit: furlong\n")
        with caplog.at_level(logging.ERROR, logger="pdfmassage"):
            result = main(["check", "-c", str(bad)])
        assert result == 1
        assert "furlong" in caplog.text

    def test_check(self, cli_config, caplog):
        with patch("shutil.which", return_value="/usr/bin/tool"):
            with caplog.at_level(logging.INFO, logger="pdfmassage"):
                result = main(["check", "-c", str(cli_config)])
        assert result == 0
        assert "Environment OK" in caplog.text

    def test_check_missing_tools(self, cli_config, caplog):
        with patch("shutil.which", return_value=None):
            with caplog.at_level(logging.INFO, logger="pdfmassage"):
                result = main(["check", "-c", str(cli_config)])
        assert result == 1
        assert "tools.pdftk" in caplog.text

    def test_meta(self, fake_massager, cli_config, temp_pdf, caplog):
        with caplog.at_level(logging.INFO, logger="pdfmassage"):
            result = main(["meta", str(temp_pdf), "-c", str(cli_config)])
        assert result == 0
        assert "PDF, 4 x 6 in, 1 page(s)" in caplog.text

    def test_rotate_writes_output(self, fake_massager, cli_config, temp_pdf, temp_dir, leftovers):
        out = temp_dir / "out" / "rotated.pdf"
        result = main(["rotate", str(temp_pdf), "--degrees", "90", "-o", str(out), "-c", str(cli_config)])
        assert result == 0
        assert out.read_bytes().startswith(b"converted:%PDF")
        assert fake_massager.calls[0]["args"][1] == "90"
        assert leftovers() == []

    def test_rotate_invalid_degrees(self, fake_massager, cli_config, temp_pdf, temp_dir, caplog):
        out = temp_dir / "rotated.pdf"
        with caplog.at_level(logging.ERROR, logger="pdfmassage"):
            result = main(["rotate", str(temp_pdf), "--degrees", "33", "-o", str(out), "-c", str(cli_config)])
        assert result == 1
        assert "Rotation degrees must be 90, 180, 270" in caplog.text
        assert not out.exists()
        assert fake_massager.calls == []

    def test_merge(self, fake_massager, cli_config, temp_dir):
        a, b = temp_dir / "a.pdf", temp_dir / "b.pdf"
        a.write_bytes(b"%PDF-a")
        b.write_bytes(b"%PDF-b")
        out = temp_dir / "both.pdf"
        assert main(["merge", str(a), str(b), "-o", str(out), "-c", str(cli_config)]) == 0
        assert out.read_bytes() == b"%PDF-a%PDF-b"

    def test_burst_writes_pages(self, fake_massager, cli_config, temp_pdf, temp_dir):
        pages_dir = temp_dir / "pages"
        assert main(["burst", str(temp_pdf), "-o", str(pages_dir), "-c", str(cli_config)]) == 0
        names = sorted(p.name for p in pages_dir.iterdir())
        assert names == ["test_page_001.pdf", "test_page_002.pdf", "test_page_003.pdf"]
        assert (pages_dir / "test_page_002.pdf").read_bytes() == b"page 2"

    def test_missing_input_file(self, fake_massager, cli_config, temp_dir, caplog):
        with caplog.at_level(logging.ERROR, logger="pdfmassage"):
            result = main(["meta", str(temp_dir / "nope.pdf"), "-c", str(cli_config)])
        assert result == 1
        assert "nope.pdf" in caplog.text

    def test_invalid_document(self, fake_massager, cli_config, temp_dir, caplog):
        junk = temp_dir / "junk.pdf"
        junk.write_bytes(b"not a pdf")
        with caplog.at_level(logging.ERROR, logger="pdfmassage"):
            result = main(["meta", str(junk), "-c", str(cli_config)])
        assert result == 1
        assert "Document provided is invalid" in caplog.text
