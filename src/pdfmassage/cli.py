"""Command-line interface for pdfmassage."""

import argparse
import asyncio
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Any

from pdfmassage import __version__
from pdfmassage.logging_config import get_logger

logger = get_logger(__name__)

COMMANDS = ("meta", "rotate", "merge", "burst", "thumbnail", "image-to-pdf", "check")

# commands that write a single output file
SINGLE_OUTPUT = ("rotate", "merge", "thumbnail", "image-to-pdf")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="massage",
        description="Inspect, rotate, merge, burst and convert PDFs with ImageMagick and pdftk.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  massage meta label.pdf                            Print type, size and page count
  massage rotate label.pdf --degrees 90 -o out.pdf  Rotate every page clockwise
  massage merge a.pdf b.pdf -o both.pdf             Concatenate documents
  massage burst doc.pdf -o ./pages                  One PDF per page
  massage thumbnail doc.pdf --size 200x200 -o t.png Render the first page small
  massage image-to-pdf scan.png --dpi 300 -o s.pdf  Wrap an image in a PDF
  massage check -c massage.yaml                     Check tools and scratch dir

Inputs may be file paths, http(s) URLs, or - for stdin.
""",
    )

    parser.add_argument("-V", "--version", action="store_true", help="Show version information and exit")
    parser.add_argument("command", nargs="?", choices=COMMANDS, help="Operation to run")
    parser.add_argument("inputs", nargs="*", help="Input files, URLs, or - for stdin")
    parser.add_argument("-o", "--output", type=Path, help="Output file (directory for burst)")
    parser.add_argument("-c", "--config", type=Path, help="Path to YAML configuration file")
    parser.add_argument("--degrees", type=int, help="Rotation for 'rotate': 90, 180 or 270")
    parser.add_argument("--size", help="Geometry for 'thumbnail', e.g. 200x200")
    parser.add_argument("--dpi", help="Resolution for 'image-to-pdf'")

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for verbose, -vv for debug)",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress all output except errors")
    parser.add_argument("--log-file", type=Path, help="Write logs to file (includes all levels)")

    return parser


def open_input(value: str, stack: ExitStack) -> Any:
    """Turn a CLI input into a document source: URL string, stdin or open file."""
    if value == "-":
        return sys.stdin.buffer
    if "://" in value:
        return value
    return stack.enter_context(open(value, "rb"))


def cmd_check(config) -> int:
    """Report tool and scratch directory problems."""
    from pdfmassage.validation import check_environment

    result = check_environment(config)
    for issue in result.issues:
        if issue.level == "error":
            logger.error("%s", issue)
        else:
            logger.warning("%s", issue)
    if result.has_errors:
        logger.error("Environment check failed with %d error(s)", len(result.errors))
        return 1
    logger.info("Environment OK (scratch directory: %s)", config.scratch_dir)
    return 0


async def run_command(parsed: argparse.Namespace, config) -> int:
    """Run one document command."""
    from pdfmassage.operations import Massager

    massager = Massager(config)
    command = parsed.command

    with ExitStack() as stack:
        sources = [open_input(v, stack) for v in parsed.inputs]

        if command == "meta":
            for value, source in zip(parsed.inputs, sources):
                meta = await massager.get_metadata(source)
                logger.info(
                    "%s: %s, %g x %g %s, %d page(s)",
                    value,
                    meta.file_type,
                    meta.width,
                    meta.length,
                    config.unit.value,
                    meta.page_count,
                )
            return 0

        if command == "burst":
            pages = await massager.burst_pdf(sources[0])
            parsed.output.mkdir(parents=True, exist_ok=True)
            stem = Path(parsed.inputs[0]).stem if parsed.inputs[0] != "-" else "stdin"
            for page in pages:
                out = parsed.output / f"{stem}_page_{page.page:03d}.pdf"
                out.write_bytes(page.content)
                logger.info("Wrote %s", out)
            return 0

        if command == "rotate":
            data = await massager.rotate_pdf(sources[0], parsed.degrees)
        elif command == "merge":
            data = await massager.merge(*sources)
        elif command == "thumbnail":
            data = await massager.generate_thumbnail(sources[0], parsed.size)
        else:
            data = await massager.image_to_pdf(sources[0], parsed.dpi)

    parsed.output.parent.mkdir(parents=True, exist_ok=True)
    parsed.output.write_bytes(data)
    logger.info("Wrote %s (%d bytes)", parsed.output, len(data))
    return 0


def check_arguments(parsed: argparse.Namespace) -> str | None:
    """Return a usage problem for the chosen command, or None."""
    command = parsed.command
    if command == "check":
        return None
    if not parsed.inputs:
        return f"'{command}' needs at least one input"
    if command == "merge" and len(parsed.inputs) < 2:
        return "'merge' needs at least two inputs"
    if command in ("rotate", "burst", "thumbnail", "image-to-pdf") and len(parsed.inputs) != 1:
        return f"'{command}' takes exactly one input"
    if (command in SINGLE_OUTPUT or command == "burst") and not parsed.output:
        return f"'{command}' needs --output"
    if command == "rotate" and parsed.degrees is None:
        return "'rotate' needs --degrees"
    if command == "thumbnail" and not parsed.size:
        return "'thumbnail' needs --size"
    if command == "image-to-pdf" and parsed.dpi is None:
        return "'image-to-pdf' needs --dpi"
    return None


def main(args: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    from pdfmassage.logging_config import setup_logging

    setup_logging(
        verbosity=parsed.verbose,
        quiet=parsed.quiet,
        log_file=parsed.log_file,
    )

    if parsed.version:
        logger.info("pdfmassage %s", __version__)
        return 0

    if not parsed.command:
        parser.print_help()
        return 1

    problem = check_arguments(parsed)
    if problem:
        logger.error("%s", problem)
        return 1

    from pdfmassage.config import MassageConfig, load_config
    from pdfmassage.exceptions import ConfigError, MassageError

    try:
        config = load_config(parsed.config) if parsed.config else MassageConfig()
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except FileNotFoundError:
        logger.error("Configuration file not found: %s", parsed.config)
        return 1

    if parsed.command == "check":
        return cmd_check(config)

    try:
        return asyncio.run(run_command(parsed, config))
    except MassageError as e:
        logger.error("%s", e)
        return 1
    except OSError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
