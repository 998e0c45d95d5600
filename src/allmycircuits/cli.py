"""Command-line interface for all-my-circuits."""

import argparse
import logging
import sys

from allmycircuits import __version__
from allmycircuits.cleaning import clean_file
from allmycircuits.config import load_config
from allmycircuits.constants import DEFAULT_CONFIG_FILE
from allmycircuits.errors import AmcError
from allmycircuits.logging_setup import BASE_LOGGER, setup_logging
from allmycircuits.output_generators import create_bundle

logger = logging.getLogger(BASE_LOGGER)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amc",
        description=(
            "Concatenate the files of a directory tree, annotating each one "
            "with its path and its last Git commit."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-d", "--dir", default=".", help="Directory to scan.")
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help=f"Config file path (default: {DEFAULT_CONFIG_FILE}, optional).",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Write the bundle to this file instead of stdout.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Show progress information (-vv for debug output).",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report errors.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command")
    clean = subparsers.add_parser(
        "clean",
        help="Remove NUL bytes and control characters from a file.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    clean.add_argument("input", help="File to clean.")
    clean.add_argument("-o", "--output", default=None, help="Output file (default: overwrite input).")
    clean.add_argument("--backup", action="store_true", help="Keep a .backup copy when overwriting.")
    clean.add_argument("--report", action="store_true", help="Print what was removed.")
    clean.add_argument("--dry-run", action="store_true", help="Report only, write nothing.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the amc CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(-1 if args.quiet else args.verbose)

    try:
        if args.command == "clean":
            clean_file(
                args.input,
                args.output,
                backup=args.backup,
                report=args.report,
                dry_run=args.dry_run,
            )
            return 0

        config = load_config(args.config)
        create_bundle(
            args.dir,
            args.output,
            config,
            config_path=args.config,
            show_progress=args.output is not None and args.verbose > 0 and sys.stderr.isatty(),
        )
    except AmcError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
