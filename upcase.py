#!/usr/bin/env python3
"""
Command line entry point for the uppercase stream pipeline.

Examples:
  upcase --file=hello.txt                  # writes out.txt next to the program
  BASE_PATH=files/ upcase --file=hello.txt --out
  cat hello.txt | upcase --in --compress   # writes out.txt.gz
  upcase --file=data.gz --uncompress --out
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from pipeline_configs import DEFAULT_OUT_FILENAME, DEFAULT_TIMEOUT, PipelineConfig
from pipeline_errors import PipelineError, UsageError
from pipeline_monitoring import PipelineMonitor
from stream_pipeline import execute

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class PipelineArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports bad usage as UsageError instead of exiting"""

    def error(self, message):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = PipelineArgumentParser(
        prog="upcase",
        description="Uppercase a file or stdin, with optional gzip on either side.",
        add_help=False,
    )
    parser.add_argument('--help', action='store_true',
                        help='print this help')
    parser.add_argument('--in', dest='stdin', action='store_true',
                        help='read file from stdin (same as -)')
    parser.add_argument('--file', metavar='FILENAME',
                        help='read file from FILENAME, relative to BASE_PATH')
    parser.add_argument('--outfile', metavar='FILENAME',
                        help=f'write to FILENAME under BASE_PATH (default: {DEFAULT_OUT_FILENAME})')
    parser.add_argument('--uncompress', action='store_true',
                        help='uncompress input file with gzip')
    parser.add_argument('--compress', action='store_true',
                        help='compress output with gzip (adds .gz to the output file)')
    parser.add_argument('--out', action='store_true',
                        help='print output to stdout instead of a file')
    parser.add_argument('--timeout', type=float, metavar='SECONDS',
                        help=f'give up after SECONDS (default: $PIPELINE_TIMEOUT or {DEFAULT_TIMEOUT})')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='debug logging on stderr')
    parser.add_argument('inputs', nargs='*', metavar='-',
                        help='"-" reads from stdin')
    return parser


def configure_logging(verbose: bool = False) -> None:
    """Set up stderr logging from ``--verbose`` or ``LOG_LEVEL``.

    Raises ``UsageError`` for a ``LOG_LEVEL`` that is not a logging level name.
    """
    if verbose:
        level = logging.DEBUG
    else:
        name = os.environ.get("LOG_LEVEL", "WARNING").upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise UsageError(f"LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL, not {name!r}")
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def report_error(err: Optional[Exception], parser: argparse.ArgumentParser,
                 show_help: bool = False) -> int:
    """Print ``err`` to stderr, optionally the help text to stdout, and return the exit code"""
    print(f"Error: {err}" if err else "", file=sys.stderr)
    if show_help:
        print("")
        parser.print_help(sys.stdout)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        return report_error(e, parser, show_help=True)

    try:
        configure_logging(args.verbose)
    except UsageError as e:
        return report_error(e, parser)

    if args.help or not argv:
        return report_error(None, parser, show_help=True)

    monitor = PipelineMonitor()
    try:
        config = PipelineConfig.from_args(args, default_base=Path(__file__).parent)
        result = asyncio.run(execute(config, monitor))
    except UsageError as e:
        return report_error(e, parser, show_help=True)
    except PipelineError as e:
        logger.debug(f"Pipeline failed: {e.log_context()}")
        return report_error(e, parser)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return report_error(e, parser)

    logger.info(f"Stage metrics: {monitor.get_summary()}")
    if result.output_path is not None and not config.use_stdin:
        print("Complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
