"""
Pipeline Configuration
======================

Immutable configuration snapshot computed once at startup from the parsed
command line and the environment. The output path is final here: the
``.gz`` suffix is applied before any sink is created.
"""

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from pipeline_errors import UsageError

logger = logging.getLogger(__name__)

DEFAULT_OUT_FILENAME = "out.txt"
GZIP_SUFFIX = ".gz"
DEFAULT_TIMEOUT = 0.1  # seconds
DEFAULT_CHUNK_SIZE = 64 * 1024  # 64KB


def resolve_base_path(environ: Optional[Mapping[str, str]] = None,
                      default: Optional[Path] = None) -> Path:
    """Resolve the base directory for relative file names.

    ``BASE_PATH`` from the environment wins; otherwise ``default`` (the
    directory holding the program) is used.
    """
    environ = os.environ if environ is None else environ
    base = environ.get("BASE_PATH") or default or Path(__file__).parent
    return Path(base).resolve()


def _join_under_base(base_path: Path, name: str, what: str) -> Path:
    if not name:
        raise UsageError(f"Empty {what} name")
    if '\x00' in name:
        raise UsageError(f"{what.capitalize()} name contains null bytes: {name!r}")
    return base_path / name


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration settings for one pipeline run"""

    base_path: Path
    output_path: Path
    input_path: Optional[Path] = None
    use_stdin: bool = False
    compress: bool = False
    uncompress: bool = False
    to_stdout: bool = False
    timeout: float = DEFAULT_TIMEOUT
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        """Validate configuration parameters"""
        if self.timeout <= 0:
            raise UsageError(f"timeout must be positive, got {self.timeout}")
        if self.chunk_size <= 0:
            raise UsageError(f"chunk_size must be positive, got {self.chunk_size}")
        if not self.use_stdin and self.input_path is None:
            raise UsageError("Usage incorrect.")
        if self.compress and not self.to_stdout and not str(self.output_path).endswith(GZIP_SUFFIX):
            raise UsageError(f"Compressed output file must end with {GZIP_SUFFIX}: {self.output_path}")

    @classmethod
    def from_args(cls, args: argparse.Namespace,
                  environ: Optional[Mapping[str, str]] = None,
                  default_base: Optional[Path] = None) -> 'PipelineConfig':
        """Build the configuration from parsed CLI arguments and the environment"""
        environ = os.environ if environ is None else environ
        base_path = resolve_base_path(environ, default_base)

        use_stdin = bool(args.stdin or '-' in (args.inputs or []))
        input_path = None
        if not use_stdin and args.file is not None:
            input_path = _join_under_base(base_path, args.file, "input file")

        output_path = _join_under_base(base_path, args.outfile or DEFAULT_OUT_FILENAME,
                                       "output file")
        if args.compress and not args.out:
            output_path = output_path.with_name(output_path.name + GZIP_SUFFIX)

        timeout = args.timeout
        if timeout is None:
            timeout = _env_float(environ, "PIPELINE_TIMEOUT", DEFAULT_TIMEOUT)

        config = cls(
            base_path=base_path,
            output_path=output_path,
            input_path=input_path,
            use_stdin=use_stdin,
            compress=bool(args.compress),
            uncompress=bool(args.uncompress),
            to_stdout=bool(args.out),
            timeout=timeout,
        )
        logger.debug(f"Configuration: {config}")
        return config


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    value = environ.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise UsageError(f"{name} must be a number, got {value!r}")
