# src/main.py - v1
"""CLI entry points.

Usage:
    podbatch --in <pod5_dir> --dorado <dorado> --out <reads.fastq.zst> [options]
    podbatch-stats <chan_stats.csv>

Exit codes:
    0    success
    1    a batch failed (staging, basecaller or compressor error)
    2    usage or configuration error
    3    setup error (no input files, staging dir unavailable)
    4    stream integrity error in the pressure monitor
    130  interrupted
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from podbatch.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BATCH_FAILED = 1
EXIT_USAGE = 2
EXIT_SETUP = 3
EXIT_STREAM_INTEGRITY = 4
EXIT_INTERRUPTED = 130


def main(argv: list[str] | None = None) -> int:
    """Batch basecalling entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    from podbatch.config.settings import ConfigurationError

    try:
        settings = _load_settings(args)
    except (ConfigurationError, ValueError) as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    _setup_logging(settings, args.verbose)

    try:
        return _cmd_run(args, settings)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED


def stats_main(argv: list[str] | None = None) -> int:
    """Summarize a pipe pressure report."""
    parser = argparse.ArgumentParser(
        prog="podbatch-stats",
        description="Summarize a pipe pressure report written with --monitor-pressure",
    )
    parser.add_argument("report", type=Path, help="CSV report to read")
    args = parser.parse_args(argv)
    return _cmd_stats(args)


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="podbatch",
        description=f"podbatch v{__version__}: batch pod5 basecalling piped into zstd",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--in", dest="input", type=Path, required=True,
        help="Path to pod5s",
    )
    parser.add_argument(
        "--dorado", required=True,
        help="Path to dorado",
    )
    parser.add_argument(
        "--out", type=Path, required=True,
        help="Output file path (appended to)",
    )
    parser.add_argument(
        "--chunk", type=int, default=None,
        help="chunk size (default: 50)",
    )
    parser.add_argument(
        "--monitor-pressure", action="store_true",
        help="monitor pipe pressure between dorado and zstd, output to file",
    )
    parser.add_argument(
        "--report", type=Path, default=None,
        help="Pipe pressure report path (default: chan_stats.csv)",
    )
    parser.add_argument(
        "--staging-dir", type=Path, default=None,
        help="Scratch directory for batch symlinks, must not exist (default: tmpdir)",
    )
    parser.add_argument(
        "--compressor", default=None,
        help="Compressor executable (default: zstd)",
    )
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Per-batch timeout in seconds (default: none)",
    )
    return parser


def _load_settings(args: argparse.Namespace):
    """Build Settings from .env/environment with CLI flags on top."""
    from podbatch.config.settings import load_settings

    overrides: dict[str, object] = {}
    if args.chunk is not None:
        overrides["chunk_size"] = args.chunk
    if args.monitor_pressure:
        overrides["monitor_pressure"] = True
    if args.report is not None:
        overrides["report_path"] = args.report
    if args.staging_dir is not None:
        overrides["staging_dir"] = args.staging_dir
    if args.compressor is not None:
        overrides["compressor_path"] = args.compressor
    if args.timeout is not None:
        overrides["batch_timeout_seconds"] = args.timeout
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    return load_settings(**overrides)


def _cmd_run(args: argparse.Namespace, settings) -> int:
    """Discover, stage and basecall every batch."""
    from podbatch.batch.models import BatchState
    from podbatch.batch.scanner import discover
    from podbatch.batch.scheduler import BatchScheduler
    from podbatch.batch.staging import StagingArea
    from podbatch.core.errors import SetupError, StreamIntegrityError
    from podbatch.pipeline.stage import PipelineStage

    try:
        files = discover(args.input, extension=settings.source_extension)
    except (SetupError, ValueError) as exc:
        logger.error("Fatal: %s", exc)
        return EXIT_SETUP

    stage = PipelineStage.from_settings(
        settings, basecaller_path=args.dorado, output_path=args.out,
    )

    try:
        with StagingArea(settings.staging_dir, settings.staging_naming) as staging:
            state = BatchState(
                files=files,
                chunk_size=settings.chunk_size,
                staging_dir=staging.path,
                output_path=args.out,
                monitor_enabled=settings.monitor_pressure,
            )
            summary = BatchScheduler(state, staging, stage).run()
    except SetupError as exc:
        logger.error("Fatal: %s", exc)
        return EXIT_SETUP

    print(f"\nRun {'complete' if summary.success else 'aborted'}:")
    print(f"  Files found:  {summary.total_files}")
    print(f"  Batches done: {summary.batches_completed}")
    print(f"  Cursor:       {summary.cursor}")
    print(f"  Duration:     {summary.duration_seconds:.1f}s")

    if summary.success:
        return EXIT_OK
    print(f"  Error:        {summary.error}")
    if isinstance(summary.error, StreamIntegrityError):
        return EXIT_STREAM_INTEGRITY
    return EXIT_BATCH_FAILED


def _cmd_stats(args: argparse.Namespace) -> int:
    """Print a pressure summary for a timing report."""
    from podbatch.tracking.exporter import export_pressure_summary, load_timing_csv
    from podbatch.tracking.stats_aggregator import summarize_samples

    report: Path = args.report
    if not report.is_file():
        print(f"Report not found: {report}", file=sys.stderr)
        return 1
    try:
        samples = load_timing_csv(report)
    except ValueError as exc:
        print(f"Malformed report: {exc}", file=sys.stderr)
        return 1

    print(export_pressure_summary(summarize_samples(samples)))
    return 0


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from podbatch.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
