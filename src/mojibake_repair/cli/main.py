"""Main CLI entry point for the mojibake-convert command-line tool.

Repairs one corrupted file per invocation::

    mojibake-convert <input_path> <output_path>
        [input_encoding] [middle_encoding] [origin_encoding] [output_encoding]
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, TextIO

from mojibake_repair import __version__
from mojibake_repair.character import ConversionResult, StreamDriver, StreamingProgress
from mojibake_repair.shared.config import (
    PRESETS,
    ConfigError,
    FailurePolicy,
    PipelineConfig,
)
from mojibake_repair.shared.logging import configure_logging, get_logger
from mojibake_repair.shared.result import ConversionError, DiagnosticSeverity

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130  # Standard exit code for SIGINT

MIN_ARGUMENTS = 2
MAX_ARGUMENTS = 6
MAX_REPORTED_ERRORS = 3

USAGE_MESSAGE = (
    "Wrong number of arguments! Got {count} arguments. "
    "This command requires 2 to 6 arguments:\n"
    "input_path, output_path, "
    "[input_encoding], [middle_encoding], [origin_encoding], [output_encoding]"
)


class ProgressTracker:
    """Progress display on stderr for a single conversion."""

    def __init__(
        self,
        description: str = "Converting",
        stream: Optional[TextIO] = None,
        interval: float = 1.0
    ):
        self.description = description
        self.stream = stream or sys.stderr
        self.interval = interval
        self.start_time = time.time()
        self.last_update = 0.0
        self._shown = False

    def __call__(self, progress: StreamingProgress) -> None:
        """Update the display; used as the driver's progress callback."""
        current_time = time.time()
        done = progress.total_bytes > 0 and progress.processed_bytes >= progress.total_bytes

        # Update every interval or on completion
        if current_time - self.last_update >= self.interval or done:
            self._display_progress(progress)
            self.last_update = current_time

    def _display_progress(self, progress: StreamingProgress) -> None:
        elapsed = time.time() - self.start_time
        if progress.total_bytes <= 0:
            print(f"\r{self.description}: {progress.processed_bytes} bytes",
                  end="", file=self.stream)
            self._shown = True
            return

        percentage = progress.fraction * 100
        if progress.processed_bytes > 0 and elapsed > 0:
            rate = progress.processed_bytes / elapsed
            remaining = progress.total_bytes - progress.processed_bytes
            eta = remaining / rate if rate > 0 else 0
            eta_str = f", ETA: {eta:.0f}s" if eta > 0 else ""
        else:
            eta_str = ""

        progress_bar = "=" * int(percentage // 2)
        progress_bar += " " * (50 - len(progress_bar))

        print(f"\r{self.description}: [{progress_bar}] "
              f"{percentage:.1f}% ({progress.processed_bytes}/{progress.total_bytes}){eta_str}",
              end="", file=self.stream)
        self._shown = True

    def finish(self) -> None:
        """Terminate the progress line."""
        if self._shown:
            print(file=self.stream)
            self._shown = False


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="mojibake-convert",
        description=(
            "Repair text that was decoded with the wrong single-byte encoding and "
            "saved again, e.g. GBK text read as Windows-1252 and stored as UTF-8"
        ),
    )

    parser.add_argument("--version", action="version", version=__version__)

    parser.add_argument(
        "arguments",
        nargs="*",
        metavar="ARG",
        help=(
            "input_path output_path [input_encoding] [middle_encoding] "
            "[origin_encoding] [output_encoding] (defaults: utf-8 windows-1252 gbk utf-8)"
        )
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--config", "-c",
        type=Path,
        help="JSON configuration file (command-line options take precedence)"
    )
    source.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        help="Encoding chain preset"
    )

    parser.add_argument(
        "--chunk-size",
        type=int,
        help="Bytes read per iteration (default: 4096)"
    )
    parser.add_argument(
        "--max-carry-size",
        type=int,
        help="Most bytes deferred to the next read when no split point is found"
    )
    parser.add_argument(
        "--on-segmentation-failure",
        choices=[policy.value for policy in FailurePolicy],
        help="What to do when a chunk has no safe split point (default: continue)"
    )
    parser.add_argument(
        "--on-unsupported-encoding",
        choices=[policy.value for policy in FailurePolicy],
        help="What to do when an encoding name is unknown (default: continue)"
    )
    parser.add_argument(
        "--no-decoding-fallback",
        action="store_true",
        help="Do not locate split points by decoding when the byte scan fails"
    )

    parser.add_argument(
        "--report",
        choices=["none", "text", "json"],
        default="none",
        help="Print a run summary to stderr (default: none)"
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar on stderr"
    )
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Record memory use in the run summary"
    )

    # Global options
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Quiet output"
    )

    return parser


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Build the pipeline configuration from parsed arguments.

    Raises:
        ConfigError: If the configuration file cannot be read or is invalid
    """
    if args.config:
        config = PipelineConfig.from_file(args.config)
    elif args.preset:
        config = PRESETS[args.preset]()
    else:
        config = PipelineConfig()

    encodings = dict(zip(PipelineConfig.encoding_fields(), args.arguments[MIN_ARGUMENTS:]))

    max_carry_size = args.max_carry_size
    if (
        max_carry_size is None
        and args.chunk_size is not None
        and args.chunk_size > config.max_carry_size
    ):
        max_carry_size = args.chunk_size

    return config.override(
        chunk_size=args.chunk_size,
        max_carry_size=max_carry_size,
        segmentation_policy=(
            FailurePolicy(args.on_segmentation_failure)
            if args.on_segmentation_failure else None
        ),
        unsupported_encoding_policy=(
            FailurePolicy(args.on_unsupported_encoding)
            if args.on_unsupported_encoding else None
        ),
        enable_decoding_fallback=False if args.no_decoding_fallback else None,
        track_memory=True if args.profile else None,
        **encodings,
    )


def format_report(
    result: ConversionResult,
    config: PipelineConfig,
    input_path: str,
    output_path: str,
    format_type: str
) -> str:
    """Format a conversion result for output."""
    if format_type == "json":
        report = {
            "input_path": input_path,
            "output_path": output_path,
            "config": config.to_dict(),
        }
        report.update(result.to_dict())
        return json.dumps(report, indent=2)

    metrics = result.metrics
    chain = " -> ".join(config.encodings.values())
    status = "✓" if result.success else "✗"
    lines = [
        f"{status} {input_path} -> {output_path}",
        f"   Encodings: {chain}",
        f"   Read: {metrics.bytes_read} bytes, Written: {metrics.bytes_written} bytes, "
        f"Chunks: {metrics.chunks_processed}, Time: {metrics.processing_time_ms:.1f}ms",
    ]
    if result.byte_order is not None:
        bom = "from BOM" if result.bom_found else "assumed"
        lines.append(f"   Byte order: {result.byte_order.value} ({bom})")
    if result.segmentation_failures:
        lines.append(
            f"   Segmentation failures: {result.segmentation_failures} "
            f"(recovered {result.recovered_splits}, deferred {result.deferred_chunks}, "
            f"forced {result.forced_splits})"
        )
    if result.unsupported_encodings:
        lines.append(
            f"   Unsupported encodings: {', '.join(result.unsupported_encodings)} "
            f"({result.passthrough_buffers} buffers passed through)"
        )
    if config.track_memory:
        lines.append(
            f"   Peak memory: {metrics.peak_memory_bytes / (1024 * 1024):.1f}MB, "
            f"Delta: {metrics.memory_delta_bytes / (1024 * 1024):+.1f}MB"
        )

    errors = [
        d for d in result.diagnostics
        if d.severity in (DiagnosticSeverity.ERROR, DiagnosticSeverity.CRITICAL)
    ]
    for error in errors[:MAX_REPORTED_ERRORS]:
        lines.append(f"   Error: {error.message}")
    if len(errors) > MAX_REPORTED_ERRORS:
        lines.append(f"   ... and {len(errors) - MAX_REPORTED_ERRORS} more errors")

    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    count = len(args.arguments)
    if count < MIN_ARGUMENTS or count > MAX_ARGUMENTS:
        print(USAGE_MESSAGE.format(count=count), file=sys.stderr)
        return EXIT_USAGE

    # Set up logging verbosity
    if args.verbose:
        configure_logging(logging.DEBUG)
    elif args.quiet:
        configure_logging(logging.ERROR)
    else:
        configure_logging(logging.WARNING)

    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE

    input_path, output_path = args.arguments[0], args.arguments[1]
    logger = get_logger(__name__, config.correlation_id, "cli")
    tracker = ProgressTracker(f"Converting {Path(input_path).name}") if args.progress else None

    try:
        result = StreamDriver(config, progress_callback=tracker).convert_file(
            input_path, output_path
        )
    except KeyboardInterrupt:
        print("\nConversion interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED
    except ConversionError as e:
        print(f"Conversion aborted: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except OSError as e:
        logger.debug("I/O failure", extra={"input_path": input_path, "output_path": output_path})
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        if tracker is not None:
            tracker.finish()

    if args.report != "none":
        print(format_report(result, config, input_path, output_path, args.report),
              file=sys.stderr)

    return EXIT_SUCCESS if result.success else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
