"""Conversion API with progressive disclosure for mojibake repair.

This module provides module-level functions for one-off conversions of files,
streams, byte strings and short pieces of text, and the ``MojibakeRepairer``
class for repeated conversions with a shared configuration.
"""

import io
import time
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Optional, Union

from mojibake_repair.character import (
    ConversionResult,
    ProgressCallback,
    StreamDriver,
    UnsupportedEncodingError,
    stream_safe_name,
)
from mojibake_repair.shared import PipelineConfig, get_logger

PathLike = Union[str, Path]

# Constants for API operations
PREVIEW_LENGTH = 40  # Max length for text preview in logs
MS_PER_SECOND = 1000  # Milliseconds per second conversion


def _effective_config(
    config: Optional[PipelineConfig],
    correlation_id: Optional[str]
) -> PipelineConfig:
    return (config or PipelineConfig()).override(correlation_id=correlation_id)


def convert_file(
    input_path: PathLike,
    output_path: PathLike,
    config: Optional[PipelineConfig] = None,
    progress_callback: Optional[ProgressCallback] = None,
    correlation_id: Optional[str] = None
) -> ConversionResult:
    """Repair the file at ``input_path`` into ``output_path``.

    Args:
        input_path: Corrupted file to read
        output_path: File to write the repaired text to (created or truncated)
        config: Pipeline configuration (defaults to the Windows-1252/GBK chain)
        progress_callback: Called after every chunk with a ``StreamingProgress``
        correlation_id: Optional correlation ID for run tracking

    Returns:
        ConversionResult with counters, diagnostics and metrics

    Raises:
        OSError: If the input cannot be read or the output cannot be written
        SegmentationFailedError: Under ``FailurePolicy.ABORT``
        UnsupportedEncodingError: Under ``FailurePolicy.ABORT``

    Examples:
        >>> result = convert_file("broken.txt", "fixed.txt")
        >>> result.success
        True

        Corrupted through ISO-8859-1 instead of Windows-1252:
        >>> result = convert_file("broken.txt", "fixed.txt", PipelineConfig.latin_1())
    """
    effective = _effective_config(config, correlation_id)
    logger = get_logger(__name__, effective.correlation_id, "convert_file")
    logger.info(
        "Starting file conversion",
        extra={"input_path": str(input_path), "output_path": str(output_path)}
    )
    try:
        return StreamDriver(effective, progress_callback).convert_file(input_path, output_path)
    except Exception:
        logger.exception("File conversion failed", extra={"input_path": str(input_path)})
        raise


def convert_stream(
    source: BinaryIO,
    sink: BinaryIO,
    config: Optional[PipelineConfig] = None,
    progress_callback: Optional[ProgressCallback] = None,
    total_bytes: Optional[int] = None,
    correlation_id: Optional[str] = None
) -> ConversionResult:
    """Repair everything readable from ``source`` into ``sink``.

    Neither stream is closed. ``total_bytes`` is only used for progress.

    Examples:
        >>> import sys
        >>> result = convert_stream(sys.stdin.buffer, sys.stdout.buffer)
    """
    effective = _effective_config(config, correlation_id)
    driver = StreamDriver(effective, progress_callback)
    return driver.run(source, sink, total_bytes=total_bytes)


def convert_bytes(
    data: bytes,
    config: Optional[PipelineConfig] = None,
    correlation_id: Optional[str] = None
) -> bytes:
    """Repair an in-memory byte string.

    The bytes go through the same chunked driver as files, so the result is
    identical to converting a file with the same content.

    Examples:
        >>> convert_bytes("ÖÐÎÄ".encode("utf-8")).decode("utf-8")
        '中文'
    """
    sink = io.BytesIO()
    convert_stream(
        io.BytesIO(data),
        sink,
        config,
        total_bytes=len(data),
        correlation_id=correlation_id,
    )
    return sink.getvalue()


def repair_text(
    text: str,
    config: Optional[PipelineConfig] = None,
    correlation_id: Optional[str] = None
) -> str:
    """Repair a short corrupted string, such as a single word seen in a file.

    The text is stored in the input encoding, converted, and decoded again with
    the output encoding.

    Raises:
        UnsupportedEncodingError: If the input or output encoding is unknown

    Examples:
        >>> repair_text("ÖÐÎÄ")
        '中文'
    """
    effective = _effective_config(config, correlation_id)
    logger = get_logger(__name__, effective.correlation_id, "repair_text")
    logger.debug(
        "Repairing text",
        extra={
            "preview": (
                text[:PREVIEW_LENGTH] + "..." if len(text) > PREVIEW_LENGTH else text
            )
        }
    )
    data = _encode_text(text, effective.input_encoding)
    return _decode_text(convert_bytes(data, effective), effective.output_encoding)


class MojibakeRepairer:
    """Reusable converter with a shared configuration and usage statistics.

    Attributes:
        config: Current pipeline configuration
        correlation_id: Correlation ID for run tracking

    Examples:
        Basic usage with the default chain:
        >>> repairer = MojibakeRepairer()
        >>> repairer.repair_text("ÖÐÎÄ")
        '中文'

        Batch conversion:
        >>> repairer = MojibakeRepairer(PipelineConfig(chunk_size=65536))
        >>> results = [repairer.convert_file(src, dst) for src, dst in pairs]
        >>> repairer.statistics["successful_conversions"] == len(pairs)
        True
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        self.config = _effective_config(config, correlation_id)
        self.correlation_id = self.config.correlation_id
        self.logger = get_logger(__name__, self.correlation_id, "mojibake_repairer")

        self._conversion_count = 0
        self._successful_conversions = 0
        self._failed_conversions = 0
        self._bytes_read = 0
        self._bytes_written = 0
        self._total_processing_time = 0.0

        self.logger.info(
            "MojibakeRepairer initialized",
            extra={"encodings": self.config.encodings, "chunk_size": self.config.chunk_size}
        )

    def convert_file(
        self,
        input_path: PathLike,
        output_path: PathLike,
        progress_callback: Optional[ProgressCallback] = None
    ) -> ConversionResult:
        """Repair ``input_path`` into ``output_path`` with the current configuration."""
        driver = StreamDriver(self.config, progress_callback)
        return self._track(lambda: driver.convert_file(input_path, output_path))

    def convert_stream(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        progress_callback: Optional[ProgressCallback] = None,
        total_bytes: Optional[int] = None
    ) -> ConversionResult:
        """Repair ``source`` into ``sink`` with the current configuration."""
        driver = StreamDriver(self.config, progress_callback)
        return self._track(lambda: driver.run(source, sink, total_bytes=total_bytes))

    def convert_bytes(self, data: bytes) -> bytes:
        """Repair an in-memory byte string with the current configuration."""
        sink = io.BytesIO()
        self.convert_stream(io.BytesIO(data), sink, total_bytes=len(data))
        return sink.getvalue()

    def repair_text(self, text: str) -> str:
        """Repair a short corrupted string with the current configuration."""
        data = _encode_text(text, self.config.input_encoding)
        return _decode_text(self.convert_bytes(data), self.config.output_encoding)

    def _track(self, run: Callable[[], ConversionResult]) -> ConversionResult:
        start_time = time.time()
        try:
            result = run()
        except Exception:
            self._conversion_count += 1
            self._failed_conversions += 1
            self._total_processing_time += (time.time() - start_time) * MS_PER_SECOND
            self.logger.exception(
                "Conversion failed",
                extra={"total_conversions": self._conversion_count}
            )
            raise

        self._conversion_count += 1
        if result.success:
            self._successful_conversions += 1
        self._bytes_read += result.bytes_read
        self._bytes_written += result.bytes_written
        self._total_processing_time += result.metrics.processing_time_ms

        self.logger.info(
            "Conversion completed",
            extra={
                "success": result.success,
                "bytes_read": result.bytes_read,
                "total_conversions": self._conversion_count,
                "success_rate": self._successful_conversions / self._conversion_count,
            }
        )
        return result

    def reconfigure(self, config: PipelineConfig) -> None:
        """Replace the configuration used by later conversions.

        The correlation ID of the repairer is kept unless ``config`` sets one.
        """
        if config.correlation_id is None:
            config = config.override(correlation_id=self.correlation_id)
        self.config = config
        self.correlation_id = self.config.correlation_id
        self.logger = self.logger.bind(self.correlation_id)
        self.logger.info(
            "Repairer reconfigured",
            extra={"encodings": self.config.encodings, "chunk_size": self.config.chunk_size}
        )

    @property
    def statistics(self) -> Dict[str, Any]:
        """Get repairer usage statistics.

        Returns:
            Dictionary with conversion counts, byte totals and timing
        """
        return {
            "total_conversions": self._conversion_count,
            "successful_conversions": self._successful_conversions,
            "failed_conversions": self._failed_conversions,
            "success_rate": (
                self._successful_conversions / self._conversion_count
                if self._conversion_count > 0 else 0.0
            ),
            "bytes_read": self._bytes_read,
            "bytes_written": self._bytes_written,
            "total_processing_time_ms": self._total_processing_time,
            "average_processing_time_ms": (
                self._total_processing_time / self._conversion_count
                if self._conversion_count > 0 else 0.0
            ),
            "correlation_id": self.correlation_id,
        }

    def reset_statistics(self) -> None:
        """Reset repairer usage statistics."""
        self._conversion_count = 0
        self._successful_conversions = 0
        self._failed_conversions = 0
        self._bytes_read = 0
        self._bytes_written = 0
        self._total_processing_time = 0.0

        self.logger.info("Repairer statistics reset")


def _encode_text(text: str, encoding: str) -> bytes:
    try:
        return text.encode(encoding, errors="replace")
    except LookupError as e:
        raise UnsupportedEncodingError(encoding, "input") from e


def _decode_text(data: bytes, encoding: str) -> str:
    try:
        return data.decode(stream_safe_name(encoding), errors="replace")
    except LookupError as e:
        raise UnsupportedEncodingError(encoding, "output") from e
