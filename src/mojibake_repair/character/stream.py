"""Streaming, boundary-safe conversion driver.

The driver reads the source in fixed-size chunks, cuts every chunk at a safe
split point, prepends the bytes carried over from the previous chunk, runs the
four-stage re-encoder and writes the result. Iteration ``n`` produces the carry
buffer iteration ``n + 1`` depends on, so the loop is strictly sequential.

States::

    START -> BOM_CHECK (unmarked UTF-16 input only) -> LOOPING -> FINAL_CHUNK -> DONE
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Set, Tuple, Union

from ..shared.config import FailurePolicy, PipelineConfig
from ..shared.logging import get_logger
from ..shared.result import DiagnosticEntry, DiagnosticSeverity, PerformanceMetrics
from ..tools.profiling import ConversionProfiler
from .boundary import (
    BoundaryFinder,
    CarryBuffer,
    DecodingBoundaryFinder,
    SegmentationFailedError,
)
from .encoding import (
    BOM_LENGTH,
    BOMDetector,
    ByteOrder,
    EncodingDescriptor,
    UnsupportedEncodingError,
    fallback_descriptor,
    read_exactly,
    resolve_encoding,
    stream_safe_name,
)
from .reencoder import FourStageReencoder

PathLike = Union[str, Path]


class DriverState(Enum):
    """Lifecycle states of a conversion run."""
    START = "start"
    BOM_CHECK = "bom_check"
    LOOPING = "looping"
    FINAL_CHUNK = "final_chunk"
    DONE = "done"


@dataclass
class StreamingProgress:
    """Progress information for a conversion run.

    Attributes:
        processed_bytes: Bytes read from the source so far
        total_bytes: Total bytes to read (0 if unknown)
        processed_chunks: Number of chunks handled
        current_chunk_size: Size of the chunk just handled
    """
    processed_bytes: int = 0
    total_bytes: int = 0
    processed_chunks: int = 0
    current_chunk_size: int = 0

    @property
    def fraction(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return min(1.0, self.processed_bytes / self.total_bytes)


ProgressCallback = Callable[[StreamingProgress], None]


@dataclass
class ConversionResult:
    """Outcome of a conversion run with counters and diagnostics.

    Attributes:
        state: Final driver state
        byte_order: Resolved byte order for UTF-16 input, None otherwise
        bom_found: Whether a BOM was consumed from the input
        segmentation_failures: Chunks in which the byte scan found no split
        recovered_splits: Failures resolved by replaying the chain
        deferred_chunks: Failures resolved by carrying the whole chunk over
        forced_splits: Failures converted at the chunk edge (output may be wrong)
        passthrough_buffers: Buffers written unconverted due to unknown encodings
        unsupported_encodings: Encoding names that could not be resolved
        diagnostics: Diagnostic entries in the order they were raised
        metrics: Byte counts, timing and memory figures
    """
    state: DriverState = DriverState.START
    byte_order: Optional[ByteOrder] = None
    bom_found: bool = False
    segmentation_failures: int = 0
    recovered_splits: int = 0
    deferred_chunks: int = 0
    forced_splits: int = 0
    passthrough_buffers: int = 0
    unsupported_encodings: List[str] = field(default_factory=list)
    diagnostics: List[DiagnosticEntry] = field(default_factory=list)
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)

    @property
    def success(self) -> bool:
        """True when no diagnostic is ERROR or worse."""
        return not any(
            d.severity in (DiagnosticSeverity.ERROR, DiagnosticSeverity.CRITICAL)
            for d in self.diagnostics
        )

    @property
    def bytes_read(self) -> int:
        return self.metrics.bytes_read

    @property
    def bytes_written(self) -> int:
        return self.metrics.bytes_written

    @property
    def chunks_processed(self) -> int:
        return self.metrics.chunks_processed

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to a JSON-friendly dictionary."""
        return {
            "success": self.success,
            "state": self.state.value,
            "byte_order": self.byte_order.value if self.byte_order else None,
            "bom_found": self.bom_found,
            "segmentation_failures": self.segmentation_failures,
            "recovered_splits": self.recovered_splits,
            "deferred_chunks": self.deferred_chunks,
            "forced_splits": self.forced_splits,
            "passthrough_buffers": self.passthrough_buffers,
            "unsupported_encodings": list(self.unsupported_encodings),
            "metrics": self.metrics.to_dict(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class StreamDriver:
    """Chunked conversion of a byte source into a byte sink.

    Examples:
        >>> driver = StreamDriver(PipelineConfig(chunk_size=256))
        >>> result = driver.convert_file("broken.txt", "fixed.txt")
        >>> result.success
        True
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> None:
        self.config = config or PipelineConfig()
        self.progress_callback = progress_callback
        self.state = DriverState.START
        self.logger = get_logger(__name__, self.config.correlation_id, "stream_driver")

        # Per-run state, reset by _begin()
        self._result = ConversionResult()
        self._progress = StreamingProgress()
        self._carry = CarryBuffer()
        self._reported: Set[Tuple[Optional[str], str]] = set()
        self._finder: Optional[BoundaryFinder] = None
        self._decoding_finder: Optional[DecodingBoundaryFinder] = None
        self._reencoder: Optional[FourStageReencoder] = None
        self._sink: Optional[BinaryIO] = None
        self._profiler = ConversionProfiler(
            self.config.track_memory, self.config.correlation_id
        )

    def convert_file(self, input_path: PathLike, output_path: PathLike) -> ConversionResult:
        """Convert ``input_path`` into ``output_path``.

        The input is opened first, so a missing input never creates the output.
        ``OSError`` propagates; output written before the error is kept.
        """
        total_bytes = os.path.getsize(input_path)
        with open(input_path, "rb") as source, open(output_path, "wb") as sink:
            return self.run(source, sink, total_bytes=total_bytes)

    def run(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        total_bytes: Optional[int] = None
    ) -> ConversionResult:
        """Convert everything readable from ``source`` into ``sink``.

        Raises:
            SegmentationFailedError: Under ``FailurePolicy.ABORT``
            UnsupportedEncodingError: Under ``FailurePolicy.ABORT``
            OSError: On any read or write failure
        """
        self._begin(total_bytes)
        self.logger.info(
            "Starting conversion",
            extra={"encodings": self.config.encodings, "chunk_size": self.config.chunk_size}
        )

        descriptor = self._prepare()
        data_offset = 0
        if descriptor.needs_bom_check:
            self._transition(DriverState.BOM_CHECK)
            descriptor = self._check_bom(source, descriptor)
            data_offset = len(self._carry)
        self._build_components(descriptor)
        self._sink = sink

        self._transition(DriverState.LOOPING)
        capacity = self.config.chunk_size
        while True:
            chunk = read_exactly(source, capacity)
            self._count_chunk(chunk)
            if len(chunk) < capacity:
                break
            self._process_chunk(chunk, data_offset)
            data_offset += len(chunk)

        self._transition(DriverState.FINAL_CHUNK)
        self._emit(self._carry.combine(chunk or None))
        sink.flush()

        self._transition(DriverState.DONE)
        return self._finish()

    # Run setup

    def _begin(self, total_bytes: Optional[int]) -> None:
        self.state = DriverState.START
        self._result = ConversionResult()
        self._progress = StreamingProgress(total_bytes=total_bytes or 0)
        self._carry = CarryBuffer()
        self._reported = set()
        self._profiler.start()

    def _prepare(self) -> EncodingDescriptor:
        """Resolve all four encodings, reporting the unknown ones up front."""
        input_descriptor: Optional[EncodingDescriptor] = None
        for stage, name in self.config.encodings.items():
            try:
                descriptor = resolve_encoding(name, stage)
            except UnsupportedEncodingError as e:
                self._report_unsupported(e)
                continue
            if stage == "input":
                input_descriptor = descriptor

        if input_descriptor is None:
            return fallback_descriptor(self.config.input_encoding)
        if not input_descriptor.is_wide and not input_descriptor.ascii_compatible:
            self._diagnose(
                DiagnosticSeverity.WARNING,
                f"Input encoding {input_descriptor.canonical!r} does not store ASCII "
                "as single bytes; split points may cut characters",
            )
        return input_descriptor

    def _check_bom(self, source: BinaryIO, descriptor: EncodingDescriptor) -> EncodingDescriptor:
        bom = BOMDetector().check(source)
        consumed = BOM_LENGTH if bom.found else len(bom.retained)
        self._result.metrics.bytes_read += consumed
        self._progress.processed_bytes += consumed
        if bom.found:
            byte_order = bom.byte_order
            self.logger.debug("Consumed byte order mark", extra={"byte_order": byte_order.value})
        else:
            byte_order = BOMDetector.DEFAULT_BYTE_ORDER
            self._carry.hold(bom.retained)
            self._diagnose(
                DiagnosticSeverity.INFO,
                f"No byte order mark in UTF-16 input; assuming {byte_order.name.lower()} endian",
            )
        self._result.bom_found = bom.found
        self._result.byte_order = byte_order
        return descriptor.with_byte_order(byte_order)

    def _build_components(self, descriptor: EncodingDescriptor) -> None:
        config = self.config
        input_name = descriptor.stream_name if descriptor.is_wide else config.input_encoding
        if descriptor.is_wide and self._result.byte_order is None:
            self._result.byte_order = descriptor.byte_order

        self._finder = BoundaryFinder(descriptor)
        self._reencoder = FourStageReencoder(
            input_name,
            config.middle_encoding,
            config.origin_encoding,
            config.output_encoding,
        )
        self._decoding_finder = None
        if config.enable_decoding_fallback:
            self._decoding_finder = DecodingBoundaryFinder(
                input_name,
                stream_safe_name(config.middle_encoding),
                config.origin_encoding,
            )

    # Main loop

    def _process_chunk(self, chunk: bytes, data_offset: int) -> None:
        """Split a full chunk, convert its safe part and keep the rest."""
        split = self._finder.find(chunk, data_offset)
        if split is not None:
            combined = self._carry.combine(chunk[:split])
            self._carry.hold(chunk[split:])
            self._emit(combined)
            return

        failure = SegmentationFailedError(self.config.chunk_size, self._finder.descriptor.is_wide)
        self._result.segmentation_failures += 1
        position = {"offset": data_offset}
        if self.config.segmentation_policy is FailurePolicy.ABORT:
            self._diagnose(DiagnosticSeverity.CRITICAL, str(failure), position=position)
            raise failure

        pending = self._carry.combine(chunk)
        split = self._decoding_finder.find(pending) if self._decoding_finder else None
        if split is not None:
            self._result.recovered_splits += 1
            self._diagnose_segmentation(
                f"{failure} Split located by decoding instead.", position
            )
            self._carry.hold(pending[split:])
            self._emit(pending[:split])
            return

        if len(pending) <= self.config.max_carry_size:
            self._result.deferred_chunks += 1
            self._diagnose_segmentation(
                f"{failure} Chunk deferred to the next read.", position
            )
            self._carry.hold(pending)
            return

        self._result.forced_splits += 1
        self._diagnose(
            DiagnosticSeverity.ERROR,
            f"{failure} Carry limit of {self.config.max_carry_size} bytes reached; "
            "converted at the chunk edge, output near this offset may be garbled.",
            position=position,
        )
        self._emit(pending)

    def _emit(self, buffer: bytes) -> None:
        """Re-encode ``buffer`` and write it to the sink."""
        if not buffer:
            return
        result = self._reencoder.reencode(buffer)
        if result.error is not None:
            self._result.passthrough_buffers += 1
            self._report_unsupported(result.error)
        self._sink.write(result.data)
        self._result.metrics.bytes_written += len(result.data)

    def _count_chunk(self, data: bytes) -> None:
        self._result.metrics.bytes_read += len(data)
        self._progress.processed_bytes += len(data)
        self._result.metrics.chunks_processed += 1
        self._progress.processed_chunks += 1
        self._progress.current_chunk_size = len(data)
        self._profiler.sample()
        if self.progress_callback is not None:
            self.progress_callback(self._progress)

    def _finish(self) -> ConversionResult:
        result = self._result
        result.state = self.state
        self._profiler.finish(result.metrics)
        self.logger.info(
            "Conversion finished",
            extra={
                "success": result.success,
                "bytes_read": result.metrics.bytes_read,
                "bytes_written": result.metrics.bytes_written,
                "segmentation_failures": result.segmentation_failures,
                "forced_splits": result.forced_splits,
            }
        )
        return result

    # Diagnostics

    def _transition(self, state: DriverState) -> None:
        self.logger.debug(
            "Driver state change", extra={"from": self.state.value, "to": state.value}
        )
        self.state = state

    def _diagnose(
        self,
        severity: DiagnosticSeverity,
        message: str,
        position: Optional[Dict[str, int]] = None,
        details: Optional[Dict[str, Any]] = None,
        log: bool = True
    ) -> None:
        self._result.diagnostics.append(
            DiagnosticEntry(
                severity=severity,
                message=message,
                component="stream_driver",
                position=position,
                details=details,
                correlation_id=self.config.correlation_id,
            )
        )
        if not log:
            return
        extra = {"position": position} if position else None
        if severity is DiagnosticSeverity.DEBUG:
            self.logger.debug(message, extra=extra)
        elif severity is DiagnosticSeverity.INFO:
            self.logger.info(message, extra=extra)
        elif severity is DiagnosticSeverity.WARNING:
            self.logger.warning(message, extra=extra)
        else:
            self.logger.error(message, extra=extra)

    def _diagnose_segmentation(self, message: str, position: Dict[str, int]) -> None:
        # Text without ASCII fails on every chunk; only the first is logged loudly
        first = self._result.segmentation_failures == 1
        self._diagnose(DiagnosticSeverity.WARNING, message, position=position, log=first)
        if not first:
            self.logger.debug(message, extra={"position": position})

    def _report_unsupported(self, error: UnsupportedEncodingError) -> None:
        key = (error.stage, error.encoding)
        if key in self._reported:
            return
        self._reported.add(key)
        if error.encoding not in self._result.unsupported_encodings:
            self._result.unsupported_encodings.append(error.encoding)

        if self.config.unsupported_encoding_policy is FailurePolicy.ABORT:
            self._diagnose(DiagnosticSeverity.CRITICAL, str(error))
            raise error
        self._diagnose(
            DiagnosticSeverity.ERROR,
            f"{error} Affected buffers are written unconverted.",
            details={"stage": error.stage, "encoding": error.encoding},
        )
