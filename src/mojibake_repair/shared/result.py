"""Result objects and diagnostic types for mojibake repair.

This module defines the diagnostic entries, performance metrics and the base
exception shared by every layer of the conversion pipeline.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional


class DiagnosticSeverity(Enum):
    """Severity levels for diagnostic entries."""

    DEBUG = auto()      # Debug-level information
    INFO = auto()       # Informational messages
    WARNING = auto()    # Degraded but recovered (e.g. fallback split)
    ERROR = auto()      # Output for a region may be wrong
    CRITICAL = auto()   # Run aborted


@dataclass
class DiagnosticEntry:
    """Single diagnostic entry with context information."""

    severity: DiagnosticSeverity
    message: str
    component: str
    position: Optional[Dict[str, int]] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: float = field(default_factory=time.time)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate diagnostic entry."""
        if not self.message:
            raise ValueError("Diagnostic message cannot be empty")
        if not self.component:
            raise ValueError("Diagnostic component cannot be empty")

    def to_dict(self) -> Dict[str, Any]:
        """Convert diagnostic to a JSON-friendly dictionary."""
        return {
            "severity": self.severity.name,
            "message": self.message,
            "component": self.component,
            "position": self.position,
            "details": self.details,
        }


@dataclass
class PerformanceMetrics:
    """Performance metrics for a conversion run."""

    processing_time_ms: float = 0.0
    bytes_read: int = 0
    bytes_written: int = 0
    chunks_processed: int = 0
    peak_memory_bytes: int = 0
    memory_delta_bytes: int = 0

    @property
    def bytes_per_second(self) -> float:
        """Calculate input bytes processed per second."""
        if self.processing_time_ms <= 0:
            return 0.0
        return (self.bytes_read * 1000.0) / self.processing_time_ms

    @property
    def expansion_ratio(self) -> float:
        """Output size relative to input size."""
        if self.bytes_read == 0:
            return 0.0
        return self.bytes_written / self.bytes_read

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary representation."""
        return {
            "processing_time_ms": self.processing_time_ms,
            "bytes_read": self.bytes_read,
            "bytes_written": self.bytes_written,
            "chunks_processed": self.chunks_processed,
            "peak_memory_bytes": self.peak_memory_bytes,
            "memory_delta_bytes": self.memory_delta_bytes,
            "bytes_per_second": self.bytes_per_second,
        }


class ConversionError(Exception):
    """Base exception for errors raised by the conversion pipeline."""
