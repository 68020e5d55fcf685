"""Shared utilities for mojibake repair.

This module provides the configuration object, result and diagnostic types, and
logging utilities used across the character layer, the API and the CLI.
"""

from .result import (
    ConversionError,
    DiagnosticEntry,
    DiagnosticSeverity,
    PerformanceMetrics,
)
from .config import (
    PRESETS,
    ConfigError,
    ConfigValidationError,
    FailurePolicy,
    PipelineConfig,
)
from .logging import (
    CorrelationLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    "ConversionError",
    "DiagnosticEntry",
    "DiagnosticSeverity",
    "PerformanceMetrics",
    "PRESETS",
    "ConfigError",
    "ConfigValidationError",
    "FailurePolicy",
    "PipelineConfig",
    "CorrelationLogger",
    "configure_logging",
    "get_logger",
]
