"""Tests for diagnostic entries and performance metrics."""

import pytest

from mojibake_repair.shared.result import (
    ConversionError,
    DiagnosticEntry,
    DiagnosticSeverity,
    PerformanceMetrics,
)


class TestDiagnosticEntry:
    """Test DiagnosticEntry validation and serialization."""

    def test_valid_entry(self):
        """Test creating a diagnostic entry."""
        # Act
        entry = DiagnosticEntry(
            severity=DiagnosticSeverity.WARNING,
            message="Chunk deferred",
            component="stream_driver",
            position={"offset": 4096},
        )

        # Assert
        assert entry.severity is DiagnosticSeverity.WARNING
        assert entry.position == {"offset": 4096}
        assert entry.timestamp > 0

    def test_empty_message_rejected(self):
        """Test that a message is required."""
        # Act & Assert
        with pytest.raises(ValueError, match="message"):
            DiagnosticEntry(DiagnosticSeverity.INFO, "", "stream_driver")

    def test_empty_component_rejected(self):
        """Test that a component is required."""
        # Act & Assert
        with pytest.raises(ValueError, match="component"):
            DiagnosticEntry(DiagnosticSeverity.INFO, "message", "")

    def test_to_dict(self):
        """Test dictionary conversion uses the severity name."""
        # Arrange
        entry = DiagnosticEntry(
            DiagnosticSeverity.ERROR,
            "Unsupported encoding",
            "stream_driver",
            details={"stage": "middle"},
        )

        # Act
        data = entry.to_dict()

        # Assert
        assert data == {
            "severity": "ERROR",
            "message": "Unsupported encoding",
            "component": "stream_driver",
            "position": None,
            "details": {"stage": "middle"},
        }


class TestPerformanceMetrics:
    """Test PerformanceMetrics derived figures."""

    def test_bytes_per_second(self):
        """Test throughput calculation."""
        # Arrange
        metrics = PerformanceMetrics(processing_time_ms=500.0, bytes_read=1000)

        # Assert
        assert metrics.bytes_per_second == 2000.0

    def test_bytes_per_second_zero_time(self):
        """Test throughput without elapsed time."""
        # Assert
        assert PerformanceMetrics(bytes_read=10).bytes_per_second == 0.0

    def test_expansion_ratio(self):
        """Test output to input size ratio."""
        # Arrange
        metrics = PerformanceMetrics(bytes_read=8, bytes_written=6)

        # Assert
        assert metrics.expansion_ratio == 0.75
        assert PerformanceMetrics().expansion_ratio == 0.0

    def test_to_dict(self):
        """Test dictionary conversion."""
        # Arrange
        metrics = PerformanceMetrics(bytes_read=4, bytes_written=4, chunks_processed=2)

        # Act
        data = metrics.to_dict()

        # Assert
        assert data["chunks_processed"] == 2
        assert data["bytes_written"] == 4
        assert "bytes_per_second" in data


def test_conversion_error_is_exception():
    """Test the base exception of the pipeline."""
    # Assert
    assert issubclass(ConversionError, Exception)
