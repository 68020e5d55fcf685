"""Tests for the conversion profiler."""

from unittest.mock import MagicMock, patch

from mojibake_repair.shared.result import PerformanceMetrics
from mojibake_repair.tools.profiling import ConversionProfiler, MemorySample


class TestMemorySample:
    """Test MemorySample data class."""

    def test_creation(self):
        """Test memory sample creation."""
        # Act
        sample = MemorySample(label="chunk", rss_bytes=2048)

        # Assert
        assert sample.label == "chunk"
        assert sample.rss_bytes == 2048
        assert sample.timestamp > 0


class TestConversionProfiler:
    """Test ConversionProfiler."""

    def test_timing_without_memory_tracking(self):
        """Test that only timing is recorded by default."""
        # Arrange
        profiler = ConversionProfiler()

        # Act
        profiler.start()
        sample = profiler.sample()
        metrics = profiler.finish(PerformanceMetrics())

        # Assert
        assert sample is None
        assert profiler.samples == []
        assert metrics.processing_time_ms >= 0
        assert metrics.peak_memory_bytes == 0

    def test_memory_tracking(self):
        """Test that samples are taken at start, per chunk and at the end."""
        # Arrange
        profiler = ConversionProfiler(track_memory=True)

        # Act
        profiler.start()
        profiler.sample("chunk")
        metrics = profiler.finish(PerformanceMetrics())

        # Assert
        assert [s.label for s in profiler.samples] == ["start", "chunk", "end"]
        assert metrics.peak_memory_bytes == profiler.peak_memory_bytes > 0

    @patch("mojibake_repair.tools.profiling.psutil.Process")
    def test_peak_and_delta(self, process_class):
        """Test peak and delta figures from mocked RSS values."""
        # Arrange
        rss_values = iter([1000, 5000, 3000])
        process = MagicMock()
        process.memory_info.side_effect = lambda: MagicMock(rss=next(rss_values))
        process_class.return_value = process
        profiler = ConversionProfiler(track_memory=True)

        # Act
        profiler.start()
        profiler.sample()
        metrics = profiler.finish(PerformanceMetrics())

        # Assert
        assert metrics.peak_memory_bytes == 5000
        assert metrics.memory_delta_bytes == 2000

    def test_restart_clears_samples(self):
        """Test that start() discards samples of a previous run."""
        # Arrange
        profiler = ConversionProfiler(track_memory=True)
        profiler.start()
        profiler.sample()

        # Act
        profiler.start()

        # Assert
        assert len(profiler.samples) == 1
        assert profiler.samples[0].label == "start"
