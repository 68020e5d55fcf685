"""Tests for the conversion API."""

import io
from unittest.mock import Mock

import pytest

from mojibake_repair import (
    MojibakeRepairer,
    PipelineConfig,
    convert_bytes,
    convert_file,
    convert_stream,
    repair_text,
)
from mojibake_repair.character.boundary import SegmentationFailedError
from mojibake_repair.character.encoding import UnsupportedEncodingError
from mojibake_repair.shared.config import FailurePolicy

TEXT = "乱码修复 test: 中文字符编码转换。\n" * 30


def mojibake(text: str) -> bytes:
    """GBK text read as Windows-1252 and saved as UTF-8."""
    return text.encode("gbk").decode("windows-1252").encode("utf-8")


class TestRepairText:
    """Test repair_text()."""

    def test_single_word(self):
        """Test repairing a short corrupted word."""
        # Assert
        assert repair_text("ÖÐÎÄ") == "中文"

    def test_ascii_unchanged(self):
        """Test that plain text is returned unchanged."""
        # Assert
        assert repair_text("hello, world") == "hello, world"

    def test_latin_1_config(self):
        """Test repairing with the ISO-8859-1 chain."""
        # Arrange
        corrupted = "编码".encode("gbk").decode("iso-8859-1")

        # Act & Assert
        assert repair_text(corrupted, PipelineConfig.latin_1()) == "编码"

    def test_utf16_output_decoded(self):
        """Test that the output encoding is used to decode the result."""
        # Act & Assert
        assert repair_text("ÖÐÎÄ", PipelineConfig(output_encoding="utf-16")) == "中文"

    def test_unknown_input_encoding(self):
        """Test that an unknown input encoding cannot store the text."""
        # Act & Assert
        with pytest.raises(UnsupportedEncodingError):
            repair_text("abc", PipelineConfig(input_encoding="no-such-codec"))


class TestConvertBytes:
    """Test convert_bytes()."""

    def test_repairs_bytes(self):
        """Test in-memory conversion."""
        # Assert
        assert convert_bytes(mojibake(TEXT)) == TEXT.encode("utf-8")

    def test_small_chunks(self):
        """Test that small chunks give the same result."""
        # Arrange
        config = PipelineConfig(chunk_size=3)

        # Assert
        assert convert_bytes(mojibake(TEXT), config) == TEXT.encode("utf-8")


class TestConvertStream:
    """Test convert_stream()."""

    def test_streams_left_open(self):
        """Test that neither stream is closed."""
        # Arrange
        source = io.BytesIO(mojibake(TEXT))
        sink = io.BytesIO()

        # Act
        result = convert_stream(source, sink, correlation_id="stream-1")

        # Assert
        assert not source.closed
        assert not sink.closed
        assert sink.getvalue() == TEXT.encode("utf-8")
        assert result.success

    def test_correlation_id_on_diagnostics(self):
        """Test that the correlation ID reaches diagnostic entries."""
        # Arrange
        config = PipelineConfig(chunk_size=4)

        # Act
        result = convert_stream(
            io.BytesIO(mojibake("中文")), io.BytesIO(), config, correlation_id="run-7"
        )

        # Assert
        assert result.diagnostics
        assert all(d.correlation_id == "run-7" for d in result.diagnostics)


class TestConvertFile:
    """Test convert_file()."""

    def test_convert_file(self, tmp_path):
        """Test path based conversion with progress."""
        # Arrange
        source = tmp_path / "broken.txt"
        target = tmp_path / "fixed.txt"
        source.write_bytes(mojibake(TEXT))
        callback = Mock()

        # Act
        result = convert_file(str(source), target, PipelineConfig(chunk_size=64), callback)

        # Assert
        assert target.read_bytes() == TEXT.encode("utf-8")
        assert result.bytes_read == source.stat().st_size
        assert callback.call_count == result.chunks_processed

    def test_abort_propagates(self, tmp_path):
        """Test that aborting policies raise to the caller."""
        # Arrange
        source = tmp_path / "broken.txt"
        source.write_bytes(mojibake("中文字符"))
        config = PipelineConfig(chunk_size=4, segmentation_policy=FailurePolicy.ABORT)

        # Act & Assert
        with pytest.raises(SegmentationFailedError):
            convert_file(source, tmp_path / "fixed.txt", config)

    def test_missing_input(self, tmp_path):
        """Test that a missing input raises FileNotFoundError."""
        # Act & Assert
        with pytest.raises(FileNotFoundError):
            convert_file(tmp_path / "missing.txt", tmp_path / "fixed.txt")


class TestMojibakeRepairer:
    """Test the reusable converter."""

    def test_initialization(self):
        """Test default configuration and correlation ID."""
        # Act
        repairer = MojibakeRepairer(correlation_id="batch-1")

        # Assert
        assert repairer.config.origin_encoding == "gbk"
        assert repairer.correlation_id == "batch-1"
        assert repairer.config.correlation_id == "batch-1"

    def test_repair_text(self):
        """Test text repair through the class."""
        # Assert
        assert MojibakeRepairer().repair_text("ÖÐÎÄ") == "中文"

    def test_statistics(self, tmp_path):
        """Test that statistics accumulate across conversions."""
        # Arrange
        repairer = MojibakeRepairer(PipelineConfig(chunk_size=32))
        source = tmp_path / "broken.txt"
        source.write_bytes(mojibake(TEXT))

        # Act
        repairer.convert_file(source, tmp_path / "fixed.txt")
        output = repairer.convert_bytes(mojibake("中文"))

        # Assert
        stats = repairer.statistics
        assert output == "中文".encode("utf-8")
        assert stats["total_conversions"] == 2
        assert stats["successful_conversions"] == 2
        assert stats["failed_conversions"] == 0
        assert stats["success_rate"] == 1.0
        assert stats["bytes_read"] == len(mojibake(TEXT)) + 8
        assert stats["bytes_written"] == len(TEXT.encode("utf-8")) + 6

    def test_failed_conversion_counted(self, tmp_path):
        """Test that raised errors are counted and re-raised."""
        # Arrange
        repairer = MojibakeRepairer()

        # Act
        with pytest.raises(FileNotFoundError):
            repairer.convert_file(tmp_path / "missing.txt", tmp_path / "out.txt")

        # Assert
        assert repairer.statistics["total_conversions"] == 1
        assert repairer.statistics["failed_conversions"] == 1
        assert repairer.statistics["success_rate"] == 0.0

    def test_unconverted_result_not_successful(self):
        """Test that a run with errors is not counted as successful."""
        # Arrange
        repairer = MojibakeRepairer(PipelineConfig(origin_encoding="no-such-codec"))

        # Act
        output = repairer.convert_bytes(b"abc")

        # Assert
        assert output == b"abc"
        assert repairer.statistics["successful_conversions"] == 0
        assert repairer.statistics["total_conversions"] == 1

    def test_reset_statistics(self):
        """Test resetting statistics."""
        # Arrange
        repairer = MojibakeRepairer()
        repairer.convert_bytes(b"abc")

        # Act
        repairer.reset_statistics()

        # Assert
        stats = repairer.statistics
        assert stats["total_conversions"] == 0
        assert stats["bytes_read"] == 0
        assert stats["average_processing_time_ms"] == 0.0

    def test_reconfigure(self):
        """Test switching to another chain while keeping the correlation ID."""
        # Arrange
        repairer = MojibakeRepairer(correlation_id="batch-2")
        corrupted = "编码".encode("gbk").decode("iso-8859-1")

        # Act
        repairer.reconfigure(PipelineConfig.latin_1())

        # Assert
        assert repairer.config.middle_encoding == "iso-8859-1"
        assert repairer.correlation_id == "batch-2"
        assert repairer.repair_text(corrupted) == "编码"
