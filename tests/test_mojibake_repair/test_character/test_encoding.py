"""Tests for encoding resolution and BOM detection."""

import codecs
import io

import pytest

from mojibake_repair.character.encoding import (
    BOMDetector,
    ByteOrder,
    EncodingAlignment,
    UnsupportedEncodingError,
    fallback_descriptor,
    read_exactly,
    resolve_encoding,
    stream_safe_name,
)
from mojibake_repair.shared.result import ConversionError


class TestResolveEncoding:
    """Test resolve_encoding()."""

    @pytest.mark.parametrize("name,canonical", [
        ("UTF8", "utf-8"),
        ("windows-1252", "cp1252"),
        ("GBK", "gbk"),
        ("latin-1", "iso8859-1"),
    ])
    def test_ascii_aligned_encodings(self, name, canonical):
        """Test that byte-oriented encodings are ASCII aligned."""
        # Act
        descriptor = resolve_encoding(name)

        # Assert
        assert descriptor.name == name
        assert descriptor.canonical == canonical
        assert descriptor.alignment is EncodingAlignment.ASCII
        assert descriptor.ascii_compatible is True
        assert descriptor.byte_order is None
        assert descriptor.unit_size == 1

    def test_unmarked_utf16_needs_bom_check(self):
        """Test that plain UTF-16 takes its byte order from the BOM."""
        # Act
        descriptor = resolve_encoding("UTF-16")

        # Assert
        assert descriptor.is_wide
        assert descriptor.byte_order is ByteOrder.UNKNOWN
        assert descriptor.needs_bom_check
        assert descriptor.unit_size == 2

    @pytest.mark.parametrize("name,byte_order", [
        ("utf-16-le", ByteOrder.LITTLE),
        ("UTF-16BE", ByteOrder.BIG),
    ])
    def test_explicit_utf16_byte_order(self, name, byte_order):
        """Test that explicit UTF-16 forms skip the BOM check."""
        # Act
        descriptor = resolve_encoding(name)

        # Assert
        assert descriptor.is_wide
        assert descriptor.byte_order is byte_order
        assert not descriptor.needs_bom_check

    @pytest.mark.parametrize("name", ["cp037", "utf-32"])
    def test_ascii_incompatible_encodings_flagged(self, name):
        """Test that encodings storing ASCII differently are detected."""
        # Act
        descriptor = resolve_encoding(name)

        # Assert
        assert descriptor.alignment is EncodingAlignment.ASCII
        assert descriptor.ascii_compatible is False

    def test_unknown_encoding(self):
        """Test that unknown names raise UnsupportedEncodingError."""
        # Act & Assert
        with pytest.raises(UnsupportedEncodingError) as exc_info:
            resolve_encoding("no-such-codec", "middle")

        error = exc_info.value
        assert error.encoding == "no-such-codec"
        assert error.stage == "middle"
        assert "middle encoding" in str(error)
        assert isinstance(error, LookupError)
        assert isinstance(error, ConversionError)

    def test_binary_codec_rejected(self):
        """Test that bytes-to-bytes codecs are not text encodings."""
        # Act & Assert
        with pytest.raises(UnsupportedEncodingError):
            resolve_encoding("base64")


class TestEncodingDescriptor:
    """Test EncodingDescriptor helpers."""

    def test_with_byte_order(self):
        """Test pinning plain UTF-16 to a byte order."""
        # Arrange
        descriptor = resolve_encoding("utf-16")

        # Act
        pinned = descriptor.with_byte_order(ByteOrder.LITTLE)

        # Assert
        assert pinned.byte_order is ByteOrder.LITTLE
        assert pinned.canonical == "utf-16-le"
        assert pinned.stream_name == "utf-16-le"
        assert descriptor.byte_order is ByteOrder.UNKNOWN

    def test_with_byte_order_on_ascii_encoding(self):
        """Test that byte-oriented encodings have no byte order."""
        # Act & Assert
        with pytest.raises(ValueError):
            resolve_encoding("gbk").with_byte_order(ByteOrder.BIG)

    def test_stream_name_of_bom_codecs(self):
        """Test that BOM-writing codecs map to explicit forms."""
        # Assert
        assert resolve_encoding("utf-8-sig").stream_name == "utf-8"
        assert resolve_encoding("gbk").stream_name == "gbk"

    def test_fallback_descriptor(self):
        """Test the descriptor used for unknown input encodings."""
        # Act
        descriptor = fallback_descriptor("no-such-codec")

        # Assert
        assert descriptor.alignment is EncodingAlignment.ASCII
        assert descriptor.canonical == "no-such-codec"


class TestStreamSafeName:
    """Test stream_safe_name()."""

    @pytest.mark.parametrize("name,expected", [
        ("UTF-16", "utf-16-be"),
        ("utf_32", "utf-32-be"),
        ("utf_8_sig", "utf-8"),
        ("gbk", "gbk"),
        ("utf-16-le", "utf-16-le"),
        ("no-such-codec", "no-such-codec"),
    ])
    def test_mapping(self, name, expected):
        """Test mapping of codec names."""
        # Assert
        assert stream_safe_name(name) == expected

    def test_mapped_codec_writes_no_bom(self):
        """Test that chunk-wise encoding with the mapped name adds no BOM."""
        # Act
        encoded = "a".encode(stream_safe_name("utf-16")) + "b".encode(stream_safe_name("utf-16"))

        # Assert
        assert encoded == "ab".encode("utf-16-be")


class TestBOMDetector:
    """Test BOMDetector."""

    @pytest.mark.parametrize("head,byte_order", [
        (codecs.BOM_UTF16_LE, ByteOrder.LITTLE),
        (codecs.BOM_UTF16_BE, ByteOrder.BIG),
    ])
    def test_bom_consumed(self, head, byte_order):
        """Test that a BOM resolves the byte order and is consumed."""
        # Arrange
        source = io.BytesIO(head + b"a\x00")

        # Act
        result = BOMDetector().check(source)

        # Assert
        assert result.found
        assert result.byte_order is byte_order
        assert result.retained == b""
        assert source.read() == b"a\x00"

    def test_no_bom_bytes_retained(self):
        """Test that leading non-BOM bytes are kept as data."""
        # Arrange
        source = io.BytesIO(b"\x00a\x00b")

        # Act
        result = BOMDetector().check(source)

        # Assert
        assert not result.found
        assert result.byte_order is None
        assert result.retained == b"\x00a"
        assert source.read() == b"\x00b"

    @pytest.mark.parametrize("data", [b"", b"\xff"])
    def test_short_input(self, data):
        """Test inputs shorter than a BOM."""
        # Act
        result = BOMDetector().check(io.BytesIO(data))

        # Assert
        assert not result.found
        assert result.retained == data

    def test_detect(self):
        """Test detection on a byte string."""
        # Assert
        assert BOMDetector().detect(b"\xff\xfe\x00") is ByteOrder.LITTLE
        assert BOMDetector().detect(b"\xef\xbb\xbf") is None

    def test_default_byte_order_is_big_endian(self):
        """Test the byte order assumed for unmarked input."""
        # Assert
        assert BOMDetector.DEFAULT_BYTE_ORDER is ByteOrder.BIG


class _TrickleReader(io.RawIOBase):
    """Reader that returns at most two bytes per call, like a slow pipe."""

    def __init__(self, data):
        self._data = data

    def readable(self):
        return True

    def read(self, size=-1):
        chunk, self._data = self._data[:2], self._data[2:]
        return chunk


class TestReadExactly:
    """Test read_exactly()."""

    def test_short_reads_are_retried(self):
        """Test that partial reads are joined up to the requested size."""
        # Arrange
        source = _TrickleReader(b"abcdefg")

        # Act & Assert
        assert read_exactly(source, 5) == b"abcde"
        assert read_exactly(source, 5) == b"fg"
        assert read_exactly(source, 5) == b""
