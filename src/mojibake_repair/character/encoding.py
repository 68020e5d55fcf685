"""Encoding descriptors and byte order mark detection.

An encoding name is resolved once per run into an ``EncodingDescriptor`` that
tells the boundary finder how characters sit on bytes: ASCII-aligned encodings
(UTF-8, GBK, Windows-1252, ...) where a byte in 0-127 is always a whole
character, or UTF-16, which is made of 2-byte units in a given byte order.
"""

import codecs
from dataclasses import dataclass, replace
from enum import Enum
from typing import BinaryIO, ClassVar, Dict, Optional

from ..shared.result import ConversionError

ASCII_MAX = 0x7F
BOM_LENGTH = 2

# Probe used to check that an encoding stores ASCII as single bytes
ASCII_PROBE = "AZaz09\n"

# Codecs whose encoder prepends a BOM on every call; chunked output pins them
# to an explicit form instead
STREAM_SAFE_NAMES: Dict[str, str] = {
    "utf-16": "utf-16-be",
    "utf-32": "utf-32-be",
    "utf-8-sig": "utf-8",
}


class EncodingAlignment(Enum):
    """How characters of an encoding align on bytes."""
    ASCII = "ascii"
    WIDE = "wide"


class ByteOrder(Enum):
    """Byte order of a wide (UTF-16) encoding."""
    LITTLE = "le"
    BIG = "be"
    UNKNOWN = "unknown"


class UnsupportedEncodingError(ConversionError, LookupError):
    """Raised when an encoding name is not known to Python's codec registry."""

    def __init__(self, encoding: str, stage: Optional[str] = None) -> None:
        self.encoding = encoding
        self.stage = stage
        where = f" ({stage} encoding)" if stage else ""
        super().__init__(
            f"Unsupported encoding{where}: {encoding!r}. "
            "See the 'Standard Encodings' table of the Python codecs documentation."
        )


@dataclass(frozen=True)
class EncodingDescriptor:
    """Static metadata about a resolved encoding.

    Attributes:
        name: Encoding name as supplied by the caller
        canonical: Canonical codec name from the codec registry
        alignment: ASCII-aligned or wide
        byte_order: Byte order for wide encodings, None otherwise
        ascii_compatible: Whether ASCII text encodes to identical bytes
    """
    name: str
    canonical: str
    alignment: EncodingAlignment
    byte_order: Optional[ByteOrder] = None
    ascii_compatible: bool = True

    @property
    def is_wide(self) -> bool:
        return self.alignment is EncodingAlignment.WIDE

    @property
    def needs_bom_check(self) -> bool:
        """True for wide encodings whose byte order must come from a BOM."""
        return self.is_wide and self.byte_order is ByteOrder.UNKNOWN

    @property
    def unit_size(self) -> int:
        return 2 if self.is_wide else 1

    @property
    def stream_name(self) -> str:
        """Codec name that is safe to apply chunk by chunk."""
        if self.is_wide:
            if self.byte_order is ByteOrder.LITTLE:
                return "utf-16-le"
            return "utf-16-be"
        return STREAM_SAFE_NAMES.get(self.canonical, self.canonical)

    def with_byte_order(self, byte_order: ByteOrder) -> "EncodingDescriptor":
        """Return a copy pinned to ``byte_order``."""
        if not self.is_wide:
            raise ValueError(f"{self.canonical} has no byte order")
        canonical = "utf-16-le" if byte_order is ByteOrder.LITTLE else "utf-16-be"
        return replace(self, canonical=canonical, byte_order=byte_order)


WIDE_BYTE_ORDERS: Dict[str, ByteOrder] = {
    "utf-16": ByteOrder.UNKNOWN,
    "utf-16-le": ByteOrder.LITTLE,
    "utf-16-be": ByteOrder.BIG,
}


def resolve_encoding(name: str, stage: Optional[str] = None) -> EncodingDescriptor:
    """Resolve an encoding name into an ``EncodingDescriptor``.

    Args:
        name: Any name or alias accepted by ``codecs.lookup``
        stage: Chain stage the name belongs to, used in error messages

    Returns:
        EncodingDescriptor for the encoding

    Raises:
        UnsupportedEncodingError: If the name is unknown or not a text encoding
    """
    try:
        codec = codecs.lookup(name)
        # str.encode rejects bytes-to-bytes codecs such as base64 with LookupError
        probe = ASCII_PROBE.encode(STREAM_SAFE_NAMES.get(codec.name, codec.name))
    except LookupError as e:
        raise UnsupportedEncodingError(name, stage) from e

    canonical = codec.name
    if canonical in WIDE_BYTE_ORDERS:
        return EncodingDescriptor(
            name=name,
            canonical=canonical,
            alignment=EncodingAlignment.WIDE,
            byte_order=WIDE_BYTE_ORDERS[canonical],
            ascii_compatible=False,
        )

    return EncodingDescriptor(
        name=name,
        canonical=canonical,
        alignment=EncodingAlignment.ASCII,
        ascii_compatible=probe == ASCII_PROBE.encode("ascii"),
    )


def stream_safe_name(name: str) -> str:
    """Map BOM-emitting codec names to their explicit form; unknown names pass through."""
    try:
        canonical = codecs.lookup(name).name
    except LookupError:
        return name
    return STREAM_SAFE_NAMES.get(canonical, name)


def fallback_descriptor(name: str) -> EncodingDescriptor:
    """Descriptor used for an unknown input encoding so splitting can proceed."""
    return EncodingDescriptor(
        name=name,
        canonical=name,
        alignment=EncodingAlignment.ASCII,
        ascii_compatible=False,
    )


@dataclass
class BOMResult:
    """Outcome of a BOM check at the start of a wide stream.

    Attributes:
        byte_order: Byte order announced by the BOM, None if there was none
        retained: Leading bytes that were not a BOM and must be kept as data
    """
    byte_order: Optional[ByteOrder]
    retained: bytes = b""

    @property
    def found(self) -> bool:
        return self.byte_order is not None


class BOMDetector:
    """UTF-16 byte order mark detection."""

    BOM_PATTERNS: ClassVar[Dict[bytes, ByteOrder]] = {
        codecs.BOM_UTF16_LE: ByteOrder.LITTLE,
        codecs.BOM_UTF16_BE: ByteOrder.BIG,
    }

    # Unmarked UTF-16 is big endian per RFC 2781
    DEFAULT_BYTE_ORDER = ByteOrder.BIG

    def detect(self, data: bytes) -> Optional[ByteOrder]:
        """Return the byte order announced by the first two bytes of ``data``."""
        return self.BOM_PATTERNS.get(bytes(data[:BOM_LENGTH]))

    def check(self, source: BinaryIO) -> BOMResult:
        """Read the first two bytes of ``source`` and resolve the byte order.

        A BOM is consumed. Anything else is returned in ``retained`` so the
        caller can fold it into the first carry buffer.
        """
        head = read_exactly(source, BOM_LENGTH)
        byte_order = self.detect(head)
        if byte_order is not None:
            return BOMResult(byte_order=byte_order)
        return BOMResult(byte_order=None, retained=head)


def read_exactly(source: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes, retrying short reads until end of stream."""
    parts = []
    remaining = size
    while remaining > 0:
        data = source.read(remaining)
        if not data:
            break
        parts.append(data)
        remaining -= len(data)
    return b"".join(parts)
