"""Safe split point search and carry buffer hand-off.

A chunk read from the source usually ends in the middle of a character. The
boundary finder locates the last offset at which the chunk can be cut without
dividing a character; the bytes after it are carried over and prepended to the
next chunk.
"""

import codecs
from typing import Optional

from ..shared.result import ConversionError
from .encoding import ASCII_MAX, ByteOrder, EncodingDescriptor

WIDE_UNIT = 2


class SegmentationFailedError(ConversionError):
    """Raised when a chunk contains no safe split point."""

    def __init__(self, chunk_size: int, wide: bool = False) -> None:
        self.chunk_size = chunk_size
        self.wide = wide
        looked_for = (
            "a narrow UTF-16 code unit" if wide else "an ASCII character (0-127)"
        )
        super().__init__(
            f"File segmentation failed. Failed to find {looked_for} in a segment "
            f"size of {chunk_size} bytes. Please increase the chunk size."
        )


def concat(head: Optional[bytes], tail: Optional[bytes]) -> bytes:
    """Concatenate two optional byte strings.

    ``concat(None, b) == b``, ``concat(a, None) == a`` and
    ``concat(None, None) == b""``.
    """
    if head is None:
        return bytes(tail) if tail is not None else b""
    if tail is None:
        return bytes(head)
    return bytes(head) + bytes(tail)


class CarryBuffer:
    """Single slot holding the unconverted tail of the previous chunk."""

    def __init__(self) -> None:
        self._data: Optional[bytes] = None

    def __len__(self) -> int:
        return len(self._data) if self._data is not None else 0

    @property
    def data(self) -> bytes:
        return self._data if self._data is not None else b""

    def hold(self, tail: Optional[bytes]) -> None:
        """Replace the slot content with ``tail`` (empty tails clear the slot)."""
        self._data = bytes(tail) if tail else None

    def combine(self, prefix: Optional[bytes]) -> bytes:
        """Return carry + ``prefix`` and empty the slot."""
        combined = concat(self._data, prefix)
        self._data = None
        return combined


class BoundaryFinder:
    """Byte-scan search for the rightmost safe split point of a chunk.

    ASCII-aligned encodings split just after the last byte in 0-127: such a
    byte is never the middle of a multi-byte character, neither in the input
    encoding nor, after the single-byte middle step, in the origin encoding.

    UTF-16 splits just after the last narrow code unit (an ASCII character
    stored as ``lo 00`` or ``00 lo``) that starts on a unit boundary.
    """

    def __init__(self, descriptor: EncodingDescriptor) -> None:
        self.descriptor = descriptor

    def find(self, chunk: bytes, stream_offset: int = 0) -> Optional[int]:
        """Find the end of the longest safe prefix of ``chunk``.

        Args:
            chunk: Raw bytes read from the source
            stream_offset: Position of ``chunk[0]`` in the data stream, used
                to keep wide splits on 2-byte unit boundaries

        Returns:
            Exclusive end offset of the safe prefix (1..len(chunk)), or None if
            no safe split point exists in the chunk
        """
        if not chunk:
            return None
        if self.descriptor.is_wide:
            return self._find_wide(chunk, stream_offset)
        return self._find_ascii(chunk)

    def _find_ascii(self, chunk: bytes) -> Optional[int]:
        for index in range(len(chunk) - 1, -1, -1):
            if chunk[index] <= ASCII_MAX:
                return index + 1
        return None

    def _find_wide(self, chunk: bytes, stream_offset: int) -> Optional[int]:
        little_endian = self.descriptor.byte_order is ByteOrder.LITTLE
        index = len(chunk) - WIDE_UNIT
        if (stream_offset + index) % WIDE_UNIT:
            index -= 1

        while index >= 0:
            first, second = chunk[index], chunk[index + 1]
            if little_endian:
                narrow = first <= ASCII_MAX and second == 0
            else:
                narrow = first == 0 and second <= ASCII_MAX
            if narrow:
                return index + WIDE_UNIT
            index -= WIDE_UNIT
        return None


class DecodingBoundaryFinder:
    """Split point search that replays the repair chain incrementally.

    Used when a chunk holds no ASCII byte at all, which is common for
    mis-encoded CJK text without spaces or line breaks. The buffer is fed one
    byte at a time through an incremental decoder for the input encoding; every
    decoded character is pushed through the middle encoding into an
    incremental decoder for the origin encoding. An offset is safe when neither
    decoder holds pending bytes.

    The buffer must start at a safe point, which holds for every combined
    buffer built by the stream driver.
    """

    def __init__(
        self,
        input_encoding: str,
        middle_encoding: str,
        origin_encoding: str
    ) -> None:
        self.input_encoding = input_encoding
        self.middle_encoding = middle_encoding
        self.origin_encoding = origin_encoding

    def find(self, buffer: bytes) -> Optional[int]:
        """Return the exclusive end of the longest safe prefix, or None.

        Unknown encodings yield None; the re-encoder reports them.
        """
        try:
            input_decoder = codecs.getincrementaldecoder(self.input_encoding)(errors="replace")
            origin_decoder = codecs.getincrementaldecoder(self.origin_encoding)(errors="replace")
            safe_end = None
            for index in range(len(buffer)):
                text = input_decoder.decode(buffer[index:index + 1])
                if text:
                    origin_decoder.decode(
                        text.encode(self.middle_encoding, errors="ignore")
                    )
                if _is_idle(input_decoder) and _is_idle(origin_decoder):
                    safe_end = index + 1
        except LookupError:
            return None
        return safe_end


def _is_idle(decoder: codecs.IncrementalDecoder) -> bool:
    pending, _ = decoder.getstate()
    return not pending
