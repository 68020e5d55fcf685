"""Character layer for mojibake repair.

This module provides encoding resolution, byte order mark detection, safe split
point search, the four-stage re-encoder and the streaming conversion driver.
"""

from .boundary import (
    BoundaryFinder,
    CarryBuffer,
    DecodingBoundaryFinder,
    SegmentationFailedError,
    concat,
)
from .encoding import (
    BOMDetector,
    BOMResult,
    ByteOrder,
    EncodingAlignment,
    EncodingDescriptor,
    UnsupportedEncodingError,
    resolve_encoding,
    stream_safe_name,
)
from .reencoder import FourStageReencoder, ReencodeResult
from .stream import (
    ConversionResult,
    DriverState,
    ProgressCallback,
    StreamDriver,
    StreamingProgress,
)

__all__ = [
    # Modules
    "boundary",
    "encoding",
    "reencoder",
    "stream",
    # Encodings
    "BOMDetector",
    "BOMResult",
    "ByteOrder",
    "EncodingAlignment",
    "EncodingDescriptor",
    "UnsupportedEncodingError",
    "resolve_encoding",
    "stream_safe_name",
    # Splitting
    "BoundaryFinder",
    "CarryBuffer",
    "DecodingBoundaryFinder",
    "SegmentationFailedError",
    "concat",
    # Conversion
    "FourStageReencoder",
    "ReencodeResult",
    "ConversionResult",
    "DriverState",
    "ProgressCallback",
    "StreamDriver",
    "StreamingProgress",
]
