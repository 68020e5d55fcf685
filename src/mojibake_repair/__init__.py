"""Mojibake Repair.

Streaming repair of text that was decoded with the wrong single-byte encoding
and saved again, such as Chinese GBK text that went through Windows-1252 and
ended up stored as UTF-8.

Progressive API Disclosure:
- Level 1: Simple functions - repair_text(), convert_bytes(), convert_file()
- Level 2: Configured converter - MojibakeRepairer class
- Level 3: Stream driver - StreamDriver with progress callbacks
"""

__version__ = "0.1.0"
__author__ = "Mojibake Repair Team"

from .api import (
    MojibakeRepairer,
    convert_bytes,
    convert_file,
    convert_stream,
    repair_text,
)
from .character.stream import ConversionResult, StreamDriver
from .shared.config import FailurePolicy, PipelineConfig

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: Simple functions
    "repair_text",
    "convert_bytes",
    "convert_file",
    "convert_stream",

    # Level 2: Configured converter
    "MojibakeRepairer",

    # Level 3: Stream driver
    "StreamDriver",

    # Result and configuration
    "ConversionResult",
    "FailurePolicy",
    "PipelineConfig",
]
