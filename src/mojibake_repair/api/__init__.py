"""Public conversion API for mojibake repair."""

from .converter import (
    MojibakeRepairer,
    convert_bytes,
    convert_file,
    convert_stream,
    repair_text,
)

__all__ = [
    "MojibakeRepairer",
    "convert_bytes",
    "convert_file",
    "convert_stream",
    "repair_text",
]
