"""Developer tools for mojibake repair.

Provides profiling utilities that report timing and memory use of conversion runs.
"""

from .profiling import ConversionProfiler, MemorySample

__all__ = [
    "ConversionProfiler",
    "MemorySample",
]
