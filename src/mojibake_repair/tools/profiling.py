"""Performance profiling for conversion runs.

Records wall-clock time for every run and, when memory tracking is enabled,
samples the resident set size of the process with ``psutil`` so that the effect
of the chunk size and the carry limit on memory use can be observed.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

import psutil

from ..shared.logging import get_logger
from ..shared.result import PerformanceMetrics

MS_PER_SECOND = 1000


@dataclass
class MemorySample:
    """Resident memory at a point of the run."""

    label: str
    rss_bytes: int
    timestamp: float = field(default_factory=time.time)


class ConversionProfiler:
    """Timing and memory sampling for a single conversion run.

    Examples:
        >>> profiler = ConversionProfiler(track_memory=True)
        >>> profiler.start()
        >>> profiler.sample("chunk")
        >>> metrics = profiler.finish(PerformanceMetrics())
        >>> metrics.peak_memory_bytes > 0
        True
    """

    def __init__(
        self,
        track_memory: bool = False,
        correlation_id: Optional[str] = None
    ) -> None:
        self.track_memory = track_memory
        self.samples: List[MemorySample] = []
        self._process: Optional[psutil.Process] = None
        self._start_time = 0.0
        self.logger = get_logger(__name__, correlation_id, "profiler")

    def start(self) -> None:
        """Begin timing and take the first memory sample."""
        self.samples.clear()
        self._start_time = time.perf_counter()
        if self.track_memory:
            self._process = psutil.Process()
            self.sample("start")

    def sample(self, label: str = "chunk") -> Optional[MemorySample]:
        """Record current resident memory; no-op unless tracking memory."""
        if self._process is None:
            return None
        entry = MemorySample(label=label, rss_bytes=self._process.memory_info().rss)
        self.samples.append(entry)
        return entry

    @property
    def peak_memory_bytes(self) -> int:
        return max((s.rss_bytes for s in self.samples), default=0)

    def finish(self, metrics: PerformanceMetrics) -> PerformanceMetrics:
        """Stop timing and store timing and memory figures into ``metrics``."""
        metrics.processing_time_ms = (
            (time.perf_counter() - self._start_time) * MS_PER_SECOND
        )
        if self._process is not None:
            self.sample("end")
            metrics.peak_memory_bytes = self.peak_memory_bytes
            metrics.memory_delta_bytes = (
                self.samples[-1].rss_bytes - self.samples[0].rss_bytes
            )
            self.logger.debug(
                "Memory profile collected",
                extra={
                    "samples": len(self.samples),
                    "peak_memory_bytes": metrics.peak_memory_bytes,
                }
            )
        return metrics
