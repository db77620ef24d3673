"""
Pipeline Monitoring
===================

Byte and chunk counters for the points of a pipeline run, with resident
memory sampled so that bounded per-chunk memory can be observed.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import psutil

from base_classes import ByteStream

logger = logging.getLogger(__name__)


@dataclass
class StageMetrics:
    """Metrics for one metered point of the pipeline"""
    stage_name: str
    start_time: float
    end_time: Optional[float] = None
    chunks_processed: int = 0
    bytes_processed: int = 0
    memory_start: int = 0
    memory_peak: int = 0

    @property
    def duration(self) -> float:
        if self.end_time:
            return self.end_time - self.start_time
        return time.time() - self.start_time

    @property
    def throughput_mb_per_sec(self) -> float:
        if self.duration > 0:
            return (self.bytes_processed / 1024 / 1024) / self.duration
        return 0.0


class PipelineMonitor:
    """Collects StageMetrics for a single pipeline run"""

    def __init__(self, sample_every: int = 16):
        if sample_every <= 0:
            raise ValueError("sample_every must be positive")
        self.sample_every = sample_every
        self.stage_metrics: Dict[str, StageMetrics] = {}
        self.process = psutil.Process()

    def _rss(self) -> int:
        try:
            return self.process.memory_info().rss
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.debug(f"Memory sampling unavailable: {e}")
            return 0

    def stage_start(self, stage_name: str) -> StageMetrics:
        """Mark stage start"""
        rss = self._rss()
        metrics = StageMetrics(
            stage_name=stage_name,
            start_time=time.time(),
            memory_start=rss,
            memory_peak=rss
        )
        self.stage_metrics[stage_name] = metrics
        return metrics

    def stage_end(self, stage_name: str) -> None:
        """Mark stage completion"""
        metrics = self.stage_metrics.get(stage_name)
        if metrics and metrics.end_time is None:
            metrics.end_time = time.time()
            metrics.memory_peak = max(metrics.memory_peak, self._rss())
            logger.debug(f"Stage '{stage_name}' done: {metrics.bytes_processed} bytes "
                         f"in {metrics.chunks_processed} chunks, {metrics.duration:.3f}s")

    async def meter(self, stage_name: str, stream: ByteStream) -> ByteStream:
        """Pass ``stream`` through unchanged while counting its chunks and bytes"""
        metrics = self.stage_start(stage_name)
        try:
            async for chunk in stream:
                metrics.chunks_processed += 1
                metrics.bytes_processed += len(chunk)
                if metrics.chunks_processed % self.sample_every == 0:
                    metrics.memory_peak = max(metrics.memory_peak, self._rss())
                yield chunk
        finally:
            self.stage_end(stage_name)

    def bytes_for(self, stage_name: str) -> int:
        metrics = self.stage_metrics.get(stage_name)
        return metrics.bytes_processed if metrics else 0

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics for all metered stages"""
        return {
            name: {
                'bytes': m.bytes_processed,
                'chunks': m.chunks_processed,
                'duration': round(m.duration, 6),
                'throughput_mb_per_sec': round(m.throughput_mb_per_sec, 3),
                'memory_peak_delta': max(0, m.memory_peak - m.memory_start),
            }
            for name, m in self.stage_metrics.items()
        }
