"""
Uppercase Stream Pipeline
=========================

Builds and runs the linear pipeline

    source -> [gunzip] -> uppercase -> [gzip] -> sink

for one invocation, under a wall-clock timeout.
"""

import contextlib
import logging
import time
from functools import reduce
from typing import Any, List, Optional, Tuple

from base_classes import ByteSink, ByteStream, PipelineResult, StageOperator
from cancellation import CancellationGuard, TimeoutToken
from pipeline.stages import GzipCompressStage, GzipDecompressStage, UppercaseStage
from pipeline.streams import ByteSource, FileSink, FileSource, StdinSource, StdoutSink
from pipeline_configs import PipelineConfig
from pipeline_monitoring import PipelineMonitor

logger = logging.getLogger(__name__)


def plan_stages(config: PipelineConfig) -> List[StageOperator]:
    """Ordered stage list for ``config``: decompress, uppercase, compress"""
    stages: List[StageOperator] = []
    if config.uncompress:
        stages.append(GzipDecompressStage(max_chunk_size=config.chunk_size))
    stages.append(UppercaseStage())
    if config.compress:
        stages.append(GzipCompressStage())
    return stages


def create_source(config: PipelineConfig, stdin: Optional[Any] = None) -> ByteSource:
    if config.use_stdin:
        return StdinSource(chunk_size=config.chunk_size, handle=stdin)
    return FileSource(config.input_path, chunk_size=config.chunk_size)


def create_sink(config: PipelineConfig, stdout: Optional[Any] = None) -> ByteSink:
    if config.to_stdout:
        return StdoutSink(handle=stdout)
    return FileSink(config.output_path)


def build_pipeline(config: PipelineConfig,
                   source: ByteStream,
                   token: TimeoutToken,
                   monitor: Optional[PipelineMonitor] = None,
                   stdout: Optional[Any] = None) -> Tuple[ByteStream, ByteSink]:
    """
    Compose the stages over ``source`` and pick the sink.

    Nothing is read or written here: the returned stream is lazy and the
    sink is not opened yet. Data starts flowing when the stream is iterated.

    Args:
        config: Run configuration
        source: Raw input chunks
        token: Cancellation context passed to every stage
        monitor: Optional monitor metering the source and the final stream
        stdout: Optional replacement for the process's stdout

    Returns:
        Tuple of (final stream, unopened sink)
    """
    stages = plan_stages(config)
    logger.debug(f"Pipeline stages: {[stage.name for stage in stages]}")

    if monitor is not None:
        source = monitor.meter("source", source)
    stream = reduce(lambda upstream, stage: stage(upstream, token), stages, source)
    if monitor is not None:
        stream = monitor.meter("output", stream)

    return stream, create_sink(config, stdout)


async def run_pipeline(config: PipelineConfig,
                       token: TimeoutToken,
                       monitor: Optional[PipelineMonitor] = None,
                       stdin: Optional[Any] = None,
                       stdout: Optional[Any] = None) -> PipelineResult:
    """
    Open the source and sink, pipe every chunk through the stages and
    release all handles on every exit path, cancellation included.
    """
    monitor = monitor or PipelineMonitor()
    start_time = time.time()

    async with contextlib.AsyncExitStack() as stack:
        source = await stack.enter_async_context(create_source(config, stdin))
        stream, sink = build_pipeline(config, source.stream(token), token, monitor, stdout)

        token.add_callback(sink.detach)
        await stack.enter_async_context(sink)
        stack.push_async_callback(stream.aclose)

        async for chunk in stream:
            token.check()
            await sink.write(chunk)

    result = PipelineResult(
        bytes_read=monitor.bytes_for("source"),
        bytes_written=sink.bytes_written,
        duration=time.time() - start_time,
        output_path=getattr(sink, 'path', None)
    )
    logger.info(f"Pipeline complete: {result.bytes_read} -> {result.bytes_written} bytes "
                f"in {result.duration:.3f}s")
    return result


async def execute(config: PipelineConfig,
                  monitor: Optional[PipelineMonitor] = None,
                  stdin: Optional[Any] = None,
                  stdout: Optional[Any] = None) -> PipelineResult:
    """Run one pipeline guarded by a fresh timeout token"""
    token = TimeoutToken(config.timeout)
    guard = CancellationGuard(token)
    return await guard.run(run_pipeline(config, token, monitor, stdin=stdin, stdout=stdout))
