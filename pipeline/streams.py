"""
Sources and sinks for the uppercase stream pipeline.

Every read and write is a suspension point where the event loop can run the
cancellation guard. Files go through aiofiles; stdin and stdout use event
loop pipe transports when they are pipes or terminals.
"""

import asyncio
import logging
import os
import stat
import sys
from pathlib import Path
from typing import Any, Optional

import aiofiles

from base_classes import ByteSink, ByteStream
from cancellation import TimeoutToken
from pipeline_errors import PipelineIOError

logger = logging.getLogger(__name__)


class ByteSource:
    """Base class for sources: an async context manager that yields chunks"""

    label = "source"

    def __init__(self, chunk_size: int = 64 * 1024):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self._handle: Any = None

    async def open(self) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        self._handle = None

    async def __aenter__(self) -> 'ByteSource':
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _read(self) -> bytes:
        return await self._handle.read(self.chunk_size)

    async def stream(self, token: TimeoutToken) -> ByteStream:
        """Yield chunks until the source is exhausted"""
        if self._handle is None:
            raise PipelineIOError(f"{self.label} is not open")
        while True:
            token.check()
            try:
                chunk = await self._read()
            except OSError as e:
                raise PipelineIOError(f"Failed reading {self.label}", cause=e)
            if not chunk:
                break
            yield chunk


class FileSource(ByteSource):
    """Read a file from disk"""

    def __init__(self, path: Path, chunk_size: int = 64 * 1024):
        super().__init__(chunk_size)
        self.path = Path(path)
        self.label = str(self.path)

    async def open(self) -> None:
        try:
            self._handle = await aiofiles.open(self.path, 'rb')
        except OSError as e:
            raise PipelineIOError(f"Cannot open input file {self.path}", path=self.path, cause=e)
        logger.debug(f"Opened input file {self.path}")

    async def close(self) -> None:
        if self._handle is not None:
            await self._handle.close()
            logger.debug(f"Closed input file {self.path}")
        await super().close()


def _is_pipe_like(fileobj: Any) -> bool:
    """True for pipes, sockets and terminals, which can stall indefinitely.

    Regular files always make progress, so they stay on aiofiles.
    """
    fileno = getattr(fileobj, 'fileno', None)
    if fileno is None:
        return False
    try:
        mode = os.fstat(fileno()).st_mode
    except (OSError, ValueError):
        return False
    return not stat.S_ISREG(mode)


class _PipeWriter:
    """aiofiles-like write/flush over an event loop write pipe"""

    def __init__(self, writer: asyncio.StreamWriter):
        self._writer = writer

    async def write(self, chunk: bytes) -> None:
        self._writer.write(chunk)
        await self._writer.drain()

    async def flush(self) -> None:
        await self._writer.drain()


class StdinSource(ByteSource):
    """Read standard input. The process's stdin is never closed.

    Pipes and terminals are read through the event loop so that a stalled
    writer can be abandoned on timeout; no worker thread is left blocked.
    """

    label = "stdin"

    def __init__(self, chunk_size: int = 64 * 1024, handle: Optional[Any] = None,
                 fileobj: Optional[Any] = None):
        super().__init__(chunk_size)
        self._stdin = handle
        self._fileobj = fileobj
        self._transport: Optional[asyncio.BaseTransport] = None
        self._fd: Optional[int] = None

    async def open(self) -> None:
        if self._stdin is not None:
            self._handle = self._stdin
            return

        fileobj = self._fileobj if self._fileobj is not None else sys.stdin
        if fileobj is None:
            raise PipelineIOError("stdin is not available")
        if not _is_pipe_like(fileobj):
            self._handle = aiofiles.stdin_bytes
            return

        loop = asyncio.get_running_loop()
        self._fd = fileobj.fileno()
        reader = asyncio.StreamReader()
        pipe = os.fdopen(os.dup(self._fd), 'rb', buffering=0)
        try:
            self._transport, _ = await loop.connect_read_pipe(
                lambda: asyncio.StreamReaderProtocol(reader), pipe)
        except (OSError, ValueError) as e:
            pipe.close()
            raise PipelineIOError("Cannot read from stdin", cause=e)
        self._handle = reader
        logger.debug("Reading stdin through the event loop")

    async def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            os.set_blocking(self._fd, True)
        await super().close()

    async def _read(self) -> bytes:
        # read1 returns what the pipe has instead of waiting for a full chunk
        read1 = getattr(self._handle, 'read1', None)
        if read1 is not None:
            return await read1(self.chunk_size)
        return await super()._read()


class FileSink(ByteSink):
    """Write to a newly created file. Incomplete output is removed on close."""

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._handle: Any = None

    async def open(self) -> None:
        try:
            self._handle = await aiofiles.open(self.path, 'wb')
        except OSError as e:
            raise PipelineIOError(f"Cannot create output file {self.path}", path=self.path, cause=e)
        logger.debug(f"Created output file {self.path}")

    async def write(self, chunk: bytes) -> None:
        if self._detached:
            return
        try:
            await self._handle.write(chunk)
        except OSError as e:
            raise PipelineIOError(f"Failed writing {self.path}", path=self.path, cause=e)
        self.bytes_written += len(chunk)

    async def close(self, completed: bool) -> None:
        if self._handle is None:
            return
        try:
            await self._handle.close()
        finally:
            self._handle = None
            if not completed:
                logger.warning(f"Removing incomplete output file {self.path}")
                self.path.unlink(missing_ok=True)


class StdoutSink(ByteSink):
    """Write to standard output. The process's stdout is flushed, not closed.

    Pipes and terminals are written through the event loop, so a reader that
    stops consuming can not keep the process alive after a timeout.
    """

    def __init__(self, handle: Optional[Any] = None, fileobj: Optional[Any] = None):
        super().__init__()
        self._stdout = handle
        self._fileobj = fileobj
        self._handle: Any = None
        self._transport: Optional[asyncio.WriteTransport] = None
        self._fd: Optional[int] = None

    @property
    def path(self) -> None:
        return None

    async def open(self) -> None:
        if self._stdout is not None:
            self._handle = self._stdout
            return

        fileobj = self._fileobj if self._fileobj is not None else sys.stdout
        if fileobj is None:
            raise PipelineIOError("stdout is not available")
        if not _is_pipe_like(fileobj):
            self._handle = aiofiles.stdout_bytes
            return

        fileobj.flush()
        loop = asyncio.get_running_loop()
        self._fd = fileobj.fileno()
        pipe = os.fdopen(os.dup(self._fd), 'wb', buffering=0)
        try:
            self._transport, protocol = await loop.connect_write_pipe(
                lambda: asyncio.streams.FlowControlMixin(loop=loop), pipe)
        except (OSError, ValueError) as e:
            pipe.close()
            raise PipelineIOError("Cannot write to stdout", cause=e)
        self._handle = _PipeWriter(asyncio.StreamWriter(self._transport, protocol, None, loop))
        logger.debug("Writing stdout through the event loop")

    async def write(self, chunk: bytes) -> None:
        if self._detached:
            return
        try:
            await self._handle.write(chunk)
        except OSError as e:
            raise PipelineIOError("Failed writing to stdout", cause=e)
        self.bytes_written += len(chunk)

    async def close(self, completed: bool) -> None:
        if self._handle is None:
            return
        try:
            if completed:
                await self._handle.flush()
        except OSError as e:
            raise PipelineIOError("Failed flushing stdout", cause=e)
        finally:
            self._handle = None
            if self._transport is not None:
                # Unsent bytes of an abandoned run are dropped, not drained
                if completed:
                    self._transport.close()
                else:
                    self._transport.abort()
                self._transport = None
                os.set_blocking(self._fd, True)
