"""
Base Classes for the Uppercase Stream Pipeline
==============================================

Contains the core data structures and abstract base classes shared by the
stages, the streams and the pipeline builder.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

from cancellation import TimeoutToken

ByteStream = AsyncIterator[bytes]


@dataclass
class PipelineResult:
    """Outcome of a completed pipeline run"""
    bytes_read: int
    bytes_written: int
    duration: float
    output_path: Optional[Path] = None  # None when writing to stdout


class StageOperator(ABC):
    """Abstract base class for stream stages.

    A stage maps one readable byte stream to another, chunk by chunk,
    without holding the whole input in memory.
    """

    name: str = "stage"

    @abstractmethod
    def apply(self, stream: ByteStream, token: TimeoutToken) -> ByteStream:
        pass

    def __call__(self, stream: ByteStream, token: TimeoutToken) -> ByteStream:
        return self.apply(stream, token)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ByteSink(ABC):
    """Abstract base class for pipeline sinks"""

    def __init__(self):
        self._detached = False
        self.bytes_written = 0

    @property
    def detached(self) -> bool:
        return self._detached

    def detach(self) -> None:
        """Stop accepting bytes. Later writes are dropped."""
        self._detached = True

    @abstractmethod
    async def open(self) -> None:
        pass

    @abstractmethod
    async def write(self, chunk: bytes) -> None:
        pass

    @abstractmethod
    async def close(self, completed: bool) -> None:
        pass

    async def __aenter__(self) -> 'ByteSink':
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close(completed=exc_type is None and not self._detached)
