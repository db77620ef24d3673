"""
Cancellation and Timeout Handling
=================================

A ``TimeoutToken`` is the cancellation context threaded through every stage
boundary of a pipeline run. It carries a deadline and a fired flag; once
fired it stays fired. ``CancellationGuard`` races the running pipeline
against the token's deadline and tears the pipeline down when the deadline
wins.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from pipeline_errors import PipelineTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class TimeoutToken:
    """Single-use, deadline-based cancellation signal"""

    def __init__(self, timeout: float, loop: Optional[asyncio.AbstractEventLoop] = None):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self._loop = loop or asyncio.get_running_loop()
        self.deadline = self._loop.time() + timeout
        self._fired = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def fired(self) -> bool:
        return self._fired

    def remaining(self) -> float:
        """Seconds left until the deadline, never negative"""
        return max(0.0, self.deadline - self._loop.time())

    def expired(self) -> bool:
        return self._fired or self._loop.time() >= self.deadline

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` when the token fires (immediately if it already has)"""
        if self._fired:
            callback()
        else:
            self._callbacks.append(callback)

    def fire(self) -> None:
        """Fire the token. Further calls are no-ops."""
        if self._fired:
            return
        self._fired = True
        logger.debug(f"Timeout token fired after {self.timeout}s")
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def check(self) -> None:
        """Raise ``PipelineTimeoutError`` if the token has fired or the deadline passed"""
        if self.expired():
            raise PipelineTimeoutError(self.timeout)

    async def checkpoint(self) -> None:
        """Yield to the event loop, then check the token"""
        await asyncio.sleep(0)
        self.check()


class CancellationGuard:
    """Races a pipeline against its timeout token"""

    def __init__(self, token: TimeoutToken):
        self.token = token

    async def run(self, pipeline: Awaitable[T]) -> T:
        """
        Await ``pipeline`` unless the token's deadline comes first.

        On timeout the token fires (its callbacks detach the sink), the
        pipeline task is cancelled and awaited so that its scoped resources
        are released, and ``PipelineTimeoutError`` is raised.
        """
        if self.token.fired:
            if asyncio.iscoroutine(pipeline):
                pipeline.close()
            raise PipelineTimeoutError(self.token.timeout)

        task = asyncio.ensure_future(pipeline)
        timer = asyncio.ensure_future(asyncio.sleep(self.token.remaining()))
        try:
            done, _ = await asyncio.wait({task, timer}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            timer.cancel()
            raise

        if task in done:
            timer.cancel()
            return task.result()

        logger.debug(f"Operation timed out after {self.token.timeout}s")
        self.token.fire()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Pipeline task cancelled successfully")
        except PipelineTimeoutError:
            logger.debug("Pipeline stopped at a cancellation checkpoint")
        raise PipelineTimeoutError(self.token.timeout)
