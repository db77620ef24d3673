"""
Unit tests for timeout tokens and the cancellation guard
========================================================

Tests for cancellation.py including:
- TimeoutToken deadline and single-use firing
- CancellationGuard completion, timeout teardown and error propagation
"""

import asyncio
import logging

import pytest

from cancellation import CancellationGuard, TimeoutToken
from pipeline_errors import PipelineTimeoutError


class TestTimeoutToken:
    """Test TimeoutToken behavior"""

    @pytest.mark.asyncio
    async def test_invalid_timeout(self):
        with pytest.raises(ValueError, match="timeout must be positive"):
            TimeoutToken(0)

    @pytest.mark.asyncio
    async def test_fresh_token(self):
        token = TimeoutToken(5)

        assert not token.fired
        assert not token.expired()
        assert 0 < token.remaining() <= 5
        token.check()

    @pytest.mark.asyncio
    async def test_fire_is_terminal(self):
        """Once fired the token stays fired and callbacks run only once"""
        token = TimeoutToken(5)
        calls = []
        token.add_callback(lambda: calls.append("detach"))

        token.fire()
        token.fire()

        assert token.fired
        assert calls == ["detach"]
        with pytest.raises(PipelineTimeoutError):
            token.check()

    @pytest.mark.asyncio
    async def test_callback_added_after_fire_runs_immediately(self):
        token = TimeoutToken(5)
        token.fire()
        calls = []

        token.add_callback(lambda: calls.append(1))

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_deadline_passing_expires_token(self):
        """check() fails once the deadline is behind us, even before firing"""
        token = TimeoutToken(0.01)
        await asyncio.sleep(0.05)

        assert token.expired()
        assert token.remaining() == 0.0
        with pytest.raises(PipelineTimeoutError):
            token.check()

    @pytest.mark.asyncio
    async def test_checkpoint_raises_after_fire(self):
        token = TimeoutToken(5)
        token.fire()

        with pytest.raises(PipelineTimeoutError):
            await token.checkpoint()


class TestCancellationGuard:
    """Test CancellationGuard race between pipeline and deadline"""

    @pytest.mark.asyncio
    async def test_completes_before_deadline(self):
        token = TimeoutToken(5)

        async def pipeline():
            await asyncio.sleep(0)
            return "done"

        assert await CancellationGuard(token).run(pipeline()) == "done"
        assert not token.fired

    @pytest.mark.asyncio
    async def test_timeout_tears_down_pipeline(self):
        """The slow pipeline is cancelled, its cleanup runs, the token fires"""
        token = TimeoutToken(0.05)
        events = []
        token.add_callback(lambda: events.append("detached"))

        async def pipeline():
            try:
                await asyncio.sleep(10)
            finally:
                events.append("released")

        with pytest.raises(PipelineTimeoutError) as exc_info:
            await CancellationGuard(token).run(pipeline())

        assert token.fired
        assert events == ["detached", "released"]
        assert exc_info.value.timeout == 0.05
        assert isinstance(exc_info.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_timeout_logged_below_error(self, caplog):
        """The caller reports the timeout; the guard only leaves a debug trace"""
        token = TimeoutToken(0.05)

        async def pipeline():
            await asyncio.sleep(10)

        with caplog.at_level(logging.DEBUG, logger="cancellation"):
            with pytest.raises(PipelineTimeoutError):
                await CancellationGuard(token).run(pipeline())

        assert "Operation timed out after 0.05s" in caplog.text
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


    @pytest.mark.asyncio
    async def test_pipeline_errors_propagate(self):
        token = TimeoutToken(5)

        async def pipeline():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await CancellationGuard(token).run(pipeline())
        assert not token.fired

    @pytest.mark.asyncio
    async def test_already_fired_token(self):
        """A spent token can not guard a new run"""
        token = TimeoutToken(5)
        token.fire()
        started = []

        async def pipeline():
            started.append(True)

        with pytest.raises(PipelineTimeoutError):
            await CancellationGuard(token).run(pipeline())
        assert started == []

    @pytest.mark.asyncio
    async def test_pipeline_stopping_at_checkpoint(self):
        """A pipeline that notices the deadline itself reports a timeout too"""
        token = TimeoutToken(0.05)

        async def pipeline():
            while True:
                await asyncio.sleep(0.01)
                token.check()

        with pytest.raises(PipelineTimeoutError):
            await CancellationGuard(token).run(pipeline())
