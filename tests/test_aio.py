"""AsyncProcessSession tests."""

from __future__ import annotations

import asyncio
import signal
import time

import pytest

from process_helper.errors import OutputEOFError, OutputTimeoutError
from process_helper.runtime.aio import AsyncProcessSession
from process_helper.runtime.session import IS_WINDOWS, ProcessSession

pytestmark = pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific tests")


def texts(lines) -> list[str]:
    return [line.text for line in lines]


class TestAsyncSession:
    """Async facade over ProcessSession."""

    @pytest.mark.asyncio
    async def test_start_and_exit(self):
        session = AsyncProcessSession()
        await session.start(["sh", "-c", "echo hello ; echo there"])
        assert await session.wait_for_exit() is True
        assert session.exit_status == 0
        assert session.pid is None
        assert texts(session.get_log("out")) == ["hello\n", "there\n"]

    @pytest.mark.asyncio
    async def test_wraps_existing_session(self):
        inner = ProcessSession(poll_interval=0.05)
        session = AsyncProcessSession(inner)
        await session.start(["sh", "-c", "exit 4"])
        assert await session.wait_for_exit() is False
        assert inner.exit_code == 4

    @pytest.mark.asyncio
    async def test_wait_for_output(self):
        session = AsyncProcessSession(poll_interval=0.05)
        await session.start(["sh", "-c", "sleep 0.3 ; echo ready ; sleep 0.3"])
        line = await session.wait_for_output("out", r"ready", timeout=5)
        assert line.text == "ready\n"
        assert await session.wait_for_exit() is True

    @pytest.mark.asyncio
    async def test_event_loop_keeps_running_during_wait(self):
        session = AsyncProcessSession(poll_interval=0.05)
        await session.start(["sh", "-c", "sleep 0.5 ; echo done"])

        ticks = 0

        async def ticker() -> None:
            nonlocal ticks
            while True:
                ticks += 1
                await asyncio.sleep(0.05)

        task = asyncio.create_task(ticker())
        try:
            await session.wait_for_output("out", r"done", timeout=5)
        finally:
            task.cancel()
        assert ticks > 3
        await session.wait_for_exit()

    @pytest.mark.asyncio
    async def test_startup_pattern_eof(self):
        session = AsyncProcessSession(poll_interval=0.05)
        with pytest.raises(OutputEOFError):
            await session.start(["sh", "-c", "echo nope"], r"never", wait_timeout=5)
        assert await session.wait_for_exit() is True

    @pytest.mark.asyncio
    async def test_timeout(self):
        session = AsyncProcessSession(poll_interval=0.05)
        await session.start(["sleep", "10"])
        t0 = time.monotonic()
        with pytest.raises(OutputTimeoutError):
            await session.wait_for_output("out", r"never", timeout=0.3)
        assert time.monotonic() - t0 < 1.5
        session.kill()
        assert await session.wait_for_exit() is False

    @pytest.mark.asyncio
    async def test_drain_log(self):
        session = AsyncProcessSession()
        await session.start(["sh", "-c", "echo a ; echo b"])
        await session.wait_for_exit()
        assert texts(session.drain_log("out")) == ["a\n", "b\n"]
        assert session.get_log("out") == []

    @pytest.mark.asyncio
    async def test_context_manager_kills_and_reaps(self):
        async with AsyncProcessSession() as session:
            await session.start(["sleep", "10"])
            assert session.pid is not None
        assert session.pid is None
        assert session.session.term_signal is signal.SIGTERM
