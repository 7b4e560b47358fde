"""anyio facade over ``ProcessSession`` for async test harnesses.

Blocking operations run in a worker thread via ``anyio.to_thread.run_sync``
so the event loop keeps running while a wait is in progress. Waits are not
cancellable: a cancelled caller stops awaiting, but the worker thread runs
until its own timeout or EOF.
"""

from __future__ import annotations

import re
import signal
from collections.abc import Mapping, Sequence
from functools import partial
from types import TracebackType

import anyio

from .session import ProcessSession, Stream
from .timestamped_line import TimestampedLine

__all__ = ["AsyncProcessSession"]


class AsyncProcessSession:
    """Async wrapper around a ``ProcessSession``.

    Example:
        async with AsyncProcessSession() as session:
            await session.start(["my-server"], r"ready", wait_timeout=5)
            await session.wait_for_output("out", r"request handled")
    """

    def __init__(
        self,
        session: ProcessSession | None = None,
        *,
        echo: bool | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self.session = session or ProcessSession(echo=echo, poll_interval=poll_interval)

    @property
    def pid(self) -> int | None:
        return self.session.pid

    @property
    def exit_status(self) -> int | None:
        return self.session.exit_status

    async def start(
        self,
        command_and_args: Sequence[str] | str,
        output_to_wait_for: str | re.Pattern[str] | None = None,
        wait_timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        *,
        separate_stderr: bool = False,
    ) -> None:
        await anyio.to_thread.run_sync(
            partial(
                self.session.start,
                command_and_args,
                output_to_wait_for,
                wait_timeout,
                env,
                separate_stderr=separate_stderr,
            )
        )

    async def wait_for_exit(self) -> bool:
        return await anyio.to_thread.run_sync(self.session.wait_for_exit)

    async def wait_for_output(
        self,
        which: Stream | str,
        pattern: str | re.Pattern[str],
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> TimestampedLine:
        return await anyio.to_thread.run_sync(
            partial(
                self.session.wait_for_output,
                which,
                pattern,
                timeout=timeout,
                poll_interval=poll_interval,
            )
        )

    def kill(self, sig: str | int | signal.Signals = "TERM") -> None:
        self.session.kill(sig)

    def get_log(self, which: Stream | str) -> list[TimestampedLine]:
        return self.session.get_log(which)

    def drain_log(self, which: Stream | str) -> list[TimestampedLine]:
        return self.session.drain_log(which)

    async def __aenter__(self) -> AsyncProcessSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.session.is_running:
            self.session.kill()
            # Shield the reap so a cancelled scope still leaves no zombie
            with anyio.CancelScope(shield=True):
                await anyio.to_thread.run_sync(self.session.wait_for_exit)
