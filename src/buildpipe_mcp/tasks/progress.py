"""Progress-reporting task - an asyncio future with a progress channel.

State machine:
PENDING → RUNNING → SUCCEEDED | FAILED

The progress channel is an unbounded queue, so emitting never blocks the
work even when nobody reads progress. It is closed exactly once, right
after the terminal outcome is recorded.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Awaitable, Callable, Generator
from enum import Enum
from typing import Any, Generic, TypeVar

from ..errors import TaskCancelledError

logger = logging.getLogger(__name__)

R = TypeVar("R")
P = TypeVar("P")

_CLOSED = object()


class TaskState(str, Enum):
    """Task lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_TERMINAL_STATES = frozenset({TaskState.SUCCEEDED, TaskState.FAILED})


class ProgressReporter(Generic[P]):
    """Handle given to the work procedure for emitting progress."""

    def __init__(self, task: TaskWithProgress[Any, P]):
        self._task = task

    def report(self, value: P) -> None:
        """Emit a progress value. Never blocks."""
        self._task._emit(value)


class TaskWithProgress(Generic[R, P]):
    """Asynchronous computation that reports progress before completing.

    Usage:
        task = TaskWithProgress.run(work)
        async for event in task.progress():
            ...
        result = await task.wait()

    Must be created while an event loop is running.
    """

    def __init__(self, work: Callable[[ProgressReporter[P]], Awaitable[R]]):
        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._state = TaskState.PENDING
        self._result: R | None = None
        self._error: BaseException | None = None
        self._closed = False
        self._progress_claimed = False
        self._task = self._loop.create_task(self._execute(work))
        self._task.add_done_callback(self._on_task_done)

    @classmethod
    def run(cls, work: Callable[[ProgressReporter[P]], Awaitable[R]]) -> TaskWithProgress[R, P]:
        """Create and start a task running ``work``."""
        return cls(work)

    @classmethod
    def from_error(cls, error: BaseException) -> TaskWithProgress[R, P]:
        """Create a task that fails immediately with ``error``."""

        async def fail(_: ProgressReporter[P]) -> R:
            raise error

        return cls(fail)

    @property
    def state(self) -> TaskState:
        """Current lifecycle state."""
        return self._state

    @property
    def done(self) -> bool:
        """Whether a terminal outcome has been recorded."""
        return self._state in _TERMINAL_STATES

    @property
    def error(self) -> BaseException | None:
        """Terminal error, or None while running or on success."""
        return self._error

    def progress(self) -> AsyncIterator[P]:
        """Return the progress sequence.

        Single consumer: a second call raises RuntimeError. The sequence ends
        when the task reaches a terminal state.
        """
        if self._progress_claimed:
            raise RuntimeError("Progress can only be consumed by a single reader")
        self._progress_claimed = True
        return self._iter_progress()

    async def _iter_progress(self) -> AsyncIterator[P]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

    async def wait(self) -> R:
        """Wait for the terminal outcome.

        Returns the result or raises the terminating error. Safe to call
        repeatedly and from several awaiters. Cancelling an awaiter does not
        cancel the work; use cancel() for that.
        """
        # Raises CancelledError only when the awaiter itself is cancelled
        await asyncio.wait({self._task})
        if self._error is not None:
            raise self._error
        return self._result  # type: ignore[return-value]

    def __await__(self) -> Generator[Any, None, R]:
        return self.wait().__await__()

    def cancel(self) -> bool:
        """Request cooperative cancellation.

        Returns:
            True if the task was still running and cancellation was requested
        """
        if self.done:
            return False
        return self._task.cancel()

    def _emit(self, value: P) -> None:
        if threading.get_ident() != self._loop_thread:
            self._loop.call_soon_threadsafe(self._put, value)
        else:
            self._put(value)

    def _put(self, value: P) -> None:
        if self._closed:
            logger.debug(f"Dropping progress after close: {value!r}")
            return
        self._queue.put_nowait(value)

    async def _execute(self, work: Callable[[ProgressReporter[P]], Awaitable[R]]) -> None:
        self._state = TaskState.RUNNING
        try:
            result = await work(ProgressReporter(self))
        except asyncio.CancelledError:
            self._finish(error=TaskCancelledError("Task was cancelled"))
        except Exception as e:
            logger.debug(f"Task failed: {e}")
            self._finish(error=e)
        else:
            self._finish(result=result)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        # Covers cancellation before the work started and BaseExceptions
        if self.done:
            return
        if task.cancelled():
            self._finish(error=TaskCancelledError("Task was cancelled"))
        else:
            self._finish(error=task.exception() or RuntimeError("Task ended without a result"))

    def _finish(self, result: R | None = None, error: BaseException | None = None) -> None:
        if self.done:
            return
        if error is not None:
            self._error = error
            self._state = TaskState.FAILED
        else:
            self._result = result
            self._state = TaskState.SUCCEEDED
        self._closed = True
        self._queue.put_nowait(_CLOSED)
