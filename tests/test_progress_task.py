"""Tests for TaskWithProgress - the progress-reporting task primitive."""

import asyncio
import threading

import pytest

from buildpipe_mcp.errors import TaskCancelledError
from buildpipe_mcp.tasks import TaskState, TaskWithProgress


async def collect(task):
    return [event async for event in task.progress()]


class TestTaskSuccess:
    """Tests for tasks whose work succeeds."""

    @pytest.mark.asyncio
    async def test_wait_returns_result(self):
        async def work(progress):
            return 42

        task = TaskWithProgress.run(work)

        assert await task.wait() == 42
        assert task.state == TaskState.SUCCEEDED
        assert task.done
        assert task.error is None

    @pytest.mark.asyncio
    async def test_progress_delivered_in_order_then_ends(self):
        """Test every progress value arrives before the sequence ends."""

        async def work(progress):
            for i in range(5):
                progress.report(f"step {i}")
                await asyncio.sleep(0)
            return "done"

        task = TaskWithProgress.run(work)
        events = await collect(task)

        assert events == [f"step {i}" for i in range(5)]
        assert task.done
        assert await task.wait() == "done"

    @pytest.mark.asyncio
    async def test_progress_without_reader_does_not_block(self):
        """Test work completes even when nobody reads progress."""

        async def work(progress):
            for i in range(10_000):
                progress.report(i)
            return "finished"

        task = TaskWithProgress.run(work)

        assert await asyncio.wait_for(task.wait(), timeout=5) == "finished"

    @pytest.mark.asyncio
    async def test_wait_repeatable_and_awaitable(self):
        async def work(progress):
            return "value"

        task = TaskWithProgress.run(work)

        assert await task == "value"
        assert await task.wait() == "value"
        results = await asyncio.gather(task.wait(), task.wait())
        assert results == ["value", "value"]

    @pytest.mark.asyncio
    async def test_no_progress_sequence_is_empty(self):
        async def work(progress):
            return None

        task = TaskWithProgress.run(work)

        assert await collect(task) == []
        assert await task.wait() is None

    @pytest.mark.asyncio
    async def test_state_transitions(self):
        started = asyncio.Event()
        release = asyncio.Event()

        async def work(progress):
            started.set()
            await release.wait()
            return 1

        task = TaskWithProgress.run(work)
        assert task.state == TaskState.PENDING

        await started.wait()
        assert task.state == TaskState.RUNNING
        assert not task.done

        release.set()
        await task.wait()
        assert task.state == TaskState.SUCCEEDED

    @pytest.mark.asyncio
    async def test_report_from_worker_thread(self):
        """Test progress reported from another thread is delivered."""

        async def work(progress):
            def emit():
                progress.report("from thread")

            thread = threading.Thread(target=emit)
            thread.start()
            await asyncio.to_thread(thread.join)
            await asyncio.sleep(0)
            return "ok"

        task = TaskWithProgress.run(work)

        assert await collect(task) == ["from thread"]
        assert await task.wait() == "ok"


class TestTaskFailure:
    """Tests for tasks whose work fails."""

    @pytest.mark.asyncio
    async def test_wait_raises_exact_error(self):
        error = ValueError("boom")

        async def work(progress):
            progress.report("before failure")
            raise error

        task = TaskWithProgress.run(work)
        events = await collect(task)

        with pytest.raises(ValueError) as exc_info:
            await task.wait()
        assert exc_info.value is error
        assert events == ["before failure"]
        assert task.state == TaskState.FAILED
        assert task.error is error

    @pytest.mark.asyncio
    async def test_from_error(self):
        error = RuntimeError("unbound")

        task = TaskWithProgress.from_error(error)

        assert await collect(task) == []
        with pytest.raises(RuntimeError) as exc_info:
            await task.wait()
        assert exc_info.value is error


class TestTaskProgressConsumer:
    """Tests for the single-consumer progress sequence."""

    @pytest.mark.asyncio
    async def test_second_reader_rejected(self):
        async def work(progress):
            return None

        task = TaskWithProgress.run(work)
        task.progress()

        with pytest.raises(RuntimeError, match="single reader"):
            task.progress()
        await task.wait()

    @pytest.mark.asyncio
    async def test_report_after_completion_dropped(self):
        """Test late reports after the terminal outcome are ignored."""
        captured = []

        async def work(progress):
            captured.append(progress)
            progress.report("in flight")
            return "ok"

        task = TaskWithProgress.run(work)
        await task.wait()
        captured[0].report("late")

        assert await collect(task) == ["in flight"]


class TestTaskCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_running_task(self):
        started = asyncio.Event()

        async def work(progress):
            started.set()
            await asyncio.sleep(60)
            return "never"

        task = TaskWithProgress.run(work)
        await started.wait()

        assert task.cancel() is True
        with pytest.raises(TaskCancelledError):
            await task.wait()
        assert task.state == TaskState.FAILED
        assert await collect(task) == []

    @pytest.mark.asyncio
    async def test_cancel_before_start(self):
        async def work(progress):
            return "never"

        task = TaskWithProgress.run(work)
        task.cancel()

        with pytest.raises(TaskCancelledError):
            await task.wait()
        assert task.state == TaskState.FAILED

    @pytest.mark.asyncio
    async def test_cancel_completed_task_is_noop(self):
        async def work(progress):
            return 1

        task = TaskWithProgress.run(work)
        await task.wait()

        assert task.cancel() is False
        assert await task.wait() == 1

    @pytest.mark.asyncio
    async def test_cancelling_waiter_does_not_cancel_work(self):
        release = asyncio.Event()

        async def work(progress):
            await release.wait()
            return "survived"

        task = TaskWithProgress.run(work)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(task.wait(), timeout=0.01)

        release.set()
        assert await task.wait() == "survived"

    @pytest.mark.asyncio
    async def test_waiter_cancelled_as_work_completes(self):
        release = asyncio.Event()

        async def work(progress):
            await release.wait()
            return 1

        task = TaskWithProgress.run(work)
        waiter = asyncio.ensure_future(task.wait())
        await asyncio.sleep(0)

        release.set()
        waiter.cancel()

        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert await task.wait() == 1
