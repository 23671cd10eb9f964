"""
Cooperative tasks owned by the script runtime.

A task is a generator or an `async def` coroutine. It suspends by yielding
(or awaiting) a wait condition and is resumed by the frame driver once per
frame, after the UI has been built, when that condition holds. Tasks are
never preempted: a task that stops reaching yield points is simply never
resumed again.

The registry is single-threaded. The only cross-thread piece is
`FrameFuture`, which an `IoWorker` completes from its own thread and a task
observes on the frame thread.
"""

import asyncio
import inspect
import threading
import time
from typing import Any, Callable, List, Optional, Tuple

from imscript.imscript_config import dbg


class FrameClock:
    """Frame number and wall time as seen by waiting tasks."""
    def __init__(self, now: Callable[[], float] = time.monotonic):
        self.frame = 0
        self._now = now

    def now(self) -> float:
        return self._now()


# =================================================================
# Wait conditions
# =================================================================

class Wait:
    """Base wait condition. Yield it from a generator task or await it."""

    def arm(self, clock: FrameClock):
        pass

    def ready(self, clock: FrameClock) -> bool:
        raise NotImplementedError

    def outcome(self):
        """(value, error) handed back to the task when it resumes."""
        return None, None

    def __await__(self):
        value = yield self
        return value


class WaitFrames(Wait):
    def __init__(self, frames: int = 1):
        self.frames = max(1, int(frames))
        self._armed_at: Optional[int] = None

    def arm(self, clock):
        self._armed_at = clock.frame

    def ready(self, clock):
        return clock.frame >= self._armed_at + self.frames

    def __repr__(self):
        return f"<wait {self.frames} frame(s)>"


class WaitUntil(Wait):
    def __init__(self, predicate: Callable[[], Any]):
        if not callable(predicate):
            raise TypeError("wait_until expects a callable predicate")
        self.predicate = predicate

    def ready(self, clock):
        return bool(self.predicate())

    def __repr__(self):
        return f"<wait until {getattr(self.predicate, '__name__', 'predicate')}>"


class Sleep(Wait):
    def __init__(self, seconds: float):
        self.seconds = max(0.0, float(seconds))
        self._deadline: Optional[float] = None

    def arm(self, clock):
        self._deadline = clock.now() + self.seconds

    def ready(self, clock):
        return clock.now() >= self._deadline

    def __repr__(self):
        return f"<sleep {self.seconds}s>"


def next_frame() -> WaitFrames:
    return WaitFrames(1)


def wait_frames(n: int) -> WaitFrames:
    return WaitFrames(n)


def wait_until(predicate) -> WaitUntil:
    return WaitUntil(predicate)


def sleep(seconds: float) -> Sleep:
    return Sleep(seconds)


class FrameFuture(Wait):
    """Completion slot filled from any thread and awaited by a task."""

    def __init__(self):
        self._lock = threading.Lock()
        self._done = False
        self._result: Any = None
        self._error: Optional[BaseException] = None

    def set_result(self, value: Any):
        with self._lock:
            if self._done:
                return
            self._result = value
            self._done = True

    def set_error(self, error: BaseException):
        with self._lock:
            if self._done:
                return
            self._error = error
            self._done = True

    def done(self) -> bool:
        with self._lock:
            return self._done

    @property
    def error(self) -> Optional[BaseException]:
        with self._lock:
            return self._error

    def result(self) -> Any:
        with self._lock:
            if not self._done:
                raise RuntimeError("future is not complete")
            if self._error is not None:
                raise self._error
            return self._result

    def ready(self, clock):
        return self.done()

    def outcome(self):
        with self._lock:
            return self._result, self._error

    def __await__(self):
        if not self.done():
            yield self
        return self.result()

    def __repr__(self):
        state = "done" if self.done() else "pending"
        return f"<FrameFuture {state}>"


def _as_wait(value: Any) -> Wait:
    match value:
        case None:
            return WaitFrames(1)
        case Wait():
            return value
        case _:
            raise TypeError(f"task yielded {type(value).__name__}; expected a wait condition")


# =================================================================
# Tasks
# =================================================================

class ScheduledTask:
    """A suspended unit of script work with its own continuation."""

    def __init__(self, body, name: Optional[str] = None):
        if callable(body) and not (inspect.isgenerator(body) or inspect.iscoroutine(body)):
            name = name or getattr(body, "__name__", None)
            body = body()
        if not (inspect.isgenerator(body) or inspect.iscoroutine(body)):
            raise TypeError("a task must be a generator or a coroutine")
        self._coro = body
        self.name = name or getattr(body, "__name__", "task")
        self._waiting: Optional[Wait] = None
        self.is_complete = False
        self.cancelled = False
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.resumes = 0

    def poll(self, clock: FrameClock) -> bool:
        """True when the task can make progress now."""
        if self.is_complete:
            return False
        if self._waiting is None:
            return True
        return self._waiting.ready(clock)

    def resume(self, clock: FrameClock):
        """Steps the task to its next yield point. Errors propagate to the caller."""
        if self.is_complete:
            return
        value, error = self._waiting.outcome() if self._waiting is not None else (None, None)
        self._waiting = None
        self.resumes += 1
        try:
            if error is not None:
                yielded = self._coro.throw(error)
            else:
                yielded = self._coro.send(value)
        except StopIteration as stop:
            self.is_complete = True
            self.result = stop.value
            return
        except BaseException as e:
            self.is_complete = True
            self.error = e
            raise
        try:
            wait = _as_wait(yielded)
        except TypeError as e:
            self.cancel()
            self.error = e
            raise
        wait.arm(clock)
        self._waiting = wait

    def cancel(self):
        if self.is_complete:
            return
        self.is_complete = True
        self.cancelled = True
        self._coro.close()

    def fail(self, error: BaseException):
        if self.error is None:
            self.error = error
        if not self.is_complete:
            self.is_complete = True
            self._coro.close()

    def __repr__(self):
        state = "done" if self.is_complete else f"waiting {self._waiting!r}"
        return f"<task {self.name} {state}>"


class TaskRegistry:
    """Process-wide set of script tasks, resumed once per frame."""

    def __init__(self, clock: Optional[FrameClock] = None,
                 on_error: Optional[Callable[[ScheduledTask, BaseException], None]] = None):
        self.clock = clock or FrameClock()
        self.on_error = on_error
        self._tasks: List[ScheduledTask] = []
        self.failed: List[Tuple[ScheduledTask, BaseException]] = []
        self._resuming = False

    def register(self, task) -> ScheduledTask:
        if not isinstance(task, ScheduledTask):
            task = ScheduledTask(task)
        self._tasks.append(task)
        dbg("task registered", task.name)
        return task

    @property
    def pending(self) -> List[ScheduledTask]:
        return [t for t in self._tasks if not t.is_complete]

    def __len__(self):
        return len(self.pending)

    def resume_all(self) -> int:
        """
        One fairness pass over the tasks registered when the pass starts.
        Returns how many tasks were resumed; the ones that failed during the
        pass are left in `failed`.
        """
        if self._resuming:
            raise RuntimeError("resume_all called while already resuming tasks")
        self._resuming = True
        self.failed = []
        resumed = 0
        try:
            for task in list(self._tasks):
                if task.is_complete:
                    continue
                try:
                    if not task.poll(self.clock):
                        continue
                    resumed += 1
                    task.resume(self.clock)
                except Exception as e:
                    task.fail(e)
                    self.failed.append((task, e))
                    self._report(task, e)
        finally:
            self._tasks = [t for t in self._tasks if not t.is_complete]
            self._resuming = False
        return resumed

    def _report(self, task: ScheduledTask, error: BaseException):
        dbg("task failed", task.name, repr(error))
        if self.on_error is not None:
            self.on_error(task, error)

    def cancel(self, task: ScheduledTask) -> bool:
        if task not in self._tasks or task.is_complete:
            return False
        task.cancel()
        if not self._resuming:
            self._tasks.remove(task)
        return True

    def cancel_all(self) -> int:
        count = 0
        for task in list(self._tasks):
            if not task.is_complete:
                task.cancel()
                count += 1
        if not self._resuming:
            self._tasks.clear()
        return count


# =================================================================
# Background I/O
# =================================================================

class IoWorker:
    """
    Background thread running an asyncio loop for I/O that must not block
    frames. Results come back as `FrameFuture`s.
    """

    def __init__(self, name: str = "imscript-io"):
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()
        self._lock = threading.Lock()

    def _run(self):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._started.set()
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def start(self):
        with self._lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
        self._started.wait()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def submit(self, coro) -> FrameFuture:
        self.start()
        future = FrameFuture()
        concurrent = asyncio.run_coroutine_threadsafe(coro, self._loop)

        def _done(f):
            if f.cancelled():
                future.set_error(asyncio.CancelledError())
            elif f.exception() is not None:
                future.set_error(f.exception())
            else:
                future.set_result(f.result())

        concurrent.add_done_callback(_done)
        return future

    def stop(self, timeout: float = 2.0):
        with self._lock:
            thread, loop = self._thread, self._loop
            self._thread = None
        if thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        self._started.clear()
