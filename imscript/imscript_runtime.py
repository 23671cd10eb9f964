"""
Loads a script and binds the host API into its globals.

A script is a Python module. Its namespace is the script's global state and
lives for the whole session. The render entry point is either what `main()`
returns, when that is callable, or the function named by the configured
entry point (`render_ui` by default).
"""

import inspect
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

from imscript.imscript_values import BridgeTypeError, expect_string
from imscript.imscript_scope import StaleHandleError
from imscript.imscript_config import Config, dbg
from imscript.imscript_tasks import (
    TaskRegistry, ScheduledTask, IoWorker, FrameFuture,
    next_frame, wait_frames, wait_until, sleep,
)
from imscript.imscript_resources import resolve_shape, resolve_locator
from imscript.imscript_http import http_get


class EntryPointError(LookupError):
    """The script defines no callable render entry point."""
    pass


def script_api(func):
    """A decorator to explicitly mark host methods as callable from scripts."""
    func._is_script_api = True
    return func


class ScriptHost:
    """Base class for Python objects whose API is exposed to scripts."""

    def __init__(self, registry: Optional[TaskRegistry] = None):
        self.tasks = registry if registry is not None else TaskRegistry()
        self.runtime: Optional['ScriptRuntime'] = None

    @script_api
    def cancel_tasks(self) -> int:
        return self.tasks.cancel_all()

    def _register_task(self, task) -> ScheduledTask:
        return self.tasks.register(task)


class UiHost(ScriptHost):
    """Host API for UI scripts: fonts, shapes, tasks, side effects and fetches."""

    def __init__(self, ctx, registry: Optional[TaskRegistry] = None,
                 worker: Optional[IoWorker] = None, http_config: Optional[Dict[str, Any]] = None):
        super().__init__(registry)
        self.ctx = ctx
        self.worker = worker or IoWorker()
        self.http_config = dict(http_config or {})

    @script_api
    def register_font(self, name, data):
        """Adds a font family. It is available from the next frame on."""
        name = expect_string(name, "name")
        match data:
            case bytes() | bytearray() | memoryview():
                self.ctx.register_font(name, bytes(data))
            case str():
                source_dir = self.runtime.source_dir if self.runtime is not None else None
                with open(resolve_locator(data, source_dir), "rb") as f:
                    self.ctx.register_font(name, f.read())
            case _:
                raise BridgeTypeError("bytes or font path", type(data).__name__, "data")

    @script_api
    def Shape2D(self, table):
        return resolve_shape(table)

    @script_api
    def spawn(self, body, name=None) -> ScheduledTask:
        return self._register_task(ScheduledTask(body, name))

    @script_api
    def emit(self, topic, *message):
        topics = [topic] if isinstance(topic, str) else [str(t) for t in topic]
        text = " ".join(str(m) for m in message)
        if self.runtime is not None:
            self.runtime.emit(topics, text)

    @script_api
    def next_frame(self):
        return next_frame()

    @script_api
    def wait_frames(self, n):
        return wait_frames(n)

    @script_api
    def wait_until(self, predicate):
        return wait_until(predicate)

    @script_api
    def sleep(self, seconds):
        return sleep(seconds)

    @script_api
    def fetch(self, url, config=None) -> FrameFuture:
        """Starts an HTTP GET in the background; await or yield the returned future."""
        url = expect_string(url, "url")
        cfg = {**self.http_config, **dict(config or {})}
        return self.worker.submit(http_get(url, cfg))

    def shutdown(self):
        self.tasks.cancel_all()
        self.worker.stop()


@dataclass
class ExecutionResult:
    """The structured result of loading a script."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Dict[str, Any]] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('line') is not None:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            if not msg.startswith("Error on line "):
                col_info = f", col {col}" if col is not None else ""
                return f"Error on line {line}{col_info}: {msg}"
        return msg


class ScriptRuntime:
    """Owns the script globals, the render entry point and the side effect log."""

    def __init__(self, host: Optional[ScriptHost] = None, config: Optional[Config] = None):
        self.host = host
        self.config = config or Config()
        self.globals: Dict[str, Any] = {}
        self.side_effects: List[Dict] = []
        self.source: str = ""
        self.source_name: str = "<script>"
        self.source_dir: Optional[str] = None
        self.entry: Optional[Callable] = None
        self.init_error: Optional[str] = None
        self._host_api_names: set = set()
        if host is not None:
            host.runtime = self
            host.tasks.on_error = self._task_failed

    def emit(self, topics: List[str], message: str):
        self.side_effects.append({'topics': list(topics), 'message': message})

    def _task_failed(self, task: ScheduledTask, error: BaseException):
        msg = self.describe_error(error)
        self.emit(['task'], f"task {task.name} failed: {msg}")

    def _bind_host_api_methods(self):
        """Bind @script_api methods of the host into the script globals."""
        for n in list(self._host_api_names):
            self.globals.pop(n, None)
        self._host_api_names = set()
        host = self.host
        if not host:
            return
        for name, member in inspect.getmembers(host):
            if not callable(member):
                continue
            is_api = getattr(member, "_is_script_api", False)
            if not is_api:
                func = getattr(member, "__func__", None)
                if func is not None:
                    is_api = getattr(func, "_is_script_api", False)
            if not is_api:
                continue
            self.globals[name] = member
            self._host_api_names.add(name)

    def load_file(self, path: str) -> ExecutionResult:
        p = Path(path)
        try:
            source = p.read_text(encoding="utf-8")
        except OSError as e:
            msg = f"FileNotFound: cannot read script {path}: {e.strerror or e}"
            self.init_error = msg
            self.emit(['stderr'], msg)
            return ExecutionResult(status='error', error_message=msg, side_effects=self.side_effects)
        self.source_dir = str(p.parent.resolve())
        return self.load(source, str(p))

    def load(self, source: str, name: str = "<script>") -> ExecutionResult:
        """Executes the script module and resolves its render entry point."""
        self.source = source
        self.source_name = name
        self.entry = None
        self.init_error = None
        self.globals = {"__name__": "__imscript__", "__file__": name}
        self._bind_host_api_methods()
        try:
            code = compile(source, name, "exec")
            exec(code, self.globals)
            self.entry = self._resolve_entry()
            dbg("entry point", getattr(self.entry, "__name__", self.entry))
            return ExecutionResult(status='success', value=self.entry, side_effects=self.side_effects)
        except Exception as e:
            msg, token = self._format_runtime_error(e)
            self.init_error = msg
            self.emit(['stderr'], msg)
            return ExecutionResult(status='error', error_message=msg, error_token=token,
                                   side_effects=self.side_effects)

    def _resolve_entry(self) -> Callable:
        main = self.globals.get("main")
        if callable(main):
            returned = main()
            if callable(returned):
                return returned
        entry = self.globals.get(self.config.entry_point)
        if callable(entry):
            return entry
        raise EntryPointError(
            f"no render entry point: define main() returning a function, or {self.config.entry_point}(ui)"
        )

    def describe_error(self, e: BaseException) -> str:
        return self._format_runtime_error(e)[0]

    def _script_frames(self, e: BaseException) -> List[traceback.FrameSummary]:
        return [f for f in traceback.extract_tb(e.__traceback__) if f.filename == self.source_name]

    def _format_runtime_error(self, e: BaseException) -> Tuple[str, Optional[Dict[str, Any]]]:
        line = col = None
        match e:
            case SyntaxError():
                msg = f"SyntaxError: {e.msg}"
                if e.filename == self.source_name:
                    line, col = e.lineno, e.offset
            case StaleHandleError():
                msg = f"{type(e).__name__}: {e}"
            case BridgeTypeError():
                msg = f"TypeError: {e}"
            case EntryPointError():
                msg = f"EntryPointError: {e}"
            case _:
                msg = f"{type(e).__name__}: {e}"

        frames = self._script_frames(e)
        if line is None and frames:
            line = frames[-1].lineno
            col = (frames[-1].colno + 1) if getattr(frames[-1], "colno", None) is not None else None

        token = None
        if line is not None:
            token = {'line': line, 'col': col}
            context = self._source_context(self.source, line, col)
            if context:
                msg = f"{msg}\n(line {line}" + (f", col {col}" if col is not None else "") + f")\n{context}"

        st = self._format_stacktrace(frames)
        if st:
            msg += "\n" + st
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            ln = str(i).rjust(width)
            out.append(f"{prefix} {ln} | {lines[i - 1]}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)

    def _format_stacktrace(self, frames: List[traceback.FrameSummary]) -> str:
        names = [f.name for f in frames if f.name != "<module>"]
        if not names:
            return ""
        return "Script stacktrace: " + " ".join(f"({n})" for n in names)
