"""
The per-frame driver.

Each tick refreshes the shared UI context, rebuilds the whole UI from a clean
root region by calling the script's render entry point, then gives every
runnable script task one resumption. A failing build leaves an error panel
as that frame's UI; tasks are still resumed afterwards and the next frame
starts again from scratch. A task that touches a stale handle fails that
frame, and the next frame shows its error panel in place of the build.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from imscript.imscript_values import Vec2
from imscript.imscript_config import Config, dbg, set_debug
from imscript.imscript_tree import UiContext, UiNode, Ui, FrameInput
from imscript.imscript_scope import ScopeBridge, StaleHandleError
from imscript.imscript_handle import make_handle_factory
from imscript.imscript_resources import ResourceResolver, ImageCache
from imscript.imscript_tasks import TaskRegistry, FrameClock
from imscript.imscript_runtime import ScriptRuntime, UiHost, ExecutionResult


@dataclass
class Frame:
    """What one tick produced."""
    number: int
    root: UiNode
    windows: List[UiNode] = field(default_factory=list)
    error: Optional[str] = None
    resumed: int = 0
    side_effects: List[Dict] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "root": self.root.to_dict(),
            "windows": [w.to_dict() for w in self.windows],
            "error": self.error,
            "resumed": self.resumed,
        }


class FrameDriver:
    def __init__(self, runtime: ScriptRuntime, ctx: UiContext, registry: TaskRegistry,
                 resolver: Optional[ResourceResolver] = None):
        self.runtime = runtime
        self.ctx = ctx
        self.registry = registry
        self.resolver = resolver or ResourceResolver(runtime.source_dir, emit=runtime.emit)
        self.bridge = ScopeBridge(make_handle_factory(self.resolver))
        self._ticking = False
        self._cpu_usage = 0.0
        self._task_error: Optional[str] = None

    @classmethod
    def create(cls, config: Optional[Config] = None, clock: Optional[FrameClock] = None) -> 'FrameDriver':
        """Wires a context, a task registry, a host and a runtime together."""
        config = config or Config()
        set_debug(config.debug)
        ctx = UiContext(screen_size=Vec2(*config.screen_size))
        registry = TaskRegistry(clock=clock)
        host = UiHost(ctx, registry, http_config=config.http)
        runtime = ScriptRuntime(host, config)
        cache = ImageCache(host.worker, config.http)
        resolver = ResourceResolver(cache=cache, emit=runtime.emit)
        return cls(runtime, ctx, registry, resolver)

    def load(self, source: str, name: str = "<script>") -> ExecutionResult:
        result = self.runtime.load(source, name)
        self.resolver.source_dir = self.runtime.source_dir
        return result

    def load_file(self, path: str) -> ExecutionResult:
        result = self.runtime.load_file(path)
        self.resolver.source_dir = self.runtime.source_dir
        return result

    def _publish_frame_info(self):
        g = self.runtime.globals
        g["frame_number"] = self.ctx.frame_number
        g["frame_time"] = self.ctx.input.time if self.ctx.input.time is not None else self.registry.clock.now()
        g["cpu_usage"] = self._cpu_usage

    def tick(self, frame_input: Optional[FrameInput] = None) -> Frame:
        """Builds one frame, then resumes the script tasks once."""
        if self._ticking:
            raise RuntimeError("FrameDriver.tick() called while a frame is already in progress")
        self._ticking = True
        effects_start = len(self.runtime.side_effects)
        started = time.perf_counter()
        try:
            self.ctx.begin_frame(frame_input)
            self.registry.clock.frame = self.ctx.frame_number
            self._publish_frame_info()
            root, error = self._build()
            resumed = self.registry.resume_all()
            task_error = self._stale_task_error()
            if task_error is not None and error is None:
                error = task_error
        finally:
            self._ticking = False
        self._cpu_usage = time.perf_counter() - started
        return Frame(
            number=self.ctx.frame_number,
            root=root.node,
            windows=list(self.ctx.windows),
            error=error,
            resumed=resumed,
            side_effects=self.runtime.side_effects[effects_start:],
        )

    def _stale_task_error(self) -> Optional[str]:
        for _, e in self.registry.failed:
            if isinstance(e, StaleHandleError):
                msg = self.runtime.describe_error(e)
                self.runtime.emit(['stderr'], msg)
                self._task_error = msg
                return msg
        return None

    def _build(self):
        if self._task_error is not None:
            msg, self._task_error = self._task_error, None
            return self._error_panel("Task", msg), msg
        if self.runtime.init_error is not None:
            return self._error_panel("Initialization", self.runtime.init_error), self.runtime.init_error
        if self.runtime.entry is None:
            msg = "no script loaded"
            return self._error_panel("Initialization", msg), msg
        root = self.ctx.root_ui()
        try:
            self.bridge.invoke(root, self.runtime.entry)
        except Exception as e:
            msg = self.runtime.describe_error(e)
            self.runtime.emit(['stderr'], msg)
            dbg("build failed", repr(e))
            return self._error_panel("Script", msg), msg
        return root, None

    def _error_panel(self, kind: str, message: str) -> Ui:
        # Nothing from a failed build survives: fresh root, no windows.
        self.ctx.windows = []
        root = self.ctx.root_ui()
        heading, body = self.runtime.config.render_error(kind, message)
        panel = root.child("error_panel")
        panel.label(heading, "heading", color=self.ctx.style.visuals.error_fg_color)
        panel.label(body, "monospace")
        root.end_child(panel)
        return root

    def run(self, frames: int, inputs: Union[None, Iterable[Optional[FrameInput]], Mapping[int, FrameInput]] = None) -> List[Frame]:
        """Drives `frames` ticks. `inputs` is a sequence, or a mapping from frame index, of inputs."""
        if isinstance(inputs, Mapping):
            per_frame = [inputs.get(i) for i in range(frames)]
        else:
            per_frame = list(inputs or [])
            per_frame += [None] * (frames - len(per_frame))
        return [self.tick(per_frame[i]) for i in range(frames)]

    def close(self):
        host = self.runtime.host
        if isinstance(host, UiHost):
            host.shutdown()
        else:
            self.registry.cancel_all()
