import textwrap
import threading

import pytest

from imscript.imscript_runtime import ScriptRuntime, ScriptHost, UiHost, script_api
from imscript.imscript_tasks import TaskRegistry, ScheduledTask, FrameFuture
from imscript.imscript_tree import UiContext, Shape


def assert_ok(res, expected=None):
    assert res.status == "success", f"expected success, got {res}"
    if expected is not None:
        assert res.value == expected, f"expected {expected!r}, got {res.value!r}"


def assert_error(res, contains=None):
    assert res.status == "error", f"expected error, got {res}"
    if contains is not None:
        assert contains in (res.error_message or ""), f"expected {contains!r} in {res.error_message!r}"


class CounterHost(ScriptHost):
    def __init__(self):
        super().__init__()
        self.hits = 0

    @script_api
    def hit(self, amount=1):
        self.hits += amount
        return self.hits

    def private_helper(self):
        return "hidden"


def test_host_api_methods_are_bound_into_script_globals():
    host = CounterHost()
    runtime = ScriptRuntime(host)
    res = runtime.load(textwrap.dedent("""
        hit(5)
        def render_ui(ui):
            pass
    """))
    assert_ok(res)
    assert host.hits == 5
    assert "hit" in runtime.globals
    assert "cancel_tasks" in runtime.globals
    assert "private_helper" not in runtime.globals


def test_main_returning_a_function_is_the_entry_point():
    runtime = ScriptRuntime(CounterHost())
    res = runtime.load(textwrap.dedent("""
        def draw(ui):
            pass
        def render_ui(ui):
            pass
        def main():
            return draw
    """))
    assert_ok(res)
    assert runtime.entry is runtime.globals["draw"]


def test_configured_entry_point_is_the_fallback():
    runtime = ScriptRuntime(CounterHost())
    res = runtime.load("def main():\n    pass\ndef render_ui(ui):\n    pass\n")
    assert_ok(res)
    assert runtime.entry is runtime.globals["render_ui"]


def test_missing_entry_point_is_an_error():
    runtime = ScriptRuntime(CounterHost())
    res = runtime.load("x = 1\n")
    assert_error(res, "EntryPointError")
    assert runtime.entry is None
    assert runtime.init_error.startswith("EntryPointError")
    assert runtime.side_effects[-1]["topics"] == ["stderr"]


def test_syntax_error_points_at_line():
    runtime = ScriptRuntime(CounterHost())
    res = runtime.load("x = 1\ny = (\n", "bad.py")
    assert_error(res, "SyntaxError")
    assert res.error_token["line"] is not None
    assert res.format_error().startswith("Error on line ")


def test_runtime_error_has_source_context_and_stacktrace():
    runtime = ScriptRuntime(CounterHost())
    source = textwrap.dedent("""\
        def g():
            return 1 / 0

        def f():
            return g()

        f()
    """)
    res = runtime.load(source, "calc.py")
    assert_error(res, "ZeroDivisionError: division by zero")
    msg = res.error_message
    assert "(line 2" in msg
    assert "> 2 |     return 1 / 0" in msg
    assert "Script stacktrace: (f) (g)" in msg


def test_load_file_missing_reports_file_not_found(tmp_path):
    runtime = ScriptRuntime(CounterHost())
    res = runtime.load_file(str(tmp_path / "nope.py"))
    assert_error(res, "FileNotFound")


def test_load_file_sets_source_dir(tmp_path):
    script = tmp_path / "app.py"
    script.write_text("def render_ui(ui):\n    pass\n", encoding="utf-8")
    runtime = ScriptRuntime(CounterHost())
    assert_ok(runtime.load_file(str(script)))
    assert runtime.source_dir == str(tmp_path.resolve())


def test_reload_replaces_globals():
    runtime = ScriptRuntime(CounterHost())
    runtime.load("leftover = 1\ndef render_ui(ui):\n    pass\n")
    runtime.load("def render_ui(ui):\n    pass\n")
    assert "leftover" not in runtime.globals
    assert "hit" in runtime.globals


def test_ui_host_emit_spawn_and_shapes():
    registry = TaskRegistry()
    host = UiHost(UiContext(), registry)
    runtime = ScriptRuntime(host)
    res = runtime.load(textwrap.dedent("""
        def worker():
            yield next_frame()

        task = spawn(worker)
        emit("stdout", "hello", 42)
        emit(["ui", "log"], "multi")
        box = Shape2D({"type": "circle", "x": 1, "y": 2, "radius": 3,
                       "fill": [1, 0, 0], "stroke": {1: 0, 2: 0, 3: 0, "width": 1}})
        nothing = Shape2D({"type": "circle"})

        def render_ui(ui):
            pass
    """))
    assert_ok(res)
    assert isinstance(runtime.globals["task"], ScheduledTask)
    assert len(registry) == 1
    assert {'topics': ['stdout'], 'message': 'hello 42'} in runtime.side_effects
    assert {'topics': ['ui', 'log'], 'message': 'multi'} in runtime.side_effects
    assert isinstance(runtime.globals["box"], Shape)
    assert runtime.globals["nothing"] is None
    host.shutdown()
    assert len(registry) == 0


def test_task_failures_become_side_effects():
    registry = TaskRegistry()
    runtime = ScriptRuntime(UiHost(UiContext(), registry))
    runtime.load(textwrap.dedent("""
        def broken():
            raise KeyError("missing")
            yield

        spawn(broken)

        def render_ui(ui):
            pass
    """), "tasks.py")
    registry.resume_all()
    effect = runtime.side_effects[-1]
    assert effect["topics"] == ["task"]
    assert "task broken failed: KeyError" in effect["message"]


def test_register_font_applies_next_frame(tmp_path):
    ctx = UiContext()
    host = UiHost(ctx, TaskRegistry())
    font = tmp_path / "mono.ttf"
    font.write_bytes(b"\x00\x01font")
    host.register_font("inline", b"abc")
    host.register_font("file", str(font))
    assert ctx.fonts == {}
    ctx.begin_frame()
    assert ctx.fonts == {"inline": b"abc", "file": b"\x00\x01font"}


def test_font_paths_resolve_relative_to_the_script(tmp_path, monkeypatch):
    (tmp_path / "fonts").mkdir()
    (tmp_path / "fonts" / "mono.ttf").write_bytes(b"mono")
    script = tmp_path / "app.py"
    script.write_text(textwrap.dedent("""
        register_font("mono", "fonts/mono.ttf")

        def render_ui(ui):
            pass
    """), encoding="utf-8")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)

    ctx = UiContext()
    rt = ScriptRuntime(UiHost(ctx, TaskRegistry()))
    assert_ok(rt.load_file(str(script)))
    ctx.begin_frame()
    assert ctx.fonts == {"mono": b"mono"}


def test_fetch_returns_future(monkeypatch):
    import imscript.imscript_runtime as runtime_mod

    async def fake_get(url, config=None):
        return {"url": url, "timeout": config.get("timeout")}

    monkeypatch.setattr(runtime_mod, "http_get", fake_get)
    host = UiHost(UiContext(), TaskRegistry(), http_config={"timeout": 3.0})
    try:
        future = host.fetch("http://example/api")
        assert isinstance(future, FrameFuture)
        waiter = threading.Event()
        for _ in range(200):
            if future.done():
                break
            waiter.wait(0.01)
        assert future.result() == {"url": "http://example/api", "timeout": 3.0}
    finally:
        host.shutdown()
