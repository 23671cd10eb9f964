import textwrap

import pytest

from imscript.imscript_driver import FrameDriver, Frame
from imscript.imscript_config import Config
from imscript.imscript_tree import FrameInput, WidgetEvent


def make_driver(source, config=None):
    driver = FrameDriver.create(config)
    res = driver.load(textwrap.dedent(source), "app.py")
    assert res.status == "success", res.format_error()
    return driver


@pytest.fixture
def close_later():
    drivers = []
    yield drivers.append
    for d in drivers:
        d.close()


def labels(node):
    return [n.props["text"] for n in node.walk() if n.kind == "label"]


def test_same_state_builds_identical_trees(close_later):
    driver = make_driver("""
        def render_ui(ui):
            ui.heading("Title")
            ui.horizontal(lambda row: row.button("OK"))
            ui.window("Side", lambda w: w.label("panel"))
    """)
    close_later(driver)
    first, second = driver.run(2)
    assert first.root == second.root
    assert first.windows == second.windows
    assert first.number == 1 and second.number == 2


def test_text_edit_round_trip_through_script_state(close_later):
    driver = make_driver("""
        text = "Initial Text"
        edits = []

        def render_ui(ui):
            global text
            r = ui.text_edit_singleline(text)
            edits.append(r.changed)
            text = r.value
    """)
    close_later(driver)
    driver.tick(FrameInput(events={"root/text_edit#0": WidgetEvent(text="Initial Text!")}))
    driver.tick()
    g = driver.runtime.globals
    assert g["text"] == "Initial Text!"
    assert g["edits"] == [True, False]


def test_build_error_shows_panel_and_next_frame_recovers(close_later):
    driver = make_driver("""
        fail = True

        def render_ui(ui):
            global fail
            ui.label("partial")
            ui.window("Extra", lambda w: w.label("x"))
            if fail:
                fail = False
                raise ValueError("bad frame")
            ui.label("ok")
    """)
    close_later(driver)
    broken = driver.tick()
    assert "ValueError: bad frame" in broken.error
    # Nothing from the failed build survives
    assert broken.windows == []
    assert [c.kind for c in broken.root.children] == ["error_panel"]
    assert labels(broken.root)[0] == "Script Error:"
    assert any(e["topics"] == ["stderr"] for e in broken.side_effects)

    recovered = driver.tick()
    assert recovered.error is None
    assert labels(recovered.root) == ["partial", "ok"]
    assert [w.id for w in recovered.windows] == ["window/Extra"]


def test_error_panel_uses_configured_templates(close_later):
    config = Config(error_heading="{{title}}: {{kind}} failure", error_body="!! {{message}}")
    config.title = "Demo"
    driver = FrameDriver.create(config)
    close_later(driver)
    driver.load("x = 1\n", "empty.py")
    frame = driver.tick()
    heading, body = labels(frame.root)
    assert heading == "Demo: Initialization failure"
    assert body.startswith("!! EntryPointError")


def test_stale_handle_from_previous_frame_is_reported(close_later):
    driver = make_driver("""
        saved = None

        def keep(inner):
            global saved
            saved = inner

        def render_ui(ui):
            if saved is not None:
                saved.label("late")
            ui.horizontal(keep)
    """)
    close_later(driver)
    assert driver.tick().error is None
    frame = driver.tick()
    assert "StaleHandleError" in frame.error


def test_stale_handle_used_by_a_task_shows_error_panel(close_later):
    driver = make_driver("""
        kept = []

        def worker():
            yield next_frame()
            kept[0].label("late")

        def main():
            spawn(worker)
            return draw

        def draw(ui):
            if not kept:
                kept.append(ui)
            ui.label("body")
    """)
    close_later(driver)
    first, failed, panel, recovered = driver.run(4)
    assert first.error is None

    # the task fails after the build, so this frame's tree is intact
    assert "StaleHandleError" in failed.error
    assert labels(failed.root) == ["body"]
    topics = [e["topics"] for e in failed.side_effects]
    assert ["task"] in topics and ["stderr"] in topics

    assert panel.error == failed.error
    assert [c.kind for c in panel.root.children] == ["error_panel"]
    assert labels(panel.root)[0] == "Task Error:"

    assert recovered.error is None
    assert labels(recovered.root) == ["body"]


def test_debug_config_enables_debug_output(capsys, monkeypatch, close_later):
    monkeypatch.delenv("IMSCRIPT_DEBUG", raising=False)
    monkeypatch.setattr("imscript.imscript_config._debug", False)
    driver = FrameDriver.create(Config(debug=True))
    close_later(driver)
    driver.load("def render_ui(ui):\n    pass\n", "app.py")
    assert "[DBG] entry point render_ui" in capsys.readouterr().err

    quiet = FrameDriver.create(Config())
    close_later(quiet)
    quiet.load("def render_ui(ui):\n    pass\n", "app.py")
    assert "[DBG]" not in capsys.readouterr().err


def test_tick_is_not_reentrant(close_later):
    driver = make_driver("""
        def render_ui(ui):
            driver.tick()
    """)
    close_later(driver)
    driver.runtime.globals["driver"] = driver
    frame = driver.tick()
    assert "RuntimeError" in frame.error
    # and the driver is usable afterwards
    assert driver.tick().number == 2


def test_frame_info_is_published_to_globals(close_later):
    driver = make_driver("""
        seen = []

        def render_ui(ui):
            seen.append((frame_number, frame_time))
            ui.label(f"cpu {cpu_usage >= 0}")
    """)
    close_later(driver)
    driver.run(3, {1: FrameInput(time=12.5)})
    g = driver.runtime.globals
    assert [n for n, _ in g["seen"]] == [1, 2, 3]
    assert g["seen"][1][1] == 12.5
    assert isinstance(g["seen"][2][1], float)
    driver.tick(FrameInput(time=7.0))
    assert g["frame_time"] == 7.0


def test_tasks_resume_after_the_build(close_later):
    driver = make_driver("""
        count = 0
        shown = []

        def ticker():
            global count
            while True:
                count += 1
                yield next_frame()

        def main():
            spawn(ticker)
            return draw

        def draw(ui):
            shown.append(count)
    """)
    close_later(driver)
    frames = driver.run(3)
    assert driver.runtime.globals["shown"] == [0, 1, 2]
    assert [f.resumed for f in frames] == [1, 1, 1]


def test_tasks_still_resume_when_the_build_fails(close_later):
    driver = make_driver("""
        count = 0

        def ticker():
            global count
            while True:
                count += 1
                yield next_frame()

        spawn(ticker)

        def render_ui(ui):
            raise RuntimeError("always")
    """)
    close_later(driver)
    driver.run(2)
    assert driver.runtime.globals["count"] == 2


def test_emit_side_effects_are_per_frame(close_later):
    driver = make_driver("""
        def render_ui(ui):
            emit("stdout", "frame", frame_number)
    """)
    close_later(driver)
    first, second = driver.run(2)
    assert first.side_effects == [{'topics': ['stdout'], 'message': 'frame 1'}]
    assert second.side_effects == [{'topics': ['stdout'], 'message': 'frame 2'}]


def test_no_script_loaded():
    driver = FrameDriver.create()
    try:
        frame = driver.tick()
        assert frame.error == "no script loaded"
        assert isinstance(frame, Frame)
    finally:
        driver.close()


def test_images_resolve_relative_to_the_script(tmp_path, close_later):
    (tmp_path / "logo.png").write_bytes(b"\x89PNG")
    script = tmp_path / "app.py"
    script.write_text(textwrap.dedent("""
        def render_ui(ui):
            ui.image("logo.png")
            ui.image("missing.png")
    """), encoding="utf-8")
    driver = FrameDriver.create()
    close_later(driver)
    assert driver.load_file(str(script)).status == "success"
    first, second = driver.run(2)
    found, missing = first.root.find_kind("image")
    assert found.props["source"].data == b"\x89PNG"
    assert missing.props["source"].kind == "fallback"
    assert [e["topics"] for e in first.side_effects] == [["resource"]]
    # reported once only
    assert second.side_effects == []


def test_to_dict_is_plain_data(close_later):
    driver = make_driver("""
        def render_ui(ui):
            ui.colored_label("hi", [1, 0, 0])
    """)
    close_later(driver)
    data = driver.tick().to_dict()
    label = data["root"]["children"][0]
    assert label["props"]["color"] == [1.0, 0.0, 0.0, 1.0]
