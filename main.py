import sys
from pathlib import Path

from imscript.imscript_config import load_config
from imscript.imscript_driver import FrameDriver
from imscript.imscript_printer import Printer

# Shown when no script is given on the command line.
DEMO_SCRIPT = '''
name = "World"
clicks = 0
volume = 50.0
progress = 0.0


def loader():
    global progress
    while progress < 1.0:
        progress = round(progress + 0.25, 2)
        yield next_frame()
    emit("stdout", "loading finished")


def main():
    spawn(loader)
    return render_ui


def render_ui(ui):
    global name, clicks, volume
    ui.heading(f"Hello, {name}!")

    def row(ui):
        global clicks
        if ui.button("Click me", {"fill": [0.2, 0.4, 0.8]}).clicked:
            clicks += 1
        ui.label(f"clicked {clicks} times")

    ui.horizontal(row)
    changed, name = ui.text_edit_singleline(name)
    _, volume = ui.slider("volume", 0.0, 100.0, volume)
    ui.progress_bar(progress, f"{int(progress * 100)}%")
'''


def run_script(driver: FrameDriver, file_path: str):
    p = Path(file_path)
    if not p.exists():
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    return driver.load_file(str(p))


def main():
    """Load a script (or the demo), run some frames headless and print the last one."""
    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    config = load_config()
    driver = FrameDriver.create(config)
    printer = Printer()
    try:
        if args:
            result = run_script(driver, args[0])
        else:
            result = driver.load(DEMO_SCRIPT, "<demo>")
        frames = int(args[1]) if len(args) > 1 else 3
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            raise SystemExit(1)

        last = None
        for frame in driver.run(frames):
            last = frame
        # Print side effects (from `emit` and failed builds)
        for effect in driver.runtime.side_effects:
            stream = sys.stderr if 'stderr' in effect.get('topics', []) else sys.stdout
            if effect.get('topics') in (['stdout'], ['stderr']):
                print(effect.get('message', ''), file=stream)
        if last is not None:
            print(f"-- {config.title}: frame {last.number} --")
            print(printer.pformat(last.root))
            for window in last.windows:
                print(printer.pformat(window))
            if last.error:
                raise SystemExit(1)
    finally:
        driver.close()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")
