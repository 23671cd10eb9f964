from imscript.imscript_config import Config, load_config, config_from_dict, CONFIG_ENV


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(str(tmp_path / "absent.yaml"))
    assert cfg == Config()
    assert cfg.entry_point == "render_ui"
    assert cfg.http["retries"] == 2


def test_yaml_values_override_defaults(tmp_path):
    path = tmp_path / "imscript.yaml"
    path.write_text(
        "title: Dashboard\n"
        "entry_point: draw\n"
        "window_size: [1024, 768]\n"
        "screen_size: {width: 640, height: 480}\n"
        "http:\n"
        "  timeout: 1\n"
        "  retries: 5\n"
        "  headers: {User-Agent: imscript}\n"
        "error_panel:\n"
        "  heading: 'Oops ({{kind}})'\n"
        "debug: true\n",
        encoding="utf-8",
    )
    cfg = load_config(str(path))
    assert cfg.title == "Dashboard"
    assert cfg.entry_point == "draw"
    assert cfg.window_size == (1024.0, 768.0)
    assert cfg.screen_size == (640.0, 480.0)
    assert cfg.http == {"timeout": 1.0, "retries": 5, "backoff": 0.2, "headers": {"User-Agent": "imscript"}}
    assert cfg.error_heading == "Oops ({{kind}})"
    assert cfg.error_body == "{{message}}"
    assert cfg.debug is True


def test_malformed_entries_are_ignored():
    cfg = config_from_dict({
        "title": 3,
        "entry_point": "",
        "window_size": [1, "tall"],
        "http": {"timeout": "soon", "retries": True},
        "error_panel": "loud",
    })
    assert cfg == Config()
    assert config_from_dict(["not", "a", "mapping"]) == Config()


def test_invalid_yaml_gives_defaults(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("title: [unclosed\n", encoding="utf-8")
    assert load_config(str(path)) == Config()


def test_environment_variable_selects_file(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("title: From Env\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV, str(path))
    assert load_config().title == "From Env"


def test_error_templates_render_without_escaping():
    cfg = Config(error_heading="{{kind}} Error in {{title}}", error_body="<{{message}}>")
    heading, body = cfg.render_error("Script", "a < b & c")
    assert heading == "Script Error in imscript"
    assert body == "<a < b & c>"
