"""
Application configuration, read from `imscript.yaml`.

The file is optional. A missing file, unreadable YAML or a key with the
wrong shape falls back to the defaults below.
"""

import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import pystache
import yaml


CONFIG_ENV = "IMSCRIPT_CONFIG"
DEFAULT_CONFIG_FILE = "imscript.yaml"

DEFAULT_ERROR_HEADING = "{{kind}} Error:"
DEFAULT_ERROR_BODY = "{{message}}"

_debug = False


def set_debug(enabled: bool):
    """Turns `dbg` output on or off. `IMSCRIPT_DEBUG` turns it on regardless."""
    global _debug
    _debug = bool(enabled)


def dbg(*parts):
    if _debug or os.environ.get("IMSCRIPT_DEBUG"):
        try:
            print("[DBG]", *parts, file=sys.stderr)
        except Exception:
            pass


@dataclass
class Config:
    title: str = "imscript"
    window_size: Tuple[float, float] = (800.0, 600.0)
    screen_size: Tuple[float, float] = (1280.0, 720.0)
    entry_point: str = "render_ui"
    http: Dict[str, Any] = field(default_factory=lambda: {"timeout": 5.0, "retries": 2, "backoff": 0.2})
    error_heading: str = DEFAULT_ERROR_HEADING
    error_body: str = DEFAULT_ERROR_BODY
    debug: bool = False

    def render_error(self, kind: str, message: str) -> Tuple[str, str]:
        """Renders the error panel heading and body templates."""
        renderer = pystache.Renderer(escape=lambda u: u)
        context = {"kind": kind, "message": message, "title": self.title}
        try:
            heading = renderer.render(self.error_heading, context)
        except Exception:
            heading = f"{kind} Error:"
        try:
            body = renderer.render(self.error_body, context)
        except Exception:
            body = message
        return heading, body


def _pair(value: Any) -> Optional[Tuple[float, float]]:
    match value:
        case [int() | float() as w, int() | float() as h] if not isinstance(w, bool) and not isinstance(h, bool):
            return (float(w), float(h))
        case {"width": int() | float() as w, "height": int() | float() as h}:
            return (float(w), float(h))
        case _:
            return None


def config_from_dict(data: Any) -> Config:
    cfg = Config()
    if not isinstance(data, dict):
        return cfg
    if isinstance(data.get("title"), str):
        cfg.title = data["title"]
    if isinstance(data.get("entry_point"), str) and data["entry_point"]:
        cfg.entry_point = data["entry_point"]
    for name in ("window_size", "screen_size"):
        pair = _pair(data.get(name))
        if pair is not None:
            setattr(cfg, name, pair)
    http = data.get("http")
    if isinstance(http, dict):
        for key in ("timeout", "backoff"):
            if isinstance(http.get(key), (int, float)) and not isinstance(http.get(key), bool):
                cfg.http[key] = float(http[key])
        if isinstance(http.get("retries"), int) and not isinstance(http.get("retries"), bool):
            cfg.http["retries"] = max(0, http["retries"])
        if isinstance(http.get("headers"), dict):
            cfg.http["headers"] = {str(k): str(v) for k, v in http["headers"].items()}
    panel = data.get("error_panel")
    if isinstance(panel, dict):
        if isinstance(panel.get("heading"), str):
            cfg.error_heading = panel["heading"]
        if isinstance(panel.get("body"), str):
            cfg.error_body = panel["body"]
    if isinstance(data.get("debug"), bool):
        cfg.debug = data["debug"]
    return cfg


def load_config(path: Optional[str] = None) -> Config:
    """
    Loads the configuration from `path`, else from $IMSCRIPT_CONFIG, else from
    `imscript.yaml` in the working directory.
    """
    path = path or os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_FILE
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return Config()
    return config_from_dict(data)
