from imscript.imscript_runtime import ScriptRuntime, ScriptHost, UiHost, ExecutionResult, script_api
from imscript.imscript_driver import FrameDriver, Frame
from imscript.imscript_scope import StaleHandleError, RegionBusyError
from imscript.imscript_tree import FrameInput, WidgetEvent
from imscript.imscript_config import Config, load_config

__all__ = [
    "ScriptRuntime", "ScriptHost", "UiHost", "ExecutionResult", "script_api",
    "FrameDriver", "Frame", "StaleHandleError", "RegionBusyError",
    "FrameInput", "WidgetEvent", "Config", "load_config",
]
