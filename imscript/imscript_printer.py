"""
A pretty-printer for built UI trees and bridge values.
"""
import collections.abc

from imscript.imscript_values import Color32, Vec2, Pos2, Rect, Stroke, Margin, Rounding
from imscript.imscript_tree import UiNode, Shape
from imscript.imscript_results import InteractionResult, SelectionRecord
from imscript.imscript_resources import ImageSource


class Printer:
    """Formats UI trees and native values into short readable text."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, collections.abc.Mapping):
            return self._pformat_dict
        if isinstance(obj, (list, tuple)):
            return self._pformat_list
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            float: self._pformat_float,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            bytes: self._pformat_bytes,
            Color32: self._pformat_color,
            Vec2: self._pformat_vec,
            Pos2: self._pformat_vec,
            Rect: self._pformat_rect,
            Stroke: self._pformat_stroke,
            Margin: self._pformat_fields,
            Rounding: self._pformat_fields,
            UiNode: self._pformat_node,
            Shape: self._pformat_shape,
            ImageSource: self._pformat_image,
            InteractionResult: self._pformat_result,
            SelectionRecord: self._pformat_selection,
        }

    def _pformat_primitive(self, obj, level):
        return str(obj)

    def _pformat_float(self, obj, level):
        return f"{obj:g}"

    def _pformat_str(self, obj, level):
        return repr(obj)

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj, level):
        return 'nil'

    def _pformat_bytes(self, obj, level):
        return f"<{len(obj)} bytes>"

    def _pformat_color(self, obj, level):
        return f"#{obj.r:02x}{obj.g:02x}{obj.b:02x}{obj.a:02x}"

    def _pformat_vec(self, obj, level):
        return f"({obj.x:g}, {obj.y:g})"

    def _pformat_rect(self, obj, level):
        return f"[{self._pformat_vec(obj.min, level)} - {self._pformat_vec(obj.max, level)}]"

    def _pformat_stroke(self, obj, level):
        return f"{obj.width:g}px {self._pformat_color(obj.color, level)}"

    def _pformat_fields(self, obj, level):
        values = [f"{v:g}" for v in obj.__dict__.values()]
        if len(set(values)) == 1:
            return values[0]
        return "(" + " ".join(values) + ")"

    def _pformat_list(self, obj, level):
        return "[" + ", ".join(self.pformat(v, level) for v in obj) + "]"

    def _pformat_dict(self, obj, level):
        if not obj:
            return "{}"
        inner = self._indent_char * (level + 1)
        lines = [f"{inner}{k}: {self.pformat(v, level + 1)}" for k, v in obj.items()]
        return "{\n" + "\n".join(lines) + "\n" + self._indent_char * level + "}"

    def _props(self, props, level):
        return " ".join(f"{k}={self.pformat(v, level)}" for k, v in props.items())

    def _pformat_node(self, obj, level):
        head = obj.kind
        props = dict(obj.props)
        text = props.pop("text", props.pop("label", None))
        if isinstance(text, str):
            head = f"{head} {text!r}"
        if props:
            head = f"{head} {self._props(props, level)}"
        lines = [head]
        for child in obj.children:
            lines.append(self._indent_char * (level + 1) + self.pformat(child, level + 1))
        return "\n".join(lines)

    def _pformat_shape(self, obj, level):
        return f"{obj.kind} {self._props(obj.props, level)}".rstrip()

    def _pformat_image(self, obj, level):
        return f"<image {obj.uri} {obj.state}>"

    def _pformat_result(self, obj, level):
        flags = [name for name, v in obj.__dict__.items() if v is True]
        out = "<result " + (" ".join(flags) if flags else "idle")
        if obj.value is not None:
            out += f" value={self.pformat(obj.value, level)}"
        return out + ">"

    def _pformat_selection(self, obj, level):
        mark = "*" if obj.changed else ""
        return f"<selection {self.pformat(obj.key, level)}{mark}>"
