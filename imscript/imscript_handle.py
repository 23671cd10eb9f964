"""
The script-facing UI handle.

`ScriptHandle` is what render functions and container closures receive.
Every method resolves the handle's region through the arena first, so a
handle used after its call returned raises `StaleHandleError`, and one used
while a nested container call is open raises `RegionBusyError`.

Widget methods return one `InteractionResult`. Container methods run their
closure through the `ScopeBridge` with a fresh handle for the sub-region and
return the region's result with the closure's return value as `value`.
"""

from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from imscript.imscript_values import (
    Color32, Pos2, Vec2, Rect, Stroke,
    expect_number, expect_string, expect_key, expect_bool, expect_table, expect_function,
    optional_table, color_from_table, color_to_script, size_attrib, BridgeTypeError,
)
from imscript.imscript_style import decode, decode_frame_style, decode_image_options, decode_attribs
from imscript.imscript_scope import ScopeBridge, ScopedHandle
from imscript.imscript_results import InteractionResult, SelectionRecord, wrap
from imscript.imscript_resources import ResourceResolver, resolve_shape, resolve_shapes
from imscript.imscript_tree import Ui, Shape, RawResponse


LAYOUTS = {
    "left_to_right": "left_to_right",
    "right_to_left": "right_to_left",
    "top_down": "top_down",
    "bottom_up": "bottom_up",
}

ALIGNS = ("start", "center", "end")


def _color_floats(value: Any, name: str) -> Color32:
    """Decodes an `(r, g, b, a)` tuple of 0..1 floats; all four are required."""
    table = expect_table(value, name)
    components = [expect_number(table.seq(i), name) for i in (1, 2, 3, 4)]
    return Color32.from_rgba_unmultiplied(*components)


class ScriptHandle(ScopedHandle):
    """Proxy over one UI region, valid for one call."""

    def __init__(self, bridge: ScopeBridge, index: int, generation: int,
                 resolver: Optional[ResourceResolver] = None):
        super().__init__(bridge, index, generation)
        self._resolver = resolver or ResourceResolver()

    def _nest(self, ui: Ui, sub: Ui, func: Any, *args) -> InteractionResult:
        func = expect_function(func, "func")
        value = self._bridge.invoke(sub, func, *args, parent=self)
        ui.end_child(sub)
        return wrap(ui.interact(sub), value)

    # ----- text -----

    def label(self, text) -> InteractionResult:
        return wrap(self._region().label(expect_string(text, "text")))

    def heading(self, text) -> InteractionResult:
        return wrap(self._region().label(expect_string(text, "text"), "heading"))

    def small(self, text) -> InteractionResult:
        return wrap(self._region().label(expect_string(text, "text"), "small"))

    def monospace(self, text) -> InteractionResult:
        return wrap(self._region().label(expect_string(text, "text"), "monospace"))

    def strong(self, text) -> InteractionResult:
        return wrap(self._region().label(expect_string(text, "text"), "strong"))

    def weak(self, text) -> InteractionResult:
        return wrap(self._region().label(expect_string(text, "text"), "weak"))

    def code(self, text) -> InteractionResult:
        return wrap(self._region().label(expect_string(text, "text"), "code"))

    def colored_label(self, text, color) -> InteractionResult:
        ui = self._region()
        return wrap(ui.label(expect_string(text, "text"), color=color_from_table(color)))

    # ----- input widgets -----

    def button(self, text, style=None) -> InteractionResult:
        ui = self._region()
        frame_style = decode_frame_style(style) if style is not None else None
        return wrap(ui.button(expect_string(text, "text"), frame_style))

    def text_edit_singleline(self, text) -> InteractionResult:
        resp, value = self._region().text_edit(expect_string(text, "text"))
        return wrap(resp, value)

    def text_edit_multiline(self, text) -> InteractionResult:
        resp, value = self._region().text_edit(expect_string(text, "text"), multiline=True)
        return wrap(resp, value)

    def code_editor(self, text) -> InteractionResult:
        resp, value = self._region().text_edit(expect_string(text, "text"), multiline=True, language="code")
        return wrap(resp, value)

    def checkbox(self, text, checked) -> InteractionResult:
        resp, value = self._region().checkbox(expect_bool(checked, "checked"), expect_string(text, "text"))
        return wrap(resp, value)

    def slider(self, text, minimum, maximum, value) -> InteractionResult:
        resp, new = self._region().slider(
            expect_number(value, "value"), expect_number(minimum, "min"), expect_number(maximum, "max"),
            expect_string(text, "text"),
        )
        return wrap(resp, new)

    def drag_value(self, text, value) -> InteractionResult:
        ui = self._region()
        prefix = expect_string(text, "text")
        resp, new = ui.drag_value(expect_number(value, "value"))
        ui.node.children[-1].props["prefix"] = prefix
        return wrap(resp, new)

    def radio_button(self, text, current, my_value) -> InteractionResult:
        resp, new = self._region().choice(
            "radio", expect_string(current, "current"), expect_string(my_value, "my_value"),
            expect_string(text, "text"),
        )
        return wrap(resp, new)

    def selectable_value(self, current, selected, text) -> InteractionResult:
        resp, new = self._region().choice(
            "selectable", expect_string(current, "current"), expect_string(selected, "selected"),
            expect_string(text, "text"),
        )
        return wrap(resp, new)

    def combobox(self, label, selected_key, values, func=None) -> InteractionResult:
        """
        A combo box over `values` (key -> display text), listed in key order.
        Keys are strings; numeric keys, including the 1..n of a list, are
        coerced. With `func`, each entry is drawn by
        `func(ui, selected_key, key, text)`, which returns the newly selected
        key or None.
        """
        ui = self._region()
        label = expect_string(label, "label")
        old = expect_key(selected_key, "selected_key")
        entries = {expect_key(k, "values"): v for k, v in expect_table(values, "values").items()}
        if func is not None:
            func = expect_function(func, "func")
        selected = old
        resp, popup = ui.popup("combobox", label, {"selected_text": str(entries.get(old, old))})
        if popup is not None:
            for key in sorted(entries):
                text = entries[key]
                if func is not None:
                    picked = self._bridge.invoke(popup, func, old, key, text, parent=self)
                    if picked is not None:
                        selected = expect_key(picked, "selected key")
                else:
                    _, picked = popup.choice("selectable", selected, key, str(text))
                    selected = picked
            if selected != old:
                ui.close_popup(resp.id)
        return wrap(resp, SelectionRecord(selected, selected != old))

    def color_picker(self, color) -> InteractionResult:
        ui = self._region()
        native = color_from_table(color) or Color32.WHITE
        resp, new = ui.color_edit(native, "color_picker")
        return wrap(resp, color_to_script(new))

    def color_edit_button(self, r, g, b) -> InteractionResult:
        ui = self._region()
        native = Color32.from_rgba_unmultiplied(
            expect_number(r, "r"), expect_number(g, "g"), expect_number(b, "b"))
        resp, new = ui.color_edit(native)
        return wrap(resp, color_to_script(new)[:3])

    # ----- links and misc -----

    def hyperlink(self, url) -> InteractionResult:
        return wrap(self._region().hyperlink(expect_string(url, "url")))

    def hyperlink_to(self, text, url) -> InteractionResult:
        return wrap(self._region().hyperlink(expect_string(url, "url"), expect_string(text, "text")))

    def link(self, text) -> InteractionResult:
        return wrap(self._region().link(expect_string(text, "text")))

    def separator(self) -> InteractionResult:
        return wrap(self._region().separator())

    def spinner(self) -> InteractionResult:
        return wrap(self._region().spinner())

    def progress_bar(self, fraction, text=None) -> InteractionResult:
        ui = self._region()
        label = expect_string(text, "text") if text is not None else None
        return wrap(ui.progress_bar(expect_number(fraction, "fraction"), label))

    def image(self, source, options=None) -> InteractionResult:
        ui = self._region()
        return wrap(ui.image(self._resolver.resolve(source), decode_image_options(options)))

    # ----- containers -----

    def horizontal(self, func) -> InteractionResult:
        ui = self._region()
        return self._nest(ui, ui.child("horizontal", "left_to_right"), func)

    def vertical(self, func) -> InteractionResult:
        ui = self._region()
        return self._nest(ui, ui.child("vertical", "top_down"), func)

    def horizontal_wrapped(self, func) -> InteractionResult:
        ui = self._region()
        return self._nest(ui, ui.child("horizontal_wrapped", "horizontal_wrapped"), func)

    def vertical_centered(self, func) -> InteractionResult:
        ui = self._region()
        return self._nest(ui, ui.child("vertical_centered", "top_down", {"align": "center"}), func)

    def vertical_centered_justified(self, func) -> InteractionResult:
        ui = self._region()
        sub = ui.child("vertical_centered_justified", "top_down", {"align": "center", "justify": True})
        return self._nest(ui, sub, func)

    def group(self, func) -> InteractionResult:
        ui = self._region()
        return self._nest(ui, ui.child("group", "top_down"), func)

    def scroll_area(self, func) -> InteractionResult:
        ui = self._region()
        return self._nest(ui, ui.child("scroll_area", "top_down"), func)

    def scope(self, func) -> InteractionResult:
        ui = self._region()
        return self._nest(ui, ui.child("scope"), func)

    def grid(self, id, func) -> InteractionResult:
        ui = self._region()
        grid_id = expect_string(id, "id")
        return self._nest(ui, ui.child("grid", "left_to_right", {"grid_id": grid_id}, id_source=grid_id), func)

    def end_row(self):
        self._region().end_row()

    def window(self, title, func) -> InteractionResult:
        ui = self._region()
        title = expect_string(title, "title")
        func = expect_function(func, "func")
        win = ui.ctx.open_window(title)
        value = self._bridge.invoke(win, func, parent=self)
        return wrap(RawResponse(win.id, win.min_rect()), value)

    def collapsing_header(self, label, func) -> InteractionResult:
        ui = self._region()
        label = expect_string(label, "label")
        func = expect_function(func, "func")
        resp, body = ui.collapsing(label)
        value = None
        if body is not None:
            value = self._bridge.invoke(body, func, parent=self)
            ui.end_child(body)
        return wrap(resp, value)

    def menu_button(self, label, func) -> InteractionResult:
        ui = self._region()
        label = expect_string(label, "label")
        func = expect_function(func, "func")
        resp, menu = ui.popup("menu_button", label, {})
        value = None
        if menu is not None:
            value = self._bridge.invoke(menu, func, parent=self)
        return wrap(resp, value)

    def columns(self, n, func) -> InteractionResult:
        """Calls `func(ui, index)` once per column, each with its own handle."""
        ui = self._region()
        count = int(expect_number(n, "n"))
        func = expect_function(func, "func")
        cols = ui.columns(count)
        values = [self._bridge.invoke(col, func, i, parent=self) for i, col in enumerate(cols)]
        ui.end_columns(cols)
        node = ui.node.children[-1]
        return wrap(RawResponse(node.id, ui.min_rect()), values)

    def allocate_ui_with_layout(self, layout_name, func) -> InteractionResult:
        ui = self._region()
        layout = LAYOUTS.get(expect_string(layout_name, "layout"), "top_down")
        return self._nest(ui, ui.child("allocate", layout, {"align": "center"}), func)

    def align(self, layout_name, align, func) -> InteractionResult:
        ui = self._region()
        layout_name = expect_string(layout_name, "layout")
        align = expect_string(align, "align")
        align = align if align in ALIGNS else "start"
        if layout_name == "center_both":
            sub = ui.child("align", "top_down", {"align": "center", "justify": True})
        else:
            sub = ui.child("align", LAYOUTS.get(layout_name, "top_down"), {"align": align})
        return self._nest(ui, sub, func)

    def frame_block(self, style, func) -> InteractionResult:
        ui = self._region()
        frame = decode_frame_style(style)
        sub = ui.child("frame", props=frame.to_props())
        if frame.min_size is not None and frame.min_size != Vec2():
            sub.set_width(max(sub.max_rect.width, frame.min_size.x))
            sub.set_height(max(sub.max_rect.height, frame.min_size.y))
        else:
            if frame.width is not None:
                sub.set_width(size_attrib(frame.width, sub.available_width()))
            if frame.height is not None:
                sub.set_height(size_attrib(frame.height, sub.available_width()))
        return self._nest(ui, sub, func)

    def place_ui_at(self, x, y, w, h, func) -> InteractionResult:
        ui = self._region()
        rect = Rect.from_min_size(
            Pos2(expect_number(x, "x"), expect_number(y, "y")),
            Vec2(expect_number(w, "w"), expect_number(h, "h")),
        )
        sub = ui.child("placed", props={"rect": rect}, max_rect=rect)
        sub.clip_rect = rect
        return self._nest(ui, sub, func)

    # ----- region state -----

    def set_width(self, width):
        self._region().set_width(expect_number(width, "width"))

    def set_height(self, height):
        self._region().set_height(expect_number(height, "height"))

    def set_attribs(self, attribs):
        ui = self._region()
        decoded = decode_attribs(attribs)
        if decoded.height is not None:
            ui.set_height(size_attrib(decoded.height, ui.available_width()))
        if decoded.width is not None:
            ui.set_width(size_attrib(decoded.width, ui.available_width()))
        if decoded.visible is not None:
            ui.set_visible(decoded.visible)

    def set_style(self, style, context=False):
        """Applies a style descriptor to this region, or to the whole context from the next frame."""
        ui = self._region()
        if context is True:
            ui.ctx.request_style(decode(style, ui.ctx.pending_style))
        else:
            ui.set_style(decode(style, ui.style))

    def set_spacing(self, spacing):
        ui = self._region()
        amount = expect_number(spacing, "spacing")
        ui.set_style(replace(ui.style, spacing=replace(ui.style.spacing, item_spacing=Vec2(amount, amount))))

    def visuals_mut(self, func):
        ui = self._region()
        func = expect_function(func, "func")
        draft = VisualsDraft(ui.style.visuals)
        value = self._bridge.invoke(draft, func, parent=self, factory=VisualsEditor)
        ui.set_style(replace(ui.style, visuals=draft.visuals))
        return value

    def clip_rect(self):
        rect = self._region().clip_rect
        return (rect.min.x, rect.min.y, rect.max.x, rect.max.y)

    def available_width(self) -> float:
        return self._region().available_width()

    def painter(self) -> 'Painter':
        self._region()
        return Painter(self._bridge, self._index, self._generation)


class VisualsDraft:
    def __init__(self, visuals):
        self.visuals = visuals


class VisualsEditor(ScopedHandle):
    """Edits a copy of a region's visuals; applied when `visuals_mut` returns."""

    def set_window_fill(self, color):
        draft = self._region()
        draft.visuals = replace(draft.visuals, window_fill=_color_floats(color, "color"))

    def set_text_color(self, color):
        draft = self._region()
        draft.visuals = replace(draft.visuals, override_text_color=_color_floats(color, "color"))


class Painter(ScopedHandle):
    """
    Paints into the owning region. Shares the owner's arena slot, so it goes
    stale together with the handle that produced it. Calls with a color that
    does not decode draw nothing.
    """

    def _paint(self, kind: str, props: Dict[str, Any]):
        self._region().painter().add(Shape(kind, props))

    def rect_filled(self, x, y, w, h, color):
        rect = Rect.from_min_size(Pos2(expect_number(x, "x"), expect_number(y, "y")),
                                  Vec2(expect_number(w, "w"), expect_number(h, "h")))
        fill = color_from_table(color)
        if fill is not None:
            self._paint("rect", {"rect": rect, "fill": fill})

    def rect_stroke(self, x, y, w, h, color, width):
        rect = Rect.from_min_size(Pos2(expect_number(x, "x"), expect_number(y, "y")),
                                  Vec2(expect_number(w, "w"), expect_number(h, "h")))
        stroke_color = color_from_table(color)
        if stroke_color is not None:
            self._paint("rect", {"rect": rect, "stroke": Stroke(expect_number(width, "width"), stroke_color)})

    def circle_filled(self, x, y, radius, color):
        center = Pos2(expect_number(x, "x"), expect_number(y, "y"))
        fill = color_from_table(color)
        if fill is not None:
            self._paint("circle", {"center": center, "radius": expect_number(radius, "radius"), "fill": fill})

    def circle_stroke(self, x, y, radius, color, width):
        center = Pos2(expect_number(x, "x"), expect_number(y, "y"))
        stroke_color = color_from_table(color)
        if stroke_color is not None:
            self._paint("circle", {"center": center, "radius": expect_number(radius, "radius"),
                                   "stroke": Stroke(expect_number(width, "width"), stroke_color)})

    def line_segment(self, x1, y1, x2, y2, color, width):
        points = (Pos2(expect_number(x1, "x1"), expect_number(y1, "y1")),
                  Pos2(expect_number(x2, "x2"), expect_number(y2, "y2")))
        stroke_color = color_from_table(color)
        if stroke_color is not None:
            self._paint("line", {"points": points, "stroke": Stroke(expect_number(width, "width"), stroke_color)})

    def arrow(self, x, y, dx, dy, color, width):
        origin = Pos2(expect_number(x, "x"), expect_number(y, "y"))
        vec = Vec2(expect_number(dx, "dx"), expect_number(dy, "dy"))
        stroke_color = color_from_table(color)
        if stroke_color is not None:
            self._paint("arrow", {"origin": origin, "vec": vec, "stroke": Stroke(expect_number(width, "width"), stroke_color)})

    def text(self, x, y, text, font_size, color):
        pos = Pos2(expect_number(x, "x"), expect_number(y, "y"))
        text_color = color_from_table(color)
        if text_color is not None:
            self._paint("text", {"pos": pos, "text": expect_string(text, "text"),
                                 "font_size": expect_number(font_size, "font_size"), "color": text_color})

    def add_shape_from(self, table):
        shape = resolve_shape(table)
        if shape is not None:
            self._region().painter().add(shape)

    def add_shape(self, shape):
        if not isinstance(shape, Shape):
            raise BridgeTypeError("Shape2D", type(shape).__name__, "shape")
        self._region().painter().add(shape)

    def extend_shapes_from(self, tables):
        self._region().painter().extend(resolve_shapes(tables))

    def extend_shapes(self, shapes):
        table = optional_table(shapes)
        values = table.seq_values() if table is not None else []
        self._region().painter().extend([s for s in values if isinstance(s, Shape)])

    def update(self):
        self._region()


def make_handle_factory(resolver: Optional[ResourceResolver] = None) -> Callable[[ScopeBridge, int, int], ScriptHandle]:
    def factory(bridge, index, generation):
        return ScriptHandle(bridge, index, generation, resolver)
    return factory
