"""
In-process immediate-mode UI host.

This module plays the part of the native UI library. A `Ui` is one region
of the frame being built: every widget call appends a `UiNode` to the
region's node and answers with a `RawResponse` derived from the frame's
`FrameInput`. Layout is deliberately shallow, enough to give each widget a
rect and each region an available width and a clip rect.

The `UiContext` is shared by every region of every frame. It is refreshed
once per tick by `begin_frame`; style and font changes requested while a
frame is being built are queued and applied at the next `begin_frame`.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from imscript.imscript_values import (
    Color32, Vec2, Pos2, Rect, color_from_table, optional_number, to_script,
)
from imscript.imscript_style import Style, DEFAULT_STYLE, FrameStyle, ImageOptions


# =================================================================
# Tree
# =================================================================

@dataclass
class UiNode:
    """One element of the built UI. Equality is structural."""
    kind: str
    id: str
    props: Dict[str, Any] = field(default_factory=dict)
    children: List['UiNode'] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind, "id": self.id}
        if self.props:
            out["props"] = {k: to_script(v) for k, v in self.props.items()}
        if self.children:
            out["children"] = [c.to_dict() for c in self.children]
        return out

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, node_id: str) -> Optional['UiNode']:
        for node in self.walk():
            if node.id == node_id:
                return node
        return None

    def find_kind(self, kind: str) -> List['UiNode']:
        return [n for n in self.walk() if n.kind == kind]


# =================================================================
# Input and responses
# =================================================================

@dataclass
class WidgetEvent:
    """Simulated interaction with one widget during one frame."""
    clicked: bool = False
    middle_clicked: bool = False
    double_clicked: bool = False
    triple_clicked: bool = False
    clicked_elsewhere: bool = False
    hovered: bool = False
    long_touched: bool = False
    drag_started: bool = False
    drag_stopped: bool = False
    dragged: bool = False
    drag_delta: Vec2 = Vec2()
    gained_focus: bool = False
    lost_focus: bool = False
    has_focus: bool = False
    pointer_down: bool = False
    # Edited text for text inputs.
    text: Optional[str] = None
    # Raw new value for value widgets (slider, drag value, color edit).
    value: Any = None


@dataclass
class FrameInput:
    """
    Input for one frame. Events are keyed by widget id, or by the widget's
    label when the id is not known up front.
    """
    events: Dict[str, WidgetEvent] = field(default_factory=dict)
    pointer_pos: Optional[Pos2] = None
    time: Optional[float] = None

    def event_for(self, node: UiNode) -> Optional[WidgetEvent]:
        event = self.events.get(node.id)
        if event is None:
            label = node.props.get("label", node.props.get("text"))
            if isinstance(label, str):
                event = self.events.get(label)
        return event


@dataclass(frozen=True)
class RawResponse:
    """Interaction predicates of one widget for this frame."""
    id: str
    rect: Rect
    clicked: bool = False
    middle_clicked: bool = False
    double_clicked: bool = False
    triple_clicked: bool = False
    clicked_elsewhere: bool = False
    lost_focus: bool = False
    gained_focus: bool = False
    has_focus: bool = False
    hovered: bool = False
    highlighted: bool = False
    contains_pointer: bool = False
    long_touched: bool = False
    drag_started: bool = False
    drag_stopped: bool = False
    dragged: bool = False
    drag_delta: Vec2 = Vec2()
    interact_pointer_pos: Optional[Pos2] = None
    is_pointer_button_down_on: bool = False
    changed: bool = False

    @classmethod
    def from_event(cls, node_id: str, rect: Rect, event: Optional[WidgetEvent],
                   pointer_pos: Optional[Pos2] = None) -> 'RawResponse':
        if event is None:
            return cls(node_id, rect)
        interacted = event.clicked or event.dragged or event.drag_started or event.pointer_down
        hovered = event.hovered or event.clicked or event.dragged
        return cls(
            node_id, rect,
            clicked=event.clicked,
            middle_clicked=event.middle_clicked,
            double_clicked=event.double_clicked,
            triple_clicked=event.triple_clicked,
            clicked_elsewhere=event.clicked_elsewhere,
            lost_focus=event.lost_focus,
            gained_focus=event.gained_focus,
            has_focus=event.has_focus or event.gained_focus,
            hovered=hovered,
            highlighted=hovered,
            contains_pointer=hovered,
            long_touched=event.long_touched,
            drag_started=event.drag_started,
            drag_stopped=event.drag_stopped,
            dragged=event.dragged,
            drag_delta=event.drag_delta,
            interact_pointer_pos=pointer_pos if interacted else None,
            is_pointer_button_down_on=event.pointer_down,
        )

    def mark_changed(self) -> 'RawResponse':
        return replace(self, changed=True)


# =================================================================
# Context
# =================================================================

class UiMemory:
    """Host-side state that survives frames: open popups, collapsed headers."""

    def __init__(self):
        self._open: Dict[str, bool] = {}

    def is_open(self, node_id: str, default: bool = False) -> bool:
        return self._open.get(node_id, default)

    def set_open(self, node_id: str, is_open: bool):
        self._open[node_id] = is_open

    def toggle(self, node_id: str, default: bool = False) -> bool:
        state = not self.is_open(node_id, default)
        self._open[node_id] = state
        return state


class UiContext:
    """Shared UI context. Mutations requested during a frame apply at the next one."""

    def __init__(self, screen_size: Vec2 = Vec2(1280.0, 720.0), style: Style = DEFAULT_STYLE):
        self.frame_number = 0
        self.input = FrameInput()
        self.screen_rect = Rect.from_min_size(Pos2(0.0, 0.0), screen_size)
        self.style = style
        self.fonts: Dict[str, bytes] = {}
        self.windows: List[UiNode] = []
        self.memory = UiMemory()
        self._pending_style: Optional[Style] = None
        self._pending_fonts: Dict[str, bytes] = {}

    def begin_frame(self, frame_input: Optional[FrameInput] = None):
        self.frame_number += 1
        self.input = frame_input or FrameInput()
        self.windows = []
        if self._pending_style is not None:
            self.style = self._pending_style
            self._pending_style = None
        if self._pending_fonts:
            self.fonts.update(self._pending_fonts)
            self._pending_fonts = {}

    def request_style(self, style: Style):
        self._pending_style = style

    @property
    def pending_style(self) -> Style:
        return self._pending_style if self._pending_style is not None else self.style

    def register_font(self, name: str, data: bytes):
        self._pending_fonts[name] = bytes(data)

    def root_ui(self) -> 'Ui':
        return Ui(self, UiNode("root", "root"), self.screen_rect, style=self.style)

    def open_window(self, title: str, id_source: Optional[str] = None) -> 'Ui':
        node_id = f"window/{id_source or title}"
        node = UiNode("window", node_id, {"title": title})
        self.windows.append(node)
        return Ui(self, node, self.screen_rect, style=self.style)


# =================================================================
# Regions
# =================================================================

def _clamp(value: float, lo: float, hi: float) -> float:
    if lo > hi:
        lo, hi = hi, lo
    return max(lo, min(hi, value))


def _intersect(a: Rect, b: Rect) -> Rect:
    lo = Pos2(max(a.min.x, b.min.x), max(a.min.y, b.min.y))
    hi = Pos2(min(a.max.x, b.max.x), min(a.max.y, b.max.y))
    return Rect(lo, Pos2(max(lo.x, hi.x), max(lo.y, hi.y)))


HORIZONTAL_LAYOUTS = ("left_to_right", "right_to_left", "horizontal_wrapped")


class Ui:
    """One region of the UI under construction."""

    def __init__(self, ctx: UiContext, node: UiNode, max_rect: Rect,
                 layout: str = "top_down", style: Optional[Style] = None,
                 clip_rect: Optional[Rect] = None):
        self.ctx = ctx
        self.node = node
        self.layout = layout
        self.style = style or ctx.style
        self.max_rect = max_rect
        self.clip_rect = clip_rect or max_rect
        self.visible = True
        self._cursor = max_rect.min
        self._used: Optional[Rect] = None
        self._counter = 0

    @property
    def id(self) -> str:
        return self.node.id

    # ----- layout -----

    def available_width(self) -> float:
        if self.layout in HORIZONTAL_LAYOUTS:
            return max(0.0, self.max_rect.max.x - self._cursor.x)
        return self.max_rect.width

    def available_height(self) -> float:
        return max(0.0, self.max_rect.max.y - self._cursor.y)

    def set_width(self, width: float):
        self.max_rect = Rect.from_min_size(self.max_rect.min, Vec2(width, self.max_rect.height))
        self.node.props["width"] = width

    def set_height(self, height: float):
        self.max_rect = Rect.from_min_size(self.max_rect.min, Vec2(self.max_rect.width, height))
        self.node.props["height"] = height

    def set_visible(self, visible: bool):
        self.visible = visible
        if not visible:
            self.node.props["visible"] = False

    def set_style(self, style: Style):
        self.style = style

    def _allocate(self, size: Vec2) -> Rect:
        rect = Rect.from_min_size(self._cursor, size)
        spacing = self.style.spacing.item_spacing
        if self.layout in HORIZONTAL_LAYOUTS:
            self._cursor = Pos2(rect.max.x + spacing.x, self._cursor.y)
        else:
            self._cursor = Pos2(self._cursor.x, rect.max.y + spacing.y)
        self._used = rect if self._used is None else Rect(
            Pos2(min(self._used.min.x, rect.min.x), min(self._used.min.y, rect.min.y)),
            Pos2(max(self._used.max.x, rect.max.x), max(self._used.max.y, rect.max.y)),
        )
        return rect

    def min_rect(self) -> Rect:
        return self._used or Rect.from_min_size(self.max_rect.min, Vec2())

    def _next_id(self, kind: str, id_source: Optional[str]) -> str:
        if id_source is not None:
            return f"{self.id}/{id_source}"
        node_id = f"{self.id}/{kind}#{self._counter}"
        self._counter += 1
        return node_id

    def add(self, kind: str, props: Optional[Dict[str, Any]] = None,
            id_source: Optional[str] = None, size: Optional[Vec2] = None) -> Tuple[UiNode, RawResponse]:
        """Appends a widget node and derives its response from this frame's input."""
        node = UiNode(kind, self._next_id(kind, id_source), dict(props or {}))
        if not self.visible:
            node.props["visible"] = False
        self.node.children.append(node)
        rect = self._allocate(size or self.style.spacing.interact_size)
        event = self.ctx.input.event_for(node) if self.visible else None
        return node, RawResponse.from_event(node.id, rect, event, self.ctx.input.pointer_pos)

    def child(self, kind: str, layout: Optional[str] = None, props: Optional[Dict[str, Any]] = None,
              id_source: Optional[str] = None, max_rect: Optional[Rect] = None) -> 'Ui':
        """Derives a sub-region. Call `end_child` once it has been filled."""
        node = UiNode(kind, self._next_id(kind, id_source), dict(props or {}))
        if not self.visible:
            node.props["visible"] = False
        self.node.children.append(node)
        rect = max_rect or Rect(self._cursor, Pos2(self._cursor.x + self.available_width(), self.max_rect.max.y))
        sub = Ui(self.ctx, node, rect, layout or self.layout, self.style, _intersect(rect, self.clip_rect))
        sub.visible = self.visible
        return sub

    def end_child(self, sub: 'Ui'):
        used = sub.min_rect()
        self._allocate(Vec2(used.width, used.height))

    def interact(self, sub: 'Ui') -> RawResponse:
        """Response for a whole region, keyed by the region's id."""
        event = self.ctx.input.event_for(sub.node) if sub.visible else None
        return RawResponse.from_event(sub.id, sub.min_rect(), event, self.ctx.input.pointer_pos)

    # ----- text and decoration -----

    def label(self, text: str, variant: str = "label", color: Optional[Color32] = None) -> RawResponse:
        props: Dict[str, Any] = {"text": text}
        if variant != "label":
            props["variant"] = variant
        if color is not None:
            props["color"] = color
        return self.add("label", props)[1]

    def separator(self) -> RawResponse:
        return self.add("separator", size=Vec2(self.available_width(), 6.0))[1]

    def spinner(self) -> RawResponse:
        return self.add("spinner")[1]

    def progress_bar(self, progress: float, text: Optional[str] = None) -> RawResponse:
        props: Dict[str, Any] = {"progress": _clamp(progress, 0.0, 1.0)}
        if text is not None:
            props["text"] = text
        return self.add("progress_bar", props, size=Vec2(self.available_width(), 18.0))[1]

    def hyperlink(self, url: str, text: Optional[str] = None) -> RawResponse:
        props: Dict[str, Any] = {"url": url, "text": text if text is not None else url}
        node, resp = self.add("hyperlink", props)
        if resp.clicked:
            node.props["opened"] = True
        return resp

    def link(self, text: str) -> RawResponse:
        return self.add("link", {"text": text})[1]

    def image(self, source: Any, options: ImageOptions = ImageOptions()) -> RawResponse:
        props = {"source": source}
        props.update(options.to_props())
        size = options.fit_to or Vec2(self.available_width(), self.available_width())
        return self.add("image", props, size=size)[1]

    # ----- input widgets -----

    def button(self, text: str, frame_style: Optional[FrameStyle] = None) -> RawResponse:
        props: Dict[str, Any] = {"label": text}
        size = None
        if frame_style is not None:
            props.update(frame_style.to_props())
            if frame_style.min_size is not None:
                base = self.style.spacing.interact_size
                size = Vec2(max(base.x, frame_style.min_size.x), max(base.y, frame_style.min_size.y))
        return self.add("button", props, size=size)[1]

    def text_edit(self, value: str, multiline: bool = False, language: Optional[str] = None) -> Tuple[RawResponse, str]:
        props: Dict[str, Any] = {"value": value, "multiline": multiline}
        if language is not None:
            props["language"] = language
        width = self.style.spacing.text_edit_width
        node, resp = self.add("text_edit", props, size=Vec2(width, self.style.spacing.interact_size.y))
        event = self.ctx.input.event_for(node) if self.visible else None
        if event is not None and event.text is not None and event.text != value:
            node.props["value"] = event.text
            return resp.mark_changed(), event.text
        return resp, value

    def checkbox(self, checked: bool, text: str) -> Tuple[RawResponse, bool]:
        node, resp = self.add("checkbox", {"label": text, "checked": checked})
        if resp.clicked:
            node.props["checked"] = not checked
            return resp.mark_changed(), not checked
        return resp, checked

    def slider(self, value: float, lo: float, hi: float, text: Optional[str] = None) -> Tuple[RawResponse, float]:
        clamped = _clamp(value, lo, hi)
        props: Dict[str, Any] = {"value": clamped, "range": (lo, hi)}
        if text is not None:
            props["label"] = text
        node, resp = self.add("slider", props, size=Vec2(self.style.spacing.slider_width, self.style.spacing.interact_size.y))
        event = self.ctx.input.event_for(node) if self.visible else None
        raw = optional_number(event.value) if event is not None else None
        new = clamped if raw is None else _clamp(raw, lo, hi)
        node.props["value"] = new
        if new != value:
            resp = resp.mark_changed()
        return resp, new

    def drag_value(self, value: float, speed: float = 1.0) -> Tuple[RawResponse, float]:
        node, resp = self.add("drag_value", {"value": value})
        event = self.ctx.input.event_for(node) if self.visible else None
        new = value
        if event is not None:
            raw = optional_number(event.value)
            if raw is not None:
                new = raw
            elif event.dragged:
                new = value + event.drag_delta.x * speed
        node.props["value"] = new
        if new != value:
            resp = resp.mark_changed()
        return resp, new

    def choice(self, kind: str, current: Any, alternative: Any, text: str) -> Tuple[RawResponse, Any]:
        """Radio or selectable bound to a value: clicking selects `alternative`."""
        selected = current == alternative
        key = "checked" if kind == "radio" else "selected"
        node, resp = self.add(kind, {"label": text, key: selected})
        if resp.clicked and not selected:
            node.props[key] = True
            return resp.mark_changed(), alternative
        return resp, current

    def color_edit(self, color: Color32, kind: str = "color_edit") -> Tuple[RawResponse, Color32]:
        node, resp = self.add(kind, {"color": color})
        event = self.ctx.input.event_for(node) if self.visible else None
        new = color
        if event is not None and event.value is not None:
            decoded = event.value if isinstance(event.value, Color32) else color_from_table(event.value)
            if decoded is not None:
                new = decoded
        node.props["color"] = new
        if new != color:
            resp = resp.mark_changed()
        return resp, new

    # ----- popups and collapsibles -----

    def collapsing(self, heading: str, id_source: Optional[str] = None,
                   default_open: bool = False) -> Tuple[RawResponse, Optional['Ui']]:
        node_id = self._next_id("collapsing", id_source or heading)
        is_open = self.ctx.memory.is_open(node_id, default_open)
        header = UiNode("collapsing", node_id, {"heading": heading, "label": heading})
        if not self.visible:
            header.props["visible"] = False
        self.node.children.append(header)
        rect = self._allocate(self.style.spacing.interact_size)
        event = self.ctx.input.event_for(header) if self.visible else None
        resp = RawResponse.from_event(node_id, rect, event, self.ctx.input.pointer_pos)
        if resp.clicked:
            is_open = self.ctx.memory.toggle(node_id, default_open)
        header.props["open"] = is_open
        if not is_open:
            return resp, None
        rect = Rect(Pos2(self._cursor.x + self.style.spacing.indent, self._cursor.y),
                    Pos2(self.max_rect.max.x, self.max_rect.max.y))
        body = Ui(self.ctx, header, rect, "top_down", self.style, _intersect(rect, self.clip_rect))
        body.visible = self.visible
        return resp, body

    def popup(self, kind: str, label: str, props: Dict[str, Any],
              id_source: Optional[str] = None) -> Tuple[RawResponse, Optional['Ui']]:
        """A button that toggles a popup region (combo box, menu)."""
        node_id = self._next_id(kind, id_source or label)
        is_open = self.ctx.memory.is_open(node_id)
        node = UiNode(kind, node_id, dict(props, label=label))
        if not self.visible:
            node.props["visible"] = False
        self.node.children.append(node)
        width = self.style.spacing.combo_width if kind == "combobox" else self.style.spacing.interact_size.x
        rect = self._allocate(Vec2(width, self.style.spacing.interact_size.y))
        event = self.ctx.input.event_for(node) if self.visible else None
        resp = RawResponse.from_event(node_id, rect, event, self.ctx.input.pointer_pos)
        if resp.clicked:
            is_open = self.ctx.memory.toggle(node_id)
        node.props["open"] = is_open
        if not is_open:
            return resp, None
        popup_rect = Rect.from_min_size(Pos2(rect.min.x, rect.max.y),
                                        Vec2(width, self.style.spacing.combo_height))
        return resp, Ui(self.ctx, node, popup_rect, "top_down", self.style, popup_rect)

    def close_popup(self, node_id: str):
        self.ctx.memory.set_open(node_id, False)

    # ----- multi-region containers -----

    def columns(self, count: int) -> List['Ui']:
        count = max(1, int(count))
        node = UiNode("columns", self._next_id("columns", None), {"count": count})
        self.node.children.append(node)
        spacing = self.style.spacing.item_spacing.x
        width = (self.available_width() - spacing * (count - 1)) / count
        cols = []
        for i in range(count):
            x = self._cursor.x + i * (width + spacing)
            col_node = UiNode("column", f"{node.id}/{i}")
            node.children.append(col_node)
            rect = Rect(Pos2(x, self._cursor.y), Pos2(x + width, self.max_rect.max.y))
            col = Ui(self.ctx, col_node, rect, "top_down", self.style, _intersect(rect, self.clip_rect))
            col.visible = self.visible
            cols.append(col)
        return cols

    def end_columns(self, cols: List['Ui']):
        if not cols:
            return
        height = max(c.min_rect().height for c in cols)
        self._allocate(Vec2(self.available_width(), height))

    def end_row(self):
        """Ends a grid row."""
        self.node.children.append(UiNode("end_row", self._next_id("end_row", None)))

    # ----- painting -----

    def painter(self) -> 'NativePainter':
        return NativePainter(self)


@dataclass
class Shape:
    """A paint primitive: rect, circle, line, text or arrow."""
    kind: str
    props: Dict[str, Any] = field(default_factory=dict)

    def to_script(self) -> Dict[str, Any]:
        return {"kind": self.kind, **{k: to_script(v) for k, v in self.props.items()}}


class NativePainter:
    """Paints into the layer of one region, clipped to its clip rect."""

    def __init__(self, ui: Ui):
        self._ui = ui

    @property
    def clip_rect(self) -> Rect:
        return self._ui.clip_rect

    def add(self, shape: Shape):
        ui = self._ui
        node_id = f"{ui.id}/shape#{len([c for c in ui.node.children if c.kind == 'shape'])}"
        ui.node.children.append(UiNode("shape", node_id, dict(shape.props, shape=shape.kind)))

    def extend(self, shapes):
        for shape in shapes:
            self.add(shape)
