"""
Tolerant decoding of script style descriptors into native style values.

Every decoder here is a pure function of (descriptor, base). A key that is
missing, or present with the wrong kind of value, leaves the corresponding
field at its base value. Decoders never raise on malformed input.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple

from imscript.imscript_values import (
    Color32, Vec2, Stroke, Margin, Rounding, Table,
    optional_number, optional_table,
    color_from_table, vec2_from_table, margin_from_value, rounding_from_value,
)


# =================================================================
# Style model
# =================================================================

@dataclass(frozen=True)
class WidgetVisuals:
    bg_fill: Color32
    weak_bg_fill: Color32
    bg_stroke: Stroke
    rounding: Rounding
    fg_stroke: Stroke
    expansion: float = 0.0


def _gray(level: int) -> Color32:
    return Color32.from_gray(level)


@dataclass(frozen=True)
class Widgets:
    """Per interaction state visuals."""
    noninteractive: WidgetVisuals = WidgetVisuals(
        _gray(27), _gray(27), Stroke(1.0, _gray(60)), Rounding.same(2.0), Stroke(1.0, _gray(140)))
    inactive: WidgetVisuals = WidgetVisuals(
        _gray(60), _gray(60), Stroke(), Rounding.same(2.0), Stroke(1.0, _gray(180)))
    hovered: WidgetVisuals = WidgetVisuals(
        _gray(70), _gray(70), Stroke(1.0, _gray(150)), Rounding.same(3.0), Stroke(1.5, _gray(240)), 1.0)
    active: WidgetVisuals = WidgetVisuals(
        _gray(55), _gray(55), Stroke(1.0, Color32.WHITE), Rounding.same(2.0), Stroke(2.0, Color32.WHITE), 1.0)
    open: WidgetVisuals = WidgetVisuals(
        _gray(27), _gray(45), Stroke(1.0, _gray(60)), Rounding.same(2.0), Stroke(1.0, _gray(210)))


WIDGET_STATES = ("noninteractive", "inactive", "hovered", "active", "open")


@dataclass(frozen=True)
class Visuals:
    dark_mode: bool = True
    override_text_color: Optional[Color32] = None
    widgets: Widgets = Widgets()
    hyperlink_color: Color32 = Color32(90, 170, 255)
    faint_bg_color: Color32 = Color32(5, 5, 5, 0)
    extreme_bg_color: Color32 = _gray(10)
    code_bg_color: Color32 = _gray(64)
    warn_fg_color: Color32 = Color32(255, 143, 0)
    error_fg_color: Color32 = Color32(255, 0, 0)
    window_rounding: Rounding = Rounding.same(6.0)
    window_fill: Color32 = _gray(27)
    panel_fill: Color32 = _gray(27)

    def text_color(self) -> Color32:
        if self.override_text_color is not None:
            return self.override_text_color
        return self.widgets.noninteractive.fg_stroke.color


# Color-valued visuals fields that scripts may set directly by name.
VISUALS_COLORS = (
    "hyperlink_color", "faint_bg_color", "extreme_bg_color", "code_bg_color",
    "warn_fg_color", "error_fg_color", "window_fill", "panel_fill",
)


@dataclass(frozen=True)
class Spacing:
    item_spacing: Vec2 = Vec2(8.0, 3.0)
    button_padding: Vec2 = Vec2(4.0, 1.0)
    interact_size: Vec2 = Vec2(40.0, 18.0)
    menu_margin: Margin = Margin.same(6.0)
    indent: float = 18.0
    slider_width: float = 100.0
    combo_width: float = 100.0
    text_edit_width: float = 280.0
    icon_width: float = 14.0
    icon_width_inner: float = 8.0
    icon_spacing: float = 4.0
    tooltip_width: float = 600.0
    combo_height: float = 200.0


SPACING_VECTORS = ("item_spacing", "button_padding", "interact_size")
SPACING_NUMBERS = (
    "indent", "slider_width", "combo_width", "text_edit_width", "icon_width",
    "icon_width_inner", "icon_spacing", "tooltip_width", "combo_height",
)


@dataclass(frozen=True)
class Style:
    wrap: Optional[bool] = None
    spacing: Spacing = Spacing()
    visuals: Visuals = Visuals()


DEFAULT_STYLE = Style()


# =================================================================
# Style descriptor decoding
# =================================================================

def _changed(base, changes: Dict[str, Any]):
    return replace(base, **changes) if changes else base


def decode_spacing(descriptor: Any, base: Spacing) -> Spacing:
    table = optional_table(descriptor)
    if table is None:
        return base
    changes: Dict[str, Any] = {}
    for name in SPACING_VECTORS:
        vec = vec2_from_table(table.get(name), default=1.0)
        if vec is not None:
            changes[name] = vec
    margin = margin_from_value(table.get("menu_margin"))
    if margin is not None:
        changes["menu_margin"] = margin
    for name in SPACING_NUMBERS:
        number = optional_number(table.get(name))
        if number is not None:
            changes[name] = number
    return _changed(base, changes)


def decode_widget_visuals(descriptor: Any, base: WidgetVisuals) -> WidgetVisuals:
    table = optional_table(descriptor)
    if table is None:
        return base
    changes: Dict[str, Any] = {}
    for name in ("bg_fill", "weak_bg_fill"):
        color = color_from_table(table.get(name))
        if color is not None:
            changes[name] = color
    rounding = rounding_from_value(table.get("rounding"))
    if rounding is not None:
        changes["rounding"] = rounding
    return _changed(base, changes)


def decode_widgets(descriptor: Table, base: Widgets) -> Widgets:
    changes = {}
    for state in WIDGET_STATES:
        if state not in descriptor:
            continue
        decoded = decode_widget_visuals(descriptor.get(state), getattr(base, state))
        if decoded != getattr(base, state):
            changes[state] = decoded
    return _changed(base, changes)


def decode_visuals(descriptor: Any, base: Visuals) -> Visuals:
    table = optional_table(descriptor)
    if table is None:
        return base
    changes: Dict[str, Any] = {}
    dark_mode = table.get("dark_mode")
    if isinstance(dark_mode, bool):
        changes["dark_mode"] = dark_mode
    widgets = decode_widgets(table, base.widgets)
    if widgets != base.widgets:
        changes["widgets"] = widgets
    for name in VISUALS_COLORS:
        color = color_from_table(table.get(name))
        if color is not None:
            changes[name] = color
    rounding = rounding_from_value(table.get("window_rounding"))
    if rounding is not None:
        changes["window_rounding"] = rounding
    text_color = color_from_table(table.get("text_color"))
    if text_color is not None:
        changes["override_text_color"] = text_color
    return _changed(base, changes)


def decode(descriptor: Any, base: Style = DEFAULT_STYLE) -> Style:
    """Applies a style descriptor on top of `base` and returns the new style."""
    table = optional_table(descriptor)
    if table is None:
        return base
    changes: Dict[str, Any] = {}
    wrap = table.get("wrap")
    if isinstance(wrap, bool):
        changes["wrap"] = wrap
    spacing = decode_spacing(table.get("spacing"), base.spacing)
    if spacing != base.spacing:
        changes["spacing"] = spacing
    visuals = decode_visuals(table.get("visuals"), base.visuals)
    if visuals != base.visuals:
        changes["visuals"] = visuals
    return _changed(base, changes)


# =================================================================
# Element styles
# =================================================================

@dataclass(frozen=True)
class FrameStyle:
    """Paint attributes of a button or a framed block."""
    fill: Optional[Color32] = None
    stroke: Optional[Stroke] = None
    rounding: Optional[Rounding] = None
    inner_margin: Optional[Margin] = None
    min_size: Optional[Vec2] = None
    width: Optional[str] = None
    height: Optional[str] = None

    def to_props(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


def stroke_from_table(value: Any) -> Optional[Stroke]:
    """`{r, g, b, a, width}`; the width defaults to 1."""
    color = color_from_table(value)
    if color is None:
        return None
    width = optional_number(Table.of(value).seq(5))
    return Stroke(1.0 if width is None else width, color)


def decode_frame_style(descriptor: Any, base: FrameStyle = FrameStyle()) -> FrameStyle:
    table = optional_table(descriptor)
    if table is None:
        return base
    changes: Dict[str, Any] = {}
    fill = color_from_table(table.get("fill"))
    if fill is None:
        fill = color_from_table(table.get("color"))
    if fill is not None:
        changes["fill"] = fill
    stroke = stroke_from_table(table.get("stroke"))
    if stroke is not None:
        changes["stroke"] = stroke
    rounding = rounding_from_value(table.get("rounding"))
    if rounding is not None:
        changes["rounding"] = rounding
    padding = margin_from_value(table.get("padding"))
    if padding is not None:
        changes["inner_margin"] = padding
    min_size = vec2_from_table(table.get("min_size"), default=0.0)
    if min_size is not None:
        changes["min_size"] = min_size
    for name in ("width", "height"):
        if isinstance(table.get(name), str):
            changes[name] = table.get(name)
    return _changed(base, changes)


@dataclass(frozen=True)
class ImageOptions:
    fit_original: Optional[float] = None
    maintain_aspect_ratio: Optional[bool] = None
    fit_to: Optional[Vec2] = None
    rotate: Optional[Tuple[float, Vec2]] = None
    rounding: Optional[Rounding] = None
    spinner: Optional[bool] = None

    def to_props(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


def decode_image_options(descriptor: Any) -> ImageOptions:
    table = optional_table(descriptor)
    if table is None:
        return ImageOptions()
    changes: Dict[str, Any] = {}
    fit_original = optional_number(table.get("fit_original"))
    if fit_original is not None:
        changes["fit_original"] = fit_original
    for name in ("maintain_aspect_ratio", "spinner"):
        if isinstance(table.get(name), bool):
            changes[name] = table.get(name)
    fit = optional_table(table.get("fit_to"))
    if fit is not None:
        w, h = optional_number(fit.seq(1)), optional_number(fit.seq(2))
        if w is not None and h is not None:
            changes["fit_to"] = Vec2(w, h)
    rotate = optional_table(table.get("rotate"))
    if rotate is not None:
        ox, oy, angle = (optional_number(rotate.seq(i)) for i in (1, 2, 3))
        if None not in (ox, oy, angle):
            changes["rotate"] = (angle, Vec2(ox, oy))
    rounding = rounding_from_value(table.get("rounding"))
    if rounding is not None:
        changes["rounding"] = rounding
    return replace(ImageOptions(), **changes)


@dataclass(frozen=True)
class RegionAttribs:
    width: Any = None
    height: Any = None
    visible: Optional[bool] = None


def decode_attribs(descriptor: Any) -> RegionAttribs:
    table = optional_table(descriptor)
    if table is None:
        return RegionAttribs()
    visible = table.get("visible")
    return RegionAttribs(
        width=table.get("width") if isinstance(table.get("width"), str) else None,
        height=table.get("height") if isinstance(table.get("height"), str) else None,
        visible=visible if isinstance(visible, bool) else None,
    )
