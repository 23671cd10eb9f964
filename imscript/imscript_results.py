"""
Interaction results handed back to scripts.

Every widget call answers with exactly one `InteractionResult`: the
interaction predicates of the native response plus the widget's new value,
if it has one. Results are immutable snapshots; scripts read them without
further host calls.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from imscript.imscript_values import Pos2, Vec2, to_script
from imscript.imscript_tree import RawResponse


@dataclass(frozen=True)
class SelectionRecord:
    """Outcome of a composite selection widget (combo box, radio group)."""
    key: Any
    changed: bool = False

    def to_script(self) -> Dict[str, Any]:
        return {"changed": self.changed, "__value": to_script(self.key)}


@dataclass(frozen=True)
class InteractionResult:
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
    value: Any = None

    def __iter__(self):
        # Lets scripts write `changed, value = ui.checkbox(...)`.
        yield self.changed
        yield self.value

    def __bool__(self) -> bool:
        return self.clicked

    def to_script(self) -> Dict[str, Any]:
        return {f.name: to_script(getattr(self, f.name)) for f in fields(self)}


_RAW_FIELDS = tuple(f.name for f in fields(InteractionResult) if f.name not in ("changed", "value"))


def wrap(raw: RawResponse, updated_value: Any = None, changed: Optional[bool] = None) -> InteractionResult:
    """
    Builds the result of one widget call. An explicit `changed`, or one carried
    by a `SelectionRecord` value, takes precedence over the raw response flag.
    """
    flags = {name: getattr(raw, name) for name in _RAW_FIELDS}
    value = updated_value
    if changed is None and isinstance(updated_value, SelectionRecord):
        changed = updated_value.changed
    if isinstance(updated_value, SelectionRecord):
        value = updated_value.key
    return InteractionResult(
        **flags,
        changed=raw.changed if changed is None else bool(changed),
        value=value,
    )
