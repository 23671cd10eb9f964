"""
Defines the native value types used by the UI host and the bridge between
them and script values.

Script values arrive as plain Python objects (numbers, strings, booleans,
dicts/lists acting as tables, callables). At the bridge boundary they are
classified into a closed set of variants by `ScriptValue`, and every
conversion that needs a particular variant fails explicitly with
`BridgeTypeError` instead of coercing.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
import collections.abc


class BridgeTypeError(TypeError):
    """A script value did not carry the variant a host operation expects."""
    def __init__(self, expected: str, got: str, name: Optional[str] = None):
        where = f" for '{name}'" if name else ""
        super().__init__(f"expected {expected}{where}, got {got}")
        self.expected = expected
        self.got = got
        self.name = name


# =================================================================
# Native value types
# =================================================================

def _to_byte(component: float) -> int:
    # Float-to-byte casts saturate: NaN and negatives go to 0, overflow to 255.
    if component != component:
        return 0
    return max(0, min(255, int(component * 255.0)))


@dataclass(frozen=True)
class Color32:
    """An sRGBA color with unmultiplied 8-bit components."""
    r: int
    g: int
    b: int
    a: int = 255

    @classmethod
    def from_rgba_unmultiplied(cls, r: float, g: float, b: float, a: float = 1.0) -> 'Color32':
        """Builds a color from 0..1 float components."""
        return cls(_to_byte(r), _to_byte(g), _to_byte(b), _to_byte(a))

    @classmethod
    def from_gray(cls, level: int) -> 'Color32':
        return cls(level, level, level, 255)

    def to_floats(self) -> List[float]:
        return [self.r / 255.0, self.g / 255.0, self.b / 255.0, self.a / 255.0]


Color32.TRANSPARENT = Color32(0, 0, 0, 0)
Color32.WHITE = Color32(255, 255, 255, 255)
Color32.BLACK = Color32(0, 0, 0, 255)


@dataclass(frozen=True)
class Vec2:
    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: 'Vec2') -> 'Vec2':
        return Vec2(self.x + other.x, self.y + other.y)


@dataclass(frozen=True)
class Pos2:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Rect:
    min: Pos2
    max: Pos2

    @classmethod
    def from_min_size(cls, min_pos: Pos2, size: Vec2) -> 'Rect':
        return cls(min_pos, Pos2(min_pos.x + size.x, min_pos.y + size.y))

    @property
    def width(self) -> float:
        return self.max.x - self.min.x

    @property
    def height(self) -> float:
        return self.max.y - self.min.y


@dataclass(frozen=True)
class Stroke:
    width: float = 0.0
    color: Color32 = Color32.TRANSPARENT


@dataclass(frozen=True)
class Margin:
    left: float = 0.0
    right: float = 0.0
    top: float = 0.0
    bottom: float = 0.0

    @classmethod
    def same(cls, value: float) -> 'Margin':
        return cls(value, value, value, value)

    @classmethod
    def symmetric(cls, x: float, y: float) -> 'Margin':
        return cls(left=x, right=x, top=y, bottom=y)


@dataclass(frozen=True)
class Rounding:
    nw: float = 0.0
    ne: float = 0.0
    sw: float = 0.0
    se: float = 0.0

    @classmethod
    def same(cls, radius: float) -> 'Rounding':
        return cls(radius, radius, radius, radius)


# =================================================================
# Script values
# =================================================================

class Table(collections.abc.Mapping):
    """Read-only view of a script table.

    Scripts build tables from dicts, lists or tuples. Sequence entries are
    addressed from 1, so `Table.of([a, b]).seq(1)` is `a` whichever form the
    script used.
    """
    __slots__ = ("_data",)

    def __init__(self, data: Dict[Any, Any]):
        self._data = data

    @classmethod
    def of(cls, value: Any) -> 'Table':
        match value:
            case Table():
                return value
            case list() | tuple():
                return cls({i + 1: v for i, v in enumerate(value)})
            case collections.abc.Mapping():
                return cls(dict(value))
            case _:
                raise BridgeTypeError("table", ScriptValue.kind_of(value))

    def __getitem__(self, key):
        return self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self) -> int:
        # Border length: number of consecutive integer keys from 1.
        n = 0
        while (n + 1) in self._data:
            n += 1
        return n

    def get(self, key, default=None):
        return self._data.get(key, default)

    def seq(self, index: int, default=None):
        return self._data.get(index, default)

    def seq_values(self) -> List[Any]:
        return [self._data[i] for i in range(1, len(self) + 1)]

    def __repr__(self) -> str:
        return f"Table({self._data!r})"


class ScriptValue:
    """A script value tagged with its variant.

    The set of kinds is closed: nil, number, string, boolean, table, function.
    Anything else a script hands over is reported as 'userdata' and never
    satisfies an accessor.
    """
    KINDS = ("nil", "number", "string", "boolean", "table", "function")
    __slots__ = ("kind", "raw")

    def __init__(self, kind: str, raw: Any):
        self.kind = kind
        self.raw = raw

    @staticmethod
    def kind_of(value: Any) -> str:
        # bool is a subclass of int, so check it before numbers
        match value:
            case None:
                return "nil"
            case bool():
                return "boolean"
            case int() | float():
                return "number"
            case str():
                return "string"
            case Table() | list() | tuple() | collections.abc.Mapping():
                return "table"
        if callable(value):
            return "function"
        return "userdata"

    @classmethod
    def of(cls, value: Any) -> 'ScriptValue':
        if isinstance(value, ScriptValue):
            return value
        return cls(cls.kind_of(value), value)

    def _expect(self, kind: str, name: Optional[str]):
        if self.kind != kind:
            raise BridgeTypeError(kind, self.kind, name)
        return self.raw

    def as_number(self, name: Optional[str] = None) -> float:
        return float(self._expect("number", name))

    def as_string(self, name: Optional[str] = None) -> str:
        return self._expect("string", name)

    def as_bool(self, name: Optional[str] = None) -> bool:
        return self._expect("boolean", name)

    def as_table(self, name: Optional[str] = None) -> Table:
        return Table.of(self._expect("table", name))

    def as_function(self, name: Optional[str] = None):
        return self._expect("function", name)

    @property
    def is_nil(self) -> bool:
        return self.kind == "nil"

    def __eq__(self, other):
        if not isinstance(other, ScriptValue):
            return NotImplemented
        return self.kind == other.kind and self.raw == other.raw

    def __repr__(self) -> str:
        return f"ScriptValue({self.kind}, {self.raw!r})"


def expect_number(value: Any, name: Optional[str] = None) -> float:
    return ScriptValue.of(value).as_number(name)


def expect_string(value: Any, name: Optional[str] = None) -> str:
    return ScriptValue.of(value).as_string(name)


def expect_key(value: Any, name: Optional[str] = None) -> str:
    """A string, or a number coerced to its string form (`2` and `2.0` give '2')."""
    sv = ScriptValue.of(value)
    if sv.kind == "number":
        number = sv.raw
        if isinstance(number, float) and number.is_integer():
            number = int(number)
        return str(number)
    return sv.as_string(name)


def expect_bool(value: Any, name: Optional[str] = None) -> bool:
    return ScriptValue.of(value).as_bool(name)


def expect_table(value: Any, name: Optional[str] = None) -> Table:
    return ScriptValue.of(value).as_table(name)


def expect_function(value: Any, name: Optional[str] = None):
    return ScriptValue.of(value).as_function(name)


def optional_number(value: Any) -> Optional[float]:
    """Returns the number carried by value, or None for any other variant."""
    sv = ScriptValue.of(value)
    return float(sv.raw) if sv.kind == "number" else None


def optional_table(value: Any) -> Optional[Table]:
    sv = ScriptValue.of(value)
    return Table.of(sv.raw) if sv.kind == "table" else None


# =================================================================
# Conversions
# =================================================================

def color_from_table(value: Any) -> Optional[Color32]:
    """Decodes `{r, g, b[, a]}` with 0..1 components; alpha defaults to 1."""
    table = optional_table(value)
    if table is None:
        return None
    rgb = [optional_number(table.seq(i)) for i in (1, 2, 3)]
    if any(c is None for c in rgb):
        return None
    alpha = optional_number(table.seq(4))
    return Color32.from_rgba_unmultiplied(*rgb, 1.0 if alpha is None else alpha)


def color_to_script(color: Color32) -> List[float]:
    return color.to_floats()


def vec2_from_table(value: Any, default: float = 0.0) -> Optional[Vec2]:
    table = optional_table(value)
    if table is None:
        return None
    x = optional_number(table.seq(1))
    y = optional_number(table.seq(2))
    return Vec2(default if x is None else x, default if y is None else y)


def _numbers(table: Table, count: int) -> Optional[List[float]]:
    values = [optional_number(table.seq(i)) for i in range(1, count + 1)]
    if any(v is None for v in values):
        return None
    return values


def margin_from_value(value: Any) -> Optional[Margin]:
    """A scalar applies to every side; `{x, y}` is symmetric; `{top, left, right, bottom}`."""
    scalar = optional_number(value)
    if scalar is not None:
        return Margin.same(scalar)
    table = optional_table(value)
    if table is None:
        return None
    match len(table):
        case 2:
            xy = _numbers(table, 2)
            return Margin.symmetric(*xy) if xy else None
        case 4:
            sides = _numbers(table, 4)
            if not sides:
                return None
            top, left, right, bottom = sides
            return Margin(left=left, right=right, top=top, bottom=bottom)
    return None


def rounding_from_value(value: Any) -> Optional[Rounding]:
    """A scalar applies to every corner; `{ne, nw, se, sw}` sets them one by one."""
    scalar = optional_number(value)
    if scalar is not None:
        return Rounding.same(scalar)
    table = optional_table(value)
    if table is None or len(table) != 4:
        return None
    corners = _numbers(table, 4)
    if not corners:
        return None
    ne, nw, se, sw = corners
    return Rounding(nw=nw, ne=ne, sw=sw, se=se)


def size_attrib(value: Any, available: float) -> float:
    """Resolves a size attribute: 'fill', 'N%' of the available width, or 'N' pixels."""
    if not isinstance(value, str):
        number = optional_number(value)
        return number if number is not None else 0.0
    s = value.strip()
    if s == "fill":
        return available
    try:
        if s.endswith("%"):
            return available * (float(s[:-1]) / 100.0)
        return float(s)
    except ValueError:
        return 0.0


def to_script(value: Any) -> Any:
    """Converts a native value into its script representation."""
    match value:
        case Color32():
            return color_to_script(value)
        case Vec2() | Pos2():
            return [value.x, value.y]
        case Rect():
            return [value.min.x, value.min.y, value.max.x, value.max.y]
        case Table():
            return {k: to_script(v) for k, v in value.items()}
        case list() | tuple():
            return [to_script(v) for v in value]
    if hasattr(value, "to_script"):
        return value.to_script()
    return value


__all__ = [
    "BridgeTypeError", "Color32", "Vec2", "Pos2", "Rect", "Stroke", "Margin", "Rounding",
    "Table", "ScriptValue",
    "expect_number", "expect_string", "expect_bool", "expect_table", "expect_function",
    "optional_number", "optional_table",
    "color_from_table", "color_to_script", "vec2_from_table",
    "margin_from_value", "rounding_from_value", "size_attrib", "to_script",
]
