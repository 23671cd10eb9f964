"""
Resolution of image and shape descriptors into drawables.

Images may be given as raw bytes, a file path or `file://` locator, or an
http(s) URI. Remote images load in the background through the `ImageCache`;
anything that cannot be resolved renders as `FALLBACK_IMAGE` and is reported
once as a `resource` side effect. Shape tables resolve to a `Shape` or to
None when a required field is missing or malformed.
"""

import hashlib
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from imscript.imscript_values import (
    Pos2, Vec2, Rect, Stroke, Rounding, Table,
    optional_number, optional_table, color_from_table,
)
from imscript.imscript_tree import Shape
from imscript.imscript_http import http_get_bytes


@dataclass(frozen=True)
class ImageSource:
    """A drawable image. `data` is None until the bytes are available."""
    kind: str
    uri: str
    data: Optional[bytes] = None
    state: str = "ready"

    def to_script(self) -> Dict[str, Any]:
        return {"kind": self.kind, "uri": self.uri, "state": self.state}


FALLBACK_IMAGE = ImageSource("fallback", "builtin://image-load-failed.png")

MAX_CACHE_ENTRIES = 64


def resolve_locator(locator: str, base_dir: Optional[str]) -> str:
    """Maps a `file://` locator or a plain path to a filesystem path."""
    rest = locator[7:] if locator.startswith("file://") else locator
    if rest.startswith("/"):
        return "/" + rest.lstrip("/")
    if rest.startswith("~"):
        return os.path.expanduser(rest)
    base = base_dir or os.getcwd()
    return os.path.normpath(os.path.join(base, rest))


def _bounded_put(cache: Dict[str, Any], key: str, value: Any):
    """Inserts into an insertion-ordered dict, dropping the oldest entry when full."""
    if key not in cache and len(cache) >= MAX_CACHE_ENTRIES:
        del cache[next(iter(cache))]
    cache[key] = value


# =================================================================
# Remote images
# =================================================================

class ImageCache:
    """
    Per-URI load state for remote images: `loading`, `ready` or `failed`.
    Fetches run on the I/O worker; results are picked up on the frame thread.
    """

    def __init__(self, worker, http_config: Optional[Dict[str, Any]] = None):
        self.worker = worker
        self.http_config = dict(http_config or {})
        self._futures: Dict[str, Any] = {}
        self._data: Dict[str, bytes] = {}
        self._errors: Dict[str, BaseException] = {}

    def request(self, uri: str):
        if uri in self._futures or uri in self._data or uri in self._errors:
            return
        self._futures[uri] = self.worker.submit(http_get_bytes(uri, self.http_config))

    def state(self, uri: str) -> Optional[str]:
        future = self._futures.get(uri)
        if future is not None and future.done():
            del self._futures[uri]
            if future.error is not None:
                self._errors[uri] = future.error
            else:
                self._data[uri] = future.result()
        if uri in self._data:
            return "ready"
        if uri in self._errors:
            return "failed"
        if uri in self._futures:
            return "loading"
        return None

    def data(self, uri: str) -> Optional[bytes]:
        return self._data.get(uri)

    def error(self, uri: str) -> Optional[BaseException]:
        return self._errors.get(uri)

    def forget(self, uri: str):
        self._futures.pop(uri, None)
        self._data.pop(uri, None)
        self._errors.pop(uri, None)


# =================================================================
# Resolver
# =================================================================

class ResourceResolver:
    def __init__(self, source_dir: Optional[str] = None, cache: Optional[ImageCache] = None,
                 emit: Optional[Callable[[List[str], str], None]] = None):
        self.source_dir = source_dir
        self.cache = cache
        self._emit = emit
        self._files: Dict[str, bytes] = {}
        self._reported: Dict[str, None] = {}

    def _unavailable(self, key: str, message: str) -> ImageSource:
        if key not in self._reported:
            _bounded_put(self._reported, key, None)
            if self._emit is not None:
                self._emit(["resource"], message)
        return FALLBACK_IMAGE

    def resolve(self, descriptor: Any) -> ImageSource:
        match descriptor:
            case ImageSource():
                return descriptor
            case bytes() | bytearray() | memoryview():
                data = bytes(descriptor)
                digest = hashlib.sha1(data).hexdigest()[:16]
                return ImageSource("bytes", f"bytes://{digest}", data)
            case str() if descriptor.startswith(("http://", "https://")):
                return self._resolve_remote(descriptor)
            case str() if descriptor:
                return self._resolve_file(descriptor)
            case _:
                return self._unavailable(repr(descriptor), f"unsupported image source: {descriptor!r}")

    def _resolve_remote(self, uri: str) -> ImageSource:
        if self.cache is None:
            return ImageSource("uri", uri, state="loading")
        self.cache.request(uri)
        state = self.cache.state(uri)
        if state == "failed":
            return self._unavailable(uri, f"failed to load {uri}: {self.cache.error(uri)}")
        return ImageSource("uri", uri, self.cache.data(uri), state)

    def _resolve_file(self, locator: str) -> ImageSource:
        path = resolve_locator(locator, self.source_dir)
        data = self._files.get(path)
        if data is None:
            # Failures are not cached; the file may appear later.
            try:
                with open(path, "rb") as f:
                    data = f.read()
            except OSError:
                return self._unavailable(path, f"cannot read image file: {path}")
            _bounded_put(self._files, path, data)
            self._reported.pop(path, None)
        return ImageSource("file", f"file://{path}", data)


# =================================================================
# Shapes
# =================================================================

def _numbers(table: Table, *keys: str) -> Optional[List[float]]:
    values = [optional_number(table.get(k)) for k in keys]
    if any(v is None for v in values):
        return None
    return values


def _stroke(value: Any) -> Optional[Stroke]:
    """Stroke table `{r, g, b[, a], width=...}`; the width is required."""
    color = color_from_table(value)
    if color is None:
        return None
    table = Table.of(value)
    width = optional_number(table.get("width"))
    if width is None:
        width = optional_number(table.seq(5))
    if width is None:
        return None
    return Stroke(width, color)


def resolve_shape(descriptor: Any) -> Optional[Shape]:
    table = optional_table(descriptor)
    if table is None:
        return None
    match table.get("type"):
        case "rect":
            xywh = _numbers(table, "x", "y", "w", "h")
            fill = color_from_table(table.get("fill"))
            stroke = _stroke(table.get("stroke"))
            if xywh is None or fill is None or stroke is None:
                return None
            x, y, w, h = xywh
            rect = Rect.from_min_size(Pos2(x, y), Vec2(w, h))
            return Shape("rect", {"rect": rect, "rounding": Rounding(), "fill": fill, "stroke": stroke})
        case "circle":
            xyr = _numbers(table, "x", "y", "radius")
            fill = color_from_table(table.get("fill"))
            stroke = _stroke(table.get("stroke"))
            if xyr is None or fill is None or stroke is None:
                return None
            x, y, radius = xyr
            return Shape("circle", {"center": Pos2(x, y), "radius": radius, "fill": fill, "stroke": stroke})
        case "line":
            points = _numbers(table, "x1", "y1", "x2", "y2")
            color = color_from_table(table.get("color"))
            width = optional_number(table.get("width"))
            if points is None or color is None or width is None:
                return None
            x1, y1, x2, y2 = points
            return Shape("line", {"points": (Pos2(x1, y1), Pos2(x2, y2)), "stroke": Stroke(width, color)})
        case _:
            return None


def resolve_shapes(descriptors: Any) -> List[Shape]:
    """Resolves a sequence of shape tables, dropping the ones that do not resolve."""
    table = optional_table(descriptors)
    if table is None:
        return []
    shapes = (resolve_shape(d) for d in table.seq_values())
    return [s for s in shapes if s is not None]
