from imscript.imscript_printer import Printer
from imscript.imscript_values import Color32, Vec2, Rect, Pos2, Stroke, Margin, Rounding
from imscript.imscript_tree import UiNode, Shape
from imscript.imscript_results import InteractionResult, SelectionRecord
from imscript.imscript_resources import FALLBACK_IMAGE


def test_primitives():
    p = Printer()
    assert p.pformat("a") == "'a'"
    assert p.pformat(3) == "3"
    assert p.pformat(2.5) == "2.5"
    assert p.pformat(True) == "true"
    assert p.pformat(None) == "nil"
    assert p.pformat(b"abc") == "<3 bytes>"


def test_native_values():
    p = Printer()
    assert p.pformat(Color32(255, 0, 16, 255)) == "#ff0010ff"
    assert p.pformat(Vec2(1, 2.5)) == "(1, 2.5)"
    assert p.pformat(Rect(Pos2(0, 0), Pos2(4, 3))) == "[(0, 0) - (4, 3)]"
    assert p.pformat(Stroke(2, Color32.BLACK)) == "2px #000000ff"
    assert p.pformat(Margin.same(4)) == "4"
    assert p.pformat(Rounding(1, 2, 3, 4)) == "(1 2 3 4)"
    assert p.pformat(FALLBACK_IMAGE) == "<image builtin://image-load-failed.png ready>"


def test_tree_is_indented():
    tree = UiNode("root", "root", children=[
        UiNode("label", "root/label#0", {"text": "Hello"}),
        UiNode("horizontal", "root/horizontal#1", children=[
            UiNode("button", "root/horizontal#1/button#0", {"label": "OK"}),
        ]),
    ])
    assert Printer().pformat(tree) == "\n".join([
        "root",
        "  label 'Hello'",
        "  horizontal",
        "    button 'OK'",
    ])


def test_props_shapes_and_results():
    p = Printer()
    node = UiNode("slider", "s", {"label": "vol", "value": 0.5})
    assert p.pformat(node) == "slider 'vol' value=0.5"
    assert p.pformat(Shape("circle", {"radius": 3})) == "circle radius=3"
    assert p.pformat(InteractionResult(clicked=True, value=1)) == "<result clicked value=1>"
    assert p.pformat(InteractionResult()) == "<result idle>"
    assert p.pformat(SelectionRecord("a", True)) == "<selection 'a'*>"


def test_containers():
    p = Printer()
    assert p.pformat([1, "x"]) == "[1, 'x']"
    assert p.pformat({}) == "{}"
    assert p.pformat({"a": 1}) == "{\n  a: 1\n}"
