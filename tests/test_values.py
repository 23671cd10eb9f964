import pytest

from imscript.imscript_values import (
    BridgeTypeError, Color32, Margin, Rounding, Table, ScriptValue, Vec2,
    expect_number, expect_string, expect_key, expect_table, optional_number,
    color_from_table, vec2_from_table, margin_from_value, rounding_from_value,
    size_attrib, to_script,
)


def test_color_from_table_defaults_alpha_and_saturates():
    assert color_from_table([1.0, 0.0, 0.0]) == Color32(255, 0, 0, 255)
    assert color_from_table((0.0, 0.0, 1.0, 0.5)) == Color32(0, 0, 255, 127)
    # Out of range components clamp instead of wrapping
    assert color_from_table([2.0, -1.0, 0.5]) == Color32(255, 0, 127, 255)


def test_color_from_table_rejects_incomplete_or_non_numeric():
    assert color_from_table([1.0, 0.5]) is None
    assert color_from_table(["red", 0, 0]) is None
    assert color_from_table("red") is None
    assert color_from_table(None) is None


def test_table_sequence_access_is_one_based():
    t = Table.of(["a", "b", "c"])
    assert t.seq(1) == "a"
    assert t.seq(3) == "c"
    assert t.seq(4) is None
    assert len(t) == 3
    assert t.seq_values() == ["a", "b", "c"]

    # Dict tables keep their keys; border length only counts 1..n
    d = Table.of({1: "x", 2: "y", "name": "z"})
    assert len(d) == 2
    assert d.get("name") == "z"


def test_script_value_kinds():
    assert ScriptValue.kind_of(None) == "nil"
    assert ScriptValue.kind_of(True) == "boolean"
    assert ScriptValue.kind_of(3) == "number"
    assert ScriptValue.kind_of(2.5) == "number"
    assert ScriptValue.kind_of("s") == "string"
    assert ScriptValue.kind_of({}) == "table"
    assert ScriptValue.kind_of([1]) == "table"
    assert ScriptValue.kind_of(len) == "function"
    assert ScriptValue.kind_of(object()) == "userdata"


def test_expectations_fail_explicitly_instead_of_coercing():
    assert expect_number(3) == 3.0
    assert expect_string("x") == "x"
    with pytest.raises(BridgeTypeError) as exc:
        expect_number("3", "value")
    assert "expected number for 'value', got string" in str(exc.value)
    # Booleans are not numbers at the boundary
    with pytest.raises(BridgeTypeError):
        expect_number(True)
    with pytest.raises(BridgeTypeError):
        expect_table(5, "values")
    assert optional_number("nope") is None


def test_keys_accept_strings_and_numbers():
    assert expect_key("a") == "a"
    assert expect_key(2) == "2"
    assert expect_key(2.0) == "2"
    assert expect_key(2.5) == "2.5"
    with pytest.raises(BridgeTypeError):
        expect_key(True, "key")


def test_vec2_from_table_uses_default_for_missing_components():
    assert vec2_from_table([3, 4]) == Vec2(3.0, 4.0)
    assert vec2_from_table([3], default=1.0) == Vec2(3.0, 1.0)
    assert vec2_from_table(7) is None


def test_margin_forms():
    assert margin_from_value(4) == Margin.same(4.0)
    assert margin_from_value([2, 6]) == Margin(left=2, right=2, top=6, bottom=6)
    # four values are top, left, right, bottom
    assert margin_from_value([1, 2, 3, 4]) == Margin(left=2, right=3, top=1, bottom=4)
    assert margin_from_value([1, 2, 3]) is None
    assert margin_from_value("wide") is None


def test_rounding_forms():
    assert rounding_from_value(5) == Rounding.same(5.0)
    # four values are ne, nw, se, sw
    assert rounding_from_value([1, 2, 3, 4]) == Rounding(nw=2, ne=1, sw=4, se=3)
    assert rounding_from_value([1, 2]) is None


def test_size_attrib():
    assert size_attrib("fill", 400.0) == 400.0
    assert size_attrib("50%", 400.0) == 200.0
    assert size_attrib("120", 400.0) == 120.0
    assert size_attrib("abc", 400.0) == 0.0
    assert size_attrib(30, 400.0) == 30.0


def test_to_script_converts_native_values():
    assert to_script(Color32(255, 0, 0, 255)) == [1.0, 0.0, 0.0, 1.0]
    assert to_script(Vec2(1, 2)) == [1, 2]
    assert to_script([Vec2(0, 0), "x"]) == [[0, 0], "x"]
    assert to_script("plain") == "plain"
