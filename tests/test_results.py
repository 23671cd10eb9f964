from imscript.imscript_values import Pos2, Rect, Vec2
from imscript.imscript_tree import RawResponse
from imscript.imscript_results import SelectionRecord, wrap


def raw(**flags):
    return RawResponse("root/button#0", Rect(Pos2(0, 0), Pos2(10, 10)), **flags)


def test_wrap_copies_flags_and_value():
    result = wrap(raw(clicked=True, hovered=True, drag_delta=Vec2(1, 2)), "v")
    assert result.clicked and result.hovered
    assert result.drag_delta == Vec2(1, 2)
    assert result.value == "v"
    assert result.changed is False


def test_changed_follows_raw_response_unless_overridden():
    assert wrap(raw().mark_changed()).changed is True
    assert wrap(raw().mark_changed(), changed=False).changed is False
    assert wrap(raw(), changed=True).changed is True


def test_selection_record_overrides_changed_and_unwraps_key():
    result = wrap(raw(), SelectionRecord("b", True))
    assert result.changed is True
    assert result.value == "b"
    result = wrap(raw().mark_changed(), SelectionRecord("a", False))
    assert result.changed is False


def test_results_unpack_and_test_as_clicked():
    changed, value = wrap(raw(clicked=True).mark_changed(), 3)
    assert (changed, value) == (True, 3)
    assert bool(wrap(raw(clicked=True)))
    assert not wrap(raw(hovered=True))


def test_to_script():
    data = wrap(raw(clicked=True), 1.5).to_script()
    assert data["clicked"] is True
    assert data["value"] == 1.5
    assert data["drag_delta"] == [0.0, 0.0]
    assert SelectionRecord("k", True).to_script() == {"changed": True, "__value": "k"}

