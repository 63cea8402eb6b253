"""Tests for the shared variable store."""

import pytest

from backend.nanlang.store import VariableStore


def test_set_get_and_mapping_view():
    store = VariableStore()
    store.set("x", 3)
    assert store["x"] == 3.0
    assert isinstance(store["x"], float)
    assert "x" in store and "y" not in store
    assert len(store) == 1
    assert dict(store) == {"x": 3.0}
    assert store.get("y", 7.0) == 7.0


def test_add_requires_existing_variable():
    store = VariableStore()
    with pytest.raises(KeyError):
        store.add("missing", 1.0)
    store.set("total", 1.5)
    assert store.add("total", 2.0) == 3.5
    assert store.as_dict() == {"total": 3.5}
