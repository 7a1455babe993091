"""
Tests for GlobalsStore persistence.
"""

import json
import math

import pytest

from flownote.globals_store import GlobalsStore


class TestGlobalsStore:
    """Saving and loading global variables."""

    @pytest.fixture(autouse=True)
    def _store(self, tmp_path):
        self.path = tmp_path / "state" / "globals.json"
        self.store = GlobalsStore(self.path)

    def test_missing_file_loads_empty(self):
        assert self.store.load() == {}

    def test_save_and_load(self):
        self.store.save({"taxRate": 0.08, "city": "Seattle", "rates": [1, 2]})
        assert self.store.load() == {"taxRate": 0.08, "city": "Seattle", "rates": [1, 2]}

    def test_file_layout(self):
        self.store.save({"x": 1})
        data = json.loads(self.path.read_text())
        assert data["variables"] == {"x": 1}
        assert "saved_at" in data

    def test_save_returns_path_and_creates_directory(self):
        assert self.store.save({}) == self.path
        assert self.path.exists()

    def test_non_finite_numbers_are_stored_as_text(self):
        self.store.save({"big": math.inf})
        assert self.store.load() == {"big": "Infinity"}

    def test_set_and_delete(self):
        self.store.set("a", 1)
        self.store.set("b", 2)
        self.store.set("a", 3)
        assert self.store.list() == [("a", 3), ("b", 2)]

        assert self.store.delete("a") is True
        assert self.store.delete("a") is False
        assert self.store.load() == {"b": 2}

    def test_invalid_name_rejected(self):
        with pytest.raises(ValueError, match="Invalid variable name"):
            self.store.set("tax rate", 1)
        with pytest.raises(ValueError, match="Invalid variable name"):
            self.store.save({"a.b": 1})
        assert not self.path.exists()

    def test_invalid_json(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{broken")
        with pytest.raises(ValueError, match="Invalid globals file"):
            self.store.load()

    def test_missing_variables_key(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text(json.dumps({"vars": {}}))
        with pytest.raises(ValueError, match="missing 'variables' object"):
            self.store.load()

    def test_default_path(self):
        assert GlobalsStore().path.name == "globals.json"
