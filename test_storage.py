import os

from storage import LocalStore


class TestLocalStore:
    def test_write_then_read(self, local_store):
        local_store.write("things_v1", [{"a": 1}, {"b": "두"}])
        assert local_store.read("things_v1", []) == [{"a": 1}, {"b": "두"}]

    def test_missing_key_returns_default(self, local_store):
        assert local_store.read("nothing_here", []) == []
        assert local_store.read("nothing_here") is None

    def test_corrupt_file_returns_default(self, tmp_path):
        store = LocalStore(str(tmp_path))
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        assert store.read("broken", []) == []

    def test_wrong_type_returns_default(self, tmp_path):
        store = LocalStore(str(tmp_path))
        (tmp_path / "listy.json").write_text('{"a": 1}', encoding="utf-8")
        assert store.read("listy", []) == []

    def test_write_leaves_no_temp_files(self, tmp_path):
        store = LocalStore(str(tmp_path))
        store.write("one", [1])
        store.write("one", [1, 2])
        assert os.listdir(tmp_path) == ["one.json"]
        assert store.read("one", []) == [1, 2]

    def test_delete(self, local_store):
        local_store.write("gone", "x")
        local_store.delete("gone")
        local_store.delete("gone")
        assert local_store.read("gone", "default") == "default"
