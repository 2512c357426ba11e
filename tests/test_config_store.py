"""Tests for the JSON file config store."""

import json

from host.config_store import JsonFileConfigStore
from tracklog.settings import ConfigStore


class TestJsonFileConfigStore:
    def test_protocol(self, tmp_path):
        assert isinstance(JsonFileConfigStore(tmp_path / "s.json"), ConfigStore)

    def test_missing_file(self, tmp_path):
        store = JsonFileConfigStore(tmp_path / "settings.json")
        assert store.get("tracks_json") is None

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "sub" / "settings.json"
        JsonFileConfigStore(path).put("continuous_mode", "true")
        assert JsonFileConfigStore(path).get("continuous_mode") == "true"

    def test_put_many(self, tmp_path):
        path = tmp_path / "settings.json"
        store = JsonFileConfigStore(path)
        store.put_many({"a": "1", "b": "2"})
        assert json.loads(path.read_text()) == {"a": "1", "b": "2"}

    def test_none_removes(self, tmp_path):
        store = JsonFileConfigStore(tmp_path / "settings.json")
        store.put_many({"a": "1", "b": "2"})
        store.put("a", None)
        assert store.get("a") is None
        assert JsonFileConfigStore(tmp_path / "settings.json").get("b") == "2"

    def test_no_temp_files_left(self, tmp_path):
        store = JsonFileConfigStore(tmp_path / "settings.json")
        for i in range(3):
            store.put("k", str(i))
        assert [p.name for p in tmp_path.iterdir()] == ["settings.json"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{oops")
        assert JsonFileConfigStore(path).get("a") is None

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")
        assert JsonFileConfigStore(path).get("a") is None
