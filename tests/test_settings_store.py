import json
import tempfile
import unittest
from pathlib import Path

from companion.app_types import UserSettings, Units
from companion.config import Settings
from companion.settings_store import SettingsStore


class TestSettingsStore(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.cfg = Settings(data_dir=Path(self._tmp.name))
        self.store = SettingsStore.from_settings(self.cfg)

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_settings_are_defaults(self):
        loaded = self.store.load("alice")
        self.assertEqual(loaded.city, "Bucharest")
        self.assertEqual(loaded.news_topic, "Top Stories")
        self.assertEqual(loaded.units, Units.metric)

    def test_roundtrip(self):
        self.store.save("alice", UserSettings(city="Oslo", units=Units.imperial, max_cache_age_override=60))
        loaded = self.store.load("alice")
        self.assertEqual(loaded.city, "Oslo")
        self.assertEqual(loaded.units, Units.imperial)
        self.assertEqual(loaded.max_cache_age_override, 60)
        raw = json.loads((self.cfg.users_dir / "alice" / "settings.json").read_text(encoding="utf-8"))
        self.assertEqual(raw["units"], "imperial")

    def test_unreadable_settings_fall_back_to_defaults(self):
        path = self.cfg.users_dir / "alice" / "settings.json"
        path.parent.mkdir(parents=True)
        path.write_text("{oops", encoding="utf-8")
        self.assertEqual(self.store.load("alice"), UserSettings())

    def test_invalid_values_fall_back_to_defaults(self):
        path = self.cfg.users_dir / "alice" / "settings.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"units": "kelvin"}), encoding="utf-8")
        self.assertEqual(self.store.load("alice"), UserSettings())

    def test_delete_removes_owner_tree(self):
        self.store.save("alice", UserSettings(city="Oslo"))
        (self.cfg.users_dir / "alice" / "cache").mkdir()
        self.store.delete("alice")
        self.assertFalse((self.cfg.users_dir / "alice").exists())
        self.store.delete("alice")

    def test_in_memory_store(self):
        store = SettingsStore.in_memory()
        store.save("guest", UserSettings(news_topic="rust"))
        self.assertEqual(store.load("guest").news_topic, "rust")
        store.delete("guest")
        self.assertEqual(store.load("guest"), UserSettings())


if __name__ == "__main__":
    unittest.main()
