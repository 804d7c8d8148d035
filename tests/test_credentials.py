import json
import tempfile
import unittest
from pathlib import Path

from companion.credentials import CredentialStore, validate_pin, validate_username
from companion.errors import (
    DuplicateUser,
    InvalidCredentials,
    InvalidInput,
    StoreCorrupt,
    UnknownUser,
)
from companion.hashing import hash_pin
from companion.repositories import InMemoryRepository, JsonFileRepository


class TestCredentialStore(unittest.TestCase):
    def setUp(self):
        self.repo = InMemoryRepository()
        self.store = CredentialStore(self.repo)

    def test_authenticate_after_register(self):
        identity = self.store.register("alice", "1234")
        self.assertEqual(identity.username, "alice")
        self.assertEqual(self.store.authenticate("alice", "1234"), identity)

    def test_wrong_pin_is_invalid_credentials(self):
        self.store.register("alice", "1234")
        for pin in ("1235", "12345", "", "abcd"):
            with self.assertRaises(InvalidCredentials):
                self.store.authenticate("alice", pin)

    def test_unknown_user(self):
        with self.assertRaises(UnknownUser):
            self.store.authenticate("bob", "1234")

    def test_duplicate_register_keeps_original_hash(self):
        self.store.register("alice", "1234")
        with self.assertRaises(DuplicateUser):
            self.store.register("alice", "9999")
        self.assertEqual(self.store.authenticate("alice", "1234").username, "alice")
        with self.assertRaises(InvalidCredentials):
            self.store.authenticate("alice", "9999")

    def test_usernames_are_case_sensitive(self):
        self.store.register("alice", "1234")
        self.store.register("Alice", "5678")
        self.assertEqual(self.store.list_users(), ["Alice", "alice"])

    def test_only_digest_is_persisted(self):
        self.store.register("alice", "1234")
        document = self.repo.load()
        record = document["users"][0]
        self.assertEqual(record["pin_hash"], hash_pin("1234"))
        self.assertNotIn("1234", json.dumps(document))

    def test_invalid_input_rejected_before_write(self):
        for username, pin in [("", "1234"), ("alice", "12"), ("alice", "12ab"), ("guest", "1234"),
                              ("../etc", "1234"), (" alice", "1234"), ("alice", "123456789")]:
            with self.assertRaises(InvalidInput):
                self.store.register(username, pin)
        self.assertIsNone(self.repo.load())
        self.assertFalse(self.store.has_any_user())

    def test_delete_runs_cleanup_hooks(self):
        cleaned = []
        store = CredentialStore(InMemoryRepository(), on_delete=[cleaned.append])
        store.register("alice", "1234")
        store.delete("alice")
        self.assertEqual(cleaned, ["alice"])
        with self.assertRaises(UnknownUser):
            store.authenticate("alice", "1234")

    def test_delete_unknown_user(self):
        with self.assertRaises(UnknownUser):
            self.store.delete("nobody")

    def test_failing_hook_does_not_undo_delete(self):
        def boom(_username):
            raise OSError("disk gone")

        store = CredentialStore(InMemoryRepository(), on_delete=[boom])
        store.register("alice", "1234")
        store.delete("alice")
        self.assertIsNone(store.get("alice"))

    def test_change_pin_replaces_hash(self):
        self.store.register("alice", "1234")
        self.store.change_pin("alice", "1234", "5678")
        self.assertEqual(self.store.authenticate("alice", "5678").username, "alice")
        with self.assertRaises(InvalidCredentials):
            self.store.authenticate("alice", "1234")

    def test_change_pin_requires_current_pin(self):
        self.store.register("alice", "1234")
        with self.assertRaises(InvalidCredentials):
            self.store.change_pin("alice", "0000", "5678")


class TestCredentialStorePersistence(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "users.json"

    def tearDown(self):
        self._tmp.cleanup()

    def test_records_survive_reload(self):
        CredentialStore(JsonFileRepository(self.path)).register("alice", "1234")
        reloaded = CredentialStore(JsonFileRepository(self.path))
        self.assertEqual(reloaded.authenticate("alice", "1234").username, "alice")

    def test_unknown_fields_are_tolerated_and_kept(self):
        self.path.write_text(json.dumps({
            "users": [{"username": "alice", "pin_hash": hash_pin("1234"), "avatar": "cat.png"}],
            "version": 2,
        }), encoding="utf-8")
        store = CredentialStore(JsonFileRepository(self.path))
        self.assertEqual(store.authenticate("alice", "1234").username, "alice")
        store.register("bob", "5678")
        saved = json.loads(self.path.read_text(encoding="utf-8"))
        alice = next(u for u in saved["users"] if u["username"] == "alice")
        self.assertEqual(alice["avatar"], "cat.png")

    def test_corrupt_file_yields_empty_store_with_diagnostic(self):
        self.path.write_text("{not json", encoding="utf-8")
        store = CredentialStore(JsonFileRepository(self.path))
        self.assertEqual(store.list_users(), [])
        self.assertEqual(len(store.diagnostics), 1)
        self.assertIsInstance(store.diagnostics[0], StoreCorrupt)

    def test_wrong_shape_is_corrupt(self):
        self.path.write_text(json.dumps(["alice"]), encoding="utf-8")
        store = CredentialStore(JsonFileRepository(self.path))
        self.assertFalse(store.has_any_user())
        self.assertEqual(len(store.diagnostics), 1)

    def test_malformed_records_are_skipped(self):
        self.path.write_text(json.dumps({"users": [
            {"username": "alice", "pin_hash": hash_pin("1234")},
            {"username": "bob"},
            "carol",
        ]}), encoding="utf-8")
        store = CredentialStore(JsonFileRepository(self.path))
        self.assertEqual(store.list_users(), ["alice"])
        self.assertEqual(store.diagnostics, [])

    def test_missing_file_is_empty_without_diagnostic(self):
        store = CredentialStore(JsonFileRepository(self.path))
        self.assertFalse(store.has_any_user())
        self.assertEqual(store.diagnostics, [])


class TestValidators(unittest.TestCase):
    def test_pin_length_bounds_are_configurable(self):
        self.assertEqual(validate_pin("123456", min_length=6, max_length=6), "123456")
        with self.assertRaises(InvalidInput):
            validate_pin("1234", min_length=6, max_length=6)

    def test_non_ascii_digits_rejected(self):
        with self.assertRaises(InvalidInput):
            validate_pin("١٢٣٤")

    def test_username_passthrough(self):
        self.assertEqual(validate_username("alice.b"), "alice.b")


if __name__ == "__main__":
    unittest.main()
