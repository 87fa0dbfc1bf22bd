# Tests for VaultManager: account lifecycle, unlock/lock, entry CRUD.

import json
from datetime import datetime, timedelta

import pytest

from kryptos.vault.vault_manager import LOGIN_FAILED_MESSAGE, VaultManager

PASSWORD = "Secret123!"


@pytest.fixture
def unlocked(manager):
    ok, _ = manager.create_account("alice", PASSWORD)
    assert ok
    ok, _ = manager.unlock("alice", PASSWORD)
    assert ok
    return manager


def read_audit(audit_logger):
    return [json.loads(line) for line in audit_logger.log_file.read_text().splitlines() if line]


class TestAccounts:
    def test_create_account_registers_and_writes_empty_vault(self, manager, storage, registry):
        ok, message = manager.create_account("alice", PASSWORD)
        assert ok, message
        assert registry.list() == ["alice"]
        assert storage.load("alice", PASSWORD) == []

    def test_duplicate_account_rejected(self, manager):
        manager.create_account("alice", PASSWORD)
        ok, message = manager.create_account("alice", "Another123!")
        assert not ok
        assert message == "Account already exists"

    @pytest.mark.parametrize("name", ["", "   ", "../evil"])
    def test_invalid_names_rejected(self, manager, registry, name):
        ok, _ = manager.create_account(name, PASSWORD)
        assert not ok
        assert registry.list() == []

    def test_failed_save_unregisters_account(self, manager, storage, registry, monkeypatch):
        real_save = storage.save

        def broken_save(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(storage, "save", broken_save)
        ok, message = manager.create_account("alice", PASSWORD)
        assert not ok
        assert "disk full" in message
        assert registry.list() == []

        monkeypatch.setattr(storage, "save", real_save)
        ok, _ = manager.create_account("alice", PASSWORD)
        assert ok
        assert registry.list() == ["alice"]

    def test_short_master_password_rejected(self, manager, storage):
        ok, message = manager.create_account("alice", "short")
        assert not ok
        assert "at least 8" in message
        assert not storage.exists("alice")

    def test_delete_account_keeps_file_by_default(self, manager, storage, registry):
        manager.create_account("alice", PASSWORD)
        ok, _ = manager.delete_account("alice")
        assert ok
        assert registry.list() == []
        assert storage.exists("alice")

    def test_delete_account_purge(self, manager, storage):
        manager.create_account("alice", PASSWORD)
        ok, _ = manager.delete_account("alice", remove_data=True)
        assert ok
        assert not storage.exists("alice")

    def test_delete_unknown_account(self, manager):
        ok, message = manager.delete_account("ghost")
        assert not ok
        assert message == "Account not found"

    def test_delete_unknown_account_keeps_its_file(self, manager, storage):
        storage.save("ghost", PASSWORD, [])
        ok, message = manager.delete_account("ghost", remove_data=True)
        assert not ok
        assert message == "Account not found"
        assert storage.exists("ghost")

    def test_delete_current_account_locks_session(self, unlocked):
        unlocked.delete_account("alice")
        assert not unlocked.is_unlocked


class TestUnlock:
    def test_unlock_and_lock(self, unlocked):
        assert unlocked.is_unlocked
        assert unlocked.current_account == "alice"
        unlocked.lock()
        assert not unlocked.is_unlocked
        assert unlocked.list_entries() == []

    def test_wrong_password_generic_message(self, manager):
        manager.create_account("alice", PASSWORD)
        ok, message = manager.unlock("alice", "wrong-pw")
        assert not ok
        assert message == LOGIN_FAILED_MESSAGE
        assert not manager.is_unlocked

    def test_corrupt_file_same_message_as_wrong_password(self, manager, storage):
        manager.create_account("alice", PASSWORD)
        storage.vault_path("alice").write_text("corrupted")
        ok, message = manager.unlock("alice", PASSWORD)
        assert not ok
        assert message == LOGIN_FAILED_MESSAGE

    def test_lockout_after_failure(self, manager):
        manager.create_account("alice", PASSWORD)
        manager.unlock("alice", "wrong-pw")
        ok, message = manager.unlock("alice", PASSWORD)
        assert not ok
        assert "Too many failed attempts" in message

    def test_lockout_grows_exponentially(self, manager):
        manager.create_account("alice", PASSWORD)
        delays = []
        for _ in range(6):
            manager.lockout_until = None
            manager.unlock("alice", "wrong-pw")
            after = datetime.now()
            delays.append(round((manager.lockout_until - after).total_seconds()))
        assert delays == [1, 2, 4, 8, 16, 16]

    def test_success_resets_failures(self, manager):
        manager.create_account("alice", PASSWORD)
        manager.unlock("alice", "wrong-pw")
        manager.lockout_until = datetime.now() - timedelta(seconds=1)
        ok, _ = manager.unlock("alice", PASSWORD)
        assert ok
        assert manager.failed_attempts == 0
        assert manager.lockout_until is None

    def test_unlock_unregistered_account_rejected(self, manager, storage):
        ok, message = manager.unlock("typo", "anything")
        assert not ok
        assert message == LOGIN_FAILED_MESSAGE
        assert not manager.is_unlocked
        assert manager.failed_attempts == 1

        ok, _ = manager.add_entry("x", "y", "z")
        assert not ok
        assert not storage.exists("typo")

    def test_unlock_unregistered_file_rejected(self, manager, storage):
        storage.save("orphan", PASSWORD, [])
        ok, message = manager.unlock("orphan", PASSWORD)
        assert not ok
        assert message == LOGIN_FAILED_MESSAGE


class TestEntries:
    def test_locked_vault_refuses_changes(self, manager):
        ok, message = manager.add_entry("GitHub", "alice", "hunter2")
        assert not ok
        assert "locked" in message.lower()
        assert manager.get_entry("x") is None

    def test_add_entry_persists(self, unlocked, storage):
        ok, entry_id = unlocked.add_entry("GitHub", "alice", "hunter2", tags=["dev"])
        assert ok
        [stored] = storage.load("alice", PASSWORD)
        assert stored.id == entry_id
        assert stored.tags == ["dev"]

    @pytest.mark.parametrize("title,username,password", [
        ("", "alice", "pw"), ("GitHub", "", "pw"), ("GitHub", "alice", ""),
    ])
    def test_required_fields(self, unlocked, title, username, password):
        ok, message = unlocked.add_entry(title, username, password)
        assert not ok
        assert "cannot be empty" in message

    def test_update_entry(self, unlocked, storage):
        _, entry_id = unlocked.add_entry("GitHub", "alice", "hunter2")
        before = unlocked.get_entry(entry_id)

        ok, _ = unlocked.update_entry(entry_id, password="hunter3", notes="rotated")
        assert ok

        [stored] = storage.load("alice", PASSWORD)
        assert stored.password == "hunter3"
        assert stored.notes == "rotated"
        assert stored.created_at == before.created_at
        assert stored.updated_at >= before.updated_at

    def test_update_unknown_entry(self, unlocked):
        ok, message = unlocked.update_entry("missing", title="x")
        assert not ok
        assert message == "Entry not found"

    def test_update_immutable_field(self, unlocked):
        _, entry_id = unlocked.add_entry("GitHub", "alice", "hunter2")
        ok, _ = unlocked.update_entry(entry_id, id="other")
        assert not ok
        assert unlocked.get_entry(entry_id) is not None

    def test_delete_entry(self, unlocked, storage):
        _, keep = unlocked.add_entry("Keep", "alice", "p1")
        _, drop = unlocked.add_entry("Drop", "alice", "p2")
        ok, _ = unlocked.delete_entry(drop)
        assert ok
        assert [e.id for e in storage.load("alice", PASSWORD)] == [keep]
        ok, _ = unlocked.delete_entry(drop)
        assert not ok

    def test_search(self, unlocked):
        unlocked.add_entry("GitHub", "alice", "p1")
        unlocked.add_entry("Bank", "bob", "p2", notes="github recovery codes")
        unlocked.add_entry("Mail", "carol", "p3")
        assert [e.title for e in unlocked.list_entries("GITHUB")] == ["GitHub", "Bank"]
        assert len(unlocked.list_entries()) == 3

    def test_returned_entries_are_copies(self, unlocked):
        _, entry_id = unlocked.add_entry("GitHub", "alice", "hunter2")
        unlocked.get_entry(entry_id).update(title="Changed")
        assert unlocked.get_entry(entry_id).title == "GitHub"

    def test_failed_save_keeps_memory_state(self, unlocked, monkeypatch):
        def broken_save(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(unlocked.storage, "save", broken_save)
        ok, message = unlocked.add_entry("GitHub", "alice", "hunter2")
        assert not ok
        assert "Failed to save vault" in message
        assert unlocked.list_entries() == []

    def test_changes_survive_new_session(self, unlocked, storage, registry):
        unlocked.add_entry("GitHub", "alice", "hunter2")
        other = VaultManager(storage=storage, registry=registry)
        ok, _ = other.unlock("alice", PASSWORD)
        assert ok
        assert [e.title for e in other.list_entries()] == ["GitHub"]


class TestExportImport:
    def test_export_and_import(self, unlocked, tmp_path):
        unlocked.add_entry("GitHub", "alice", "hunter2")
        backup = tmp_path / "alice.backup"
        ok, _ = unlocked.export_vault(backup)
        assert ok

        unlocked.add_entry("Extra", "alice", "pw")
        ok, _ = unlocked.import_vault(backup)
        assert ok
        assert [e.title for e in unlocked.list_entries()] == ["GitHub"]

    def test_import_with_other_password_restores_previous(self, unlocked, storage, tmp_path):
        unlocked.add_entry("Mine", "alice", "pw")
        storage.save("bob", "Bob-password1", [])
        backup = tmp_path / "bob.backup"
        storage.export_raw("bob", backup)

        ok, message = unlocked.import_vault(backup)
        assert not ok
        assert "could not be opened" in message
        assert [e.title for e in storage.load("alice", PASSWORD)] == ["Mine"]

    def test_import_missing_file(self, unlocked, tmp_path):
        ok, message = unlocked.import_vault(tmp_path / "nope.json")
        assert not ok
        assert message.startswith("Import failed")

    def test_export_requires_unlock(self, manager, tmp_path):
        ok, _ = manager.export_vault(tmp_path / "out.json")
        assert not ok


class TestAudit:
    def test_events_logged_without_secrets(self, unlocked, audit_logger):
        unlocked.add_entry("MyBankAtSecretCo", "alice.smith", "hunter2",
                           url="https://bank.example", notes="PIN 4321")
        unlocked.unlock("alice", "wrong-pw")
        unlocked.lock()

        events = read_audit(audit_logger)
        types = [e["event_type"] for e in events]
        for expected in ("account.created", "vault.unlocked", "vault.entry.added",
                         "vault.saved", "vault.unlock.failed", "vault.locked"):
            assert expected in types

        text = audit_logger.log_file.read_text()
        for secret in ("hunter2", "MyBankAtSecretCo", "alice.smith", "bank.example", "PIN 4321"):
            assert secret not in text
        assert PASSWORD not in text
        assert "wrong-pw" not in text
