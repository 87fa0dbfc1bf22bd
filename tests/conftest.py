"""
Shared pytest fixtures for the Kryptos test suite.

Autouse fixtures below isolate tests from the user's real vault:
  - Data directory  -> temp directory  (KRYPTOS_HOME)
  - Audit logger    -> temp directory  (prevents test events in real logs)
  - Vault storage / account registry singletons -> reset per test
"""

import pytest


@pytest.fixture(autouse=True)
def kryptos_home(tmp_path, monkeypatch):
    """Point KRYPTOS_HOME at a temp directory for every test."""
    import kryptos.vault as vault_mod

    home = tmp_path / "kryptos_home"
    monkeypatch.setenv("KRYPTOS_HOME", str(home))

    vault_mod.set_vault_storage(None)
    vault_mod.set_account_registry(None)

    yield home

    vault_mod.set_vault_storage(None)
    vault_mod.set_account_registry(None)


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path):
    """Give every test a fresh AuditLogger writing into tmp_path."""
    import kryptos.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    test_logger = audit_mod.AuditLogger(log_dir=tmp_path / "audit_logs")
    audit_mod._audit_logger = test_logger

    yield test_logger

    test_logger.close()
    audit_mod._audit_logger = old_logger


@pytest.fixture
def audit_logger(_isolate_audit_logs):
    return _isolate_audit_logs


@pytest.fixture
def storage(tmp_path):
    from kryptos.vault.storage import VaultStorage

    return VaultStorage(tmp_path / "vault")


@pytest.fixture
def registry(storage):
    from kryptos.vault.accounts import AccountRegistry

    return AccountRegistry(storage.data_dir)


@pytest.fixture
def manager(storage, registry):
    from kryptos.vault.vault_manager import VaultManager

    return VaultManager(storage=storage, registry=registry)


@pytest.fixture
def github_entry():
    from kryptos.vault.entry import PasswordEntry

    return PasswordEntry.create("GitHub", "alice", "hunter2")
