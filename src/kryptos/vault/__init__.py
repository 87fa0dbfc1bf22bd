# Vault Module - Encrypted Password Storage
#
# One encrypted file per account, AES-256-GCM under a scrypt key
# derived from the account's master password. Fresh salt on every save.
#
# Module-level functions below are the operations offered to front ends;
# they use process-wide default instances.

from pathlib import Path
from typing import Iterable, List, Optional, Union

from .accounts import AccountRegistry
from .encryption import EncryptionService
from .entry import PasswordEntry, filter_entries
from .errors import (
    AuthenticationError,
    DerivationError,
    FormatError,
    MalformedCiphertextError,
    VaultError,
)
from .generator import generate_password
from .storage import VaultStorage
from .vault_manager import VaultManager

_storage: Optional[VaultStorage] = None
_registry: Optional[AccountRegistry] = None


def get_vault_storage() -> VaultStorage:
    """Get or create the process-wide VaultStorage."""
    global _storage
    if _storage is None:
        _storage = VaultStorage()
    return _storage


def set_vault_storage(instance: Optional[VaultStorage]) -> None:
    """Replace the singleton (for testing)."""
    global _storage
    _storage = instance


def get_account_registry() -> AccountRegistry:
    """Get or create the process-wide AccountRegistry."""
    global _registry
    if _registry is None:
        _registry = AccountRegistry()
    return _registry


def set_account_registry(instance: Optional[AccountRegistry]) -> None:
    """Replace the singleton (for testing)."""
    global _registry
    _registry = instance


def load_vault(account: str, master_password: str) -> List[PasswordEntry]:
    return get_vault_storage().load(account, master_password)


def save_vault(account: str, master_password: str, entries: Iterable[PasswordEntry]) -> None:
    get_vault_storage().save(account, master_password, entries)


def export_vault(account: str, destination: Union[str, Path]) -> None:
    get_vault_storage().export_raw(account, destination)


def import_vault(account: str, source: Union[str, Path]) -> None:
    get_vault_storage().import_raw(account, source)


def list_accounts() -> List[str]:
    return get_account_registry().list()


def save_accounts(names: Iterable[str]) -> None:
    get_account_registry().save(names)


__all__ = [
    "AccountRegistry",
    "EncryptionService",
    "PasswordEntry",
    "VaultManager",
    "VaultStorage",
    "filter_entries",
    "generate_password",
    # Errors
    "VaultError",
    "FormatError",
    "MalformedCiphertextError",
    "AuthenticationError",
    "DerivationError",
    # Operations
    "load_vault",
    "save_vault",
    "export_vault",
    "import_vault",
    "list_accounts",
    "save_accounts",
    "get_vault_storage",
    "set_vault_storage",
    "get_account_registry",
    "set_account_registry",
]
