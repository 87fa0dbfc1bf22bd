# Vault Manager - Account Session
#
# Unlock / lock an account and edit its entries. Every change re-saves
# the whole vault (full snapshot) under the account's write lock.
# Returns (success, message) pairs for display; messages never echo
# raw decryption errors.

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple, Union

from ..core import EventSeverity, EventType, get_audit_logger
from .accounts import AccountRegistry
from .entry import PasswordEntry, copy_entry, filter_entries
from .errors import AuthenticationError, FormatError, MalformedCiphertextError, VaultError
from .storage import VaultStorage, atomic_write, validate_account_name

MIN_MASTER_PASSWORD_LENGTH = 8

# Same text for wrong password, tampered file and corrupt file
LOGIN_FAILED_MESSAGE = "Login failed"


class VaultManager:
    """
    Session over one account's vault at a time.

    Security:
    - Master password kept in memory only while unlocked
    - Decryption failures reported with one generic message
    - Exponential lockout after failed unlock attempts
    - Audit logging for all vault access (never secrets)
    """

    def __init__(
        self,
        storage: Optional[VaultStorage] = None,
        registry: Optional[AccountRegistry] = None,
    ):
        """
        Args:
            storage: Vault file storage (default: process-wide instance)
            registry: Account name registry (default: process-wide instance)
        """
        from . import get_account_registry, get_vault_storage

        self.storage = storage or get_vault_storage()
        self.registry = registry or get_account_registry()

        self.current_account: Optional[str] = None
        self._master_password: Optional[str] = None
        self._entries: List[PasswordEntry] = []

        # Rate limiting for unlock attempts (prevent brute force)
        self.failed_attempts = 0
        self.lockout_until: Optional[datetime] = None

        self.logger = get_audit_logger()

    @property
    def is_unlocked(self) -> bool:
        return self.current_account is not None

    # ── Accounts ─────────────────────────────────────────────────────

    def list_accounts(self) -> List[str]:
        return self.registry.list()

    def create_account(self, name: str, master_password: str) -> Tuple[bool, str]:
        """
        Register a new account and write its empty vault.

        Returns:
            (success, message)
        """
        name = (name or "").strip()
        try:
            validate_account_name(name)
        except ValueError as e:
            return False, str(e)

        if len(master_password) < MIN_MASTER_PASSWORD_LENGTH:
            return False, f"Password must be at least {MIN_MASTER_PASSWORD_LENGTH} characters long"

        try:
            if name in self.registry:
                return False, "Account already exists"
            self.registry.add(name)
        except (VaultError, OSError) as e:
            self._log_error(f"Failed to create account {name}", e)
            return False, f"Failed to create account: {e}"

        try:
            self.storage.save(name, master_password, [])
        except (VaultError, OSError) as e:
            self._log_error(f"Failed to create account {name}", e)
            # Unregister so the name can be created again
            try:
                self.registry.remove(name)
            except (VaultError, OSError) as cleanup_error:
                self._log_error(f"Failed to unregister account {name}", cleanup_error)
            return False, f"Failed to create account: {e}"

        self.logger.log_event(
            event_type=EventType.ACCOUNT_CREATED,
            severity=EventSeverity.INFO,
            message="Account created",
            details={"account": name}
        )
        return True, "Account created successfully!"

    def delete_account(self, name: str, remove_data: bool = False) -> Tuple[bool, str]:
        """
        Remove an account from the registry.

        Args:
            name: Account to remove
            remove_data: Also delete the encrypted vault file

        Returns:
            (success, message)
        """
        try:
            if not self.registry.remove(name):
                return False, "Account not found"
            if remove_data:
                self.storage.delete(name)
        except (VaultError, OSError, ValueError) as e:
            self._log_error(f"Failed to delete account {name}", e)
            return False, f"Failed to delete account: {e}"

        if self.current_account == name:
            self.lock()

        self.logger.log_event(
            event_type=EventType.ACCOUNT_DELETED,
            severity=EventSeverity.INFO,
            message="Account deleted",
            details={"account": name, "data_removed": remove_data}
        )
        return True, "Account deleted"

    # ── Unlock / Lock ────────────────────────────────────────────────

    def unlock(self, name: str, master_password: str) -> Tuple[bool, str]:
        """
        Open an account's vault with its master password.

        Security: Rate limiting with exponential backoff.
        - 1st failed attempt: 1 second lockout
        - 2nd failed attempt: 2 second lockout
        - 3rd failed attempt: 4 second lockout
        - 4th failed attempt: 8 second lockout
        - 5th+ failed attempt: 16 second lockout

        Returns:
            (success, message)
        """
        if self.lockout_until and datetime.now() < self.lockout_until:
            remaining = max(1, int((self.lockout_until - datetime.now()).total_seconds()))
            self.logger.log_event(
                event_type=EventType.VAULT_UNLOCK_FAILED,
                severity=EventSeverity.ALERT,
                message=f"Unlock attempt during lockout period ({remaining}s remaining)",
                details={"account": name}
            )
            return False, f"Too many failed attempts. Please wait {remaining} seconds."

        try:
            if name not in self.registry:
                return self._handle_failed_unlock(name)
            entries = self.storage.load(name, master_password)
        except (AuthenticationError, MalformedCiphertextError, FormatError):
            return self._handle_failed_unlock(name)
        except (VaultError, OSError, ValueError) as e:
            self._log_error(f"Vault unlock error for {name}", e)
            return False, LOGIN_FAILED_MESSAGE

        self.current_account = name
        self._master_password = master_password
        self._entries = entries

        # Rate limiting: Reset on successful unlock
        self.failed_attempts = 0
        self.lockout_until = None

        self.logger.log_event(
            event_type=EventType.VAULT_UNLOCKED,
            severity=EventSeverity.INFO,
            message="Vault unlocked successfully",
            details={"account": name, "entries": len(entries)}
        )
        return True, "Vault unlocked successfully!"

    def _handle_failed_unlock(self, name: str) -> Tuple[bool, str]:
        """Rate-limited failure response for wrong password attempts."""
        self.failed_attempts += 1
        delay_seconds = min(2 ** (self.failed_attempts - 1), 16)
        self.lockout_until = datetime.now() + timedelta(seconds=delay_seconds)

        self.logger.log_event(
            event_type=EventType.VAULT_UNLOCK_FAILED,
            severity=EventSeverity.ALERT,
            message=f"Vault unlock failed (attempt {self.failed_attempts}, {delay_seconds}s lockout)",
            details={"account": name}
        )
        return False, LOGIN_FAILED_MESSAGE

    def lock(self):
        """Forget the master password and the decrypted entries."""
        account = self.current_account
        self.current_account = None
        self._master_password = None
        self._entries = []

        if account is not None:
            self.logger.log_event(
                event_type=EventType.VAULT_LOCKED,
                severity=EventSeverity.INFO,
                message="Vault locked",
                details={"account": account}
            )

    # ── Entries ──────────────────────────────────────────────────────

    def list_entries(self, search: Optional[str] = None) -> List[PasswordEntry]:
        """Detached copies of the entries, optionally filtered."""
        if not self.is_unlocked:
            return []
        return [copy_entry(e) for e in filter_entries(self._entries, search)]

    def get_entry(self, entry_id: str) -> Optional[PasswordEntry]:
        if not self.is_unlocked:
            return None
        for entry in self._entries:
            if entry.id == entry_id:
                return copy_entry(entry)
        return None

    def add_entry(
        self,
        title: str,
        username: str,
        password: str,
        url: Optional[str] = None,
        notes: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Tuple[bool, str]:
        """
        Add an entry and save the vault.

        Returns:
            (success, message or entry_id)
        """
        if not self.is_unlocked:
            return False, "Vault is locked. Unlock vault first."
        if not title or not username or not password:
            return False, "Title, Username, and Password cannot be empty"

        entry = PasswordEntry.create(title, username, password, url or "", notes or "", tags)
        ok, message = self._commit(lambda entries: entries + [entry])
        if not ok:
            return False, message

        self.logger.log_event(
            event_type=EventType.ENTRY_ADDED,
            severity=EventSeverity.INFO,
            message="Entry added to vault",
            details={"account": self.current_account, "entry_id": entry.id}
        )
        return True, entry.id

    def update_entry(self, entry_id: str, **changes: Any) -> Tuple[bool, str]:
        """
        Change fields of an existing entry and save the vault.

        Returns:
            (success, message)
        """
        if not self.is_unlocked:
            return False, "Vault is locked. Unlock vault first."
        for key in ("title", "username", "password"):
            if key in changes and not changes[key]:
                return False, "Title, Username, and Password cannot be empty"

        def apply(entries: List[PasswordEntry]) -> List[PasswordEntry]:
            updated = []
            found = False
            for entry in entries:
                if entry.id == entry_id:
                    entry = copy_entry(entry).update(**changes)
                    found = True
                updated.append(entry)
            if not found:
                raise KeyError(entry_id)
            return updated

        try:
            ok, message = self._commit(apply)
        except KeyError:
            return False, "Entry not found"
        except ValueError as e:
            return False, str(e)
        if not ok:
            return False, message

        self.logger.log_event(
            event_type=EventType.ENTRY_UPDATED,
            severity=EventSeverity.INFO,
            message="Entry updated",
            details={"account": self.current_account, "entry_id": entry_id,
                     "fields": sorted(changes)}
        )
        return True, "Entry updated successfully"

    def delete_entry(self, entry_id: str) -> Tuple[bool, str]:
        """Delete an entry and save the vault."""
        if not self.is_unlocked:
            return False, "Vault is locked"
        if not any(e.id == entry_id for e in self._entries):
            return False, "Entry not found"

        ok, message = self._commit(lambda entries: [e for e in entries if e.id != entry_id])
        if not ok:
            return False, message

        self.logger.log_event(
            event_type=EventType.ENTRY_DELETED,
            severity=EventSeverity.INFO,
            message="Entry deleted from vault",
            details={"account": self.current_account, "entry_id": entry_id}
        )
        return True, "Entry deleted successfully"

    def _commit(self, change) -> Tuple[bool, str]:
        """Apply ``change`` to the in-memory entries and persist the result.

        The in-memory list is only replaced once the save succeeded.
        """
        account = self.current_account
        with self.storage.locked(account):
            new_entries = change(list(self._entries))
            try:
                self.storage.save(account, self._master_password, new_entries)
            except (VaultError, OSError) as e:
                self._log_error(f"Failed to save vault for {account}", e)
                return False, f"Failed to save vault: {e}"
            self._entries = new_entries

        self.logger.log_event(
            event_type=EventType.VAULT_SAVED,
            severity=EventSeverity.INFO,
            message="Vault saved",
            details={"account": account, "entries": len(new_entries)}
        )
        return True, "Vault saved"

    # ── Export / Import ──────────────────────────────────────────────

    def export_vault(self, destination: Union[str, Path]) -> Tuple[bool, str]:
        """Copy the current account's encrypted file to ``destination``."""
        if not self.is_unlocked:
            return False, "Vault is locked"
        try:
            self.storage.export_raw(self.current_account, destination)
        except OSError as e:
            self._log_error("Vault export failed", e)
            return False, f"Export failed: {e}"

        self.logger.log_event(
            event_type=EventType.VAULT_EXPORTED,
            severity=EventSeverity.INFO,
            message="Vault exported",
            details={"account": self.current_account, "destination": str(destination)}
        )
        return True, "Vault exported successfully"

    def import_vault(self, source: Union[str, Path]) -> Tuple[bool, str]:
        """
        Replace the current account's file with ``source`` and reload it.

        If the imported file does not open with the session's master
        password, the previous file is restored.
        """
        if not self.is_unlocked:
            return False, "Vault is locked"

        account = self.current_account
        password = self._master_password
        path = self.storage.vault_path(account)

        with self.storage.locked(account):
            try:
                previous = path.read_bytes() if path.exists() else None
                self.storage.import_raw(account, source)
            except OSError as e:
                self._log_error("Vault import failed", e)
                return False, f"Import failed: {e}"

            try:
                entries = self.storage.load(account, password)
            except VaultError:
                self._restore(account, previous)
                self.logger.log_event(
                    event_type=EventType.VAULT_ERROR,
                    severity=EventSeverity.ALERT,
                    message="Imported vault could not be opened; previous vault restored",
                    details={"account": account}
                )
                return False, "Import failed: file could not be opened with this account's password"

        self._entries = entries
        self.logger.log_event(
            event_type=EventType.VAULT_IMPORTED,
            severity=EventSeverity.INFO,
            message="Vault imported",
            details={"account": account, "source": str(source), "entries": len(entries)}
        )
        return True, "Vault imported successfully"

    def _restore(self, account: str, previous: Optional[bytes]):
        path = self.storage.vault_path(account)
        if previous is None:
            path.unlink(missing_ok=True)
        else:
            atomic_write(path, previous)

    def _log_error(self, message: str, error: Exception):
        self.logger.log_event(
            event_type=EventType.VAULT_ERROR,
            severity=EventSeverity.CRITICAL,
            message=f"{message}: {type(error).__name__}",
        )

