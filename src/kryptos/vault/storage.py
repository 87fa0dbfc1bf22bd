# Vault - File Storage
#
# One encrypted envelope per account inside the private data directory:
#   <data_dir>/<account>_kryptos_data.json
#
# Every save rewrites the whole vault with a fresh salt (full snapshot),
# through a temp file + atomic rename. Export/import copy the envelope
# byte-for-byte without decrypting it.

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from ..core.config import DATA_FILE_SUFFIX, FILE_MODE, ensure_private_dir, resolve_data_dir
from .encryption import EncryptionService
from .entry import PasswordEntry, deserialize_entries, serialize_entries
from .errors import FormatError

logger = logging.getLogger(__name__)

# Envelope format version written by save(); increment if the layout changes
ENVELOPE_VERSION = 1
KDF_NAME = "scrypt"

PathLike = Union[str, os.PathLike]


def atomic_write(path: Path, data: bytes, mode: int = FILE_MODE) -> None:
    """Write ``data`` to ``path`` atomically with the given permissions.

    The bytes go to a temp file in the same directory, which is flushed,
    fsync'd and then renamed over the target. A crash leaves either the
    old file or the new one, never a truncated mix.
    """
    path = Path(path)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up temp file on failure
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def validate_account_name(account: str) -> str:
    """Reject names that would escape the data directory."""
    if not isinstance(account, str) or not account:
        raise ValueError("Account name cannot be empty")
    if account in (".", "..") or "\x00" in account:
        raise ValueError(f"Invalid account name: {account!r}")
    if "/" in account or "\\" in account or os.sep in account:
        raise ValueError(f"Account name must not contain path separators: {account!r}")
    return account


def build_envelope(salt: bytes, blob: bytes) -> Dict[str, Any]:
    return {
        "version": ENVELOPE_VERSION,
        "kdf": {
            "name": KDF_NAME,
            "n": EncryptionService.SCRYPT_N,
            "r": EncryptionService.SCRYPT_R,
            "p": EncryptionService.SCRYPT_P,
        },
        "salt": EncryptionService.encode_for_storage(salt),
        "entries": EncryptionService.encode_for_storage(blob),
    }


def parse_envelope(raw: bytes) -> Tuple[bytes, bytes, Dict[str, int]]:
    """Split an envelope file into (salt, blob, scrypt params).

    Files written before the header existed carry only ``salt`` and
    ``entries``; the version and kdf header are optional on read.

    Raises:
        FormatError: Not JSON, missing fields, unsupported version or KDF
    """
    try:
        envelope = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FormatError(f"Vault file is not valid JSON: {e}") from e

    if not isinstance(envelope, dict):
        raise FormatError("Vault file must contain a JSON object")

    version = envelope.get("version", ENVELOPE_VERSION)
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise FormatError(f"Invalid vault format version: {version!r}")
    if version > ENVELOPE_VERSION:
        raise FormatError(f"Unsupported vault format version {version}")

    params = {
        "n": EncryptionService.SCRYPT_N,
        "r": EncryptionService.SCRYPT_R,
        "p": EncryptionService.SCRYPT_P,
    }
    kdf = envelope.get("kdf")
    if kdf is not None:
        if not isinstance(kdf, dict) or kdf.get("name") != KDF_NAME:
            raise FormatError(f"Unsupported key derivation: {kdf!r}")
        for key in params:
            value = kdf.get(key, params[key])
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise FormatError(f"Invalid scrypt parameter {key}={value!r}")
            # A file may record cheaper parameters, never costlier ones
            if value > params[key]:
                raise FormatError(
                    f"scrypt parameter {key}={value} exceeds the supported maximum {params[key]}"
                )
            params[key] = value
        if params["n"] < 2 or params["n"] & (params["n"] - 1):
            raise FormatError(f"scrypt n must be a power of two, got {params['n']}")

    if "salt" not in envelope or "entries" not in envelope:
        raise FormatError("Vault file is missing 'salt' or 'entries'")

    salt = EncryptionService.decode_from_storage(envelope["salt"])
    if len(salt) != EncryptionService.SALT_LENGTH:
        raise FormatError(
            f"Salt must be {EncryptionService.SALT_LENGTH} bytes, got {len(salt)}"
        )
    blob = EncryptionService.decode_from_storage(envelope["entries"])
    return salt, blob, params


class VaultStorage:
    """
    Owns the on-disk vault files of every account.

    Args:
        data_dir: Private directory for vault files (default: configured
                  data directory, see core.config)

    Concurrency: save(), import_raw() and delete() hold a per-account
    re-entrant lock. Callers doing load-modify-save wrap the sequence in
    ``with storage.locked(account):``. Cross-process access is not
    coordinated.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = resolve_data_dir(data_dir)
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # ── Paths & locks ────────────────────────────────────────────────

    def vault_path(self, account: str) -> Path:
        """Deterministic file path for an account's envelope."""
        validate_account_name(account)
        return self.data_dir / f"{account}_{DATA_FILE_SUFFIX}"

    def exists(self, account: str) -> bool:
        return self.vault_path(account).exists()

    @contextmanager
    def locked(self, account: str) -> Iterator[None]:
        """Hold the account's write lock for the duration of the block."""
        validate_account_name(account)
        with self._locks_guard:
            lock = self._locks.setdefault(account, threading.RLock())
        with lock:
            yield

    # ── Load / Save ──────────────────────────────────────────────────

    def load(self, account: str, master_password: str) -> List[PasswordEntry]:
        """
        Decrypt and return an account's entries.

        A missing vault file is a brand-new account: returns [].

        Raises:
            FormatError: Corrupt or foreign file
            MalformedCiphertextError: Ciphertext shorter than a nonce
            AuthenticationError: Wrong master password or tampered file
            OSError: File exists but cannot be read
        """
        path = self.vault_path(account)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            logger.debug("No vault file for account %s yet", account)
            return []

        salt, blob, params = parse_envelope(raw)
        key = EncryptionService.derive_key(master_password, salt, **params)
        plaintext = EncryptionService.decrypt(blob, key)
        entries = deserialize_entries(plaintext)
        logger.debug("Loaded %d entries for account %s", len(entries), account)
        return entries

    def save(self, account: str, master_password: str, entries: Iterable[PasswordEntry]) -> None:
        """
        Encrypt and write the full entry collection, replacing the file.

        A new salt (and so a new key and nonce) is drawn on every call.

        Raises:
            FormatError: Duplicate entry ids (nothing is written)
            DerivationError: Random source or scrypt failure
            OSError: Directory or file cannot be written
        """
        path = self.vault_path(account)
        payload = serialize_entries(entries)

        salt = EncryptionService.generate_salt()
        key = EncryptionService.derive_key(master_password, salt)
        blob = EncryptionService.encrypt(payload, key)
        data = json.dumps(build_envelope(salt, blob)).encode("utf-8")

        with self.locked(account):
            ensure_private_dir(self.data_dir)
            atomic_write(path, data)
        logger.debug("Saved vault for account %s (%d bytes)", account, len(data))

    # ── Raw export / import ──────────────────────────────────────────

    def export_raw(self, account: str, destination: PathLike) -> None:
        """
        Copy the account's envelope to ``destination`` unchanged.

        Raises:
            FileNotFoundError: Account has no vault file
            OSError: Destination not writable
        """
        with self.locked(account):
            data = self.vault_path(account).read_bytes()
        atomic_write(Path(destination), data)
        logger.info("Exported vault for account %s to %s", account, destination)

    def import_raw(self, account: str, source: PathLike) -> None:
        """
        Replace the account's envelope with the bytes of ``source``.

        The content is not validated; a later load() reports problems.

        Raises:
            FileNotFoundError: Source missing
            OSError: Vault file not writable
        """
        data = Path(source).read_bytes()
        path = self.vault_path(account)
        with self.locked(account):
            ensure_private_dir(self.data_dir)
            atomic_write(path, data)
        logger.info("Imported vault for account %s from %s", account, source)

    def delete(self, account: str) -> bool:
        """Remove the account's vault file. Returns True if it existed."""
        path = self.vault_path(account)
        with self.locked(account):
            try:
                path.unlink()
            except FileNotFoundError:
                return False
        logger.info("Deleted vault file for account %s", account)
        return True
