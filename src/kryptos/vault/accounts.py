# Vault - Account Registry
#
# Plaintext catalog of account names (kryptos_accounts.json).
# Not encrypted: account names are outside the confidentiality boundary.
# The registry does not gate access to any vault file.

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.config import ACCOUNTS_FILE_NAME, ensure_private_dir, resolve_data_dir
from .errors import FormatError
from .storage import atomic_write

logger = logging.getLogger(__name__)


class AccountRegistry:
    """JSON array of account names stored next to the vault files."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = resolve_data_dir(data_dir)
        self.path = self.data_dir / ACCOUNTS_FILE_NAME

    def list(self) -> List[str]:
        """
        Registered account names, in stored order.

        Returns [] when the registry file does not exist yet.

        Raises:
            FormatError: File is not a JSON array of strings
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return []

        try:
            names = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FormatError(f"Account registry is not valid JSON: {e}") from e

        if names is None:
            return []
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise FormatError("Account registry must be a JSON array of strings")

        # Drop duplicates a hand-edited file might contain
        return list(dict.fromkeys(names))

    def save(self, names: Iterable[str]) -> None:
        """
        Replace the registry with ``names``.

        Raises:
            ValueError: Duplicate names
            OSError: File not writable
        """
        names = list(names)
        if len(set(names)) != len(names):
            raise ValueError("Account names must be unique")

        ensure_private_dir(self.data_dir)
        atomic_write(self.path, json.dumps(names, ensure_ascii=False).encode("utf-8"))
        logger.debug("Saved account registry (%d accounts)", len(names))

    def add(self, name: str) -> bool:
        """Append ``name``. Returns False if it was already registered."""
        names = self.list()
        if name in names:
            return False
        names.append(name)
        self.save(names)
        return True

    def remove(self, name: str) -> bool:
        """Drop ``name``. Returns False if it was not registered."""
        names = self.list()
        if name not in names:
            return False
        self.save([n for n in names if n != name])
        return True

    def __contains__(self, name: str) -> bool:
        return name in self.list()
