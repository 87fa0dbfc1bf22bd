# Kryptos - Local Encrypted Password Vault
#
# Named accounts, each with its own master password and encrypted file.

__version__ = "1.0.0"
__author__ = "Kryptos Team"
__description__ = "Local password vault encrypted with a master password"

from .core import (
    EventType,
    EventSeverity,
    get_audit_logger,
)
from .vault import (
    PasswordEntry,
    VaultManager,
    export_vault,
    import_vault,
    list_accounts,
    load_vault,
    save_accounts,
    save_vault,
)

__all__ = [
    "__version__",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "PasswordEntry",
    "VaultManager",
    "load_vault",
    "save_vault",
    "export_vault",
    "import_vault",
    "list_accounts",
    "save_accounts",
]
