# Core - Audit Logging
#
# Append-only audit trail for vault activity (unlock, save, export, ...).
# Structured JSON lines, one daily file under <data_dir>/audit_logs/.
#
# Audit events NEVER carry master passwords, entry passwords or any
# decrypted vault content. Entry ids and account names only.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog

from .config import AUDIT_LOG_DIR_NAME, ensure_private_dir, get_data_dir

AUDIT_LOGGER_NAME = "kryptos.audit"


class EventType(str, Enum):
    """Types of vault events that can be logged."""
    # Account lifecycle
    ACCOUNT_CREATED = "account.created"
    ACCOUNT_DELETED = "account.deleted"

    # Vault access
    VAULT_SAVED = "vault.saved"
    VAULT_UNLOCKED = "vault.unlocked"
    VAULT_LOCKED = "vault.locked"
    VAULT_UNLOCK_FAILED = "vault.unlock.failed"
    VAULT_EXPORTED = "vault.exported"
    VAULT_IMPORTED = "vault.imported"
    VAULT_ERROR = "vault.error"

    # Entries
    ENTRY_ADDED = "vault.entry.added"
    ENTRY_UPDATED = "vault.entry.updated"
    ENTRY_DELETED = "vault.entry.deleted"


class EventSeverity(str, Enum):
    """
    Severity levels for audit events.

    - INFO: normal activity
    - ALERT: failed unlock, lockout
    - CRITICAL: storage failure the user must look at
    """
    INFO = "info"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for vault events.

    Features:
    - Structured JSON logging (structlog)
    - Automatic timestamp and event ID
    - OS user context capture
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: <data_dir>/audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else get_data_dir() / AUDIT_LOG_DIR_NAME
        ensure_private_dir(self.log_dir)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )

        self._file_handler: Optional[logging.Handler] = None
        self._setup_file_handler()

        self.logger = structlog.get_logger(AUDIT_LOGGER_NAME)

    def _setup_file_handler(self):
        """Attach a daily log file to the audit logger (replacing any previous one)."""
        today = datetime.now().strftime("%Y-%m-%d")
        self.log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog renders JSON

        std_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        for handler in list(std_logger.handlers):
            if getattr(handler, "_kryptos_audit", False):
                std_logger.removeHandler(handler)
                handler.close()
        file_handler._kryptos_audit = True
        std_logger.addHandler(file_handler)
        std_logger.setLevel(logging.INFO)
        std_logger.propagate = False
        self._file_handler = file_handler

    def close(self):
        """Detach and close the file handler."""
        if self._file_handler is not None:
            logging.getLogger(AUDIT_LOGGER_NAME).removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Log a vault event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never secrets!)
            user_context: User context (defaults to OS user / hostname)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": details or {},
            "user_context": user_context or self._get_default_user_context(),
        }

        self.logger.info("vault_event", **event_data)
        return event_id

    def _get_default_user_context(self) -> Dict[str, Any]:
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def set_audit_logger(instance: Optional[AuditLogger]) -> None:
    """Replace the singleton (for testing)."""
    global _audit_logger
    if _audit_logger is not None and _audit_logger is not instance:
        _audit_logger.close()
    _audit_logger = instance

