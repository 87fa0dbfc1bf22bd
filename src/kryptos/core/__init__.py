# Core Module - Shared Utilities
#
# - Configuration (data directory, .env loading)
# - Audit logging

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    set_audit_logger,
)
from .config import (
    APP_DIR_NAME,
    get_data_dir,
    get_log_level,
)

__all__ = [
    # Configuration
    "APP_DIR_NAME",
    "get_data_dir",
    "get_log_level",
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "set_audit_logger",
]
