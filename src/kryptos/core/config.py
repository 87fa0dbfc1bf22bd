# Core - Configuration
#
# Resolves where Kryptos keeps its files. Order of precedence:
#   1. KRYPTOS_HOME (environment or .env file)
#   2. Platform user-config root + "Kryptos"
#
# The data directory is private to the OS user: created with mode 0700.

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

APP_DIR_NAME = "Kryptos"
DATA_FILE_SUFFIX = "kryptos_data.json"
ACCOUNTS_FILE_NAME = "kryptos_accounts.json"
AUDIT_LOG_DIR_NAME = "audit_logs"

DIR_MODE = 0o700
FILE_MODE = 0o600

ENV_HOME = "KRYPTOS_HOME"
ENV_LOG_LEVEL = "KRYPTOS_LOG_LEVEL"

_env_loaded = False


def load_environment() -> None:
    """Load a .env file from the working directory once per process.

    Variables already present in the environment are not overridden.
    """
    global _env_loaded
    if not _env_loaded:
        load_dotenv(find_dotenv(usecwd=True), override=False)
        _env_loaded = True


def user_config_root() -> Path:
    """Return the platform's per-user configuration directory."""
    if sys.platform.startswith("win"):
        appdata = os.environ.get("APPDATA", "")
        if not appdata:
            raise OSError("APPDATA is not set; cannot locate the user config directory")
        return Path(appdata)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return Path.home() / ".config"


def get_data_dir(create: bool = True) -> Path:
    """Return the application-private directory, creating it if needed."""
    load_environment()
    override = os.environ.get(ENV_HOME, "")
    data_dir = Path(override).expanduser() if override else user_config_root() / APP_DIR_NAME
    if create:
        ensure_private_dir(data_dir)
    return data_dir


def ensure_private_dir(path: Path) -> Path:
    """Create ``path`` (and parents) with owner-only permissions if missing."""
    if not path.exists():
        path.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        logger.debug("Created private data directory %s", path)
    return path


def get_log_level(default: str = "INFO") -> int:
    """Log level for the operational logger (KRYPTOS_LOG_LEVEL)."""
    load_environment()
    name = os.environ.get(ENV_LOG_LEVEL, default).upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        return logging.INFO
    return level


def resolve_data_dir(data_dir: Optional[Path]) -> Path:
    """Use an explicit directory when given, otherwise the configured one."""
    if data_dir is None:
        return get_data_dir()
    return ensure_private_dir(Path(data_dir))
