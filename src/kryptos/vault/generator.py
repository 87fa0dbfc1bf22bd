# Vault - Password Generator
#
# Random passwords for new entries, drawn from the secrets module.

import secrets
import string

DEFAULT_LENGTH = 20
DEFAULT_CHARSET = string.ascii_letters + string.digits + "!@#$%^&*()_+=-`~[]\\{}|;':\",./<>?"


def generate_password(length: int = DEFAULT_LENGTH, charset: str = DEFAULT_CHARSET) -> str:
    """Return ``length`` characters chosen uniformly from ``charset``."""
    if length < 1:
        raise ValueError("Password length must be at least 1")
    if not charset:
        raise ValueError("Character set cannot be empty")
    return "".join(secrets.choice(charset) for _ in range(length))
