# Vault - Error Taxonomy
#
# Filesystem failures are not wrapped: they surface as OSError
# (FileNotFoundError, PermissionError, ...).


class VaultError(Exception):
    """Base class for vault engine failures."""


class FormatError(VaultError):
    """Envelope or decrypted payload does not have the expected structure."""


class MalformedCiphertextError(VaultError):
    """Stored blob is too short to contain a nonce."""


class AuthenticationError(VaultError):
    """Integrity check failed: wrong master password or tampered data.

    The two causes cannot be told apart.
    """


class DerivationError(VaultError):
    """Key derivation or secure random generation failed."""
