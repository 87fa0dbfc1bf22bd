# Vault - Encryption Service
#
# Master password -> Encryption key (scrypt)
# Vault payload encryption (AES-256-GCM)
# Blob layout: nonce(12) || ciphertext || tag(16)

import base64
import binascii
import os
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .errors import AuthenticationError, DerivationError, FormatError, MalformedCiphertextError


class EncryptionService:
    """
    Handles key derivation and authenticated encryption for vault files.

    Flow:
    1. User enters master password
    2. scrypt derives a 256-bit key from password + salt
    3. AES-256-GCM encrypts/decrypts the serialized entries
    4. Every encrypt() call draws a fresh nonce

    The scrypt cost parameters are fixed; vault files record them so a
    future parameter change can still read older files.
    """

    # scrypt parameters (interactive-login cost, ~16 MiB memory)
    SCRYPT_N = 2 ** 14
    SCRYPT_R = 8
    SCRYPT_P = 1
    KEY_LENGTH = 32  # 256 bits for AES-256
    SALT_LENGTH = 16  # 128-bit salt
    NONCE_LENGTH = 12  # 96-bit nonce for GCM (recommended)
    TAG_LENGTH = 16

    @staticmethod
    def derive_key(
        master_password: Union[str, bytes],
        salt: bytes,
        n: Optional[int] = None,
        r: Optional[int] = None,
        p: Optional[int] = None,
    ) -> bytes:
        """
        Derive encryption key from master password using scrypt.

        Args:
            master_password: User's master password (str is UTF-8 encoded)
            salt: Random salt (stored in the vault envelope)
            n, r, p: scrypt cost overrides (default: class constants)

        Returns:
            256-bit encryption key

        Raises:
            DerivationError: Wrong salt length or scrypt failure
        """
        if len(salt) != EncryptionService.SALT_LENGTH:
            raise DerivationError(
                f"Salt must be {EncryptionService.SALT_LENGTH} bytes, got {len(salt)}"
            )
        if isinstance(master_password, str):
            master_password = master_password.encode('utf-8')

        try:
            kdf = Scrypt(
                salt=salt,
                length=EncryptionService.KEY_LENGTH,
                n=n or EncryptionService.SCRYPT_N,
                r=r or EncryptionService.SCRYPT_R,
                p=p or EncryptionService.SCRYPT_P,
            )
            return kdf.derive(master_password)
        except (ValueError, MemoryError) as e:
            raise DerivationError(f"Key derivation failed: {e}") from e

    @staticmethod
    def generate_salt() -> bytes:
        """Generate cryptographically random salt."""
        try:
            return os.urandom(EncryptionService.SALT_LENGTH)
        except NotImplementedError as e:
            raise DerivationError("No secure random source available") from e

    @staticmethod
    def encrypt(plaintext: bytes, key: bytes) -> bytes:
        """
        Encrypt plaintext using AES-256-GCM.

        Args:
            plaintext: Serialized vault payload
            key: 256-bit encryption key (from derive_key)

        Returns:
            nonce || ciphertext || tag
        """
        # Generate random nonce (must be unique per encryption)
        try:
            nonce = os.urandom(EncryptionService.NONCE_LENGTH)
        except NotImplementedError as e:
            raise DerivationError("No secure random source available") from e

        ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
        return nonce + ciphertext

    @staticmethod
    def decrypt(blob: bytes, key: bytes) -> bytes:
        """
        Decrypt a blob produced by encrypt().

        Raises:
            MalformedCiphertextError: Blob shorter than the nonce
            AuthenticationError: Wrong key or tampered/corrupt data
        """
        if len(blob) < EncryptionService.NONCE_LENGTH:
            raise MalformedCiphertextError("Ciphertext too short")

        nonce = blob[:EncryptionService.NONCE_LENGTH]
        ciphertext = blob[EncryptionService.NONCE_LENGTH:]
        try:
            return AESGCM(key).decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise AuthenticationError("Decryption failed: authentication tag mismatch") from None

    @staticmethod
    def encode_for_storage(data: bytes) -> str:
        """Encode binary data for the JSON envelope (base64)."""
        return base64.b64encode(data).decode('ascii')

    @staticmethod
    def decode_from_storage(data: str) -> bytes:
        """Decode a base64 field from the JSON envelope."""
        if not isinstance(data, str):
            raise FormatError("Expected a base64 string")
        try:
            return base64.b64decode(data.encode('ascii'), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise FormatError(f"Invalid base64 data: {e}") from e
