"""
Vault Crypto Core — Key derivation and field encryption/decryption.

Implements the two primitives the rest of the vault is built on:
- Key derivation: PBKDF2-HMAC-SHA256(password, salt) → 32-byte key, with a
  FAST profile (wrap keys, recomputed on every login) and a SLOW profile
  (the stored verifier hash).
- Field encryption: AES-256-CBC + PKCS7 → ``<iv_hex>:<ciphertext_hex>``

Security Note:
    Never log plaintext, ciphertext or key values.
    IVs are random 128-bit; collision probability negligible under normal usage.
"""
import os
import re
import enum
import secrets
import logging
from typing import Optional, Union

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import SALT_LENGTH, VaultConfig, get_config
from .errors import DecryptionError, FormatError, ValidationError

logger = logging.getLogger("lockbox.vault")

KEY_LENGTH = 32  # AES-256
IV_SIZE = 16  # AES block size
BLOCK_BITS = 128
SEPARATOR = ":"

_HEX_RE = re.compile(r"[0-9a-fA-F]+")

KeyLike = Union[bytes, bytearray]


class KDFProfile(enum.Enum):
    """PBKDF2 cost profile."""

    FAST = "fast"
    SLOW = "slow"


# ---------------------------------------------------------------------------
# Randomness
# ---------------------------------------------------------------------------

def generate_salt() -> bytes:
    """Generate a random per-user salt (32 bytes)."""
    return secrets.token_bytes(SALT_LENGTH)


def generate_dek() -> bytes:
    """Generate a fresh 256-bit data-encryption key."""
    return secrets.token_bytes(KEY_LENGTH)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def iterations_for(profile: KDFProfile, config: Optional[VaultConfig] = None) -> int:
    """Return the PBKDF2 iteration count configured for ``profile``."""
    config = config or get_config()
    if profile is KDFProfile.SLOW:
        return config.slow_iterations
    return config.fast_iterations


def derive_key(
    password: str,
    salt: bytes,
    profile: KDFProfile = KDFProfile.FAST,
    config: Optional[VaultConfig] = None,
) -> bytes:
    """Derive a 32-byte key from a password using PBKDF2-HMAC-SHA256.

    Args:
        password: Master password (encoded as UTF-8).
        salt: Per-user random salt.
        profile: FAST for wrap keys, SLOW for the stored verifier.
        config: Optional config; defaults to the process config.

    Returns:
        32-byte derived key.
    """
    if not isinstance(password, str):
        raise ValidationError("password must be a str")
    if not isinstance(salt, (bytes, bytearray)):
        raise ValidationError("salt must be bytes")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=bytes(salt),
        iterations=iterations_for(profile, config),
    )
    return kdf.derive(password.encode("utf-8"))


# ---------------------------------------------------------------------------
# Field encryption (AES-256-CBC, hex envelope)
# ---------------------------------------------------------------------------

def _check_key(key: KeyLike) -> bytes:
    """Reject anything that is not exactly a 256-bit key."""
    if not isinstance(key, (bytes, bytearray)):
        raise ValidationError(
            f"key must be bytes, got {type(key).__name__}"
        )
    if len(key) != KEY_LENGTH:
        raise ValidationError(
            f"key must be exactly {KEY_LENGTH} bytes, got {len(key)}"
        )
    return bytes(key)


def parse_envelope(field: str) -> tuple[bytes, bytes]:
    """Split an EncryptedField into ``(iv, ciphertext)``.

    Raises:
        FormatError: If the field is not ``<32 hex>:<hex blocks>``.
    """
    if not isinstance(field, str):
        raise FormatError("encrypted field must be a str")
    parts = field.split(SEPARATOR)
    if len(parts) != 2:
        raise FormatError(
            f"encrypted field must have exactly 2 parts, got {len(parts)}"
        )
    iv_hex, ct_hex = parts
    if not _HEX_RE.fullmatch(iv_hex) or not _HEX_RE.fullmatch(ct_hex):
        raise FormatError("encrypted field parts must be non-empty hex")
    if len(iv_hex) != IV_SIZE * 2:
        raise FormatError(
            f"IV must be {IV_SIZE * 2} hex chars, got {len(iv_hex)}"
        )
    if len(ct_hex) % (IV_SIZE * 2) != 0:
        raise FormatError("ciphertext is not a whole number of AES blocks")
    return bytes.fromhex(iv_hex), bytes.fromhex(ct_hex)


def encrypt_bytes(plaintext: bytes, key: KeyLike) -> str:
    """Encrypt raw bytes with AES-256-CBC under a fresh random IV.

    Format: ``<iv 16B as hex>:<ciphertext as hex>``

    Args:
        plaintext: Data to encrypt.
        key: 32-byte key.

    Returns:
        EncryptedField string.
    """
    key = _check_key(key)
    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ct = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}{SEPARATOR}{ct.hex()}"


def decrypt_bytes(field: str, key: KeyLike) -> bytes:
    """Decrypt an EncryptedField back to raw bytes.

    Raises:
        FormatError: If the envelope is malformed.
        DecryptionError: If padding does not verify (wrong key or
            corrupted ciphertext).
    """
    key = _check_key(key)
    iv, ct = parse_envelope(field)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ct) + decryptor.finalize()
    unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as err:
        raise DecryptionError("ciphertext failed padding check") from err


def encrypt(plaintext: str, key: KeyLike) -> str:
    """Encrypt a text value (UTF-8) into an EncryptedField."""
    if not isinstance(plaintext, str):
        raise ValidationError("plaintext must be a str")
    return encrypt_bytes(plaintext.encode("utf-8"), key)


def decrypt(field: str, key: KeyLike) -> str:
    """Decrypt an EncryptedField back to text.

    Raises:
        FormatError: If the envelope is malformed.
        DecryptionError: If the key is wrong or the data corrupted.
    """
    data = decrypt_bytes(field, key)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as err:
        raise DecryptionError("decrypted data is not valid UTF-8") from err

