"""
Authentication Credential — Master password verifier and stored credential.

The verifier is ``SHA-256(PBKDF2_slow(password, salt) || salt)``. It is
derived with the SLOW profile while the DEK wrap key uses the FAST
profile, so the stored hash never equals (or reveals) the wrap key.

Security Note:
    Never log passwords, verifier hashes or wrapped keys.
"""
import hmac
import hashlib
import logging
from typing import Any, Mapping, Optional

from pydantic import BaseModel, field_validator

from .config import SALT_LENGTH, VaultConfig
from .crypto import KDFProfile, derive_key, parse_envelope
from .errors import ValidationError

logger = logging.getLogger("lockbox.vault")


def hash_password(
    password: str, salt: bytes, config: Optional[VaultConfig] = None
) -> str:
    """Compute the storable verifier hash for a master password.

    Args:
        password: Master password.
        salt: Per-user salt.
        config: Optional config; defaults to the process config.

    Returns:
        64-char lowercase hex SHA-256 digest.
    """
    derived = derive_key(password, salt, KDFProfile.SLOW, config)
    return hashlib.sha256(derived + bytes(salt)).hexdigest()


def verify_password(
    password: str,
    salt: bytes,
    verifier_hash: str,
    config: Optional[VaultConfig] = None,
) -> bool:
    """Check a master password against a stored verifier.

    Returns False on mismatch (including a malformed stored hash);
    never raises for a wrong password.
    """
    if not isinstance(verifier_hash, str):
        return False
    computed = hash_password(password, salt, config)
    return hmac.compare_digest(
        computed.encode("ascii"), verifier_hash.lower().encode("utf-8")
    )


class Credential(BaseModel):
    """Server-held credential for one user.

    ``salt`` and ``wrapped_key`` are replaced together on password change;
    the DEK inside ``wrapped_key`` stays the same for the life of the account.
    """

    salt: bytes
    verifier_hash: str
    wrapped_key: str

    model_config = {"frozen": True}

    @field_validator("salt")
    @classmethod
    def validate_salt(cls, v: bytes) -> bytes:
        """Salt is always 32 bytes."""
        if len(v) != SALT_LENGTH:
            raise ValueError(
                f"salt must be {SALT_LENGTH} bytes, got {len(v)}"
            )
        return v

    @field_validator("wrapped_key")
    @classmethod
    def validate_wrapped_key(cls, v: str) -> str:
        """Wrapped key must be a well-formed EncryptedField."""
        parse_envelope(v)
        return v

    @property
    def salt_hex(self) -> str:
        return self.salt.hex()

    def to_record(self) -> dict[str, str]:
        """Return the persisted column layout."""
        return {
            "salt": self.salt.hex(),
            "master_password_hash": self.verifier_hash,
            "encryption_key_encrypted": self.wrapped_key,
        }

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "Credential":
        """Build a Credential from a persisted row (or any mapping).

        Raises:
            ValidationError: If the stored salt is not valid hex.
        """
        try:
            salt = bytes.fromhex(row["salt"])
        except (TypeError, ValueError):
            raise ValidationError("stored salt is not valid hex") from None
        return cls(
            salt=salt,
            verifier_hash=row["master_password_hash"],
            wrapped_key=row["encryption_key_encrypted"],
        )
