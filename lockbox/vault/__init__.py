"""Lockbox Vault — Master-password credentials and envelope encryption.

Security Note (Threat Model):
    The server stores only the salt, the verifier hash and the wrapped
    data-encryption key (DEK). The DEK is unwrapped in server memory while
    the login response is built and then lives only in the client's
    ``VaultSession``. A memory dump of either process during that window
    exposes the DEK; mitigation requires HSM/secure enclave integration,
    which is out of scope.
"""

from .config import VaultConfig, get_config, set_config
from .crypto import KDFProfile, decrypt, derive_key, encrypt
from .credential import Credential, hash_password, verify_password
from .envelope import (
    LoginResult,
    Registration,
    change_password,
    login,
    register,
    rewrap_key,
    unwrap_key,
    wrap_key,
)
from .errors import (
    AuthenticationFailure,
    DecryptionError,
    FormatError,
    IntegrityFault,
    KeyUnwrapError,
    SessionExpired,
    ValidationError,
    VaultError,
)
from .generator import calculate_strength, generate_password
from .items import CardItem, EncryptedRecord, IdentityItem, NoteItem, PasswordItem
from .key_rotation import change_master_password
from .session_vault import DecryptedRecord, VaultSession

__all__ = [
    "VaultConfig",
    "get_config",
    "set_config",
    "KDFProfile",
    "derive_key",
    "encrypt",
    "decrypt",
    "Credential",
    "hash_password",
    "verify_password",
    "Registration",
    "LoginResult",
    "register",
    "login",
    "change_password",
    "wrap_key",
    "unwrap_key",
    "rewrap_key",
    "change_master_password",
    "VaultSession",
    "DecryptedRecord",
    "PasswordItem",
    "NoteItem",
    "CardItem",
    "IdentityItem",
    "EncryptedRecord",
    "generate_password",
    "calculate_strength",
    "VaultError",
    "ValidationError",
    "FormatError",
    "AuthenticationFailure",
    "DecryptionError",
    "KeyUnwrapError",
    "IntegrityFault",
    "SessionExpired",
]
