"""
Envelope Key Manager — Wrap, unwrap and re-wrap the per-user data-encryption key.

Registration:  salt, verifier = hash(pw, salt); dek = random(32)
               wrapped = AES-CBC(PBKDF2_fast(pw, salt), dek)
Login:         verify(pw) → unwrap(wrapped, PBKDF2_fast(pw, salt)) → dek
Change:        unwrap with old (pw, salt) → new salt → wrap with new (pw, salt)

The DEK value never changes; only its wrapping does. Previously encrypted
vault records therefore stay readable after a password change.

Security Note:
    The unwrapped DEK exists in server memory only while the login
    response is built. Never log it.
"""
import asyncio
import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from pydantic import BaseModel

from .config import VaultConfig, get_config
from .credential import Credential, hash_password, verify_password
from .crypto import (
    KEY_LENGTH,
    KDFProfile,
    decrypt_bytes,
    derive_key,
    encrypt_bytes,
    generate_dek,
    generate_salt,
)
from .errors import (
    AuthenticationFailure,
    DecryptionError,
    FormatError,
    KeyUnwrapError,
    ValidationError,
)

logger = logging.getLogger("lockbox.vault")


# ---------------------------------------------------------------------------
# Wrap / unwrap
# ---------------------------------------------------------------------------

def wrap_key(
    dek: bytes,
    password: str,
    salt: bytes,
    config: Optional[VaultConfig] = None,
) -> str:
    """Encrypt a DEK under a key derived from (password, salt).

    Args:
        dek: 32-byte data-encryption key.
        password: Master password.
        salt: Per-user salt.
        config: Optional config; defaults to the process config.

    Returns:
        EncryptedField string holding the wrapped DEK.
    """
    if not isinstance(dek, (bytes, bytearray)) or len(dek) != KEY_LENGTH:
        raise ValidationError(f"DEK must be exactly {KEY_LENGTH} bytes")
    wrapping_key = derive_key(password, salt, KDFProfile.FAST, config)
    return encrypt_bytes(bytes(dek), wrapping_key)


def unwrap_key(
    wrapped_key: str,
    password: str,
    salt: bytes,
    config: Optional[VaultConfig] = None,
) -> bytes:
    """Decrypt a wrapped DEK.

    Raises:
        KeyUnwrapError: If the wrapped key is malformed, does not decrypt,
            or does not hold a 32-byte key.
    """
    wrapping_key = derive_key(password, salt, KDFProfile.FAST, config)
    try:
        dek = decrypt_bytes(wrapped_key, wrapping_key)
    except (FormatError, DecryptionError) as err:
        logger.error(
            "Integrity fault: wrapped DEK failed to unwrap (%s)",
            type(err).__name__,
        )
        raise KeyUnwrapError("wrapped key could not be unwrapped") from err
    if len(dek) != KEY_LENGTH:
        logger.error(
            "Integrity fault: unwrapped DEK has %d bytes, expected %d",
            len(dek), KEY_LENGTH,
        )
        raise KeyUnwrapError("wrapped key does not hold a 256-bit key")
    return dek


def rewrap_key(
    wrapped_key: str,
    old_password: str,
    old_salt: bytes,
    new_password: str,
    config: Optional[VaultConfig] = None,
) -> tuple[bytes, str]:
    """Move a wrapped DEK from an old (password, salt) to a new password.

    Returns:
        Tuple of (new_salt, new_wrapped_key). The DEK itself is unchanged.
    """
    dek = unwrap_key(wrapped_key, old_password, old_salt, config)
    new_salt = generate_salt()
    return new_salt, wrap_key(dek, new_password, new_salt, config)


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------

class Registration(BaseModel):
    """Result of registering a master password.

    ``credential`` is persisted; ``dek`` is returned once to the caller so
    the client can start a session without a separate login.
    """

    credential: Credential
    dek: bytes

    model_config = {"frozen": True}


class LoginResult(BaseModel):
    """Result of a successful login."""

    dek: bytes

    model_config = {"frozen": True}

    @property
    def encryption_key(self) -> str:
        """DEK as 64 hex chars, the form it travels in to the client."""
        return self.dek.hex()


def register(password: str, config: Optional[VaultConfig] = None) -> Registration:
    """Create a new credential and DEK for a master password."""
    config = config or get_config()
    salt = generate_salt()
    dek = generate_dek()
    credential = Credential(
        salt=salt,
        verifier_hash=hash_password(password, salt, config),
        wrapped_key=wrap_key(dek, password, salt, config),
    )
    logger.debug("Registered credential (fast=%d, slow=%d)",
                 config.fast_iterations, config.slow_iterations)
    return Registration(credential=credential, dek=dek)


def login(
    password: str,
    credential: Credential,
    config: Optional[VaultConfig] = None,
) -> LoginResult:
    """Verify a master password and unwrap the DEK.

    Raises:
        AuthenticationFailure: If the password does not match.
        KeyUnwrapError: If the verifier matched but the DEK did not unwrap.
    """
    config = config or get_config()
    if not verify_password(password, credential.salt, credential.verifier_hash, config):
        raise AuthenticationFailure()
    dek = unwrap_key(credential.wrapped_key, password, credential.salt, config)
    return LoginResult(dek=dek)


def change_password(
    current_password: str,
    new_password: str,
    credential: Credential,
    config: Optional[VaultConfig] = None,
) -> Credential:
    """Produce a new credential for ``new_password`` wrapping the same DEK.

    The returned credential replaces salt, verifier and wrapped key at once;
    callers must persist it in a single write.

    Raises:
        AuthenticationFailure: If ``current_password`` is wrong.
        KeyUnwrapError: If the stored wrapped key is corrupt.
    """
    config = config or get_config()
    if not verify_password(
        current_password, credential.salt, credential.verifier_hash, config
    ):
        raise AuthenticationFailure("Current password is incorrect")
    new_salt, new_wrapped = rewrap_key(
        credential.wrapped_key, current_password, credential.salt,
        new_password, config,
    )
    logger.info("Master password changed; DEK re-wrapped under new salt")
    return Credential(
        salt=new_salt,
        verifier_hash=hash_password(new_password, new_salt, config),
        wrapped_key=new_wrapped,
    )


# ---------------------------------------------------------------------------
# Async entry points (PBKDF2 off the event loop)
# ---------------------------------------------------------------------------

_executor: Optional[ThreadPoolExecutor] = None
_executor_workers = 0
_executor_lock = threading.Lock()


def _get_executor(config: VaultConfig) -> ThreadPoolExecutor:
    """Return the shared KDF worker pool, resized if the config changed."""
    global _executor, _executor_workers
    with _executor_lock:
        if _executor is None or _executor_workers != config.kdf_workers:
            if _executor is not None:
                _executor.shutdown(wait=False)
            _executor = ThreadPoolExecutor(
                max_workers=config.kdf_workers,
                thread_name_prefix="lockbox-kdf",
            )
            _executor_workers = config.kdf_workers
        return _executor


async def _run_in_pool(
    func: Callable[..., Any], *args: Any, config: Optional[VaultConfig] = None
) -> Any:
    config = config or get_config()
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        _get_executor(config), functools.partial(func, *args, config=config)
    )


async def register_async(
    password: str, config: Optional[VaultConfig] = None
) -> Registration:
    """``register`` on the KDF worker pool."""
    return await _run_in_pool(register, password, config=config)


async def login_async(
    password: str, credential: Credential, config: Optional[VaultConfig] = None
) -> LoginResult:
    """``login`` on the KDF worker pool."""
    return await _run_in_pool(login, password, credential, config=config)


async def change_password_async(
    current_password: str,
    new_password: str,
    credential: Credential,
    config: Optional[VaultConfig] = None,
) -> Credential:
    """``change_password`` on the KDF worker pool."""
    return await _run_in_pool(
        change_password, current_password, new_password, credential,
        config=config,
    )
