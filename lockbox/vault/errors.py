"""
Vault Errors — Typed failures raised by the cryptographic core.

Callers (route/service layers) translate these into generic,
information-minimal responses. None of them carry key material,
passwords or plaintext in their messages.
"""


class VaultError(Exception):
    """Base class for all vault errors."""


class ValidationError(VaultError, ValueError):
    """Malformed input from a caller: wrong key length, wrong types."""


class FormatError(ValidationError):
    """An EncryptedField string does not have the ``iv_hex:ct_hex`` shape."""


class AuthenticationFailure(VaultError):
    """Master password does not match the stored verifier."""

    GENERIC_MESSAGE = "Invalid email or password"

    def __init__(self, message: str = GENERIC_MESSAGE):
        super().__init__(message)


class DecryptionError(VaultError):
    """Ciphertext could not be decrypted (wrong key or corrupted data)."""


class KeyUnwrapError(DecryptionError):
    """The wrapped data-encryption key could not be unwrapped.

    After a successful verifier check this should never happen; it is
    an integrity fault of the stored credential.
    """


class IntegrityFault(VaultError):
    """A transactional credential update failed and was rolled back."""


class SessionExpired(VaultError):
    """The vault session was cleared or outlived its TTL."""
